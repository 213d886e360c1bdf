"""Tests for the shipped package layout."""

from pathlib import Path

import chaincrf

PACKAGE_DIR = Path(chaincrf.__file__).parent


class TestTypeStubs:
    """Type stub coverage tests."""

    def test_every_module_has_a_stub(self) -> None:
        """Each module except the exceptions ships a .pyi beside it."""
        missing = [
            str(path.relative_to(PACKAGE_DIR))
            for path in PACKAGE_DIR.rglob("*.py")
            if path.name != "exceptions.py" and not path.with_suffix(".pyi").exists()
        ]

        assert missing == []

    def test_marks_package_as_typed(self) -> None:
        assert (PACKAGE_DIR / "py.typed").exists()
