"""Symbol tables mapping feature and tag names to dense integer ids."""

from __future__ import annotations

from collections.abc import Iterable, Iterator


class SymbolTable:
    """Bidirectional mapping between strings and ids 0..n-1.

    Ids are assigned in insertion order and never reused.
    """

    __slots__ = ("_symbol_to_id", "_symbols", "_frozen")

    def __init__(self, symbols: Iterable[str] = (), *, frozen: bool = False) -> None:
        """Initialize the table.

        Args:
            symbols: Symbols to add in order; duplicates keep their first id.
            frozen: Reject additions after construction.
        """
        self._symbol_to_id: dict[str, int] = {}
        self._symbols: list[str] = []
        self._frozen = False
        for symbol in symbols:
            self.get_or_add(symbol)
        self._frozen = frozen

    @property
    def num_symbols(self) -> int:
        return len(self._symbols)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def get_or_add(self, symbol: str) -> int:
        """Return the id for ``symbol``, adding it if unseen.

        Raises:
            TypeError: If the table is frozen and the symbol is new.
        """
        symbol_id = self._symbol_to_id.get(symbol)
        if symbol_id is not None:
            return symbol_id
        if self._frozen:
            raise TypeError(f"Cannot add symbol to a frozen table: {symbol!r}")
        symbol_id = len(self._symbols)
        self._symbol_to_id[symbol] = symbol_id
        self._symbols.append(symbol)
        return symbol_id

    def symbol_to_id(self, symbol: str) -> int | None:
        """Return the id for ``symbol``, or None if it is not in the table."""
        return self._symbol_to_id.get(symbol)

    def id_to_symbol(self, symbol_id: int) -> str:
        """Return the symbol for ``symbol_id``.

        Raises:
            IndexError: If the id is out of range.
        """
        if not 0 <= symbol_id < len(self._symbols):
            raise IndexError(f"Symbol id out of range. Found id={symbol_id} num_symbols={len(self._symbols)}")
        return self._symbols[symbol_id]

    def symbols(self) -> tuple[str, ...]:
        """All symbols ordered by id."""
        return tuple(self._symbols)

    def frozen_copy(self) -> SymbolTable:
        """Return an unmodifiable copy of this table."""
        return SymbolTable(self._symbols, frozen=True)

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._symbol_to_id

    def __iter__(self) -> Iterator[str]:
        return iter(self._symbols)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SymbolTable):
            return NotImplemented
        return self._symbols == other._symbols

    __hash__ = None  # type: ignore[assignment]

    def __getstate__(self) -> dict[str, object]:
        return {"symbols": list(self._symbols), "frozen": self._frozen}

    def __setstate__(self, state: dict[str, object]) -> None:
        symbols = state["symbols"]
        if not isinstance(symbols, list):
            raise TypeError(f"Symbol table state must hold a list of symbols. Found {type(symbols).__name__}")
        self._symbols = list(symbols)
        self._symbol_to_id = {symbol: idx for idx, symbol in enumerate(self._symbols)}
        self._frozen = bool(state["frozen"])

    def __repr__(self) -> str:
        return f"SymbolTable({self._symbols!r}, frozen={self._frozen})"
