#!/usr/bin/env python3
"""Evaluation script for chain CRF taggers.

Loads test data, tags every example, and reports token and tagging
accuracy, per-tag precision/recall/F1, the most frequent confusions and
where the reference tagging ranks among the n-best results.

Usage:
    python scripts/evaluate.py data/test.jsonl
    python scripts/evaluate.py data/test.jsonl --model models/custom.crf
    python scripts/evaluate.py data/test.jsonl --nbest 20 --verbose
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from chaincrf import ChainCrf, InvalidInputError, ModelLoadError, TaggerEvaluator
from chaincrf.learning.corpus import read_jsonl


def main():
    parser = argparse.ArgumentParser(description="Evaluate a chain CRF tagger")
    parser.add_argument(
        "test_data",
        type=Path,
        help="Path to JSONL test data file",
    )
    parser.add_argument(
        "--model",
        "-m",
        type=Path,
        default=Path("models/tagger.crf"),
        help="Model path (default: models/tagger.crf)",
    )
    parser.add_argument(
        "--nbest",
        type=int,
        default=10,
        help="N-best depth for reference ranks, 0 to skip (default: 10)",
    )
    parser.add_argument(
        "--confusions",
        type=int,
        default=10,
        help="Number of most frequent confusions to show (default: 10)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Print every mistagged example",
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    if not args.test_data.exists():
        print(f"Error: Test data file not found: {args.test_data}")
        sys.exit(1)

    try:
        crf = ChainCrf.load(args.model)
        taggings = read_jsonl(args.test_data)
    except (FileNotFoundError, ModelLoadError, InvalidInputError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"Evaluating {len(taggings)} examples...")
    evaluator = TaggerEvaluator(crf, max_nbest=args.nbest)
    for i, reference in enumerate(taggings):
        evaluator.add_case(reference)
        if args.verbose and len(reference):
            response = crf.tag_marginal(reference.tokens)
            best = [max(response.token_classification(n).items(), key=lambda kv: kv[1]) for n in range(len(reference))]
            mistakes = [
                f"{token}/{tag}->{guess}({prob:.2f})"
                for token, tag, (guess, prob) in zip(reference.tokens, reference.tags, best)
                if guess != tag
            ]
            if mistakes:
                print(f"[{i}] " + " ".join(mistakes))

    report = evaluator.summary()
    print()
    print("=" * 60)
    print(report.format())
    print("=" * 60)

    confusions = [
        (pair, count) for pair, count in report.confusion.most_common() if pair[0] != pair[1]
    ][: args.confusions]
    if confusions:
        print("\nMost frequent confusions (reference -> response):")
        for (reference_tag, response_tag), count in confusions:
            print(f"  {reference_tag} -> {response_tag}: {count}")

    if args.nbest > 0:
        print("\nN-best recall:")
        for rank in (1, 2, 5, args.nbest):
            if rank <= args.nbest:
                print(f"  @{rank}: {report.nbest_recall(rank):.4f}")


if __name__ == "__main__":
    main()
