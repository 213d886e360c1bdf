#!/usr/bin/env python
"""Inspect a specific example from a test set, showing features and predictions.

Usage:
    python scripts/inspect_example.py data/test.jsonl 17                 # Show all tokens
    python scripts/inspect_example.py data/test.jsonl 17 --token 4       # Show details for token 4
    python scripts/inspect_example.py data/test.jsonl 17 --nbest 5       # Show the 5 best taggings
"""

import argparse
import math
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from chaincrf import ChainCrf, NoLegalPathError, Tagging
from chaincrf.learning.corpus import parse_tagging

MODEL_PATH = Path("models/tagger.crf")


def load_example(path: Path, index: int) -> Tagging[str]:
    """Load the tagging on (0-based) line ``index`` of a JSONL file."""
    with open(path, encoding="utf-8") as f:
        for i, line in enumerate(f):
            if i == index:
                return parse_tagging(line, i + 1)
    raise ValueError(f"Index {index} not found")


def print_token_table(crf: ChainCrf, reference: Tagging[str], highlight_idx: int | None = None) -> None:
    """Print predicted tags and marginals next to the reference tags."""
    try:
        predicted = crf.tag(reference.tokens).tags
    except NoLegalPathError as e:
        print(f"No legal tagging: {e}")
        return
    lattice = crf.tag_marginal(reference.tokens)

    print(f"{'#':>4}  {'Token':<20} {'Gold':<10} {'Pred':<10} {'P(pred)':>8}")
    print("-" * 58)
    for n, (token, gold, pred) in enumerate(zip(reference.tokens, reference.tags, predicted)):
        prob = math.exp(lattice.log_probability(n, crf.tag_set.index(pred)))
        marker = "  " if gold == pred else "✗ "
        if n == highlight_idx:
            marker = "> "
        print(f"{marker}{n:>2}  {str(token):<20} {gold:<10} {pred:<10} {prob:>8.4f}")


def print_token_details(crf: ChainCrf, reference: Tagging[str], n: int) -> None:
    """Print the features and tag distribution for one token."""
    features = crf.feature_extractor.extract(reference.tokens, crf.tags)
    node = features.node_features(n)
    known = crf.feature_symbol_table

    print(f"\nToken {n}: {reference.tokens[n]!r} (gold {reference.tags[n]})")
    print("\nNode features:")
    for name, value in sorted(node.items()):
        status = "" if name in known else "  (unseen)"
        print(f"  {name}={value}{status}")

    if n > 0:
        print("\nEdge features by previous tag:")
        for k, tag in enumerate(crf.tags):
            print(f"  {tag}: {', '.join(sorted(features.edge_features(n, k)))}")

    lattice = crf.tag_marginal(reference.tokens)
    print("\nTag distribution:")
    for tag, prob in lattice.token_classification(n).items():
        print(f"  {tag:<10} {prob:.4f}")


def print_nbest(crf: ChainCrf, reference: Tagging[str], max_results: int) -> None:
    print(f"\n{max_results}-best taggings (conditional log probability):")
    for rank, scored in enumerate(crf.tag_nbest_conditional(reference.tokens, max_results)):
        marker = "*" if scored.tags == reference.tags else " "
        print(f"{marker}{rank:>3} {scored.score:>10.4f}  {' '.join(scored.tags)}")


def main():
    parser = argparse.ArgumentParser(description="Inspect a test example")
    parser.add_argument("data", type=Path, help="Path to JSONL data file")
    parser.add_argument("index", type=int, help="0-based example index")
    parser.add_argument("--model", "-m", type=Path, default=MODEL_PATH, help="Model path")
    parser.add_argument("--token", "-t", type=int, help="Show details for this token")
    parser.add_argument("--nbest", "-n", type=int, default=0, help="Show this many best taggings")
    args = parser.parse_args()

    crf = ChainCrf.load(args.model)
    reference = load_example(args.data, args.index)

    print(f"Example {args.index}: {len(reference)} tokens")
    print(reference)
    print()
    print_token_table(crf, reference, highlight_idx=args.token)

    if args.token is not None:
        if not 0 <= args.token < len(reference):
            print(f"Token {args.token} out of range (0..{len(reference) - 1})")
            sys.exit(1)
        print_token_details(crf, reference, args.token)

    if args.nbest > 0:
        print_nbest(crf, reference, args.nbest)


if __name__ == "__main__":
    main()
