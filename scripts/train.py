#!/usr/bin/env python3
"""Training script for chain CRF taggers.

Loads JSONL training data, trains a chain CRF with the default token
feature extractor, and saves it to the models/ directory.

Usage:
    python scripts/train.py data/train.jsonl
    python scripts/train.py data/train.jsonl --output models/pos.crf
    python scripts/train.py data/train.jsonl --prior laplace --prior-variance 2.0 --max-epochs 200
"""

import argparse
import logging
import sys
from collections import Counter
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from chaincrf import ChainCrfEstimator, InvalidInputError, ListCorpus, TokenFeatureExtractor
from chaincrf.learning import annealing, priors
from chaincrf.learning.annealing import AnnealingSchedule
from chaincrf.learning.corpus import read_jsonl
from chaincrf.learning.priors import RegressionPrior


def build_prior(args: argparse.Namespace) -> RegressionPrior:
    """Map command-line prior options to a regression prior."""
    if args.prior == "none":
        return priors.noninformative()
    intercept = not args.regularize_intercept
    if args.prior == "gaussian":
        return priors.gaussian(args.prior_variance, intercept)
    if args.prior == "laplace":
        return priors.laplace(args.prior_variance, intercept)
    if args.prior == "cauchy":
        return priors.cauchy(args.prior_variance, intercept)
    return priors.elastic_net(args.laplace_weight, args.prior_variance, intercept)


def build_schedule(args: argparse.Namespace) -> AnnealingSchedule:
    """Map command-line annealing options to a learning rate schedule."""
    if args.annealing == "constant":
        return annealing.constant(args.learning_rate)
    if args.annealing == "exponential":
        return annealing.exponential(args.learning_rate, args.base)
    return annealing.inverse(args.learning_rate, args.annealing_rate)


def main():
    parser = argparse.ArgumentParser(description="Train a chain CRF tagger")
    parser.add_argument(
        "training_data",
        type=Path,
        help="Path to JSONL training data file",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=Path("models/tagger.crf"),
        help="Output model path (default: models/tagger.crf)",
    )
    parser.add_argument(
        "--prior",
        choices=["none", "gaussian", "laplace", "cauchy", "elastic-net"],
        default="gaussian",
        help="Regularization prior (default: gaussian)",
    )
    parser.add_argument(
        "--prior-variance",
        type=float,
        default=10.0,
        help="Prior variance, squared scale for cauchy, scale for elastic-net (default: 10.0)",
    )
    parser.add_argument(
        "--laplace-weight",
        type=float,
        default=0.5,
        help="Laplace share of the elastic-net prior (default: 0.5)",
    )
    parser.add_argument(
        "--regularize-intercept",
        action="store_true",
        help="Apply the prior to the intercept feature as well",
    )
    parser.add_argument(
        "--annealing",
        choices=["constant", "inverse", "exponential"],
        default="inverse",
        help="Learning rate schedule (default: inverse)",
    )
    parser.add_argument("--learning-rate", type=float, default=0.05, help="Initial learning rate (default: 0.05)")
    parser.add_argument("--annealing-rate", type=float, default=100.0, help="Inverse schedule rate (default: 100)")
    parser.add_argument("--base", type=float, default=0.99, help="Exponential schedule base (default: 0.99)")
    parser.add_argument("--min-epochs", type=int, default=2, help="Minimum epochs (default: 2)")
    parser.add_argument("--max-epochs", type=int, default=100, help="Maximum epochs (default: 100)")
    parser.add_argument("--min-improvement", type=float, default=1e-5, help="Convergence threshold (default: 1e-5)")
    parser.add_argument("--min-feature-count", type=int, default=1, help="Prune rarer features (default: 1)")
    parser.add_argument("--prior-block-size", type=int, default=100, help="Instances per prior step (default: 100)")
    parser.add_argument("--affix-length", type=int, default=3, help="Longest prefix/suffix feature (default: 3)")
    parser.add_argument(
        "--allow-unseen-transitions",
        action="store_true",
        help="Allow starts, ends and transitions never seen in training",
    )
    parser.add_argument("--no-intercept", action="store_true", help="Do not add an intercept feature")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log every epoch")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Validate input file exists
    if not args.training_data.exists():
        print(f"Error: Training data file not found: {args.training_data}")
        sys.exit(1)

    print(f"Loading training data from {args.training_data}...")
    try:
        taggings = read_jsonl(args.training_data)
    except InvalidInputError as e:
        print(f"Error: {e}")
        sys.exit(1)
    print(f"Loaded {len(taggings)} training taggings")

    if not taggings:
        print("Error: No training taggings found")
        sys.exit(1)

    # Print tag distribution
    tag_counts = Counter(tag for tagging in taggings for tag in tagging.tags)
    total_tags = sum(tag_counts.values())
    print("\nTag distribution:")
    for tag, count in sorted(tag_counts.items()):
        pct = 100 * count / total_tags if total_tags > 0 else 0
        print(f"  {tag}: {count} ({pct:.1f}%)")

    try:
        estimator = ChainCrfEstimator(
            TokenFeatureExtractor(affix_length=args.affix_length),
            add_intercept_feature=not args.no_intercept,
            min_feature_count=args.min_feature_count,
            allow_unseen_transitions=args.allow_unseen_transitions,
            prior=build_prior(args),
            prior_block_size=args.prior_block_size,
            annealing_schedule=build_schedule(args),
            min_improvement=args.min_improvement,
            min_epochs=args.min_epochs,
            max_epochs=args.max_epochs,
        )
        print("\nTraining...")
        crf = estimator.estimate(ListCorpus(taggings))
    except InvalidInputError as e:
        print(f"Error: {e}")
        sys.exit(1)

    session = estimator.last_session
    if session is not None:
        status = "converged" if session.converged else "stopped at max epochs"
        print(f"Training {status} after {session.epochs_run} epochs (best llp={session.best_llp:.4f})")

    args.output.parent.mkdir(parents=True, exist_ok=True)
    crf.save(args.output)

    print(f"\nModel saved to {args.output}")
    print(f"Model size: {args.output.stat().st_size / 1024:.1f} KB")


if __name__ == "__main__":
    main()
