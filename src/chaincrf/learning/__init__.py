"""Training chain CRFs: priors, learning rate schedules, corpora and the estimator."""

from chaincrf.learning import annealing, priors
from chaincrf.learning.annealing import AnnealingSchedule
from chaincrf.learning.corpus import JsonlCorpus, ListCorpus, TaggingCorpus, read_jsonl
from chaincrf.learning.estimator import ChainCrfEstimator, TrainingSession
from chaincrf.learning.priors import RegressionPrior

__all__ = [
    "AnnealingSchedule",
    "ChainCrfEstimator",
    "JsonlCorpus",
    "ListCorpus",
    "RegressionPrior",
    "TaggingCorpus",
    "TrainingSession",
    "annealing",
    "priors",
    "read_jsonl",
]
