"""chaincrf - Linear-chain conditional random fields for sequence tagging."""

from chaincrf.crf import ChainCrf
from chaincrf.evaluation import EvaluationReport, TaggerEvaluator, TagMetrics
from chaincrf.exceptions import (
    CRFError,
    InvalidInputError,
    ModelLoadError,
    NoLegalPathError,
)
from chaincrf.features import (
    ChainCrfFeatureExtractor,
    ChainCrfFeatures,
    TokenFeatureExtractor,
    TokenFeatures,
)
from chaincrf.inference import ForwardBackwardTagLattice
from chaincrf.learning import (
    AnnealingSchedule,
    ChainCrfEstimator,
    JsonlCorpus,
    ListCorpus,
    RegressionPrior,
    TaggingCorpus,
    TrainingSession,
    annealing,
    priors,
)
from chaincrf.tagging import ScoredTagging, Tagging
from chaincrf.tagset import TagSet

__version__ = "0.1.0"

__all__ = [
    "AnnealingSchedule",
    "ChainCrf",
    "ChainCrfEstimator",
    "ChainCrfFeatureExtractor",
    "ChainCrfFeatures",
    "CRFError",
    "EvaluationReport",
    "ForwardBackwardTagLattice",
    "InvalidInputError",
    "JsonlCorpus",
    "ListCorpus",
    "ModelLoadError",
    "NoLegalPathError",
    "RegressionPrior",
    "ScoredTagging",
    "TagMetrics",
    "TagSet",
    "TaggerEvaluator",
    "Tagging",
    "TaggingCorpus",
    "TokenFeatureExtractor",
    "TokenFeatures",
    "TrainingSession",
    "annealing",
    "priors",
]
