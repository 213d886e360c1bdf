"""Decoding and marginal inference over chain CRF potentials."""

from chaincrf.inference.lattice import ForwardBackwardTagLattice, empty_lattice, forward_backward, log_partition
from chaincrf.inference.nbest import NBestIterator, nbest_taggings
from chaincrf.inference.potentials import (
    INTERCEPT_FEATURE_NAME,
    FeatureVectors,
    Potentials,
    assemble_potentials,
    extract_feature_vectors,
    to_vector,
)
from chaincrf.inference.viterbi import ViterbiTable, best_path, viterbi_decode, viterbi_table

__all__ = [
    "INTERCEPT_FEATURE_NAME",
    "FeatureVectors",
    "ForwardBackwardTagLattice",
    "NBestIterator",
    "Potentials",
    "ViterbiTable",
    "assemble_potentials",
    "best_path",
    "empty_lattice",
    "extract_feature_vectors",
    "forward_backward",
    "log_partition",
    "nbest_taggings",
    "to_vector",
    "viterbi_decode",
    "viterbi_table",
]
