"""Numeric and symbolic building blocks shared by inference and learning."""

from chaincrf.primitives.bounded_queue import BoundedPriorityQueue
from chaincrf.primitives.logmath import LOG_PROB_CUTOFF, log_sum_exp, relative_absolute_difference
from chaincrf.primitives.symbols import SymbolTable
from chaincrf.primitives.vectors import DenseVector, SparseVector, Vector

__all__ = [
    "BoundedPriorityQueue",
    "DenseVector",
    "LOG_PROB_CUTOFF",
    "SparseVector",
    "SymbolTable",
    "Vector",
    "log_sum_exp",
    "relative_absolute_difference",
]
