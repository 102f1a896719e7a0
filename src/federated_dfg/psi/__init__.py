from .index import Pair, PairIndex, encode_pair, validate_pairs, validate_table
from .reconciliation import ClearReconciliation, PSIInitiator, PSIResponder, reconcile

__all__ = [
    "Pair",
    "PairIndex",
    "encode_pair",
    "validate_pairs",
    "validate_table",
    "ClearReconciliation",
    "PSIInitiator",
    "PSIResponder",
    "reconcile",
]
