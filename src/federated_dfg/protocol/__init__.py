from .core import ProtocolRun, SecureDFGProtocol, plaintext_reference, run_protocol, split_roles
from .parties import ContributingParty, DecryptingParty, GlobalFrequencyTable, ProtocolPhase

__all__ = [
    "ContributingParty",
    "DecryptingParty",
    "GlobalFrequencyTable",
    "ProtocolPhase",
    "ProtocolRun",
    "SecureDFGProtocol",
    "plaintext_reference",
    "run_protocol",
    "split_roles",
]
