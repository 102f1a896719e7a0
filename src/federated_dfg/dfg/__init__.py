from .assembler import END_ACTIVITY, START_ACTIVITY, DirectlyFollowsGraph, assemble_dfg

__all__ = [
    "END_ACTIVITY",
    "START_ACTIVITY",
    "DirectlyFollowsGraph",
    "assemble_dfg",
]
