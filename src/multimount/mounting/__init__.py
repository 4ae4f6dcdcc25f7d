"""
Mount Strategy Dispatcher and per-family technique chains.
"""

from multimount.mounting.techniques import (
    MAX_NESTING_DEPTH,
    FailureKind,
    MountContext,
    MountResult,
    MountTechnique,
    OutcomeKind,
    TechniqueFailure,
    TechniqueOutcome,
    run_chain,
)
from multimount.mounting.dispatcher import CHAINS, MountDispatcher, resolve_forced_type

__all__ = [
    "MAX_NESTING_DEPTH",
    "FailureKind",
    "MountContext",
    "MountResult",
    "MountTechnique",
    "OutcomeKind",
    "TechniqueFailure",
    "TechniqueOutcome",
    "run_chain",
    "CHAINS",
    "MountDispatcher",
    "resolve_forced_type",
]
