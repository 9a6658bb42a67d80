#Expose the high-level pipeline pieces:
#Run parameters (flags, store selector, locations, manual mode)
#Stage results
#Pipeline orchestrator (the "one call" entry point)

from .context import PacingPolicy, RunParameters, StageFlags, default_pacing_policy, no_pacing
from .stages import StageResult, StageStatus
from .pipeline import PipelineOrchestrator #the main object to call to run a fulfilment pass

__all__ = [
    "PacingPolicy",
    "RunParameters",
    "StageFlags",
    "default_pacing_policy",
    "no_pacing",
    "StageResult",
    "StageStatus",
    "PipelineOrchestrator",
]
