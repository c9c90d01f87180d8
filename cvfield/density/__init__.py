"""
Density-map accumulation.

Resumable, chunked counting of generated CVF vertices against the
reference point set, plus host drivers that step it to completion.
"""

from cvfield.density.accumulator import (
    AccumulatorState,
    DensityAccumulator,
    Phase,
    RunResult,
)
from cvfield.density.runner import DensityRunner, run_to_completion

__all__ = [
    "AccumulatorState",
    "DensityAccumulator",
    "DensityRunner",
    "Phase",
    "RunResult",
    "run_to_completion",
]
