"""
Resumable density-map accumulator.

Walks the Y00 index space N x M x PHI (i_phi outer, then i_m, then i_n),
generates one compound vertex per index triple, and for every reference
point within ``hit_radius`` of that vertex adds one to the point's
histogram value.  Candidates come from the 27-bucket neighbourhood of the
spatial index rather than a scan of the whole reference set.

The walk is chunked: ``step(budget)`` processes at most *budget* vertices
and returns, keeping the cursor, so a host loop can interleave the work
with other duties.  Chunking never changes the result.

Typical usage::

    points = ReferencePointSet.icosphere(98.0, 5)
    index = SpatialIndex.build(points)
    acc = DensityAccumulator(points, index)

    acc.reset(12, 12, 60)
    while not acc.step(500).completed:
        pass  # redraw, poll input, ...
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

import numpy as np

from cvfield.errors import InvalidConfiguration
from cvfield.geometry.cvf import TransformMode, vertex_for_compound
from cvfield.spatial.reference_points import ReferencePointSet
from cvfield.spatial.spatial_index import SpatialIndex

logger = logging.getLogger(__name__)

DEFAULT_RADIUS = 98.0
DEFAULT_HIT_RADIUS = 15.0  # 15 * 15 = 225


class Phase(Enum):
    """Lifecycle of an accumulation run."""

    IDLE = "idle"  # never reset
    RUNNING = "running"  # cursor inside the index space
    DONE = "done"  # cursor exhausted; waits for reset


@dataclass(frozen=True)
class AccumulatorState:
    """Cursor into the N x M x PHI index space plus its lifecycle phase."""

    phase: Phase = Phase.IDLE
    i_n: int = 0
    i_m: int = 0
    i_phi: int = 0
    n: int = 0
    m: int = 0
    phi: int = 0
    paused: bool = False

    @property
    def is_pending(self) -> bool:
        return self.phase is Phase.RUNNING

    @property
    def total(self) -> int:
        return self.n * self.m * self.phi

    @property
    def position(self) -> int:
        """Number of vertices already processed."""
        return (self.i_phi * self.m + self.i_m) * self.n + self.i_n

    @property
    def progress(self) -> float:
        if self.phase is Phase.DONE:
            return 1.0
        if self.total == 0:
            return 0.0
        return self.position / self.total

    def advanced(self) -> AccumulatorState:
        """The state after one more vertex (i_n fastest, i_phi slowest)."""
        i_n, i_m, i_phi = self.i_n + 1, self.i_m, self.i_phi
        if i_n >= self.n:
            i_n, i_m = 0, i_m + 1
            if i_m >= self.m:
                i_m, i_phi = 0, i_phi + 1
        phase = Phase.DONE if i_phi >= self.phi else self.phase
        return replace(self, phase=phase, i_n=i_n, i_m=i_m, i_phi=i_phi)

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "cursor": [self.i_n, self.i_m, self.i_phi],
            "shape": [self.n, self.m, self.phi],
            "paused": self.paused,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccumulatorState:
        try:
            phase = Phase(data["phase"])
            i_n, i_m, i_phi = (int(v) for v in data["cursor"])
            n, m, phi = (int(v) for v in data["shape"])
            paused = bool(data.get("paused", False))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidConfiguration(f"Malformed accumulator state: {e}") from e

        state = cls(phase, i_n, i_m, i_phi, n, m, phi, paused)
        if phase is not Phase.IDLE:
            if min(n, m, phi) < 1:
                raise InvalidConfiguration(f"Invalid shape {data['shape']}")
            in_range = 0 <= i_n < n and 0 <= i_m < m and 0 <= i_phi < phi
            if phase is Phase.RUNNING and not in_range:
                raise InvalidConfiguration(f"Cursor {data['cursor']} outside shape")
            if phase is Phase.DONE and state.position != state.total:
                raise InvalidConfiguration("Finished state must have an exhausted cursor")
        return state


@dataclass(frozen=True)
class RunResult:
    """Outcome of one ``step`` call."""

    completed: bool
    processed: int = 0  # vertices evaluated in this call
    hits: int = 0  # histogram increments in this call
    state: AccumulatorState = AccumulatorState()


class DensityAccumulator:
    """Chunked N x M x PHI density histogram over a reference point set.

    Single-driver: ``reset`` and ``step`` must be called from one logical
    thread.  ``DensityRunner`` adds the lock needed to drive it from a
    background thread.
    """

    def __init__(
        self,
        reference_points: ReferencePointSet,
        spatial_index: SpatialIndex,
        mode: TransformMode = TransformMode.BASIC,
        radius: float = DEFAULT_RADIUS,
        hit_radius: float = DEFAULT_HIT_RADIUS,
    ):
        if len(spatial_index) != len(reference_points):
            raise InvalidConfiguration(
                f"Spatial index covers {len(spatial_index)} points but the "
                f"reference set has {len(reference_points)}"
            )
        if hit_radius <= 0:
            raise InvalidConfiguration(f"hit_radius must be positive, got {hit_radius}")
        if hit_radius > spatial_index.cell_size:
            raise InvalidConfiguration(
                f"hit_radius {hit_radius} exceeds cell size {spatial_index.cell_size}; "
                "the 27-bucket neighbourhood would miss points"
            )

        self.reference_points = reference_points
        self.spatial_index = spatial_index
        self.mode = TransformMode.parse(mode)
        self.radius = float(radius)
        self.hit_radius = float(hit_radius)
        self.threshold_sq = self.hit_radius * self.hit_radius

        self._state = AccumulatorState()
        self._started_at: Optional[float] = None

    # ── Properties ────────────────────────────────────────────────────

    @property
    def state(self) -> AccumulatorState:
        return self._state

    @property
    def progress(self) -> float:
        return self._state.progress

    @property
    def histogram(self) -> np.ndarray:
        return self.reference_points.histogram

    @property
    def max_value(self) -> float:
        return self.reference_points.max_value

    # ── Control ───────────────────────────────────────────────────────

    def reset(self, N: int, M: int, PHI: int) -> AccumulatorState:
        """Clear the histogram and start a new run over N x M x PHI."""
        for name, value in (("N", N), ("M", M), ("PHI", PHI)):
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
            if value < 1:
                raise InvalidConfiguration(f"{name} must be >= 1, got {value}")

        self.reference_points.clear_histogram()
        self._state = AccumulatorState(
            phase=Phase.RUNNING, n=int(N), m=int(M), phi=int(PHI)
        )
        self._started_at = time.monotonic()
        logger.info(
            "Density map reset: %d x %d x %d = %d vertices over %d reference points",
            N, M, PHI, self._state.total, len(self.reference_points),
        )
        return self._state

    def pause(self) -> None:
        self._state = replace(self._state, paused=True)

    def resume(self) -> None:
        self._state = replace(self._state, paused=False)

    def toggle_pause(self) -> bool:
        """Flip the paused flag; returns the new value."""
        self._state = replace(self._state, paused=not self._state.paused)
        return self._state.paused

    def step(self, budget: int) -> RunResult:
        """Process up to *budget* vertices.

        Returns:
            RunResult with completed=True once the index space is exhausted
            (or when there is no run in progress), otherwise completed=False
            and the cursor preserved for the next call.

        Raises:
            InvalidConfiguration: budget is not a positive integer.
            OutOfRange: a generated vertex probes outside the spatial grid.
        """
        if isinstance(budget, bool) or not isinstance(budget, (int, np.integer)):
            raise InvalidConfiguration(f"budget must be an integer, got {budget!r}")
        if budget < 1:
            raise InvalidConfiguration(f"budget must be >= 1, got {budget}")

        state = self._state
        if state.phase is not Phase.RUNNING:
            return RunResult(completed=True, state=state)
        if state.paused:
            return RunResult(completed=False, state=state)

        processed = 0
        hits = 0
        while processed < budget and state.phase is Phase.RUNNING:
            hits += self._accumulate(state)
            processed += 1
            state = state.advanced()
            self._state = state

        logger.debug(
            "Step: %d vertices, %d hits, cursor (%d, %d, %d)",
            processed, hits, state.i_n, state.i_m, state.i_phi,
        )
        completed = state.phase is Phase.DONE
        if completed:
            elapsed = time.monotonic() - (self._started_at or time.monotonic())
            logger.info(
                "Density map complete: %d vertices in %.2fs (max histogram value %.0f)",
                state.total, elapsed, self.max_value,
            )
        return RunResult(completed=completed, processed=processed, hits=hits, state=state)

    def _accumulate(self, state: AccumulatorState) -> int:
        """Count one generated vertex against its neighbouring reference points."""
        vertex = vertex_for_compound(
            self.mode, self.radius,
            state.i_n, state.n, state.i_m, state.m, state.i_phi, state.phi,
        )
        candidates = self.spatial_index.neighborhood(self.spatial_index.bucket_of(vertex))
        if candidates.size == 0:
            return 0
        diff = self.reference_points.points[candidates] - vertex
        dist_sq = np.einsum("ij,ij->i", diff, diff)
        return self.reference_points.increment(candidates[dist_sq < self.threshold_sq])

    # ── Checkpointing ─────────────────────────────────────────────────

    def checkpoint(self) -> dict[str, Any]:
        """JSON-compatible snapshot of cursor, histogram and maximum."""
        return {
            "state": self._state.to_dict(),
            "histogram": self.reference_points.histogram.tolist(),
            "max_value": self.max_value,
        }

    def restore(self, data: dict[str, Any]) -> AccumulatorState:
        """Resume from a ``checkpoint()`` snapshot."""
        try:
            state = AccumulatorState.from_dict(data["state"])
            histogram = data["histogram"]
            max_value = data.get("max_value")
        except KeyError as e:
            raise InvalidConfiguration(f"Checkpoint missing {e}") from e

        self.reference_points.load_histogram(histogram, max_value)
        self._state = state
        self._started_at = time.monotonic()
        logger.info(
            "Density map restored at %d/%d (%s)", state.position, state.total, state.phase.value,
        )
        return state
