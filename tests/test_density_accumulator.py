"""Tests for the chunked density accumulator."""

import json

import numpy as np
import pytest

from conftest import brute_force_histogram
from cvfield.density.accumulator import (
    AccumulatorState,
    DensityAccumulator,
    Phase,
    RunResult,
)
from cvfield.errors import InvalidConfiguration, OutOfRange
from cvfield.geometry.cvf import TransformMode
from cvfield.spatial.reference_points import ReferencePointSet
from cvfield.spatial.spatial_index import SpatialIndex


def _make(detail=3, mode=TransformMode.BASIC):
    points = ReferencePointSet.icosphere(98.0, detail)
    index = SpatialIndex.build(points, cell_size=25.0, offset=6, grid_size=12)
    return DensityAccumulator(points, index, mode=mode, radius=98.0)


class TestAccumulatorState:
    def test_advance_order(self):
        s = AccumulatorState(Phase.RUNNING, n=2, m=3, phi=2)
        cursors = []
        while s.phase is Phase.RUNNING:
            cursors.append((s.i_n, s.i_m, s.i_phi))
            s = s.advanced()
        expected = [(i_n, i_m, i_phi) for i_phi in range(2) for i_m in range(3) for i_n in range(2)]
        assert cursors == expected
        assert s.phase is Phase.DONE
        assert s.position == s.total == 12
        assert s.progress == 1.0

    def test_round_trip_dict(self):
        s = AccumulatorState(Phase.RUNNING, i_n=1, i_m=2, i_phi=0, n=3, m=4, phi=5, paused=True)
        assert AccumulatorState.from_dict(json.loads(json.dumps(s.to_dict()))) == s

    def test_rejects_malformed_dict(self):
        with pytest.raises(InvalidConfiguration):
            AccumulatorState.from_dict({"phase": "running"})
        with pytest.raises(InvalidConfiguration):
            AccumulatorState.from_dict({"phase": "bogus", "cursor": [0, 0, 0], "shape": [1, 1, 1]})
        with pytest.raises(InvalidConfiguration):
            AccumulatorState.from_dict({"phase": "running", "cursor": [5, 0, 0], "shape": [2, 2, 2]})
        with pytest.raises(InvalidConfiguration):
            AccumulatorState.from_dict({"phase": "done", "cursor": [0, 0, 0], "shape": [2, 2, 2]})


class TestLifecycle:
    def test_idle_step_is_noop(self):
        acc = _make()
        result = acc.step(10)
        assert result.completed
        assert result.processed == 0
        assert acc.state.phase is Phase.IDLE

    def test_reset_enters_running(self):
        acc = _make()
        state = acc.reset(2, 3, 4)
        assert state.phase is Phase.RUNNING
        assert (state.i_n, state.i_m, state.i_phi) == (0, 0, 0)
        assert acc.max_value == 0.0
        assert acc.progress == 0.0

    def test_cursor_preserved_between_steps(self):
        acc = _make()
        acc.reset(2, 3, 4)
        acc.step(1)
        assert (acc.state.i_n, acc.state.i_m, acc.state.i_phi) == (1, 0, 0)
        acc.step(1)
        assert (acc.state.i_n, acc.state.i_m, acc.state.i_phi) == (0, 1, 0)
        result = acc.step(4)
        assert not result.completed
        assert result.processed == 4
        assert (acc.state.i_n, acc.state.i_m, acc.state.i_phi) == (0, 0, 1)
        assert acc.progress == pytest.approx(6 / 24)

    def test_one_shot_budget_completes(self):
        acc = _make()
        acc.reset(2, 2, 4)
        result = acc.step(16)
        assert isinstance(result, RunResult)
        assert result.completed
        assert result.processed == 16
        assert result.state.phase is Phase.DONE

    def test_step_after_done_is_noop(self):
        acc = _make()
        acc.reset(2, 2, 4)
        acc.step(100)
        hist = acc.histogram.copy()
        peak = acc.max_value
        for _ in range(3):
            result = acc.step(5)
            assert result.completed
            assert result.processed == 0
            assert result.hits == 0
        np.testing.assert_array_equal(acc.histogram, hist)
        assert acc.max_value == peak

    def test_reset_discards_progress(self):
        acc = _make()
        acc.reset(2, 2, 4)
        acc.step(7)
        acc.reset(2, 2, 4)
        assert acc.state.position == 0
        assert acc.histogram.sum() == 0
        assert acc.max_value == 0.0

    @pytest.mark.parametrize("budget", [0, -3, 1.5, True, "10"])
    def test_invalid_budget(self, budget):
        acc = _make()
        acc.reset(2, 2, 2)
        with pytest.raises(InvalidConfiguration):
            acc.step(budget)

    @pytest.mark.parametrize("shape", [(0, 1, 1), (1, 0, 1), (1, 1, 0), (2.0, 2, 2)])
    def test_invalid_shape(self, shape):
        acc = _make()
        with pytest.raises(InvalidConfiguration):
            acc.reset(*shape)

    def test_pause_and_resume(self):
        acc = _make()
        acc.reset(2, 2, 4)
        acc.pause()
        result = acc.step(10)
        assert not result.completed
        assert result.processed == 0
        assert acc.state.position == 0
        acc.resume()
        assert acc.step(10).processed == 10
        assert acc.toggle_pause() is True
        assert acc.step(10).processed == 0
        assert acc.toggle_pause() is False
        assert acc.step(10).completed

    def test_mismatched_index_rejected(self):
        points = ReferencePointSet.icosphere(98.0, 2)
        other = SpatialIndex.build(ReferencePointSet.icosphere(98.0, 3))
        with pytest.raises(InvalidConfiguration):
            DensityAccumulator(points, other)

    def test_hit_radius_must_fit_cell(self):
        points = ReferencePointSet.icosphere(98.0, 2)
        index = SpatialIndex.build(points)
        with pytest.raises(InvalidConfiguration):
            DensityAccumulator(points, index, hit_radius=30.0)
        with pytest.raises(InvalidConfiguration):
            DensityAccumulator(points, index, hit_radius=0.0)

    def test_probe_outside_grid_fails_fast(self):
        points = ReferencePointSet.icosphere(98.0, 2)
        # Grid spans [-100, 100): the sphere fits but (0, 98, 0) sits in the last cell.
        index = SpatialIndex.build(points, cell_size=25.0, offset=4, grid_size=8)
        acc = DensityAccumulator(points, index)
        acc.reset(2, 2, 4)
        with pytest.raises(OutOfRange):
            acc.step(1)


class TestAccumulation:
    def test_matches_brute_force(self):
        """N=2, M=2, PHI=4 against an O(n^2) scan of the radius-98 icosphere."""
        acc = _make(detail=5)
        acc.reset(2, 2, 4)
        result = acc.step(16)
        assert result.completed

        expected, hit_triples = brute_force_histogram(acc.reference_points.points, 2, 2, 4)
        np.testing.assert_array_equal(acc.histogram, expected)
        assert acc.max_value == expected.max()
        assert result.hits == int(expected.sum())
        assert hit_triples == 16

    def test_extended_mode_matches_brute_force(self):
        acc = _make(detail=4, mode=TransformMode.EXTENDED)
        acc.reset(3, 2, 6)
        while not acc.step(5).completed:
            pass
        expected, _ = brute_force_histogram(
            acc.reference_points.points, 3, 2, 6, mode=TransformMode.EXTENDED
        )
        np.testing.assert_array_equal(acc.histogram, expected)

    def test_chunking_does_not_change_result(self):
        one_shot = _make()
        one_shot.reset(3, 3, 6)
        assert one_shot.step(3 * 3 * 6).completed

        chunked = _make()
        chunked.reset(3, 3, 6)
        calls = 0
        while not chunked.step(1).completed:
            calls += 1
        assert calls == 3 * 3 * 6 - 1

        np.testing.assert_array_equal(chunked.histogram, one_shot.histogram)
        assert chunked.max_value == one_shot.max_value

    def test_running_max_is_true_max(self):
        acc = _make()
        acc.reset(3, 3, 6)
        while True:
            result = acc.step(4)
            assert acc.max_value == acc.histogram.max()
            if result.completed:
                break
        assert acc.max_value > 0

    def test_checkpoint_restore(self):
        reference = _make()
        reference.reset(3, 2, 5)
        reference.step(1000)

        first = _make()
        first.reset(3, 2, 5)
        first.step(11)
        snapshot = json.loads(json.dumps(first.checkpoint()))

        second = _make()
        state = second.restore(snapshot)
        assert state.position == 11
        while not second.step(3).completed:
            pass

        np.testing.assert_array_equal(second.histogram, reference.histogram)
        assert second.max_value == reference.max_value

    def test_restore_rejects_incomplete_snapshot(self):
        acc = _make()
        with pytest.raises(InvalidConfiguration):
            acc.restore({"histogram": []})
