"""Tests for the scrub engine."""
from __future__ import annotations

import pytest

from activity_timeline.models import Frame, LoadIntent
from activity_timeline.scrub import FrameCache, ScrubEngine, round_half_up
from activity_timeline.store import InMemoryFrameStore, frame_filename


@pytest.fixture
def engine(five_frame_store, scheduler):
    return ScrubEngine(five_frame_store, scheduler=scheduler)


class TestEmptyTimeline:
    def test_operations_are_noops(self, scheduler):
        engine = ScrubEngine(InMemoryFrameStore(), scheduler=scheduler)

        assert engine.seek_to_index(3).position == 0.0
        assert engine.seek_to_fraction(0.5).frame is None
        assert engine.drag_by(-100, 200).position == 0.0
        assert engine.wheel(0, 30).position == 0.0
        assert engine.step_frame(-1).frame is None
        assert engine.resolve_interpolated(1.5) is None
        assert scheduler.pending == []


class TestSeeking:
    @pytest.mark.parametrize("requested, expected", [(-3, 0), (0, 0), (2, 2), (4, 4), (99, 4)])
    def test_seek_to_index_clamps(self, engine, requested, expected):
        result = engine.seek_to_index(requested)
        assert result.position == expected
        assert result.frame.index == expected
        assert result.frame.data == f"frame-{expected}".encode()
        assert not result.frame.is_interpolated

    def test_seek_to_fraction_keeps_exact_position(self, engine):
        result = engine.seek_to_fraction(0.6)

        assert result.position == pytest.approx(2.4)
        assert result.frame.index == 2
        assert result.frame.intent is LoadIntent.USER_SEEK

    def test_seek_to_fraction_rounds_half_up(self, engine):
        assert engine.seek_to_fraction(0.625).frame.index == 3

    def test_seek_to_fraction_clamps_input(self, engine):
        assert engine.seek_to_fraction(1.5).position == 4.0
        assert engine.seek_to_fraction(-0.5).position == 0.0

    def test_adjacent_frames_are_preloaded(self, engine):
        engine.seek_to_index(2)
        frames = engine.frames
        for index in (1, 2, 3):
            assert frames[index].filename in engine.cache

    def test_listeners_receive_frames_and_positions(self, five_frame_store, scheduler):
        shown, positions = [], []
        engine = ScrubEngine(
            five_frame_store, scheduler=scheduler, on_frame=shown.append, on_position=positions.append
        )

        engine.seek_to_index(1)

        assert [frame.index for frame in shown] == [1]
        assert positions == [1.0]

    def test_reload_picks_up_new_frames(self, engine, five_frame_store):
        five_frame_store.append(Frame(filename=frame_filename(9000), timestamp=9000), b"frame-5")
        assert engine.frame_count == 5
        assert engine.reload() == 6
        assert engine.seek_to_index(10).position == 5.0


class TestDragging:
    def test_drag_moves_against_pointer_direction(self, engine):
        engine.seek_to_index(2)
        engine.begin_drag()

        result = engine.drag_by(-50, 200)

        assert result.position == pytest.approx(4.0)

    def test_drag_accumulates_from_snapshot(self, engine):
        engine.seek_to_index(2)
        engine.begin_drag()

        engine.drag_by(-25, 200)
        result = engine.drag_by(-25, 200)

        assert result.position == pytest.approx(3.0)

    def test_drag_clamps_and_snaps_on_release(self, engine):
        engine.seek_to_index(2)
        engine.begin_drag()
        assert engine.drag_by(100, 200).position == 0.0

        engine.begin_drag()
        engine.drag_by(-15, 200)  # 0.6 frames
        result = engine.end_drag()

        assert result.position == 1.0
        assert result.frame.index == 1
        assert not engine.is_dragging

    def test_zero_width_track_is_ignored(self, engine):
        engine.seek_to_index(1)
        assert engine.drag_by(-50, 0).position == 1.0


class TestWheel:
    def test_trackpad_below_threshold_does_not_move(self, engine):
        result = engine.wheel(0, 5)
        assert result.position == 0.0
        assert engine.wheel_accumulator == 5

    def test_accumulating_to_threshold_moves_one_step(self, engine):
        engine.wheel(0, 5)
        result = engine.wheel(0, 5)

        # trackpad: threshold 10, divisor 100, sensitivity 0.3
        assert result.position == pytest.approx(0.03)
        assert engine.last_wheel_direction == 1
        assert engine.wheel_accumulator == pytest.approx(4.0)

    def test_direction_reversal_resets_to_signed_threshold(self, engine):
        engine.seek_to_index(2)
        engine.wheel(0, 5)
        engine.wheel(0, 5)
        start = engine.position

        result = engine.wheel(0, -3)

        assert result.position == pytest.approx(start - 0.03)
        assert engine.last_wheel_direction == -1
        assert engine.wheel_accumulator == pytest.approx(-10 * 0.4)

    def test_mouse_wheel_uses_coarser_steps(self, engine):
        result = engine.wheel(0, 60)

        # wheel: threshold 25, divisor 50, sensitivity 0.8
        assert result.position == pytest.approx(0.4)
        assert result.frame.index == 0

    def test_horizontal_trackpad_delta_is_primary(self, engine):
        result = engine.wheel(-20, 5)
        assert result.position == 0.0
        assert engine.last_wheel_direction == -1

    def test_settle_timer_snaps_to_nearest_frame(self, engine, scheduler):
        engine.seek_to_index(1)
        engine.wheel(0, 60)
        engine.wheel(0, 60)
        # second move: accumulator 10 + 60 = 70, step min(2, 70 / 50) * 0.8
        assert engine.position == pytest.approx(2.52)
        assert len(scheduler.pending) == 1

        scheduler.advance(0.1)

        assert engine.position == 3.0
        assert engine.displayed.index == 3
        assert not engine.displayed.is_interpolated
        assert engine.last_wheel_direction == 0

    def test_each_emitted_move_replaces_the_settle_timer(self, engine, scheduler):
        engine.wheel(0, 5)
        engine.wheel(0, 5)
        engine.wheel(0, 8)
        assert sum(1 for h in scheduler.handles if h.cancelled) == 1
        assert len(scheduler.pending) == 1

        scheduler.advance(0.15)
        assert len(scheduler.pending) == 1
        scheduler.advance(0.1)
        assert scheduler.pending == []


class TestStepping:
    def test_step_moves_one_whole_frame(self, engine):
        engine.seek_to_fraction(0.3)  # index 1, position 1.2
        result = engine.step_frame(+1)
        assert result.position == 2.0
        assert result.frame.intent is LoadIntent.USER_SEEK

    def test_step_at_end_signals_end_reached(self, engine):
        engine.seek_to_index(4)
        result = engine.step_frame(+1)
        assert result.end_reached
        assert result.position == 4.0

    def test_step_before_start_is_noop(self, engine):
        result = engine.step_frame(-1)
        assert result.position == 0.0
        assert not result.end_reached


class TestInterpolation:
    def test_integer_positions_resolve_without_blend(self, engine):
        resolved = engine.resolve_interpolated(2.0)
        assert resolved.index == 2
        assert resolved.blend is None

    def test_last_index_never_blends(self, engine):
        assert engine.resolve_interpolated(4.0).blend is None
        assert engine.resolve_interpolated(7.5).index == 4

    def test_low_and_high_buckets_pick_endpoints(self, engine):
        assert engine.resolve_interpolated(1.2).data == b"frame-1"
        assert engine.resolve_interpolated(1.32).data == b"frame-1"
        assert engine.resolve_interpolated(1.7).data == b"frame-2"
        assert engine.resolve_interpolated(1.9).data == b"frame-2"

    def test_middle_bucket_is_cached_per_pair(self, engine):
        first = engine.resolve_interpolated(1.4)
        later = engine.resolve_interpolated(1.6)

        assert first.data == b"frame-1"
        assert later.data == b"frame-1"
        assert first.blend == pytest.approx(0.4)

    def test_middle_bucket_choice_depends_on_first_visit(self, five_frame_store, scheduler):
        engine = ScrubEngine(five_frame_store, scheduler=scheduler)
        assert engine.resolve_interpolated(2.6).data == b"frame-3"
        assert engine.resolve_interpolated(2.4).data == b"frame-3"

    def test_resolving_twice_is_idempotent(self, engine):
        assert engine.resolve_interpolated(3.5) == engine.resolve_interpolated(3.5)

    def test_moving_to_fraction_displays_interpolated_frame(self, engine):
        engine.seek_to_index(1)
        engine.begin_drag()
        result = engine.drag_by(-10, 200)  # +0.4 frames

        assert result.frame.is_interpolated
        assert result.frame.key == "interpolated-1-2-0.40"


class TestFrameCache:
    def test_least_recently_used_entry_is_evicted(self):
        cache = FrameCache(max_entries=3)
        for key in "abc":
            cache.put(key, key.encode())
        cache.get("a")
        cache.put("d", b"d")

        assert "b" not in cache
        assert "a" in cache
        assert len(cache) == 3

    def test_blend_choice_is_remembered(self):
        cache = FrameCache()
        assert cache.remember_blend(("a", "b"), "a") == "a"
        assert cache.remember_blend(("a", "b"), "b") == "a"
        cache.clear()
        assert cache.blend_choice(("a", "b")) is None


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(1.49) == 1
