"""
Tests for the frame positioning analyzer and scan session
=========================================================
Sessions are driven with a fake clock and a fake timer scheduler so the
throttle, debounce and auto-capture delay are checked without sleeping.
"""

import asyncio
import time

import pytest
from PIL import Image

from lotto_lens.errors import CaptureCapabilityError
from lotto_lens.frame_analyzer import (
    AUTO_CAPTURE_DELAY,
    FrameStats,
    ScanFeedback,
    ScanMessage,
    ScanSession,
    ScanState,
    analyze_frame,
    feedback_changed,
    score_frame,
)
from tests.conftest import FakeCamera, blank_frame, striped_frame


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class FakeTimer:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    def __init__(self, clock):
        self.clock = clock
        self.timers = []

    def __call__(self, delay, callback):
        timer = FakeTimer(self.clock.now + delay, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds):
        self.clock.now += seconds
        for timer in list(self.timers):
            if not timer.cancelled and timer.due <= self.clock.now:
                self.timers.remove(timer)
                timer.callback()


def make_session(**kwargs):
    clock = FakeClock()
    scheduler = FakeScheduler(clock)
    captures = []
    feedback = []
    session = ScanSession(
        on_capture=captures.append,
        on_feedback=feedback.append,
        clock=clock,
        call_later=scheduler,
        **kwargs,
    )
    session.start()
    return session, scheduler, captures, feedback


class TestFrameStatistics:

    def test_white_frame_has_no_contrast_or_edges(self):
        stats = analyze_frame(blank_frame(255))
        assert stats.total_sampled == 640 * 480 // 4
        assert stats.contrast_ratio == 0.0
        assert stats.edge_density == 0.0

    def test_black_frame_is_all_dark_without_edges(self):
        stats = analyze_frame(blank_frame(0))
        assert stats.contrast_ratio == 1.0
        assert stats.edge_density == 0.0
        feedback = score_frame(stats)
        assert feedback.confidence == pytest.approx(50.0)
        assert feedback.is_positioned is False

    def test_striped_frame_edges_between_consecutive_samples(self):
        stats = analyze_frame(striped_frame())
        assert stats.contrast_ratio == pytest.approx(0.5)
        # Every sample differs from the previous one except the very first
        assert stats.edge_density == pytest.approx((stats.total_sampled - 1) / stats.total_sampled)

    def test_frames_are_downscaled_to_analysis_buffer(self):
        stats = analyze_frame(Image.new("RGB", (1920, 1080), (10, 10, 10)))
        assert stats.total_sampled == 640 * 480 // 4
        assert stats.contrast_ratio == 1.0


class TestScoring:

    def test_confidence_scenario(self):
        feedback = score_frame(FrameStats(contrast_ratio=0.15, edge_density=0.02, total_sampled=76800))
        assert feedback.confidence == pytest.approx(17.5)
        assert feedback.is_positioned is True
        assert feedback.message == ScanMessage.GETTING_CLOSER

    def test_confidence_is_capped(self):
        feedback = score_frame(FrameStats(contrast_ratio=0.9, edge_density=0.5, total_sampled=1))
        assert feedback.confidence == 100.0
        assert feedback.message == ScanMessage.STEADY

    def test_high_confidence_from_one_signal_is_not_positioned(self):
        feedback = score_frame(FrameStats(contrast_ratio=0.05, edge_density=0.2, total_sampled=1))
        assert feedback.confidence > 15
        assert feedback.is_positioned is False

    @pytest.mark.parametrize("contrast,expected", [
        (0.0, ScanMessage.POSITION),
        (0.08, ScanMessage.POSITION),
        (0.2, ScanMessage.MOVE_INTO_FRAME),
        (0.4, ScanMessage.GETTING_CLOSER),
        (0.7, ScanMessage.STEADY),
    ])
    def test_message_tiers(self, contrast, expected):
        # edge density 0 so confidence == contrast * 50
        assert score_frame(FrameStats(contrast, 0.0, 1)).message == expected

    def test_small_jitter_is_not_a_change(self):
        base = ScanFeedback(confidence=20.0, is_positioned=True, message=ScanMessage.GETTING_CLOSER)
        jitter = ScanFeedback(confidence=20.8, is_positioned=True, message=ScanMessage.GETTING_CLOSER)
        moved = ScanFeedback(confidence=21.5, is_positioned=True, message=ScanMessage.GETTING_CLOSER)
        assert feedback_changed(base, jitter) is False
        assert feedback_changed(base, moved) is True


class TestScanSession:

    def test_ticks_inside_throttle_window_are_skipped(self):
        session, scheduler, _, feedback = make_session(auto_capture=False)
        assert session.process_frame(blank_frame(0)) is not None
        scheduler.advance(0.05)
        assert session.process_frame(blank_frame(0)) is None
        scheduler.advance(0.08)
        assert session.process_frame(blank_frame(0)) is not None

    def test_feedback_published_only_on_change(self):
        session, scheduler, _, feedback = make_session(auto_capture=False)
        session.process_frame(blank_frame(0))
        scheduler.advance(0.2)
        session.process_frame(blank_frame(0))
        assert len(feedback) == 1
        assert session.feedback.confidence == pytest.approx(50.0)

    def test_auto_capture_fires_after_delay(self):
        session, scheduler, captures, _ = make_session()
        session.process_frame(striped_frame())
        assert session.state == ScanState.PENDING_AUTO_CAPTURE

        scheduler.advance(0.5)
        assert captures == []
        scheduler.advance(0.5)
        assert len(captures) == 1
        assert session.state == ScanState.SCANNING

    def test_debounce_suppresses_second_eligible_tick(self):
        session, scheduler, captures, _ = make_session()
        session.process_frame(striped_frame())
        scheduler.advance(0.5)
        session.process_frame(striped_frame())
        scheduler.advance(1.0)
        session.process_frame(striped_frame())
        scheduler.advance(1.0)
        assert len(captures) == 1

    def test_capture_rearms_after_debounce_window(self):
        session, scheduler, captures, _ = make_session()
        session.process_frame(striped_frame())
        scheduler.advance(2.0)
        session.process_frame(striped_frame())
        scheduler.advance(1.0)
        assert len(captures) == 2

    def test_losing_position_cancels_pending_capture(self):
        session, scheduler, captures, _ = make_session()
        session.process_frame(striped_frame())
        scheduler.advance(0.3)
        session.process_frame(blank_frame(255))
        assert session.pending_capture is False
        assert session.state == ScanState.SCANNING
        scheduler.advance(1.0)
        assert captures == []

    def test_auto_capture_disabled_stays_positioned(self):
        session, scheduler, captures, _ = make_session(auto_capture=False)
        session.process_frame(striped_frame())
        assert session.state == ScanState.POSITIONED
        scheduler.advance(1.0)
        assert captures == []

    def test_stop_cancels_timer_and_releases_camera(self):
        clock = FakeClock()
        scheduler = FakeScheduler(clock)
        captures = []
        camera = FakeCamera()
        session = ScanSession(on_capture=captures.append, clock=clock, call_later=scheduler)
        session.start(camera)
        session.process_frame(striped_frame())
        session.stop()

        assert camera.released is True
        assert session.state == ScanState.IDLE
        assert all(timer.cancelled for timer in scheduler.timers)
        scheduler.advance(1.0)
        assert captures == []

    def test_sessions_do_not_share_state(self):
        first, first_scheduler, first_captures, _ = make_session()
        second, second_scheduler, second_captures, _ = make_session()
        first.process_frame(striped_frame())
        second.process_frame(blank_frame(255))
        first_scheduler.advance(1.0)
        second_scheduler.advance(1.0)
        assert len(first_captures) == 1
        assert second_captures == []

    def test_camera_failure_leaves_session_idle(self):
        session = ScanSession(on_capture=lambda frame: None)
        with pytest.raises(CaptureCapabilityError):
            session.start(FakeCamera(fail=True))
        assert session.state == ScanState.IDLE
        assert session.camera is None

    def test_manual_capture_uses_latest_frame(self):
        session, scheduler, captures, _ = make_session(auto_capture=False)
        frame = blank_frame(0)
        session.process_frame(frame)
        assert session.capture() is frame
        assert len(captures) == 1 and captures[0] is frame

    def test_run_loop_processes_camera_frames_until_stopped(self):
        captures = []

        async def scenario():
            camera = FakeCamera(frames=[striped_frame()] * 3)
            session = ScanSession(on_capture=captures.append)
            session.start(camera)
            task = asyncio.create_task(session.run())
            await asyncio.sleep(AUTO_CAPTURE_DELAY + 0.3)
            session.stop()
            await task
            return session, camera

        session, camera = asyncio.run(scenario())
        assert len(captures) == 1
        assert camera.released is True
        assert session.state == ScanState.IDLE

    def test_restarted_session_does_not_inherit_debounce(self):
        session, scheduler, captures, _ = make_session()
        session.process_frame(striped_frame())
        scheduler.advance(1.0)
        assert len(captures) == 1

        session.switch_camera(FakeCamera())
        scheduler.advance(0.2)
        session.process_frame(striped_frame())
        assert session.pending_capture is True

    def test_stop_during_slow_read_releases_after_read_returns(self):
        camera = SlowCamera(delay=0.3)

        async def scenario():
            session = ScanSession(on_capture=lambda frame: None, auto_capture=False)
            session.start(camera)
            task = asyncio.create_task(session.run())
            await asyncio.sleep(0.1)
            session.stop()
            assert camera.released is False
            await task

        asyncio.run(scenario())
        assert camera.released is True
        assert camera.read_after_release is False


class SlowCamera(FakeCamera):
    """Camera whose read blocks, recording whether it overlapped release()."""

    def __init__(self, delay):
        super().__init__()
        self.delay = delay
        self.read_after_release = False

    def read(self):
        time.sleep(self.delay)
        if self.released:
            self.read_after_release = True
        return striped_frame()
