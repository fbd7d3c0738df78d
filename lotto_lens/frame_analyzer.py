"""
Frame positioning analyzer.

Scores live camera frames with a coarse brightness/edge heuristic and decides
when a ticket is well enough positioned to capture automatically. This is not
document detection: it approximates "a high contrast object fills the frame"
with aggregate statistics cheap enough to run continuously.

Usage:
    session = ScanSession(on_capture=handle_frame, on_feedback=show_feedback)
    session.start(camera)
    await session.run()         # until session.stop()
"""

import asyncio
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Union

import numpy as np
from loguru import logger
from PIL import Image

from lotto_lens.errors import CaptureCapabilityError

# Analysis buffer and sampling
ANALYSIS_WIDTH = 640
ANALYSIS_HEIGHT = 480
SAMPLE_STRIDE_BYTES = 16            # every 4th RGBA pixel
DARK_BRIGHTNESS = 100
EDGE_BRIGHTNESS_DELTA = 30

# Positioning thresholds
POSITIONED_CONFIDENCE = 15
POSITIONED_CONTRAST = 0.1
POSITIONED_EDGE_DENSITY = 0.01
AUTO_CAPTURE_CONFIDENCE = 25

# Timing (seconds)
ANALYSIS_INTERVAL = 0.120
AUTO_CAPTURE_DELAY = 0.800
AUTO_CAPTURE_DEBOUNCE = 2.0
FRAME_POLL_INTERVAL = 1 / 30

# Feedback updates smaller than this are jitter
CONFIDENCE_JITTER = 1.0

Frame = Union[Image.Image, np.ndarray]


class ScanMessage(str, Enum):
    STEADY = "Perfect! Hold steady..."
    GETTING_CLOSER = "Getting closer, keep the ticket in view"
    MOVE_INTO_FRAME = "Move the ticket into the frame"
    POSITION = "Position the ticket within the frame"


class ScanState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    POSITIONED = "positioned"
    PENDING_AUTO_CAPTURE = "pending_auto_capture"


@dataclass(frozen=True)
class FrameStats:
    contrast_ratio: float
    edge_density: float
    total_sampled: int


@dataclass(frozen=True)
class ScanFeedback:
    confidence: float
    is_positioned: bool
    message: ScanMessage
    contrast_ratio: float = 0.0
    edge_density: float = 0.0


INITIAL_FEEDBACK = ScanFeedback(confidence=0.0, is_positioned=False, message=ScanMessage.POSITION)


def _to_analysis_buffer(frame: Frame) -> np.ndarray:
    if isinstance(frame, np.ndarray):
        frame = Image.fromarray(frame)
    image = frame.convert("RGBA")
    if image.size != (ANALYSIS_WIDTH, ANALYSIS_HEIGHT):
        image = image.resize((ANALYSIS_WIDTH, ANALYSIS_HEIGHT), Image.Resampling.BILINEAR)
    return np.asarray(image, dtype=np.uint8).reshape(-1)


def analyze_frame(frame: Frame) -> FrameStats:
    """
    Compute contrast and edge statistics for one frame.

    The frame is scaled to 640x480 RGBA and every 4th pixel is sampled.
    Edges are brightness jumps between consecutive samples in buffer order,
    not true spatial neighbours.
    """
    buffer = _to_analysis_buffer(frame)
    samples = buffer.reshape(-1, 4)[:: SAMPLE_STRIDE_BYTES // 4, :3].astype(np.float64)
    brightness = samples.sum(axis=1) / 3
    total = int(brightness.size)
    if total == 0:
        return FrameStats(contrast_ratio=0.0, edge_density=0.0, total_sampled=0)

    dark_pixels = int(np.count_nonzero(brightness < DARK_BRIGHTNESS))
    edge_count = int(np.count_nonzero(np.abs(np.diff(brightness)) > EDGE_BRIGHTNESS_DELTA))
    return FrameStats(
        contrast_ratio=dark_pixels / total,
        edge_density=edge_count / total,
        total_sampled=total,
    )


def compute_confidence(contrast_ratio: float, edge_density: float) -> float:
    return min(100.0, (edge_density * 1000 + contrast_ratio * 100) / 2)


def message_for_confidence(confidence: float) -> ScanMessage:
    if confidence > 30:
        return ScanMessage.STEADY
    if confidence > 15:
        return ScanMessage.GETTING_CLOSER
    if confidence > 5:
        return ScanMessage.MOVE_INTO_FRAME
    return ScanMessage.POSITION


def score_frame(stats: FrameStats) -> ScanFeedback:
    """Turn frame statistics into user feedback."""
    confidence = compute_confidence(stats.contrast_ratio, stats.edge_density)
    # Confidence alone can be high from a single signal; all three must clear
    is_positioned = (
        confidence > POSITIONED_CONFIDENCE
        and stats.contrast_ratio > POSITIONED_CONTRAST
        and stats.edge_density > POSITIONED_EDGE_DENSITY
    )
    return ScanFeedback(
        confidence=confidence,
        is_positioned=is_positioned,
        message=message_for_confidence(confidence),
        contrast_ratio=stats.contrast_ratio,
        edge_density=stats.edge_density,
    )


def feedback_changed(previous: ScanFeedback, current: ScanFeedback) -> bool:
    return (
        abs(current.confidence - previous.confidence) > CONFIDENCE_JITTER
        or current.is_positioned != previous.is_positioned
        or current.message != previous.message
    )


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class FrameSource(Protocol):
    """What a session needs from a camera (see camera.CameraStream)."""

    def open(self) -> None: ...

    def read(self) -> Optional[Frame]: ...

    def release(self) -> None: ...


def _asyncio_call_later(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class ScanSession:
    """
    One camera session: analysis throttle, feedback damping and the
    auto-capture timer. All timing state belongs to the session instance.

    Args:
        on_capture: called with the captured frame (auto or manual)
        on_feedback: called whenever published feedback changes
        auto_capture: arm the auto-capture timer when well positioned
        clock: monotonic seconds, defaults to time.monotonic
        call_later: timer factory (delay_seconds, callback) -> handle with
            cancel(); defaults to the running asyncio loop
    """

    def __init__(
        self,
        on_capture: Callable[[Any], None],
        on_feedback: Optional[Callable[[ScanFeedback], None]] = None,
        auto_capture: bool = True,
        clock: Callable[[], float] = time.monotonic,
        call_later: Callable[[float, Callable[[], None]], TimerHandle] = _asyncio_call_later,
    ):
        self.on_capture = on_capture
        self.on_feedback = on_feedback
        self.auto_capture = auto_capture
        self._clock = clock
        self._call_later = call_later

        self.state = ScanState.IDLE
        self.feedback = INITIAL_FEEDBACK
        self.camera: Optional[FrameSource] = None
        self.capture_count = 0

        self._last_analysis: Optional[float] = None
        self._last_auto_capture: Optional[float] = None
        self._pending: Optional[TimerHandle] = None
        self._last_frame: Optional[Frame] = None
        # Camera currently being read by run(); it releases that one itself
        self._run_camera: Optional[FrameSource] = None

    @property
    def active(self) -> bool:
        return self.state != ScanState.IDLE

    @property
    def pending_capture(self) -> bool:
        return self._pending is not None

    # ── lifecycle ──

    def start(self, camera: Optional[FrameSource] = None) -> None:
        """
        Acquire the camera and begin scanning.

        Raises:
            CaptureCapabilityError: camera could not be opened. The session
                stays idle; retrying is up to the user.
        """
        if self.active:
            logger.warning("Scan session already running")
            return
        if camera is not None:
            try:
                camera.open()
            except CaptureCapabilityError as e:
                logger.error(f"Unable to access camera: {e}")
                raise
            self.camera = camera

        self.feedback = INITIAL_FEEDBACK
        self._last_analysis = None
        self._last_auto_capture = None
        self._last_frame = None
        self.state = ScanState.SCANNING
        logger.info("Scan session started")

    def stop(self) -> None:
        """
        End the session: cancel timers and release the camera.

        If run() is mid-read on the camera, the release happens in run() once
        that read returns.
        """
        self._cancel_pending()
        camera, self.camera = self.camera, None
        if camera is not None and camera is not self._run_camera:
            camera.release()
        if self.state != ScanState.IDLE:
            logger.info("Scan session stopped")
        self.state = ScanState.IDLE
        self._last_frame = None

    def switch_camera(self, camera: FrameSource) -> None:
        """Restart on another camera. A running run() loop ends; start a new one."""
        self.stop()
        self.start(camera)

    # ── per tick ──

    def process_frame(self, frame: Frame) -> Optional[ScanFeedback]:
        """
        Analyse a frame unless it arrives within the throttle window.

        Returns:
            The feedback computed for this frame, or None if skipped
        """
        if not self.active:
            return None
        now = self._clock()
        if self._last_analysis is not None and now - self._last_analysis < ANALYSIS_INTERVAL:
            return None
        self._last_analysis = now
        self._last_frame = frame

        feedback = score_frame(analyze_frame(frame))
        self._publish(feedback)
        self._evaluate_auto_capture(feedback, now)
        return feedback

    def _publish(self, feedback: ScanFeedback) -> None:
        if not feedback_changed(self.feedback, feedback):
            return
        self.feedback = feedback
        if self.on_feedback is not None:
            self.on_feedback(feedback)

    def _auto_capture_ready(self, feedback: ScanFeedback) -> bool:
        return (
            feedback.is_positioned
            and feedback.confidence > AUTO_CAPTURE_CONFIDENCE
            and self.auto_capture
        )

    def _evaluate_auto_capture(self, feedback: ScanFeedback, now: float) -> None:
        if not self._auto_capture_ready(feedback):
            if self._pending is not None:
                logger.debug("Positioning lost, auto-capture cancelled")
            self._cancel_pending()
            self.state = ScanState.POSITIONED if feedback.is_positioned else ScanState.SCANNING
            return

        if self._pending is None:
            since_last = math.inf if self._last_auto_capture is None else now - self._last_auto_capture
            if since_last >= AUTO_CAPTURE_DEBOUNCE:
                self._last_auto_capture = now
                self._pending = self._call_later(AUTO_CAPTURE_DELAY, self._fire_auto_capture)
                logger.debug(f"Auto-capture armed (confidence {feedback.confidence:.1f})")

        self.state = ScanState.PENDING_AUTO_CAPTURE if self._pending is not None else ScanState.POSITIONED

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _fire_auto_capture(self) -> None:
        self._pending = None
        if not self.active or self._last_frame is None:
            return
        logger.info("Auto-capturing ticket")
        self._emit_capture(self._last_frame)

    def capture(self) -> Optional[Frame]:
        """Manual capture of the most recent frame."""
        self._cancel_pending()
        frame = self._last_frame
        if frame is None and self.camera is not None:
            frame = self.camera.read()
        if frame is None:
            logger.warning("No frame available to capture")
            return None
        self._emit_capture(frame)
        return frame

    def _emit_capture(self, frame: Frame) -> None:
        self.state = ScanState.SCANNING
        self.capture_count += 1
        self.on_capture(frame)

    # ── loop ──

    async def run(self) -> None:
        """
        Analysis loop for the session's camera. Camera reads happen in a
        worker thread; the loop yields between frames and ends on stop().
        """
        camera = self.camera
        if camera is None:
            raise CaptureCapabilityError("Scan session has no camera")
        self._run_camera = camera
        try:
            while self.active and self.camera is camera:
                frame = await asyncio.to_thread(camera.read)
                if not self.active or self.camera is not camera:
                    break
                if frame is not None:
                    self.process_frame(frame)
                await asyncio.sleep(FRAME_POLL_INTERVAL)
        finally:
            self._run_camera = None
            if self.camera is not camera:
                # stop() or switch_camera() left the release to us
                camera.release()
