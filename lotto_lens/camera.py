"""
camera.py: Camera access for the ticket scanner

Wraps an OpenCV capture device so a ScanSession can open it, pull frames as
PIL images and release it when the session ends. The device is owned by one
session at a time.

Usage:
    cam = CameraStream(device_index=0)
    cam.open()                  # raises CaptureCapabilityError
    frame = cam.read()          # PIL.Image (RGB) or None
    jpg = encode_jpeg(frame)
    cam.release()
"""

import io
import threading
from typing import Optional

import cv2
from loguru import logger
from PIL import Image

from lotto_lens.errors import CaptureCapabilityError

DEFAULT_WIDTH = 1280
DEFAULT_HEIGHT = 720
JPEG_QUALITY = 92


class CameraStream:
    """
    OpenCV backed camera.

    Attributes:
        device_index: cv2 device index (0 = default camera)
        is_open: whether the device is currently acquired
    """

    def __init__(self, device_index: int = 0, width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT):
        self.device_index = device_index
        self.width = width
        self.height = height
        self._cap: Optional[cv2.VideoCapture] = None
        # read() runs in a worker thread; release() must not overlap it
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def open(self) -> None:
        if self._cap is not None:
            return
        cap = cv2.VideoCapture(self.device_index)
        if not cap.isOpened():
            cap.release()
            raise CaptureCapabilityError(f"Unable to access camera {self.device_index}.")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._cap = cap
        logger.info(f"Camera {self.device_index} opened")

    def read(self) -> Optional[Image.Image]:
        """Grab one frame as an RGB PIL image, or None if none is available."""
        with self._lock:
            if self._cap is None:
                return None
            ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))

    def release(self) -> None:
        with self._lock:
            cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()
            logger.info(f"Camera {self.device_index} released")


def encode_jpeg(image: Image.Image, quality: int = JPEG_QUALITY) -> bytes:
    """Encode a captured frame for upload."""
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()
