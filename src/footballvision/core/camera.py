"""Camera capture session and camera access permission."""

import threading
from typing import Callable, Optional, Protocol, Union

import cv2
import numpy as np
from loguru import logger

from footballvision.core.config import settings

FrameHandler = Callable[[np.ndarray], None]


class CaptureSessionError(RuntimeError):
    """The capture source could not be opened."""


class PermissionDeniedError(RuntimeError):
    """Camera access has not been granted."""


def parse_source(source: Union[int, str]) -> Union[int, str]:
    """Treat digit-only strings as device indices."""
    if isinstance(source, str) and source.strip().isdigit():
        return int(source.strip())
    return source


class CaptureSession:
    """Delivers frames from a camera or video file to a frame handler.

    Frames are read on a dedicated capture thread and handed to the handler
    one at a time. The handler runs on that thread.
    """

    def __init__(
        self,
        source: Union[int, str, None] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ):
        self.source = parse_source(source if source is not None else settings.camera_source)
        self.width = width if width is not None else settings.camera_width
        self.height = height if height is not None else settings.camera_height
        self.frames_delivered = 0

        self._handler: Optional[FrameHandler] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._lock = threading.Lock()

    def set_frame_handler(self, handler: Optional[FrameHandler]) -> None:
        self._handler = handler

    @property
    def is_running(self) -> bool:
        return (
            self._thread is not None
            and self._thread.is_alive()
            and not self._stop_event.is_set()
        )

    def start(self) -> None:
        """Open the source and start delivering frames.

        Raises:
            CaptureSessionError: If the source cannot be opened, or a previous
                capture thread has not finished stopping yet
        """
        with self._lock:
            if self.is_running:
                return
            if self._thread is not None and self._thread.is_alive():
                raise CaptureSessionError(
                    f"Previous capture on {self.source!r} is still stopping"
                )

            capture = cv2.VideoCapture(self.source)
            if not capture.isOpened():
                capture.release()
                logger.error(f"Failed to open capture source: {self.source}")
                raise CaptureSessionError(f"Could not open capture source {self.source!r}")

            if self.width:
                capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            if self.height:
                capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)

            # Each run owns its stop event
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(capture, self._stop_event),
                name="capture-session",
                daemon=True,
            )
            self._thread.start()
            logger.info(f"Capture session started on {self.source}")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop delivering frames and release the device."""
        with self._lock:
            thread = self._thread
            if thread is None:
                return
            self._stop_event.set()

        if thread is threading.current_thread():
            # Called from the frame handler; the loop exits once it returns
            return

        thread.join(timeout)
        if thread.is_alive():
            # Keep the thread so start() can tell it is still winding down
            logger.warning(f"Capture thread did not stop within {timeout}s")
            return

        with self._lock:
            if self._thread is thread:
                self._thread = None
        logger.info(f"Capture session stopped after {self.frames_delivered} frames")

    def _run(self, capture: cv2.VideoCapture, stop_event: threading.Event) -> None:
        try:
            while not stop_event.is_set():
                ok, frame = capture.read()
                if not ok:
                    logger.info(f"Capture source {self.source} reached end of stream")
                    break

                self.frames_delivered += 1
                handler = self._handler
                if handler is None:
                    continue
                try:
                    handler(frame)
                except Exception as e:
                    logger.exception(f"Frame handler failed on frame {self.frames_delivered}: {e}")
        finally:
            capture.release()
            stop_event.set()


class PermissionAuthority(Protocol):
    """Grants or denies camera access."""

    def request_access(self, completion: Callable[[bool], None]) -> None:
        """Ask for access; ``completion`` is called exactly once, later."""
        ...


class CameraPermissionAuthority:
    """Decides access by trying to open the camera on a background thread."""

    def __init__(self, source: Union[int, str, None] = None):
        self.source = parse_source(source if source is not None else settings.camera_source)

    def _probe(self) -> bool:
        try:
            capture = cv2.VideoCapture(self.source)
            try:
                return bool(capture.isOpened())
            finally:
                capture.release()
        except cv2.error as e:
            logger.warning(f"Camera probe for {self.source} failed: {e}")
            return False

    def request_access(self, completion: Callable[[bool], None]) -> None:
        def run():
            granted = self._probe()
            logger.info(f"Camera access for {self.source}: {'granted' if granted else 'denied'}")
            completion(granted)

        threading.Thread(target=run, name="camera-permission", daemon=True).start()


class StaticPermissionAuthority:
    """Answers every request with a fixed decision."""

    def __init__(self, granted: bool):
        self.granted = granted

    def request_access(self, completion: Callable[[bool], None]) -> None:
        threading.Thread(
            target=completion, args=(self.granted,), name="camera-permission", daemon=True
        ).start()


def default_permission_authority() -> PermissionAuthority:
    if settings.camera_permission is not None:
        return StaticPermissionAuthority(settings.camera_permission)
    return CameraPermissionAuthority()
