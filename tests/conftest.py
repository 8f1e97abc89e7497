"""Pytest configuration and fixtures for FootballVision tests."""

import sys
import time
from pathlib import Path
from typing import Callable, Generator, Optional
from unittest.mock import AsyncMock, patch

import numpy as np
import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from footballvision.core.camera import CaptureSessionError, StaticPermissionAuthority
from footballvision.detection.schemas import (
    BodyPoseObservation,
    BoundingBox,
    Classification,
    JointName,
    JointPosition,
    RecognizedObjectObservation,
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )


def make_observation(
    label: str,
    confidence: float,
    box: tuple[float, float, float, float],
    *extra_labels: tuple[str, float],
) -> RecognizedObjectObservation:
    """Build a recognized object with one or more (label, confidence) pairs."""
    labels = [Classification(identifier=label, confidence=confidence)]
    labels += [Classification(identifier=name, confidence=conf) for name, conf in extra_labels]
    x, y, width, height = box
    return RecognizedObjectObservation(
        labels=labels,
        bounding_box=BoundingBox(x=x, y=y, width=width, height=height),
        confidence=confidence,
    )


def make_pose(**joints: tuple[float, float, float]) -> BodyPoseObservation:
    return BodyPoseObservation(
        joints={JointName(name): JointPosition(*xyz) for name, xyz in joints.items()},
        confidence=0.9,
    )


class FakeRequest:
    """Inference request returning canned observations."""

    def __init__(self, observations=None, error: Optional[Exception] = None):
        self.observations = list(observations or [])
        self.error = error
        self.frames: list[np.ndarray] = []
        self.results = []

    def perform(self, frame: np.ndarray):
        self.frames.append(frame)
        if self.error is not None:
            raise self.error
        self.results = list(self.observations)
        return self.results


class FakeSession:
    """Capture session that delivers frames only when told to."""

    def __init__(self, source: str = "fake", fail_on_start: bool = False):
        self.source = source
        self.fail_on_start = fail_on_start
        self.frames_delivered = 0
        self.handler: Optional[Callable] = None
        self._running = False
        self.start_calls = 0
        self.stop_calls = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def set_frame_handler(self, handler) -> None:
        self.handler = handler

    def start(self) -> None:
        self.start_calls += 1
        if self.fail_on_start:
            raise CaptureSessionError(f"Could not open capture source {self.source!r}")
        self._running = True

    def stop(self) -> None:
        self.stop_calls += 1
        self._running = False

    def deliver(self, frame: np.ndarray) -> None:
        self.frames_delivered += 1
        self.handler(frame)


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def frame() -> np.ndarray:
    """A blank 640x480 BGR frame."""
    return np.zeros((480, 640, 3), dtype=np.uint8)


@pytest.fixture
def make_view_model() -> Generator[Callable, None, None]:
    """Factory for view models wired to fakes; all are closed after the test."""
    from footballvision.view_model import CameraViewModel

    created = []

    def factory(
        pose_observations=None,
        object_observations=None,
        granted: bool = True,
        session: Optional[FakeSession] = None,
        **kwargs,
    ) -> CameraViewModel:
        view_model = CameraViewModel(
            session=session or FakeSession(),
            body_pose_request=FakeRequest(pose_observations),
            object_recognition_request=FakeRequest(object_observations),
            permission_authority=StaticPermissionAuthority(granted),
            **kwargs,
        )
        created.append(view_model)
        return view_model

    yield factory

    for view_model in created:
        view_model.close()


@pytest.fixture
def view_model(make_view_model):
    return make_view_model()


@pytest.fixture
def client(view_model):
    """FastAPI TestClient backed by a view model wired to fakes."""
    from fastapi.testclient import TestClient

    from footballvision.api.routes import set_view_model

    with patch("footballvision.main.ensure_models_downloaded", AsyncMock(return_value=True)):
        from footballvision.main import app

        set_view_model(view_model)
        with TestClient(app) as test_client:
            yield test_client
        set_view_model(None)
