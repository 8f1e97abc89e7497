"""Camera view model: capture, inference and published detection state."""

import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

import numpy as np
from loguru import logger

from footballvision.core.camera import (
    CaptureSession,
    PermissionAuthority,
    PermissionDeniedError,
    default_permission_authority,
)
from footballvision.core.config import settings
from footballvision.core.dispatch import UpdateQueue
from footballvision.core.published import Published
from footballvision.detection.ball_filter import filter_ball_boxes
from footballvision.detection.pose import BodyPoseEstimator
from footballvision.detection.recognizer import ObjectRecognizer
from footballvision.detection.schemas import (
    BodyPoseObservation,
    BoundingBox,
    JointName,
    JointPosition,
    RecognizedObjectObservation,
)

Joints = Mapping[JointName, JointPosition]
Balls = tuple[BoundingBox, ...]

_NO_JOINTS: Joints = MappingProxyType({})


@dataclass(frozen=True)
class DetectionSnapshot:
    """Consistent view of the published state at one moment."""

    is_permission_granted: bool
    session_running: bool
    frames_processed: int
    joints: Joints
    balls: Balls


class CameraViewModel:
    """Runs body pose and object recognition on every captured frame.

    Results are published through ``detected_joints`` and ``detected_balls``.
    Every change to published state happens on the update queue, and the
    joints and balls of one frame are replaced together.
    """

    def __init__(
        self,
        session: Optional[CaptureSession] = None,
        body_pose_request: Optional[BodyPoseEstimator] = None,
        object_recognition_request: Optional[ObjectRecognizer] = None,
        permission_authority: Optional[PermissionAuthority] = None,
        update_queue: Optional[UpdateQueue] = None,
        ball_labels: Optional[Sequence[str]] = None,
        ball_confidence_threshold: Optional[float] = None,
    ):
        self.session = session or CaptureSession()
        self.body_pose_request = body_pose_request or BodyPoseEstimator()
        self.object_recognition_request = object_recognition_request or ObjectRecognizer()
        self.permission_authority = permission_authority or default_permission_authority()
        self.update_queue = update_queue or UpdateQueue("main")

        self.ball_labels = tuple(ball_labels if ball_labels is not None else settings.ball_labels)
        self.ball_confidence_threshold = (
            ball_confidence_threshold
            if ball_confidence_threshold is not None
            else settings.ball_confidence_threshold
        )

        self.is_permission_granted: Published[bool] = Published(False, name="is_permission_granted")
        self.detected_joints: Published[Joints] = Published(_NO_JOINTS, name="detected_joints")
        self.detected_balls: Published[Balls] = Published((), name="detected_balls")

        self.frames_processed = 0
        self._state_lock = threading.RLock()
        # Whole-state view, republished after every update
        self.state: Published[DetectionSnapshot] = Published(self.snapshot(), name="state")

    # Permission

    def request_permission(self) -> None:
        """Ask for camera access. The answer is published asynchronously."""
        logger.info("Requesting camera permission")
        self.permission_authority.request_access(self._on_permission_result)

    def _on_permission_result(self, granted: bool) -> None:
        self.update_queue.dispatch(self._apply_permission, bool(granted))

    def _apply_permission(self, granted: bool) -> None:
        with self._state_lock:
            self.is_permission_granted.assign(granted)
            self.state.assign(self.snapshot())
        self._notify(self.is_permission_granted, self.state)

        if not granted:
            logger.warning("Camera permission denied")
            return

        logger.info("Camera permission granted")
        if settings.start_session_on_grant:
            try:
                self.start_session()
            except Exception as e:
                logger.error(f"Failed to start capture session after grant: {e}")

    # Session lifecycle

    def start_session(self) -> None:
        """Start capturing frames.

        Raises:
            PermissionDeniedError: If camera access has not been granted
            CaptureSessionError: If the capture source cannot be opened
        """
        if not self.is_permission_granted.value:
            raise PermissionDeniedError("Camera permission has not been granted")

        self.session.set_frame_handler(self.capture_output)
        self.session.start()

    def stop_session(self) -> None:
        self.session.stop()

    # Frame processing

    def capture_output(self, frame: np.ndarray) -> None:
        """Run both inference requests on a frame and publish the results."""
        try:
            pose_observations = self.body_pose_request.perform(frame)
        except Exception as e:
            logger.warning(f"Body pose request failed: {e}")
            pose_observations = []

        try:
            object_observations = self.object_recognition_request.perform(frame)
        except Exception as e:
            logger.warning(f"Object recognition request failed: {e}")
            object_observations = []

        joints = self.process_body_pose_observations(pose_observations)
        balls = self.process_object_observations(object_observations)
        self.publish_frame(joints, balls)

    def process_body_pose_observations(
        self, observations: Sequence[BodyPoseObservation]
    ) -> Joints:
        """Joint positions of the first pose observation, empty if there is none."""
        if not observations:
            return _NO_JOINTS
        return MappingProxyType(dict(observations[0].joints))

    def process_object_observations(
        self, observations: Iterable[RecognizedObjectObservation]
    ) -> Balls:
        """Bounding boxes of the observations recognized as balls."""
        return tuple(
            filter_ball_boxes(observations, self.ball_labels, self.ball_confidence_threshold)
        )

    # Publishing

    def publish_frame(self, joints: Joints, balls: Sequence[BoundingBox]) -> None:
        """Replace joints and balls together on the update queue."""
        joints = _freeze_joints(joints)
        balls = tuple(balls)
        self.update_queue.dispatch(self._apply_frame, joints, balls)

    def publish_joints(self, joints: Joints) -> None:
        self.update_queue.dispatch(self._apply_joints, _freeze_joints(joints))

    def publish_balls(self, balls: Sequence[BoundingBox]) -> None:
        self.update_queue.dispatch(self._apply_balls, tuple(balls))

    def _apply_frame(self, joints: Joints, balls: Balls) -> None:
        with self._state_lock:
            self.frames_processed += 1
            self.detected_joints.assign(joints)
            self.detected_balls.assign(balls)
            self.state.assign(self.snapshot())
        # Subscribers run only once every slot holds this frame
        self._notify(self.detected_joints, self.detected_balls, self.state)
        if balls:
            logger.debug(f"Frame {self.frames_processed}: {len(balls)} ball(s), {len(joints)} joints")

    def _apply_joints(self, joints: Joints) -> None:
        with self._state_lock:
            self.detected_joints.assign(joints)
            self.state.assign(self.snapshot())
        self._notify(self.detected_joints, self.state)

    def _apply_balls(self, balls: Balls) -> None:
        with self._state_lock:
            self.detected_balls.assign(balls)
            self.state.assign(self.snapshot())
        self._notify(self.detected_balls, self.state)

    @staticmethod
    def _notify(*slots: Published) -> None:
        for slot in slots:
            slot.notify()

    def snapshot(self) -> DetectionSnapshot:
        with self._state_lock:
            return DetectionSnapshot(
                is_permission_granted=self.is_permission_granted.value,
                session_running=self.session.is_running,
                frames_processed=self.frames_processed,
                joints=self.detected_joints.value,
                balls=self.detected_balls.value,
            )

    def close(self) -> None:
        """Stop capturing and shut down the update queue."""
        self.session.stop()
        self.update_queue.close()


def _freeze_joints(joints: Joints) -> Joints:
    if isinstance(joints, MappingProxyType):
        return joints
    return MappingProxyType(dict(joints))
