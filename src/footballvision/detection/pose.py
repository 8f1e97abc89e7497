"""Human body pose estimation using a YOLO pose model."""

from pathlib import Path
from typing import Optional

import numpy as np
from loguru import logger
from ultralytics import YOLO

from footballvision.core.config import settings
from footballvision.detection.schemas import BodyPoseObservation, JointName, JointPosition
from footballvision.detection.weights import get_device

# COCO-17 keypoint order produced by YOLO pose models
COCO_KEYPOINTS = [
    "nose", "left_eye", "right_eye", "left_ear", "right_ear",
    "left_shoulder", "right_shoulder", "left_elbow", "right_elbow",
    "left_wrist", "right_wrist", "left_hip", "right_hip",
    "left_knee", "right_knee", "left_ankle", "right_ankle",
]

# Keypoints that map directly onto a skeleton joint
_DIRECT_JOINTS = {
    "nose": JointName.CENTER_HEAD,
    "left_shoulder": JointName.LEFT_SHOULDER,
    "right_shoulder": JointName.RIGHT_SHOULDER,
    "left_elbow": JointName.LEFT_ELBOW,
    "right_elbow": JointName.RIGHT_ELBOW,
    "left_wrist": JointName.LEFT_WRIST,
    "right_wrist": JointName.RIGHT_WRIST,
    "left_hip": JointName.LEFT_HIP,
    "right_hip": JointName.RIGHT_HIP,
    "left_knee": JointName.LEFT_KNEE,
    "right_knee": JointName.RIGHT_KNEE,
    "left_ankle": JointName.LEFT_ANKLE,
    "right_ankle": JointName.RIGHT_ANKLE,
}


def _midpoint(a: JointPosition, b: JointPosition) -> JointPosition:
    return JointPosition(x=(a.x + b.x) / 2, y=(a.y + b.y) / 2, z=(a.z + b.z) / 2)


def lift_keypoints(
    keypoints: np.ndarray,
    confidences: Optional[np.ndarray] = None,
    min_confidence: float = 0.5,
) -> dict[JointName, JointPosition]:
    """Map COCO-17 keypoints onto the body skeleton.

    Args:
        keypoints: Array of shape (17, 2) with normalized x, y
        confidences: Optional array of shape (17,) with per-keypoint confidence
        min_confidence: Keypoints at or below this are treated as missing

    Returns:
        Joint positions for every joint that could be located
    """
    visible: dict[str, JointPosition] = {}
    for index, name in enumerate(COCO_KEYPOINTS):
        if confidences is not None and float(confidences[index]) <= min_confidence:
            continue
        x, y = keypoints[index][:2]
        visible[name] = JointPosition(x=float(x), y=float(y), z=0.0)

    joints: dict[JointName, JointPosition] = {
        joint: visible[name] for name, joint in _DIRECT_JOINTS.items() if name in visible
    }

    if "left_eye" in visible and "right_eye" in visible and "nose" in visible:
        eyes = _midpoint(visible["left_eye"], visible["right_eye"])
        nose = visible["nose"]
        # Crown sits roughly one eye-to-nose offset above the eyes
        joints[JointName.TOP_HEAD] = JointPosition(
            x=2 * eyes.x - nose.x, y=2 * eyes.y - nose.y, z=0.0
        )

    center_shoulder = None
    if JointName.LEFT_SHOULDER in joints and JointName.RIGHT_SHOULDER in joints:
        center_shoulder = _midpoint(joints[JointName.LEFT_SHOULDER], joints[JointName.RIGHT_SHOULDER])
        joints[JointName.CENTER_SHOULDER] = center_shoulder

    root = None
    if JointName.LEFT_HIP in joints and JointName.RIGHT_HIP in joints:
        root = _midpoint(joints[JointName.LEFT_HIP], joints[JointName.RIGHT_HIP])
        joints[JointName.ROOT] = root

    if center_shoulder is not None and root is not None:
        joints[JointName.SPINE] = _midpoint(center_shoulder, root)

    return joints


class BodyPoseEstimator:
    """Estimates the pose of the most prominent person in a frame."""

    def __init__(
        self,
        model_path: Optional[Path] = None,
        keypoint_confidence: Optional[float] = None,
    ):
        self.model: Optional[YOLO] = None
        self.device: Optional[str] = None
        self._model_path = model_path
        self.keypoint_confidence = (
            keypoint_confidence
            if keypoint_confidence is not None
            else settings.pose_keypoint_confidence
        )
        self.results: list[BodyPoseObservation] = []

    def load_model(self) -> None:
        """Load the YOLO pose model."""
        if self.model is not None:
            return

        model_path = self._model_path or settings.models_dir / settings.pose_model
        model_path.parent.mkdir(parents=True, exist_ok=True)

        if not model_path.exists():
            logger.info(f"Downloading YOLO pose model to {model_path}")
        else:
            logger.info(f"Loading YOLO pose model from {model_path}")

        self.model = YOLO(str(model_path))
        self.device = get_device()
        self.model.to(self.device)
        logger.info(f"Body pose model loaded on {self.device}")

    def perform(self, frame: np.ndarray) -> list[BodyPoseObservation]:
        """Estimate body pose in a single frame.

        Args:
            frame: BGR image as numpy array

        Returns:
            Zero or one observation for the most confident person
        """
        if self.model is None:
            self.load_model()

        results = self.model(frame, verbose=False)

        best: Optional[BodyPoseObservation] = None
        for result in results:
            if result.keypoints is None or result.boxes is None or len(result.boxes) == 0:
                continue

            person_conf = result.boxes.conf.cpu().numpy()
            index = int(np.argmax(person_conf))
            score = float(person_conf[index])
            if best is not None and score <= best.confidence:
                continue

            keypoints = result.keypoints.xyn.cpu().numpy()[index]
            confidences = None
            if result.keypoints.conf is not None:
                confidences = result.keypoints.conf.cpu().numpy()[index]

            best = BodyPoseObservation(
                joints=lift_keypoints(keypoints, confidences, self.keypoint_confidence),
                confidence=score,
            )

        self.results = [best] if best is not None else []
        return self.results
