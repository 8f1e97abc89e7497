"""Inference adapters and ball filtering."""

from footballvision.detection.ball_filter import (
    BALL_CONFIDENCE_THRESHOLD,
    BALL_LABELS,
    filter_ball_boxes,
    is_ball,
    matches_ball_label,
)
from footballvision.detection.schemas import (
    BodyPoseObservation,
    BoundingBox,
    Classification,
    JointName,
    JointPosition,
    RecognizedObjectObservation,
)

__all__ = [
    "BALL_CONFIDENCE_THRESHOLD",
    "BALL_LABELS",
    "filter_ball_boxes",
    "is_ball",
    "matches_ball_label",
    "BodyPoseObservation",
    "BoundingBox",
    "Classification",
    "JointName",
    "JointPosition",
    "RecognizedObjectObservation",
]
