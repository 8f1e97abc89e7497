"""Data models for inference observations.

These are lightweight dataclasses for recognizer and pose estimator output.
The API layer converts them to Pydantic models for responses.
"""

import uuid as uuid_lib
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional


@dataclass(frozen=True)
class BoundingBox:
    """Rectangle in normalized image coordinates (top-left origin, 0-1)."""

    x: float  # Left edge
    y: float  # Top edge
    width: float
    height: float

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @classmethod
    def from_xyxyn(cls, x1: float, y1: float, x2: float, y2: float) -> "BoundingBox":
        """Build from normalized corner coordinates, clamped into the image."""
        x1, x2 = sorted((min(max(float(x1), 0.0), 1.0), min(max(float(x2), 0.0), 1.0)))
        y1, y2 = sorted((min(max(float(y1), 0.0), 1.0), min(max(float(y2), 0.0), 1.0)))
        return cls(x=x1, y=y1, width=x2 - x1, height=y2 - y1)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class Classification:
    """A single label assigned to a recognized object."""

    identifier: str
    confidence: float


@dataclass(frozen=True)
class RecognizedObjectObservation:
    """An object found in one frame, with its candidate labels."""

    labels: tuple[Classification, ...]
    bounding_box: BoundingBox
    confidence: float = 0.0
    uuid: str = field(default_factory=lambda: str(uuid_lib.uuid4()))

    def __post_init__(self):
        object.__setattr__(self, "labels", tuple(self.labels))

    @property
    def top_label(self) -> Optional[Classification]:
        return self.labels[0] if self.labels else None


class JointName(str, Enum):
    """Landmarks of the 3D body skeleton."""

    TOP_HEAD = "top_head"
    CENTER_HEAD = "center_head"
    CENTER_SHOULDER = "center_shoulder"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    SPINE = "spine"
    ROOT = "root"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


@dataclass(frozen=True)
class JointPosition:
    """Position of one joint."""

    x: float
    y: float
    z: float = 0.0

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "z": self.z}


@dataclass(frozen=True)
class BodyPoseObservation:
    """One detected body with its joint positions."""

    joints: Mapping[JointName, JointPosition]
    confidence: float = 0.0
