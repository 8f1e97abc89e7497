"""Pydantic schemas for API request/response models."""

from pydantic import BaseModel, Field

from footballvision.detection.schemas import BoundingBox, JointName, JointPosition


class BallBox(BaseModel):
    """Bounding box of a detected ball in normalized image coordinates."""

    x: float = Field(..., ge=0, le=1, description="Left edge (0-1)")
    y: float = Field(..., ge=0, le=1, description="Top edge (0-1)")
    width: float = Field(..., ge=0, le=1)
    height: float = Field(..., ge=0, le=1)

    @classmethod
    def from_box(cls, box: BoundingBox) -> "BallBox":
        """Convert a detection box, clamping each field into [0, 1]."""
        return cls(**{key: min(max(float(value), 0.0), 1.0) for key, value in box.to_dict().items()})


class Joint(BaseModel):
    """Position of a single body joint."""

    name: JointName
    x: float
    y: float
    z: float = 0.0

    @classmethod
    def from_position(cls, name: JointName, position: JointPosition) -> "Joint":
        return cls(name=name, **position.to_dict())


class PermissionStatus(BaseModel):
    """Camera access state."""

    granted: bool
    requested: bool = Field(False, description="Whether a request was just issued")


class SessionStatus(BaseModel):
    """Capture session state."""

    running: bool
    source: str
    frames_delivered: int = 0


class DetectionState(BaseModel):
    """Latest published detection state."""

    is_permission_granted: bool
    session_running: bool
    frames_processed: int = 0
    joints: list[Joint] = Field(default_factory=list)
    balls: list[BallBox] = Field(default_factory=list)


class StateEvent(BaseModel):
    """Real-time detection event for SSE streaming."""

    sequence: int = Field(..., description="Event number within this stream, starting at 0")
    timestamp: str = Field(..., description="ISO 8601 timestamp of this event")
    state: DetectionState

