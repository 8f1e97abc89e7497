"""Application configuration."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Server
    host: str = "127.0.0.1"
    port: int = 8430
    debug: bool = True

    # Paths
    models_dir: Path = Path.home() / ".footballvision" / "models"

    # Object recognition
    object_model: str = "yolov8n.pt"
    # Pre-filter applied by YOLO itself. Must stay below ball_confidence_threshold,
    # otherwise the ball filter never sees borderline labels.
    object_confidence: float = 0.25

    # Body pose
    pose_model: str = "yolov8n-pose.pt"
    pose_keypoint_confidence: float = 0.5

    # Ball filter
    ball_labels: list[str] = ["ball", "sports ball", "soccer ball", "football"]
    ball_confidence_threshold: float = 0.5  # Strictly greater-than

    # Camera
    camera_source: str = "0"  # Device index or video file / stream URL
    camera_width: Optional[int] = None
    camera_height: Optional[int] = None
    # None probes the device; True/False answers permission requests statically
    camera_permission: Optional[bool] = None
    start_session_on_grant: bool = False

    # Streaming
    stream_queue_size: int = 100

    class Config:
        env_prefix = "FOOTBALLVISION_"
        env_file = ".env"


settings = Settings()

# Ensure directories exist
settings.models_dir.mkdir(parents=True, exist_ok=True)
