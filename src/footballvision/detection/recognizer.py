"""Object recognition using YOLO."""

from pathlib import Path
from typing import Optional

import numpy as np
from loguru import logger
from ultralytics import YOLO

from footballvision.core.config import settings
from footballvision.detection.schemas import (
    BoundingBox,
    Classification,
    RecognizedObjectObservation,
)
from footballvision.detection.weights import get_device


class ObjectRecognizer:
    """Recognizes objects in video frames using a YOLO detection model.

    The model is a black box: every box it reports becomes an observation
    labelled with the model's class name. Deciding which observations are
    balls is left to the ball filter.
    """

    def __init__(
        self,
        model_path: Optional[Path] = None,
        confidence_threshold: Optional[float] = None,
    ):
        """Set up the recognizer without loading the model.

        Args:
            model_path: Optional path to custom YOLO model weights
            confidence_threshold: Minimum box confidence reported by YOLO (0-1)
        """
        self.model: Optional[YOLO] = None
        self.device: Optional[str] = None
        self._model_path = model_path
        self.confidence_threshold = (
            confidence_threshold
            if confidence_threshold is not None
            else settings.object_confidence
        )
        self.results: list[RecognizedObjectObservation] = []

    def load_model(self) -> None:
        """Load the YOLO model."""
        if self.model is not None:
            return  # Already loaded

        model_path = self._model_path or settings.models_dir / settings.object_model
        model_path.parent.mkdir(parents=True, exist_ok=True)

        if not model_path.exists():
            logger.info(f"Downloading YOLO model to {model_path}")
        else:
            logger.info(f"Loading YOLO model from {model_path}")

        self.model = YOLO(str(model_path))
        self.device = get_device()
        self.model.to(self.device)
        logger.info(f"Object recognition model loaded on {self.device}")

    def perform(self, frame: np.ndarray) -> list[RecognizedObjectObservation]:
        """Recognize objects in a single frame.

        Args:
            frame: BGR image as numpy array

        Returns:
            One observation per detected box, possibly empty
        """
        if self.model is None:
            self.load_model()

        results = self.model(frame, verbose=False, conf=self.confidence_threshold)

        observations: list[RecognizedObjectObservation] = []
        for result in results:
            names = result.names
            for box in result.boxes:
                cls = int(box.cls[0])
                conf = float(box.conf[0])
                x1, y1, x2, y2 = box.xyxyn[0].cpu().numpy()

                label = names.get(cls, str(cls)) if isinstance(names, dict) else str(cls)
                observations.append(
                    RecognizedObjectObservation(
                        labels=(Classification(identifier=label, confidence=conf),),
                        bounding_box=BoundingBox.from_xyxyn(x1, y1, x2, y2),
                        confidence=conf,
                    )
                )

        logger.debug(f"Recognized {len(observations)} objects")
        self.results = observations
        return observations
