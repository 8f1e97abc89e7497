"""Decide which recognized objects are balls."""

from typing import Iterable, Optional, Sequence

from footballvision.detection.schemas import (
    BoundingBox,
    Classification,
    RecognizedObjectObservation,
)

# Substrings matched case-insensitively against recognizer labels
BALL_LABELS: tuple[str, ...] = ("ball", "sports ball", "soccer ball", "football")

# A label must score strictly above this to count
BALL_CONFIDENCE_THRESHOLD = 0.5


def matches_ball_label(
    classification: Classification,
    labels: Sequence[str] = BALL_LABELS,
    threshold: float = BALL_CONFIDENCE_THRESHOLD,
) -> bool:
    """Check a single label against the ball vocabulary.

    Args:
        classification: Label and confidence from the recognizer
        labels: Vocabulary of substrings that identify a ball
        threshold: Confidence the label must exceed

    Returns:
        True if the label contains a vocabulary term and is confident enough
    """
    identifier = classification.identifier.lower()
    if not any(term.lower() in identifier for term in labels):
        return False
    return classification.confidence > threshold


def is_ball(
    observation: RecognizedObjectObservation,
    labels: Sequence[str] = BALL_LABELS,
    threshold: float = BALL_CONFIDENCE_THRESHOLD,
) -> bool:
    """True if any of the observation's labels identifies a ball."""
    return any(
        matches_ball_label(classification, labels, threshold)
        for classification in observation.labels
    )


def filter_ball_boxes(
    observations: Iterable[RecognizedObjectObservation],
    labels: Optional[Sequence[str]] = None,
    threshold: Optional[float] = None,
) -> list[BoundingBox]:
    """Return the bounding boxes of observations recognized as balls.

    Order follows the input. Observations without labels never match.
    """
    if labels is None:
        labels = BALL_LABELS
    if threshold is None:
        threshold = BALL_CONFIDENCE_THRESHOLD

    return [
        observation.bounding_box
        for observation in observations
        if is_ball(observation, labels, threshold)
    ]
