"""FootballVision: player pose and ball detection on a football pitch."""

__version__ = "0.1.0"
