"""YOLO model weights: download, status and inference device."""

import asyncio
from pathlib import Path

import torch
from loguru import logger
from ultralytics import YOLO

from footballvision.core.config import settings

# Models confirmed present on disk
_ready_models: set[str] = set()


def get_device() -> str:
    """Get the best available device for inference."""
    if torch.backends.mps.is_available():
        logger.info("Using MPS (Apple Silicon GPU)")
        return "mps"
    elif torch.cuda.is_available():
        logger.info("Using CUDA GPU")
        return "cuda"
    else:
        logger.info("Using CPU")
        return "cpu"


def configured_models() -> list[str]:
    """Names of the object recognition and pose models in use."""
    return [settings.object_model, settings.pose_model]


def model_path(model_name: str) -> Path:
    return settings.models_dir / model_name


def _download_model_sync(model_name: str) -> bool:
    """Download one model to the models directory.

    Returns:
        True if the model is ready (exists or downloaded successfully),
        False if download failed.
    """
    path = model_path(model_name)

    if path.exists():
        logger.info(f"YOLO model already exists at {path}")
        _ready_models.add(model_name)
        return True

    settings.models_dir.mkdir(parents=True, exist_ok=True)

    try:
        logger.info(f"Downloading YOLO model {model_name} to {path}...")
        # YOLO downloads to the given path when the file is missing
        YOLO(str(path))
        logger.info(f"YOLO model downloaded successfully to {path}")
        _ready_models.add(model_name)
        return True
    except Exception as e:
        logger.warning(f"Failed to download YOLO model {model_name}: {e}")
        _ready_models.discard(model_name)
        return False


def _download_models_sync() -> bool:
    results = [_download_model_sync(name) for name in configured_models()]
    return all(results)


async def ensure_models_downloaded() -> bool:
    """Pre-download all configured models.

    Runs in a thread to avoid blocking the event loop.

    Returns:
        True if every model is ready, False if any download failed.
    """
    return await asyncio.to_thread(_download_models_sync)


def is_model_ready(model_name: str) -> bool:
    """Check if a model file is on disk, caching positive answers."""
    if model_name in _ready_models:
        return True
    if model_path(model_name).exists():
        _ready_models.add(model_name)
        return True
    return False


def models_ready() -> bool:
    return all(is_model_ready(name) for name in configured_models())


def get_model_status() -> dict:
    """Get detailed status for each configured model."""
    models = []
    for name in configured_models():
        path = model_path(name)
        downloaded = path.exists()
        entry = {
            "downloaded": downloaded,
            "model_name": name,
            "path": str(path),
            "size_mb": 0.0,
        }
        if downloaded:
            entry["size_mb"] = round(path.stat().st_size / (1024 * 1024), 2)
        models.append(entry)

    return {
        "ready": all(m["downloaded"] for m in models),
        "models": models,
    }
