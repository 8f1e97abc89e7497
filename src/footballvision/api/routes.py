"""API routes for FootballVision."""

import asyncio
from datetime import datetime
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import StreamingResponse
from loguru import logger

from footballvision.api.schemas import (
    BallBox,
    DetectionState,
    Joint,
    PermissionStatus,
    SessionStatus,
    StateEvent,
)
from footballvision.core.camera import CaptureSessionError, PermissionDeniedError
from footballvision.core.config import settings
from footballvision.detection.weights import get_model_status
from footballvision.view_model import CameraViewModel, DetectionSnapshot

router = APIRouter()

# Shared view model, created on first use
_view_model: Optional[CameraViewModel] = None


def get_view_model() -> CameraViewModel:
    global _view_model
    if _view_model is None:
        _view_model = CameraViewModel()
    return _view_model


def set_view_model(view_model: Optional[CameraViewModel]) -> None:
    """Replace the shared view model (used by tests and scripts)."""
    global _view_model
    _view_model = view_model


def close_view_model() -> None:
    global _view_model
    if _view_model is not None:
        _view_model.close()
        _view_model = None


def snapshot_to_state(snapshot: DetectionSnapshot) -> DetectionState:
    return DetectionState(
        is_permission_granted=snapshot.is_permission_granted,
        session_running=snapshot.session_running,
        frames_processed=snapshot.frames_processed,
        joints=[Joint.from_position(name, position) for name, position in snapshot.joints.items()],
        balls=[BallBox.from_box(box) for box in snapshot.balls],
    )


def _session_status(view_model: CameraViewModel) -> SessionStatus:
    return SessionStatus(
        running=view_model.session.is_running,
        source=str(view_model.session.source),
        frames_delivered=view_model.session.frames_delivered,
    )


@router.get("/model-status")
async def model_status():
    """Get YOLO model download status and information."""
    return get_model_status()


@router.get("/state", response_model=DetectionState)
async def get_state():
    """Get the latest joints and ball detections."""
    return snapshot_to_state(get_view_model().snapshot())


@router.get("/permission", response_model=PermissionStatus)
async def get_permission():
    """Get the current camera permission state."""
    return PermissionStatus(granted=get_view_model().is_permission_granted.value)


@router.post("/permission", response_model=PermissionStatus)
async def request_permission():
    """Request camera access. The decision arrives asynchronously."""
    view_model = get_view_model()
    view_model.request_permission()
    return PermissionStatus(granted=view_model.is_permission_granted.value, requested=True)


@router.post("/session/start", response_model=SessionStatus)
async def start_session():
    """Start capturing and analysing frames."""
    view_model = get_view_model()
    try:
        await asyncio.to_thread(view_model.start_session)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except CaptureSessionError as e:
        logger.error(f"Failed to start capture session: {e}")
        raise HTTPException(status_code=503, detail=str(e))
    return _session_status(view_model)


@router.post("/session/stop", response_model=SessionStatus)
async def stop_session():
    """Stop capturing frames."""
    view_model = get_view_model()
    await asyncio.to_thread(view_model.stop_session)
    return _session_status(view_model)


@router.get("/session", response_model=SessionStatus)
async def get_session():
    return _session_status(get_view_model())


def _state_event(sequence: int, snapshot: DetectionSnapshot) -> str:
    event = StateEvent(
        sequence=sequence,
        timestamp=datetime.utcnow().isoformat(),
        state=snapshot_to_state(snapshot),
    )
    return f"data: {event.model_dump_json()}\n\n"


@router.get("/stream")
async def stream_state(max_events: Optional[int] = Query(None, ge=1)):
    """Stream detection state via Server-Sent Events (SSE).

    The first event is the current state; each published update follows.
    """
    view_model = get_view_model()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue(maxsize=settings.stream_queue_size)

    def enqueue(snapshot: DetectionSnapshot) -> None:
        try:
            queue.put_nowait(snapshot)
        except asyncio.QueueFull:
            # Client is slow, skip this update
            logger.warning("State stream queue full, skipping event")

    def on_state(snapshot: DetectionSnapshot) -> None:
        # Runs on the update queue thread
        loop.call_soon_threadsafe(enqueue, snapshot)

    async def event_generator() -> AsyncGenerator[str, None]:
        subscription = view_model.state.subscribe(on_state, drop_first=True)
        try:
            sequence = 0
            yield _state_event(sequence, view_model.snapshot())
            sequence += 1

            while max_events is None or sequence < max_events:
                try:
                    snapshot = await asyncio.wait_for(queue.get(), timeout=30.0)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield _state_event(sequence, snapshot)
                sequence += 1
        finally:
            subscription.cancel()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable buffering in nginx
        },
    )
