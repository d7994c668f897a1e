import asyncio
import json
import logging
from contextlib import asynccontextmanager

import cv2
import numpy as np
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from config import FRONTEND_URL
from models.loader import load_all_models
from models.registry import ModelRegistry
from processing.camera import PushedFrameSource, camera_error_from_client
from processing.frame_capture import CapturedImage
from processing.session import CaptureSession, open_session
from schemas.messages import (
    CaptureStateMessage, CaptureResultMessage, CaptureErrorMessage, CaptureCancelledMessage,
    RetakeAck, ErrorMessage, PoseGuideEntry, PoseGuideResponse,
)
from state.capture_session import CapturePhase, CaptureSettings, POSE_GUIDE

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading models...")
    try:
        app.state.registry = load_all_models()
        logger.info("All models loaded. Server ready.")
    except (FileNotFoundError, ValueError) as e:
        logger.warning(f"Hand landmarker not preloaded ({e}); sessions will load it from disk")
        app.state.registry = ModelRegistry()
    yield


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL, "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    registry = getattr(app.state, "registry", None)
    return {"status": "ok", "landmarker_loaded": bool(registry and registry.loaded)}


@app.get("/poses")
async def poses():
    settings = CaptureSettings()
    return PoseGuideResponse(
        poses=[PoseGuideEntry(id=g.pose.value, label=g.label, icon=g.icon) for g in POSE_GUIDE],
        settle_ms=int(settings.settle_seconds * 1000),
        countdown_start=settings.countdown_start,
    ).model_dump()


@app.websocket("/ws/capture")
async def guided_capture(websocket: WebSocket):
    await websocket.accept()
    registry = websocket.app.state.registry
    outbox: asyncio.Queue = asyncio.Queue()

    def on_update(snapshot: CaptureStateMessage):
        outbox.put_nowait(snapshot.model_dump())
        if snapshot.phase == CapturePhase.ERROR.value:
            outbox.put_nowait(CaptureErrorMessage(message=snapshot.error or "").model_dump())

    def on_captured(image: CapturedImage):
        outbox.put_nowait(CaptureResultMessage(
            image=image.to_data_url(),
            width=image.width,
            height=image.height,
            mime_type=image.mime_type,
        ).model_dump())

    def on_cancel():
        outbox.put_nowait(CaptureCancelledMessage().model_dump())

    def start_session() -> tuple[PushedFrameSource, CaptureSession]:
        source = PushedFrameSource()
        return source, open_session(
            source, registry,
            on_captured=on_captured, on_cancel=on_cancel, on_update=on_update,
        )

    frames, session = start_session()
    logger.info("WS capture session started")

    async def reader():
        """Read client messages; binary messages are JPEG frames, text messages are commands."""
        nonlocal frames, session
        try:
            while True:
                message = await websocket.receive()

                if message.get("type") == "websocket.disconnect":
                    break

                if message.get("text") is not None:
                    try:
                        data = json.loads(message["text"])
                    except json.JSONDecodeError:
                        continue
                    kind = data.get("type") if isinstance(data, dict) else None

                    if kind == "camera_error":
                        error = camera_error_from_client(data.get("name"), data.get("message"))
                        logger.info(f"WS client camera error: {data.get('name')}")
                        frames.fail(error)
                    elif kind == "retake":
                        logger.info("WS retake command received")
                        session.close()
                        frames, session = start_session()
                        outbox.put_nowait(RetakeAck(phase=session.phase.value).model_dump())
                    elif kind == "close":
                        logger.info("WS close command received")
                        break

                if message.get("bytes") is not None:
                    frame = cv2.imdecode(
                        np.frombuffer(message["bytes"], np.uint8),
                        cv2.IMREAD_COLOR,
                    )
                    if frame is None:
                        outbox.put_nowait(ErrorMessage(message="Could not decode frame").model_dump())
                        continue
                    frames.push(frame)

        except (WebSocketDisconnect, RuntimeError):
            pass

    async def sender():
        try:
            while True:
                payload = await outbox.get()
                await websocket.send_json(payload)
        except (WebSocketDisconnect, RuntimeError):
            pass

    sender_task = asyncio.create_task(sender())
    try:
        await reader()
    except (WebSocketDisconnect, RuntimeError) as e:
        logger.info(f"WS capture session ended: {type(e).__name__}: {e}")
    finally:
        session.close()
        sender_task.cancel()
        try:
            await sender_task
        except asyncio.CancelledError:
            pass

        # Flush whatever the teardown produced (e.g. capture_cancelled)
        try:
            while not outbox.empty():
                await websocket.send_json(outbox.get_nowait())
            await websocket.close()
        except (WebSocketDisconnect, RuntimeError):
            pass
        logger.info(f"WS cleanup: processed {session.frame_count} frames, phase={session.phase.value}")
