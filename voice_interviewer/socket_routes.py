"""WebSocket channel carrying the live interview events."""
import base64
import binascii
import json
import uuid
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import structlog

from voice_interviewer.session_store import SessionStoreError

logger = structlog.get_logger()
router = APIRouter()


class WebSocketChannel:
    """Wraps a socket as an event channel: every frame is ``{"event", "data"}``."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.id = uuid.uuid4().hex

    async def emit(self, event: str, data: Dict[str, Any]) -> None:
        await self.websocket.send_json({"event": event, "data": data})


def decode_audio(payload: Any) -> bytes:
    """Audio arrives either base64-encoded or as a list of byte values."""
    if isinstance(payload, str):
        if "," in payload and payload.startswith("data:"):
            payload = payload.split(",", 1)[1]
        return base64.b64decode(payload, validate=True)
    if isinstance(payload, list):
        return bytes(payload)
    raise ValueError("Unsupported audio payload")


async def dispatch(manager, channel: WebSocketChannel, event: str, data: Dict[str, Any]) -> None:
    if event == "start-interview":
        session_id = data.get("sessionId")
        if not session_id:
            await channel.emit("error", {"message": "sessionId is required"})
            return
        await manager.start_interview(session_id, channel)
    elif event == "playback-complete":
        await manager.handle_playback_complete(channel)
    elif event == "request-question":
        await manager.request_question(channel)
    elif event in ("audio-response", "audio-data"):
        try:
            audio = decode_audio(data.get("audio"))
        except (ValueError, TypeError, binascii.Error) as e:
            logger.warning("Invalid audio payload", connection_id=channel.id, error=str(e))
            await channel.emit("error", {"message": "Invalid audio payload"})
            return
        await manager.process_audio_response(channel, audio, data.get("mimeType") or "audio/webm")
    elif event == "text-response":
        text = data.get("text")
        if not isinstance(text, str):
            logger.warning("Invalid text payload", connection_id=channel.id, text_type=type(text).__name__)
            await channel.emit("error", {"message": "Invalid text payload"})
            return
        await manager.process_text_response(channel, text)
    elif event in ("complete-interview", "stop-interview"):
        await manager.stop_interview(channel)
    else:
        logger.warning("Unknown event", connection_id=channel.id, event=event)
        await channel.emit("error", {"message": f"Unknown event: {event}"})


@router.websocket("/ws")
async def interview_socket(websocket: WebSocket):
    manager = websocket.app.state.interview_manager
    await websocket.accept()
    channel = WebSocketChannel(websocket)
    logger.info("Client connected", connection_id=channel.id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
                event = frame["event"]
                data = frame.get("data") or {}
                if not isinstance(event, str) or not isinstance(data, dict):
                    raise ValueError("event must be a string and data an object")
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Malformed frame", connection_id=channel.id, error=str(e))
                await channel.emit("error", {"message": "Malformed message"})
                continue

            try:
                await dispatch(manager, channel, event, data)
            except WebSocketDisconnect:
                raise
            except SessionStoreError as e:
                logger.error("Session store failure", connection_id=channel.id, event=event, error=str(e))
                await channel.emit("error", {"message": "Session storage is unavailable. Please try again."})
            except Exception as e:
                logger.error("Event handling failed", connection_id=channel.id, event=event, error=str(e))
                await channel.emit("error", {"message": "Something went wrong. Please try again."})
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected", connection_id=channel.id)
    finally:
        manager.handle_disconnect(channel.id)
