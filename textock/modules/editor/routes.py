import asyncio
import json
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.concurrency import run_in_threadpool
from textock.config import settings
from textock.core.dependencies import get_auth_service, get_template_service
from textock.modules.auth.schemas import SessionContext
from textock.modules.auth.service import AuthService
from textock.modules.editor.session import EditorError, EditorSession
from textock.modules.editor.workspace import TemplateWorkspace
from textock.modules.templates.service import TemplateService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/editor", tags=["editor"])

UNEXPECTED_MESSAGE_ERROR = "Something went wrong. Please try again."


async def _pump(websocket: WebSocket, outbox: asyncio.Queue):
    """Forward queued messages to the client in order."""
    while True:
        message = await outbox.get()
        await websocket.send_json(message)


def _parse(raw: str) -> dict:
    try:
        message = json.loads(raw)
    except ValueError:
        raise EditorError("Messages must be valid JSON")
    if not isinstance(message, dict):
        raise EditorError("Messages must be JSON objects")
    return message


async def _dispatch(message: dict, editor: EditorSession, workspace: TemplateWorkspace, outbox: asyncio.Queue):
    kind = message.get("type")
    if kind == "open":
        editor.open(message.get("template_id"))
    elif kind == "change":
        fields = message.get("fields") or {}
        if not isinstance(fields, dict):
            raise EditorError("'fields' must be an object")
        editor.change(**fields)
    elif kind == "submit":
        saved = await editor.submit()
        if saved is not None:
            outbox.put_nowait({"type": "saved", "template": saved.model_dump(mode="json")})
    elif kind == "cancel":
        editor.cancel()
    elif kind == "delete":
        template_id = message.get("template_id")
        if not template_id:
            raise EditorError("'template_id' is required")
        try:
            await workspace.delete(template_id)
        except HTTPException as e:
            raise EditorError(str(e.detail))
        outbox.put_nowait({"type": "deleted", "template_id": template_id})
        outbox.put_nowait(editor.snapshot())
    else:
        raise EditorError(f"Unknown message type: {kind}")


@router.websocket("/ws")
async def editor_socket(
    websocket: WebSocket,
    token: str = Query(...),
    auth_service: AuthService = Depends(get_auth_service),
    template_service: TemplateService = Depends(get_template_service),
):
    """Live template editing: debounced validation, quota-gated creation, confirmed saves."""
    try:
        user = await run_in_threadpool(auth_service.get_current_user, token)
    except HTTPException as e:
        logger.info(f"Rejected editor connection: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    session = SessionContext(user=user)
    workspace = TemplateWorkspace(template_service, session)
    outbox: asyncio.Queue = asyncio.Queue()
    editor = EditorSession(
        session,
        workspace,
        debounce_seconds=settings.editor_debounce_seconds,
        on_change=lambda current: outbox.put_nowait(current.snapshot()),
    )
    sender = asyncio.create_task(_pump(websocket, outbox))

    try:
        try:
            await workspace.load()
        except HTTPException as e:
            await websocket.send_json({"type": "error", "message": str(e.detail)})
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            return
        outbox.put_nowait(editor.snapshot())

        while True:
            raw = await websocket.receive_text()
            try:
                await _dispatch(_parse(raw), editor, workspace, outbox)
            except EditorError as e:
                outbox.put_nowait({"type": "error", "message": str(e)})
            except Exception as e:
                # Keep the connection open; the client can cancel or retry
                logger.exception(f"Editor message failed for user {user.id}: {e}")
                outbox.put_nowait({"type": "error", "message": UNEXPECTED_MESSAGE_ERROR})
    except WebSocketDisconnect:
        logger.debug(f"Editor connection closed for user {user.id}")
    finally:
        editor.cancel()
        sender.cancel()
