"""FastAPI application — JSON endpoints for the booking conversation.

Endpoints:

  GET  /health                                Health check
  POST /api/conversations                     Start a conversation (welcome prompt)
  POST /api/conversations/{id}/turns          Send a text turn or a menu selection
  GET  /api/conversations                     [admin] List active conversations
  GET  /api/conversations/{id}                [admin] Conversation detail + trace log
  WS   /api/conversations/{id}/trace?token=   [admin] Live trace events

A conversation is unregistered once it completes; abandoned ones expire
after SESSION_TTL_SECONDS of inactivity.
"""

from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-28s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from flight_booking.auth import require_admin_token, require_admin_ws
from flight_booking.config import settings
from flight_booking.dialog import (
    BookingDialog,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)
from flight_booking.models.events import OutboundEvent, UserTurn
from flight_booking.services import BookingServices, build_services
from flight_booking.trace_events import get_broadcaster

log = logging.getLogger("flight_booking.app")

_START_TIME = time.time()


def _serialize(events: list[OutboundEvent]) -> list[dict]:
    return [event.model_dump(mode="json") for event in events]


def create_app(services: Optional[BookingServices] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``services`` overrides the production collaborators (tests pass
    fakes); when omitted they are built from settings at startup and
    closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.services is None
        if owned:
            for warning in settings.validate_startup():
                log.warning(warning)
            app.state.services = build_services(settings)
        try:
            yield
        finally:
            if owned:
                await app.state.services.aclose()
                app.state.services = None

    app = FastAPI(
        title="Flight Booking Assistant",
        description="Conversational flight booking with AI-assisted slot filling",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services

    def _services(request: Request) -> BookingServices:
        svc = request.app.state.services
        if svc is None:
            raise HTTPException(status_code=503, detail="Services not initialized")
        return svc

    def _dialog_or_404(session_id: str) -> BookingDialog:
        dialog = get_session(session_id)
        if dialog is None:
            raise HTTPException(status_code=404, detail="Conversation not found")
        return dialog

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health(request: Request) -> JSONResponse:
        svc = request.app.state.services
        return JSONResponse({
            "status": "ok",
            "uptime": round(time.time() - _START_TIME, 1),
            "conversations": len(get_active_sessions()),
            "airports_loaded": bool(svc and svc.directory.loaded),
        })

    # ── Conversation ───────────────────────────────────────────

    @app.post("/api/conversations")
    async def start_conversation(
        svc: BookingServices = Depends(_services),
    ) -> JSONResponse:
        dialog = BookingDialog(svc)
        session_id = register_session(dialog)
        dialog.attach_tracer(get_broadcaster(session_id))
        events = dialog.start()
        return JSONResponse({
            "session_id": session_id,
            "stage": dialog.stage.value,
            "done": False,
            "events": _serialize(events),
        })

    @app.post("/api/conversations/{session_id}/turns")
    async def post_turn(session_id: str, turn: UserTurn) -> JSONResponse:
        dialog = _dialog_or_404(session_id)
        events = await dialog.handle_turn(turn)

        if dialog.is_done:
            unregister_session(session_id)

        return JSONResponse({
            "session_id": session_id,
            "stage": dialog.stage.value,
            "done": dialog.is_done,
            "events": _serialize(events),
        })

    # ── Admin ──────────────────────────────────────────────────

    @app.get("/api/conversations", dependencies=[Depends(require_admin_token)])
    async def list_conversations() -> JSONResponse:
        sessions = get_active_sessions()
        return JSONResponse({
            "conversations": [d.to_dict() for d in sessions.values()],
            "count": len(sessions),
        })

    @app.get("/api/conversations/{session_id}", dependencies=[Depends(require_admin_token)])
    async def get_conversation(session_id: str) -> JSONResponse:
        dialog = _dialog_or_404(session_id)
        return JSONResponse(dialog.to_dict(detail=True))

    @app.websocket("/api/conversations/{session_id}/trace")
    async def trace_stream(
        websocket: WebSocket, session_id: str, token: str = Query(default=""),
    ) -> None:
        """Stream trace events for one conversation."""
        if not await require_admin_ws(websocket, token):
            return

        dialog = get_session(session_id)
        if dialog is None:
            await websocket.close(code=4004, reason="Conversation not found")
            return

        await websocket.accept()
        broadcaster = get_broadcaster(session_id)
        dialog.attach_tracer(broadcaster)
        queue = broadcaster.subscribe()

        try:
            while True:
                event = await queue.get()
                await websocket.send_json(event)
        except WebSocketDisconnect:
            log.info("Trace client disconnected from %s", session_id)
        finally:
            broadcaster.unsubscribe(queue)

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "flight_booking.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
