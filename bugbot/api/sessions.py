"""
Session Endpoints
=================
HTTP surface of the slot-filling conversation.

Routes:
    POST   /api/sessions                      — start (or restart) a session
    POST   /api/sessions/messages             — deliver one user message
    DELETE /api/sessions/{thread_id}?user_id= — abandon a session

Each reply carries ``status`` (the SessionReply outcome), the messages to
show, and the report when one was generated. Messages from a user who does
not own the thread come back as ``ignored``.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from bugbot.services.bug_site import build_bug_report_url
from bugbot.sessions.session_manager import BugReportSessionManager, SessionReply

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["Sessions"])


class StartSessionRequest(BaseModel):
    user_id: str
    thread_id: str
    summary: str = Field(min_length=1)
    severity: Optional[str] = None
    guild_id: Optional[str] = None


class SessionMessage(BaseModel):
    user_id: str
    thread_id: str
    content: str


class SessionResponse(BaseModel):
    status: str
    messages: List[str] = Field(default_factory=list)
    end_session: bool = False
    requested_fields: List[str] = Field(default_factory=list)
    report_id: Optional[str] = None
    report: Optional[Dict[str, Any]] = None
    bug_form_url: Optional[str] = None


def _manager(request: Request) -> BugReportSessionManager:
    return request.app.state.session_manager


def _to_response(request: Request, reply: SessionReply) -> SessionResponse:
    out = SessionResponse(
        status=reply.outcome,
        messages=reply.messages,
        end_session=reply.end_session,
        requested_fields=reply.requested_fields,
    )
    if reply.report is not None:
        out.report_id = request.app.state.report_cache.store(reply.report)
        out.report = reply.report.to_wire()
        out.bug_form_url = build_bug_report_url(reply.report)
    return out


@router.post("", response_model=SessionResponse, response_model_exclude_none=True)
async def start_session(body: StartSessionRequest, request: Request):
    reply = _manager(request).start_session(
        body.user_id,
        body.thread_id,
        body.summary,
        severity=body.severity,
        guild_id=body.guild_id,
    )
    return _to_response(request, reply)


@router.post("/messages", response_model=SessionResponse, response_model_exclude_none=True)
async def post_message(body: SessionMessage, request: Request):
    reply = await _manager(request).handle_message(body.user_id, body.thread_id, body.content)
    if reply is None:
        return SessionResponse(status="ignored")
    return _to_response(request, reply)


@router.delete("/{thread_id}")
async def abandon_session(thread_id: str, user_id: str, request: Request):
    if not _manager(request).abandon(user_id, thread_id):
        raise HTTPException(status_code=404, detail="No active session for this user and thread.")
    return {"status": "abandoned"}
