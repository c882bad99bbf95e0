"""
Report Endpoints
================
One-shot bug report generation plus the follow-up round.

Routes:
    POST /api/reports                                       — generate from a full submission
    GET  /api/reports/{report_id}                           — fetch a cached report
    POST /api/reports/followups/{followup_id}               — answer the requested fields
    POST /api/reports/followups/{followup_id}/generate-anyway

Outcome mapping (body ``status``):
    success         — report cached, id + rendered text + pre-filled form URL
    need_more_info  — a PendingFollowup was stored; caller answers or generates anyway
    error           — InfrastructureError (HTTP 502) or ConfigurationError (HTTP 503)

The agent, the report cache and the follow-up store live on ``app.state``
and are created by the application lifespan in main.py.
"""
import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException, Request, Response
from pydantic import BaseModel, Field

from bugbot.agents.report_agent import ReportAgent
from bugbot.core.errors import ConfigurationError, InfrastructureError, NeedMoreInfoError
from bugbot.core.output_formatter import format_report_text
from bugbot.models.bug_report import CanonicalReport, ReportInput
from bugbot.services.bug_site import build_bug_report_url
from bugbot.services.cache_service import FollowupStore, MissingField, PendingFollowup, ReportCache
from bugbot.sessions.session_manager import friendly_label

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"])

FATAL_DETAIL = "Sorry, I couldn't generate the bug report automatically. Please try again."
INCOMPLETE_NOTE = "This report was generated with incomplete information. Please review carefully before submitting."


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------
class ReportRequest(BaseModel):
    summary: str = Field(min_length=1)
    detailed_description: Optional[str] = None
    steps: List[str] = Field(default_factory=list)
    environment_notes: Optional[str] = None
    severity: Optional[str] = None
    component: Optional[str] = None

    def to_input(self) -> ReportInput:
        return ReportInput(
            raw_summary=self.summary.strip(),
            detailed_description=self.detailed_description,
            steps=[s.strip() for s in self.steps if s and s.strip()],
            environment_notes=self.environment_notes,
            severity=self.severity,
            component=self.component,
        )


class FollowupAnswer(BaseModel):
    # requested field id → user's answer
    answers: Dict[str, str] = Field(default_factory=dict)
    notes: Optional[str] = None


class MissingFieldOut(BaseModel):
    id: str
    label: str


class ReportResponse(BaseModel):
    status: Literal["success", "need_more_info", "error"]
    message: Optional[str] = None
    report_id: Optional[str] = None
    report: Optional[Dict[str, Any]] = None
    report_text: Optional[str] = None
    bug_form_url: Optional[str] = None
    followup_id: Optional[str] = None
    missing_fields: List[MissingFieldOut] = Field(default_factory=list)
    incomplete: bool = False


# ---------------------------------------------------------------------------
# app.state accessors
# ---------------------------------------------------------------------------
def _agent(request: Request) -> ReportAgent:
    return request.app.state.report_agent


def _reports(request: Request) -> ReportCache:
    return request.app.state.report_cache


def _followups(request: Request) -> FollowupStore:
    return request.app.state.followup_store


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _success(cache: ReportCache, report: CanonicalReport, incomplete: bool = False) -> ReportResponse:
    report_id = cache.store(report)
    return ReportResponse(
        status="success",
        message=INCOMPLETE_NOTE if incomplete else None,
        report_id=report_id,
        report=report.to_wire(),
        report_text=format_report_text(report),
        bug_form_url=build_bug_report_url(report),
        incomplete=incomplete,
    )


def _need_more_info(followup_id: str, followup: PendingFollowup) -> ReportResponse:
    return ReportResponse(
        status="need_more_info",
        message=followup.details or "Please provide the missing fields.",
        followup_id=followup_id,
        missing_fields=[MissingFieldOut(id=f.id, label=f.label) for f in followup.missing_fields],
    )


def _error(response: Response, err: Exception) -> ReportResponse:
    response.status_code = 503 if isinstance(err, ConfigurationError) else 502
    return ReportResponse(status="error", message=FATAL_DETAIL)


def _pending_from(report_input: ReportInput, err: NeedMoreInfoError) -> PendingFollowup:
    return PendingFollowup(
        input=report_input,
        missing_fields=[MissingField(id=f, label=friendly_label(f)) for f in err.missing_fields],
        details=err.details,
    )


def _merge_answers(followup: PendingFollowup, answer: FollowupAnswer) -> ReportInput:
    """Answers become ``label: value`` environment notes; unknown ids are ignored."""
    filled = []
    for missing in followup.missing_fields:
        value = (answer.answers.get(missing.id) or "").strip()
        if value:
            filled.append(f"{missing.label}: {value}")
    if answer.notes and answer.notes.strip():
        filled.append(answer.notes.strip())
    return followup.input.merge(environment_notes=filled)


def _get_pending(store: FollowupStore, followup_id: str) -> PendingFollowup:
    followup = store.get(followup_id)
    if followup is None:
        raise HTTPException(status_code=404, detail="This follow-up has expired. Please submit the bug report again.")
    return followup


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.post("", response_model=ReportResponse, response_model_exclude_none=True)
async def create_report(body: ReportRequest, request: Request, response: Response):
    report_input = body.to_input()
    try:
        report = await _agent(request).generate(report_input)
    except NeedMoreInfoError as err:
        followup = _pending_from(report_input, err)
        followup_id = _followups(request).create(followup)
        logger.info("Report needs more info %s (followup=%s)", err.missing_fields, followup_id)
        return _need_more_info(followup_id, followup)
    except (InfrastructureError, ConfigurationError) as err:
        logger.error("Failed to generate bug report: %s", err)
        return _error(response, err)
    return _success(_reports(request), report)


@router.get("/{report_id}", response_model=ReportResponse, response_model_exclude_none=True)
async def get_report(report_id: str, request: Request):
    report = _reports(request).get(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="This bug report has expired. Please generate a new one.")
    return ReportResponse(
        status="success",
        report_id=report_id,
        report=report.to_wire(),
        report_text=format_report_text(report),
        bug_form_url=build_bug_report_url(report),
    )


@router.post("/followups/{followup_id}", response_model=ReportResponse, response_model_exclude_none=True)
async def answer_followup(followup_id: str, body: FollowupAnswer, request: Request, response: Response):
    store = _followups(request)
    followup = _get_pending(store, followup_id)
    merged = _merge_answers(followup, body)
    try:
        report = await _agent(request).generate(merged)
    except NeedMoreInfoError as err:
        # Keep what the user already answered for the next round
        followup = _pending_from(merged, err)
        store.set(followup_id, followup)
        logger.info("Follow-up %s still needs %s", followup_id, err.missing_fields)
        return _need_more_info(followup_id, followup)
    except (InfrastructureError, ConfigurationError) as err:
        logger.error("Failed to generate bug report from follow-up %s: %s", followup_id, err)
        return _error(response, err)
    store.delete(followup_id)
    return _success(_reports(request), report)


@router.post(
    "/followups/{followup_id}/generate-anyway",
    response_model=ReportResponse,
    response_model_exclude_none=True,
)
async def generate_anyway(followup_id: str, request: Request, response: Response):
    store = _followups(request)
    followup = _get_pending(store, followup_id)
    try:
        report = await _agent(request).generate(followup.input)
    except NeedMoreInfoError as err:
        store.touch(followup_id)
        logger.info("Generate-anyway for %s still blocked on %s", followup_id, err.missing_fields)
        return _need_more_info(followup_id, followup)
    except (InfrastructureError, ConfigurationError) as err:
        logger.error("Failed to generate bug report (generate anyway) %s: %s", followup_id, err)
        return _error(response, err)
    store.delete(followup_id)
    return _success(_reports(request), report, incomplete=True)
