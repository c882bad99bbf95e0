"""
Bug Report Session Manager
==========================
Slot-filling conversation that collects a bug report in three steps and then
asks the AI to write it up.

State Machine:
    DESCRIPTION → STEPS → ENVIRONMENT → DONE (generation in flight)

    - Each qualifying message fills the field of the current step and the
      next prompt is issued. Completing ENVIRONMENT triggers generation.
    - Generation may come back "blocked" (NeedMoreInfoError). The session
      then asks only for fields it has never asked before, one at a time,
      jumping to the step that owns the first of them.
    - Environment answers are tested against every outstanding field via
      FIELD_CHECKS; satisfied fields are dropped.

Loop Safety:
    - askedFields is monotonic: a field is asked at most once by name.
    - reprompt_count is shared by "AI repeated itself" and "user answer did
      not satisfy the outstanding field". Once it exceeds MAX_REPROMPTS the
      session ends with a copy/paste template.

Concurrency:
    - One asyncio.Lock per session. A message arriving while a generation is
      running is answered with BUSY_MESSAGE and otherwise ignored.
    - A generation finishing after its session was deleted (abandoned,
      replaced, expired) is discarded and handle_message returns None.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from bugbot.core.constants import MAX_REPROMPTS
from bugbot.core.errors import NeedMoreInfoError, ReportGenerationError
from bugbot.core.output_formatter import build_manual_template, format_report_text
from bugbot.models.bug_report import CanonicalReport, ReportInput
from bugbot.sessions.field_checks import FIELD_CHECKS, FieldCheck, looks_like_field_provided
from bugbot.sessions.session_store import SessionStore
from bugbot.state.session_state import Session, Step

logger = logging.getLogger(__name__)

Generator = Callable[[ReportInput], Awaitable[CanonicalReport]]

# ---------------------------------------------------------------------------
# User-facing text
# ---------------------------------------------------------------------------
DESCRIPTION_PROMPT = "\n".join([
    "Thanks! Let's build a bug report together.",
    "",
    "**Step 1 - What happened?**",
    "Describe the problem in as much detail as you can: what you were doing, what you saw, and what you expected.",
])

STEPS_PROMPT = "\n".join([
    "Got it! ✅",
    "",
    "**Step 2 - Steps to reproduce**",
    "Please list the steps someone should follow to reliably see this bug.",
    "",
    "Example:",
    "1. Join a voice channel",
    "2. Mute and unmute yourself",
    "3. Wait 2 minutes",
])

ENVIRONMENT_PROMPT = "\n".join([
    "Perfect, thanks! ✅",
    "",
    "**Step 3 - Environment details**",
    "Tell me about your setup. For example:",
    "- Platform (Desktop / iOS / Android / Web?)",
    "- OS version (e.g. Windows 11, macOS 14, iOS 17)",
    "- App version or browser & version",
    "- Anything special about your network (VPN, proxies, etc.)",
])

SUCCESS_MESSAGE = "Here's your polished bug report. Review it before submitting it to the bug form."
BUSY_MESSAGE = "Still working… the AI is thinking through your report. Please wait for it to finish."
EXPIRED_MESSAGE = "Sorry! This bug report session has expired. Please start a new bug report if you still need help."
CLARIFY_MESSAGE = (
    "The AI is asking for more info it already requested. "
    "Could you clarify or expand the environment and steps so I can finish the report?"
)
REPEATED_REQUEST_MESSAGE = (
    "The AI keeps requesting information we've already tried to collect. "
    "To avoid repeating, please use the manual template below."
)
UNSATISFIED_MESSAGE = (
    "It looks like the AI is still requesting information we couldn't collect automatically. "
    "To avoid repeated requests, please use the manual template below."
)
FATAL_MESSAGE = (
    "Sorry, I couldn't generate the bug report automatically. Please try again later, "
    "or copy this basic template into the bug form:"
)

FRIENDLY_LABELS: Dict[str, str] = {
    "detailedDescription": "detailed description",
    "description": "detailed description",
    "stepsToReproduce": "steps to reproduce",
    "environment": "environment details",
    "platform": "platform (Desktop / iOS / Android / Web)",
    "os": "operating system and version",
    "appVersion": "app or browser version",
    "networkInfo": "network details (VPN / proxy / etc.)",
    "additionalDetails": "any additional details",
    "severity": "how badly this affects you",
    "component": "the feature or area affected",
    "attachments": "screenshot or video links",
}

_DESCRIPTION_FIELDS = ("detailedDescription", "description")
_STEP_FIELDS = ("stepsToReproduce",)
_STEP_BULLET_RE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*")


def friendly_label(field_name: str) -> str:
    return FRIENDLY_LABELS.get(field_name, field_name)


def step_for_field(field_name: str) -> Step:
    """The conversation step that collects ``field_name``."""
    if field_name in _DESCRIPTION_FIELDS:
        return Step.DESCRIPTION
    if field_name in _STEP_FIELDS:
        return Step.STEPS
    return Step.ENVIRONMENT


def split_steps(text: str) -> List[str]:
    """One step per non-blank line, leading numbering/bullets removed."""
    steps = []
    for line in text.splitlines():
        line = _STEP_BULLET_RE.sub("", line).strip()
        if line:
            steps.append(line)
    return steps


def manual_template(session: Session) -> str:
    return build_manual_template(
        session.summary,
        session.detailed_description,
        session.steps,
        session.environment_notes,
    )


# ---------------------------------------------------------------------------
# Reply
# ---------------------------------------------------------------------------
@dataclass
class SessionReply:
    """
    What to send back to the user.

    outcome:
        prompt          — waiting for the next answer
        need_more_info  — AI blocked; asking for a missing field
        success         — report generated, session deleted
        template        — gave up on the loop; template offered, session deleted
        error           — fatal backend/config error, session deleted
        busy            — a generation is already running
        expired         — no live session for this user/thread
    """
    messages: List[str] = field(default_factory=list)
    outcome: str = "prompt"
    end_session: bool = False
    report: Optional[CanonicalReport] = None
    requested_fields: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n\n".join(self.messages)


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------
class BugReportSessionManager:
    """
    Drives sessions held in a SessionStore.

    Usage:
        manager = BugReportSessionManager(store, agent.generate)
        reply = manager.start_session(user_id, thread_id, summary)
        reply = await manager.handle_message(user_id, thread_id, text)
    """

    def __init__(
        self,
        store: SessionStore,
        generate: Generator,
        field_checks: Optional[Dict[str, FieldCheck]] = None,
        max_reprompts: int = MAX_REPROMPTS,
    ) -> None:
        self.store = store
        self.generate = generate
        self.field_checks = field_checks if field_checks is not None else FIELD_CHECKS
        self.max_reprompts = max_reprompts

    # -- lifecycle ---------------------------------------------------------

    def start_session(
        self,
        user_id: str,
        thread_id: str,
        summary: str,
        severity: Optional[str] = None,
        guild_id: Optional[str] = None,
    ) -> SessionReply:
        """Create (or replace) the session for this user and thread."""
        session = Session(
            user_id=user_id,
            thread_id=thread_id,
            guild_id=guild_id,
            summary=summary.strip(),
            severity=severity,
        )
        if self.store.get(session.key) is not None:
            logger.info("Replacing existing session for user=%s thread=%s", user_id, thread_id)
            self.store.delete(session.key)
        self.store.put(session)
        logger.info("Session started for user=%s thread=%s", user_id, thread_id)
        return SessionReply(messages=[DESCRIPTION_PROMPT])

    def get_session(self, user_id: str, thread_id: str) -> Optional[Session]:
        return self.store.get((user_id, thread_id))

    def abandon(self, user_id: str, thread_id: str) -> bool:
        removed = self.store.delete((user_id, thread_id))
        if removed:
            logger.info("Session abandoned for user=%s thread=%s", user_id, thread_id)
        return removed

    # -- messages ----------------------------------------------------------

    async def handle_message(self, user_id: str, thread_id: str, content: str) -> Optional[SessionReply]:
        """
        Process one user message.

        Returns
        -------
        SessionReply or None
            None when the message is not for this user (thread owned by
            someone else), carries no text, or belongs to a generation whose
            session was deleted meanwhile.
        """
        key = (user_id, thread_id)
        session = self.store.get(key)
        if session is None:
            if self.store.thread_owned_by_other(user_id, thread_id):
                return None
            return SessionReply(messages=[EXPIRED_MESSAGE], outcome="expired", end_session=True)

        if not content or not content.strip():
            return None

        lock = self.store.lock_for(key)
        if lock.locked():
            logger.info("Rejected message during generation for user=%s thread=%s", user_id, thread_id)
            return SessionReply(messages=[BUSY_MESSAGE], outcome="busy")

        async with lock:
            self.store.touch_session(session)
            return await self._dispatch(session, content.strip())

    async def _dispatch(self, session: Session, content: str) -> Optional[SessionReply]:
        step = session.step

        if step == Step.DESCRIPTION:
            session.detailed_description = content
            self._drop_outstanding(session, _DESCRIPTION_FIELDS)
            if not session.in_followup:
                session.step = Step.STEPS
                return SessionReply(messages=[STEPS_PROMPT])
            return await self._continue_followup(session, progressed=True)

        if step == Step.STEPS:
            session.steps.extend(split_steps(content))
            self._drop_outstanding(session, _STEP_FIELDS)
            if not session.in_followup:
                session.step = Step.ENVIRONMENT
                return SessionReply(messages=[ENVIRONMENT_PROMPT])
            return await self._continue_followup(session, progressed=True)

        if step == Step.ENVIRONMENT:
            session.add_environment_notes(content)
            if not session.in_followup:
                return await self._generate(session)
            before = len(session.missing_fields)
            session.missing_fields = [
                f for f in session.missing_fields
                if not looks_like_field_provided(f, content, self.field_checks)
            ]
            return await self._continue_followup(session, progressed=len(session.missing_fields) < before)

        # Step.DONE only exists while the lock is held by a generation.
        return SessionReply(messages=[BUSY_MESSAGE], outcome="busy")

    @staticmethod
    def _drop_outstanding(session: Session, fields) -> None:
        session.missing_fields = [f for f in session.missing_fields if f not in fields]

    async def _continue_followup(self, session: Session, progressed: bool) -> Optional[SessionReply]:
        """After an answer to an AI request: generate, re-prompt, or give up."""
        if not session.missing_fields:
            return await self._generate(session)

        if not progressed:
            session.reprompt_count += 1
            if session.reprompt_count > self.max_reprompts:
                logger.warning(
                    "Outstanding fields %s never satisfied for thread=%s; ending with template",
                    session.missing_fields, session.thread_id,
                )
                return self._end(session, SessionReply(
                    messages=[UNSATISFIED_MESSAGE, manual_template(session)],
                    outcome="template",
                    end_session=True,
                ))

        next_field = session.missing_fields[0]
        session.step = step_for_field(next_field)
        return SessionReply(
            messages=[f"Thanks! The AI still needs **{friendly_label(next_field)}** to finish the report. Please provide it now."],
            outcome="need_more_info",
            requested_fields=[next_field],
        )

    # -- generation --------------------------------------------------------

    async def _generate(self, session: Session) -> Optional[SessionReply]:
        session.step = Step.DONE
        report_input = session.to_report_input()
        logger.info("Generating bug report for thread=%s", session.thread_id)

        try:
            report = await self.generate(report_input)
        except NeedMoreInfoError as err:
            if not self.store.is_current(session):
                logger.info("Discarding insufficiency result for deleted session thread=%s", session.thread_id)
                return None
            reply = self.handle_need_more_info(session, err)
            if reply.end_session:
                self.store.delete(session.key)
            else:
                self.store.touch_session(session)
            return reply
        except ReportGenerationError as err:
            logger.error("Failed to generate bug report for thread=%s: %s", session.thread_id, err)
            if not self.store.is_current(session):
                return None
            return self._end(session, SessionReply(
                messages=[FATAL_MESSAGE, manual_template(session)],
                outcome="error",
                end_session=True,
            ))
        except BaseException:
            # Unexpected failure or cancellation: leave DONE so the next
            # message retries instead of being answered with "busy".
            if session.step == Step.DONE:
                session.step = Step.ENVIRONMENT
            logger.exception("Generation aborted for thread=%s; session reopened", session.thread_id)
            raise

        if not self.store.is_current(session):
            logger.info("Discarding report for deleted session thread=%s", session.thread_id)
            return None
        return self._end(session, SessionReply(
            messages=[SUCCESS_MESSAGE, format_report_text(report)],
            outcome="success",
            end_session=True,
            report=report,
        ))

    def _end(self, session: Session, reply: SessionReply) -> SessionReply:
        self.store.delete(session.key)
        logger.info("Session ended (%s) for thread=%s", reply.outcome, session.thread_id)
        return reply

    def handle_need_more_info(self, session: Session, err: NeedMoreInfoError) -> SessionReply:
        """
        Fold an insufficiency signal into ``session``.

        Only fields never asked before count as new. With nothing new the
        repeat counter grows; past MAX_REPROMPTS the reply carries the manual
        template and ``end_session`` is set. The caller deletes the session.
        """
        new_fields = [f for f in dict.fromkeys(err.missing_fields) if f not in session.asked_fields]

        if not new_fields:
            session.reprompt_count += 1
            if session.reprompt_count > self.max_reprompts:
                return SessionReply(
                    messages=[REPEATED_REQUEST_MESSAGE, manual_template(session)],
                    outcome="template",
                    end_session=True,
                )
            # Next environment answer goes straight back to generation.
            session.missing_fields = []
            session.step = Step.ENVIRONMENT
            return SessionReply(messages=[CLARIFY_MESSAGE], outcome="need_more_info")

        session.missing_fields = new_fields
        session.asked_fields.extend(new_fields)
        next_field = new_fields[0]
        session.step = step_for_field(next_field)

        requested = ", ".join(friendly_label(f) for f in new_fields)
        message = (
            f"The AI needs more information before it can finish the report. Please provide: **{requested}**."
            f"\n\nStart with **{friendly_label(next_field)}** now."
        )
        if err.details:
            message = f"{message}\n\n> {err.details}"
        return SessionReply(messages=[message], outcome="need_more_info", requested_fields=new_fields)
