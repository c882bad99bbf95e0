"""
Session State
Dataclass holding one slot-filling conversation.
Fields: owner identity, current step, collected input, outstanding/asked fields, repeat counter.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from bugbot.models.bug_report import ReportInput

SessionKey = Tuple[str, str]  # (user_id, thread_id)


class Step(str, Enum):
    DESCRIPTION = "description"
    STEPS = "steps"
    ENVIRONMENT = "environment"
    DONE = "done"


@dataclass
class Session:
    # Owner
    user_id: str
    thread_id: str
    guild_id: Optional[str] = None

    # Collected input
    summary: str = ""
    severity: Optional[str] = None
    detailed_description: Optional[str] = None
    steps: List[str] = field(default_factory=list)
    environment_notes: Optional[str] = None

    # Progress
    step: Step = Step.DESCRIPTION
    missing_fields: List[str] = field(default_factory=list)   # outstanding
    asked_fields: List[str] = field(default_factory=list)     # every field ever requested
    reprompt_count: int = 0
    last_activity: float = 0.0

    @property
    def key(self) -> SessionKey:
        return (self.user_id, self.thread_id)

    @property
    def in_followup(self) -> bool:
        """True once the AI has asked for anything."""
        return bool(self.asked_fields)

    def add_environment_notes(self, text: str) -> None:
        """Append-only; earlier notes are never overwritten."""
        text = text.strip()
        if not text:
            return
        self.environment_notes = f"{self.environment_notes} | {text}" if self.environment_notes else text

    def to_report_input(self) -> ReportInput:
        return ReportInput(
            raw_summary=self.summary,
            detailed_description=self.detailed_description,
            steps=list(self.steps),
            environment_notes=self.environment_notes,
            severity=self.severity,
        )
