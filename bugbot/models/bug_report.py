"""
Bug Report Models
=================
Pydantic models for the raw submission and the validated report.
This is the contract between the normalizer and all downstream consumers.

ReportInput (immutable):
    raw_summary           — one-line summary typed by the user (required)
    detailed_description  — what happened, in the user's words
    steps                 — ordered reproduction steps
    environment_notes     — free-form setup notes; append-only across follow-ups
    severity              — free-text impact description
    component             — optional component hint

CanonicalReport (wire keys are camelCase):
    title ≤200, description ≤5000, stepsToReproduce (≤500 each),
    expectedResult/actualResult ≤1000, environment (free-form object),
    severity ∈ SEVERITIES, component, attachments ≤10, sources,
    reasoning ≤2000, reproducibilityScore 0–100
"""
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from bugbot.core.constants import (
    DESCRIPTION_MAX,
    MAX_ATTACHMENTS,
    REASONING_MAX,
    RESULT_MAX,
    SCORE_MAX,
    SCORE_MIN,
    STEP_MAX,
    TITLE_MAX,
)

Severity = Literal["low", "medium", "high", "critical", "unspecified"]
Step = Annotated[str, Field(max_length=STEP_MAX)]


class ReportInput(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    raw_summary: str = Field(alias="rawSummary")
    detailed_description: Optional[str] = Field(default=None, alias="detailedDescription")
    steps: List[str] = Field(default_factory=list)
    environment_notes: Optional[str] = Field(default=None, alias="environmentNotes")
    severity: Optional[str] = None
    component: Optional[str] = None

    def merge(
        self,
        detailed_description: Optional[str] = None,
        steps: Optional[Iterable[str]] = None,
        environment_notes: Iterable[str] = (),
    ) -> "ReportInput":
        """
        Return a new input for a follow-up round.

        Description and steps replace the previous values only when given.
        Environment notes are appended, never replaced.
        """
        notes = [n.strip() for n in [self.environment_notes or "", *environment_notes] if n and n.strip()]
        return self.model_copy(update={
            "detailed_description": detailed_description or self.detailed_description,
            "steps": list(steps) if steps is not None else list(self.steps),
            "environment_notes": " | ".join(notes) or None,
        })

    def to_prompt_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CanonicalReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(max_length=TITLE_MAX)
    description: str = Field(max_length=DESCRIPTION_MAX)
    steps_to_reproduce: List[Step] = Field(alias="stepsToReproduce")
    expected_result: Optional[str] = Field(default=None, max_length=RESULT_MAX, alias="expectedResult")
    actual_result: Optional[str] = Field(default=None, max_length=RESULT_MAX, alias="actualResult")
    environment: Dict[str, Any]
    severity: Severity = "unspecified"
    component: Optional[str] = None
    attachments: Optional[List[str]] = Field(default=None, max_length=MAX_ATTACHMENTS)
    sources: Optional[List[str]] = None
    reasoning: Optional[str] = Field(default=None, max_length=REASONING_MAX)
    reproducibility_score: Optional[float] = Field(
        default=None, ge=SCORE_MIN, le=SCORE_MAX, alias="reproducibilityScore"
    )

    def to_wire(self) -> Dict[str, Any]:
        """Serialise with the camelCase keys of the wire schema."""
        return self.model_dump(by_alias=True, exclude_none=True)
