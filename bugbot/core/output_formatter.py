"""
Output Formatter
================
THE SINGLE SOURCE OF TRUTH for user-facing report text.

STRICT DETERMINISM CONTRACT:
  - This module NEVER calls an LLM.
  - This module NEVER reads environment variables.
  - Given the same inputs, it ALWAYS returns the exact same string.

Renderings:
  format_report_text()     — full markdown rendering of a CanonicalReport
  format_environment()     — "Platform: … | OS: … | App Version: …"
  build_manual_template()  — the copy/paste template offered when the AI
                             cannot finish a report; always starts with the
                             literal "**Template:**" header
"""
from typing import Any, Dict, Iterable, Optional

from bugbot.models.bug_report import CanonicalReport

TEMPLATE_HEADER = "**Template:**"

# Environment keys in display order → label
ENVIRONMENT_LABELS = (
    ("platform", "Platform"),
    ("clientType", "Client"),
    ("os", "OS"),
    ("appVersion", "App Version"),
    ("clientInfo", "Client Info"),
    ("browserType", "Browser"),
    ("networkInfo", "Network"),
    ("additionalDetails", "Details"),
)


def format_steps(steps: Iterable[str]) -> str:
    """Numbered list, one step per line."""
    return "\n".join(f"{idx}. {step}" for idx, step in enumerate(steps, start=1))


def format_environment(environment: Dict[str, Any]) -> str:
    parts = [
        f"{label}: {environment[key]}"
        for key, label in ENVIRONMENT_LABELS
        if environment.get(key)
    ]
    return " | ".join(parts)


def format_report_text(report: CanonicalReport) -> str:
    """Render every populated field of ``report`` as markdown sections."""
    parts = [
        f"**Title:** {report.title}",
        f"**Description:**\n{report.description}",
    ]
    if report.steps_to_reproduce:
        parts.append(f"**Steps to Reproduce:**\n{format_steps(report.steps_to_reproduce)}")
    if report.expected_result:
        parts.append(f"**Expected Result:** {report.expected_result}")
    if report.actual_result:
        parts.append(f"**Actual Result:** {report.actual_result}")

    environment = format_environment(report.environment)
    if environment:
        parts.append(f"**Environment:** {environment}")

    parts.append(f"**Severity:** {report.severity}")
    if report.component:
        parts.append(f"**Component:** {report.component}")
    if report.attachments:
        parts.append("**Attachments:**\n" + "\n".join(report.attachments))
    if report.reasoning:
        parts.append(f"**AI Reasoning:**\n{report.reasoning}")
    if report.reproducibility_score is not None:
        parts.append(f"**Reproducibility Score:** {report.reproducibility_score:g}/100")
    return "\n\n".join(parts)


def build_manual_template(
    summary: str,
    detailed_description: Optional[str],
    steps: Iterable[str],
    environment_notes: Optional[str],
) -> str:
    """Copy/paste template built only from what the user actually provided."""
    return (
        f"{TEMPLATE_HEADER}\n"
        f"**Title:** {summary}\n"
        f"**What happened:** {detailed_description or ''}\n"
        f"**Steps to reproduce:**\n{format_steps(steps)}\n\n"
        f"**Environment:** {environment_notes or ''}"
    )
