"""
Bug Site Link
=============
Builds a link to the official bug form with subject and description pre-filled.

Link buttons reject URLs longer than MAX_FORM_URL_LENGTH; when the pre-filled
link would exceed it, the bare form URL is returned and the caller relies on
the rendered report text for copy/paste.
"""
from urllib.parse import urlencode

from bugbot.core.config import BUG_FORM_URL
from bugbot.core.constants import MAX_FORM_URL_LENGTH
from bugbot.core.output_formatter import format_environment, format_steps
from bugbot.models.bug_report import CanonicalReport

NOT_SPECIFIED = "- Not specified -"


def build_form_description(report: CanonicalReport) -> str:
    return "\n".join([
        "**Description**",
        report.description,
        "",
        "**Steps to Reproduce**",
        format_steps(report.steps_to_reproduce) or NOT_SPECIFIED,
        "",
        "**Expected Result**",
        report.expected_result or NOT_SPECIFIED,
        "",
        "**Actual Result**",
        report.actual_result or NOT_SPECIFIED,
        "",
        "**Client Info**",
        format_environment(report.environment).replace(" | ", "\n") or NOT_SPECIFIED,
    ])


def build_bug_report_url(report: CanonicalReport, base_url: str = BUG_FORM_URL) -> str:
    """Pre-filled form URL, or ``base_url`` itself when the result would be too long."""
    separator = "&" if "?" in base_url else "?"
    query = urlencode({
        "subject": report.title,
        "description": build_form_description(report),
    })
    url = f"{base_url}{separator}{query}"
    if len(url) > MAX_FORM_URL_LENGTH:
        return base_url
    return url
