"""
Unit Tests — Output Formatter and Bug Form Link
===============================================
Validates the exact rendering of reports, the manual template and the
pre-filled bug form URL. Every assertion uses exact string equality
where the format is a contract.
"""
from urllib.parse import parse_qs, urlsplit

import pytest

from bugbot.core.output_formatter import (
    TEMPLATE_HEADER,
    build_manual_template,
    format_environment,
    format_report_text,
    format_steps,
)
from bugbot.models.bug_report import CanonicalReport
from bugbot.services.bug_site import build_bug_report_url, build_form_description

FORM = "https://bugs.example.com/new?form=7"


def _report(**overrides) -> CanonicalReport:
    fields = dict(
        title="Voice drops after unmute",
        description="Audio stops after unmuting.",
        steps_to_reproduce=["Join a stage channel", "Unmute"],
        environment={"platform": "Desktop", "os": "Windows 11"},
        severity="high",
    )
    fields.update(overrides)
    return CanonicalReport(**fields)


# ---------------------------------------------------------------------------
# 1. Building blocks
# ---------------------------------------------------------------------------
class TestBuildingBlocks:

    def test_format_steps_numbered(self):
        assert format_steps(["a", "b"]) == "1. a\n2. b"

    def test_format_steps_empty(self):
        assert format_steps([]) == ""

    def test_environment_in_label_order(self):
        env = {"os": "Windows 11", "platform": "Desktop", "appVersion": "stable 1"}
        assert format_environment(env) == "Platform: Desktop | OS: Windows 11 | App Version: stable 1"

    def test_environment_skips_empty_and_unknown(self):
        assert format_environment({"os": "", "foo": "bar"}) == ""


# ---------------------------------------------------------------------------
# 2. Report text
# ---------------------------------------------------------------------------
class TestReportText:

    def test_minimal_report(self):
        text = format_report_text(_report(environment={}, severity="unspecified"))
        assert text == (
            "**Title:** Voice drops after unmute\n\n"
            "**Description:**\nAudio stops after unmuting.\n\n"
            "**Steps to Reproduce:**\n1. Join a stage channel\n2. Unmute\n\n"
            "**Severity:** unspecified"
        )

    def test_optional_sections_rendered(self):
        text = format_report_text(_report(
            expected_result="Audio continues",
            component="Voice (inferred)",
            reproducibility_score=75,
            reasoning="Happens every time.",
        ))
        assert "**Expected Result:** Audio continues" in text
        assert "**Environment:** Platform: Desktop | OS: Windows 11" in text
        assert "**Component:** Voice (inferred)" in text
        assert "**Reproducibility Score:** 75/100" in text
        assert "**AI Reasoning:**\nHappens every time." in text


# ---------------------------------------------------------------------------
# 3. Manual template
# ---------------------------------------------------------------------------
class TestManualTemplate:

    def test_template_exact(self):
        template = build_manual_template("Crash", "It crashes", ["Open", "Click"], "Windows | stable")
        assert template == (
            "**Template:**\n"
            "**Title:** Crash\n"
            "**What happened:** It crashes\n"
            "**Steps to reproduce:**\n1. Open\n2. Click\n\n"
            "**Environment:** Windows | stable"
        )

    def test_template_with_nothing_collected(self):
        template = build_manual_template("Crash", None, [], None)
        assert template.startswith(TEMPLATE_HEADER)
        assert "**What happened:** \n" in template
        assert template.endswith("**Environment:** ")


# ---------------------------------------------------------------------------
# 4. Bug form URL
# ---------------------------------------------------------------------------
class TestBugFormUrl:

    def test_prefilled_url(self):
        report = _report(description="Short.", steps_to_reproduce=["Go"], environment={})
        url = build_bug_report_url(report, base_url=FORM)
        assert len(url) <= 500
        query = parse_qs(urlsplit(url).query)
        assert query["form"] == ["7"]
        assert query["subject"] == ["Voice drops after unmute"]
        assert "**Steps to Reproduce**\n1. Go" in query["description"][0]

    def test_long_report_falls_back_to_bare_form(self):
        report = _report(description="x" * 2000)
        assert build_bug_report_url(report, base_url=FORM) == FORM

    def test_form_description_placeholders(self):
        description = build_form_description(_report(environment={}))
        assert "**Expected Result**\n- Not specified -" in description
        assert "**Client Info**\n- Not specified -" in description

    @pytest.mark.parametrize("base", ["https://bugs.example.com/new", FORM])
    def test_separator(self, base):
        url = build_bug_report_url(_report(description="d", steps_to_reproduce=[], environment={}), base_url=base)
        assert url.count("?") == 1
