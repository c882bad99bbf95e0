"""
Insufficiency Protocol Tests
============================
Covers:
    - Field decoding into the closed vocabulary
    - Ordering and de-duplication
    - Structured flag strategy
    - Free-text recovery strategy
    - NeedMoreInfoError shape
"""
import pytest

from bugbot.core.errors import NeedMoreInfoError, ReportGenerationError
from bugbot.llm.insufficiency import (
    NOT_ACTIONABLE_MESSAGE,
    FreeTextRecoveryStrategy,
    StructuredFlagStrategy,
    decode_field,
    decode_missing_fields,
)


# ===================================================================
# Decoding
# ===================================================================
@pytest.mark.parametrize("requested, expected", [
    ("browser", "appVersion"),
    ("Browser version", "appVersion"),
    ("OS", "os"),
    ("steps", "stepsToReproduce"),
    ("Steps to reproduce", "stepsToReproduce"),
    ("networkInfo", "networkInfo"),
    ("PLATFORM", "platform"),
    ("favourite colour", None),
    ("", None),
])
def test_decode_field(requested, expected):
    assert decode_field(requested) == expected


def test_decode_keeps_order_and_drops_duplicates():
    assert decode_missing_fields(["steps", "browser", "stepsToReproduce", "OS", "nonsense"]) == [
        "stepsToReproduce", "appVersion", "os",
    ]


def test_decoding_is_substring_based():
    # "Chrome OS version" mentions neither browser nor steps, but contains "os"
    assert decode_field("Chrome OS version") == "os"
    # "appVersion" wording without a keyword falls through to exact lookup
    assert decode_field("app version") is None


def test_keyword_for_already_decoded_field_falls_through():
    assert decode_missing_fields(["browser", "browser OS"]) == ["appVersion", "os"]
    assert decode_missing_fields(["OS", "os steps"]) == ["os", "stepsToReproduce"]
    assert decode_field("browser", taken=["appVersion"]) is None
    assert decode_field("appVersion", taken=["appVersion"]) == "appVersion"


# ===================================================================
# Error shape
# ===================================================================
def test_need_more_info_error_deduplicates():
    err = NeedMoreInfoError(["os", "os", "platform"], "why")
    assert err.missing_fields == ["os", "platform"]
    assert err.details == "why"
    assert isinstance(err, ReportGenerationError)


def test_need_more_info_error_defaults():
    err = NeedMoreInfoError()
    assert err.missing_fields == []
    assert err.details is None
    assert str(err)


# ===================================================================
# Structured strategy
# ===================================================================
def test_structured_ignores_reports():
    assert StructuredFlagStrategy().detect({"title": "x", "needMoreInfo": False}) is None


def test_structured_accepts_comma_separated_string():
    signal = StructuredFlagStrategy().detect({"needMoreInfo": "true", "missingFields": "browser, os"})
    assert signal.missing_fields == ["appVersion", "os"]


def test_structured_empty_decode_is_not_actionable():
    signal = StructuredFlagStrategy().detect({"needMoreInfo": True, "missingFields": ["mood"]})
    assert signal.missing_fields == []
    assert signal.details == NOT_ACTIONABLE_MESSAGE


def test_structured_keeps_backend_message_when_empty():
    signal = StructuredFlagStrategy().detect({"needMoreInfo": True, "missingFields": [], "message": "Say more"})
    assert signal.missing_fields == []
    assert signal.details == "Say more"


# ===================================================================
# Free-text strategy
# ===================================================================
def test_free_text_quoted_items():
    signal = FreeTextRecoveryStrategy().detect(
        "Sorry, I can't. {needMoreInfo: true, 'missingFields': ['browser', 'steps'], 'message': 'x'"
    )
    assert signal.missing_fields == ["appVersion", "stepsToReproduce"]


def test_free_text_bare_items():
    signal = FreeTextRecoveryStrategy().detect("missingFields=[os, platform]")
    assert signal.missing_fields == ["os", "platform"]
    assert signal.details is None


def test_free_text_message_unescaped():
    signal = FreeTextRecoveryStrategy().detect('"missingFields": ["os"], "message": "Need \\"exact\\" OS"')
    assert signal.details == 'Need "exact" OS'


def test_free_text_without_fields_is_none():
    assert FreeTextRecoveryStrategy().detect("needMoreInfo: true, message: \"hi\"") is None
    assert FreeTextRecoveryStrategy().detect("") is None
