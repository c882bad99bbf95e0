"""
Constants
Centralised storage for schema limits, severity levels and fixed report text.
"""
TITLE_MAX = 200
DESCRIPTION_MAX = 5000
STEP_MAX = 500
RESULT_MAX = 1000
REASONING_MAX = 2000
COMPONENT_MAX = 200
MAX_ATTACHMENTS = 10
SCORE_MIN = 0
SCORE_MAX = 100

SEVERITIES = ("low", "medium", "high", "critical", "unspecified")
DEFAULT_SEVERITY = "unspecified"

DEFAULT_TITLE = "Untitled bug report"
DEFAULT_DESCRIPTION = "No description provided."
PLACEHOLDER_STEP = "See description above"
INFERRED_MARKER = " (inferred)"

# Literal marker a backend may echo into free text when it wants more input
INSUFFICIENCY_SENTINEL = "NEED_MORE_INFO"
SENTINEL_REPLACEMENT = "[the AI requested more information]"

# Repeat requests tolerated before the session falls back to a manual template
MAX_REPROMPTS = 2

# Bug form buttons reject links longer than this
MAX_FORM_URL_LENGTH = 500
