"""
Response Normalizer
===================
Turns untrusted backend text into a CanonicalReport.

Outcomes:
    - a schema-valid CanonicalReport (sanitized backend output)
    - NeedMoreInfoError (the backend asked for more information)
    - the fixed fallback report (anything else: prose, broken JSON, bad types)

No other exception ever leaves normalize(). Given the same text, the result
is always structurally identical.

Pipeline:
    1. Extraction   — first balanced top-level {...} (string-literal aware),
                      else the whole text as JSON
    2. Insufficiency — structured needMoreInfo flag on the parsed document
    3. Sanitization — field-by-field copy into a fresh candidate: truncate,
                      replace placeholders, filter steps, clean attachments,
                      clamp the score, coerce severity
    4. Validation   — pydantic CanonicalReport
    5. Annotation   — unknown components get " (inferred)"

Whenever parsing or validation fails, the free-text insufficiency recovery
runs before the fallback is returned.
"""
import json
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from bugbot.core.config import KNOWN_COMPONENTS
from bugbot.core.constants import (
    COMPONENT_MAX,
    DEFAULT_DESCRIPTION,
    DEFAULT_SEVERITY,
    DEFAULT_TITLE,
    DESCRIPTION_MAX,
    INFERRED_MARKER,
    INSUFFICIENCY_SENTINEL,
    MAX_ATTACHMENTS,
    PLACEHOLDER_STEP,
    REASONING_MAX,
    RESULT_MAX,
    SCORE_MAX,
    SCORE_MIN,
    SENTINEL_REPLACEMENT,
    SEVERITIES,
    STEP_MAX,
    TITLE_MAX,
)
from bugbot.llm.insufficiency import FreeTextRecoveryStrategy, StructuredFlagStrategy
from bugbot.models.bug_report import CanonicalReport
from bugbot.utils.url_sanitizer import sanitize_urls

logger = logging.getLogger(__name__)

_UNPARSED = object()

# Matches NEED_MORE_INFO, needMoreInfo and "needMoreInfo": true
_SENTINEL_RE = re.compile(
    r"\"?" + "_?".join(re.escape(part) for part in INSUFFICIENCY_SENTINEL.split("_"))
    + r"\"?(?:\s*[:=]\s*\"?true\"?)?",
    re.IGNORECASE,
)

# Template echoes and null-ish values a backend sometimes returns verbatim
_PLACEHOLDERS = frozenset({
    "",
    "untitled bug report",
    "no description provided",
    "detailed description",
    "detailed description from input",
    "description from input",
    "clear title from input",
    "title",
    "description",
    "string",
    "null",
    "none",
    "undefined",
    "n/a",
})

_CODE_FENCE_RE = re.compile(r"```[a-zA-Z0-9_-]*")
_HTML_TAG_RE = re.compile(r"<[^>\n]{1,200}>")
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------
def extract_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced top-level ``{...}`` substring, or None.

    Braces inside JSON string literals do not count towards the depth.
    """
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for index, ch in enumerate(text):
        if depth > 0 and in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == "{":
            if depth == 0:
                start = index
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
        elif ch == '"' and depth > 0:
            in_string = True
    return None


def parse_document(text: str) -> Any:
    """Parse the embedded object, then the whole text; ``_UNPARSED`` if both fail."""
    candidates = []
    embedded = extract_json_object(text)
    if embedded is not None:
        candidates.append(embedded)
    candidates.append(text.strip())

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except (ValueError, RecursionError):
            continue
    return _UNPARSED


# ---------------------------------------------------------------------------
# Field Sanitizers
# ---------------------------------------------------------------------------
def contains_sentinel(value: str) -> bool:
    return bool(_SENTINEL_RE.search(value))


def is_placeholder(value: Any) -> bool:
    """True for non-strings, blanks, template echoes and the insufficiency sentinel."""
    if not isinstance(value, str):
        return True
    normalised = value.strip().lower().rstrip(".")
    return normalised in _PLACEHOLDERS or contains_sentinel(value)


def clip(value: str, limit: int) -> str:
    return value[:limit]


def optional_text(value: Any, limit: int) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    return clip(value.strip(), limit)


def clean_steps(value: Any) -> List[str]:
    """Keep non-blank string entries only, each clipped to the step ceiling."""
    if not isinstance(value, list):
        return []
    return [clip(step.strip(), STEP_MAX) for step in value if isinstance(step, str) and step.strip()]


def coerce_severity(value: Any) -> str:
    """Map free-form severity text onto the closed enum; unknown → "unspecified"."""
    if not isinstance(value, str):
        return DEFAULT_SEVERITY
    lower = value.strip().lower()
    if lower in SEVERITIES:
        return lower
    for level in ("critical", "high", "medium", "low"):
        if re.search(rf"\b{level}\b", lower):
            return level
    return DEFAULT_SEVERITY


def clamp_score(value: Any) -> Optional[float]:
    """Clamp a reproducibility score into [0, 100]; unusable values are dropped."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        # Clamp before converting; huge JSON integers overflow float()
        return float(max(SCORE_MIN, min(SCORE_MAX, value)))
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except (ValueError, OverflowError):
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return max(float(SCORE_MIN), min(float(SCORE_MAX), number))


def clean_string_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, list):
        return None
    items = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return items or None


def sanitize_raw_text(text: str) -> str:
    """Strip fences, tags and control characters; replace the insufficiency sentinel."""
    cleaned = _CODE_FENCE_RE.sub("", text)
    cleaned = _HTML_TAG_RE.sub("", cleaned)
    cleaned = _CONTROL_CHARS_RE.sub("", cleaned)
    cleaned = _SENTINEL_RE.sub(SENTINEL_REPLACEMENT, cleaned)
    cleaned = _BLANK_LINES_RE.sub("\n\n", cleaned)
    return cleaned.strip()


# ---------------------------------------------------------------------------
# Normalizer
# ---------------------------------------------------------------------------
class ResponseNormalizer:
    """
    Reconciles raw backend text with the canonical report schema.

    Parameters
    ----------
    known_components : iterable of str or None
        Component whitelist. Components outside it are kept but marked
        " (inferred)". An empty list disables the annotation.
    """

    def __init__(self, known_components: Optional[Iterable[str]] = None) -> None:
        components = KNOWN_COMPONENTS if known_components is None else known_components
        self.known_components = {c.strip().lower() for c in components if c and c.strip()}
        self.structured_strategy = StructuredFlagStrategy()
        self.free_text_strategy = FreeTextRecoveryStrategy()

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    def normalize(self, raw_text: Any) -> CanonicalReport:
        """
        Normalize one backend response.

        Raises
        ------
        NeedMoreInfoError
            The response is an insufficiency payload (structured or recovered).
        """
        text = raw_text if isinstance(raw_text, str) else ("" if raw_text is None else str(raw_text))

        document = parse_document(text)
        if document is _UNPARSED or not isinstance(document, dict):
            logger.warning("Backend response is not a JSON object; trying recovery")
            return self._recover_or_fallback(text)

        signal = self.structured_strategy.detect(document)
        if signal is not None:
            logger.info("Backend requested more info: %s", signal.missing_fields)
            raise signal

        try:
            report = CanonicalReport.model_validate(self.sanitize(document))
        except (ValidationError, TypeError, ValueError, OverflowError) as e:
            logger.warning("Sanitized candidate failed validation: %s", e)
            return self._recover_or_fallback(text)

        return self.annotate_component(report)

    def sanitize(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Copy every known field of ``document`` into a fresh, cleaned candidate."""
        title = document.get("title")
        title = DEFAULT_TITLE if is_placeholder(title) else clip(title.strip(), TITLE_MAX)

        description = document.get("description")
        if is_placeholder(description):
            description = DEFAULT_DESCRIPTION
        else:
            description = clip(description.strip(), DESCRIPTION_MAX)

        steps = clean_steps(document.get("stepsToReproduce"))
        if not steps and description != DEFAULT_DESCRIPTION:
            steps = [PLACEHOLDER_STEP]

        environment = document.get("environment")
        candidate: Dict[str, Any] = {
            "title": title,
            "description": description,
            "stepsToReproduce": steps,
            "environment": {} if environment is None else environment,
            "severity": coerce_severity(document.get("severity")),
        }

        optional = {
            "expectedResult": optional_text(document.get("expectedResult"), RESULT_MAX),
            "actualResult": optional_text(document.get("actualResult"), RESULT_MAX),
            "component": optional_text(document.get("component"), COMPONENT_MAX),
            "reasoning": optional_text(document.get("reasoning"), REASONING_MAX),
            "reproducibilityScore": clamp_score(document.get("reproducibilityScore")),
            "sources": clean_string_list(document.get("sources")),
        }

        attachments = document.get("attachments")
        if isinstance(attachments, list):
            optional["attachments"] = sanitize_urls(attachments, limit=MAX_ATTACHMENTS) or None

        candidate.update({k: v for k, v in optional.items() if v is not None})
        return candidate

    def annotate_component(self, report: CanonicalReport) -> CanonicalReport:
        component = report.component
        if not component or not self.known_components:
            return report
        if component.lower() in self.known_components or component.endswith(INFERRED_MARKER):
            return report
        return report.model_copy(update={"component": f"{component}{INFERRED_MARKER}"})

    def build_fallback(self, raw_text: str) -> CanonicalReport:
        """The fixed report returned for anything that cannot be reconciled."""
        description = clip(sanitize_raw_text(raw_text), DESCRIPTION_MAX) or DEFAULT_DESCRIPTION
        return CanonicalReport(
            title=DEFAULT_TITLE,
            description=description,
            steps_to_reproduce=[PLACEHOLDER_STEP],
            environment={},
            severity=DEFAULT_SEVERITY,
        )

    # -------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------
    def _recover_or_fallback(self, text: str) -> CanonicalReport:
        signal = self.free_text_strategy.detect(text)
        if signal is not None:
            logger.info("Recovered insufficiency payload from free text: %s", signal.missing_fields)
            raise signal
        logger.warning("Using fallback report for unparseable backend output")
        return self.build_fallback(text)


def normalize(raw_text: Any) -> CanonicalReport:
    """Normalize with the configured component whitelist."""
    return ResponseNormalizer().normalize(raw_text)
