"""
Insufficiency Protocol
======================
Recognises a backend's "I need more information" answer and turns it into a
NeedMoreInfoError carrying canonical field identifiers.

Two detection strategies, tried in a fixed order by the normalizer:
    1. StructuredFlagStrategy  — the parsed JSON document has needMoreInfo: true
    2. FreeTextRecoveryStrategy — the raw text is not JSON, but a missingFields
                                  array (and maybe a message) can be recovered
                                  with regular expressions

Field Decoding:
    Models phrase requests loosely ("browser", "OS version", "steps").
    Each requested name is decoded by keyword into a small closed vocabulary;
    anything unrecognised is dropped. Decoding is substring based and lossy:
    wording that matches no rule yields an empty field list.
"""
import json
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bugbot.core.errors import NeedMoreInfoError

# ---------------------------------------------------------------------------
# Canonical Vocabulary
# ---------------------------------------------------------------------------
CANONICAL_FIELDS: Tuple[str, ...] = (
    "detailedDescription",
    "description",
    "stepsToReproduce",
    "environment",
    "platform",
    "os",
    "appVersion",
    "networkInfo",
    "additionalDetails",
    "severity",
    "component",
    "attachments",
)

_CANONICAL_BY_LOWER = {name.lower(): name for name in CANONICAL_FIELDS}

# Keyword rules, checked in order before the exact-name lookup
_KEYWORD_RULES: Tuple[Tuple[str, str], ...] = (
    ("browser", "appVersion"),
    ("os", "os"),
    ("steps", "stepsToReproduce"),
)

NOT_ACTIONABLE_MESSAGE = (
    "Model requested more info but none of the requested fields are recognized"
)


def decode_field(requested: str, taken: Iterable[str] = ()) -> Optional[str]:
    """
    Map one free-text field request to a canonical identifier.

    Keyword rules whose field is already in ``taken`` are skipped, so
    "browser OS" after "browser" still yields ``os``. Returns None when the
    request matches nothing in the vocabulary.
    """
    lower = requested.strip().lower()
    if not lower:
        return None
    for keyword, canonical in _KEYWORD_RULES:
        if keyword in lower and canonical not in taken:
            return canonical
    return _CANONICAL_BY_LOWER.get(lower)


def decode_missing_fields(requested: List[Any]) -> List[str]:
    """Decode, drop unrecognised names and de-duplicate, keeping first-seen order."""
    decoded: List[str] = []
    for item in requested:
        canonical = decode_field(str(item), taken=decoded)
        if canonical and canonical not in decoded:
            decoded.append(canonical)
    return decoded


def build_signal(requested: List[Any], message: Optional[str]) -> NeedMoreInfoError:
    """Build the error for a backend request; an empty decode keeps an explanatory message."""
    missing = decode_missing_fields(requested)
    if not missing:
        return NeedMoreInfoError([], message or NOT_ACTIONABLE_MESSAGE)
    return NeedMoreInfoError(missing, message)


def _is_truthy_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


# ---------------------------------------------------------------------------
# Strategy 1: structured flag
# ---------------------------------------------------------------------------
class StructuredFlagStrategy:
    """Detects needMoreInfo on an already-parsed JSON object."""

    name = "structured_flag"

    def detect(self, document: Dict[str, Any]) -> Optional[NeedMoreInfoError]:
        if not isinstance(document, dict) or not _is_truthy_flag(document.get("needMoreInfo")):
            return None
        raw_fields = document.get("missingFields")
        if isinstance(raw_fields, str):
            requested: List[Any] = raw_fields.split(",")
        elif isinstance(raw_fields, list):
            requested = raw_fields
        else:
            requested = []
        message = document.get("message")
        return build_signal(requested, message if isinstance(message, str) and message.strip() else None)


# ---------------------------------------------------------------------------
# Strategy 2: free-text recovery
# ---------------------------------------------------------------------------
_MISSING_FIELDS_RE = re.compile(
    r"[\"']?missingFields[\"']?\s*[:=]\s*\[([^\]]*)\]",
    re.IGNORECASE,
)
_MESSAGE_RE = re.compile(
    r"[\"']?message[\"']?\s*[:=]\s*\"((?:[^\"\\]|\\.)*)\"",
    re.IGNORECASE,
)
_QUOTED_ITEM_RE = re.compile(r"\"((?:[^\"\\]|\\.)*)\"|'([^']*)'")


def _unescape(value: str) -> str:
    try:
        return json.loads(f'"{value}"')
    except ValueError:
        return value


class FreeTextRecoveryStrategy:
    """
    Recovers an insufficiency payload embedded in prose or broken JSON.

    The missingFields array is required; its items may be quoted strings or a
    bare comma-separated list. The message field is optional.
    """

    name = "free_text_recovery"

    def detect(self, text: str) -> Optional[NeedMoreInfoError]:
        if not text:
            return None
        fields_match = _MISSING_FIELDS_RE.search(text)
        if not fields_match:
            return None

        body = fields_match.group(1)
        quoted = _QUOTED_ITEM_RE.findall(body)
        if quoted:
            requested = [_unescape(dq) if dq else sq for dq, sq in quoted]
        else:
            requested = [p.strip() for p in body.split(",") if p.strip()]

        message_match = _MESSAGE_RE.search(text)
        message = _unescape(message_match.group(1)) if message_match else None
        return build_signal(requested, message or None)
