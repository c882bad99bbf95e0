"""
Field Checks
============
Heuristics deciding whether a user's free-text answer supplies a field the
AI asked for, so users never have to label their answers.

Each check is an independent predicate ``(text) -> bool`` registered per
field in FIELD_CHECKS. Swap or add entries without touching the session
state machine. Fields without a registered check accept any non-blank text.
"""
import re
from typing import Callable, Dict

FieldCheck = Callable[[str], bool]

MIN_FREE_TEXT_LENGTH = 10

_VERSION_RE = re.compile(r"\b(stable|beta|dev|canary|ptb|rc)\b|\d+\.\d+|\d{3,}", re.IGNORECASE)
_BROWSER_RE = re.compile(r"\b(chrome|safari|firefox|edge|opera|discord)\b", re.IGNORECASE)
_OS_RE = re.compile(
    r"\b(windows|macos|mac os|os x|ios|ipados|android|linux|ubuntu|chromebook|chrome ?os)\b",
    re.IGNORECASE,
)
_PLATFORM_RE = re.compile(r"\b(desktop|web|browser|ios|android|mobile|tablet)\b", re.IGNORECASE)
_NETWORK_RE = re.compile(r"\b(vpn|proxy|corporate network|wi-?fi|ethernet|cellular|4g|5g)\b", re.IGNORECASE)
_NUMBERED_LINE_RE = re.compile(r"^\s*\d+[.)]", re.MULTILINE)


def provides_app_version(text: str) -> bool:
    """Build/version tokens ("stable 483861", "1.0.9", "canary") or a browser name."""
    return bool(_VERSION_RE.search(text) or _BROWSER_RE.search(text))


def provides_os(text: str) -> bool:
    return bool(_OS_RE.search(text))


def provides_platform(text: str) -> bool:
    return bool(_PLATFORM_RE.search(text))


def provides_network_info(text: str) -> bool:
    return bool(_NETWORK_RE.search(text))


def provides_steps(text: str) -> bool:
    """Multi-line or numbered content."""
    return len(text.strip().splitlines()) > 1 or bool(_NUMBERED_LINE_RE.search(text))


def provides_free_text(text: str) -> bool:
    return len(text.strip()) > MIN_FREE_TEXT_LENGTH


def provides_anything(text: str) -> bool:
    return bool(text.strip())


FIELD_CHECKS: Dict[str, FieldCheck] = {
    "appVersion": provides_app_version,
    "os": provides_os,
    "platform": provides_platform,
    "networkInfo": provides_network_info,
    "stepsToReproduce": provides_steps,
    "detailedDescription": provides_free_text,
    "description": provides_free_text,
}


def looks_like_field_provided(field: str, text: str, checks: Dict[str, FieldCheck] = FIELD_CHECKS) -> bool:
    """True when ``text`` appears to answer ``field``."""
    check = checks.get(field, provides_anything)
    return check(text)
