"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    AI_BACKEND               — Preferred generation backend: "ollama" (default) or "openai"
    OLLAMA_BASE_URL          — Local Ollama server (default: http://127.0.0.1:11434)
    OLLAMA_MODEL             — Ollama model name (default: llama3.1)
    OPENAI_API_KEY           — Hosted backend key; the OpenAI backend is unusable without it
    OPENAI_BASE_URL          — OpenAI-compatible endpoint (default: https://api.openai.com/v1)
    OPENAI_MODEL             — Hosted model name (default: gpt-4o-mini)
    KNOWN_COMPONENTS         — Comma-separated component whitelist (empty = no annotation)
    EXAMPLES_FILE            — JSONL file of previously accepted reports
    BUG_FORM_URL             — Official bug form the pre-filled link points at
    CORS_ORIGINS             — Comma-separated browser origins allowed to call the API
                               (empty = CORS middleware not installed)

Timeout Philosophy:
    A locally hosted model may need to load weights on first use, so its
    timeout is an order of magnitude longer than the hosted API's. Both are
    hard ceilings: a stuck backend fails over instead of stalling a session.

Expiry:
    Sessions, cached reports and pending follow-ups all expire after 30
    minutes of inactivity. The sweeper runs every SWEEP_INTERVAL_SECONDS;
    expiry is best effort, readers treat "not found" as "expired".
"""
import os
from dotenv import load_dotenv

load_dotenv()

AI_BACKEND = os.getenv("AI_BACKEND", "ollama").strip().lower()

OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://127.0.0.1:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1")
OLLAMA_TIMEOUT_SECONDS = float(os.getenv("OLLAMA_TIMEOUT_SECONDS", 300))

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TIMEOUT_SECONDS = float(os.getenv("OPENAI_TIMEOUT_SECONDS", 30))

# Sampling: near zero favours deterministic JSON output
GENERATION_TEMPERATURE = float(os.getenv("GENERATION_TEMPERATURE", 0.1))
MAX_OUTPUT_TOKENS = int(os.getenv("MAX_OUTPUT_TOKENS", 1500))

def split_csv(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


# Component whitelist for "(inferred)" annotation
KNOWN_COMPONENTS: list[str] = split_csv(os.getenv("KNOWN_COMPONENTS", ""))

# Few-shot examples
EXAMPLES_FILE = os.getenv(
    "EXAMPLES_FILE", os.path.join(os.getcwd(), "data", "bug_reports.jsonl")
)
MAX_EXAMPLES = int(os.getenv("MAX_EXAMPLES", 3))

# Expiry
SESSION_TTL_SECONDS = int(os.getenv("SESSION_TTL_SECONDS", 30 * 60))
REPORT_CACHE_TTL_SECONDS = int(os.getenv("REPORT_CACHE_TTL_SECONDS", 30 * 60))
SWEEP_INTERVAL_SECONDS = int(os.getenv("SWEEP_INTERVAL_SECONDS", 60))

# Official bug form
BUG_FORM_URL = os.getenv(
    "BUG_FORM_URL",
    "https://support.discord.com/hc/en-us/requests/new?ticket_form_id=360006586013",
)

# Browser origins; the service is called server-to-server by default
CORS_ORIGINS: list[str] = split_csv(os.getenv("CORS_ORIGINS", ""))
