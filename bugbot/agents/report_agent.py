"""
Report Agent
============
Generates a CanonicalReport from a ReportInput using the LLM backends.

Pipeline:
    1. Load few-shot examples (optional, first three only)
    2. Compile the prompt (pure, deterministic)
    3. Call the preferred backend, failing over once on transport errors
    4. Normalize the raw text (report, NeedMoreInfoError, or fallback report)

Outcomes surfaced to callers:
    - CanonicalReport       → success
    - NeedMoreInfoError     → ask the user for the listed fields
    - InfrastructureError / ConfigurationError → fatal, "please try again"

The ReportAgent does NOT:
    - Render reports (that's output_formatter's job)
    - Track conversations (that's the session manager's job)
    - Cache results (that's the report cache's job)
"""
import logging
from typing import Any, Callable, Dict, List, Optional

from bugbot.llm.client import LLMClient
from bugbot.llm.normalizer import ResponseNormalizer
from bugbot.llm.prompts import compile_prompt
from bugbot.llm.router import LLMRouter
from bugbot.models.bug_report import CanonicalReport, ReportInput
from bugbot.services.examples_loader import load_examples

logger = logging.getLogger(__name__)


class ReportAgent:
    """
    Turns raw bug submissions into validated reports.

    Parameters
    ----------
    router : LLMRouter or None
        Provider router (auto-created if not provided).
    client : LLMClient or None
        HTTP client (auto-created if not provided).
    normalizer : ResponseNormalizer or None
        Output reconciliation (auto-created if not provided).
    examples_source : callable or None
        Returns example report records. Defaults to the JSONL loader.
    """

    def __init__(
        self,
        router: Optional[LLMRouter] = None,
        client: Optional[LLMClient] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        examples_source: Optional[Callable[[], List[Dict[str, Any]]]] = None,
    ) -> None:
        self.router = router or LLMRouter()
        self.client = client or LLMClient()
        self.normalizer = normalizer or ResponseNormalizer()
        self.examples_source = examples_source or load_examples

    async def generate(self, report_input: ReportInput) -> CanonicalReport:
        """
        Generate one report.

        Raises
        ------
        NeedMoreInfoError
            The serving backend declared the input insufficient.
        InfrastructureError
            Every configured backend failed at the transport level.
        ConfigurationError
            The preferred backend is not configured.
        """
        examples = self.examples_source()
        prompt = compile_prompt(report_input, examples)
        logger.info(
            "Generating bug report for '%s' (%d examples, %d prompt chars)",
            report_input.raw_summary[:60], len(examples), len(prompt),
        )
        return await self.client.generate_with_fallback(prompt, self.router, self.normalizer.normalize)

    async def close(self) -> None:
        await self.client.close()
