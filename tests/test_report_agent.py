"""
Report Agent Tests
==================
LLM client mocked — no real API calls.
"""
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from bugbot.agents.report_agent import ReportAgent
from bugbot.llm.normalizer import ResponseNormalizer
from bugbot.llm.router import LLMRouter
from bugbot.models.bug_report import ReportInput


def test_generate_compiles_prompt_with_examples_and_normalizes():
    raw = json.dumps({
        "title": "Crash on launch",
        "description": "Closes immediately.",
        "stepsToReproduce": ["Open"],
        "environment": {},
    })
    client = MagicMock()

    async def fake_generate(prompt, router, parse):
        return parse(raw)

    client.generate_with_fallback = AsyncMock(side_effect=fake_generate)
    examples = [{"title": f"Example {i}"} for i in range(4)]
    router = LLMRouter(preferred="ollama")
    agent = ReportAgent(
        router=router,
        client=client,
        normalizer=ResponseNormalizer(known_components=()),
        examples_source=lambda: examples,
    )

    report = asyncio.run(agent.generate(ReportInput(raw_summary="App crashes")))

    assert report.title == "Crash on launch"
    prompt, passed_router, _ = client.generate_with_fallback.await_args.args
    assert passed_router is router
    assert '"rawSummary": "App crashes"' in prompt
    assert "Example 2" in prompt
    assert "Example 3" not in prompt


def test_close_closes_client():
    client = MagicMock(close=AsyncMock())
    asyncio.run(ReportAgent(router=LLMRouter(preferred="ollama"), client=client).close())
    client.close.assert_awaited_once()
