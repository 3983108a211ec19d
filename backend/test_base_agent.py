"""Tests for the shared agent contract: boundary guarding, JSON parsing, validators, retry."""
import asyncio

import pytest

from agents.base import BaseAgent
from agents.errors import AgentExecutionError, ConfigurationError, ValidationError
from services import llm_api
from services.llm_api import ApiConfig

API_CONFIG = ApiConfig(name="Test", base_url="http://llm.test", api_key="test-key", model="test-model")


class EchoAgent(BaseAgent):
    def __init__(self, api_config=API_CONFIG):
        super().__init__("EchoAgent", "2.0.0", api_config)

    @property
    def agent_type(self) -> str:
        return "echo"


def test_info_reports_name_version_and_type():
    assert EchoAgent().get_info() == {"name": "EchoAgent", "version": "2.0.0", "type": "echo"}


def test_invoke_without_credential_fails_before_calling(monkeypatch):
    calls = []

    async def fake_call(prompt, system_prompt, api_config):
        calls.append(prompt)
        return "{}"

    monkeypatch.setattr(llm_api, "call_llm_api", fake_call)
    agent = EchoAgent(ApiConfig(name="NoKey", base_url="http://llm.test", model="m"))

    with pytest.raises(ConfigurationError):
        asyncio.run(agent.invoke("hello", "system"))
    assert calls == []


def test_invoke_wraps_transport_errors(monkeypatch):
    async def failing_call(prompt, system_prompt, api_config):
        raise ConnectionError("connection reset")

    monkeypatch.setattr(llm_api, "call_llm_api", failing_call)

    with pytest.raises(AgentExecutionError) as info:
        asyncio.run(EchoAgent().invoke("hello", "system"))
    assert info.value.agent_name == "EchoAgent"
    assert isinstance(info.value.cause, ConnectionError)
    assert "connection reset" in str(info.value)


def test_invoke_returns_boundary_text(monkeypatch):
    async def fake_call(prompt, system_prompt, api_config):
        return f"{system_prompt}:{prompt}:{api_config.api_key}"

    monkeypatch.setattr(llm_api, "call_llm_api", fake_call)
    assert asyncio.run(EchoAgent().invoke("hi", "sys")) == "sys:hi:test-key"


def test_fenced_json_parses_like_plain_json():
    agent = EchoAgent()
    plain = '{"is_complete": true, "missing_categories": ["a", "b"], "confidence": 0.8}'
    fenced = f"Here you go:\n```json\n{plain}\n```\nThanks!"
    bare_fence = f"```\n{plain}\n```"

    expected = agent.parse_json_response(plain, None)
    assert expected["missing_categories"] == ["a", "b"]
    assert agent.parse_json_response(fenced, None) == expected
    assert agent.parse_json_response(bare_fence, None) == expected


@pytest.mark.parametrize("raw", ["", None, "not json at all", "```json\n{broken\n```"])
def test_unparseable_response_returns_fallback(raw):
    fallback = {"fallback": True}
    assert EchoAgent().parse_json_response(raw, fallback) is fallback


def test_validators_name_the_offending_field():
    agent = EchoAgent()

    with pytest.raises(ValidationError, match="missing required fields: reasoning"):
        agent.require_fields({"confidence": 0.3}, ["confidence", "reasoning"], "analysis")
    with pytest.raises(ValidationError, match="questions must be array"):
        agent.require_array({}, "questions")
    with pytest.raises(ValidationError, match="confidence must be number between 0 and 1"):
        agent.require_number_in_range(1.5, "confidence")
    with pytest.raises(ValidationError):
        agent.require_number_in_range(True, "confidence")
    with pytest.raises(ValidationError, match="reasoning must be string"):
        agent.require_string(3, "reasoning")
    with pytest.raises(ValidationError, match="is_complete must be boolean"):
        agent.require_boolean("yes", "is_complete")

    agent.require_number_in_range(0, "confidence")
    agent.require_number_in_range(1, "confidence")


def test_retry_succeeds_after_transient_failures(monkeypatch):
    attempts = []
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)

    async def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise TimeoutError("slow provider")
        return "ok"

    result = asyncio.run(EchoAgent().retry_with_backoff(flaky, max_retries=3, base_delay_ms=100))

    assert result == "ok"
    assert len(attempts) == 3
    assert len(delays) == 2
    # base * 2**attempt plus up to one base of jitter
    assert 0.1 <= delays[0] <= 0.2
    assert 0.2 <= delays[1] <= 0.3


def test_retry_reraises_last_error(monkeypatch):
    async def fake_sleep(seconds):
        return None

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    attempts = []

    async def always_fails():
        attempts.append(1)
        raise RuntimeError(f"attempt {len(attempts)}")

    with pytest.raises(RuntimeError, match="attempt 4"):
        asyncio.run(EchoAgent().retry_with_backoff(always_fails, max_retries=4, base_delay_ms=0))
    assert len(attempts) == 4


def test_retry_rejects_non_positive_attempts():
    async def op():
        return 1

    with pytest.raises(ValueError):
        asyncio.run(EchoAgent().retry_with_backoff(op, max_retries=0))


def test_measure_execution_time_returns_result_and_elapsed():
    async def op():
        return 42

    result, elapsed = asyncio.run(EchoAgent().measure_execution_time(op, "op"))
    assert result == 42
    assert elapsed >= 0


def test_measure_execution_time_propagates_failure():
    async def op():
        raise KeyError("boom")

    with pytest.raises(KeyError):
        asyncio.run(EchoAgent().measure_execution_time(op, "op"))
