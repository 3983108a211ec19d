import asyncio
import json

import pytest

from agents.config import LanguageDetectionConfig
from agents.language_detection import MultiLanguageDetectionAgent
from services import llm_api
from services.llm_api import ApiConfig

API_CONFIG = ApiConfig(name="Test", base_url="http://llm.test", api_key="test-key", model="test-model")


def _agent(monkeypatch, response=None, error=None, config=None) -> MultiLanguageDetectionAgent:
    async def fake_generate(prompt, api_config=None, timeout_ms=None):
        if error is not None:
            raise error
        return response

    monkeypatch.setattr(llm_api, "generate_response", fake_generate)
    return MultiLanguageDetectionAgent(config=config, api_config=API_CONFIG)


def test_bilingual_request_is_detected(monkeypatch):
    response = json.dumps(
        {
            "is_multi_language_requested": True,
            "requested_languages": ["en", "es"],
            "confidence": 0.95,
            "reasoning": "User asked for English and Spanish",
            "suggested_languages": ["fr", "xx"],
        }
    )
    agent = _agent(monkeypatch, f"```json\n{response}\n```")

    analysis = asyncio.run(agent.detect_multi_language_request("Registration form in English and Spanish"))

    assert analysis["is_multi_language_requested"] is True
    assert analysis["requested_languages"] == ["en", "es"]
    assert analysis["suggested_languages"] == ["fr"]
    assert analysis["language_details"] == [
        {"code": "en", "name": "English", "native_name": "English"},
        {"code": "es", "name": "Spanish", "native_name": "Español"},
    ]


def test_unsupported_codes_are_dropped_and_fallback_applies(monkeypatch):
    response = json.dumps(
        {"is_multi_language_requested": True, "requested_languages": ["klingon", 5], "confidence": 0.9}
    )
    agent = _agent(monkeypatch, response)

    analysis = asyncio.run(agent.detect_multi_language_request("prompt"))

    assert analysis["requested_languages"] == ["en"]
    assert analysis["reasoning"] == "No reasoning provided"
    assert analysis["suggested_languages"] is None


def test_low_confidence_request_is_not_multi_language(monkeypatch):
    response = json.dumps(
        {"is_multi_language_requested": True, "requested_languages": ["en", "de"], "confidence": 0.3}
    )
    agent = _agent(monkeypatch, response, config=LanguageDetectionConfig(confidence_threshold=0.5))

    analysis = asyncio.run(agent.detect_multi_language_request("prompt"))

    assert analysis["is_multi_language_requested"] is False
    assert analysis["requested_languages"] == ["en", "de"]
    assert analysis["confidence"] == 0.3


def test_api_failure_returns_english_fallback(monkeypatch):
    agent = _agent(monkeypatch, error=TimeoutError("deadline exceeded"))

    analysis = asyncio.run(agent.detect_multi_language_request("prompt"))

    assert analysis["is_multi_language_requested"] is False
    assert analysis["requested_languages"] == ["en"]
    assert analysis["confidence"] == 0.0
    assert analysis["reasoning"].startswith("Error calling LLM API:")


@pytest.mark.parametrize("response", ["not json", "[1, 2]"])
def test_unparseable_response_returns_english_fallback(monkeypatch, response):
    agent = _agent(monkeypatch, response)

    analysis = asyncio.run(agent.detect_multi_language_request("prompt"))

    assert analysis["requested_languages"] == ["en"]
    assert analysis["reasoning"].startswith("Error parsing LLM response:")


def test_validate_language_codes_dedupes_then_caps():
    agent = MultiLanguageDetectionAgent(
        config=LanguageDetectionConfig(max_languages=3), api_config=API_CONFIG
    )

    codes = agent.validate_language_codes(["fr", "fr", "xx", "de", "pt-BR", "ja"])

    assert codes == ["fr", "de", "pt-BR"]
    assert agent.validate_language_codes("en,es") == []
    assert agent.validate_language_codes([]) == []


def test_validate_language_codes_respects_custom_allow_list():
    agent = MultiLanguageDetectionAgent(
        config=LanguageDetectionConfig(supported_language_codes=("en", "fr")), api_config=API_CONFIG
    )

    assert agent.validate_language_codes(["es", "fr", "en"]) == ["fr", "en"]


def test_language_details_degrade_for_unknown_codes():
    agent = MultiLanguageDetectionAgent(api_config=API_CONFIG)

    details = agent.get_language_details(["ja", "xx"])

    assert details == [
        {"code": "ja", "name": "Japanese", "native_name": "日本語"},
        {"code": "xx", "name": "XX", "native_name": "XX"},
    ]
    assert agent.get_language_details(["ja", "xx"]) == details
