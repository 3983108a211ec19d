import logging
from pathlib import Path

from agents.base import BaseAgent
from agents.errors import AgentError
from agents.state import PromptAnalysis
from services.llm_api import ApiConfig

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent / "prompts"

_CANNED_QUESTIONS = [
    "What is the main purpose of this form?",
    "What specific information do you need to collect?",
]

# substring in a free-text answer -> missing category it signals
_HEURISTIC_CATEGORIES = [
    ("purpose", "form_purpose"),
    ("field", "required_fields"),
    ("validation", "validation_rules"),
]


def _load_prompt(name: str) -> str:
    return (_PROMPTS_DIR / name).read_text(encoding="utf-8")


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class PromptAnalysisAgent(BaseAgent):
    """Decides whether a prompt is complete enough to build a form from."""

    def __init__(self, api_config: ApiConfig | None = None) -> None:
        super().__init__("PromptAnalysisAgent", "1.0.0", api_config)
        self.system_prompt = _load_prompt("prompt_analysis.txt")

    @property
    def agent_type(self) -> str:
        return "prompt-analysis"

    async def analyze_prompt(self, prompt: str) -> PromptAnalysis:
        """Always returns an analysis; failures degrade to low-confidence fallbacks."""
        try:
            response = await self.invoke(prompt, self.system_prompt)
        except Exception as exc:
            logger.error("Prompt analysis call failed: %s", exc)
            return self.fallback_analysis()

        try:
            parsed = self.extract_json(response)
            analysis = self._coerce(parsed)
            self._validate(analysis)
            return analysis
        except AgentError as exc:
            logger.warning("Unusable analysis response, using text heuristic: %s", exc)
            return self.heuristic_analysis(response)

    def fallback_analysis(self) -> PromptAnalysis:
        return {
            "is_complete": False,
            "missing_categories": ["form_purpose", "required_fields"],
            "confidence": 0.1,
            "reasoning": "Unable to analyze prompt due to API error. Proceeding with basic analysis.",
            "suggested_questions": list(_CANNED_QUESTIONS),
        }

    def heuristic_analysis(self, response: str) -> PromptAnalysis:
        text = (response or "").lower()
        is_complete = (
            "complete" in text and "not complete" not in text and "incomplete" not in text
        )
        missing = [category for needle, category in _HEURISTIC_CATEGORIES if needle in text]
        return {
            "is_complete": is_complete,
            "missing_categories": missing,
            "confidence": 0.7 if is_complete else 0.3,
            "reasoning": "Fallback analysis due to parsing error",
            "suggested_questions": list(_CANNED_QUESTIONS),
        }

    def _coerce(self, parsed: object) -> PromptAnalysis:
        self.require_fields(parsed, [], context="analysis")

        categories: list[str] = []
        raw_categories = parsed.get("missing_categories")
        if isinstance(raw_categories, list):
            for category in raw_categories:
                if isinstance(category, str) and category and category not in categories:
                    categories.append(category)

        confidence = parsed.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = 0.5

        suggested = parsed.get("suggested_questions")
        return {
            "is_complete": bool(parsed.get("is_complete")),
            "missing_categories": categories,
            "confidence": _clamp(float(confidence)),
            "reasoning": str(parsed.get("reasoning") or "No reasoning provided"),
            "suggested_questions": [str(q) for q in suggested] if isinstance(suggested, list) else [],
        }

    def _validate(self, analysis: PromptAnalysis) -> None:
        self.require_boolean(analysis["is_complete"], "is_complete", "analysis")
        self.require_array(analysis["missing_categories"], "missing_categories", "analysis")
        self.require_number_in_range(analysis["confidence"], "confidence", 0, 1, "analysis")
        self.require_string(analysis["reasoning"], "reasoning", "analysis")
