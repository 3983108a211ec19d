import logging

from agents.base import BaseAgent
from agents.config import LanguageDetectionConfig
from agents.errors import ParseError
from agents.languages import get_language_details, validate_language_codes
from agents.state import LanguageDetail, MultiLanguageAnalysis
from services.llm_api import ApiConfig

logger = logging.getLogger(__name__)

_DETECTION_PROMPT = """You analyse form-building prompts to detect whether the form must be offered in more than one language.

User Prompt: "{prompt}"

Indicators of a multi-language request:
- Explicit mention of several languages ("English and Spanish", "in multiple languages")
- International users, a global audience, localisation
- Language names or language codes
- Forms meant to serve linguistically diverse populations
- Words like "bilingual", "multilingual", "translated", "localized"

Respond with ONLY a JSON object:
{{
  "is_multi_language_requested": true | false,
  "requested_languages": ["en", "es"],
  "confidence": number between 0 and 1,
  "reasoning": "one sentence",
  "suggested_languages": ["..."]
}}

Use ISO 639-1 codes ("en", "es", "fr", "zh", "ja", "ko", "ar"); regional variants look like "pt-BR" or "zh-CN".
If no multi-language support is requested, set is_multi_language_requested to false and return ["en"]."""


class MultiLanguageDetectionAgent(BaseAgent):
    """
    Detects whether the user wants the form in several languages.

    The model's language list is never trusted as final: codes are always
    filtered to the supported allow-list, de-duplicated and capped, and the
    display names come from the static language table.
    """

    def __init__(
        self,
        config: LanguageDetectionConfig | None = None,
        api_config: ApiConfig | None = None,
    ) -> None:
        super().__init__("MultiLanguageDetectionAgent", "1.0.0", api_config)
        self.config = config or LanguageDetectionConfig()

    @property
    def agent_type(self) -> str:
        return "multi-language-detection"

    async def detect_multi_language_request(self, prompt: str) -> MultiLanguageAnalysis:
        async def _detect() -> MultiLanguageAnalysis:
            try:
                response = await self.generate(_DETECTION_PROMPT.format(prompt=prompt))
            except Exception as exc:
                logger.error("Language detection call failed: %s", exc)
                return self.fallback_analysis(f"Error calling LLM API: {exc}")
            try:
                return self.parse_analysis(self.extract_json(response))
            except ParseError as exc:
                logger.error("Language detection response unusable: %s", exc)
                return self.fallback_analysis(f"Error parsing LLM response: {exc}")

        result, _ = await self.measure_execution_time(_detect, "detect_multi_language_request")
        return result

    def validate_language_codes(self, codes: object) -> list[str]:
        return validate_language_codes(
            codes, self.config.supported_language_codes, self.config.max_languages
        )

    def get_language_details(self, codes: list[str]) -> list[LanguageDetail]:
        return get_language_details(codes)

    def parse_analysis(self, parsed: object) -> MultiLanguageAnalysis:
        if not isinstance(parsed, dict):
            raise ParseError("Language detection response is not a JSON object")

        requested = self.validate_language_codes(parsed.get("requested_languages"))
        if not requested and self.config.enable_fallback:
            requested = ["en"]

        confidence = parsed.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = 0.0
        confidence = max(0.0, min(1.0, float(confidence)))

        is_requested = bool(parsed.get("is_multi_language_requested"))
        if is_requested and confidence < self.config.confidence_threshold:
            logger.info(
                "Multi-language request below confidence threshold (%.2f < %.2f)",
                confidence,
                self.config.confidence_threshold,
            )
            is_requested = False

        suggested = parsed.get("suggested_languages")
        return {
            "is_multi_language_requested": is_requested,
            "requested_languages": requested,
            "confidence": confidence,
            "reasoning": str(parsed.get("reasoning") or "No reasoning provided"),
            "suggested_languages": (
                self.validate_language_codes(suggested) if isinstance(suggested, list) else None
            ),
            "language_details": self.get_language_details(requested),
        }

    def fallback_analysis(self, reason: str) -> MultiLanguageAnalysis:
        return {
            "is_multi_language_requested": False,
            "requested_languages": ["en"],
            "confidence": 0.0,
            "reasoning": reason,
            "suggested_languages": None,
            "language_details": self.get_language_details(["en"]),
        }
