import json
import logging
import time
from typing import Any

from agents.base import BaseAgent
from agents.config import TranslationConfig
from agents.errors import ParseError
from agents.languages import get_language_details
from agents.state import LanguageDetail, TranslationRequest, TranslationResult
from services.llm_api import ApiConfig

logger = logging.getLogger(__name__)

_SECTIONS = {"app": dict, "pages": list, "ui": dict, "errorMessages": dict}

_UI_KEYS = [
    "stepIndicator", "nextButton", "previousButton", "submitButton",
    "confirmSubmitButton", "reviewConfirmButton", "submissionsTitle",
    "noSubmissionsText", "thankYouTitle", "thankYouMessage", "restartButton",
    "multiPageInfo", "invalidFormData", "noPagesDefined", "invalidPageIndex",
    "noContentInSection", "addItemButton", "removeItemButton",
    "addAnotherButton", "requiredIndicator", "requiredText", "loadingText",
    "submittingText", "requiredFieldAriaLabel", "optionalFieldAriaLabel",
    "errorAriaLabel", "successAriaLabel",
]

# error message key -> placeholders that must survive translation
_ERROR_MESSAGE_KEYS = {
    "required": ["fieldLabel"],
    "minLength": ["fieldLabel", "minLength"],
    "maxLength": ["fieldLabel", "maxLength"],
    "pattern": ["fieldLabel"],
    "minItems": ["fieldLabel", "minItems"],
    "maxItems": ["fieldLabel", "maxItems"],
    "minDate": ["fieldLabel", "minDate"],
    "maxDate": ["fieldLabel", "maxDate"],
    "min": ["fieldLabel", "min"],
    "max": ["fieldLabel", "max"],
    "invalidFormat": ["fieldLabel"],
    "invalidEmail": ["fieldLabel"],
    "invalidNumber": ["fieldLabel"],
    "invalidDate": ["fieldLabel"],
    "generic": ["fieldLabel"],
}


def _placeholder_hint(names: list[str]) -> str:
    return "translated text keeping " + " and ".join("{" + n + "}" for n in names)


_OUTPUT_SCHEMA = {
    "app": {"title": "translated app title"},
    "pages": [
        {
            "id": "same as original",
            "title": "translated page title",
            "components": [
                {
                    "id": "same as original",
                    "label": "translated component label",
                    "props": {
                        "placeholder": "translated placeholder",
                        "helperText": "translated helper text",
                        "options": [{"label": "translated option label", "value": "same as original"}],
                    },
                    "validation": {
                        "errorMessages": {
                            "required": _placeholder_hint(["fieldLabel"]),
                            "minLength": _placeholder_hint(["fieldLabel", "minLength"]),
                        }
                    },
                }
            ],
        }
    ],
    "thankYouPage": {
        "title": "translated thank you title",
        "message": "translated thank you message",
        "customActions": [{"label": "translated action label"}],
    },
    "ui": {key: f"translated {key}" for key in _UI_KEYS},
    "errorMessages": {key: _placeholder_hint(names) for key, names in _ERROR_MESSAGE_KEYS.items()},
}

_RULES = [
    "Translate ALL text content: labels, placeholders, helper text, button text, error messages and UI strings.",
    "Preserve the JSON structure exactly; translate string values only.",
    "Keep every id, value and technical key unchanged.",
    'For select/radio options translate "label" and keep "value" unchanged.',
    "Keep placeholder tokens such as {fieldLabel}, {minLength}, {currentStep} and {totalSteps} verbatim.",
    "Match the tone and formality of the original and use natural, culturally appropriate wording.",
]
_FORMATTING_RULE = "Keep punctuation, capitalisation style and line breaks as in the original."


class TranslationGenerationAgent(BaseAgent):
    """
    Translates the text surface of a generated form.

    Each target language is translated on its own, one after another, with
    its own retry loop; a failing language is reported in errors and left out
    of the translations without affecting the others.
    """

    def __init__(
        self,
        config: TranslationConfig | None = None,
        api_config: ApiConfig | None = None,
    ) -> None:
        super().__init__("TranslationGenerationAgent", "1.0.0", api_config)
        self.config = config or TranslationConfig()

    @property
    def agent_type(self) -> str:
        return "translation-generation"

    async def generate_translations(self, request: TranslationRequest) -> TranslationResult:
        start = time.monotonic()

        def _elapsed() -> int:
            return int((time.monotonic() - start) * 1000)

        try:
            target_languages = request.get("target_languages") or []
            if not target_languages:
                return {"success": True, "translations": {}, "errors": None, "processing_time": _elapsed()}

            if not self.config.enable_llm_translation:
                return {
                    "success": False,
                    "translations": None,
                    "errors": ["LLM translation is disabled"],
                    "processing_time": _elapsed(),
                }

            form_json = request["form_json"]
            source_language = request.get("source_language") or "en"
            details = request.get("language_details") or get_language_details(
                [source_language, *target_languages]
            )

            translations: dict[str, Any] = {}
            errors: list[str] = []
            for language in target_languages:
                prompt = self.build_language_prompt(form_json, language, source_language, details)
                try:
                    translations[language] = await self._translate_one(prompt)
                    logger.info("Translated form to %s", language)
                except Exception as exc:
                    logger.error("Translation to %s failed: %s", language, exc)
                    errors.append(f"Failed to translate to {language}: {exc}")

            return {
                "success": not errors,
                "translations": translations or None,
                "errors": errors or None,
                "processing_time": _elapsed(),
            }
        except Exception as exc:
            logger.error("Translation generation failed: %s", exc)
            return {
                "success": False,
                "translations": None,
                "errors": [f"Translation generation failed: {exc}"],
                "processing_time": _elapsed(),
            }

    async def _translate_one(self, prompt: str) -> dict:
        response = await self.retry_with_backoff(
            lambda: self.generate(prompt, timeout_ms=self.config.timeout_ms),
            self.config.max_retries,
            self.config.retry_base_delay_ms,
        )
        payload = self.extract_json(response)
        problems = self.validate_translation_response(payload)
        if problems:
            raise ParseError(f"Invalid translation response: {', '.join(problems)}")
        return payload

    def validate_translation_response(self, payload: Any) -> list[str]:
        """Return the problems found; an empty list means the payload is usable."""
        if not isinstance(payload, dict):
            return ["Response is not a JSON object"]

        problems = []
        if not any(section in payload for section in _SECTIONS):
            problems.append("Response contains no recognizable translation content")
        for section, container in _SECTIONS.items():
            value = payload.get(section)
            if value is not None and not isinstance(value, container):
                problems.append(f"{section} section must be an {'array' if container is list else 'object'}")
        return problems

    def build_language_prompt(
        self,
        form_json: dict,
        target_language: str,
        source_language: str,
        language_details: list[LanguageDetail],
    ) -> str:
        by_code = {d["code"]: d for d in language_details}

        def _name(code: str, native: bool = False) -> str:
            detail = by_code.get(code)
            if detail is None:
                return code.upper()
            return detail["native_name"] if native else detail["name"]

        rules = _RULES + ([_FORMATTING_RULE] if self.config.preserve_formatting else [])
        numbered = "\n".join(f"{i}. {rule}" for i, rule in enumerate(rules, start=1))

        return (
            f"Translate the following form content from {_name(source_language)} "
            f"to {_name(target_language)} ({_name(target_language, native=True)}).\n\n"
            f"IMPORTANT INSTRUCTIONS:\n{numbered}\n\n"
            f"FORM JSON TO TRANSLATE:\n{json.dumps(form_json, indent=2, ensure_ascii=False)}\n\n"
            "REQUIRED TRANSLATION STRUCTURE:\n"
            f"{json.dumps(_OUTPUT_SCHEMA, indent=2)}\n\n"
            "Return ONLY the translated JSON object, no additional text or explanations."
        )
