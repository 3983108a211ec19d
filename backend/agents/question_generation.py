import logging
from pathlib import Path

from agents.base import BaseAgent
from agents.config import QuestionConfig
from agents.errors import ValidationError
from agents.state import AgentQuestion, ConversationMessage, PromptAnalysis
from services.llm_api import ApiConfig

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent / "prompts"

_INPUT_TYPES = {"text", "textarea", "select", "multiselect"}
_OPTION_TYPES = {"select", "multiselect"}

_PLACEHOLDERS = {
    "text": "Enter your answer...",
    "textarea": "Provide a detailed answer...",
    "select": "Choose an option...",
    "multiselect": "Select one or more options...",
}

_HELP_TEXTS = {
    "form_purpose": "Describe what this form is meant to accomplish or what problem it solves.",
    "required_fields": "List the specific information you need to collect from users.",
    "validation_rules": "Specify any validation requirements or constraints for the form fields.",
    "user_flow": "Describe how users should move through the form (single page, multi-step, etc.).",
}
_DEFAULT_HELP_TEXT = "Provide as much detail as possible to help create the best form for your needs."

_FALLBACK_QUESTIONS: dict[str, AgentQuestion] = {
    "form_purpose": {
        "id": "purpose_question",
        "question": "What is the main purpose of this form?",
        "category": "form_purpose",
        "input_type": "textarea",
        "options": None,
        "required": True,
        "placeholder": "Describe what this form is meant to accomplish...",
        "help_text": "Explain what problem this form solves or what goal it helps achieve.",
    },
    "required_fields": {
        "id": "fields_question",
        "question": "What specific information do you need to collect?",
        "category": "required_fields",
        "input_type": "textarea",
        "options": None,
        "required": True,
        "placeholder": "List the fields you need (e.g., name, email, phone, etc.)...",
        "help_text": "Be specific about what data you need to collect from users.",
    },
    "validation_rules": {
        "id": "validation_question",
        "question": "Are there any validation requirements or constraints?",
        "category": "validation_rules",
        "input_type": "textarea",
        "options": None,
        "required": False,
        "placeholder": "Describe any validation rules (e.g., email format, required fields, etc.)...",
        "help_text": "Specify any rules for validating user input.",
    },
}

_GENERAL_QUESTION: AgentQuestion = {
    "id": "general_question",
    "question": "Can you provide more details about what you want this form to do?",
    "category": "general",
    "input_type": "textarea",
    "options": None,
    "required": True,
    "placeholder": "Provide more specific details...",
    "help_text": "The more details you provide, the better we can create your form.",
}


def _load_prompt(name: str) -> str:
    return (_PROMPTS_DIR / name).read_text(encoding="utf-8")


class QuestionGenerationAgent(BaseAgent):
    """Turns the gaps found by prompt analysis into clarifying questions."""

    def __init__(
        self,
        config: QuestionConfig | None = None,
        api_config: ApiConfig | None = None,
    ) -> None:
        super().__init__("QuestionGenerationAgent", "1.0.0", api_config)
        self.config = config or QuestionConfig()
        self.system_prompt = _load_prompt("question_generation.txt")

    @property
    def agent_type(self) -> str:
        return "question-generation"

    async def generate_questions(
        self,
        analysis: PromptAnalysis,
        history: list[ConversationMessage] | None = None,
    ) -> list[AgentQuestion]:
        """Always returns questions; any failure yields the canned category questions."""
        try:
            prompt = self.build_question_prompt(analysis, history or [])
            response = await self.invoke(prompt, self.system_prompt)
            parsed = self.extract_json(response)
            self.require_array(parsed, "questions", "question response")
            return self.normalize_questions(parsed)
        except Exception as exc:
            logger.error("Question generation failed, using fallback questions: %s", exc)
            return self.generate_fallback_questions(analysis)

    def build_conversation_context(self, history: list[ConversationMessage]) -> str:
        window = self.config.history_window
        recent = history[-window:] if window else []
        if not recent:
            return "No previous conversation history."
        return "\n".join(
            f"{'User' if msg['type'] == 'user' else 'Agent'}: {msg['content']}" for msg in recent
        )

    def build_question_prompt(
        self,
        analysis: PromptAnalysis,
        history: list[ConversationMessage],
    ) -> str:
        return (
            "Analysis Results:\n"
            f"- Complete: {analysis['is_complete']}\n"
            f"- Missing Categories: {', '.join(analysis['missing_categories'])}\n"
            f"- Confidence: {analysis['confidence']}\n"
            f"- Reasoning: {analysis['reasoning']}\n\n"
            "Conversation Context:\n"
            f"{self.build_conversation_context(history)}\n\n"
            "Generate specific questions to gather the missing information. "
            "Focus on the most critical gaps first."
        )

    def normalize_questions(self, items: list) -> list[AgentQuestion]:
        questions: list[AgentQuestion] = []
        seen_ids: set[str] = set()

        for index, item in enumerate(items):
            if not isinstance(item, dict):
                logger.warning("Skipping malformed question at index %d: %r", index, item)
                continue
            text = str(item.get("question") or "").strip()
            if not text:
                continue

            question_id = str(item.get("id") or f"question_{index + 1}")
            if question_id in seen_ids:
                continue

            input_type = item.get("input_type")
            if input_type not in _INPUT_TYPES:
                input_type = "text"

            options = item.get("options")
            if isinstance(options, list):
                options = [str(o) for o in options if o is not None and str(o)]
            if input_type in _OPTION_TYPES:
                if not options:
                    input_type = "text"
                    options = None
            else:
                options = None

            category = str(item.get("category") or "general")
            seen_ids.add(question_id)
            questions.append(
                {
                    "id": question_id,
                    "question": text,
                    "category": category,
                    "input_type": input_type,
                    "options": options,
                    "required": bool(item.get("required")),
                    "placeholder": str(item.get("placeholder") or _PLACEHOLDERS[input_type]),
                    "help_text": str(
                        item.get("help_text") or _HELP_TEXTS.get(category, _DEFAULT_HELP_TEXT)
                    ),
                }
            )

        if items and not questions:
            raise ValidationError("Invalid question response: no usable questions")
        return questions[: self.config.max_questions]

    def generate_fallback_questions(self, analysis: PromptAnalysis) -> list[AgentQuestion]:
        questions = [
            dict(_FALLBACK_QUESTIONS[category])
            for category in dict.fromkeys(analysis.get("missing_categories") or [])
            if category in _FALLBACK_QUESTIONS
        ]
        return questions or [dict(_GENERAL_QUESTION)]
