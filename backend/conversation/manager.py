"""
Conversation orchestration: owns one conversation's state, runs analysis
rounds and folds agent results into the transcript.

Public methods never raise; failures surface as `system` messages and the
partially updated state is returned.
"""
import copy
import logging
import uuid
from typing import Any

from agents.config import ConversationConfig
from agents.language_detection import MultiLanguageDetectionAgent
from agents.languages import get_language_details
from agents.prompt_analysis import PromptAnalysisAgent
from agents.question_generation import QuestionGenerationAgent
from agents.state import (
    AgentQuestion,
    ConversationMessage,
    ConversationState,
    FormGenerationContext,
    MessageMetadata,
    MessageType,
    PromptAnalysis,
)
from agents.translation import TranslationGenerationAgent
from conversation.graph import compile_round_graph, initial_round_state, new_message

logger = logging.getLogger(__name__)

_SKIP_MESSAGE = "Skipping to form generation with the information provided so far."


class ConversationManager:
    def __init__(
        self,
        config: ConversationConfig | None = None,
        analysis_agent: PromptAnalysisAgent | None = None,
        question_agent: QuestionGenerationAgent | None = None,
        detection_agent: MultiLanguageDetectionAgent | None = None,
        translation_agent: TranslationGenerationAgent | None = None,
    ) -> None:
        self.config = config or ConversationConfig()
        self.analysis_agent = analysis_agent or PromptAnalysisAgent()
        self.question_agent = question_agent or QuestionGenerationAgent()
        self.detection_agent = detection_agent or MultiLanguageDetectionAgent()
        self.translation_agent = translation_agent or TranslationGenerationAgent()
        self._round_graph = compile_round_graph(
            self.analysis_agent,
            self.question_agent,
            self.detection_agent,
            self.config.confidence_threshold,
        )
        self.state = self._initial_state()

    def _initial_state(self) -> ConversationState:
        source = self.config.source_language
        return {
            "session_id": f"agent_session_{uuid.uuid4().hex}",
            "messages": [],
            "current_questions": [],
            "context": {},
            "is_complete": False,
            "is_best_effort": False,
            "rounds": 0,
            "analysis": None,
            "multi_language_analysis": None,
            "current_language": source,
            "available_languages": [source],
            "language_details": None,
        }

    # ------------------------------------------------------------------
    # Conversation flow
    # ------------------------------------------------------------------

    async def start_conversation(self, prompt: str) -> ConversationState:
        self.state = self._initial_state()
        try:
            self._add_message("user", prompt)
            await self._run_round(prompt, first_round=True)
        except Exception as exc:
            logger.error("Error starting conversation: %s", exc)
            self._add_message(
                "system", "Sorry, I encountered an error analyzing your prompt. Please try again."
            )
        return self.get_current_state()

    async def process_user_response(
        self,
        answer: str | list[str],
        question_id: str | None = None,
    ) -> ConversationState:
        try:
            content = ", ".join(answer) if isinstance(answer, list) else answer
            self._add_message("user", content)

            if question_id:
                self.state["context"][question_id] = answer
                self.state["current_questions"] = [
                    q for q in self.state["current_questions"] if q["id"] != question_id
                ]

            if self.state["is_complete"] or self.state["current_questions"]:
                return self.get_current_state()

            force = self.state["rounds"] >= self.config.max_rounds
            await self._run_round(self._build_updated_prompt(), first_round=False, force_complete=force)
        except Exception as exc:
            logger.error("Error processing user response: %s", exc)
            self._add_message(
                "system", "Sorry, I encountered an error processing your response. Please try again."
            )
        return self.get_current_state()

    async def skip_to_form_generation(self) -> ConversationState:
        self.state["is_complete"] = True
        self.state["current_questions"] = []
        self._add_message("agent", _SKIP_MESSAGE)
        return self.get_current_state()

    async def _run_round(self, prompt: str, first_round: bool, force_complete: bool = False) -> None:
        self.state["rounds"] += 1
        round_input = initial_round_state(
            prompt,
            list(self.state["messages"]),
            first_round,
            force_complete,
            self.state["multi_language_analysis"],
        )
        result = await self._round_graph.ainvoke(round_input)

        self.state["messages"].extend(result["messages"])
        if result["analysis"] is not None:
            self.state["analysis"] = result["analysis"]
        if first_round and result["multi_language_analysis"] is not None:
            self._apply_language_analysis(result["multi_language_analysis"])
        if result["failed"]:
            return

        self.state["current_questions"] = result["questions"]
        if result["is_complete"]:
            self.state["is_complete"] = True
            self.state["is_best_effort"] = result["is_best_effort"]

    def _apply_language_analysis(self, analysis) -> None:
        self.state["multi_language_analysis"] = analysis
        if analysis["is_multi_language_requested"]:
            languages = self._supported_languages(analysis)
            self.state["available_languages"] = languages
            self.state["language_details"] = get_language_details(languages)

    def _supported_languages(self, analysis) -> list[str]:
        """Requested languages with the source language first when it was not requested."""
        languages = list(analysis["requested_languages"])
        source = self.config.source_language
        if source not in languages:
            languages.insert(0, source)
        return languages

    def _build_updated_prompt(self) -> str:
        original = next((m["content"] for m in self.state["messages"] if m["type"] == "user"), "")
        gathered = "\n".join(
            f"{key}: {', '.join(value) if isinstance(value, list) else value}"
            for key, value in self.state["context"].items()
        )
        return f"{original}\n\nAdditional Information:\n{gathered}"

    def _add_message(
        self,
        message_type: MessageType,
        content: str,
        metadata: MessageMetadata | None = None,
    ) -> None:
        self.state["messages"].append(new_message(message_type, content, metadata))

    # ------------------------------------------------------------------
    # Translation hand-off
    # ------------------------------------------------------------------

    async def generate_form_with_translations(self, form_json: dict[str, Any]) -> dict[str, Any]:
        """
        Return a copy of form_json augmented with translations. Without a
        multi-language request the copy is returned as is; when translation
        fails the original form comes back untranslated.
        """
        analysis = self.state["multi_language_analysis"]
        if not analysis or not analysis["is_multi_language_requested"]:
            return dict(form_json)

        source = self.config.source_language
        targets = [code for code in analysis["requested_languages"] if code != source]
        if not targets:
            return dict(form_json)

        supported = self._supported_languages(analysis)
        details = get_language_details(supported)
        try:
            result = await self.translation_agent.generate_translations(
                {
                    "form_json": form_json,
                    "target_languages": targets,
                    "source_language": source,
                    "language_details": details,
                }
            )
        except Exception as exc:
            logger.error("Translation hand-off failed: %s", exc)
            return form_json

        if not result["success"]:
            logger.warning("Returning untranslated form: %s", result.get("errors"))
            return form_json

        return {
            **form_json,
            "translations": result["translations"] or {},
            "defaultLanguage": source,
            "supportedLanguages": supported,
            "languageDetails": [
                {"code": d["code"], "name": d["name"], "nativeName": d["native_name"]}
                for d in details
            ],
        }

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def get_current_state(self) -> ConversationState:
        return copy.deepcopy(self.state)

    def get_conversation_history(self) -> list[ConversationMessage]:
        return copy.deepcopy(self.state["messages"])

    def get_current_questions(self) -> list[AgentQuestion]:
        return copy.deepcopy(self.state["current_questions"])

    def get_gathered_information(self) -> dict:
        return copy.deepcopy(self.state["context"])

    def is_conversation_complete(self) -> bool:
        return self.state["is_complete"]

    def get_analysis(self) -> PromptAnalysis | None:
        return copy.deepcopy(self.state["analysis"])

    def get_session_id(self) -> str:
        return self.state["session_id"]

    def get_form_generation_context(self) -> FormGenerationContext | None:
        """Inputs for form generation; None until the conversation is complete."""
        if not self.state["is_complete"]:
            return None
        analysis = self.state["analysis"] or {
            "is_complete": False,
            "missing_categories": [],
            "confidence": 0.0,
            "reasoning": "No analysis available",
            "suggested_questions": [],
        }
        return {
            "original_prompt": next(
                (m["content"] for m in self.state["messages"] if m["type"] == "user"), ""
            ),
            "conversation_history": self.get_conversation_history(),
            "gathered_information": self.get_gathered_information(),
            "analysis": copy.deepcopy(analysis),
            "is_best_effort": self.state["is_best_effort"],
        }

    def get_multi_language_state(self) -> dict:
        return {
            "multi_language_analysis": copy.deepcopy(self.state["multi_language_analysis"]),
            "current_language": self.state["current_language"],
            "available_languages": list(self.state["available_languages"]),
            "language_details": copy.deepcopy(self.state["language_details"]),
        }

    def is_multi_language_enabled(self) -> bool:
        analysis = self.state["multi_language_analysis"]
        return bool(analysis and analysis["is_multi_language_requested"])

    def set_current_language(self, code: str) -> None:
        if code in self.state["available_languages"]:
            self.state["current_language"] = code
        else:
            logger.warning("Unsupported language %r, using %s", code, self.config.source_language)
            self.state["current_language"] = self.config.source_language

    def reset_conversation(self) -> None:
        self.state = self._initial_state()
