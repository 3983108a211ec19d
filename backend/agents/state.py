from typing import Any, Literal, TypedDict

InputType = Literal["text", "textarea", "select", "multiselect"]
MessageType = Literal["user", "agent", "system"]


class MessageMetadata(TypedDict, total=False):
    question_id: str
    category: str
    is_question: bool


class ConversationMessage(TypedDict):
    id: str
    type: MessageType
    content: str
    timestamp: str  # ISO-8601, UTC
    metadata: MessageMetadata | None


class PromptAnalysis(TypedDict):
    is_complete: bool
    missing_categories: list[str]
    confidence: float
    reasoning: str
    suggested_questions: list[str]


class AgentQuestion(TypedDict):
    id: str
    question: str
    category: str
    input_type: InputType
    options: list[str] | None  # set for select / multiselect only
    required: bool
    placeholder: str
    help_text: str


class LanguageDetail(TypedDict):
    code: str
    name: str
    native_name: str


class MultiLanguageAnalysis(TypedDict):
    is_multi_language_requested: bool
    requested_languages: list[str]
    confidence: float
    reasoning: str
    suggested_languages: list[str] | None
    language_details: list[LanguageDetail]


class TranslationRequest(TypedDict, total=False):
    form_json: dict[str, Any]
    target_languages: list[str]
    source_language: str
    language_details: list[LanguageDetail]


class TranslationResult(TypedDict):
    success: bool
    translations: dict[str, Any] | None
    errors: list[str] | None
    processing_time: int  # ms


class ConversationState(TypedDict):
    session_id: str
    messages: list[ConversationMessage]
    current_questions: list[AgentQuestion]
    # question id -> answer (multiselect answers are lists)
    context: dict[str, str | list[str]]
    is_complete: bool
    is_best_effort: bool
    rounds: int
    analysis: PromptAnalysis | None
    multi_language_analysis: MultiLanguageAnalysis | None
    current_language: str
    available_languages: list[str]
    language_details: list[LanguageDetail] | None


class FormGenerationContext(TypedDict):
    original_prompt: str
    conversation_history: list[ConversationMessage]
    gathered_information: dict[str, str | list[str]]
    analysis: PromptAnalysis
    is_best_effort: bool
