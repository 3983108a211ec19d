"""
One analysis round of a conversation as a LangGraph pipeline:

    analyze -> [detect_languages] -> complete | ask_questions | best_effort

The first round also runs language detection. Nodes never raise: agent
failures become system messages and mark the round failed.
"""
import datetime
import logging
import operator
import uuid
from typing import Annotated, TypedDict

from langgraph.graph import END, START, StateGraph

from agents.state import (
    AgentQuestion,
    ConversationMessage,
    MessageMetadata,
    MessageType,
    MultiLanguageAnalysis,
    PromptAnalysis,
)

logger = logging.getLogger(__name__)

READY_FIRST_ROUND = "Your prompt contains sufficient information to generate a form. Ready to proceed!"
READY_FOLLOW_UP = "Perfect! I now have enough information to generate your form. Ready to proceed!"
BEST_EFFORT = (
    "I have enough information to proceed with form generation, "
    "though some details might be estimated."
)


class RoundState(TypedDict):
    prompt: str
    # transcript before this round; new messages accumulate in `messages`
    history: list[ConversationMessage]
    messages: Annotated[list[ConversationMessage], operator.add]
    first_round: bool
    force_complete: bool
    analysis: PromptAnalysis | None
    multi_language_analysis: MultiLanguageAnalysis | None
    questions: list[AgentQuestion]
    is_complete: bool
    is_best_effort: bool
    failed: bool


def new_message(
    message_type: MessageType,
    content: str,
    metadata: MessageMetadata | None = None,
) -> ConversationMessage:
    return {
        "id": f"msg_{uuid.uuid4().hex[:12]}",
        "type": message_type,
        "content": content,
        "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
        "metadata": metadata,
    }


def initial_round_state(
    prompt: str,
    history: list[ConversationMessage],
    first_round: bool,
    force_complete: bool = False,
    multi_language_analysis: MultiLanguageAnalysis | None = None,
) -> RoundState:
    return {
        "prompt": prompt,
        "history": history,
        "messages": [],
        "first_round": first_round,
        "force_complete": force_complete,
        "analysis": None,
        "multi_language_analysis": multi_language_analysis,
        "questions": [],
        "is_complete": False,
        "is_best_effort": False,
        "failed": False,
    }


def compile_round_graph(analysis_agent, question_agent, detection_agent, confidence_threshold: float = 0.7):
    """Build and compile the analysis round graph around the given agents."""

    async def analyze_node(state: RoundState) -> dict:
        try:
            analysis = await analysis_agent.analyze_prompt(state["prompt"])
        except Exception as exc:
            logger.error("Prompt analysis failed: %s", exc)
            return {
                "failed": True,
                "messages": [
                    new_message(
                        "system",
                        "Sorry, I encountered an error analyzing your prompt. Please try again.",
                    )
                ],
            }
        update = {"analysis": analysis}
        if state["first_round"]:
            update["messages"] = [
                new_message("agent", f"I've analyzed your request. {analysis['reasoning']}")
            ]
        return update

    async def detect_languages_node(state: RoundState) -> dict:
        try:
            result = await detection_agent.detect_multi_language_request(state["prompt"])
        except Exception as exc:
            logger.error("Multi-language detection failed: %s", exc)
            return {"multi_language_analysis": None}
        return {"multi_language_analysis": result}

    def complete_node(state: RoundState) -> dict:
        message = READY_FIRST_ROUND if state["first_round"] else READY_FOLLOW_UP
        return {"is_complete": True, "messages": [new_message("agent", message)]}

    def best_effort_node(state: RoundState) -> dict:
        logger.warning("Completing conversation as best effort")
        return {
            "is_complete": True,
            "is_best_effort": True,
            "questions": [],
            "messages": [new_message("agent", BEST_EFFORT)],
        }

    async def ask_questions_node(state: RoundState) -> dict:
        transcript = state["history"] + state["messages"]
        try:
            questions = await question_agent.generate_questions(state["analysis"], transcript)
        except Exception as exc:
            logger.error("Question generation failed: %s", exc)
            return {
                "failed": True,
                "messages": [
                    new_message(
                        "system",
                        "Sorry, I encountered an error preparing follow-up questions. Please try again.",
                    )
                ],
            }
        if not questions:
            return best_effort_node(state)
        return {
            "questions": questions,
            "messages": [
                new_message(
                    "agent",
                    q["question"],
                    {"question_id": q["id"], "category": q["category"], "is_question": True},
                )
                for q in questions
            ],
        }

    def decide(state: RoundState) -> str:
        analysis = state["analysis"]
        if analysis["is_complete"] and analysis["confidence"] > confidence_threshold:
            return "complete"
        if state["force_complete"]:
            return "best_effort"
        return "ask_questions"

    def route_after_analysis(state: RoundState) -> str:
        if state["failed"]:
            return "end"
        if state["first_round"]:
            return "detect_languages"
        return decide(state)

    graph = StateGraph(RoundState)

    graph.add_node("analyze", analyze_node)
    graph.add_node("detect_languages", detect_languages_node)
    graph.add_node("complete", complete_node)
    graph.add_node("ask_questions", ask_questions_node)
    graph.add_node("best_effort", best_effort_node)

    outcomes = {
        "complete": "complete",
        "ask_questions": "ask_questions",
        "best_effort": "best_effort",
    }

    graph.add_edge(START, "analyze")
    graph.add_conditional_edges(
        "analyze",
        route_after_analysis,
        {"detect_languages": "detect_languages", "end": END, **outcomes},
    )
    graph.add_conditional_edges("detect_languages", decide, outcomes)
    graph.add_edge("complete", END)
    graph.add_edge("ask_questions", END)
    graph.add_edge("best_effort", END)

    return graph.compile()
