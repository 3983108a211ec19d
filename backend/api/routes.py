import asyncio
import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from conversation.manager import ConversationManager

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Session registry
# ---------------------------------------------------------------------------

class SessionRegistry:
    """
    In-memory conversations keyed by session id. Each session has its own
    lock so operations on one conversation run one at a time.
    """

    def __init__(self) -> None:
        self._managers: dict[str, ConversationManager] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def add(self, manager: ConversationManager) -> str:
        session_id = manager.get_session_id()
        self._managers[session_id] = manager
        self._locks[session_id] = asyncio.Lock()
        return session_id

    def get(self, session_id: str) -> tuple[ConversationManager, asyncio.Lock]:
        manager = self._managers.get(session_id)
        if manager is None:
            raise HTTPException(status_code=404, detail=f"Unknown session {session_id}")
        return manager, self._locks[session_id]

    def remove(self, session_id: str) -> None:
        self.get(session_id)
        del self._managers[session_id]
        del self._locks[session_id]


sessions = SessionRegistry()


def create_manager() -> ConversationManager:
    return ConversationManager()


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class StartConversationRequest(BaseModel):
    prompt: str


class UserResponseRequest(BaseModel):
    answer: str | list[str]
    question_id: str | None = None


class TranslateFormRequest(BaseModel):
    form_json: dict[str, Any]


class LanguageRequest(BaseModel):
    language: str


# ===========================================================================
# CONVERSATION ROUTES
# ===========================================================================

@router.post("/conversations")
async def start_conversation(body: StartConversationRequest):
    manager = create_manager()
    state = await manager.start_conversation(body.prompt)
    sessions.add(manager)
    logger.info("Started conversation %s (complete=%s)", state["session_id"], state["is_complete"])
    return state


@router.get("/conversations/{session_id}")
async def get_conversation(session_id: str):
    manager, _ = sessions.get(session_id)
    return manager.get_current_state()


@router.post("/conversations/{session_id}/responses")
async def answer_question(session_id: str, body: UserResponseRequest):
    manager, lock = sessions.get(session_id)
    async with lock:
        return await manager.process_user_response(body.answer, body.question_id)


@router.post("/conversations/{session_id}/skip")
async def skip_questions(session_id: str):
    manager, lock = sessions.get(session_id)
    async with lock:
        return await manager.skip_to_form_generation()


@router.get("/conversations/{session_id}/context")
async def form_generation_context(session_id: str):
    manager, _ = sessions.get(session_id)
    context = manager.get_form_generation_context()
    if context is None:
        raise HTTPException(status_code=409, detail="Conversation is not complete yet")
    return context


@router.post("/conversations/{session_id}/translations")
async def translate_form(session_id: str, body: TranslateFormRequest):
    manager, lock = sessions.get(session_id)
    async with lock:
        return await manager.generate_form_with_translations(body.form_json)


@router.put("/conversations/{session_id}/language")
async def set_language(session_id: str, body: LanguageRequest):
    manager, lock = sessions.get(session_id)
    async with lock:
        manager.set_current_language(body.language)
        return manager.get_multi_language_state()


@router.delete("/conversations/{session_id}")
async def delete_conversation(session_id: str):
    _, lock = sessions.get(session_id)
    async with lock:
        sessions.remove(session_id)
    return {"success": True}
