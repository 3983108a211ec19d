import asyncio

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from api import routes
from conversation.manager import ConversationManager
from main import app
from test_conversation_manager import (
    COMPLETE,
    INCOMPLETE,
    SPANISH_AND_FRENCH,
    FakeAnalysisAgent,
    FakeDetectionAgent,
    FakeQuestionAgent,
    FakeTranslationAgent,
    _question,
)


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(routes, "sessions", routes.SessionRegistry())
    return TestClient(app)


def _use_agents(monkeypatch, analysis, questions=None, detection=None, translation=None):
    def create_manager():
        return ConversationManager(
            analysis_agent=analysis,
            question_agent=questions or FakeQuestionAgent([]),
            detection_agent=detection or FakeDetectionAgent(),
            translation_agent=translation or FakeTranslationAgent(None),
        )

    monkeypatch.setattr(routes, "create_manager", create_manager)


def test_question_and_answer_flow(client, monkeypatch):
    _use_agents(
        monkeypatch,
        FakeAnalysisAgent(INCOMPLETE, COMPLETE),
        FakeQuestionAgent([[_question("purpose_question")]]),
    )

    started = client.post("/conversations", json={"prompt": "I need a form"})
    assert started.status_code == 200
    session_id = started.json()["session_id"]
    assert started.json()["current_questions"][0]["id"] == "purpose_question"

    assert client.get(f"/conversations/{session_id}/context").status_code == 409

    answered = client.post(
        f"/conversations/{session_id}/responses",
        json={"answer": "Customer feedback form", "question_id": "purpose_question"},
    )
    assert answered.json()["is_complete"] is True

    context = client.get(f"/conversations/{session_id}/context").json()
    assert context["gathered_information"] == {"purpose_question": "Customer feedback form"}


def test_skip_and_delete(client, monkeypatch):
    _use_agents(monkeypatch, FakeAnalysisAgent(INCOMPLETE), FakeQuestionAgent([[_question("q1")]]))
    session_id = client.post("/conversations", json={"prompt": "I need a form"}).json()["session_id"]

    skipped = client.post(f"/conversations/{session_id}/skip")
    assert skipped.json()["is_complete"] is True

    assert client.delete(f"/conversations/{session_id}").json() == {"success": True}
    assert client.get(f"/conversations/{session_id}").status_code == 404


def test_translation_and_language_routes(client, monkeypatch):
    translator = FakeTranslationAgent(
        {"success": True, "translations": {"es": {}, "fr": {}}, "errors": None, "processing_time": 1}
    )
    _use_agents(
        monkeypatch,
        FakeAnalysisAgent(COMPLETE),
        detection=FakeDetectionAgent(SPANISH_AND_FRENCH),
        translation=translator,
    )
    session_id = client.post("/conversations", json={"prompt": "Form in Spanish and French"}).json()[
        "session_id"
    ]

    form = client.post(
        f"/conversations/{session_id}/translations", json={"form_json": {"app": {"title": "Signup"}}}
    ).json()
    assert form["supportedLanguages"] == ["en", "es", "fr"]

    languages = client.put(f"/conversations/{session_id}/language", json={"language": "es"}).json()
    assert languages["current_language"] == "es"


def test_unknown_session_is_404(client):
    assert client.get("/conversations/agent_session_missing").status_code == 404
    response = client.post("/conversations/agent_session_missing/responses", json={"answer": "x"})
    assert response.status_code == 404


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_delete_waits_for_in_flight_response(monkeypatch):
    registry = routes.SessionRegistry()
    monkeypatch.setattr(routes, "sessions", registry)
    events = []

    class SlowManager:
        def __init__(self):
            self.started = asyncio.Event()
            self.release = asyncio.Event()

        def get_session_id(self):
            return "agent_session_slow"

        async def process_user_response(self, answer, question_id=None):
            self.started.set()
            await self.release.wait()
            events.append("answered")
            return {"session_id": "agent_session_slow"}

    async def scenario():
        manager = SlowManager()
        registry.add(manager)
        answering = asyncio.create_task(
            routes.answer_question("agent_session_slow", routes.UserResponseRequest(answer="Feedback"))
        )
        await manager.started.wait()

        deleting = asyncio.create_task(routes.delete_conversation("agent_session_slow"))
        for _ in range(3):
            await asyncio.sleep(0)
        assert not deleting.done()

        manager.release.set()
        await answering
        assert await deleting == {"success": True}
        events.append("deleted")

    asyncio.run(scenario())

    assert events == ["answered", "deleted"]
    with pytest.raises(HTTPException):
        registry.get("agent_session_slow")
