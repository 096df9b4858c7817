"""
Unit tests for the Socratic dialogue lifecycle.
"""

import json
from datetime import timedelta

import httpx
import pytest

from tutorcore.core.errors import InvalidStateTransition
from tutorcore.integrations.llm_client import LLMClient
from tutorcore.tutoring.dialogue_manager import (
    MAX_EXCHANGES,
    DialogueManager,
    DialogueStatus,
    EndReason,
)
from tutorcore.tutoring.socratic import QuestionType, UnderstandingLevel

MISCONCEPTION = "the mask is the address"


@pytest.fixture
def manager(rng):
    return DialogueManager(rng=rng)


@pytest.fixture
def dialogue(manager, now):
    return manager.start_dialogue("learner-1", "subnetting", "Subnetting", "subnet mask", now=now)


class TestStart:
    def test_opening_question(self, dialogue, now):
        assert dialogue.status == DialogueStatus.ACTIVE
        assert dialogue.current_question_type == QuestionType.CLARIFYING
        assert "subnet mask" in dialogue.current_question
        assert dialogue.started_at == now
        assert dialogue.dialogue_id.startswith("socratic-")


class TestAdvance:
    """Tests for advance_dialogue."""

    @pytest.mark.asyncio
    async def test_advances_one_step(self, manager, dialogue, now):
        turn = await manager.advance_dialogue(dialogue, "I don't know", now=now + timedelta(minutes=1))

        assert turn.analysis.understanding_level == UnderstandingLevel.NONE
        assert turn.next_question_type == QuestionType.SCAFFOLDING
        assert turn.next_question
        assert turn.dialogue.exchange_count == 1
        assert turn.dialogue.state.exchanges[0].tutor_question == dialogue.current_question
        assert dialogue.exchange_count == 0

    @pytest.mark.asyncio
    async def test_discovery_jumps_to_reflection(self, manager, dialogue):
        turn = await manager.advance_dialogue(dialogue, "Oh! I see, that means the mask marks network bits")

        assert turn.analysis.is_discovery is True
        assert turn.next_question_type == QuestionType.REFLECTION
        assert turn.celebration is not None
        assert turn.dialogue.state.discovery_made is True

    @pytest.mark.asyncio
    async def test_completes_when_path_exhausted(self, manager, dialogue):
        turn = await manager.advance_dialogue(dialogue, "Oh! I see, that means the mask marks network bits")
        turn = await manager.advance_dialogue(turn.dialogue, "ok")
        turn = await manager.advance_dialogue(turn.dialogue, "ok")

        assert turn.is_complete is True
        assert turn.dialogue.status == DialogueStatus.COMPLETED
        assert turn.dialogue.end_reason == EndReason.PATH_COMPLETE
        assert turn.next_question is None
        assert turn.dialogue.state.is_complete

    @pytest.mark.asyncio
    async def test_max_exchanges(self, manager):
        dialogue = manager.start_dialogue("l", "s", "Subnetting", "subnet mask", [MISCONCEPTION])

        for _ in range(MAX_EXCHANGES):
            turn = await manager.advance_dialogue(dialogue, f"I think {MISCONCEPTION}")
            dialogue = turn.dialogue

        assert dialogue.status == DialogueStatus.COMPLETED
        assert dialogue.end_reason == EndReason.MAX_EXCHANGES
        assert dialogue.exchange_count == MAX_EXCHANGES
        assert dialogue.misconceptions_surfaced == (MISCONCEPTION,)

    @pytest.mark.asyncio
    async def test_advancing_closed_dialogue_raises(self, manager, dialogue):
        closed, _ = manager.end_dialogue(dialogue)

        with pytest.raises(InvalidStateTransition):
            await manager.advance_dialogue(closed, "hello")

        assert closed.exchange_count == 0
        assert closed.status == DialogueStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_advancing_abandoned_dialogue_raises(self, manager, dialogue):
        abandoned = manager.abandon_dialogue(dialogue)

        with pytest.raises(InvalidStateTransition) as exc_info:
            await manager.advance_dialogue(abandoned, "hello")

        assert exc_info.value.status == "abandoned"

    @pytest.mark.asyncio
    async def test_model_renders_questions(self, rng):
        def handler(request):
            prompt = json.loads(request.content)["prompt"]
            if "understandingLevel" in prompt:
                return httpx.Response(200, json={"text": '{"understandingLevel": "partial"}'})
            return httpx.Response(200, json={"text": "What would happen with a /30?"})

        llm = LLMClient("http://llm.local", transport=httpx.MockTransport(handler))
        manager = DialogueManager(llm=llm, rng=rng)
        try:
            dialogue = manager.start_dialogue("l", "s", "Subnetting", "subnet mask")
            turn = await manager.advance_dialogue(dialogue, "ok")
        finally:
            await llm.close()

        assert turn.analysis.source == "llm"
        assert turn.next_question == "What would happen with a /30?"

    @pytest.mark.asyncio
    async def test_model_failure_uses_templates(self, rng):
        llm = LLMClient("http://llm.local", transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        manager = DialogueManager(llm=llm, rng=rng)
        try:
            dialogue = manager.start_dialogue("l", "s", "Subnetting", "subnet mask")
            turn = await manager.advance_dialogue(dialogue, "I don't know")
        finally:
            await llm.close()

        assert turn.analysis.source == "heuristic"
        assert turn.next_question
        assert turn.next_question_type == QuestionType.SCAFFOLDING


class TestEnd:
    @pytest.mark.asyncio
    async def test_end_early_produces_summary(self, manager, dialogue, now):
        turn = await manager.advance_dialogue(dialogue, "maybe it is the mask", now=now + timedelta(minutes=2))

        closed, summary = manager.end_dialogue(turn.dialogue, now=now + timedelta(minutes=5))

        assert closed.status == DialogueStatus.COMPLETED
        assert closed.end_reason == EndReason.ENDED_EARLY
        assert summary.total_exchanges == 1
        assert summary.end_reason == EndReason.ENDED_EARLY
        assert summary.duration_seconds == 300.0
        assert summary.confidence_tone == "uncertain"
        assert summary.to_dict()["final_understanding"] == "partial"

    def test_end_without_exchanges(self, manager, dialogue):
        _, summary = manager.end_dialogue(dialogue)

        assert summary.total_exchanges == 0
        assert summary.effectiveness_score == 0.0
        assert summary.confidence_tone == "balanced"

    def test_end_is_idempotent(self, manager, dialogue, now):
        closed, _ = manager.end_dialogue(dialogue, now=now)
        again, summary = manager.end_dialogue(closed, now=now + timedelta(hours=1))

        assert again is closed
        assert summary.duration_seconds == 0.0

    def test_end_abandoned_keeps_status(self, manager, dialogue):
        abandoned = manager.abandon_dialogue(dialogue)

        _, summary = manager.end_dialogue(abandoned)

        assert summary.status == DialogueStatus.ABANDONED
        assert summary.end_reason == EndReason.ABANDONED
