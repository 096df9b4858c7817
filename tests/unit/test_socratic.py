"""
Unit tests for the Socratic dialogue state machine.

Tests:
- Path planning and adaptation
- Discovery-moment heuristic
- Regex understanding classifier and model-backed analysis
- Exchange recording and effectiveness scoring
"""

import json
import random
from dataclasses import replace

import httpx
import pytest

from tutorcore.integrations.llm_client import LLMClient
from tutorcore.tutoring.socratic import (
    QUESTION_TEMPLATES,
    DialogueState,
    QuestionType,
    ResponseAnalysis,
    SocraticExchange,
    UnderstandingLevel,
    adapt_dialogue_path,
    analyze_response,
    calculate_effectiveness,
    classify_understanding,
    confidence_tone,
    detect_discovery_moment,
    generate_guiding_question,
    plan_dialogue,
    plan_dialogue_path,
    record_exchange,
)

C, P, S, CH, R, M = (
    QuestionType.CLARIFYING,
    QuestionType.PROBING,
    QuestionType.SCAFFOLDING,
    QuestionType.CHALLENGING,
    QuestionType.REFLECTION,
    QuestionType.METACOGNITIVE,
)
DEFAULT_PATH = [C, S, P, S, R, M]
MISCONCEPTION = "the mask is the address"


@pytest.fixture
def state():
    return plan_dialogue("subnetting", "Subnetting", "subnet mask", [MISCONCEPTION])


def _exchange(n, understanding=UnderstandingLevel.PARTIAL, discovery=False, response="ok"):
    return SocraticExchange(
        exchange_id=f"exchange-{n}",
        question_type=C,
        tutor_question="Why?",
        student_response=response,
        detected_understanding=understanding,
        led_to_discovery=discovery,
    )


class TestPlanning:
    def test_misconception_plan(self):
        assert plan_dialogue_path(UnderstandingLevel.NONE, True) == [C, P, CH, S, R, M]

    def test_partial_plan(self):
        assert plan_dialogue_path(UnderstandingLevel.PARTIAL, False) == [C, S, P, CH, R, M]

    def test_default_plan(self):
        assert plan_dialogue_path(UnderstandingLevel.NONE, False) == DEFAULT_PATH

    def test_plan_dialogue_uses_misconceptions(self, state):
        assert list(state.dialogue_path) == [C, P, CH, S, R, M]
        assert state.next_question_type == C
        assert state.current_path_index == 0


class TestAdaptation:
    """Tests for adapt_dialogue_path."""

    def test_discovery_short_circuits(self):
        assert adapt_dialogue_path(DEFAULT_PATH, 1, UnderstandingLevel.NONE, True) == ([R, M], 0)

    def test_correct_drops_scaffolding(self):
        assert adapt_dialogue_path(DEFAULT_PATH, 1, UnderstandingLevel.CORRECT, False) == ([P, R, M], 0)

    def test_advanced_appends_reflection_when_missing(self):
        assert adapt_dialogue_path(DEFAULT_PATH, 4, UnderstandingLevel.ADVANCED, False) == ([M, R], 0)
        assert adapt_dialogue_path(DEFAULT_PATH, 5, UnderstandingLevel.CORRECT, False) == ([R], 0)

    def test_misconception_inserts_probe_and_challenge(self):
        path, index = adapt_dialogue_path(DEFAULT_PATH, 0, UnderstandingLevel.MISCONCEPTION, False)
        assert path == [P, CH, S, P, S, R, M]
        assert index == 0

    def test_otherwise_advances_one_step(self):
        assert adapt_dialogue_path(DEFAULT_PATH, 2, UnderstandingLevel.PARTIAL, False) == (DEFAULT_PATH, 3)

    def test_index_never_passes_path_end(self):
        assert adapt_dialogue_path(DEFAULT_PATH, 5, UnderstandingLevel.NONE, False)[1] == 6
        assert adapt_dialogue_path(DEFAULT_PATH, 6, UnderstandingLevel.NONE, False)[1] == 6

    def test_random_walk_keeps_index_in_bounds(self):
        rng = random.Random(11)
        path, index = DEFAULT_PATH, 0
        for _ in range(200):
            level = rng.choice(list(UnderstandingLevel))
            path, index = adapt_dialogue_path(path, index, level, rng.random() < 0.1)
            assert 0 <= index <= len(path)
            if index == len(path):
                path, index = DEFAULT_PATH, 0


class TestDiscovery:
    def test_insight_language(self):
        result = detect_discovery_moment("Oh! I see, so that's why the mask matters")

        assert result.is_discovery is True
        assert result.confidence >= 0.6
        assert any("insight" in i for i in result.indicators)

    def test_plain_answer(self):
        result = detect_discovery_moment("The answer is 24.")
        assert result.is_discovery is False
        assert result.confidence == 0.0

    def test_single_causal_marker_is_not_discovery(self):
        result = detect_discovery_moment("It is 24 because of the bits")
        assert result.confidence == pytest.approx(0.15)
        assert result.is_discovery is False

    def test_confidence_capped(self):
        text = "Oh! Aha, I see, I get it, that makes sense, now I understand, wait, so that means it works"
        assert detect_discovery_moment(text).confidence == 1.0

    def test_word_boundaries(self):
        assert detect_discovery_moment("I dislike guessing").confidence == 0.0


class TestClassification:
    @pytest.mark.parametrize(
        "response, expected",
        [
            (f"I think {MISCONCEPTION}", UnderstandingLevel.MISCONCEPTION),
            ("I don't know", UnderstandingLevel.NONE),
            ("The subnet mask separates network bits because it marks them with ones", UnderstandingLevel.CORRECT),
            ("In general the subnet mask works because ones mark the network", UnderstandingLevel.ADVANCED),
            ("Maybe the mask splits it because of bits", UnderstandingLevel.PARTIAL),
            ("It has something to do with the mask", UnderstandingLevel.PARTIAL),
            ("Routers forward packets", UnderstandingLevel.NONE),
        ],
    )
    def test_regex_classifier(self, response, expected):
        assert classify_understanding(response, "subnet mask", [MISCONCEPTION]) == expected

    @pytest.mark.asyncio
    async def test_without_model_uses_heuristic(self, state):
        analysis = await analyze_response("I don't know", state, "What is a mask?")

        assert analysis.understanding_level == UnderstandingLevel.NONE
        assert analysis.source == "heuristic"

    @pytest.mark.asyncio
    async def test_model_analysis(self, state):
        def handler(request):
            assert "understandingLevel" in json.loads(request.content)["prompt"]
            return httpx.Response(200, json={"text": '{"understandingLevel": "advanced", "isDiscoveryMoment": false}'})

        llm = LLMClient("http://llm.local", transport=httpx.MockTransport(handler))
        try:
            analysis = await analyze_response("ok", state, "What is a mask?", llm)
        finally:
            await llm.close()

        assert analysis.understanding_level == UnderstandingLevel.ADVANCED
        assert analysis.source == "llm"

    @pytest.mark.asyncio
    async def test_unknown_model_level_falls_back(self, state):
        handler = lambda request: httpx.Response(200, json={"text": '{"understandingLevel": "brilliant"}'})  # noqa: E731
        llm = LLMClient("http://llm.local", transport=httpx.MockTransport(handler))
        try:
            analysis = await analyze_response("I don't know", state, "What is a mask?", llm)
        finally:
            await llm.close()

        assert analysis.source == "heuristic"
        assert analysis.understanding_level == UnderstandingLevel.NONE


class TestRecording:
    def test_record_exchange_returns_new_state(self, state, now):
        analysis = ResponseAnalysis(UnderstandingLevel.CORRECT)

        updated = record_exchange(state, "What is a mask?", C, "It marks network bits", analysis, timestamp=now)

        assert state.exchanges == ()
        assert len(updated.exchanges) == 1
        assert updated.exchanges[0].exchange_id == "exchange-1"
        assert updated.exchanges[0].timestamp == now
        assert updated.current_understanding == UnderstandingLevel.CORRECT
        assert list(updated.dialogue_path) == [P, CH, R, M]
        assert updated.current_path_index == 0

    def test_discovery_sticks(self, state):
        first = record_exchange(state, "q", C, "aha", ResponseAnalysis(UnderstandingLevel.PARTIAL, is_discovery=True))
        second = record_exchange(first, "q", R, "hm", ResponseAnalysis(UnderstandingLevel.PARTIAL))

        assert second.discovery_made is True
        assert [e.led_to_discovery for e in second.exchanges] == [True, False]

    def test_templates_fill_all_slots(self, state, rng):
        for question_type in QuestionType:
            for _ in range(len(QUESTION_TEMPLATES[question_type])):
                assert "{" not in generate_guiding_question(state, question_type, rng)


class TestEffectiveness:
    def test_no_exchanges(self, state):
        result = calculate_effectiveness(state)
        assert result.score == 0.0
        assert result.interpretation == "No exchanges yet"

    def test_discovery_with_resolved_misconception(self, state):
        finished = replace(
            state,
            exchanges=(_exchange(1), _exchange(2, UnderstandingLevel.CORRECT, discovery=True)),
            current_understanding=UnderstandingLevel.CORRECT,
            discovery_made=True,
        )

        result = calculate_effectiveness(finished)

        assert result.self_discovery_rate == 0.5
        assert result.exchange_efficiency == pytest.approx(0.75)
        assert result.misconception_addressed is True
        assert result.score == pytest.approx(0.725)
        assert result.interpretation.startswith("Excellent")

    def test_long_dialogue_without_discovery(self):
        state = DialogueState("s", "S", "c", exchanges=tuple(_exchange(i) for i in range(8)))

        result = calculate_effectiveness(state)

        assert result.score == 0.0
        assert result.misconception_addressed is False
        assert result.interpretation.startswith("Consider")


class TestConfidenceTone:
    def test_uncertain(self):
        assert confidence_tone(["maybe it's 24", "I guess so"]) == "uncertain"

    def test_confident(self):
        assert confidence_tone(["It's definitely 24", "I'm sure"]) == "confident"

    def test_balanced(self):
        assert confidence_tone([]) == "balanced"
