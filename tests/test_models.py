"""Tests for council/models.py dataclasses."""

import dataclasses

import pytest

from council.models import (
    CouncilResult,
    Member,
    MemberFailure,
    ModelResponse,
    Question,
    RankedEntry,
    Ranking,
)


def test_question_fields():
    q = Question(text="Should we use YAML?", source="cli")
    assert q.text == "Should we use YAML?"
    assert q.source == "cli"


def test_member_defaults_and_immutability():
    m = Member("claude")
    assert m.is_participant is True
    assert m.is_aggregator is False
    with pytest.raises(dataclasses.FrozenInstanceError):
        m.id = "gemini"  # type: ignore[misc]


def test_model_response_optional_token_count():
    r = ModelResponse(
        provider="gemini",
        model="gemini-2.5-flash",
        stage=2,
        content="Some answer.",
        latency_sec=0.9,
        token_count=None,
    )
    assert r.token_count is None


def test_ranking_members_in_order():
    ranking = Ranking("m1", [RankedEntry("m3", "B", "best"), RankedEntry("m2", "A")])
    assert ranking.members == ["m3", "m2"]
    assert ranking.entries[1].reasoning == ""


def test_ranking_default_entries():
    assert Ranking("m1").entries == []


def test_council_result_disclosure(sample_question, sample_response):
    result = CouncilResult(
        question=sample_question,
        participants=("claude", "gemini", "openai"),
        responses={"claude": sample_response, "gemini": sample_response},
        rankings={"gemini": Ranking("gemini", [RankedEntry("claude", "A")])},
        aggregate=(),
        synthesis="## Consensus\nAll agreed.",
        aggregator="grok",
        synthesis_prompt="prompt",
        total_duration_sec=5.0,
        failures=(MemberFailure("openai", 1, "timeout", "slow"),),
    )
    assert result.missing_members == ["openai"]
    assert result.missing_reviewers == ["claude"]
    assert result.aggregator_is_participant is False
    with pytest.raises(TypeError):
        result.rankings["claude"] = Ranking("claude")  # type: ignore[index]
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.synthesis = "changed"  # type: ignore[misc]
