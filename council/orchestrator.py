"""Council orchestration: parallel answers, anonymized peer review, synthesis."""

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Callable, Mapping

from config.config_loader import PromptsConfig
from council.anonymizer import anonymize, ensure_alphabet, format_anonymized_block
from council.errors import InsufficientResponses, SynthesisFailed
from council.gateway import BackendGateway
from council.models import (
    AggregateRank,
    AnonymizedView,
    CouncilResult,
    Member,
    MemberFailure,
    ModelResponse,
    Question,
    Ranking,
)
from council.providers.base import BackendError
from council.review_parser import Parsed, parse_review

logger = logging.getLogger(__name__)

# A single answer cannot be cross-reviewed
MIN_RESPONSES = 2

# Quality gate: warn when fewer than this many members answer in Stage 1
_MIN_QUALITY_RESPONSES = 3

STAGE_ANSWER = 1
STAGE_REVIEW = 2
STAGE_SYNTHESIS = 3

StageCallback = Callable[[int, str], None]


async def _call_member(
    gateway: BackendGateway,
    member_id: str,
    prompt: str,
    deadline: float,
    stage: int,
) -> ModelResponse | BackendError:
    """Call one member. Never raises; returns BackendError on failure."""
    try:
        return await gateway.invoke(member_id, prompt, deadline, stage)
    except BackendError as exc:
        logger.warning("Member %s failed in stage %d: %s", member_id, stage, exc)
        return exc


def _failure(exc: BackendError, member_id: str, stage: int) -> MemberFailure:
    return MemberFailure(member=member_id, stage=stage, kind=exc.kind.value, message=exc.message)


def _unique_ids(members: list[Member]) -> list[str]:
    ids: list[str] = []
    for member in members:
        if not member.is_participant:
            logger.warning("Member %s is not tagged as a participant, skipped", member.id)
            continue
        if member.id in ids:
            logger.warning("Duplicate participant %s ignored", member.id)
            continue
        ids.append(member.id)
    return ids


async def collect_responses(
    question: Question,
    participant_ids: list[str],
    gateway: BackendGateway,
    prompts: PromptsConfig,
    per_call_timeout: float,
) -> tuple[dict[str, ModelResponse], list[MemberFailure]]:
    """Stage 1: ask every participant the question concurrently."""
    logger.info("Stage 1: querying %d participants", len(participant_ids))

    tasks = [
        _call_member(
            gateway,
            member_id,
            prompts.initial.format(persona=prompts.personas.get(member_id, ""), question=question.text),
            per_call_timeout,
            STAGE_ANSWER,
        )
        for member_id in participant_ids
    ]
    results = await asyncio.gather(*tasks)

    responses: dict[str, ModelResponse] = {}
    failures: list[MemberFailure] = []
    for member_id, result in zip(participant_ids, results):
        if isinstance(result, BackendError):
            failures.append(_failure(result, member_id, STAGE_ANSWER))
        else:
            responses[member_id] = result

    logger.info("Stage 1 complete: %d/%d participants responded", len(responses), len(participant_ids))
    return responses, failures


def build_review_prompt(question: Question, view: AnonymizedView, prompts: PromptsConfig) -> str:
    return prompts.review.format(
        question=question.text,
        responses_anonymized=format_anonymized_block(view),
        labels=", ".join(view.labels),
    )


async def collect_rankings(
    question: Question,
    responses: Mapping[str, ModelResponse],
    gateway: BackendGateway,
    prompts: PromptsConfig,
    per_call_timeout: float,
) -> tuple[dict[str, Ranking], list[MemberFailure]]:
    """Stage 2: each responder ranks the others' anonymized answers.

    Only members that answered in Stage 1 review. A failed call or an
    unparsable review leaves that reviewer without a ranking.
    """
    reviewers = sorted(responses)
    views = {reviewer: anonymize(responses, exclude_member=reviewer) for reviewer in reviewers}
    for reviewer, view in views.items():
        logger.debug("Stage 2 anonymization for %s: %s", reviewer, view.label_to_member)

    logger.info("Stage 2: requesting %d peer reviews", len(reviewers))
    tasks = [
        _call_member(
            gateway,
            reviewer,
            build_review_prompt(question, views[reviewer], prompts),
            per_call_timeout,
            STAGE_REVIEW,
        )
        for reviewer in reviewers
    ]
    results = await asyncio.gather(*tasks)

    rankings: dict[str, Ranking] = {}
    failures: list[MemberFailure] = []
    for reviewer, result in zip(reviewers, results):
        if isinstance(result, BackendError):
            failures.append(_failure(result, reviewer, STAGE_REVIEW))
            continue
        parsed = parse_review(result.content, views[reviewer].label_to_member, reviewer=reviewer)
        if isinstance(parsed, Parsed):
            rankings[reviewer] = parsed.ranking
        else:
            logger.warning("Review from %s could not be parsed: %s", reviewer, parsed.reason)
            failures.append(MemberFailure(reviewer, STAGE_REVIEW, "unparsable", parsed.reason))

    logger.info("Stage 2 complete: %d/%d rankings parsed", len(rankings), len(reviewers))
    return rankings, failures


def aggregate_rankings(rankings: Mapping[str, Ranking]) -> list[AggregateRank]:
    """Average 1-based position of each member across all rankings, best first."""
    positions: dict[str, list[int]] = defaultdict(list)
    for ranking in rankings.values():
        for position, member in enumerate(ranking.members, start=1):
            positions[member].append(position)

    aggregate = [
        AggregateRank(member=member, average_position=round(sum(pos) / len(pos), 2), votes=len(pos))
        for member, pos in positions.items()
    ]
    aggregate.sort(key=lambda a: (a.average_position, a.member))
    return aggregate


def _format_responses(responses: Mapping[str, ModelResponse]) -> str:
    parts = [
        f"### {member} ({responses[member].model})\n{responses[member].content}"
        for member in sorted(responses)
    ]
    return "\n\n".join(parts)


def _format_rankings(rankings: Mapping[str, Ranking]) -> str:
    if not rankings:
        return "No peer rankings were produced."
    parts: list[str] = []
    for reviewer in sorted(rankings):
        lines = [f"### Review by {reviewer}"]
        for position, entry in enumerate(rankings[reviewer].entries, start=1):
            line = f"{position}. {entry.member}"
            if entry.reasoning:
                line += f": {entry.reasoning}"
            lines.append(line)
        parts.append("\n".join(lines))
    return "\n\n".join(parts)


def _format_aggregate(aggregate: list[AggregateRank]) -> str:
    if not aggregate:
        return "No aggregate ranking available."
    return "\n".join(
        f"{i}. {a.member} (average position {a.average_position:.2f}, {a.votes} vote(s))"
        for i, a in enumerate(aggregate, start=1)
    )


def _format_missing(failures: list[MemberFailure] | tuple[MemberFailure, ...]) -> str:
    if not failures:
        return "None. Every participant answered and every review was parsed."
    ordered = sorted(failures, key=lambda f: (f.stage, f.member))
    return "\n".join(f"- {f.member}: stage {f.stage} {f.kind} ({f.message})" for f in ordered)


def build_synthesis_prompt(
    question: Question,
    responses: Mapping[str, ModelResponse],
    rankings: Mapping[str, Ranking],
    prompts: PromptsConfig,
    failures: list[MemberFailure] | tuple[MemberFailure, ...] = (),
) -> str:
    """Render the aggregator prompt.

    Every section is ordered by member id, never by arrival order, so the
    same inputs always render the same text.
    """
    return prompts.synthesis.format(
        question=question.text,
        responses=_format_responses(responses),
        rankings=_format_rankings(rankings),
        aggregate=_format_aggregate(aggregate_rankings(rankings)),
        missing=_format_missing(failures),
    )


async def run_council(
    question: Question,
    participants: list[Member],
    aggregator: Member,
    gateway: BackendGateway,
    prompts: PromptsConfig,
    per_call_timeout: float,
    on_stage_complete: StageCallback | None = None,
) -> CouncilResult:
    """Run all three council stages for one question.

    Args:
        question: The question put to the council.
        participants: Members that answer and review.
        aggregator: Member that writes the final answer.
        gateway: Routes calls to member providers.
        prompts: Prompt templates from config.
        per_call_timeout: Deadline in seconds for every individual call.
        on_stage_complete: Optional callback invoked with (stage, summary) after each stage.

    Returns:
        CouncilResult with responses, rankings, and the synthesis.

    Raises:
        InsufficientResponses: Fewer than two participants answered.
        TooManyResponses: Too many answers to label for review.
        SynthesisFailed: The aggregator call failed.
        ValueError: The aggregator is not tagged as one.
    """
    if not aggregator.is_aggregator:
        raise ValueError(f"Member {aggregator.id} is not tagged as the aggregator")

    start = time.monotonic()
    participant_ids = _unique_ids(participants)
    # Each reviewer is shown every other participant's answer
    ensure_alphabet(len(participant_ids) - 1)

    responses, failures = await collect_responses(question, participant_ids, gateway, prompts, per_call_timeout)

    if len(responses) < MIN_RESPONSES:
        raise InsufficientResponses(len(responses), MIN_RESPONSES, tuple(failures))

    if len(participant_ids) >= _MIN_QUALITY_RESPONSES and len(responses) < _MIN_QUALITY_RESPONSES:
        logger.warning(
            "Only %d/%d members responded in Stage 1. "
            "Council quality is degraded. Consider re-running with a longer timeout or fewer members.",
            len(responses),
            len(participant_ids),
        )

    if on_stage_complete:
        on_stage_complete(STAGE_ANSWER, f"{len(responses)}/{len(participant_ids)} responses")

    rankings, review_failures = await collect_rankings(question, responses, gateway, prompts, per_call_timeout)
    failures.extend(review_failures)

    if on_stage_complete:
        on_stage_complete(STAGE_REVIEW, f"{len(rankings)}/{len(responses)} rankings")

    synthesis_prompt = build_synthesis_prompt(question, responses, rankings, prompts, failures)

    logger.info("Stage 3: synthesis via %s", aggregator.id)
    try:
        synthesis = await gateway.invoke(aggregator.id, synthesis_prompt, per_call_timeout, STAGE_SYNTHESIS)
    except BackendError as exc:
        raise SynthesisFailed(aggregator.id, str(exc), tuple(failures), responses, rankings) from exc

    if on_stage_complete:
        on_stage_complete(STAGE_SYNTHESIS, f"synthesized by {aggregator.id}")

    return CouncilResult(
        question=question,
        participants=tuple(participant_ids),
        responses=responses,
        rankings=rankings,
        aggregate=tuple(aggregate_rankings(rankings)),
        synthesis=synthesis.content,
        aggregator=aggregator.id,
        synthesis_prompt=synthesis_prompt,
        total_duration_sec=time.monotonic() - start,
        failures=tuple(failures),
    )
