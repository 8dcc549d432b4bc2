"""Pure dataclasses for the council pipeline. No logic, no deps."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType


@dataclass
class Question:
    text: str
    source: str  # "cli" or file path


@dataclass(frozen=True)
class Member:
    id: str                     # provider name, e.g. "claude"
    is_participant: bool = True
    is_aggregator: bool = False


@dataclass
class ModelResponse:
    provider: str          # member id
    model: str             # actual model string used
    stage: int             # 1 = answer, 2 = review, 3 = synthesis
    content: str
    latency_sec: float
    token_count: int | None


@dataclass(frozen=True)
class AnonymizedView:
    reviewer: str
    label_to_text: dict[str, str]
    label_to_member: dict[str, str]

    @property
    def labels(self) -> list[str]:
        return list(self.label_to_member)


@dataclass
class RankedEntry:
    member: str
    label: str
    reasoning: str = ""


@dataclass
class Ranking:
    reviewer: str
    entries: list[RankedEntry] = field(default_factory=list)

    @property
    def members(self) -> list[str]:
        return [e.member for e in self.entries]


@dataclass(frozen=True)
class MemberFailure:
    member: str
    stage: int
    kind: str              # BackendErrorKind value, or "unparsable"
    message: str


@dataclass(frozen=True)
class AggregateRank:
    member: str
    average_position: float
    votes: int


@dataclass(frozen=True)
class CouncilResult:
    question: Question
    participants: tuple[str, ...]
    responses: Mapping[str, ModelResponse]
    rankings: Mapping[str, Ranking]
    aggregate: tuple[AggregateRank, ...]
    synthesis: str             # final markdown answer
    aggregator: str
    synthesis_prompt: str
    total_duration_sec: float
    failures: tuple[MemberFailure, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "responses", MappingProxyType(dict(self.responses)))
        object.__setattr__(self, "rankings", MappingProxyType(dict(self.rankings)))

    @property
    def missing_members(self) -> list[str]:
        """Participants with no Stage 1 response."""
        return sorted(p for p in self.participants if p not in self.responses)

    @property
    def missing_reviewers(self) -> list[str]:
        """Responders whose review produced no ranking."""
        return sorted(m for m in self.responses if m not in self.rankings)

    @property
    def aggregator_is_participant(self) -> bool:
        return self.aggregator in self.participants
