"""Fatal orchestration errors. Per-call failures live in providers.base."""

from council.models import MemberFailure, ModelResponse, Ranking


class OrchestrationError(Exception):
    """Base for errors that abort a council run.

    Carries the per-member failures collected so far so callers can report
    which members were missing and why.
    """

    def __init__(self, message: str, failures: tuple[MemberFailure, ...] = ()) -> None:
        self.failures = tuple(failures)
        super().__init__(message)


class InsufficientResponses(OrchestrationError):
    """Stage 1 produced fewer than the minimum number of responses."""

    def __init__(self, received: int, required: int, failures: tuple[MemberFailure, ...] = ()) -> None:
        self.received = received
        self.required = required
        super().__init__(
            f"Only {received} participant(s) responded, at least {required} required",
            failures,
        )


class TooManyResponses(OrchestrationError):
    """More responses to anonymize than there are labels."""

    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(f"Cannot anonymize {count} responses, label alphabet holds {limit}")


class SynthesisFailed(OrchestrationError):
    """The aggregator call failed; there is no fallback answer."""

    def __init__(
        self,
        aggregator: str,
        reason: str,
        failures: tuple[MemberFailure, ...] = (),
        responses: dict[str, ModelResponse] | None = None,
        rankings: dict[str, Ranking] | None = None,
    ) -> None:
        self.aggregator = aggregator
        self.reason = reason
        self.responses = responses or {}
        self.rankings = rankings or {}
        super().__init__(f"Synthesis by {aggregator} failed: {reason}", failures)
