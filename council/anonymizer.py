"""Per-reviewer anonymization of council responses."""

import string
from collections.abc import Mapping

from council.errors import TooManyResponses
from council.models import AnonymizedView, ModelResponse

LABELS = string.ascii_uppercase


def ensure_alphabet(count: int) -> None:
    """Raise TooManyResponses if ``count`` responses cannot all get a label."""
    if count > len(LABELS):
        raise TooManyResponses(count, len(LABELS))


def anonymize(responses: Mapping[str, ModelResponse], exclude_member: str | None) -> AnonymizedView:
    """Label every response except ``exclude_member``'s as A, B, C, ...

    Labels follow sorted member id order so identical inputs always produce
    identical views.

    Returns:
        AnonymizedView for the excluded member (the reviewer).

    Raises:
        TooManyResponses: If more responses remain than there are labels.
    """
    others = sorted(m for m in responses if m != exclude_member)
    ensure_alphabet(len(others))

    label_to_text: dict[str, str] = {}
    label_to_member: dict[str, str] = {}
    for label, member in zip(LABELS, others):
        label_to_text[label] = responses[member].content
        label_to_member[label] = member

    return AnonymizedView(
        reviewer=exclude_member or "",
        label_to_text=label_to_text,
        label_to_member=label_to_member,
    )


def format_anonymized_block(view: AnonymizedView) -> str:
    """Render the view's responses as labelled blocks for a review prompt."""
    parts = [f"--- Response {label} ---\n{text}" for label, text in view.label_to_text.items()]
    return "\n\n".join(parts)
