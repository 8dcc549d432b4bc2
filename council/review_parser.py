"""Best-effort extraction of a ranking from a reviewer's free text.

Reviewers are asked to end with a line such as::

    RANKING: [B, A, C]

or a numbered list under a ``FINAL RANKING:`` heading, one label per line
with an optional short justification. Models drift from that format, so the
parser accepts either shape, tolerates surrounding prose, and only gives up
when no known label can be recovered at all.

Structured forms (a bracket list or a numbered list) always win over a bare
line of labels, wherever the marker appears. A single letter in running text
only counts as a label when it sits next to a separator (``,``, ``;``, ``>``,
``->``) or is written as ``Response X``, so the article "A" is not a vote.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass

from council.models import RankedEntry, Ranking

logger = logging.getLogger(__name__)

_MARKER_RE = re.compile(r"(?:final\s+)?ranking[*_\s]*:", re.IGNORECASE)
_BRACKET_RE = re.compile(r"^\s*[*_]*\s*\[([^\]]*)\]", re.DOTALL)
_LIST_ITEM_RE = re.compile(r"^\s*(?:\d+\s*[.):]|[-*•])\s*(.+)$")
_ITEM_HEAD_RE = re.compile(
    r"^[*_\s]*"
    r"(?:response\s+([a-z])(?![a-z0-9])|([a-z])(?![a-z0-9])(?=[*_\s]*(?:[-:–—)=.,]|$)))"
    r"[*_\s]*(?:[-:–—)=.,]+\s*)?(.*)$",
    re.IGNORECASE,
)
_INLINE_LABEL_RE = re.compile(r"(?<![a-z0-9])(response\s+)?([a-z])(?![a-z0-9])", re.IGNORECASE)
_SEP_AFTER_RE = re.compile(r"[*_\s]*(?:,|;|->|→|>|$)")
_SEP_BEFORE_RE = re.compile(
    r"(?:,|;|->|→|>)[*_\s]*(?:(?:then|and|followed\s+by)\s+)?\Z",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Parsed:
    ranking: Ranking


@dataclass(frozen=True)
class Unparsable:
    reason: str


ParseResult = Parsed | Unparsable


def _list_items(lines: list[str]) -> list[tuple[str, str]]:
    """Return (label, reasoning) for each numbered or bulleted line that leads with a label."""
    items: list[tuple[str, str]] = []
    for line in lines:
        item = _LIST_ITEM_RE.match(line)
        if not item:
            continue
        head = _ITEM_HEAD_RE.match(item.group(1))
        if not head:
            continue
        label = (head.group(1) or head.group(2)).upper()
        reasoning = head.group(3).strip().strip("*_").strip()
        items.append((label, reasoning))
    return items


def _inline_labels(text: str) -> list[tuple[str, str]]:
    """Labels in a single line, keeping only those that read as list members."""
    labels: list[tuple[str, str]] = []
    for m in _INLINE_LABEL_RE.finditer(text):
        if (
            m.group(1)
            or _SEP_AFTER_RE.match(text, m.end())
            or _SEP_BEFORE_RE.search(text[: m.start()])
        ):
            labels.append((m.group(2).upper(), ""))
    return labels


def _structured(section: str) -> list[tuple[str, str]]:
    bracket = _BRACKET_RE.match(section)
    if bracket:
        return _inline_labels(bracket.group(1))
    return _list_items(section.splitlines())


def _first_line(section: str) -> str:
    line = next((ln for ln in section.splitlines() if ln.strip()), "")
    return line.strip(" *_")


def _has_known(candidates: list[tuple[str, str]], label_to_member: Mapping[str, str]) -> bool:
    return any(label in label_to_member for label, _ in candidates)


def parse_review(
    review_text: str,
    label_to_member: Mapping[str, str],
    reviewer: str = "",
) -> ParseResult:
    """Decode a reviewer's ranking over anonymized labels.

    Lookup order: the last marker section holding a bracket or numbered
    list, then a numbered list anywhere in the text, then the first line
    after the last marker that yields a known label. Labels are matched in
    either case. Unknown labels are dropped silently and repeated labels keep
    their first position. Reasoning is attached only where the text gives it
    next to the label.

    Returns:
        Parsed with the ranking in real member ids, or Unparsable when no
        known label was found.
    """
    if not review_text or not review_text.strip():
        return Unparsable("empty review")

    markers = list(_MARKER_RE.finditer(review_text))
    bounds = [m.start() for m in markers[1:]] + [len(review_text)]
    sections = [review_text[m.end():end] for m, end in zip(markers, bounds)]

    candidates: list[tuple[str, str]] = []
    for section in reversed(sections):
        candidates = _structured(section)
        if _has_known(candidates, label_to_member):
            break
    else:
        candidates = _list_items(review_text.splitlines())
        if not _has_known(candidates, label_to_member):
            for section in reversed(sections):
                candidates = _inline_labels(_first_line(section))
                if _has_known(candidates, label_to_member):
                    break

    entries: list[RankedEntry] = []
    seen: set[str] = set()
    for label, reasoning in candidates:
        if label not in label_to_member or label in seen:
            continue
        seen.add(label)
        entries.append(RankedEntry(member=label_to_member[label], label=label, reasoning=reasoning))

    if not entries:
        reason = "no ranking marker or list found" if not markers else "no known labels after ranking marker"
        logger.debug("Review from %s unparsable: %s", reviewer or "?", reason)
        return Unparsable(reason)

    return Parsed(Ranking(reviewer=reviewer, entries=entries))
