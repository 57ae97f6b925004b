"""Pure group matching - finds 2-3 contacts that belong together."""

from dataclasses import dataclass, field
from itertools import combinations

from .contacts import ContactSignals, SharedHistory

GROUP_SCORE_THRESHOLD = 50
MAX_SCORE = 100

GROUP_POINTS = 10
GROUP_CAP = 30
TAG_POINTS = 5
TAG_CAP = 30
CO_MENTION_POINTS = 5
CO_MENTION_CAP = 25
JOINT_INTERACTION_POINTS = 5
JOINT_INTERACTION_CAP = 15

PAIR_DURATION_MINUTES = 60
TRIPLE_DURATION_MINUTES = 90


@dataclass(frozen=True)
class SharedContext:
    """Shared-context score (0-100) and what it was built from."""

    score: int
    common_groups: tuple[str, ...] = ()
    shared_tags: tuple[str, ...] = ()
    co_mentions: int = 0
    joint_interactions: int = 0

    def describe(self) -> str:
        parts = []
        if self.common_groups:
            parts.append(f"Common groups: {', '.join(self.common_groups)}")
        if self.shared_tags:
            parts.append(f"Shared interests: {', '.join(self.shared_tags)}")
        if self.co_mentions:
            parts.append(f"Mentioned together in {self.co_mentions} voice notes")
        if self.joint_interactions:
            parts.append(f"{self.joint_interactions} recent get-togethers")
        if not parts:
            return "Group catchup opportunity based on shared context"
        return f"Group catchup opportunity: {'; '.join(parts)}"


@dataclass
class GroupCandidate:
    """A candidate gathering of 2-3 contacts."""

    contact_ids: tuple[str, ...]
    context: SharedContext
    suggested_duration: int = field(default=PAIR_DURATION_MINUTES)

    @property
    def score(self) -> int:
        return self.context.score

    @property
    def key(self) -> frozenset[str]:
        return frozenset(self.contact_ids)


def shared_context(members: list[ContactSignals], history: SharedHistory) -> SharedContext:
    """
    Score how strongly a set of contacts belongs together.

    Pure function - no I/O.
    """
    if len(members) < 2:
        return SharedContext(score=0)

    common_groups = sorted(frozenset.intersection(*(m.groups for m in members)))
    shared_tags = sorted(frozenset.intersection(*(m.tags for m in members)))
    ids = frozenset(m.id for m in members)
    co_mentions = history.co_mentions(ids)
    joint = history.joint_interaction_count(ids)

    score = (
        min(len(common_groups) * GROUP_POINTS, GROUP_CAP)
        + min(len(shared_tags) * TAG_POINTS, TAG_CAP)
        + min(co_mentions * CO_MENTION_POINTS, CO_MENTION_CAP)
        + min(joint * JOINT_INTERACTION_POINTS, JOINT_INTERACTION_CAP)
    )
    return SharedContext(
        score=min(score, MAX_SCORE),
        common_groups=tuple(common_groups),
        shared_tags=tuple(shared_tags),
        co_mentions=co_mentions,
        joint_interactions=joint,
    )


def _candidate_pairs(contacts: list[ContactSignals]) -> list[tuple[str, str]]:
    """Pairs that share at least one group or tag, via an attribute index."""
    index: dict[str, list[str]] = {}
    for c in contacts:
        for attr in c.attributes:
            index.setdefault(attr, []).append(c.id)

    pairs: set[tuple[str, str]] = set()
    for ids in index.values():
        for a, b in combinations(sorted(ids), 2):
            pairs.add((a, b))
    return sorted(pairs)


def _sort_key(g: GroupCandidate) -> tuple[int, int, tuple[str, ...]]:
    return (-g.score, -len(g.contact_ids), g.contact_ids)


def find_candidate_groups(
    contacts: list[ContactSignals],
    history: SharedHistory | None = None,
    threshold: int = GROUP_SCORE_THRESHOLD,
) -> list[GroupCandidate]:
    """
    Find qualifying pairs and triples.

    Only pairs already sharing a group or tag are considered. Each pair is
    greedily extended by the best third contact sharing an attribute with
    both, as long as the triple still clears the threshold.
    Pure function - no I/O.
    """
    history = history or SharedHistory()
    active = [c for c in contacts if not c.archived]
    by_id = {c.id: c for c in active}

    candidates: dict[frozenset[str], GroupCandidate] = {}
    for a, b in _candidate_pairs(active):
        pair = [by_id[a], by_id[b]]
        context = shared_context(pair, history)
        if context.score >= threshold:
            candidates[frozenset((a, b))] = GroupCandidate((a, b), context, PAIR_DURATION_MINUTES)

        best: GroupCandidate | None = None
        for third in active:
            if third.id in (a, b):
                continue
            if not (third.attributes & pair[0].attributes and third.attributes & pair[1].attributes):
                continue
            ids = tuple(sorted((a, b, third.id)))
            if frozenset(ids) in candidates:
                continue
            triple_context = shared_context([by_id[i] for i in ids], history)
            if triple_context.score < threshold:
                continue
            option = GroupCandidate(ids, triple_context, TRIPLE_DURATION_MINUTES)
            if best is None or _sort_key(option) < _sort_key(best):
                best = option
        if best is not None:
            candidates[best.key] = best

    return sorted(candidates.values(), key=_sort_key)
