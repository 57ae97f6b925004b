"""Pure priority scoring - relationship signals and recency decay, no I/O."""

from dataclasses import dataclass, field
from datetime import datetime

from .contacts import ContactSignals

SHARED_EVENTS_CAP = 10
METADATA_CAP_POINTS = 50
CONTACT_AGE_CAP_DAYS = 365
INTERACTIONS_PER_MONTH_CAP = 4.0

# Metadata richness points per field
BIRTHDAY_POINTS = 10
EMAIL_POINTS = 5
PHONE_POINTS = 5
PHONE_CAP_POINTS = 15
ADDRESS_POINTS = 10
COMPANY_POINTS = 5
JOB_TITLE_POINTS = 5
NOTES_POINTS = 10
SOCIAL_PROFILE_POINTS = 5


@dataclass(frozen=True)
class ScoringWeights:
    """Relative weight of each sub-score. Must sum to 1."""

    shared_events: float = 0.35
    metadata: float = 0.30
    contact_age: float = 0.15
    frequency: float = 0.10
    recency: float = 0.10

    def __post_init__(self):
        total = self.shared_events + self.metadata + self.contact_age + self.frequency + self.recency
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total:.3f}")

    @classmethod
    def parse(cls, value: str) -> "ScoringWeights":
        """Parse "shared_events:0.35,metadata:0.3,..." (missing keys keep defaults)."""
        kwargs = {}
        for part in value.split(","):
            part = part.strip()
            if not part:
                continue
            key, _, raw = part.partition(":")
            key = key.strip()
            if key not in cls.__dataclass_fields__:
                raise ValueError(f"Unknown scoring weight: {key}")
            kwargs[key] = float(raw)
        return cls(**kwargs)


@dataclass
class ContactScore:
    """Score for one contact plus the pieces it was built from."""

    contact_id: str
    score: float
    decay: float
    ratio: float
    days_since_contact: int
    threshold_days: int
    close_friend: bool = False
    components: dict[str, float] = field(default_factory=dict)
    reasoning: str = ""

    @property
    def due(self) -> bool:
        """Overdue per frequency preference - the time_bound trigger."""
        return self.ratio >= 1.0


def recency_ratio(days_since_contact: float, threshold_days: int) -> float:
    if threshold_days <= 0:
        return 0.0
    return max(0.0, days_since_contact) / threshold_days


def recency_decay(days_since_contact: float, threshold_days: int) -> float:
    """
    Convert time since last contact into a 0..1 decay weight.

    Zero until the frequency threshold is reached, 0.5 exactly at the
    threshold, growing linearly to 1.0 at twice the threshold (capped).
    """
    ratio = recency_ratio(days_since_contact, threshold_days)
    if ratio < 1.0:
        return 0.0
    return min(ratio, 2.0) / 2.0


def metadata_points(contact: ContactSignals) -> int:
    points = 0
    if contact.has_birthday:
        points += BIRTHDAY_POINTS
    points += EMAIL_POINTS * max(0, contact.email_count)
    points += min(PHONE_POINTS * max(0, contact.phone_count), PHONE_CAP_POINTS)
    if contact.has_address:
        points += ADDRESS_POINTS
    if contact.has_company:
        points += COMPANY_POINTS
    if contact.has_job_title:
        points += JOB_TITLE_POINTS
    if contact.has_notes:
        points += NOTES_POINTS
    points += SOCIAL_PROFILE_POINTS * max(0, contact.social_profile_count)
    return points


def metadata_richness(contact: ContactSignals) -> float:
    return min(metadata_points(contact), METADATA_CAP_POINTS) / METADATA_CAP_POINTS


def _normalize(value: float, cap: float) -> float:
    if cap <= 0:
        return 0.0
    return min(max(value, 0.0), cap) / cap


def _reasoning(contact: ContactSignals, days: int, threshold: int, components: dict[str, float]) -> str:
    freq = contact.effective_frequency.value
    if days >= threshold:
        text = f"It's been {days} days since you connected ({freq} preference)"
    else:
        text = f"Last connected {days} days ago ({freq} preference)"
    if contact.shared_event_count:
        text += f"; {contact.shared_event_count} shared calendar events"
    strongest = max(components, key=lambda k: components[k]) if components else None
    if strongest and components[strongest] > 0:
        text += f"; strongest signal: {strongest.replace('_', ' ')}"
    return text


def score_contact(
    contact: ContactSignals,
    now: datetime,
    weights: ScoringWeights | None = None,
) -> ContactScore:
    """
    Weighted multi-factor score in [0, 1] for a contact.

    Pure function - no I/O. Missing signals contribute zero.
    """
    weights = weights or ScoringWeights()
    threshold = contact.effective_frequency.threshold_days
    days = contact.days_since_contact(now)
    decay = recency_decay(days, threshold)

    components = {
        "shared_events": _normalize(contact.shared_event_count, SHARED_EVENTS_CAP),
        "metadata": metadata_richness(contact),
        "contact_age": _normalize(contact.contact_age_days(now), CONTACT_AGE_CAP_DAYS),
        "frequency": _normalize(contact.interactions_per_month, INTERACTIONS_PER_MONTH_CAP),
        "recency": decay,
    }
    score = (
        weights.shared_events * components["shared_events"]
        + weights.metadata * components["metadata"]
        + weights.contact_age * components["contact_age"]
        + weights.frequency * components["frequency"]
        + weights.recency * components["recency"]
    )

    return ContactScore(
        contact_id=contact.id,
        score=round(min(max(score, 0.0), 1.0), 6),
        decay=decay,
        ratio=recency_ratio(days, threshold),
        days_since_contact=days,
        threshold_days=threshold,
        close_friend=contact.is_close_friend,
        components=components,
        reasoning=_reasoning(contact, days, threshold, components),
    )


def priority_key(s: ContactScore) -> tuple[float, int, str]:
    """Sort key: score descending, Close Friends first on ties, then id."""
    return (-s.score, 0 if s.close_friend else 1, s.contact_id)


def rank_contacts(
    contacts: list[ContactSignals],
    now: datetime,
    weights: ScoringWeights | None = None,
) -> list[ContactScore]:
    """
    Score every non-archived contact and return the full ranked list.

    Pure function - no I/O.
    """
    scores = [score_contact(c, now, weights) for c in contacts if not c.archived]
    return sorted(scores, key=priority_key)


def filter_confident(scores: list[ContactScore], floor: float) -> list[ContactScore]:
    """Keep scores at or above a caller-supplied confidence floor."""
    return [s for s in scores if s.score >= floor]


def filter_due(scores: list[ContactScore]) -> list[ContactScore]:
    """Keep contacts overdue per their frequency preference."""
    return [s for s in scores if s.due]
