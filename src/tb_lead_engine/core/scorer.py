"""Lead scoring engine - rates contacts from their profile, activity and deals."""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Dict, Optional, Iterable, Any

from .config import ScoringConfig
from ..storage.models import (
    Contact,
    Interaction,
    Opportunity,
    LeadTemperature,
    InteractionDirection,
    OpportunityStage,
    Urgency,
)

COMPLETENESS_MAX = 20
ENGAGEMENT_MAX = 30
PROJECT_VALUE_MAX = 25
URGENCY_MAX = 15
DECAY_MAX = 20

SECONDS_PER_DAY = 60 * 60 * 24


class AutoAction(Enum):
    """Machine-actionable follow-ups suggested by the scorer."""

    SEND_WELCOME_EMAIL = "SEND_WELCOME_EMAIL"
    ASSIGN_TO_SALES_REP = "ASSIGN_TO_SALES_REP"
    SEND_SMS_ALERT = "SEND_SMS_ALERT"
    ESCALATE_TO_MANAGER = "ESCALATE_TO_MANAGER"
    TRIGGER_REENGAGEMENT_EMAIL = "TRIGGER_REENGAGEMENT_EMAIL"
    GENERATE_PROPOSAL_TEMPLATE = "GENERATE_PROPOSAL_TEMPLATE"


@dataclass
class ScoreFactors:
    """Per-factor breakdown of a lead score."""

    completeness: int = 0
    engagement: int = 0
    project_value: int = 0
    urgency: int = 0
    source: int = 0
    time_decay: int = 0  # zero or negative
    total: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "completeness": self.completeness,
            "engagement": self.engagement,
            "project_value": self.project_value,
            "urgency": self.urgency,
            "source": self.source,
            "time_decay": self.time_decay,
            "total": self.total,
        }


def classify_temperature(score: int, config: Optional[ScoringConfig] = None) -> LeadTemperature:
    """Map a 0-100 score onto hot/warm/cold."""
    config = config or ScoringConfig()
    if score >= config.hot_threshold:
        return LeadTemperature.HOT
    if score >= config.warm_threshold:
        return LeadTemperature.WARM
    return LeadTemperature.COLD


@dataclass
class ScoringResult:
    """Result of scoring a contact."""

    score: int
    factors: ScoreFactors = field(default_factory=ScoreFactors)
    temperature: LeadTemperature = LeadTemperature.COLD
    recommendations: List[str] = field(default_factory=list)
    auto_actions: List[AutoAction] = field(default_factory=list)

    @property
    def summary(self) -> str:
        """One-line human-readable summary."""
        return f"{self.score}/100 ({self.temperature.value})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "temperature": self.temperature.value,
            "factors": self.factors.to_dict(),
            "recommendations": list(self.recommendations),
            "auto_actions": [a.value for a in self.auto_actions],
        }


def _value_of(item: Any) -> Any:
    """Enum members compare by value so plain strings are accepted too."""
    return item.value if isinstance(item, Enum) else item


def _days_between(earlier: datetime, later: datetime) -> int:
    """Whole days from earlier to later, rounded up."""
    return math.ceil((later - earlier).total_seconds() / SECONDS_PER_DAY)


def _coerce_value(raw: Any) -> float:
    """Opportunity value as a non-negative float; anything unusable is 0."""
    if raw is None or isinstance(raw, bool):
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value) or math.isinf(value) or value < 0:
        return 0.0
    return value


class LeadScorer:
    """Scores contacts from completeness, engagement, deal value, urgency, source and age.

    The scorer is pure: it reads the contact and its related records and
    returns a ScoringResult without modifying anything it was given.
    """

    def __init__(self, config: Optional[ScoringConfig] = None):
        self.config = config or ScoringConfig()

    def score(
        self,
        contact: Contact,
        interactions: Optional[Iterable[Interaction]] = None,
        opportunities: Optional[Iterable[Opportunity]] = None,
        now: Optional[datetime] = None,
    ) -> ScoringResult:
        """Score a contact with its interactions and opportunities."""
        interactions = list(interactions or [])
        opportunities = list(opportunities or [])
        now = now or datetime.now()

        factors = ScoreFactors(
            completeness=self.completeness_score(contact),
            engagement=self.engagement_score(interactions, now),
            project_value=self.project_value_score(opportunities),
            urgency=self.urgency_score(contact, opportunities, now),
            source=self.source_score(contact.lead_source),
            time_decay=self.time_decay_score(contact.created_at, interactions, now),
        )

        raw_total = (
            factors.completeness
            + factors.engagement
            + factors.project_value
            + factors.urgency
            + factors.source
            - abs(factors.time_decay)
        )
        factors.total = max(0, min(100, raw_total))

        temperature = classify_temperature(factors.total, self.config)
        recommendations, actions = self._recommend(factors, temperature, interactions, opportunities)

        return ScoringResult(
            score=factors.total,
            factors=factors,
            temperature=temperature,
            recommendations=recommendations,
            auto_actions=actions,
        )

    # === SUB-SCORES ===

    def completeness_score(self, contact: Contact) -> int:
        """Up to 20 points for how much we know about the contact."""
        score = 5  # existing contact

        if contact.email:
            score += 3
        if contact.phone:
            score += 4
        if contact.company:
            score += 2
        if contact.address and contact.city and contact.state:
            score += 3
        if contact.notes and len(contact.notes) > 20:
            score += 3

        return min(COMPLETENESS_MAX, score)

    def engagement_score(self, interactions: List[Interaction], now: datetime) -> int:
        """Up to 30 points for volume, recency, variety and two-way contact."""
        if not interactions:
            return 0

        score = min(10, len(interactions))

        recent_cutoff = now - timedelta(days=self.config.recent_days)
        recent = [i for i in interactions if i.created_at and i.created_at >= recent_cutoff]
        score += min(10, len(recent) * 2)

        types = {_value_of(i.type) for i in interactions}
        score += min(5, len(types))

        directions = {_value_of(i.direction) for i in interactions}
        if (InteractionDirection.INBOUND.value in directions
                and InteractionDirection.OUTBOUND.value in directions):
            score += 5

        return min(ENGAGEMENT_MAX, score)

    def project_value_score(self, opportunities: List[Opportunity]) -> int:
        """Up to 25 points for having deals and for their combined size."""
        if not opportunities:
            return 0

        score = 5
        total_value = sum(_coerce_value(o.value) for o in opportunities)

        for minimum, bonus in self.config.value_tiers:
            if total_value >= minimum:
                score += bonus
                break

        return min(PROJECT_VALUE_MAX, score)

    def urgency_score(self, contact: Contact, opportunities: List[Opportunity], now: datetime) -> int:
        """Up to 15 points; an emergency opportunity is an immediate maximum."""
        urgencies = {_value_of(o.urgency) for o in opportunities}
        if Urgency.EMERGENCY.value in urgencies:
            return URGENCY_MAX

        score = 0
        if Urgency.HIGH.value in urgencies:
            score += 10

        notes = (contact.notes or "").lower()
        if any(keyword in notes for keyword in self.config.urgent_keywords):
            score += 8

        for opportunity in opportunities:
            if not opportunity.expected_close_date:
                continue
            days_until_close = _days_between(now, opportunity.expected_close_date)
            if 0 <= days_until_close <= self.config.close_window_days:
                score += 7
                break

        return min(URGENCY_MAX, score)

    def source_score(self, lead_source: Optional[str]) -> int:
        """Up to 10 points for lead source quality."""
        source = re.sub(r"\s+", "_", (lead_source or "unknown").lower())
        return self.config.source_scores.get(source, self.config.default_source_score)

    def time_decay_score(
        self,
        created_at: Optional[datetime],
        interactions: List[Interaction],
        now: datetime,
    ) -> int:
        """Zero or negative penalty (down to -20) for going quiet."""
        if not created_at:
            return 0

        dated = [i.created_at for i in interactions if i.created_at]
        if dated:
            days = _days_between(max(dated), now)
            # NOTE: kept exactly as 7/14/30/60; there is no separate 21-day step
            if days <= 7:
                return 0
            if days <= 14:
                return -3
            if days <= 30:
                return -8
            if days <= 60:
                return -15
            return -DECAY_MAX

        days = _days_between(created_at, now)
        if days <= 7:
            return 0
        if days <= 14:
            return -5
        if days <= 30:
            return -10
        if days <= 60:
            return -15
        return -DECAY_MAX

    # === RECOMMENDATIONS ===

    def _recommend(
        self,
        factors: ScoreFactors,
        temperature: LeadTemperature,
        interactions: List[Interaction],
        opportunities: List[Opportunity],
    ):
        recommendations: List[str] = []
        actions: List[AutoAction] = []

        if factors.completeness < 15:
            recommendations.append("Collect more contact information (phone, address)")
        if factors.engagement < 10 and not interactions:
            recommendations.append("Schedule initial contact call")
            actions.append(AutoAction.SEND_WELCOME_EMAIL)
        if factors.engagement > 20:
            recommendations.append("High engagement - prioritize for follow-up")
            actions.append(AutoAction.ASSIGN_TO_SALES_REP)
        if factors.urgency >= 12:
            recommendations.append("URGENT: Contact within 1 hour - emergency service needed")
            actions.append(AutoAction.SEND_SMS_ALERT)
            actions.append(AutoAction.ESCALATE_TO_MANAGER)
        if factors.project_value >= 20:
            recommendations.append("High-value opportunity - involve senior team member")
        if factors.time_decay < -15:
            recommendations.append("Lead is going cold - re-engagement campaign needed")
            actions.append(AutoAction.TRIGGER_REENGAGEMENT_EMAIL)

        proposal_sent = any(
            _value_of(o.stage) == OpportunityStage.PROPOSAL_SENT.value for o in opportunities
        )
        if temperature == LeadTemperature.HOT and not proposal_sent:
            recommendations.append("Send project proposal ASAP")
            actions.append(AutoAction.GENERATE_PROPOSAL_TEMPLATE)

        return recommendations, actions

    def explain(self, result: ScoringResult) -> str:
        """Get a detailed explanation of a scoring result."""
        f = result.factors
        lines = [
            f"Total Score: {result.score} ({result.temperature.value.upper()})",
            "",
            "Factor Breakdown:",
            f"  completeness:  {f.completeness}/{COMPLETENESS_MAX}",
            f"  engagement:    {f.engagement}/{ENGAGEMENT_MAX}",
            f"  project value: {f.project_value}/{PROJECT_VALUE_MAX}",
            f"  urgency:       {f.urgency}/{URGENCY_MAX}",
            f"  source:        {f.source}/10",
            f"  time decay:    {f.time_decay}",
        ]

        if result.recommendations:
            lines.extend(["", "Recommendations:"])
            lines.extend(f"  - {r}" for r in result.recommendations)

        if result.auto_actions:
            lines.extend(["", "Auto Actions:"])
            lines.extend(f"  {a.value}" for a in result.auto_actions)

        return "\n".join(lines)


def quick_score(contact: Contact) -> int:
    """Quick helper to score a bare contact and return just the score."""
    return LeadScorer().score(contact).score
