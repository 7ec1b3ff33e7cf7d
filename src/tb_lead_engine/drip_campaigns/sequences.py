"""Static catalog of multi-step, time-delayed sequences."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Union

from .templates import TemplateType
from ..storage.models import Contact

logger = logging.getLogger(__name__)


class SequenceTrigger(Enum):
    """Business events that enroll a contact in sequences."""
    NEW_LEAD = "new_lead"
    PROPOSAL_SENT = "proposal_sent"
    COLD_LEAD = "cold_lead"
    WON_DEAL = "won_deal"
    LOST_DEAL = "lost_deal"


class Channel(Enum):
    """Delivery channel for a step."""
    EMAIL = "email"
    SMS = "sms"


@dataclass(frozen=True)
class SequenceStep:
    """One timed message in a sequence."""
    id: str
    delay_hours: float
    template_type: TemplateType
    subject: str = ""  # overrides the template subject when set
    channel: Channel = Channel.EMAIL
    condition: Optional[Callable[[Contact], bool]] = None


@dataclass
class Sequence:
    """An ordered list of steps started by a trigger."""
    id: str
    name: str
    trigger: SequenceTrigger
    steps: List[SequenceStep] = field(default_factory=list)
    description: str = ""
    active: bool = True


def default_sequences() -> List[Sequence]:
    """The built-in sequences, one per trigger."""
    return [
        Sequence(
            id="new-lead-nurture",
            name="New Lead Nurture",
            description="Welcome and educate new leads over 7 days",
            trigger=SequenceTrigger.NEW_LEAD,
            steps=[
                SequenceStep("welcome", 0, TemplateType.WELCOME,
                             "Welcome to T&B Dock - Your Waterfront Construction Partner"),
                SequenceStep("education-1", 24, TemplateType.EDUCATION,
                             "Why Choose Steel Truss Docks? Expert Insights"),
                SequenceStep("social-proof", 72, TemplateType.TESTIMONIALS,
                             "See What Our Customers Are Saying"),
                SequenceStep("call-to-action", 120, TemplateType.CTA,
                             "Ready to Transform Your Waterfront? Let's Talk"),
                SequenceStep("final-touch", 168, TemplateType.FOLLOW_UP,
                             "Still Interested? We're Here to Help"),
            ],
        ),
        Sequence(
            id="proposal-follow-up",
            name="Proposal Follow-Up",
            description="Follow up after sending a proposal",
            trigger=SequenceTrigger.PROPOSAL_SENT,
            steps=[
                SequenceStep("proposal-received", 2, TemplateType.PROPOSAL_CHECK,
                             "Did You Receive Your Proposal?"),
                SequenceStep("answer-questions", 48, TemplateType.FAQ,
                             "Questions About Your Dock Project?"),
                SequenceStep("urgency", 96, TemplateType.URGENCY,
                             "Spring Booking Season is Here - Let's Get Started"),
                SequenceStep("final-proposal", 168, TemplateType.FINAL_CALL,
                             "Last Chance: Your Custom Dock Proposal"),
            ],
        ),
        Sequence(
            id="cold-lead-reactivation",
            name="Cold Lead Reactivation",
            description="Re-engage leads that have gone cold",
            trigger=SequenceTrigger.COLD_LEAD,
            steps=[
                SequenceStep("reconnect", 0, TemplateType.REENGAGEMENT,
                             "It's Been A While - Still Thinking About That Dock?"),
                SequenceStep("new-offer", 72, TemplateType.PROMOTION,
                             "Special Offer: 10% Off Spring Dock Projects"),
                SequenceStep("case-study", 120, TemplateType.CASE_STUDY,
                             "How We Transformed a Hayden Lake Waterfront"),
            ],
        ),
        Sequence(
            id="post-sale-onboarding",
            name="Post-Sale Onboarding",
            description="Welcome and guide new customers",
            trigger=SequenceTrigger.WON_DEAL,
            steps=[
                SequenceStep("thank-you", 0, TemplateType.THANK_YOU,
                             "Welcome to the T&B Dock Family!"),
                SequenceStep("what-to-expect", 24, TemplateType.ONBOARDING,
                             "What to Expect During Your Dock Construction"),
                SequenceStep("prep-checklist", 72, TemplateType.CHECKLIST,
                             "Pre-Construction Checklist for Your Property"),
            ],
        ),
        Sequence(
            id="lost-deal-feedback",
            name="Lost Deal Feedback",
            description="Learn from lost opportunities",
            trigger=SequenceTrigger.LOST_DEAL,
            steps=[
                SequenceStep("feedback-request", 24, TemplateType.FEEDBACK,
                             "We'd Love Your Feedback"),
                SequenceStep("stay-connected", 168, TemplateType.STAY_CONNECTED,
                             "Keep Us in Mind for Future Projects"),
            ],
        ),
    ]


class SequenceCatalog:
    """Read-only registry of sequences, looked up by id or trigger."""

    def __init__(self, sequences: Optional[Iterable[Sequence]] = None):
        self._sequences: Dict[str, Sequence] = {}

        for sequence in (default_sequences() if sequences is None else sequences):
            if not sequence.steps:
                raise ValueError(f"Sequence {sequence.id} has no steps")
            if sequence.id in self._sequences:
                raise ValueError(f"Duplicate sequence id {sequence.id}")

            delays = [s.delay_hours for s in sequence.steps]
            if any(d < 0 for d in delays):
                raise ValueError(f"Sequence {sequence.id} has a negative step delay")
            if delays != sorted(delays):
                logger.warning(f"Sequence {sequence.id} has decreasing step delays: {delays}")

            self._sequences[sequence.id] = sequence

    def all(self) -> List[Sequence]:
        return list(self._sequences.values())

    def get(self, sequence_id: str) -> Optional[Sequence]:
        return self._sequences.get(sequence_id)

    def by_trigger(self, trigger: Union[SequenceTrigger, str]) -> List[Sequence]:
        """Active sequences started by the given trigger."""
        trigger = SequenceTrigger(trigger)
        return [s for s in self._sequences.values() if s.trigger == trigger and s.active]

    def set_active(self, sequence_id: str, active: bool) -> bool:
        sequence = self._sequences.get(sequence_id)
        if not sequence:
            return False
        sequence.active = active
        logger.info(f"Sequence {sequence_id} {'activated' if active else 'deactivated'}")
        return True
