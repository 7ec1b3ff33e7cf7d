"""Data models for CRM storage."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any


class LeadTemperature(Enum):
    """Interest classification of a contact."""

    HOT = "hot"
    WARM = "warm"
    COLD = "cold"


class InteractionType(Enum):
    """Types of interactions logged against a contact."""

    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"
    WEB_FORM = "web_form"
    SMS = "sms"


class InteractionDirection(Enum):
    """Who initiated the interaction."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class OpportunityStage(Enum):
    """Stage of an opportunity in the sales pipeline."""

    NEW_LEAD = "new_lead"
    QUALIFICATION = "qualification"
    PROPOSAL_SENT = "proposal_sent"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


class Urgency(Enum):
    """How quickly an opportunity needs attention."""

    EMERGENCY = "emergency"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


@dataclass
class Contact:
    """A person in the CRM."""

    id: Optional[int] = None
    first_name: str = ""
    last_name: str = ""

    # Contact info
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None

    notes: Optional[str] = None
    lead_source: Optional[str] = None

    # Cached scoring
    lead_score: int = 0
    lead_temperature: LeadTemperature = LeadTemperature.COLD

    tags: List[str] = field(default_factory=list)

    # Timestamps
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    last_scored_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        """First and last name joined with a space."""
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def display_name(self) -> str:
        """Best available name for display."""
        return self.full_name or self.email or f"Contact #{self.id}"

    def template_fields(self) -> Dict[str, str]:
        """Fields substituted into sequence templates."""
        return {
            "first_name": self.first_name or "",
            "last_name": self.last_name or "",
            "email": self.email or "",
        }


@dataclass(frozen=True)
class Interaction:
    """Immutable log record of an interaction with a contact."""

    id: Optional[int] = None
    contact_id: Optional[int] = None
    opportunity_id: Optional[int] = None
    type: InteractionType = InteractionType.NOTE
    direction: Optional[InteractionDirection] = None
    subject: Optional[str] = None
    content: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass
class Opportunity:
    """A potential deal attached to a contact."""

    id: Optional[int] = None
    contact_id: Optional[int] = None
    name: str = ""
    stage: OpportunityStage = OpportunityStage.NEW_LEAD
    value: Any = None  # currency; may arrive as a string from storage
    urgency: Urgency = Urgency.NORMAL
    expected_close_date: Optional[datetime] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
