"""Storage layer: CRM records and the SQLite database.

The database lives in ``tb_lead_engine.storage.database``; it is not
re-exported here because it depends on the scoring engine, which itself
imports these models.
"""

from .models import (
    Contact,
    Interaction,
    Opportunity,
    LeadTemperature,
    InteractionType,
    InteractionDirection,
    OpportunityStage,
    Urgency,
)

__all__ = [
    "Contact",
    "Interaction",
    "Opportunity",
    "LeadTemperature",
    "InteractionType",
    "InteractionDirection",
    "OpportunityStage",
    "Urgency",
]
