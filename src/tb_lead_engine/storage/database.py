"""SQLite database for contacts, interactions and opportunities."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any, Generator

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
from ..core.scorer import LeadScorer, ScoringResult

logger = logging.getLogger(__name__)


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class CRMDatabase:
    """SQLite store for the records the scoring engine and sequences read."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize database connection."""
        if db_path is None:
            db_path = Path.home() / ".tb-lead-engine" / "crm.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS contacts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    first_name TEXT NOT NULL,
                    last_name TEXT NOT NULL,
                    email TEXT,
                    phone TEXT,
                    company TEXT,
                    address TEXT,
                    city TEXT,
                    state TEXT,
                    zip_code TEXT,
                    notes TEXT,
                    lead_source TEXT,
                    lead_score INTEGER DEFAULT 0,
                    lead_temperature TEXT DEFAULT 'cold',
                    tags_json TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    last_scored_at TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS opportunities (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    contact_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    stage TEXT DEFAULT 'new_lead',
                    value TEXT,
                    urgency TEXT DEFAULT 'normal',
                    expected_close_date TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,

                    FOREIGN KEY (contact_id) REFERENCES contacts(id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS interactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    contact_id INTEGER NOT NULL,
                    opportunity_id INTEGER,
                    type TEXT NOT NULL,
                    direction TEXT,
                    subject TEXT,
                    content TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,

                    FOREIGN KEY (contact_id) REFERENCES contacts(id),
                    FOREIGN KEY (opportunity_id) REFERENCES opportunities(id)
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_contacts_email ON contacts(email)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_contacts_score ON contacts(lead_score DESC)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_interactions_contact ON interactions(contact_id)
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_opportunities_contact ON opportunities(contact_id)
            """)

    # === ROW MAPPING ===

    def _row_to_contact(self, row: sqlite3.Row) -> Contact:
        return Contact(
            id=row["id"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            email=row["email"],
            phone=row["phone"],
            company=row["company"],
            address=row["address"],
            city=row["city"],
            state=row["state"],
            zip_code=row["zip_code"],
            notes=row["notes"],
            lead_source=row["lead_source"],
            lead_score=row["lead_score"] or 0,
            lead_temperature=LeadTemperature(row["lead_temperature"] or "cold"),
            tags=json.loads(row["tags_json"]) if row["tags_json"] else [],
            created_at=_parse_ts(row["created_at"]) or datetime.now(),
            updated_at=_parse_ts(row["updated_at"]) or datetime.now(),
            last_scored_at=_parse_ts(row["last_scored_at"]),
        )

    def _row_to_interaction(self, row: sqlite3.Row) -> Interaction:
        return Interaction(
            id=row["id"],
            contact_id=row["contact_id"],
            opportunity_id=row["opportunity_id"],
            type=InteractionType(row["type"]),
            direction=InteractionDirection(row["direction"]) if row["direction"] else None,
            subject=row["subject"],
            content=row["content"],
            created_at=_parse_ts(row["created_at"]) or datetime.now(),
        )

    def _row_to_opportunity(self, row: sqlite3.Row) -> Opportunity:
        return Opportunity(
            id=row["id"],
            contact_id=row["contact_id"],
            name=row["name"],
            stage=OpportunityStage(row["stage"] or "new_lead"),
            value=row["value"],
            urgency=Urgency(row["urgency"] or "normal"),
            expected_close_date=_parse_ts(row["expected_close_date"]),
            created_at=_parse_ts(row["created_at"]) or datetime.now(),
            updated_at=_parse_ts(row["updated_at"]) or datetime.now(),
        )

    # === CONTACTS ===

    def add_contact(self, contact: Contact) -> Contact:
        """Insert a contact and return it with its new id."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO contacts (
                    first_name, last_name, email, phone, company, address, city, state,
                    zip_code, notes, lead_source, lead_score, lead_temperature, tags_json,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                contact.first_name,
                contact.last_name,
                contact.email.lower() if contact.email else None,
                contact.phone,
                contact.company,
                contact.address,
                contact.city,
                contact.state,
                contact.zip_code,
                contact.notes,
                contact.lead_source,
                contact.lead_score,
                LeadTemperature(contact.lead_temperature).value,
                json.dumps(contact.tags) if contact.tags else None,
                _ts(contact.created_at),
                _ts(contact.updated_at),
            ))
            contact_id = cursor.lastrowid

        return self.get_contact(contact_id)

    def get_contact(self, contact_id: int) -> Optional[Contact]:
        """Get a contact by ID."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM contacts WHERE id = ?", (contact_id,))
            row = cursor.fetchone()
            return self._row_to_contact(row) if row else None

    def get_contacts(self, temperature: Optional[LeadTemperature] = None, limit: int = 10000) -> List[Contact]:
        """Get contacts, highest score first."""
        query = "SELECT * FROM contacts"
        params: List[Any] = []

        if temperature:
            query += " WHERE lead_temperature = ?"
            params.append(LeadTemperature(temperature).value)

        query += " ORDER BY lead_score DESC, id ASC LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [self._row_to_contact(row) for row in cursor.fetchall()]

    def contacts_by_id(self) -> Dict[int, Contact]:
        """All contacts keyed by id, the shape the sequence tick expects."""
        return {c.id: c for c in self.get_contacts()}

    def update_contact(self, contact: Contact) -> Contact:
        """Update a contact in the database."""
        contact.updated_at = datetime.now()

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                UPDATE contacts SET
                    first_name = ?, last_name = ?, email = ?, phone = ?, company = ?,
                    address = ?, city = ?, state = ?, zip_code = ?, notes = ?,
                    lead_source = ?, lead_score = ?, lead_temperature = ?, tags_json = ?,
                    updated_at = ?, last_scored_at = ?
                WHERE id = ?
            """, (
                contact.first_name, contact.last_name,
                contact.email.lower() if contact.email else None,
                contact.phone, contact.company,
                contact.address, contact.city, contact.state, contact.zip_code, contact.notes,
                contact.lead_source, contact.lead_score,
                LeadTemperature(contact.lead_temperature).value,
                json.dumps(contact.tags) if contact.tags else None,
                _ts(contact.updated_at), _ts(contact.last_scored_at),
                contact.id,
            ))

        return contact

    # === INTERACTIONS ===

    def add_interaction(self, interaction: Interaction) -> Interaction:
        """Append an interaction to the log."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO interactions (
                    contact_id, opportunity_id, type, direction, subject, content, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                interaction.contact_id,
                interaction.opportunity_id,
                InteractionType(interaction.type).value,
                InteractionDirection(interaction.direction).value if interaction.direction else None,
                interaction.subject,
                interaction.content,
                _ts(interaction.created_at),
            ))
            interaction_id = cursor.lastrowid

        return Interaction(
            id=interaction_id,
            contact_id=interaction.contact_id,
            opportunity_id=interaction.opportunity_id,
            type=InteractionType(interaction.type),
            direction=InteractionDirection(interaction.direction) if interaction.direction else None,
            subject=interaction.subject,
            content=interaction.content,
            created_at=interaction.created_at,
        )

    def get_interactions_by_contact(self, contact_id: int) -> List[Interaction]:
        """Interactions for a contact, newest first."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT * FROM interactions
                WHERE contact_id = ?
                ORDER BY created_at DESC
            """, (contact_id,))
            return [self._row_to_interaction(row) for row in cursor.fetchall()]

    # === OPPORTUNITIES ===

    def add_opportunity(self, opportunity: Opportunity) -> Opportunity:
        """Insert an opportunity and return it with its new id."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO opportunities (
                    contact_id, name, stage, value, urgency, expected_close_date,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                opportunity.contact_id,
                opportunity.name,
                OpportunityStage(opportunity.stage).value,
                str(opportunity.value) if opportunity.value is not None else None,
                Urgency(opportunity.urgency).value,
                _ts(opportunity.expected_close_date),
                _ts(opportunity.created_at),
                _ts(opportunity.updated_at),
            ))
            opportunity_id = cursor.lastrowid

        return self.get_opportunity(opportunity_id)

    def get_opportunity(self, opportunity_id: int) -> Optional[Opportunity]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM opportunities WHERE id = ?", (opportunity_id,))
            row = cursor.fetchone()
            return self._row_to_opportunity(row) if row else None

    def get_opportunities_by_contact(self, contact_id: int) -> List[Opportunity]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM opportunities WHERE contact_id = ? ORDER BY created_at DESC",
                (contact_id,)
            )
            return [self._row_to_opportunity(row) for row in cursor.fetchall()]

    def update_opportunity_stage(self, opportunity_id: int, stage: OpportunityStage) -> bool:
        """Move an opportunity to a new stage. Opportunities are never deleted."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE opportunities SET stage = ?, updated_at = ? WHERE id = ?",
                (OpportunityStage(stage).value, datetime.now().isoformat(), opportunity_id)
            )
            return cursor.rowcount > 0

    # === SCORING ===

    def score_contact(
        self,
        contact_id: int,
        scorer: Optional[LeadScorer] = None,
        apply_temperature: bool = False,
    ) -> Optional[ScoringResult]:
        """Score a contact and cache the score on it.

        The computed temperature is advisory; it only replaces the stored
        lead_temperature when apply_temperature is set.
        """
        contact = self.get_contact(contact_id)
        if not contact:
            return None

        scorer = scorer or LeadScorer()
        result = scorer.score(
            contact,
            self.get_interactions_by_contact(contact_id),
            self.get_opportunities_by_contact(contact_id),
        )

        contact.lead_score = result.score
        if apply_temperature:
            contact.lead_temperature = result.temperature
        contact.last_scored_at = datetime.now()
        self.update_contact(contact)

        logger.debug(f"Scored contact {contact_id}: {result.summary}")
        return result

    def score_all_contacts(
        self,
        scorer: Optional[LeadScorer] = None,
        apply_temperature: bool = False,
    ) -> Dict[int, ScoringResult]:
        """Score every contact. Returns results keyed by contact id."""
        scorer = scorer or LeadScorer()
        results = {}
        for contact in self.get_contacts():
            result = self.score_contact(contact.id, scorer, apply_temperature)
            if result:
                results[contact.id] = result
        return results

    # === STATS ===

    def get_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute("SELECT COUNT(*) FROM contacts")
            total = cursor.fetchone()[0]

            cursor.execute("SELECT lead_temperature, COUNT(*) FROM contacts GROUP BY lead_temperature")
            temperature_counts = {row[0]: row[1] for row in cursor.fetchall()}

            cursor.execute("SELECT lead_source, COUNT(*) FROM contacts GROUP BY lead_source")
            source_counts = {(row[0] or "unknown"): row[1] for row in cursor.fetchall()}

            cursor.execute("SELECT AVG(lead_score), MAX(lead_score), MIN(lead_score) FROM contacts")
            score_stats = cursor.fetchone()

            cursor.execute("SELECT COUNT(*) FROM interactions")
            interaction_count = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM opportunities")
            opportunity_count = cursor.fetchone()[0]

            return {
                "total_contacts": total,
                "by_temperature": temperature_counts,
                "by_source": source_counts,
                "score_avg": round(score_stats[0] or 0, 1),
                "score_max": score_stats[1] or 0,
                "score_min": score_stats[2] or 0,
                "interactions": interaction_count,
                "opportunities": opportunity_count,
            }
