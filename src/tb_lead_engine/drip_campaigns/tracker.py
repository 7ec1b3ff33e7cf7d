"""Drive contacts through sequence steps over time.

The tracker is poll-driven: an external scheduler calls process_all() on
an interval (a "tick") and each active enrollment whose next step is due
is sent and advanced. A step whose send fails stays where it is and is
retried on the next tick.
"""

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Union

from .enrollments import Enrollment, EnrollmentStatus, EnrollmentStore
from .sequences import Channel, SequenceCatalog, SequenceStep, SequenceTrigger
from .templates import TemplateLibrary
from ..storage.models import Contact

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 60 * 60


class EnrollmentTracker:
    """Enroll contacts in sequences and advance them step by step."""

    def __init__(
        self,
        catalog: SequenceCatalog,
        store: EnrollmentStore,
        email_notifier,
        sms_notifier=None,
        templates: Optional[TemplateLibrary] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.catalog = catalog
        self.store = store
        self.email_notifier = email_notifier
        self.sms_notifier = sms_notifier
        self.templates = templates or TemplateLibrary()
        self.clock = clock

        # One lock per enrollment so send+advance never runs twice concurrently
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, enrollment_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(enrollment_id)
            if lock is None:
                lock = self._locks[enrollment_id] = threading.Lock()
            return lock

    def _release_if_terminal(self, enrollment: Enrollment):
        if enrollment.is_terminal:
            with self._locks_guard:
                self._locks.pop(enrollment.id, None)

    # === ENROLLMENT ===

    def enroll(self, contact_id: int, sequence_id: str) -> Optional[Enrollment]:
        """Start a contact at step 0 of a sequence.

        Returns None if the sequence is unknown or inactive, or if the contact
        already has an active enrollment in it.
        """
        sequence = self.catalog.get(sequence_id)
        if not sequence or not sequence.active:
            logger.warning(f"Cannot enroll contact {contact_id}: sequence {sequence_id} unavailable")
            return None

        now = self.clock()
        enrollment = Enrollment(
            id=f"{contact_id}-{sequence_id}-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:6]}",
            contact_id=contact_id,
            sequence_id=sequence_id,
            started_at=now,
        )

        if not self.store.add_if_no_active(enrollment):
            logger.debug(f"Contact {contact_id} already active in {sequence_id}")
            return None

        logger.info(f"Enrolled contact {contact_id} in sequence {sequence_id}")
        return enrollment

    def auto_enroll(self, contact: Contact, trigger: Union[SequenceTrigger, str]) -> List[Enrollment]:
        """Enroll a contact in every active sequence for a trigger, skipping ones already running."""
        enrollments = []
        for sequence in self.catalog.by_trigger(trigger):
            enrollment = self.enroll(contact.id, sequence.id)
            if enrollment:
                enrollments.append(enrollment)
        return enrollments

    def get_enrollment(self, enrollment_id: str) -> Optional[Enrollment]:
        return self.store.get(enrollment_id)

    def get_contact_enrollments(self, contact_id: int, active_only: bool = True) -> List[Enrollment]:
        return [
            e for e in self.store.for_contact(contact_id)
            if not active_only or e.is_active
        ]

    # === PROGRESSION ===

    def _current_step(self, enrollment: Enrollment) -> Optional[SequenceStep]:
        sequence = self.catalog.get(enrollment.sequence_id)
        if not sequence or enrollment.current_step >= len(sequence.steps):
            return None
        return sequence.steps[enrollment.current_step]

    def _destination(self, step: SequenceStep, contact: Contact) -> Optional[str]:
        if step.channel == Channel.SMS:
            return contact.phone
        return contact.email

    def _notifier_for(self, step: SequenceStep):
        if step.channel == Channel.SMS:
            return self.sms_notifier
        return self.email_notifier

    def process_step(self, enrollment: Enrollment, contact: Contact) -> bool:
        """Send the current step if it is due. Returns True if the enrollment moved."""
        with self._lock_for(enrollment.id):
            moved = self._process_step(enrollment, contact)
        self._release_if_terminal(enrollment)
        return moved

    def _process_step(self, enrollment: Enrollment, contact: Contact) -> bool:
        if not enrollment.is_active:
            return False

        step = self._current_step(enrollment)
        if step is None:
            return False

        if step.condition and not step.condition(contact):
            logger.info(f"Skipping step {step.id} for contact {contact.id}: condition not met")
            return self._advance(enrollment)

        now = self.clock()
        elapsed_hours = (now - enrollment.started_at).total_seconds() / SECONDS_PER_HOUR
        if elapsed_hours < step.delay_hours:
            logger.debug(
                f"Step {step.id} not ready yet, {step.delay_hours - elapsed_hours:.1f}h remaining"
            )
            return False

        destination = self._destination(step, contact)
        notifier = self._notifier_for(step)
        if not destination or notifier is None:
            logger.warning(f"No {step.channel.value} route for contact {contact.id}, step {step.id}")
            return False

        rendered = self.templates.render(step.template_type, contact.template_fields())
        if step.subject:
            rendered = replace(rendered, subject=step.subject)

        if not notifier.send(destination, rendered):
            logger.warning(
                f"Send failed for enrollment {enrollment.id} step {step.id}; will retry next tick"
            )
            return False

        enrollment.last_sent_at = now
        logger.info(f"Sent {step.channel.value} '{rendered.subject}' to {destination}")
        return self._advance(enrollment)

    def advance(self, enrollment: Enrollment) -> bool:
        """Move an active enrollment to its next step, completing it after the last."""
        with self._lock_for(enrollment.id):
            moved = self._advance(enrollment)
        self._release_if_terminal(enrollment)
        return moved

    def _advance(self, enrollment: Enrollment) -> bool:
        sequence = self.catalog.get(enrollment.sequence_id)
        if not sequence or not enrollment.is_active:
            return False

        enrollment.current_step += 1

        if enrollment.current_step >= len(sequence.steps):
            enrollment.status = EnrollmentStatus.COMPLETED
            enrollment.completed_at = self.clock()
            logger.info(f"Sequence {sequence.id} completed for contact {enrollment.contact_id}")

        self.store.save(enrollment)
        return True

    # === STATUS TRANSITIONS ===

    def pause(self, enrollment_id: str) -> bool:
        """active -> paused."""
        enrollment = self.store.get(enrollment_id)
        if not enrollment:
            return False
        with self._lock_for(enrollment_id):
            paused = enrollment.status == EnrollmentStatus.ACTIVE
            if paused:
                enrollment.status = EnrollmentStatus.PAUSED
                self.store.save(enrollment)
        self._release_if_terminal(enrollment)
        return paused

    def resume(self, enrollment_id: str) -> bool:
        """paused -> active, unless another active enrollment for the same pair exists."""
        enrollment = self.store.get(enrollment_id)
        if not enrollment:
            return False
        if enrollment.status != EnrollmentStatus.PAUSED:
            return False
        with self._lock_for(enrollment_id):
            if enrollment.status != EnrollmentStatus.PAUSED:
                return False
            if not self.store.reactivate(enrollment):
                logger.warning(
                    f"Cannot resume {enrollment_id}: contact {enrollment.contact_id} "
                    f"already active in {enrollment.sequence_id}"
                )
                return False
        return True

    def cancel(self, enrollment_id: str) -> bool:
        """active/paused -> cancelled."""
        enrollment = self.store.get(enrollment_id)
        if not enrollment:
            return False
        if enrollment.is_terminal:
            return False
        with self._lock_for(enrollment_id):
            if enrollment.is_terminal:
                return False
            enrollment.status = EnrollmentStatus.CANCELLED
            self.store.save(enrollment)
        self._release_if_terminal(enrollment)
        return True

    # === TICK ===

    def process_all(self, contacts: Mapping[int, Contact], max_workers: int = 1) -> Dict[str, int]:
        """Process every enrollment that is active right now.

        Contacts without an email address are skipped. A failure on one
        enrollment is logged and counted; it never stops the tick.
        """
        results = {
            'processed': 0,
            'sent': 0,
            'waiting': 0,
            'skipped': 0,
            'failed': 0,
        }

        active = self.store.all(EnrollmentStatus.ACTIVE)
        logger.info(f"Processing {len(active)} active enrollments")

        work = []
        for enrollment in active:
            contact = contacts.get(enrollment.contact_id)
            if not contact or not contact.email:
                results['skipped'] += 1
                continue
            work.append((enrollment, contact))

        def run(item) -> str:
            enrollment, contact = item
            try:
                return 'sent' if self.process_step(enrollment, contact) else 'waiting'
            except Exception:
                logger.exception(f"Error processing enrollment {enrollment.id}")
                return 'failed'

        if max_workers > 1 and len(work) > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                outcomes = list(pool.map(run, work))
        else:
            outcomes = [run(item) for item in work]

        for outcome in outcomes:
            results['processed'] += 1
            results[outcome] += 1

        return results

    # === ANALYTICS ===

    def analytics(self, sequence_id: str) -> Dict:
        """Counts by status and mean completion time for a sequence."""
        enrollments = self.store.for_sequence(sequence_id)
        completed = [e for e in enrollments if e.status == EnrollmentStatus.COMPLETED and e.completed_at]

        avg_hours = 0.0
        if completed:
            total_seconds = sum((e.completed_at - e.started_at).total_seconds() for e in completed)
            avg_hours = total_seconds / len(completed) / SECONDS_PER_HOUR

        return {
            'sequence_id': sequence_id,
            'total_enrolled': len(enrollments),
            'active': len([e for e in enrollments if e.status == EnrollmentStatus.ACTIVE]),
            'paused': len([e for e in enrollments if e.status == EnrollmentStatus.PAUSED]),
            'completed': len(completed),
            'cancelled': len([e for e in enrollments if e.status == EnrollmentStatus.CANCELLED]),
            'completion_rate': round(len(completed) / len(enrollments) * 100, 1) if enrollments else 0,
            'avg_completion_hours': round(avg_hours, 2),
        }

    def sequence_overview(self) -> List[Dict]:
        """Analytics for every sequence in the catalog."""
        overview = []
        for sequence in self.catalog.all():
            stats = self.analytics(sequence.id)
            stats['name'] = sequence.name
            stats['trigger'] = sequence.trigger.value
            stats['steps'] = len(sequence.steps)
            stats['is_active'] = sequence.active
            overview.append(stats)
        return overview
