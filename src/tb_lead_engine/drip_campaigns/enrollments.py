"""Enrollment records and their store."""

import json
import logging
import os
import shutil
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class EnrollmentStatus(Enum):
    """Lifecycle of an enrollment.

    active -> completed (terminal), active <-> paused,
    active/paused -> cancelled (terminal).
    """
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


@dataclass
class Enrollment:
    """One contact progressing through one sequence."""
    id: str
    contact_id: int
    sequence_id: str
    current_step: int = 0
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    started_at: datetime = None
    completed_at: Optional[datetime] = None
    last_sent_at: Optional[datetime] = None

    def __post_init__(self):
        if self.started_at is None:
            self.started_at = datetime.now()

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE

    @property
    def is_terminal(self) -> bool:
        return self.status in (EnrollmentStatus.COMPLETED, EnrollmentStatus.CANCELLED)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'contact_id': self.contact_id,
            'sequence_id': self.sequence_id,
            'current_step': self.current_step,
            'status': self.status.value,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'last_sent_at': self.last_sent_at.isoformat() if self.last_sent_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Enrollment":
        return cls(
            id=data['id'],
            contact_id=data['contact_id'],
            sequence_id=data['sequence_id'],
            current_step=data.get('current_step', 0),
            status=EnrollmentStatus(data.get('status', 'active')),
            started_at=datetime.fromisoformat(data['started_at']),
            completed_at=datetime.fromisoformat(data['completed_at']) if data.get('completed_at') else None,
            last_sent_at=datetime.fromisoformat(data['last_sent_at']) if data.get('last_sent_at') else None,
        )


class EnrollmentStore:
    """Enrollment records keyed by id.

    Kept in memory; when a storage path is given the records are also
    written to enrollments.json after every change. All methods are safe
    to call from several threads.
    """

    def __init__(self, storage_path: Optional[Union[str, Path]] = None):
        self.storage_path = Path(storage_path) if storage_path else None
        self._enrollments: Dict[str, Enrollment] = {}
        self._lock = threading.RLock()

        self._load_data()

    @classmethod
    def snapshot(cls, storage_path: Union[str, Path]) -> "EnrollmentStore":
        """In-memory copy of the records at storage_path; changes are never written back."""
        store = cls(storage_path)
        store.storage_path = None
        return store

    @property
    def _data_file(self) -> Optional[Path]:
        return self.storage_path / "enrollments.json" if self.storage_path else None

    def _load_data(self):
        """Load enrollments from storage.

        Unreadable records are logged and skipped. If anything was skipped the
        file is copied to enrollments.json.corrupt before it can be rewritten.
        """
        if not self._data_file or not self._data_file.exists():
            return

        try:
            with open(self._data_file, 'r') as f:
                data = json.load(f)
        except OSError as e:
            logger.error(f"Error reading enrollments: {e}")
            return
        except ValueError as e:
            logger.error(f"Error loading enrollments: {e}")
            self._backup_data_file()
            return

        if not isinstance(data, list):
            logger.error(f"Error loading enrollments: expected a list, got {type(data).__name__}")
            self._backup_data_file()
            return

        skipped = 0
        for i, record in enumerate(data):
            try:
                enrollment = Enrollment.from_dict(record)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.error(f"Skipping unreadable enrollment record {i}: {e!r}")
                skipped += 1
                continue
            self._enrollments[enrollment.id] = enrollment

        if skipped:
            self._backup_data_file()

    def _backup_data_file(self):
        backup = self._data_file.with_suffix(".json.corrupt")
        shutil.copy2(self._data_file, backup)
        logger.warning(f"Copied unreadable enrollment data to {backup}")

    def _save_data(self):
        """Save enrollments to storage."""
        if not self._data_file:
            return

        os.makedirs(self.storage_path, exist_ok=True)
        tmp_file = self._data_file.with_suffix(".json.tmp")
        with open(tmp_file, 'w') as f:
            json.dump([e.to_dict() for e in self._enrollments.values()], f, indent=2)
        os.replace(tmp_file, self._data_file)

    def get(self, enrollment_id: str) -> Optional[Enrollment]:
        with self._lock:
            return self._enrollments.get(enrollment_id)

    def save(self, enrollment: Enrollment):
        """Insert or update an enrollment."""
        with self._lock:
            self._enrollments[enrollment.id] = enrollment
            self._save_data()

    def add_if_no_active(self, enrollment: Enrollment) -> bool:
        """Insert only if the contact has no active enrollment in that sequence."""
        with self._lock:
            if self.find_active(enrollment.contact_id, enrollment.sequence_id):
                return False
            self._enrollments[enrollment.id] = enrollment
            self._save_data()
            return True

    def reactivate(self, enrollment: Enrollment) -> bool:
        """Mark a paused enrollment active unless its pair already has an active one."""
        with self._lock:
            if self.find_active(enrollment.contact_id, enrollment.sequence_id):
                return False
            enrollment.status = EnrollmentStatus.ACTIVE
            self._enrollments[enrollment.id] = enrollment
            self._save_data()
            return True

    def find_active(self, contact_id: int, sequence_id: str) -> Optional[Enrollment]:
        with self._lock:
            for enrollment in self._enrollments.values():
                if (enrollment.contact_id == contact_id
                        and enrollment.sequence_id == sequence_id
                        and enrollment.is_active):
                    return enrollment
            return None

    def all(self, status: Optional[EnrollmentStatus] = None) -> List[Enrollment]:
        with self._lock:
            return [
                e for e in self._enrollments.values()
                if status is None or e.status == status
            ]

    def for_contact(self, contact_id: int) -> List[Enrollment]:
        with self._lock:
            return [e for e in self._enrollments.values() if e.contact_id == contact_id]

    def for_sequence(self, sequence_id: str) -> List[Enrollment]:
        with self._lock:
            return [e for e in self._enrollments.values() if e.sequence_id == sequence_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._enrollments)
