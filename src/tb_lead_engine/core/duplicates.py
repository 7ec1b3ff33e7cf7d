"""Fuzzy duplicate detection for contacts."""

import re
from typing import List, Iterable

from ..storage.models import Contact

EMAIL_MATCH = 50
PHONE_MATCH = 40
NAME_MATCH = 30
NAME_SIMILAR = 15
ADDRESS_SIMILAR = 10

DUPLICATE_THRESHOLD = 60
SIMILARITY_THRESHOLD = 0.8


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum single-character edits to turn a into b."""
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(min(previous[j - 1], current[j - 1], previous[j]) + 1)
        previous = current

    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]; two empty strings are identical."""
    longer = max(len(a), len(b))
    if longer == 0:
        return 1.0
    return (longer - levenshtein_distance(a, b)) / longer


def is_similar(a: str, b: str, threshold: float = SIMILARITY_THRESHOLD) -> bool:
    return similarity(a, b) >= threshold


def _digits(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


class DuplicateDetector:
    """Score how likely two contacts are the same person."""

    def __init__(self, threshold: int = DUPLICATE_THRESHOLD):
        self.threshold = threshold

    def match_score(self, a: Contact, b: Contact) -> int:
        """Accumulated evidence that a and b are the same contact.

        Each dimension only counts when both contacts have the field.
        """
        score = 0

        if a.email and b.email and a.email.strip().lower() == b.email.strip().lower():
            score += EMAIL_MATCH

        phone_a, phone_b = _digits(a.phone), _digits(b.phone)
        if phone_a and phone_b and phone_a == phone_b:
            score += PHONE_MATCH

        name_a, name_b = a.full_name.lower(), b.full_name.lower()
        if name_a and name_b:
            if name_a == name_b:
                score += NAME_MATCH
            elif is_similar(name_a, name_b):
                score += NAME_SIMILAR

        if a.address and b.address and is_similar(a.address.lower(), b.address.lower()):
            score += ADDRESS_SIMILAR

        return score

    def is_duplicate(self, a: Contact, b: Contact) -> bool:
        return self.match_score(a, b) >= self.threshold

    def find_duplicates(self, contact: Contact, all_contacts: Iterable[Contact]) -> List[Contact]:
        """Contacts in all_contacts that look like duplicates of contact."""
        duplicates = []
        for other in all_contacts:
            if other is contact or (contact.id is not None and other.id == contact.id):
                continue
            if self.is_duplicate(contact, other):
                duplicates.append(other)
        return duplicates
