"""Tests for duplicate contact detection."""

import pytest

from tb_lead_engine.core.duplicates import (
    DuplicateDetector,
    levenshtein_distance,
    similarity,
    is_similar,
)
from tb_lead_engine.storage.models import Contact


class TestStringSimilarity:
    """Tests for edit distance helpers."""

    @pytest.mark.parametrize("a,b,expected", [
        ("kitten", "sitting", 3),
        ("", "abc", 3),
        ("abc", "", 3),
        ("same", "same", 0),
        ("flaw", "lawn", 2),
    ])
    def test_levenshtein(self, a, b, expected):
        assert levenshtein_distance(a, b) == expected

    def test_empty_strings_are_identical(self):
        assert similarity("", "") == 1.0

    def test_similarity_ratio(self):
        assert similarity("abc", "abd") == pytest.approx(2 / 3)

    def test_is_similar_threshold(self):
        assert is_similar("jon smith", "john smith")
        assert not is_similar("jon smith", "mary jones")


class TestDuplicateDetector:
    """Tests for DuplicateDetector."""

    def setup_method(self):
        self.detector = DuplicateDetector()

    def test_email_alone_is_not_enough(self):
        a = Contact(email="Pat@Example.com ")
        b = Contact(email="pat@example.com")

        assert self.detector.match_score(a, b) == 50
        assert not self.detector.is_duplicate(a, b)

    def test_email_and_name(self):
        a = Contact(first_name="Pat", last_name="Lee", email="pat@example.com")
        b = Contact(first_name="pat", last_name="lee", email="PAT@example.com")

        assert self.detector.match_score(a, b) == 80
        assert self.detector.is_duplicate(a, b)

    def test_phone_formats_compared_by_digits(self):
        a = Contact(first_name="Pat", last_name="Lee", phone="(208) 555-0101")
        b = Contact(first_name="Pat", last_name="Lee", phone="208.555.0101")

        assert self.detector.match_score(a, b) == 70

    def test_similar_name_scores_less(self):
        a = Contact(first_name="Jon", last_name="Smith", phone="2085550101")
        b = Contact(first_name="John", last_name="Smith", phone="2085550101")

        assert self.detector.match_score(a, b) == 55
        assert not self.detector.is_duplicate(a, b)

    def test_similar_address(self):
        a = Contact(address="12 Shore Rd")
        b = Contact(address="12 shore road")

        assert self.detector.match_score(a, b) == 10

    def test_missing_fields_are_skipped(self):
        a = Contact(phone="ext.")
        b = Contact(phone="n/a")

        assert self.detector.match_score(a, b) == 0
        assert self.detector.match_score(Contact(), Contact()) == 0

    def test_one_sided_field_is_skipped(self):
        a = Contact(first_name="Pat", last_name="Lee", email="pat@example.com")
        b = Contact(first_name="Pat", last_name="Lee")

        assert self.detector.match_score(a, b) == 30

    def test_custom_threshold(self):
        detector = DuplicateDetector(threshold=50)
        assert detector.is_duplicate(Contact(email="a@b.com"), Contact(email="a@b.com"))


class TestFindDuplicates:
    """Tests for scanning a contact list."""

    def setup_method(self):
        self.detector = DuplicateDetector()
        self.contacts = [
            Contact(id=1, first_name="Pat", last_name="Lee", email="pat@example.com"),
            Contact(id=2, first_name="Pat", last_name="Lee", email="pat@example.com"),
            Contact(id=3, first_name="Morgan", last_name="Fox", email="morgan@example.com"),
        ]

    def test_excludes_itself(self):
        matches = self.detector.find_duplicates(self.contacts[0], self.contacts)
        assert [c.id for c in matches] == [2]

    def test_same_id_other_object_excluded(self):
        copy = Contact(id=1, first_name="Pat", last_name="Lee", email="pat@example.com")
        matches = self.detector.find_duplicates(copy, self.contacts)
        assert [c.id for c in matches] == [2]

    def test_unsaved_contact_checked_against_all(self):
        new = Contact(first_name="Pat", last_name="Lee", email="pat@example.com")
        matches = self.detector.find_duplicates(new, self.contacts)
        assert [c.id for c in matches] == [1, 2]

    def test_no_duplicates(self):
        assert self.detector.find_duplicates(self.contacts[2], self.contacts) == []

    def test_match_score_is_symmetric(self):
        pairs = [
            (Contact(first_name="Jon", last_name="Smith", phone="208 555 0101", address="12 Shore Rd"),
             Contact(first_name="John", last_name="Smith", phone="2085550101", address="12 Shore Road")),
            (Contact(email="a@b.com"), Contact(email="A@B.com", first_name="Al")),
        ]
        for a, b in pairs:
            assert self.detector.match_score(a, b) == self.detector.match_score(b, a)
            assert self.detector.is_duplicate(a, b) == self.detector.is_duplicate(b, a)
