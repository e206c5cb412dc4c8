"""
Tests for identity resolution and fuzzy plate matching.
"""

from platetrack.services.corrections import set_misreads, upsert_known_plate
from platetrack.services.resolver import (
    family_plate_numbers,
    find_known_plate,
    fuzzy_matches,
    levenshtein_distance,
    match_score,
    max_edit_distance,
    resolve_identity,
)


class TestResolveIdentity:
    """Misread alias -> canonical plate"""

    def test_unknown_plate_resolves_to_itself(self, session):
        resolution = resolve_identity(session, "NEW001")
        assert resolution.canonical == "NEW001"
        assert not resolution.is_misread

    def test_standalone_known_plate_resolves_to_itself(self, session):
        upsert_known_plate(session, "ABC123", name="Neighbour")
        assert resolve_identity(session, "ABC123").canonical == "ABC123"

    def test_misread_resolves_to_parent(self, session):
        set_misreads(session, "ABC123", misreads=["A8C123", "ABC12"])
        resolution = resolve_identity(session, "A8C123")
        assert resolution.plate_number == "A8C123"
        assert resolution.canonical == "ABC123"
        assert resolution.is_misread

    def test_family(self, session):
        set_misreads(session, "ABC123", misreads=["ABC12", "A8C123"])
        assert family_plate_numbers(session, "ABC123") == ["ABC123", "A8C123", "ABC12"]
        assert family_plate_numbers(session, "NOPE") == ["NOPE"]


class TestLevenshteinDistance:

    def test_identical(self):
        assert levenshtein_distance("ABC123", "ABC123") == 0

    def test_substitution_insertion_deletion(self):
        assert levenshtein_distance("ABC123", "A8C123") == 1
        assert levenshtein_distance("ABC123", "ABC1234") == 1
        assert levenshtein_distance("ABC123", "BC123") == 1

    def test_empty(self):
        assert levenshtein_distance("", "ABC") == 3

    def test_threshold(self):
        assert max_edit_distance("ABC") == 2
        assert max_edit_distance("ABCDEFGHI") == 3


class TestMatchScore:
    """Exact beats prefix beats substring beats edit distance"""

    def test_tiers(self):
        exact = match_score("ABC123", "abc-123")
        prefix = match_score("ABC1", "ABC123")
        substring = match_score("BC12", "ABC123")
        edit = match_score("ABC124", "ABC123")
        assert exact == 1.0
        assert 0.7 <= prefix <= 0.9
        assert 0.5 <= substring <= 0.7
        assert 0 < edit < 0.5
        assert exact > prefix > substring > edit

    def test_too_far(self):
        assert match_score("ABC123", "XYZ789") is None
        assert match_score("", "ABC123") is None

    def test_fuzzy_matches(self):
        matches = fuzzy_matches("ABC123", ["ABC123", "A8C123", "XYZ789"])
        assert set(matches) == {"ABC123", "A8C123"}


class TestFindKnownPlate:

    def test_exact(self, session):
        upsert_known_plate(session, "ABC123", name="Neighbour")
        match = find_known_plate(session, "abc 123")
        assert match["plate_number"] == "ABC123"
        assert match["name"] == "Neighbour"
        assert match["similarity"] == 1.0
        assert find_known_plate(session, "ABC124") is None

    def test_fuzzy_returns_best(self, session):
        upsert_known_plate(session, "ABC123")
        upsert_known_plate(session, "XYZ789")
        match = find_known_plate(session, "ABC124", fuzzy=True)
        assert match["plate_number"] == "ABC123"
        assert match["similarity"] < 1.0
        assert find_known_plate(session, "QQQQQQQQ", fuzzy=True) is None
