import datetime as dt

from platetrack import models
from platetrack.services.occurrences import ensure_plate
from platetrack.services.retention import prune_if_needed, safe_prune

from conftest import T0


def _fill(session, count):
    ensure_plate(session, "ABC123")
    session.add_all(
        models.PlateRead(plate_number="ABC123", timestamp=T0 + dt.timedelta(minutes=i))
        for i in range(count)
    )
    session.commit()


class TestPrune:
    """Retention keeps the newest max_records reads, with 10% slack"""

    def test_within_slack_is_untouched(self, session):
        _fill(session, 109)
        assert prune_if_needed(session, 100) == 0
        assert session.query(models.PlateRead).count() == 109

    def test_at_slack_boundary_is_untouched(self, session):
        _fill(session, 110)
        assert prune_if_needed(session, 100) == 0

    def test_over_slack_trims_to_limit(self, session):
        _fill(session, 111)
        assert prune_if_needed(session, 100) == 11
        remaining = session.query(models.PlateRead.timestamp).order_by(models.PlateRead.timestamp).all()
        assert len(remaining) == 100
        # the eleven oldest are gone
        assert remaining[0][0] == T0 + dt.timedelta(minutes=11)

    def test_ties_on_timestamp_keep_newest_ids(self, session):
        for plate in ("AAA111", "BBB222", "CCC333"):
            ensure_plate(session, plate)
            session.add(models.PlateRead(plate_number=plate, timestamp=T0))
        session.commit()
        assert prune_if_needed(session, 1) == 2
        kept = session.query(models.PlateRead).one()
        assert kept.plate_number == "CCC333"

    def test_safe_prune_swallows_failures(self, session, monkeypatch):
        def boom(db, max_records):
            raise RuntimeError("disk full")

        monkeypatch.setattr("platetrack.services.retention.prune_if_needed", boom)
        assert safe_prune(session, 100) == 0
