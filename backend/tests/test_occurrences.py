"""
Tests for the occurrence store: idempotent inserts and concurrent duplicates.
"""

import datetime as dt
import threading

import pytest

from platetrack import models
from platetrack.errors import NotFoundError
from platetrack.services.occurrences import DUPLICATE, PROCESSED, delete_read, ensure_plate, record_occurrence

from conftest import T0


class TestRecordOccurrence:

    def test_first_insert_is_processed(self, session):
        result = record_occurrence(session, "ABC123", T0, camera_name="gate")
        assert result.status == PROCESSED
        assert result.read_id is not None
        plate = session.get(models.Plate, "ABC123")
        assert plate is not None
        assert plate.first_seen_at == T0

    def test_same_plate_and_timestamp_is_duplicate(self, session):
        record_occurrence(session, "ABC123", T0)
        again = record_occurrence(session, "ABC123", T0, camera_name="other")
        assert again.status == DUPLICATE
        assert again.read_id is None
        assert session.query(models.PlateRead).count() == 1

    def test_same_timestamp_other_plate_is_new(self, session):
        record_occurrence(session, "ABC123", T0)
        assert record_occurrence(session, "XYZ789", T0).processed

    def test_out_of_order_read_pulls_first_seen_back(self, session):
        record_occurrence(session, "ABC123", T0)
        record_occurrence(session, "ABC123", T0 - dt.timedelta(days=2))
        record_occurrence(session, "ABC123", T0 + dt.timedelta(days=2))
        session.expire_all()
        assert session.get(models.Plate, "ABC123").first_seen_at == T0 - dt.timedelta(days=2)
        assert session.query(models.PlateRead).count() == 3

    def test_aware_timestamp_stored_as_utc(self, session):
        aware = dt.datetime(2024, 5, 1, 14, 0, tzinfo=dt.timezone(dt.timedelta(hours=2)))
        record_occurrence(session, "ABC123", aware)
        assert session.query(models.PlateRead).one().timestamp == T0

    def test_ensure_plate_is_idempotent(self, session):
        ensure_plate(session, "ABC123")
        ensure_plate(session, "ABC123")
        session.commit()
        assert session.query(models.Plate).count() == 1


class TestConcurrentDuplicates:
    """Two simultaneous submissions of one (plate, timestamp) store one read"""

    def test_one_processed_one_duplicate(self, database):
        barrier = threading.Barrier(2)
        results = []
        errors = []

        def submit():
            s = database.session()
            try:
                barrier.wait()
                results.append(record_occurrence(s, "RACE01", T0).status)
            except Exception as e:
                errors.append(e)
            finally:
                s.close()

        threads = [threading.Thread(target=submit) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sorted(results) == [DUPLICATE, PROCESSED]
        s = database.session()
        assert s.query(models.PlateRead).filter_by(plate_number="RACE01").count() == 1
        s.close()


class TestDeleteRead:

    def test_delete(self, session, add_read):
        read_id = add_read("ABC123")
        delete_read(session, read_id)
        assert session.query(models.PlateRead).count() == 0

    def test_missing(self, session):
        with pytest.raises(NotFoundError):
            delete_read(session, 999)
