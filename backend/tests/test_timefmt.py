import datetime as dt

from platetrack.services.timefmt import days_since, relative_time, to_naive_utc

NOW = dt.datetime(2024, 5, 20, 12, 0, 0)


class TestRelativeTime:
    """Human-readable ages used by the plates view"""

    def test_missing_or_future(self):
        assert relative_time(None, NOW) == ""
        assert relative_time(NOW + dt.timedelta(seconds=5), NOW) == ""

    def test_minutes(self):
        assert relative_time(NOW - dt.timedelta(seconds=30), NOW) == "Just now"
        assert relative_time(NOW - dt.timedelta(minutes=1), NOW) == "1 minute ago"
        assert relative_time(NOW - dt.timedelta(minutes=59), NOW) == "59 minutes ago"

    def test_hours(self):
        assert relative_time(NOW - dt.timedelta(hours=1), NOW) == "1 hour ago"
        assert relative_time(NOW - dt.timedelta(hours=23, minutes=59), NOW) == "23 hours ago"

    def test_days(self):
        assert relative_time(NOW - dt.timedelta(days=1, hours=3), NOW) == "Yesterday"
        assert relative_time(NOW - dt.timedelta(days=5), NOW) == "5 days ago"
        assert relative_time(NOW - dt.timedelta(days=14, hours=23), NOW) == "14 days ago"

    def test_cap(self):
        assert relative_time(NOW - dt.timedelta(days=15), NOW) == "15+ days ago"
        assert relative_time(NOW - dt.timedelta(days=400), NOW) == "15+ days ago"
        assert relative_time(NOW - dt.timedelta(days=8), NOW, cap_days=7) == "7+ days ago"

    def test_aware_timestamps_are_compared_in_utc(self):
        aware = dt.datetime(2024, 5, 20, 13, 0, tzinfo=dt.timezone(dt.timedelta(hours=2)))
        assert to_naive_utc(aware) == dt.datetime(2024, 5, 20, 11, 0)
        assert relative_time(aware, NOW) == "1 hour ago"


class TestDaysSince:

    def test_default_when_never_seen(self):
        assert days_since(None, NOW) == 15
        assert days_since(None, NOW, default=30) == 30

    def test_whole_days(self):
        assert days_since(NOW - dt.timedelta(days=3, hours=5), NOW) == 3
        assert days_since(NOW + dt.timedelta(days=1), NOW) == 0
