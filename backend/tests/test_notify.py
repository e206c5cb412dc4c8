import pytest

from platetrack.errors import NotFoundError, ValidationError
from platetrack.services.notify import (
    LoggingNotifier,
    add_watch,
    check_plate_for_notification,
    delete_watch,
    list_watches,
    notify_safely,
    set_priority,
    toggle_watch,
)

from conftest import RecordingNotifier


class TestWatchMatching:

    def test_enabled_watch_matches(self, session):
        add_watch(session, "ABC123")
        watch = check_plate_for_notification(session, "ABC123")
        assert watch is not None
        assert watch.priority == 1

    def test_disabled_or_missing_watch_does_not_match(self, session):
        add_watch(session, "ABC123")
        toggle_watch(session, "ABC123", False)
        assert check_plate_for_notification(session, "ABC123") is None
        assert check_plate_for_notification(session, "XYZ789") is None

    def test_add_watch_re_enables(self, session):
        add_watch(session, "ABC123")
        set_priority(session, "ABC123", 2)
        toggle_watch(session, "ABC123", False)
        watch = add_watch(session, "ABC123")
        assert watch.enabled
        assert watch.priority == 2
        assert len(list_watches(session)) == 1


class TestWatchManagement:

    @pytest.mark.parametrize("priority", [-3, 3])
    def test_priority_out_of_range(self, session, priority):
        add_watch(session, "ABC123")
        with pytest.raises(ValidationError):
            set_priority(session, "ABC123", priority)

    def test_missing_watch(self, session):
        with pytest.raises(NotFoundError):
            toggle_watch(session, "NOPE", True)
        with pytest.raises(NotFoundError):
            set_priority(session, "NOPE", 0)
        with pytest.raises(NotFoundError):
            delete_watch(session, "NOPE")

    def test_delete(self, session):
        add_watch(session, "ABC123")
        delete_watch(session, "ABC123")
        assert list_watches(session) == []


class TestDelivery:

    def test_delivery_failure_is_swallowed(self):
        assert notify_safely(RecordingNotifier(fail=True), "ABC123", 1) is False

    def test_delivery(self):
        notifier = RecordingNotifier()
        assert notify_safely(notifier, "ABC123", 2, "base64") is True
        assert notifier.sent == [("ABC123", 2, "base64")]

    def test_logging_notifier(self):
        assert notify_safely(LoggingNotifier(), "ABC123", 0) is True
