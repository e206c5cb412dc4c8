import pytest

from platetrack import models
from platetrack.errors import NotFoundError, ValidationError
from platetrack.services.tags import (
    create_tag,
    delete_tag,
    flagged_plates,
    list_tags,
    set_flag,
    tag_plate,
    tags_for_plate,
    untag_plate,
    update_tag_color,
)


class TestTags:

    def test_create_and_list(self, session):
        create_tag(session, "Suspicious", "#ff0000")
        create_tag(session, "Delivery")
        assert [(t.name, t.color) for t in list_tags(session)] == [
            ("Delivery", "#808080"),
            ("Suspicious", "#ff0000"),
        ]

    def test_duplicate_name(self, session):
        create_tag(session, "Delivery")
        with pytest.raises(ValidationError):
            create_tag(session, "Delivery")
        with pytest.raises(ValidationError):
            create_tag(session, "  ")

    def test_tag_plate_creates_plate_row(self, session):
        create_tag(session, "Delivery")
        tag_plate(session, "ABC123", "Delivery")
        assert session.get(models.Plate, "ABC123") is not None
        assert tags_for_plate(session, "ABC123") == [{"name": "Delivery", "color": "#808080"}]

    def test_tag_twice(self, session):
        create_tag(session, "Delivery")
        tag_plate(session, "ABC123", "Delivery")
        with pytest.raises(ValidationError):
            tag_plate(session, "ABC123", "Delivery")

    def test_unknown_tag(self, session):
        with pytest.raises(NotFoundError):
            tag_plate(session, "ABC123", "Nope")

    def test_untag_and_recolor(self, session):
        create_tag(session, "Delivery")
        tag_plate(session, "ABC123", "Delivery")
        update_tag_color(session, "Delivery", "#00ff00")
        assert tags_for_plate(session, "ABC123")[0]["color"] == "#00ff00"
        untag_plate(session, "ABC123", "Delivery")
        assert tags_for_plate(session, "ABC123") == []

    def test_delete_tag_removes_links(self, session):
        create_tag(session, "Delivery")
        tag_plate(session, "ABC123", "Delivery")
        delete_tag(session, "Delivery")
        assert session.query(models.PlateTag).count() == 0


class TestFlags:

    def test_flag(self, session, add_read):
        add_read("ABC123")
        add_read("XYZ789")
        set_flag(session, "XYZ789", True)
        assert [p["plate_number"] for p in flagged_plates(session)] == ["XYZ789"]

    def test_flag_missing_plate(self, session):
        with pytest.raises(NotFoundError):
            set_flag(session, "NOPE", True)
