from sqlalchemy import (
    Column, String, Text, TIMESTAMP, BigInteger, Integer, Boolean, ForeignKey,
    UniqueConstraint, Index,
)
from sqlalchemy.sql import func, false, true
from .db import Base

# sqlite only autoincrements INTEGER PRIMARY KEY columns
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


class Plate(Base):
    __tablename__ = "plates"
    plate_number = Column(String(32), primary_key=True)
    flagged = Column(Boolean, nullable=False, default=False, server_default=false())
    first_seen_at = Column(TIMESTAMP, server_default=func.now())
    created_at = Column(TIMESTAMP, server_default=func.now())


class PlateRead(Base):
    __tablename__ = "plate_reads"
    id = Column(ID_TYPE, primary_key=True, autoincrement=True)
    plate_number = Column(
        String(32), ForeignKey("plates.plate_number", ondelete="CASCADE"), nullable=False, index=True
    )
    timestamp = Column(TIMESTAMP, nullable=False, server_default=func.now())
    camera_name = Column(String(255))
    image_data = Column(Text)

    __table_args__ = (
        UniqueConstraint("plate_number", "timestamp", name="uq_plate_reads_plate_timestamp"),
        Index("ix_plate_reads_timestamp", "timestamp"),
    )


class KnownPlate(Base):
    """
    Metadata for a plate the user knows about. A row with
    `parent_plate_number` set is a misread alias of that parent.
    """
    __tablename__ = "known_plates"
    plate_number = Column(String(32), primary_key=True)
    name = Column(String(255))
    notes = Column(Text)
    parent_plate_number = Column(
        String(32), ForeignKey("known_plates.plate_number"), nullable=True, index=True
    )
    created_at = Column(TIMESTAMP, server_default=func.now())


class Tag(Base):
    __tablename__ = "tags"
    id = Column(ID_TYPE, primary_key=True, autoincrement=True)
    name = Column(String(64), nullable=False, unique=True)
    color = Column(String(16), nullable=False, default="#808080")
    created_at = Column(TIMESTAMP, server_default=func.now())


class PlateTag(Base):
    __tablename__ = "plate_tags"
    plate_number = Column(String(32), primary_key=True)
    tag_id = Column(ID_TYPE, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)


class PlateNotification(Base):
    __tablename__ = "plate_notifications"
    id = Column(ID_TYPE, primary_key=True, autoincrement=True)
    plate_number = Column(String(32), nullable=False, unique=True)
    enabled = Column(Boolean, nullable=False, default=True, server_default=true())
    priority = Column(Integer, nullable=False, default=1)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
