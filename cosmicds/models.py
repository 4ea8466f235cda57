from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, DateTime, Float, JSON,
    Index, Enum as SAEnum, func,
)
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import JSONB
from .database import Base
from datetime import datetime, timezone
import enum


class MeasurementNumber(str, enum.Enum):
    first = "first"
    second = "second"


# Measurement payload columns shared by both measurement streams.
MEASUREMENT_FIELDS = (
    "rest_wave_value", "rest_wave_unit",
    "obs_wave_value", "obs_wave_unit",
    "velocity_value", "velocity_unit",
    "ang_size_value", "ang_size_unit",
    "est_dist_value", "est_dist_unit",
    "brightness",
)

StoryStateJSON = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------
# ACCOUNTS
# ---------------------------
class Educator(Base):
    __tablename__ = "educators"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    verification_code = Column(String, unique=True, nullable=False)
    institution = Column(String, nullable=True)
    age = Column(Integer, nullable=True)
    gender = Column(String, nullable=True)
    visits = Column(Integer, default=0, nullable=False)
    last_visit = Column(DateTime(timezone=True), default=_utcnow)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    classes = relationship("Class", back_populates="educator", cascade="all, delete-orphan", passive_deletes=True)

    # emails are matched case-insensitively, so uniqueness must be too
    __table_args__ = (
        Index("uq_educators_email_lower", func.lower(email), unique=True),
    )


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False)
    email = Column(String, unique=True, nullable=False)
    password = Column(String, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    verification_code = Column(String, unique=True, nullable=False)
    institution = Column(String, nullable=True)
    age = Column(Integer, nullable=True)
    gender = Column(String, nullable=True)
    visits = Column(Integer, default=0, nullable=False)
    last_visit = Column(DateTime(timezone=True), default=_utcnow)
    profile_created = Column(DateTime(timezone=True), default=_utcnow)

    story_states = relationship("StoryState", back_populates="student", cascade="all, delete-orphan", passive_deletes=True)
    options = relationship("StudentOptions", back_populates="student", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index("uq_students_email_lower", func.lower(email), unique=True),
    )


# ---------------------------
# CLASSES & STORIES
# ---------------------------
class Class(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    educator_id = Column(Integer, ForeignKey("educators.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String, nullable=False)
    code = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    educator = relationship("Educator", back_populates="classes")


class Story(Base):
    __tablename__ = "stories"

    name = Column(String, primary_key=True)
    display_name = Column(String, nullable=False)


# Join rows carry no payload beyond the pair.
class StudentClass(Base):
    __tablename__ = "students_classes"

    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True, index=True)


class ClassStory(Base):
    __tablename__ = "class_stories"

    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True)
    story_name = Column(String, ForeignKey("stories.name", ondelete="CASCADE"), primary_key=True)


class StoryState(Base):
    __tablename__ = "story_states"

    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)
    story_name = Column(String, ForeignKey("stories.name", ondelete="CASCADE"), primary_key=True)
    story_state = Column(StoryStateJSON, nullable=False)
    last_modified = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    student = relationship("Student", back_populates="story_states")

    __table_args__ = (
        Index("ix_story_states_story_name", "story_name"),
    )


class StudentOptions(Base):
    __tablename__ = "student_options"

    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)
    speech_autoread = Column(Boolean, default=False, nullable=False)
    speech_rate = Column(Float, default=1.0, nullable=False)
    speech_pitch = Column(Float, default=1.0, nullable=False)

    student = relationship("Student", back_populates="options")


# ---------------------------
# GALAXIES
# ---------------------------
class Galaxy(Base):
    __tablename__ = "galaxies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    ra = Column(Float, nullable=True)
    decl = Column(Float, nullable=True)
    z = Column(Float, nullable=True)
    type = Column(String, nullable=True)
    element = Column(String, nullable=True)
    is_bad = Column(Boolean, default=False, nullable=False)
    # report counters: incremented in SQL, never assigned
    marked_bad = Column(Integer, default=0, nullable=False)
    spec_marked_bad = Column(Integer, default=0, nullable=False)
    tileload_marked_bad = Column(Integer, default=0, nullable=False)
    spec_is_bad = Column(Boolean, default=False, nullable=False)
    spec_checked = Column(Boolean, default=False, nullable=False)
    is_sample = Column(Boolean, default=False, nullable=False)


# ---------------------------
# MEASUREMENTS
# ---------------------------
class _MeasurementColumns:
    rest_wave_value = Column(Float, nullable=True)
    rest_wave_unit = Column(String, nullable=True)
    obs_wave_value = Column(Float, nullable=True)
    obs_wave_unit = Column(String, nullable=True)
    velocity_value = Column(Float, nullable=True)
    velocity_unit = Column(String, nullable=True)
    ang_size_value = Column(Float, nullable=True)
    ang_size_unit = Column(String, nullable=True)
    est_dist_value = Column(Float, nullable=True)
    est_dist_unit = Column(String, nullable=True)
    brightness = Column(Float, nullable=True)
    last_modified = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class HubbleMeasurement(_MeasurementColumns, Base):
    __tablename__ = "hubble_measurements"

    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)
    galaxy_id = Column(Integer, ForeignKey("galaxies.id", ondelete="CASCADE"), primary_key=True)

    student = relationship("Student")
    galaxy = relationship("Galaxy")


class SampleHubbleMeasurement(_MeasurementColumns, Base):
    __tablename__ = "sample_hubble_measurements"

    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), primary_key=True)
    measurement_number = Column(
        SAEnum(MeasurementNumber, name="measurement_number", native_enum=False),
        primary_key=True,
        default=MeasurementNumber.first,
    )
    galaxy_id = Column(Integer, ForeignKey("galaxies.id", ondelete="CASCADE"), nullable=False, index=True)

    student = relationship("Student")
    galaxy = relationship("Galaxy")
