from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sicenet.db.base import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SicenetProfile(Base):
    __tablename__ = "sicenet_profile"

    student_id: Mapped[str] = mapped_column(String(32), primary_key=True)

    name: Mapped[str] = mapped_column(String(256), default="")
    program: Mapped[str] = mapped_column(String(256), default="")
    specialization: Mapped[str] = mapped_column(String(256), default="")

    current_term: Mapped[int] = mapped_column(Integer, default=0)
    accumulated_credits: Mapped[int] = mapped_column(Integer, default=0)
    current_credits: Mapped[int] = mapped_column(Integer, default=0)
    min_load_credits: Mapped[int] = mapped_column(Integer, default=0)
    max_load_credits: Mapped[int] = mapped_column(Integer, default=0)

    curriculum_code: Mapped[int] = mapped_column(Integer, default=0)
    education_model_code: Mapped[int] = mapped_column(Integer, default=0)
    reenrollment_date: Mapped[str] = mapped_column(String(64), default="")
    status: Mapped[str] = mapped_column(String(64), default="")
    enrolled: Mapped[bool] = mapped_column(Boolean, default=False)

    has_debt: Mapped[bool] = mapped_column(Boolean, default=False)
    debt_description: Mapped[str] = mapped_column(String(512), default="")
    photo_url: Mapped[str] = mapped_column(String(512), default="")

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    course_load: Mapped[list["SicenetCourseLoad"]] = relationship(back_populates="profile", cascade="all, delete-orphan")
    transcript: Mapped[list["SicenetTranscript"]] = relationship(back_populates="profile", cascade="all, delete-orphan")
    unit_grades: Mapped[list["SicenetUnitGrade"]] = relationship(back_populates="profile", cascade="all, delete-orphan")
    final_grades: Mapped[list["SicenetFinalGrade"]] = relationship(back_populates="profile", cascade="all, delete-orphan")


def _student_fk() -> Mapped[str]:
    return mapped_column(
        String(32),
        ForeignKey("sicenet_profile.student_id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )


class SicenetCourseLoad(Base):
    __tablename__ = "sicenet_course_load"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id: Mapped[str] = _student_fk()

    clv_oficial: Mapped[str] = mapped_column(String(64), default="")
    materia: Mapped[str] = mapped_column(String(256), default="")
    grupo: Mapped[str] = mapped_column(String(32), default="")
    creditos: Mapped[int] = mapped_column(Integer, default=0)
    docente: Mapped[str] = mapped_column(String(256), default="")
    observaciones: Mapped[str] = mapped_column(String(512), default="")
    estado_materia: Mapped[int] = mapped_column(Integer, default=0)
    semestre: Mapped[int] = mapped_column(Integer, default=0)

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    profile: Mapped["SicenetProfile"] = relationship(back_populates="course_load")


class SicenetTranscript(Base):
    __tablename__ = "sicenet_transcript"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id: Mapped[str] = _student_fk()

    clv_oficial: Mapped[str] = mapped_column(String(64), default="")
    materia: Mapped[str] = mapped_column(String(256), default="")
    semestre: Mapped[int] = mapped_column(Integer, default=0)
    creditos: Mapped[int] = mapped_column(Integer, default=0)
    calificacion: Mapped[str] = mapped_column(String(16), default="")
    acreditacion: Mapped[str] = mapped_column(String(64), default="")
    periodo: Mapped[str] = mapped_column(String(64), default="")
    observaciones: Mapped[str] = mapped_column(String(512), default="")

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    profile: Mapped["SicenetProfile"] = relationship(back_populates="transcript")

    __table_args__ = (
        Index("ix_sicenet_transcript_student_term", "student_id", "semestre"),
    )


class SicenetUnitGrade(Base):
    __tablename__ = "sicenet_unit_grade"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id: Mapped[str] = _student_fk()

    clv_oficial: Mapped[str] = mapped_column(String(64), default="")
    materia: Mapped[str] = mapped_column(String(256), default="")
    grupo: Mapped[str] = mapped_column(String(32), default="")
    unidad: Mapped[int] = mapped_column(Integer, default=0)
    calificacion: Mapped[float] = mapped_column(Float, default=0.0)
    fecha: Mapped[str] = mapped_column(String(32), default="")
    observaciones: Mapped[str] = mapped_column(String(512), default="")

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    profile: Mapped["SicenetProfile"] = relationship(back_populates="unit_grades")

    __table_args__ = (
        Index("ix_sicenet_unit_grade_student_course", "student_id", "clv_oficial", "unidad"),
    )


class SicenetFinalGrade(Base):
    __tablename__ = "sicenet_final_grade"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id: Mapped[str] = _student_fk()

    clv_oficial: Mapped[str] = mapped_column(String(64), default="")
    materia: Mapped[str] = mapped_column(String(256), default="")
    grupo: Mapped[str] = mapped_column(String(32), default="")
    calificacion: Mapped[str] = mapped_column(String(16), default="")
    acreditacion: Mapped[str] = mapped_column(String(64), default="")
    periodo: Mapped[str] = mapped_column(String(64), default="")
    creditos: Mapped[int] = mapped_column(Integer, default=0)
    observaciones: Mapped[str] = mapped_column(String(512), default="")

    last_updated: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    profile: Mapped["SicenetProfile"] = relationship(back_populates="final_grades")
