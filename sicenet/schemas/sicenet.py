# sicenet/schemas/sicenet.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    # 对外 JSON 用 camelCase（clvOficial/studentId），Python 里用 snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LoginResult(_Record):
    granted: bool = False
    student_id: str = ""
    user_type: int = 0
    status: str = ""


class StudentProfile(_Record):
    """
    学生学业概要（统一的一版字段）

    所有字段都有零值默认值：响应残缺或解析失败时依然是结构完整的对象。
    """

    student_id: str = ""
    name: str = ""
    program: str = ""
    specialization: str = ""

    current_term: int = 0
    accumulated_credits: int = 0
    current_credits: int = 0
    min_load_credits: int = 0
    max_load_credits: int = 0

    curriculum_code: int = 0
    education_model_code: int = 0
    reenrollment_date: str = ""
    status: str = ""
    enrolled: bool = False

    has_debt: bool = False
    debt_description: str = ""
    photo_url: str = ""

    # 只有从本地缓存读出来时才有
    last_updated: Optional[datetime] = None


class CourseLoadEntry(_Record):
    clv_oficial: str = ""
    materia: str = ""
    grupo: str = ""
    creditos: int = 0
    docente: str = ""
    observaciones: str = ""
    estado_materia: int = 0
    semestre: int = 0

    student_id: str = ""
    last_updated: Optional[datetime] = None


class TranscriptEntry(_Record):
    clv_oficial: str = ""
    materia: str = ""
    semestre: int = 0
    creditos: int = 0
    calificacion: str = ""
    acreditacion: str = ""
    periodo: str = ""
    observaciones: str = ""

    student_id: str = ""
    last_updated: Optional[datetime] = None


class TranscriptAverage(_Record):
    general_average: float = 0.0
    accumulated_credits: int = 0
    courses_counted: int = 0


class TranscriptReport(_Record):
    entries: list[TranscriptEntry] = Field(default_factory=list)
    average: TranscriptAverage = Field(default_factory=TranscriptAverage)


class UnitGradeEntry(_Record):
    clv_oficial: str = ""
    materia: str = ""
    grupo: str = ""
    unidad: int = 0
    calificacion: float = 0.0
    fecha: str = ""
    observaciones: str = ""

    student_id: str = ""
    last_updated: Optional[datetime] = None


class FinalGradeEntry(_Record):
    clv_oficial: str = ""
    materia: str = ""
    grupo: str = ""
    calificacion: str = ""
    acreditacion: str = ""
    periodo: str = ""
    creditos: int = 0
    observaciones: str = ""

    student_id: str = ""
    last_updated: Optional[datetime] = None


class SicenetLoginRequest(BaseModel):
    student_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("studentId", "student_id", "matricula"),
    )
    secret: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("secret", "password"),
    )
