# sicenet/utils/payload_parser.py
"""
把 SOAP 结果标签里的 JSON 文本转成结构化记录

SICENET 同一个逻辑接口返回的字段名并不统一（ClvOficial / clvOficial / ClvMat，
Cdts / C / Creditos ...），所以每个输出字段都对应一串候选 key，按顺序取第一个有值的。
候选 key 都写在下面的表里，要兼容新的拼写只改表，不改解析逻辑。
"""
from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from pydantic import BaseModel

from sicenet.core.errors import DecodeError
from sicenet.schemas.sicenet import (
    CourseLoadEntry,
    FinalGradeEntry,
    LoginResult,
    StudentProfile,
    TranscriptAverage,
    TranscriptEntry,
    UnitGradeEntry,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

FieldKeys = Dict[str, Tuple[str, ...]]


class PayloadKind(str, Enum):
    LOGIN = "login"
    PROFILE = "profile"
    COURSE_LOAD = "course_load"
    TRANSCRIPT = "transcript"
    UNIT_GRADES = "unit_grades"
    FINAL_GRADES = "final_grades"


EMPTY_PAYLOADS = ("", "[]", "null")

# 顶层是对象时，列表可能包在这些属性里（按顺序探测，取第一个是数组的）
WRAPPER_KEYS: Dict[PayloadKind, Tuple[str, ...]] = {
    PayloadKind.COURSE_LOAD: ("lstCarga", "Carga", "carga"),
    PayloadKind.TRANSCRIPT: ("lstKardex", "Kardex", "kardex"),
    PayloadKind.UNIT_GRADES: ("lstCalif", "Calificaciones", "calificaciones"),
    PayloadKind.FINAL_GRADES: ("lstFinal", "lstCalif", "Calificaciones", "calificaciones"),
}

FIELD_KEYS: Dict[PayloadKind, FieldKeys] = {
    PayloadKind.LOGIN: {
        "granted": ("acceso", "Acceso"),
        "student_id": ("matricula", "Matricula"),
        "user_type": ("tipoUsuario", "TipoUsuario"),
        "status": ("estatus", "Estatus"),
    },
    PayloadKind.PROFILE: {
        "student_id": ("matricula", "Matricula"),
        "name": ("nombre", "Nombre"),
        "program": ("carrera", "Carrera"),
        "specialization": ("especialidad", "Especialidad"),
        "current_term": ("semActual", "SemActual", "semestre"),
        "accumulated_credits": ("cdtosAcumulados", "CdtosAcumulados", "creditosAcumulados"),
        "current_credits": ("cdtosActuales", "CdtosActuales", "creditosActuales"),
        "min_load_credits": ("cdtsCargaMinima", "CdtsCargaMinima", "cargaMinima"),
        "max_load_credits": ("cdtsCargaMaxima", "CdtsCargaMaxima", "cargaMaxima"),
        "curriculum_code": ("lineamiento", "Lineamiento"),
        "education_model_code": ("modEducativo", "ModEducativo"),
        "reenrollment_date": ("fechaReins", "FechaReins"),
        "status": ("estatus", "Estatus"),
        "enrolled": ("inscrito", "Inscrito"),
        "has_debt": ("adeudo", "Adeudo"),
        "debt_description": ("adeudoDescripcion", "AdeudoDescripcion"),
        "photo_url": ("urlFoto", "UrlFoto"),
    },
    PayloadKind.COURSE_LOAD: {
        "clv_oficial": ("clvOficial", "ClvOficial", "ClvMat", "clvMat"),
        "materia": ("Materia", "materia"),
        "grupo": ("Grupo", "grupo"),
        "creditos": ("C", "Creditos", "creditos", "Cdts"),
        "docente": ("Docente", "docente"),
        "observaciones": ("Observaciones", "observaciones"),
        "estado_materia": ("EstadoMateria", "estadoMateria"),
        "semestre": ("Semestre", "semestre"),
    },
    PayloadKind.TRANSCRIPT: {
        "clv_oficial": ("ClvOfiMat", "ClvMat", "clvOficial", "ClvOficial"),
        "materia": ("Materia", "materia"),
        "semestre": ("S1", "Semestre", "semestre"),
        "creditos": ("Cdts", "Creditos", "creditos", "C"),
        "calificacion": ("Calif", "calif", "Calificacion"),
        "acreditacion": ("Acred", "acred", "Acreditacion"),
        "observaciones": ("Observaciones", "observaciones"),
    },
    PayloadKind.UNIT_GRADES: {
        # 这个接口里 Materia 列放的其实是课程代码，课程名在 Observaciones
        "clv_oficial": ("ClvOficial", "clvOficial", "ClvMat", "Materia", "materia"),
        "materia": ("NombreMateria", "nombreMateria", "Observaciones", "observaciones"),
        "grupo": ("Grupo", "grupo"),
    },
    PayloadKind.FINAL_GRADES: {
        "clv_oficial": ("clvMat", "ClvMat", "clvOficial", "ClvOficial"),
        "materia": ("materia", "Materia"),
        "grupo": ("grupo", "Grupo"),
        "calificacion": ("calif", "Calif"),
        "acreditacion": ("acreditado", "aclesitado", "Acred", "acred"),
        "periodo": ("tipo", "Periodo", "periodo"),
        "creditos": ("C", "Cdts", "Creditos", "creditos"),
        "observaciones": ("Observaciones", "observaciones"),
    },
}

# 卡德克斯的学期/年份是拆开的两列：P1 + A1 -> "ENE-JUN 2023"
TRANSCRIPT_PERIOD_KEYS: Tuple[Tuple[str, ...], ...] = (("P1",), ("A1",))
TRANSCRIPT_PERIOD_FALLBACK: Tuple[str, ...] = ("Periodo", "periodo")

TRANSCRIPT_AVERAGE_CONTAINERS: Tuple[str, ...] = ("Promedio", "promedio", "oPromedio")
TRANSCRIPT_AVERAGE_KEYS: FieldKeys = {
    "general_average": ("PromedioGral", "promedioGral", "PromedioGeneral", "promedioGeneral"),
    "accumulated_credits": ("CdtsAcum", "cdtsAcum", "CreditosAcumulados", "creditosAcumulados"),
    "courses_counted": ("MatCursadas", "matCursadas", "MateriasCursadas", "materiasCursadas"),
}

# 一门课一行，最多 10 个单元列；U 列没有值时回退到 C 列
MAX_UNITS = 10
UNIT_KEY_PREFIXES: Tuple[str, ...] = ("U", "C")
UNIT_PLACEHOLDERS = ("--", "null")


# -----------------------------
# 取值 / 类型转换
# -----------------------------

def _is_missing(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def pick(obj: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """按顺序返回第一个存在且非空的 key 的值；都没有就 None"""
    for k in keys:
        v = obj.get(k)
        if not _is_missing(v):
            return v
    return None


def as_str(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    if isinstance(v, (dict, list)):
        raise DecodeError(f"期望字符串，实际是 {type(v).__name__}")
    return str(v).strip()


def as_int(v: Any) -> int:
    if _is_missing(v):
        return 0
    if isinstance(v, bool):
        return int(v)
    if isinstance(v, int):
        return v
    if isinstance(v, float):
        return int(v)
    if isinstance(v, str):
        s = v.strip()
        if s in UNIT_PLACEHOLDERS:
            return 0
        try:
            return int(s)
        except ValueError:
            pass
        try:
            return int(float(s))
        except ValueError:
            raise DecodeError(f"无法转成整数: {v!r}") from None
    raise DecodeError(f"无法转成整数: {v!r}")


def as_float(v: Any) -> float:
    if _is_missing(v):
        return 0.0
    if isinstance(v, bool):
        return float(v)
    if isinstance(v, (int, float)):
        return float(v)
    if isinstance(v, str):
        s = v.strip()
        if s in UNIT_PLACEHOLDERS:
            return 0.0
        try:
            return float(s)
        except ValueError:
            raise DecodeError(f"无法转成小数: {v!r}") from None
    raise DecodeError(f"无法转成小数: {v!r}")


_TRUE = {"true", "1", "s", "si", "sí", "y", "yes"}
_FALSE = {"false", "0", "n", "no"}


def as_bool(v: Any) -> bool:
    if _is_missing(v):
        return False
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return v != 0
    if isinstance(v, str):
        s = v.strip().lower()
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
    raise DecodeError(f"无法转成布尔值: {v!r}")


_CONVERTERS: Dict[Any, Callable[[Any], Any]] = {
    str: as_str,
    int: as_int,
    float: as_float,
    bool: as_bool,
}


def _converter_for(model: Type[BaseModel], field: str) -> Callable[[Any], Any]:
    annotation = model.model_fields[field].annotation
    try:
        return _CONVERTERS[annotation]
    except KeyError:
        raise TypeError(f"{model.__name__}.{field} 的类型 {annotation!r} 没有对应的转换函数") from None


def map_record(
        model: Type[M],
        fields: FieldKeys,
        obj: Any,
        *,
        lenient: bool = False,
        **extra: Any,
) -> M:
    """
    按候选 key 表把一个 JSON 对象映射成 model

    - lenient=False：任何字段转换失败都抛 DecodeError（列表里的一行，由调用方跳过）
    - lenient=True：失败的字段退回零值（单个对象：profile/login）
    """
    if not isinstance(obj, Mapping):
        raise DecodeError(f"期望 JSON 对象，实际是 {type(obj).__name__}")

    values: Dict[str, Any] = {}
    for name, keys in fields.items():
        convert = _converter_for(model, name)
        raw = pick(obj, keys)
        try:
            values[name] = convert(raw)
        except DecodeError:
            if not lenient:
                raise
            logger.warning("%s.%s 字段无法解析，使用默认值: %r", model.__name__, name, raw)
    values.update(extra)
    return model(**values)


# -----------------------------
# JSON 文本 -> Python 对象
# -----------------------------

def _is_empty(text: str) -> bool:
    return text.strip() in EMPTY_PAYLOADS


def _loads(text: str) -> Any:
    # 入参已经是反转义过的文本（见 soap.extract_text），这里不再处理实体
    s = text.strip()
    try:
        return json.loads(s)
    except ValueError:
        raise DecodeError(f"不是合法的 JSON: {s[:80]!r}") from None


def _load_rows(inner_text: str, kind: PayloadKind) -> List[Any]:
    """
    顶层可能是数组，也可能是把数组包在某个属性里的对象；
    看第一个非空白字符决定走哪条路
    """
    s = (inner_text or "").strip()
    data = _loads(s)

    if s.startswith("{"):
        if not isinstance(data, dict):
            return []
        for key in WRAPPER_KEYS.get(kind, ()):
            v = data.get(key)
            if isinstance(v, list):
                return v
        logger.debug("%s: 对象里没有已知的列表属性，按空列表处理 keys=%s", kind.value, list(data)[:10])
        return []

    if isinstance(data, list):
        return data
    raise DecodeError(f"{kind.value}: 顶层既不是对象也不是数组")


def _map_rows(
        rows: Sequence[Any],
        kind: PayloadKind,
        row_mapper: Callable[[Any], List[M]],
) -> List[M]:
    out: List[M] = []
    failed = 0
    for i, row in enumerate(rows):
        try:
            out.extend(row_mapper(row))
        except (DecodeError, ValueError, TypeError) as e:
            failed += 1
            logger.warning("%s 第 %d 行解析失败，已跳过: %s", kind.value, i, e)

    if failed:
        logger.info("%s 解析完成：%d 行，跳过 %d 行，得到 %d 条", kind.value, len(rows), failed, len(out))
    return out


def _parse_list(
        inner_text: str,
        kind: PayloadKind,
        row_mapper: Callable[[Any], List[M]],
) -> List[M]:
    if _is_empty(inner_text or ""):
        return []
    try:
        rows = _load_rows(inner_text, kind)
    except DecodeError as e:
        logger.error("%s 负载无法解析，按空列表处理: %s", kind.value, e)
        return []
    return _map_rows(rows, kind, row_mapper)


def _parse_object(inner_text: str) -> Optional[Dict[str, Any]]:
    if _is_empty(inner_text or ""):
        return None
    data = _loads(inner_text)
    if not isinstance(data, dict):
        raise DecodeError(f"期望 JSON 对象，实际是 {type(data).__name__}")
    return data


# -----------------------------
# 各种负载
# -----------------------------

def parse_login(inner_text: str) -> LoginResult:
    """解析失败或者缺少 acceso 字段，一律得到“未授权”的默认值"""
    try:
        data = _parse_object(inner_text)
    except DecodeError as e:
        logger.error("登录结果无法解析: %s", e)
        return LoginResult()
    if data is None:
        return LoginResult()
    return map_record(LoginResult, FIELD_KEYS[PayloadKind.LOGIN], data, lenient=True)


def parse_profile(inner_text: str) -> StudentProfile:
    try:
        data = _parse_object(inner_text)
    except DecodeError as e:
        logger.error("学业概要无法解析: %s", e)
        return StudentProfile()
    if data is None:
        return StudentProfile()
    return map_record(StudentProfile, FIELD_KEYS[PayloadKind.PROFILE], data, lenient=True)


def parse_course_load(inner_text: str, student_id: str = "") -> List[CourseLoadEntry]:
    fields = FIELD_KEYS[PayloadKind.COURSE_LOAD]
    return _parse_list(
        inner_text,
        PayloadKind.COURSE_LOAD,
        lambda row: [map_record(CourseLoadEntry, fields, row, student_id=student_id)],
    )


def _transcript_period(row: Mapping[str, Any]) -> str:
    parts = [as_str(pick(row, keys)) for keys in TRANSCRIPT_PERIOD_KEYS]
    period = " ".join(p for p in parts if p)
    return period or as_str(pick(row, TRANSCRIPT_PERIOD_FALLBACK))


def _transcript_row(row: Any, student_id: str) -> List[TranscriptEntry]:
    if not isinstance(row, Mapping):
        raise DecodeError(f"期望 JSON 对象，实际是 {type(row).__name__}")
    entry = map_record(
        TranscriptEntry,
        FIELD_KEYS[PayloadKind.TRANSCRIPT],
        row,
        periodo=_transcript_period(row),
        student_id=student_id,
    )
    return [entry]


def parse_transcript(inner_text: str, student_id: str = "") -> List[TranscriptEntry]:
    return _parse_list(
        inner_text,
        PayloadKind.TRANSCRIPT,
        lambda row: _transcript_row(row, student_id),
    )


def parse_transcript_average(inner_text: str) -> TranscriptAverage:
    """
    卡德克斯带平均分时是一个对象：{"lstKardex":[...], "Promedio":{...}}
    平均分可能在子对象里，也可能直接平铺在顶层
    """
    s = (inner_text or "").strip()
    if not s.startswith("{"):
        return TranscriptAverage()
    try:
        data = _parse_object(s)
    except DecodeError as e:
        logger.error("卡德克斯平均分无法解析: %s", e)
        return TranscriptAverage()
    if data is None:
        return TranscriptAverage()

    source: Mapping[str, Any] = data
    for key in TRANSCRIPT_AVERAGE_CONTAINERS:
        v = data.get(key)
        if isinstance(v, dict):
            source = v
            break
    return map_record(TranscriptAverage, TRANSCRIPT_AVERAGE_KEYS, source, lenient=True)


def _unit_value(row: Mapping[str, Any], unit: int) -> float:
    for prefix in UNIT_KEY_PREFIXES:
        raw = row.get(f"{prefix}{unit}")
        if _is_missing(raw) or (isinstance(raw, str) and raw.strip() == "null"):
            continue
        if isinstance(raw, str) and raw.strip() in UNIT_PLACEHOLDERS:
            return 0.0
        try:
            return as_float(raw)
        except DecodeError:
            return 0.0
    return 0.0


def _unit_grade_rows(row: Any, student_id: str) -> List[UnitGradeEntry]:
    """一行（一门课，最多 10 个单元列）展开成每个单元一条记录"""
    if not isinstance(row, Mapping):
        raise DecodeError(f"期望 JSON 对象，实际是 {type(row).__name__}")

    fields = FIELD_KEYS[PayloadKind.UNIT_GRADES]
    clv = as_str(pick(row, fields["clv_oficial"]))
    name = as_str(pick(row, fields["materia"])) or clv
    group = as_str(pick(row, fields["grupo"]))

    out: List[UnitGradeEntry] = []
    for unit in range(1, MAX_UNITS + 1):
        value = _unit_value(row, unit)
        if value <= 0:
            continue
        out.append(
            UnitGradeEntry(
                clv_oficial=clv,
                materia=name,
                grupo=group,
                unidad=unit,
                calificacion=value,
                observaciones=f"Grupo: {group}" if group else "",
                student_id=student_id,
            )
        )
    return out


def parse_unit_grades(inner_text: str, student_id: str = "") -> List[UnitGradeEntry]:
    return _parse_list(
        inner_text,
        PayloadKind.UNIT_GRADES,
        lambda row: _unit_grade_rows(row, student_id),
    )


def parse_final_grades(inner_text: str, student_id: str = "") -> List[FinalGradeEntry]:
    fields = FIELD_KEYS[PayloadKind.FINAL_GRADES]
    return _parse_list(
        inner_text,
        PayloadKind.FINAL_GRADES,
        lambda row: [map_record(FinalGradeEntry, fields, row, student_id=student_id)],
    )


def parse(inner_text: str, kind: PayloadKind, student_id: str = "") -> Any:
    """统一入口：列表类返回 list，profile/login 返回单个对象"""
    kind = PayloadKind(kind)
    if kind is PayloadKind.LOGIN:
        return parse_login(inner_text)
    if kind is PayloadKind.PROFILE:
        return parse_profile(inner_text)
    if kind is PayloadKind.COURSE_LOAD:
        return parse_course_load(inner_text, student_id)
    if kind is PayloadKind.TRANSCRIPT:
        return parse_transcript(inner_text, student_id)
    if kind is PayloadKind.UNIT_GRADES:
        return parse_unit_grades(inner_text, student_id)
    return parse_final_grades(inner_text, student_id)
