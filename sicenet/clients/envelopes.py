# sicenet/clients/envelopes.py
"""
SICENET SOAP 请求体模板

注意：占位符是“原样替换”，不做 url 编码也不做 XML 转义。
SICENET 的 asmx 端点就是按原样接收的，密码里带 & < % 之类的字符也照原样塞进去；
这不是安全上的最佳实践，但改了就登不上，所以保留。
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

SOAP_CONTENT_TYPE = "text/xml; charset=utf-8"
SOAP_NAMESPACE = "http://tempuri.org/"

_ENVELOPE_OPEN = (
    '<?xml version="1.0" encoding="utf-8"?>\n'
    '<soap:Envelope xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
    'xmlns:xsd="http://www.w3.org/2001/XMLSchema" '
    'xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/">\n'
    "  <soap:Body>\n"
)
_ENVELOPE_CLOSE = "  </soap:Body>\n</soap:Envelope>"


@dataclass(frozen=True)
class SoapOperation:
    """一个 SOAP 操作：名字、结果标签、请求体模板、需要几个参数"""

    name: str
    result_tag: str
    body: str
    arity: int = 0

    @property
    def soap_action(self) -> str:
        return f"{SOAP_NAMESPACE}{self.name}"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": SOAP_CONTENT_TYPE,
            "SOAPAction": self.soap_action,
        }

    @property
    def template(self) -> str:
        return _ENVELOPE_OPEN + self.body + _ENVELOPE_CLOSE


LOGIN = SoapOperation(
    name="accesoLogin",
    result_tag="accesoLoginResult",
    body=(
        '    <accesoLogin xmlns="http://tempuri.org/">\n'
        "      <strMatricula>{0}</strMatricula>\n"
        "      <strContrasenia>{1}</strContrasenia>\n"
        "      <tipoUsuario>ALUMNO</tipoUsuario>\n"
        "    </accesoLogin>\n"
    ),
    arity=2,
)

PROFILE = SoapOperation(
    name="getAlumnoAcademicoWithLineamiento",
    result_tag="getAlumnoAcademicoWithLineamientoResult",
    body='    <getAlumnoAcademicoWithLineamiento xmlns="http://tempuri.org/" />\n',
)

COURSE_LOAD = SoapOperation(
    name="getCargaAcademicaByAlumno",
    result_tag="getCargaAcademicaByAlumnoResult",
    body='    <getCargaAcademicaByAlumno xmlns="http://tempuri.org/" />\n',
)

TRANSCRIPT = SoapOperation(
    name="getAllKardexConPromedioByAlumno",
    result_tag="getAllKardexConPromedioByAlumnoResult",
    body=(
        '    <getAllKardexConPromedioByAlumno xmlns="http://tempuri.org/">\n'
        "      <aluLineamiento>{0}</aluLineamiento>\n"
        "    </getAllKardexConPromedioByAlumno>\n"
    ),
    arity=1,
)

UNIT_GRADES = SoapOperation(
    name="getCalifUnidadesByAlumno",
    result_tag="getCalifUnidadesByAlumnoResult",
    body='    <getCalifUnidadesByAlumno xmlns="http://tempuri.org/" />\n',
)

FINAL_GRADES = SoapOperation(
    name="getAllCalifFinalByAlumnos",
    result_tag="getAllCalifFinalByAlumnosResult",
    body=(
        '    <getAllCalifFinalByAlumnos xmlns="http://tempuri.org/">\n'
        "      <bytModEducativo>{0}</bytModEducativo>\n"
        "    </getAllCalifFinalByAlumnos>\n"
    ),
    arity=1,
)

OPERATIONS: Dict[str, SoapOperation] = {
    op.name: op for op in (LOGIN, PROFILE, COURSE_LOAD, TRANSCRIPT, UNIT_GRADES, FINAL_GRADES)
}


def render(operation: SoapOperation, *args: Any) -> str:
    """
    按位置把参数原样填进模板

    str.format 只解析模板本身，参数值里的 { } & < % 都不会被再次解释。
    """
    if len(args) != operation.arity:
        raise TypeError(
            f"{operation.name} 需要 {operation.arity} 个参数，实际传了 {len(args)} 个"
        )
    return operation.template.format(*(str(a) for a in args))


def encode_body(body: str) -> bytes:
    return body.encode("utf-8")
