from sicenet.utils.soap import extract_result, extract_text, find_fault
from sicenet.tests.soap_stub import soap_envelope, soap_fault


def test_extracts_text_between_first_tags():
    assert extract_result("<a><r>42</r></a>", "r") == "42"


def test_missing_tag_is_empty_not_error():
    assert extract_result("<a><r>42</r></a>", "missing") == ""
    assert extract_result("", "r") == ""


def test_close_before_open_is_empty():
    assert extract_result("</r>junk<r>", "r") == ""


def test_first_occurrence_wins():
    assert extract_result("<r>1</r><r>2</r>", "r") == "1"


def test_tag_name_is_case_sensitive():
    assert extract_result("<R>1</R>", "r") == ""


def test_inner_text_is_returned_raw():
    xml = soap_envelope("accesoLoginResult", '{"acceso":true}')
    assert extract_result(xml, "accesoLoginResult") == '{"acceso":true}'

    escaped = soap_envelope("getCargaAcademicaByAlumnoResult", '[{"Materia":"A & B"}]')
    assert extract_result(escaped, "getCargaAcademicaByAlumnoResult") == '[{"Materia":"A &amp; B"}]'


def test_extract_text_unescapes_once():
    xml = soap_envelope("getCargaAcademicaByAlumnoResult", '[{"Materia":"Redes & Telecom <2>"}]')
    assert extract_text(xml, "getCargaAcademicaByAlumnoResult") == '[{"Materia":"Redes & Telecom <2>"}]'

    quoted = "<r>[{&quot;a&quot;:&quot;x &amp;amp; y&quot;}]</r>"
    assert extract_text(quoted, "r") == '[{"a":"x &amp; y"}]'

    assert extract_text("<a/>", "r") == ""


def test_find_fault():
    assert find_fault(soap_fault("Server was unable to process <request>")) == (
        "Server was unable to process <request>"
    )
    assert find_fault(soap_envelope("accesoLoginResult", "{}")) is None
    assert find_fault("<s:Fault></s:Fault>") == ""
