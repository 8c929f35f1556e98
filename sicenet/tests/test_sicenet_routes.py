import pytest

from sicenet.core.errors import CredentialsRejected, NetworkError, OperationInFlight
from sicenet.main import app
from sicenet.services.sicenet_service import get_sicenet_service


class FakeSicenetService:
    def __init__(self):
        self.calls = []

    async def login(self, *, student_id, secret):
        self.calls.append(("login", student_id, secret))
        if secret == "bad":
            raise CredentialsRejected("学号或密码错误")
        return {"success": True, "message": "登录成功", "data": {"granted": True, "studentId": student_id}}

    async def logout(self):
        self.calls.append(("logout",))
        return {"success": True}

    async def session_info(self):
        return {"success": True, "data": {"state": "unauthenticated", "studentId": "", "cookieCount": 0}}

    async def profile(self):
        raise NetworkError("无法连接 SICENET")

    async def course_load(self):
        raise OperationInFlight("course_load 正在进行中")

    async def transcript(self, *, curriculum_code=None):
        self.calls.append(("transcript", curriculum_code))
        return {"success": True, "data": {"entries": [], "average": None}, "cached": False}

    async def unit_grades(self):
        return {"success": True, "data": [], "cached": False}

    async def final_grades(self, *, education_model_code=None):
        self.calls.append(("final", education_model_code))
        return {"success": True, "data": [], "cached": False}


@pytest.fixture
def fake_service():
    fake = FakeSicenetService()
    app.dependency_overrides[get_sicenet_service] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_sicenet_service, None)


@pytest.mark.asyncio
async def test_login_accepts_student_id_aliases(client, fake_service):
    r = await client.post("/api/sicenet/login", json={"matricula": " S19120153 ", "password": "p"})
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert fake_service.calls[-1] == ("login", "S19120153", "p")

    r = await client.post("/api/sicenet/login", json={"studentId": "S1", "secret": "p"})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_login_validation_error(client, fake_service):
    r = await client.post("/api/sicenet/login", json={"studentId": "S1"})
    assert r.status_code == 422
    assert r.json()["success"] is False


@pytest.mark.asyncio
async def test_rejected_credentials_map_to_401(client, fake_service):
    r = await client.post("/api/sicenet/login", json={"studentId": "S1", "secret": "bad"})
    assert r.status_code == 401
    body = r.json()
    assert body["success"] is False
    assert body["reason"] == "CREDENTIALS_REJECTED"
    assert body["path"] == "/api/sicenet/login"
    assert body["requestId"] == r.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_network_error_maps_to_503(client, fake_service):
    r = await client.get("/api/sicenet/profile", headers={"X-Request-ID": "rid-1"})
    assert r.status_code == 503
    assert r.json()["reason"] == "NETWORK_ERROR"
    assert r.json()["requestId"] == "rid-1"


@pytest.mark.asyncio
async def test_in_flight_maps_to_409(client, fake_service):
    r = await client.get("/api/sicenet/course-load")
    assert r.status_code == 409
    assert r.json()["reason"] == "OPERATION_IN_FLIGHT"


@pytest.mark.asyncio
async def test_query_parameters_reach_service(client, fake_service):
    r = await client.get("/api/sicenet/transcript", params={"curriculum": 3})
    assert r.status_code == 200
    r = await client.get("/api/sicenet/final-grades")
    assert r.status_code == 200
    assert ("transcript", 3) in fake_service.calls
    assert ("final", None) in fake_service.calls


@pytest.mark.asyncio
async def test_session_logout_and_unit_grades(client, fake_service):
    assert (await client.get("/api/sicenet/session")).json()["data"]["state"] == "unauthenticated"
    assert (await client.get("/api/sicenet/unit-grades")).json()["data"] == []
    assert (await client.post("/api/sicenet/logout")).json() == {"success": True}
    assert ("logout",) in fake_service.calls
