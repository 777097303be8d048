import io
import os
import shutil
import tempfile

import pytest

# Configuration is read once at import, so the environment has to be in place
# before any application module is loaded.
_TMP_DIR = tempfile.mkdtemp(prefix="fibrosis-tests-")
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["BCRYPT_ROUNDS"] = "10"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["GRADER"] = "mock"
os.environ["GEMINI_API_KEY"] = ""

from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402

from config import UPLOAD_DIR  # noqa: E402
from database import Base, SessionLocal, engine  # noqa: E402
from grading import GradingResult, get_grader  # noqa: E402
from main import app  # noqa: E402

PASSWORD = "secret123"


class FixedGrader:
    def __init__(self, grade="F2", confidence=91.0):
        self.result = GradingResult(grade=grade, confidence=confidence)
        self.calls = 0

    def grade(self, image_bytes):
        self.calls += 1
        return self.result


@pytest.fixture(autouse=True)
def reset_state():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    shutil.rmtree(UPLOAD_DIR, ignore_errors=True)
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    yield
    app.dependency_overrides.clear()


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


@pytest.fixture
def grader():
    fixed = FixedGrader()
    app.dependency_overrides[get_grader] = lambda: fixed
    return fixed


@pytest.fixture
def client(grader):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def signup_doctor(client):
    def _signup(email="house@clinic.io", full_name="Gregory House", **extra):
        body = {"fullName": full_name, "email": email, "password": PASSWORD, **extra}
        response = client.post("/api/auth/signup/doctor", json=body)
        assert response.status_code == 201, response.text
        payload = response.json()
        return payload["data"], auth_header(payload["token"])

    return _signup


@pytest.fixture
def signup_organization(client):
    def _signup(email="admin@hospital.io", name="General Hospital", **extra):
        body = {"name": name, "email": email, "password": PASSWORD, **extra}
        response = client.post("/api/auth/signup/organization", json=body)
        assert response.status_code == 201, response.text
        payload = response.json()
        return payload["data"], auth_header(payload["token"])

    return _signup


def make_png(color=(120, 120, 120), size=(32, 32)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color=color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def upload(client, png_bytes):
    def _upload(headers, patient_name="Jane Doe", **fields):
        data = {"patientName": patient_name, **fields}
        files = {"image": ("scan.png", png_bytes, "image/png")}
        return client.post("/api/medical-images/upload", headers=headers, data=data, files=files)

    return _upload
