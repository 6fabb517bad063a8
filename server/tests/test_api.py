import io
import json

import pytest
from openpyxl import Workbook

from ujian_gto.config import settings
from ujian_gto.services.live_channel import StudentChannel

NISN = "12345678"
ONSHAPE_LINK = "https://cad.onshape.com/documents/0f1e2d3c/w/abc"


@pytest.fixture
def exam(client):
    resp = client.post("/api/exams", json={
        "title": "Gambar Piston",
        "description": "Buat model 3D sesuai blueprint.",
        "duration": 120,
        "dueDate": "2025-06-01T08:00",
    })
    assert resp.status_code == 201
    return resp.json()


def sse_events(body: str):
    return [json.loads(line[len("data: "):]) for line in body.splitlines() if line.startswith("data: ")]


def test_root_and_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["status"] == "running"


# ---- auth ----

def test_student_login_with_nisn(client, student):
    resp = client.post("/api/auth/login", json={"role": "student", "username": NISN, "password": NISN})
    assert resp.status_code == 200
    assert resp.json() == {"name": "Budi Santoso", "role": "student", "nisn": NISN, "class": "X TKR 1"}


def test_student_login_errors(client, student):
    resp = client.post("/api/auth/login", json={"role": "student", "username": "000", "password": "000"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "NISN tidak terdaftar. Hubungi guru Anda."

    resp = client.post("/api/auth/login", json={"role": "student", "username": NISN, "password": "smkbisa"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Password salah. Gunakan NISN atau password standar."


def test_fallback_password_only_when_configured(client, student, monkeypatch):
    monkeypatch.setattr(settings, "student_fallback_password", "smkbisa")
    resp = client.post("/api/auth/login", json={"role": "student", "username": NISN, "password": "smkbisa"})
    assert resp.status_code == 200


def test_teacher_login(client, teacher):
    resp = client.post("/api/auth/login", json={"role": "teacher", "username": "guru", "password": "rahasia"})
    assert resp.status_code == 200
    assert resp.json()["role"] == "teacher"

    resp = client.post("/api/auth/login", json={"role": "teacher", "username": "guru", "password": "salah"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Username atau Password guru salah."


# ---- exams ----

def test_exam_crud(client, exam):
    assert exam["duration"] == "120 Menit"
    assert exam["dueDate"] == "2025-06-01, 08:00"
    assert exam["status"] == "Aktif"

    assert [e["id"] for e in client.get("/api/exams").json()] == [exam["id"]]
    assert client.get("/api/exams", params={"q": "velg"}).json() == []

    resp = client.put(f"/api/exams/{exam['id']}", json={"status": "Selesai"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "Selesai"
    assert resp.json()["title"] == "Gambar Piston"

    assert client.delete(f"/api/exams/{exam['id']}").json() == {"success": True}
    resp = client.get(f"/api/exams/{exam['id']}")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Soal tidak ditemukan."


@pytest.mark.parametrize("body", [
    {"title": None},
    {"title": ""},
    {"duration": None},
    {"status": None},
])
def test_exam_update_rejects_missing_required_fields(client, exam, body):
    resp = client.put(f"/api/exams/{exam['id']}", json=body)
    assert resp.status_code == 422

    stored = client.get(f"/api/exams/{exam['id']}").json()
    assert stored["title"] == "Gambar Piston"
    assert stored["duration"] == "120 Menit"
    assert stored["status"] == "Aktif"


def test_exam_update_allows_clearing_optional_fields(client, exam):
    resp = client.put(f"/api/exams/{exam['id']}", json={"dueDate": None, "description": ""})
    assert resp.status_code == 200
    assert resp.json()["dueDate"] is None
    assert resp.json()["description"] == ""


def test_exam_requires_title(client):
    assert client.post("/api/exams", json={"title": "", "duration": "90 Menit"}).status_code == 422


def test_blueprint_upload(client):
    resp = client.post(
        "/api/exams/blueprints",
        files={"file": ("piston.PNG", b"\x89PNG\r\n\x1a\nfake", "image/png")},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["path"].startswith("blueprint_") and body["path"].endswith(".png")
    assert body["url"] == f"/uploads/blueprints/{body['path']}"

    served = client.get(body["url"])
    assert served.status_code == 200
    assert served.content == b"\x89PNG\r\n\x1a\nfake"


def test_blueprint_must_be_an_image(client):
    resp = client.post("/api/exams/blueprints", files={"file": ("notes.pdf", b"%PDF", "application/pdf")})
    assert resp.status_code == 400


# ---- attempt lifecycle ----

def test_full_attempt_flow(client, clock, student, exam):
    exam_id = exam["id"]

    state = client.post(f"/api/attempts/{exam_id}/enter", json={"nisn": NISN}).json()
    assert state["started"] is False
    assert state["remainingSeconds"] == 7200
    assert state["remainingDisplay"] == "02:00:00"

    # submitting before accepting the rules is refused
    resp = client.post(f"/api/attempts/{exam_id}/submit", json={"nisn": NISN, "onshapeLink": ONSHAPE_LINK})
    assert resp.status_code == 400

    state = client.post(f"/api/attempts/{exam_id}/accept", json={"nisn": NISN}).json()
    assert state["started"] is True
    assert state["proctor"]["confirmOnUnload"] is True
    assert state["proctor"]["enforcing"] is False

    clock.advance(119 * 60)
    state = client.get(f"/api/attempts/{exam_id}/state", params={"nisn": NISN}).json()
    assert state["remainingSeconds"] == 60
    assert state["isLowTime"] is True

    resp = client.post(f"/api/attempts/{exam_id}/submit", json={"nisn": NISN, "onshapeLink": "https://drive.google.com/x"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Masukkan link dokumen Onshape yang valid."

    clock.advance(120)
    state = client.get(f"/api/attempts/{exam_id}/state", params={"nisn": NISN}).json()
    assert state["remainingSeconds"] == 0
    assert state["isExpired"] is True

    resp = client.post(f"/api/attempts/{exam_id}/submit", json={"nisn": NISN, "onshapeLink": f"  {ONSHAPE_LINK} "})
    assert resp.status_code == 201
    submission = resp.json()
    assert submission["isLate"] is True
    assert submission["status"] == "pending"
    assert submission["onshapeLink"] == ONSHAPE_LINK
    assert submission["examTitle"] == "Gambar Piston"
    assert submission["studentName"] == "Budi Santoso"

    state = client.get(f"/api/attempts/{exam_id}/state", params={"nisn": NISN}).json()
    assert state["submitted"] is True
    assert state["started"] is False
    assert state["proctor"]["confirmOnUnload"] is False

    resp = client.post(f"/api/attempts/{exam_id}/submit", json={"nisn": NISN, "onshapeLink": ONSHAPE_LINK})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Anda sudah mengumpulkan ujian ini."
    assert client.post(f"/api/attempts/{exam_id}/accept", json={"nisn": NISN}).status_code == 400

    # grading
    resp = client.post(f"/api/submissions/{submission['id']}/grade", json={
        "dimension": 40, "efficiency": 35, "aesthetics": 20, "feedback": "Rapi",
    })
    assert resp.status_code == 200
    graded = resp.json()
    assert graded["score"] == 95
    assert graded["status"] == "graded"
    assert graded["criteria"] == {"dimension": 40, "efficiency": 35, "aesthetics": 20}

    resp = client.post(f"/api/submissions/{submission['id']}/grade", json={
        "dimension": 41, "efficiency": 0, "aesthetics": 0,
    })
    assert resp.status_code == 400

    assert client.get("/api/submissions/stats").json() == {"pending": 0, "graded": 1, "total": 1}
    assert len(client.get("/api/submissions", params={"status": "graded"}).json()) == 1
    assert client.get("/api/submissions", params={"status": "pending"}).json() == []
    assert client.get("/api/submissions", params={"status": "other"}).status_code == 422


def test_submit_in_time_is_not_late(client, clock, student, exam):
    client.post(f"/api/attempts/{exam['id']}/accept", json={"nisn": NISN})
    clock.advance(30 * 60)
    resp = client.post(f"/api/attempts/{exam['id']}/submit", json={"nisn": NISN, "onshapeLink": ONSHAPE_LINK})
    assert resp.json()["isLate"] is False


def test_reload_keeps_original_start(client, clock, student, exam):
    client.post(f"/api/attempts/{exam['id']}/accept", json={"nisn": NISN})
    clock.advance(600)
    state = client.post(f"/api/attempts/{exam['id']}/accept", json={"nisn": NISN}).json()
    assert state["remainingSeconds"] == 6600
    state = client.post(f"/api/attempts/{exam['id']}/enter", json={"nisn": NISN}).json()
    assert state["remainingSeconds"] == 6600


def test_timer_stream_ends_at_zero(client, clock, student, exam):
    client.post(f"/api/attempts/{exam['id']}/accept", json={"nisn": NISN})
    clock.advance(7200 - 2)
    resp = client.get(f"/api/attempts/{exam['id']}/timer", params={"nisn": NISN})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert [e["remainingSeconds"] for e in sse_events(resp.text)] == [2, 1, 0]


def test_unknown_student_cannot_start(client, exam):
    resp = client.post(f"/api/attempts/{exam['id']}/accept", json={"nisn": "000"})
    assert resp.status_code == 404


def test_unknown_exam(client, student):
    resp = client.post("/api/attempts/missing/enter", json={"nisn": NISN})
    assert resp.status_code == 404


# ---- students ----

def test_student_import_and_template(client):
    template = client.get("/api/students/import/template")
    assert template.status_code == 200
    assert "Template_Import_Siswa.xlsx" in template.headers["content-disposition"]

    resp = client.post("/api/students/import", files={"file": ("siswa.xlsx", template.content, "application/octet-stream")})
    assert resp.status_code == 200
    assert resp.json()["imported"] == 2

    students = client.get("/api/students").json()
    assert [s["name"] for s in students] == ["Andi Wijaya", "Budi Santoso"]
    assert students[0]["class"] == "X TKR 1"

    resp = client.post("/api/students/import", files={"file": ("siswa.xlsx", template.content, "application/octet-stream")})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Beberapa NISN sudah terdaftar di database."

    assert client.delete(f"/api/students/{students[0]['id']}").json() == {"success": True}
    assert [s["name"] for s in client.get("/api/students", params={"q": "budi"}).json()] == ["Budi Santoso"]


def test_student_import_wrong_columns(client):
    wb = Workbook()
    wb.active.append(["Foo", "Bar"])
    wb.active.append(["a", "b"])
    buffer = io.BytesIO()
    wb.save(buffer)
    resp = client.post("/api/students/import", files={"file": ("x.xlsx", buffer.getvalue(), "application/octet-stream")})
    assert resp.status_code == 400


# ---- live monitoring ----

def test_active_students_and_warning(client, live_manager, exam):
    StudentChannel(exam["id"], "Citra", "333", "X TKR 2", manager=live_manager).join()
    StudentChannel(exam["id"], "Andi", "111", "X TKR 1", manager=live_manager).join()

    active = client.get(f"/api/live/{exam['id']}/active").json()
    assert [s["name"] for s in active] == ["Andi", "Citra"]
    assert active[0]["class"] == "X TKR 1"
    assert [s["nisn"] for s in client.get(f"/api/live/{exam['id']}/active", params={"q": "cit"}).json()] == ["333"]

    resp = client.post(f"/api/live/{exam['id']}/warning", json={"message": "Fokus!", "targetNisn": "111"})
    assert resp.json() == {"sent": True, "targetNisn": "111"}

    resp = client.post(f"/api/live/{exam['id']}/warning", json={"message": "  "})
    assert resp.status_code == 400


def test_warning_degrades_when_channel_disabled(client, live_manager, exam):
    live_manager.enabled = False
    resp = client.post(f"/api/live/{exam['id']}/warning", json={"message": "Fokus!"})
    assert resp.status_code == 200
    assert resp.json()["sent"] is False


def test_submit_ends_live_presence(client, live_manager, student, exam):
    channel = StudentChannel(exam["id"], "Budi Santoso", NISN, "X TKR 1", manager=live_manager)
    channel.join()
    client.post(f"/api/attempts/{exam['id']}/accept", json={"nisn": NISN})
    resp = client.post(f"/api/attempts/{exam['id']}/submit", json={"nisn": NISN, "onshapeLink": ONSHAPE_LINK})
    assert resp.status_code == 201

    while not channel.subscription.queue.empty():
        channel.accept(channel.subscription.queue.get_nowait())
    assert channel.finished is True

    resp = client.get(f"/api/live/{exam['id']}/student", params={"nisn": NISN})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Anda sudah mengumpulkan ujian ini."


def test_submit_succeeds_without_live_channel(client, live_manager, student, exam):
    live_manager.enabled = False
    client.post(f"/api/attempts/{exam['id']}/accept", json={"nisn": NISN})
    resp = client.post(f"/api/attempts/{exam['id']}/submit", json={"nisn": NISN, "onshapeLink": ONSHAPE_LINK})
    assert resp.status_code == 201
