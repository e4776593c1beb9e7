import os
import sys
from datetime import datetime, timedelta, timezone
import pytest

CURRENT_DIR = os.path.dirname(__file__)
SERVICE_ROOT = os.path.dirname(CURRENT_DIR)
if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from classroom_service.infrastructure.models import Submission

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF"
TEACHER = "alice@example.com"
STUDENT = "bob@example.com"


def _pdf(name="task.pdf", data=PDF_BYTES, content_type="application/pdf"):
    return (name, data, content_type)


@pytest.fixture
def classroom(client, make_user, auth_header):
    """Alice teaches, Bob has joined"""
    make_user(TEACHER, "Alice")
    make_user(STUDENT, "Bob")
    room = client.post("/api/classrooms", json={"name": "Algorithms101"}, headers=auth_header(TEACHER)).json()
    client.post("/api/classrooms/join", json={"code": room["code"]}, headers=auth_header(STUDENT))
    return room


def _create_assignment(client, auth_header, classroom_id, due_date=None):
    due_date = due_date or (datetime.now(timezone.utc) + timedelta(days=7))
    return client.post(
        f"/api/classrooms/{classroom_id}/assignments",
        data={"title": "Sorting", "content": "Implement merge sort", "due_date": due_date.isoformat()},
        files={"file": _pdf("task sheet.pdf"), "solution_file": _pdf("solution.pdf")},
        headers=auth_header(TEACHER),
    )


def test_create_assignment_uploads_both_files(client, classroom, auth_header, storage):
    response = _create_assignment(client, auth_header, classroom["id"])
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Sorting"
    assert data["file_url"].startswith("https://firebasestorage.googleapis.com/v0/b/test-bucket/o/assignments%2F")
    assert data["file_url"].endswith("_task%20sheet.pdf?alt=media")
    assert "solutions%2F" in data["solution_url"]

    folders = sorted(path.split("/", 1)[0] for path in storage.objects)
    assert folders == ["assignments", "solutions"]
    assert all(ct == "application/pdf" for _, ct in storage.objects.values())

def test_student_cannot_create_assignment(client, classroom, auth_header, storage):
    response = client.post(
        f"/api/classrooms/{classroom['id']}/assignments",
        data={"title": "Nope", "due_date": "2030-01-01T10:00:00"},
        files={"file": _pdf(), "solution_file": _pdf()},
        headers=auth_header(STUDENT),
    )
    assert response.status_code == 403
    assert storage.objects == {}

def test_non_pdf_rejected(client, classroom, auth_header, storage):
    response = client.post(
        f"/api/classrooms/{classroom['id']}/assignments",
        data={"title": "Sorting", "due_date": "2030-01-01T10:00:00"},
        files={"file": _pdf("notes.txt", b"hello", "text/plain"), "solution_file": _pdf()},
        headers=auth_header(TEACHER),
    )
    assert response.status_code == 400
    assert storage.objects == {}

def test_students_do_not_see_solutions(client, classroom, auth_header):
    created = _create_assignment(client, auth_header, classroom["id"]).json()

    as_student = client.get(f"/api/classrooms/{classroom['id']}/assignments", headers=auth_header(STUDENT))
    assert as_student.status_code == 200
    assert [a["id"] for a in as_student.json()] == [created["id"]]
    assert as_student.json()[0]["solution_url"] is None

    as_teacher = client.get(f"/api/classrooms/{classroom['id']}/assignments/{created['id']}",
                            headers=auth_header(TEACHER))
    assert as_teacher.json()["solution_url"] == created["solution_url"]

    single = client.get(f"/api/classrooms/{classroom['id']}/assignments/{created['id']}",
                        headers=auth_header(STUDENT))
    assert single.json()["solution_url"] is None

def test_outsider_cannot_list_assignments(client, classroom, make_user, auth_header):
    make_user("eve@example.com")
    response = client.get(f"/api/classrooms/{classroom['id']}/assignments", headers=auth_header("eve@example.com"))
    assert response.status_code == 403

def test_submission_lifecycle(client, classroom, auth_header, storage):
    assignment = _create_assignment(client, auth_header, classroom["id"]).json()
    base = f"/api/classrooms/{classroom['id']}/assignments/{assignment['id']}/submissions"

    # 1. Submit
    submitted = client.post(base, files={"file": _pdf("answer.pdf")}, headers=auth_header(STUDENT))
    assert submitted.status_code == 201
    submission = submitted.json()
    assert submission["is_late"] is False
    assert submission["score"] is None
    assert f"submissions%2F{assignment['id']}%2F" in submission["file_url"]

    # 2. Not evaluated yet
    pending = client.get(f"{base}/{submission['id']}/evaluate", headers=auth_header(STUDENT))
    assert pending.status_code == 404

    # 3. Student cannot score
    denied = client.put(f"{base}/{submission['id']}/score", json={"score": 100}, headers=auth_header(STUDENT))
    assert denied.status_code == 403

    # 4. Teacher scores
    scored = client.put(f"{base}/{submission['id']}/score", json={"score": 84.5, "feedback": "Good work"},
                        headers=auth_header(TEACHER))
    assert scored.status_code == 200
    assert scored.json()["grade"] == "B"

    # 5. Student reads the evaluation
    evaluation = client.get(f"{base}/{submission['id']}/evaluate", headers=auth_header(STUDENT))
    assert evaluation.status_code == 200
    assert evaluation.json() == {"score": 84.5, "grade": "B", "feedback": "Good work"}

    # 6. Evaluated work can no longer be withdrawn
    locked = client.delete(f"{base}/{submission['id']}", headers=auth_header(STUDENT))
    assert locked.status_code == 409

def test_score_out_of_range(client, classroom, auth_header):
    assignment = _create_assignment(client, auth_header, classroom["id"]).json()
    base = f"/api/classrooms/{classroom['id']}/assignments/{assignment['id']}/submissions"
    submission = client.post(base, files={"file": _pdf()}, headers=auth_header(STUDENT)).json()
    response = client.put(f"{base}/{submission['id']}/score", json={"score": 101}, headers=auth_header(TEACHER))
    assert response.status_code == 422

def test_late_submission_is_flagged(client, classroom, auth_header):
    past = datetime.now(timezone.utc) - timedelta(days=1)
    assignment = _create_assignment(client, auth_header, classroom["id"], due_date=past).json()
    base = f"/api/classrooms/{classroom['id']}/assignments/{assignment['id']}/submissions"
    response = client.post(base, files={"file": _pdf()}, headers=auth_header(STUDENT))
    assert response.status_code == 201
    assert response.json()["is_late"] is True

def test_students_only_see_their_own_submissions(client, classroom, make_user, auth_header):
    make_user("carol@example.com")
    client.post("/api/classrooms/join", json={"code": classroom["code"]}, headers=auth_header("carol@example.com"))
    assignment = _create_assignment(client, auth_header, classroom["id"]).json()
    base = f"/api/classrooms/{classroom['id']}/assignments/{assignment['id']}/submissions"
    client.post(base, files={"file": _pdf()}, headers=auth_header(STUDENT))
    client.post(base, files={"file": _pdf()}, headers=auth_header("carol@example.com"))

    assert len(client.get(base, headers=auth_header(STUDENT)).json()) == 1
    assert len(client.get(base, headers=auth_header("carol@example.com")).json()) == 1
    assert len(client.get(base, headers=auth_header(TEACHER)).json()) == 2

def test_withdraw_submission(client, classroom, auth_header, storage, count_rows):
    assignment = _create_assignment(client, auth_header, classroom["id"]).json()
    base = f"/api/classrooms/{classroom['id']}/assignments/{assignment['id']}/submissions"
    submission = client.post(base, files={"file": _pdf()}, headers=auth_header(STUDENT)).json()

    other = client.delete(f"{base}/{submission['id']}", headers=auth_header(TEACHER))
    assert other.status_code == 403

    response = client.delete(f"{base}/{submission['id']}", headers=auth_header(STUDENT))
    assert response.status_code == 204
    assert count_rows(Submission) == 0
    assert storage.deleted[-1].startswith(f"submissions/{assignment['id']}/")

def test_delete_assignment_removes_files(client, classroom, auth_header, storage, count_rows):
    assignment = _create_assignment(client, auth_header, classroom["id"]).json()
    base = f"/api/classrooms/{classroom['id']}/assignments/{assignment['id']}"
    client.post(f"{base}/submissions", files={"file": _pdf()}, headers=auth_header(STUDENT))

    assert client.delete(base, headers=auth_header(STUDENT)).status_code == 403
    response = client.delete(base, headers=auth_header(TEACHER))
    assert response.status_code == 204
    assert storage.objects == {}
    assert count_rows(Submission) == 0
    assert client.get(base, headers=auth_header(TEACHER)).status_code == 404

def test_failed_upload_is_reported_even_if_cleanup_fails(client, classroom, auth_header, storage, monkeypatch):
    upload = storage.upload

    def upload_unless_solution(data, path, content_type):
        if path.startswith("solutions/"):
            raise RuntimeError("bucket unavailable")
        return upload(data, path, content_type)

    def broken_delete(path):
        raise RuntimeError("delete failed")

    monkeypatch.setattr(storage, "upload", upload_unless_solution)
    monkeypatch.setattr(storage, "delete", broken_delete)
    with pytest.raises(RuntimeError, match="bucket unavailable"):
        _create_assignment(client, auth_header, classroom["id"])

def test_delete_assignment_survives_storage_errors(client, classroom, auth_header, storage, monkeypatch):
    assignment = _create_assignment(client, auth_header, classroom["id"]).json()
    base = f"/api/classrooms/{classroom['id']}/assignments/{assignment['id']}"

    def broken_delete(path):
        raise RuntimeError("delete failed")

    monkeypatch.setattr(storage, "delete", broken_delete)
    assert client.delete(base, headers=auth_header(TEACHER)).status_code == 204
    assert client.get(base, headers=auth_header(TEACHER)).status_code == 404
