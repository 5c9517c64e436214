import io
from datetime import datetime

import pytest
from fastapi import UploadFile

from teambalance.errors import ValidationError
from teambalance.routers.tasks import _read_upload

from .conftest import MAX_EVIDENCE_BYTES


def create_task_payload(title="Final edit", member="Bob", weight=3, deadline=None):
    payload = {"title": title, "member": member, "weight": weight}
    if deadline is not None:
        payload["deadline"] = deadline
    return payload


def create_task(client, **kwargs):
    res = client.post("/api/v1/tasks/", json=create_task_payload(**kwargs))
    assert res.status_code == 201
    return res.json()


def assert_task_shape(task: dict):
    for key in ["id", "title", "member", "weight", "status", "evidence", "created_at", "deadline", "deadline_status"]:
        assert key in task
    assert isinstance(task["id"], str)
    assert isinstance(task["weight"], int)
    assert task["status"] in ("pending", "completed")
    datetime.fromisoformat(task["created_at"])
    assert set(task["deadline_status"]) == {"category", "label"}


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] in ("memory", "sqlite")


class TestTasksCRUD:
    def test_create_task_minimal(self, client):
        res = client.post("/api/v1/tasks/", json={"title": "Research", "member": "Ann"})
        assert res.status_code == 201
        task = res.json()
        assert_task_shape(task)
        assert task["weight"] == 1
        assert task["status"] == "pending"
        assert task["evidence"] is None
        assert task["deadline"] is None
        assert task["deadline_status"] == {"category": "none", "label": ""}

    def test_create_task_with_deadline(self, client):
        task = create_task(client, deadline="2024-01-12")
        assert task["deadline"] == "2024-01-12"
        assert task["deadline_status"] == {"category": "urgent", "label": "Due in 2 day(s)"}

    def test_create_task_with_empty_deadline(self, client):
        task = create_task(client, deadline="")
        assert task["deadline"] is None

    def test_title_length_is_checked_after_trimming(self, client):
        task = create_task(client, title=" " + "t" * 200 + " ")
        assert task["title"] == "t" * 200
        res = client.post("/api/v1/tasks/", json=create_task_payload(title="t" * 201))
        assert res.status_code == 422

    def test_get_task_and_not_found(self, client):
        task = create_task(client, title="Read book")
        res = client.get(f"/api/v1/tasks/{task['id']}")
        assert res.status_code == 200
        assert res.json()["title"] == "Read book"

        res_404 = client.get("/api/v1/tasks/does-not-exist")
        assert res_404.status_code == 404
        assert res_404.json()["detail"] == "Task not found"

    def test_list_newest_first_with_urgency(self, client):
        create_task(client, title="Old", deadline="2024-01-08")
        create_task(client, title="Mid", deadline="2024-01-16")
        create_task(client, title="New", deadline="2024-02-01")

        res = client.get("/api/v1/tasks/")
        assert res.status_code == 200
        body = res.json()
        assert body["total"] == 3
        assert [t["title"] for t in body["items"]] == ["New", "Mid", "Old"]
        assert [t["deadline_status"]["category"] for t in body["items"]] == ["safe", "soon", "overdue"]
        assert body["items"][2]["deadline_status"]["label"] == "Overdue by 2 day(s)"

    def test_list_status_filter(self, client):
        done = create_task(client, title="Done")
        create_task(client, title="Open")
        client.post(f"/api/v1/tasks/{done['id']}/skip")

        completed = client.get("/api/v1/tasks/?status=completed").json()
        assert [t["title"] for t in completed["items"]] == ["Done"]
        pending = client.get("/api/v1/tasks/?status=pending").json()
        assert [t["title"] for t in pending["items"]] == ["Open"]

        assert client.get("/api/v1/tasks/?status=archived").status_code == 422

    def test_delete_task(self, client):
        task = create_task(client)
        res_del = client.delete(f"/api/v1/tasks/{task['id']}")
        assert res_del.status_code == 204
        assert res_del.text == ""

        assert client.get(f"/api/v1/tasks/{task['id']}").status_code == 404
        res_again = client.delete(f"/api/v1/tasks/{task['id']}")
        assert res_again.status_code == 404
        assert res_again.json()["detail"] == "Task not found"


class TestLifecycleFlow:
    def test_toggle_pending_awaits_evidence(self, client):
        task = create_task(client)
        res = client.post(f"/api/v1/tasks/{task['id']}/toggle")
        assert res.status_code == 200
        body = res.json()
        assert body["action"] == "awaiting_evidence"
        assert body["task"]["status"] == "pending"
        assert client.get(f"/api/v1/tasks/{task['id']}").json()["status"] == "pending"

    def test_complete_with_link_then_reopen(self, client):
        task = create_task(client)
        res = client.post(f"/api/v1/tasks/{task['id']}/complete", data={"link": "https://x"})
        assert res.status_code == 200
        done = res.json()
        assert done["status"] == "completed"
        assert done["evidence"] == {"type": "link", "url": "https://x", "display_url": "https://x"}

        res_toggle = client.post(f"/api/v1/tasks/{task['id']}/toggle")
        body = res_toggle.json()
        assert body["action"] == "reopened"
        assert body["task"]["status"] == "pending"
        assert body["task"]["evidence"] is None

    def test_long_link_is_shortened_for_display(self, client):
        task = create_task(client)
        url = "https://example.com/" + "a" * 80
        done = client.post(f"/api/v1/tasks/{task['id']}/complete", data={"link": url}).json()
        assert done["evidence"]["url"] == url
        assert done["evidence"]["display_url"] == url[:60] + "..."

    def test_complete_with_file(self, client):
        task = create_task(client)
        res = client.post(
            f"/api/v1/tasks/{task['id']}/complete",
            files={"file": ("report.pdf", b"%PDF-1.4 body", "application/pdf")},
        )
        assert res.status_code == 200
        evidence = res.json()["evidence"]
        assert evidence["type"] == "file"
        assert evidence["name"] == "report.pdf"
        assert evidence["mime_type"] == "application/pdf"
        assert evidence["size"] == len(b"%PDF-1.4 body")
        assert evidence["preview"] == "pdf"

        content = client.get(f"/api/v1/tasks/{task['id']}/evidence")
        assert content.status_code == 200
        assert content.content == b"%PDF-1.4 body"
        assert content.headers["content-type"].startswith("application/pdf")
        assert content.headers["content-disposition"].startswith("inline")
        assert content.headers["x-content-type-options"] == "nosniff"

    def test_file_with_mismatched_type_is_downloaded(self, client):
        task = create_task(client)
        client.post(
            f"/api/v1/tasks/{task['id']}/complete",
            files={"file": ("shot.png", b"<script>alert(1)</script>", "text/html")},
        )
        content = client.get(f"/api/v1/tasks/{task['id']}/evidence")
        assert content.status_code == 200
        assert content.headers["content-type"] == "application/octet-stream"
        assert content.headers["content-disposition"].startswith("attachment")
        assert content.headers["x-content-type-options"] == "nosniff"

    def test_image_is_shown_inline(self, client):
        task = create_task(client)
        client.post(
            f"/api/v1/tasks/{task['id']}/complete",
            files={"file": ("shot.PNG", b"\x89PNG", "image/png")},
        )
        content = client.get(f"/api/v1/tasks/{task['id']}/evidence")
        assert content.headers["content-type"] == "image/png"
        assert content.headers["content-disposition"].startswith("inline")

    def test_file_takes_precedence_over_link(self, client):
        task = create_task(client)
        res = client.post(
            f"/api/v1/tasks/{task['id']}/complete",
            data={"link": "https://ignored"},
            files={"file": ("notes.docx", b"docx", "application/octet-stream")},
        )
        evidence = res.json()["evidence"]
        assert evidence["type"] == "file"
        assert evidence["preview"] == "download"

        content = client.get(f"/api/v1/tasks/{task['id']}/evidence")
        assert content.headers["content-disposition"].startswith("attachment")

    def test_complete_without_evidence_is_skip(self, client):
        task = create_task(client)
        res = client.post(f"/api/v1/tasks/{task['id']}/complete")
        assert res.status_code == 200
        assert res.json()["status"] == "completed"
        assert res.json()["evidence"] is None

    def test_skip_twice_is_idempotent(self, client):
        task = create_task(client)
        first = client.post(f"/api/v1/tasks/{task['id']}/skip").json()
        second = client.post(f"/api/v1/tasks/{task['id']}/skip").json()
        assert first == second
        assert second["status"] == "completed"
        assert second["evidence"] is None

    def test_link_evidence_redirects(self, client):
        task = create_task(client)
        client.post(f"/api/v1/tasks/{task['id']}/complete", data={"link": "https://example.com/proof"})
        res = client.get(f"/api/v1/tasks/{task['id']}/evidence", follow_redirects=False)
        assert res.status_code == 307
        assert res.headers["location"] == "https://example.com/proof"

    def test_non_web_link_is_rejected(self, client):
        task = create_task(client)
        res = client.post(f"/api/v1/tasks/{task['id']}/complete", data={"link": "javascript:alert(1)"})
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"
        assert client.get(f"/api/v1/tasks/{task['id']}").json()["status"] == "pending"

    def test_stored_non_web_link_is_not_redirected_to(self, client, repository):
        task = create_task(client)
        bad_link = {"type": "link", "url": "javascript:alert(1)"}
        repository.update(task["id"], {"status": "completed", "evidence": bad_link})
        res = client.get(f"/api/v1/tasks/{task['id']}/evidence", follow_redirects=False)
        assert res.status_code == 404

    def test_no_evidence_to_open(self, client):
        task = create_task(client)
        res = client.get(f"/api/v1/tasks/{task['id']}/evidence")
        assert res.status_code == 404
        assert res.json()["detail"] == "Evidence not found"

    def test_unknown_task_commands(self, client):
        for path in ("toggle", "complete", "skip"):
            res = client.post(f"/api/v1/tasks/nope/{path}")
            assert res.status_code == 404
            assert res.json()["detail"] == "Task not found"


class TestEvidenceCapture:
    def test_stage_then_complete(self, client):
        task = create_task(client)
        client.post(f"/api/v1/tasks/{task['id']}/toggle")

        staged = client.put(f"/api/v1/tasks/{task['id']}/capture", data={"link": "https://draft"})
        assert staged.status_code == 200
        assert staged.json() == {
            "task_id": task["id"],
            "link": "https://draft",
            "file_name": None,
            "file_size": None,
        }
        assert client.get(f"/api/v1/tasks/{task['id']}").json()["status"] == "pending"

        done = client.post(f"/api/v1/tasks/{task['id']}/complete").json()
        assert done["evidence"]["url"] == "https://draft"
        assert client.get(f"/api/v1/tasks/{task['id']}/capture").status_code == 404

    def test_cancel_discards_staged_file(self, client):
        task = create_task(client)
        client.post(f"/api/v1/tasks/{task['id']}/toggle")
        staged = client.put(
            f"/api/v1/tasks/{task['id']}/capture",
            files={"file": ("shot.png", b"png", "image/png")},
        )
        assert staged.json()["file_name"] == "shot.png"
        assert staged.json()["file_size"] == 3

        res = client.delete(f"/api/v1/tasks/{task['id']}/capture")
        assert res.status_code == 204
        assert client.get(f"/api/v1/tasks/{task['id']}/capture").status_code == 404

        # completing now has nothing staged, so it completes without evidence
        done = client.post(f"/api/v1/tasks/{task['id']}/complete").json()
        assert done["evidence"] is None


class TestErrors:
    def test_create_validation_error_title_empty(self, client):
        res = client.post("/api/v1/tasks/", json={"title": "  ", "member": "Bob"})
        assert res.status_code == 422
        body = res.json()
        assert body.get("error") == "ValidationError"
        assert body.get("message") == "Request validation failed"
        assert isinstance(body.get("detail"), list)

    def test_create_validation_error_member_empty(self, client):
        res = client.post("/api/v1/tasks/", json={"title": "Edit", "member": ""})
        assert res.status_code == 422

    def test_create_validation_error_weight_out_of_range(self, client):
        for weight in (0, 11, "heavy", 2.5):
            res = client.post("/api/v1/tasks/", json=create_task_payload(weight=weight))
            assert res.status_code == 422

    def test_weight_string_is_normalized(self, client):
        assert create_task(client, weight="7")["weight"] == 7

    def test_oversized_evidence_is_rejected(self, client):
        task = create_task(client)
        res = client.post(
            f"/api/v1/tasks/{task['id']}/complete",
            files={"file": ("big.bin", b"x" * 4096, "application/octet-stream")},
        )
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"
        assert client.get(f"/api/v1/tasks/{task['id']}").json()["status"] == "pending"

    def test_store_unavailable(self, client, repository):
        task = create_task(client)
        repository.available = False
        res = client.post(f"/api/v1/tasks/{task['id']}/skip")
        assert res.status_code == 503
        assert res.json()["error"] == "StoreUnavailable"

        repository.available = True
        assert client.get(f"/api/v1/tasks/{task['id']}").json()["status"] == "pending"
        assert client.post(f"/api/v1/tasks/{task['id']}/skip").status_code == 200

    def test_oversized_staged_file_is_rejected(self, client):
        task = create_task(client)
        res = client.put(
            f"/api/v1/tasks/{task['id']}/capture",
            files={"file": ("big.bin", b"x" * (MAX_EVIDENCE_BYTES + 1), "application/octet-stream")},
        )
        assert res.status_code == 422
        assert client.get(f"/api/v1/tasks/{task['id']}/capture").status_code == 404

    def test_upload_is_not_read_past_the_limit(self):
        body = io.BytesIO(b"x" * 10_000)
        with pytest.raises(ValidationError):
            _read_upload(UploadFile(body, filename="big.bin"), MAX_EVIDENCE_BYTES)
        assert body.tell() == MAX_EVIDENCE_BYTES + 1

    def test_upload_at_the_limit_is_accepted(self):
        upload = UploadFile(io.BytesIO(b"x" * MAX_EVIDENCE_BYTES), filename="ok.bin")
        evidence = _read_upload(upload, MAX_EVIDENCE_BYTES)
        assert evidence.size == MAX_EVIDENCE_BYTES
