from __future__ import annotations

from collections.abc import Iterator
from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_now
from app.main import app
from tests.conftest import (
    T0,
    load_progress,
    load_timeline,
    make_course,
    make_department,
    make_progress,
    make_timeline,
)


@pytest.fixture
def clock() -> Iterator[dict]:
    """Mutable clock: set ``clock["now"]`` to move time for the API."""
    state = {"now": T0}
    app.dependency_overrides[get_now] = lambda: state["now"]
    yield state
    app.dependency_overrides.pop(get_now, None)


def _timeline_body(course, module_index, department, **overrides) -> dict:
    return {
        "course_id": str(course.id),
        "module_id": str(course.modules[module_index].id),
        "department_id": str(department),
        "deadline": T0.isoformat(),
        **overrides,
    }


# ---- create / update / deactivate ----


def test_put_creates_then_updates_timeline(client: TestClient) -> None:
    course = make_course(modules=2)
    department = make_department()

    created = client.put("/v1/timelines", json=_timeline_body(course, 1, department))
    assert created.status_code == 200
    data = created.json()
    assert data["grace_period_hours"] == 24
    assert data["warning_periods"] == [168, 72, 24]

    updated = client.put(
        "/v1/timelines",
        json=_timeline_body(course, 1, department, grace_period_hours=48),
    )
    assert updated.status_code == 200
    assert updated.json()["id"] == data["id"]
    assert updated.json()["grace_period_hours"] == 48


def test_put_rejects_negative_grace(client: TestClient) -> None:
    course = make_course(modules=2)
    resp = client.put(
        "/v1/timelines",
        json=_timeline_body(course, 1, make_department(), grace_period_hours=-1),
    )
    assert resp.status_code == 422


def test_put_rejects_module_of_other_course(client: TestClient) -> None:
    course = make_course(modules=2)
    other = make_course(modules=1, slug="other-course")
    body = _timeline_body(course, 1, make_department())
    body["module_id"] = str(other.modules[0].id)

    resp = client.put("/v1/timelines", json=body)
    assert resp.status_code == 422


def test_put_unknown_department_is_404(client: TestClient) -> None:
    course = make_course(modules=2)
    resp = client.put("/v1/timelines", json=_timeline_body(course, 1, uuid4()))
    assert resp.status_code == 404


def test_deactivate(client: TestClient) -> None:
    course = make_course(modules=2)
    timeline = make_timeline(course, 1, make_department())

    resp = client.post(f"/v1/timelines/{timeline.id}/deactivate")
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    missing = client.post(f"/v1/timelines/{uuid4()}/deactivate")
    assert missing.status_code == 404


# ---- accessors ----


def test_due_lists(client: TestClient, clock: dict) -> None:
    course = make_course(modules=3)
    department = make_department()
    past = make_timeline(course, 1, department, deadline=T0 - timedelta(hours=30))
    future = make_timeline(course, 2, department, deadline=T0 + timedelta(days=2))

    due = client.get("/v1/timelines/due/enforcement").json()
    upcoming = client.get("/v1/timelines/due/warnings").json()

    assert [t["id"] for t in due] == [str(past.id)]
    assert [t["id"] for t in upcoming] == [str(future.id)]


def test_cleanup_soon(client: TestClient, clock: dict) -> None:
    course = make_course(modules=3)
    department = make_department()
    # compliance deadline T0+12h: inside the default 24h lookahead
    soon = make_timeline(course, 1, department, deadline=T0 - timedelta(hours=12))
    make_timeline(course, 2, department, deadline=T0 + timedelta(days=5))

    resp = client.get("/v1/timelines/cleanup-soon")
    assert [t["id"] for t in resp.json()] == [str(soon.id)]

    wider = client.get("/v1/timelines/cleanup-soon", params={"within_hours": 24 * 7})
    assert len(wider.json()) == 2


# ---- manual runs ----


def test_manual_enforcement_run(client: TestClient, clock: dict) -> None:
    course = make_course(modules=3)
    student = uuid4()
    department = make_department(student)
    make_progress(student, course, finished_modules=1)
    timeline = make_timeline(course, 1, department, deadline=T0)
    clock["now"] = T0 + timedelta(hours=25)

    resp = client.post("/v1/timelines/enforcement/run")

    assert resp.status_code == 200
    assert resp.json() == {"processed_count": 1, "demotion_count": 1, "errors": []}
    stored = load_timeline(timeline.id)
    assert stored is not None
    assert len(stored.missed_deadline_students) == 1


def test_manual_enforcement_run_reports_errors(client: TestClient, clock: dict) -> None:
    course = make_course(modules=2)
    timeline = make_timeline(course, 1, uuid4(), deadline=T0)
    clock["now"] = T0 + timedelta(hours=25)

    resp = client.post("/v1/timelines/enforcement/run")

    body = resp.json()
    assert body["processed_count"] == 0
    assert body["errors"][0]["timeline_id"] == str(timeline.id)


def test_manual_warning_run(client: TestClient, clock: dict) -> None:
    course = make_course(modules=3)
    student = uuid4()
    department = make_department(student)
    make_progress(student, course, finished_modules=1)
    make_timeline(course, 1, department, deadline=T0 + timedelta(hours=72))

    resp = client.post("/v1/timelines/warnings/run")

    assert resp.json() == {"checked_count": 1, "warnings_sent": 1, "errors": []}
    progress = load_progress(student, course.id)
    assert progress is not None
    assert progress.timeline_notifications[0].type == "WARNING"


# ---- status report ----


def test_department_status(client: TestClient, clock: dict) -> None:
    course = make_course(modules=3)
    done, pending = uuid4(), uuid4()
    department = make_department(done, pending)
    make_progress(done, course, finished_modules=2)
    make_progress(pending, course, finished_modules=1)
    make_timeline(course, 1, department, deadline=T0 - timedelta(hours=1))

    resp = client.get(f"/v1/timelines/status/{course.id}/{department}")

    assert resp.status_code == 200
    [timeline] = resp.json()
    assert timeline["is_overdue"] is True
    statuses = {s["student_id"]: s["status"] for s in timeline["students"]}
    assert statuses == {str(done): "COMPLETED", str(pending): "OVERDUE"}


def test_department_status_unknown_course(client: TestClient) -> None:
    resp = client.get(f"/v1/timelines/status/{uuid4()}/{make_department()}")
    assert resp.status_code == 404
