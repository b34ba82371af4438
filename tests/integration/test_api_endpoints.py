"""Integration tests for REST API endpoints with real in-memory SQLite."""

import json

import pytest

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

WAV_BYTES = b"RIFF\x24\x00\x00\x00WAVEfmt " + bytes(range(256))


async def _post_interview(client, exercise, **overrides):
    data = {
        "personaId": exercise["persona_id"],
        "exerciseId": exercise["id"],
        "title": "Walkthrough #1",
        "duration": "95.5",
        "annotations": json.dumps(
            [
                {"timestamp": 40.0, "content": "missed the CTA"},
                {"timestamp": 4.0, "content": "reads intro"},
            ]
        ),
    }
    files = {"audio": ("recording.wav", WAV_BYTES, "audio/wav")}
    if "files" in overrides:
        files = overrides.pop("files")
    data.update(overrides)
    data = {k: v for k, v in data.items() if v is not None}
    return await client.post("/api/v1/interviews", data=data, files=files)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


async def test_health_returns_200(async_client):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


async def test_hierarchy_listing(async_client, exercise):
    """Projects list personas, personas list exercises with interview counts."""
    resp = await async_client.get("/api/v1/projects")
    assert resp.status_code == 200
    assert [p["id"] for p in resp.json()] == [exercise["project_id"]]

    resp = await async_client.get(f"/api/v1/projects/{exercise['project_id']}/personas")
    personas = resp.json()
    assert personas[0]["characteristics"] == "busy"

    await _post_interview(async_client, exercise)
    resp = await async_client.get(f"/api/v1/personas/{exercise['persona_id']}/exercises")
    assert resp.json()[0]["interview_count"] == 1
    assert resp.json()[0]["type"] == "Usability Test"


async def test_create_project_rejects_blank_name(async_client):
    resp = await async_client.post("/api/v1/projects", json={"name": "   "})
    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_ERROR"


async def test_unknown_exercise_type_rejected(async_client, exercise):
    resp = await async_client.post(
        "/api/v1/exercises",
        json={"persona_id": exercise["persona_id"], "name": "x", "type": "Séance"},
    )
    assert resp.status_code == 422


async def test_persona_for_missing_project(async_client):
    resp = await async_client.post("/api/v1/personas", json={"project_id": "nope", "name": "x"})
    assert resp.status_code == 404
    body = resp.json()
    assert body["code"] == "PROJECT_NOT_FOUND"
    assert "error" in body and "timestamp" in body


# ---------------------------------------------------------------------------
# Interview capture round trip
# ---------------------------------------------------------------------------


async def test_interview_round_trip(async_client, exercise):
    """POST multipart -> GET detail and audio returns the same data."""
    resp = await _post_interview(async_client, exercise)
    assert resp.status_code == 201
    created = resp.json()
    assert created["status"] == "recorded"
    assert created["duration"] == 95.5
    assert created["audio_url"].startswith("/uploads/")

    resp = await async_client.get(f"/api/v1/interviews/{created['id']}")
    assert resp.status_code == 200
    detail = resp.json()
    assert detail["title"] == "Walkthrough #1"
    assert [(a["timestamp"], a["content"]) for a in detail["annotations"]] == [
        (4.0, "reads intro"),
        (40.0, "missed the CTA"),
    ]
    assert detail["transcript"] is None
    assert detail["analyses"] == []

    resp = await async_client.get(f"/api/v1/interviews/{created['id']}/audio")
    assert resp.status_code == 200
    assert resp.content == WAV_BYTES
    assert resp.headers["content-type"].startswith("audio/wav")

    resp = await async_client.get(created["audio_url"])
    assert resp.status_code == 200
    assert resp.content == WAV_BYTES

    resp = await async_client.get(f"/api/v1/exercises/{exercise['id']}/interviews")
    assert [i["id"] for i in resp.json()] == [created["id"]]


async def test_notes_only_interview(async_client, exercise):
    resp = await _post_interview(async_client, exercise, files=None)
    assert resp.status_code == 201
    assert resp.json()["audio_url"] is None

    resp = await async_client.get(f"/api/v1/interviews/{resp.json()['id']}/audio")
    assert resp.status_code == 404


async def test_interview_without_annotations(async_client, exercise):
    resp = await _post_interview(async_client, exercise, annotations=None)
    assert resp.status_code == 201
    detail = (await async_client.get(f"/api/v1/interviews/{resp.json()['id']}")).json()
    assert detail["annotations"] == []


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "  "},
        {"annotations": "not json"},
        {"annotations": json.dumps([{"timestamp": -1, "content": "x"}])},
        {"annotations": json.dumps([{"timestamp": 1, "content": "   "}])},
        {"annotations": '[{"timestamp": Infinity, "content": "x"}]'},
        {"annotations": '[{"timestamp": NaN, "content": "x"}]'},
        {"duration": "inf"},
    ],
)
async def test_invalid_interview_submission(async_client, exercise, overrides):
    resp = await _post_interview(async_client, exercise, **overrides)
    assert resp.status_code == 422
    assert resp.json()["code"] == "VALIDATION_ERROR"


async def test_missing_persona_field(async_client, exercise):
    resp = await async_client.post(
        "/api/v1/interviews",
        data={"exerciseId": exercise["id"], "title": "x"},
    )
    assert resp.status_code == 422


async def test_interview_for_unknown_exercise(async_client, exercise):
    resp = await _post_interview(async_client, exercise, exerciseId="missing")
    assert resp.status_code == 404
    assert resp.json()["code"] == "EXERCISE_NOT_FOUND"


async def test_get_missing_interview(async_client):
    resp = await async_client.get("/api/v1/interviews/missing")
    assert resp.status_code == 404
    assert resp.json()["code"] == "INTERVIEW_NOT_FOUND"


# ---------------------------------------------------------------------------
# Processing surface
# ---------------------------------------------------------------------------


async def test_status_transcript_and_analysis(async_client, exercise):
    interview_id = (await _post_interview(async_client, exercise)).json()["id"]

    resp = await async_client.patch(
        f"/api/v1/interviews/{interview_id}/status", json={"status": "transcribing"}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "transcribing"

    resp = await async_client.patch(
        f"/api/v1/interviews/{interview_id}/status", json={"status": "recorded"}
    )
    assert resp.status_code == 409

    resp = await async_client.patch(
        f"/api/v1/interviews/{interview_id}/status", json={"status": "shipped"}
    )
    assert resp.status_code == 422

    resp = await async_client.put(
        f"/api/v1/interviews/{interview_id}/transcript", json={"content": "Hi there"}
    )
    assert resp.status_code == 200

    resp = await async_client.post(
        f"/api/v1/interviews/{interview_id}/analyses",
        json={"agent_name": "themes", "content": {"themes": ["navigation"]}},
    )
    assert resp.status_code == 201
    assert resp.json()["content"] == {"themes": ["navigation"]}

    detail = (await async_client.get(f"/api/v1/interviews/{interview_id}")).json()
    assert detail["status"] == "transcribing"
    assert detail["transcript"]["content"] == "Hi there"
    assert detail["analyses"][0]["agent_name"] == "themes"


# ---------------------------------------------------------------------------
# Deletes
# ---------------------------------------------------------------------------


async def test_delete_project_cascades(async_client, exercise, uploads_dir):
    interview = (await _post_interview(async_client, exercise)).json()
    assert len(list(uploads_dir.iterdir())) == 1

    resp = await async_client.delete(f"/api/v1/projects/{exercise['project_id']}")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "audio_deleted": 1}
    assert list(uploads_dir.iterdir()) == []

    for path in (
        f"/api/v1/projects/{exercise['project_id']}",
        f"/api/v1/personas/{exercise['persona_id']}",
        f"/api/v1/exercises/{exercise['id']}",
        f"/api/v1/interviews/{interview['id']}",
    ):
        assert (await async_client.get(path)).status_code == 404


async def test_delete_twice_returns_500(async_client, exercise):
    interview_id = (await _post_interview(async_client, exercise)).json()["id"]
    assert (await async_client.delete(f"/api/v1/interviews/{interview_id}")).status_code == 200

    resp = await async_client.delete(f"/api/v1/interviews/{interview_id}")
    assert resp.status_code == 500
    body = resp.json()
    assert body["code"] == "DELETE_FAILED"
    assert "Failed to delete interview" in body["error"]
