from urllib.parse import urlencode

from tests.conftest import JOB_DESCRIPTION, OPTIMIZED_TEXT, sse_events


def _optimize(client, resume_id, headers, **body):
    return client.post(f"/api/uploaded-resumes/{resume_id}/optimize", headers=headers, json=body)


def test_optimize_streams_progress_to_completion(client, auth_headers, uploaded_resume, fake_ai):
    response = _optimize(client, uploaded_resume.id, auth_headers, jobDescription=JOB_DESCRIPTION)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"

    events = [e for e in sse_events(response) if "status" in e]
    assert [e["status"] for e in events] == [
        "started",
        "extracting_details",
        "parsing_resume",
        "analyzing_description",
        "optimizing_resume",
        "calculating_metrics",
        "completed",
    ]
    result = events[-1]["optimizedResume"]
    assert result["metadata"]["version"] == "1.0"
    assert result["content"] == OPTIMIZED_TEXT
    assert 0 <= result["metrics"]["after"]["overall"] <= 100
    assert fake_ai.count("optimize") == 1


def test_reoptimizing_returns_next_version_and_keeps_old_one(client, auth_headers, uploaded_resume, fake_ai):
    first = sse_events(_optimize(client, uploaded_resume.id, auth_headers, jobDescription=JOB_DESCRIPTION))[-1]
    second = sse_events(_optimize(client, uploaded_resume.id, auth_headers, jobDescription=JOB_DESCRIPTION))[-1]

    assert first["optimizedResume"]["metadata"]["version"] == "1.0"
    assert second["optimizedResume"]["metadata"]["version"] == "1.1"

    latest_id = second["optimizedResume"]["id"]
    response = client.get(f"/api/optimized-resumes/{latest_id}/versions/1.0", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["entityId"] == first["optimizedResume"]["id"]
    assert response.json()["content"] == OPTIMIZED_TEXT


def test_missing_job_info_streams_single_error(client, auth_headers, uploaded_resume, fake_ai):
    events = sse_events(_optimize(client, uploaded_resume.id, auth_headers))

    assert len(events) == 1
    assert events[0]["status"] == "error"
    assert events[0]["code"] == "MISSING_JOB_INFO"
    assert fake_ai.calls == []


def test_optimizing_someone_elses_resume_is_unauthorized(client, other_user, get_token, uploaded_resume, fake_ai):
    headers = {"Authorization": f"Bearer {get_token(other_user)}"}
    events = sse_events(_optimize(client, uploaded_resume.id, headers, jobDescription=JOB_DESCRIPTION))

    assert [e["code"] for e in events] == ["UNAUTHORIZED"]
    assert fake_ai.calls == []


def test_optimizer_recovers_from_one_failure(client, auth_headers, uploaded_resume, fake_ai):
    short = {**fake_ai.responses["optimize"], "optimizedContent": "Too short"}
    good = fake_ai.responses["optimize"]
    replies = [short, good]
    fake_ai.responses["optimize"] = lambda user_content: replies.pop(0)

    events = sse_events(_optimize(client, uploaded_resume.id, auth_headers, jobDescription=JOB_DESCRIPTION))

    assert events[-1]["status"] == "completed"
    assert fake_ai.count("optimize") == 2


def test_event_source_variant_accepts_query_token(client, user, get_token, uploaded_resume):
    query = urlencode({"access_token": get_token(user), "jobDescription": JOB_DESCRIPTION})
    response = client.get(f"/api/uploaded-resumes/{uploaded_resume.id}/optimize?{query}")

    assert response.status_code == 200
    assert sse_events(response)[-1]["status"] == "completed"


def test_optimize_requires_authentication(client, uploaded_resume):
    response = client.post(
        f"/api/uploaded-resumes/{uploaded_resume.id}/optimize", json={"jobDescription": JOB_DESCRIPTION}
    )
    assert response.status_code == 401
