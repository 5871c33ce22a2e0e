import pytest
from httpx import ASGITransport, AsyncClient

from quizrank.main import create_app
from quizrank.services.registry import build_services

API = "/api/v1"


def as_user(user_id):
    return {"X-User-ID": user_id}


class FreePlanGate:
    """Free plan: only category ids listed are playable"""

    def __init__(self, *category_ids):
        self.allowed = set(category_ids)

    async def can_access(self, user_id, category_id):
        return category_id in self.allowed

    async def allowed_category_count(self, user_id):
        return len(self.allowed)


async def test_health(client):
    response = await client.get(f"{API}/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_detailed_health_reports_ledger(client):
    response = await client.get(f"{API}/health/detailed")

    body = response.json()
    assert body["checks"]["database"] == "healthy"
    assert body["checks"]["leaderboard"]["backend"] == "MemoryScoreLedger"
    assert body["checks"]["redis"] == "disconnected"


async def test_missing_identity_is_rejected(client, geography):
    category, _ = geography

    response = await client.get(f"{API}/play/category/{category.id}")

    assert response.status_code == 401
    error = response.json()["error"]
    assert error["code"] == "AUTHENTICATION_ERROR"
    assert "request_id" in error


async def test_start_quiz(client, geography):
    category, _ = geography

    response = await client.get(f"{API}/play/category/{category.id}", headers=as_user("u1"))

    assert response.status_code == 200
    body = response.json()
    assert body["category"]["total_questions"] == 3
    assert "correct_option" not in body["questions"][0]


async def test_unknown_category_is_404(client):
    response = await client.get(f"{API}/play/category/999", headers=as_user("u1"))

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


async def test_submit_flow_with_bonus_on_completion(client, services, geography):
    category, questions = geography
    services.question_store.create_joke("Why did the quiz cross the road?", "https://img/joke.png")

    responses = []
    for question, option in zip(questions, ["Paris", "Nile", "K2"]):
        responses.append(
            await client.post(
                f"{API}/play/submit",
                json={
                    "category_id": category.id,
                    "question_id": question.id,
                    "selected_option": option,
                },
                headers=as_user("u1"),
            )
        )

    assert [r.status_code for r in responses] == [200, 200, 200]
    first, _, last = [r.json() for r in responses]
    assert first["is_correct"] is True
    assert first["running_total"] == 7
    assert first["bonus"] is None
    assert last["is_correct"] is False
    assert last["correct_option"] == "Everest"
    assert last["is_category_complete"] is True
    assert last["running_total"] == 12
    assert last["bonus"] == {
        "joke": "Why did the quiz cross the road?",
        "image_url": "https://img/joke.png",
    }

    replay = await client.post(
        f"{API}/play/submit",
        json={"category_id": category.id, "question_id": questions[2].id, "selected_option": "Everest"},
        headers=as_user("u1"),
    )
    assert replay.status_code == 200
    assert replay.json()["is_correct"] is False
    assert replay.json()["bonus"] is None
    assert replay.json()["message"] == "Answer already submitted"

    leaderboard = await client.get(f"{API}/play/leaderboard", headers=as_user("u1"))
    assert leaderboard.json() == [{"rank": 0, "position": 1, "user_id": "u1", "score": 12}]


async def test_submit_rejects_mismatched_category(client, geography, history):
    _, (capital, _, _) = geography
    hist, _ = history

    response = await client.post(
        f"{API}/play/submit",
        json={"category_id": hist.id, "question_id": capital.id, "selected_option": "Paris"},
        headers=as_user("u1"),
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "CATEGORY_MISMATCH"


@pytest.mark.parametrize(
    "payload",
    [
        {"category_id": 1, "question_id": 1},
        {"category_id": 0, "question_id": 1, "selected_option": "a"},
        {"category_id": 1, "question_id": 1, "selected_option": ""},
    ],
)
async def test_submit_validates_body(client, payload):
    response = await client.post(f"{API}/play/submit", json=payload, headers=as_user("u1"))

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_invalid_user_header(client, geography):
    category, _ = geography

    response = await client.get(
        f"{API}/play/category/{category.id}", headers=as_user("not a valid id!")
    )

    assert response.status_code == 422


async def test_locked_category_is_forbidden(session_factory, ledger, geography, history):
    geo, (capital, _, _) = geography
    hist, _ = history
    services = build_services(session_factory, ledger=ledger, access_gate=FreePlanGate(geo.id))
    transport = ASGITransport(app=create_app(services))

    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        locked = await ac.get(f"{API}/play/category/{hist.id}", headers=as_user("u1"))
        open_ = await ac.get(f"{API}/play/category/{geo.id}", headers=as_user("u1"))
        summary = await ac.get(f"{API}/stats/leaderboard-summary", headers=as_user("u1"))

    assert locked.status_code == 403
    assert locked.json()["error"]["code"] == "AUTHORIZATION_ERROR"
    assert open_.status_code == 200
    assert summary.json()["category_progress"]["total_categories_available"] == 1


async def test_stats_endpoints(client, geography):
    category, questions = geography
    submitted = await client.post(
        f"{API}/play/submit",
        json={"category_id": category.id, "question_id": questions[0].id, "selected_option": "Paris"},
        headers=as_user("u1"),
    )
    attempt_id = submitted.json()["attempt_id"]

    overview = await client.get(f"{API}/stats/overview", headers=as_user("u1"))
    assert overview.json()["total_score"] == 7
    assert overview.json()["leaderboard"]["position"] == 1

    by_category = await client.get(f"{API}/stats/by-category", headers=as_user("u1"))
    assert by_category.json()[0]["category"]["name"] == "Geography"

    recent = await client.get(f"{API}/stats/recent?limit=5", headers=as_user("u1"))
    assert recent.json()[0]["attempt_id"] == attempt_id

    page = await client.get(f"{API}/stats/leaderboard-list?page=1&limit=100", headers=as_user("u1"))
    assert page.json()["page_size"] == 50
    assert page.json()["caller"]["position"] == 1

    result = await client.get(f"{API}/play/result/{attempt_id}", headers=as_user("u1"))
    assert result.json()["answers"][0]["selected_option"] == "Paris"

    other = await client.get(f"{API}/stats/attempt/{attempt_id}", headers=as_user("u2"))
    assert other.status_code == 403


async def test_admin_rebuild(client, services, ledger, geography):
    category, questions = geography
    await services.accumulator.submit_answer("u1", category.id, questions[0].id, "Paris")
    await ledger.clear()

    response = await client.post(f"{API}/admin/leaderboard/rebuild", headers=as_user("admin"))

    assert response.status_code == 200
    assert response.json() == {"users": 1, "removed": 0}
    assert await ledger.score_of("u1") == 7


async def test_request_id_is_echoed(client):
    response = await client.get(f"{API}/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


async def test_admin_question_edits_refresh_the_quiz(client, geography):
    category, (_, river, _) = geography
    await client.get(f"{API}/play/category/{category.id}", headers=as_user("u1"))

    retired = await client.patch(
        f"{API}/admin/questions/{river.id}", json={"is_active": False}, headers=as_user("admin")
    )
    assert retired.status_code == 200
    assert retired.json()["is_active"] is False

    created = await client.post(
        f"{API}/admin/questions",
        json={
            "category_id": category.id,
            "text": "Largest desert?",
            "options": ["Sahara", "Gobi"],
            "correct_option": "Sahara",
            "points": 4,
        },
        headers=as_user("admin"),
    )
    assert created.status_code == 201
    assert created.json()["correct_option"] == "Sahara"

    quiz = await client.get(f"{API}/play/category/{category.id}", headers=as_user("u1"))
    ids = [q["id"] for q in quiz.json()["questions"]]
    assert river.id not in ids
    assert created.json()["id"] in ids


async def test_admin_question_edit_validation(client, geography):
    _, (capital, _, _) = geography

    empty = await client.patch(f"{API}/admin/questions/{capital.id}", json={}, headers=as_user("admin"))
    bad_answer = await client.patch(
        f"{API}/admin/questions/{capital.id}",
        json={"correct_option": "Lyon"},
        headers=as_user("admin"),
    )
    missing = await client.patch(
        f"{API}/admin/questions/9999", json={"points": 1}, headers=as_user("admin")
    )

    assert empty.status_code == 422
    assert bad_answer.status_code == 422
    assert missing.status_code == 404
