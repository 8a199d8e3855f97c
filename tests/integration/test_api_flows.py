import pytest
from httpx import AsyncClient
from growth_academy.errors import StoreUnavailable
from unittest.mock import patch

class TestAuthIntegration:
    """Integration tests for authentication flow"""

    @pytest.mark.asyncio
    async def test_signin_returns_context_and_landing_page(self, client: AsyncClient, sign_in):
        """Students land on their class page"""
        result = await sign_in()

        assert result["context_id"]
        assert result["user"]["email"] == "riya@growth.academy"
        assert result["session"]["phase"] == "active"
        assert result["redirect"] == "/class/class-10"

    @pytest.mark.asyncio
    async def test_admin_lands_on_admin_page(self, client: AsyncClient, sign_in):
        result = await sign_in("admin", "admin-pass")
        assert result["redirect"] == "/admin"

    @pytest.mark.asyncio
    async def test_signin_wrong_password(self, client: AsyncClient):
        response = await client.post("/auth/signin", json={"username": "riya", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"].startswith("Invalid username or password")

    @pytest.mark.asyncio
    async def test_protected_route_without_context(self, client: AsyncClient):
        """Test accessing protected route without a client context"""
        response = await client.get("/classes/class-10/physics")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_signin_twice_in_same_context(self, client: AsyncClient, sign_in, context_headers):
        result = await sign_in()
        response = await client.post(
            "/auth/signin",
            json={"username": "riya", "password": "riya-pass"},
            headers=context_headers(result["context_id"]),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_password_reset(self, client: AsyncClient):
        response = await client.post("/auth/password-reset", json={"username": "riya"})
        assert response.status_code == 200

class TestSessionIntegration:
    """One active session per account across client contexts"""

    @pytest.mark.asyncio
    async def test_second_login_expires_first(self, client: AsyncClient, sign_in, context_headers):
        first = await sign_in()
        second = await sign_in()
        first_headers = context_headers(first["context_id"])

        session = (await client.get("/auth/session", headers=first_headers)).json()
        assert session["phase"] == "expired"
        assert "logged into from another device" in session["notice"]

        blocked = await client.get("/classes/class-10/physics", headers=first_headers)
        assert blocked.status_code == 409
        assert blocked.json()["detail"]["phase"] == "expired"

        allowed = await client.get("/classes/class-10/physics", headers=context_headers(second["context_id"]))
        assert allowed.status_code == 200

    @pytest.mark.asyncio
    async def test_acknowledge_expiry_then_sign_in_again(self, client: AsyncClient, sign_in, context_headers):
        first = await sign_in()
        second = await sign_in()
        first_headers = context_headers(first["context_id"])

        ack = await client.post("/auth/session/acknowledge", headers=first_headers)
        assert ack.status_code == 200
        assert ack.json()["redirect"] == "/"
        assert ack.json()["session"]["phase"] == "unauthenticated"
        assert ack.json()["session"]["notice"] is None
        session = await client.get("/auth/session", headers=first_headers)
        assert session.json() == {"phase": "unauthenticated", "identity": None, "notice": None}

        # the same tab signs in again and takes the session back
        again = await sign_in(context_id=first["context_id"])
        assert again["session"]["phase"] == "active"
        second_session = await client.get("/auth/session", headers=context_headers(second["context_id"]))
        assert second_session.json()["phase"] == "expired"

    @pytest.mark.asyncio
    async def test_acknowledge_requires_expiry(self, client: AsyncClient, sign_in, context_headers):
        result = await sign_in()
        response = await client.post("/auth/session/acknowledge", headers=context_headers(result["context_id"]))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_signout_releases_session(self, client: AsyncClient, sign_in, context_headers, seeded_store):
        result = await sign_in()
        headers = context_headers(result["context_id"])

        response = await client.post("/auth/signout", headers=headers)

        assert response.status_code == 200
        assert response.json()["session"]["phase"] == "unauthenticated"
        assert seeded_store.get("sessions", "student-riya") is None

        after = await client.get("/classes/class-10/physics", headers=headers)
        assert after.status_code == 401

class TestQuizIntegration:
    """Integration tests for quiz runs"""

    async def _start(self, client, sign_in, context_headers):
        result = await sign_in()
        headers = context_headers(result["context_id"])
        response = await client.post("/quizzes/quiz-physics-1/start", json={"student_name": "Riya"}, headers=headers)
        assert response.status_code == 200
        return headers, response.json()

    @pytest.mark.asyncio
    async def test_start_quiz(self, client: AsyncClient, sign_in, context_headers):
        _, run = await self._start(client, sign_in, context_headers)

        assert run["run_id"]
        assert run["time_left"] == "01:00"
        assert run["question"]["options"] == ["km/h", "m/s", "m/s^2", "N"]
        assert "correctAnswer" not in run["question"]

    @pytest.mark.asyncio
    async def test_start_unknown_quiz(self, client: AsyncClient, sign_in, context_headers):
        result = await sign_in()
        response = await client.post(
            "/quizzes/missing/start", json={}, headers=context_headers(result["context_id"])
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_submit_requires_last_question(self, client: AsyncClient, sign_in, context_headers):
        headers, run = await self._start(client, sign_in, context_headers)

        response = await client.post(f"/quizzes/runs/{run['run_id']}/submit", headers=headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_invalid_option(self, client: AsyncClient, sign_in, context_headers):
        headers, run = await self._start(client, sign_in, context_headers)

        response = await client.post(f"/quizzes/runs/{run['run_id']}/answer", json={"option": 7}, headers=headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_failed_save_then_retry(self, client: AsyncClient, sign_in, context_headers, seeded_store):
        headers, run = await self._start(client, sign_in, context_headers)
        run_path = f"/quizzes/runs/{run['run_id']}"
        await client.post(f"{run_path}/next", headers=headers)
        await client.post(f"{run_path}/submit", headers=headers)

        with patch.object(seeded_store, "add", side_effect=StoreUnavailable("offline")):
            failed = await client.post(f"{run_path}/confirm", headers=headers)
        assert failed.status_code == 503
        assert failed.json()["detail"]["retry_path"] == f"{run_path}/retry"
        assert failed.json()["detail"]["run"]["submission_state"] == "submitting"

        retried = await client.post(f"{run_path}/retry", headers=headers)
        assert retried.status_code == 200
        assert retried.json()["submission_state"] == "submitted"
        assert len(seeded_store.list("quizAttempts")) == 1

    @pytest.mark.asyncio
    async def test_leave_quiz(self, client: AsyncClient, sign_in, context_headers):
        headers, run = await self._start(client, sign_in, context_headers)

        response = await client.delete(f"/quizzes/runs/{run['run_id']}", headers=headers)
        assert response.status_code == 200
        assert response.json()["submission_state"] == "in_progress"

        gone = await client.get(f"/quizzes/runs/{run['run_id']}", headers=headers)
        assert gone.status_code == 404

class TestContentIntegration:

    @pytest.mark.asyncio
    async def test_subject_content_listing(self, client: AsyncClient, sign_in, context_headers, seeded_store):
        seeded_store.upsert("notes", "n1", {
            "classId": "class-10", "subjectId": "physics", "title": "Motion notes", "fileUrl": "https://files/n1.pdf"
        })
        seeded_store.upsert("tests", "t1", {
            "classId": "class-10", "subjectId": "physics", "title": "Unit test",
            "testFileUrl": "https://files/t1.pdf", "answerFileUrl": "https://files/t1-answers.pdf",
        })
        # missing fileUrl, skipped
        seeded_store.upsert("notes", "n2", {"classId": "class-10", "subjectId": "physics", "title": "Broken"})
        result = await sign_in()

        response = await client.get("/classes/class-10/physics", headers=context_headers(result["context_id"]))

        assert response.status_code == 200
        data = response.json()
        assert [n["id"] for n in data["notes"]] == ["n1"]
        assert [t["kind"] for t in data["tests"]] == ["test"]
        assert data["quizzes"][0]["question_count"] == 2
        assert "questions" not in data["quizzes"][0]

class TestResultIntegration:
    """Result and history pages over stored attempts"""

    def _seed_attempts(self, store):
        good = store.add("quizAttempts", {
            "quizId": "quiz-physics-1", "studentName": "Riya", "score": 1, "totalQuestions": 2,
            "answers": [1, -1], "timeTaken": 20, "timestamp": "2026-03-01T10:00:00+05:30",
        })
        # fewer answers than questions
        bad = store.add("quizAttempts", {
            "quizId": "quiz-physics-1", "studentName": "Riya", "score": 1, "totalQuestions": 2,
            "answers": [1], "timeTaken": 20, "timestamp": "2026-03-02T10:00:00+05:30",
        })
        return good, bad

    @pytest.mark.asyncio
    async def test_history_skips_malformed_attempts(self, client: AsyncClient, sign_in, context_headers, seeded_store):
        good, _ = self._seed_attempts(seeded_store)
        login = await sign_in()

        response = await client.get(
            "/results/history", params={"student_name": "Riya"}, headers=context_headers(login["context_id"])
        )

        assert response.status_code == 200
        assert [a["attempt_id"] for a in response.json()["attempts"]] == [good]

    @pytest.mark.asyncio
    async def test_malformed_attempt_result(self, client: AsyncClient, sign_in, context_headers, seeded_store):
        _, bad = self._seed_attempts(seeded_store)
        login = await sign_in()

        response = await client.get(f"/results/{bad}", headers=context_headers(login["context_id"]))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_malformed_quiz_behind_result(self, client: AsyncClient, sign_in, context_headers, seeded_store):
        good, _ = self._seed_attempts(seeded_store)
        seeded_store.upsert("quizzes", "quiz-physics-1", {"timeLimit": 0})
        login = await sign_in()

        response = await client.get(f"/results/{good}", headers=context_headers(login["context_id"]))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_result(self, client: AsyncClient, sign_in, context_headers):
        login = await sign_in()
        response = await client.get("/results/missing", headers=context_headers(login["context_id"]))
        assert response.status_code == 404
