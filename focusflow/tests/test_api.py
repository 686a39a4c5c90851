from __future__ import annotations

import unittest

from focusflow.clock import FakeClock
from focusflow.tests.test_helpers import START, local_tmp_dir


class TestAPI(unittest.TestCase):
    def setUp(self) -> None:
        try:
            from fastapi.testclient import TestClient  # noqa: F401
            from focusflow.api.app import create_app  # noqa: F401
        except Exception as exc:  # pragma: no cover
            self.skipTest(f"fastapi test client unavailable: {exc}")

    def make_client(self, tmp, user_id: str | None = "user-1"):
        from fastapi.testclient import TestClient

        from focusflow.api.app import create_app

        self.clock = FakeClock(start=START)
        self.db_path = tmp / "data" / "focusflow.sqlite"
        self.app = create_app(
            db_path=self.db_path,
            state_path=tmp / "data" / "local_state.json",
            user_id=user_id,
            clock=self.clock,
        )
        self.addCleanup(self.app.state.session.close)
        return TestClient(self.app)

    def test_health_meta_and_openapi(self) -> None:
        with local_tmp_dir() as tmp:
            client = self.make_client(tmp)

            health = client.get("/api/v1/health")
            self.assertEqual(health.status_code, 200)
            self.assertEqual(health.json().get("status"), "ok")

            meta = client.get("/api/v1/meta")
            self.assertEqual(meta.status_code, 200)
            self.assertEqual(meta.json().get("db_path"), str(self.db_path))

            openapi = client.get("/openapi.json")
            self.assertEqual(openapi.status_code, 200)
            paths = openapi.json().get("paths", {})
            self.assertIn("/api/v1/timer/stream", paths)
            self.assertIn("/api/v1/tasks/{task_id}/move", paths)

    def test_task_crud_and_timer_state(self) -> None:
        with local_tmp_dir() as tmp:
            client = self.make_client(tmp)

            created = client.post(
                "/api/v1/tasks",
                json={"text": "写接口测试", "total_poms": 2, "tags": ["API", "测试"]},
            )
            self.assertEqual(created.status_code, 201)
            task = created.json()
            self.assertEqual(task["tags"], ["API", "测试"])
            self.assertEqual(task["due_date"], START.date().isoformat())

            today = client.get("/api/v1/tasks/today")
            self.assertEqual([t["id"] for t in today.json()], [task["id"]])

            patched = client.patch(f"/api/v1/tasks/{task['id']}", json={"total_poms": 3})
            self.assertEqual(patched.status_code, 200)
            self.assertEqual(patched.json()["total_poms"], 3)

            timers = client.put(f"/api/v1/tasks/{task['id']}/timers", json={"focus": 30, "break": 10})
            self.assertEqual(timers.status_code, 200)
            self.assertEqual(timers.json()["custom_focus_duration"], 30)

            state = client.get("/api/v1/timer/state").json()
            self.assertEqual(state["currentTask"], "写接口测试")
            self.assertEqual(state["sessionTotalTime"], 1800)
            self.assertEqual(state["display"], "30:00")
            self.assertIsNone(state["prompt"])

            moved = client.post(f"/api/v1/tasks/{task['id']}/move", json={"action": "duplicate"})
            self.assertEqual(moved.status_code, 200)
            self.assertNotEqual(moved.json()["id"], task["id"])

            deleted = client.delete(f"/api/v1/tasks/{task['id']}")
            self.assertEqual(deleted.status_code, 204)
            self.assertEqual(client.get(f"/api/v1/tasks/{task['id']}").status_code, 404)

    def test_error_statuses(self) -> None:
        with local_tmp_dir() as tmp:
            client = self.make_client(tmp)

            bad_task = client.post("/api/v1/tasks", json={"text": "x", "custom_focus_duration": 0})
            self.assertEqual(bad_task.status_code, 400)

            bad_project = client.post(
                "/api/v1/projects",
                json={"name": "论文", "completion_criteria_type": "task_count"},
            )
            self.assertEqual(bad_project.status_code, 400)

            bad_settings = client.put(
                "/api/v1/settings",
                json={"focus_duration": 0, "break_duration": 5, "sessions_per_cycle": 4},
            )
            self.assertEqual(bad_settings.status_code, 422)

            nothing_pending = client.post("/api/v1/timer/continue", json={})
            self.assertEqual(nothing_pending.status_code, 409)

            missing = client.post("/api/v1/tasks/missing/complete")
            self.assertEqual(missing.status_code, 404)

    def test_requires_identity(self) -> None:
        with local_tmp_dir() as tmp:
            client = self.make_client(tmp, user_id=None)

            self.assertEqual(client.get("/api/v1/tasks").status_code, 401)
            self.assertFalse(client.get("/api/v1/auth/me").json()["authenticated"])
            self.assertEqual(client.get("/api/v1/timer/state").status_code, 200)

            login = client.post("/api/v1/auth/login", json={"user_id": "user-2"})
            self.assertEqual(login.json(), {"authenticated": True, "user_id": "user-2"})
            self.assertEqual(client.get("/api/v1/tasks").status_code, 200)

            logout = client.post("/api/v1/auth/logout")
            self.assertFalse(logout.json()["authenticated"])
            self.assertEqual(client.get("/api/v1/stats").status_code, 401)

    def test_focus_phase_round_trip(self) -> None:
        with local_tmp_dir() as tmp:
            client = self.make_client(tmp)
            task = client.post("/api/v1/tasks", json={"text": "番茄", "total_poms": 1}).json()

            started = client.post("/api/v1/timer/start").json()
            self.assertTrue(started["isRunning"])

            self.clock.advance(25 * 60)
            self.app.state.session.tick()
            state = client.get("/api/v1/timer/state").json()
            self.assertEqual(state["prompt"]["finished_mode"], "focus")
            self.assertTrue(state["prompt"]["show_comment_box"])

            after = client.post("/api/v1/timer/continue", json={"comment": "顺利"})
            self.assertEqual(after.status_code, 200)
            self.assertEqual(after.json()["mode"], "break")
            self.assertEqual(after.json()["completedSessions"], 1)

            done = client.get(f"/api/v1/tasks/{task['id']}").json()
            self.assertIsNotNone(done["completed_at"])
            self.assertEqual(done["comments"], ["顺利"])
            self.assertEqual(len(client.get("/api/v1/history/today").json()), 1)

            stats = client.get("/api/v1/stats").json()
            self.assertEqual(stats["today"]["focus_minutes"], 25)

    def test_settings_round_trip(self) -> None:
        with local_tmp_dir() as tmp:
            client = self.make_client(tmp)
            self.assertEqual(client.get("/api/v1/settings").json()["focus_duration"], 25)

            saved = client.put(
                "/api/v1/settings",
                json={"focus_duration": 50, "break_duration": 10, "sessions_per_cycle": 2},
            )
            self.assertEqual(saved.status_code, 200)
            self.assertEqual(client.get("/api/v1/timer/state").json()["sessionTotalTime"], 3000)


if __name__ == "__main__":
    unittest.main()
