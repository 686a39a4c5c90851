from __future__ import annotations

from datetime import date, timedelta
import sqlite3
import unittest

from focusflow.errors import StoreError
from focusflow.models import DailyLog, Project, Settings, Task
from focusflow.store import FocusFlowStore, new_id
from focusflow.tests.test_helpers import START, local_tmp_dir, make_store

TODAY = START.date()


def _task(text: str, due: date = TODAY, **kwargs) -> Task:
    return Task(id=new_id(), text=text, due_date=due, **kwargs)


class TestStoreSchema(unittest.TestCase):
    def test_schema_created(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)

            with sqlite3.connect(store.db_path) as conn:
                names = {
                    row[0]
                    for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
                }

            for table in (
                "settings",
                "tasks",
                "projects",
                "targets",
                "goals",
                "commitments",
                "daily_logs",
                "pomodoro_history",
            ):
                self.assertIn(table, names)


class TestStoreIdentity(unittest.TestCase):
    def test_no_identity_short_circuits(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp, user_id=None)

            self.assertFalse(store.is_authenticated)
            self.assertIsNone(store.get_settings())
            self.assertIsNone(store.insert_task(_task("写作")))
            self.assertEqual(store.list_tasks(), [])
            self.assertIsNone(store.add_history(None, 25, START))
            self.assertIsNone(store.get_daily_log(TODAY))
            self.assertEqual(store.delete_task("missing"), [])
            store.upsert_daily_log(DailyLog(date=TODAY, completed_sessions=1))

    def test_records_are_scoped_to_user(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            store.insert_task(_task("我的任务"))

            other = FocusFlowStore(store.db_path, user_id="user-2")
            self.assertEqual(other.list_tasks(), [])

            store.sign_out()
            self.assertEqual(store.list_tasks(), [])
            store.sign_in("user-1")
            self.assertEqual(len(store.list_tasks()), 1)


class TestStoreTasks(unittest.TestCase):
    def test_insert_normalizes_and_orders(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            first = store.insert_task(
                _task("读书", tags=(" Reading ", "reading", "笔记"), total_poms=0, task_order=1)
            )
            second = store.insert_task(_task("写代码", task_order=0))
            unordered = store.insert_task(_task("散步"))
            assert first is not None and second is not None and unordered is not None

            self.assertIsNone(first.total_poms)
            self.assertEqual(first.tags, ("Reading", "笔记"))
            ids = [t.id for t in store.list_tasks(TODAY, TODAY)]
            self.assertEqual(ids, [unordered.id, second.id, first.id])
            self.assertEqual(store.next_task_order(TODAY), 2)
            self.assertEqual(store.next_task_order(TODAY + timedelta(days=1)), 0)

    def test_update_task_round_trips_lists(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            task = store.insert_task(_task("读书"))
            assert task is not None

            updated = store.update_task(task.id, comments=("第一章", "第二章"), completed_at=START)
            assert updated is not None
            self.assertEqual(updated.comments, ("第一章", "第二章"))
            self.assertEqual(updated.completed_at, START)

            cleared = store.update_task(task.id, completed_at=None)
            assert cleared is not None
            self.assertIsNone(cleared.completed_at)

    def test_update_rejects_unknown_column(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            task = store.insert_task(_task("读书"))
            assert task is not None
            with self.assertRaises(ValueError):
                store.update_task(task.id, owner="x")

    def test_delete_task_removes_history(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            task = store.insert_task(_task("读书"))
            assert task is not None
            store.add_history(task.id, 25, START)
            store.add_history(None, 10, START)

            removed = store.delete_task(task.id)
            self.assertEqual(len(removed), 1)
            self.assertIsNone(store.get_task(task.id))
            remaining = store.list_history()
            self.assertEqual(len(remaining), 1)
            self.assertIsNone(remaining[0].task_id)


class TestStoreOther(unittest.TestCase):
    def test_delete_project_unlinks_tasks(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            project = store.insert_project(Project(id=new_id(), name="论文"))
            assert project is not None
            task = store.insert_task(_task("写摘要", project_id=project.id))
            assert task is not None

            self.assertTrue(store.delete_project(project.id))
            reloaded = store.get_task(task.id)
            assert reloaded is not None
            self.assertIsNone(reloaded.project_id)

    def test_settings_upsert(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            self.assertIsNone(store.get_settings())
            store.save_settings(Settings(focus_duration=50, break_duration=10, sessions_per_cycle=4))
            store.save_settings(Settings(focus_duration=45, break_duration=10, sessions_per_cycle=4))
            self.assertEqual(store.get_settings(), Settings(45, 10, 4))

    def test_sqlite_errors_become_store_errors(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            with self.assertRaises(StoreError):
                store.save_settings(Settings(focus_duration=0))

    def test_history_row_without_end_time_is_a_store_error(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            conn = sqlite3.connect(store.db_path)
            with conn:
                conn.execute(
                    "INSERT INTO pomodoro_history (id, user_id, task_id, duration_minutes, ended_at) "
                    "VALUES ('h1', 'user-1', NULL, 25, '')"
                )
            conn.close()
            with self.assertRaises(StoreError):
                store.list_history()

    def test_daily_log_upsert_and_history_window(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            self.assertEqual(store.get_daily_log(TODAY), DailyLog(date=TODAY))
            store.upsert_daily_log(DailyLog(date=TODAY, completed_sessions=1, total_focus_minutes=25))
            store.upsert_daily_log(DailyLog(date=TODAY, completed_sessions=2, total_focus_minutes=50))
            self.assertEqual(store.get_daily_log(TODAY), DailyLog(TODAY, 2, 50))
            self.assertEqual(len(store.list_daily_logs(TODAY, TODAY)), 1)

            store.add_history(None, 25, START - timedelta(minutes=1))
            store.add_history(None, 25, START)
            store.add_history(None, 25, START + timedelta(hours=1))
            window = store.list_history(START, START + timedelta(hours=1))
            self.assertEqual(len(window), 1)

    def test_goals_and_commitments(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            goal = store.insert_goal("  成为更好的工程师 ")
            commitment = store.insert_commitment("每天读书", TODAY)
            assert goal is not None and commitment is not None
            self.assertEqual([g.text for g in store.list_goals()], ["成为更好的工程师"])
            self.assertEqual(store.list_commitments()[0].due_date, TODAY)
            self.assertTrue(store.delete_goal(goal.id))
            self.assertTrue(store.delete_commitment(commitment.id))
            self.assertFalse(store.delete_goal(goal.id))


if __name__ == "__main__":
    unittest.main()
