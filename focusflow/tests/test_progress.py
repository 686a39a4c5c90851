from __future__ import annotations

from datetime import timedelta
import unittest

from focusflow.models import DailyLog, HistoryRecord, Project, Target, Task
from focusflow.planner import Planner
from focusflow.progress import (
    derive_project_status,
    recalculate_daily_log,
    recalculate_project,
    recalculate_target,
    target_progress,
)
from focusflow.store import new_id
from focusflow.tests.test_helpers import START, local_tmp_dir, make_clock, make_store

TODAY = START.date()


class TestProjectProgress(unittest.TestCase):
    def test_task_count_project_completes_and_reopens(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            clock = make_clock()
            planner = Planner(store, clock)
            project = planner.add_project("论文", completion_criteria_type="task_count", completion_criteria_value=5)
            tasks = [planner.add_task(f"章节{i}", project_id=project.id) for i in range(5)]

            for task in tasks[:4]:
                planner.complete_task(task.id)
            mid = store.get_project(project.id)
            assert mid is not None
            self.assertEqual(mid.progress_value, 4)
            self.assertEqual(mid.status, "active")

            planner.complete_task(tasks[4].id)
            done = store.get_project(project.id)
            assert done is not None
            self.assertEqual(done.progress_value, 5)
            self.assertEqual(done.status, "completed")
            self.assertIsNotNone(done.completed_at)

            planner.mark_task_incomplete(tasks[0].id)
            reopened = store.get_project(project.id)
            assert reopened is not None
            self.assertEqual(reopened.progress_value, 4)
            self.assertEqual(reopened.status, "active")
            self.assertIsNone(reopened.completed_at)

    def test_reopened_project_past_deadline_is_due(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            clock = make_clock()
            planner = Planner(store, clock)
            project = planner.add_project(
                "旧项目",
                deadline=TODAY - timedelta(days=1),
                completion_criteria_type="task_count",
                completion_criteria_value=1,
            )
            task = planner.add_task("收尾", project_id=project.id)
            planner.complete_task(task.id)
            self.assertEqual(store.get_project(project.id).status, "completed")

            planner.mark_task_incomplete(task.id)
            reopened = store.get_project(project.id)
            self.assertEqual(reopened.status, "due")
            self.assertIsNone(reopened.completed_at)

    def test_recalculation_is_idempotent(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            clock = make_clock()
            planner = Planner(store, clock)
            project = planner.add_project("阅读", completion_criteria_type="duration_minutes", completion_criteria_value=100)
            task = planner.add_task("第一本", project_id=project.id)
            store.add_history(task.id, 25, START)
            planner.complete_task(task.id)

            first = recalculate_project(store, project.id, clock.now())
            second = recalculate_project(store, project.id, clock.now())
            self.assertEqual(first, second)
            assert second is not None
            self.assertEqual(second.progress_value, 25)
            self.assertEqual(second.status, "active")

    def test_duration_counts_only_completed_tasks(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            clock = make_clock()
            planner = Planner(store, clock)
            project = planner.add_project("写作", completion_criteria_type="duration_minutes", completion_criteria_value=50)
            done = planner.add_task("已完成", project_id=project.id)
            open_task = planner.add_task("进行中", project_id=project.id)
            store.add_history(done.id, 30, START)
            store.add_history(done.id, 25, START)
            store.add_history(open_task.id, 25, START)

            planner.complete_task(done.id)
            refreshed = store.get_project(project.id)
            self.assertEqual(refreshed.progress_value, 55)
            self.assertEqual(refreshed.status, "completed")

    def test_manual_project_is_not_recalculated(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            project = store.insert_project(Project(id=new_id(), name="手动", progress_value=3))
            assert project is not None
            self.assertEqual(recalculate_project(store, project.id, START), project)

    def test_status_derivation_order(self) -> None:
        project = Project(
            id="p",
            name="p",
            deadline=TODAY - timedelta(days=3),
            completion_criteria_type="task_count",
            completion_criteria_value=2,
        )
        self.assertEqual(derive_project_status(project, 2, TODAY), "completed")
        self.assertEqual(derive_project_status(project, 1, TODAY), "due")
        self.assertEqual(derive_project_status(project, 1, TODAY - timedelta(days=5)), "active")


class TestTargetProgress(unittest.TestCase):
    def test_reading_target_matches_tags_case_insensitively(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            clock = make_clock()
            planner = Planner(store, clock)
            target = planner.add_target("读书一小时", ["reading"], 60, start_date=TODAY - timedelta(days=1))

            first = planner.add_task("小说", tags=["Reading"])
            second = planner.add_task("论文", tags=[" READING "])
            unrelated = planner.add_task("跑步", tags=["运动"])
            store.add_history(first.id, 45, START)
            store.add_history(second.id, 20, START + timedelta(minutes=30))
            store.add_history(first.id, 90, START - timedelta(days=3))
            store.add_history(unrelated.id, 50, START)

            planner.complete_task(first.id)
            planner.complete_task(second.id)
            planner.complete_task(unrelated.id)

            refreshed = store.get_target(target.id)
            assert refreshed is not None
            self.assertEqual(refreshed.progress_minutes, 65)
            self.assertIsNotNone(refreshed.completed_at)

    def test_target_clears_completion_when_progress_drops(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            clock = make_clock()
            planner = Planner(store, clock)
            target = planner.add_target("写作", "writing", 30, start_date=TODAY)
            task = planner.add_task("博客", tags="Writing")
            store.add_history(task.id, 30, START)
            planner.complete_task(task.id)
            self.assertIsNotNone(store.get_target(target.id).completed_at)

            planner.mark_task_incomplete(task.id)
            refreshed = store.get_target(target.id)
            self.assertEqual(refreshed.progress_minutes, 0)
            self.assertIsNone(refreshed.completed_at)

    def test_target_without_start_date_uses_creation_time(self) -> None:
        target = Target(id="t", text="t", tags=("a",), target_minutes=10, created_at=START)
        task = Task(id="x", text="x", due_date=TODAY, tags=("A",), completed_at=START)
        history = [
            HistoryRecord(id="1", task_id="x", duration_minutes=5, ended_at=START - timedelta(minutes=1)),
            HistoryRecord(id="2", task_id="x", duration_minutes=7, ended_at=START + timedelta(minutes=1)),
        ]
        self.assertEqual(target_progress(target, [task], history, START), 7)

    def test_missing_target_returns_none(self) -> None:
        with local_tmp_dir() as tmp:
            self.assertIsNone(recalculate_target(make_store(tmp), "missing", START))


class TestDailyLog(unittest.TestCase):
    def test_daily_log_is_rebuilt_from_history(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            store.upsert_daily_log(DailyLog(date=TODAY, completed_sessions=9, total_focus_minutes=999))
            store.add_history(None, 25, START)
            store.add_history(None, 50, START + timedelta(hours=2))
            store.add_history(None, 25, START - timedelta(days=1))

            log = recalculate_daily_log(store, TODAY, START.tzinfo)
            self.assertEqual(log, DailyLog(TODAY, 2, 75))
            self.assertEqual(store.get_daily_log(TODAY), DailyLog(TODAY, 2, 75))


if __name__ == "__main__":
    unittest.main()
