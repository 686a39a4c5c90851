from __future__ import annotations

import csv
from datetime import datetime, timedelta, timezone
import unittest

from focusflow.exporting import export_history_csv
from focusflow.planner import Planner
from focusflow.reporting import generate_weekly_report
from focusflow.tests.test_helpers import START, local_tmp_dir, make_clock, make_store

NOW = datetime(2026, 3, 13, 12, 0, tzinfo=timezone.utc)


def seed(tmp):
    store = make_store(tmp)
    planner = Planner(store, make_clock())
    paper = planner.add_task("写论文", tags="研究,写作")
    reading = planner.add_task("看文献", total_poms=2, tags="研究")
    store.add_history(paper.id, 30, START + timedelta(minutes=30))
    store.add_history(reading.id, 20, datetime(2026, 3, 12, 14, 20, tzinfo=timezone.utc))
    store.add_history(reading.id, 10, NOW - timedelta(days=10))
    planner.complete_task(paper.id)
    project = planner.add_project("开题答辩")
    planner.set_project_completed(project.id, True)
    return store


class TestReport(unittest.TestCase):
    def test_generate_weekly_report_markdown(self) -> None:
        with local_tmp_dir() as tmp:
            store = seed(tmp)
            report_path = generate_weekly_report(store=store, out_dir=tmp / "out", now=NOW)

            self.assertTrue(report_path.exists())
            self.assertEqual(report_path.name, "week-2026-03-13.md")
            content = report_path.read_text(encoding="utf-8")
            self.assertIn("# FocusFlow 周报 2026-03-06 至 2026-03-13", content)
            self.assertIn("专注总时长：50分钟", content)
            self.assertIn("完成番茄数：2 个", content)
            self.assertIn("任务完成率：50%（1/2）", content)
            self.assertIn("最高效的一天：2026-03-10（30分钟）", content)
            self.assertIn("- 开题答辩", content)
            self.assertIn("| 研究 | 50分钟 |", content)
            self.assertIn("| 写作 | 30分钟 |", content)
            self.assertIn("- 2026-03-10 看文献（0/2）", content)
            self.assertNotIn("全部完成", content)

    def test_empty_week(self) -> None:
        with local_tmp_dir() as tmp:
            store = make_store(tmp)
            content = generate_weekly_report(store=store, out_dir=tmp / "out", now=NOW).read_text(
                encoding="utf-8"
            )
            self.assertIn("任务完成率：本周没有计划任务", content)
            self.assertIn("本周没有完成的项目。", content)
            self.assertIn("本周无标签数据。", content)
            self.assertIn("全部完成，干得漂亮！", content)


class TestExport(unittest.TestCase):
    def test_export_history_csv(self) -> None:
        with local_tmp_dir() as tmp:
            store = seed(tmp)
            csv_path = export_history_csv(store=store, out_dir=tmp / "out")

            with csv_path.open("r", encoding="utf-8", newline="") as fp:
                rows = list(csv.DictReader(fp))

            self.assertEqual(csv_path.name, "focusflow-history.csv")
            self.assertEqual(len(rows), 3)
            by_task = {row["task"] for row in rows}
            self.assertEqual(by_task, {"写论文", "看文献"})
            paper = next(row for row in rows if row["task"] == "写论文")
            self.assertEqual(paper["tags"], "研究,写作")
            self.assertEqual(paper["duration_minutes"], "30")


if __name__ == "__main__":
    unittest.main()
