from __future__ import annotations

import csv
from pathlib import Path

from .store import FocusFlowStore


def export_history_csv(store: FocusFlowStore, out_dir: Path) -> Path:
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    csv_path = out_path / "focusflow-history.csv"

    history = store.list_history()
    tasks = {task.id: task for task in store.list_tasks()}

    with csv_path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(["id", "ended_at", "duration_minutes", "task_id", "task", "tags"])
        for record in history:
            task = tasks.get(record.task_id or "")
            writer.writerow(
                [
                    record.id,
                    record.ended_at.isoformat(),
                    record.duration_minutes,
                    record.task_id or "",
                    task.text if task else "",
                    ",".join(task.tags) if task else "",
                ]
            )

    return csv_path
