"""Metric writers: per-epoch sinks (Trainer callbacks) and the test report."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import List, Mapping, Sequence

from .artifacts import git_sha

EPOCH_FIELDS = ("epoch", "split", "mse", "progress", "elapsed")


class JsonlSink:
    """One JSON record per finished epoch, tagged with split, seed and commit."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.seed = seed
        self.sha = sha or git_sha()

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        record = {"epoch": int(epoch), "split": self.split, "seed": self.seed, "sha": self.sha}
        record.update({k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))})
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_epoch


class CsvSink:
    """Epoch rows with a fixed column set; metrics outside ``fields`` are dropped."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        fields: Sequence[str] = EPOCH_FIELDS,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.split = split
        self.fields = list(fields)
        with self.path.open("w", encoding="utf-8", newline="") as handle:
            csv.DictWriter(handle, fieldnames=self.fields).writeheader()

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        row = {"epoch": int(epoch), "split": self.split}
        row.update({k: f"{float(v):.8g}" for k, v in metrics.items() if isinstance(v, (int, float))})
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            csv.DictWriter(handle, fieldnames=self.fields, extrasaction="ignore").writerow(row)

    __call__ = on_epoch


def write_report(
    path: str | Path,
    metrics: Mapping[str, float],
    *,
    confusion: Sequence[Sequence[int]] | None = None,
    class_names: Sequence[str] = (),
) -> str:
    """Write test-split metrics, with the confusion table when given."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload: dict = {"metrics": dict(metrics)}
    if confusion is not None:
        rows = list(class_names) or [str(i) for i in range(len(confusion))]
        payload["confusion"] = {
            "rows": rows,
            "columns": rows + ["undefined"],
            "counts": [[int(v) for v in row] for row in confusion],
        }
    path.write_text(json.dumps(payload, indent=2))
    return str(path)


def read_jsonl(path: str | Path) -> List[Mapping[str, object]]:
    return [json.loads(line) for line in Path(path).read_text(encoding="utf-8").splitlines() if line.strip()]


__all__ = ["CsvSink", "EPOCH_FIELDS", "JsonlSink", "read_jsonl", "write_report"]
