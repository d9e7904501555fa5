import csv
import json
from pathlib import Path

import numpy as np

from topobot.core.types import Sample, SampleSet
from topobot.reporting import (
    CsvSink,
    JsonlSink,
    PlotAdapter,
    file_digest,
    plot_confusion,
    read_jsonl,
    write_manifest,
    write_report,
)
from topobot.training.metrics import evaluate


class _ScriptedNetwork:
    def __init__(self, answers):
        self.answers = list(answers)

    def predict(self, inputs):
        return self.answers.pop(0)


def test_jsonl_and_csv_sinks_write_one_row_per_epoch(tmp_path):
    jsonl = JsonlSink(tmp_path / "m.jsonl", split="train", seed=3, sha="abc")
    csv_sink = CsvSink(tmp_path / "m.csv")
    for epoch in range(3):
        metrics = {"mse": 1.0 / (epoch + 1), "progress": (epoch + 1) / 3}
        jsonl.on_epoch(epoch, metrics)
        csv_sink(epoch, metrics)

    records = read_jsonl(tmp_path / "m.jsonl")
    assert [r["epoch"] for r in records] == [0, 1, 2]
    assert records[0]["sha"] == "abc" and records[0]["seed"] == 3
    with (tmp_path / "m.csv").open() as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 3
    assert float(rows[1]["mse"]) == 0.5


def test_plot_adapter_is_inert_when_disabled(tmp_path):
    adapter = PlotAdapter(tmp_path / "plots", enable_plots=False)
    adapter.on_epoch(0, {"mse": 0.3})
    assert adapter.close() is None
    assert not (tmp_path / "plots").exists()


def test_manifest_records_outcome(tmp_path):
    path = write_manifest(
        tmp_path / "manifest.json",
        config={"train": {"seed": 1}},
        dataset_provenance={"type": "glyphs"},
        outcome={"trained": True},
    )
    manifest = json.loads(Path(path).read_text())
    assert manifest["outcome"] == {"trained": True}
    assert "git_sha" in manifest


def test_evaluate_counts_hits_and_undefined():
    samples = SampleSet(
        [
            Sample.from_label(np.zeros(2), 3, 0),
            Sample.from_label(np.zeros(2), 3, 1),
            Sample(inputs=np.zeros(2), target=np.array([0.0, 0.0, 1.0])),
            Sample.unlabeled(np.zeros(2)),
        ]
    )
    report = evaluate(_ScriptedNetwork([0, None, 1]), samples)
    assert report.total == 3
    assert report.correct == 1
    assert report.undefined == 1
    assert report.accuracy == 1 / 3
    metrics = report.as_metrics()
    assert metrics["accuracy_class_0"] == 1.0
    assert metrics["accuracy_class_2"] == 0.0
    np.testing.assert_array_equal(
        report.confusion, [[1, 0, 0, 0], [0, 0, 0, 1], [0, 1, 0, 0]]
    )


def test_report_and_confusion_plot(tmp_path):
    confusion = [[2, 0, 1], [0, 3, 0]]
    path = write_report(
        tmp_path / "metrics_test.json",
        {"accuracy": 0.8},
        confusion=confusion,
        class_names=("fir", "tower"),
    )
    payload = json.loads(Path(path).read_text())
    assert payload["metrics"]["accuracy"] == 0.8
    assert payload["confusion"]["columns"] == ["fir", "tower", "undefined"]
    assert payload["confusion"]["counts"] == confusion

    figure = plot_confusion(np.array(confusion), ("fir", "tower"), tmp_path / "confusion.png")
    assert figure.exists()


def test_file_digest_tracks_content(tmp_path):
    path = tmp_path / "network.bin"
    assert file_digest(path) is None
    path.write_bytes(b"abc")
    first = file_digest(path)
    path.write_bytes(b"abd")
    assert file_digest(path) != first
