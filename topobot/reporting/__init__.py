"""Run reporting: metric sinks, test report, manifest and figures."""

from .artifacts import file_digest, git_sha, write_manifest
from .metrics import CsvSink, JsonlSink, read_jsonl, write_report
from .plots import PlotAdapter, plot_confusion

__all__ = [
    "CsvSink",
    "JsonlSink",
    "PlotAdapter",
    "file_digest",
    "git_sha",
    "plot_confusion",
    "read_jsonl",
    "write_manifest",
    "write_report",
]
