"""Run manifest and provenance helpers."""

from __future__ import annotations

import hashlib
import json
import platform
import subprocess
import time
from pathlib import Path
from typing import Mapping

import numpy as np


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def file_digest(path: str | Path) -> str | None:
    """SHA-256 of a weight file, or ``None`` when it does not exist."""

    path = Path(path)
    if not path.is_file():
        return None
    return hashlib.sha256(path.read_bytes()).hexdigest()


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    outcome: Mapping[str, object],
    topology: list[int] | None = None,
) -> str:
    """Record what a pipeline run used and produced.

    ``outcome`` describes the run (trained or loaded, final error, test
    accuracy, weight file); the weight file's digest is added so a later
    run can tell whether the same network is being served.
    """

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    result = dict(outcome)
    weights = result.get("weights_path")
    if weights:
        result["weights_sha256"] = file_digest(str(weights))
    manifest = {
        "git_sha": git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "topology": topology,
        "config": config,
        "dataset": dict(dataset_provenance),
        "outcome": result,
        "environment": {
            "python": platform.python_version(),
            "numpy": np.__version__,
            "platform": platform.platform(),
        },
    }
    path.write_text(json.dumps(manifest, indent=2, default=str))
    return str(path)


__all__ = ["file_digest", "git_sha", "write_manifest"]
