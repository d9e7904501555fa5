"""Pipeline assembly: dataset, network, load-or-train, evaluation, artifacts."""

from __future__ import annotations

import json
import logging
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from ..core.errors import StructureMismatch
from ..core.types import RunResult
from ..data import registry
from ..data.signs import CLASS_COUNT
from ..data.vectorizer import VECTOR_SIDE
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink, write_report
from ..reporting.plots import PlotAdapter, plot_confusion
from .metrics import evaluate
from .trainer import DEFAULT_CONFIDENCE, DEFAULT_LEARNING_RATE, SigmoidMLP

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "topo_signs": {
        "data": {"name": "signs", "options": {"seed": 0}},
        "model": {
            "hidden": [128, 32],
            "learning_rate": DEFAULT_LEARNING_RATE,
            "confidence_threshold": DEFAULT_CONFIDENCE,
            "parallel": True,
        },
        "train": {
            "epochs": 30,
            "acceptable_error": 0.01,
            "train_count": 1040,
            "test_count": 160,
            "seed": 0,
            "weights_path": "network.bin",
            "run_dir": "runs/topo-signs",
            "enable_plots": False,
            "retrain": False,
        },
        "chat": {"rules": None},
    },
    "glyphs_smoke": {
        "data": {"name": "glyphs", "options": {"per_class": 12, "seed": 0}},
        "model": {
            "hidden": [24],
            "learning_rate": 0.5,
            "confidence_threshold": DEFAULT_CONFIDENCE,
            "parallel": False,
        },
        "train": {
            "epochs": 40,
            "acceptable_error": 0.01,
            "train_count": 64,
            "test_count": 32,
            "seed": 3,
            "weights_path": "runs/glyphs-smoke/network.bin",
            "run_dir": "runs/glyphs-smoke",
            "enable_plots": False,
            "retrain": False,
        },
        "chat": {"rules": None},
    },
}


def presets() -> Mapping[str, Mapping[str, object]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> Mapping[str, object]:
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        available = ", ".join(sorted(_PRESETS))
        raise KeyError(f"Unknown preset: {name!r}. Available presets: {available}") from exc


@dataclass
class Session:
    """A ready network plus the dataset it was built for, when one was loaded."""

    network: SigmoidMLP
    dataset: Optional[registry.DatasetSpec]
    result: RunResult


def build_network(model_cfg: Mapping[str, object], dims: Sequence[int], seed: int) -> SigmoidMLP:
    return SigmoidMLP(
        dims,
        learning_rate=float(model_cfg.get("learning_rate", DEFAULT_LEARNING_RATE)),
        confidence_threshold=float(model_cfg.get("confidence_threshold", DEFAULT_CONFIDENCE)),
        seed=seed,
        parallel=bool(model_cfg.get("parallel", False)),
        workers=model_cfg.get("workers"),  # type: ignore[arg-type]
    )


def prepare(config: Mapping[str, object]) -> Session:
    """Load weights when a compatible file exists, otherwise train and save.

    The dataset is only opened when training is needed or a test split is
    requested, so a saved network can be served without its images. A
    missing dataset is fatal for training and only skips evaluation.
    """

    data_cfg = dict(config["data"])  # type: ignore[arg-type]
    model_cfg = dict(config.get("model", {}))  # type: ignore[arg-type]
    train_cfg = dict(config.get("train", {}))  # type: ignore[arg-type]

    dims = _build_dims(model_cfg, data_cfg)
    seed = int(train_cfg.get("seed", 0))
    run_dir = Path(str(train_cfg.get("run_dir", "runs/latest")))
    run_dir.mkdir(parents=True, exist_ok=True)
    weights_path = Path(str(train_cfg.get("weights_path", run_dir / "network.bin")))
    test_count = int(train_cfg.get("test_count", 0))

    needs_training = bool(train_cfg.get("retrain", False)) or not weights_path.exists()
    dataset = _open_dataset(data_cfg, train_cfg, dims, required=needs_training, wanted=test_count > 0)

    network = build_network(model_cfg, dims, seed)
    _print_startup_summary(
        dataset_name=dataset.name if dataset is not None else str(data_cfg["name"]),
        dims=dims,
        learning_rate=network.learning_rate,
        weights_path=weights_path,
        param_count=network.parameter_count(),
    )

    if not needs_training:
        try:
            network.load(weights_path)
            print(f"Loaded weights from {weights_path}")
        except (StructureMismatch, OSError) as exc:
            logger.warning("Could not load weights from %s, retraining: %s", weights_path, exc)
            needs_training = True
            if dataset is None:
                dataset = _open_dataset(data_cfg, train_cfg, dims, required=True, wanted=True)

    final_mse = None
    metrics_path = ""
    if needs_training and dataset is not None:
        final_mse, metrics_path = _train_and_save(
            network, dataset, train_cfg, run_dir, weights_path, seed
        )

    accuracy = None
    if dataset is not None:
        accuracy = _evaluate_test_split(network, dataset, test_count, train_cfg, run_dir)

    manifest = write_manifest(
        run_dir / "manifest.json",
        config=json.loads(json.dumps(config, default=str)),
        dataset_provenance=(
            dataset.provenance if dataset is not None else {"name": data_cfg["name"], "loaded": False}
        ),
        outcome={
            "trained": needs_training,
            "final_mse": final_mse,
            "accuracy": accuracy,
            "weights_path": str(weights_path),
        },
        topology=dims,
    )
    result = RunResult(
        final_mse=final_mse,
        accuracy=accuracy,
        weights_path=str(weights_path),
        trained=needs_training,
        metrics_path=metrics_path,
        manifest_path=manifest,
    )
    return Session(network=network, dataset=dataset, result=result)


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    session = prepare(config)
    session.network.close()
    return session.result


def _train_and_save(
    network: SigmoidMLP,
    dataset: registry.DatasetSpec,
    train_cfg: Mapping[str, object],
    run_dir: Path,
    weights_path: Path,
    seed: int,
) -> tuple[float, str]:
    train_set = dataset.split("train", int(train_cfg.get("train_count", 1040)))
    if len(train_set) == 0:
        raise ValueError(f"Dataset {dataset.name!r} produced no training samples")

    jsonl = JsonlSink(run_dir / "metrics_train.jsonl", split="train", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics_train.csv", split="train")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))

    epochs = int(train_cfg.get("epochs", 30))
    print(f"Training on {len(train_set)} samples for up to {epochs} epochs")
    final_mse = network.train(
        train_set,
        epochs,
        float(train_cfg.get("acceptable_error", 0.01)),
        progress=_print_progress,
        callbacks=[jsonl, csv_sink, plots],
    )
    plots.close()
    print(f"Training finished, final MSE: {final_mse:.6f}")
    network.save(weights_path)
    print(f"Saved weights to {weights_path}")
    return final_mse, str(jsonl.path)


def _evaluate_test_split(
    network: SigmoidMLP,
    dataset: registry.DatasetSpec,
    test_count: int,
    train_cfg: Mapping[str, object],
    run_dir: Path,
) -> float | None:
    if test_count <= 0:
        return None
    test_set = dataset.split("test", test_count)
    if not len(test_set):
        return None
    report = evaluate(network, test_set, num_classes=dataset.num_classes)
    write_report(
        run_dir / "metrics_test.json",
        report.as_metrics(),
        confusion=report.confusion.tolist(),
        class_names=dataset.class_names,
    )
    if train_cfg.get("enable_plots", False):
        plot_confusion(report.confusion, dataset.class_names, run_dir / "confusion.png")
    print(f"Test accuracy : {report.accuracy:.4f} ({report.correct}/{report.total})")
    print(f"Undefined     : {report.undefined_rate:.4f}")
    return report.accuracy


def _open_dataset(
    data_cfg: Mapping[str, object],
    train_cfg: Mapping[str, object],
    dims: Sequence[int],
    *,
    required: bool,
    wanted: bool,
) -> Optional[registry.DatasetSpec]:
    if not (required or wanted):
        return None
    try:
        dataset = registry.get_dataset(
            str(data_cfg["name"]),
            cache_dir=train_cfg.get("cache_dir"),
            **dict(data_cfg.get("options", {})),  # type: ignore[arg-type]
        )
    except FileNotFoundError as exc:
        if required:
            raise
        logger.warning("Dataset unavailable, skipping evaluation: %s", exc)
        return None
    if dims[0] != dataset.d_in:
        raise ValueError(f"Configured d_in={dims[0]} but dataset vectors have {dataset.d_in}")
    if dims[-1] != dataset.num_classes:
        raise ValueError(f"Configured d_out={dims[-1]} but dataset has {dataset.num_classes} classes")
    return dataset


def _build_dims(model_cfg: Mapping[str, object], data_cfg: Mapping[str, object]) -> List[int]:
    """Layer sizes from the model section, defaulting to the sign vector shape."""

    options = dict(data_cfg.get("options", {}))  # type: ignore[arg-type]
    side = int(options.get("size", VECTOR_SIDE))
    dims = [int(model_cfg.get("d_in", side * side))]
    dims.extend(int(h) for h in model_cfg.get("hidden", []))  # type: ignore[union-attr]
    dims.append(int(model_cfg.get("d_out", CLASS_COUNT)))
    return dims


def _print_progress(epoch: int, fraction: float, mse: float, elapsed: float) -> None:
    print(f"  epoch {epoch + 1:>4d}  [{fraction:6.1%}]  mse={mse:.6f}  {elapsed:7.1f}s")


def _print_startup_summary(
    *,
    dataset_name: str,
    dims: Sequence[int],
    learning_rate: float,
    weights_path: Path,
    param_count: int,
) -> None:
    print("=== topobot network ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Topology      : {list(dims)}")
    print(f"Learning rate : {learning_rate}")
    print(f"Weights file  : {weights_path}")
    print(f"Parameters    : {param_count}")
    print("=======================")


__all__ = ["Session", "build_network", "load_preset", "prepare", "presets", "run_pipeline"]
