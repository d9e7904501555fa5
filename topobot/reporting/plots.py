"""Headless-safe figures: training error curve and test confusion table."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Sequence, Tuple


def _pyplot():
    import matplotlib

    matplotlib.use("Agg", force=True)
    import matplotlib.pyplot as plt  # imported lazily for headless safety

    return plt


class PlotAdapter:
    """Trainer callback that records epoch MSE and draws it on ``close``."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self._history: List[Tuple[int, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        if self.enable_plots:
            self._history.append((epoch + 1, float(metrics.get("mse", 0.0))))

    __call__ = on_epoch

    def close(self) -> Path | None:
        if not self.enable_plots or not self._history:
            return None
        plt = _pyplot()
        epochs, errors = zip(*self._history)
        fig, ax = plt.subplots()
        ax.plot(epochs, errors, marker="o")
        ax.set_xlabel("Epoch")
        ax.set_ylabel("MSE")
        if min(errors) > 0:
            ax.set_yscale("log")
        ax.set_title("Training error")
        plot_path = self.run_dir / "mse.png"
        fig.savefig(plot_path)
        plt.close(fig)
        return plot_path


def plot_confusion(
    confusion: Sequence[Sequence[int]],
    class_names: Sequence[str],
    path: str | Path,
) -> Path:
    """Heat map of true category (rows) against answer, undefined last."""

    plt = _pyplot()
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    columns = list(class_names) + ["undefined"]
    fig, ax = plt.subplots(figsize=(1 + 0.7 * len(columns), 1 + 0.7 * len(class_names)))
    ax.imshow(confusion, cmap="Blues")
    ax.set_xticks(range(len(columns)), labels=columns, rotation=45, ha="right")
    ax.set_yticks(range(len(class_names)), labels=list(class_names))
    for i, row in enumerate(confusion):
        for j, count in enumerate(row):
            if count:
                ax.text(j, i, str(int(count)), ha="center", va="center", fontsize=8)
    ax.set_xlabel("Answer")
    ax.set_ylabel("True sign")
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    return path


__all__ = ["PlotAdapter", "plot_confusion"]
