from __future__ import annotations

import argparse
import csv
import json
import sys
import time
from pathlib import Path
from statistics import mean, pstdev

MODES = ["serial", "parallel"]


def _fmt_mu_sigma(vals):
    mu = mean(vals)
    sd = pstdev(vals) if len(vals) > 1 else 0.0
    return f"{mu:.3f} ± {sd:.3f}"


def _time_ms(fn, reps):
    started = time.perf_counter()
    for _ in range(reps):
        fn()
    return (time.perf_counter() - started) * 1000.0 / reps


def main():
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))

    import numpy as np

    from topobot.training.trainer import SigmoidMLP

    ap = argparse.ArgumentParser()
    ap.add_argument("--topology", type=str, default="400,128,32,8")
    ap.add_argument("--seeds", nargs="+", type=int, default=[0, 1, 2])
    ap.add_argument("--reps", type=int, default=50)
    ap.add_argument("--out", type=str, default=".artifacts/bench")
    args = ap.parse_args()

    sizes = [int(part) for part in args.topology.split(",")]
    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    runs = []
    for mode in MODES:
        for s in args.seeds:
            rng = np.random.default_rng(s)
            inputs = rng.random(sizes[0])
            target = np.zeros(sizes[-1])
            target[int(rng.integers(0, sizes[-1]))] = 1.0
            with SigmoidMLP(sizes, seed=s, parallel=mode == "parallel") as net:
                forward_ms = _time_ms(lambda: net.compute(inputs), args.reps)
                train_ms = _time_ms(lambda: net.fit_sample(inputs, target), args.reps)
            runs.append(
                {"mode": mode, "seed": s, "forward_ms": forward_ms, "train_ms": train_ms}
            )
    (out / "results.jsonl").write_text(
        "\n".join(json.dumps(x) for x in runs), encoding="utf-8"
    )

    agg = {}
    for mode in MODES:
        fwd = [r["forward_ms"] for r in runs if r["mode"] == mode]
        trn = [r["train_ms"] for r in runs if r["mode"] == mode]
        agg[mode] = {
            "n": len(fwd),
            "forward_mu": mean(fwd),
            "forward_sd": pstdev(fwd) if len(fwd) > 1 else 0.0,
            "train_mu": mean(trn),
            "train_sd": pstdev(trn) if len(trn) > 1 else 0.0,
        }
    for mode in MODES:
        agg[mode]["speedup_vs_serial"] = agg["serial"]["train_mu"] / agg[mode]["train_mu"]

    csv_path = out / "bench_micro.csv"
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(
            [
                "mode",
                "seeds",
                "reps",
                "forward_ms_mu",
                "forward_ms_sd",
                "train_ms_mu",
                "train_ms_sd",
                "speedup_vs_serial",
            ]
        )
        for mode in MODES:
            a = agg[mode]
            w.writerow(
                [
                    mode,
                    a["n"],
                    args.reps,
                    f"{a['forward_mu']:.4f}",
                    f"{a['forward_sd']:.4f}",
                    f"{a['train_mu']:.4f}",
                    f"{a['train_sd']:.4f}",
                    f"{a['speedup_vs_serial']:.3f}",
                ]
            )

    md_path = out / "bench_micro.md"
    lines = []
    lines.append("### Micro-Benchmark: serial vs executor propagation")
    lines.append("")
    lines.append(f"- Topology: `{sizes}`; Seeds: `{args.seeds}`; Reps: `{args.reps}`")
    lines.append("")
    lines.append("| Mode | Forward ms (μ±σ) | Train step ms (μ±σ) | Speed-up | Seeds |")
    lines.append("|---|---:|---:|---:|---:|")
    for mode in MODES:
        fwd = [r["forward_ms"] for r in runs if r["mode"] == mode]
        trn = [r["train_ms"] for r in runs if r["mode"] == mode]
        lines.append(
            f"| {mode.upper()} | {_fmt_mu_sigma(fwd)} | {_fmt_mu_sigma(trn)} | "
            f"{agg[mode]['speedup_vs_serial']:.2f}x | {agg[mode]['n']} |"
        )
    md_path.write_text("\n".join(lines), encoding="utf-8")
    print("Wrote:", csv_path, md_path)


if __name__ == "__main__":
    main()
