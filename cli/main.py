"""Command line entry point for the topobot sign recogniser and chat bot."""

from __future__ import annotations

import argparse
import json
import logging
import os
import threading
from pathlib import Path
from typing import Iterable

import yaml

from topobot.data.loaders.glyphs import build_fixture
from topobot.data.signs import recognize_to_text
from topobot.training import pipelines

logger = logging.getLogger("topobot.cli")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)


def _format_result(result) -> str:
    payload = {
        "trained": result.trained,
        "final_mse": result.final_mse,
        "accuracy": result.accuracy,
        "weights": result.weights_path,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
    }
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="topo_signs",
        help="Preset configuration to execute",
    )
    parser.add_argument(
        "--config", type=Path, help="Optional JSON/YAML config override"
    )
    parser.add_argument(
        "--dataset-dir",
        type=Path,
        help="Directory with one folder of PNG files per sign category",
    )
    parser.add_argument("--weights", type=Path, help="Weight file to load or write")
    parser.add_argument(
        "--retrain", action="store_true", help="Train even if the weight file exists"
    )
    parser.add_argument(
        "--enable-plots", action="store_true", help="Write a loss curve after training"
    )
    parser.add_argument("--seed", type=int, help="Seed used for initialisation and shuffling")
    parser.add_argument(
        "--predict", type=Path, metavar="IMAGE", help="Classify a single image and exit"
    )
    parser.add_argument(
        "--serve", action="store_true", help="Serve the Telegram bot after loading weights"
    )
    parser.add_argument(
        "--build-fixture",
        type=Path,
        metavar="DIR",
        help="Render the procedural glyph dataset into DIR and exit",
    )
    parser.add_argument(
        "--per-class", type=int, default=16, help="Glyphs per category for --build-fixture"
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    return parser.parse_args(argv)


def _load_override(path: Path) -> dict:
    text = path.read_text()
    if path.suffix in {".yml", ".yaml"}:
        return yaml.safe_load(text) or {}
    return json.loads(text)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def resolve_config(args: argparse.Namespace) -> dict:
    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        config = _merge(config, _load_override(args.config))

    train_cfg = config.setdefault("train", {})
    if args.dataset_dir:
        config["data"] = {"name": "signs", "options": {"root": str(args.dataset_dir)}}
    if args.weights:
        train_cfg["weights_path"] = str(args.weights)
    if args.retrain:
        train_cfg["retrain"] = True
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)
        config["data"].setdefault("options", {})["seed"] = int(args.seed)
    return config


def serve(session: pipelines.Session, config: dict) -> None:
    from topobot.chat import ChatHost, PatternDialogue, TelegramBot

    rules = (config.get("chat") or {}).get("rules")
    seed = int(config.get("train", {}).get("seed", 0))
    dialogue = PatternDialogue.from_yaml(rules, rng=seed) if rules else PatternDialogue.default(rng=seed)
    bot = TelegramBot.from_env(ChatHost(session.network, dialogue))
    stop = threading.Event()
    try:
        bot.run(stop)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        stop.set()


def main(argv: Iterable[str] | None = None) -> None:
    configure_logging()
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    if args.build_fixture:
        root = build_fixture(args.build_fixture, per_class=args.per_class, seed=args.seed or 0)
        print(f"Wrote glyph fixture to {root}")
        raise SystemExit(0)

    config = resolve_config(args)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    session = pipelines.prepare(config)
    try:
        if args.predict:
            print(recognize_to_text(args.predict, session.network))
        elif args.serve:
            serve(session, config)
        else:
            print(_format_result(session.result))
    finally:
        session.network.close()


if __name__ == "__main__":
    main()
