"""Directory-backed dataset of topographic sign images.

Layout: ``<root>/<sign folder>/*.png``, one folder per category (see
:class:`~topobot.data.signs.SignType`). Files are taken in name order, the
training split from the start of each folder and the test split from its
end, so the two do not overlap while the folders hold enough images.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ...core.types import Sample, SampleSet
from ..registry import DatasetSpec, register_dataset
from ..signs import SIGN_CLASSES, SignType
from ..vectorizer import VECTOR_SIDE, load_vector

DATASET_ENV = "TOPOBOT_DATASET_DIR"
PATTERN = "*.png"


class SignDirectory:
    """Index of the sign images under ``root``."""

    def __init__(
        self,
        root: str | Path,
        classes: Sequence[SignType] = SIGN_CLASSES,
        *,
        size: int = VECTOR_SIDE,
        seed: int | np.random.Generator | None = None,
    ) -> None:
        self.root = Path(root)
        self.classes = tuple(classes)
        self.size = size
        self.rng = seed if isinstance(seed, np.random.Generator) else np.random.default_rng(seed)
        self.files: Dict[SignType, List[Path]] = {}
        for sign in self.classes:
            folder = self.root / sign.folder
            self.files[sign] = sorted(folder.glob(PATTERN)) if folder.is_dir() else []

    @property
    def class_count(self) -> int:
        return len(self.classes)

    def counts(self) -> Dict[str, int]:
        return {sign.folder: len(files) for sign, files in self.files.items()}

    def sample(self, path: str | Path, sign: SignType | None = None) -> Sample:
        vector = load_vector(path, size=self.size)
        if sign is None:
            return Sample.unlabeled(vector)
        return Sample.from_label(vector, self.class_count, self.classes.index(sign))

    def train_set(self, count: int) -> SampleSet:
        return self._collect(count, from_end=False)

    def test_set(self, count: int) -> SampleSet:
        return self._collect(count, from_end=True)

    def _collect(self, count: int, *, from_end: bool) -> SampleSet:
        per_class = count // self.class_count
        result = SampleSet()
        for sign in self.classes:
            files = self.files[sign]
            take = min(per_class, len(files))
            chosen = files[len(files) - take:] if from_end else files[:take]
            for path in chosen:
                result.add(self.sample(path, sign))
        result.shuffle(self.rng)
        return result

    def random_sample(self) -> Optional[Tuple[Sample, Path]]:
        """Pick a random category, then a random image of it."""

        candidates = [sign for sign in self.classes if self.files[sign]]
        if not candidates:
            return None
        sign = candidates[int(self.rng.integers(0, len(candidates)))]
        files = self.files[sign]
        path = files[int(self.rng.integers(0, len(files)))]
        return self.sample(path, sign), path


def resolve_root(root: str | Path | None) -> Path:
    value = root or os.environ.get(DATASET_ENV)
    if not value:
        raise FileNotFoundError(
            f"No sign dataset directory given; pass `root` or set {DATASET_ENV}"
        )
    path = Path(value)
    if not path.is_dir():
        raise FileNotFoundError(f"Sign dataset directory not found: {path}")
    return path


def directory_spec(name: str, directory: SignDirectory, provenance: Dict[str, object]) -> DatasetSpec:
    def loader(split: str, count: int) -> SampleSet:
        if split == "train":
            return directory.train_set(count)
        return directory.test_set(count)

    details = dict(provenance)
    details.update({"root": str(directory.root), "files": directory.counts()})
    return DatasetSpec(
        name=name,
        loader=loader,
        d_in=directory.size * directory.size,
        num_classes=directory.class_count,
        class_names=tuple(sign.folder for sign in directory.classes),
        provenance=details,
    )


def _factory(
    root: str | Path | None = None,
    seed: int = 0,
    size: int = VECTOR_SIDE,
    *,
    cache_dir: str | Path | None = None,
    **_: object,
) -> DatasetSpec:
    directory = SignDirectory(resolve_root(root), size=size, seed=seed)
    return directory_spec("signs", directory, {"type": "directory", "seed": seed})


register_dataset("signs", _factory)
