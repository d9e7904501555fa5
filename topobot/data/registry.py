"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, MutableMapping, Tuple

from ..core.types import SampleSet


@dataclass(frozen=True)
class DatasetSpec:
    """Description of a dataset registered in the system.

    Attributes
    ----------
    name:
        Registry key of the dataset.
    loader:
        ``loader(split, count)`` returns a shuffled :class:`SampleSet` of at
        most ``count`` samples, balanced across classes. ``split`` is
        ``"train"`` or ``"test"``.
    d_in:
        Length of every input vector.
    num_classes:
        Length of every one-hot target vector.
    class_names:
        Human readable name of each output index.
    provenance:
        Free-form metadata recorded in the run manifest.
    """

    name: str
    loader: Callable[[str, int], SampleSet]
    d_in: int
    num_classes: int
    class_names: Tuple[str, ...] = ()
    provenance: Dict[str, Any] = field(default_factory=dict)

    def split(self, split: str, count: int) -> SampleSet:
        if split not in {"train", "test"}:
            raise ValueError(f"Unsupported split: {split}")
        return self.loader(split, count)


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory, directly or as a decorator::

        @register_dataset("signs")
        def make_signs(**kwargs):
            ...
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(
    dataset: str,
    /,
    *,
    cache_dir: str | Path | None = None,
    **options: Any,
) -> DatasetSpec:
    """Return the :class:`DatasetSpec` for ``dataset``."""

    if dataset not in _REGISTRY:
        available = ", ".join(available_datasets())
        raise KeyError(f"Unknown dataset: {dataset!r}. Available datasets: {available}")
    spec = _REGISTRY[dataset](cache_dir=cache_dir, **options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.d_in <= 0:
        raise ValueError(f"Dataset {spec.name!r} has non-positive input size {spec.d_in}")
    if spec.num_classes <= 0:
        raise ValueError(f"Dataset {spec.name!r} must define at least one class")
    if spec.class_names and len(spec.class_names) != spec.num_classes:
        raise ValueError(
            f"Dataset {spec.name!r} names {len(spec.class_names)} classes, "
            f"expected {spec.num_classes}"
        )


__all__ = [
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
