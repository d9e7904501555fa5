"""Dataset registry, sign categories and image vectorisation."""

from . import loaders  # noqa: F401  (registers built-in datasets)
from .registry import DatasetSpec, available_datasets, get_dataset, register_dataset
from .signs import SIGN_CLASSES, SignType, sign_name
from .vectorizer import image_to_vector, load_vector, vector_from_bytes

__all__ = [
    "DatasetSpec",
    "SIGN_CLASSES",
    "SignType",
    "available_datasets",
    "get_dataset",
    "image_to_vector",
    "load_vector",
    "register_dataset",
    "sign_name",
    "vector_from_bytes",
]
