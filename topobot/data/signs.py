"""Topographic sign categories and recognition helpers."""

from __future__ import annotations

from enum import IntEnum
from pathlib import Path
from typing import Optional

from ..core.types import Classifier
from .vectorizer import load_vector


class SignType(IntEnum):
    APIARY = 0
    BIG_HOUSE = 1
    CEMETERY = 2
    CHURCH = 3
    FIR = 4
    SMALL_HOUSE = 5
    TOWER = 6
    YURT = 7
    UNDEF = 8

    @property
    def folder(self) -> str:
        """Dataset folder name, also the human-readable code of the sign."""

        return sign_name(self)

    @classmethod
    def from_prediction(cls, index: Optional[int]) -> "SignType":
        if index is None or not 0 <= index < len(SIGN_CLASSES):
            return cls.UNDEF
        return cls(index)


SIGN_CLASSES = tuple(sign for sign in SignType if sign is not SignType.UNDEF)
CLASS_COUNT = len(SIGN_CLASSES)
UNKNOWN_NAME = "unknown"


def sign_name(sign: SignType | int) -> str:
    sign = SignType(sign)
    if sign is SignType.UNDEF:
        return UNKNOWN_NAME
    return sign.name.lower()


def recognize_image(path: str | Path, network: Classifier) -> SignType:
    """Vectorise the image at ``path`` and classify it with ``network``."""

    return SignType.from_prediction(network.predict(load_vector(path)))


def describe(sign: SignType) -> str:
    if sign is SignType.UNDEF:
        return "I could not recognise this sign with confidence."
    return f"Looks like this sign is: {sign_name(sign)}."


def recognize_to_text(path: str | Path, network: Classifier) -> str:
    return describe(recognize_image(path, network))


__all__ = [
    "CLASS_COUNT",
    "SIGN_CLASSES",
    "SignType",
    "describe",
    "recognize_image",
    "recognize_to_text",
    "sign_name",
]
