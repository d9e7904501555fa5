"""Transport-independent chat logic: commands, photo mode, dialogue fallback."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Optional

from ..core.types import Array, Classifier
from ..data.signs import SignType, describe
from ..data.vectorizer import vector_from_bytes
from .dialogue import DialogueEngine

logger = logging.getLogger(__name__)

START_COMMAND = "/start"
GUESS_COMMAND = "guess sign"
INFO_COMMAND = "learn info"

GREETING = (
    "Hello! I can recognise topographic signs. Write \"guess sign\" and send me "
    "a photo of a sign, or \"learn info\" to chat about maps."
)
PHOTO_MODE_ON = "Send me a photo of a topographic sign."
PHOTO_MODE_OFF = "Ask me anything about topographic signs."
PHOTO_HINT = "Write \"guess sign\" first if you want me to recognise a photo."
FALLBACK = "Sorry, I did not understand that. Try \"guess sign\" or ask about a map sign."
APOLOGY = "Sorry, I could not process that photo. Please try another one."


class ChatHost:
    """Per-chat state machine in front of a classifier and a dialogue engine.

    Each chat starts in dialogue mode. ``guess sign`` arms photo mode for
    that chat only; the next photo is classified and disarms it again.
    Predictions share one network, so they run under ``lock``.
    """

    def __init__(
        self,
        network: Classifier,
        dialogue: DialogueEngine,
        *,
        vectorize: Callable[[bytes], Array] = vector_from_bytes,
        lock: Optional[threading.Lock] = None,
    ) -> None:
        self.network = network
        self.dialogue = dialogue
        self.vectorize = vectorize
        self._lock = lock if lock is not None else threading.Lock()
        self._photo_mode: Dict[str, bool] = {}

    def awaiting_photo(self, chat_id: str) -> bool:
        return self._photo_mode.get(chat_id, False)

    def handle_text(self, chat_id: str, text: str) -> str:
        command = text.strip()
        lowered = command.lower()
        if lowered == START_COMMAND:
            return GREETING
        if lowered == GUESS_COMMAND:
            self._photo_mode[chat_id] = True
            return PHOTO_MODE_ON
        if lowered == INFO_COMMAND:
            self._photo_mode[chat_id] = False
            return PHOTO_MODE_OFF
        reply = self.dialogue.respond(command, chat_id)
        return reply if reply else FALLBACK

    def handle_photo(self, chat_id: str, payload: bytes) -> str:
        if not self.awaiting_photo(chat_id):
            return PHOTO_HINT
        try:
            sign = self.classify(payload)
        except (OSError, ValueError):
            logger.exception("Failed to classify photo from chat %s", chat_id)
            return APOLOGY
        self._photo_mode[chat_id] = False
        logger.info("Chat %s: recognised %s", chat_id, sign.name)
        return describe(sign)

    def classify(self, payload: bytes) -> SignType:
        vector = self.vectorize(payload)
        with self._lock:
            index = self.network.predict(vector)
        return SignType.from_prediction(index)


__all__ = [
    "APOLOGY",
    "ChatHost",
    "FALLBACK",
    "GREETING",
    "GUESS_COMMAND",
    "INFO_COMMAND",
    "PHOTO_HINT",
    "START_COMMAND",
]
