"""Chat front end: dialogue rules, per-chat host logic and the Telegram transport."""

from .dialogue import DialogueEngine, PatternDialogue, Rule
from .host import ChatHost
from .telegram import TelegramBot, TelegramError

__all__ = [
    "ChatHost",
    "DialogueEngine",
    "PatternDialogue",
    "Rule",
    "TelegramBot",
    "TelegramError",
]
