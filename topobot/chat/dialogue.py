"""Pattern-matching dialogue engine driven by YAML rules.

Rules work like AIML categories: input is upper-cased and stripped of
punctuation, then matched against whole-input patterns where ``*``
stands for one or more words. Patterns with fewer wildcards and more
literal words win. A rule answers with one of its templates (``{star}``
is replaced by the text the first wildcard matched) or redirects to
another input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, Sequence, Tuple

import numpy as np
import yaml

MAX_REDIRECTS = 5
WILDCARD = "*"


class DialogueEngine(Protocol):
    """Conversational back end the chat host forwards free text to."""

    def respond(self, text: str, user_id: str) -> Optional[str]:
        """Return a reply, or ``None`` when the engine has nothing to say."""


def normalize(text: str) -> str:
    cleaned = re.sub(r"[^\w\s*]", " ", text.upper())
    return " ".join(cleaned.split())


@dataclass(frozen=True)
class Rule:
    pattern: str
    templates: Tuple[str, ...] = ()
    redirect: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.templates and self.redirect is None:
            raise ValueError(f"Rule {self.pattern!r} needs templates or a redirect")

    @property
    def tokens(self) -> List[str]:
        return normalize(self.pattern).split()

    @property
    def wildcards(self) -> int:
        return sum(1 for token in self.tokens if token == WILDCARD)

    def compile(self) -> re.Pattern[str]:
        parts = ["(.+?)" if token == WILDCARD else re.escape(token) for token in self.tokens]
        return re.compile(" ".join(parts))


class PatternDialogue:
    """:class:`DialogueEngine` backed by an ordered list of :class:`Rule` objects."""

    def __init__(self, rules: Sequence[Rule], rng: np.random.Generator | int | None = None) -> None:
        ranked = sorted(rules, key=lambda rule: (rule.wildcards, -len(rule.tokens)))
        self._rules = [(rule, rule.compile()) for rule in ranked]
        self.rng = rng if isinstance(rng, np.random.Generator) else np.random.default_rng(rng)

    def __len__(self) -> int:
        return len(self._rules)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], rng: np.random.Generator | int | None = None) -> "PatternDialogue":
        entries = data.get("rules")
        if not isinstance(entries, list):
            raise TypeError("Dialogue rules must be a list under the 'rules' key")
        rules = []
        for entry in entries:
            if not isinstance(entry, Mapping) or "pattern" not in entry:
                raise TypeError(f"Malformed dialogue rule: {entry!r}")
            templates = entry.get("templates", entry.get("template", ()))
            if isinstance(templates, str):
                templates = (templates,)
            rules.append(
                Rule(
                    pattern=str(entry["pattern"]),
                    templates=tuple(str(t) for t in templates),
                    redirect=entry.get("redirect"),
                )
            )
        return cls(rules, rng=rng)

    @classmethod
    def from_yaml(cls, path: str | Path, rng: np.random.Generator | int | None = None) -> "PatternDialogue":
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        return cls.from_mapping(data, rng=rng)

    @classmethod
    def default(cls, rng: np.random.Generator | int | None = None) -> "PatternDialogue":
        text = resources.files(__package__).joinpath("rules.yaml").read_text(encoding="utf-8")
        return cls.from_mapping(yaml.safe_load(text) or {}, rng=rng)

    def respond(self, text: str, user_id: str) -> Optional[str]:
        query = normalize(text)
        for _ in range(MAX_REDIRECTS + 1):
            match = self._match(query)
            if match is None:
                return None
            rule, star = match
            if rule.redirect is None:
                template = rule.templates[int(self.rng.integers(0, len(rule.templates)))]
                return template.replace("{star}", star.lower()).replace("{user}", user_id)
            query = normalize(rule.redirect.replace("{star}", star))
        return None

    def _match(self, query: str) -> Optional[Tuple[Rule, str]]:
        for rule, regex in self._rules:
            found = regex.fullmatch(query)
            if found:
                return rule, found.group(1) if found.groups() else ""
        return None


__all__ = ["DialogueEngine", "PatternDialogue", "Rule", "normalize"]
