import io

import numpy as np
import pytest

from topobot.chat.dialogue import PatternDialogue, Rule, normalize
from topobot.chat.host import (
    APOLOGY,
    FALLBACK,
    GREETING,
    PHOTO_HINT,
    ChatHost,
)
from topobot.data.loaders.glyphs import render_glyph
from topobot.data.signs import SignType, describe


class _FakeNetwork:
    def __init__(self, answer=None):
        self.answer = answer
        self.calls = 0

    def predict(self, inputs):
        self.calls += 1
        return self.answer


class _EchoDialogue:
    def __init__(self, reply="echo"):
        self.reply = reply
        self.seen = []

    def respond(self, text, user_id):
        self.seen.append((text, user_id))
        return self.reply


def test_normalize_strips_punctuation_and_case():
    assert normalize("  What is a fir?!  ") == "WHAT IS A FIR"
    assert normalize("hello, *world*") == "HELLO *WORLD*"


def test_default_rules_answer_greetings_and_questions():
    dialogue = PatternDialogue.default(rng=0)
    assert "map" in dialogue.respond("Hello!", "u1")
    assert dialogue.respond("hi", "u1") is not None
    assert "conifer" in dialogue.respond("What is a fir?", "u1")
    assert "quantum gravity" in dialogue.respond("what is quantum gravity", "u1")
    assert dialogue.respond("zzz qqq", "u1") is None


def test_literal_pattern_beats_wildcard():
    dialogue = PatternDialogue(
        [Rule("WHAT IS *", ("generic {star}",)), Rule("WHAT IS A TOWER", ("tower",))],
        rng=0,
    )
    assert dialogue.respond("what is a tower", "u") == "tower"
    assert dialogue.respond("what is a lake", "u") == "generic a lake"


def test_redirect_substitutes_star():
    dialogue = PatternDialogue.from_mapping(
        {
            "rules": [
                {"pattern": "TELL ME ABOUT *", "redirect": "WHAT IS {star}"},
                {"pattern": "WHAT IS *", "template": "about {star}"},
            ]
        },
        rng=0,
    )
    assert dialogue.respond("Tell me about yurts", "u") == "about yurts"


def test_redirect_cycle_gives_up():
    dialogue = PatternDialogue([Rule("A", redirect="B"), Rule("B", redirect="A")], rng=0)
    assert dialogue.respond("a", "u") is None


def test_template_choice_follows_rng():
    rules = [Rule("HELLO", tuple(f"reply {i}" for i in range(10)))]
    first = PatternDialogue(rules, rng=np.random.default_rng(5))
    second = PatternDialogue(rules, rng=np.random.default_rng(5))
    answers = [first.respond("hello", "u") for _ in range(5)]
    assert answers == [second.respond("hello", "u") for _ in range(5)]


def test_rules_load_from_yaml(tmp_path):
    path = tmp_path / "rules.yaml"
    path.write_text("rules:\n  - pattern: PING\n    template: pong {user}\n")
    assert PatternDialogue.from_yaml(path, rng=0).respond("ping", "42") == "pong 42"


def test_malformed_rules_are_rejected():
    with pytest.raises(TypeError):
        PatternDialogue.from_mapping({"rules": "nope"})
    with pytest.raises(TypeError):
        PatternDialogue.from_mapping({"rules": [{"template": "x"}]})
    with pytest.raises(ValueError):
        Rule("EMPTY")


def test_host_commands_toggle_photo_mode():
    host = ChatHost(_FakeNetwork(4), _EchoDialogue(), vectorize=lambda payload: np.zeros(400))
    assert host.handle_text("1", "/start") == GREETING
    assert not host.awaiting_photo("1")
    host.handle_text("1", "Guess sign")
    assert host.awaiting_photo("1")
    host.handle_text("1", "learn info")
    assert not host.awaiting_photo("1")


def test_host_photo_flow_disarms_after_answer():
    network = _FakeNetwork(4)
    host = ChatHost(network, _EchoDialogue(), vectorize=lambda payload: np.zeros(400))
    assert host.handle_photo("1", b"img") == PHOTO_HINT
    assert network.calls == 0

    host.handle_text("1", "guess sign")
    assert host.handle_photo("1", b"img") == describe(SignType.FIR)
    assert not host.awaiting_photo("1")
    assert network.calls == 1


def test_photo_mode_is_per_chat():
    host = ChatHost(_FakeNetwork(0), _EchoDialogue(), vectorize=lambda payload: np.zeros(400))
    host.handle_text("a", "guess sign")
    assert host.handle_photo("b", b"img") == PHOTO_HINT
    assert host.awaiting_photo("a")


def test_low_confidence_answer_is_undefined():
    host = ChatHost(_FakeNetwork(None), _EchoDialogue(), vectorize=lambda payload: np.zeros(400))
    host.handle_text("1", "guess sign")
    assert host.handle_photo("1", b"img") == describe(SignType.UNDEF)


def test_free_text_goes_to_dialogue_with_fallback():
    dialogue = _EchoDialogue()
    host = ChatHost(_FakeNetwork(), dialogue)
    assert host.handle_text("7", "what is a yurt") == "echo"
    assert dialogue.seen == [("what is a yurt", "7")]
    assert ChatHost(_FakeNetwork(), _EchoDialogue(reply=None)).handle_text("7", "??") == FALLBACK


def test_unreadable_photo_gets_apology():
    host = ChatHost(_FakeNetwork(1), _EchoDialogue())
    host.handle_text("1", "guess sign")
    assert host.handle_photo("1", b"not an image") == APOLOGY
    assert host.awaiting_photo("1")


def test_real_photo_bytes_are_vectorised():
    buffer = io.BytesIO()
    render_glyph(SignType.YURT, np.random.default_rng(0)).save(buffer, format="PNG")
    network = _FakeNetwork(7)
    host = ChatHost(network, _EchoDialogue())
    host.handle_text("1", "guess sign")
    assert host.handle_photo("1", buffer.getvalue()) == describe(SignType.YURT)
