import threading

import numpy as np
import pytest
import requests

from topobot.chat.host import APOLOGY, GREETING, PHOTO_MODE_ON, ChatHost
from topobot.chat.telegram import TOKEN_ENV, TelegramBot, TelegramError
from topobot.data.signs import SignType, describe

TOKEN = "123:secret"


class _Response:
    def __init__(self, payload=None, content=b"", status=200):
        self._payload = payload
        self.content = content
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"status {self.status}")

    def json(self):
        return self._payload


class _FakeSession:
    """Scripted stand-in for ``requests.Session`` keyed by Bot API method."""

    def __init__(self, updates=(), *, ok=True, download_status=200):
        self.updates = list(updates)
        self.ok = ok
        self.download_status = download_status
        self.posts = []
        self.gets = []

    def post(self, url, json=None, timeout=None):
        method = url.rsplit("/", 1)[-1]
        assert url.startswith(f"https://api.telegram.org/bot{TOKEN}/")
        self.posts.append((method, json or {}))
        if not self.ok:
            return _Response({"ok": False, "description": "Unauthorized"})
        if method == "getMe":
            return _Response({"ok": True, "result": {"username": "topobot"}})
        if method == "getUpdates":
            batch, self.updates = self.updates, []
            return _Response({"ok": True, "result": batch})
        if method == "getFile":
            return _Response({"ok": True, "result": {"file_path": f"photos/{json['file_id']}.png"}})
        return _Response({"ok": True, "result": {}})

    def get(self, url, timeout=None):
        self.gets.append(url)
        return _Response(content=b"png-bytes", status=self.download_status)

    def sent(self):
        return [payload for method, payload in self.posts if method == "sendMessage"]


class _FakeNetwork:
    def __init__(self, answer):
        self.answer = answer

    def predict(self, inputs):
        return self.answer


class _SilentDialogue:
    def respond(self, text, user_id):
        return None


def _host(answer=2, seen=None):
    def vectorize(payload):
        if seen is not None:
            seen.append(payload)
        return np.zeros(400)

    return ChatHost(_FakeNetwork(answer), _SilentDialogue(), vectorize=vectorize)


def _text(update_id, text, chat=42):
    return {"update_id": update_id, "message": {"chat": {"id": chat}, "text": text}}


def _photo(update_id, chat=42):
    sizes = [
        {"file_id": "small", "width": 90, "height": 90},
        {"file_id": "large", "width": 800, "height": 800},
        {"file_id": "medium", "width": 320, "height": 320},
    ]
    return {"update_id": update_id, "message": {"chat": {"id": chat}, "photo": sizes}}


def test_poll_once_answers_text_and_advances_offset():
    session = _FakeSession([_text(10, "/start")])
    bot = TelegramBot(TOKEN, _host(), session=session)
    assert bot.poll_once() == 1
    assert bot.offset == 11
    assert session.sent() == [{"chat_id": "42", "text": GREETING}]

    bot.poll_once()
    _, payload = [p for p in session.posts if p[0] == "getUpdates"][-1]
    assert payload["offset"] == 11


def test_photo_downloads_largest_size_and_replies():
    seen = []
    session = _FakeSession([_text(1, "guess sign"), _photo(2)])
    bot = TelegramBot(TOKEN, _host(answer=2, seen=seen), session=session)
    bot.poll_once()

    assert ("getFile", {"file_id": "large"}) in session.posts
    assert session.gets == [f"https://api.telegram.org/file/bot{TOKEN}/photos/large.png"]
    assert seen == [b"png-bytes"]
    assert [m["text"] for m in session.sent()] == [PHOTO_MODE_ON, describe(SignType.CEMETERY)]


def test_photo_without_guess_mode_is_not_downloaded():
    session = _FakeSession([_photo(5)])
    bot = TelegramBot(TOKEN, _host(), session=session)
    bot.poll_once()
    assert session.gets == []
    assert "guess sign" in session.sent()[0]["text"]


def test_failed_download_gets_apology():
    session = _FakeSession([_text(1, "guess sign"), _photo(2)], download_status=404)
    bot = TelegramBot(TOKEN, _host(), session=session)
    bot.poll_once()
    assert session.sent()[-1]["text"] == APOLOGY


def test_updates_without_message_are_skipped():
    session = _FakeSession([{"update_id": 3, "edited_message": {}}])
    bot = TelegramBot(TOKEN, _host(), session=session)
    assert bot.poll_once() == 1
    assert session.sent() == []
    assert bot.offset == 4


def test_message_without_chat_is_skipped():
    session = _FakeSession([{"update_id": 7, "message": {"text": "hello"}}, _text(8, "/start")])
    bot = TelegramBot(TOKEN, _host(), session=session)
    assert bot.poll_once() == 2
    assert [m["text"] for m in session.sent()] == [GREETING]
    assert bot.offset == 9


def test_failing_update_does_not_stop_polling(caplog):
    class _BrokenDialogue:
        def respond(self, text, user_id):
            raise LookupError("rule table corrupted")

    host = ChatHost(_FakeNetwork(2), _BrokenDialogue(), vectorize=lambda payload: np.zeros(400))
    session = _FakeSession([_text(20, "what is this"), _text(21, "/start")])
    bot = TelegramBot(TOKEN, host, session=session)

    assert bot.poll_once() == 2

    assert [m["text"] for m in session.sent()] == [GREETING]
    assert bot.offset == 22
    assert "Skipping update 20" in caplog.text


def test_api_error_raises():
    bot = TelegramBot(TOKEN, _host(), session=_FakeSession(ok=False))
    with pytest.raises(TelegramError):
        bot.get_me()


def test_run_polls_until_stopped():
    stop = threading.Event()

    class _StoppingSession(_FakeSession):
        def post(self, url, json=None, timeout=None):
            response = super().post(url, json=json, timeout=timeout)
            if url.endswith("getUpdates"):
                stop.set()
            return response

    session = _StoppingSession([_text(1, "hello there")])
    TelegramBot(TOKEN, _host(), session=session).run(stop)
    assert [m for m, _ in session.posts][:2] == ["getMe", "getUpdates"]
    assert len(session.sent()) == 1


def test_token_comes_from_environment(monkeypatch):
    monkeypatch.delenv(TOKEN_ENV, raising=False)
    with pytest.raises(RuntimeError):
        TelegramBot.from_env(_host())
    monkeypatch.setenv(TOKEN_ENV, TOKEN)
    assert TelegramBot.from_env(_host(), session=_FakeSession()).get_me()["username"] == "topobot"
    with pytest.raises(ValueError):
        TelegramBot("", _host())
