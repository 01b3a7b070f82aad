"""
Chat history persistence, legacy filtering and clearing
"""

import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "host"))

from voice_agent.history import STORAGE_KEY, ChatHistory, LocalStore
from voice_agent.models import Message, PersistedAudio, Role


def stored(name="a.webm", url=None, mime="audio/webm"):
    return PersistedAudio(url=url or f"/audio/{name}", filename=name, mime_type=mime)


class HistoryTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "storage.json"
        self.store = LocalStore(str(self.path))

    def tearDown(self):
        self._tmp.cleanup()


class TestLocalStore(HistoryTestCase):
    def test_get_missing_item(self):
        self.assertIsNone(self.store.get_item("nothing"))

    def test_set_and_remove(self):
        self.store.set_item("k", "v")
        self.store.set_item("other", "x")
        self.assertEqual(LocalStore(str(self.path)).get_item("k"), "v")

        self.store.remove_item("k")
        self.assertIsNone(self.store.get_item("k"))
        self.assertEqual(self.store.get_item("other"), "x")

    def test_corrupt_file_reads_empty(self):
        self.path.write_text("{not json", encoding="utf-8")
        self.assertIsNone(self.store.get_item("k"))


class TestChatHistory(HistoryTestCase):
    def test_load_drops_entries_without_audio_url(self):
        legacy = {"id": 1, "role": "user", "audio": "UklGRg=="}
        current = {
            "id": 2,
            "role": "assistant",
            "audio_url": "/audio/reply.mp3",
            "mime_type": "audio/mpeg",
            "filename": "reply.mp3",
            "created_at": 1700000000.0,
        }
        self.store.set_item(STORAGE_KEY, json.dumps([legacy, current]))

        history = ChatHistory(self.store)
        messages = history.load()

        self.assertEqual(len(messages), 1)
        self.assertEqual(messages[0].id, 2)
        self.assertEqual(messages[0].role, Role.ASSISTANT)
        self.assertEqual(messages[0].audio_url, "/audio/reply.mp3")

    def test_load_unreadable_history(self):
        self.store.set_item(STORAGE_KEY, "not json at all")
        history = ChatHistory(self.store)
        self.assertEqual(history.load(), [])

    def test_round_trip_preserves_order(self):
        history = ChatHistory(self.store)
        history.load()
        appended = []
        for i in range(5):
            role = Role.USER if i % 2 == 0 else Role.ASSISTANT
            appended.append(history.append(history.new_message(role, stored(f"{i}.webm"))))

        reloaded = ChatHistory(LocalStore(str(self.path)))
        messages = reloaded.load()

        self.assertEqual(messages, appended)
        self.assertEqual([m.filename for m in messages], [f"{i}.webm" for i in range(5)])

    def test_ids_strictly_increase(self):
        history = ChatHistory(self.store)
        with patch("voice_agent.history.time.time", return_value=1000.0):
            ids = [history.next_id() for _ in range(3)]
        self.assertEqual(ids, [1000000, 1000001, 1000002])

    def test_ids_continue_after_reload(self):
        history = ChatHistory(self.store)
        history.append(Message(id=5000000000000, role=Role.USER, audio_url="/a", mime_type="", filename=""))
        reloaded = ChatHistory(self.store)
        reloaded.load()
        self.assertGreater(reloaded.next_id(), 5000000000000)

    def test_append_requires_audio_url(self):
        history = ChatHistory(self.store)
        with self.assertRaises(ValueError):
            history.append(Message(id=1, role=Role.USER, audio_url="", mime_type="", filename=""))
        self.assertEqual(len(history), 0)

    async def test_clear_requests_server_deletion(self):
        persistence = MagicMock()
        persistence.clear_all = AsyncMock(return_value=3)
        history = ChatHistory(self.store, persistence=persistence)
        history.append(history.new_message(Role.USER, stored()))

        await history.clear()

        persistence.clear_all.assert_awaited_once()
        self.assertEqual(len(history), 0)
        self.assertEqual(ChatHistory(self.store).load(), [])

    async def test_clear_survives_server_failure(self):
        persistence = MagicMock()
        persistence.clear_all = AsyncMock(return_value=None)
        history = ChatHistory(self.store, persistence=persistence)
        history.append(history.new_message(Role.USER, stored()))
        history.append(history.new_message(Role.ASSISTANT, stored("b.mp3")))

        await history.clear()

        persistence.clear_all.assert_awaited_once()
        self.assertEqual(history.messages, [])
        self.assertIsNone(self.store.get_item(STORAGE_KEY))
        self.assertEqual(ChatHistory(self.store).load(), [])

    async def test_resolve_duration_is_cached(self):
        probe = MagicMock()
        probe.probe = AsyncMock(return_value=3.25)
        history = ChatHistory(self.store, probe=probe)
        message = history.append(history.new_message(Role.ASSISTANT, stored("r.mp3")))

        self.assertEqual(await history.resolve_duration(message), 3.25)
        self.assertEqual(await history.resolve_duration(message), 3.25)

        probe.probe.assert_awaited_once_with("/audio/r.mp3")
        self.assertEqual(ChatHistory(self.store).load()[0].duration_seconds, 3.25)

    async def test_unresolved_duration_stays_empty(self):
        probe = MagicMock()
        probe.probe = AsyncMock(return_value=None)
        history = ChatHistory(self.store, probe=probe)
        message = history.append(history.new_message(Role.USER, stored()))

        self.assertIsNone(await history.resolve_duration(message))
        self.assertIsNone(message.duration_seconds)


if __name__ == "__main__":
    unittest.main()
