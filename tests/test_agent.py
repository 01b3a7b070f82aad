"""
Agent wiring and host command handling
"""

import asyncio
import dataclasses
import json
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "host"))

from chat_host import _background_tasks, handle_command
from voice_agent.agent import VoiceAgent
from voice_agent.config import Config
from voice_agent.history import STORAGE_KEY, LocalStore
from voice_agent.state import AgentMode


class TestVoiceAgent(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        storage = str(Path(self._tmp.name) / "storage.json")
        LocalStore(storage).set_item(STORAGE_KEY, json.dumps([
            {"id": 1, "role": "user", "audio_url": "/audio/user-1.webm", "created_at": 1.0},
            {"id": 2, "role": "assistant", "audio_url": "/audio/assistant-2.mp3",
             "created_at": 2.0, "duration_seconds": 3.2},
            {"id": 3, "role": "user", "transcript": "legacy text entry"},
        ]))
        self.config = dataclasses.replace(Config.from_env(), storage_file=storage)
        self.lines = []
        self.agent = VoiceAgent(self.config, output=MagicMock())
        self.agent.ui.out = self.lines.append

    async def asyncTearDown(self):
        self.agent.dispose()
        self._tmp.cleanup()

    async def test_init_loads_history(self):
        self.agent.init()

        self.assertEqual([m.id for m in self.agent.history], [1, 2])
        self.assertEqual(self.agent.state.get_mode(), AgentMode.IDLE)
        self.assertTrue(any("0:03" in line for line in self.lines))

    async def test_resolve_durations_probes_missing_only(self):
        self.agent.init()
        self.agent.history.probe = MagicMock()
        self.agent.history.probe.probe = AsyncMock(return_value=12.0)

        await self.agent.resolve_durations()

        self.agent.history.probe.probe.assert_awaited_once_with("/audio/user-1.webm")
        self.assertEqual(self.agent.history.get(1).duration_seconds, 12.0)

    async def test_collaborators_share_one_http_session(self):
        self.assertIs(self.agent.exchange.session, self.agent.http)
        self.assertIs(self.agent.persistence.session, self.agent.http)
        self.assertEqual(self.agent.exchange.url, "http://localhost:3000/api/voice-agent")

    async def test_dispose_is_idempotent(self):
        self.agent.init()
        with patch.object(self.agent.http, "close") as close:
            self.agent.dispose()
            self.agent.dispose()
        close.assert_called_once()
        self.assertFalse(self.agent.running)
        await self.agent.wait_closed()


class TestHandleCommand(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.agent = MagicMock()
        self.agent.start_conversation = AsyncMock(return_value=True)
        self.agent.clear_history = AsyncMock()
        self.agent.history.messages = []

    async def test_start_and_end(self):
        self.assertTrue(await handle_command(self.agent, "s"))
        self.agent.start_conversation.assert_awaited_once()
        self.assertTrue(await handle_command(self.agent, "e"))
        self.agent.end_conversation.assert_called_once()

    async def test_play_unknown_entry(self):
        with patch("builtins.print") as printed:
            self.assertTrue(await handle_command(self.agent, "p 4"))
        printed.assert_called_once_with("No history entry '4'")

    async def test_play_runs_in_background_and_is_tracked(self):
        release = asyncio.Event()

        async def toggle(message_id):
            await release.wait()
            return True

        self.agent.history.messages = [MagicMock(id=41), MagicMock(id=42)]
        self.agent.toggle_playback = AsyncMock(side_effect=toggle)

        self.assertTrue(await handle_command(self.agent, "p 2"))
        await asyncio.sleep(0)

        self.agent.toggle_playback.assert_awaited_once_with(42)
        self.assertEqual(len(_background_tasks), 1)
        task = next(iter(_background_tasks))

        release.set()
        await task
        await asyncio.sleep(0)
        self.assertEqual(len(_background_tasks), 0)

    async def test_clear(self):
        self.assertTrue(await handle_command(self.agent, "c"))
        self.agent.clear_history.assert_awaited_once()

    async def test_quit(self):
        self.assertFalse(await handle_command(self.agent, "q"))
        self.assertFalse(await handle_command(self.agent, "quit"))


if __name__ == "__main__":
    unittest.main()
