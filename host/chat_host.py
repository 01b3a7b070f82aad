# chat_host.py
"""
Voice Agent Host - talk to the restaurant's voice agent from the terminal
- Hands-free conversation (speech start/end detected automatically)
- Replies are played back and kept in a chat history
- Any history entry can be replayed
"""

import asyncio
import logging
import signal
import sys
import threading
from functools import partial
from typing import Set

from voice_agent.agent import VoiceAgent
from voice_agent.config import Config, setup_logging
from voice_agent.utils import signal_handler

logger = logging.getLogger(__name__)

HELP_TEXT = """Commands:
  s      start conversation
  e      end conversation
  h      show history
  p N    play / stop history entry N
  c      clear history
  q      quit"""


def _read_commands(loop: asyncio.AbstractEventLoop, commands: asyncio.Queue):
    """Feed stdin lines to the event loop; runs on a daemon thread"""
    for line in sys.stdin:
        loop.call_soon_threadsafe(commands.put_nowait, line.strip())
    loop.call_soon_threadsafe(commands.put_nowait, "q")


_background_tasks: Set[asyncio.Task] = set()


def _spawn(coro) -> asyncio.Task:
    """Keep a reference to background work until it finishes"""
    task = asyncio.get_running_loop().create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def handle_command(agent: VoiceAgent, command: str) -> bool:
    """Returns False when the host should exit."""
    name, _, argument = command.partition(" ")
    name = name.lower()

    if name == "s":
        await agent.start_conversation()
    elif name == "e":
        agent.end_conversation()
    elif name == "h":
        agent.ui.render_history(agent.history.messages)
    elif name == "p":
        messages = agent.history.messages
        try:
            message = messages[int(argument) - 1]
        except (ValueError, IndexError):
            print(f"No history entry '{argument}'")
            return True
        # Runs in the background so the prompt stays usable as a stop toggle
        _spawn(agent.toggle_playback(message.id))
    elif name == "c":
        await agent.clear_history()
    elif name in ("q", "quit", "exit"):
        return False
    elif name:
        print(HELP_TEXT)
    return True


async def run(config: Config):
    agent = VoiceAgent(config)
    agent.init()
    loop = asyncio.get_running_loop()

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            signal.signal(signum, partial(signal_handler, agent=agent))
        except ValueError:
            pass  # not on the main thread

    commands: asyncio.Queue = asyncio.Queue()
    threading.Thread(target=_read_commands, args=(loop, commands), daemon=True).start()
    durations = loop.create_task(agent.resolve_durations())
    print(HELP_TEXT)

    try:
        while agent.running:
            next_command = loop.create_task(commands.get())
            closed = loop.create_task(agent.wait_closed())
            done, pending = await asyncio.wait(
                {next_command, closed}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
            if next_command not in done:
                break
            if not await handle_command(agent, next_command.result()):
                break
    finally:
        durations.cancel()
        for task in list(_background_tasks):
            task.cancel()
        agent.dispose()


def main():
    """Main entry point"""
    config = Config.from_env()
    setup_logging(config)
    logger.info("Voice agent host starting up...")

    try:
        asyncio.run(run(config))
    except KeyboardInterrupt:
        logger.info("Shutdown complete")
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)

    logger.info("Voice agent host shutdown complete")


if __name__ == "__main__":
    main()
