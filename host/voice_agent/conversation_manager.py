"""
ConversationManager is the conversation state machine. It owns the live
session (microphone capture, sampling loop, timers) and coordinates the VAD,
the remote exchange, audio persistence, chat history and playback.

idle -> listening -> recording -> processing -> playing -> listening ...
end() returns to idle from any mode.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from voice_agent.audio import AudioCapture
from voice_agent.config import Config
from voice_agent.models import (
    AudioBlob,
    ErrorKind,
    Message,
    MicrophoneUnavailable,
    PersistedAudio,
    PlaybackError,
    Role,
)
from voice_agent.state import AgentMode, AgentState, Session
from voice_agent.vad import VADEvent, VoiceActivityDetector

log = logging.getLogger(__name__)

MICROPHONE_ERROR = "Microphone access is not available. Check your audio input settings."
TIMEOUT_MESSAGE = "The agent took too long to answer. Please try again."
GENERIC_ERROR = "Something went wrong while processing your voice."


class ConversationManager:
    """Voice conversation FSM."""

    def __init__(
        self,
        config: Config,
        state: AgentState,
        vad: VoiceActivityDetector,
        exchange_client,
        persistence,
        history,
        playback,
        ui,
        capture_factory: Optional[Callable[[], object]] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self.config     = config
        self.state      = state
        self.vad        = vad
        self.exchange   = exchange_client
        self.persistence = persistence
        self.history    = history
        self.playback   = playback
        self.ui         = ui
        self.capture_factory = capture_factory or self._default_capture
        self.clock      = clock

    def _default_capture(self) -> AudioCapture:
        return AudioCapture(
            sample_rate=self.config.sample_rate,
            frame_duration=self.config.frame_duration,
            fft_size=self.config.fft_size,
            smoothing=self.config.analyser_smoothing,
            device=self.config.input_device,
        )

    # ------------------------------------------------------------------ #
    # ------------------------  session lifecycle  --------------------- #
    # ------------------------------------------------------------------ #
    @property
    def mode(self) -> AgentMode:
        return self.state.get_mode()

    def _enter(self, mode: AgentMode) -> None:
        self.state.set_mode(mode)
        self.ui.show_mode(mode)

    def _alive(self, session: Session) -> bool:
        return self.state.is_current(session)

    async def start(self) -> bool:
        """Open the microphone and begin listening."""
        if self.state.active:
            return True

        capture = self.capture_factory()
        try:
            capture.start()
        except MicrophoneUnavailable as e:
            log.error(f"Microphone unavailable ({e.kind.value}): {e}")
            self.ui.show_error(MICROPHONE_ERROR)
            return False

        session = Session(capture)
        self.state.session = session
        self.vad.reset()
        self.ui.clear_error()
        self._enter(AgentMode.LISTENING)
        session.spawn(self._sampling_loop(session))
        log.info("Conversation started")
        return True

    def end(self) -> None:
        """Tear down the session from any mode; in-flight work is abandoned."""
        session = self.state.session
        self.state.session = None
        if session is not None:
            session.cancel_tasks()
            session.capture.discard_segment()
            session.capture.stop()
            log.info(f"Conversation ended after {time.time() - session.started_at:.1f}s")
        self.playback.stop()
        self.vad.reset()
        self.state.set_mode(AgentMode.IDLE)
        self.ui.reset()

    # ------------------------------------------------------------------ #
    # ---------------------------  sampling  --------------------------- #
    # ------------------------------------------------------------------ #
    async def _sampling_loop(self, session: Session) -> None:
        """Per-frame level sampling; gated, never torn down, while busy."""
        clock = self.clock or asyncio.get_running_loop().time
        while self._alive(session):
            try:
                level = session.capture.read_level()
                event = self.vad.process(level, clock(), suppressed=session.busy)
                if event is VADEvent.SPEECH_START:
                    self._on_speech_start(session, clock())
                elif event is VADEvent.UTTERANCE_END:
                    self._on_utterance_end(session)
            except Exception as e:
                log.error(f"Sampling error: {e}")
            await asyncio.sleep(self.config.frame_duration)

    def _on_speech_start(self, session: Session, now: float) -> None:
        session.capture.begin_segment()
        session.recording_started_at = now
        self._enter(AgentMode.RECORDING)

    def _on_utterance_end(self, session: Session) -> None:
        blob = session.capture.end_segment()
        session.recording_started_at = None
        if blob is None:
            log.warning("Utterance ended without audio")
            self._enter(AgentMode.LISTENING)
            return

        session.is_processing = True
        self._enter(AgentMode.PROCESSING)
        session.spawn(self.process_utterance(session, blob))

    # ------------------------------------------------------------------ #
    # ----------------------------  rounds  ---------------------------- #
    # ------------------------------------------------------------------ #
    async def process_utterance(self, session: Session, utterance: AudioBlob) -> None:
        """Persist, exchange, store the reply and play it."""
        try:
            await self._run_round(session, utterance)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.exception(f"Error in conversation round: {e}")
            if self._alive(session):
                self.ui.show_error(GENERIC_ERROR)
                await self._resume_listening(session, self.config.error_resume_delay)

    async def _run_round(self, session: Session, utterance: AudioBlob) -> None:
        saved = await self.persistence.persist(Role.USER, utterance)
        if not self._alive(session):
            return
        if saved.success:
            self._record(session, Role.USER, saved.audio)
        else:
            # The conversation goes on without a history entry
            log.warning(f"User audio not saved: {saved.error}")

        result = await self.exchange.exchange(utterance)
        if not self._alive(session):
            return

        if not result.success:
            message = TIMEOUT_MESSAGE if result.error_kind is ErrorKind.TIMEOUT else (result.error or GENERIC_ERROR)
            log.warning(f"Exchange failed: {result.error}")
            self.ui.show_error(message)
            await self._resume_listening(session, self.config.error_resume_delay)
            return

        if result.text:
            self.ui.show_response_text(result.text)

        if result.audio is None:
            log.info("Agent replied without audio")
            await self._resume_listening(session, 0)
            return

        reply = await self.persistence.persist(Role.ASSISTANT, result.audio)
        if not self._alive(session):
            return
        if not reply.success:
            # Without a URL the reply can be neither played nor kept
            log.error(f"Reply audio not saved, skipping playback: {reply.error}")
            await self._resume_listening(session, self.config.settle_delay)
            return

        message = self._record(session, Role.ASSISTANT, reply.audio)
        await self._play_reply(session, message)

    async def _play_reply(self, session: Session, message: Message) -> None:
        session.is_playing_response = True
        session.is_processing = False
        self._enter(AgentMode.PLAYING)
        try:
            await self.playback.play(
                message.audio_url,
                self.config.response_playback_timeout,
                message_id=message.id,
            )
        except PlaybackError as e:
            log.warning(f"Reply playback failed ({e.kind.value}): {e}")

        if not self._alive(session):
            return
        # Let residual speaker output die down before listening again
        await self._resume_listening(session, self.config.settle_delay)

    async def _resume_listening(self, session: Session, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        if not self._alive(session):
            return
        session.is_processing = False
        session.is_playing_response = False
        self.vad.reset()
        self.ui.clear_error()
        self._enter(AgentMode.LISTENING)

    def _record(self, session: Session, role: Role, stored: PersistedAudio) -> Message:
        message = self.history.new_message(role, stored)
        try:
            self.history.append(message)
        except OSError as e:
            log.error(f"Could not write chat history: {e}")
        self.ui.render_history(self.history.messages)
        session.spawn(self.history.resolve_duration(message))
        return message

    # ------------------------------------------------------------------ #
    # ---------------------------  history  ---------------------------- #
    # ------------------------------------------------------------------ #
    async def toggle_playback(self, message_id: int) -> bool:
        """Replay a history entry, or stop it if it is the one playing."""
        message = self.history.get(message_id)
        if message is None:
            log.warning(f"No history message {message_id}")
            return False
        try:
            return await self.playback.toggle(
                message.id, message.audio_url, self.config.history_playback_timeout
            )
        except PlaybackError as e:
            log.warning(f"History playback failed ({e.kind.value}): {e}")
            self.ui.show_error("This recording could not be played.")
            return False

    async def clear_history(self) -> None:
        self.playback.stop()
        await self.history.clear()
        self.ui.render_history([])
