"""
Conversation session for the Kisan Dost assistant.

The manager owns the only chat session, the transcript shown to the user and the two single-slot
speech resources (dictation and playback). All state changes happen on the asyncio event loop:
network calls are awaited there, and the speech adapters post their events back to it.
"""
import asyncio
import enum
import logging
from typing import Callable, Optional

from .chat_completion_interface import ChatCompletionInterface, ChatSession
from .events import (
    EventSink, PlaybackEnded, RecognitionEnded, RecognitionError, RecognitionResult, RecognitionStarted, SpeechEvent,
)
from .languages import DEFAULT_LANGUAGE, answer_directive, get_locale
from .market_prices import PriceLookup, is_price_query
from .messages import CONNECTION_ERROR_TEXT, SEND_ERROR_TEXT, Message
from .prompts import GREETING
from .speech_synthesis import SpeechSynthesizer
from .transcription import RealTimeTranscription

logger = logging.getLogger(__name__)

SpeechInputFactory = Callable[[str, EventSink], RealTimeTranscription]


class SessionState(enum.Enum):
    CLOSED = 'closed'
    INITIALIZING = 'initializing'
    READY = 'ready'


class SessionManager:

    def __init__(self, transport: ChatCompletionInterface, price_lookup: PriceLookup,
                 speech_input_factory: Optional[SpeechInputFactory] = None,
                 speech_output: Optional[SpeechSynthesizer] = None,
                 language: str = DEFAULT_LANGUAGE, on_change: Optional[Callable[[], None]] = None):
        """
        :param speech_input_factory: builds a dictation adapter for a locale, None when the platform has no microphone
        :param speech_output: text-to-speech adapter, None disables playback
        :param on_change: called after every state change so a view can re-render
        """
        self.transport = transport
        self.price_lookup = price_lookup
        self.speech_input_factory = speech_input_factory
        self.speech_output = speech_output
        self.language = language
        self.on_change = on_change

        self.state = SessionState.CLOSED
        self.session: Optional[ChatSession] = None
        self.messages: list[Message] = []
        self.input_buffer = ""
        self.speech_input: Optional[RealTimeTranscription] = None
        self.is_recording = False
        self.speaking_index: Optional[int] = None
        self._utterance_id: Optional[int] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        if self.speech_output is not None:
            self.speech_output.bind(self.post_event)

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.close()

    @property
    def is_open(self) -> bool:
        return self.state is not SessionState.CLOSED

    @property
    def speech_input_supported(self) -> bool:
        return self.speech_input_factory is not None

    @property
    def is_busy(self) -> bool:
        return self.state is SessionState.INITIALIZING or (self.session is not None and self.session.busy)

    def _changed(self):
        if self.on_change is not None:
            self.on_change()

    # Lifecycle

    async def open(self):
        if self.is_open:
            return
        self._loop = asyncio.get_running_loop()
        self._create_speech_input()
        await self._initialize()

    async def set_language(self, language: str):
        if language == self.language:
            return
        self.language = language
        if not self.is_open:
            return
        logger.info(f"Language changed to {language}, restarting session")
        self.stop_speaking()
        self._create_speech_input()
        await self._initialize()

    def close(self):
        """Release everything the session holds. Safe to call more than once."""
        self._release_speech_input()
        self.stop_speaking()
        self.session = None
        self.messages = []
        self.input_buffer = ""
        self.state = SessionState.CLOSED
        self._changed()

    async def _initialize(self):
        self.state = SessionState.INITIALIZING
        self.messages = []
        self.session = None
        self._changed()
        try:
            session = self.transport.create_session(self.language)
        except Exception as e:
            logger.error(f"Error creating chat session: {e}")
            self.messages = [Message.model(CONNECTION_ERROR_TEXT)]
            self.state = SessionState.READY
            self._changed()
            return
        self.session = session

        try:
            greeting = await self.transport.send(session, GREETING)
            message = Message.model(greeting)
        except Exception as e:
            logger.error(f"Error initializing chat: {e}")
            message = Message.model(CONNECTION_ERROR_TEXT)

        if self.session is not session:
            logger.debug(f"Discarding greeting for replaced {session!r}")
            return
        self.messages = [message]
        self.state = SessionState.READY
        self._changed()

    # Messages

    async def submit(self, text: str):
        """
        Send one user message. Ignored when blank, when no session is ready, or while
        another submission for this session is still waiting on its reply.
        """
        session = self.session
        if not text.strip() or self.state is not SessionState.READY or (session is not None and session.busy):
            return

        if self.dictation_active:
            self.stop_recording()

        self.messages = self.messages + [Message.user(text)]
        self.input_buffer = ""
        self._changed()

        language = self.language
        if session is None:
            # Session creation failed during initialization, sending retries it
            try:
                session = self.session = self.transport.create_session(language)
            except Exception as e:
                logger.error(f"Error creating chat session: {e}")
                self.messages = self.messages + [Message.model(SEND_ERROR_TEXT)]
                self._changed()
                return

        session.busy = True
        request = f"{answer_directive(language)} {text}"
        try:
            if is_price_query(text):
                reply = await self.price_lookup.lookup(request, language)
            else:
                reply = await self.transport.send(session, request)
            message = Message.model(reply)
        except Exception as e:
            logger.error(f"Error sending message: {e}")
            message = Message.model(SEND_ERROR_TEXT)
        finally:
            session.busy = False

        if self.session is not session:
            logger.debug(f"Discarding reply for replaced {session!r}")
            return
        self.messages = self.messages + [message]
        self._changed()

    async def submit_input(self):
        await self.submit(self.input_buffer)

    def set_input(self, text: str):
        self.input_buffer = text

    # Dictation

    def _create_speech_input(self):
        self._release_speech_input()
        if self.speech_input_factory is not None:
            self.speech_input = self.speech_input_factory(get_locale(self.language), self.post_event)

    def _release_speech_input(self):
        if self.speech_input is not None:
            self.speech_input.stop()
            self.speech_input = None
        self.is_recording = False

    @property
    def dictation_active(self) -> bool:
        # The adapter is active before its start event arrives
        return self.is_recording or (self.speech_input is not None and self.speech_input.is_active)

    def start_recording(self):
        if self.speech_input is None or self.dictation_active:
            return
        self.input_buffer = ""
        self.speech_input.start()
        self._changed()

    def stop_recording(self):
        if self.speech_input is not None:
            self.speech_input.stop()
        self.is_recording = False
        self._changed()

    def toggle_recording(self):
        if self.dictation_active:
            self.stop_recording()
        else:
            self.start_recording()

    # Playback

    def speak(self, index: int):
        """Read a model message aloud; asking for the message already playing stops it."""
        if self.speech_output is None or not 0 <= index < len(self.messages):
            return
        message = self.messages[index]
        if message.role != 'model':
            return
        if self.speaking_index == index:
            self.stop_speaking()
            return
        self.speaking_index = index
        self._utterance_id = self.speech_output.speak(message.content, self.language, index)
        self._changed()

    def stop_speaking(self):
        if self.speech_output is not None and self.speaking_index is not None:
            self.speech_output.stop()
        self.speaking_index = None
        self._utterance_id = None
        self._changed()

    # Events from the speech adapters

    def post_event(self, event: SpeechEvent):
        """Thread-safe entry point for adapter callbacks."""
        loop = self._loop
        if loop is None or loop.is_closed():
            self.handle_event(event)
        else:
            loop.call_soon_threadsafe(self.handle_event, event)

    def handle_event(self, event: SpeechEvent):
        if isinstance(event, PlaybackEnded):
            # A replay of the same message gets a new utterance id
            if event.utterance_id == self._utterance_id and self.speaking_index == event.message_index:
                self.speaking_index = None
        elif self.speech_input is None:
            # Dictation was torn down after this event was posted
            return
        elif isinstance(event, RecognitionStarted):
            # Stopped while the adapter was still calibrating
            self.is_recording = self.speech_input.is_active
        elif isinstance(event, RecognitionResult):
            if self.is_recording:
                self.input_buffer = event.transcript
        elif isinstance(event, RecognitionError):
            logger.warning(f"Speech recognition error: {event.error}")
            self.is_recording = False
        elif isinstance(event, RecognitionEnded):
            self.is_recording = False
        self._changed()
