import asyncio

import pytest

from kisan_dost.chat_completion_interface import ChatSession
from kisan_dost.context_manager import ContextManager
from kisan_dost.events import RecognitionEnded, RecognitionStarted
from kisan_dost.session_manager import SessionManager


class WordEncoding:
    """Stands in for a tiktoken encoding: one token per whitespace separated word."""

    def encode(self, text):
        return text.split()


class FakeTransport:

    def __init__(self):
        self.sent = []
        self.gates = []
        self.hold = False
        self.fail_create = False
        self.fail_send = False

    def create_session(self, language):
        if self.fail_create:
            raise RuntimeError("cannot reach model")
        return ChatSession(language, ContextManager("instruction", 1000, encoding=WordEncoding()))

    async def send(self, session, text):
        self.sent.append((session, text))
        if self.hold:
            gate = asyncio.get_running_loop().create_future()
            self.gates.append(gate)
            await gate
        if self.fail_send:
            raise RuntimeError("model unavailable")
        if text == "Hello":
            return f"Namaste from {session.language}"
        return f"reply: {text}"


class FakePriceLookup:

    def __init__(self):
        self.queries = []

    async def lookup(self, text, language):
        self.queries.append((text, language))
        return "Tomato price in Vijayawada today: ₹20 per kg."


class FakeSpeechInput:

    def __init__(self, locale, emit):
        self.locale = locale
        self.emit = emit
        self.active = False
        self.released = False

    @property
    def is_active(self):
        return self.active

    def start(self):
        self.active = True
        self.emit(RecognitionStarted())

    def stop(self):
        self.released = True
        if self.active:
            self.active = False
            self.emit(RecognitionEnded())


class FakeSpeechOutput:

    def __init__(self):
        self.emit = None
        self.active_index = None
        self.spoken = []
        self.stops = 0
        self.utterances = 0

    def bind(self, emit):
        self.emit = emit

    def speak(self, text, language_code, message_index):
        self.stop()
        self.spoken.append((text, language_code, message_index))
        self.active_index = message_index
        self.utterances += 1
        return self.utterances

    def stop(self):
        self.stops += 1
        self.active_index = None


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def price_lookup():
    return FakePriceLookup()


@pytest.fixture
def speech_output():
    return FakeSpeechOutput()


@pytest.fixture
def speech_inputs():
    return []


@pytest.fixture
def manager(transport, price_lookup, speech_output, speech_inputs):
    def factory(locale, emit):
        adapter = FakeSpeechInput(locale, emit)
        speech_inputs.append(adapter)
        return adapter

    return SessionManager(transport, price_lookup, factory, speech_output)


async def settle():
    """Let callbacks posted with call_soon_threadsafe run."""
    for _ in range(3):
        await asyncio.sleep(0)
