"""
Events emitted by the speech adapters.

Adapters run their blocking work on background threads and hand these events
to the session manager, which applies them on the event loop thread.
"""
from dataclasses import dataclass
from typing import Callable, Union


@dataclass(frozen=True)
class RecognitionStarted:
    pass


@dataclass(frozen=True)
class RecognitionResult:
    # Everything heard since start(), replaces the input buffer
    transcript: str


@dataclass(frozen=True)
class RecognitionError:
    error: str


@dataclass(frozen=True)
class RecognitionEnded:
    pass


@dataclass(frozen=True)
class PlaybackEnded:
    message_index: int
    # Returned by SpeechSynthesizer.speak, tells replays of one message apart
    utterance_id: int


SpeechEvent = Union[RecognitionStarted, RecognitionResult, RecognitionError, RecognitionEnded, PlaybackEnded]
EventSink = Callable[[SpeechEvent], None]
