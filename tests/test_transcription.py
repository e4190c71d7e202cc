from types import SimpleNamespace

import speech_recognition as sr

from kisan_dost.events import RecognitionEnded, RecognitionError, RecognitionResult
from kisan_dost.transcription import RealTimeTranscription


class ScriptedRecognizer:
    """Returns queued outcomes from recognize_google in order."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.languages = []

    def recognize_google(self, audio, language=None):
        self.languages.append(language)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def listening(outcomes, locale='te-IN'):
    events = []
    recognizer = ScriptedRecognizer(outcomes)
    transcription = RealTimeTranscription(locale, events.append, recognizer=recognizer)
    # As if listen_in_background had started
    transcription._active = True
    stopped = []
    transcription._stop_listening = lambda wait_for_stop: stopped.append(wait_for_stop)
    return transcription, recognizer, events, stopped


def test_partial_results_update_the_current_phrase():
    transcription, recognizer, events, _ = listening(["tomato", "tomato leaves", "are curling"])
    transcription.transcribe(object())
    transcription.transcribe(object())
    transcription.transcribe(object(), phrase_complete=True)
    assert events == [
        RecognitionResult("tomato"),
        RecognitionResult("tomato leaves"),
        RecognitionResult("tomato leaves are curling"),
    ]
    assert recognizer.languages == ['te-IN', 'te-IN', 'te-IN']


def test_pause_starts_a_new_phrase_sample():
    transcription, _, _, _ = listening([])
    assert not transcription.collect(b"ab", now=0.0)
    assert not transcription.collect(b"cd", now=2.0)
    assert transcription.last_sample == b"abcd"

    assert transcription.collect(b"ef", now=6.0)
    assert transcription.last_sample == b"ef"


def test_unintelligible_audio_is_skipped():
    transcription, _, events, _ = listening(["one", sr.UnknownValueError(), "two"])
    transcription.transcribe(object())
    transcription.transcribe(object(), phrase_complete=True)
    transcription.transcribe(object())
    assert events == [RecognitionResult("one"), RecognitionResult("one two")]


def test_request_error_stops_listening():
    transcription, _, events, stopped = listening([sr.RequestError("no network")])
    transcription.transcribe(object())
    assert events == [RecognitionError("no network")]
    assert not transcription.is_active
    assert stopped == [False]


def test_audio_is_queued_only_while_active():
    transcription, _, _, _ = listening([])
    audio = SimpleNamespace(get_raw_data=lambda: b"pcm")
    transcription.record_callback(None, audio)
    transcription.stop()
    transcription.record_callback(None, audio)
    assert transcription.data_queue.qsize() == 1


def test_stop_emits_end_once_and_ignores_late_audio():
    transcription, _, events, stopped = listening(["late words"])
    transcription.stop()
    transcription.stop()
    transcription.transcribe(object())
    assert events == [RecognitionEnded()]
    assert stopped == [False]
