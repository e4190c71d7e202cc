from types import SimpleNamespace

from kisan_dost.events import PlaybackEnded
from kisan_dost.speech_synthesis import SpeechSynthesizer, Voice, select_voice, voices_from_catalog

VOICES = [
    Voice("v-en", "Rachel", "en-US"),
    Voice("v-hi", "Aarav", "hi-IN"),
    Voice("v-te", "Lakshmi", "te"),
]


def test_exact_locale_match():
    assert select_voice(VOICES, "hi-IN").voice_id == "v-hi"


def test_primary_subtag_match():
    assert select_voice(VOICES, "te-IN").voice_id == "v-te"
    assert select_voice(VOICES, "en-GB").voice_id == "v-en"


def test_no_match_means_default_voice():
    assert select_voice(VOICES, "pa-IN") is None
    assert select_voice([], "en-US") is None


def test_voices_from_catalog():
    catalog = [
        SimpleNamespace(voice_id="a", name="Asha", labels={}, verified_languages=[
            SimpleNamespace(language="hi", locale="hi-IN"),
            SimpleNamespace(language="ta", locale=None),
        ]),
        SimpleNamespace(voice_id="b", name="Ben", labels={"language": "en"}, verified_languages=None),
        SimpleNamespace(voice_id="c", name="Nobody", labels=None, verified_languages=[]),
    ]
    assert voices_from_catalog(catalog) == [
        Voice("a", "Asha", "hi-IN"),
        Voice("a", "Asha", "ta"),
        Voice("b", "Ben", "en"),
    ]


class RecordingSynthesizer(SpeechSynthesizer):
    """Synthesizer with the network and audio device replaced by lists."""

    def __init__(self):
        super().__init__(client=None)
        self.events = []
        self.played = []
        self.bind(self.events.append)

    def resolve_voice_id(self, locale):
        return f"voice-{locale}"

    def split_text(self, text):
        return text.split(". ")

    def _synthesize(self, text, voice_id):
        return f"{voice_id}:{text}".encode()

    def _play(self, mp3_bytes, utterance):
        self.played.append(mp3_bytes)


def test_speak_replaces_pending_utterance():
    synth = RecordingSynthesizer()
    synth.speak("first answer", 'en', 0)
    synth.speak("second answer", 'te', 2)
    assert synth.utterance_queue.qsize() == 1

    synth._run_utterance(synth.utterance_queue.get())
    assert synth.played == [b"voice-te-IN:second answer"]
    assert synth.events == [PlaybackEnded(2, 2)]


def test_utterance_plays_every_chunk_then_ends():
    synth = RecordingSynthesizer()
    synth.speak("Water daily. Add compost", 'hi', 4)
    synth._run_utterance(synth.utterance_queue.get())
    assert synth.played == [b"voice-hi-IN:Water daily", b"voice-hi-IN:Add compost"]
    assert synth.events == [PlaybackEnded(4, 1)]


def test_stopped_utterance_does_not_play_or_end():
    synth = RecordingSynthesizer()
    synth.speak("an answer", 'en', 1)
    utterance = synth.utterance_queue.get()
    synth.stop()
    synth._run_utterance(utterance)
    assert synth.played == []
    assert synth.events == []


def test_synthesis_failure_still_ends_playback():
    class Failing(RecordingSynthesizer):
        def _synthesize(self, text, voice_id):
            raise RuntimeError("quota exceeded")

    synth = Failing()
    synth.speak("an answer", 'en', 3)
    synth._run_utterance(synth.utterance_queue.get())
    assert synth.played == []
    assert synth.events == [PlaybackEnded(3, 1)]


def test_unknown_voice_catalog_falls_back_to_default():
    class BrokenCatalog:
        @property
        def voices(self):
            raise RuntimeError("unauthorized")

    synth = SpeechSynthesizer(client=BrokenCatalog(), default_voice_id="default")
    assert synth.resolve_voice_id("te-IN") == "default"


def test_default_voice_when_locale_unsupported():
    client = SimpleNamespace(voices=SimpleNamespace(get_all=lambda: SimpleNamespace(voices=[
        SimpleNamespace(voice_id="hi-voice", name="Asha", labels={"language": "hi"}, verified_languages=None),
    ])))
    synth = SpeechSynthesizer(client=client, default_voice_id="default")
    assert synth.resolve_voice_id("hi-IN") == "hi-voice"
    assert synth.resolve_voice_id("gu-IN") == "default"
