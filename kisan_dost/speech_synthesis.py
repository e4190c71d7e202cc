import io
import logging
from dataclasses import dataclass
from queue import Queue
from threading import Lock, Thread
from typing import Optional

import nltk
import pygame
from elevenlabs.client import ElevenLabs

from . import config
from .events import EventSink, PlaybackEnded
from .languages import get_locale

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Voice:
    voice_id: str
    name: str
    locale: str


def select_voice(voices: list[Voice], locale: str) -> Optional[Voice]:
    """
    Pick the voice for a BCP 47 locale: exact match first, then any voice sharing the
    primary language subtag ('te' matches 'te-IN'). None means use the default voice.
    """
    target = locale.lower()
    for voice in voices:
        if voice.locale.lower() == target:
            return voice
    primary = target.split('-')[0]
    for voice in voices:
        if voice.locale.lower().split('-')[0] == primary:
            return voice
    return None


def voices_from_catalog(catalog) -> list[Voice]:
    """Flatten ElevenLabs voices into one entry per language they are verified for."""
    voices = []
    for v in catalog:
        locales = [lang.locale or lang.language for lang in (v.verified_languages or [])]
        labels = v.labels or {}
        if not locales and labels.get('language'):
            locales = [labels['language']]
        voices.extend(Voice(v.voice_id, v.name, locale) for locale in locales if locale)
    return voices


def _ensure_sentence_tokenizer():
    try:
        nltk.data.find('tokenizers/punkt_tab')
    except LookupError:
        nltk.download('punkt_tab', quiet=True)


@dataclass
class _Utterance:
    generation: int
    message_index: int
    text: str
    locale: str


class SpeechSynthesizer:

    def __init__(self, client: Optional[ElevenLabs] = None, model_id=config.ELEVENLABS_MODEL,
                 default_voice_id=config.ELEVENLABS_VOICE_ID, max_tokens_per_chunk=50):
        """
        :param client: ElevenLabs client used for the voice catalog and synthesis
        :param default_voice_id: voice used when no catalog voice speaks the locale
        :param max_tokens_per_chunk: long sentences are split so each request stays small
        """
        self.client = client
        self.model_id = model_id
        self.default_voice_id = default_voice_id
        self.max_tokens_per_chunk = max_tokens_per_chunk
        self.emit: Optional[EventSink] = None
        self.utterance_queue: Queue[_Utterance] = Queue()
        self.worker_thread: Optional[Thread] = None
        self._voices: Optional[list[Voice]] = None
        self._generation = 0
        self.lock = Lock()

    @classmethod
    def from_config(cls):
        api_key = config.elevenlabs_api_key()
        if not api_key:
            return None
        return cls(ElevenLabs(api_key=api_key))

    def init(self):
        pygame.mixer.init()
        _ensure_sentence_tokenizer()
        self.worker_thread = Thread(target=self._speech_worker)
        self.worker_thread.daemon = True
        self.worker_thread.start()

    def bind(self, emit: EventSink):
        self.emit = emit

    def speak(self, text: str, language_code: str, message_index: int) -> int:
        """
        Start reading text aloud. Whatever is playing is cancelled first; only one utterance is ever active.
        :return: id of the utterance, carried by its PlaybackEnded event
        """
        with self.lock:
            self._generation += 1
            self._clear_pending()
            utterance = _Utterance(self._generation, message_index, text, get_locale(language_code))
            self.utterance_queue.put(utterance)
        self._stop_playback()
        return utterance.generation

    def stop(self):
        """
        Stops synthesis and playback immediately and cancels anything pending.
        """
        with self.lock:
            self._generation += 1
            self._clear_pending()
        self._stop_playback()

    def _clear_pending(self):
        with self.utterance_queue.mutex:
            self.utterance_queue.queue.clear()

    def _is_current(self, utterance: _Utterance) -> bool:
        with self.lock:
            return utterance.generation == self._generation

    def voices(self) -> list[Voice]:
        if self._voices is None:
            self._voices = voices_from_catalog(self.client.voices.get_all().voices)
        return self._voices

    def resolve_voice_id(self, locale: str) -> str:
        try:
            voice = select_voice(self.voices(), locale)
        except Exception as e:
            logger.error(f"Could not load voice catalog: {e}")
            voice = None
        if voice is None:
            logger.warning(f"No matching voice found for language: {locale}. Using default voice.")
            return self.default_voice_id
        logger.info(f"Using voice: {voice.name} for language: {locale}")
        return voice.voice_id

    def split_text(self, text: str) -> list[str]:
        chunks = []
        for sentence in nltk.sent_tokenize(text):
            tokens = sentence.split()
            for i in range(0, len(tokens), self.max_tokens_per_chunk):
                chunks.append(" ".join(tokens[i:i + self.max_tokens_per_chunk]))
        return [c for c in chunks if c]

    def _speech_worker(self):
        while True:
            utterance = self.utterance_queue.get()
            self._run_utterance(utterance)

    def _run_utterance(self, utterance: _Utterance):
        if not self._is_current(utterance):
            return
        voice_id = self.resolve_voice_id(utterance.locale)
        for chunk in self.split_text(utterance.text):
            if not self._is_current(utterance):
                return
            try:
                audio = self._synthesize(chunk, voice_id)
            except Exception as e:
                # End the utterance rather than leave the playback slot stuck
                logger.error(f"Speech synthesis failed: {e}")
                break
            if not self._is_current(utterance):
                return
            self._play(audio, utterance)
        # Checked and emitted under the lock so a concurrent speak() cannot slip in between
        with self.lock:
            if utterance.generation == self._generation and self.emit is not None:
                self.emit(PlaybackEnded(utterance.message_index, utterance.generation))

    def _synthesize(self, text: str, voice_id: str) -> bytes:
        audio = self.client.text_to_speech.convert(voice_id=voice_id, text=text, model_id=self.model_id)
        return b"".join(audio)

    def _play(self, mp3_bytes: bytes, utterance: _Utterance):
        pygame.mixer.music.load(io.BytesIO(mp3_bytes))
        pygame.mixer.music.play()
        # Block while current audio is playing
        while pygame.mixer.music.get_busy():
            if not self._is_current(utterance):
                pygame.mixer.music.stop()
                return
            pygame.time.Clock().tick(10)

    def _stop_playback(self):
        if pygame.mixer.get_init():
            pygame.mixer.music.stop()
