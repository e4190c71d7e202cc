import logging
import time
from queue import Empty, Queue
from sys import platform
from threading import Lock, Thread
from typing import Callable, Optional

import speech_recognition as sr

from .events import EventSink, RecognitionEnded, RecognitionError, RecognitionResult, RecognitionStarted

logger = logging.getLogger(__name__)


class RealTimeTranscription:
    """
    Continuous dictation for one locale.
    Audio of the current phrase is re-transcribed every time more of it arrives, so results show up
    while the user is still speaking. Each result carries the whole transcript since start(), and the
    consumer overwrites its input buffer with it.
    """

    def __init__(self, locale: str, emit: EventSink, record_timeout=2, phrase_timeout=3, energy_threshold=1000,
                 recognizer: Optional[sr.Recognizer] = None):
        self.locale = locale
        self.emit = emit
        self.recorder = recognizer or sr.Recognizer()
        self.recorder.energy_threshold = energy_threshold
        self.recorder.dynamic_energy_threshold = False
        self.source = None
        # How real time the recording is in seconds
        self.record_timeout = record_timeout
        # How much empty space between recordings before we consider it a new phrase.
        self.phrase_timeout = phrase_timeout
        self.data_queue: Queue[bytes] = Queue()
        self.last_sample = bytes()
        self.phrase_time: Optional[float] = None
        self.phrases: list[str] = []
        # True while the last entry of phrases is still being spoken
        self.phrase_open = False
        self._stop_listening: Optional[Callable] = None
        self._active = False
        self._lock = Lock()

    @staticmethod
    def is_supported() -> bool:
        """
        True when a microphone can be opened. PyAudio is optional, without it there is no dictation.
        """
        try:
            return len(sr.Microphone.list_microphone_names()) > 0
        except (AttributeError, OSError) as e:
            logger.info(f"Speech input unavailable: {e}")
            return False

    @property
    def is_active(self) -> bool:
        return self._active

    def _init_audio_source(self):
        if 'linux' in platform:
            for index, name in enumerate(sr.Microphone.list_microphone_names()):
                self.source = sr.Microphone(sample_rate=16000, device_index=index)
                break
        else:
            self.source = sr.Microphone(sample_rate=16000)

    def start(self):
        with self._lock:
            if self._active:
                return
            self._active = True
            self.phrases = []
            self.phrase_open = False
            self.data_queue = Queue()
            self.last_sample = bytes()
            self.phrase_time = None
        # Calibrating for ambient noise blocks for a second, keep it off the caller's thread
        Thread(target=self._start_listening, daemon=True).start()

    def _start_listening(self):
        try:
            self._init_audio_source()
            with self.source:
                self.recorder.adjust_for_ambient_noise(self.source)
            # Create a background thread that will pass us raw audio bytes.
            stop_listening = self.recorder.listen_in_background(
                self.source, self.record_callback, phrase_time_limit=self.record_timeout)
        except Exception as e:
            logger.error(f"Could not start speech recognition ({self.locale}): {e}")
            with self._lock:
                self._active = False
            self.emit(RecognitionError(str(e)))
            return

        with self._lock:
            cancelled = not self._active
            if not cancelled:
                self._stop_listening = stop_listening
                Thread(target=self._transcription_worker, daemon=True).start()
                logger.info(f"Speech recognition language set to: {self.locale}")
                # Under the lock so a concurrent stop() reports its end after this
                self.emit(RecognitionStarted())
        if cancelled:
            # stop() was called while we were still calibrating
            stop_listening(wait_for_stop=False)

    def record_callback(self, _, audio: sr.AudioData) -> None:
        """
        Threaded callback function to receive audio data when recordings finish.
        audio: An AudioData containing the recorded bytes.
        """
        # Grab the raw bytes and push it into the thread safe queue.
        if self._active:
            self.data_queue.put(audio.get_raw_data())

    def _transcription_worker(self):
        while self._active:
            try:
                data = self.data_queue.get(timeout=0.25)
            except Empty:
                continue
            while not self.data_queue.empty():
                data += self.data_queue.get()
            phrase_complete = self.collect(data, time.monotonic())
            audio = sr.AudioData(self.last_sample, self.source.SAMPLE_RATE, self.source.SAMPLE_WIDTH)
            self.transcribe(audio, phrase_complete)

    def collect(self, data: bytes, now: float) -> bool:
        """
        Add raw audio to the working sample of the current phrase.
        :return: True when a pause before this data started a new phrase
        """
        phrase_complete = False
        # If enough time has passed between recordings, consider the phrase complete.
        # Clear the current working audio buffer to start over with the new data.
        if self.phrase_time is not None and now - self.phrase_time > self.phrase_timeout:
            self.last_sample = bytes()
            phrase_complete = True
        self.phrase_time = now
        self.last_sample += data
        return phrase_complete

    def transcribe(self, audio: sr.AudioData, phrase_complete: bool = False):
        if phrase_complete:
            with self._lock:
                self.phrase_open = False
        try:
            text = self.recorder.recognize_google(audio, language=self.locale).strip()
        except sr.UnknownValueError:
            # Nothing intelligible yet
            return
        except sr.RequestError as e:
            logger.error(f"Speech recognition error: {e}")
            self._halt()
            self.emit(RecognitionError(str(e)))
            return

        with self._lock:
            if not self._active:
                return
            # A new phrase gets a new entry, otherwise edit the existing one.
            if self.phrase_open:
                self.phrases[-1] = text
            else:
                self.phrases.append(text)
                self.phrase_open = True
            transcript = " ".join(p for p in self.phrases if p)
        self.emit(RecognitionResult(transcript))

    def _halt(self) -> bool:
        with self._lock:
            was_active = self._active
            self._active = False
            stop_listening, self._stop_listening = self._stop_listening, None
        if stop_listening is not None:
            stop_listening(wait_for_stop=False)
        return was_active

    def stop(self):
        if self._halt():
            self.emit(RecognitionEnded())
