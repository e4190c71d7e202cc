import json
import logging
from pathlib import Path

from .config import PREFERENCES_PATH
from .languages import DEFAULT_LANGUAGE, LOCALES

logger = logging.getLogger(__name__)


class Preferences:
    """
    Small key-value store persisted as JSON. Only the selected language lives here.
    """

    def __init__(self, path: Path = PREFERENCES_PATH):
        self.path = Path(path)
        self.values = self._load()

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self.values, f, indent=2)

    @property
    def language(self) -> str:
        language = self.values.get('selected_language')
        return language if language in LOCALES else DEFAULT_LANGUAGE

    @language.setter
    def language(self, language: str):
        self.values['selected_language'] = language
        self._save()
