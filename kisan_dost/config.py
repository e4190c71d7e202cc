"""Central configuration: API keys, model names, paths and logging."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

# Gemini is reached through its OpenAI-compatible endpoint
GEMINI_BASE_URL = os.environ.get("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai/")
MODEL_NAME = os.environ.get("KISAN_DOST_MODEL", "gemini-2.5-flash")

# Token budget for one session's history, system instruction included
MAX_CONTEXT_TOKENS = int(os.environ.get("KISAN_DOST_MAX_TOKENS", "8000"))

ELEVENLABS_MODEL = os.environ.get("ELEVENLABS_MODEL", "eleven_multilingual_v2")
# Used when no voice in the catalog speaks the requested locale
ELEVENLABS_VOICE_ID = os.environ.get("ELEVENLABS_VOICE_ID", "f983VwDGfSWLHQit66A0")

AGMARKNET_API_URL = "https://api.data.gov.in/resource/9ef84268-d588-465a-a308-a864a43d0070"

# Data directory, override with KISAN_DOST_DATA_DIR env var
DATA_DIR = Path(os.environ.get("KISAN_DOST_DATA_DIR", str(Path.home() / ".kisan_dost")))
PREFERENCES_PATH = DATA_DIR / "preferences.json"

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'


def read_api_key(env_var: str, key_file: str) -> Optional[str]:
    """
    Look up an API key in the environment, then in a key file in the working directory.
    :param env_var: environment variable name
    :param key_file: file holding the key on its first line
    :return: the key, or None when neither source has one
    """
    value = os.environ.get(env_var)
    if value:
        return value.strip()
    path = Path(key_file)
    if path.exists():
        with open(path, 'r') as file:
            return file.read().strip() or None
    return None


def gemini_api_key() -> str:
    key = read_api_key("GEMINI_API_KEY", "gemini_api_key.txt")
    if not key:
        raise RuntimeError("GEMINI_API_KEY environment variable is not set")
    return key


def elevenlabs_api_key() -> Optional[str]:
    return read_api_key("ELEVENLABS_API_KEY", "elevenlabs_api_key.txt")


def agmarknet_api_key() -> Optional[str]:
    return read_api_key("AGMARKNET_API_KEY", "agmarknet_api_key.txt")


def configure_logging(level: Optional[str] = None):
    log_level = (level or os.environ.get("LOG_LEVEL", "WARNING")).upper()
    logging.basicConfig(level=log_level, format=LOG_FORMAT)
