from .session_manager import SessionManager, SessionState
from .context_manager import ContextManager
from .speech_synthesis import SpeechSynthesizer
from .chat_completion_interface import ChatCompletionInterface, ChatSession
from .transcription import RealTimeTranscription
from .market_prices import PriceLookup, AgmarknetClient, is_price_query
from .messages import Message

__version__ = "0.1.0"
