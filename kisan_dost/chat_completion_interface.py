import logging

from openai import AsyncOpenAI

from . import config
from .context_manager import ContextManager
from .prompts import chat_instruction

logger = logging.getLogger(__name__)


class ChatSession:
    """
    Handle to one conversation with the model, bound to a single language.
    Sessions are compared by identity; a new one is created for every reset.
    """

    def __init__(self, language: str, context: ContextManager):
        self.language = language
        self.context = context
        # Set while a submission is waiting on the model
        self.busy = False

    def __repr__(self):
        return f"ChatSession(language={self.language!r}, messages={len(self.context.messages)})"


class ChatCompletionInterface:

    def __init__(self, client: AsyncOpenAI, model: str = config.MODEL_NAME,
                 max_tokens: int = config.MAX_CONTEXT_TOKENS, encoding=None):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.encoding = encoding

    @classmethod
    def from_config(cls):
        client = AsyncOpenAI(api_key=config.gemini_api_key(), base_url=config.GEMINI_BASE_URL)
        return cls(client)

    def create_session(self, language: str) -> ChatSession:
        context = ContextManager(chat_instruction(language), self.max_tokens, encoding=self.encoding)
        return ChatSession(language, context)

    async def send(self, session: ChatSession, text: str) -> str:
        """
        Send a user message within the session and return the reply text.
        The exchange is only recorded in the session history once the model has answered.
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=session.context.get_context(pending=text),
        )
        reply = (response.choices[0].message.content or "").strip()
        if not reply:
            raise ValueError("Model returned an empty reply")
        session.context.add_exchange(text, reply)
        logger.debug(f"{session!r} received {len(reply)} chars")
        return reply

    async def complete(self, instruction: str, text: str) -> str:
        """Single-turn completion outside of any session."""
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": instruction},
                {"role": "user", "content": text},
            ],
        )
        reply = (response.choices[0].message.content or "").strip()
        if not reply:
            raise ValueError("Model returned an empty reply")
        return reply
