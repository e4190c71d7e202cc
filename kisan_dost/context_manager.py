import logging

import tiktoken

logger = logging.getLogger(__name__)

# Gemini has no tiktoken encoding of its own; cl100k is a close enough estimate for budgeting.
DEFAULT_ENCODING = "cl100k_base"


class ContextManager:
    """
    Manages the history of one chat session. All exchanged messages are stored in the messages list.
    Keeps track of token size and keeps context size under the limit by archiving the oldest messages.
    The system instruction is always sent first and never archived.
    """
    def __init__(self, instruction: str, max_tokens: int, encoding=None):
        self.max_tokens = max_tokens
        self.messages = []
        self.archived_messages = []
        self.total_tokens = 0
        self.encoding = encoding or tiktoken.get_encoding(DEFAULT_ENCODING)
        self.instruction_msg = self._sys_message(instruction)
        self.instruction_tokens = self.count_tokens_in_msg(self.instruction_msg)

    def count_tokens_in_msg(self, message: dict) -> int:
        tokens = 4  # Every message follows <im_start>{role/name}\n{content}<im_end>\n
        for value in message.values():
            tokens += len(self.encoding.encode(value))
        return tokens

    def add_message(self, message: dict):
        self.messages.append(message)
        self.total_tokens += self.count_tokens_in_msg(message)
        # Always keep the latest message even if it alone exceeds the budget
        while len(self.messages) > 1 and self.total_tokens + self.instruction_tokens > self.max_tokens:
            msg = self.messages.pop(0)
            self.total_tokens -= self.count_tokens_in_msg(msg)
            self.archived_messages.append(msg)
            logger.debug(f"Archived {msg['role']} message to stay under {self.max_tokens} tokens")

    def add_exchange(self, user_content: str, assistant_content: str):
        self.add_message(self._user_message(user_content))
        self.add_message(self._assistant_message(assistant_content))

    def _user_message(self, message) -> dict:
        return {
            "role": "user",
            "content": message
        }

    def _assistant_message(self, message) -> dict:
        return {
            "role": "assistant",
            "content": message
        }

    def _sys_message(self, message) -> dict:
        return {
            "role": "system",
            "content": message
        }

    def get_context(self, pending: str = None) -> list[dict]:
        """
        :param pending: user message about to be sent, not yet part of the history
        """
        ctx = [self.instruction_msg]
        ctx.extend(self.messages)
        if pending is not None:
            ctx.append(self._user_message(pending))
        return ctx
