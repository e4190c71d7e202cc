from dataclasses import dataclass
from typing import Literal

Role = Literal['user', 'model']

CONNECTION_ERROR_TEXT = "Sorry, I'm having trouble connecting right now."
SEND_ERROR_TEXT = "Oops, something went wrong. Please try again."


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    @classmethod
    def user(cls, content: str) -> 'Message':
        return cls(role='user', content=content)

    @classmethod
    def model(cls, content: str) -> 'Message':
        return cls(role='model', content=content)
