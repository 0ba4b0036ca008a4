"""
Error types raised inside the message broker.

None of these reach the caller of MessageBroker.translate(): the broker turns
each of them into the fallback message.
"""

from typing import Optional


class MessageBrokerError(Exception):
    """Base class for message broker errors"""


class MissingRequiredVariable(MessageBrokerError):
    """A required template variable resolved to nothing and has no default"""

    def __init__(self, variable_name: str, event_type: Optional[str] = None):
        self.variable_name = variable_name
        self.event_type = event_type
        detail = f"Missing required template variable '{variable_name}'"
        if event_type:
            detail += f" for event type '{event_type}'"
        super().__init__(detail)


class TemplateStoreUnavailable(MessageBrokerError):
    """The template store could not be read or written"""
