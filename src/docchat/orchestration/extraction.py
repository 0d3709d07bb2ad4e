"""Turns the newest thread message into a transcript record."""

import logging
from typing import List

from ..models import AgentMessage, ImagePart, MessageRole, TextPart, ThreadMessage

logger = logging.getLogger(__name__)

DEFAULT_NO_RESPONSE_TEXT = "No response received from assistant."


def render_parts(message: ThreadMessage) -> str:
    """Concatenate content parts in order; images become a placeholder naming the file id."""
    rendered = []
    for part in message.parts:
        if isinstance(part, TextPart):
            rendered.append(part.text)
        elif isinstance(part, ImagePart):
            rendered.append(f"<image from ID: {part.file_id}>")
    return "".join(rendered)


def extract_response(
    recent_messages: List[ThreadMessage],
    no_response_text: str = DEFAULT_NO_RESPONSE_TEXT,
) -> AgentMessage:
    """
    Build the assistant's reply from the most recent thread message.

    When the newest message is the user's own (the run produced no reply) a
    System record carrying ``no_response_text`` is returned instead of failing.
    """
    if not recent_messages or recent_messages[0].role == MessageRole.USER:
        logger.warning("No assistant reply found after completed run")
        return AgentMessage(role=MessageRole.SYSTEM, content=no_response_text)

    latest = recent_messages[0]
    return AgentMessage(
        role=MessageRole.ASSISTANT,
        content=render_parts(latest),
        timestamp=latest.created_at,
    )
