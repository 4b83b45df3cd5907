"""
Reply Policy Module

Decides whether an incoming comment should trigger outreach and which
canned text to send. Everything here is pure: no I/O, no state.

The router only depends on the ``ReplyPolicy`` protocol, so a different
policy can be dropped in without touching dispatch.
"""

import re
from typing import Protocol, Tuple


TRIGGER_PHRASES: Tuple[str, ...] = (
    "dm me",
    "send info",
    "more details",
    "interested",
    "price",
    "how much",
    "info please",
    "tell me more",
)

PRICING_RESPONSE = """Hi! 👋 I saw you asked about pricing. Here are our options:

🔥 Basic: $29/month
⭐ Pro: $59/month
💎 Enterprise: $99/month

Which one interests you?"""

DEFAULT_RESPONSE = (
    "Hi! 👋 Thanks for your comment! I'd love to help you out. "
    "What can I assist you with?"
)

COMMENT_ACKNOWLEDGMENT = "Thanks for your comment! Check your DMs 📩"

GREETING_REPLY = "Hey there! 👋 How can I help you today?"

DEFAULT_MESSAGE_REPLY = "Thanks for your message! I'm here to help. What can I do for you?"

_GREETING_PATTERN = re.compile(r"\b(hello|hi)\b")


class ReplyPolicy(Protocol):
    """What the event router needs from a reply policy."""

    def should_act(self, text: str) -> bool:
        ...

    def respond(self, text: str) -> str:
        ...

    def comment_reply(self, text: str) -> str:
        ...

    def auto_reply(self, text: str) -> str:
        ...


class KeywordReplyPolicy:
    """
    Keyword-driven reply policy.

    Usage:
        policy = KeywordReplyPolicy()
        if policy.should_act(comment.text):
            dm_text = policy.respond(comment.text)
    """

    def __init__(self, triggers: Tuple[str, ...] = TRIGGER_PHRASES):
        self.triggers = tuple(t.lower() for t in triggers)

    def should_act(self, text: str) -> bool:
        """True if the text contains any trigger phrase, ignoring case."""
        lowered = text.lower()
        return any(trigger in lowered for trigger in self.triggers)

    def respond(self, text: str) -> str:
        """DM sent to someone whose comment triggered outreach."""
        if "price" in text.lower():
            return PRICING_RESPONSE
        return DEFAULT_RESPONSE

    def comment_reply(self, text: str) -> str:
        """Public reply left under a triggering comment."""
        return COMMENT_ACKNOWLEDGMENT

    def auto_reply(self, text: str) -> str:
        """Reply to an inbound direct message."""
        if _GREETING_PATTERN.search(text.lower()):
            return GREETING_REPLY
        return DEFAULT_MESSAGE_REPLY
