"""
Data Models Module

This module defines all Pydantic models used throughout the application.
The delivery envelope is decoded at the HTTP boundary; each change and
messaging event is decoded on its own by the router, so downstream code
works on typed values instead of raw dicts.

Design Decisions:
- Inbound models are frozen and ignore unknown keys (Meta adds fields freely)
- Optional attributes default to empty so missing data is skipped, not fatal
- Sub-events stay raw in the envelope and entries that do not decode are
  dropped, so one malformed item cannot reject the whole delivery
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError


# =============================================================================
# Enums
# =============================================================================

class ChangeField(str, Enum):
    """Change fields we dispatch on."""
    COMMENTS = "comments"
    MENTIONS = "mentions"
    OTHER = "other"


class _InboundModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


# =============================================================================
# Webhook Payload Models
# =============================================================================

class InstagramUser(_InboundModel):
    """Instagram-scoped user reference."""
    id: str
    username: Optional[str] = None


class CommentMedia(_InboundModel):
    """Media a comment was left on."""
    id: str
    media_product_type: Optional[str] = None


class CommentValue(_InboundModel):
    """Value of a ``comments`` change."""
    comment_id: str = Field(alias="id")
    text: str = ""
    author: InstagramUser = Field(alias="from")
    media: Optional[CommentMedia] = None
    parent_id: Optional[str] = None

    @property
    def author_id(self) -> str:
        return self.author.id


class MentionValue(_InboundModel):
    """Value of a ``mentions`` change."""
    comment_id: Optional[str] = None
    media_id: Optional[str] = None
    text: Optional[str] = None


class FieldChange(_InboundModel):
    """
    A single field change inside an entry.

    ``value`` is kept opaque; use ``as_comment`` / ``as_mention`` to decode
    it for the matching field.
    """
    field: str
    value: Any = None

    @property
    def kind(self) -> ChangeField:
        try:
            return ChangeField(self.field)
        except ValueError:
            return ChangeField.OTHER

    def as_comment(self) -> CommentValue:
        return CommentValue.model_validate(self.value)

    def as_mention(self) -> MentionValue:
        return MentionValue.model_validate(self.value)


class MessagePayload(_InboundModel):
    """The ``message`` object of a messaging event."""
    mid: Optional[str] = None
    text: Optional[str] = None
    is_echo: bool = False


class MessagingEvent(_InboundModel):
    """A direct-message event from the ``messaging`` array."""
    sender: InstagramUser
    recipient: Optional[InstagramUser] = None
    timestamp: Optional[int] = None
    message: Optional[MessagePayload] = None

    @property
    def sender_id(self) -> str:
        return self.sender.id

    @property
    def message_text(self) -> Optional[str]:
        """Text of the message, or None for non-text events."""
        if self.message is None or not self.message.text:
            return None
        return self.message.text

    @property
    def is_echo(self) -> bool:
        return self.message is not None and self.message.is_echo


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


RawItems = Annotated[List[Any], BeforeValidator(_as_list)]


class Entry(_InboundModel):
    """
    One unit of activity in a delivery.

    An entry may carry both ``changes`` and ``messaging``; both are processed.
    Items are kept raw; decode them with ``FieldChange.model_validate`` and
    ``MessagingEvent.model_validate`` one at a time.
    """
    id: Optional[str] = None
    time: Optional[int] = None
    changes: RawItems = Field(default_factory=list)
    messaging_events: RawItems = Field(default_factory=list, alias="messaging")


def _decodable_entries(value: Any) -> List[Any]:
    """Drop entries that are not objects or whose envelope does not decode."""
    entries = []
    for item in _as_list(value):
        try:
            entries.append(Entry.model_validate(item))
        except ValidationError:
            continue
    return entries


class InboundEvent(_InboundModel):
    """Complete webhook delivery payload."""
    object: str
    entries: Annotated[List[Entry], BeforeValidator(_decodable_entries)] = Field(
        default_factory=list, alias="entry"
    )


# =============================================================================
# Outbound Call Models
# =============================================================================

class DirectMessage(BaseModel):
    """Send a direct message to an Instagram user."""
    kind: Literal["direct_message"] = "direct_message"
    recipient_id: str
    text: str = Field(min_length=1)


class CommentReply(BaseModel):
    """Post a public reply under a comment."""
    kind: Literal["comment_reply"] = "comment_reply"
    comment_id: str
    text: str = Field(min_length=1)


OutboundCall = Union[DirectMessage, CommentReply]


class SendResult(BaseModel):
    """
    Outcome of a single outbound call.

    Callers decide what to do with a failure; the client never retries.
    """
    call: OutboundCall = Field(discriminator="kind")
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    response: Optional[Dict[str, Any]] = None

    @property
    def target_id(self) -> str:
        if isinstance(self.call, DirectMessage):
            return self.call.recipient_id
        return self.call.comment_id


# =============================================================================
# Internal Processing Models
# =============================================================================

class DispatchReport(BaseModel):
    """
    Summary of one delivery's dispatch.

    Attributes:
        invoked: Handler invocations attempted, keyed by handler name
        failed: Handler invocations that raised
        skipped: Sub-events ignored (unknown field, non-text message, echo)
        results: Every outbound call result, in send order
    """
    invoked: Dict[str, int] = Field(default_factory=dict)
    failed: int = 0
    skipped: int = 0
    results: List[SendResult] = Field(default_factory=list)

    @property
    def total_invoked(self) -> int:
        return sum(self.invoked.values())

    @property
    def failed_calls(self) -> List[SendResult]:
        return [r for r in self.results if not r.success]
