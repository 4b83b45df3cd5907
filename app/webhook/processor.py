"""
Event Router Module

This module walks a verified webhook delivery and dispatches each
sub-event to its handler:
- ``comments`` changes -> handle_comment
- ``mentions`` changes -> handle_mention
- messaging events with text -> handle_message

Design Decisions:
- Each handler invocation is isolated; a failure is logged and counted,
  and sibling sub-events still run
- Outbound failures come back as SendResult values and are logged and
  dropped here, never retried
- No deduplication: a redelivered event is processed again
"""

from typing import Any, Awaitable, Callable, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel, ValidationError

from app.config import Settings
from app.logging_config import get_logger
from app.models import (
    ChangeField,
    CommentValue,
    DispatchReport,
    Entry,
    FieldChange,
    InboundEvent,
    MentionValue,
    MessagingEvent,
    SendResult,
)
from app.services.reply_policy import ReplyPolicy

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


class Messenger(Protocol):
    """Outbound side the router sends through."""

    async def send_direct_message(self, recipient_id: str, text: str) -> SendResult:
        ...

    async def reply_to_comment(self, comment_id: str, text: str) -> SendResult:
        ...


class EventRouter:
    """
    Dispatches webhook sub-events to handlers.

    Usage:
        router = EventRouter(settings, InstagramClient(settings), KeywordReplyPolicy())
        report = await router.dispatch(event)
    """

    def __init__(self, settings: Settings, messenger: Messenger, policy: ReplyPolicy):
        self.settings = settings
        self.messenger = messenger
        self.policy = policy

    async def dispatch(self, event: InboundEvent) -> DispatchReport:
        """
        Dispatch every qualifying sub-event of a delivery.

        Args:
            event: Decoded, signature-verified delivery

        Returns:
            DispatchReport with invocation counts and outbound results
        """
        report = DispatchReport()

        if event.object != self.settings.supported_object:
            logger.info("Ignoring unsupported webhook object", object=event.object)
            return report

        for entry in event.entries:
            await self._dispatch_entry(entry, report)

        logger.info(
            "Webhook event dispatched",
            entries=len(event.entries),
            invoked=report.invoked,
            failed=report.failed,
            skipped=report.skipped,
            failed_calls=len(report.failed_calls)
        )
        return report

    async def _dispatch_entry(self, entry: Entry, report: DispatchReport) -> None:
        for raw_change in entry.changes:
            change = self._decode(FieldChange, raw_change, entry, report)
            if change is None:
                continue
            kind = change.kind
            if kind == ChangeField.COMMENTS:
                await self._run_isolated("comment", self._on_comment, change, entry, report)
            elif kind == ChangeField.MENTIONS:
                await self._run_isolated("mention", self._on_mention, change, entry, report)
            else:
                logger.debug("Ignoring change field", field=change.field, entry_id=entry.id)
                report.skipped += 1

        for raw_event in entry.messaging_events:
            messaging_event = self._decode(MessagingEvent, raw_event, entry, report)
            if messaging_event is None:
                continue
            if messaging_event.message_text is None:
                logger.debug("Skipping non-text messaging event", entry_id=entry.id)
                report.skipped += 1
                continue
            if messaging_event.is_echo:
                logger.debug("Skipping echo of our own message", entry_id=entry.id)
                report.skipped += 1
                continue
            await self._run_isolated("message", self.handle_message, messaging_event, entry, report)

    def _decode(self, model: Type[M], raw: Any, entry: Entry, report: DispatchReport) -> Optional[M]:
        """Decode one sub-event; a malformed one is skipped on its own."""
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                "Skipping malformed sub-event",
                model=model.__name__,
                entry_id=entry.id,
                error_count=e.error_count()
            )
            report.skipped += 1
            return None

    async def _run_isolated(
        self,
        name: str,
        handler: Callable[[Any], Awaitable[List[SendResult]]],
        payload: Any,
        entry: Entry,
        report: DispatchReport
    ) -> None:
        """Run one handler; never let its failure escape."""
        report.invoked[name] = report.invoked.get(name, 0) + 1
        try:
            results = await handler(payload)
        except Exception as e:
            report.failed += 1
            logger.error(
                "Event handler failed",
                handler=name,
                entry_id=entry.id,
                error=str(e),
                error_type=type(e).__name__
            )
            return

        for result in results:
            report.results.append(result)
            if not result.success:
                logger.warning(
                    "Outbound call failed, dropping",
                    handler=name,
                    kind=result.call.kind,
                    target_id=result.target_id,
                    status_code=result.status_code,
                    error=result.error
                )

    async def _on_comment(self, change: FieldChange) -> List[SendResult]:
        return await self.handle_comment(change.as_comment())

    async def _on_mention(self, change: FieldChange) -> List[SendResult]:
        return await self.handle_mention(change.as_mention())

    # =========================================================================
    # Handlers
    # =========================================================================

    async def handle_comment(self, comment: CommentValue) -> List[SendResult]:
        """
        DM the author and reply publicly when a comment triggers outreach.

        Both calls are attempted even if the first one fails.
        """
        logger.info(
            "New comment",
            comment_id=comment.comment_id,
            author_id=comment.author_id,
            text_length=len(comment.text)
        )

        account_id = self.settings.instagram_account_id
        if account_id and comment.author_id == account_id:
            logger.debug("Skipping comment authored by our own account", comment_id=comment.comment_id)
            return []

        if not self.policy.should_act(comment.text):
            return []

        logger.info("Comment triggers DM automation", comment_id=comment.comment_id)

        results = []
        if self.settings.enable_direct_messages:
            dm = await self.messenger.send_direct_message(
                comment.author_id,
                self.policy.respond(comment.text)
            )
            if dm.success:
                logger.info("DM sent", recipient_id=comment.author_id)
            results.append(dm)

        if self.settings.enable_comment_replies:
            reply = await self.messenger.reply_to_comment(
                comment.comment_id,
                self.policy.comment_reply(comment.text)
            )
            if reply.success:
                logger.info("Comment reply sent", comment_id=comment.comment_id)
            results.append(reply)

        return results

    async def handle_mention(self, mention: MentionValue) -> List[SendResult]:
        """Reply under a mentioning comment when its text triggers outreach."""
        logger.info(
            "New mention",
            comment_id=mention.comment_id,
            media_id=mention.media_id
        )

        if not mention.comment_id or not mention.text:
            return []
        if not self.policy.should_act(mention.text):
            return []
        if not self.settings.enable_comment_replies:
            return []

        reply = await self.messenger.reply_to_comment(
            mention.comment_id,
            self.policy.respond(mention.text)
        )
        return [reply]

    async def handle_message(self, event: MessagingEvent) -> List[SendResult]:
        """Answer an inbound direct message."""
        text: Optional[str] = event.message_text
        logger.info("DM received", sender_id=event.sender_id, text_length=len(text or ""))

        if not text or not self.settings.enable_direct_messages:
            return []

        result = await self.messenger.send_direct_message(
            event.sender_id,
            self.policy.auto_reply(text)
        )
        return [result]
