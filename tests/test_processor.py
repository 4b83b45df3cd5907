"""
Tests for Event Router

Tests dispatch decisions and per-handler failure isolation.
"""

import pytest

from app.config import Settings
from app.models import InboundEvent
from app.services.reply_policy import COMMENT_ACKNOWLEDGMENT, PRICING_RESPONSE, KeywordReplyPolicy
from app.webhook.processor import EventRouter
from conftest import ACCOUNT_ID, RecordingMessenger, comment_change, message_event


def make_event(*entries: dict, object_type: str = "instagram") -> InboundEvent:
    return InboundEvent.model_validate({"object": object_type, "entry": list(entries)})


@pytest.fixture
def event_router(settings: Settings, messenger: RecordingMessenger) -> EventRouter:
    return EventRouter(settings, messenger, KeywordReplyPolicy())


class TestDispatch:
    """Test suite for EventRouter.dispatch."""

    async def test_comment_triggers_dm_then_reply(self, event_router: EventRouter,
                                                  messenger: RecordingMessenger):
        event = make_event({"id": "1", "changes": [comment_change(text="What's the price?")]})

        report = await event_router.dispatch(event)

        assert report.invoked == {"comment": 1}
        assert [call.kind for call in messenger.calls] == ["direct_message", "comment_reply"]
        assert messenger.direct_messages[0].text == PRICING_RESPONSE
        assert messenger.comment_replies[0].text == COMMENT_ACKNOWLEDGMENT

    async def test_non_triggering_comment_sends_nothing(self, event_router: EventRouter,
                                                        messenger: RecordingMessenger):
        event = make_event({"changes": [comment_change(text="nice photo")]})

        report = await event_router.dispatch(event)

        assert report.invoked == {"comment": 1}
        assert messenger.calls == []

    async def test_unsupported_object_ignored(self, event_router: EventRouter,
                                              messenger: RecordingMessenger):
        event = make_event(
            {"changes": [comment_change()], "messaging": [message_event()]},
            object_type="page"
        )

        report = await event_router.dispatch(event)

        assert report.total_invoked == 0
        assert messenger.calls == []

    async def test_entry_with_changes_and_messaging(self, event_router: EventRouter,
                                                    messenger: RecordingMessenger):
        event = make_event({
            "changes": [comment_change()],
            "messaging": [message_event(sender_id="555")],
        })

        report = await event_router.dispatch(event)

        assert report.invoked == {"comment": 1, "message": 1}
        assert [dm.recipient_id for dm in messenger.direct_messages] == ["9001", "555"]

    async def test_unknown_field_and_non_text_events_skipped(self, event_router: EventRouter,
                                                             messenger: RecordingMessenger):
        event = make_event({
            "changes": [{"field": "story_insights", "value": {"reach": 5}}],
            "messaging": [
                {"sender": {"id": "1"}, "read": {"mid": "m_1"}},
                {"sender": {"id": "2"}, "message": {"mid": "m_2", "attachments": []}},
                {"sender": {"id": "3"}, "message": {"mid": "m_3", "text": ""}},
            ],
        })

        report = await event_router.dispatch(event)

        assert report.total_invoked == 0
        assert report.skipped == 4
        assert messenger.calls == []

    async def test_echo_messages_skipped(self, event_router: EventRouter,
                                         messenger: RecordingMessenger):
        event = make_event({"messaging": [{
            "sender": {"id": ACCOUNT_ID},
            "message": {"mid": "m_1", "text": "hello", "is_echo": True},
        }]})

        report = await event_router.dispatch(event)

        assert report.skipped == 1
        assert messenger.calls == []

    async def test_mention_with_trigger_text_replied(self, event_router: EventRouter,
                                                     messenger: RecordingMessenger):
        event = make_event({"changes": [{
            "field": "mentions",
            "value": {"comment_id": "c1", "media_id": "m1", "text": "@shop price?"},
        }]})

        report = await event_router.dispatch(event)

        assert report.invoked == {"mention": 1}
        assert [(r.comment_id, r.text) for r in messenger.comment_replies] == [("c1", PRICING_RESPONSE)]

    async def test_mention_without_text_only_logged(self, event_router: EventRouter,
                                                    messenger: RecordingMessenger):
        event = make_event({"changes": [{
            "field": "mentions",
            "value": {"comment_id": "c1", "media_id": "m1"},
        }]})

        report = await event_router.dispatch(event)

        assert report.invoked == {"mention": 1}
        assert messenger.calls == []

    async def test_redelivery_is_not_deduplicated(self, event_router: EventRouter,
                                                  messenger: RecordingMessenger):
        event = make_event({"changes": [comment_change()]})

        await event_router.dispatch(event)
        await event_router.dispatch(event)

        assert len(messenger.comment_replies) == 2


class TestFailureIsolation:
    """Test suite for per-handler isolation."""

    async def test_failing_comment_does_not_block_message(self, event_router: EventRouter,
                                                          messenger: RecordingMessenger):
        broken_comment = {"field": "comments", "value": {"id": "1", "text": "dm me"}}
        event = make_event(
            {"id": "e1", "changes": [broken_comment]},
            {"id": "e2", "messaging": [message_event(sender_id="777")]},
        )

        report = await event_router.dispatch(event)

        assert report.invoked == {"comment": 1, "message": 1}
        assert report.failed == 1
        assert [dm.recipient_id for dm in messenger.direct_messages] == ["777"]

    async def test_message_without_sender_does_not_block_comment(self, event_router: EventRouter,
                                                                 messenger: RecordingMessenger):
        event = make_event(
            {"id": "e1", "changes": [comment_change()]},
            {"id": "e2", "messaging": [{"message": {"mid": "m_1", "text": "hello"}}]},
        )

        report = await event_router.dispatch(event)

        assert report.skipped == 1
        assert [call.kind for call in messenger.calls] == ["direct_message", "comment_reply"]

    async def test_null_comment_value_does_not_block_message(self, event_router: EventRouter,
                                                             messenger: RecordingMessenger):
        event = make_event(
            {"id": "e1", "changes": [{"field": "comments", "value": None}, "not a change"]},
            {"id": "e2", "messaging": [message_event(sender_id="888")]},
        )

        report = await event_router.dispatch(event)

        assert report.failed == 1
        assert report.skipped == 1
        assert [dm.recipient_id for dm in messenger.direct_messages] == ["888"]

    async def test_raising_handler_isolated(self, event_router: EventRouter,
                                            messenger: RecordingMessenger, monkeypatch):
        async def boom(comment):
            raise RuntimeError("handler exploded")

        monkeypatch.setattr(event_router, "handle_comment", boom)
        event = make_event(
            {"changes": [comment_change(), comment_change(comment_id="2")]},
            {"messaging": [message_event()]},
        )

        report = await event_router.dispatch(event)

        assert report.failed == 2
        assert report.invoked["message"] == 1
        assert len(messenger.direct_messages) == 1

    async def test_failed_dm_still_replies_to_comment(self, settings: Settings):
        messenger = RecordingMessenger(fail_kinds=("direct_message",))
        event_router = EventRouter(settings, messenger, KeywordReplyPolicy())
        event = make_event({"changes": [comment_change()]})

        report = await event_router.dispatch(event)

        assert [call.kind for call in messenger.calls] == ["direct_message", "comment_reply"]
        assert report.failed == 0
        assert len(report.failed_calls) == 1
        assert report.failed_calls[0].call.kind == "direct_message"


class TestFeatureFlags:
    """Test suite for outbound feature flags."""

    async def test_comment_replies_disabled(self, settings: Settings, messenger: RecordingMessenger):
        settings = settings.model_copy(update={"enable_comment_replies": False})
        event_router = EventRouter(settings, messenger, KeywordReplyPolicy())

        await event_router.dispatch(make_event({"changes": [comment_change()]}))

        assert [call.kind for call in messenger.calls] == ["direct_message"]

    async def test_direct_messages_disabled(self, settings: Settings, messenger: RecordingMessenger):
        settings = settings.model_copy(update={"enable_direct_messages": False})
        event_router = EventRouter(settings, messenger, KeywordReplyPolicy())

        await event_router.dispatch(make_event(
            {"changes": [comment_change()], "messaging": [message_event()]}
        ))

        assert [call.kind for call in messenger.calls] == ["comment_reply"]
