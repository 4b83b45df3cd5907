"""
Services Package

This package contains the service modules for the Instagram DM bot:
- instagram_client: Graph API client for DMs and comment replies
- reply_policy: Keyword triggers and canned responses
"""

from app.services.instagram_client import InstagramAPIError, InstagramClient
from app.services.reply_policy import KeywordReplyPolicy, ReplyPolicy

__all__ = [
    "InstagramAPIError",
    "InstagramClient",
    "KeywordReplyPolicy",
    "ReplyPolicy",
]
