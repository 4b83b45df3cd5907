"""
Instagram DM Bot

A webhook receiver that turns Instagram comments, mentions and direct
messages into automated direct-message and comment replies.
"""

__version__ = "1.0.0"
__author__ = "Instagram DM Bot Team"
