"""
Webhook Package

This package contains webhook handling components:
- handler: FastAPI route handlers
- security: Signature and subscription verification
- processor: Event routing to comment / mention / message handlers
"""

from app.webhook.handler import router

__all__ = ["router"]
