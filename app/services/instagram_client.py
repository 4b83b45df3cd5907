"""
Instagram Graph API Client Module

This module sends direct messages and comment replies through the
Meta Graph API.

Design Decisions:
- Use httpx for async HTTP requests with an explicit timeout
- Exactly one attempt per call; no retries, no rate limiting
- Every call returns a SendResult instead of raising, so callers make
  the log-and-drop decision explicitly
- Access token goes in the Authorization header, never the URL
"""

from typing import Any, Dict, Optional

import httpx

from app.config import Settings
from app.logging_config import get_logger
from app.models import CommentReply, DirectMessage, OutboundCall, SendResult

logger = get_logger(__name__)


class InstagramAPIError(Exception):
    """Custom exception for Graph API errors."""
    def __init__(self, message: str, status_code: int = None, response_body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


def _error_detail(response: httpx.Response) -> Any:
    """Pull the Graph API error object out of a response, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    return body


class InstagramClient:
    """
    Async Graph API client for Instagram messaging.

    Usage:
        client = InstagramClient(settings)
        result = await client.send_direct_message("1784...", "Hi!")
        if not result.success:
            logger.warning("DM failed", error=result.error)
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the client.

        Args:
            settings: Application settings (token, base URL, timeout)
            transport: Optional httpx transport, used by tests
        """
        self.settings = settings
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.page_access_token}",
            "Content-Type": "application/json",
        }

    async def _request(self, endpoint: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a JSON payload to the Graph API.

        Args:
            endpoint: API path (without base URL)
            payload: JSON body

        Returns:
            Decoded JSON response

        Raises:
            InstagramAPIError: On transport failure or HTTP status >= 400
        """
        url = f"{self.settings.graph_api_base}{endpoint}"

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.http_timeout_seconds,
                transport=self._transport
            ) as client:
                response = await client.post(url, json=payload, headers=self._get_headers())
        except httpx.HTTPError as e:
            raise InstagramAPIError(
                f"Graph API request failed: {type(e).__name__}: {e}"
            ) from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            message = detail.get("message") if isinstance(detail, dict) else None
            raise InstagramAPIError(
                message or f"Graph API error: {response.status_code}",
                status_code=response.status_code,
                response_body=detail
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        return data if isinstance(data, dict) else {"data": data}

    async def send(self, call: OutboundCall) -> SendResult:
        """
        Perform one outbound call.

        Args:
            call: DirectMessage or CommentReply

        Returns:
            SendResult describing success or failure
        """
        if isinstance(call, DirectMessage):
            endpoint = "/me/messages"
            payload = {
                "recipient": {"id": call.recipient_id},
                "message": {"text": call.text},
            }
        else:
            endpoint = f"/{call.comment_id}/replies"
            payload = {"message": call.text}

        if self.settings.dry_run:
            logger.info("Dry run, not sending", kind=call.kind, endpoint=endpoint)
            return SendResult(call=call, success=True)

        try:
            data = await self._request(endpoint, payload)
        except InstagramAPIError as e:
            logger.error(
                "Graph API call failed",
                kind=call.kind,
                endpoint=endpoint,
                status_code=e.status_code,
                error=str(e),
                detail=e.response_body
            )
            return SendResult(
                call=call,
                success=False,
                status_code=e.status_code,
                error=str(e),
                response=e.response_body if isinstance(e.response_body, dict) else None
            )

        logger.debug("Graph API call succeeded", kind=call.kind, endpoint=endpoint)
        return SendResult(call=call, success=True, response=data)

    async def send_direct_message(self, recipient_id: str, text: str) -> SendResult:
        """Send a direct message to an Instagram-scoped user ID."""
        return await self.send(DirectMessage(recipient_id=recipient_id, text=text))

    async def reply_to_comment(self, comment_id: str, text: str) -> SendResult:
        """Post a public reply under a comment."""
        return await self.send(CommentReply(comment_id=comment_id, text=text))
