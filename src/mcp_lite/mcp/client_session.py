"""
Client session used for every mcp-lite server connection.

Extends the MCP SDK client session with request and notification logging
tagged with the server name.
"""

from typing import Optional

from mcp import ClientSession
from mcp.shared.session import SendNotificationT, SendRequestT, ReceiveResultT

from mcp_lite.utils.logging import get_logger

logger = get_logger(__name__)


class McpLiteClientSession(ClientSession):
    """
    Client session for mcp-lite connections to MCP servers.

    The hub creates one per server through ``client_session_factory``
    and sets ``server_name`` right after construction.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.server_name: Optional[str] = None

    @property
    def _log_prefix(self) -> str:
        return self.server_name or "mcp"

    async def send_request(
        self,
        request: SendRequestT,
        result_type: type[ReceiveResultT],
        *args,
        **kwargs,
    ) -> ReceiveResultT:
        logger.debug(f"{self._log_prefix}: send_request:", data=request.model_dump())
        try:
            result = await super().send_request(request, result_type, *args, **kwargs)
        except Exception as e:
            logger.error(f"{self._log_prefix}: send_request failed: {e}")
            raise
        logger.debug(f"{self._log_prefix}: send_request response:", data=result.model_dump())
        return result

    async def send_notification(self, notification: SendNotificationT, *args, **kwargs) -> None:
        logger.debug(f"{self._log_prefix}: send_notification:", data=notification.model_dump())
        try:
            return await super().send_notification(notification, *args, **kwargs)
        except Exception as e:
            logger.error(f"{self._log_prefix}: send_notification failed: {e}")
            raise

    async def _received_notification(self, notification) -> None:
        logger.info(
            f"{self._log_prefix}: received notification:",
            data=notification.model_dump(),
        )
        return await super()._received_notification(notification)
