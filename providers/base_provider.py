"""
Base provider interface for chat backends.
Defines the session and streaming contract the conversation drives.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from stream_debug import StreamTracer
    from providers.models import ModelConfig


class BaseProvider(ABC):
    """Abstract base class for chat backends"""

    @abstractmethod
    async def create_session(self, request_id: str) -> str:
        """Create a server-side conversation session

        Args:
            request_id: Request ID for logging

        Returns:
            The new session ID

        Raises:
            SessionFault: If the session could not be created
        """
        pass

    @abstractmethod
    def open_stream(
        self,
        session_id: str,
        query: str,
        model_config: "ModelConfig",
        request_id: str,
        tracer: Optional["StreamTracer"] = None,
    ) -> AsyncIterator[str]:
        """Send a query and stream the raw SSE text back

        Args:
            session_id: Session the query belongs to
            query: The user's question
            model_config: Model selection and generation options
            request_id: Request ID for logging
            tracer: Optional stream tracer for debugging

        Yields:
            Text chunks exactly as received, not aligned to frames

        Raises:
            TransportFault: On a non-success response or a broken connection
        """
        pass
