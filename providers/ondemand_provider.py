"""
On-Demand chat API provider.
Creates sessions and streams query answers over Server-Sent Events.
"""
import logging
from typing import Dict, Any, Optional, AsyncIterator, TYPE_CHECKING

import httpx

from settings import (
    ONDEMAND_BASE_URL,
    ONDEMAND_API_KEY,
    STREAM_TIMEOUT,
    CONNECT_TIMEOUT,
    READ_TIMEOUT,
    REQUEST_TIMEOUT,
)
from chat.errors import SessionFault, TransportFault
from providers.base_provider import BaseProvider
from providers.models import ModelConfig, QueryRequest, SessionRequest

if TYPE_CHECKING:
    from stream_debug import StreamTracer

logger = logging.getLogger(__name__)


class OnDemandProvider(BaseProvider):
    """Provider implementation for the On-Demand chat API"""

    def __init__(
        self,
        base_url: str = ONDEMAND_BASE_URL,
        api_key: str = ONDEMAND_API_KEY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the provider

        Args:
            base_url: API base URL, e.g. https://api.on-demand.io/chat/v1
            api_key: API key sent in the ``apikey`` header
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.transport = transport
        if not api_key:
            logger.warning("ONDEMAND_API_KEY is not set; requests will be rejected by the server")

    def _get_headers(self, accept: str = "application/json") -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Content-Type": "application/json",
            "Accept": accept,
        }

    async def create_session(self, request_id: str) -> str:
        """Create a session for the fixed external user with no agents

        Args:
            request_id: Request ID for logging

        Returns:
            The session ID from ``data.id``
        """
        url = f"{self.base_url}/sessions"
        payload = SessionRequest().model_dump(by_alias=True)

        logger.debug(f"[{request_id}] Creating session at {url}")

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT),
                transport=self.transport,
            ) as client:
                response = await client.post(url, json=payload, headers=self._get_headers())
        except httpx.HTTPError as e:
            logger.error(f"[{request_id}] Session creation error: {e}")
            raise SessionFault(f"Session creation failed: {e}") from e

        if not response.is_success:
            body = response.text
            logger.error(f"[{request_id}] Session creation failed {response.status_code}: {body}")
            raise SessionFault(
                "Session creation failed: Failed to create session: "
                f"{response.status_code} {response.reason_phrase} {body}".rstrip()
            )

        try:
            result: Any = response.json()
        except ValueError as e:
            raise SessionFault(f"Session creation failed: Invalid session response: {e}") from e

        data = result.get("data") if isinstance(result, dict) else None
        session_id = data.get("id") if isinstance(data, dict) else None
        if not session_id:
            raise SessionFault("Session creation failed: Invalid session response: missing session ID")

        logger.info(f"[{request_id}] Created session {session_id}")
        return session_id

    async def open_stream(
        self,
        session_id: str,
        query: str,
        model_config: ModelConfig,
        request_id: str,
        tracer: Optional["StreamTracer"] = None,
    ) -> AsyncIterator[str]:
        """Stream the SSE answer to a query

        Args:
            session_id: Session the query belongs to
            query: The user's question
            model_config: Model selection and generation options
            request_id: Request ID for logging
            tracer: Optional stream tracer for debugging

        Yields:
            Raw text chunks from the response body
        """
        url = f"{self.base_url}/sessions/{session_id}/query"
        request = QueryRequest(query=query, **model_config.model_dump())
        payload = request.model_dump(by_alias=True)

        if tracer:
            tracer.log_note(f"starting query stream to {url}")
            tracer.log_note(f"endpointId={request.endpoint_id} reasoningMode={request.reasoning_mode}")

        logger.debug(f"[{request_id}] Streaming query to {url}")

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(STREAM_TIMEOUT, connect=CONNECT_TIMEOUT, read=READ_TIMEOUT),
            transport=self.transport,
        ) as client:
            try:
                async with client.stream(
                    "POST",
                    url,
                    json=payload,
                    headers=self._get_headers(accept="text/event-stream"),
                ) as response:
                    if tracer:
                        tracer.log_note(f"query responded with status={response.status_code}")

                    if not response.is_success:
                        error_text = (await response.aread()).decode("utf-8", "replace")
                        logger.error(f"[{request_id}] Query error {response.status_code}: {error_text}")
                        if tracer:
                            tracer.log_error(f"query error status={response.status_code} body={error_text}")
                        raise TransportFault(
                            f"Query failed: {response.status_code} {response.reason_phrase}\n{error_text}",
                            status_code=response.status_code,
                        )

                    chunk_index = 0
                    async for chunk in response.aiter_text():
                        chunk_index += 1
                        if tracer:
                            tracer.log_note(f"received chunk #{chunk_index}")
                            tracer.log_source_chunk(chunk)
                        yield chunk

            except httpx.ReadTimeout as e:
                if tracer:
                    tracer.log_error(f"stream read timeout after {READ_TIMEOUT}s")
                raise TransportFault(f"Stream timeout after {READ_TIMEOUT}s") from e

            except httpx.RemoteProtocolError as e:
                if tracer:
                    tracer.log_error(f"stream closed unexpectedly: {e}")
                raise TransportFault(f"Connection closed: {e}") from e

            except httpx.HTTPError as e:
                if tracer:
                    tracer.log_error(f"transport error: {e}")
                raise TransportFault(f"Network error: {e}") from e

            finally:
                if tracer:
                    tracer.log_note("query stream closed")
