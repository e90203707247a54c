import json
import logging
from typing import Any, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, field_validator

from ..config import AgentConfig
from ..errors import TransportError

logger = logging.getLogger(__name__)

NO_RESPONSE_TEXT = "No response received"
PROCESSING_ERROR_TEXT = "Error processing request"


def _is_set(value: Any) -> bool:
    """Whether a JSON value counts as present in the endpoint's reply.

    Only null, false, "", 0 and NaN are empty; empty objects and arrays count.
    """
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and value == value
    if isinstance(value, str):
        return value != ""
    return True


def _as_text(value: Any) -> Optional[str]:
    """Text for a present payload value, ``None`` for empty or missing ones."""
    if not _is_set(value):
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class AgentResponseBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    result: Optional[str] = None
    answer: Optional[str] = None
    response: Optional[str] = None

    @field_validator("result", "answer", "response", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Optional[str]:
        return _as_text(value)


class AgentResponse(BaseModel):
    """Reply envelope; endpoints populate different subsets of these fields."""

    model_config = ConfigDict(extra="ignore")

    success: bool = False
    response: Union[AgentResponseBody, str, None] = None
    raw_response: Optional[str] = None

    @field_validator("success", mode="before")
    @classmethod
    def _truthy(cls, value: Any) -> bool:
        return _is_set(value)

    @field_validator("response", mode="before")
    @classmethod
    def _tag_response(cls, value: Any) -> Union[AgentResponseBody, str, None]:
        if isinstance(value, dict):
            return AgentResponseBody.model_validate(value)
        if isinstance(value, str):
            return value or None
        return None

    @field_validator("raw_response", mode="before")
    @classmethod
    def _coerce_raw(cls, value: Any) -> Optional[str]:
        return _as_text(value)

    @classmethod
    def from_payload(cls, payload: Any) -> "AgentResponse":
        if not isinstance(payload, dict):
            return cls()
        return cls.model_validate(payload)

    def text(self) -> str:
        if not self.success:
            return self.raw_response or PROCESSING_ERROR_TEXT

        if isinstance(self.response, AgentResponseBody):
            candidates = [self.response.result, self.response.answer, self.response.response]
        elif isinstance(self.response, str):
            candidates = [self.response]
        else:
            candidates = []
        candidates.append(self.raw_response)

        for candidate in candidates:
            if candidate:
                return candidate
        return NO_RESPONSE_TEXT


class AgentGateway:
    """Single request/response exchange with the inference endpoint."""

    def __init__(
        self,
        endpoint_url: str,
        agent_id: str,
        user_id: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.agent_id = agent_id
        self.user_id = user_id
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_config(cls, config: AgentConfig, client: Optional[httpx.AsyncClient] = None) -> "AgentGateway":
        return cls(
            endpoint_url=config.endpoint_url,
            agent_id=config.agent_id,
            user_id=config.user_id,
            timeout=config.timeout,
            client=client,
        )

    async def send(self, composed_text: str, conversation_id: str) -> str:
        body = {
            "message": composed_text,
            "agent_id": self.agent_id,
            "user_id": self.user_id,
            "session_id": conversation_id,
        }
        try:
            resp = await self._client.post(self.endpoint_url, json=body)
        except httpx.HTTPError as e:
            raise TransportError(f"Agent request failed: {type(e).__name__}: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise TransportError(
                f"Agent returned a non-JSON body (HTTP {resp.status_code})"
            ) from e

        if resp.is_error:
            logger.warning("Agent endpoint answered HTTP %d for session %s", resp.status_code, conversation_id)

        reply = AgentResponse.from_payload(payload)
        logger.info(
            "Agent reply for session %s: success=%s, %d chars sent",
            conversation_id,
            reply.success,
            len(composed_text),
        )
        return reply.text()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
