"""
================================================================================
SHARED STRUCTURED CALL
================================================================================
One round trip to the Anthropic Messages API with the response shape enforced
by a forced tool call: the tool's input_schema IS the response schema, and the
tool input is the response body.

No retries here. Transport problems → TransportFailure, anything that is not
the declared shape → MalformedResponse. Callers decide what happens next.

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any, Dict, List, Optional, Type

import anthropic
from pydantic import BaseModel, ValidationError

from schemas.errors import ConfigError, MalformedResponse, TransportFailure

logger = logging.getLogger("wr_tactician.agents")


class StructuredAgent:
    """Base for agents that ask the model for one schema-shaped JSON object."""

    name = "structured_agent"
    tool_name = "report"
    tool_description = ""
    response_schema: Dict[str, Any] = {}
    result_model: Type[BaseModel] = BaseModel

    def __init__(self, llm_client=None, model: str = "claude-sonnet-4-20250514", max_tokens: int = 2048):
        self.llm_client = llm_client
        self.model = model
        self.max_tokens = max_tokens
        self.last_latency_ms: float = 0.0

    def _tool(self) -> Dict[str, Any]:
        return {
            "name": self.tool_name,
            "description": self.tool_description,
            "input_schema": self.response_schema,
        }

    async def _call(self, content: List[Dict[str, Any]]) -> BaseModel:
        if self.llm_client is None:
            raise ConfigError(f"{self.name} has no model client")

        start = time.time()
        try:
            response = await self.llm_client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                tools=[self._tool()],
                tool_choice={"type": "tool", "name": self.tool_name},
                messages=[{"role": "user", "content": content}],
            )
        except (anthropic.APIError, asyncio.TimeoutError, OSError) as e:
            raise TransportFailure(f"{self.name} request failed: {e}") from e
        finally:
            self.last_latency_ms = (time.time() - start) * 1000

        body = self._extract_body(response)
        try:
            result = self.result_model.model_validate(body)
        except ValidationError as e:
            raise MalformedResponse(f"{self.name} response does not match schema: {e}") from e

        logger.info(f"🧠 {self.name} answered in {self.last_latency_ms:.0f}ms")
        return result

    def _extract_body(self, response) -> Dict[str, Any]:
        """Pull the JSON object out of the tool call (or a bare JSON text block)."""
        blocks = getattr(response, "content", None) or []

        body: Optional[Any] = None
        for block in blocks:
            if getattr(block, "type", None) == "tool_use" and getattr(block, "name", self.tool_name) == self.tool_name:
                body = block.input
                break

        if body is None:
            text = "".join(getattr(b, "text", "") for b in blocks if getattr(b, "type", None) == "text")
            if not text.strip():
                raise MalformedResponse(f"{self.name} response carried no structured output")
            body = _strip_code_fence(text)

        if isinstance(body, (str, bytes)):
            try:
                body = json.loads(body)
            except json.JSONDecodeError as e:
                raise MalformedResponse(f"{self.name} response is not JSON: {e}") from e

        if not isinstance(body, dict):
            raise MalformedResponse(f"{self.name} response is {type(body).__name__}, expected object")
        return body


def _strip_code_fence(text: str) -> str:
    match = re.search(r"```(?:json)?\s*\n?(.*?)\n?```", text, re.DOTALL)
    return match.group(1) if match else text.strip()
