"""Async DeepSeek client that turns a serialized dependency graph into insights."""

from __future__ import annotations

import asyncio
import json
import logging
import random
import re
from typing import Any

import httpx
from pydantic import ValidationError

from dep_insight.models import InsightPayload

from . import AIConfig, AIModel

logger = logging.getLogger(__name__)

_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)

SYSTEM_PROMPT = """You are an expert software architect reviewing the module dependency graph of a TypeScript project.

The graph is given as a JSON adjacency list: each key is a file path and its value is the list of files it imports.
You only see file paths and import relations, never source code.

Identify:
1. circularDependencies: each cycle written as "a.ts -> b.ts -> a.ts"
2. tightCoupling: modules with many dependents or many dependencies, with the count
3. recommendations: concrete, actionable refactoring suggestions

Respond with ONLY a JSON object of this exact shape:
{"circularDependencies": [string], "tightCoupling": [string], "recommendations": [string]}"""


class LLMError(Exception):
    """Failure talking to the LLM, tagged with a code and a retry hint."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.retryable = retryable

    @classmethod
    def network_error(cls, message: str) -> LLMError:
        return cls(message, "NETWORK_ERROR", retryable=True)

    @classmethod
    def timeout_error(cls, message: str) -> LLMError:
        return cls(message, "TIMEOUT", retryable=True)

    @classmethod
    def rate_limit_error(cls, message: str) -> LLMError:
        return cls(message, "RATE_LIMIT", status_code=429, retryable=True)

    @classmethod
    def authentication_error(cls, message: str, status_code: int = 401) -> LLMError:
        return cls(message, "AUTH_ERROR", status_code=status_code)

    @classmethod
    def empty_response_error(cls, message: str) -> LLMError:
        return cls(message, "EMPTY_RESPONSE")

    @classmethod
    def invalid_response_error(cls, message: str, status_code: int | None = None) -> LLMError:
        return cls(message, "INVALID_RESPONSE", status_code=status_code)

    @classmethod
    def invalid_input_error(cls, message: str) -> LLMError:
        return cls(message, "INVALID_INPUT")

    @classmethod
    def config_error(cls, message: str) -> LLMError:
        return cls(message, "CONFIG_ERROR")


def sanitize_graph_json(graph_json: str) -> str:
    """Reduce arbitrary JSON to a clean adjacency mapping before it leaves the process.

    Keys whose value is not a list are dropped, as are non-string list items.
    The result is compact JSON with key order preserved.
    """
    try:
        data = json.loads(graph_json)
    except ValueError as e:
        raise LLMError.invalid_input_error(f"Failed to sanitize graph JSON: {e}") from e

    if not isinstance(data, dict):
        raise LLMError.invalid_input_error("Failed to sanitize graph JSON: Graph must be an object")

    sanitized: dict[str, list[str]] = {}
    for path, deps in data.items():
        if not isinstance(deps, list):
            continue
        sanitized[path] = [d for d in deps if isinstance(d, str)]
    return json.dumps(sanitized, separators=(",", ":"))


def extract_json_object(text: str) -> str:
    """Return the outermost ``{...}`` span of ``text``, or ``text`` itself if none."""
    m = _JSON_OBJECT_RE.search(text)
    return m.group(0) if m else text


class LLMClient:
    """Async client for the DeepSeek API (OpenAI-compatible).

    Retryable failures (network, timeout, rate limit, 5xx) are retried with
    exponential backoff and jitter up to ``config.max_retries`` times; all
    other failures raise :class:`LLMError` immediately.
    """

    def __init__(
        self,
        config: AIConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or AIConfig()
        if not self.config.api_key:
            raise LLMError.config_error("DeepSeek API key is required (set DEEPSEEK_API_KEY)")
        self.client = httpx.AsyncClient(
            timeout=self.config.timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
        )

    async def __aenter__(self) -> LLMClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    async def analyze(self, graph_json: str) -> InsightPayload:
        """Analyze a JSON adjacency mapping and return validated insights."""
        sanitized = sanitize_graph_json(graph_json)
        logger.debug("sending graph: %d chars", len(sanitized))
        content = await self._request_with_retries(self._build_messages(sanitized))
        return self._parse_response(content)

    def _build_messages(self, graph_json: str) -> list[dict[str, str]]:
        user_prompt = f"Dependency graph:\n{graph_json}"
        # Reasoner cannot use system messages; fold into user message
        if self.config.model == AIModel.DEEPSEEK_REASONER:
            return [{"role": "user", "content": f"{SYSTEM_PROMPT}\n\n---\n\n{user_prompt}"}]
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ]

    def _backoff_delay(self, attempt: int) -> float:
        delay = min(self.config.base_delay * (2 ** attempt), self.config.max_delay)
        return delay + random.uniform(0, delay * 0.1)

    async def _request_with_retries(self, messages: list[dict[str, str]]) -> str:
        attempt = 0
        while True:
            try:
                return await self._request(messages)
            except LLMError as e:
                if not e.retryable or attempt >= self.config.max_retries:
                    logger.info("LLM request failed (%s): %s", e.code, e.message)
                    raise
                delay = self._backoff_delay(attempt)
                logger.info(
                    "attempt %d failed (%s), retrying in %.2fs",
                    attempt + 1, e.code, delay,
                )
                await asyncio.sleep(delay)
                attempt += 1

    async def _request(self, messages: list[dict[str, str]]) -> str:
        payload: dict[str, Any] = {
            "model": self.config.model.value,
            "messages": messages,
            "temperature": self.config.get_optimal_temperature(),
            "max_tokens": self.config.max_tokens,
            "stream": False,
        }
        if self.config.model != AIModel.DEEPSEEK_REASONER:
            payload["response_format"] = {"type": "json_object"}

        try:
            # wait_for cancels the pending request on expiry
            response = await asyncio.wait_for(
                self.client.post(f"{self.config.base_url}/chat/completions", json=payload),
                timeout=self.config.timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise LLMError.timeout_error(
                f"Request timeout after {self.config.timeout}s"
            ) from e
        except httpx.TransportError as e:
            raise LLMError.network_error(f"Network error: {type(e).__name__}") from e

        status = response.status_code
        if status in (401, 403):
            raise LLMError.authentication_error(
                f"Authentication failed ({status}): check the API key", status_code=status,
            )
        if status == 429:
            raise LLMError.rate_limit_error("Rate limit exceeded (429)")
        if status >= 500:
            error = LLMError.network_error(f"Server error ({status})")
            error.status_code = status
            raise error
        if status >= 400:
            raise LLMError.invalid_response_error(
                f"Request rejected ({status})", status_code=status,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise LLMError.invalid_response_error("Failed to parse LLM response envelope") from e

        return self._extract_content(data)

    @staticmethod
    def _extract_content(data: Any) -> str:
        """``choices[0].message.content``; missing parts read as empty, wrong types are rejected."""
        invalid = LLMError.invalid_response_error("Invalid response envelope")
        if not isinstance(data, dict):
            raise invalid
        choices = data.get("choices")
        if not choices:
            if choices is None or isinstance(choices, list):
                return ""
            raise invalid
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise invalid
        message = choices[0].get("message")
        if message is None:
            return ""
        if not isinstance(message, dict):
            raise invalid
        content = message.get("content")
        if content is None:
            return ""
        if not isinstance(content, str):
            raise invalid
        return content

    @staticmethod
    def _parse_response(content: str) -> InsightPayload:
        if not content or not content.strip():
            raise LLMError.empty_response_error("Empty response from LLM")

        try:
            data = json.loads(extract_json_object(content))
        except ValueError as e:
            raise LLMError.invalid_response_error(f"Failed to parse LLM response: {e}") from e

        try:
            return InsightPayload.model_validate(data)
        except ValidationError as e:
            raise LLMError.invalid_response_error(f"Invalid response format: {e}") from e
