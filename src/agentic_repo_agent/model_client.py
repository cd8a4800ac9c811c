"""LLM action protocol: request one well-formed action from the model.

The model is constrained to JSON-object output at temperature 0 and must
answer with exactly one of:

    {"plan": ["step", ...]}
    {"tool": "name", "args": {...}}
    {"done": true, "result": "summary"}
"""

import asyncio
import json
import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import httpx

from agentic_repo_agent.constants import (
    BACKOFF_BASE_S,
    FALLBACK_MODEL,
    LLM_MAX_RETRIES,
    LLM_MAX_TOKENS,
    LLM_TIMEOUT_S,
    OPENAI_API_URL,
    RATE_LIMIT_BUFFER_S,
    RATE_LIMIT_DEFAULT_WAIT_S,
)

logger = logging.getLogger(__name__)

RATE_LIMIT_WAIT_RE = re.compile(r"try again in (\d+(?:\.\d+)?)\s*(ms|s)\b", re.IGNORECASE)
MODEL_MISSING_MARKERS = ("does not exist", "model_not_found")


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class Message:
    """A chat message."""
    role: str  # "system", "user", "assistant"
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class PlanAction:
    steps: List[str]

    def to_json(self) -> str:
        return json.dumps({"plan": self.steps})


@dataclass(frozen=True)
class ToolAction:
    tool: str
    args: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        return json.dumps({"tool": self.tool, "args": self.args})


@dataclass(frozen=True)
class DoneAction:
    result: str

    def to_json(self) -> str:
        return json.dumps({"done": True, "result": self.result})


Action = Union[PlanAction, ToolAction, DoneAction]


# =============================================================================
# ERRORS
# =============================================================================

class ModelClientError(Exception):
    """Error from model client operations. Fatal for the current call."""
    pass


class ProtocolError(ModelClientError):
    """Response did not parse into exactly one action shape."""
    pass


class TransportError(ModelClientError):
    """Network failure or rate limiting that outlived the retry budget."""
    pass


class ModelNotFoundError(ModelClientError):
    """Endpoint does not serve the requested model (triggers fallback)."""
    pass


class TruncatedResponseError(ModelClientError):
    """Response hit the output token limit; retrying would truncate again."""
    pass


# =============================================================================
# DECODING
# =============================================================================

def decode_action(content: str) -> Action:
    """
    Decode raw model output into exactly one Action.

    Raises:
        TruncatedResponseError: If the JSON looks cut off mid-object
        ProtocolError: On parse failure or any shape other than the three actions
    """
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        if len(content) > 1000 and not content.rstrip().endswith("}"):
            raise TruncatedResponseError(
                "Response appears truncated - file content too large. Try making smaller changes."
            )
        raise ProtocolError(f"Failed to parse LLM response as JSON: {content[:500]}")

    if not isinstance(parsed, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(parsed).__name__}")

    present = [key for key in ("plan", "tool", "done") if key in parsed]
    if len(present) != 1:
        raise ProtocolError(
            f"Response must contain exactly one of plan/tool/done, found {present or 'none'}: {content[:300]}"
        )
    kind = present[0]

    if kind == "plan":
        steps = parsed["plan"]
        if not isinstance(steps, list) or not steps or not all(isinstance(s, str) for s in steps):
            raise ProtocolError("plan must be a non-empty list of strings")
        return PlanAction(steps=steps)

    if kind == "done":
        if parsed["done"] is not True:
            raise ProtocolError("done must be true")
        result = parsed.get("result", "")
        if result is None:
            result = ""
        if not isinstance(result, str):
            result = json.dumps(result)
        return DoneAction(result=result)

    tool = parsed["tool"]
    if not isinstance(tool, str) or not tool:
        raise ProtocolError("tool must be a non-empty string")
    if "args" not in parsed or not isinstance(parsed["args"], dict):
        raise ProtocolError(f"tool call {tool!r} must carry an args object")
    return ToolAction(tool=tool, args=parsed["args"])


def parse_rate_limit_wait(body: str, default: float = RATE_LIMIT_DEFAULT_WAIT_S) -> float:
    """Suggested wait in seconds from a 429 body ("try again in 1.5s" / "in 300ms")."""
    match = RATE_LIMIT_WAIT_RE.search(body or "")
    if not match:
        return default
    value = float(match.group(1))
    return value / 1000.0 if match.group(2).lower() == "ms" else value


# =============================================================================
# CLIENTS
# =============================================================================

class ActionSource(ABC):
    """Anything that can produce the next action from a message history."""

    @abstractmethod
    async def request_action(self, messages: List[Message]) -> Action:
        """
        Obtain exactly one Action for the given history.

        Raises:
            ModelClientError: On protocol, transport or truncation failures
        """
        pass


class OpenAIActionClient(ActionSource):
    """OpenAI-compatible chat completions client.

    Retry policy:
    - 404 / "model does not exist" -> switch to the fallback model, no attempt consumed
    - 429 -> wait (parsed from the body, else a fixed default) and retry
    - network errors and 5xx -> exponential backoff and retry
    - finish_reason == "length" -> terminal, never retried
    """

    def __init__(
        self,
        api_key: str,
        system_prompt: str,
        model: str,
        fallback_model: Optional[str] = FALLBACK_MODEL,
        api_url: str = OPENAI_API_URL,
        max_retries: int = LLM_MAX_RETRIES,
        timeout: float = LLM_TIMEOUT_S,
        max_tokens: int = LLM_MAX_TOKENS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not api_key:
            raise ModelClientError("OPENAI_API_KEY is required.")
        self.api_key = api_key
        self.system_prompt = system_prompt
        self.model = model
        self.fallback_model = fallback_model
        self.api_url = api_url
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.transport = transport
        self.sleep = sleep
        self.last_model: Optional[str] = None

    def _models_to_try(self) -> List[str]:
        if self.fallback_model and self.fallback_model != self.model:
            return [self.model, self.fallback_model]
        return [self.model]

    def _payload(self, messages: List[Message], model: str) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [{"role": "system", "content": self.system_prompt}]
            + [m.to_dict() for m in messages],
            "response_format": {"type": "json_object"},
            "temperature": 0,
            "max_tokens": self.max_tokens,
        }

    async def request_action(self, messages: List[Message]) -> Action:
        for model in self._models_to_try():
            try:
                action = await self._try_model(messages, model)
            except ModelNotFoundError as e:
                logger.info("Model %s not available (%s), trying fallback", model, e)
                continue
            self.last_model = model
            return action
        raise ModelClientError(f"All models failed: {', '.join(self._models_to_try())}")

    async def _try_model(self, messages: List[Message], model: str) -> Action:
        payload = self._payload(messages, model)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        if os.environ.get("AGENT_DEBUG_LLM"):
            print(f"[DEBUG] model={model}, messages={len(messages)}, max_tokens={self.max_tokens}")

        for attempt in range(1, self.max_retries + 1):
            last = attempt == self.max_retries
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                    response = await client.post(self.api_url, headers=headers, json=payload)
            except httpx.TransportError as e:
                logger.warning("LLM transport error on attempt %d/%d: %s", attempt, self.max_retries, e)
                if last:
                    raise TransportError(f"Network error: {e}")
                await self.sleep(BACKOFF_BASE_S * (2 ** (attempt - 1)))
                continue

            status = response.status_code

            if status == 404:
                raise ModelNotFoundError(f"Model {model} not found")

            if status == 429:
                wait = parse_rate_limit_wait(response.text)
                logger.warning("Rate limited. Waiting %.1fs before retry (attempt %d/%d)", wait, attempt, self.max_retries)
                if last:
                    raise TransportError(f"Rate limited after {self.max_retries} attempts")
                await self.sleep(wait + RATE_LIMIT_BUFFER_S)
                continue

            if status >= 500:
                logger.warning("LLM endpoint returned %d on attempt %d/%d", status, attempt, self.max_retries)
                if last:
                    raise TransportError(f"OpenAI API error: {status} - {response.text[:500]}")
                await self.sleep(BACKOFF_BASE_S * (2 ** (attempt - 1)))
                continue

            if status >= 400:
                text = response.text
                if any(marker in text for marker in MODEL_MISSING_MARKERS):
                    raise ModelNotFoundError(f"Model {model} not available")
                raise ModelClientError(f"OpenAI API error: {status} - {text[:500]}")

            return self._extract_action(response)

        raise TransportError("Max retries exceeded")

    @staticmethod
    def _extract_action(response: httpx.Response) -> Action:
        try:
            data = response.json()
        except ValueError:
            raise ProtocolError("LLM endpoint returned a non-JSON body")

        choices = data.get("choices") or []
        if not choices:
            raise ProtocolError("No choices in API response")

        choice = choices[0]
        if choice.get("finish_reason") == "length":
            raise TruncatedResponseError(
                "Response truncated - file content too large. Try making smaller, targeted changes."
            )

        content = (choice.get("message") or {}).get("content")
        if not content:
            raise ProtocolError("No content in API response")

        logger.debug("Raw response: %s", content[:200])
        return decode_action(content)


async def traced_request_action(
    source: ActionSource,
    messages: List[Message],
    model: str = "",
    run_id: str = "",
    iteration: int = 0,
) -> Action:
    """
    Wrapper that records one action request as a LangSmith span.
    
    This creates a traced span for each model call with:
    - Descriptive name: "action_{model}"
    - Input: messages as JSON-serializable dicts
    - Output: the decoded action as a dict
    - Metadata: model, run_id, iteration for filtering
    
    Args:
        source: Action source to call
        messages: Conversation history (system prompt excluded)
        model: Model identifier, for naming only
        run_id: Run ID for filtering in LangSmith
        iteration: Loop iteration that issued the call
        
    Returns:
        The Action produced by the source
    """
    from langsmith import traceable
    
    messages_dict = [m.to_dict() for m in messages]
    
    @traceable(
        name=f"action_{model.replace('/', '_') or 'model'}",
        run_type="llm",
        metadata={"model": model, "run_id": run_id, "iteration": iteration},
    )
    async def _traced_call(messages_input: List[dict]) -> dict:
        msg_objects = [Message(role=m["role"], content=m["content"]) for m in messages_input]
        action = await source.request_action(msg_objects)
        return {"action": json.loads(action.to_json())}
    
    output = await _traced_call(messages_dict)
    return decode_action(json.dumps(output["action"]))
