# studybuddy/llm_utils.py
from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import openai
from openai import OpenAI
from pydantic import BaseModel

from studybuddy.cache import ResponseCache
from studybuddy.config import GatewaySettings, build_openai_client
from studybuddy.errors import ConfigurationError, DispatchError
from studybuddy.schemas import CallableShape, GatewayResult

logger = logging.getLogger(__name__)

LocalHandler = Callable[[Dict[str, Any]], Any]
HandlerSpec = Union[Mapping[str, LocalHandler], Sequence[LocalHandler]]

CACHE_KEY_PREFIX = "responseCache."

# Failures worth another attempt; anything else is surfaced on the first try.
TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def _stringify(value: Any) -> str:
    """Compact JSON matching what the cache keys have always been built from."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _handler_map(
    shapes: Sequence[CallableShape], handlers: Optional[HandlerSpec]
) -> Dict[str, LocalHandler]:
    """Key handlers by function name. A sequence is paired with ``shapes`` by position."""
    if not handlers:
        return {}
    if isinstance(handlers, Mapping):
        return dict(handlers)
    handlers = list(handlers)
    if len(handlers) != len(shapes):
        raise ValueError(
            f"Got {len(handlers)} local handlers for {len(shapes)} callable shapes"
        )
    return {shape.name: handler for shape, handler in zip(shapes, handlers)}


def _is_cache_hit(value: Any) -> bool:
    # None is "never stored"; "" is what an empty model reply leaves behind.
    return value is not None and value != ""


def _to_cacheable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


class Conversation:
    """Ordered chat history in the OpenAI message format."""

    def __init__(self, messages: Optional[List[Dict[str, Any]]] = None) -> None:
        self.messages: List[Dict[str, Any]] = list(messages or [])

    def append(self, role: str, content: Optional[str], function_call: Optional[Dict[str, str]] = None) -> None:
        message: Dict[str, Any] = {"role": role}
        if function_call is not None:
            message["function_call"] = function_call
        message["content"] = content
        self.messages.append(message)

    def __len__(self) -> int:
        return len(self.messages)

    def __iter__(self):
        return iter(self.messages)


def build_cache_key(
    prompt: str, callable_shapes: Sequence[CallableShape], messages: Sequence[Dict[str, Any]]
) -> str:
    shapes = [shape.to_openai() for shape in callable_shapes]
    return f"{CACHE_KEY_PREFIX}{prompt}{_stringify(shapes)}{_stringify(list(messages))}"


class LLMGateway:
    """Cached chat-completion calls with dispatch of model-selected functions.

    Every resolution is memoized in ``cache`` under a key built from the
    prompt, the advertised shapes and the prior history, so a repeated request
    never reaches the network. When the model calls one of the advertised
    functions, the matching local handler runs and its return value becomes the
    result.
    """

    def __init__(
        self,
        cache: ResponseCache,
        settings: Optional[GatewaySettings] = None,
        client: Optional[OpenAI] = None,
        client_factory: Callable[[GatewaySettings], OpenAI] = build_openai_client,
    ) -> None:
        self.cache = cache
        self.settings = settings or GatewaySettings.from_env()
        self._client = client
        self._client_factory = client_factory

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = self._client_factory(self.settings)
        return self._client

    def _create_completion(self, messages: List[Dict[str, Any]], shapes: List[Dict[str, Any]]):
        client = self._get_client()
        request: Dict[str, Any] = {"model": self.settings.model_name, "messages": messages}
        if shapes:
            request["functions"] = shapes
            request["function_call"] = "auto"

        attempts = max(1, self.settings.max_retries)
        for attempt in range(attempts):
            try:
                return client.chat.completions.create(**request)
            except TRANSIENT_ERRORS as exc:
                if attempt >= attempts - 1:
                    raise
                logger.warning(
                    "Chat completion failed (attempt %d/%d): %s", attempt + 1, attempts, exc
                )
                time.sleep(2 ** attempt)
        return None

    def resolve(
        self,
        prompt: str,
        callable_shapes: Optional[Sequence[CallableShape]] = None,
        local_handlers: Optional[HandlerSpec] = None,
        conversation: Optional[Conversation] = None,
    ) -> GatewayResult:
        """Answer ``prompt`` from the cache, or from the model on a miss.

        Args:
            prompt: The user message to send.
            callable_shapes: Functions the model may call instead of replying
                in free text. Empty means plain chat.
            local_handlers: Handlers for those functions, either a mapping of
                name to handler or a sequence paired with ``callable_shapes``
                by position.
            conversation: Prior history; extended in place on a live call.

        Raises:
            ValueError: a handler sequence does not match the shapes in length.
            ConfigurationError: no API key is configured (cache misses only).
            DispatchError: the model called a function with no handler, or sent
                arguments that are not a JSON object.
        """
        if not prompt:
            raise ValueError("prompt must be a non-empty string")
        shapes = list(callable_shapes or [])
        handlers = _handler_map(shapes, local_handlers)
        if conversation is None:
            conversation = Conversation()

        cache_key = build_cache_key(prompt, shapes, conversation.messages)
        cached = self.cache.get(cache_key)
        if _is_cache_hit(cached):
            logger.debug("Response cache hit for prompt %.40r", prompt)
            return GatewayResult.from_value(cached)

        if not self.settings.api_key:
            raise ConfigurationError("'OPENAI_API_KEY' not found within the environment.")

        conversation.append("user", prompt)
        completion = self._create_completion(
            conversation.messages, [shape.to_openai() for shape in shapes]
        )
        message = completion.choices[0].message

        function_call = None
        result: Any = message.content or ""
        if message.function_call is not None:
            function_name = message.function_call.name
            handler = handlers.get(function_name)
            if handler is None:
                raise DispatchError(function_name)
            arguments = message.function_call.arguments or "{}"
            try:
                parsed = json.loads(arguments)
            except json.JSONDecodeError as exc:
                raise DispatchError(
                    function_name, f"Arguments for '{function_name}' are not valid JSON: {exc}"
                ) from exc
            if not isinstance(parsed, dict):
                raise DispatchError(
                    function_name, f"Arguments for '{function_name}' must be a JSON object"
                )
            result = _to_cacheable(handler(parsed))
            function_call = {"name": function_name, "arguments": arguments}
            logger.info("Model called %s", function_name)

        conversation.append(message.role or "assistant", message.content, function_call)

        self.cache.set(cache_key, result)
        return GatewayResult.from_value(result)

    def ask_language_model_shape(
        self, prompt: str, shape: CallableShape, handler: LocalHandler
    ) -> GatewayResult:
        """One-shot structured call: a single shape, its handler, no prior history."""
        return self.resolve(prompt, [shape], {shape.name: handler}, Conversation())
