"""
LLM Service for all vendor round trips.

Every adapter talks to its vendor through this service, which wraps the
three litellm entry points the adapters need:
- ``complete``: chat completions with native tool calling (anthropic)
- ``respond``: the stateful responses endpoint (openai)
- ``complete_text``: raw text completions for token-level transcripts (together)

Configuration comes from an optional YAML file layered over built-in
defaults: model aliases, per-provider model prefixes and API key variables,
default parameters, price tables and the retry policy.
"""

from __future__ import annotations

import asyncio
import copy
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

import litellm
import structlog
import yaml

from codeagent.core.domain.usage import TokenPrice, compute_cost

DEFAULT_CONFIG: dict[str, Any] = {
    "models": {
        "anthropic": "claude-sonnet-4-20250514",
        "openai": "gpt-5",
        "together": "accounts/fireworks/models/gpt-oss-120b",
    },
    "default_params": {
        "anthropic": {"max_tokens": 4000},
        "openai": {},
        "together": {"max_tokens": 2048},
    },
    "pricing": {
        "claude": {"input": 3.0, "output": 15.0},
        "gpt-5": {"input": 1.25, "output": 10.0},
        "gpt-oss": {"input": 0.15, "output": 0.60},
    },
    "providers": {
        "anthropic": {"api_key_env": "ANTHROPIC_API_KEY", "model_prefix": "anthropic/"},
        "openai": {"api_key_env": "OPENAI_API_KEY", "model_prefix": ""},
        "together": {"api_key_env": "FIREWORKS_API_KEY", "model_prefix": "fireworks_ai/"},
    },
    "retry_policy": {
        "max_attempts": 1,
        "backoff_multiplier": 2.0,
        "timeout": 120,
        "retry_on_errors": [],
    },
    "logging": {"log_token_usage": True},
}


@dataclass
class RetryPolicy:
    """Retry policy configuration."""

    max_attempts: int = 1
    backoff_multiplier: float = 2.0
    timeout: int = 120
    retry_on_errors: list[str] = field(default_factory=list)


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a litellm object or a plain dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class LLMService:
    """
    Centralized litellm access with model resolution, pricing and retries.

    Calls never raise on vendor failures. They return a dict with
    ``success`` set and either the normalized payload or ``error`` and
    ``error_type``.
    """

    def __init__(self, config_path: str | Path | None = None):
        """
        Args:
            config_path: Optional YAML file; missing sections use the defaults

        Raises:
            FileNotFoundError: If an explicit config file does not exist
            ValueError: If the config file is not a mapping
        """
        self.logger = structlog.get_logger().bind(component="llm_service")
        self._load_config(config_path)

    def _load_config(self, config_path: str | Path | None) -> None:
        config: dict[str, Any] = {}
        if config_path is not None:
            config_file = Path(config_path)
            if not config_file.exists():
                raise FileNotFoundError(f"LLM config not found: {config_path}")
            with open(config_file, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
            if not isinstance(config, dict):
                raise ValueError(f"Config file is not a mapping: {config_path}")

        merged = _merge(DEFAULT_CONFIG, config)
        self.models: dict[str, str] = merged["models"]
        self.default_params: dict[str, dict[str, Any]] = merged["default_params"]
        self.provider_config: dict[str, dict[str, Any]] = merged["providers"]
        self.logging_config: dict[str, Any] = merged["logging"]
        self.pricing = {
            key: TokenPrice(float(value["input"]), float(value["output"]))
            for key, value in merged["pricing"].items()
        }

        retry_config = merged["retry_policy"]
        self.retry_policy = RetryPolicy(
            max_attempts=max(1, int(retry_config.get("max_attempts", 1))),
            backoff_multiplier=retry_config.get("backoff_multiplier", 2.0),
            timeout=retry_config.get("timeout", 120),
            retry_on_errors=retry_config.get("retry_on_errors", []),
        )

    def resolve_model(self, provider: str, model: str | None) -> str:
        """
        Resolve a model alias to the litellm model string for a provider.

        ``None`` selects the provider default. Aliases from ``models`` are
        expanded, then the provider's litellm prefix is added when missing.
        """
        resolved = self.models.get(model or provider, model or self.models.get(provider, ""))
        prefix = self.provider_config.get(provider, {}).get("model_prefix", "")
        if prefix and not resolved.startswith(prefix):
            resolved = f"{prefix}{resolved}"
        return resolved

    def resolve_api_key(self, provider: str, api_key: str | None) -> str | None:
        if api_key:
            return api_key
        env_var = self.provider_config.get(provider, {}).get("api_key_env")
        value = os.getenv(env_var) if env_var else None
        if not value:
            self.logger.warning("api_key_missing", provider=provider, env_var=env_var)
        return value

    def price_for(self, model: str) -> TokenPrice | None:
        """
        Find the price for a model: exact key first, then the longest key
        contained in the model name.
        """
        if model in self.pricing:
            return self.pricing[model]
        matches = [key for key in self.pricing if key in model]
        if not matches:
            return None
        return self.pricing[max(matches, key=len)]

    def cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        return compute_cost(input_tokens, output_tokens, self.price_for(model))

    async def _call_with_retry(
        self,
        operation: str,
        model: str,
        call: Callable[[], Awaitable[Any]],
        parse: Callable[[Any], dict[str, Any]],
    ) -> dict[str, Any]:
        for attempt in range(self.retry_policy.max_attempts):
            try:
                start_time = time.time()
                self.logger.info(f"llm_{operation}_started", model=model, attempt=attempt + 1)

                response = await call()
                result = parse(response)

                latency_ms = int((time.time() - start_time) * 1000)
                usage = result["usage"]
                if self.logging_config.get("log_token_usage", True):
                    self.logger.info(
                        f"llm_{operation}_success",
                        model=model,
                        input_tokens=usage["input_tokens"],
                        output_tokens=usage["output_tokens"],
                        latency_ms=latency_ms,
                    )
                return {"success": True, "model": model, "latency_ms": latency_ms, **result}

            except Exception as e:
                error_type = type(e).__name__
                error_msg = str(e)

                should_retry = attempt < self.retry_policy.max_attempts - 1 and any(
                    err_type in error_type or err_type in error_msg
                    for err_type in self.retry_policy.retry_on_errors
                )

                if should_retry:
                    backoff_time = self.retry_policy.backoff_multiplier**attempt
                    self.logger.warning(
                        f"llm_{operation}_retry",
                        model=model,
                        error_type=error_type,
                        attempt=attempt + 1,
                        backoff_seconds=backoff_time,
                    )
                    await asyncio.sleep(backoff_time)
                    continue

                self.logger.error(
                    f"llm_{operation}_failed",
                    model=model,
                    error_type=error_type,
                    error=error_msg[:200],
                    attempts=attempt + 1,
                )
                return {
                    "success": False,
                    "error": error_msg,
                    "error_type": error_type,
                    "model": model,
                }

        return {"success": False, "error": "Max retries exceeded", "model": model}

    async def complete(
        self,
        provider: str,
        messages: list[dict[str, Any]],
        model: str | None = None,
        api_key: str | None = None,
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Chat completion with native tool calling.

        Returns:
            Dict with success, content, reasoning, tool_calls (list of
            ``{"id", "name", "arguments"}`` with raw JSON arguments),
            message (assistant turn to append to the history), usage
        """
        actual_model = self.resolve_model(provider, model)
        params = {**self.default_params.get(provider, {}), **kwargs}
        if tools:
            params["tools"] = tools

        async def call() -> Any:
            return await litellm.acompletion(
                model=actual_model,
                messages=messages,
                api_key=self.resolve_api_key(provider, api_key),
                timeout=self.retry_policy.timeout,
                **params,
            )

        return await self._call_with_retry("completion", actual_model, call, self._parse_completion)

    @staticmethod
    def _parse_completion(response: Any) -> dict[str, Any]:
        message = response.choices[0].message
        content = _get(message, "content") or ""
        thinking_blocks = _get(message, "thinking_blocks") or []
        reasoning = _get(message, "reasoning_content") or ""
        if not reasoning and thinking_blocks:
            reasoning = "\n".join(_get(block, "thinking", "") or "" for block in thinking_blocks)

        tool_calls = []
        for call in _get(message, "tool_calls") or []:
            function = _get(call, "function")
            tool_calls.append(
                {
                    "id": _get(call, "id"),
                    "name": _get(function, "name"),
                    "arguments": _get(function, "arguments") or "{}",
                }
            )

        assistant: dict[str, Any] = {"role": "assistant", "content": content}
        if thinking_blocks:
            assistant["thinking_blocks"] = [
                block if isinstance(block, dict) else dict(block) for block in thinking_blocks
            ]
        if tool_calls:
            assistant["tool_calls"] = [
                {
                    "id": call["id"],
                    "type": "function",
                    "function": {"name": call["name"], "arguments": call["arguments"]},
                }
                for call in tool_calls
            ]

        usage = _get(response, "usage")
        return {
            "content": content,
            "reasoning": reasoning,
            "tool_calls": tool_calls,
            "message": assistant,
            "usage": {
                "input_tokens": _get(usage, "prompt_tokens", 0) or 0,
                "output_tokens": _get(usage, "completion_tokens", 0) or 0,
            },
        }

    async def respond(
        self,
        provider: str,
        input: list[dict[str, Any]],
        model: str | None = None,
        api_key: str | None = None,
        previous_response_id: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Call the responses endpoint.

        Returns:
            Dict with success, response_id, output (list of plain dict items
            of type reasoning, message or function_call), usage
        """
        actual_model = self.resolve_model(provider, model)
        params = {**self.default_params.get(provider, {}), **kwargs}
        if previous_response_id:
            params["previous_response_id"] = previous_response_id

        async def call() -> Any:
            return await litellm.aresponses(
                model=actual_model,
                input=input,
                api_key=self.resolve_api_key(provider, api_key),
                timeout=self.retry_policy.timeout,
                **params,
            )

        return await self._call_with_retry("response", actual_model, call, self._parse_response)

    @staticmethod
    def _parse_response(response: Any) -> dict[str, Any]:
        output = []
        for item in _get(response, "output") or []:
            item_type = _get(item, "type")
            if item_type == "reasoning":
                summary = [_get(part, "text", "") for part in _get(item, "summary") or []]
                output.append({"type": "reasoning", "text": "\n\n".join(s for s in summary if s)})
            elif item_type == "message":
                texts = [_get(part, "text", "") for part in _get(item, "content") or []]
                output.append({"type": "message", "text": "".join(t for t in texts if t)})
            elif item_type == "function_call":
                output.append(
                    {
                        "type": "function_call",
                        "call_id": _get(item, "call_id"),
                        "name": _get(item, "name"),
                        "arguments": _get(item, "arguments") or "{}",
                    }
                )

        usage = _get(response, "usage")
        return {
            "response_id": _get(response, "id"),
            "output": output,
            "usage": {
                "input_tokens": _get(usage, "input_tokens", 0) or 0,
                "output_tokens": _get(usage, "output_tokens", 0) or 0,
            },
        }

    async def complete_text(
        self,
        provider: str,
        prompt: str,
        model: str | None = None,
        api_key: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """
        Raw text completion.

        Returns:
            Dict with success, text, usage
        """
        actual_model = self.resolve_model(provider, model)
        params = {**self.default_params.get(provider, {}), **kwargs}

        async def call() -> Any:
            return await litellm.atext_completion(
                model=actual_model,
                prompt=prompt,
                api_key=self.resolve_api_key(provider, api_key),
                timeout=self.retry_policy.timeout,
                **params,
            )

        return await self._call_with_retry("text_completion", actual_model, call, self._parse_text)

    @staticmethod
    def _parse_text(response: Any) -> dict[str, Any]:
        choices = _get(response, "choices") or []
        text = _get(choices[0], "text", "") if choices else ""
        if not text:
            raise ValueError("No completion content received")
        usage = _get(response, "usage")
        return {
            "text": text,
            "usage": {
                "input_tokens": _get(usage, "prompt_tokens", 0) or 0,
                "output_tokens": _get(usage, "completion_tokens", 0) or 0,
            },
        }
