"""Provider id -> adapter mapping."""

from __future__ import annotations

from functools import partial

from codeagent.core.interfaces.provider import ProviderAdapter
from codeagent.infrastructure.llm import anthropic_adapter, harmony_adapter, responses_adapter
from codeagent.infrastructure.llm.harmony_codec import TranscriptCodec
from codeagent.infrastructure.llm.service import LLMService

PROVIDERS = ("anthropic", "openai", "together")


def build_adapters(
    service: LLMService | None = None, codec: TranscriptCodec | None = None
) -> dict[str, ProviderAdapter]:
    """
    Create the three adapters sharing one LLMService.

    Returns:
        {"anthropic": ..., "openai": ..., "together": ...}
    """
    service = service or LLMService()
    return {
        "anthropic": partial(anthropic_adapter.stream_prompt, service=service),
        "openai": partial(responses_adapter.stream_prompt, service=service),
        "together": partial(harmony_adapter.stream_prompt, service=service, codec=codec),
    }
