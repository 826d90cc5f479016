"""Failure semantics shared by the provider adapters."""

from collections.abc import AsyncIterator

import structlog

from codeagent.core.domain.errors import ProviderError, StepBudgetExceededError
from codeagent.core.domain.events import ErrorEvent, Event

logger = structlog.get_logger(component="provider_stream")


async def guard_provider_errors(
    provider: str, session_id: str, events: AsyncIterator[Event]
) -> AsyncIterator[Event]:
    """
    Re-emit ``events`` and translate failures.

    A step-budget violation passes through untouched. Any other failure
    produces exactly one ``error`` event and is raised as ``ProviderError``.
    """
    try:
        async for event in events:
            yield event
    except StepBudgetExceededError:
        raise
    except Exception as e:
        logger.error(
            "provider_stream_failed",
            provider=provider,
            session_id=session_id,
            error_type=type(e).__name__,
            error=str(e)[:200],
        )
        yield ErrorEvent(session_id=session_id, error=str(e))
        if isinstance(e, ProviderError):
            raise
        raise ProviderError(f"Failed to stream prompt: {e}", provider=provider) from e
