"""Natural-language rationale for conflict resolution, bounded by a timeout.

The ranking in a ConflictResolution is never changed here. Only its
rationale text is replaced when the reasoning service answers in time.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

from .core.conflicts import ConflictResolution, template_rationale
from .ports.reasoning_service import ReasoningService

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


def explain(
    resolution: ConflictResolution,
    service: ReasoningService | None,
    timeout: float = DEFAULT_TIMEOUT,
    names: dict[str, str] | None = None,
) -> ConflictResolution:
    """Fill in the rationale, falling back to the template on any upstream failure."""
    if service is None or not resolution.ranked:
        resolution.rationale = template_rationale(resolution, names)
        resolution.rationale_source = "template"
        return resolution

    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(service.explain, resolution.ranked)
    try:
        reply = future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning(f"Reasoning service timed out after {timeout}s, using template rationale")
        reply = ""
    except Exception as e:
        logger.warning(f"Reasoning service unavailable, using template rationale: {e}")
        reply = ""
    finally:
        # Don't block on a hung call
        executor.shutdown(wait=False)

    text = reply.strip() if isinstance(reply, str) else ""
    if text:
        resolution.rationale = text
        resolution.rationale_source = "reasoning_service"
    else:
        resolution.rationale = template_rationale(resolution, names)
        resolution.rationale_source = "template"
    return resolution
