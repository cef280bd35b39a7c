"""Centralized generation gateway provider. Owns the process-global singleton.

API routes obtain the gateway through ``get_generation_gateway`` (a FastAPI
dependency, overridden in tests). Never instantiate AnthropicBackend in a
route.
"""

import logging
import threading

from src.orchestrator.nl_engine.gateway import AnthropicBackend, ChartGenerationGateway

logger = logging.getLogger(__name__)

_gateway: ChartGenerationGateway | None = None
_gateway_lock = threading.Lock()


def get_generation_gateway() -> ChartGenerationGateway:
    """Get or create the process-global ChartGenerationGateway.

    Returns:
        The shared gateway backed by the Anthropic Messages API.
    """
    global _gateway
    if _gateway is not None:
        return _gateway
    with _gateway_lock:
        if _gateway is None:
            _gateway = ChartGenerationGateway(backend=AnthropicBackend())
            logger.info(
                "ChartGenerationGateway singleton initialized (timeout %.0fs)",
                _gateway.timeout,
            )
    return _gateway


async def shutdown_gateway() -> None:
    """Close the backend client and drop the singleton. Called on app shutdown."""
    global _gateway
    with _gateway_lock:
        gateway, _gateway = _gateway, None
    if gateway is None:
        return
    backend = gateway.backend
    if isinstance(backend, AnthropicBackend) and backend.has_client:
        await backend.client.close()
        logger.info("Generation backend client closed")
