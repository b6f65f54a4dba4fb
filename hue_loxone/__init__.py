"""Bridge between a Philips Hue bridge (CLIP v2) and a Loxone Miniserver."""

import logging

from .bridge import CommandOutcome, HueLoxoneBridge
from .config import BridgeConfig, config_from_env, load_config, load_mapping
from .models import MappingEntry

__version__ = "1.0.0"

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "BridgeConfig",
    "CommandOutcome",
    "HueLoxoneBridge",
    "MappingEntry",
    "async_setup",
    "config_from_env",
    "load_config",
    "load_mapping",
]


async def async_setup(raw_config: dict, raw_mapping: list | None = None, session=None) -> HueLoxoneBridge:
    """Validate raw config and mapping, build and start a bridge."""
    config = load_config(raw_config)
    mapping = load_mapping(raw_mapping or [])
    bridge = HueLoxoneBridge(config, mapping, session=session)
    await bridge.start()
    _LOGGER.info("Loaded %d mapping entries", len(mapping))
    return bridge
