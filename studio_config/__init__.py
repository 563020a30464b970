"""
studio_config -- single public entrypoint for studio configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files directly.  YAML loading is internal tooling.

Architecture position:
    Configuration -- sits above ``studio_kernel`` and ``studio_engines``
    and below ``studio_services``.  The kernel MUST NEVER import from
    ``studio_config``; ``studio_config.bridges`` translates the parsed
    configuration into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``KeyError`` / ``ValueError`` -- the file is structurally invalid.
    - ``yaml.YAMLError`` -- the file is not valid YAML.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``STUDIO_CONFIG_TRACE`` log entry with config_id, version, checksum
    and the ledger policy in force, tying each computed balance to the
    exact rules that produced it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from studio_config.loader import load_config
from studio_config.schema import StudioConfig

_logger = logging.getLogger("studio_kernel.config")

# Default configuration file
_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | None = None) -> StudioConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a configuration file.
            Defaults to studio_config/sets/default.yaml.

    Returns:
        StudioConfig -- frozen, with its source checksum.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ValueError: If configuration validation fails.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = load_config(path)

    _logger.info(
        "STUDIO_CONFIG_TRACE",
        extra={
            "trace_type": "STUDIO_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "auto_consume_unmarked": config.ledger.auto_consume_unmarked,
            "open_window_end": config.ledger.open_window_end.isoformat(),
            "timezone": config.clock.timezone,
        },
    )
    return config


__all__ = [
    "StudioConfig",
    "get_active_config",
]
