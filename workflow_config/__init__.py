"""
workflow_config -- single public entrypoint for workflow core configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``WorkflowCoreConfig``:
    database and logging settings, workflow definitions and the approver
    directory.

Architecture position:
    Configuration -- YAML-driven, validated at load time.
    Sits above ``workflow_kernel`` and ``workflow_services``.  The kernel
    MUST NEVER import from ``workflow_config``; ``bridges`` translates the
    config into kernel-compatible inputs.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Deterministic: the same YAML always yields the same checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``ConfigValidationError`` -- structural validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``WORKFLOW_CONFIG_TRACE`` log entry with the config id, version,
    checksum and workflow count.
"""

from __future__ import annotations

import logging
from pathlib import Path

from workflow_config.loader import ConfigValidationError, load_yaml_file, parse_config
from workflow_config.schema import WorkflowCoreConfig

_logger = logging.getLogger("workflow_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"

__all__ = [
    "ConfigValidationError",
    "WorkflowCoreConfig",
    "get_active_config",
]


def get_active_config(config_path: Path | str | None = None) -> WorkflowCoreConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Path to a YAML configuration file.  Defaults to
            workflow_config/sets/default.yaml.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the configuration is structurally invalid.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(path))

    _logger.info(
        "WORKFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "WORKFLOW_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "workflow_count": len(config.workflows),
            "role_count": len(config.approvers.roles),
            "source": str(path),
        },
    )
    return config
