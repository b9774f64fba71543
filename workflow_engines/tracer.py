"""
workflow_engines.tracer -- WORKFLOW_ENGINE_TRACE records for pure engines.

Responsibility:
    ``@traced_engine`` logs one record per engine call with the engine's
    name and version, a fingerprint of the selected inputs and the call
    duration, so a step outcome can be tied back to exactly what the rule
    engine saw.

Architecture position:
    Engines -- support for the pure calculation layer.  Logs under
    ``workflow_kernel.engines.tracer`` through the standard ``logging``
    module, so it shares the kernel's handlers without importing the
    kernel's logging module.

Invariants enforced:
    - Arguments are bound to parameter names first, so positional and
      keyword calls fingerprint alike.
    - Fingerprints are deterministic: mapping keys are sorted, enums are
      reduced to their values and dataclasses to their fields.
    - Inputs and results pass through untouched.
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import json
import logging
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

_logger = logging.getLogger("workflow_kernel.engines.tracer")


def _plain(value: Any) -> Any:
    """Reduce a value to JSON-compatible data with a stable shape."""
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """First 16 hex chars of SHA-256 over the named arguments.

    Absent fields fingerprint as null.
    """
    selected = {name: _plain(arguments.get(name)) for name in fingerprint_fields}
    encoded = json.dumps(selected, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Wrap a pure engine function so each call emits WORKFLOW_ENGINE_TRACE."""

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind(*args, **kwargs)
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            started = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - started) * 1000, 2)

            _logger.info(
                "WORKFLOW_ENGINE_TRACE",
                extra={
                    "trace_type": "WORKFLOW_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
