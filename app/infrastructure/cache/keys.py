"""Cache key derivation. Single place for key format (DRY).

Keys are prefix + sha256 hex digest of "<endpoint>:<k1>=<json>&<k2>=<json>",
with parameter names sorted so insertion order never changes the key.
Values use canonical JSON (sorted keys, no spaces), so nested dicts are
order-independent as well. Pure functions: no I/O, stable across processes.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from app.core.constants import (
    CACHE_BODY_PARAM,
    CACHE_KEY_SEP,
    CACHE_PARAM_SEP,
    MUTATING_METHODS,
)
from app.domain.exceptions import ValidationException


def canonical_json(value: Any) -> str:
    """Canonical JSON for deterministic hashing.

    Non-JSON types (datetime, UUID, Decimal) are encoded via str().
    """
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def canonical_params(params: Mapping[str, Any] | None) -> str:
    """Return the sorted key=value&... string for a parameter bag."""
    if not params:
        return ""
    return CACHE_PARAM_SEP.join(
        f"{name}={canonical_json(params[name])}" for name in sorted(params, key=str)
    )


def derive_key(
    endpoint: str,
    params: Mapping[str, Any] | None = None,
    prefix: str = "",
) -> str:
    """Derive a fixed-length cache key for an endpoint and its parameters.

    Args:
        endpoint: Logical endpoint identifier (e.g. "odoo:sales" or "GET:/odoo/sales").
        params: Parameter bag; order of entries does not matter.
        prefix: Namespace prefix (e.g. "proxy_server:") so deployments sharing
            a Redis instance never collide.

    Returns:
        prefix followed by a 64-char hex digest.

    Raises:
        ValidationException: If endpoint is empty.
    """
    if not endpoint:
        raise ValidationException("Cache endpoint identifier must not be empty", field="endpoint")
    key_data = f"{endpoint}{CACHE_KEY_SEP}{canonical_params(params)}"
    digest = hashlib.sha256(key_data.encode("utf-8")).hexdigest()
    return f"{prefix}{digest}"


def endpoint_key(
    method: str,
    path: str,
    query: Mapping[str, Any] | None = None,
    body: Any = None,
    extra: Mapping[str, Any] | None = None,
    prefix: str = "",
) -> str:
    """Derive a key for an HTTP-shaped request.

    The endpoint id is "<METHOD>:<path>". Query and extra params form the
    bag; for POST/PUT/PATCH the body is added under "body", so requests
    that differ only in body get different keys.
    """
    verb = method.upper()
    params: dict[str, Any] = {**(query or {}), **(extra or {})}
    if verb in MUTATING_METHODS and body is not None:
        params[CACHE_BODY_PARAM] = body
    return derive_key(f"{verb}{CACHE_KEY_SEP}{path}", params, prefix=prefix)
