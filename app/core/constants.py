"""Core constants: cache key structure and shared literal values."""

# Delimiter between endpoint id and its canonical parameter string
CACHE_KEY_SEP = ":"

# Joins sorted key=value pairs of the parameter bag
CACHE_PARAM_SEP = "&"

# HTTP methods whose request body is part of the cache key
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH"})

# Parameter name under which the request body is folded into the key
CACHE_BODY_PARAM = "body"

# Tier names used in results, logs, and diagnostics
TIER_FAST = "fast"
TIER_DURABLE = "durable"

# Endpoint label for rows written by the generic cache path
DURABLE_ENDPOINT_GENERIC = "generic"

# SCAN/UNLINK batch size for pattern clears
CLEAR_PATTERN_CHUNK_SIZE = 500
