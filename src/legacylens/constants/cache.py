"""Analysis cache configuration.

The cache memoizes expensive, content-addressable computations (mostly unit
analysis) for the lifetime of one job.
"""

# =============================================================================
# Cache Bounds
# =============================================================================
# Entries older than DEFAULT_CACHE_TTL_MS are treated as missing on read.
# DEFAULT_CACHE_MAX_SIZE bounds memory; the least recently used key is evicted
# when a new key would exceed it.

DEFAULT_CACHE_TTL_MS = 3_600_000
DEFAULT_CACHE_MAX_SIZE = 1000
