"""Generation pipeline configuration.

These settings control how many times unreliable operations are retried,
how long to back off between attempts, and which failures count as
transient.
"""

# =============================================================================
# Retry
# =============================================================================
# Backoff before attempt n+1 is RETRY_BASE_DELAY_MS * 2**n. No jitter, so
# retry timing is deterministic.

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY_MS = 1000
VALIDATION_MAX_RETRIES = 3

# =============================================================================
# Recoverability
# =============================================================================
# An error whose message matches any of these (case-insensitive) is transient.
# Transient failures are retried but never handed to a fallback generator.

RECOVERABLE_ERROR_PATTERNS = (
    r"rate limit",
    r"timeout",
    r"ECONNRESET",
    r"ETIMEDOUT",
    r"network",
    r"temporary",
)

FALLBACK_WARNING = "Used fallback method due to AI failure"

# =============================================================================
# Coverage Estimation
# =============================================================================
# Rough heuristic: each generated test case adds ~5% coverage, capped.

COVERAGE_PER_TEST_CASE = 5
MAX_COVERAGE_ESTIMATE = 95

# =============================================================================
# Job Registry
# =============================================================================
# Finished jobs beyond this count are dropped, oldest first. Pending and
# running jobs are never dropped.

MAX_TRACKED_JOBS = 200
