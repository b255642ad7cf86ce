"""Progress reporting configuration."""

# =============================================================================
# Throttling
# =============================================================================
# Subscribers never see more than one intermediate event per interval.
# The first and last event of every stage bypass the throttle.

MIN_EMIT_INTERVAL_MS = 100
