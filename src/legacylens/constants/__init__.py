"""Configuration constants.

Re-exports all constants for convenient importing:
    from legacylens.constants import DEFAULT_MAX_RETRIES, DEFAULT_CACHE_TTL_MS
"""

from legacylens.constants.cache import *  # noqa: F403
from legacylens.constants.generation import *  # noqa: F403
from legacylens.constants.llm import *  # noqa: F403
from legacylens.constants.progress import *  # noqa: F403
