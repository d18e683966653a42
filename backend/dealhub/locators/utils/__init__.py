"""Locator utilities for rate limiting and address normalization."""

from .rate_limiter import DomainRateLimiter, TokenBucket
from .us_states import US_STATES, is_us_state, normalize_state, states_match


__all__ = [
    # Rate limiting
    "DomainRateLimiter",
    "TokenBucket",
    # US states
    "US_STATES",
    "is_us_state",
    "normalize_state",
    "states_match",
]
