"""Rate limiting adapters.

The HTTP layer depends on ``AbstractRateLimiter`` only; the sliding-window
implementation talks to Redis or an in-memory store through the store
abstraction in ``app.adapters.store``.
"""
