"""Time-ordered store adapters.

The decision engine depends on ``AbstractTimeOrderedStore`` only, so the
backing store can be Redis in production and an in-memory log in tests or
single-process deployments.
"""
