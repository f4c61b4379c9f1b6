"""
shopcart: session-backed shopping cart with durable mirroring.

Line items live in a per-session store (Redis in production) and are mirrored
best-effort into SQL so a signed-in shopper's cart follows them across
sessions and devices.
"""

__version__ = "1.0.0"
