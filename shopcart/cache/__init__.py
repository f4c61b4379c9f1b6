"""
Cache package initialization.

This module initializes the cache package for the Redis-backed session
storage slot, including connection management and cache key utilities.
"""
