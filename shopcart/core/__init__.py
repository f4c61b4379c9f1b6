"""
Core package for shared configuration and logging.

This module makes the core directory a Python package, enabling proper
import resolution for settings and structured logging across the cart.
"""
