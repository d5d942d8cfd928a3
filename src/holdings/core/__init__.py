"""
Holdings Core Module

Contracts, execution runtime, configuration, logging and metrics.
"""

__all__ = []
