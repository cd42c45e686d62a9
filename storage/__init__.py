"""
Storage layer for the CodeCritic gateway.

This package contains:
- InteractionStore for review history and admin reporting queries
"""

from storage.interaction_store import InteractionStore

__all__ = ["InteractionStore"]
