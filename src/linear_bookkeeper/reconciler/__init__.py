"""Reconciliation and verification layer."""

from linear_bookkeeper.reconciler.config import BookkeeperSettings

__all__ = ["BookkeeperSettings"]
