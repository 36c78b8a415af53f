"""Linear bookkeeper.

Reconciles Linear workspace structure against a desired state:
- team labels exist (created idempotently, race-tolerant)
- issues carry their labels (added, never removed)
- projects are linked to their initiative
- post-hoc verification reports for project structure
"""

__version__ = "0.1.0"

from linear_bookkeeper.reconciler.config import BookkeeperSettings

__all__ = ["__version__", "BookkeeperSettings"]
