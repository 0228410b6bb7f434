"""taskchain: a reconciling client for an on-chain task list.

The ledger is the source of truth. This package only ever holds a view of it.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "1.0.0"
