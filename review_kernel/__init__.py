"""
Review Kernel

Shared core of the request-review platform:
- Typed workflow error taxonomy
- Transition-table abstraction shared by every request kind
- Append-only, hash-chained review history
- Notification outbox rows written inside the review transaction
"""

__version__ = "0.1.0"
