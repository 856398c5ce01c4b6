"""
State Management.

Persistent storage for pending messages and their batches.
"""

from vuowma.state.database import (
    BatchRecord,
    InvalidMessageError,
    MessageRecord,
    MessageStore,
    init_database,
)

__all__ = [
    "BatchRecord",
    "InvalidMessageError",
    "MessageRecord",
    "MessageStore",
    "init_database",
]
