from .store import (
    Store,
    SQLStore,
    WORKSHOPS,
    TASKS,
    USERS,
    REGISTRATIONS,
    SUBMISSIONS,
    NOTIFICATIONS,
    AUDIT_LOGS,
)

__all__ = [
    "Store",
    "SQLStore",
    "WORKSHOPS",
    "TASKS",
    "USERS",
    "REGISTRATIONS",
    "SUBMISSIONS",
    "NOTIFICATIONS",
    "AUDIT_LOGS",
]
