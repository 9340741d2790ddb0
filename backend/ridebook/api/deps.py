"""Shared API dependencies — single import point for all routers.

Re-exports database, authentication and provider dependencies so router
modules (and test overrides) have one place to look::

    from ridebook.api.deps import get_db, get_current_active_user
"""

from ridebook.auth.dependencies import (
    get_current_active_user,
    get_current_admin,
    get_current_user,
)
from ridebook.database import get_db, get_session_factory
from ridebook.maps.distance import get_distance_provider
from ridebook.notifications.notifier import get_notifier
from ridebook.payments.razorpay_client import get_payment_gateway

__all__ = [
    "get_db",
    "get_session_factory",
    "get_current_user",
    "get_current_active_user",
    "get_current_admin",
    "get_payment_gateway",
    "get_distance_provider",
    "get_notifier",
]
