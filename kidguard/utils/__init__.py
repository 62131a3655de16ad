"""
Utility modules for KidGuard.
"""

from .audit_log import (
    client_ip,
    log_admin_action,
    log_auth_event,
    log_authorization_failure,
    log_pickup_event
)

__all__ = [
    "client_ip",
    "log_admin_action",
    "log_auth_event",
    "log_authorization_failure",
    "log_pickup_event"
]
