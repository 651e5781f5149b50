"""
rangerctl

Keeps an Apache Ranger Admin instance in the shape the Doris demo stack
expects: service instance, LDAP groups and access policies.
"""

from .config import RangerSettings
from .ranger_client import (
    RangerClient,
    RangerError,
    RangerAuthError,
    RangerConflictError,
    RangerConnectionError,
    RangerNotFoundError,
    RangerRequestError,
    RangerResponseError,
)
from .exceptions import ConfigurationError
from .models import Policy, PolicyItem, PolicyResource, ReconcileOutcome, ReconcileResult, BatchSummary
from .reconciler import PolicyReconciler
from .readiness import await_ready, wait_for, wait_for_api

__version__ = "0.1.0"

__all__ = [
    "RangerSettings",
    "RangerClient",
    "RangerError",
    "RangerAuthError",
    "RangerConflictError",
    "RangerConnectionError",
    "RangerNotFoundError",
    "RangerRequestError",
    "RangerResponseError",
    "ConfigurationError",
    "Policy",
    "PolicyItem",
    "PolicyResource",
    "ReconcileOutcome",
    "ReconcileResult",
    "BatchSummary",
    "PolicyReconciler",
    "await_ready",
    "wait_for",
    "wait_for_api",
]
