"""
Doris service instance in Ranger Admin.

The Ranger Doris plugin only initialises its policy engine once a service
instance with the configured name exists, and Ranger denies every request
until at least one policy grants access. ``bootstrap`` takes care of both,
once.
"""

import logging
from typing import Any, Dict

from .catalog import root_policy
from .config import RangerSettings
from .exceptions import ConfigurationError
from .ranger_client import RangerClient, RangerConflictError, RangerError
from .reconciler import PolicyReconciler
from .state import MarkerStore

logger = logging.getLogger(__name__)


def service_document(settings: RangerSettings) -> Dict[str, Any]:
    return {
        "name": settings.service_name,
        "type": "doris",
        "description": "Apache Doris service for NBD demo",
        "configs": {
            "username": settings.doris_username,
            "password": settings.doris_password,
            "jdbc.driverClassName": settings.doris_jdbc_driver,
            "jdbc.url": settings.doris_jdbc_url,
        },
        "isEnabled": True,
    }


def ensure_service_instance(client: RangerClient, settings: RangerSettings) -> Dict[str, Any]:
    """Return the service instance, creating it if Ranger does not have it yet"""
    name = settings.service_name
    existing = client.find_service(name)
    if existing:
        logger.info(f"Doris service instance '{name}' already exists in Ranger (ID: {existing.get('id')})")
        return existing

    logger.info(f"Doris service instance '{name}' not found, creating it...")
    try:
        created = client.create_service(service_document(settings))
    except RangerConflictError:
        logger.info(f"Doris service instance '{name}' already exists (detected during creation)")
        return client.get_service(name)
    logger.info(f"Doris service instance '{name}' created (ID: {created.get('id')})")
    return created


def resolve_service_id(client: RangerClient, service_name: str) -> int:
    """Service id for a name; failure here is fatal for policy setup"""
    try:
        service_id = client.get_service_id(service_name)
    except RangerError as e:
        raise ConfigurationError(
            f"Failed to get service ID for '{service_name}': {e}. "
            f"Make sure the Doris service is created in Ranger."
        ) from e
    logger.info(f"Found service ID: {service_id}")
    return service_id


def bootstrap_marker(service_name: str) -> str:
    return f"bootstrap:{service_name}"


def bootstrap(client: RangerClient, settings: RangerSettings, markers: MarkerStore,
              force: bool = False) -> bool:
    """
    One-time initialisation: service instance plus the all-privileges policy.

    Returns False when the marker says it already ran (and ``force`` is off).
    Raises ConfigurationError when the service cannot be created or resolved,
    or when the policy could not be reconciled.
    """
    key = bootstrap_marker(settings.service_name)
    if markers.is_done(key) and not force:
        logger.info(f"Bootstrap for '{settings.service_name}' already done, skipping")
        return False

    try:
        service = ensure_service_instance(client, settings)
    except RangerError as e:
        raise ConfigurationError(f"Could not create Doris service instance '{settings.service_name}': {e}") from e

    service_id = service.get("id")
    if service_id is None:
        service_id = resolve_service_id(client, settings.service_name)

    reconciler = PolicyReconciler(client, settings.service_name,
                                  conflict_retry_delay=settings.conflict_retry_delay)
    policy = root_policy(settings.service_name, service_id)
    result = reconciler.reconcile(service_id, policy.name, policy)
    if not result.ok:
        raise ConfigurationError(f"Could not create default policy '{policy.name}': {result.message}")

    markers.mark_done(key, service_id=service_id, policy_id=result.policy_id)
    return True
