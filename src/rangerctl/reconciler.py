"""
Policy reconciliation

Makes the policies stored in Ranger Admin for one service match a list of
desired policy documents. Ranger has no atomic upsert, so each policy goes
through lookup, then update or create, with two bounded recovery paths:

- a failed update falls back to delete-then-create
- a create rejected for overlapping resources deletes the named conflicting
  policy and retries the create once

Failures are logged and reported per policy; a batch never stops early.
"""

import copy
import time
import logging
from typing import Any, Dict, Iterable, Optional, Union

from .conflicts import conflicting_policy_name
from .models import (
    BatchSummary,
    Policy,
    ReconcileOutcome,
    ReconcileResult,
    SERVER_MANAGED_FIELDS,
)
from .ranger_client import RangerClient, RangerConflictError, RangerError, RangerNotFoundError

logger = logging.getLogger(__name__)

PolicyDoc = Union[Policy, Dict[str, Any]]


def merge_policy(existing: Dict[str, Any], desired: Dict[str, Any], policy_id: int) -> Dict[str, Any]:
    """Overlay desired fields on the stored document, keeping server-managed ones

    The id always comes from the caller; the stored body may omit it.
    """
    merged = copy.deepcopy(existing)
    for key, value in desired.items():
        if key not in SERVER_MANAGED_FIELDS:
            merged[key] = copy.deepcopy(value)
    merged["id"] = policy_id
    merged["version"] = (existing.get("version") or 0) + 1
    return merged


class PolicyReconciler:
    def __init__(self, client: RangerClient, service_name: str,
                 skip_existing: bool = False, conflict_retry_delay: float = 1.0):
        self.client = client
        self.service_name = service_name
        self.skip_existing = skip_existing
        self.conflict_retry_delay = conflict_retry_delay

    def find_policy_id(self, policy_name: str) -> Optional[int]:
        """Scan the service's policies for an exact name match"""
        for policy in self.client.list_service_policies(self.service_name):
            if policy.get("name") == policy_name:
                return policy.get("id")
        return None

    def delete_policy_by_name(self, policy_name: str) -> bool:
        """Delete a policy by name; a policy that does not exist counts as deleted"""
        policy_id = self.find_policy_id(policy_name)
        if policy_id is None:
            return True
        logger.info(f"Deleting existing policy '{policy_name}' (ID: {policy_id})...")
        try:
            self.client.delete_policy(policy_id)
        except RangerNotFoundError:
            logger.info(f"Policy '{policy_name}' (ID: {policy_id}) was already gone")
            return True
        except RangerError as e:
            logger.warning(f"Failed to delete policy '{policy_name}': {e}")
            return False
        logger.info(f"Policy '{policy_name}' deleted")
        return True

    def reconcile(self, service_id: Optional[int], policy_name: str, desired: PolicyDoc) -> ReconcileResult:
        """Ensure exactly one policy named ``policy_name`` matching ``desired`` exists"""
        document = self._document(service_id, policy_name, desired)
        try:
            existing_id = self.find_policy_id(policy_name)
            if existing_id is not None:
                if self.skip_existing:
                    logger.info(f"Policy '{policy_name}' already exists (ID: {existing_id}), skipping")
                    return ReconcileResult(policy_name, ReconcileOutcome.SKIPPED, existing_id)
                logger.info(f"Policy '{policy_name}' already exists (ID: {existing_id}), updating...")
                try:
                    updated = self._update(existing_id, document)
                    logger.info(f"Policy '{policy_name}' updated (version {updated.get('version')})")
                    return ReconcileResult(policy_name, ReconcileOutcome.UPDATED, existing_id)
                except RangerError as e:
                    return self._recreate(policy_name, document, e)
            return self._create(policy_name, document)
        except RangerError as e:
            logger.warning(f"Failed to reconcile policy '{policy_name}': {e}")
            return ReconcileResult(policy_name, ReconcileOutcome.FAILED, message=str(e))

    def reconcile_all(self, service_id: Optional[int], policies: Iterable[PolicyDoc]) -> BatchSummary:
        summary = BatchSummary()
        for desired in policies:
            name = desired.name if isinstance(desired, Policy) else desired.get("name")
            if not name:
                logger.warning("Skipping policy document without a name")
                summary.add(ReconcileResult("<unnamed>", ReconcileOutcome.FAILED, message="missing name"))
                continue
            summary.add(self.reconcile(service_id, name, desired))

        if summary.failed:
            logger.warning(
                f"Reconciled {summary.succeeded} policies, {summary.failed} failed: "
                f"{', '.join(summary.failed_names)}"
            )
        else:
            logger.info(f"Reconciled {summary.succeeded} policies")
        return summary

    def _document(self, service_id: Optional[int], policy_name: str, desired: PolicyDoc) -> Dict[str, Any]:
        document = desired.to_payload() if isinstance(desired, Policy) else copy.deepcopy(desired)
        for key in SERVER_MANAGED_FIELDS:
            document.pop(key, None)
        document["name"] = policy_name
        document.setdefault("service", self.service_name)
        if service_id is not None:
            document["serviceId"] = service_id
        return document

    def _update(self, policy_id: int, document: Dict[str, Any]) -> Dict[str, Any]:
        existing = self.client.get_policy(policy_id)
        merged = merge_policy(existing, document, policy_id)
        return self.client.update_policy(policy_id, merged)

    def _recreate(self, policy_name: str, document: Dict[str, Any], cause: RangerError) -> ReconcileResult:
        """Fallback when an update is rejected: delete the stored policy and create it again"""
        logger.warning(f"Failed to update policy '{policy_name}' ({cause}), will delete and recreate")
        if not self.delete_policy_by_name(policy_name):
            return ReconcileResult(policy_name, ReconcileOutcome.FAILED,
                                   message=f"update failed and delete failed: {cause}")
        result = self._create(policy_name, document)
        if result.outcome == ReconcileOutcome.CREATED:
            result.outcome = ReconcileOutcome.RECREATED
        return result

    def _create(self, policy_name: str, document: Dict[str, Any]) -> ReconcileResult:
        logger.info(f"Creating policy '{policy_name}'...")
        try:
            created = self.client.create_policy(document)
        except RangerConflictError as e:
            return self._resolve_conflict(policy_name, document, e)
        except RangerError as e:
            logger.warning(f"Failed to create policy '{policy_name}': {e}")
            return ReconcileResult(policy_name, ReconcileOutcome.FAILED, message=str(e))
        logger.info(f"Policy '{policy_name}' created (ID: {created.get('id')})")
        return ReconcileResult(policy_name, ReconcileOutcome.CREATED, created.get("id"))

    def _resolve_conflict(self, policy_name: str, document: Dict[str, Any],
                          conflict: RangerConflictError) -> ReconcileResult:
        logger.warning(f"Policy creation for '{policy_name}' hit a resource conflict: {conflict.message}")
        conflict_name = conflicting_policy_name(conflict.conflicting_names, policy_name)

        if conflict_name is None:
            logger.warning(f"Could not resolve conflict for '{policy_name}' automatically; manual cleanup needed")
            return ReconcileResult(policy_name, ReconcileOutcome.FAILED, message=conflict.message)

        if conflict_name == policy_name:
            logger.info(f"Policy with the same name '{policy_name}' exists, updating instead...")
            try:
                existing_id = self.find_policy_id(policy_name)
                if existing_id is None:
                    return ReconcileResult(policy_name, ReconcileOutcome.FAILED,
                                           message="same-name conflict but policy not found")
                self._update(existing_id, document)
            except RangerError as e:
                logger.warning(f"Update after same-name conflict failed for '{policy_name}': {e}")
                return ReconcileResult(policy_name, ReconcileOutcome.FAILED, message=str(e))
            logger.info(f"Policy '{policy_name}' updated")
            return ReconcileResult(policy_name, ReconcileOutcome.UPDATED, existing_id)

        logger.info(f"Found conflicting policy '{conflict_name}', deleting it...")
        if not self.delete_policy_by_name(conflict_name):
            return ReconcileResult(policy_name, ReconcileOutcome.FAILED,
                                   message=f"could not delete conflicting policy '{conflict_name}'")
        if self.conflict_retry_delay:
            time.sleep(self.conflict_retry_delay)

        logger.info(f"Retrying creation of '{policy_name}'...")
        try:
            created = self.client.create_policy(document)
        except RangerError as e:
            logger.warning(f"Retry also failed for '{policy_name}': {e}")
            return ReconcileResult(policy_name, ReconcileOutcome.FAILED, message=str(e))
        logger.info(f"Policy '{policy_name}' created after deleting conflicting policy '{conflict_name}'")
        return ReconcileResult(policy_name, ReconcileOutcome.CONFLICT_RESOLVED, created.get("id"),
                               message=f"replaced '{conflict_name}'")
