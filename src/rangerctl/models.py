"""
Ranger policy documents and reconciliation results.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON accepted by /service/public/v2/api/policy.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class AccessType(str, Enum):
    """Access kinds understood by the Doris Ranger plugin"""
    SELECT = "SELECT"
    CREATE = "CREATE"
    DROP = "DROP"
    ALTER = "ALTER"
    LOAD = "LOAD"
    GRANT = "GRANT"
    SHOW = "SHOW"
    SHOW_VIEW = "SHOW_VIEW"
    ADMIN = "ADMIN"
    NODE = "NODE"
    USAGE = "USAGE"


READ_ONLY = (AccessType.SELECT, AccessType.SHOW, AccessType.SHOW_VIEW, AccessType.USAGE)
READ_WRITE = (
    AccessType.SELECT, AccessType.CREATE, AccessType.DROP, AccessType.ALTER,
    AccessType.LOAD, AccessType.SHOW, AccessType.SHOW_VIEW, AccessType.USAGE,
)
FULL_ACCESS = tuple(AccessType)

# Doris resource hierarchy, outermost first
RESOURCE_DIMENSIONS = ("catalog", "database", "table", "column")

# Fields owned by the server; never overwritten from a desired document.
SERVER_MANAGED_FIELDS = ("id", "version", "guid", "createTime", "createdBy")


class _RangerModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class PolicyResource(_RangerModel):
    values: List[str]
    is_excludes: bool = Field(False, alias="isExcludes")
    is_recursive: bool = Field(False, alias="isRecursive")


class PolicyItemAccess(_RangerModel):
    type: str
    is_allowed: bool = Field(True, alias="isAllowed")


class PolicyItem(_RangerModel):
    accesses: List[PolicyItemAccess] = Field(default_factory=list)
    users: List[str] = Field(default_factory=list)
    groups: List[str] = Field(default_factory=list)
    roles: List[str] = Field(default_factory=list)
    conditions: List[Dict[str, Any]] = Field(default_factory=list)
    delegate_admin: bool = Field(False, alias="delegateAdmin")

    @classmethod
    def grant(cls, accesses, users=(), groups=(), roles=(), delegate_admin=False) -> "PolicyItem":
        return cls(
            accesses=[PolicyItemAccess(type=AccessType(a).value) for a in accesses],
            users=list(users),
            groups=list(groups),
            roles=list(roles),
            delegate_admin=delegate_admin,
        )


class Policy(_RangerModel):
    name: str
    service: str
    description: str = ""
    resources: Dict[str, PolicyResource] = Field(default_factory=dict)
    policy_items: List[PolicyItem] = Field(default_factory=list, alias="policyItems")
    deny_policy_items: List[PolicyItem] = Field(default_factory=list, alias="denyPolicyItems")
    allow_exceptions: List[PolicyItem] = Field(default_factory=list, alias="allowExceptions")
    deny_exceptions: List[PolicyItem] = Field(default_factory=list, alias="denyExceptions")
    is_enabled: bool = Field(True, alias="isEnabled")
    is_audit_enabled: bool = Field(True, alias="isAuditEnabled")

    # Assigned by Ranger
    id: Optional[int] = None
    version: Optional[int] = None
    service_id: Optional[int] = Field(None, alias="serviceId")

    def to_payload(self) -> Dict[str, Any]:
        """JSON document for the Ranger public API"""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def resource_signature(self) -> Tuple:
        """Hashable view of the resource scope; equal signatures collide in Ranger"""
        return tuple(
            (dim, tuple(sorted(res.values)), res.is_excludes, res.is_recursive)
            for dim, res in sorted(self.resources.items())
        )

    def principals(self) -> Dict[str, List[str]]:
        users, groups, roles = [], [], []
        for item in self.policy_items:
            users.extend(item.users)
            groups.extend(item.groups)
            roles.extend(item.roles)
        return {"users": users, "groups": groups, "roles": roles}


class ReconcileOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    RECREATED = "recreated"
    CONFLICT_RESOLVED = "conflict_resolved"
    FAILED = "failed"


@dataclass
class ReconcileResult:
    policy_name: str
    outcome: ReconcileOutcome
    policy_id: Optional[int] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome != ReconcileOutcome.FAILED


@dataclass
class BatchSummary:
    results: List[ReconcileResult] = field(default_factory=list)

    def add(self, result: ReconcileResult):
        self.results.append(result)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def failed_names(self) -> List[str]:
        return [r.policy_name for r in self.results if not r.ok]

    def by_outcome(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for r in self.results:
            counts[r.outcome.value] = counts.get(r.outcome.value, 0) + 1
        return counts
