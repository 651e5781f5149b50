"""
Desired Ranger policies for the Doris demo stack.

One policy covers every database for the Doris root user, the admin user
and the admins group. Other group policies give each LDAP group its own
resource scope; user policies narrow individual users down to single
tables. Policies whose scope is identical to another one are left out by
default: Ranger rejects a second policy over the same resources.
"""

import logging
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .exceptions import ConfigurationError
from .models import (
    FULL_ACCESS,
    READ_ONLY,
    READ_WRITE,
    RESOURCE_DIMENSIONS,
    AccessType,
    Policy,
    PolicyItem,
    PolicyResource,
)

logger = logging.getLogger(__name__)

Values = Union[str, Sequence[str]]


def _values(value: Values) -> List[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


def build_policy(name: str, service_name: str, accesses: Iterable[Union[str, AccessType]],
                 users: Sequence[str] = (), groups: Sequence[str] = (), roles: Sequence[str] = (),
                 catalog: Values = "*", database: Values = "*", table: Values = "*", column: Values = "*",
                 description: str = "", delegate_admin: bool = False,
                 service_id: Optional[int] = None) -> Policy:
    """Single-item allow policy over a catalog/database/table/column scope"""
    if not (users or groups or roles):
        raise ValueError(f"Policy '{name}' grants access to nobody")
    accesses = list(accesses)
    if not accesses:
        raise ValueError(f"Policy '{name}' grants no access types")

    scope = dict(zip(RESOURCE_DIMENSIONS, (catalog, database, table, column)))
    return Policy(
        name=name,
        service=service_name,
        service_id=service_id,
        description=description,
        resources={dim: PolicyResource(values=_values(v)) for dim, v in scope.items()},
        policy_items=[PolicyItem.grant(accesses, users=users, groups=groups, roles=roles,
                                       delegate_admin=delegate_admin)],
    )


# name, principal kind, principal, database, table, accesses, delegate admin, description
_GROUP_POLICIES = [
    ("group_analysts_demo_db_readonly", "groups", "analysts", "demo_db", "*", READ_ONLY, False,
     "Read-only access for analysts group to demo_db only"),
    ("group_sales_sales_db_rw", "groups", "sales", "sales_db", "*", READ_WRITE, False,
     "Read/Write access for sales group to sales_db only"),
    ("group_developers_demo_db_products_orders_rw", "groups", "developers", "demo_db",
     ["products", "orders"], READ_WRITE, False,
     "Read/Write access for developers group to demo_db.products and demo_db.orders tables only"),
    ("group_data_engineers_demo_db_users_table", "groups", "data_engineers", "demo_db", "users",
     READ_WRITE, False, "Read/Write access for data_engineers group to demo_db.users table only"),
]

_USER_POLICIES = [
    ("user_analyst2_demo_db_orders_readonly", "users", "analyst2", "demo_db", "orders", READ_ONLY, False,
     "Read-only access for analyst2 user to demo_db.orders table only"),
    ("user_sales_user1_sales_db_sales_rw", "users", "sales_user1", "sales_db", "sales", READ_WRITE, False,
     "Read/Write access for sales_user1 to sales_db.sales table only"),
    ("user_sales_user2_demo_db_products_rw", "users", "sales_user2", "demo_db", "products", READ_WRITE, False,
     "Read/Write access for sales_user2 to demo_db.products table (sales_user2 is also in the sales group)"),
]

# Off by default: Ranger reports each of these as conflicting with a default policy
_OVERLAPPING_POLICIES = [
    ("group_admins_all_databases", "groups", "admins", "*", "*", FULL_ACCESS, True,
     "Full access for admins group to all databases"),
    ("user_admin_all_databases_full", "users", "admin", "*", "*", FULL_ACCESS, True,
     "Full access for admin user to all databases including internal schemas (__internal_schema, etc.)"),
    ("group_readonly_users_sales_db_customers_readonly", "groups", "readonly_users", "sales_db", "customers",
     READ_ONLY, False, "Read-only access for readonly_users group to sales_db.customers table only"),
    ("user_analyst1_demo_db_products_readonly", "users", "analyst1", "demo_db", "products", READ_ONLY, False,
     "Read-only access for analyst1 user to demo_db.products table only"),
]


def _from_rows(rows, service_name: str, service_id: Optional[int]) -> List[Policy]:
    policies = []
    for name, kind, principal, database, table, accesses, delegate, description in rows:
        policies.append(build_policy(
            name, service_name, accesses,
            database=database, table=table, description=description,
            delegate_admin=delegate, service_id=service_id,
            **{kind: [principal]}
        ))
    return policies


def default_policies(service_name: str, service_id: Optional[int] = None,
                     include_overlapping: bool = False) -> List[Policy]:
    """All-databases policy, then group policies, then user policies, in the order they are applied"""
    rows = list(_GROUP_POLICIES) + list(_USER_POLICIES)
    if include_overlapping:
        rows += _OVERLAPPING_POLICIES
    return [root_policy(service_name, service_id)] + _from_rows(rows, service_name, service_id)


def root_policy(service_name: str, service_id: Optional[int] = None) -> Policy:
    """Full access to every Doris resource; Ranger denies all access until a policy exists"""
    return build_policy(
        "root_all_privileges", service_name, FULL_ACCESS,
        users=["root", "admin"], groups=["admins"], delegate_admin=True, service_id=service_id,
        description="All privileges on all Doris resources for the root and admin users and the admins group",
    )


def find_overlaps(policies: Sequence[Policy]) -> List[Tuple[str, str]]:
    """Pairs of policies whose resource scopes are identical"""
    overlaps = []
    for a, b in combinations(policies, 2):
        if a.resource_signature() == b.resource_signature():
            overlaps.append((a.name, b.name))
    return overlaps


def _policy_from_entry(entry: Dict[str, Any], service_name: str, service_id: Optional[int]) -> Policy:
    if "resources" in entry or "policyItems" in entry or "policy_items" in entry:
        data = dict(entry)
        data.setdefault("service", service_name)
        if service_id is not None:
            data.setdefault("serviceId", service_id)
        return Policy.model_validate(data)

    known = {"name", "users", "groups", "roles", "catalog", "database", "table", "column",
             "accesses", "description", "delegate_admin"}
    unknown = set(entry) - known
    if unknown:
        raise ValueError(f"unknown keys {sorted(unknown)}")
    kwargs = dict(entry)
    name = kwargs.pop("name")
    accesses = kwargs.pop("accesses", [])
    for key in ("users", "groups", "roles"):
        if key in kwargs:
            kwargs[key] = _values(kwargs[key])
    return build_policy(name, service_name, accesses, service_id=service_id, **kwargs)


def load_policy_file(path: str, service_name: str, service_id: Optional[int] = None) -> List[Policy]:
    """
    Read desired policies from YAML.

    The file holds a ``policies`` list. Entries are either full Ranger policy
    documents (with ``resources``/``policyItems``) or the short form::

        - name: group_analysts_demo_db_readonly
          groups: [analysts]
          database: demo_db
          accesses: [SELECT, SHOW]
    """
    yaml = YAML(typ="safe")
    try:
        with open(path, 'r') as f:
            data = yaml.load(f)
    except (OSError, YAMLError) as e:
        raise ConfigurationError(f"Cannot read policy file {path}: {e}") from e

    entries = data.get("policies") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigurationError(f"Policy file {path} must contain a 'policies' list")

    policies = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get("name"):
            raise ConfigurationError(f"Policy #{index + 1} in {path} has no name")
        try:
            policies.append(_policy_from_entry(entry, service_name, service_id))
        except (ValueError, ValidationError, TypeError) as e:
            raise ConfigurationError(f"Invalid policy '{entry.get('name')}' in {path}: {e}") from e
    logger.info(f"Loaded {len(policies)} policies from {path}")
    return policies
