"""
LDAP groups in Ranger Admin.

Group policies only show their groups in the Ranger UI once the groups exist
in Ranger. Usersync normally creates them; this creates the ones it missed.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from .ranger_client import RangerClient, RangerConflictError, RangerError

logger = logging.getLogger(__name__)

# Matches ldap/ldif/03-groups.ldif of the demo stack
LDAP_GROUPS = ("admins", "analysts", "sales", "developers", "data_engineers", "readonly_users")

# groupSource 1 = external (LDAP); groupType 1 = user group; isVisible 1 = visible
EXTERNAL_GROUP_SOURCE = 1
USER_GROUP_TYPE = 1
VISIBLE = 1


@dataclass
class GroupSummary:
    ensured: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class GroupProvisioner:
    def __init__(self, client: RangerClient):
        self.client = client

    def list_group_names(self, include_public: bool = True) -> List[str]:
        names = [g.get("name", "") for g in self.client.list_groups()]
        return [n for n in names if n and (include_public or n != "public")]

    def group_exists(self, name: str) -> bool:
        return name in self.list_group_names()

    def ensure_group(self, name: str) -> bool:
        try:
            if self.group_exists(name):
                logger.info(f"Group '{name}' already exists in Ranger")
                return True
        except RangerError as e:
            logger.warning(f"Could not list Ranger groups, will try to create '{name}': {e}")

        logger.info(f"Creating group '{name}'...")
        try:
            self.client.create_group({
                "name": name,
                "description": f"LDAP group: {name}",
                "groupType": USER_GROUP_TYPE,
                "groupSource": EXTERNAL_GROUP_SOURCE,
                "isVisible": VISIBLE,
            })
        except RangerConflictError:
            logger.info(f"Group '{name}' already exists")
            return True
        except RangerError as e:
            logger.warning(f"Failed to create group '{name}': {e}")
            return False
        logger.info(f"Group '{name}' created")
        return True

    def ensure_groups(self, names: Iterable[str] = LDAP_GROUPS) -> GroupSummary:
        summary = GroupSummary()
        for name in names:
            if self.ensure_group(name):
                summary.ensured.append(name)
            else:
                summary.failed.append(name)

        if summary.failed:
            logger.warning(f"Created/verified {len(summary.ensured)} groups, {len(summary.failed)} failed")
        else:
            logger.info(f"Created/verified {len(summary.ensured)} groups")
        return summary
