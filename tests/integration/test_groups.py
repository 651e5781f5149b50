"""
Integration tests for LDAP group provisioning
"""

from rangerctl.groups import LDAP_GROUPS, GroupProvisioner


class TestGroupProvisioner:
    """Test ensuring groups against the mock server"""

    def test_ensure_groups_creates_all(self, ranger_client, ranger_state):
        summary = GroupProvisioner(ranger_client).ensure_groups()

        assert summary.ok
        assert summary.ensured == list(LDAP_GROUPS)
        for name in LDAP_GROUPS:
            group = ranger_state.groups[name]
            assert group["groupSource"] == 1
            assert group["groupType"] == 1
            assert group["isVisible"] == 1

    def test_existing_group_is_not_recreated(self, ranger_client, ranger_state):
        provisioner = GroupProvisioner(ranger_client)
        provisioner.ensure_groups(["analysts"])

        assert provisioner.ensure_group("analysts") is True
        assert ranger_state.count("POST", "/service/xusers/groups") == 1

    def test_already_exists_on_create_is_ok(self, ranger_client, ranger_state):
        ranger_state.groups["sales"] = {"id": 50, "name": "sales"}
        ranger_state.fail_next("GET", "/service/xusers/groups", status=200, body={"vXGroups": []})

        assert GroupProvisioner(ranger_client).ensure_group("sales") is True

    def test_listing_failure_still_tries_create(self, ranger_client, ranger_state):
        ranger_state.fail_next("GET", "/service/xusers/groups", status=500)

        assert GroupProvisioner(ranger_client).ensure_group("developers") is True
        assert "developers" in ranger_state.groups

    def test_failed_group_does_not_stop_the_rest(self, ranger_client, ranger_state):
        ranger_state.fail_next("POST", "/service/xusers/groups", status=500)

        summary = GroupProvisioner(ranger_client).ensure_groups(["admins", "analysts"])

        assert not summary.ok
        assert summary.failed == ["admins"]
        assert summary.ensured == ["analysts"]

    def test_list_group_names(self, ranger_client, ranger_state):
        provisioner = GroupProvisioner(ranger_client)
        provisioner.ensure_groups(["analysts"])

        assert provisioner.list_group_names() == ["public", "analysts"]
        assert provisioner.list_group_names(include_public=False) == ["analysts"]
        assert provisioner.group_exists("analysts")
        assert not provisioner.group_exists("sales")
