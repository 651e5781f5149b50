"""
Integration tests for the Doris service instance and one-time bootstrap
"""

import pytest

from rangerctl.config import RangerSettings
from rangerctl.exceptions import ConfigurationError
from rangerctl.services import (
    bootstrap,
    bootstrap_marker,
    ensure_service_instance,
    resolve_service_id,
    service_document,
)
from rangerctl.state import InMemoryMarkerStore

from tests.conftest import SERVICE_NAME


@pytest.fixture
def settings(ranger_url):
    return RangerSettings(
        ranger_url=ranger_url,
        service_name=SERVICE_NAME,
        conflict_retry_delay=0,
        doris_jdbc_url="jdbc:mysql://fe1.nbd.demo:9030",
        doris_password="secret",
    )


class TestServiceInstance:
    """Test creating and resolving the Doris service instance"""

    def test_service_document(self, settings):
        doc = service_document(settings)

        assert doc["name"] == SERVICE_NAME
        assert doc["type"] == "doris"
        assert doc["configs"]["jdbc.url"] == "jdbc:mysql://fe1.nbd.demo:9030"
        assert doc["configs"]["jdbc.driverClassName"] == "com.mysql.cj.jdbc.Driver"
        assert doc["configs"]["username"] == "root"
        assert doc["configs"]["password"] == "secret"

    def test_creates_missing_service(self, ranger_client, ranger_state, settings):
        service = ensure_service_instance(ranger_client, settings)

        assert ranger_state.services[SERVICE_NAME]["id"] == service["id"]
        assert ranger_state.services[SERVICE_NAME]["configs"]["jdbc.url"] == settings.doris_jdbc_url

    def test_existing_service_is_returned(self, ranger_client, ranger_state, settings, service_id):
        service = ensure_service_instance(ranger_client, settings)

        assert service["id"] == service_id
        assert ranger_state.count("POST") == 0

    def test_duplicate_on_create_counts_as_existing(self, ranger_client, ranger_state, settings, service_id):
        ranger_state.fail_next("GET", "/service/public/v2/api/service/name/", status=404)

        service = ensure_service_instance(ranger_client, settings)

        assert service["id"] == service_id
        assert ranger_state.count("POST", "/service/public/v2/api/service") == 1

    def test_resolve_service_id(self, ranger_client, service_id):
        assert resolve_service_id(ranger_client, SERVICE_NAME) == service_id

    def test_unresolvable_service_id_is_fatal(self, ranger_client, ranger_state):
        with pytest.raises(ConfigurationError) as exc:
            resolve_service_id(ranger_client, SERVICE_NAME)
        assert SERVICE_NAME in str(exc.value)


class TestBootstrap:
    """Test the one-time service and policy initialisation"""

    def test_first_run(self, ranger_client, ranger_state, settings):
        markers = InMemoryMarkerStore()

        assert bootstrap(ranger_client, settings, markers) is True

        service_id = ranger_state.services[SERVICE_NAME]["id"]
        root = ranger_state.policies_named("root_all_privileges")
        assert len(root) == 1
        assert root[0]["serviceId"] == service_id
        assert root[0]["policyItems"][0]["users"] == ["root", "admin"]
        record = markers.get(bootstrap_marker(SERVICE_NAME))
        assert record["service_id"] == service_id
        assert record["policy_id"] == root[0]["id"]
        assert "completed_at" in record

    def test_second_run_does_not_touch_ranger(self, ranger_client, ranger_state, settings):
        markers = InMemoryMarkerStore()
        bootstrap(ranger_client, settings, markers)
        requests_before = len(ranger_state.requests)

        assert bootstrap(ranger_client, settings, markers) is False
        assert len(ranger_state.requests) == requests_before

    def test_force_runs_again(self, ranger_client, ranger_state, settings):
        markers = InMemoryMarkerStore()
        bootstrap(ranger_client, settings, markers)
        root_id = ranger_state.policies_named("root_all_privileges")[0]["id"]

        assert bootstrap(ranger_client, settings, markers, force=True) is True
        assert ranger_state.policies[root_id]["version"] == 2
        assert len(ranger_state.services) == 1

    def test_policy_failure_leaves_marker_unset(self, ranger_client, ranger_state, settings):
        markers = InMemoryMarkerStore()
        ranger_state.fail_next("POST", "/service/public/v2/api/policy", status=500)

        with pytest.raises(ConfigurationError):
            bootstrap(ranger_client, settings, markers)
        assert not markers.is_done(bootstrap_marker(SERVICE_NAME))

    def test_service_creation_failure_is_fatal(self, ranger_client, ranger_state, settings):
        markers = InMemoryMarkerStore()
        ranger_state.fail_next("POST", "/service/public/v2/api/service", status=500)

        with pytest.raises(ConfigurationError):
            bootstrap(ranger_client, settings, markers)
        assert ranger_state.policies == {}
