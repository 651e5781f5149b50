"""
Pytest configuration: an in-process mock Ranger Admin
"""

import pytest
import threading
import time
from http.server import HTTPServer, BaseHTTPRequestHandler
import json
import base64
from urllib.parse import urlparse, unquote
import socket

RANGER_USER = "admin"
RANGER_PASSWORD = "Admin123"
SERVICE_NAME = "doris_nbd"

PUBLIC_API = "/service/public/v2/api"


def get_free_port():
    """Get a free port for testing"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('', 0))
        s.listen(1)
        port = s.getsockname()[1]
    return port


def resource_signature(doc):
    return tuple(sorted(
        (dim, tuple(sorted(res.get("values", []))), bool(res.get("isExcludes")), bool(res.get("isRecursive")))
        for dim, res in (doc.get("resources") or {}).items()
    ))


class RangerState:
    """What the mock Ranger Admin stores between requests"""

    def __init__(self):
        self.reset()

    def reset(self):
        self.services = {}
        self.policies = {}
        self.groups = {"public": {"id": 1, "name": "public"}}
        self.next_id = 100
        self.failures = []
        self.requests = []

    def _new_id(self):
        self.next_id += 1
        return self.next_id

    def add_service(self, name=SERVICE_NAME):
        service_id = self._new_id()
        self.services[name] = {"id": service_id, "name": name, "type": "doris", "isEnabled": True}
        return service_id

    def add_policy(self, doc):
        """Store a policy directly, bypassing the conflict checks"""
        stored = dict(doc)
        stored["id"] = self._new_id()
        stored["version"] = 1
        self.policies[stored["id"]] = stored
        return stored

    def policies_named(self, name):
        return [p for p in self.policies.values() if p.get("name") == name]

    def fail_next(self, method, path_prefix, status=400, body=None):
        """Answer the next matching request with an error"""
        self.failures.append((method, path_prefix, status, body or {"statusCode": 1, "msgDesc": "Injected failure"}))

    def count(self, method, path_prefix=""):
        return sum(1 for m, p in self.requests if m == method and p.startswith(path_prefix))


class MockRangerHandler(BaseHTTPRequestHandler):
    """Mock Ranger Admin server for testing"""

    @property
    def state(self):
        return self.server.state

    def log_message(self, format, *args):
        pass

    def _send_json(self, data, status_code=200):
        body = json.dumps(data).encode()
        self.send_response(status_code)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_empty(self, status_code=204):
        self.send_response(status_code)
        self.send_header('Content-Length', '0')
        self.end_headers()

    def _send_error(self, status_code, message):
        self._send_json({"statusCode": 1, "msgDesc": message}, status_code)

    def _read_json(self):
        content_length = int(self.headers.get('Content-Length', 0))
        if not content_length:
            return {}
        return json.loads(self.rfile.read(content_length))

    def _authorized(self):
        expected = base64.b64encode(f"{RANGER_USER}:{RANGER_PASSWORD}".encode()).decode()
        return self.headers.get('Authorization') == f"Basic {expected}"

    def _dispatch(self, method):
        path = unquote(urlparse(self.path).path)
        body = self._read_json() if method in ("POST", "PUT") else None
        self.state.requests.append((method, path))

        if not self._authorized():
            self._send_error(401, "Authentication required")
            return

        for failure in list(self.state.failures):
            fail_method, prefix, status, fail_body = failure
            if fail_method == method and path.startswith(prefix):
                self.state.failures.remove(failure)
                self._send_json(fail_body, status)
                return

        handler = getattr(self, f"_{method.lower()}")
        handler(path, body)

    def do_GET(self):
        self._dispatch("GET")

    def do_POST(self):
        self._dispatch("POST")

    def do_PUT(self):
        self._dispatch("PUT")

    def do_DELETE(self):
        self._dispatch("DELETE")

    def _get(self, path, body):
        if path == '/service/plugins/definitions':
            self._send_json({"serviceDefs": [{"name": "doris"}], "totalCount": 1})

        elif path.startswith(f'{PUBLIC_API}/service/name/'):
            name = path.rsplit('/', 1)[-1]
            service = self.state.services.get(name)
            if service:
                self._send_json(service)
            else:
                self._send_error(404, f"Service {name} not found")

        elif path.startswith('/service/plugins/policies/service/name/'):
            name = path.rsplit('/', 1)[-1]
            policies = [p for p in self.state.policies.values() if p.get("service") == name]
            self._send_json({"startIndex": 0, "totalCount": len(policies), "policies": policies})

        elif path.startswith(f'{PUBLIC_API}/policy/'):
            policy = self.state.policies.get(int(path.rsplit('/', 1)[-1]))
            if policy:
                self._send_json(policy)
            else:
                self._send_error(404, "Policy not found")

        elif path == '/service/xusers/groups':
            groups = list(self.state.groups.values())
            self._send_json({"totalCount": len(groups), "vXGroups": groups})

        else:
            self._send_error(404, "Not found")

    def _post(self, path, body):
        if path == f'{PUBLIC_API}/service':
            if body.get("name") in self.state.services:
                self._send_error(400, f"Duplicate service name: name={body['name']}")
                return
            service = dict(body, id=self.state._new_id())
            self.state.services[service["name"]] = service
            self._send_json(service)

        elif path == f'{PUBLIC_API}/policy':
            signature = resource_signature(body)
            for existing in self.state.policies.values():
                if existing.get("service") != body.get("service"):
                    continue
                if existing.get("name") == body.get("name") or resource_signature(existing) == signature:
                    self._send_error(
                        400,
                        f"Another policy already exists for matching resource: "
                        f"policy-name=[{existing['name']}], service=[{existing['service']}]"
                    )
                    return
            self._send_json(self.state.add_policy(body))

        elif path == '/service/xusers/groups':
            if body.get("name") in self.state.groups:
                self._send_error(400, f"XGroup already exists: {body['name']}")
                return
            group = dict(body, id=self.state._new_id())
            self.state.groups[group["name"]] = group
            self._send_json(group)

        else:
            self._send_error(404, "Not found")

    def _put(self, path, body):
        if not path.startswith(f'{PUBLIC_API}/policy/'):
            self._send_error(404, "Not found")
            return
        policy_id = int(path.rsplit('/', 1)[-1])
        existing = self.state.policies.get(policy_id)
        if not existing:
            self._send_error(404, "Policy not found")
            return
        updated = dict(body, id=policy_id, version=existing["version"] + 1)
        self.state.policies[policy_id] = updated
        self._send_json(updated)

    def _delete(self, path, body):
        if not path.startswith(f'{PUBLIC_API}/policy/'):
            self._send_error(404, "Not found")
            return
        if self.state.policies.pop(int(path.rsplit('/', 1)[-1]), None) is None:
            self._send_error(404, "Policy not found")
            return
        self._send_empty(204)


def start_mock_server(handler_class, port):
    """Start a mock server in a thread"""
    server = HTTPServer(('127.0.0.1', port), handler_class)
    server.state = RangerState()
    thread = threading.Thread(target=server.serve_forever)
    thread.daemon = True
    thread.start()
    time.sleep(0.1)  # Give server time to start
    return server


@pytest.fixture(scope="session")
def mock_ranger_server():
    """Fixture for mock Ranger Admin server"""
    port = get_free_port()
    server = start_mock_server(MockRangerHandler, port)
    yield server
    server.shutdown()


@pytest.fixture
def ranger_state(mock_ranger_server):
    """Fresh server-side state for every test"""
    mock_ranger_server.state.reset()
    return mock_ranger_server.state


@pytest.fixture
def ranger_url(mock_ranger_server):
    return f"http://127.0.0.1:{mock_ranger_server.server_address[1]}"


@pytest.fixture
def ranger_client(ranger_url, ranger_state):
    """Fixture for Ranger client with mock server"""
    from rangerctl.ranger_client import RangerClient

    return RangerClient(
        ranger_url,
        RANGER_USER,
        RANGER_PASSWORD,
        timeout=5,
        use_connection_pool=False,
        read_retries=1,
        retry_delay=0,
    )


@pytest.fixture
def service_id(ranger_state):
    """The Doris service instance, already registered"""
    return ranger_state.add_service(SERVICE_NAME)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's shell settings out of the tests"""
    for name in ("RANGER_URL", "RANGER_USER", "RANGER_PASSWORD", "SERVICE_NAME", "LOG_LEVEL",
                 "RANGER_REQUEST_TIMEOUT", "RANGER_VERIFY_SSL", "RANGER_API_WAIT_ATTEMPTS",
                 "RANGER_API_WAIT_INTERVAL", "RANGER_CONFLICT_RETRY_DELAY", "RANGERCTL_STATE_FILE",
                 "DORIS_JDBC_URL", "DORIS_USERNAME", "DORIS_PASSWORD", "DORIS_JDBC_DRIVER"):
        monkeypatch.delenv(name, raising=False)
