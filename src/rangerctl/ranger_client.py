import requests
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from .conflicts import error_message, is_conflict_message, policy_names_in
from .resilience import get_connection_pool_manager, retry_on_failure

logger = logging.getLogger(__name__)

PUBLIC_API = "/service/public/v2/api"
PLUGINS_API = "/service/plugins"
XUSERS_API = "/service/xusers"


class RangerError(Exception):
    """Base exception for Ranger client errors"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class RangerConnectionError(RangerError):
    """Ranger Admin could not be reached"""
    pass


class RangerAuthError(RangerError):
    """Authentication or authorization failed"""
    pass


class RangerNotFoundError(RangerError):
    """Resource not found"""
    pass


class RangerConflictError(RangerError):
    """The request collides with something Ranger already stores"""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None,
                 conflicting_names: Optional[List[str]] = None):
        super().__init__(message, status_code, body)
        self.conflicting_names = conflicting_names or []


class RangerRequestError(RangerError):
    """Any other non-2xx response, or a request that could not be sent as built"""
    pass


class RangerResponseError(RangerError):
    """A 2xx response whose body could not be used"""
    pass


class RangerClient:
    """
    Ranger Admin REST client covering:
    - Service instances (public v2 API)
    - Policies (public v2 API, plus the plugins listing by service name)
    - Groups (xusers API)
    """

    def __init__(self, ranger_url: str, username: str, password: str,
                 timeout: float = 30, verify_ssl: bool = True,
                 use_connection_pool: bool = True,
                 read_retries: int = 3, retry_delay: float = 2.0):
        self.base_url = ranger_url.rstrip('/')
        self.auth: Tuple[str, str] = (username, password)
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.headers = {
            "Content-Type": "application/json",
            "Accept": "application/json"
        }

        if use_connection_pool:
            self.session = get_connection_pool_manager().get_session(
                self.base_url,
                headers=self.headers,
                auth=self.auth,
                timeout=self.timeout
            )
        else:
            self.session = None

        self._get = retry_on_failure(
            max_retries=max(1, read_retries),
            delay=retry_delay,
            retry_on=(RangerConnectionError,)
        )(self._get_once)

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "RangerClient":
        return cls(
            settings.ranger_url,
            settings.ranger_user,
            settings.ranger_password,
            timeout=settings.request_timeout,
            verify_ssl=settings.verify_ssl,
            **kwargs
        )

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Make HTTP request using session if available"""
        url = f"{self.base_url}{path}"
        try:
            if self.session:
                return self.session.request(method, url, verify=self.verify_ssl, **kwargs)
            kwargs.setdefault('headers', self.headers)
            kwargs.setdefault('timeout', self.timeout)
            kwargs.setdefault('verify', self.verify_ssl)
            return requests.request(method, url, auth=self.auth, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise RangerConnectionError(f"{method} {url} failed: {e}") from e
        except requests.RequestException as e:
            # Malformed URL, redirect loop and the like: retrying will not help
            raise RangerRequestError(f"{method} {url} failed: {e}") from e

    def _handle_response(self, response: requests.Response) -> Any:
        """Handle API response and raise appropriate exceptions"""
        status = response.status_code
        if status in (401, 403):
            raise RangerAuthError(f"Authentication failed (HTTP {status})", status, response.text)
        if status == 404:
            raise RangerNotFoundError("Resource not found", status, response.text)
        if status == 409:
            message = error_message(response.text)
            raise RangerConflictError(message or "Conflict", status, response.text,
                                      conflicting_names=policy_names_in(message))
        if status >= 400:
            message = error_message(response.text)
            if is_conflict_message(message):
                raise RangerConflictError(message, status, response.text,
                                          conflicting_names=policy_names_in(message))
            raise RangerRequestError(f"API Error {status}: {message}", status, response.text)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RangerResponseError(f"Malformed JSON in response (HTTP {status})", status, response.text) from e

    def _get_once(self, path: str, **kwargs) -> Any:
        return self._handle_response(self._request("GET", path, **kwargs))

    def _send(self, method: str, path: str, payload: Optional[Dict] = None) -> Any:
        return self._handle_response(self._request(method, path, json=payload))

    @staticmethod
    def _document(data: Any, what: str) -> Dict:
        """A 2xx body that must be a single JSON object"""
        if not isinstance(data, dict):
            raise RangerResponseError(f"Expected a JSON object for {what}, got {type(data).__name__}")
        return data

    # Health
    def ping(self) -> bool:
        """Cheap authenticated call that succeeds once the REST API is serving"""
        self._get_once(f"{PLUGINS_API}/definitions", params={"page": 0, "pageSize": 1})
        return True

    # Service instances
    def get_service(self, service_name: str) -> Dict:
        return self._document(self._get(f"{PUBLIC_API}/service/name/{quote(service_name)}"),
                              f"service '{service_name}'")

    def find_service(self, service_name: str) -> Optional[Dict]:
        """Return the service document, or None if Ranger does not know it"""
        try:
            service = self.get_service(service_name)
        except RangerNotFoundError:
            return None
        except RangerRequestError as e:
            # Older Ranger builds answer a missing name with 400 "Data Not Found"
            if "not found" in e.message.lower():
                return None
            raise
        if service.get("name") != service_name:
            return None
        return service

    def get_service_id(self, service_name: str) -> int:
        service = self.get_service(service_name)
        service_id = service.get("id") if isinstance(service, dict) else None
        if service_id is None:
            raise RangerResponseError(f"No id in service document for '{service_name}'")
        return int(service_id)

    def create_service(self, service_doc: Dict) -> Dict:
        return self._document(self._send("POST", f"{PUBLIC_API}/service", service_doc), "created service")

    # Policies
    def list_service_policies(self, service_name: str) -> List[Dict]:
        """All policies of a service; Ranger offers no exact-name filter"""
        data = self._get(f"{PLUGINS_API}/policies/service/name/{quote(service_name)}")
        if isinstance(data, list):
            return data
        if not isinstance(data, dict):
            raise RangerResponseError(f"Unexpected policy listing for '{service_name}'")
        return data.get("policies") or []

    def get_policy(self, policy_id: int) -> Dict:
        return self._document(self._get(f"{PUBLIC_API}/policy/{policy_id}"), f"policy {policy_id}")

    def create_policy(self, policy_doc: Dict) -> Dict:
        return self._document(self._send("POST", f"{PUBLIC_API}/policy", policy_doc), "created policy")

    def update_policy(self, policy_id: int, policy_doc: Dict) -> Dict:
        return self._document(self._send("PUT", f"{PUBLIC_API}/policy/{policy_id}", policy_doc),
                              f"updated policy {policy_id}")

    def delete_policy(self, policy_id: int) -> None:
        self._send("DELETE", f"{PUBLIC_API}/policy/{policy_id}")

    # Groups
    def list_groups(self) -> List[Dict]:
        data = self._get(f"{XUSERS_API}/groups")
        if not isinstance(data, dict):
            raise RangerResponseError("Unexpected group listing")
        return data.get("vXGroups") or []

    def create_group(self, group_doc: Dict) -> Dict:
        return self._send("POST", f"{XUSERS_API}/groups", group_doc)
