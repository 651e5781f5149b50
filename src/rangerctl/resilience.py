"""
Retry and connection handling for Ranger Admin calls

- Fixed-delay retry for transient network errors on read calls
- Pooled requests sessions, one per Ranger base URL

Retries are bounded by attempt counts. Writes are never retried here:
a repeated POST could create a duplicate policy.
"""

import time
import logging
from functools import wraps
from threading import Lock
from typing import Any, Callable, Dict, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)


def retry_on_failure(max_retries: int = 3, delay: float = 2.0,
                     retry_on: Tuple[type, ...] = (requests.ConnectionError, requests.Timeout)):
    """Decorator for retry logic with a fixed delay between attempts"""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        logger.warning(
                            f"Attempt {attempt + 1}/{max_retries} of {func.__name__} failed, "
                            f"retrying in {delay}s: {e}"
                        )
                        time.sleep(delay)
                    else:
                        logger.error(f"All {max_retries} attempts of {func.__name__} failed")
            raise last_exception
        return wrapper
    return decorator


class ConnectionPoolManager:
    """
    Manages HTTP connection pools for Ranger Admin endpoints
    """

    def __init__(self,
                 pool_connections: int = 4,
                 pool_maxsize: int = 10,
                 max_retries: int = 3,
                 backoff_factor: float = 0.5,
                 status_forcelist: tuple = (502, 503, 504)):
        self.pool_connections = pool_connections
        self.pool_maxsize = pool_maxsize

        # Only idempotent reads are retried at the transport level
        self.retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=status_forcelist,
            allowed_methods=["HEAD", "GET"],
            raise_on_status=False
        )

        self._pools: Dict[Tuple[str, Any], requests.Session] = {}
        self._lock = Lock()

    def get_session(self, base_url: str,
                    headers: Dict[str, str] = None,
                    auth: Any = None,
                    timeout: float = 30.0) -> requests.Session:
        """Get or create a session for a base URL and credential pair"""
        key = (base_url, auth)
        with self._lock:
            if key not in self._pools:
                session = requests.Session()

                adapter = HTTPAdapter(
                    pool_connections=self.pool_connections,
                    pool_maxsize=self.pool_maxsize,
                    max_retries=self.retry_strategy
                )
                session.mount("http://", adapter)
                session.mount("https://", adapter)

                if headers:
                    session.headers.update(headers)
                if auth:
                    session.auth = auth

                session.request = self._wrap_request_with_timeout(session.request, timeout)

                self._pools[key] = session
                logger.debug(f"Created new connection pool for {base_url}")

            return self._pools[key]

    def _wrap_request_with_timeout(self, request_func: Callable, default_timeout: float):
        """Wrap request method to ensure timeout is always set"""
        @wraps(request_func)
        def wrapper(*args, **kwargs):
            if kwargs.get('timeout') is None:
                kwargs['timeout'] = default_timeout
            return request_func(*args, **kwargs)
        return wrapper

    def close_all(self):
        """Close all connection pools"""
        with self._lock:
            for (base_url, _), session in self._pools.items():
                session.close()
                logger.debug(f"Closed connection pool for {base_url}")
            self._pools.clear()


_connection_pool_manager = ConnectionPoolManager()


def get_connection_pool_manager() -> ConnectionPoolManager:
    """Get the global connection pool manager"""
    return _connection_pool_manager
