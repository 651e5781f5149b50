"""
Readiness checks for the services Ranger setup depends on.

All waiting goes through ``wait_for``: a bounded, fixed-interval poll that
can be cancelled from another thread through a ``threading.Event``.
"""

import socket
import logging
import threading
from typing import Callable, Optional

import psutil

from .ranger_client import RangerClient, RangerError

logger = logging.getLogger(__name__)

RANGER_ADMIN_PROCESS = "org.apache.ranger.server.tomcat.EmbeddedServer"
RANGER_ADMIN_PORT = 6080


def wait_for(check: Callable[[], bool], max_attempts: int, interval: float,
             cancel_event: Optional[threading.Event] = None,
             describe: Optional[str] = None) -> bool:
    """
    Poll ``check`` until it returns True.

    Args:
        check: Called once per attempt; exceptions count as a failed attempt
        max_attempts: Upper bound on calls to ``check``
        interval: Fixed delay between attempts, in seconds
        cancel_event: When set, the wait stops and returns False
        describe: Label used in log lines

    Returns:
        True on the first successful attempt, False once attempts run out
        or the wait is cancelled
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    cancel_event = cancel_event or threading.Event()
    label = describe or getattr(check, "__name__", "condition")

    for attempt in range(1, max_attempts + 1):
        if cancel_event.is_set():
            logger.info(f"Wait for {label} cancelled")
            return False
        try:
            if check():
                return True
        except Exception as e:
            logger.debug(f"{label} check raised on attempt {attempt}: {e}")
        if attempt < max_attempts:
            logger.debug(f"Attempt {attempt}/{max_attempts}: {label} not ready, waiting {interval}s")
            if cancel_event.wait(interval):
                logger.info(f"Wait for {label} cancelled")
                return False
    return False


def process_running(pattern: str) -> bool:
    """True if any process's command line contains ``pattern``"""
    for proc in psutil.process_iter(["cmdline"]):
        try:
            cmdline = proc.info.get("cmdline") or []
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
        if pattern in " ".join(cmdline):
            return True
    return False


def port_open(host: str, port: int, timeout: float = 1.0) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def await_ready(process_pattern: str = RANGER_ADMIN_PROCESS, port: int = RANGER_ADMIN_PORT,
                max_attempts: int = 60, interval: float = 5.0, host: str = "localhost",
                cancel_event: Optional[threading.Event] = None,
                process_check: Callable[[str], bool] = process_running,
                port_check: Callable[[str, int], bool] = port_open) -> bool:
    """
    Block until the process is running and the port accepts connections.

    Both signals are evaluated fresh on every attempt and must hold in the
    same attempt.
    """
    attempts = {"n": 0, "process": False, "port": False}

    def both_ready() -> bool:
        attempts["n"] += 1
        process_ok = process_check(process_pattern)
        port_ok = port_check(host, port)
        attempts["process"], attempts["port"] = process_ok, port_ok
        if process_ok and port_ok:
            logger.info(f"Service is ready (Process: OK, Port {port}: listening)")
            return True
        logger.info(
            f"Attempt {attempts['n']}/{max_attempts}: "
            f"Process: {'OK' if process_ok else 'waiting'}, "
            f"Port {port}: {'OK' if port_ok else 'waiting'}"
        )
        return False

    logger.info(f"Waiting for '{process_pattern}' on {host}:{port}...")
    if wait_for(both_ready, max_attempts, interval, cancel_event, describe=process_pattern):
        return True

    logger.error(f"Service did not become ready after {attempts['n']} attempts")
    logger.error(f"  Process: {'Running' if attempts['process'] else 'Not running'}")
    logger.error(f"  Port {port}: {'Listening' if attempts['port'] else 'Not listening'}")
    return False


def wait_for_api(client: RangerClient, max_attempts: int = 30, interval: float = 2.0,
                 cancel_event: Optional[threading.Event] = None) -> bool:
    """Block until the Ranger Admin REST API answers an authenticated request"""
    def api_answers() -> bool:
        try:
            return client.ping()
        except RangerError as e:
            logger.debug(f"Ranger Admin API not ready: {e}")
            return False

    logger.info("Waiting for Ranger Admin API to be ready...")
    if wait_for(api_answers, max_attempts, interval, cancel_event, describe="Ranger Admin API"):
        logger.info("Ranger Admin API is ready")
        return True
    logger.error(f"Ranger Admin API is not ready after {max_attempts} attempts")
    return False
