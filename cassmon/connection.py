import logging
import re
from typing import Any, Optional

import requests

from cassmon.exceptions import (
    AuthenticationError,
    ConnectionClosedError,
    ConnectionFailedError,
    MalformedObjectNameError,
    RemoteReadError,
)

logger = logging.getLogger(__name__)

URL_TEMPLATE = "{scheme}://{host}:{port}/jolokia/"
DEFAULT_PORT = 8778
DEFAULT_TIMEOUT = 120

# Characters that would change the meaning of an ObjectName key property value
_OBJECT_NAME_RESERVED = re.compile(r'[,=:*?"\n]')


def build_service_url(host: str, port: int, ssl: bool = False) -> str:
    """Build the agent endpoint URL, bracketing IPv6 literals"""
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    scheme = "https" if ssl else "http"
    return URL_TEMPLATE.format(scheme=scheme, host=host, port=port)


def validate_property(value: str, what: str = "value") -> str:
    """
    Validate a single ObjectName key property value.

    Args:
        value: The keyspace, table or metric name to embed
        what: Name of the field, used in the error message

    Returns:
        The value unchanged

    Raises:
        MalformedObjectNameError: If the value is empty or contains reserved characters
    """
    if not value:
        raise MalformedObjectNameError(f"Invalid ObjectName: {what} must not be empty")
    if _OBJECT_NAME_RESERVED.search(value):
        raise MalformedObjectNameError(f"Invalid ObjectName: {what} '{value}' contains reserved characters")
    return value


class JolokiaConnection:
    """
    A remote management session with a Cassandra node.

    The session is opened on construction; a version handshake must succeed
    before any read is attempted.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        username: Optional[str] = None,
        password: Optional[str] = None,
        ssl: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        if bool(username) != bool(password):
            raise ValueError("neither username nor password can be blank")

        self.host = host
        self.port = port
        self.username = username
        self.timeout = timeout
        self.url = build_service_url(host, port, ssl)
        self.failed = False
        self.agent_version = None

        self._session = session or requests.Session()
        if username:
            self._session.auth = (username, password)
        self._closed = False

        self.connect()

    def connect(self):
        """Open the session by asking the agent for its version"""
        logger.info(f"Connecting to {self.url}")
        try:
            response = self._session.post(self.url, json={"type": "version"}, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            self._session.close()
            raise ConnectionFailedError(self.host, self.port, e) from e

        if response.status_code in (401, 403):
            self._session.close()
            raise AuthenticationError(
                self.host, self.port, PermissionError(f"HTTP {response.status_code} {response.reason}")
            )
        try:
            response.raise_for_status()
            body = response.json()
        except (requests.exceptions.HTTPError, ValueError) as e:
            self._session.close()
            raise ConnectionFailedError(self.host, self.port, e) from e

        if body.get("status") != 200:
            self._session.close()
            raise ConnectionFailedError(
                self.host, self.port, RuntimeError(body.get("error", "agent rejected version request"))
            )

        self.agent_version = (body.get("value") or {}).get("agent")
        logger.info(f"Connected to {self.host}:{self.port} (agent {self.agent_version})")

    def read(self, object_name: str, attribute: Optional[str] = None) -> Any:
        """
        Read one attribute, or every attribute, of a remote MBean.

        Args:
            object_name: Full ObjectName of the MBean
            attribute: Attribute to read; None reads them all as a dict

        Returns:
            The attribute value as decoded from JSON

        Raises:
            ConnectionClosedError: If the session was already closed
            ConnectionFailedError: On transport failures
            RemoteReadError: If the agent reports an error for this read
        """
        if self._closed:
            raise ConnectionClosedError("Session is closed, reconnect before reading metrics")

        request = {"type": "read", "mbean": object_name}
        if attribute is not None:
            request["attribute"] = attribute

        logger.debug(f"read {object_name} {attribute or '*'}")
        try:
            response = self._session.post(self.url, json=request, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise ConnectionFailedError(self.host, self.port, e) from e

        status = body.get("status")
        if status != 200:
            raise RemoteReadError(
                object_name,
                attribute,
                status,
                body.get("error_type", "unknown"),
                body.get("error", ""),
            )
        return body.get("value")

    def close(self):
        if not self._closed:
            self._session.close()
            self._closed = True
            logger.info(f"Closed session with {self.host}:{self.port}")

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
