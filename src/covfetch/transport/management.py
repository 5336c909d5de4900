"""Remote management interface reached through a Jolokia agent.

JMX itself is Java RMI and has no Python implementation, so management
operations are sent as Jolokia JSON requests over HTTP with ``requests``.
Locators keep the JMX service URL grammar::

    service:jmx:<protocol>:[//host[:port]][url-path]

``jolokia``, ``http`` and ``https`` locators name a Jolokia agent directly.
Any other protocol (typically ``rmi``) is forwarded through a Jolokia proxy,
which receives the verbatim locator as the request target.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import requests

from covfetch._meta import logger
from covfetch.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import TracebackType

SERVICE_URL_PREFIX = "service:jmx:"
DIRECT_PROTOCOLS = frozenset({"jolokia", "http", "https"})
DEFAULT_AGENT_PATH = "/jolokia"

_PROTOCOL_RE = re.compile(r"[A-Za-z0-9+\-.]+")
_SAP_RE = re.compile(r"(?P<host>\[[^\]]*\]|[^:/;]*)(?::(?P<port>[^/;]*))?(?P<path>.*)", re.DOTALL)
_JNDI_TARGET_RE = re.compile(r"[A-Za-z][A-Za-z0-9+\-.]*://(?P<host>\[[^\]]*\]|[^:/]*)(?::(?P<port>[^/]*))?")
_OBJECT_NAME_ILLEGAL = re.compile(r'[:",=*?\n]')

_JAVA_TYPES = {bool: "boolean", int: "long", str: "java.lang.String"}


# --------------------------------------------------------------------------- #
# Errors raised by connections                                                #
# --------------------------------------------------------------------------- #


class ManagementError(Exception):
    """Base class for failures reported by a management connection."""


class InstanceNotFoundError(ManagementError):
    """No object is registered under the requested name."""


class RemoteOperationError(ManagementError):
    """The remote operation itself raised an exception."""


class ReflectionError(ManagementError):
    """The operation could not be dispatched (unknown method or signature)."""


class ManagementIOError(ManagementError):
    """Transport failure while talking to the management endpoint."""


# --------------------------------------------------------------------------- #
# Addressing                                                                  #
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class ServiceURL:
    """Parsed JMX service URL."""

    protocol: str
    host: str
    port: int | None
    url_path: str
    raw: str

    @classmethod
    def parse(cls, text: str) -> ServiceURL:
        if not text.lower().startswith(SERVICE_URL_PREFIX):
            msg = f"invalid service URL {text!r}: must start with {SERVICE_URL_PREFIX!r}"
            raise ValidationError(msg)
        protocol, sep, sap = text[len(SERVICE_URL_PREFIX) :].partition(":")
        if not sep or not _PROTOCOL_RE.fullmatch(protocol):
            msg = f"invalid service URL {text!r}: missing or malformed protocol"
            raise ValidationError(msg)
        if not sap.startswith("//"):
            msg = f"invalid service URL {text!r}: address must start with '//'"
            raise ValidationError(msg)
        m = _SAP_RE.fullmatch(sap[2:])
        if m is None:  # pragma: no cover - the pattern accepts any string
            msg = f"invalid service URL {text!r}"
            raise ValidationError(msg)
        path = m.group("path")
        if path and path[0] not in "/;":
            msg = f"invalid service URL {text!r}: url-path must start with '/' or ';'"
            raise ValidationError(msg)
        return cls(
            protocol=protocol.lower(),
            host=m.group("host"),
            port=_parse_port(m.group("port"), text),
            url_path=path,
            raw=text,
        )

    def target(self) -> tuple[str, int | None]:
        """Return the host and port the locator ultimately points at.

        For JNDI locators (``/jndi/rmi://host:port/...``) this is the
        registry address inside the url-path, otherwise the address part.
        """
        if self.url_path.startswith("/jndi/"):
            m = _JNDI_TARGET_RE.match(self.url_path[len("/jndi/") :])
            if m is not None:
                return m.group("host"), _parse_port(m.group("port"), self.raw)
        return self.host, self.port

    def __str__(self) -> str:
        return self.raw


def _parse_port(text: str | None, url: str) -> int | None:
    if text is None or text == "":
        return None
    if not (text.isascii() and text.isdecimal()):
        msg = f"invalid service URL {url!r}: port {text!r} is not a number"
        raise ValidationError(msg)
    return int(text)


@dataclass(frozen=True, slots=True)
class ObjectName:
    """Name of a managed object: ``domain:key=value[,key=value...]``."""

    domain: str
    properties: tuple[tuple[str, str], ...]

    @classmethod
    def parse(cls, text: str) -> ObjectName:
        domain, sep, props = text.partition(":")
        if not sep or not props:
            msg = f"malformed object name {text!r}: missing key properties"
            raise ValidationError(msg)
        if any(ch in domain for ch in ":\n*?"):
            msg = f"malformed object name {text!r}: invalid domain"
            raise ValidationError(msg)
        pairs: list[tuple[str, str]] = []
        seen: set[str] = set()
        for item in props.split(","):
            key, eq, value = item.partition("=")
            if not eq or not key or not value or _OBJECT_NAME_ILLEGAL.search(key):
                msg = f"malformed object name {text!r}: bad key property {item!r}"
                raise ValidationError(msg)
            if key in seen:
                msg = f"malformed object name {text!r}: duplicate key {key!r}"
                raise ValidationError(msg)
            seen.add(key)
            pairs.append((key, value))
        return cls(domain=domain, properties=tuple(pairs))

    def __str__(self) -> str:
        return f"{self.domain}:" + ",".join(f"{k}={v}" for k, v in self.properties)


# --------------------------------------------------------------------------- #
# Connections                                                                 #
# --------------------------------------------------------------------------- #


class ManagementConnection(Protocol):
    """Open connection to a management endpoint; usable as a context manager."""

    def invoke(
        self,
        name: ObjectName,
        operation: str,
        params: Sequence[object],
        signature: Sequence[str],
    ) -> object: ...

    def close(self) -> None: ...

    def __enter__(self) -> ManagementConnection: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...


def java_signature(params: Sequence[object]) -> tuple[str, ...]:
    """Map Python argument values to Java parameter type names."""
    return tuple(_JAVA_TYPES.get(type(p), "java.lang.Object") for p in params)


@dataclass(slots=True)
class JolokiaConnection:
    """Connection to a Jolokia agent (or to a remote JVM through a Jolokia proxy)."""

    agent_url: str
    credentials: tuple[str, str] = ("", "")
    target: str | None = None
    timeout: float | None = None
    session: requests.Session = field(default_factory=requests.Session)

    def __enter__(self) -> JolokiaConnection:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def _request_body(
        self,
        name: ObjectName,
        operation: str,
        params: Sequence[object],
        signature: Sequence[str],
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "type": "exec",
            "mbean": str(name),
            "operation": f"{operation}({','.join(signature)})",
            "arguments": list(params),
        }
        if self.target is not None:
            user, password = self.credentials
            target: dict[str, str] = {"url": self.target}
            if user:
                target["user"] = user
                target["password"] = password
            body["target"] = target
        return body

    def invoke(
        self,
        name: ObjectName,
        operation: str,
        params: Sequence[object],
        signature: Sequence[str],
    ) -> object:
        body = self._request_body(name, operation, params, signature)
        auth = self.credentials if self.target is None and self.credentials[0] else None
        logger.debug("POST %s %s", self.agent_url, body["operation"])
        try:
            response = self.session.post(self.agent_url, json=body, auth=auth, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as exc:
            msg = f"request to {self.agent_url} failed: {exc}"
            raise ManagementIOError(msg) from exc
        except ValueError as exc:
            msg = f"invalid JSON response from {self.agent_url}"
            raise ManagementIOError(msg) from exc
        return _unwrap(payload, name, operation)


def _unwrap(payload: object, name: ObjectName, operation: str) -> object:
    if not isinstance(payload, dict):
        msg = f"unexpected response of type {type(payload).__name__}"
        raise ManagementIOError(msg)
    status = payload.get("status")
    if status == 200:  # noqa: PLR2004
        return _from_java(payload.get("value"))
    error_type = str(payload.get("error_type") or "")
    error = payload.get("error") or f"status {status}"
    short = error_type.rsplit(".", 1)[-1]
    if short == "InstanceNotFoundException":
        msg = f"no object registered as {name}: {error}"
        raise InstanceNotFoundError(msg)
    if short in {"ReflectionException", "NoSuchMethodException", "IllegalArgumentException"}:
        msg = f"cannot dispatch {operation} on {name}: {error}"
        raise ReflectionError(msg)
    if error_type:
        msg = f"{operation} on {name} raised {error_type}: {error}"
        raise RemoteOperationError(msg)
    msg = f"management request failed: {error}"
    raise ManagementIOError(msg)


def _from_java(value: object) -> object:
    """Convert a serialised Java ``byte[]`` (JSON list of small ints) to bytes."""
    if (
        isinstance(value, list)
        and value
        and all(isinstance(v, int) and not isinstance(v, bool) and -128 <= v <= 255 for v in value)  # noqa: PLR2004
    ):
        return bytes(v & 0xFF for v in value)
    if value == []:
        return b""
    return value


def connect(
    url: ServiceURL,
    environment: Mapping[str, object],
    *,
    credentials_key: str,
    proxy_url: str | None = None,
    timeout: float | None = None,
) -> JolokiaConnection:
    """Return a connection for *url*; nothing is sent until the first invoke."""
    raw_credentials = environment.get(credentials_key, ("", ""))
    user, password = raw_credentials if isinstance(raw_credentials, (tuple, list)) else ("", "")
    credentials = (str(user), str(password))

    if url.protocol in DIRECT_PROTOCOLS:
        scheme = "https" if url.protocol == "https" else "http"
        if not url.host:
            msg = f"service URL {url} does not name an agent host"
            raise ValidationError(msg)
        netloc = url.host if url.port is None else f"{url.host}:{url.port}"
        agent_url = f"{scheme}://{netloc}{url.url_path or DEFAULT_AGENT_PATH}"
        logger.debug("using Jolokia agent at %s", agent_url)
        return JolokiaConnection(agent_url=agent_url, credentials=credentials, timeout=timeout)

    if proxy_url is None:
        msg = f"no connector for protocol {url.protocol!r}; configure a Jolokia proxy (proxy_url) to reach {url}"
        raise ValidationError(msg)
    logger.debug("using Jolokia proxy at %s for %s", proxy_url, url)
    return JolokiaConnection(agent_url=proxy_url, credentials=credentials, target=url.raw, timeout=timeout)


__all__ = [
    "DEFAULT_AGENT_PATH",
    "DIRECT_PROTOCOLS",
    "SERVICE_URL_PREFIX",
    "InstanceNotFoundError",
    "JolokiaConnection",
    "ManagementConnection",
    "ManagementError",
    "ManagementIOError",
    "ObjectName",
    "ReflectionError",
    "RemoteOperationError",
    "ServiceURL",
    "connect",
    "java_signature",
]
