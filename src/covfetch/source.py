"""Addressing model for a single source of execution data.

A :class:`SourceSpec` holds what the user wrote: either a ``type``/``hostname``/
``port`` triple or a locator (``service_url``). :meth:`SourceSpec.resolve`
checks it and returns a frozen :class:`ResolvedSource` whose ``endpoint`` is
a :class:`TcpEndpoint` or an :class:`RpcEndpoint`. Callers dispatch on the
endpoint variant and never look at the raw input again.

Recognised locators::

    tcp://<hostname>:<port>
    service:jmx:<protocol>:...       (passed through verbatim)
"""

from __future__ import annotations

import socket
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from covfetch._meta import logger
from covfetch.core.config import JMX_URL_PREFIX, JMX_URL_SUFFIX, MAX_PORT
from covfetch.errors import ValidationError
from covfetch.transport.management import ServiceURL

if TYPE_CHECKING:
    from collections.abc import Mapping


class Transport(StrEnum):
    TCP = "tcp"
    RPC = "jmx"


_TYPE_TOKENS = {"tcp": Transport.TCP, "jmx": Transport.RPC, "rpc": Transport.RPC}

_LOCATOR_FORMAT_HINT = "expected 'tcp://<hostname>:<port>' or 'service:jmx:...'"
_TCP_FORMAT_HINT = "for tcp the locator must look like 'tcp://<hostname>:<port>'"

_MAPPING_KEYS = frozenset({
    "type",
    "hostname",
    "port",
    "username",
    "password",
    "service_url",
    "locator",
    "output_file",
    "reset_after_fetch",
})


@dataclass(frozen=True, slots=True)
class TcpEndpoint:
    """Agent listening in ``tcpserver`` mode."""

    hostname: str
    port: int

    @property
    def transport(self) -> Transport:
        return Transport.TCP

    @property
    def locator(self) -> str:
        return f"tcp://{self.hostname}:{self.port}"


@dataclass(frozen=True, slots=True)
class RpcEndpoint:
    """Agent reachable through the remote management interface.

    ``hostname``/``port`` are informational only and may be ``None`` when
    the locator was passed through without a recognisable address.
    """

    service_url: str
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    hostname: str | None = None
    port: int | None = None

    @property
    def transport(self) -> Transport:
        return Transport.RPC

    @property
    def locator(self) -> str:
        return self.service_url


Endpoint = TcpEndpoint | RpcEndpoint


@dataclass(frozen=True, slots=True)
class ResolvedSource:
    endpoint: Endpoint
    output_file: Path | None = None
    reset_after_fetch: bool = True

    @property
    def transport(self) -> Transport:
        return self.endpoint.transport

    @property
    def locator(self) -> str:
        return self.endpoint.locator


# --------------------------------------------------------------------------- #
# Field checks                                                                #
# --------------------------------------------------------------------------- #


def check_hostname(hostname: str | None) -> str:
    """Fail fast when *hostname* cannot be looked up; the address is discarded."""
    if hostname is None or not hostname.strip():
        msg = "parameter 'hostname' is not provided"
        raise ValidationError(msg)
    logger.debug("verifying that hostname %r can be resolved", hostname)
    try:
        socket.getaddrinfo(hostname, None)
    except (OSError, UnicodeError) as exc:
        msg = f"unable to resolve hostname: {hostname!r}"
        raise ValidationError(msg) from exc
    return hostname


def check_port(port: object) -> int:
    if isinstance(port, bool):
        msg = f"invalid port: {port!r}"
        raise ValidationError(msg)
    if isinstance(port, str):
        text = port.strip()
        if not (text.isascii() and text.isdecimal()):
            msg = f"invalid port: {port!r}"
            raise ValidationError(msg)
        port = int(text)
    if not isinstance(port, int):
        msg = f"invalid port: {port!r}"
        raise ValidationError(msg)
    if port < 1 or port > MAX_PORT:
        msg = f"invalid port: {port} (must be between 1 and {MAX_PORT})"
        raise ValidationError(msg)
    return port


def parse_transport(token: str) -> Transport:
    try:
        return _TYPE_TOKENS[token.strip().lower()]
    except KeyError as exc:
        valid = ", ".join(sorted(_TYPE_TOKENS))
        msg = f"parameter 'type' has invalid value {token!r}; valid values are: {valid}"
        raise ValidationError(msg) from exc


def synthesize_service_url(hostname: str, port: int) -> str:
    return f"{JMX_URL_PREFIX}{hostname}:{port}{JMX_URL_SUFFIX}"


# --------------------------------------------------------------------------- #
# SourceSpec                                                                  #
# --------------------------------------------------------------------------- #


@dataclass(repr=False)
class SourceSpec:
    """User-supplied description of where to fetch execution data from.

    ``reset_after_fetch`` asks the remote agent to clear its counters once the
    dump has been sent; this is a visible side effect on the remote process.
    """

    type: str | None = None
    hostname: str | None = None
    port: int | str | None = None
    username: str | None = None
    password: str | None = None
    service_url: str | None = None
    output_file: Path | None = None
    reset_after_fetch: bool = True
    _resolved: ResolvedSource | None = field(default=None, init=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if name != "_resolved" and getattr(self, "_resolved", None) is not None:
            msg = f"cannot set {name!r}: source is already resolved"
            raise AttributeError(msg)
        object.__setattr__(self, name, value)

    def __repr__(self) -> str:
        password = None if self.password is None else "*****"
        return (
            f"SourceSpec(type={self.type!r}, hostname={self.hostname!r}, port={self.port!r}, "
            f"username={self.username!r}, password={password!r}, service_url={self.service_url!r}, "
            f"output_file={self.output_file!r}, reset_after_fetch={self.reset_after_fetch!r})"
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, base: Path | None = None) -> SourceSpec:
        """Build a spec from a configuration table.

        ``locator`` is accepted as an alias of ``service_url``; a relative
        ``output_file`` is taken relative to *base* when given.
        """
        unknown = sorted(set(data) - _MAPPING_KEYS)
        if unknown:
            msg = f"unknown source option(s): {', '.join(unknown)}"
            raise ValidationError(msg)
        if "locator" in data and "service_url" in data:
            msg = "use either 'service_url' or 'locator', not both"
            raise ValidationError(msg)

        output_file = data.get("output_file")
        output_path: Path | None = None
        if output_file is not None:
            output_path = Path(str(output_file))
            if base is not None and not output_path.is_absolute():
                output_path = base / output_path

        reset = data.get("reset_after_fetch", True)
        if not isinstance(reset, bool):
            msg = f"'reset_after_fetch' must be a boolean, got {reset!r}"
            raise ValidationError(msg)

        return cls(
            type=_optional_str(data, "type"),
            hostname=_optional_str(data, "hostname"),
            port=data.get("port"),
            username=_optional_str(data, "username"),
            password=_optional_str(data, "password"),
            service_url=_optional_str(data, "service_url") or _optional_str(data, "locator"),
            output_file=output_path,
            reset_after_fetch=reset,
        )

    @property
    def resolved(self) -> ResolvedSource | None:
        return self._resolved

    def validate(self) -> None:
        """Resolve and freeze this spec; see :meth:`resolve`."""
        self.resolve()

    def resolve(self) -> ResolvedSource:
        """Return the resolved connection descriptor, computing it on first use.

        Raises
        ------
        ValidationError
            When no transport and address can be derived from the input.
        """
        if self._resolved is not None:
            return self._resolved
        endpoint = self._resolve_locator(self.service_url) if self.service_url else self._resolve_explicit()
        resolved = ResolvedSource(
            endpoint=endpoint,
            output_file=self.output_file,
            reset_after_fetch=self.reset_after_fetch,
        )
        logger.debug("resolved %r to %s", self, resolved.locator)
        self._resolved = resolved
        return resolved

    def _resolve_explicit(self) -> Endpoint:
        if self.type is None and self.hostname is None and self.port is None:
            msg = "cannot determine source: set 'service_url', or 'type', 'hostname' and 'port'"
            raise ValidationError(msg)
        if self.type is None:
            msg = "parameter 'type' is missing; it is required if 'service_url' is not set"
            raise ValidationError(msg)
        transport = parse_transport(self.type)
        if self.hostname is None:
            msg = "parameter 'hostname' is missing; it is required if 'service_url' is not set"
            raise ValidationError(msg)
        hostname = check_hostname(self.hostname)
        if self.port is None:
            msg = "parameter 'port' is missing; it is required if 'service_url' is not set"
            raise ValidationError(msg)
        port = check_port(self.port)
        if transport is Transport.TCP:
            return TcpEndpoint(hostname=hostname, port=port)
        return RpcEndpoint(
            service_url=synthesize_service_url(hostname, port),
            username=self.username,
            password=self.password,
            hostname=hostname,
            port=port,
        )

    def _resolve_locator(self, locator: str) -> Endpoint:
        tokens = locator.split(":")
        if len(tokens) < 3:  # noqa: PLR2004
            msg = f"invalid locator {locator!r}: {_LOCATOR_FORMAT_HINT}"
            raise ValidationError(msg)
        if tokens[0].lower() == "tcp":
            return _resolve_tcp_locator(locator, tokens)
        if tokens[0] == "service" and tokens[1] == "jmx":
            return self._resolve_rpc_locator(locator)
        msg = f"invalid locator {locator!r}: {_LOCATOR_FORMAT_HINT}"
        raise ValidationError(msg)

    def _resolve_rpc_locator(self, locator: str) -> RpcEndpoint:
        hostname: str | None = None
        port: int | None = None
        try:
            url = ServiceURL.parse(locator)
        except ValidationError:
            # left for the RPC client to reject when it connects
            logger.debug("locator %r is passed through unparsed", locator)
        else:
            host, raw_port = url.target()
            hostname = host or None
            if raw_port is not None:
                port = check_port(raw_port)
        return RpcEndpoint(
            service_url=locator,
            username=self.username,
            password=self.password,
            hostname=hostname,
            port=port,
        )


def _resolve_tcp_locator(locator: str, tokens: list[str]) -> TcpEndpoint:
    if len(tokens) != 3 or not tokens[1].startswith("//"):  # noqa: PLR2004
        msg = f"invalid locator {locator!r}: {_TCP_FORMAT_HINT}"
        raise ValidationError(msg)
    hostname = check_hostname(tokens[1][2:])
    port = check_port(tokens[2])
    return TcpEndpoint(hostname=hostname, port=port)


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        msg = f"{key!r} must be a string, got {value!r}"
        raise ValidationError(msg)
    return value


__all__ = [
    "Endpoint",
    "ResolvedSource",
    "RpcEndpoint",
    "SourceSpec",
    "TcpEndpoint",
    "Transport",
    "check_hostname",
    "check_port",
    "parse_transport",
    "synthesize_service_url",
]
