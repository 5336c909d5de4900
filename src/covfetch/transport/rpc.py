from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from covfetch._meta import logger
from covfetch.core.config import DEFAULT_TIMEOUT, FETCH_OPERATION, JMX_CREDENTIALS_KEY, RUNTIME_OBJECT_NAME
from covfetch.errors import AcquisitionError
from covfetch.transport import management
from covfetch.transport.management import (
    InstanceNotFoundError,
    ManagementIOError,
    ObjectName,
    ReflectionError,
    RemoteOperationError,
    ServiceURL,
    java_signature,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from covfetch.transport.management import ManagementConnection


class Connector(Protocol):
    def __call__(
        self,
        url: ServiceURL,
        environment: Mapping[str, object],
        *,
        credentials_key: str,
        proxy_url: str | None = None,
        timeout: float | None = None,
    ) -> ManagementConnection: ...


def credentials_environment(username: str | None, password: str | None) -> dict[str, object]:
    """Connection environment carrying the (possibly empty) credential pair."""
    return {JMX_CREDENTIALS_KEY: (username or "", password or "")}


class RpcCoverageClient:
    """Fetch execution data by invoking the agent's runtime MBean remotely.

    Parameters
    ----------
    proxy_url:
        Jolokia proxy used for locators that are not a Jolokia agent address.
    timeout:
        HTTP timeout in seconds.
    connector:
        Factory returning a management connection; defaults to
        :func:`covfetch.transport.management.connect`.
    """

    def __init__(
        self,
        *,
        proxy_url: str | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
        connector: Connector | None = None,
    ) -> None:
        self.proxy_url = proxy_url
        self.timeout = timeout
        self._connector: Connector = connector or management.connect

    def fetch(  # noqa: FBT001
        self,
        locator: str,
        username: str | None,
        password: str | None,
        reset: bool,
    ) -> bytes:
        """Call ``getExecutionData(reset)`` on the agent behind *locator*.

        With ``reset=True`` the agent clears its probe counters after the call.

        Raises
        ------
        ValidationError
            When the locator or the object name cannot be parsed, or no
            connector handles the locator's protocol.
        AcquisitionError
            When the remote call fails or returns something other than bytes.
        """
        environment = credentials_environment(username, password)
        url = ServiceURL.parse(locator)
        logger.debug("connecting to %s", url)
        try:
            connection = self._connector(
                url,
                environment,
                credentials_key=JMX_CREDENTIALS_KEY,
                proxy_url=self.proxy_url,
                timeout=self.timeout,
            )
        except (ManagementIOError, OSError) as exc:
            msg = f"unable to connect to {url}: {exc}"
            raise AcquisitionError(msg) from exc
        with connection:
            name = ObjectName.parse(RUNTIME_OBJECT_NAME)
            params = (reset,)
            logger.info("invoking %s on %s at %s", FETCH_OPERATION, name, url)
            try:
                result = connection.invoke(name, FETCH_OPERATION, params, java_signature(params))
            except InstanceNotFoundError as exc:
                msg = f"could not find the coverage runtime ({name}) at {url}"
                raise AcquisitionError(msg) from exc
            except (RemoteOperationError, ReflectionError) as exc:
                msg = f"error fetching execution data from {name} at {url}: {exc}"
                raise AcquisitionError(msg) from exc
            except (ManagementIOError, OSError) as exc:
                msg = f"I/O error while communicating with {url}: {exc}"
                raise AcquisitionError(msg) from exc

        if not isinstance(result, (bytes, bytearray, memoryview)):
            msg = f"unexpected result type: expected bytes, got {type(result).__name__}"
            raise AcquisitionError(msg)
        data = bytes(result)
        logger.debug("%d bytes of execution data received", len(data))
        return data


__all__ = ["Connector", "RpcCoverageClient", "credentials_environment"]
