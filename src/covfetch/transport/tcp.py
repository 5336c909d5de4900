"""Client for the agent's TCP control protocol (``output=tcpserver``).

The client sends a header and a dump command, then relays every session and
execution record it receives into an in-memory exec stream of its own until
the agent answers with command-ok or closes the connection.
"""

from __future__ import annotations

import io
import socket

from covfetch._meta import logger
from covfetch.core.config import DEFAULT_TIMEOUT
from covfetch.errors import AcquisitionError, ExecDataFormatError
from covfetch.execdata.model import HEADER_SIZE, DumpCommand, ExecutionData, SessionInfo
from covfetch.execdata.reader import ExecDataReader
from covfetch.execdata.writer import ExecDataWriter, encode_dump_command, encode_header


class TcpCoverageClient:
    """Fetch execution data from an agent listening on a TCP port.

    Parameters
    ----------
    timeout:
        Connect and per-read timeout in seconds; ``None`` blocks forever.
    """

    def __init__(self, *, timeout: float | None = DEFAULT_TIMEOUT) -> None:
        self.timeout = timeout

    def fetch(self, address: str, port: int, reset: bool) -> bytes:  # noqa: FBT001
        """Dump the agent's execution data and return it as an exec stream.

        With ``reset=True`` the agent clears its probe counters after the dump.

        Raises
        ------
        AcquisitionError
            On any connect, write, read or decode failure, and when nothing
            beyond a header was received.
        """
        try:
            with socket.create_connection((address, port), timeout=self.timeout) as sock:
                logger.info("connected to %s:%d", address, port)
                sock.sendall(encode_header() + encode_dump_command(DumpCommand(dump=True, reset=reset)))
                with sock.makefile("rb") as incoming, io.BytesIO() as output:
                    records = self._relay(ExecDataReader(incoming, remote=True), ExecDataWriter(output))
                    data = output.getvalue()
        except ExecDataFormatError as exc:
            msg = f"invalid execution data received from {address}:{port}: {exc}"
            raise AcquisitionError(msg) from exc
        except OSError as exc:
            msg = f"unable to dump coverage data from {address}:{port}: {exc}"
            raise AcquisitionError(msg) from exc

        if len(data) <= HEADER_SIZE:
            msg = "no data received"
            raise AcquisitionError(msg)
        logger.debug("%d records (%d bytes) received from %s:%d", records, len(data), address, port)
        return data

    @staticmethod
    def _relay(reader: ExecDataReader, writer: ExecDataWriter) -> int:
        count = 0
        for record in reader:
            if isinstance(record, (SessionInfo, ExecutionData)):
                writer.write(record)
                count += 1
            else:
                logger.debug("ignoring %s from agent", type(record).__name__)
        return count


__all__ = ["TcpCoverageClient"]
