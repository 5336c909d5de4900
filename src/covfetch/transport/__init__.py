"""Clients that pull execution data from remote agents."""

from covfetch.transport.rpc import RpcCoverageClient
from covfetch.transport.tcp import TcpCoverageClient

__all__ = ["RpcCoverageClient", "TcpCoverageClient"]
