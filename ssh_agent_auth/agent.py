"""Client for a running SSH key agent.

The agent is a local process that holds private keys. Callers never see
key material; they list public keys and ask the agent to sign bytes on
their behalf over a Unix socket.

Protocol: 4-byte big-endian length prefix + 1-byte message type + payload
(draft-miller-ssh-agent).
"""

from __future__ import annotations

import socket
import threading
from dataclasses import dataclass
from typing import Protocol

import structlog

from .errors import AgentConnectionError, AgentProtocolError
from .keys import PublicKey
from .wire import WireError, WireReader, pack_string, pack_uint32

logger = structlog.get_logger(__name__)

SSH_AGENT_FAILURE = 5
SSH2_AGENTC_REQUEST_IDENTITIES = 11
SSH2_AGENT_IDENTITIES_ANSWER = 12
SSH2_AGENTC_SIGN_REQUEST = 13
SSH2_AGENT_SIGN_RESPONSE = 14

# Sign request flags
SSH_AGENT_RSA_SHA2_256 = 2
SSH_AGENT_RSA_SHA2_512 = 4

# Upper bound on a single reply; agents cap messages well below this.
MAX_MESSAGE_SIZE = 256 * 1024


@dataclass(frozen=True)
class AgentSignature:
    """A signature as returned by the agent: format tag plus opaque blob."""

    format: str
    blob: bytes


class KeyAgent(Protocol):
    """The two agent operations a signer depends on."""

    def list_keys(self) -> list[PublicKey]: ...

    def sign(self, key: PublicKey, data: bytes, flags: int = 0) -> AgentSignature: ...


class AgentClient:
    """Blocking client for the SSH agent protocol.

    One client wraps one socket. Each request/response exchange holds a
    lock, so threads sharing a client never interleave frames.
    """

    def __init__(self, sock: socket.socket, socket_path: str = "") -> None:
        self._sock = sock
        self._socket_path = socket_path
        self._lock = threading.Lock()
        self._log = logger.bind(component="agent_client", socket_path=socket_path)

    @classmethod
    def connect(cls, socket_path: str) -> "AgentClient":
        """Connect to the SSH agent listening on a Unix socket.

        Args:
            socket_path: Path to the agent's Unix domain socket.

        Returns:
            A connected AgentClient.

        Raises:
            AgentConnectionError: If the socket cannot be dialed.
        """
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(socket_path)
        except OSError as exc:
            sock.close()
            raise AgentConnectionError(
                f"Error dialing SSH agent at {socket_path}: {exc}"
            ) from exc
        client = cls(sock, socket_path)
        client._log.debug("agent_connected")
        return client

    def _recv_exactly(self, size: int) -> bytes:
        chunks = []
        while size:
            chunk = self._sock.recv(size)
            if not chunk:
                raise AgentProtocolError("SSH agent closed the connection")
            chunks.append(chunk)
            size -= len(chunk)
        return b"".join(chunks)

    def _request(self, message_type: int, payload: bytes = b"") -> tuple[int, WireReader]:
        """Send one message and read one reply.

        Returns:
            Tuple of (reply message type, reader over the reply payload).
        """
        body = bytes([message_type]) + payload
        with self._lock:
            try:
                self._sock.sendall(pack_uint32(len(body)) + body)
                length = WireReader(self._recv_exactly(4)).read_uint32()
                if length == 0 or length > MAX_MESSAGE_SIZE:
                    raise AgentProtocolError(f"invalid SSH agent reply length: {length}")
                reply = self._recv_exactly(length)
            except OSError as exc:
                raise AgentProtocolError(f"SSH agent I/O error: {exc}") from exc
        reader = WireReader(reply)
        return reader.read_byte(), reader

    def list_keys(self) -> list[PublicKey]:
        """Enumerate the public keys held by the agent.

        Raises:
            AgentProtocolError: On a failure reply or malformed answer.
        """
        reply_type, reader = self._request(SSH2_AGENTC_REQUEST_IDENTITIES)
        if reply_type != SSH2_AGENT_IDENTITIES_ANSWER:
            raise AgentProtocolError(_unexpected("list keys", reply_type))
        try:
            count = reader.read_uint32()
            keys = []
            for _ in range(count):
                blob = reader.read_string()
                comment = reader.read_string().decode("utf-8", errors="replace")
                keys.append(PublicKey(blob=blob, comment=comment))
            reader.expect_end()
        except WireError as exc:
            raise AgentProtocolError(f"malformed identities answer: {exc}") from exc
        self._log.debug("agent_keys_listed", count=len(keys))
        return keys

    def sign(self, key: PublicKey, data: bytes, flags: int = 0) -> AgentSignature:
        """Ask the agent to sign data with the given key.

        Args:
            key: The public key whose private half should sign.
            data: The bytes to sign.
            flags: Sign request flags (e.g. ``SSH_AGENT_RSA_SHA2_256``).

        Returns:
            The agent's signature.

        Raises:
            AgentProtocolError: On a failure reply or malformed answer.
        """
        payload = pack_string(key.blob) + pack_string(data) + pack_uint32(flags)
        reply_type, reader = self._request(SSH2_AGENTC_SIGN_REQUEST, payload)
        if reply_type != SSH2_AGENT_SIGN_RESPONSE:
            raise AgentProtocolError(_unexpected("sign", reply_type))
        try:
            signature = WireReader(reader.read_string())
            reader.expect_end()
            format = signature.read_string().decode("ascii")
            blob = signature.read_string()
            signature.expect_end()
        except (WireError, UnicodeDecodeError) as exc:
            raise AgentProtocolError(f"malformed sign response: {exc}") from exc
        return AgentSignature(format=format, blob=blob)

    def close(self) -> None:
        """Close the connection to the agent."""
        self._sock.close()

    def __enter__(self) -> "AgentClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def _unexpected(operation: str, reply_type: int) -> str:
    if reply_type == SSH_AGENT_FAILURE:
        return f"SSH agent refused to {operation}"
    return f"unexpected SSH agent reply type {reply_type} to {operation}"
