"""Shared fixtures: real keys, an in-memory fake agent, and a socket agent server."""

from __future__ import annotations

import os
import shutil
import socketserver
import struct
import tempfile
import threading

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from ssh_agent_auth.agent import (
    SSH2_AGENT_IDENTITIES_ANSWER,
    SSH2_AGENT_SIGN_RESPONSE,
    SSH2_AGENTC_REQUEST_IDENTITIES,
    SSH2_AGENTC_SIGN_REQUEST,
    SSH_AGENT_FAILURE,
    SSH_AGENT_RSA_SHA2_256,
    SSH_AGENT_RSA_SHA2_512,
    AgentSignature,
)
from ssh_agent_auth.errors import AgentProtocolError
from ssh_agent_auth.keys import PublicKey
from ssh_agent_auth.wire import WireReader, pack_mpint, pack_string, pack_uint32


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ecdsa_keys() -> dict[int, ec.EllipticCurvePrivateKey]:
    return {
        256: ec.generate_private_key(ec.SECP256R1()),
        384: ec.generate_private_key(ec.SECP384R1()),
        521: ec.generate_private_key(ec.SECP521R1()),
    }


@pytest.fixture(scope="session")
def ed25519_key() -> ed25519.Ed25519PrivateKey:
    return ed25519.Ed25519PrivateKey.generate()


def curve_hash(key_size: int) -> hashes.HashAlgorithm:
    if key_size <= 256:
        return hashes.SHA256()
    if key_size <= 384:
        return hashes.SHA384()
    return hashes.SHA512()


def agent_sign(private_key, data: bytes, flags: int = 0) -> AgentSignature:
    """Sign data the way an OpenSSH agent would for this key type."""
    if isinstance(private_key, rsa.RSAPrivateKey):
        if flags & SSH_AGENT_RSA_SHA2_512:
            format, algorithm = "rsa-sha2-512", hashes.SHA512()
        elif flags & SSH_AGENT_RSA_SHA2_256:
            format, algorithm = "rsa-sha2-256", hashes.SHA256()
        else:
            format, algorithm = "ssh-rsa", hashes.SHA1()
        return AgentSignature(format, private_key.sign(data, padding.PKCS1v15(), algorithm))
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        size = private_key.curve.key_size
        der = private_key.sign(data, ec.ECDSA(curve_hash(size)))
        r, s = decode_dss_signature(der)
        return AgentSignature(f"ecdsa-sha2-nistp{size}", pack_mpint(r) + pack_mpint(s))
    return AgentSignature("ssh-ed25519", private_key.sign(data))


# ---------------------------------------------------------------------------
# Fake agent
# ---------------------------------------------------------------------------

class FakeAgent:
    """In-memory KeyAgent holding real private keys.

    Records every sign request as (key, data, flags).
    """

    def __init__(self, *private_keys, comments: list[str] | None = None) -> None:
        self.entries: list[tuple[PublicKey, object]] = []
        for index, private_key in enumerate(private_keys):
            comment = comments[index] if comments else f"key-{index}"
            public = PublicKey.from_cryptography(private_key.public_key(), comment)
            self.entries.append((public, private_key))
        self.fail_list = False
        self.fail_sign = False
        self.sign_calls: list[tuple[PublicKey, bytes, int]] = []
        self._lock = threading.Lock()

    def list_keys(self) -> list[PublicKey]:
        if self.fail_list:
            raise AgentProtocolError("SSH agent refused to list keys")
        return [public for public, _ in self.entries]

    def sign(self, key: PublicKey, data: bytes, flags: int = 0) -> AgentSignature:
        with self._lock:
            self.sign_calls.append((key, data, flags))
        if self.fail_sign:
            raise AgentProtocolError("SSH agent refused to sign")
        for public, private_key in self.entries:
            if public.blob == key.blob:
                return agent_sign(private_key, data, flags)
        raise AgentProtocolError("unknown key")

    def handle_message(self, body: bytes) -> bytes:
        """Answer one raw agent protocol message."""
        reader = WireReader(body)
        message_type = reader.read_byte()
        try:
            if message_type == SSH2_AGENTC_REQUEST_IDENTITIES:
                keys = self.list_keys()
                payload = pack_uint32(len(keys)) + b"".join(
                    pack_string(key.blob) + pack_string(key.comment.encode("utf-8"))
                    for key in keys
                )
                return bytes([SSH2_AGENT_IDENTITIES_ANSWER]) + payload
            if message_type == SSH2_AGENTC_SIGN_REQUEST:
                blob = reader.read_string()
                data = reader.read_string()
                flags = reader.read_uint32()
                signature = self.sign(PublicKey(blob), data, flags)
                inner = pack_string(signature.format.encode("ascii")) + pack_string(signature.blob)
                return bytes([SSH2_AGENT_SIGN_RESPONSE]) + pack_string(inner)
        except AgentProtocolError:
            pass
        return bytes([SSH_AGENT_FAILURE])


@pytest.fixture()
def make_agent():
    """Factory for FakeAgent instances holding arbitrary keys."""
    return FakeAgent


@pytest.fixture()
def fake_agent(rsa_key, ecdsa_keys) -> FakeAgent:
    return FakeAgent(rsa_key, ecdsa_keys[256], comments=["rsa@test", "ecdsa@test"])


# ---------------------------------------------------------------------------
# Socket agent server
# ---------------------------------------------------------------------------

class _AgentHandler(socketserver.BaseRequestHandler):
    def _recv(self, size: int) -> bytes | None:
        data = b""
        while len(data) < size:
            chunk = self.request.recv(size - len(data))
            if not chunk:
                return None
            data += chunk
        return data

    def handle(self) -> None:
        while True:
            header = self._recv(4)
            if header is None:
                return
            body = self._recv(struct.unpack(">I", header)[0])
            if body is None:
                return
            reply = self.server.fake_agent.handle_message(body)
            self.request.sendall(pack_uint32(len(reply)) + reply)


class _AgentServer(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True


@pytest.fixture()
def agent_socket(fake_agent):
    """Serve fake_agent over a Unix socket and yield the socket path."""
    directory = tempfile.mkdtemp(prefix="agent-")
    path = os.path.join(directory, "agent.sock")
    server = _AgentServer(path, _AgentHandler)
    server.fake_agent = fake_agent
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield path
    server.shutdown()
    server.server_close()
    shutil.rmtree(directory, ignore_errors=True)
