"""HTTP signature authentication backed by an SSH agent.

An AgentSigner is bound to one account and one agent key. It is built in
a single step (connect, find the key, probe the agent once) and then signs
``Date`` header values for as many requests as needed.

Header value format::

    keyId="/<account>/keys/<fingerprint>",algorithm="<alg>",headers="date",signature="<sig>"
"""

from __future__ import annotations

from typing import Mapping

import structlog

from .agent import SSH_AGENT_RSA_SHA2_256, AgentClient, KeyAgent
from .config import agent_socket_path
from .errors import AgentAuthError, SigningError
from .keys import PublicKey, format_fingerprint
from .matcher import match_key
from .signatures import normalize

logger = structlog.get_logger(__name__)

AUTHORIZATION_HEADER_FORMAT = 'keyId="{}",algorithm="{}",headers="{}",signature="{}"'
SIGNED_HEADER_NAME = "date"
PROBE_PAYLOAD = "HelloWorld"
RSA_SHA256_FORMAT = "rsa-sha2-256"


def _sign_flags(key: PublicKey) -> int:
    if key.key_type == "ssh-rsa":
        return SSH_AGENT_RSA_SHA2_256
    return 0


def _sign_with_agent(agent: KeyAgent, key: PublicKey, payload: str) -> tuple[str, str]:
    """Sign payload via the agent and normalize the result."""
    try:
        signature = agent.sign(key, payload.encode("utf-8"), _sign_flags(key))
    except (AgentAuthError, OSError) as exc:
        raise SigningError(f"Error signing string: {exc}") from exc
    # RSA output is always labelled rsa-sha256; anything else would not verify.
    if key.key_type == "ssh-rsa" and signature.format != RSA_SHA256_FORMAT:
        raise SigningError(
            f"SSH agent ignored the rsa-sha2-256 request and returned {signature.format}"
        )
    return normalize(signature.format, signature.blob)


class AgentSigner:
    """Signs HTTP requests with a key held by an SSH agent.

    Instances are only created by :meth:`connect` or :meth:`from_agent`,
    which either return a signer that is ready to use or raise.
    """

    def __init__(
        self,
        agent: KeyAgent,
        key: PublicKey,
        fingerprint: str,
        account: str,
        algorithm: str,
    ) -> None:
        self._agent = agent
        self._key = key
        self._raw_fingerprint = fingerprint
        self._account = account
        self._formatted_fingerprint = format_fingerprint(key)
        self._key_id = f"/{account}/keys/{self._formatted_fingerprint}"
        self._algorithm = algorithm

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def connect(
        cls,
        fingerprint: str,
        account: str,
        environ: Mapping[str, str] | None = None,
    ) -> "AgentSigner":
        """Connect to the agent named by ``SSH_AUTH_SOCK`` and build a signer.

        Args:
            fingerprint: Fingerprint of the agent key to use, in MD5 or
                SHA-256 form.
            account: Account name the key belongs to.
            environ: Environment mapping. Defaults to ``os.environ``.

        Returns:
            A ready AgentSigner.

        Raises:
            ConfigError: If ``SSH_AUTH_SOCK`` is not set.
            AgentConnectionError: If the agent socket cannot be dialed.
            AgentListError: If the agent cannot list its keys.
            KeyNotFoundError: If no agent key matches ``fingerprint``.
            SigningError: If the agent cannot sign with the matched key.
        """
        socket_path = agent_socket_path(environ)
        agent = AgentClient.connect(socket_path)
        try:
            return cls.from_agent(agent, fingerprint, account)
        except BaseException:
            agent.close()
            raise

    @classmethod
    def from_agent(cls, agent: KeyAgent, fingerprint: str, account: str) -> "AgentSigner":
        """Build a signer on top of an already connected agent.

        Finds the key and signs a probe string to learn the algorithm label
        the key produces. Raises the same errors as :meth:`connect` apart
        from the configuration and connection ones.
        """
        key = match_key(agent, fingerprint)
        try:
            _, algorithm = _sign_with_agent(agent, key, PROBE_PAYLOAD)
        except SigningError as exc:
            logger.warning(
                "agent_probe_failed",
                component="agent_signer",
                fingerprint=fingerprint,
                error=str(exc),
            )
            raise
        signer = cls(agent, key, fingerprint, account, algorithm)
        logger.info(
            "agent_signer_ready",
            component="agent_signer",
            key_id=signer.key_id,
            algorithm=algorithm,
        )
        return signer

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def key(self) -> PublicKey:
        """The agent key this signer uses."""
        return self._key

    @property
    def account(self) -> str:
        return self._account

    @property
    def fingerprint(self) -> str:
        """The fingerprint as supplied by the caller."""
        return self._raw_fingerprint

    @property
    def key_id(self) -> str:
        """The ``keyId`` value: ``/<account>/keys/<fingerprint>``."""
        return self._key_id

    @property
    def key_fingerprint(self) -> str:
        """The key's canonical ``SHA256:`` fingerprint."""
        return self._formatted_fingerprint

    @property
    def default_algorithm(self) -> str:
        """The algorithm label learned when the signer was built."""
        return self._algorithm

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def sign(self, date: str) -> str:
        """Sign a ``Date`` header value and return the authorization value.

        Args:
            date: The exact ``Date`` header value sent with the request.

        Returns:
            The signature-auth header value (without the ``Signature``
            scheme prefix).

        Raises:
            SigningError: If the agent fails or its signature cannot be
                rendered.
        """
        text, algorithm = self.sign_raw(f"{SIGNED_HEADER_NAME}: {date}")
        return AUTHORIZATION_HEADER_FORMAT.format(
            self._key_id, algorithm, SIGNED_HEADER_NAME, text,
        )

    def sign_raw(self, payload: str) -> tuple[str, str]:
        """Sign an arbitrary string.

        Returns:
            Tuple of (base64 signature text, algorithm label).

        Raises:
            SigningError: If the agent fails or its signature cannot be
                rendered.
        """
        return _sign_with_agent(self._agent, self._key, payload)

    def __repr__(self) -> str:
        return f"AgentSigner(key_id={self._key_id!r}, algorithm={self._algorithm!r})"


new_signer = AgentSigner.connect
