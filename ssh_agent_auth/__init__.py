"""SSH agent request signing.

Sign HTTP requests for a cloud control-plane API with a key held by a
running SSH agent, without ever touching the private key.
"""

from .agent import AgentClient, AgentSignature, KeyAgent
from .auth import AgentSignatureAuth
from .config import agent_socket_path
from .errors import (
    AgentAuthError,
    AgentConnectionError,
    AgentListError,
    AgentProtocolError,
    ConfigError,
    KeyNotFoundError,
    SignatureDecodeError,
    SigningError,
    UnsupportedAlgorithmError,
)
from .keys import (
    PublicKey,
    format_fingerprint,
    md5_fingerprint,
    sha256_fingerprint,
    strip_fingerprint,
)
from .matcher import match_key
from .signatures import normalize
from .signer import AgentSigner, new_signer

__all__ = [
    "AgentClient",
    "AgentSignature",
    "KeyAgent",
    "AgentSignatureAuth",
    "agent_socket_path",
    "AgentAuthError",
    "AgentConnectionError",
    "AgentListError",
    "AgentProtocolError",
    "ConfigError",
    "KeyNotFoundError",
    "SignatureDecodeError",
    "SigningError",
    "UnsupportedAlgorithmError",
    "PublicKey",
    "format_fingerprint",
    "md5_fingerprint",
    "sha256_fingerprint",
    "strip_fingerprint",
    "match_key",
    "normalize",
    "AgentSigner",
    "new_signer",
]
__version__ = "0.1.0"
