"""Environment configuration for locating the SSH agent."""

from __future__ import annotations

import os
from typing import Mapping

from .errors import ConfigError

AGENT_SOCKET_ENV = "SSH_AUTH_SOCK"


def agent_socket_path(environ: Mapping[str, str] | None = None) -> str:
    """Return the agent's Unix socket path from the environment.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        The socket path.

    Raises:
        ConfigError: If ``SSH_AUTH_SOCK`` is unset or empty.
    """
    if environ is None:
        environ = os.environ
    path = environ.get(AGENT_SOCKET_ENV)
    if not path:
        raise ConfigError(f"{AGENT_SOCKET_ENV} is not set")
    return path
