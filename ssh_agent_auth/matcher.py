"""Locate an agent key by fingerprint."""

from __future__ import annotations

import structlog

from .agent import KeyAgent
from .errors import AgentAuthError, AgentListError, KeyNotFoundError
from .keys import PublicKey, md5_fingerprint, sha256_fingerprint, strip_fingerprint

logger = structlog.get_logger(__name__)


def match_key(agent: KeyAgent, fingerprint: str) -> PublicKey:
    """Return the agent key whose MD5 or SHA-256 fingerprint equals ``fingerprint``.

    Accepts bare or colon-grouped hex, ``MD5:``-prefixed and
    ``SHA256:``-prefixed forms. Every candidate is checked against both
    digests. If several keys match, the last one in the agent's list wins.

    Args:
        agent: The key agent to query.
        fingerprint: The caller-supplied fingerprint.

    Returns:
        The matching public key.

    Raises:
        AgentListError: If the agent cannot list its keys.
        KeyNotFoundError: If no key matches.
    """
    log = logger.bind(component="key_matcher", fingerprint=fingerprint)
    try:
        keys = agent.list_keys()
    except (AgentAuthError, OSError) as exc:
        log.warning("agent_list_failed", error=str(exc))
        raise AgentListError(f"Error listing keys in SSH agent: {exc}") from exc

    target = strip_fingerprint(fingerprint)
    matches = [
        key for key in keys
        if target in (md5_fingerprint(key), sha256_fingerprint(key))
    ]
    if not matches:
        log.warning("agent_key_not_found", candidates=len(keys))
        raise KeyNotFoundError(fingerprint)
    if len(matches) > 1:
        log.warning("agent_key_multiple_matches", count=len(matches))

    key = matches[-1]
    log.info("agent_key_matched", key_type=key.key_type, comment=key.comment)
    return key
