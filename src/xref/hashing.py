"""Fingerprints used as cache keys for lint results."""

import hashlib
from collections.abc import Iterable


def compute_hash(content: bytes | str) -> str:
    """Compute SHA-256 hash and truncate to 12 hex characters.

    Args:
        content: Content to hash; str is encoded as UTF-8

    Returns:
        12-character hex hash string
    """
    if isinstance(content, str):
        content = content.encode("utf8")
    hash_obj = hashlib.sha256(content)
    return hash_obj.hexdigest()[:12]


def compute_plugin_set_hash(plugins: Iterable, engine_version: str) -> str:
    """Compute a hash that changes whenever the active plugin set changes.

    Args:
        plugins: Plugin instances in registration order
        engine_version: Version of xref; results of another version are never reused

    Returns:
        12-character hex hash
    """
    parts = [engine_version]
    parts.extend(f"{plugin.plugin_id}:{plugin.version}" for plugin in plugins)
    return compute_hash("|".join(parts))


def cache_key(file_name: str, content_hash: str, plugin_set_hash: str) -> str:
    return f"{file_name}:{content_hash}:{plugin_set_hash}"
