"""Owner identity used to decide whose commitments count."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml

from commitments.config import Config

logger = logging.getLogger(__name__)

DEFAULT_OWNER = "the user"


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    kept: list[str] = []
    for value in values:
        value = str(value).strip()
        if value and value.lower() not in seen:
            seen.add(value.lower())
            kept.append(value)
    return tuple(kept)


@dataclass(frozen=True)
class IdentityContext:
    """The owner whose first-person commitments are extracted, plus aliases."""

    owner: str = DEFAULT_OWNER
    aliases: tuple[str, ...] = ()

    def __post_init__(self):
        owner = (self.owner or "").strip() or DEFAULT_OWNER
        object.__setattr__(self, "owner", owner)
        object.__setattr__(self, "aliases", _dedupe(self.aliases))

    @property
    def is_named(self) -> bool:
        return self.owner != DEFAULT_OWNER


def load_identity_file(path: str) -> dict[str, Any]:
    """
    Load an identity mapping from a YAML file.

    Args:
        path: Path to a YAML file with 'owner' and 'aliases' keys

    Returns:
        The parsed mapping.
        Returns empty dict if file doesn't exist or is malformed
    """
    filepath = Path(path).expanduser()

    if not filepath.exists():
        logger.warning(f"Identity file not found: {path}")
        return {}

    try:
        with open(filepath, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Error loading identity from {path}: {e}")
        return {}

    if not isinstance(data, dict):
        return {}
    return data


def load_identity(config: Config) -> IdentityContext:
    """
    Build the IdentityContext for this deployment.

    An identity file (IDENTITY_PATH) takes precedence over USER_NAME and
    USER_IDENTIFIERS; missing keys in the file fall back to the environment.
    """
    owner = config.owner_name
    aliases: Iterable[str] = config.owner_aliases

    if config.identity_path:
        data = load_identity_file(config.identity_path)
        if data.get("owner"):
            owner = str(data["owner"])
        file_aliases = data.get("aliases")
        if isinstance(file_aliases, list):
            aliases = file_aliases
        elif isinstance(file_aliases, str):
            aliases = file_aliases.split(",")

    return IdentityContext(owner=owner, aliases=tuple(aliases))
