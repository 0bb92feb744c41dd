"""
Configuration for keepsake storage.

Configuration is layered, lowest precedence first:

1. Built-in defaults
2. ``<base_path>/settings.yaml`` (``keepsake:`` section)
3. Environment variables

```yaml
keepsake:
  max_width: 1600
  quality: 0.8
  default_sender: "Anna"
  seed_examples: true
```

Environment Variables:
    KEEPSAKE_HOME: Base directory for records and photos (default: ~/.keepsake)
    KEEPSAKE_MAX_WIDTH: Maximum photo width in pixels (default: 1280)
    KEEPSAKE_QUALITY: JPEG quality as a 0-1 fraction (default: 0.82)
    KEEPSAKE_DEFAULT_SENDER: Sender name used for blank "from" fields
    KEEPSAKE_SEED_EXAMPLES: "true" to seed starter notes and entries
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_BASE_PATH = Path.home() / ".keepsake"
CONFIG_FILE_NAME = "settings.yaml"


@dataclass
class StorageConfig:
    """Configuration for the keepsake stores.

    Attributes:
        base_path: Directory holding the records directory and photo database
        max_width: Photos wider than this are downscaled before storage
        quality: JPEG re-encode quality as a fraction in (0, 1]
        default_title: Brand title used when the stored title is blank
        default_subtitle: Brand subtitle used when the stored subtitle is blank
        default_sender: Sender name used when a message has no "from"
        backup_prefix: File name prefix for written backups
        seed_examples: Seed starter jar notes and entries when nothing is stored.
            Off by default, so a fresh store (and an import missing a
            collection) starts empty rather than with sample content
    """

    base_path: Path = DEFAULT_BASE_PATH
    max_width: int = 1280
    quality: float = 0.82
    default_title: str = "Per Anna"
    default_subtitle: str = "A small place, just ours."
    default_sender: str = "Anna"
    backup_prefix: str = "gift-backup"
    seed_examples: bool = False

    def __post_init__(self) -> None:
        self.base_path = Path(self.base_path).expanduser()

    @property
    def records_path(self) -> Path:
        """Directory holding one JSON file per record key."""
        return self.base_path / "records"

    @property
    def photos_db_path(self) -> Path:
        """SQLite file holding photo blobs."""
        return self.base_path / "photos.db"

    @classmethod
    def load(cls, base_path: str | Path | None = None) -> StorageConfig:
        """Build configuration from defaults, the YAML file and the environment.

        Args:
            base_path: Explicit base directory. Overrides KEEPSAKE_HOME.

        Returns:
            StorageConfig with all layers applied
        """
        if base_path is None:
            base_path = os.environ.get("KEEPSAKE_HOME") or DEFAULT_BASE_PATH
        base_path = Path(base_path).expanduser()

        values: dict[str, Any] = {"base_path": base_path}
        values.update(_load_yaml_section(base_path / CONFIG_FILE_NAME))
        values.update(_load_environment())
        values["base_path"] = base_path

        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {sorted(unknown)}")

        return cls(**{k: v for k, v in values.items() if k in known})


def _load_yaml_section(path: Path) -> dict[str, Any]:
    """Read the ``keepsake:`` section of a YAML config file."""
    if not path.exists():
        return {}

    try:
        content = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not read config file {path}: {e}")
        return {}

    section = content.get("keepsake", {}) if isinstance(content, dict) else {}
    return section if isinstance(section, dict) else {}


def _load_environment() -> dict[str, Any]:
    """Read configuration overrides from environment variables."""
    values: dict[str, Any] = {}

    max_width = os.environ.get("KEEPSAKE_MAX_WIDTH")
    if max_width:
        values["max_width"] = int(max_width)

    quality = os.environ.get("KEEPSAKE_QUALITY")
    if quality:
        values["quality"] = float(quality)

    sender = os.environ.get("KEEPSAKE_DEFAULT_SENDER")
    if sender:
        values["default_sender"] = sender

    seed = os.environ.get("KEEPSAKE_SEED_EXAMPLES")
    if seed:
        values["seed_examples"] = seed.lower() == "true"

    return values
