"""Settings for workspace-changes.

Settings come from the [tool.workspace-changes] table of the workspace root
pyproject.toml, overridden by command-line options:

    [tool.workspace-changes]
    cache = "persistent"        # none | memory | persistent
    cache-dir = ".cache/git"    # relative to the workspace root
    lock-timeout = 600          # seconds
    jobs = 4
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .cache import CacheMode, GitCache, make_cache
from .errors import WorkspaceMetadataError
from .locking import DEFAULT_LOCK_TIMEOUT
from .toml import get_tool_table, load_pyproject

TOOL_NAME = "workspace-changes"


class Settings(BaseModel):
    """Validated settings.

    Attributes:
        cache: Git cache mode.
        cache_dir: Directory for the persistent cache.
        lock_timeout: Seconds to wait for a persistent cache entry's lock.
        jobs: Packages to check concurrently.
    """

    model_config = ConfigDict(extra="forbid")

    cache: CacheMode = CacheMode.MEMORY
    cache_dir: Path | None = None
    lock_timeout: float = Field(default=DEFAULT_LOCK_TIMEOUT, gt=0)
    jobs: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _check_cache_dir(self) -> Settings:
        if self.cache is CacheMode.PERSISTENT and self.cache_dir is None:
            raise ValueError("cache-dir is required when cache is 'persistent'")
        return self

    def make_cache(self) -> GitCache | None:
        return make_cache(self.cache, self.cache_dir, self.lock_timeout)


def load_settings(root: Path, **overrides: Any) -> Settings:
    """Load settings for the workspace at ``root``.

    Args:
        root: Workspace root directory.
        **overrides: Values that take precedence over the file (None values
            are ignored). Keys use the attribute names (``cache_dir``).

    A cache-dir without an explicit cache mode turns on the persistent cache.

    Raises:
        WorkspaceMetadataError: If the file is invalid or a value fails
            validation.
    """
    pyproject = Path(root) / "pyproject.toml"
    table = get_tool_table(load_pyproject(pyproject), TOOL_NAME) if pyproject.is_file() else {}

    data: dict[str, Any] = {key.replace("-", "_"): value for key, value in table.items()}
    if data.get("cache_dir") is not None:
        cache_dir = Path(data["cache_dir"])
        data["cache_dir"] = cache_dir if cache_dir.is_absolute() else Path(root) / cache_dir
    data.update({key: value for key, value in overrides.items() if value is not None})

    if data.get("cache_dir") is not None and "cache" not in data:
        data["cache"] = CacheMode.PERSISTENT

    try:
        return Settings(**data)
    except ValidationError as exc:
        raise WorkspaceMetadataError(f"Invalid [tool.{TOOL_NAME}] settings: {exc}") from exc
