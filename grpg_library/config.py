"""
grpg_library/config.py -- Library settings and where they are read from.

Settings are a small pydantic model.  ``load_settings()`` looks, in order,
at an explicit path, ``./grpg-library.json`` in the working directory, and
``settings.json`` in the platform user config directory (via
platformdirs).  The first file found wins; with none found the defaults
apply.

Usage::

    from grpg_library.config import load_settings

    settings = load_settings()                 # discovered
    settings = load_settings("ci/settings.json")
    store = ContentStore(settings.unique_scope, settings.known_attributes())
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from platformdirs import user_config_dir
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from grpg_library.exceptions import LibraryLoadError
from grpg_library.models.attribute_mods import KNOWN_ATTRIBUTES
from grpg_library.utils import read_json

logger = logging.getLogger(__name__)

_APP_NAME = "grpg-library"
_APP_AUTHOR = "GRPG"

LOCAL_SETTINGS_NAME = "grpg-library.json"
USER_SETTINGS_NAME = "settings.json"


class LibrarySettings(BaseModel):
    """User-tunable behaviour.

    Attributes
    ----------
    unique_scope : "global" | "category"
        Whether ids must be unique across the whole library or only per category.
    warnings_as_errors : bool
        Make the CLI fail on warnings as well as errors.
    extra_attributes : list[str]
        Attribute/stat names, beyond the built-in set, that count as fixed mods.
    extra_tags : dict
        Tag definitions layered over the library's own tag dictionary,
        in the ``{tagName: {category, description}}`` shape.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    unique_scope: Literal["global", "category"] = Field("global", alias="uniqueScope")
    warnings_as_errors: bool = Field(False, alias="warningsAsErrors")
    extra_attributes: list[str] = Field(default_factory=list, alias="extraAttributes")
    extra_tags: dict[str, dict[str, str]] = Field(default_factory=dict, alias="extraTags")

    def known_attributes(self) -> frozenset[str]:
        return KNOWN_ATTRIBUTES | frozenset(self.extra_attributes)


def get_user_config_dir() -> str:
    """Return the platform-appropriate user config directory (not created)."""
    return user_config_dir(_APP_NAME, _APP_AUTHOR)


def candidate_paths(explicit=None) -> list[Path]:
    """Settings locations in lookup order."""
    paths = []
    if explicit:
        paths.append(Path(explicit))
    paths.append(Path(os.getcwd()) / LOCAL_SETTINGS_NAME)
    paths.append(Path(get_user_config_dir()) / USER_SETTINGS_NAME)
    return paths


def load_settings(path=None) -> LibrarySettings:
    """Load settings from *path* or the first discovered settings file.

    Parameters
    ----------
    path : str or pathlib.Path, optional
        Explicit settings file.  It must exist.

    Raises
    ------
    LibraryLoadError
        The explicit file is missing, or a settings file is unreadable or
        has invalid content.
    """
    if path is not None and not Path(path).is_file():
        raise LibraryLoadError(f"Settings file '{path}' does not exist.")

    for candidate in candidate_paths(path):
        if not candidate.is_file():
            continue
        logger.info("Loading settings from %s", candidate)
        return settings_from_file(candidate)

    logger.debug("No settings file found; using defaults")
    return LibrarySettings()


def settings_from_file(path) -> LibrarySettings:
    try:
        data = read_json(path)
    except (OSError, json.JSONDecodeError) as exc:
        raise LibraryLoadError(f"Could not read settings file '{path}': {exc}") from exc
    return settings_from_dict(data, source=str(path))


def settings_from_dict(data, source: Optional[str] = None) -> LibrarySettings:
    where = f" in '{source}'" if source else ""
    if not isinstance(data, dict):
        raise LibraryLoadError(f"Settings{where} must be a JSON object.")
    try:
        return LibrarySettings.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise LibraryLoadError(f"Invalid settings{where}: {problems}") from exc
