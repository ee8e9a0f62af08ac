"""
Tests for grpg_library/config.py -- Settings model and discovery.
"""

import json

import pytest

from grpg_library.config import (
    LibrarySettings,
    candidate_paths,
    load_settings,
    settings_from_dict,
)
from grpg_library.exceptions import LibraryLoadError


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Point the working directory and the user config dir at *tmp_path*."""
    work = tmp_path / "work"
    user = tmp_path / "user"
    work.mkdir()
    user.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setattr("grpg_library.config.user_config_dir", lambda *args, **kw: str(user))
    return work, user


class TestLibrarySettings:
    """Tests for the settings model."""

    def test_defaults(self):
        settings = LibrarySettings()
        assert settings.unique_scope == "global"
        assert settings.warnings_as_errors is False
        assert "agility" in settings.known_attributes()

    def test_camel_case_keys(self):
        settings = settings_from_dict({"uniqueScope": "category", "extraAttributes": ["luck"]})
        assert settings.unique_scope == "category"
        assert "luck" in settings.known_attributes()

    def test_bad_scope(self):
        with pytest.raises(LibraryLoadError, match="uniqueScope"):
            settings_from_dict({"uniqueScope": "universe"})

    def test_unknown_key(self):
        with pytest.raises(LibraryLoadError):
            settings_from_dict({"colour": "blue"})

    def test_not_an_object(self):
        with pytest.raises(LibraryLoadError, match="JSON object"):
            settings_from_dict(["global"])


class TestDiscovery:
    """Tests for load_settings lookup order."""

    def test_defaults_when_nothing_found(self, isolated):
        assert load_settings() == LibrarySettings()

    def test_user_config_file(self, isolated):
        _, user = isolated
        (user / "settings.json").write_text(json.dumps({"warningsAsErrors": True}))
        assert load_settings().warnings_as_errors is True

    def test_local_file_beats_user_file(self, isolated):
        work, user = isolated
        (user / "settings.json").write_text(json.dumps({"warningsAsErrors": True}))
        (work / "grpg-library.json").write_text(json.dumps({"uniqueScope": "category"}))
        settings = load_settings()
        assert settings.unique_scope == "category"
        assert settings.warnings_as_errors is False

    def test_explicit_path_first(self, isolated, tmp_path):
        work, _ = isolated
        (work / "grpg-library.json").write_text(json.dumps({"uniqueScope": "category"}))
        explicit = tmp_path / "ci.json"
        explicit.write_text(json.dumps({"extraAttributes": ["luck"]}))
        settings = load_settings(explicit)
        assert settings.unique_scope == "global"
        assert settings.extra_attributes == ["luck"]
        assert candidate_paths(explicit)[0] == explicit

    def test_explicit_path_must_exist(self, isolated, tmp_path):
        with pytest.raises(LibraryLoadError, match="does not exist"):
            load_settings(tmp_path / "missing.json")

    def test_unreadable_file(self, isolated):
        work, _ = isolated
        (work / "grpg-library.json").write_text("{oops")
        with pytest.raises(LibraryLoadError, match="Could not read"):
            load_settings()
