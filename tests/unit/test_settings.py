import pytest

import irdeps.settings
from irdeps.settings import Settings, anchor_settings, get_global_settings, set_global_settings


def test_defaults():
    settings = Settings()
    assert settings.max_search_depth is None
    assert settings.memory_dependence
    assert settings.include_unreachable


def test_negative_search_depth():
    with pytest.raises(ValueError):
        Settings(max_search_depth=-1)
    assert Settings(max_search_depth=0).max_search_depth == 0


def test_dict_round_trip():
    settings = Settings(max_search_depth=4, memory_dependence=False)
    data = settings.as_dict()

    assert data == {"max_search_depth": 4, "memory_dependence": False, "include_unreachable": True}
    assert Settings.from_dict(data) == settings


def test_from_env(monkeypatch):
    monkeypatch.setattr(irdeps.settings, "IRDEPS_MAX_SEARCH_DEPTH", 7)
    monkeypatch.setattr(irdeps.settings, "IRDEPS_INCLUDE_UNREACHABLE", False)

    settings = Settings.from_env()
    assert settings.max_search_depth == 7
    assert not settings.include_unreachable


def test_global_settings_default_to_env(monkeypatch):
    monkeypatch.setattr(irdeps.settings, "IRDEPS_MEMORY_DEPENDENCE", False)
    with anchor_settings(Settings()):
        set_global_settings(None)
        assert not get_global_settings().memory_dependence


def test_anchor_settings(global_settings):
    assert get_global_settings() is global_settings

    new_settings = Settings(max_search_depth=1)
    with anchor_settings(new_settings):
        assert get_global_settings() is new_settings
    assert get_global_settings() is global_settings

    with pytest.raises(RuntimeError):
        with anchor_settings(new_settings):
            raise RuntimeError
    assert get_global_settings() is global_settings
