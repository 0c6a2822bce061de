import pytest

from tableql import BuildConfig, SchemaBuildError
from tableql.config import DEFAULT_MAX_DEPTH


def test_defaults():
    config = BuildConfig()
    assert config.mutations is True
    assert config.max_depth == DEFAULT_MAX_DEPTH == 5


def test_from_env():
    config = BuildConfig.from_env({'TABLEQL_MAX_DEPTH': '3', 'TABLEQL_MUTATIONS': 'off'})
    assert config == BuildConfig(mutations=False, max_depth=3)


def test_from_env_overrides_win():
    config = BuildConfig.from_env({'TABLEQL_MAX_DEPTH': '3'}, max_depth=8)
    assert config.max_depth == 8


def test_from_env_reads_process_environment(monkeypatch):
    monkeypatch.setenv('TABLEQL_MUTATIONS', 'false')
    monkeypatch.delenv('TABLEQL_MAX_DEPTH', raising=False)
    assert BuildConfig.from_env() == BuildConfig(mutations=False)


@pytest.mark.parametrize('environ', [
    {'TABLEQL_MAX_DEPTH': 'deep'},
    {'TABLEQL_MAX_DEPTH': '0'},
    {'TABLEQL_MUTATIONS': 'maybe'},
])
def test_from_env_rejects_bad_values(environ):
    with pytest.raises(SchemaBuildError):
        BuildConfig.from_env(environ)


def test_config_is_frozen():
    with pytest.raises(Exception):
        BuildConfig().max_depth = 2
