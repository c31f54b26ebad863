"""Tests for the sitedeploy.toml environment loader."""

from __future__ import annotations

import pytest

from sitedeploy.core.environments import (
    EnvironmentConfigError,
    EnvironmentNotFoundError,
    get_environment,
    load_environments,
    parse_environments,
)

_TOML = """
[environments.production]
backend = "s3"
bucket = "example-site-prod"
prefix = "site"
region = "us-east-1"
distribution_id = "E2EXAMPLE"

[environments.production.cache_policy.rules]
"" = { max_age = 0, revalidate = true }
"assets/" = { max_age = 31536000, immutable = true }

[environments.preview]
backend = "local"
root = "preview-origin"
"""


@pytest.fixture
def env_file(tmp_dir):
    path = tmp_dir / "sitedeploy.toml"
    path.write_text(_TOML)
    return path


class TestLoadEnvironments:
    def test_loads_all(self, env_file):
        assert set(load_environments(env_file)) == {"production", "preview"}

    def test_s3_descriptor(self, env_file):
        env = get_environment(env_file, "production")
        assert env.backend == "s3"
        assert env.has_cdn
        assert env.location == "s3://example-site-prod/site"
        assert env.cache_policy.resolve("assets/app.js") == "public, max-age=31536000, immutable"
        assert env.cache_policy.resolve("index.html") == "public, max-age=0, must-revalidate"

    def test_local_root_resolved_against_file(self, env_file, tmp_dir):
        env = get_environment(env_file, "preview")
        assert env.root == tmp_dir / "preview-origin"
        assert not env.has_cdn

    def test_unknown_environment(self, env_file):
        with pytest.raises(EnvironmentNotFoundError, match="preview"):
            get_environment(env_file, "qa")

    def test_missing_file(self, tmp_dir):
        with pytest.raises(EnvironmentConfigError, match="not found"):
            load_environments(tmp_dir / "missing.toml")

    def test_invalid_toml(self, tmp_dir):
        path = tmp_dir / "bad.toml"
        path.write_text("[environments.production\n")
        with pytest.raises(EnvironmentConfigError, match="Invalid TOML"):
            load_environments(path)


class TestParseEnvironments:
    def test_invalid_backend(self):
        with pytest.raises(EnvironmentConfigError, match="staging"):
            parse_environments({"environments": {"staging": {"backend": "ftp"}}})

    def test_negative_max_age_rejected(self):
        data = {"environments": {"staging": {
            "backend": "memory",
            "cache_policy": {"rules": {"": {"max_age": -1}}},
        }}}
        with pytest.raises(EnvironmentConfigError):
            parse_environments(data)

    def test_non_table_environment(self):
        with pytest.raises(EnvironmentConfigError):
            parse_environments({"environments": {"staging": "s3"}})

    def test_empty(self):
        assert parse_environments({}) == {}
