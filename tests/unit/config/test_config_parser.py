"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from site_deploy.config.models import SiteConfig
from site_deploy.config.parser import Config, ConfigValidationError, deep_merge

BASE_CONFIG = {
    "app": "my-site",
    "region": "eu-west-1",
    "s3": {"bucket_name": "my-site-bucket", "exclude": ["*.map"]},
    "environments": {
        "staging": {
            "s3": {"bucket_name": "my-site-staging"},
            "cloudfront": {"enabled": True},
        },
        "empty": None,
    },
}


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "site.yaml"
    path.write_text(yaml.safe_dump(BASE_CONFIG))
    return path


class TestLoad:
    """Tests for Config.load."""

    def test_load_defaults(self, config_file: Path) -> None:
        """Test that omitted settings take their defaults."""
        config = Config(config_file).load()

        assert isinstance(config, SiteConfig)
        assert config.region == "eu-west-1"
        assert config.s3.build_dir == "dist"
        assert config.s3.index_document == "index.html"
        assert config.s3.concurrency == 10
        assert config.cloudfront.enabled is False
        assert config.retry.max_retries == 3
        assert config.state_dir == ".deploy"

    def test_environment_overrides(self, config_file: Path) -> None:
        """Test that an environment is deep-merged over the base."""
        config = Config(config_file).load("staging")

        assert config.s3.bucket_name == "my-site-staging"
        assert config.s3.exclude == ["*.map"]
        assert config.cloudfront.enabled is True
        assert config.region == "eu-west-1"

    def test_empty_environment_uses_base(self, config_file: Path) -> None:
        """Test that an environment without overrides equals the base."""
        assert Config(config_file).load("empty") == Config(config_file).load("default")

    def test_unknown_environment(self, config_file: Path) -> None:
        """Test that an undefined environment lists the available ones."""
        with pytest.raises(ConfigValidationError, match="Available environments: empty, staging"):
            Config(config_file).load("prod")

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            Config(tmp_path / "site.yaml").load()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that unparsable YAML raises ConfigValidationError."""
        path = tmp_path / "site.yaml"
        path.write_text("app: [unclosed")

        with pytest.raises(ConfigValidationError, match="Failed to parse YAML"):
            Config(path).load()

    def test_non_mapping(self, tmp_path: Path) -> None:
        """Test that a YAML list is rejected."""
        path = tmp_path / "site.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigValidationError):
            Config(path).load()

    def test_base_dir(self, config_file: Path) -> None:
        """Test that relative paths resolve against the config directory."""
        assert Config(config_file).base_dir == config_file.parent.resolve()


class TestValidation:
    """Tests for configuration validation errors."""

    def test_errors_are_listed(self) -> None:
        """Test that each field error is reported with its location."""
        with pytest.raises(ConfigValidationError) as exc_info:
            Config.parse({"app": "My Site", "s3": {"bucket_name": "Bad_Bucket"}})

        error = exc_info.value
        locations = [tuple(e["loc"]) for e in error.errors]
        assert ("app",) in locations
        assert ("s3", "bucket_name") in locations
        assert "s3 -> bucket_name" in str(error)

    def test_custom_domain_requires_cloudfront(self) -> None:
        """Test that a custom domain without CloudFront is rejected."""
        with pytest.raises(ConfigValidationError):
            Config.parse({
                "app": "my-site",
                "s3": {"bucket_name": "my-site-bucket"},
                "cloudfront": {"custom_domain": {"domain_name": "www.example.com"}},
            })

    def test_certificate_must_be_in_us_east_1(self) -> None:
        """Test that certificates from other regions are rejected."""
        with pytest.raises(ConfigValidationError):
            Config.parse({
                "app": "my-site",
                "s3": {"bucket_name": "my-site-bucket"},
                "cloudfront": {
                    "enabled": True,
                    "custom_domain": {
                        "domain_name": "www.example.com",
                        "certificate_arn": "arn:aws:acm:eu-west-1:123:certificate/x",
                    },
                },
            })

    def test_ttl_ordering(self) -> None:
        """Test that default_ttl must lie between min_ttl and max_ttl."""
        with pytest.raises(ConfigValidationError):
            Config.parse({
                "app": "my-site",
                "s3": {"bucket_name": "my-site-bucket"},
                "cloudfront": {"default_ttl": 10, "max_ttl": 5},
            })

    def test_domain_is_normalized(self) -> None:
        """Test that domain names are lower-cased without a trailing dot."""
        config = Config.parse({
            "app": "my-site",
            "s3": {"bucket_name": "my-site-bucket"},
            "cloudfront": {
                "enabled": True,
                "custom_domain": {"domain_name": "WWW.Example.com.", "aliases": ["example.com", "www.example.com"]},
            },
        })

        assert config.cloudfront.custom_domain.all_domains == ["www.example.com", "example.com"]


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_nested_merge(self) -> None:
        """Test that nested mappings merge and other values replace."""
        base = {"a": {"b": 1, "c": [1]}, "d": 1}

        merged = deep_merge(base, {"a": {"c": [2]}, "d": None, "e": 3})

        assert merged == {"a": {"b": 1, "c": [2]}, "d": 1, "e": 3}
        assert base == {"a": {"b": 1, "c": [1]}, "d": 1}
