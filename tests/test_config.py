"""Tests for configuration loading."""

from __future__ import annotations

import pytest

from kindload.config import KindloadConfig, load_config
from kindload.errors import ConfigError
from kindload.utils import load_yaml


class TestDefaults:

    def test_defaults(self, tmp_path):
        cfg = load_config(environ={"KINDLOAD_CONFIG": str(tmp_path / "none.yaml")})
        assert cfg.cluster_name == "kind"
        assert cfg.provider == "kind"
        assert cfg.container_runtime == "docker"
        assert cfg.ctr_binary == "ctr"
        assert cfg.ctr_namespace == "k8s.io"
        assert cfg.max_workers is None
        assert cfg.timeout is None

    def test_workers_for(self):
        assert KindloadConfig().workers_for(3) == 3
        assert KindloadConfig().workers_for(100) == 16
        assert KindloadConfig(max_workers=2).workers_for(10) == 2
        assert KindloadConfig(max_workers=8).workers_for(1) == 1


class TestLayers:

    def test_file_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "cluster_name: dev\n"
            "provider: hosts\n"
            "ssh_user: ubuntu\n"
            "clusters:\n"
            "  dev:\n"
            "    - 10.0.0.11\n"
            "    - 10.0.0.12\n"
        )
        cfg = load_config(path, environ={})
        assert cfg.cluster_name == "dev"
        assert cfg.provider == "hosts"
        assert cfg.ssh_user == "ubuntu"
        assert cfg.clusters == {"dev": ["10.0.0.11", "10.0.0.12"]}

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("cluster_name: dev\ntimeout: 10\n")
        cfg = load_config(path, environ={
            "KIND_CLUSTER_NAME": "ci",
            "KINDLOAD_TIMEOUT": "2.5",
            "KINDLOAD_MAX_WORKERS": "4",
            "KIND_EXPERIMENTAL_PROVIDER": "podman",
        })
        assert cfg.cluster_name == "ci"
        assert cfg.timeout == 2.5
        assert cfg.max_workers == 4
        assert cfg.container_runtime == "podman"

    def test_config_path_from_env(self, tmp_path):
        path = tmp_path / "alt.yaml"
        path.write_text("ctr_namespace: moby\n")
        cfg = load_config(environ={"KINDLOAD_CONFIG": str(path)})
        assert cfg.ctr_namespace == "moby"


class TestErrors:

    def test_explicit_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.yaml", environ={})

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("clustr_name: typo\n")
        with pytest.raises(ConfigError, match="clustr_name"):
            load_config(path, environ={})

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="unknown provider"):
            KindloadConfig(provider="minikube")

    def test_bad_max_workers(self):
        with pytest.raises(ConfigError):
            KindloadConfig(max_workers=0)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("cluster_name: [unclosed\n")
        with pytest.raises(ConfigError, match="could not read"):
            load_config(path, environ={})


class TestNumbers:

    @pytest.mark.parametrize("var,raw", [
        ("KINDLOAD_MAX_WORKERS", "lots"),
        ("KINDLOAD_MAX_WORKERS", "2.5"),
        ("KINDLOAD_TIMEOUT", "soon"),
        ("KINDLOAD_TIMEOUT", "0"),
        ("KINDLOAD_TIMEOUT", "-1"),
    ])
    def test_bad_env_value(self, var, raw):
        key = "max_workers" if var == "KINDLOAD_MAX_WORKERS" else "timeout"
        with pytest.raises(ConfigError, match=key):
            load_config(environ={var: raw})

    def test_file_strings_are_converted(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text('timeout: "10"\nmax_workers: "3"\n')
        cfg = load_config(path, environ={})
        assert cfg.timeout == 10.0
        assert isinstance(cfg.timeout, float)
        assert cfg.max_workers == 3

    def test_bool_rejected(self):
        with pytest.raises(ConfigError, match="max_workers must be a number"):
            KindloadConfig(max_workers=True)

    def test_fractional_workers_rejected(self):
        with pytest.raises(ConfigError, match="whole number"):
            KindloadConfig(max_workers=2.5)

    def test_whole_float_workers_accepted(self):
        assert KindloadConfig(max_workers=4.0).max_workers == 4


class TestLoadYaml:

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_yaml(path) == {}

    def test_top_level_list_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- cluster_name\n")
        with pytest.raises(ConfigError, match="must hold a mapping"):
            load_config(path, environ={})
