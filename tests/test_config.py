"""
Tests for configuration management
"""

import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from k8slogs.config import AppConfig, build_log_source, load_config, save_example_config
from k8slogs.errors import ConfigError
from k8slogs.log_source import KubectlLogSource, KubernetesApiLogSource


class TestConfiguration:
    """Test configuration management"""

    def test_default_config_creation(self):
        """Test creating default configuration"""
        config = AppConfig()
        assert config.debug is False
        assert config.cluster.backend == "kubectl"
        assert config.cluster.request_timeout == 30
        assert config.search.tail_lines == 1000
        assert config.output.format == "table"

    def test_example_config_generation(self):
        """Test generating and loading the example configuration file"""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "test_config.yaml"
            save_example_config(str(config_path))

            assert config_path.exists()

            loaded_config = load_config(str(config_path))
            assert loaded_config.cluster.context == "my-aks-context"
            assert loaded_config.cluster.namespace == "production"
            assert loaded_config.search.rate_limit == 20

    def test_env_overrides(self, monkeypatch):
        """Test loading cluster settings from environment variables"""
        monkeypatch.setenv("K8S_CONTEXT", "staging")
        monkeypatch.setenv("K8SLOGS_SEARCH_MAX_CONCURRENCY", "3")

        config = load_config()
        assert config.cluster.context == "staging"
        assert config.search.max_concurrency == 3

    def test_invalid_yaml(self):
        """Test that malformed YAML raises ConfigError"""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "bad.yaml"
            config_path.write_text("cluster: [unclosed")

            with pytest.raises(ConfigError):
                load_config(str(config_path))

    def test_invalid_values(self):
        """Test that out-of-range values raise ConfigError"""
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "bad.yaml"
            config_path.write_text("search:\n  max_concurrency: 0\n")

            with pytest.raises(ConfigError):
                load_config(str(config_path))

    def test_non_mapping_yaml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "list.yaml"
            config_path.write_text("- a\n- b\n")

            with pytest.raises(ConfigError):
                load_config(str(config_path))


class TestBuildLogSource:
    """Test log source selection"""

    def test_kubectl_backend(self):
        config = AppConfig(cluster={'context': 'aks', 'request_timeout': 10})
        source = build_log_source(config)

        assert isinstance(source, KubectlLogSource)
        assert source.context == 'aks'
        assert source.request_timeout == 10

    def test_api_backend(self):
        config = AppConfig(cluster={'backend': 'api', 'kubeconfig_path': '~/kc', 'context': 'aks'})

        with patch('k8slogs.log_source.config.new_client_from_config') as new_client:
            source = build_log_source(config)

        assert isinstance(source, KubernetesApiLogSource)
        new_client.assert_called_once_with(config_file=str(Path('~/kc').expanduser()), context='aks')
