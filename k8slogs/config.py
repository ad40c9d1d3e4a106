"""
Configuration management for K8s Logs
"""

from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings as Settings
from pydantic_settings import SettingsConfigDict

from .errors import ConfigError
from .log_source import KubectlLogSource, KubernetesApiLogSource, LogSource


class ClusterConfig(Settings):
    """Kubernetes cluster configuration"""

    model_config = SettingsConfigDict(env_prefix="K8S_")

    kubeconfig_path: Optional[str] = Field(default=None, description="Path to kubeconfig file")
    context: Optional[str] = Field(default=None, description="Kubernetes context to use")
    namespace: str = Field(default="default", description="Default namespace for commands")
    backend: Literal["kubectl", "api"] = Field(default="kubectl", description="How to talk to the cluster")
    request_timeout: int = Field(default=30, ge=1, description="Per-request timeout in seconds")


class SearchConfig(Settings):
    """Log search configuration"""

    model_config = SettingsConfigDict(env_prefix="K8SLOGS_SEARCH_")

    tail_lines: int = Field(default=1000, ge=1, description="Recent lines fetched per container")
    max_concurrency: int = Field(default=8, ge=1, description="Containers fetched in parallel")
    rate_limit: Optional[int] = Field(default=None, ge=1, description="Log fetches started per second")
    timeout: Optional[float] = Field(default=None, gt=0, description="Seconds before returning partial results")


class OutputConfig(Settings):
    """Result rendering configuration"""

    model_config = SettingsConfigDict(env_prefix="K8SLOGS_OUTPUT_")

    format: Literal["table", "json"] = Field(default="table", description="Output format")
    show_raw: bool = Field(default=False, description="Show raw lines instead of messages")
    local_time: bool = Field(default=False, description="Render timestamps in local time")


class AppConfig(Settings):
    """Main application configuration"""

    model_config = SettingsConfigDict(env_prefix="K8SLOGS_")

    # Core settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="WARNING", description="Logging level")

    # Component configurations
    cluster: ClusterConfig = Field(default_factory=ClusterConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from YAML file and environment variables

    A .env file in the working directory is read first.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        AppConfig instance with loaded configuration

    Raises:
        ConfigError: If the file cannot be parsed or holds invalid values
    """
    load_dotenv()

    config_data = {}

    if config_path and Path(config_path).exists():
        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigError(f"{config_path} must contain a mapping at the top level")

    try:
        return AppConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def save_example_config(output_path: str) -> None:
    """
    Save an example configuration file

    Args:
        output_path: Path where to save the example config
    """
    example_config = {
        'debug': False,
        'log_level': 'WARNING',
        'cluster': {
            'kubeconfig_path': '~/.kube/config',
            'context': 'my-aks-context',
            'namespace': 'production',
            'backend': 'kubectl',
            'request_timeout': 30
        },
        'search': {
            'tail_lines': 1000,
            'max_concurrency': 8,
            'rate_limit': 20,
            'timeout': 60
        },
        'output': {
            'format': 'table',
            'show_raw': False,
            'local_time': False
        }
    }

    with open(output_path, 'w') as f:
        yaml.dump(example_config, f, default_flow_style=False, indent=2)


def build_log_source(config: AppConfig) -> LogSource:
    """Create the log source selected by the cluster configuration"""
    cluster = config.cluster
    kubeconfig = str(Path(cluster.kubeconfig_path).expanduser()) if cluster.kubeconfig_path else None

    if cluster.backend == "api":
        return KubernetesApiLogSource(
            kubeconfig_path=kubeconfig,
            context=cluster.context,
            request_timeout=cluster.request_timeout
        )

    return KubectlLogSource(
        kubeconfig_path=kubeconfig,
        context=cluster.context,
        request_timeout=cluster.request_timeout
    )
