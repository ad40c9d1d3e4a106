"""
Exception hierarchy for K8s Logs
"""


class K8sLogsError(Exception):
    """Base class for all k8slogs errors"""


class ConfigError(K8sLogsError):
    """Configuration could not be loaded or is invalid"""


class LogSourceError(K8sLogsError):
    """The cluster log source failed to answer a request"""


class TargetNotFoundError(LogSourceError):
    """The requested deployment or pod does not exist"""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} '{name}' not found in namespace '{namespace}'")


class LogFetchError(LogSourceError):
    """Logs for a single (pod, container) stream could not be retrieved"""

    def __init__(self, pod_name: str, container_name: str, reason: str):
        self.pod_name = pod_name
        self.container_name = container_name
        self.reason = reason
        super().__init__(f"Failed to fetch logs for {pod_name}/{container_name}: {reason}")
