"""
Shared fixtures for K8s Logs tests
"""

import asyncio
from typing import Callable, Dict, List, Optional, Tuple, Union

import pytest

from k8slogs.errors import LogFetchError, TargetNotFoundError
from k8slogs.log_source import LogSource
from k8slogs.models import LogFetchOptions, PodContainers


StreamLogs = Union[List[str], Exception]


class FakeLogSource(LogSource):
    """In-memory log source with per-stream delays and failures"""

    def __init__(self,
                 pods: List[PodContainers],
                 logs: Dict[Tuple[str, str], StreamLogs],
                 deployments: Optional[Dict[str, str]] = None,
                 delays: Optional[Dict[Tuple[str, str], float]] = None,
                 on_fetch: Optional[Callable[[str, str], None]] = None):
        self.pods = pods
        self.logs = logs
        self.deployments = deployments or {}
        self.delays = delays or {}
        self.on_fetch = on_fetch
        self.fetches: List[Tuple[str, str, LogFetchOptions]] = []
        self.selectors: List[str] = []

    async def resolve_deployment_selector(self, namespace: str, deployment: str) -> str:
        if deployment not in self.deployments:
            raise TargetNotFoundError('deployment', namespace, deployment)
        return self.deployments[deployment]

    async def resolve_member_pods(self, namespace: str, selector: str) -> List[PodContainers]:
        self.selectors.append(selector)
        return list(self.pods)

    async def get_pod_containers(self, namespace: str, pod_name: str) -> PodContainers:
        for pod in self.pods:
            if pod.pod_name == pod_name:
                return pod
        raise TargetNotFoundError('pod', namespace, pod_name)

    async def fetch_log_text(self,
                             namespace: str,
                             pod_name: str,
                             container_name: str,
                             options: LogFetchOptions) -> List[str]:
        key = (pod_name, container_name)
        self.fetches.append((pod_name, container_name, options))

        if self.on_fetch is not None:
            self.on_fetch(pod_name, container_name)

        delay = self.delays.get(key)
        if delay:
            await asyncio.sleep(delay)

        result = self.logs.get(key)
        if result is None:
            raise LogFetchError(pod_name, container_name, "container not found")
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def test_connection(self) -> bool:
        return True


@pytest.fixture
def fake_source_factory():
    """Factory for FakeLogSource instances"""
    return FakeLogSource


@pytest.fixture
def web_source():
    """Three containers across two pods of a 'web' deployment"""
    pods = [
        PodContainers('web-1', ('app', 'sidecar')),
        PodContainers('web-2', ('app',)),
    ]
    logs = {
        ('web-1', 'app'): [
            '2024-12-26T10:23:45.123456789Z {"level":"error","msg":"db connection failed"}',
            '2024-12-26T10:23:46.000000000Z [INFO] request served in 12ms',
        ],
        ('web-1', 'sidecar'): [
            '2024-12-26T10:23:47.000000000Z proxy WARN upstream slow',
        ],
        ('web-2', 'app'): [
            '2024-12-26T10:23:48.000000000Z ERROR: Timeout talking to db',
            '2024-12-26T10:23:49.000000000Z {"severity":"debug","message":"cache hit"}',
        ],
    }
    return FakeLogSource(pods, logs, deployments={'web': 'app=web'})
