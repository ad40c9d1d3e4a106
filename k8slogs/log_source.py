"""
Kubernetes log sources
Resolve workload membership and fetch raw container log text, either
by driving kubectl or through the Kubernetes API client
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import structlog
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from .errors import ConfigError, LogFetchError, LogSourceError, TargetNotFoundError
from .models import LogFetchOptions, PodContainers

logger = structlog.get_logger(__name__)


def format_label_selector(match_labels: Optional[Dict[str, str]]) -> str:
    """Join matchLabels into a kubectl/API label selector"""
    if not match_labels:
        return ""
    return ",".join(f"{key}={value}" for key, value in match_labels.items())


def split_log_text(text: str) -> List[str]:
    """
    Split fetched log text on newlines, dropping empty lines

    Only a newline, optionally preceded by a carriage return, ends a
    line; form feeds and Unicode line separators stay inside the line.
    """
    lines = []
    for line in text.split('\n'):
        if line.endswith('\r'):
            line = line[:-1]
        if line:
            lines.append(line)
    return lines


class LogSource(ABC):
    """Cluster collaborator used by the search aggregator"""

    @abstractmethod
    async def resolve_deployment_selector(self, namespace: str, deployment: str) -> str:
        """Return the label selector built from a deployment's matchLabels"""

    @abstractmethod
    async def resolve_member_pods(self, namespace: str, selector: str) -> List[PodContainers]:
        """List pods matching a label selector, with their container names"""

    @abstractmethod
    async def get_pod_containers(self, namespace: str, pod_name: str) -> PodContainers:
        """Look up a single pod's containers"""

    @abstractmethod
    async def fetch_log_text(self,
                             namespace: str,
                             pod_name: str,
                             container_name: str,
                             options: LogFetchOptions) -> List[str]:
        """Fetch raw log lines for one (pod, container) stream"""

    @abstractmethod
    async def test_connection(self) -> bool:
        """Check that the cluster is reachable"""


class KubectlLogSource(LogSource):
    """Log source backed by the kubectl binary"""

    def __init__(self,
                 kubeconfig_path: Optional[str] = None,
                 context: Optional[str] = None,
                 request_timeout: Optional[int] = 30):
        """
        Initialize the kubectl log source

        Args:
            kubeconfig_path: Path to kubeconfig file
            context: Kubernetes context to use
            request_timeout: Per-request timeout in seconds
        """
        self.kubeconfig_path = kubeconfig_path
        self.context = context
        self.request_timeout = request_timeout

        logger.info("Initialized kubectl log source",
                    kubeconfig=kubeconfig_path,
                    context=context)

    def _build_kubectl_cmd(self, cmd_args: List[str]) -> List[str]:
        """Build kubectl command with proper context and kubeconfig"""
        cmd = ['kubectl']

        if self.kubeconfig_path:
            cmd.extend(['--kubeconfig', str(self.kubeconfig_path)])

        if self.context:
            cmd.extend(['--context', self.context])

        if self.request_timeout:
            cmd.extend(['--request-timeout', f'{self.request_timeout}s'])

        cmd.extend(cmd_args)
        return cmd

    async def _run_kubectl_command(self, cmd_args: List[str]) -> Tuple[str, str, int]:
        """Run kubectl command asynchronously"""
        cmd = self._build_kubectl_cmd(cmd_args)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )

            stdout, stderr = await process.communicate()
            return (stdout.decode('utf-8', errors='replace'),
                    stderr.decode('utf-8', errors='replace'),
                    process.returncode)

        except OSError as e:
            logger.error("Failed to run kubectl command", cmd=cmd, error=str(e))
            return "", str(e), 1

    async def _get_json(self, cmd_args: List[str], kind: str, namespace: str, name: str) -> Dict[str, Any]:
        stdout, stderr, returncode = await self._run_kubectl_command(cmd_args)

        if returncode != 0:
            if 'NotFound' in stderr:
                raise TargetNotFoundError(kind, namespace, name)
            logger.error("kubectl request failed", kind=kind, namespace=namespace, stderr=stderr.strip())
            raise LogSourceError(f"kubectl get {kind} failed: {stderr.strip()}")

        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            raise LogSourceError(f"Failed to parse kubectl {kind} output: {e}") from e

    @staticmethod
    def _pod_containers(item: Dict[str, Any]) -> PodContainers:
        metadata = item.get('metadata', {})
        spec = item.get('spec', {})
        containers = tuple(c.get('name', '') for c in spec.get('containers', []))
        return PodContainers(pod_name=metadata.get('name', ''), containers=containers)

    async def resolve_deployment_selector(self, namespace: str, deployment: str) -> str:
        data = await self._get_json(
            ['get', 'deployment', deployment, '-n', namespace, '-o', 'json'],
            'deployment', namespace, deployment
        )
        match_labels = data.get('spec', {}).get('selector', {}).get('matchLabels')
        selector = format_label_selector(match_labels)

        logger.debug("Resolved deployment selector",
                     namespace=namespace, deployment=deployment, selector=selector)
        return selector

    async def resolve_member_pods(self, namespace: str, selector: str) -> List[PodContainers]:
        cmd_args = ['get', 'pods', '-n', namespace, '-o', 'json']
        if selector:
            cmd_args.extend(['-l', selector])

        data = await self._get_json(cmd_args, 'pods', namespace, selector)
        pods = [self._pod_containers(item) for item in data.get('items', [])]

        logger.debug("Found pods for selector", namespace=namespace, selector=selector, count=len(pods))
        return pods

    async def get_pod_containers(self, namespace: str, pod_name: str) -> PodContainers:
        data = await self._get_json(
            ['get', 'pod', pod_name, '-n', namespace, '-o', 'json'],
            'pod', namespace, pod_name
        )
        return self._pod_containers(data)

    async def fetch_log_text(self,
                             namespace: str,
                             pod_name: str,
                             container_name: str,
                             options: LogFetchOptions) -> List[str]:
        cmd_args = ['logs', '-n', namespace, pod_name, '-c', container_name]

        if options.timestamps:
            cmd_args.append('--timestamps')

        if options.since_seconds is not None:
            cmd_args.extend(['--since', f'{options.since_seconds}s'])

        if options.tail_lines is not None:
            cmd_args.extend(['--tail', str(options.tail_lines)])

        stdout, stderr, returncode = await self._run_kubectl_command(cmd_args)

        if returncode != 0:
            raise LogFetchError(pod_name, container_name, stderr.strip() or f"exit code {returncode}")

        return split_log_text(stdout)

    async def test_connection(self) -> bool:
        """Test if kubectl connection is working"""
        stdout, stderr, returncode = await self._run_kubectl_command(['cluster-info'])

        if returncode == 0:
            logger.info("Kubectl connection test successful")
            return True

        logger.error("Kubectl connection test failed", stderr=stderr.strip())
        return False


class KubernetesApiLogSource(LogSource):
    """Log source backed by the official Kubernetes Python client"""

    def __init__(self,
                 kubeconfig_path: Optional[str] = None,
                 context: Optional[str] = None,
                 request_timeout: Optional[int] = 30,
                 core_api: Optional[client.CoreV1Api] = None,
                 apps_api: Optional[client.AppsV1Api] = None):
        """
        Initialize the API log source

        Args:
            kubeconfig_path: Path to kubeconfig file (KUBECONFIG or ~/.kube/config if None)
            context: Kubernetes context to use
            request_timeout: Per-request timeout in seconds
            core_api: Preconfigured CoreV1Api, skips kubeconfig loading
            apps_api: Preconfigured AppsV1Api, skips kubeconfig loading
        """
        if core_api is None or apps_api is None:
            try:
                api_client = config.new_client_from_config(config_file=kubeconfig_path, context=context)
            except (ConfigException, OSError) as e:
                raise ConfigError(f"Failed to load kubeconfig: {e}") from e
            core_api = core_api or client.CoreV1Api(api_client)
            apps_api = apps_api or client.AppsV1Api(api_client)

        self.core_api = core_api
        self.apps_api = apps_api
        self.request_timeout = request_timeout

        logger.info("Initialized Kubernetes API log source",
                    kubeconfig=kubeconfig_path,
                    context=context)

    async def _call(self, func, *args, **kwargs):
        """Run a blocking client call in a worker thread"""
        if self.request_timeout:
            kwargs['_request_timeout'] = self.request_timeout
        return await asyncio.to_thread(func, *args, **kwargs)

    async def _get(self, kind: str, namespace: str, name: str, func, *args, **kwargs):
        try:
            return await self._call(func, *args, **kwargs)
        except ApiException as e:
            if e.status == 404:
                raise TargetNotFoundError(kind, namespace, name) from e
            raise LogSourceError(f"Kubernetes API error reading {kind}: {e.reason}") from e
        except Exception as e:
            logger.error("Kubernetes API request failed", kind=kind, namespace=namespace, error=str(e))
            raise LogSourceError(f"Kubernetes API request for {kind} failed: {e}") from e

    @staticmethod
    def _pod_containers(pod) -> PodContainers:
        containers = pod.spec.containers if pod.spec and pod.spec.containers else []
        return PodContainers(
            pod_name=pod.metadata.name or '',
            containers=tuple(c.name for c in containers)
        )

    async def resolve_deployment_selector(self, namespace: str, deployment: str) -> str:
        deploy = await self._get('deployment', namespace, deployment,
                                 self.apps_api.read_namespaced_deployment, deployment, namespace)
        match_labels = None
        if deploy.spec and deploy.spec.selector:
            match_labels = deploy.spec.selector.match_labels
        return format_label_selector(match_labels)

    async def resolve_member_pods(self, namespace: str, selector: str) -> List[PodContainers]:
        kwargs = {'label_selector': selector} if selector else {}
        pod_list = await self._get('pods', namespace, selector,
                                   self.core_api.list_namespaced_pod, namespace, **kwargs)
        return [self._pod_containers(pod) for pod in pod_list.items]

    async def get_pod_containers(self, namespace: str, pod_name: str) -> PodContainers:
        pod = await self._get('pod', namespace, pod_name,
                              self.core_api.read_namespaced_pod, pod_name, namespace)
        return self._pod_containers(pod)

    async def fetch_log_text(self,
                             namespace: str,
                             pod_name: str,
                             container_name: str,
                             options: LogFetchOptions) -> List[str]:
        kwargs = {'container': container_name, 'timestamps': options.timestamps}
        if options.since_seconds is not None:
            kwargs['since_seconds'] = options.since_seconds
        if options.tail_lines is not None:
            kwargs['tail_lines'] = options.tail_lines

        try:
            text = await self._call(self.core_api.read_namespaced_pod_log, pod_name, namespace, **kwargs)
        except ApiException as e:
            raise LogFetchError(pod_name, container_name, e.reason or str(e.status)) from e
        except Exception as e:
            raise LogFetchError(pod_name, container_name, str(e)) from e

        return split_log_text(text or "")

    async def test_connection(self) -> bool:
        try:
            await self._call(self.core_api.get_api_resources)
        except Exception as e:
            logger.error("Kubernetes API connection test failed", error=str(e))
            return False

        logger.info("Kubernetes API connection test successful")
        return True
