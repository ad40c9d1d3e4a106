"""
Main entry point for K8s Logs
Provides the CLI for fetching, classifying and searching container logs
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
import structlog
from rich.console import Console
from rich.markup import escape

from .config import AppConfig, build_log_source, load_config, save_example_config
from .errors import K8sLogsError
from .log_parser import LogLineParser
from .log_source import LogSource
from .models import LogEntry, LogSearchResult, SearchTarget
from .reporting import SearchReporter
from .search import LogSearchAggregator, get_pod_logs, matches_filters, parse_duration

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)
console = Console()
error_console = Console(stderr=True)


class K8sLogsApp:
    """Main application class"""

    def __init__(self, config: AppConfig, source: Optional[LogSource] = None):
        self.config = config
        self._source = source

    @property
    def source(self) -> LogSource:
        """Log source, created on first use"""
        if self._source is None:
            self._source = build_log_source(self.config)
        return self._source

    def reporter(self, json_output: bool = False, show_raw: bool = False,
                 local_time: bool = False) -> SearchReporter:
        output = self.config.output
        return SearchReporter(
            output_format="json" if json_output else output.format,
            show_raw=show_raw or output.show_raw,
            local_time=local_time or output.local_time,
            console=console
        )

    async def test_connection(self) -> bool:
        """Test the cluster connection"""
        console.print("[bold blue]🔧 Testing cluster connection...[/bold blue]")

        connected = await self.source.test_connection()

        if connected:
            console.print("[bold green]✅ Cluster connection successful![/bold green]")
        else:
            console.print("[bold red]❌ Cluster connection failed. Check your configuration.[/bold red]")

        return connected

    async def fetch_pod_logs(self,
                             namespace: str,
                             pod_name: str,
                             container: Optional[str] = None,
                             since: Optional[int] = None,
                             tail_lines: Optional[int] = None) -> List[LogEntry]:
        return await get_pod_logs(
            self.source, namespace, pod_name,
            container=container, since=since, tail_lines=tail_lines
        )

    async def search(self,
                     target: SearchTarget,
                     keyword: Optional[str] = None,
                     level: Optional[str] = None,
                     since: Optional[int] = None,
                     tail_lines: Optional[int] = None,
                     timeout: Optional[float] = None) -> List[LogSearchResult]:
        settings = self.config.search
        aggregator = LogSearchAggregator(
            self.source,
            tail_lines=tail_lines or settings.tail_lines,
            max_concurrency=settings.max_concurrency,
            rate_limit=settings.rate_limit
        )
        return await aggregator.search(
            target,
            keyword=keyword,
            level=level,
            since=since,
            timeout=timeout if timeout is not None else settings.timeout
        )


def _parse_since(ctx, param, value):
    if value is None:
        return None
    try:
        return parse_duration(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


def _fail(message: str):
    error_console.print(f"[red]❌ {escape(message)}[/red]")
    sys.exit(1)


# CLI Commands

@click.group()
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True),
              help='Path to configuration file')
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.option('--context', help='Kubernetes context to use')
@click.option('--kubeconfig', type=click.Path(), help='Path to kubeconfig file')
@click.option('--backend', type=click.Choice(['kubectl', 'api']), help='Cluster access backend')
@click.pass_context
def cli(ctx, config_path, debug, context, kubeconfig, backend):
    """K8s Logs - classify and search Kubernetes container logs"""
    try:
        app_config = load_config(config_path)
    except K8sLogsError as e:
        error_console.print(f"[red]❌ Configuration error: {escape(str(e))}[/red]")
        error_console.print("💡 Try running 'k8slogs init-config' to create a sample configuration.")
        sys.exit(1)

    if debug:
        app_config.debug = True
        app_config.log_level = "DEBUG"
    if context:
        app_config.cluster.context = context
    if kubeconfig:
        app_config.cluster.kubeconfig_path = kubeconfig
    if backend:
        app_config.cluster.backend = backend

    log_level = getattr(logging, app_config.log_level.upper(), logging.WARNING)
    logging.basicConfig(level=log_level, stream=sys.stderr)

    logger.debug("Loaded configuration",
                 config_file=config_path,
                 context=app_config.cluster.context,
                 backend=app_config.cluster.backend)

    ctx.ensure_object(dict)
    ctx.obj['config'] = app_config
    ctx.obj['app'] = K8sLogsApp(app_config)


@cli.command()
@click.option('--output', '-o', type=click.Path(), default='config/config.example.yaml',
              help='Output path for example configuration')
def init_config(output):
    """Generate example configuration file"""
    try:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        save_example_config(output)
    except OSError as e:
        _fail(f"Failed to create configuration: {e}")

    console.print(f"[green]✅ Example configuration saved to {output}[/green]")


@cli.command()
@click.pass_context
def test(ctx):
    """Test the connection to the Kubernetes cluster"""
    app = ctx.obj['app']

    try:
        success = asyncio.run(app.test_connection())
    except K8sLogsError as e:
        _fail(str(e))

    sys.exit(0 if success else 1)


@cli.command()
@click.argument('pod')
@click.option('--namespace', '-n', help='Namespace of the pod')
@click.option('--container', '-c', help='Container name (defaults to the first container)')
@click.option('--since', callback=_parse_since, help='Only logs newer than this, e.g. 30s, 15m, 2h')
@click.option('--tail', type=click.IntRange(min=1), help='Number of recent lines to fetch')
@click.option('--json', 'json_output', is_flag=True, help='Print entries as JSON')
@click.option('--raw', is_flag=True, help='Show raw lines instead of messages')
@click.option('--local-time', is_flag=True, help='Render timestamps in local time')
@click.pass_context
def logs(ctx, pod, namespace, container, since, tail, json_output, raw, local_time):
    """Fetch and classify the logs of a single pod"""
    app = ctx.obj['app']
    namespace = namespace or app.config.cluster.namespace

    try:
        entries = asyncio.run(app.fetch_pod_logs(namespace, pod, container, since, tail))
    except K8sLogsError as e:
        _fail(str(e))

    title = f"{pod}/{entries[0].container_name}" if entries else pod
    app.reporter(json_output, raw, local_time).display_entries(entries, title=title)


@cli.command()
@click.argument('deployment', required=False)
@click.option('--namespace', '-n', help='Namespace of the workload')
@click.option('--selector', '-l', help='Label selector instead of a deployment, e.g. app=web')
@click.option('--keyword', '-k', help='Case-insensitive text to search for')
@click.option('--level', help='Only entries with this level, e.g. ERROR')
@click.option('--since', callback=_parse_since, help='Only logs newer than this, e.g. 30s, 15m, 2h')
@click.option('--tail', type=click.IntRange(min=1), help='Recent lines fetched per container')
@click.option('--timeout', type=click.FloatRange(min=0, min_open=True),
              help='Return partial results after this many seconds')
@click.option('--json', 'json_output', is_flag=True, help='Print results as JSON')
@click.option('--raw', is_flag=True, help='Show raw lines instead of messages')
@click.option('--local-time', is_flag=True, help='Render timestamps in local time')
@click.pass_context
def search(ctx, deployment, namespace, selector, keyword, level, since, tail, timeout,
           json_output, raw, local_time):
    """Search the logs of every container of a deployment"""
    app = ctx.obj['app']
    namespace = namespace or app.config.cluster.namespace

    if not deployment and selector is None:
        raise click.UsageError("Give a DEPLOYMENT or a --selector")

    target = SearchTarget(namespace=namespace, deployment=deployment, selector=selector)

    try:
        results = asyncio.run(app.search(target, keyword, level, since, tail, timeout))
    except K8sLogsError as e:
        _fail(f"Search failed: {e}")

    app.reporter(json_output, raw, local_time).display_search_results(results)


@cli.command()
@click.argument('source', type=click.File('r'), default='-')
@click.option('--pod', default='', help='Pod name to attach to entries')
@click.option('--container', default='', help='Container name to attach to entries')
@click.option('--keyword', '-k', help='Case-insensitive text to search for')
@click.option('--level', help='Only entries with this level, e.g. ERROR')
@click.option('--json', 'json_output', is_flag=True, help='Print entries as JSON')
@click.option('--raw', is_flag=True, help='Show raw lines instead of messages')
@click.pass_context
def parse(ctx, source, pod, container, keyword, level, json_output, raw):
    """Classify log lines from a file or stdin"""
    app = ctx.obj['app']
    parser = LogLineParser()

    entries = [
        entry for entry in (
            parser.parse(line, pod, container)
            for line in (raw.rstrip('\r\n') for raw in source) if line
        )
        if matches_filters(entry, keyword, level)
    ]

    app.reporter(json_output, raw).display_entries(entries)


# Main function for direct execution
def main():
    """Main entry point"""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 Goodbye![/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
