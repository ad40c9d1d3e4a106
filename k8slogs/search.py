"""
Multi-stream log search
Fans out over every (pod, container) stream of a workload, classifies
the fetched lines and keeps the entries matching keyword/level filters
"""

import asyncio
import math
import re
from datetime import timedelta
from typing import List, Optional, Tuple, Union

import structlog
from asyncio_throttle import Throttler

from .errors import LogSourceError
from .log_parser import LogLineParser
from .log_source import LogSource
from .models import LogEntry, LogFetchOptions, LogSearchResult, SearchTarget

logger = structlog.get_logger(__name__)

DEFAULT_TAIL_LINES = 1000
DEFAULT_MAX_CONCURRENCY = 8

Since = Union[int, float, timedelta]

_DURATION_RE = re.compile(r'^\s*(\d+)\s*([smhd]?)\s*$', re.IGNORECASE)
_DURATION_UNITS = {'': 1, 's': 1, 'm': 60, 'h': 3600, 'd': 86400}


def parse_duration(value: str) -> int:
    """
    Parse a duration like "30s", "15m", "2h", "1d" or "90" into seconds

    Raises:
        ValueError: If the value is not a positive duration
    """
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")

    seconds = int(match.group(1)) * _DURATION_UNITS[match.group(2).lower()]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return seconds


def since_to_seconds(since: Optional[Since]) -> Optional[int]:
    """Convert a since bound to whole seconds for the log source"""
    if since is None:
        return None

    if isinstance(since, timedelta):
        seconds = since.total_seconds()
    else:
        seconds = since

    if seconds <= 0:
        raise ValueError(f"since must be positive, got {since!r}")

    # Partial seconds round up so the window is never narrower than asked
    return math.ceil(seconds)


def matches_filters(entry: LogEntry,
                    keyword: Optional[str] = None,
                    level: Optional[str] = None) -> bool:
    """
    Check an entry against search filters

    keyword matches case-insensitively against message or raw line.
    level must equal the entry's level case-insensitively; entries
    without a level never match a level filter.
    """
    if keyword is not None:
        needle = keyword.lower()
        if needle not in entry.message.lower() and needle not in entry.raw.lower():
            return False

    if level is not None:
        if entry.level is None or entry.level.upper() != level.upper():
            return False

    return True


class LogSearchAggregator:
    """Searches the logs of every container behind a workload"""

    def __init__(self,
                 source: LogSource,
                 tail_lines: int = DEFAULT_TAIL_LINES,
                 max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
                 rate_limit: Optional[int] = None,
                 parser: Optional[LogLineParser] = None):
        """
        Initialize the aggregator

        Args:
            source: Cluster log source
            tail_lines: Maximum number of recent lines fetched per stream
            max_concurrency: Maximum number of streams fetched at once
            rate_limit: Maximum number of fetches started per second (unlimited if None)
            parser: Line parser (a default LogLineParser if None)
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.source = source
        self.tail_lines = tail_lines
        self.max_concurrency = max_concurrency
        self.throttler = Throttler(rate_limit=rate_limit, period=1.0) if rate_limit else None
        self.parser = parser or LogLineParser()

    async def resolve_streams(self, target: SearchTarget) -> List[Tuple[str, str]]:
        """
        Resolve the (pod, container) pairs behind a search target

        Raises:
            LogSourceError: If membership cannot be resolved at all
        """
        selector = target.selector or ""
        if target.deployment:
            selector = await self.source.resolve_deployment_selector(target.namespace, target.deployment)
            if not selector:
                logger.warning("Deployment has no matchLabels, searching all pods in namespace",
                               namespace=target.namespace, deployment=target.deployment)

        pods = await self.source.resolve_member_pods(target.namespace, selector)
        return [(pod.pod_name, container) for pod in pods for container in pod.containers]

    async def search(self,
                     target: SearchTarget,
                     keyword: Optional[str] = None,
                     level: Optional[str] = None,
                     since: Optional[Since] = None,
                     timeout: Optional[float] = None,
                     cancel_event: Optional[asyncio.Event] = None) -> List[LogSearchResult]:
        """
        Search the logs of every container in the target

        Streams that cannot be fetched are skipped. Streams with no matching
        entries produce no result. Results follow pod/container discovery order.

        Args:
            target: Workload to search
            keyword: Case-insensitive substring to look for
            level: Severity to keep, e.g. "ERROR"
            since: Only consider logs newer than this (seconds or timedelta)
            timeout: Stop waiting after this many seconds and return what was found
            cancel_event: When set, no further streams are fetched

        Returns:
            List of LogSearchResult, one per stream with matches
        """
        options = LogFetchOptions(
            timestamps=True,
            since_seconds=since_to_seconds(since),
            tail_lines=self.tail_lines
        )

        streams = await self.resolve_streams(target)

        logger.info("Starting log search",
                    namespace=target.namespace,
                    target=target.describe(),
                    streams=len(streams),
                    keyword=keyword,
                    level=level,
                    since_seconds=options.since_seconds)

        if not streams:
            return []

        slots: List[Optional[LogSearchResult]] = [None] * len(streams)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        stop = asyncio.Event()

        def stopped() -> bool:
            return stop.is_set() or (cancel_event is not None and cancel_event.is_set())

        async def run(index: int, pod_name: str, container_name: str):
            async with semaphore:
                if stopped():
                    return
                slots[index] = await self._search_stream(
                    target.namespace, pod_name, container_name, options, keyword, level
                )

        tasks = [asyncio.create_task(run(i, pod, container))
                 for i, (pod, container) in enumerate(streams)]

        try:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
        finally:
            stop.set()
            for task in tasks:
                if not task.done():
                    task.cancel()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning("Log search timed out, returning partial results",
                           namespace=target.namespace,
                           unfinished_streams=len(pending),
                           timeout=timeout)

        for task in tasks:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()

        results = [result for result in slots if result is not None]

        logger.info("Completed log search",
                    namespace=target.namespace,
                    target=target.describe(),
                    streams_with_matches=len(results),
                    total_matches=sum(r.total_matches for r in results))
        return results

    async def _fetch(self, namespace: str, pod_name: str, container_name: str,
                     options: LogFetchOptions) -> List[str]:
        if self.throttler is None:
            return await self.source.fetch_log_text(namespace, pod_name, container_name, options)

        async with self.throttler:
            return await self.source.fetch_log_text(namespace, pod_name, container_name, options)

    async def _search_stream(self,
                             namespace: str,
                             pod_name: str,
                             container_name: str,
                             options: LogFetchOptions,
                             keyword: Optional[str],
                             level: Optional[str]) -> Optional[LogSearchResult]:
        try:
            lines = await self._fetch(namespace, pod_name, container_name, options)
        except LogSourceError as e:
            logger.warning("Skipping log stream",
                           pod=pod_name,
                           container=container_name,
                           error=str(e))
            return None

        entries = tuple(
            entry for entry in self.parser.parse_lines(lines, pod_name, container_name)
            if matches_filters(entry, keyword, level)
        )

        logger.debug("Searched log stream",
                     pod=pod_name,
                     container=container_name,
                     lines=len(lines),
                     matches=len(entries))

        if not entries:
            return None

        return LogSearchResult(pod_name=pod_name, container_name=container_name, entries=entries)


async def get_pod_logs(source: LogSource,
                       namespace: str,
                       pod_name: str,
                       container: Optional[str] = None,
                       since: Optional[Since] = None,
                       tail_lines: Optional[int] = None,
                       parser: Optional[LogLineParser] = None) -> List[LogEntry]:
    """
    Fetch and classify the logs of a single pod container

    The pod's first container is used when container is None.
    Unlike search, retrieval failures propagate to the caller.
    """
    if container is None:
        pod = await source.get_pod_containers(namespace, pod_name)
        if not pod.containers:
            raise LogSourceError(f"Pod '{pod_name}' has no containers")
        container = pod.containers[0]

    options = LogFetchOptions(
        timestamps=True,
        since_seconds=since_to_seconds(since),
        tail_lines=tail_lines
    )

    lines = await source.fetch_log_text(namespace, pod_name, container, options)
    entries = (parser or LogLineParser()).parse_lines(lines, pod_name, container)

    logger.info("Fetched pod logs", namespace=namespace, pod=pod_name, container=container, count=len(entries))
    return entries
