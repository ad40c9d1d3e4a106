"""
Log line classification
Turns raw container log lines into LogEntry records, detecting
timestamps, JSON structured payloads and severities
"""

import json
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import LogEntry
from .severity import detect_severity, normalize_level


# Field names consulted in order; the first string value wins
LEVEL_FIELDS: Tuple[str, ...] = ('level', 'severity', 'log_level', 'lvl')
MESSAGE_FIELDS: Tuple[str, ...] = ('message', 'msg', 'log')
TIMESTAMP_FIELDS: Tuple[str, ...] = ('timestamp', 'time', 'ts', '@timestamp')


def extract_timestamp(line: str) -> Tuple[Optional[str], str]:
    """
    Split a leading RFC3339 timestamp from a log line

    kubectl and the API prefix each line with a timestamp when asked, e.g.
    "2024-12-26T10:23:45.123456789Z log message". This is a shape check,
    not a full RFC3339 validation.

    Returns:
        (timestamp, remainder); timestamp is None and remainder is the
        whole line when no timestamp prefix is found
    """
    if len(line) > 30 and line[4] == '-' and line[7] == '-':
        space_idx = line.find(' ')
        if space_idx != -1:
            ts = line[:space_idx]
            if 'T' in ts and (ts.endswith('Z') or '+' in ts):
                return ts, line[space_idx + 1:]

    return None, line


def decode_structured(content: str) -> Optional[Dict[str, Any]]:
    """Decode content as a JSON object, returning None if it is not one"""
    try:
        document = json.loads(content)
    except (ValueError, RecursionError):
        return None

    if not isinstance(document, dict):
        return None

    return document


def first_string_field(document: Dict[str, Any], fields: Sequence[str]) -> Optional[str]:
    """Return the first value among fields that is a string"""
    for name in fields:
        value = document.get(name)
        if isinstance(value, str):
            return value
    return None


class LogLineParser:
    """Classifies raw log lines into LogEntry objects"""

    def parse(self, line: str, pod_name: str, container_name: str) -> LogEntry:
        """
        Parse a single log line

        Args:
            line: Raw line as returned by the log source
            pod_name: Pod the line came from
            container_name: Container the line came from

        Returns:
            LogEntry with raw set to the unmodified line
        """
        timestamp, rest = extract_timestamp(line)

        document = decode_structured(rest)
        if document is not None:
            return self._parse_structured(document, timestamp, line, pod_name, container_name)

        return self._parse_plain(rest, timestamp, line, pod_name, container_name)

    def parse_lines(self,
                    lines: Iterable[str],
                    pod_name: str,
                    container_name: str) -> List[LogEntry]:
        """Parse a batch of lines from one stream, keeping their order"""
        return [self.parse(line, pod_name, container_name) for line in lines]

    def _parse_structured(self,
                          document: Dict[str, Any],
                          fallback_timestamp: Optional[str],
                          raw: str,
                          pod_name: str,
                          container_name: str) -> LogEntry:
        level = first_string_field(document, LEVEL_FIELDS)
        message = first_string_field(document, MESSAGE_FIELDS)
        timestamp = first_string_field(document, TIMESTAMP_FIELDS)

        return LogEntry(
            timestamp=timestamp if timestamp is not None else fallback_timestamp,
            level=normalize_level(level) if level is not None else None,
            message=message or raw,
            raw=raw,
            is_structured=True,
            pod_name=pod_name,
            container_name=container_name
        )

    def _parse_plain(self,
                     content: str,
                     timestamp: Optional[str],
                     raw: str,
                     pod_name: str,
                     container_name: str) -> LogEntry:
        level = detect_severity(content)

        return LogEntry(
            timestamp=timestamp,
            level=level.value if level is not None else None,
            message=content or raw,
            raw=raw,
            is_structured=False,
            pod_name=pod_name,
            container_name=container_name
        )


_default_parser = LogLineParser()


def parse_log_line(line: str, pod_name: str, container_name: str) -> LogEntry:
    """Parse one line with the shared default parser"""
    return _default_parser.parse(line, pod_name, container_name)
