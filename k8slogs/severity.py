"""
Severity normalization and plain-text severity detection
"""

from typing import Dict, List, Optional, Tuple

from .models import Severity, SeverityLevel, UnrecognizedSeverity


# Exact (case-insensitive) tokens found in structured log level fields
SEVERITY_ALIASES: Dict[str, Severity] = {
    'ERROR': Severity.ERROR,
    'ERR': Severity.ERROR,
    'FATAL': Severity.ERROR,
    'CRITICAL': Severity.ERROR,
    'CRIT': Severity.ERROR,
    'WARN': Severity.WARN,
    'WARNING': Severity.WARN,
    'INFO': Severity.INFO,
    'INFORMATION': Severity.INFO,
    'DEBUG': Severity.DEBUG,
    'TRACE': Severity.DEBUG,
    'VERBOSE': Severity.DEBUG,
}

# Substrings searched in upper-cased plain text, first match wins.
# Bracketed and colon forms come before the space-delimited ones.
PLAIN_LEVEL_PATTERNS: List[Tuple[str, Severity]] = [
    ('[ERROR]', Severity.ERROR),
    ('[ERR]', Severity.ERROR),
    ('ERROR:', Severity.ERROR),
    ('ERROR ', Severity.ERROR),
    (' ERROR ', Severity.ERROR),
    ('FATAL:', Severity.ERROR),
    ('[FATAL]', Severity.ERROR),
    ('[WARN]', Severity.WARN),
    ('[WARNING]', Severity.WARN),
    ('WARN:', Severity.WARN),
    ('WARNING:', Severity.WARN),
    (' WARN ', Severity.WARN),
    ('[INFO]', Severity.INFO),
    ('INFO:', Severity.INFO),
    (' INFO ', Severity.INFO),
    ('[DEBUG]', Severity.DEBUG),
    ('DEBUG:', Severity.DEBUG),
    (' DEBUG ', Severity.DEBUG),
    ('[TRACE]', Severity.DEBUG),
]


def normalize_severity(token: str) -> SeverityLevel:
    """
    Map a raw severity token onto the canonical set

    Unknown tokens are kept, upper-cased, as UnrecognizedSeverity.
    """
    upper = token.upper()
    canonical = SEVERITY_ALIASES.get(upper)
    if canonical is not None:
        return canonical
    return UnrecognizedSeverity(upper)


def normalize_level(token: str) -> str:
    """Normalize a severity token to its string form"""
    return normalize_severity(token).value


def detect_severity(content: str) -> Optional[Severity]:
    """
    Infer a severity from unstructured log text

    Args:
        content: Log line content with any timestamp prefix removed

    Returns:
        The severity of the first matching pattern, or None
    """
    upper = content.upper()

    for pattern, level in PLAIN_LEVEL_PATTERNS:
        if pattern in upper:
            return level

    return None
