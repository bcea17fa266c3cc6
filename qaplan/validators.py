"""
Input validation helpers for ticket keys, Jira URLs and LLM settings
"""
import re
from urllib.parse import urlparse

TICKET_KEY_PATTERN = re.compile(r'^[A-Z]+-\d+$')
JIRA_HOST_PATTERNS = [
    re.compile(r'\.atlassian\.net$', re.IGNORECASE),
    re.compile(r'\.jira\.com$', re.IGNORECASE),
]


def sanitize_ticket_key(ticket_key: str) -> str:
    return ticket_key.strip().upper()


def is_valid_ticket_key(ticket_key: str) -> bool:
    """Check PROJECT-123 format"""
    return bool(TICKET_KEY_PATTERN.match(ticket_key))


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def is_valid_jira_base_url(url: str) -> bool:
    """Jira Cloud URLs must live on atlassian.net or jira.com"""
    if not is_valid_url(url):
        return False
    host = urlparse(url).hostname or ''
    return any(pattern.search(host) for pattern in JIRA_HOST_PATTERNS)


def is_valid_temperature(temperature: float) -> bool:
    return 0 <= temperature <= 1
