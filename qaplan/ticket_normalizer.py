"""
Ticket Normalizer
Turns a Jira issue payload into a flat Ticket record.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional

from .adf import extract_text, is_adf_document
from .models import Ticket

logger = logging.getLogger(__name__)

# Jira's usual slot for acceptance criteria
DEFAULT_ACCEPTANCE_CRITERIA_FIELD = 'customfield_10014'

# Tried in order; the first match wins. A section ends at a blank line, at a
# line starting with a capital letter, or at the end of the text.
_SECTION_END = r'(?=\n\n|\n(?-i:[A-Z])|\Z)'
ACCEPTANCE_CRITERIA_PATTERNS = [
    re.compile(r'Acceptance Criteria:?\s*([\s\S]*?)' + _SECTION_END, re.IGNORECASE),
    re.compile(r'\bAC:\s*([\s\S]*?)' + _SECTION_END, re.IGNORECASE),
    re.compile(r'\bGiven\b[\s\S]*?(?=\n\n|\Z)', re.IGNORECASE),
]


class MalformedTicket(ValueError):
    """Raised when a ticket payload has no issue key"""
    pass


def flatten_description(description: Any) -> str:
    """Flatten a plain-text or ADF description to plain text"""
    if not description:
        return ''

    if isinstance(description, str):
        return description

    if is_adf_document(description):
        return extract_text(description)

    # Unknown shape; keep something readable for the prompt
    return json.dumps(description)


def extract_acceptance_criteria(text: str) -> str:
    """
    Best-effort extraction of acceptance criteria from description text.

    Returns an empty string when no known pattern matches.
    """
    for pattern in ACCEPTANCE_CRITERIA_PATTERNS:
        match = pattern.search(text)
        if match:
            captured = match.group(1) if pattern.groups else match.group(0)
            return captured.strip()
    return ''


def _named(value: Any, attribute: str) -> Optional[str]:
    if isinstance(value, dict):
        return value.get(attribute) or None
    return None


def _unique_labels(labels: Any) -> List[str]:
    if not isinstance(labels, list):
        return []
    seen = []
    for label in labels:
        if label and label not in seen:
            seen.append(str(label))
    return seen


def normalize(payload: Dict[str, Any], acceptance_criteria_field: str = DEFAULT_ACCEPTANCE_CRITERIA_FIELD) -> Ticket:
    """
    Build a Ticket from a Jira issue-fetch response.

    Args:
        payload: Raw JSON from GET /rest/api/3/issue/{key}
        acceptance_criteria_field: Custom field holding acceptance criteria

    Returns:
        Normalized Ticket

    Raises:
        MalformedTicket: If the payload has no issue key
    """
    key = payload.get('key') if isinstance(payload, dict) else None
    if not key:
        raise MalformedTicket("Ticket payload is missing the issue key")

    fields = payload.get('fields') or {}
    description = flatten_description(fields.get('description'))

    custom_ac = fields.get(acceptance_criteria_field)
    if custom_ac:
        acceptance_criteria = flatten_description(custom_ac)
    else:
        acceptance_criteria = extract_acceptance_criteria(description)
        if not acceptance_criteria:
            logger.debug(f"No acceptance criteria found in description of {key}")

    return Ticket(
        key=key,
        summary=fields.get('summary') or '',
        description=description,
        priority=_named(fields.get('priority'), 'name') or 'Medium',
        status=_named(fields.get('status'), 'name') or 'Unknown',
        assignee=_named(fields.get('assignee'), 'displayName'),
        labels=_unique_labels(fields.get('labels')),
        acceptance_criteria=acceptance_criteria,
    )
