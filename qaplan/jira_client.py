import requests
from typing import Dict, Optional, Any
import logging
from urllib.parse import urljoin

from .models import ConnectionStatus, Ticket
from .ticket_normalizer import DEFAULT_ACCEPTANCE_CRITERIA_FIELD, normalize

logger = logging.getLogger(__name__)


class JiraClientError(Exception):
    """Raised when Jira returns an error for a ticket request"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class JiraClient:
    """Jira REST API v3 client for fetching tickets"""

    def __init__(self, server_url: str, username: str, api_token: str,
                 acceptance_criteria_field: str = DEFAULT_ACCEPTANCE_CRITERIA_FIELD, timeout: int = 30):
        self.server_url = server_url.rstrip('/')
        self.acceptance_criteria_field = acceptance_criteria_field or DEFAULT_ACCEPTANCE_CRITERIA_FIELD
        self.timeout = timeout

        logger.info(f"JiraClient initialized for {self.server_url} as {username}")
        self.session = requests.Session()
        self.session.auth = (username, api_token)
        self.session.headers.update({
            'Accept': 'application/json',
            'Content-Type': 'application/json'
        })

    def _api_url(self, endpoint: str) -> str:
        return urljoin(self.server_url, f'/rest/api/3{endpoint}')

    def get_ticket(self, ticket_key: str) -> Dict[str, Any]:
        """Get the raw issue payload for a ticket"""
        url = self._api_url(f'/issue/{ticket_key}')

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to get ticket {ticket_key}: {e}")
            raise JiraClientError(f"Failed to fetch ticket: {e}") from e

        if response.status_code == 404:
            raise JiraClientError(f"Ticket {ticket_key} not found", status_code=404)
        if not response.ok:
            raise JiraClientError(
                f"Failed to fetch ticket: {response.status_code} - {response.text}",
                status_code=response.status_code
            )

        return response.json()

    def fetch_ticket(self, ticket_key: str) -> Ticket:
        """Fetch a ticket and normalize it"""
        payload = self.get_ticket(ticket_key)
        ticket = normalize(payload, self.acceptance_criteria_field)
        logger.info(f"Fetched {ticket.key}: {ticket.summary}")
        return ticket

    def test_connection(self) -> ConnectionStatus:
        """Test the Jira connection by fetching the current user"""
        try:
            response = self.session.get(self._api_url('/myself'), timeout=10)
        except requests.exceptions.RequestException as e:
            logger.error(f"Jira connection test failed: {e}")
            return ConnectionStatus(success=False, message=f"Connection error: {e}")

        if response.ok:
            data = response.json()
            return ConnectionStatus(
                success=True,
                message=f"Connected as {data.get('displayName')} ({data.get('emailAddress')})"
            )

        return ConnectionStatus(
            success=False,
            message=f"Connection failed: {response.status_code} - {response.text}"
        )
