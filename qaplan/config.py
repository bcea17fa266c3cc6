import os
import re
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional, List
from dotenv import load_dotenv

from .llm_providers import ProviderName, DEFAULT_GROQ_MODEL, DEFAULT_OLLAMA_URL
from .ticket_normalizer import DEFAULT_ACCEPTANCE_CRITERIA_FIELD
from .validators import is_valid_jira_base_url, is_valid_temperature

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "data"


class Config:
    """Configuration manager for the test plan generator"""

    def __init__(self, config_path: str = "config.yaml"):
        load_dotenv()
        self.config_path = config_path
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file with environment variable substitution"""
        if not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            config_content = file.read()

        config_content = self._substitute_env_vars(config_content)

        return yaml.safe_load(config_content) or {}

    def _substitute_env_vars(self, content: str) -> str:
        """Replace ${VAR_NAME} and ${VAR_NAME:default} with environment variables"""
        def replace_var(match):
            var_expr = match.group(1)
            if ':' in var_expr:
                var_name, default_value = var_expr.split(':', 1)
                return os.getenv(var_name, default_value)
            else:
                return os.getenv(var_expr, '')

        return re.sub(r'\$\{([^}]+)\}', replace_var, content)

    @property
    def jira(self) -> Dict[str, Any]:
        return self._config.get('jira') or {}

    @property
    def llm(self) -> Dict[str, Any]:
        return self._config.get('llm') or {}

    @property
    def storage(self) -> Dict[str, Any]:
        return self._config.get('storage') or {}

    @property
    def data_dir(self) -> Path:
        return Path(self.storage.get('data_dir') or DEFAULT_DATA_DIR)

    @property
    def templates_dir(self) -> Path:
        return self.data_dir / 'templates'

    @property
    def history_dir(self) -> Path:
        return self.data_dir / 'history'

    @property
    def acceptance_criteria_field(self) -> str:
        return self.jira.get('acceptance_criteria_field') or DEFAULT_ACCEPTANCE_CRITERIA_FIELD

    def get_supported_providers(self) -> List[str]:
        """Get list of supported LLM providers"""
        return [provider.value for provider in ProviderName]

    def validate_llm_provider(self, provider: str) -> bool:
        return provider in self.get_supported_providers()

    def get_default_provider(self) -> str:
        return (self.llm.get('provider') or ProviderName.GROQ.value).lower()

    def get_llm_config(self, provider: Optional[str] = None) -> Dict[str, Any]:
        """
        Get the llm section with defaults filled in for both providers.

        Args:
            provider: Optional provider override (defaults to llm.provider)

        Returns:
            Dict with "provider", "groq" and "ollama" keys
        """
        provider = (provider or self.get_default_provider()).lower()

        if not self.validate_llm_provider(provider):
            raise ValueError(f"Unsupported LLM provider: {provider}. Supported providers: {self.get_supported_providers()}")

        groq = self.llm.get('groq') or {}
        ollama = self.llm.get('ollama') or {}

        return {
            'provider': provider,
            'groq': {
                'api_key': groq.get('api_key') or '',
                'model': groq.get('model') or DEFAULT_GROQ_MODEL,
                'temperature': float(groq.get('temperature', 0.7)),
                'max_tokens': int(groq.get('max_tokens') or 4096)
            },
            'ollama': {
                'base_url': ollama.get('base_url') or DEFAULT_OLLAMA_URL,
                'model': ollama.get('model') or ''
            }
        }

    def get_errors(self) -> List[str]:
        """Collect configuration problems"""
        errors = []

        for field in ['server_url', 'username', 'api_token']:
            if not self.jira.get(field):
                errors.append(f"Missing Jira configuration: {field}")

        server_url = self.jira.get('server_url')
        if server_url and not is_valid_jira_base_url(server_url):
            errors.append(f"Jira server_url must be an atlassian.net or jira.com URL: {server_url}")

        try:
            llm_config = self.get_llm_config()
        except ValueError as e:
            errors.append(f"LLM configuration error: {str(e)}")
            return errors

        if llm_config['provider'] == ProviderName.GROQ.value:
            if not llm_config['groq']['api_key']:
                errors.append("Missing API key for LLM provider: groq")
            if not is_valid_temperature(llm_config['groq']['temperature']):
                errors.append("Groq temperature must be between 0 and 1")
        elif not llm_config['ollama']['model']:
            errors.append("Missing Ollama model name")

        return errors

    def validate(self) -> bool:
        """Validate that all required configuration is present"""
        errors = self.get_errors()
        for error in errors:
            logger.error(f"Configuration Error: {error}")
        return not errors
