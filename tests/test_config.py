import pytest
from pathlib import Path

from qaplan.config import Config
from qaplan.llm_providers import DEFAULT_GROQ_MODEL, DEFAULT_OLLAMA_URL

VALID_CONFIG = """
jira:
  server_url: "https://example.atlassian.net"
  username: "qa@example.com"
  api_token: "${JIRA_TOKEN}"
llm:
  provider: "${LLM_PROVIDER:groq}"
  groq:
    api_key: "${GROQ_API_KEY:}"
    temperature: 0.3
  ollama:
    model: "llama3"
storage:
  data_dir: "${QAPLAN_DATA_DIR:data}"
"""


@pytest.fixture
def write_config(tmp_path):
    def _write(content):
        path = tmp_path / 'config.yaml'
        path.write_text(content, encoding='utf-8')
        return str(path)
    return _write


class TestConfig:

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ['JIRA_TOKEN', 'LLM_PROVIDER', 'GROQ_API_KEY', 'QAPLAN_DATA_DIR']:
            monkeypatch.delenv(name, raising=False)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config(str(tmp_path / 'absent.yaml'))

    def test_env_substitution(self, write_config, monkeypatch):
        """Test that ${VAR} and ${VAR:default} are resolved from the environment"""
        monkeypatch.setenv('JIRA_TOKEN', 'secret')
        monkeypatch.setenv('GROQ_API_KEY', 'gsk-123')

        config = Config(write_config(VALID_CONFIG))

        assert config.jira['api_token'] == 'secret'
        assert config.get_default_provider() == 'groq'
        assert config.get_llm_config()['groq']['api_key'] == 'gsk-123'
        assert config.data_dir == Path('data')

    def test_storage_directories(self, write_config, monkeypatch, tmp_path):
        monkeypatch.setenv('QAPLAN_DATA_DIR', str(tmp_path / 'store'))

        config = Config(write_config(VALID_CONFIG))

        assert config.templates_dir == tmp_path / 'store' / 'templates'
        assert config.history_dir == tmp_path / 'store' / 'history'

    def test_llm_defaults_filled_in(self, write_config):
        config = Config(write_config("jira: {}\n"))

        llm_config = config.get_llm_config()

        assert llm_config['provider'] == 'groq'
        assert llm_config['groq']['model'] == DEFAULT_GROQ_MODEL
        assert llm_config['groq']['temperature'] == 0.7
        assert llm_config['groq']['max_tokens'] == 4096
        assert llm_config['ollama']['base_url'] == DEFAULT_OLLAMA_URL
        assert config.acceptance_criteria_field == 'customfield_10014'

    def test_provider_override(self, write_config, monkeypatch):
        monkeypatch.setenv('LLM_PROVIDER', 'Ollama')

        config = Config(write_config(VALID_CONFIG))

        assert config.get_default_provider() == 'ollama'
        assert config.get_llm_config()['provider'] == 'ollama'
        assert config.get_llm_config('groq')['provider'] == 'groq'

    def test_unsupported_provider(self, write_config):
        config = Config(write_config("llm:\n  provider: gemini\n"))

        with pytest.raises(ValueError, match='Unsupported LLM provider'):
            config.get_llm_config()

    def test_valid_config(self, write_config, monkeypatch):
        monkeypatch.setenv('JIRA_TOKEN', 'secret')
        monkeypatch.setenv('GROQ_API_KEY', 'gsk-123')

        config = Config(write_config(VALID_CONFIG))

        assert config.get_errors() == []
        assert config.validate() is True

    def test_missing_values_are_reported(self, write_config):
        config = Config(write_config(VALID_CONFIG))

        errors = config.get_errors()

        assert 'Missing Jira configuration: api_token' in errors
        assert 'Missing API key for LLM provider: groq' in errors
        assert config.validate() is False

    def test_non_jira_host_is_rejected(self, write_config, monkeypatch):
        monkeypatch.setenv('JIRA_TOKEN', 'secret')
        monkeypatch.setenv('GROQ_API_KEY', 'gsk-123')

        config = Config(write_config(VALID_CONFIG.replace('example.atlassian.net', 'jira.evil.example')))

        assert any('atlassian.net' in error for error in config.get_errors())

    def test_ollama_requires_model(self, write_config, monkeypatch):
        monkeypatch.setenv('JIRA_TOKEN', 'secret')
        monkeypatch.setenv('LLM_PROVIDER', 'ollama')

        config = Config(write_config(VALID_CONFIG.replace('model: "llama3"', 'model: ""')))

        assert config.get_errors() == ['Missing Ollama model name']

    def test_out_of_range_temperature(self, write_config, monkeypatch):
        monkeypatch.setenv('JIRA_TOKEN', 'secret')
        monkeypatch.setenv('GROQ_API_KEY', 'gsk-123')

        config = Config(write_config(VALID_CONFIG.replace('temperature: 0.3', 'temperature: 1.7')))

        assert config.get_errors() == ['Groq temperature must be between 0 and 1']
