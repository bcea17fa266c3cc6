from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol
import json
import logging

import requests

from .models import ConnectionStatus, Ticket
from .prompts import PlanPrompts
from .validators import is_valid_temperature

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_GROQ_MODEL = "llama3-70b-8192"
DEFAULT_OLLAMA_URL = "http://localhost:11434"
NO_CONTENT = "No content generated"


class ProviderName(str, Enum):
    GROQ = "groq"
    OLLAMA = "ollama"


class LLMProviderError(Exception):
    """Raised when an LLM provider call fails"""

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider


class PlanProvider(Protocol):
    """Capabilities every test plan backend offers"""

    def generate_test_plan(self, ticket: Ticket, template: str) -> str:
        ...

    def stream_test_plan(self, ticket: Ticket, template: str) -> Iterator[str]:
        ...

    def test_connection(self) -> ConnectionStatus:
        ...


class GroqProvider:
    """Groq cloud provider (OpenAI-compatible API)"""

    def __init__(self, api_key: str, model: str = DEFAULT_GROQ_MODEL, temperature: float = 0.7,
                 max_tokens: int = 4096, timeout: float = 30.0):
        if not api_key:
            raise LLMProviderError(ProviderName.GROQ.value, "Groq API key not configured")
        if not is_valid_temperature(temperature):
            raise ValueError(f"Temperature must be between 0 and 1, got {temperature}")

        self.model = model or DEFAULT_GROQ_MODEL
        self.temperature = temperature
        self.max_tokens = max_tokens
        try:
            from openai import OpenAI
            self.client = OpenAI(api_key=api_key, base_url=GROQ_BASE_URL, timeout=timeout)
        except ImportError:
            raise ImportError("openai package is required for Groq provider")

    def _messages(self, ticket: Ticket, template: str, streaming: bool) -> List[Dict[str, str]]:
        system_prompt, user_prompt = PlanPrompts.build(ticket, template, streaming=streaming)
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt}
        ]

    def generate_test_plan(self, ticket: Ticket, template: str) -> str:
        logger.info(f"Generating test plan for {ticket.key} with Groq model {self.model}")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(ticket, template, streaming=False),
                temperature=self.temperature,
                max_tokens=self.max_tokens
            )
        except Exception as e:
            logger.error(f"Groq API error: {e}")
            raise LLMProviderError(ProviderName.GROQ.value, f"Groq generation failed: {e}") from e

        if not response.choices:
            return NO_CONTENT
        return response.choices[0].message.content or NO_CONTENT

    def stream_test_plan(self, ticket: Ticket, template: str) -> Iterator[str]:
        """Yield content deltas as Groq produces them; close() cancels the request"""
        try:
            stream = self.client.chat.completions.create(
                model=self.model,
                messages=self._messages(ticket, template, streaming=True),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                stream=True
            )
        except Exception as e:
            raise LLMProviderError(ProviderName.GROQ.value, f"Groq stream failed: {e}") from e

        try:
            for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except Exception as e:
            logger.error(f"Groq stream interrupted: {e}")
            raise LLMProviderError(ProviderName.GROQ.value, f"Groq stream failed: {e}") from e
        finally:
            stream.close()

    def test_connection(self) -> ConnectionStatus:
        try:
            models = self.client.models.list()
        except Exception as e:
            return ConnectionStatus(success=False, message=f"Groq connection failed: {e}")

        available = ', '.join(model.id for model in models.data) if models.data else 'No models found'
        return ConnectionStatus(success=True, message=f"Connected. Available models: {available}")


class OllamaProvider:
    """Local Ollama server provider"""

    def __init__(self, base_url: Optional[str] = None, model: str = "", timeout: float = 120.0,
                 probe_timeout: float = 5.0):
        self.base_url = (base_url or DEFAULT_OLLAMA_URL).rstrip('/')
        self.model = model
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        self.session = requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    def _payload(self, ticket: Ticket, template: str, streaming: bool) -> Dict[str, Any]:
        system_prompt, user_prompt = PlanPrompts.build(ticket, template, streaming=streaming)
        return {
            'model': self.model,
            'prompt': f"{system_prompt}\n\n{user_prompt}",
            'stream': streaming
        }

    def _fetch_tags(self) -> List[str]:
        response = self.session.get(self._url('/api/tags'), timeout=self.probe_timeout)
        response.raise_for_status()
        return [model.get('name', '') for model in response.json().get('models') or []]

    def list_models(self) -> List[str]:
        """Installed model names; empty when the server is unreachable"""
        try:
            return self._fetch_tags()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Could not list Ollama models: {e}")
            return []

    def test_connection(self) -> ConnectionStatus:
        try:
            response = self.session.get(self._url('/api/tags'), timeout=self.probe_timeout)
        except requests.exceptions.RequestException as e:
            return ConnectionStatus(
                success=False,
                message=f"Ollama connection error: {e}. Is Ollama running?"
            )

        if not response.ok:
            return ConnectionStatus(success=False, message=f"Ollama connection failed: {response.status_code}")

        try:
            models = [model.get('name', '') for model in response.json().get('models') or []]
        except ValueError as e:
            return ConnectionStatus(success=False, message=f"Ollama connection failed: invalid response ({e})")
        available = ', '.join(models) if models else 'No models found'
        return ConnectionStatus(success=True, message=f"Connected. Available models: {available}")

    def generate_test_plan(self, ticket: Ticket, template: str) -> str:
        logger.info(f"Generating test plan for {ticket.key} with Ollama model {self.model}")
        try:
            response = self.session.post(
                self._url('/api/generate'),
                json=self._payload(ticket, template, streaming=False),
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise LLMProviderError(ProviderName.OLLAMA.value, f"Ollama generation failed: {e}") from e

        if not response.ok:
            raise LLMProviderError(ProviderName.OLLAMA.value, f"Ollama generation failed: {response.status_code}")

        return response.json().get('response') or NO_CONTENT

    def stream_test_plan(self, ticket: Ticket, template: str) -> Iterator[str]:
        """
        Yield response fragments from Ollama's newline-delimited JSON stream.

        Stops at the ``done`` line. Closing the generator closes the HTTP
        response, which cancels generation on the server side.
        """
        try:
            response = self.session.post(
                self._url('/api/generate'),
                json=self._payload(ticket, template, streaming=True),
                timeout=self.timeout,
                stream=True
            )
        except requests.exceptions.RequestException as e:
            raise LLMProviderError(ProviderName.OLLAMA.value, f"Ollama stream failed: {e}") from e

        with response:
            if not response.ok:
                raise LLMProviderError(ProviderName.OLLAMA.value, f"Ollama stream failed: {response.status_code}")

            try:
                for line in response.iter_lines(decode_unicode=True):
                    if not line or not line.strip():
                        continue
                    try:
                        data = json.loads(line)
                    except ValueError:
                        logger.debug(f"Skipping malformed stream line: {line[:80]}")
                        continue

                    if data.get('response'):
                        yield data['response']
                    if data.get('done'):
                        break
            except requests.exceptions.RequestException as e:
                logger.error(f"Ollama stream interrupted: {e}")
                raise LLMProviderError(ProviderName.OLLAMA.value, f"Ollama stream failed: {e}") from e


def _create_groq(config: Dict[str, Any]) -> GroqProvider:
    return GroqProvider(
        api_key=config.get('api_key', ''),
        model=config.get('model') or DEFAULT_GROQ_MODEL,
        temperature=float(config.get('temperature', 0.7)),
        max_tokens=int(config.get('max_tokens', 4096))
    )


def _create_ollama(config: Dict[str, Any]) -> OllamaProvider:
    return OllamaProvider(
        base_url=config.get('base_url') or DEFAULT_OLLAMA_URL,
        model=config.get('model', '')
    )


PROVIDER_FACTORIES: Dict[ProviderName, Callable[[Dict[str, Any]], PlanProvider]] = {
    ProviderName.GROQ: _create_groq,
    ProviderName.OLLAMA: _create_ollama,
}


def create_provider(name: str, llm_config: Dict[str, Any]) -> PlanProvider:
    """
    Create a provider by name from the ``llm`` configuration section.

    Args:
        name: Provider identifier ("groq" or "ollama")
        llm_config: Mapping with per-provider settings under "groq" and "ollama"

    Returns:
        Provider implementing generate/stream/test_connection
    """
    if isinstance(name, ProviderName):
        name = name.value
    try:
        provider_name = ProviderName(str(name).lower())
    except ValueError:
        raise ValueError(f"Unsupported LLM provider: {name}. Supported providers: {[p.value for p in ProviderName]}")

    factory = PROVIDER_FACTORIES[provider_name]
    return factory(llm_config.get(provider_name.value) or {})
