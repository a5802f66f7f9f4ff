"""Model provider layer for qcmd.

This module contains the backends that turn a natural language query
into raw model text.  Every backend implements the same single
capability, ``submit(request) -> str``, and knows nothing about how
its output is parsed or executed.  Backends are picked by name from
:data:`PROVIDERS` via :func:`get_provider`.

Supported providers:

* ``ChatCompletionsProvider`` – speaks the OpenAI-compatible
  ``/chat/completions`` HTTP API using ``httpx``.  Registered as
  ``openrouter`` (hosted, needs an API key) and ``lmstudio`` (local
  server, no key).
* ``OllamaProvider`` – wraps the ``ollama`` command line tool to run
  local models through ``subprocess``.

Each call makes exactly one request.  Retrying is the pipeline's job.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import Callable, Dict, Optional

import httpx

from .config import ProviderConfig
from .models import ProviderRequest, QcmdError, SystemContext

logger = logging.getLogger(__name__)


class ProviderError(QcmdError):
    """Raised when a provider fails to return usable text."""

    summary = "AI provider request failed"


class AuthError(ProviderError):
    """Missing or rejected credential.  Never retried."""

    summary = "AI provider rejected the credentials"


class NetworkError(ProviderError):
    """The backend could not be reached, timed out or the wait was interrupted.

    ``transient`` is False when retrying makes no sense, e.g. after the
    user pressed Ctrl-C.
    """

    summary = "Could not reach AI provider"

    def __init__(self, message: str, transient: bool = True) -> None:
        super().__init__(message)
        self.transient = transient


class RateLimited(ProviderError):
    summary = "AI provider rate limit exceeded"

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class MalformedUpstreamResponse(ProviderError):
    summary = "AI provider returned an unusable response"


def build_system_prompt(context: Optional[SystemContext]) -> str:
    """Return the instructions sent ahead of the user's query."""
    lines = ["You are a command-line assistant that turns requests into shell commands."]
    if context is not None:
        lines.append("")
        lines.append("System information:")
        lines.append(f"- OS: {context.os}")
        lines.append(f"- Shell: {context.shell}")
        if context.current_dir:
            lines.append(f"- Current directory: {context.current_dir}")
    shell = context.shell if context is not None else "the user's"
    lines.extend(
        [
            "",
            f"Generate a single command appropriate for {shell} shell.",
            "Reply with the command inside one fenced code block, followed by one short",
            "sentence explaining what it does.",
            "If the command deletes, overwrites or changes permissions of files, add a",
            "final line starting with 'Warning:' describing the risk.",
            "If the user must supply a value (an ID, a name, a path), write it as",
            "{{VARIABLE_NAME}}, e.g. {{FILE_PATH}}. Do not use <placeholders> or [name].",
            "Do not include any other text.",
        ]
    )
    return "\n".join(lines)


class BaseProvider:
    """Interface shared by all providers."""

    name = "base"

    def submit(self, request: ProviderRequest) -> str:
        """Return the raw model text for ``request``.

        :raises ProviderError: (or a subclass) when no text could be
          obtained.
        """
        raise NotImplementedError

    @staticmethod
    def _check_request(request: ProviderRequest) -> str:
        query = request.query.strip()
        if not query:
            raise ProviderError("Empty query provided")
        return query


class ChatCompletionsProvider(BaseProvider):
    """Provider for OpenAI-compatible chat completion endpoints.

    The request carries a system message built from the
    :class:`SystemContext` and a user message with the query.  HTTP
    failures are mapped onto the :class:`ProviderError` kinds: 401/403
    become :class:`AuthError`, 429 :class:`RateLimited`, transport
    errors and timeouts :class:`NetworkError`, anything else that is
    not a well-formed completion :class:`MalformedUpstreamResponse`.
    """

    def __init__(
        self,
        settings: ProviderConfig,
        credential: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if not settings.base_url:
            raise ProviderError(f"No base_url configured for provider '{settings.name}'")
        self.name = settings.name
        self.settings = settings
        self.credential = credential
        self._client = client

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.credential:
            headers["Authorization"] = f"Bearer {self.credential}"
        return headers

    def _post(self, url: str, payload: dict) -> httpx.Response:
        if self._client is not None:
            return self._client.post(url, json=payload, headers=self._headers())
        with httpx.Client(timeout=self.settings.timeout) as client:
            return client.post(url, json=payload, headers=self._headers())

    def submit(self, request: ProviderRequest) -> str:
        query = self._check_request(request)
        url = f"{self.settings.base_url.rstrip('/')}/chat/completions"
        payload = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(request.context)},
                {"role": "user", "content": query},
            ],
        }
        logger.debug("POST %s model=%s", url, self.settings.model)
        try:
            response = self._post(url, payload)
        except httpx.TimeoutException as exc:
            raise NetworkError("timeout") from exc
        except httpx.TransportError as exc:
            raise NetworkError(str(exc) or exc.__class__.__name__) from exc
        except KeyboardInterrupt:
            raise NetworkError("interrupted by user", transient=False) from None

        status = response.status_code
        logger.debug("%s responded with HTTP %s", self.name, status)
        if status in (401, 403):
            raise AuthError(f"HTTP {status}: {response.text.strip()[:200]}")
        if status == 429:
            raise RateLimited(f"HTTP 429: {response.text.strip()[:200]}", _retry_after(response))
        if status >= 400:
            raise MalformedUpstreamResponse(f"HTTP {status}: {response.text.strip()[:200]}")

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedUpstreamResponse("response body is not JSON") from exc
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            raise MalformedUpstreamResponse("response has no completion choices") from None
        if not isinstance(content, str) or not content.strip():
            raise MalformedUpstreamResponse("model returned no output")
        return content


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class OllamaProvider(BaseProvider):
    """Provider that interfaces with the Ollama CLI.

    Ollama (https://ollama.ai/) runs large language models locally.
    The system prompt and the query are passed as one positional
    argument to ``ollama run``.  A missing binary counts as an
    unreachable backend.
    """

    name = "ollama"

    def __init__(self, settings: ProviderConfig, credential: Optional[str] = None) -> None:
        self.settings = settings

    def _check_ollama(self) -> None:
        if shutil.which("ollama") is None:
            raise NetworkError(
                "Ollama CLI not found. Please install Ollama or configure another provider.",
                transient=False,
            )

    def submit(self, request: ProviderRequest) -> str:
        query = self._check_request(request)
        self._check_ollama()
        full_prompt = f"{build_system_prompt(request.context)}\n\n{query}"
        logger.debug("Running ollama model %s", self.settings.model)
        try:
            proc = subprocess.run(
                ["ollama", "run", self.settings.model, full_prompt],
                capture_output=True,
                text=True,
                check=True,
                timeout=self.settings.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise NetworkError("timeout") from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise MalformedUpstreamResponse(f"ollama failed: {detail}") from exc
        except OSError as exc:
            raise NetworkError(f"could not start ollama: {exc}", transient=False) from exc
        except KeyboardInterrupt:
            raise NetworkError("interrupted by user", transient=False) from None
        if not proc.stdout.strip():
            raise MalformedUpstreamResponse("model returned no output")
        return proc.stdout


ProviderFactory = Callable[[ProviderConfig, Optional[str]], BaseProvider]

PROVIDERS: Dict[str, ProviderFactory] = {
    "openrouter": ChatCompletionsProvider,
    "lmstudio": ChatCompletionsProvider,
    "ollama": OllamaProvider,
}


def get_provider(settings: ProviderConfig, credential: Optional[str] = None) -> BaseProvider:
    """Factory function to instantiate the configured provider.

    :param settings: Provider section of the loaded configuration.
    :param credential: API key, if the backend needs one.
    :returns: A provider instance.
    :raises ProviderError: If the provider name is unknown.
    """
    name = settings.name.lower().strip()
    try:
        factory = PROVIDERS[name]
    except KeyError:
        raise ProviderError(f"Unknown provider: {settings.name}") from None
    return factory(settings, credential)
