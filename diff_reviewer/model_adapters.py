"""
Model adapter for interfacing with different AI providers.
Provides a unified interface for generating responses from different AI models.
"""

import os
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from diff_reviewer.custom_exceptions import AIProviderAPIError, MissingAPIKeyError, UnsupportedProviderError
from diff_reviewer.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_ENDPOINTS = {
    "openai": "https://api.openai.com/v1/chat/completions",
    "anthropic": "https://api.anthropic.com/v1/messages",
    "google": "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
    "mistral": "https://api.mistral.ai/v1/chat/completions",
    "ollama": "http://localhost:11434/api/generate",
}

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-latest",
    "google": "gemini-1.5-flash",
    "mistral": "mistral-large-latest",
    "ollama": "llama3",
}

# Providers that run locally without credentials
KEYLESS_PROVIDERS = ("ollama",)


class ModelAdapter:
    """A model-agnostic adapter to interface with different AI providers."""

    def __init__(self, config: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None):
        """
        Initialize the model adapter with configuration.

        Args:
            config: Model configuration (provider, api_key, endpoint, model, max_tokens,
                    temperature, timeout)
            environ: Environment used to look up ``<PROVIDER>_API_KEY``

        Raises:
            UnsupportedProviderError: If the provider is not known
            MissingAPIKeyError: If the provider needs a key and none is configured
        """
        environ = os.environ if environ is None else environ
        self.provider = str(config.get("provider", "openai")).lower()
        if self.provider not in DEFAULT_ENDPOINTS:
            raise UnsupportedProviderError(self.provider)

        logger.info(f"Initializing model adapter for provider: {self.provider}")

        api_key = config.get("api_key") or environ.get(f"{self.provider.upper()}_API_KEY")
        if api_key:
            # Keys pasted into secrets often carry trailing newlines
            api_key = str(api_key).strip().replace('\n', '').replace('\r', '')
        self.api_key = api_key or None

        if not self.api_key and self.provider not in KEYLESS_PROVIDERS:
            logger.error(f"API key for {self.provider} is missing")
            raise MissingAPIKeyError(self.provider)

        self.model = config.get("model") or DEFAULT_MODELS[self.provider]
        self.endpoint = (config.get("endpoint") or DEFAULT_ENDPOINTS[self.provider]).format(model=self.model)
        self.max_tokens = int(config.get("max_tokens", 1500))
        self.temperature = float(config.get("temperature", 0.2))
        self.timeout = float(config.get("timeout", 120))

        self._session = requests.Session()

    def generate_response(self, prompt: str) -> str:
        """
        Generate a response from the configured AI model.

        Args:
            prompt: The prompt to send to the AI model

        Returns:
            The generated response text

        Raises:
            AIProviderAPIError: If the API call fails or the response has no text
        """
        provider_functions: Dict[str, Callable[[str], str]] = {
            "openai": self._call_openai,
            "anthropic": self._call_anthropic,
            "google": self._call_google,
            "mistral": self._call_mistral,
            "ollama": self._call_ollama,
        }
        return provider_functions[self.provider](prompt)

    def _post(self, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json", **headers}
        try:
            response = self._session.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise AIProviderAPIError(self.provider, response_text=str(e)) from e

        if response.status_code != 200:
            logger.error(f"{self.provider} API error",
                         context={"status_code": response.status_code, "response": response.text[:500]})
            raise AIProviderAPIError(self.provider, status_code=response.status_code,
                                     response_text=response.text[:500])
        try:
            return response.json()
        except ValueError as e:
            raise AIProviderAPIError(self.provider, status_code=response.status_code,
                                     response_text="response is not JSON") from e

    def _extract(self, response_json: Any, getter: Callable[[Any], Any]) -> str:
        try:
            text = getter(response_json)
        except (KeyError, IndexError, TypeError) as e:
            raise AIProviderAPIError(self.provider, response_text=f"unexpected response format: {e}") from e
        if not isinstance(text, str):
            raise AIProviderAPIError(self.provider, response_text="response contains no text")
        return text

    def _call_openai(self, prompt: str) -> str:
        """Call OpenAI chat completions API."""
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        response_json = self._post(payload, {"Authorization": f"Bearer {self.api_key}"})
        return self._extract(response_json, lambda r: r["choices"][0]["message"]["content"])

    def _call_anthropic(self, prompt: str) -> str:
        """Call Anthropic messages API."""
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
        }
        headers = {"x-api-key": self.api_key, "anthropic-version": "2023-06-01"}
        response_json = self._post(payload, headers)

        def text_blocks(r: Dict[str, Any]) -> Optional[str]:
            parts = [item["text"] for item in r["content"]
                     if isinstance(item, dict) and item.get("type") == "text"]
            return "\n".join(parts) if parts else None

        return self._extract(response_json, text_blocks)

    def _call_google(self, prompt: str) -> str:
        """Call Google Gemini API."""
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": self.max_tokens,
                "temperature": self.temperature,
            },
        }
        response_json = self._post(payload, {"x-goog-api-key": self.api_key})
        return self._extract(response_json, lambda r: r["candidates"][0]["content"]["parts"][0]["text"])

    def _call_mistral(self, prompt: str) -> str:
        """Call Mistral AI API."""
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        response_json = self._post(payload, {"Authorization": f"Bearer {self.api_key}"})
        return self._extract(response_json, lambda r: r["choices"][0]["message"]["content"])

    def _call_ollama(self, prompt: str) -> str:
        """Call local Ollama API."""
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"num_predict": self.max_tokens, "temperature": self.temperature},
        }
        return self._extract(self._post(payload, {}), lambda r: r["response"])
