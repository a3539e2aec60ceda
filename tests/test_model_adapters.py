import json
import unittest

import responses

from diff_reviewer.custom_exceptions import AIProviderAPIError, MissingAPIKeyError, UnsupportedProviderError
from diff_reviewer.model_adapters import ModelAdapter


class TestModelAdapter(unittest.TestCase):
    """Test the ModelAdapter class."""

    def setUp(self):
        """Set up test fixtures."""
        self.openai_config = {
            "provider": "openai",
            "api_key": "test-key-openai",
            "endpoint": "https://api.openai.com/v1/chat/completions",
            "model": "gpt-4",
            "max_tokens": 1000
        }

        self.anthropic_config = {
            "provider": "anthropic",
            "api_key": "test-key-anthropic",
            "model": "claude-3-opus-20240229",
            "max_tokens": 1000
        }

    def test_init_provider_lowercase(self):
        """Test that provider is converted to lowercase."""
        config = self.openai_config.copy()
        config["provider"] = "OPENAI"
        adapter = ModelAdapter(config, environ={})
        self.assertEqual(adapter.provider, "openai")

    def test_init_api_key_from_env(self):
        """Test that API key is taken from environment if not in config."""
        config = self.openai_config.copy()
        del config["api_key"]
        adapter = ModelAdapter(config, environ={"OPENAI_API_KEY": "env-key-openai\n"})
        self.assertEqual(adapter.api_key, "env-key-openai")

    def test_init_missing_api_key(self):
        """Test that MissingAPIKeyError is raised if API key is missing."""
        config = self.openai_config.copy()
        del config["api_key"]
        with self.assertRaises(MissingAPIKeyError):
            ModelAdapter(config, environ={})

    def test_init_unsupported_provider(self):
        with self.assertRaises(UnsupportedProviderError):
            ModelAdapter({"provider": "unknown", "api_key": "k"}, environ={})

    def test_ollama_needs_no_key(self):
        adapter = ModelAdapter({"provider": "ollama"}, environ={})
        self.assertIsNone(adapter.api_key)
        self.assertEqual(adapter.endpoint, "http://localhost:11434/api/generate")

    def test_default_model_and_endpoint(self):
        adapter = ModelAdapter({"provider": "google", "api_key": "k"}, environ={})
        self.assertEqual(adapter.model, "gemini-1.5-flash")
        self.assertIn("gemini-1.5-flash:generateContent", adapter.endpoint)

    @responses.activate
    def test_call_openai_chat(self):
        """Test OpenAI chat API call."""
        responses.add(
            responses.POST,
            "https://api.openai.com/v1/chat/completions",
            json={"choices": [{"message": {"content": "Review response"}}]},
            status=200
        )

        adapter = ModelAdapter(self.openai_config, environ={})
        response = adapter.generate_response("Test prompt")

        self.assertEqual(response, "Review response")
        self.assertEqual(len(responses.calls), 1)

        # Check request payload
        request_body = json.loads(responses.calls[0].request.body)
        self.assertEqual(request_body["messages"][0]["content"], "Test prompt")
        self.assertEqual(request_body["model"], "gpt-4")
        self.assertEqual(responses.calls[0].request.headers["Authorization"], "Bearer test-key-openai")

    @responses.activate
    def test_call_anthropic(self):
        """Test Anthropic API call."""
        responses.add(
            responses.POST,
            "https://api.anthropic.com/v1/messages",
            json={"content": [{"type": "text", "text": "Anthropic review"}]},
            status=200
        )

        adapter = ModelAdapter(self.anthropic_config, environ={})
        response = adapter.generate_response("Test prompt")

        self.assertEqual(response, "Anthropic review")
        self.assertEqual(responses.calls[0].request.headers["x-api-key"], "test-key-anthropic")

    @responses.activate
    def test_call_ollama(self):
        responses.add(responses.POST, "http://localhost:11434/api/generate",
                      json={"response": '{"reviews": []}'}, status=200)

        adapter = ModelAdapter({"provider": "ollama", "model": "codellama"}, environ={})

        self.assertEqual(adapter.generate_response("p"), '{"reviews": []}')
        self.assertEqual(json.loads(responses.calls[0].request.body)["stream"], False)

    @responses.activate
    def test_api_error(self):
        """Test that an error status raises AIProviderAPIError."""
        responses.add(
            responses.POST,
            "https://api.openai.com/v1/chat/completions",
            json={"error": "Invalid request"},
            status=400
        )

        adapter = ModelAdapter(self.openai_config, environ={})
        with self.assertRaises(AIProviderAPIError) as ctx:
            adapter.generate_response("Test prompt")
        self.assertEqual(ctx.exception.status_code, 400)

    @responses.activate
    def test_unexpected_response_shape(self):
        responses.add(responses.POST, "https://api.openai.com/v1/chat/completions",
                      json={"choices": []}, status=200)

        adapter = ModelAdapter(self.openai_config, environ={})
        with self.assertRaises(AIProviderAPIError):
            adapter.generate_response("Test prompt")

    @responses.activate
    def test_connection_error(self):
        """Test that transport failures raise AIProviderAPIError."""
        adapter = ModelAdapter(self.openai_config, environ={})
        with self.assertRaises(AIProviderAPIError):
            adapter.generate_response("Test prompt")


if __name__ == "__main__":
    unittest.main()
