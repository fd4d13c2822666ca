"""
Tests for the Ollama chat client wrapper and the JSON reply parser.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from backend.app.llm.llm_client import ChatClient, LLMUnavailableError, parse_json
from backend.app.settings import DEFAULT_MODEL, Settings


@pytest.fixture(autouse=True)
def _reset_singleton():
    ChatClient._instance = None
    yield
    ChatClient._instance = None


def _reply(content: str) -> MagicMock:
    response = MagicMock()
    response.message.content = content
    return response


class TestChatClient:
    """Test the centralised Ollama wrapper."""

    @patch("backend.app.llm.llm_client.ollama")
    def test_default_model_name(self, mock_ollama):
        client = ChatClient()
        assert client.model == DEFAULT_MODEL

    @patch("backend.app.llm.llm_client.ollama")
    def test_timeout_passed_to_underlying_client(self, mock_ollama):
        ChatClient(host="http://ollama:11434", timeout=12.5)
        mock_ollama.Client.assert_called_once_with(host="http://ollama:11434", timeout=12.5)

    @patch("backend.app.llm.llm_client.ollama")
    def test_is_available_true(self, mock_ollama):
        mock_ollama.Client.return_value.show.return_value = {}
        client = ChatClient()
        assert client.is_available() is True

    @patch("backend.app.llm.llm_client.ollama")
    def test_is_available_false_on_error(self, mock_ollama):
        mock_ollama.Client.return_value.show.side_effect = Exception("Not found")
        client = ChatClient()
        assert client.is_available() is False

    @patch("backend.app.llm.llm_client.ollama")
    def test_is_available_is_cached_until_refresh(self, mock_ollama):
        inner = mock_ollama.Client.return_value
        client = ChatClient()

        client.is_available()
        client.is_available()
        assert inner.show.call_count == 1

        client.is_available(refresh=True)
        assert inner.show.call_count == 2

    @patch("backend.app.llm.llm_client.time")
    @patch("backend.app.llm.llm_client.ollama")
    def test_recovers_after_outage_once_retry_window_passes(self, mock_ollama, mock_time):
        inner = mock_ollama.Client.return_value
        inner.show.side_effect = [ConnectionError("down"), {}, {}]
        mock_time.monotonic.side_effect = [0.0, 10.0, 61.0, 62.0]

        client = ChatClient(recheck_seconds=60)

        assert client.is_available() is False
        # Still inside the retry window: no new request.
        assert client.is_available() is False
        assert inner.show.call_count == 1

        assert client.is_available() is True
        assert client.is_available() is True
        assert inner.show.call_count == 2

    @patch("backend.app.llm.llm_client.ollama")
    def test_refresh_rechecks_a_failed_model_immediately(self, mock_ollama):
        inner = mock_ollama.Client.return_value
        inner.show.side_effect = [ConnectionError("down"), {}]

        client = ChatClient(recheck_seconds=3600)

        assert client.is_available() is False
        assert client.is_available(refresh=True) is True

    @patch("backend.app.llm.llm_client.ollama")
    def test_failed_startup_check_does_not_stick(self, mock_ollama):
        inner = mock_ollama.Client.return_value
        inner.list.side_effect = ConnectionError("Offline")

        client = ChatClient(recheck_seconds=0)
        with pytest.raises(RuntimeError):
            client.check_ready()

        assert client.is_available() is True
        inner.show.assert_called_once_with(client.model)

    @patch("backend.app.llm.llm_client.ollama")
    def test_get_instance_returns_shared_client(self, mock_ollama):
        first = ChatClient.get_instance(model="a")
        second = ChatClient.get_instance(model="b")

        assert first is second
        assert second.model == "a"

    @patch("backend.app.llm.llm_client.ollama")
    def test_from_settings_uses_configured_values(self, mock_ollama):
        settings = Settings(
            llm_model="mistral",
            llm_host="http://ollama:11434",
            llm_timeout_seconds=5,
            llm_recheck_seconds=12,
            llm_enabled=False,
        )

        client = ChatClient.from_settings(settings)

        assert client.model == "mistral"
        assert client.recheck_seconds == 12
        assert client.enabled is False
        assert ChatClient.from_settings(settings) is client
        mock_ollama.Client.assert_called_once_with(host="http://ollama:11434", timeout=5)

    @patch("backend.app.llm.llm_client.ollama")
    def test_disabled_client_never_contacts_server(self, mock_ollama):
        client = ChatClient(enabled=False)

        assert client.is_available() is False
        with pytest.raises(LLMUnavailableError):
            client.chat("Hi")
        mock_ollama.Client.return_value.chat.assert_not_called()

    @patch("backend.app.llm.llm_client.ollama")
    def test_chat_returns_stripped_text(self, mock_ollama):
        mock_ollama.Client.return_value.chat.return_value = _reply("  Hello, world!  \n")

        client = ChatClient()
        assert client.chat("Hi") == "Hello, world!"

    @patch("backend.app.llm.llm_client.ollama")
    def test_chat_with_system_prompt_and_options(self, mock_ollama):
        inner = mock_ollama.Client.return_value
        inner.chat.return_value = _reply("response")

        client = ChatClient()
        client.chat("query", system="You are a shopping assistant.", temperature=0.3, max_tokens=150)

        kwargs = inner.chat.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "You are a shopping assistant."}
        assert kwargs["messages"][1]["role"] == "user"
        assert kwargs["options"] == {"temperature": 0.3, "num_predict": 150}

    @patch("backend.app.llm.llm_client.ollama")
    def test_chat_uses_default_temperature(self, mock_ollama):
        inner = mock_ollama.Client.return_value
        inner.chat.return_value = _reply("ok")

        ChatClient(default_temperature=0.7).chat("Hi")

        assert inner.chat.call_args.kwargs["options"] == {"temperature": 0.7}

    @patch("backend.app.llm.llm_client.time.sleep")
    @patch("backend.app.llm.llm_client.ollama")
    def test_chat_retries_with_exponential_backoff(self, mock_ollama, mock_sleep):
        inner = mock_ollama.Client.return_value
        inner.chat.side_effect = [ConnectionError("down"), ConnectionError("down"), _reply("ok")]

        client = ChatClient(max_retries=3, backoff_base=1.0)

        assert client.chat("Hi") == "ok"
        assert inner.chat.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [2.0, 4.0]

    @patch("backend.app.llm.llm_client.time.sleep")
    @patch("backend.app.llm.llm_client.ollama")
    def test_chat_raises_after_final_attempt(self, mock_ollama, mock_sleep):
        mock_ollama.Client.return_value.chat.side_effect = ConnectionError("down")

        client = ChatClient(max_retries=2)
        with pytest.raises(LLMUnavailableError, match="after 2 attempts"):
            client.chat("Hi")

        assert mock_sleep.call_count == 1

    @patch("backend.app.llm.llm_client.ollama")
    def test_check_ready_raises_when_no_connection(self, mock_ollama):
        mock_ollama.Client.return_value.list.side_effect = ConnectionError("Offline")

        client = ChatClient()
        with pytest.raises(RuntimeError, match="Cannot connect"):
            client.check_ready()
        assert client.is_available() is False

    @patch("backend.app.llm.llm_client.ollama")
    def test_check_ready_raises_when_model_missing(self, mock_ollama):
        mock_models = MagicMock()
        mock_models.models = []
        mock_ollama.Client.return_value.list.return_value = mock_models

        client = ChatClient()
        with pytest.raises(RuntimeError, match="not available"):
            client.check_ready()

    @patch("backend.app.llm.llm_client.ollama")
    def test_check_ready_passes_when_model_present(self, mock_ollama):
        mock_model = MagicMock()
        mock_model.model = f"{DEFAULT_MODEL}:latest"
        mock_models = MagicMock()
        mock_models.models = [mock_model]
        mock_ollama.Client.return_value.list.return_value = mock_models

        client = ChatClient()
        client.check_ready()  # should not raise
        assert client.is_available() is True


class TestParseJson:
    def test_plain_object(self):
        assert parse_json('{"score": 0.5, "label": "positive"}') == {
            "score": 0.5,
            "label": "positive",
        }

    def test_strips_json_fence(self):
        content = 'Here you go:\n```json\n{"score": -0.4}\n```'
        assert parse_json(content) == {"score": -0.4}

    def test_strips_bare_fence(self):
        assert parse_json('```\n{"label": "neutral"}\n```') == {"label": "neutral"}

    def test_non_json_returns_empty(self):
        assert parse_json("I think the customer is happy.") == {}

    def test_empty_and_none_return_empty(self):
        assert parse_json("") == {}
        assert parse_json(None) == {}

    def test_non_object_json_returns_empty(self):
        assert parse_json("[1, 2, 3]") == {}
