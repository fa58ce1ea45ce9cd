"""Tests for the OpenAI client and its responses API fallback."""

import json
import logging

import httpx
import pytest
import respx
from httpx import Response

from app.errors import ErrorKind, ProviderRequestError
from app.services.openai_client import (
    OpenAIClient,
    extract_chat_text,
    extract_responses_text,
    should_fall_back,
    upstream_error_detail,
)

OPENAI_BASE = "https://api.openai.com/v1"
CHAT_URL = f"{OPENAI_BASE}/chat/completions"
RESPONSES_URL = f"{OPENAI_BASE}/responses"


def fallback_warnings(caplog) -> list[logging.LogRecord]:
    return [
        r for r in caplog.records
        if r.name == "app.services.openai_client" and r.levelno == logging.WARNING
    ]


class TestGenerateContent:
    """Tests for OpenAIClient.generate_content."""

    @respx.mock
    async def test_chat_completion_happy_path(self, chat_completion, no_backoff):
        """A successful chat completion is returned after a single call."""
        chat = respx.post(CHAT_URL).mock(return_value=Response(200, json=chat_completion("hello")))
        responses = respx.post(RESPONSES_URL)

        client = OpenAIClient(api_key="test-key")
        try:
            result = await client.generate_content("Say hello")

            assert result == "hello"
            assert chat.call_count == 1
            assert responses.call_count == 0

            sent = json.loads(chat.calls.last.request.content)
            assert sent["messages"][0] == {"role": "system", "content": "You are a helpful assistant."}
            assert sent["messages"][1] == {"role": "user", "content": "Say hello"}
            assert sent["max_tokens"] == 2000
            assert "response_format" not in sent
            assert chat.calls.last.request.headers["authorization"] == "Bearer test-key"
        finally:
            await client.close()

    @respx.mock
    async def test_segmented_chat_content_is_joined(self, chat_completion, no_backoff):
        respx.post(CHAT_URL).mock(
            return_value=Response(
                200,
                json=chat_completion([
                    {"type": "text", "text": "  first "},
                    {"type": "text", "text": "second  "},
                ]),
            )
        )

        client = OpenAIClient(api_key="test-key")
        try:
            assert await client.generate_content("prompt") == "first second"
        finally:
            await client.close()

    @respx.mock
    async def test_falls_back_to_responses_on_405(self, caplog, no_backoff):
        """A 405 from chat completions retries once against /responses."""
        chat = respx.post(CHAT_URL).mock(
            return_value=Response(405, json={"error": {"message": "Method not allowed"}})
        )
        responses = respx.post(RESPONSES_URL).mock(
            return_value=Response(200, json={"output_text": "  hi  "})
        )

        client = OpenAIClient(api_key="test-key")
        try:
            with caplog.at_level(logging.WARNING):
                result = await client.generate_content("secret prompt text")

            assert result == "hi"
            assert chat.call_count == 1
            assert responses.call_count == 1

            warnings = fallback_warnings(caplog)
            assert len(warnings) == 1
            assert "405" in warnings[0].getMessage()
            assert "test-key" not in caplog.text
            assert "secret prompt text" not in caplog.text
        finally:
            await client.close()

    @respx.mock
    async def test_falls_back_on_404(self, no_backoff):
        respx.post(CHAT_URL).mock(return_value=Response(404, json={"error": {"message": "Not found"}}))
        responses = respx.post(RESPONSES_URL).mock(
            return_value=Response(200, json={"output_text": "from responses"})
        )

        client = OpenAIClient(api_key="test-key")
        try:
            assert await client.generate_content("prompt") == "from responses"
            assert responses.call_count == 1
        finally:
            await client.close()

    @respx.mock
    async def test_falls_back_on_400_with_responses_hint(self, no_backoff):
        """A 400 that points at the Responses API triggers the fallback."""
        respx.post(CHAT_URL).mock(
            return_value=Response(400, json={"error": {"message": "Use the Responses API"}})
        )
        responses = respx.post(RESPONSES_URL).mock(
            return_value=Response(200, json={"output_text": "  Trimmed response text  "})
        )

        client = OpenAIClient(api_key="test-key")
        try:
            assert await client.generate_content("prompt") == "Trimmed response text"
            assert responses.call_count == 1
        finally:
            await client.close()

    @respx.mock
    async def test_plain_400_does_not_fall_back(self, no_backoff):
        respx.post(CHAT_URL).mock(
            return_value=Response(400, json={"error": {"message": "max_tokens is too large"}})
        )
        responses = respx.post(RESPONSES_URL)

        client = OpenAIClient(api_key="test-key")
        try:
            with pytest.raises(ProviderRequestError) as exc_info:
                await client.generate_content("prompt")
            assert exc_info.value.status == 400
            assert responses.call_count == 0
        finally:
            await client.close()

    @respx.mock
    async def test_unauthorized_is_terminal(self, no_backoff):
        """A 401 raises without touching the fallback endpoint."""
        chat = respx.post(CHAT_URL).mock(
            return_value=Response(401, json={"error": {"message": "Incorrect API key"}})
        )
        responses = respx.post(RESPONSES_URL)

        client = OpenAIClient(api_key="test-key")
        try:
            with pytest.raises(ProviderRequestError) as exc_info:
                await client.generate_content("prompt")

            assert exc_info.value.status == 401
            assert exc_info.value.kind == ErrorKind.UPSTREAM
            assert chat.call_count == 1
            assert responses.call_count == 0
        finally:
            await client.close()

    @respx.mock
    async def test_fallback_failure_is_reported(self, no_backoff):
        """When both endpoints fail the error describes the fallback call."""
        chat = respx.post(CHAT_URL).mock(
            return_value=Response(405, json={"error": {"message": "Method not allowed"}})
        )
        responses = respx.post(RESPONSES_URL).mock(
            return_value=Response(400, json={"error": {"message": "Bad request"}})
        )

        client = OpenAIClient(api_key="test-key")
        try:
            with pytest.raises(ProviderRequestError, match="(?i)responses call failed") as exc_info:
                await client.generate_content("prompt")

            assert exc_info.value.status == 400
            assert "Bad request" in exc_info.value.body
            assert chat.call_count == 1
            assert responses.call_count == 1
        finally:
            await client.close()

    @respx.mock
    async def test_responses_output_blocks_are_walked(self, no_backoff):
        respx.post(CHAT_URL).mock(return_value=Response(405))
        respx.post(RESPONSES_URL).mock(
            return_value=Response(
                200,
                json={
                    "output": [
                        {"type": "reasoning", "summary": []},
                        {
                            "type": "message",
                            "content": [
                                {"type": "output_text", "text": "Fallback content from responses"},
                            ],
                        },
                    ],
                },
            )
        )

        client = OpenAIClient(api_key="test-key")
        try:
            assert await client.generate_content("prompt") == "Fallback content from responses"
        finally:
            await client.close()

    @respx.mock
    async def test_empty_chat_content_raises(self, chat_completion, no_backoff):
        respx.post(CHAT_URL).mock(return_value=Response(200, json=chat_completion("   ")))

        client = OpenAIClient(api_key="test-key")
        try:
            with pytest.raises(ProviderRequestError) as exc_info:
                await client.generate_content("prompt")
            assert exc_info.value.kind == ErrorKind.EMPTY_CONTENT
        finally:
            await client.close()

    @respx.mock
    async def test_empty_responses_content_raises(self, no_backoff):
        respx.post(CHAT_URL).mock(return_value=Response(404))
        respx.post(RESPONSES_URL).mock(return_value=Response(200, json={"output": []}))

        client = OpenAIClient(api_key="test-key")
        try:
            with pytest.raises(ProviderRequestError) as exc_info:
                await client.generate_content("prompt")
            assert exc_info.value.kind == ErrorKind.EMPTY_CONTENT
        finally:
            await client.close()

    @respx.mock
    async def test_json_hint_uses_each_endpoint_field(self, no_backoff):
        """The structured-output hint is sent under each endpoint's own field."""
        chat = respx.post(CHAT_URL).mock(return_value=Response(405))
        responses = respx.post(RESPONSES_URL).mock(
            return_value=Response(200, json={"output_text": '{"a": 1}'})
        )

        client = OpenAIClient(api_key="test-key")
        try:
            await client.generate_content("prompt", response_format="json_object", max_tokens=123)
        finally:
            await client.close()

        chat_body = json.loads(chat.calls.last.request.content)
        assert chat_body["response_format"] == {"type": "json_object"}
        assert chat_body["max_tokens"] == 123

        responses_body = json.loads(responses.calls.last.request.content)
        assert responses_body["text"] == {"format": {"type": "json_object"}}
        assert responses_body["max_output_tokens"] == 123
        assert "max_tokens" not in responses_body
        assert responses_body["input"][1] == {
            "role": "user",
            "content": [{"type": "input_text", "text": "prompt"}],
        }

    @respx.mock
    async def test_voice_persona_sets_system_prompt(self, chat_completion, no_backoff):
        chat = respx.post(CHAT_URL).mock(return_value=Response(200, json=chat_completion("ok")))

        client = OpenAIClient(api_key="test-key")
        try:
            await client.generate_content("prompt", voice_id="technical")
        finally:
            await client.close()

        sent = json.loads(chat.calls.last.request.content)
        assert sent["messages"][0]["content"].startswith("You are a technical writer.")

    async def test_missing_api_key(self):
        client = OpenAIClient(api_key="")
        with pytest.raises(ProviderRequestError) as exc_info:
            await client.generate_content("prompt")
        assert exc_info.value.kind == ErrorKind.CONFIGURATION
        assert exc_info.value.http_status == 503

    async def test_blank_prompt(self):
        client = OpenAIClient(api_key="test-key")
        with pytest.raises(ProviderRequestError) as exc_info:
            await client.generate_content("   ")
        assert exc_info.value.kind == ErrorKind.VALIDATION


class TestStreamContent:
    """Tests for streamed generation."""

    @respx.mock
    async def test_yields_fragments_in_order(self, no_backoff):
        lines = [
            {"choices": [{"delta": {"role": "assistant"}}]},
            {"choices": [{"delta": {"content": "Hel"}}]},
            {"choices": [{"delta": {"content": "lo"}}]},
        ]
        body = "".join(f"data: {json.dumps(line)}\n\n" for line in lines) + "data: [DONE]\n\n"
        respx.post(CHAT_URL).mock(
            return_value=Response(200, text=body, headers={"content-type": "text/event-stream"})
        )

        client = OpenAIClient(api_key="test-key")
        try:
            fragments = [fragment async for fragment in client.stream_content("prompt")]
            assert fragments == ["Hel", "lo"]
        finally:
            await client.close()

    @respx.mock
    async def test_non_object_chunks_are_skipped(self, no_backoff):
        body = (
            "data: []\n\n"
            'data: "text"\n\n'
            'data: {"choices": ["x"]}\n\n'
            'data: {"choices": [{"delta": "oops"}]}\n\n'
            'data: {"choices": [{"delta": {"content": 7}}]}\n\n'
            'data: {"choices": [{"delta": {"content": "ok"}}]}\n\n'
            "data: [DONE]\n\n"
        )
        respx.post(CHAT_URL).mock(
            return_value=Response(200, text=body, headers={"content-type": "text/event-stream"})
        )

        client = OpenAIClient(api_key="test-key")
        try:
            fragments = [fragment async for fragment in client.stream_content("prompt")]
            assert fragments == ["ok"]
        finally:
            await client.close()

    async def test_stopping_early_closes_upstream(self, no_backoff):
        closed = []

        class EndlessStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                for i in range(1000):
                    chunk = {"choices": [{"delta": {"content": f"part{i} "}}]}
                    yield f"data: {json.dumps(chunk)}\n\n".encode()

            async def aclose(self):
                closed.append(True)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, stream=EndlessStream())

        client = OpenAIClient(api_key="test-key")
        client._client = httpx.AsyncClient(
            base_url=OPENAI_BASE,
            transport=httpx.MockTransport(handler),
        )
        try:
            stream = client.stream_content("prompt")
            received = []
            async for fragment in stream:
                received.append(fragment)
                if len(received) == 2:
                    break
            await stream.aclose()

            assert received == ["part0 ", "part1 "]
            assert closed
        finally:
            await client.close()

    @respx.mock
    async def test_stream_error_status_raises(self, no_backoff):
        respx.post(CHAT_URL).mock(return_value=Response(401, json={"error": "nope"}))

        client = OpenAIClient(api_key="test-key")
        try:
            with pytest.raises(ProviderRequestError) as exc_info:
                async for _ in client.stream_content("prompt"):
                    pass
            assert exc_info.value.status == 401
        finally:
            await client.close()


class TestExtraction:
    """Tests for payload text extraction helpers."""

    def test_should_fall_back(self):
        assert should_fall_back(404, None)
        assert should_fall_back(405, "")
        assert should_fall_back(400, '{"error": {"message": "This model is only supported in v1/responses"}}')
        assert should_fall_back(400, "please USE THE RESPONSES endpoint")
        assert not should_fall_back(400, "invalid temperature")
        assert not should_fall_back(401, "responses api")
        assert not should_fall_back(500, None)

    def test_extract_chat_text_shapes(self):
        assert extract_chat_text({"choices": [{"message": {"content": " a "}}]}) == "a"
        assert extract_chat_text({"choices": []}) == ""
        assert extract_chat_text({"choices": [{"message": {"content": None}}]}) == ""
        assert extract_chat_text(["not", "a", "dict"]) == ""

    def test_extract_responses_prefers_output_text(self):
        payload = {
            "output_text": "top level",
            "output": [{"content": [{"type": "output_text", "text": "nested"}]}],
        }
        assert extract_responses_text(payload) == "top level"

    def test_extract_responses_joins_blocks_with_newlines(self):
        payload = {
            "output": [
                {"content": [{"type": "output_text", "text": " one "}]},
                {"content": [
                    {"type": "output_text", "text": {"value": "two"}},
                    {"type": "output_text", "value": "three"},
                ]},
            ],
        }
        assert extract_responses_text(payload) == "one\ntwo\nthree"


class TestFetchModelEntries:
    """Tests for the raw model catalog call."""

    @respx.mock
    async def test_returns_data_entries(self, no_backoff):
        respx.get(f"{OPENAI_BASE}/models").mock(
            return_value=Response(200, json={"object": "list", "data": [{"id": "gpt-4o"}]})
        )

        client = OpenAIClient(api_key="test-key")
        try:
            assert await client.fetch_model_entries() == [{"id": "gpt-4o"}]
        finally:
            await client.close()

    @respx.mock
    async def test_error_carries_upstream_message_without_key(self, no_backoff):
        respx.get(f"{OPENAI_BASE}/models").mock(
            return_value=Response(
                401,
                json={"error": {"message": "Incorrect API key provided: sk-abc123. Check your key."}},
            )
        )

        client = OpenAIClient(api_key="sk-abc123")
        try:
            with pytest.raises(ProviderRequestError) as exc_info:
                await client.fetch_model_entries()
        finally:
            await client.close()

        message = exc_info.value.message
        assert message.startswith("OpenAI request failed: 401 (")
        assert "Incorrect API key provided" in message
        assert "sk-abc123" not in message
        assert "sk-abc123" not in str(exc_info.value)

    @respx.mock
    async def test_error_without_json_body_keeps_status_message(self, no_backoff):
        respx.get(f"{OPENAI_BASE}/models").mock(return_value=Response(403, text="forbidden"))

        client = OpenAIClient(api_key="test-key")
        try:
            with pytest.raises(ProviderRequestError) as exc_info:
                await client.fetch_model_entries()
        finally:
            await client.close()

        assert exc_info.value.message == "OpenAI request failed: 403"


class TestUpstreamErrorDetail:
    """Tests for upstream_error_detail."""

    def test_nested_and_plain_error_messages(self):
        assert upstream_error_detail('{"error": {"message": "quota exceeded"}}') == "quota exceeded"
        assert upstream_error_detail('{"error": "bad model"}') == "bad model"

    def test_unusable_bodies(self):
        assert upstream_error_detail(None) == ""
        assert upstream_error_detail("<html>oops</html>") == ""
        assert upstream_error_detail('{"error": {"code": 1}}') == ""
        assert upstream_error_detail("[1, 2]") == ""

    def test_keys_are_masked_and_message_truncated(self):
        body = json.dumps({"error": {"message": "key sk-proj-abc_DEF-123 rejected " + "x" * 300}})
        detail = upstream_error_detail(body, api_key="custom-key")
        assert detail.startswith("key sk-*** rejected")
        assert "abc_DEF" not in detail
        assert detail.endswith("...")
        assert len(detail) == 203

        assert upstream_error_detail('{"error": "custom-key invalid"}', "custom-key") == "sk-*** invalid"
