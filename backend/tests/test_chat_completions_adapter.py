import asyncio
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from converter.adapters.chat_completions_adapter import ChatCompletionsAdapter
from converter.errors import TransportError
from converter.llm_client import ChatMessage, ToolCall, ToolDefinition

TOOLS = [
    ToolDefinition(
        name="add_note",
        description="Add a note.",
        input_schema={"type": "object", "properties": {"message": {"type": "string"}}},
    )
]


def _completion(*, content=None, tool_calls=None, finish_reason="stop"):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        error=None,
        choices=[SimpleNamespace(message=message, finish_reason=finish_reason)],
    )


class _FakeStreamResponse:
    def __init__(self, parts: list[str]) -> None:
        self._parts = parts

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def iter_text(self):
        for part in self._parts:
            yield part


class _FakeAsyncOpenAI:
    instances: list["_FakeAsyncOpenAI"] = []

    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.request: dict | None = None
        self.closed = False
        streaming = SimpleNamespace(create=self._create)
        self.chat = SimpleNamespace(
            completions=SimpleNamespace(with_streaming_response=streaming)
        )
        _FakeAsyncOpenAI.instances.append(self)

    def _create(self, **request):
        self.request = request
        return _FakeStreamResponse(['data: {"a":', "1}\n\n", "data: [DONE]\n\n"])

    async def close(self) -> None:
        self.closed = True


class ChatCompletionsAdapterTests(unittest.TestCase):
    def setUp(self) -> None:
        self.adapter = ChatCompletionsAdapter(
            model="test-model",
            api_key="k",
            base_url="https://example.test/v1",
            provider_label="OpenRouter",
            default_headers={"X-Title": "script2extension"},
        )
        self.messages = [
            ChatMessage(role="system", content="sys"),
            ChatMessage(
                role="assistant",
                content=None,
                tool_calls=[ToolCall(id="c1", name="add_note", arguments='{"message":"x"}')],
            ),
            ChatMessage(role="tool", content="OK", tool_call_id="c1"),
        ]

    def test_generate_builds_request_and_parses_tool_calls(self) -> None:
        raw_call = SimpleNamespace(
            id="call_9",
            function=SimpleNamespace(name="add_note", arguments='{"message": "hi"}'),
        )
        fake_client = MagicMock()
        fake_client.chat.completions.create.return_value = _completion(
            tool_calls=[raw_call], finish_reason="tool_calls"
        )

        with patch("openai.OpenAI", return_value=fake_client) as openai_cls:
            response = asyncio.run(
                self.adapter.generate(
                    messages=self.messages,
                    tools=TOOLS,
                    tool_choice="auto",
                    max_output_tokens=500,
                )
            )

        openai_cls.assert_called_once_with(
            api_key="k",
            max_retries=0,
            base_url="https://example.test/v1",
            default_headers={"X-Title": "script2extension"},
        )
        request = fake_client.chat.completions.create.call_args.kwargs
        self.assertEqual(request["model"], "test-model")
        self.assertEqual(request["max_tokens"], 500)
        self.assertEqual(request["tool_choice"], "auto")
        self.assertEqual(request["tools"][0]["type"], "function")
        self.assertEqual(request["tools"][0]["function"]["name"], "add_note")
        self.assertEqual(
            request["messages"][1]["tool_calls"][0]["function"]["arguments"],
            '{"message":"x"}',
        )
        self.assertEqual(request["messages"][2]["tool_call_id"], "c1")

        self.assertEqual(response.finish_reason, "tool_calls")
        self.assertEqual(
            response.tool_calls,
            [ToolCall(id="call_9", name="add_note", arguments='{"message": "hi"}')],
        )
        self.assertIsNone(response.text)

    def test_failed_turn_is_not_retried_by_the_sdk(self) -> None:
        fake_client = MagicMock()
        fake_client.chat.completions.create.return_value = _completion(content="hi")

        with patch("openai.OpenAI", return_value=fake_client) as openai_cls:
            asyncio.run(self.adapter.generate(messages=self.messages, tools=TOOLS))

        self.assertEqual(openai_cls.call_args.kwargs["max_retries"], 0)
        fake_client.chat.completions.create.assert_called_once()

    def test_generate_text_only(self) -> None:
        fake_client = MagicMock()
        fake_client.chat.completions.create.return_value = _completion(content="hello")
        with patch("openai.OpenAI", return_value=fake_client):
            response = asyncio.run(self.adapter.generate(messages=[], tools=TOOLS))
        self.assertEqual(response.text, "hello")
        self.assertEqual(response.tool_calls, [])

    def test_error_body_raises_transport_error(self) -> None:
        fake_client = MagicMock()
        fake_client.chat.completions.create.return_value = SimpleNamespace(
            error={"message": "quota exceeded"}, choices=[]
        )
        with patch("openai.OpenAI", return_value=fake_client):
            with self.assertRaises(TransportError) as ctx:
                asyncio.run(self.adapter.generate(messages=[], tools=TOOLS))
        self.assertIn("quota exceeded", str(ctx.exception))

    def test_empty_choices_raise_transport_error(self) -> None:
        fake_client = MagicMock()
        fake_client.chat.completions.create.return_value = SimpleNamespace(
            error=None, choices=[]
        )
        with patch("openai.OpenAI", return_value=fake_client):
            with self.assertRaises(TransportError):
                asyncio.run(self.adapter.generate(messages=[], tools=TOOLS))

    def test_generate_stream_yields_raw_body_and_closes_client(self) -> None:
        _FakeAsyncOpenAI.instances = []

        async def collect() -> list[str]:
            return [
                part
                async for part in self.adapter.generate_stream(
                    messages=self.messages, tools=TOOLS, max_output_tokens=64
                )
            ]

        with patch("openai.AsyncOpenAI", _FakeAsyncOpenAI):
            parts = asyncio.run(collect())

        self.assertEqual("".join(parts), 'data: {"a":1}\n\ndata: [DONE]\n\n')
        client = _FakeAsyncOpenAI.instances[0]
        self.assertTrue(client.closed)
        self.assertEqual(client.kwargs["max_retries"], 0)
        self.assertTrue(client.request["stream"])
        self.assertEqual(client.request["max_tokens"], 64)
        self.assertEqual(client.request["tool_choice"], "auto")


if __name__ == "__main__":
    unittest.main()
