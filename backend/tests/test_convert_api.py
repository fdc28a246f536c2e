import io
import json
import os
import unittest
import zipfile
from unittest.mock import patch

from fastapi.testclient import TestClient

import main
from converter.errors import TransportError
from converter.llm_client import LlmResponse, ToolCall

SCRIPT = """// ==UserScript==
// @name     Api Demo
// @match    https://a.com/*
// @grant    GM_setValue
// ==/UserScript==
GM_setValue('seen', true);
"""


class FakeLlmClient:
    """Test double that supports both ``generate()`` and ``generate_stream()``."""

    def __init__(self, responses: list[LlmResponse]) -> None:
        self._responses = list(responses)
        self.calls = 0

    async def generate(self, **kwargs) -> LlmResponse:
        self.calls += 1
        if not self._responses:
            raise AssertionError("No fake responses left for LLM generate()")
        return self._responses.pop(0)

    async def generate_stream(self, **kwargs):
        """Re-encode the next response as an OpenAI-style event stream."""
        response = await self.generate(**kwargs)
        for index, call in enumerate(response.tool_calls):
            fragment = {
                "index": index,
                "id": call.id,
                "function": {"name": call.name, "arguments": call.arguments},
            }
            record = {"choices": [{"delta": {"tool_calls": [fragment]}}]}
            yield f"data: {json.dumps(record)}\n\n"
        yield "data: [DONE]\n\n"


class BrokenLlmClient:
    async def generate(self, **kwargs):
        raise TransportError("OpenRouter 503: unavailable", status_code=503)


def _successful_turn() -> LlmResponse:
    def call(call_id: str, name: str, **args) -> ToolCall:
        return ToolCall(id=call_id, name=name, arguments=json.dumps(args))

    return LlmResponse(
        text=None,
        tool_calls=[
            call("c1", "set_analysis", text="## Core features\nStores a flag."),
            call(
                "c2",
                "write_file",
                path="manifest.json",
                content=json.dumps({"manifest_version": 3, "name": "Api Demo"}),
                kind="manifest",
                required=True,
            ),
            call(
                "c3",
                "write_file",
                path="content.js",
                content="chrome.storage.local.set({seen: true});",
                kind="content",
                required=True,
            ),
            call("c4", "run_check", summary="ok", issues=[], **{"pass": True}),
        ],
        finish_reason="tool_calls",
    )


def _parse_frames(body: str) -> list[tuple[str, dict]]:
    frames = []
    for block in body.strip().split("\n\n"):
        event = None
        data = None
        for line in block.split("\n"):
            if line.startswith("event: "):
                event = line[len("event: ") :]
            elif line.startswith("data: "):
                data = json.loads(line[len("data: ") :])
        frames.append((event, data))
    return frames


class ConvertApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(main.app)

    def test_healthz(self) -> None:
        self.assertEqual(self.client.get("/healthz").json(), {"status": "ok"})

    def test_shim_mode_needs_no_model(self) -> None:
        with patch("api.convert.build_llm_client") as factory:
            response = self.client.post("/api/convert", json={"script": SCRIPT, "mode": "shim"})
        factory.assert_not_called()
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["mode"], "shim")
        self.assertEqual(
            [f["path"] for f in payload["files"]], ["manifest.json", "content.js"]
        )

    def test_empty_script_is_rejected(self) -> None:
        response = self.client.post("/api/convert", json={"script": "   ", "mode": "shim"})
        self.assertEqual(response.status_code, 400)

    def test_agent_mode_success(self) -> None:
        fake = FakeLlmClient([_successful_turn()])
        with patch("api.convert.build_llm_client", return_value=fake):
            response = self.client.post("/api/convert", json={"script": SCRIPT})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["mode"], "agent")
        self.assertEqual(payload["exitReason"], "check_passed")
        self.assertEqual(payload["analysis"], "## Core features\nStores a flag.")
        self.assertEqual(payload["checks"][-1]["pass"], True)

    def test_agent_mode_missing_output_is_422(self) -> None:
        fake = FakeLlmClient([LlmResponse(text="no", tool_calls=[])])
        with patch("api.convert.build_llm_client", return_value=fake):
            response = self.client.post(
                "/api/convert", json={"script": SCRIPT, "max_turns": 1}
            )
        self.assertEqual(response.status_code, 422)
        self.assertIn("required files", response.json()["detail"])

    def test_transport_failure_is_502(self) -> None:
        with patch("api.convert.build_llm_client", return_value=BrokenLlmClient()):
            response = self.client.post("/api/convert", json={"script": SCRIPT})
        self.assertEqual(response.status_code, 502)

    def test_provider_errors_are_400(self) -> None:
        with patch(
            "api.convert.build_llm_client",
            side_effect=ValueError("Unsupported LLM provider: nope"),
        ):
            response = self.client.post(
                "/api/convert", json={"script": SCRIPT, "provider": "nope"}
            )
        self.assertEqual(response.status_code, 400)

    def test_provider_override_does_not_inherit_configured_model(self) -> None:
        env = {"LLM_PROVIDER": "openrouter", "OPENROUTER_MODEL": "vendor/router-model"}
        fake = FakeLlmClient([_successful_turn(), _successful_turn()])
        with patch.dict(os.environ, env, clear=False):
            with patch("api.convert.build_llm_client", return_value=fake) as factory:
                self.client.post(
                    "/api/convert", json={"script": SCRIPT, "provider": "OpenAI"}
                )
                self.client.post("/api/convert", json={"script": SCRIPT})

        overridden, configured = factory.call_args_list
        self.assertEqual(overridden.kwargs["provider"], "openai")
        self.assertIsNone(overridden.kwargs["model"])
        self.assertEqual(configured.kwargs["provider"], "openrouter")
        self.assertEqual(configured.kwargs["model"], "vendor/router-model")

    def test_invalid_max_turns_is_rejected(self) -> None:
        response = self.client.post("/api/convert", json={"script": SCRIPT, "max_turns": 0})
        self.assertEqual(response.status_code, 422)

    def test_stream_emits_previews_progress_result_and_done(self) -> None:
        fake = FakeLlmClient([_successful_turn()])
        with patch("api.convert.build_llm_client", return_value=fake):
            response = self.client.post(
                "/api/convert/stream",
                json={"script": SCRIPT, "stream_preview": True},
            )

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/event-stream"))
        frames = _parse_frames(response.text)
        events = [event for event, _ in frames]

        self.assertIn("stream", events)
        self.assertLess(events.index("stream"), events.index("progress"))
        self.assertEqual(events[-2:], ["result", "done"])
        result = frames[-2][1]["result"]
        self.assertEqual(result["exitReason"], "check_passed")
        seqs = [data["seq"] for _, data in frames]
        self.assertEqual(seqs, sorted(seqs))

    def test_stream_reports_errors_as_frames(self) -> None:
        with patch("api.convert.build_llm_client", return_value=BrokenLlmClient()):
            response = self.client.post(
                "/api/convert/stream",
                json={"script": SCRIPT, "stream_preview": False},
            )
        frames = _parse_frames(response.text)
        self.assertEqual(frames[-1][0], "error")
        self.assertEqual(frames[-1][1]["status"], 502)

    def test_package_returns_zip(self) -> None:
        shim = self.client.post("/api/convert", json={"script": SCRIPT, "mode": "shim"}).json()
        response = self.client.post(
            "/api/package",
            json={"name": "Api Demo", "files": shim["files"]},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["content-type"], "application/zip")
        self.assertIn('filename="Api_Demo.zip"', response.headers["content-disposition"])
        archive = zipfile.ZipFile(io.BytesIO(response.content))
        self.assertIn("manifest.json", archive.namelist())
        self.assertIn("icons/icon48.png", archive.namelist())

    def test_package_without_manifest_is_400(self) -> None:
        response = self.client.post(
            "/api/package",
            json={"name": "x", "files": [{"path": "content.js", "content": "", "kind": "content"}]},
        )
        self.assertEqual(response.status_code, 400)

    def test_import_rejects_other_hosts(self) -> None:
        response = self.client.post("/api/import", json={"url": "https://example.com/s.user.js"})
        self.assertEqual(response.status_code, 400)

    def test_import_returns_script(self) -> None:
        async def fake_fetch(url: str) -> str:
            return SCRIPT

        with patch("api.convert.fetch_from_greasy_fork", side_effect=fake_fetch):
            response = self.client.post(
                "/api/import", json={"url": "https://greasyfork.org/scripts/1-demo"}
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["script"], SCRIPT)


if __name__ == "__main__":
    unittest.main()
