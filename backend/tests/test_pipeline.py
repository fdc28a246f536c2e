import json
import unittest

from converter.models import CheckIssue, CheckReport, ConversionResult, GeneratedFile
from userscript.pipeline import (
    assemble_agent_build,
    convert_with_shims,
    format_check_warnings,
)

SCRIPT = """// ==UserScript==
// @name     Fetcher
// @version  0.3
// @match    https://a.com/*
// @require  https://cdn.example/lib.js
// @grant    GM_xmlhttpRequest
// ==/UserScript==
GM_xmlhttpRequest({url: 'https://api.example/x', onload: r => console.log(r)});
"""


class ShimModeTests(unittest.TestCase):
    def test_produces_manifest_content_and_background(self) -> None:
        build = convert_with_shims(SCRIPT)

        self.assertEqual(build.mode, "shim")
        self.assertEqual(
            [f.path for f in build.files], ["manifest.json", "content.js", "background.js"]
        )
        manifest = json.loads(build.manifest_json)
        self.assertEqual(manifest["background"]["service_worker"], "background.js")
        self.assertEqual(manifest["host_permissions"], ["<all_urls>"])
        self.assertEqual(
            manifest["content_scripts"][0]["js"], ["require_0_lib.js", "content.js"]
        )
        self.assertEqual(build.require_file_names, ["require_0_lib.js"])
        self.assertIsNotNone(build.background_js)
        self.assertTrue(build.shim_log)

    def test_script_without_background_apis(self) -> None:
        build = convert_with_shims("// ==UserScript==\n// @match https://a.com/*\n// ==/UserScript==\n")
        self.assertEqual([f.path for f in build.files], ["manifest.json", "content.js"])
        self.assertIsNone(build.background_js)
        self.assertNotIn("background", json.loads(build.manifest_json))

    def test_to_dict_shape(self) -> None:
        payload = convert_with_shims(SCRIPT).to_dict()
        self.assertEqual(payload["mode"], "shim")
        self.assertIn("shimLog", payload)
        self.assertEqual(payload["meta"]["name"], "Fetcher")


class AgentModeTests(unittest.TestCase):
    def test_assembles_warnings_in_order(self) -> None:
        result = ConversionResult(
            analysis="## Core features",
            files=[
                GeneratedFile(path="content.js", content="run()", kind="content"),
                GeneratedFile(
                    path="manifest.json",
                    content='{"manifest_version": 3}',
                    kind="manifest",
                ),
            ],
            checks=[
                CheckReport(
                    passed=False,
                    summary="bad",
                    issues=[CheckIssue(id="a", severity="error", message="no icons", file="manifest.json")],
                ),
                CheckReport(
                    passed=True,
                    summary="ok",
                    issues=[CheckIssue(id="b", severity="warning", message="broad match")],
                ),
            ],
            notes=["Remember to review permissions."],
            exit_reason="check_passed",
            turns=3,
        )

        build = assemble_agent_build(SCRIPT, result)

        self.assertEqual(build.mode, "agent")
        self.assertEqual(build.analysis, "## Core features")
        self.assertEqual(build.content_js, "run()")
        self.assertEqual(
            build.warnings,
            [
                "Remember to review permissions.",
                build.warnings[1],
                "[Check #1] ERROR: no icons (manifest.json)",
                "[Check #2] WARNING: broad match",
            ],
        )
        self.assertIn("icons", build.warnings[1])
        self.assertEqual(build.require_file_names, ["require_0_lib.js"])
        self.assertEqual(build.to_dict()["exitReason"], "check_passed")

    def test_format_check_warnings_empty(self) -> None:
        self.assertEqual(format_check_warnings([]), [])


if __name__ == "__main__":
    unittest.main()
