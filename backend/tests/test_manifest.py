import unittest

from userscript.manifest import (
    DEFAULT_ICON_PATHS,
    ICONS_FIXED_NOTE,
    MANIFEST_VERSION_NOTE,
    build_manifest,
    normalize_manifest_for_packaging,
)
from userscript.parser import UserScriptMeta


class BuildManifestTests(unittest.TestCase):
    def test_minimal_manifest(self) -> None:
        meta = UserScriptMeta(name="Demo", version="1.2", matches=["https://a.com/*"])
        manifest = build_manifest(meta, has_background=False, require_files=[])

        self.assertEqual(manifest["manifest_version"], 3)
        self.assertEqual(manifest["name"], "Demo")
        self.assertEqual(
            manifest["content_scripts"],
            [{"matches": ["https://a.com/*"], "js": ["content.js"], "run_at": "document_idle"}],
        )
        self.assertEqual(manifest["icons"], DEFAULT_ICON_PATHS)
        for key in ("permissions", "host_permissions", "background", "web_accessible_resources"):
            self.assertNotIn(key, manifest)

    def test_grants_map_to_deduplicated_permissions(self) -> None:
        meta = UserScriptMeta(
            matches=["https://a.com/*"],
            exclude_matches=["https://a.com/admin/*"],
            grants=["GM_setValue", "GM.getValue", "GM_xmlhttpRequest", "GM_openInTab", "GM_log"],
        )
        manifest = build_manifest(
            meta, has_background=True, require_files=["require_0_lib.js"]
        )

        self.assertEqual(manifest["permissions"], ["storage", "tabs"])
        self.assertEqual(manifest["host_permissions"], ["<all_urls>"])
        self.assertEqual(
            manifest["background"], {"service_worker": "background.js", "type": "module"}
        )
        script = manifest["content_scripts"][0]
        self.assertEqual(script["js"], ["require_0_lib.js", "content.js"])
        self.assertEqual(script["exclude_matches"], ["https://a.com/admin/*"])
        self.assertEqual(
            manifest["web_accessible_resources"],
            [{"resources": ["require_0_lib.js"], "matches": ["https://a.com/*"]}],
        )


class NormalizeManifestTests(unittest.TestCase):
    def test_non_object_becomes_valid_manifest(self) -> None:
        manifest, notes = normalize_manifest_for_packaging(["nope"])
        self.assertEqual(manifest["manifest_version"], 3)
        self.assertEqual(manifest["icons"], DEFAULT_ICON_PATHS)
        self.assertEqual(manifest["action"]["default_icon"], DEFAULT_ICON_PATHS)
        self.assertEqual(notes, [MANIFEST_VERSION_NOTE, ICONS_FIXED_NOTE])

    def test_remote_icons_are_replaced_local_ones_kept(self) -> None:
        manifest, notes = normalize_manifest_for_packaging(
            {
                "manifest_version": 3,
                "icons": {
                    "16": "img/16.png",
                    "48": "https://cdn.example/48.png",
                    "128": "data:image/png;base64,AAA",
                },
                "action": {"default_icon": "https://cdn.example/a.png"},
            }
        )
        self.assertEqual(
            manifest["icons"],
            {"16": "img/16.png", "48": "icons/icon48.png", "128": "icons/icon128.png"},
        )
        self.assertEqual(manifest["action"]["default_icon"], "icons/icon48.png")
        self.assertEqual(notes, [ICONS_FIXED_NOTE])

    def test_clean_manifest_needs_no_notes(self) -> None:
        manifest, notes = normalize_manifest_for_packaging(
            {
                "manifest_version": 3,
                "icons": dict(DEFAULT_ICON_PATHS),
                "action": {"default_icon": dict(DEFAULT_ICON_PATHS)},
            }
        )
        self.assertEqual(notes, [])
        self.assertEqual(manifest["action"]["default_icon"], DEFAULT_ICON_PATHS)

    def test_input_is_not_mutated(self) -> None:
        raw = {"manifest_version": 2, "action": {}}
        normalize_manifest_for_packaging(raw)
        self.assertEqual(raw, {"manifest_version": 2, "action": {}})


if __name__ == "__main__":
    unittest.main()
