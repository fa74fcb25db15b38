import unittest

from skillpull.source import (
    InvalidSourceFormat,
    SourceRef,
    format_source,
    normalize_github_url,
    parse_source,
    source_from_lock,
)


class TestParseSource(unittest.TestCase):
    def test_shorthand_forms(self) -> None:
        self.assertEqual(parse_source("github:acme/pack"), SourceRef(owner="acme", repo="pack"))
        self.assertEqual(parse_source("github:acme/pack#dev"), SourceRef(owner="acme", repo="pack", ref="dev"))
        self.assertEqual(
            parse_source("github:acme/pack/skills/writer#v2"),
            SourceRef(owner="acme", repo="pack", skill_path="skills/writer", ref="v2"),
        )

    def test_ref_splits_on_last_hash(self) -> None:
        parsed = parse_source("github:acme/pack#feature#2")
        self.assertEqual(parsed.ref, "2")
        self.assertEqual(parsed.repo, "pack#feature")

    def test_segments_are_unescaped(self) -> None:
        parsed = parse_source("github:acme/my%20pack/a%2Bb")
        self.assertEqual(parsed.repo, "my pack")
        self.assertEqual(parsed.skill_path, "a+b")

    def test_rejects_missing_repo_and_unknown_scheme(self) -> None:
        for bad in ("github:acme", "github:/pack", "gitlab:acme/pack", "acme/pack", "https://example.com/a/b"):
            with self.subTest(bad=bad):
                with self.assertRaises(InvalidSourceFormat):
                    parse_source(bad)

    def test_web_urls_match_their_shorthand(self) -> None:
        cases = {
            "https://github.com/acme/pack": "github:acme/pack",
            "https://github.com/acme/pack/": "github:acme/pack",
            "http://github.com/acme/pack.git": "github:acme/pack",
            "https://github.com/acme/pack/tree/dev": "github:acme/pack#dev",
            "https://github.com/acme/pack/tree/dev/skills/writer": "github:acme/pack/skills/writer#dev",
        }
        for url, shorthand in cases.items():
            with self.subTest(url=url):
                self.assertEqual(normalize_github_url(url), shorthand)
                self.assertEqual(parse_source(url), parse_source(shorthand))

    def test_normalize_leaves_other_strings_alone(self) -> None:
        self.assertEqual(normalize_github_url("github:acme/pack"), "github:acme/pack")


class TestFormatSource(unittest.TestCase):
    def test_format_omits_main(self) -> None:
        self.assertEqual(format_source(SourceRef(owner="acme", repo="pack", ref="main")), "github:acme/pack")
        self.assertEqual(
            format_source(SourceRef(owner="acme", repo="pack", skill_path="x/y", ref="dev")),
            "github:acme/pack/x/y#dev",
        )

    def test_round_trip_is_stable(self) -> None:
        for uri in ("github:o/r", "github:o/r#dev", "github:o/r/p", "github:o/r/p/q#v1.2"):
            with self.subTest(uri=uri):
                self.assertEqual(parse_source(format_source(parse_source(uri))), parse_source(uri))

    def test_source_from_lock_keeps_stored_ref(self) -> None:
        ref = source_from_lock("github:acme/pack", "dev")
        self.assertEqual(ref, SourceRef(owner="acme", repo="pack", ref="dev"))
        self.assertEqual(ref.lock_source, "github:acme/pack")


if __name__ == "__main__":
    unittest.main()
