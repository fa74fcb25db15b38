import tempfile
import unittest
from pathlib import Path

from skillpull.detect import NoSkillsFound, detect_skills, find_skill, parse_frontmatter


def _skill(dir_path: Path, text: str = "# skill\n") -> None:
    dir_path.mkdir(parents=True, exist_ok=True)
    (dir_path / "SKILL.md").write_text(text, encoding="utf-8")


class TestFrontmatter(unittest.TestCase):
    def test_reads_name_and_description(self) -> None:
        text = "---\nname: writer\ndescription: Writes things\nother: x\n---\n# Body\n"
        self.assertEqual(parse_frontmatter(text), ("writer", "Writes things"))

    def test_description_is_truncated(self) -> None:
        text = "---\ndescription: " + "d" * 250 + "\n---\n"
        name, description = parse_frontmatter(text)
        self.assertEqual(name, "")
        self.assertEqual(len(description), 100)

    def test_missing_or_unclosed_frontmatter_is_not_an_error(self) -> None:
        self.assertEqual(parse_frontmatter("# Just a heading\nname: nope\n"), ("", ""))
        self.assertEqual(parse_frontmatter("---\nname: open\nno closing line"), ("", ""))
        self.assertEqual(parse_frontmatter(""), ("", ""))


class TestDetectSkills(unittest.TestCase):
    def test_root_skill_wins_over_skills_dir(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / "pack-main"
            _skill(root, "---\nname: whole\ndescription: Entire repo\n---\n")
            _skill(root / "skills" / "a")
            _skill(root / "skills" / "b")

            detected = detect_skills(root)

            self.assertEqual(len(detected), 1)
            self.assertEqual(detected[0].name, "whole")
            self.assertEqual(detected[0].description, "Entire repo")
            self.assertEqual(detected[0].relative_path, "")
            self.assertEqual(detected[0].path, root)

    def test_root_skill_name_falls_back_to_directory(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / "pack-main"
            _skill(root)
            self.assertEqual(detect_skills(root)[0].name, "pack-main")

    def test_unsafe_front_matter_name_falls_back_to_directory(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / "pack-main"
            for child, name in [("a", "."), ("b", ".."), ("c", "../../src"), ("d", "x\\y"), ("e", "ok-name")]:
                _skill(root / "skills" / child, f"---\nname: {name}\n---\n")

            detected = detect_skills(root)

            self.assertEqual([s.name for s in detected], ["a", "b", "c", "d", "ok-name"])

    def test_skills_dir_collection(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / "pack-main"
            _skill(root / "skills" / "writer", "---\nname: Writer\n---\n")
            _skill(root / "skills" / "reviewer")
            (root / "skills" / "empty").mkdir()
            _skill(root / "toplevel")

            detected = detect_skills(root)

            self.assertEqual([s.name for s in detected], ["reviewer", "Writer"])
            self.assertEqual([s.relative_path for s in detected], ["skills/reviewer", "skills/writer"])

    def test_root_level_collection_skips_hidden_and_caches(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / "pack-main"
            _skill(root / "alpha")
            _skill(root / ".hidden")
            _skill(root / "_private")
            _skill(root / "node_modules")
            (root / "skills").mkdir(parents=True)

            detected = detect_skills(root)

            self.assertEqual([s.relative_path for s in detected], ["alpha"])

    def test_nothing_found(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / "pack-main"
            (root / "docs").mkdir(parents=True)
            (root / "README.md").write_text("hi", encoding="utf-8")
            with self.assertRaises(NoSkillsFound):
                detect_skills(root)

    def test_find_skill_falls_back_to_path(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td) / "pack-main"
            _skill(root / "skills" / "writer", "---\nname: renamed-writer\n---\n")
            detected = detect_skills(root)

            self.assertIsNone(find_skill(detected, name="writer", path="skills/other"))
            match = find_skill(detected, name="writer", path="skills/writer")
            self.assertIsNotNone(match)
            self.assertEqual(match.name, "renamed-writer")


if __name__ == "__main__":
    unittest.main()
