import json
import tempfile
import unittest
from pathlib import Path

from skillpull.manifest import Agent, ManifestError, load_agents


class TestLoadAgents(unittest.TestCase):
    def test_missing_manifest_declares_no_agents(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            self.assertEqual(load_agents(Path(td)), [])

    def test_reads_agents_in_order_and_skips_bad_entries(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            project = Path(td)
            (project / ".skillpull.json").write_text(
                json.dumps(
                    {
                        "agents": [
                            {"id": "claude", "skillsDir": ".claude/skills"},
                            {"id": "broken"},
                            "nonsense",
                            {"id": " claude ", "skillsDir": "elsewhere"},
                            {"id": "opencode", "skillsDir": ".opencode/skills"},
                        ]
                    }
                ),
                encoding="utf-8",
            )

            agents = load_agents(project)

        self.assertEqual(
            agents,
            [Agent(id="claude", skills_dir=".claude/skills"), Agent(id="opencode", skills_dir=".opencode/skills")],
        )

    def test_invalid_json_raises(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            project = Path(td)
            (project / ".skillpull.json").write_text("{", encoding="utf-8")
            with self.assertRaises(ManifestError):
                load_agents(project)


if __name__ == "__main__":
    unittest.main()
