"""
CLI Tests
---------
Argument parsing and exit codes of main.py.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

import main as cli


@pytest.fixture
def run(catalog_file, tmp_path, monkeypatch):
    """Invoke the CLI against the fixture catalog with no Discord secrets."""
    for var in ("DISCORD_WEBHOOK_URL", "DISCORD_BOT_TOKEN", "DISCORD_CHANNEL_ID", "CONTROLLER_API_TOKENS"):
        monkeypatch.delenv(var, raising=False)

    def _run(*argv):
        return cli.main([
            "--catalog", str(catalog_file),
            "--config", str(tmp_path / "none.yaml"),
            *argv,
        ])
    return _run


class TestParseAssignments:

    def test_json_scalars(self):
        assert cli.parse_assignments(["n=3", "f=2.5", "b=true", "s=web"]) == {
            "n": 3, "f": 2.5, "b": True, "s": "web",
        }

    def test_non_scalar_kept_as_string(self):
        assert cli.parse_assignments(["x=[1,2]", "y=null"]) == {"x": "[1,2]", "y": "null"}

    def test_value_may_contain_equals(self):
        assert cli.parse_assignments(["q=a=b"]) == {"q": "a=b"}

    def test_missing_equals(self):
        with pytest.raises(ValueError):
            cli.parse_assignments(["oops"])


class TestMain:

    def test_list(self, run):
        assert run("list") == 0
        assert run("list", "--search", "ping") == 0

    def test_groups(self, run):
        assert run("groups") == 0

    def test_show(self, run):
        assert run("show", "net_ping") == 0
        assert run("show", "nope") == 1

    def test_validate(self, run):
        assert run("validate", "net_ping", "host=example.com") == 0
        assert run("validate", "net_ping", "mode=turbo") == 1

    def test_bad_assignment(self, run):
        assert run("validate", "net_ping", "host") == 2

    def test_run_without_webhook_fails(self, run):
        assert run("run", "sys_status") == 1

    def test_missing_catalog(self, tmp_path):
        assert cli.main(["--catalog", str(tmp_path / "missing.yaml"), "--config", str(tmp_path / "c.yaml"), "list"]) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
