"""
Tests for the symjump command line (symjump.cli.main).

Every command builds its client through ``_make_client``; the fixture
below swaps in a client backed by an in-memory store and a fake ripgrep
so no test touches ~/.symjump or needs the rg binary.
"""

import json

import pytest
from click.testing import CliRunner

from symjump import SymJump
from symjump.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def fake_client(monkeypatch, config, store, fake_rg, clock):
    monkeypatch.setenv("SYMJUMP_LOG_LEVEL", "WARNING")
    monkeypatch.setattr(
        main, "_make_client",
        lambda: SymJump(config=config, store=store, runner=fake_rg, clock=clock),
    )


class TestSymbols:

    def test_console(self, runner, source_tree):
        result = runner.invoke(main.cli, ["symbols", "-r", str(source_tree)])
        assert result.exit_code == 0, result.output
        assert "13 symbols" in result.output
        assert "UserSchema" in result.output

    def test_compact_query(self, runner, source_tree):
        result = runner.invoke(main.cli, ["symbols", "Card", "-r", str(source_tree), "-f", "compact"])
        assert result.exit_code == 0, result.output
        assert f"{source_tree / 'src' / 'Button.tsx'}:7:17  Card  [component]" in result.output

    def test_json(self, runner, source_tree):
        result = runner.invoke(main.cli, ["symbols", "-r", str(source_tree), "-k", "go_type", "-f", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [(d["symbol"], d["line"], d["language"]) for d in data] == [("Server", 3, "go")]

    def test_ide_with_limit(self, runner, source_tree):
        result = runner.invoke(main.cli, ["symbols", "-r", str(source_tree), "-f", "ide", "-n", "2"])
        assert result.exit_code == 0, result.output
        assert len(result.output.strip().splitlines()) == 2

    def test_no_results(self, runner, source_tree):
        result = runner.invoke(main.cli, ["symbols", "zzzz", "-r", str(source_tree)])
        assert result.exit_code == 0
        assert "No symbols found." in result.output

    def test_missing_root(self, runner, tmp_path):
        result = runner.invoke(main.cli, ["symbols", "-r", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "No workspace folder" in result.output

    def test_interactive_pick_records_access(self, runner, source_tree, store, config):
        result = runner.invoke(
            main.cli, ["symbols", "Card", "-r", str(source_tree), "-i"], input=":1\n",
        )
        assert result.exit_code == 0, result.output
        assert f"{source_tree / 'src' / 'Button.tsx'}:7:17" in result.output
        entries = store.get(config.recency_store_key)
        assert entries[f"{source_tree / 'src' / 'Button.tsx'}#Card"]["access_count"] == 1

    def test_interactive_quit(self, runner, source_tree):
        result = runner.invoke(main.cli, ["symbols", "-r", str(source_tree), "-i"], input="Server\n:q\n")
        assert result.exit_code == 0, result.output
        assert "NewServer" in result.output
        assert "Stopped." in result.output


class TestResume:

    def test_nothing_to_resume(self, runner):
        result = runner.invoke(main.cli, ["resume"])
        assert result.exit_code == 1
        assert "No previous search to resume." in result.output

    def test_resume_reruns_last_search(self, runner, source_tree):
        first = runner.invoke(main.cli, ["symbols", "UserId", "-r", str(source_tree), "-f", "compact"])
        assert first.exit_code == 0, first.output
        again = runner.invoke(main.cli, ["resume"])
        assert again.exit_code == 0, again.output
        assert again.output == first.output


class TestOpenAndRecent:

    def test_open_uses_first_identifier(self, runner, source_tree):
        path = source_tree / "src" / "user.ts"
        result = runner.invoke(main.cli, ["open", str(path), "-l", "3"])
        assert result.exit_code == 0, result.output
        assert f"{path}:3:14" in result.output
        assert "UserSchema opened 1 time" in result.output

    def test_open_then_recent(self, runner, source_tree, clock):
        path = source_tree / "pkg" / "server.go"
        runner.invoke(main.cli, ["open", str(path), "Start", "-l", "11"])
        clock.advance(1)
        runner.invoke(main.cli, ["open", str(path), "NewServer", "-l", "7"])

        result = runner.invoke(main.cli, ["recent", "-f", "json"])
        assert result.exit_code == 0, result.output
        keys = [row["key"] for row in json.loads(result.output)]
        assert keys == [f"{path}#NewServer", f"{path}#Start"]

    def test_recent_empty(self, runner):
        result = runner.invoke(main.cli, ["recent"])
        assert "No recent symbols." in result.output

    def test_clear_recency(self, runner, source_tree):
        runner.invoke(main.cli, ["open", str(source_tree / "src" / "user.ts"), "UserId", "-l", "9"])
        result = runner.invoke(main.cli, ["clear-recency"])
        assert result.exit_code == 0
        assert "Recency history cleared." in result.output
        assert "No recent symbols." in runner.invoke(main.cli, ["recent"]).output


class TestGrepAndKinds:

    def test_grep(self, runner, source_tree):
        result = runner.invoke(main.cli, ["grep", "fetchUser", "-r", str(source_tree)])
        assert result.exit_code == 0, result.output
        assert f"{source_tree / 'src' / 'user.ts'}:15:14:" in result.output

    def test_grep_json(self, runner, source_tree):
        result = runner.invoke(main.cli, ["grep", "NewServer", "-r", str(source_tree), "-f", "json"])
        data = json.loads(result.output)
        assert [(d["line"], d["column"]) for d in data] == [(6, 5)]

    def test_grep_no_matches(self, runner, source_tree):
        result = runner.invoke(main.cli, ["grep", "nothingLikeThis", "-r", str(source_tree)])
        assert "No matches found." in result.output

    def test_kinds(self, runner):
        result = runner.invoke(main.cli, ["kinds"])
        assert result.exit_code == 0
        assert "Selectors: all" in result.output
        assert "go_func" in result.output

    def test_kinds_json(self, runner):
        result = runner.invoke(main.cli, ["kinds", "--json"])
        assert json.loads(result.output)["precedence"]["schema"] == 100

    def test_grep_filter(self, runner, source_tree):
        result = runner.invoke(main.cli, ["grep", "user", "-r", str(source_tree), "-q", "service.py", "-f", "ide"])
        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert lines and all("service.py" in line for line in lines)


class TestSibling:

    def test_source_to_test(self, runner, source_tree):
        test_file = source_tree / "pkg" / "server_test.go"
        test_file.write_text("package pkg\n", encoding="utf-8")
        result = runner.invoke(main.cli, ["sibling", str(source_tree / "pkg" / "server.go")])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == str(test_file)

    def test_no_sibling(self, runner, source_tree):
        result = runner.invoke(main.cli, ["sibling", str(source_tree / "app" / "service.py")])
        assert result.exit_code == 1
        assert "No sibling file found." in result.output
