"""Tests for the ``action-tracker`` command-line tools."""

import json

from action_tracker.cli import load_summaries, main


def _write_json(path):
    path.write_text(
        json.dumps(
            {
                "Users#show": {"read": ["users"], "write": [], "services": ["Redis"]},
                "Posts#create": {"read": ["users"], "write": ["posts"], "services": []},
            }
        )
    )
    return path


class TestLoadSummaries:
    def test_json_file(self, tmp_path):
        summaries = load_summaries(_write_json(tmp_path / "actions.json"))
        assert summaries["Users#show"] == {"read": ["users"], "write": [], "services": ["Redis"]}

    def test_csv_file(self, tmp_path):
        path = tmp_path / "actions.csv"
        path.write_text("Action,Redis,posts,users\nUsers#show,Y,-,R\nPosts#create,-,W,RW\n")
        summaries = load_summaries(path)
        assert summaries["Users#show"] == {"read": ["users"], "write": [], "services": ["Redis"]}
        assert summaries["Posts#create"] == {
            "read": ["users"],
            "write": ["posts", "users"],
            "services": [],
        }

    def test_json_detected_by_content(self, tmp_path):
        path = _write_json(tmp_path / "actions.log")
        assert set(load_summaries(path)) == {"Users#show", "Posts#create"}

    def test_malformed_json_entries_read_as_empty(self, tmp_path):
        path = tmp_path / "actions.json"
        path.write_text(json.dumps({"Users#show": {"read": 5, "write": ["posts"]}}))
        assert load_summaries(path) == {
            "Users#show": {"read": [], "write": ["posts"], "services": []}
        }


class TestReportCommand:
    def test_table_report(self, tmp_path, capsys):
        path = _write_json(tmp_path / "actions.json")
        assert main(["report", str(path)]) == 0
        out = capsys.readouterr().out
        assert "Users#show - Models and Services accessed during request:" in out
        assert "Posts#create - Models and Services accessed during request:" in out
        assert "\033[" not in out

    def test_color_flag(self, tmp_path, capsys):
        path = _write_json(tmp_path / "actions.json")
        main(["report", str(path), "--color"])
        assert "\033[" in capsys.readouterr().out

    def test_csv_to_json(self, tmp_path, capsys):
        path = tmp_path / "actions.csv"
        path.write_text("Action,Redis,users\nUsers#show,Y,R\n")
        assert main(["report", str(path), "--format", "json"]) == 0
        label, body = capsys.readouterr().out.split(": ", 1)
        assert label == "Users#show"
        assert json.loads(body) == {"read": ["users"], "write": [], "services": ["Redis"]}

    def test_action_filter(self, tmp_path, capsys):
        path = _write_json(tmp_path / "actions.json")
        assert main(["report", str(path), "--action", "Posts#create", "--format", "csv"]) == 0
        assert capsys.readouterr().out == "Action,posts,users\nPosts#create,W,R\n\n"

    def test_unknown_action(self, tmp_path, capsys):
        path = _write_json(tmp_path / "actions.json")
        assert main(["report", str(path), "--action", "Nope#none"]) == 1
        assert "No entry for action: Nope#none" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert main(["report", str(tmp_path / "missing.json")]) == 1
        assert "File not found" in capsys.readouterr().err


class TestInitAndCheck:
    def test_init_writes_valid_starter_config(self, tmp_path, capsys, monkeypatch):
        monkeypatch.setenv("ACTION_TRACKER_LOG_DIR", str(tmp_path / "logs"))
        path = tmp_path / "config" / "tracker.json"
        assert main(["init", str(path)]) == 0
        assert "Created" in capsys.readouterr().out

        options = json.loads(path.read_text())
        assert options["services"][0] == {"name": "Pusher", "pattern": "pusher"}
        assert main(["check", str(path)]) == 0
        assert "is valid" in capsys.readouterr().out

    def test_init_refuses_to_overwrite(self, tmp_path, capsys):
        path = tmp_path / "tracker.json"
        path.write_text("{}")
        assert main(["init", str(path)]) == 1
        assert "--force" in capsys.readouterr().err
        assert path.read_text() == "{}"

        assert main(["init", str(path), "--force"]) == 0
        assert "print_format" in json.loads(path.read_text())

    def test_check_reports_errors(self, tmp_path, capsys):
        path = tmp_path / "tracker.json"
        path.write_text(json.dumps({"print_format": "xml", "write_to_file": True}))
        assert main(["check", str(path)]) == 1
        err = capsys.readouterr().err
        assert "print_format" in err
        assert "log_file_path is not set" in err

    def test_check_missing_file(self, tmp_path, capsys):
        assert main(["check", str(tmp_path / "missing.json")]) == 1
        assert "not found" in capsys.readouterr().err
