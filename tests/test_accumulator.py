"""Tests for JSON/CSV accumulation into the log file."""

import json
import logging
import threading

import pytest

from action_tracker.accumulator import (
    FileAccumulator,
    locked_file,
    merge_access,
    merge_csv_rows,
    merge_json_entry,
    parse_csv_state,
    parse_json_state,
)

# ── JSON ─────────────────────────────────────────────────────────


class TestJsonAccumulation:
    def test_creates_file_and_directory(self, log_dir):
        path = log_dir / "nested" / "actions.json"
        acc = FileAccumulator(path, "json")
        assert acc.accumulate("Users#show", ["users"], [], ["Redis"]) is True
        assert json.loads(path.read_text()) == {
            "Users#show": {"read": ["users"], "write": [], "services": ["Redis"]}
        }

    def test_preserves_existing_actions(self, log_dir):
        path = log_dir / "actions.json"
        path.parent.mkdir(parents=True)
        existing = {"Existing#action": {"read": ["accounts"], "write": ["audits"], "services": ["HTTP"]}}
        path.write_text(json.dumps(existing))

        FileAccumulator(path, "json").accumulate("Users#show", ["users"], [], [])

        data = json.loads(path.read_text())
        assert data["Existing#action"] == existing["Existing#action"]
        assert data["Users#show"] == {"read": ["users"], "write": [], "services": []}

    def test_merges_same_action(self, log_dir):
        path = log_dir / "actions.json"
        acc = FileAccumulator(path, "json")
        acc.accumulate("Users#show", ["users"], [], ["Redis"])
        acc.accumulate("Users#show", ["accounts", "users"], ["sessions"], ["HTTP"])

        assert json.loads(path.read_text())["Users#show"] == {
            "read": ["accounts", "users"],
            "write": ["sessions"],
            "services": ["HTTP", "Redis"],
        }

    def test_shrinking_content_is_truncated(self, log_dir):
        path = log_dir / "actions.json"
        path.parent.mkdir(parents=True)
        path.write_text("not json " * 200)

        FileAccumulator(path, "json").accumulate("Users#show", ["users"], [], [])

        assert json.loads(path.read_text()) == {
            "Users#show": {"read": ["users"], "write": [], "services": []}
        }

    def test_missing_label_is_unknown(self, log_dir):
        path = log_dir / "actions.json"
        FileAccumulator(path, "json").accumulate(None, [], ["posts"], [])
        assert "Unknown" in json.loads(path.read_text())

    def test_parse_json_state_tolerates_garbage(self):
        assert parse_json_state("") == {}
        assert parse_json_state("   ") == {}
        assert parse_json_state("{broken") == {}
        assert parse_json_state("[1, 2]") == {}

    def test_merge_json_entry_sorts_and_dedups(self):
        state = merge_json_entry({}, "A#b", ["b", "a", "b"], [], ["Y", "X"])
        assert state == {"A#b": {"read": ["a", "b"], "write": [], "services": ["X", "Y"]}}

    def test_non_list_values_count_as_empty(self, log_dir):
        path = log_dir / "actions.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"Users#show": {"read": 5, "write": "posts", "services": [["x"], "Redis"]}}))

        acc = FileAccumulator(path, "json")
        assert acc.accumulate("Users#show", ["users"], [], []) is True
        assert acc.accumulate("Users#show", [], ["posts"], []) is True
        assert json.loads(path.read_text()) == {
            "Users#show": {"read": ["users"], "write": ["posts"], "services": ["Redis"]}
        }


# ── CSV ──────────────────────────────────────────────────────────


class TestCsvAccumulation:
    def test_read_then_write_becomes_rw(self, log_dir):
        path = log_dir / "actions.csv"
        acc = FileAccumulator(path, "csv")
        acc.accumulate("A", ["users"], [], ["Redis"])
        acc.accumulate("A", [], ["users"], [])

        header, rows = parse_csv_state(path.read_text())
        assert header == ["Action", "Redis", "users"]
        assert rows["A"] == {"Redis": "Y", "users": "RW"}

    def test_file_layout(self, log_dir):
        path = log_dir / "actions.csv"
        acc = FileAccumulator(path, "csv")
        acc.accumulate("Users#show", ["users"], [], ["Redis"])
        acc.accumulate("Posts#create", ["users"], ["posts"], [])

        assert path.read_text() == (
            "Action,Redis,posts,users\n"
            "Users#show,Y,-,R\n"
            "Posts#create,-,W,R\n"
        )

    def test_new_columns_default_to_dash_for_old_rows(self, log_dir):
        path = log_dir / "actions.csv"
        acc = FileAccumulator(path, "csv")
        acc.accumulate("A#one", ["users"], [], [])
        acc.accumulate("B#two", [], [], ["HTTP"])

        _, rows = parse_csv_state(path.read_text())
        assert rows["A#one"] == {"HTTP": "-", "users": "R"}
        assert rows["B#two"] == {"HTTP": "Y", "users": "-"}

    def test_services_are_never_downgraded(self, log_dir):
        path = log_dir / "actions.csv"
        acc = FileAccumulator(path, "csv")
        acc.accumulate("A", [], [], ["Redis"])
        acc.accumulate("A", ["users"], [], [])

        _, rows = parse_csv_state(path.read_text())
        assert rows["A"]["Redis"] == "Y"
        assert rows["A"]["users"] == "R"

    def test_unparsable_content_is_rebuilt(self, log_dir):
        path = log_dir / "actions.csv"
        path.parent.mkdir(parents=True)
        path.write_text("garbage,without,action,header\n1,2,3\n")

        FileAccumulator(path, "csv").accumulate("A", ["users"], [], [])

        assert path.read_text() == "Action,users\nA,R\n"

    def test_parse_csv_state_empty(self):
        assert parse_csv_state("") == (["Action"], {})

    @pytest.mark.parametrize(
        "current, new, expected",
        [
            ("-", "R", "R"),
            ("-", "W", "W"),
            ("R", "W", "RW"),
            ("W", "R", "RW"),
            ("R", "R", "R"),
            ("RW", "R", "RW"),
            ("-", "-", "-"),
            ("", "W", "W"),
        ],
    )
    def test_merge_access(self, current, new, expected):
        assert merge_access(current, new) == expected

    def test_merge_csv_rows_header_is_sorted_union(self):
        header, rows = merge_csv_rows(["Action", "zeta"], {"Old": {"zeta": "R"}}, "New", ["alpha"], [], ["Mail"])
        assert header == ["Action", "Mail", "alpha", "zeta"]
        assert rows["New"] == {"Mail": "Y", "alpha": "R", "zeta": "-"}
        assert rows["Old"] == {"zeta": "R"}


# ── Locking and failure handling ─────────────────────────────────


class TestLockingAndFailures:
    def test_locked_file_does_not_truncate_on_open(self, log_dir):
        path = log_dir / "actions.json"
        path.parent.mkdir(parents=True)
        path.write_text('{"A": {}}')
        with locked_file(path) as handle:
            assert handle.read() == '{"A": {}}'

    def test_concurrent_accumulation_serialises(self, log_dir):
        path = log_dir / "actions.json"
        acc = FileAccumulator(path, "json")
        errors = []

        def worker(n):
            try:
                for i in range(10):
                    acc.accumulate(f"Worker{n}#action{i}", [f"table_{n}"], [], [])
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        data = json.loads(path.read_text())
        assert len(data) == 50
        assert data["Worker3#action7"]["read"] == ["table_3"]

    def test_failure_is_logged_and_swallowed(self, tmp_path, caplog):
        target = tmp_path / "is_a_directory"
        target.mkdir()
        logger = logging.getLogger("tests.accumulator")
        acc = FileAccumulator(target, "json", logger=logger)

        with caplog.at_level(logging.ERROR, logger="tests.accumulator"):
            assert acc.accumulate("Users#show", ["users"], [], []) is False

        assert "Failed to accumulate json data" in caplog.text
