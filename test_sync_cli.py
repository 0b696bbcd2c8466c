"""Tests for the command line entry point and its exit codes."""

import json

import pytest

import sync_csv_to_redmine
from test_reconcile import FakeRedmine

HEADER = "data,zagadnienie,godzin,activity\n"


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    # Leave pytest's log capture handlers in place
    monkeypatch.setattr(sync_csv_to_redmine, "setup_logging", lambda verbose=False: None)


@pytest.fixture
def remote(monkeypatch):
    fake = FakeRedmine()
    monkeypatch.setattr(sync_csv_to_redmine, "RedmineClient", lambda base_url, api_key: fake)
    return fake


@pytest.fixture
def csv_path(tmp_path):
    path = tmp_path / "export.csv"
    path.write_text(HEADER + '2024-03-01,101,"2,5",Development\n2024-03-01,102,3,Design\n', encoding="utf-8")
    return str(path)


def args(csv, config="missing.json", **overrides):
    values = {
        "--api-key": "secret",
        "--base-url": "https://redmine.example.com",
        "--csv": csv,
        "--project-id": "12",
        "--user-id": "34",
    }
    values.update(overrides)
    argv = ["--config", config]
    for flag, value in values.items():
        if value is not None:
            argv += [flag, value]
    return argv


class TestParams:
    @pytest.mark.parametrize("flag", ["--api-key", "--base-url", "--csv", "--project-id", "--user-id"])
    def test_missing_param_exits_1(self, flag, csv_path, tmp_path, remote, capsys):
        code = sync_csv_to_redmine.main(args(csv_path, config=str(tmp_path / "none.json"), **{flag: None}))
        assert code == 1
        assert remote.calls == []
        assert f"Missing {flag[2:].replace('-', '_')}" in capsys.readouterr().out

    def test_non_numeric_project_id_exits_1(self, csv_path, tmp_path, remote):
        code = sync_csv_to_redmine.main(args(csv_path, config=str(tmp_path / "none.json"), **{"--project-id": "demo"}))
        assert code == 1

    def test_params_from_config(self, csv_path, tmp_path, remote):
        config = tmp_path / "config.json"
        config.write_text(
            json.dumps(
                {
                    "redmine": {
                        "api_key": "secret",
                        "base_url": "https://redmine.example.com",
                        "project_id": 12,
                        "user_id": 34,
                    }
                }
            )
        )
        code = sync_csv_to_redmine.main(["--config", str(config), "--csv", csv_path])
        assert code == 0
        assert remote.count() == 2

    def test_broken_config_exits_1(self, csv_path, tmp_path, remote):
        config = tmp_path / "config.json"
        config.write_text("{not json")
        assert sync_csv_to_redmine.main(args(csv_path, config=str(config))) == 1

    @pytest.mark.parametrize("delimiter", [";;", ""])
    def test_bad_delimiter_exits_1(self, csv_path, tmp_path, remote, capsys, delimiter):
        argv = args(csv_path, config=str(tmp_path / "none.json")) + ["--delimiter", delimiter]
        assert sync_csv_to_redmine.main(argv) == 1
        assert remote.calls == []
        assert "--delimiter must be a single character" in capsys.readouterr().out


class TestExitCodes:
    def test_sync_succeeds(self, csv_path, tmp_path, remote):
        assert sync_csv_to_redmine.main(args(csv_path, config=str(tmp_path / "none.json"))) == 0
        assert remote.count() == 2

    def test_second_run_is_noop(self, csv_path, tmp_path, remote):
        argv = args(csv_path, config=str(tmp_path / "none.json"))
        sync_csv_to_redmine.main(argv)
        before = len(remote.mutations)

        assert sync_csv_to_redmine.main(argv) == 0
        assert len(remote.mutations) == before

    def test_dry_run(self, csv_path, tmp_path, remote):
        argv = args(csv_path, config=str(tmp_path / "none.json")) + ["--dry-run"]
        assert sync_csv_to_redmine.main(argv) == 0
        assert remote.mutations == []

    def test_csv_fetch_failure_exits_2(self, tmp_path, remote):
        code = sync_csv_to_redmine.main(args(str(tmp_path / "nope.csv"), config=str(tmp_path / "none.json")))
        assert code == 2

    def test_csv_format_failure_exits_3(self, tmp_path, remote):
        path = tmp_path / "bad.csv"
        path.write_text(HEADER + "2024-03-01,101,lots,Design\n", encoding="utf-8")
        code = sync_csv_to_redmine.main(args(str(path), config=str(tmp_path / "none.json")))
        assert code == 3

    @pytest.mark.parametrize(
        "failing, code",
        [
            ("list_entries", 4),
            ("fetch_activity_map", 5),
            ("create_entry", 7),
        ],
    )
    def test_remote_failures(self, csv_path, tmp_path, remote, failing, code):
        remote.fail_on.add(failing)
        assert sync_csv_to_redmine.main(args(csv_path, config=str(tmp_path / "none.json"))) == code

    def test_delete_failure_exits_6(self, csv_path, tmp_path, remote):
        for _ in range(3):
            remote.add("2024-03-01", "1")
        remote.fail_on.add("delete_entry")
        assert sync_csv_to_redmine.main(args(csv_path, config=str(tmp_path / "none.json"))) == 6

    def test_empty_csv_is_success(self, tmp_path, remote):
        path = tmp_path / "empty.csv"
        path.write_text(HEADER + ",101,1,Design\n", encoding="utf-8")
        assert sync_csv_to_redmine.main(args(str(path), config=str(tmp_path / "none.json"))) == 0
        assert remote.calls == []
