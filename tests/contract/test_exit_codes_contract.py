from __future__ import annotations

from pathlib import Path

from tablecache.cli import main as cli_main
from tablecache.logging.init import reset_logging

"""Exit code contract: 0 success, 1 fatal, 2 reconciliation failed."""


def test_exit_code_fatal_startup(temp_workdir: Path, capsys):
    # no config/tablecache.yml
    reset_logging()
    code = cli_main(["show", "Employees"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR config:" in out


def test_exit_code_invalid_config(temp_workdir: Path, capsys):
    reset_logging()
    (temp_workdir / "config" / "tablecache.yml").write_text("tables: {}\n", encoding="utf-8")
    code = cli_main(["show", "Employees"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR config: config validation failed" in out


def test_exit_code_success(write_config, fake_db, write_changes, capsys):
    reset_logging()
    fake_db()
    code = cli_main(["apply", "Employees", str(write_changes("changes:\n  - delete: {Id: 2}\n"))])
    assert code == 0
    assert "status=ok" in capsys.readouterr().out


def test_exit_code_reconcile_failure(write_config, fake_db, write_changes, capsys):
    reset_logging()
    fake_db(fail_on="DELETE")
    code = cli_main(["apply", "Employees", str(write_changes("changes:\n  - delete: {Id: 2}\n"))])
    out = capsys.readouterr().out
    assert code == 2
    assert "failed_index=0 status=rolled_back" in out


def test_exit_code_missing_change_file(write_config, fake_db, temp_workdir: Path, capsys):
    reset_logging()
    fake_db()
    code = cli_main(["apply", "Employees", str(temp_workdir / "data" / "none.yml")])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR changes: change set not found" in out
