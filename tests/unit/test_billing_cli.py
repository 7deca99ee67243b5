"""
Smoke tests for scripts/billing_cli.py against a file-backed SQLite database.
"""

import re

import pytest

from billing_kernel.db.engine import reset_engine
from scripts.billing_cli import main


@pytest.fixture
def cli(tmp_path):
    url = f"sqlite:///{tmp_path / 'billing.db'}"

    def run(*args: str) -> int:
        return main(["--database-url", url, *args])

    yield run
    reset_engine()


def panel_id_from(output: str) -> str:
    return re.search(r"Panel \S+: ([0-9a-f-]{36})", output).group(1)


class TestBillingCli:

    def test_init_db_seeds_configured_rates(self, cli, capsys):
        assert cli("init-db") == 0
        assert "Seeded rates for: 2024, 2025, 2026" in capsys.readouterr().out

        assert cli("seed-rates") == 0
        assert "Seeded rates for: (none)" in capsys.readouterr().out

    def test_panel_lifecycle(self, cli, capsys):
        cli("init-db")
        assert cli("create-panel", "MAD-0042", "MAD", "2025-03-05") == 0
        out = capsys.readouterr().out
        assert "days=26" in out
        assert "amount=32.67" in out
        panel_id = panel_id_from(out)

        assert cli("record-event", panel_id, "removal", "2025-03-20") == 0
        assert "days=16" in capsys.readouterr().out

        assert cli("events", panel_id, "2025-03") == 0
        out = capsys.readouterr().out
        assert "INITIAL_INTAKE" in out
        assert "REMOVAL" in out

        assert cli("summary", "2025-03") == 0
        out = capsys.readouterr().out
        assert "2025-03 (open)" in out
        assert "MAD-0042" in out
        assert "REMOVED" in out

    def test_locked_month_reports_error_code(self, cli, capsys):
        cli("init-db")
        cli("create-panel", "MAD-0042", "MAD", "2025-03-05")
        panel_id = panel_id_from(capsys.readouterr().out)
        assert cli("lock", "2025-03") == 0
        capsys.readouterr()

        assert cli("record-event", panel_id, "REMOVAL", "2025-03-20") == 1
        assert "ERROR [MONTH_LOCKED]" in capsys.readouterr().err

    def test_update_event_moves_removal(self, cli, capsys):
        cli("init-db")
        cli("create-panel", "MAD-0042", "MAD", "2025-02-01")
        panel_id = panel_id_from(capsys.readouterr().out)
        cli("record-event", panel_id, "REMOVAL", "2025-02-20")
        event_id = re.search(r"Event REMOVAL \S+: ([0-9a-f-]{36})", capsys.readouterr().out).group(1)
        cli("recalculate", panel_id, "2025-03")
        capsys.readouterr()

        assert cli("update-event", event_id, "--date", "2025-03-09") == 0
        out = capsys.readouterr().out
        assert "Updated REMOVAL 2025-03-09" in out
        assert "2025-02  panel=" in out
        assert "days=30" in out
        assert "days=9" in out

    def test_update_event_without_fields(self, cli, capsys):
        cli("init-db")
        cli("create-panel", "MAD-0042", "MAD", "2025-03-05")
        panel_id = panel_id_from(capsys.readouterr().out)
        cli("record-event", panel_id, "REMOVAL", "2025-03-20")
        event_id = re.search(r"Event REMOVAL \S+: ([0-9a-f-]{36})", capsys.readouterr().out).group(1)

        assert cli("update-event", event_id) == 1
        assert "ERROR [INVALID_EVENT]" in capsys.readouterr().err

    def test_delete_panel_needs_its_code(self, cli, capsys):
        cli("init-db")
        cli("create-panel", "MAD-0042", "MAD", "2025-03-05")
        panel_id = panel_id_from(capsys.readouterr().out)

        assert cli("delete-panel", panel_id, "MAD-0043") == 1
        assert "ERROR [PANEL_CODE_MISMATCH]" in capsys.readouterr().err

        assert cli("delete-panel", panel_id, "MAD-0042") == 0
        out = capsys.readouterr().out
        assert "Deleted panel MAD-0042: 1 events, 1 billing records" in out
        assert "2025-03 summary recomputed" in out

    def test_delete_month(self, cli, capsys):
        cli("init-db")
        cli("create-panel", "MAD-0042", "MAD", "2025-03-05")
        capsys.readouterr()

        assert cli("delete-month", "2025-03") == 0
        assert "Deleted 2025-03: 1 billing records, 1 events" in capsys.readouterr().out

        assert cli("delete-month", "2025-03") == 1
        assert "ERROR [SUMMARY_NOT_FOUND]" in capsys.readouterr().err

    def test_unknown_summary(self, cli, capsys):
        cli("init-db")
        assert cli("summary", "2030-01") == 0
        assert "No summary for 2030-01" in capsys.readouterr().out

    def test_bad_arguments_exit_with_usage(self, cli):
        with pytest.raises(SystemExit) as exc_info:
            cli("set-rate", "2026", "lots")
        assert exc_info.value.code == 2

    def test_missing_config_file(self, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "absent.yaml"), "summary", "2025-03"]) == 1
        assert "Failed to load config" in capsys.readouterr().err
