"""Tests for the tblead command line."""

import tempfile
from pathlib import Path

import pytest
from click.testing import CliRunner

from tb_lead_engine.cli.main import cli
from tb_lead_engine.config import reset_settings
from tb_lead_engine.drip_campaigns import EnrollmentStatus, EnrollmentStore


@pytest.fixture
def data_dir(monkeypatch):
    """Point the CLI at a temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        monkeypatch.setenv("TB_DATA_DIR", tmpdir)
        monkeypatch.setenv("TB_DATABASE_PATH", str(Path(tmpdir) / "crm.db"))
        for name in ("SENDGRID_API_KEY", "TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN"):
            monkeypatch.delenv(name, raising=False)
        reset_settings()
        yield Path(tmpdir)
        reset_settings()


@pytest.fixture
def runner():
    return CliRunner()


def add_contact(runner, *extra):
    return runner.invoke(cli, [
        "add-contact", "-f", "Dana", "-l", "Reyes", "-e", "dana@example.com",
        "--source", "referral", *extra,
    ])


class TestContactCommands:
    """Tests for contact and scoring commands."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_init(self, runner, data_dir):
        result = runner.invoke(cli, ["init"])

        assert result.exit_code == 0
        assert "Database initialized" in result.output
        assert (data_dir / "crm.db").exists()

    def test_add_contact_warns_on_duplicate(self, runner, data_dir):
        assert add_contact(runner).exit_code == 0

        result = add_contact(runner)

        assert result.exit_code == 0
        assert "Added contact #2" in result.output
        assert "Possible duplicate" in result.output

    def test_score(self, runner, data_dir):
        add_contact(runner)
        runner.invoke(cli, ["log-interaction", "1", "-t", "call", "-d", "inbound"])
        runner.invoke(cli, ["add-opportunity", "1", "Dock rebuild", "-v", "60000", "-u", "high"])

        result = runner.invoke(cli, ["score", "1"])

        assert result.exit_code == 0
        assert "Total Score" in result.output

    def test_score_missing_contact(self, runner, data_dir):
        result = runner.invoke(cli, ["score", "42"])
        assert "not found" in result.output

    def test_score_all_and_stats(self, runner, data_dir):
        add_contact(runner)
        runner.invoke(cli, ["add-contact", "-f", "Sam", "-l", "Hill", "--source", "cold_call"])

        result = runner.invoke(cli, ["score-all", "--apply-temperature"])
        assert result.exit_code == 0
        assert "Scored 2 contacts" in result.output

        result = runner.invoke(cli, ["stats"])
        assert result.exit_code == 0
        assert "Contacts:" in result.output

    def test_log_interaction_unknown_contact(self, runner, data_dir):
        result = runner.invoke(cli, ["log-interaction", "7", "-t", "note"])
        assert "not found" in result.output

    def test_duplicates(self, runner, data_dir):
        add_contact(runner)
        add_contact(runner)

        result = runner.invoke(cli, ["duplicates"])

        assert result.exit_code == 0
        assert "Possible duplicates (1)" in result.output


class TestSequenceCommands:
    """Tests for enrollment commands."""

    def test_sequences(self, runner, data_dir):
        result = runner.invoke(cli, ["sequences"])
        assert result.exit_code == 0
        assert "new-lead-nurture" in result.output

    def test_trigger_tick_and_transitions(self, runner, data_dir):
        add_contact(runner)

        result = runner.invoke(cli, ["trigger", "1", "new_lead"])
        assert result.exit_code == 0
        assert "Enrolled" in result.output

        result = runner.invoke(cli, ["trigger", "1", "new_lead"])
        assert "No new enrollments" in result.output

        result = runner.invoke(cli, ["tick", "--dry-run"])
        assert result.exit_code == 0
        assert "Sent" in result.output

        store = EnrollmentStore(data_dir / "sequences")
        enrollment = store.all()[0]
        assert enrollment.current_step == 0
        assert enrollment.last_sent_at is None

        assert runner.invoke(cli, ["pause", enrollment.id]).exit_code == 0
        assert EnrollmentStore(data_dir / "sequences").get(enrollment.id).status == EnrollmentStatus.PAUSED

        result = runner.invoke(cli, ["pause", enrollment.id])
        assert "Cannot pause" in result.output

        runner.invoke(cli, ["resume", enrollment.id])
        assert EnrollmentStore(data_dir / "sequences").get(enrollment.id).status == EnrollmentStatus.ACTIVE

        runner.invoke(cli, ["cancel", enrollment.id])
        assert EnrollmentStore(data_dir / "sequences").get(enrollment.id).status == EnrollmentStatus.CANCELLED

        result = runner.invoke(cli, ["enrollments", "--status", "cancelled"])
        assert result.exit_code == 0
        assert "Enrollments (1)" in result.output

    def test_tick_without_credentials_does_not_advance(self, runner, data_dir):
        add_contact(runner)
        runner.invoke(cli, ["enroll", "1", "new-lead-nurture"])

        result = runner.invoke(cli, ["tick"])

        assert result.exit_code == 0
        enrollment = EnrollmentStore(data_dir / "sequences").all()[0]
        assert enrollment.current_step == 0

    def test_enroll_unknown_sequence(self, runner, data_dir):
        add_contact(runner)
        result = runner.invoke(cli, ["enroll", "1", "nope"])
        assert "Not enrolled" in result.output

    def test_no_enrollments(self, runner, data_dir):
        result = runner.invoke(cli, ["enrollments"])
        assert "No enrollments found" in result.output

    def test_dry_run_tick_leaves_enrollments_file_untouched(self, runner, data_dir):
        add_contact(runner)
        runner.invoke(cli, ["enroll", "1", "new-lead-nurture"])
        enrollments_file = data_dir / "sequences" / "enrollments.json"
        before = enrollments_file.read_bytes()

        for _ in range(2):
            result = runner.invoke(cli, ["tick", "--dry-run"])
            assert result.exit_code == 0

        assert enrollments_file.read_bytes() == before

    def test_score_with_unusable_config_uses_defaults(self, runner, data_dir):
        (data_dir / "scoring_config.json").write_text("[]")
        add_contact(runner)

        result = runner.invoke(cli, ["score", "1"])

        assert result.exit_code == 0
        assert "Total Score" in result.output
