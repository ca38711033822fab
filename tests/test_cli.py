"""
Smoke tests for CLI commands against a test database.
"""
import pytest
from typer.testing import CliRunner

import cli

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_db(session_factory, monkeypatch):
    monkeypatch.setattr(cli, "SessionLocal", session_factory)


class TestCliCommands:
    def test_review(self, user, make_topic):
        topic = make_topic(user)

        result = runner.invoke(cli.app, [
            "review", "--user-id", str(user.id), "--topic-id", str(topic.id), "--quality", "5"
        ])

        assert result.exit_code == 0
        assert "Reviewed" in result.output

    def test_review_invalid_quality(self, user, make_topic):
        topic = make_topic(user)

        result = runner.invoke(cli.app, [
            "review", "--user-id", str(user.id), "--topic-id", str(topic.id), "--quality", "9"
        ])

        assert result.exit_code == 1
        assert "INVALID_QUALITY" in result.output

    def test_queue(self, user, make_topic, make_question):
        make_question(make_topic(user))

        result = runner.invoke(cli.app, ["queue", str(user.id)])

        assert result.exit_code == 0
        assert "Quick review" in result.output

    def test_model_show_without_data(self, user):
        result = runner.invoke(cli.app, ["model", "show", str(user.id)])

        assert result.exit_code == 0
        assert "No learning data yet" in result.output

    def test_model_signal_invalid(self, user):
        result = runner.invoke(cli.app, ["model", "signal", str(user.id), "heartRate", "--off"])

        assert result.exit_code == 1
        assert "INVALID_SIGNAL" in result.output

    def test_usage(self, user):
        result = runner.invoke(cli.app, ["usage", str(user.id)])

        assert result.exit_code == 0
        assert "AI requests" in result.output
