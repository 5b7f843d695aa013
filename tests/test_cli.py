"""
Tests for the command line interface
"""

import json

import pytest
from click.testing import CliRunner

from crucible.__version__ import __version__
from crucible.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def recording(tmp_path, sample_factory):
    samples = [sample_factory(i, latency_ms=40) for i in range(4)]
    samples.append(sample_factory(4, latency_ms=210))
    samples.append(sample_factory(5, bytes_per_second=5_000, peer_count=1, p2p_traffic_percent=10))

    path = tmp_path / "match.jsonl"
    lines = [json.dumps(s.to_dict()) for s in samples]
    lines.insert(2, "")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


class TestClassifierCommands:
    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_rate_json(self, runner):
        result = runner.invoke(cli, ["rate", "160", "4", "60", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output) == {"rating": "poor", "score": 30, "label": "Darkness Encroaching"}

    def test_rate_text(self, runner):
        result = runner.invoke(cli, ["rate", "25", "0.1", "4"])

        assert result.exit_code == 0
        assert "EXCELLENT" in result.output
        assert "100/100" in result.output

    def test_classify_with_previous(self, runner):
        result = runner.invoke(cli, ["classify", "5000", "1", "80", "20", "--previous", "in_match", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.output)["state"] == "post_game"

    def test_classify_rejects_unknown_previous(self, runner):
        result = runner.invoke(cli, ["classify", "5000", "1", "80", "20", "--previous", "raid"])

        assert result.exit_code != 0

    def test_spike(self, runner):
        result = runner.invoke(cli, ["spike", "160", "40", "--json"])

        assert json.loads(result.output)["severity"] == "warning"

        calm = runner.invoke(cli, ["spike", "60", "40"])
        assert "No lag spike" in calm.output

    def test_summary(self, runner):
        result = runner.invoke(
            cli,
            ["summary", "--duration-ms", "600000", "--avg-latency", "25", "--max-latency", "40", "--peers", "11", "--json"],
        )

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["overall_rating"] == "excellent"
        assert "Full lobby connection" in data["highlights"]

    def test_summary_requires_latency(self, runner):
        assert runner.invoke(cli, ["summary"]).exit_code != 0

    def test_terminology(self, runner):
        result = runner.invoke(cli, ["terminology"])

        assert result.exit_code == 0
        assert "Shaxx is Watching" in result.output


class TestReplay:
    def test_replay_writes_report(self, runner, recording, tmp_path):
        output = tmp_path / "report.json"

        result = runner.invoke(cli, ["replay", str(recording), "-o", str(output)])

        assert result.exit_code == 0, result.output
        report = json.loads(output.read_text(encoding="utf-8"))
        assert report["session_id"] == "match"
        assert report["aggregate"]["sample_count"] == 6
        assert report["aggregate"]["lag_spike_count"] == 1
        assert report["state_counts"] == {"in_match": 5, "post_game": 1}

    def test_replay_session_id(self, runner, recording, tmp_path):
        output = tmp_path / "report.json"

        runner.invoke(cli, ["replay", str(recording), "-o", str(output), "--session-id", "iron-banner"])

        assert json.loads(output.read_text(encoding="utf-8"))["session_id"] == "iron-banner"

    def test_replay_camel_case_recording(self, runner, tmp_path):
        path = tmp_path / "legacy.jsonl"
        path.write_text(
            json.dumps({"timestampNs": 1, "latencyMs": 30, "jitterMs": 2, "packetLoss": 0.1, "bytesPerSecond": 1000})
            + "\n",
            encoding="utf-8",
        )

        result = runner.invoke(cli, ["replay", str(path)])

        assert result.exit_code == 0, result.output
        assert "Samples:" in result.output

    def test_strict_rejects_bad_sample(self, runner, tmp_path, sample_factory):
        path = tmp_path / "bad.jsonl"
        bad = sample_factory(0, packet_loss_percent=150).to_dict()
        path.write_text(json.dumps(bad) + "\n", encoding="utf-8")

        assert runner.invoke(cli, ["replay", str(path)]).exit_code == 0

        result = runner.invoke(cli, ["replay", str(path), "--strict"])
        assert result.exit_code == 1
        assert "packet_loss_percent" in result.output

    def test_invalid_json_line(self, runner, tmp_path):
        path = tmp_path / "broken.jsonl"
        path.write_text('{"latency_ms": 30}\n{not json\n', encoding="utf-8")

        result = runner.invoke(cli, ["replay", str(path)])

        assert result.exit_code != 0
        assert "broken.jsonl:2" in result.output

    def test_empty_recording(self, runner, tmp_path):
        path = tmp_path / "empty.jsonl"
        path.write_text("\n", encoding="utf-8")

        result = runner.invoke(cli, ["replay", str(path)])

        assert result.exit_code != 0
        assert "no samples" in result.output


class TestConfigOptions:
    def test_show_config_defaults(self, runner):
        result = runner.invoke(cli, ["show-config"])

        assert result.exit_code == 0
        assert "THRESHOLDS" in result.output
        assert "rolling_window" in result.output

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["-c", str(tmp_path / "nope.yaml"), "show-config"])

        assert result.exit_code != 0
        assert "Configuration file not found" in result.output

    def test_custom_config(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("thresholds:\n  jitter_alert_ms: 12\ningestion:\n  rolling_window: 3\n", encoding="utf-8")

        result = runner.invoke(cli, ["-c", str(path), "show-config"])

        assert result.exit_code == 0
        assert "12" in result.output
