"""
Tests for JSON session reports
"""

import json

from crucible.report_generator import ReportGenerator
from crucible.session import SessionContext


def _observe(samples):
    context = SessionContext("match-7")
    observations = [context.observe(sample) for sample in samples]
    return observations, context.aggregate(), context.summarize()


class TestReportGenerator:
    def test_build_session_report(self, sample_factory):
        samples = [sample_factory(i) for i in range(3)] + [sample_factory(3, bytes_per_second=1_000, peer_count=0, p2p_traffic_percent=0)]
        observations, aggregate, summary = _observe(samples)

        report = ReportGenerator().build_session_report("match-7", observations, aggregate, summary)

        assert report["session_id"] == "match-7"
        assert report["generator"].startswith("crucible-monitor ")
        assert report["started"].startswith("2023-11-14 ")
        assert report["duration"] == "0:03"
        assert report["aggregate"]["sample_count"] == 4
        assert report["summary"]["overall_rating"] == summary.overall_rating
        assert report["state_counts"] == {"in_match": 3, "post_game": 1}
        assert len(report["samples"]) == 4
        assert report["samples"][3]["previous_state"] == "in_match"

    def test_empty_session(self):
        context = SessionContext("empty")

        report = ReportGenerator().build_session_report("empty", [], context.aggregate(), context.summarize())

        assert report["started"] is None
        assert report["samples"] == []
        assert report["state_counts"] == {}

    def test_write_default_path(self, tmp_path, sample_factory):
        observations, aggregate, summary = _observe([sample_factory(0), sample_factory(1)])
        generator = ReportGenerator(output_dir=str(tmp_path / "reports"))

        path = generator.write_session_report("42", observations, aggregate, summary)

        assert path == tmp_path / "reports" / "session_42.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["session_id"] == "42"
        assert data["aggregate"]["sample_count"] == 2

    def test_write_explicit_path(self, tmp_path, sample_factory):
        observations, aggregate, summary = _observe([sample_factory(0)])
        target = tmp_path / "nested" / "out.json"

        path = ReportGenerator(output_dir=str(tmp_path / "unused")).write_session_report(
            "x", observations, aggregate, summary, output_path=target
        )

        assert path == target
        assert target.exists()
        assert not (tmp_path / "unused").exists()
