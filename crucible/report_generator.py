"""
JSON session reports.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .__version__ import __version__
from .models import SampleObservation, SessionAggregate, SessionSummary
from .utils.nanoseconds import format_ns
from .utils.traffic import format_match_duration


class ReportGenerator:
    """
    Writes session reports as JSON.

    Usage:
        >>> gen = ReportGenerator(output_dir="reports")
        >>> path = gen.write_session_report("match-1", observations, aggregate, summary)
    """

    def __init__(self, output_dir: str = "reports") -> None:
        """
        Args:
            output_dir: Directory for reports written without an explicit path
        """
        self.output_dir = Path(output_dir)

    def build_session_report(
        self,
        session_id: str,
        observations: List[SampleObservation],
        aggregate: SessionAggregate,
        summary: SessionSummary,
    ) -> Dict[str, Any]:
        states: Dict[str, int] = {}
        for obs in observations:
            states[obs.state.state] = states.get(obs.state.state, 0) + 1

        return {
            "session_id": session_id,
            "generator": f"crucible-monitor {__version__}",
            "started": format_ns(observations[0].sample.timestamp, include_date=True) if observations else None,
            "duration": format_match_duration(aggregate.duration_ms),
            "aggregate": aggregate.to_dict(),
            "summary": summary.to_dict(),
            "state_counts": states,
            "samples": [obs.to_dict() for obs in observations],
        }

    def write_session_report(
        self,
        session_id: str,
        observations: List[SampleObservation],
        aggregate: SessionAggregate,
        summary: SessionSummary,
        output_path: Optional[Path] = None,
    ) -> Path:
        """
        Build and write a session report.

        Returns:
            Path of the written file
        """
        if output_path is None:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            output_path = self.output_dir / f"session_{session_id}.json"
        else:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)

        report = self.build_session_report(session_id, observations, aggregate, summary)
        self._generate_json(report, output_path)
        return output_path

    def _generate_json(self, data: Dict[str, Any], output_path: Path) -> None:
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
