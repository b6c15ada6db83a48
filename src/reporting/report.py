"""Run reporting."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional


@dataclass
class PhaseResult:
    """Result of a lifecycle phase or cleanup step."""
    name: str
    description: str
    status: str  # 'passed', 'failed'
    message: str = ''
    duration: float = 0.0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


@dataclass
class TestReport:
    """Collects phase results and writes JSON and markdown reports."""
    __test__ = False  # not a pytest class

    target: str
    report_dir: Path
    scenario: str = ''
    phases: list[PhaseResult] = field(default_factory=list)
    cleanup: list[PhaseResult] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    success: bool = False

    _phase_start: Optional[datetime] = field(default=None, repr=False)
    _phase_description: str = field(default='', repr=False)

    def start(self):
        """Mark run start."""
        self.started_at = datetime.now()
        self.report_dir.mkdir(parents=True, exist_ok=True)

    def start_phase(self, _name: str, description: str):
        """Mark phase start."""
        self._phase_start = datetime.now()
        self._phase_description = description

    def pass_phase(self, name: str, message: str = '', duration: float = 0.0):
        """Record passed phase."""
        self._record_phase(name, 'passed', message, duration)

    def fail_phase(self, name: str, message: str = '', duration: float = 0.0):
        """Record failed phase."""
        self._record_phase(name, 'failed', message, duration)

    def record_cleanup(self, name: str, description: str, success: bool,
                       message: str = '', duration: float = 0.0):
        """Record a cleanup step. Never affects the run's success."""
        self.cleanup.append(PhaseResult(
            name=name,
            description=description,
            status='passed' if success else 'failed',
            message=message,
            duration=duration,
            finished_at=datetime.now()
        ))

    def _record_phase(self, name: str, status: str, message: str, duration: float):
        now = datetime.now()
        if duration == 0.0 and self._phase_start:
            duration = (now - self._phase_start).total_seconds()

        self.phases.append(PhaseResult(
            name=name,
            description=self._phase_description or name,
            status=status,
            message=message,
            duration=duration,
            started_at=self._phase_start,
            finished_at=now
        ))
        self._phase_start = None
        self._phase_description = ''

    def _total_duration(self) -> float:
        if self.finished_at and self.started_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    def finish(self, success: bool):
        """Finalize report and write files."""
        self.finished_at = datetime.now()
        self.success = success
        self._write_json()
        self._write_markdown()

    def _write_json(self):
        data = {
            'scenario': self.scenario,
            'target': self.target,
            'success': self.success,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'duration': self._total_duration(),
            'phases': [_phase_dict(p) for p in self.phases],
            'cleanup': [_phase_dict(p) for p in self.cleanup],
        }
        with open(self._report_filename('json'), 'w', encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def _write_markdown(self):
        status = 'PASSED' if self.success else 'FAILED'

        lines = [
            f"# {self.scenario}",
            "",
            f"**Model**: {self.target}",
            f"**Status**: {status}",
            f"**Date**: {self.started_at.strftime('%Y-%m-%d %H:%M:%S') if self.started_at else 'N/A'}",
            f"**Duration**: {self._total_duration():.1f}s",
        ]
        for title, results in (("Phases", self.phases), ("Cleanup", self.cleanup)):
            lines.extend([
                "",
                f"## {title}",
                "",
                "| Step | Status | Duration | Message |",
                "|------|--------|----------|---------|",
            ])
            for p in results:
                status_emoji = {'passed': '✅', 'failed': '❌'}.get(p.status, '❓')
                lines.append(f"| {p.name} | {status_emoji} {p.status} | {p.duration:.1f}s | {p.message} |")

        lines.extend(["", "---", f"Generated: {datetime.now().isoformat()}"])

        with open(self._report_filename('md'), 'w', encoding="utf-8") as f:
            f.write('\n'.join(lines))

    def _report_filename(self, ext: str) -> Path:
        timestamp = self.started_at.strftime('%Y%m%d-%H%M%S') if self.started_at else 'unknown'
        status = 'passed' if self.success else 'failed'
        if self.scenario:
            return self.report_dir / f"{timestamp}.{self.scenario}.{status}.{ext}"
        return self.report_dir / f"{timestamp}.{status}.{ext}"

    def to_dict(self) -> dict:
        """Return report as dictionary for --json output."""
        result = {
            'scenario': self.scenario,
            'success': self.success,
            'duration_seconds': round(self._total_duration(), 1),
            'phases': [
                {'name': p.name, 'status': p.status, 'duration': round(p.duration, 1)}
                for p in self.phases
            ],
            'cleanup': [
                {'name': p.name, 'status': p.status}
                for p in self.cleanup
            ],
        }

        if not self.success:
            for p in self.phases:
                if p.status == 'failed' and p.message:
                    result['error'] = p.message
                    break

        return result


def _phase_dict(p: PhaseResult) -> dict:
    return {
        'name': p.name,
        'description': p.description,
        'status': p.status,
        'message': p.message,
        'duration': p.duration,
    }
