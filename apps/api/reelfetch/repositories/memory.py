"""In-memory progress store shared by the API process."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
import secrets

from reelfetch.domain.job_fsm import ensure_transition, is_terminal
from reelfetch.schemas.job import Alternative, DownloadStatus, MediaArtifact, ProgressSnapshot

_TERMINAL_PROGRESS = 100


@dataclass(slots=True)
class JobRecord:
    id: str
    status: DownloadStatus
    progress: int
    message: str
    created_at: datetime
    updated_at: datetime
    data: MediaArtifact | None = None
    alternatives: list[Alternative] | None = None
    error: str | None = None

    def to_snapshot(self) -> ProgressSnapshot:
        # Absent outcome fields stay unset so the wire payload omits them.
        optional = {
            "data": self.data,
            "alternatives": list(self.alternatives) if self.alternatives is not None else None,
            "error": self.error,
        }
        return ProgressSnapshot(
            status=self.status,
            progress=self.progress,
            message=self.message,
            **{key: value for key, value in optional.items() if value is not None},
        )


@dataclass(slots=True)
class InMemoryProgressStore:
    """Process-wide job id -> latest job state mapping.

    Entries live for the lifetime of the process; a multi-instance deployment
    needs an external keyed store instead.
    """

    jobs: dict[str, JobRecord] = field(default_factory=dict)
    job_write_count: int = 0

    def create_job(self, *, message: str = "Initializing download...") -> JobRecord:
        now = datetime.now(UTC)
        job = JobRecord(
            id=secrets.token_hex(16),
            status=DownloadStatus.STARTING,
            progress=0,
            message=message,
            created_at=now,
            updated_at=now,
        )
        self.jobs[job.id] = job
        self.job_write_count += 1
        return job

    def get_job(self, job_id: str) -> JobRecord | None:
        return self.jobs.get(job_id)

    def snapshot(self, job_id: str) -> ProgressSnapshot:
        job = self.jobs.get(job_id)
        if job is None:
            return ProgressSnapshot.not_found()
        return job.to_snapshot()

    def transition_job_status(
        self,
        *,
        job: JobRecord,
        new_status: DownloadStatus,
        progress: int,
        message: str,
        data: MediaArtifact | None = None,
        alternatives: list[Alternative] | None = None,
        error: str | None = None,
    ) -> None:
        """Apply an FSM-validated status mutation with consistent write bookkeeping.

        Terminal states pin progress to 100. In-flight progress never moves
        backwards: a lower value keeps the current one.
        """
        ensure_transition(job.status, new_status)

        if is_terminal(new_status):
            job.progress = _TERMINAL_PROGRESS
        else:
            job.progress = max(job.progress, min(progress, _TERMINAL_PROGRESS))
        job.status = new_status
        job.message = message
        job.data = data
        job.alternatives = list(alternatives) if alternatives is not None else None
        job.error = error
        job.updated_at = datetime.now(UTC)
        self.job_write_count += 1
