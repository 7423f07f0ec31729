"""Download job lifecycle transition rules."""

from reelfetch.errors import JobTransitionError
from reelfetch.schemas.job import DownloadStatus

TERMINAL_STATES: frozenset[DownloadStatus] = frozenset(
    {
        DownloadStatus.COMPLETED,
        DownloadStatus.FAILED,
        DownloadStatus.ERROR,
    }
)

_ALLOWED_TRANSITIONS: dict[DownloadStatus, set[DownloadStatus]] = {
    DownloadStatus.STARTING: {DownloadStatus.DOWNLOADING, DownloadStatus.ERROR},
    DownloadStatus.DOWNLOADING: {
        DownloadStatus.DOWNLOADING,
        DownloadStatus.COMPLETED,
        DownloadStatus.FAILED,
        DownloadStatus.ERROR,
    },
    DownloadStatus.COMPLETED: set(),
    DownloadStatus.FAILED: set(),
    DownloadStatus.ERROR: set(),
}


def is_terminal(status: DownloadStatus) -> bool:
    return status in TERMINAL_STATES


def allowed_next_statuses(status: DownloadStatus) -> list[DownloadStatus]:
    """Return deterministically ordered allowed successors for a status."""
    return sorted(_ALLOWED_TRANSITIONS.get(status, set()), key=lambda s: s.value)


def ensure_transition(old_status: DownloadStatus, new_status: DownloadStatus) -> None:
    """Validate transition according to lifecycle rules."""
    if old_status in TERMINAL_STATES:
        raise JobTransitionError(
            f"Terminal state cannot be mutated: {old_status.value} -> {new_status.value}"
        )

    if new_status not in _ALLOWED_TRANSITIONS.get(old_status, set()):
        allowed = ", ".join(status.value for status in allowed_next_statuses(old_status))
        raise JobTransitionError(
            f"Invalid status transition: {old_status.value} -> {new_status.value} (allowed: {allowed})"
        )
