"""Generation job model."""

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from src.bot.states import RequestKind


class JobStatus(str, Enum):
    """Lifecycle of a generation job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Job:
    """One unit of generation work.

    Jobs are values: every status change returns a new instance, so a job that
    was handed to the queue never changes under its holder.
    """

    user_id: int
    request_kind: RequestKind
    images: tuple[str, ...]
    brief: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None
    result_reference: str | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if not self.images:
            raise ValueError("A job needs at least one image")
        # Snapshot whatever sequence the caller passed in
        object.__setattr__(self, "images", tuple(self.images))

    @property
    def is_finished(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED)

    def processing(self) -> "Job":
        """Queued -> Processing."""
        self._require(JobStatus.QUEUED)
        return replace(self, status=JobStatus.PROCESSING)

    def completed(self, result_reference: str) -> "Job":
        """Processing -> Completed."""
        self._require(JobStatus.PROCESSING)
        return replace(
            self,
            status=JobStatus.COMPLETED,
            result_reference=result_reference,
            completed_at=_utcnow(),
        )

    def failed(self, error: str) -> "Job":
        """Queued or Processing -> Failed."""
        if self.is_finished:
            raise ValueError(f"Job {self.id} is already {self.status.value}")
        return replace(self, status=JobStatus.FAILED, error=error, completed_at=_utcnow())

    def _require(self, expected: JobStatus) -> None:
        if self.status is not expected:
            raise ValueError(
                f"Job {self.id} is {self.status.value}, expected {expected.value}"
            )

    def to_mapping(self) -> dict[str, str]:
        """Flatten the job into a Redis hash mapping."""
        return {
            "id": self.id,
            "user_id": str(self.user_id),
            "request_kind": self.request_kind.value,
            "images": json.dumps(list(self.images)),
            "brief": self.brief,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else "",
            "result_reference": self.result_reference or "",
            "error": self.error or "",
        }

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "Job":
        """Rebuild a job from a Redis hash mapping."""
        completed_at = data.get("completed_at") or None
        return cls(
            id=data["id"],
            user_id=int(data["user_id"]),
            request_kind=RequestKind(data["request_kind"]),
            images=tuple(json.loads(data["images"])),
            brief=data.get("brief", ""),
            status=JobStatus(data["status"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            result_reference=data.get("result_reference") or None,
            error=data.get("error") or None,
        )
