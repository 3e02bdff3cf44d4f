from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Optional


ProcessStatus = Literal["starting", "running", "stopped", "failed"]
StorageMode = Literal["durable", "ephemeral"]


@dataclass(frozen=True)
class ProcessDescriptor:
	pid: int
	command_line: str
	status: ProcessStatus


@dataclass
class CommandResult:
	stdout: str
	stderr: str
	exit_code: int
	duration_s: float | None = None

	@property
	def ok(self) -> bool:
		return self.exit_code == 0


@dataclass(frozen=True)
class MountResult:
	mounted: bool
	mode: StorageMode
	error_kind: Optional[str] = None
	details: Optional[str] = None

	def __bool__(self) -> bool:
		return self.mounted


@dataclass(frozen=True)
class SyncOutcome:
	success: bool
	error_kind: Optional[str] = None
	details: Optional[str] = None
	completed_at: Optional[datetime] = None

	def to_dict(self) -> dict[str, Any]:
		data: dict[str, Any] = {"success": self.success}
		if self.error_kind is not None:
			data["error"] = self.error_kind
		if self.details is not None:
			data["details"] = self.details
		if self.completed_at is not None:
			data["last_sync"] = self.completed_at.isoformat()
		return data
