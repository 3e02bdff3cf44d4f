from __future__ import annotations

import logging
import shlex
from datetime import datetime, timezone

from sandgate.config import StorageConfig
from sandgate.core.storage import StorageMountManager
from sandgate.environment.base import SandboxEnvironment
from sandgate.types import SyncOutcome

logger = logging.getLogger(__name__)

RSYNC_HEADER = "sending incremental file list"


def _diagnostics(stderr: str) -> str:
	"""Strip rsync's informational header, returning whatever is left."""
	lines = [line for line in stderr.splitlines() if line.strip() and line.strip() != RSYNC_HEADER]
	return "\n".join(lines)


class SyncReconciler:
	"""Mirrors the local state directory into the durable volume.

	The copy uses ``rsync --delete``: files removed locally are removed
	from the durable copy too. This is a mirror, not a versioned backup.
	"""

	def __init__(self, env: SandboxEnvironment, config: StorageConfig, storage: StorageMountManager | None = None):
		self._env = env
		self._cfg = config
		self._storage = storage or StorageMountManager(env, config)

	async def sync(self) -> SyncOutcome:
		cfg = self._cfg
		if not cfg.volume_name:
			return SyncOutcome(success=False, error_kind="not_configured", details="Durable volume name is not set")

		try:
			logger.info("Starting durable storage sync")
			if not await self._storage.is_mounted():
				result = await self._storage.mount()
				if not result.mounted:
					logger.error("Durable storage is not mounted: %s", result.details)
					return SyncOutcome(success=False, error_kind="mount_unavailable", details=result.details or "Failed to mount durable volume")

			src = cfg.local_state_dir.rstrip("/")
			dst = cfg.durable_state_dir
			await self._env.exec(f"mkdir -p {shlex.quote(src)}")
			await self._env.exec(f"mkdir -p {shlex.quote(dst)}")
			res = await self._env.exec(f"rsync -av --delete {shlex.quote(src + '/')} {shlex.quote(dst + '/')}")
		except Exception as e:
			logger.exception("Durable storage sync failed")
			return SyncOutcome(success=False, error_kind="sync_failed", details=str(e))

		problems = _diagnostics(res.stderr)
		if problems or not res.ok:
			details = problems or f"rsync exited with code {res.exit_code}"
			logger.error("rsync error: %s", details)
			return SyncOutcome(success=False, error_kind="sync_failed", details=details)

		logger.info("Durable storage sync completed")
		logger.debug("rsync output: %s", res.stdout)
		return SyncOutcome(success=True, completed_at=datetime.now(timezone.utc))
