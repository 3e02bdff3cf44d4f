from __future__ import annotations

import logging
import posixpath
import shlex

from sandgate.config import StorageConfig
from sandgate.environment.base import SandboxEnvironment
from sandgate.errors import SGConfigurationMissing, SGProcessError
from sandgate.types import CommandResult, MountResult

logger = logging.getLogger(__name__)

NOT_MOUNTED_MARKER = "not mounted"


class StorageMountManager:
	"""Mounts the durable volume and points the gateway's state paths at it.

	Every step is idempotent. Failures never escape: the caller gets
	``False`` (or a ``MountResult``) and the gateway runs on ephemeral storage.
	"""

	def __init__(self, env: SandboxEnvironment, config: StorageConfig):
		self._env = env
		self._cfg = config

	@property
	def config(self) -> StorageConfig:
		return self._cfg

	async def _run(self, cmd: str) -> CommandResult:
		res = await self._env.exec(cmd)
		if not res.ok:
			raise SGProcessError(f"`{cmd}` failed: {res.stderr.strip()}", exit_code=res.exit_code)
		return res

	def _require_config(self) -> None:
		if not self._cfg.is_configured:
			raise SGConfigurationMissing("Durable volume name, handle and mount path are required")

	async def is_mounted(self) -> bool:
		"""Query the mount table for the configured mount path."""
		# `mount` prints "<source> on <path> type ..."
		path = shlex.quote(f" {self._cfg.mount_path.rstrip('/')} ")
		try:
			res = await self._env.exec(f'mount | grep -F -- {path} || echo "{NOT_MOUNTED_MARKER}"')
		except Exception:
			logger.exception("Could not read the mount table")
			return False
		out = res.stdout.strip()
		return bool(out) and NOT_MOUNTED_MARKER not in out

	async def mount(self) -> MountResult:
		try:
			self._require_config()
		except SGConfigurationMissing as e:
			logger.info("Durable storage not configured, using ephemeral storage")
			return MountResult(mounted=False, mode="ephemeral", error_kind="not_configured", details=str(e))

		cfg = self._cfg
		mount_path = shlex.quote(cfg.mount_path)
		try:
			logger.info("Setting up durable storage at %s", cfg.mount_path)
			await self._run(f"mkdir -p {mount_path}")
			# the gateway may run as a different user
			await self._run(f"chmod 777 {mount_path}")
			if await self.is_mounted():
				logger.info("Volume %s already mounted at %s", cfg.volume_name, cfg.mount_path)
			else:
				await self._env.mount_volume(cfg.volume_handle, cfg.mount_path, read_only=False)
				logger.info("Volume %s mounted at %s", cfg.volume_name, cfg.mount_path)
			await self._link_state_dirs()
		except Exception as e:
			logger.exception("Failed to mount durable storage")
			return MountResult(mounted=False, mode="ephemeral", error_kind="mount_failed", details=str(e))
		return MountResult(mounted=True, mode="durable")

	async def ensure_mounted(self) -> bool:
		return (await self.mount()).mounted

	async def _link_state_dirs(self) -> None:
		target = self._cfg.durable_state_dir
		await self._run(f"mkdir -p {shlex.quote(target)}")
		for link in self._cfg.state_links:
			parent = posixpath.dirname(link.rstrip("/")) or "/"
			await self._run(f"mkdir -p {shlex.quote(parent)}")
			# -n replaces an existing link instead of descending into it
			await self._run(f"ln -sfn {shlex.quote(target)} {shlex.quote(link)}")
