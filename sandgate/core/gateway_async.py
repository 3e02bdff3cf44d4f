from __future__ import annotations

from typing import Optional

from sandgate.config import Config
from sandgate.core.storage import StorageMountManager
from sandgate.core.supervisor import GatewaySupervisor
from sandgate.core.sync import SyncReconciler
from sandgate.environment import SandboxEnvironment, resolve_environment
from sandgate.types import ProcessDescriptor, SyncOutcome


class AsyncGateway:
	def __init__(self, config: Optional[Config] = None, environment: str | SandboxEnvironment | None = None):
		self._cfg = config or Config()
		self._env = resolve_environment(self._cfg, environment)
		self.storage = StorageMountManager(self._env, self._cfg.storage)
		self.supervisor = GatewaySupervisor(self._env, self._cfg.gateway, self.storage)
		self.reconciler = SyncReconciler(self._env, self._cfg.storage, self.storage)

	@property
	def config(self) -> Config:
		return self._cfg

	@property
	def environment(self) -> SandboxEnvironment:
		return self._env

	async def ensure_mounted(self) -> bool:
		return await self.storage.ensure_mounted()

	async def ensure_running(self) -> ProcessDescriptor:
		return await self.supervisor.ensure_running()

	async def sync(self) -> SyncOutcome:
		return await self.reconciler.sync()

	async def status(self) -> Optional[ProcessDescriptor]:
		return await self.supervisor.status()
