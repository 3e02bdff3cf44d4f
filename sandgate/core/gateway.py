from __future__ import annotations

from typing import Optional

import anyio

from sandgate.config import Config
from sandgate.core.gateway_async import AsyncGateway
from sandgate.environment import SandboxEnvironment
from sandgate.types import ProcessDescriptor, SyncOutcome


class Gateway:
	"""Blocking front end; each call runs the async operation on a fresh event loop."""

	def __init__(self, config: Optional[Config] = None, environment: str | SandboxEnvironment | None = None):
		self._inner = AsyncGateway(config=config, environment=environment)
		self.storage = self._inner.storage
		self.supervisor = self._inner.supervisor
		self.reconciler = self._inner.reconciler

	def ensure_mounted(self) -> bool:
		return anyio.run(self._inner.ensure_mounted)

	def ensure_running(self) -> ProcessDescriptor:
		return anyio.run(self._inner.ensure_running)

	def sync(self) -> SyncOutcome:
		return anyio.run(self._inner.sync)

	def status(self) -> Optional[ProcessDescriptor]:
		return anyio.run(self._inner.status)
