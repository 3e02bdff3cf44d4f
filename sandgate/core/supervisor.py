from __future__ import annotations

import logging
import posixpath
import shlex
from typing import Dict, List, Optional, Sequence

import anyio

from sandgate.config import GatewayConfig
from sandgate.core.storage import StorageMountManager
from sandgate.environment.base import SandboxEnvironment
from sandgate.errors import GatewayLaunchError, GatewayVerificationError
from sandgate.types import ProcessDescriptor, StorageMode

logger = logging.getLogger(__name__)

TOKEN_ENV_VAR = "OPENCLAW_GATEWAY_TOKEN"
MAX_POLL_INTERVAL = 2.0


def provider_env_var(provider: str) -> str:
	return f"{provider.upper()}_API_KEY"


def command_matches(command_line: str, signatures: Sequence[str]) -> bool:
	"""Whether a command line is a gateway launch.

	Only the executable and its first argument are inspected: either may be
	a signature by basename (``openclaw gateway``, ``bash start-openclaw.sh``),
	or the first argument may be a script installed under
	``node_modules/<signature>/``. Paths appearing later on the line, such as
	the state directories handed to rsync or mkdir, never match.
	"""
	try:
		argv = shlex.split(command_line)
	except ValueError:
		argv = command_line.split()
	for token in argv[:2]:
		if posixpath.basename(token) in signatures:
			return True
	if len(argv) > 1:
		return any(f"/node_modules/{sig}/" in argv[1] for sig in signatures)
	return False


class GatewaySupervisor:
	"""Detects or starts the singleton gateway process.

	Calls on one supervisor are serialized by a lock held from the
	initial check until verification, so concurrent callers launch at most
	one process. Callers in other processes are not covered.
	"""

	def __init__(self, env: SandboxEnvironment, config: GatewayConfig, storage: Optional[StorageMountManager] = None):
		self._env = env
		self._cfg = config
		self._storage = storage
		self._lock = anyio.Lock()
		self.storage_mode: Optional[StorageMode] = None

	def _matches(self, proc: ProcessDescriptor) -> bool:
		return command_matches(proc.command_line, self._cfg.signatures)

	async def _matching(self) -> List[ProcessDescriptor]:
		try:
			processes = await self._env.list_processes()
		except Exception:
			logger.exception("Error listing processes")
			return []
		return [p for p in processes if self._matches(p)]

	async def find_existing(self) -> Optional[ProcessDescriptor]:
		matches = await self._matching()
		for proc in matches:
			if proc.status == "running":
				return proc
		return matches[0] if matches else None

	async def status(self) -> Optional[ProcessDescriptor]:
		return await self.find_existing()

	def build_environment(self) -> Dict[str, str]:
		cfg = self._cfg
		env = dict(cfg.environment_variables)
		env.update({
			"NODE_ENV": "production",
			"PATH": cfg.path,
			"HOME": cfg.home,
		})
		for provider, key in sorted(cfg.api_keys.items()):
			if key:
				env[provider_env_var(provider)] = key
		if cfg.gateway_token:
			env[TOKEN_ENV_VAR] = cfg.gateway_token
		return env

	async def _prepare_storage(self) -> None:
		if self._storage is None:
			self.storage_mode = "ephemeral"
		else:
			self.storage_mode = (await self._storage.mount()).mode
		if self.storage_mode == "ephemeral":
			logger.info("Using ephemeral storage (durable volume not available)")

	async def ensure_running(self) -> ProcessDescriptor:
		async with self._lock:
			existing = await self.find_existing()
			if existing and existing.status == "running":
				logger.info("Gateway already running with pid %s", existing.pid)
				return existing

			await self._prepare_storage()

			cmd = list(self._cfg.command)
			logger.info("Starting gateway: %s", " ".join(cmd))
			try:
				launched = await self._env.start_process(cmd, self.build_environment(), self._cfg.working_directory)
			except Exception as e:
				logger.exception("Failed to start gateway")
				raise GatewayLaunchError(f"Gateway failed to start: {e}", command=cmd) from e
			logger.info("Gateway started with pid %s", launched.pid)

			return await self._verify(launched, cmd)

	async def _verify(self, launched: ProcessDescriptor, cmd: List[str]) -> ProcessDescriptor:
		cfg = self._cfg
		await anyio.sleep(cfg.settle_delay)
		deadline = anyio.current_time() + cfg.start_timeout
		interval = cfg.poll_interval
		last_status: Optional[str] = None
		while True:
			matches = await self._matching()
			own = next((p for p in matches if p.pid == launched.pid), None)
			# the launched pid first, then a child the launcher handed off to
			for proc in ([own] if own else []) + matches:
				if proc.status == "running":
					logger.info("Gateway verified running with pid %s", proc.pid)
					return proc
			last_status = own.status if own else None
			if last_status in ("stopped", "failed"):
				break
			remaining = deadline - anyio.current_time()
			if remaining <= 0:
				break
			await anyio.sleep(min(interval, remaining))
			interval = min(interval * 2, MAX_POLL_INTERVAL)

		logger.error("Gateway pid %s not running after launch (status: %s)", launched.pid, last_status or "missing")
		raise GatewayVerificationError(
			"Gateway failed to start",
			pid=launched.pid,
			command=cmd,
			last_status=last_status,
		)
