from __future__ import annotations

from typing import Optional


class SGConfigurationMissing(Exception):
	pass


class SGMountError(Exception):
	pass


class SGTimeout(Exception):
	pass


class SGProcessError(Exception):
	def __init__(self, message: str, exit_code: int | None = None):
		super().__init__(message)
		self.exit_code = exit_code


class GatewayStartError(Exception):
	def __init__(self, message: str, pid: Optional[int] = None, command: Optional[list[str]] = None, last_status: Optional[str] = None):
		super().__init__(message)
		self.pid = pid
		self.command = command
		self.last_status = last_status


class GatewayLaunchError(GatewayStartError):
	pass


class GatewayVerificationError(GatewayStartError):
	pass
