from __future__ import annotations

import json
import os
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_ADAPTER = "local"  # or "docker"
DEFAULT_MOUNT_PATH = "/data/moltbot"
DEFAULT_STATE_SUBDIR = "openclaw"
DEFAULT_LOCAL_STATE_DIR = "/root/.openclaw"
DEFAULT_WORKDIR = "/root/clawd"
DEFAULT_LAUNCHER = "/usr/local/bin/start-openclaw.sh"
DEFAULT_PATH = "/usr/local/bin:/usr/bin:/bin"
KNOWN_PROVIDERS = ("anthropic", "openai")


def _env(*names: str) -> Optional[str]:
	for name in names:
		value = os.getenv(name)
		if value:
			return value
	return None


def _provider_keys_from_env() -> Dict[str, str]:
	keys = {}
	for provider in KNOWN_PROVIDERS:
		value = os.getenv(f"{provider.upper()}_API_KEY")
		if value:
			keys[provider] = value
	return keys


def _parse_json_env(value: Optional[str]) -> Dict[str, str]:
	if not value:
		return {}
	try:
		data = json.loads(value)
	except ValueError:
		return {}
	if not isinstance(data, dict):
		return {}
	return {str(k): str(v) for k, v in data.items()}


class StorageConfig(BaseModel):
	model_config = ConfigDict(frozen=True)

	volume_name: Optional[str] = Field(default_factory=lambda: _env("SG_VOLUME_NAME", "R2_BUCKET_NAME"), description="Durable volume identifier")
	volume_handle: Optional[str] = Field(default_factory=lambda: _env("SG_VOLUME_HANDLE", "MOLTBOT_BUCKET"), description="Handle passed to the volume mounter")
	mount_path: str = Field(default_factory=lambda: os.getenv("SG_MOUNT_PATH", DEFAULT_MOUNT_PATH))
	state_subdir: str = Field(default=DEFAULT_STATE_SUBDIR, description="Gateway state directory inside the volume")
	state_links: Tuple[str, ...] = Field(default=("/root/clawd/data",), description="Paths symlinked to the durable state directory")
	local_state_dir: str = Field(default=DEFAULT_LOCAL_STATE_DIR, description="Local scratch state mirrored by sync")

	@property
	def is_configured(self) -> bool:
		return bool(self.volume_name) and bool(self.volume_handle) and bool(self.mount_path)

	@property
	def durable_state_dir(self) -> str:
		return f"{self.mount_path.rstrip('/')}/{self.state_subdir}"


class GatewayConfig(BaseModel):
	model_config = ConfigDict(frozen=True)

	api_keys: Dict[str, str] = Field(default_factory=_provider_keys_from_env, description="provider -> secret")
	gateway_token: Optional[str] = Field(default_factory=lambda: _env("SG_GATEWAY_TOKEN", "MOLTBOT_GATEWAY_TOKEN"))
	working_directory: str = Field(default=DEFAULT_WORKDIR)
	environment_variables: Dict[str, str] = Field(default_factory=lambda: _parse_json_env(os.getenv("SG_GATEWAY_ENV")))
	command: List[str] = Field(default_factory=lambda: [DEFAULT_LAUNCHER])
	signatures: Tuple[str, ...] = Field(default=("start-openclaw.sh", "openclaw"), description="Command-line fragments that identify the gateway")
	home: str = Field(default="/root")
	path: str = Field(default=DEFAULT_PATH)
	settle_delay: float = Field(default=2.0, ge=0, description="Seconds to wait after launch before verifying")
	start_timeout: float = Field(default=10.0, ge=0, description="Seconds to keep polling for a running gateway")
	poll_interval: float = Field(default=0.5, gt=0)


class Config(BaseModel):
	adapter: str = Field(default_factory=lambda: os.getenv("SG_ADAPTER", DEFAULT_ADAPTER))
	container: Optional[str] = Field(default_factory=lambda: os.getenv("SG_CONTAINER"))
	docker_host: Optional[str] = Field(default_factory=lambda: os.getenv("DOCKER_HOST"))
	storage: StorageConfig = Field(default_factory=StorageConfig)
	gateway: GatewayConfig = Field(default_factory=GatewayConfig)
