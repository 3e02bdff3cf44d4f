"""Sandbox environment abstractions for local and Docker-backed sandboxes."""

from __future__ import annotations

from sandgate.config import Config
from sandgate.environment.base import SandboxEnvironment
from sandgate.environment.docker_runtime import DockerEnvironment
from sandgate.environment.local_runtime import LocalEnvironment


def resolve_environment(cfg: Config, environment: str | SandboxEnvironment | None = None) -> SandboxEnvironment:
    """Return ``environment`` if it is an instance, otherwise build one by name."""
    if environment is not None and not isinstance(environment, str):
        return environment
    name = environment or cfg.adapter or "local"
    if name == "local":
        return LocalEnvironment(discover=True)
    if name == "docker":
        if not cfg.container:
            raise ValueError("The docker adapter needs a container id or name (SG_CONTAINER)")
        return DockerEnvironment(cfg.container, base_url=cfg.docker_host)
    raise ValueError(f"Unknown sandbox adapter: {name}")


__all__ = [
    "SandboxEnvironment",
    "LocalEnvironment",
    "DockerEnvironment",
    "resolve_environment",
]
