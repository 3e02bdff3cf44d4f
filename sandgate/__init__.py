from sandgate.config import Config, GatewayConfig, StorageConfig
from sandgate.core.gateway import Gateway
from sandgate.core.gateway_async import AsyncGateway
from sandgate.core.storage import StorageMountManager
from sandgate.core.supervisor import GatewaySupervisor
from sandgate.core.sync import SyncReconciler
from sandgate.types import MountResult, ProcessDescriptor, SyncOutcome

__all__ = [
	"Config",
	"GatewayConfig",
	"StorageConfig",
	"Gateway",
	"AsyncGateway",
	"StorageMountManager",
	"GatewaySupervisor",
	"SyncReconciler",
	"MountResult",
	"ProcessDescriptor",
	"SyncOutcome",
]
