from .step_10_package import PackageStep
from .step_20_configure import ConfigureStep
from .step_30_service import ServiceStep
from .step_40_monitor import MonitorStep

__all__ = [
    "PackageStep",
    "ConfigureStep",
    "ServiceStep",
    "MonitorStep",
]
