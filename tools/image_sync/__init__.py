"""
Docker 镜像同步到 CNB 仓库
"""

from .config import Credentials, SyncConfig
from .orchestrator import SyncOrchestrator
from .reference import Destination, ImageReference, Overrides, map_destination, parse
from .report import render
from .summary import RunSummary, Status, SyncOutcome

__version__ = "0.1.0"
