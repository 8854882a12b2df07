"""
Tether Shared Module
====================

Configuration, structured logging and console presentation shared by the
Tether engine, bridge and command-line front end.
"""

from shared.config import TetherConfig, get_config
from shared.logger import TetherLogger, get_logger

__all__ = ["TetherConfig", "get_config", "TetherLogger", "get_logger"]
