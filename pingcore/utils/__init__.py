from .config import ConfigManager
from .logger import Logger

__all__ = ['ConfigManager', 'Logger']
