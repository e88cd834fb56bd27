from .base import Option, Ping
from .registry import Protocol, ProtocolRegistry, default_registry
from .resolver import PinnedResolver

__all__ = ['Option', 'Ping', 'PinnedResolver', 'Protocol', 'ProtocolRegistry', 'default_registry']
