"""UDP broadcast service discovery.

A client broadcasts a query on the local subnet and collects the replies that
arrive within a fixed window. A server listens for those queries and answers
each one with a fixed payload.
"""

from .client import AutoDiscoveryClient
from .config import ClientConfig, Config, ServerConfig, load_config
from .records import RecordFactory, ServerInformation, normalize_payload
from .server import AutoDiscoveryServer, ClientMessage

__version__ = "0.1.0"

__all__ = [
    "AutoDiscoveryClient",
    "AutoDiscoveryServer",
    "ClientMessage",
    "ServerInformation",
    "RecordFactory",
    "normalize_payload",
    "ClientConfig",
    "ServerConfig",
    "Config",
    "load_config",
]
