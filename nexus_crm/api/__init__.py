"""HTTP clients for the remote store and the messaging bridge.

Usage:
    from nexus_crm.api import RemoteStoreClient, RemoteConfig

    async with RemoteStoreClient(RemoteConfig(url, anon_key), manager.access_token) as remote:
        rows = await remote.select_all("leads")
"""

from .bridge import BridgeClient, BridgeUnavailable
from .client import RemoteConfig, RemoteStoreClient, RemoteStoreError, eq

__all__ = [
    "BridgeClient",
    "BridgeUnavailable",
    "RemoteConfig",
    "RemoteStoreClient",
    "RemoteStoreError",
    "eq",
]
