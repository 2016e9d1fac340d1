"""
Settings for HostBridge.

Example:
    ```python
    from hostbridge.settings import HostBridgeSettings

    settings = HostBridgeSettings.from_file("~/.hostbridge/config.yaml")
    print(settings.allowed_paths)
    ```
"""

from hostbridge.settings.config import HostBridgeSettings

__all__ = [
    "HostBridgeSettings",
]
