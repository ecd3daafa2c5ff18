from quarkboard_server.assets.mounts import MountEntry, MountTable

__all__ = ["MountEntry", "MountTable"]
