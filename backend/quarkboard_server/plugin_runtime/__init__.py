from quarkboard_server.plugin_runtime.models import PluginBase, validate_plugin_name
from quarkboard_server.plugin_runtime.registry import PluginRegistry

__all__ = ["PluginBase", "PluginRegistry", "validate_plugin_name"]
