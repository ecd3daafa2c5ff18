from quarkboard_server.composer.compose import compose, script_url, style_url
from quarkboard_server.composer.emitter import emit
from quarkboard_server.composer.template import TemplateHandle, load_template

__all__ = ["TemplateHandle", "compose", "emit", "load_template", "script_url", "style_url"]
