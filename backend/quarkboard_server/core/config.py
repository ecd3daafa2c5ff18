from pathlib import Path
from pydantic import BaseModel
import os
from dotenv import load_dotenv
from quarkboard_server import __version__

"""Central configuration.

Values are read once at import from environment variables. A `config.env`
file in the working directory (or the path named by QUARKBOARD_CONFIG_FILE)
is loaded first so local setups can keep settings out of the shell.

Env vars:
  QUARKBOARD_HOSTNAME     - bind host (default localhost)
  QUARKBOARD_PORT         - bind port (default 3074)
  QUARKBOARD_HTTPS        - serve over TLS (1/true/yes/on)
  QUARKBOARD_PRIVATE_KEY  - TLS private key path
  QUARKBOARD_CERTIFICATE  - TLS certificate path
  QUARKBOARD_TEMPLATE     - base page template file
  QUARKBOARD_PLUGINS_DIR  - directory scanned for plugin.yml manifests
  QUARKBOARD_LOG_LEVEL    - DEBUG, INFO, WARNING, ERROR, CRITICAL
  QUARKBOARD_VERSION      - override reported version
  QUARKBOARD_REPOSITORY   - override reported repository
"""

_cfg_override = os.getenv('QUARKBOARD_CONFIG_FILE')
_candidates = []
if _cfg_override:
    _candidates.append(Path(_cfg_override))
_candidates.append(Path.cwd() / 'config.env')
for _p in _candidates:
    if _p.is_file():
        load_dotenv(str(_p))
        break

_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_REPOSITORY = 'https://github.com/quarkboard/quarkboard-server'


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _package_repository() -> str:
    """Repository URL from the installed distribution's Project-URL entries."""
    try:
        from importlib.metadata import metadata, PackageNotFoundError
        try:
            meta = metadata('quarkboard-server')
        except PackageNotFoundError:
            return DEFAULT_REPOSITORY
    except Exception:
        return DEFAULT_REPOSITORY
    for entry in meta.get_all('Project-URL') or []:
        label, _, url = entry.partition(',')
        if label.strip().lower() in {'repository', 'source'} and url.strip():
            return url.strip()
    return DEFAULT_REPOSITORY


class Settings(BaseModel):
    app_name: str = 'Quarkboard'
    api_v1_prefix: str = '/api/v1'
    hostname: str = os.getenv('QUARKBOARD_HOSTNAME', 'localhost')
    port: int = int(os.getenv('QUARKBOARD_PORT', '3074'))
    https: bool = _env_flag('QUARKBOARD_HTTPS')
    private_key: Path | None = Path(os.environ['QUARKBOARD_PRIVATE_KEY']) if os.getenv('QUARKBOARD_PRIVATE_KEY') else None
    certificate: Path | None = Path(os.environ['QUARKBOARD_CERTIFICATE']) if os.getenv('QUARKBOARD_CERTIFICATE') else None
    template_path: Path = Path(os.getenv('QUARKBOARD_TEMPLATE', str(_BACKEND_ROOT / 'templates' / 'index.html')))
    plugins_dir: Path = Path(os.getenv('QUARKBOARD_PLUGINS_DIR', str(_BACKEND_ROOT / 'plugins')))
    # Logging level for the server (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    log_level: str = os.getenv('QUARKBOARD_LOG_LEVEL', 'INFO')
    version: str = os.getenv('QUARKBOARD_VERSION', __version__)
    repository: str = os.getenv('QUARKBOARD_REPOSITORY') or _package_repository()

settings = Settings()
