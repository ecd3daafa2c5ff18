import sys
import pathlib
from typing import Dict, Optional

import pytest
import yaml
from fastapi.testclient import TestClient

# Ensure backend root (containing 'quarkboard_server') is on sys.path
BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from quarkboard_server.core.config import Settings
from quarkboard_server.main import create_app

TEST_VERSION = '1.4.2'
TEST_REPOSITORY = 'https://example.invalid/quarkboard/quarkboard-server'
PAGE = '<html><head></head><body></body></html>'


def write_plugin(
    plugins_dir: pathlib.Path,
    name: str,
    manifest: Optional[dict] = None,
    files: Optional[Dict[str, str]] = None,
) -> pathlib.Path:
    """Create ``plugins_dir/name`` with a plugin.yml and any extra files."""
    root = plugins_dir / name
    root.mkdir(parents=True, exist_ok=True)
    data = {'name': name, 'version': '1.0.0'}
    data.update(manifest or {})
    (root / 'plugin.yml').write_text(yaml.safe_dump(data), encoding='utf-8')
    for rel, content in (files or {}).items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding='utf-8')
    return root


@pytest.fixture
def plugins_dir(tmp_path):
    path = tmp_path / 'plugins'
    path.mkdir()
    return path


@pytest.fixture
def template_file(tmp_path):
    path = tmp_path / 'index.html'
    path.write_text(PAGE, encoding='utf-8')
    return path


@pytest.fixture
def make_settings(template_file, plugins_dir):
    def _make(**overrides) -> Settings:
        values = {
            'template_path': template_file,
            'plugins_dir': plugins_dir,
            'version': TEST_VERSION,
            'repository': TEST_REPOSITORY,
            'https': False,
            'log_level': 'DEBUG',
        }
        values.update(overrides)
        return Settings(**values)
    return _make


@pytest.fixture
def make_client(make_settings):
    """Build a TestClient around a freshly created app."""
    def _make(registry=None, **overrides) -> TestClient:
        app = create_app(make_settings(**overrides), registry=registry)
        return TestClient(app)
    return _make


@pytest.fixture
def add_plugin(plugins_dir):
    """``add_plugin(name, manifest=None, files=None)`` writes a plugin under the test plugins dir."""
    def _add(name: str, manifest: Optional[dict] = None, files: Optional[Dict[str, str]] = None) -> pathlib.Path:
        return write_plugin(plugins_dir, name, manifest, files)
    return _add
