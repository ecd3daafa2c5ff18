"""End-to-end tests against the FastAPI app built by ``create_app``."""

import pathlib

import pytest
from fastapi.testclient import TestClient

from quarkboard_server.core.config import Settings
from quarkboard_server.core.errors import TemplateNotFoundError
from quarkboard_server.main import create_app
from quarkboard_server.plugin_runtime import PluginBase, PluginRegistry

from conftest import PAGE, TEST_REPOSITORY, TEST_VERSION

BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]

CLOCK_HOOK = (
    "def contribute_markup(document):\n"
    "    document.append_html(document.body, '<time id=\"now\"></time>')\n"
)


@pytest.fixture
def clock_plugin(add_plugin):
    def _add(name='clock', **manifest):
        data = {
            'files': ['plugin'],
            'assets': {'js': 'assets/js', 'css': 'assets/css', 'img': 'assets/img'},
            'scripts': ['clock.js'],
            'styles': ['clock.css'],
        }
        data.update(manifest)
        return add_plugin(name, data, {
            'plugin.py': CLOCK_HOOK,
            'assets/js/clock.js': 'tick();',
            'assets/css/clock.css': 'time { color: red; }',
            'assets/img/face.svg': '<svg></svg>',
        })
    return _add


def _assert_common_headers(response):
    assert response.headers['X-Quarkboard-Version'] == TEST_VERSION
    assert response.headers['X-Quarkboard-Repository'] == TEST_REPOSITORY
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert response.headers['X-Frame-Options'] == 'SAMEORIGIN'
    assert response.headers['Referrer-Policy'] == 'no-referrer'


class TestPage:
    def test_template_served_unchanged_without_plugins(self, make_client):
        with make_client() as client:
            response = client.get('/')
        assert response.status_code == 200
        assert response.text == PAGE
        assert response.headers['content-type'] == 'text/html; charset=utf-8'
        _assert_common_headers(response)
        assert 'Strict-Transport-Security' not in response.headers

    def test_plugin_contributions(self, make_client, clock_plugin):
        clock_plugin()
        with make_client() as client:
            body = client.get('/').text
        assert body == (
            '<html><head><link href="/clock/css/clock.css" rel="stylesheet"></head>'
            '<body><time id="now"></time>'
            '<script src="/clock/js/clock.js" type="application/javascript"></script>'
            '</body></html>'
        )

    def test_same_page_for_every_request(self, make_client, clock_plugin):
        clock_plugin()
        with make_client() as client:
            assert client.get('/').text == client.get('/').text

    def test_failing_plugin_does_not_break_page(self, make_client, add_plugin):
        add_plugin('angry', {'files': ['plugin'], 'scripts': ['angry.js']}, {
            'plugin.py': "def contribute_markup(document):\n    raise ValueError('no')\n",
        })
        add_plugin('calm', {'scripts': ['calm.js']})
        with make_client() as client:
            response = client.get('/')
        assert response.status_code == 200
        assert '/angry/js/angry.js' not in response.text
        assert '/calm/js/calm.js' in response.text

    def test_explicit_registry(self, make_client):
        registry = PluginRegistry([
            PluginBase('inline', markup=lambda doc: doc.append_html(doc.head, '<title>Inline</title>')),
        ])
        with make_client(registry=registry) as client:
            assert client.get('/').text == '<html><head><title>Inline</title></head><body></body></html>'
            plugins = client.get('/api/v1/plugins').json()
        assert plugins['statuses'] == {'inline': 'active'}

    def test_malformed_template_is_a_500(self, make_client, template_file):
        template_file.write_text('<html><body></div></body></html>', encoding='utf-8')
        with make_client() as client:
            response = client.get('/')
            assert client.get('/api/v1/version').status_code == 200
        assert response.status_code == 500
        assert 'malformed template' in response.json()['detail']
        _assert_common_headers(response)

    def test_hsts_when_tls_enabled(self, make_client):
        with make_client(https=True) as client:
            response = client.get('/')
        assert response.headers['Strict-Transport-Security'].startswith('max-age=')


class TestStaticAssets:
    def test_asset_served(self, make_client, clock_plugin):
        clock_plugin()
        with make_client() as client:
            response = client.get('/clock/js/clock.js')
        assert response.status_code == 200
        assert response.text == 'tick();'
        _assert_common_headers(response)

    def test_unlinked_category_still_served(self, make_client, clock_plugin):
        clock_plugin()
        with make_client() as client:
            page = client.get('/').text
            response = client.get('/clock/img/face.svg')
        assert response.status_code == 200
        assert '/clock/img/' not in page

    def test_missing_file_and_unknown_plugin(self, make_client, clock_plugin):
        clock_plugin()
        with make_client() as client:
            missing = client.get('/clock/js/nope.js')
            unknown = client.get('/ghost/js/clock.js')
            escape = client.get('/clock/js/%2e%2e/plugin.py')
        assert missing.status_code == 404
        assert unknown.status_code == 404
        assert escape.status_code == 404
        _assert_common_headers(missing)
        _assert_common_headers(unknown)

    def test_disabled_plugin_assets_still_served(self, make_client, clock_plugin):
        clock_plugin('sleepy', enabled=False)
        with make_client() as client:
            page = client.get('/').text
            response = client.get('/sleepy/js/clock.js')
        assert page == PAGE
        assert response.status_code == 200
        assert response.text == 'tick();'


class TestDiagnostics:
    def test_version(self, make_client):
        with make_client() as client:
            response = client.get('/api/v1/version')
        assert response.status_code == 200
        assert response.json() == {'version': TEST_VERSION, 'repository': TEST_REPOSITORY}

    def test_plugins_listing(self, make_client, clock_plugin, add_plugin):
        clock_plugin()
        add_plugin('needy', {'depends_on': ['ghost']})
        with make_client() as client:
            data = client.get('/api/v1/plugins').json()
        assert [p['name'] for p in data['plugins']] == ['clock']
        assert data['plugins'][0]['scripts'] == ['clock.js']
        assert data['plugins'][0]['asset_categories'] == ['css', 'img', 'js']
        assert {m['url_prefix'] for m in data['mounts']} == {'/clock/js', '/clock/css', '/clock/img'}
        assert all(m['available'] for m in data['mounts'])
        assert data['statuses'] == {'clock': 'active', 'needy': 'dependency_missing'}
        assert 'ghost' in data['errors']['needy']


class TestBoot:
    def test_missing_template_is_fatal(self, make_settings, tmp_path):
        with pytest.raises(TemplateNotFoundError):
            create_app(make_settings(template_path=tmp_path / 'absent.html'))

    def test_bundled_template_and_plugins(self):
        settings = Settings(
            template_path=BACKEND_ROOT / 'templates' / 'index.html',
            plugins_dir=BACKEND_ROOT / 'plugins',
            version='0.1.0',
        )
        with TestClient(create_app(settings)) as client:
            page = client.get('/')
            script = client.get('/clock/js/clock.js')
        assert page.status_code == 200
        assert '<h1>Quarkboard</h1>' in page.text
        assert 'id="qb-clock-now"' in page.text
        assert page.text.index('/clock/css/clock.css') < page.text.index('</head>')
        assert page.text.index('/clock/js/clock.js') > page.text.index('<main id="board">')
        assert script.status_code == 200
