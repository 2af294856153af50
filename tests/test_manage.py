import pytest

import manage
from conftest import SINGLES_HTML
from config import DEFAULTS


@pytest.fixture
def env_file(tmp_path, monkeypatch):
    for key in DEFAULTS:
        monkeypatch.setenv(key, '')
        monkeypatch.delenv(key)
    path = tmp_path / '.env'
    path.write_text(f"DB_PATH={tmp_path / 'manage.db'}\nSCHEDULER_ENABLED=false\n")
    return str(path)


def test_health_fails_without_database(env_file, capsys):
    assert manage.main(['--env-file', env_file, 'health']) == 1
    assert 'Database check failed' in capsys.readouterr().out


def test_init_db_then_health(env_file, capsys):
    assert manage.main(['--env-file', env_file, 'init-db']) == 0
    assert manage.main(['--env-file', env_file, 'health']) == 0
    assert 'Database OK' in capsys.readouterr().out


def test_snapshot_with_date(env_file, capsys):
    manage.main(['--env-file', env_file, 'init-db'])
    assert manage.main(['--env-file', env_file, 'snapshot', '--date', '2025-01-31']) == 0
    assert 'Snapshot 2025-01-31: 0 players' in capsys.readouterr().out


def test_find_missing(env_file, tmp_path, capsys):
    html_file = tmp_path / 'records.html'
    html_file.write_text(SINGLES_HTML, encoding='utf-8')
    manage.main(['--env-file', env_file, 'init-db'])

    assert manage.main(['--env-file', env_file, 'find-missing', str(html_file), 'alice']) == 0

    out = capsys.readouterr().out
    assert '2 missing' in out
    assert '303: Missing Course' in out


def test_command_is_required():
    with pytest.raises(SystemExit):
        manage.main([])
