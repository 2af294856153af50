import re

import pytest

from config import DEFAULTS, Config, load_config
from database import REQUIRED_TABLES, camel_case, connect, init_db, now_iso, to_camel, validate_database


def test_config_defaults():
    config = Config()
    assert config.port == 3000
    assert config.scrape_cron == '0 */2 * * *'
    assert config.snapshot_cron == '0 10 * * *'
    assert config.scheduler_enabled is True
    assert config.sgt_timeout == 30.0


def test_config_overrides():
    config = Config({'PORT': '8080', 'SCHEDULER_ENABLED': 'no', 'SGT_BASE_URL': 'https://sgt.test/', 'LOG_LEVEL': 'debug'})
    assert config.port == 8080
    assert config.scheduler_enabled is False
    assert config.sgt_base_url == 'https://sgt.test'
    assert config.log_level == 'DEBUG'


def test_load_config_reads_env_file(tmp_path, monkeypatch):
    # setenv first so teardown removes whatever load_dotenv writes
    for key in DEFAULTS:
        monkeypatch.setenv(key, '')
        monkeypatch.delenv(key)
    env_file = tmp_path / '.env'
    env_file.write_text('DB_PATH=/srv/gspro/courses.db\nPORT=4000\n')

    config = load_config(str(env_file))

    assert config.db_path == '/srv/gspro/courses.db'
    assert config.port == 4000
    assert config.host == '0.0.0.0'


def test_now_iso_format():
    assert re.fullmatch(r'\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z', now_iso())


def test_init_db_is_idempotent(conn):
    init_db(conn)
    assert conn.execute("SELECT COUNT(*) FROM record_modes").fetchone()[0] == 6


def test_validate_database(conn, config):
    tables = validate_database(config.db_path)
    assert set(REQUIRED_TABLES) <= set(tables)


def test_validate_database_missing_file(tmp_path):
    with pytest.raises(RuntimeError, match='not found'):
        validate_database(str(tmp_path / 'nope.db'))


def test_validate_database_missing_tables(tmp_path):
    db_path = str(tmp_path / 'partial.db')
    partial = connect(db_path)
    partial.execute("CREATE TABLE courses (id INTEGER PRIMARY KEY)")
    partial.commit()
    partial.close()

    with pytest.raises(RuntimeError, match='tee_boxes'):
        validate_database(db_path)


def test_camel_case():
    assert camel_case('sgt_splash_url') == 'sgtSplashUrl'
    assert camel_case('total_inner_oob') == 'totalInnerOOB'
    assert to_camel({'is_par_3': True, 'name': 'x'}) == {'isPar3': True, 'name': 'x'}
