"""
Runtime configuration for the course viewer
Values come from the environment (optionally a .env file) with sensible defaults
"""

import logging
import os

from dotenv import load_dotenv


DEFAULTS = {
    'DB_PATH': './data/gspro.db',
    'HOST': '0.0.0.0',
    'PORT': '3000',
    'SGT_BASE_URL': 'https://simulatorgolftour.com',
    'SGT_USER_AGENT': 'GSPro-Course-Viewer/1.0',
    'SGT_TIMEOUT': '30',
    'PUBLIC_DIR': './public/gsp',
    'SCRAPE_CRON': '0 */2 * * *',
    'SNAPSHOT_CRON': '0 10 * * *',
    'SCHEDULER_ENABLED': 'true',
    'LOG_LEVEL': 'INFO',
    'COURSE_DIR': './courses',
    'SYNC_TARGET_URL': 'http://localhost:3000',
}


def _as_bool(value):
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    def __init__(self, values=None):
        values = values or {}

        def get(key):
            return values.get(key, DEFAULTS[key])

        self.db_path = get('DB_PATH')
        self.host = get('HOST')
        self.port = int(get('PORT'))
        self.sgt_base_url = get('SGT_BASE_URL').rstrip('/')
        self.sgt_user_agent = get('SGT_USER_AGENT')
        self.sgt_timeout = float(get('SGT_TIMEOUT'))
        self.public_dir = get('PUBLIC_DIR')
        self.scrape_cron = get('SCRAPE_CRON')
        self.snapshot_cron = get('SNAPSHOT_CRON')
        self.scheduler_enabled = _as_bool(get('SCHEDULER_ENABLED'))
        self.log_level = get('LOG_LEVEL').upper()
        self.course_dir = get('COURSE_DIR')
        self.sync_target_url = get('SYNC_TARGET_URL').rstrip('/')

    def __repr__(self):
        return f"Config(db_path={self.db_path!r}, port={self.port}, sgt_base_url={self.sgt_base_url!r})"


def load_config(env_file=None):
    """Build a Config from the process environment, reading .env first if present"""
    load_dotenv(env_file)
    return Config({key: os.environ[key] for key in DEFAULTS if key in os.environ})


def setup_logging(level='INFO'):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
    )
