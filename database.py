"""
SQLite storage for courses, records, history and rank snapshots
"""

import json
import logging
import os
import sqlite3
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    'courses',
    'tee_boxes',
    'gk_data',
    'tags',
    'course_to_tags',
    'record_modes',
    'players',
    'teams',
    'team_members',
    'course_records',
    'scrape_runs',
    'course_record_history',
    'player_rank_snapshots',
]

SCHEMA = """
CREATE TABLE IF NOT EXISTS courses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    alternate_name TEXT DEFAULT '',
    location TEXT NOT NULL,
    country TEXT DEFAULT 'USA',
    holes INTEGER NOT NULL,
    altitude INTEGER DEFAULT 0,
    grade INTEGER DEFAULT 0,
    designer TEXT DEFAULT '',
    difficulty INTEGER DEFAULT 0,
    graphics INTEGER DEFAULT 0,
    golf_quality INTEGER DEFAULT 0,
    description TEXT DEFAULT '-',
    opcd_name TEXT DEFAULT '',
    opcd_version TEXT DEFAULT '',
    added_date TEXT DEFAULT '',
    updated_date TEXT DEFAULT '',
    sgt_id TEXT DEFAULT '',
    sgt_splash_url TEXT DEFAULT '',
    sgt_youtube_url TEXT DEFAULT '',
    par INTEGER DEFAULT 72,
    is_par_3 INTEGER DEFAULT 0,
    largest_elevation_drop INTEGER DEFAULT 0,
    average_elevation_difference INTEGER DEFAULT 0,
    total_hazards INTEGER DEFAULT 0,
    island_greens INTEGER DEFAULT 0,
    total_water_hazards INTEGER DEFAULT 0,
    total_inner_oob INTEGER DEFAULT 0,
    range_enabled INTEGER DEFAULT 0,
    enabled INTEGER DEFAULT 1
);

CREATE TABLE IF NOT EXISTS tee_boxes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    course_id INTEGER NOT NULL REFERENCES courses(id),
    name TEXT NOT NULL,
    rating REAL NOT NULL DEFAULT 0,
    slope REAL NOT NULL DEFAULT 0,
    length REAL NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS gk_data (
    course_id INTEGER PRIMARY KEY NOT NULL REFERENCES courses(id),
    data TEXT
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS course_to_tags (
    course_id INTEGER NOT NULL REFERENCES courses(id),
    tag_id INTEGER NOT NULL REFERENCES tags(id),
    PRIMARY KEY (course_id, tag_id)
);

CREATE TABLE IF NOT EXISTS record_modes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tee_type TEXT NOT NULL,
    player_format TEXT NOT NULL,
    putting_mode TEXT NOT NULL,
    is_team INTEGER NOT NULL DEFAULT 0,
    team_size INTEGER NOT NULL DEFAULT 1,
    sgt_api_url TEXT,
    display_name TEXT NOT NULL,
    short_name TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 0,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS players (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    sgt_username TEXT NOT NULL UNIQUE,
    display_name TEXT NOT NULL,
    country_code TEXT,
    avatar_url TEXT,
    first_seen_at TEXT NOT NULL,
    last_seen_at TEXT NOT NULL,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS teams (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    record_mode_id INTEGER NOT NULL REFERENCES record_modes(id),
    team_hash TEXT NOT NULL UNIQUE,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS team_members (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    team_id INTEGER NOT NULL REFERENCES teams(id),
    player_id INTEGER NOT NULL REFERENCES players(id),
    position INTEGER NOT NULL DEFAULT 1,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS course_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    course_id INTEGER NOT NULL REFERENCES courses(id),
    record_mode_id INTEGER NOT NULL REFERENCES record_modes(id),
    player_id INTEGER REFERENCES players(id),
    team_id INTEGER REFERENCES teams(id),
    score TEXT NOT NULL,
    score_numeric INTEGER NOT NULL,
    record_date TEXT,
    scraped_at TEXT NOT NULL,
    created_at TEXT,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS scrape_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    started_at TEXT NOT NULL,
    completed_at TEXT,
    status TEXT NOT NULL,
    record_modes_scraped TEXT,
    courses_processed INTEGER DEFAULT 0,
    records_found INTEGER DEFAULT 0,
    records_created INTEGER DEFAULT 0,
    records_updated INTEGER DEFAULT 0,
    players_created INTEGER DEFAULT 0,
    error_message TEXT,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS course_record_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    course_id INTEGER NOT NULL REFERENCES courses(id),
    record_mode_id INTEGER NOT NULL REFERENCES record_modes(id),
    scrape_run_id INTEGER REFERENCES scrape_runs(id),
    previous_player_id INTEGER REFERENCES players(id),
    previous_score TEXT,
    previous_score_numeric INTEGER,
    previous_record_date TEXT,
    new_player_id INTEGER NOT NULL REFERENCES players(id),
    new_score TEXT NOT NULL,
    new_score_numeric INTEGER NOT NULL,
    new_record_date TEXT,
    change_type TEXT NOT NULL,
    score_improvement INTEGER,
    detected_at TEXT NOT NULL,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS player_rank_snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    snapshot_date TEXT NOT NULL,
    player_id INTEGER NOT NULL REFERENCES players(id),
    overall_rank INTEGER NOT NULL,
    tips_rank INTEGER,
    sgt_rank INTEGER,
    total_records INTEGER NOT NULL DEFAULT 0,
    tips_records INTEGER NOT NULL DEFAULT 0,
    sgt_records INTEGER NOT NULL DEFAULT 0,
    rank_change INTEGER NOT NULL DEFAULT 0,
    records_gained INTEGER NOT NULL DEFAULT 0,
    records_lost INTEGER NOT NULL DEFAULT 0,
    created_at TEXT,
    UNIQUE (snapshot_date, player_id)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_course_records_course_mode
    ON course_records (course_id, record_mode_id);
CREATE INDEX IF NOT EXISTS idx_history_detected_at
    ON course_record_history (detected_at);
CREATE INDEX IF NOT EXISTS idx_courses_sgt_id ON courses (sgt_id);
"""

# (tee_type, player_format, putting_mode, is_team, team_size, display_name, short_name, is_active)
RECORD_MODES = [
    ('tips', 'single', 'putting', 0, 1, 'Tips Singles', 'Tips', 1),
    ('sgt', 'single', 'putting', 0, 1, 'SGT Singles', 'SGT', 1),
    ('tips', 'single', 'no-putting', 0, 1, 'Tips Singles (Auto Putt)', 'Tips AP', 0),
    ('sgt', 'single', 'no-putting', 0, 1, 'SGT Singles (Auto Putt)', 'SGT AP', 0),
    ('tips', 'team', 'putting', 1, 2, 'Tips Teams', 'Tips Team', 0),
    ('sgt', 'team', 'putting', 1, 2, 'SGT Teams', 'SGT Team', 0),
]

BOOLEAN_COLUMNS = {'is_par_3', 'range_enabled', 'enabled', 'is_team', 'is_active'}


def now_iso():
    """UTC timestamp in the same shape the web client sends (2025-01-31T10:00:00.000Z)"""
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def connect(db_path):
    """Open a connection with WAL journaling and row access by column name"""
    directory = os.path.dirname(db_path)
    if directory and db_path != ':memory:':
        os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute('PRAGMA journal_mode = WAL')
    conn.execute('PRAGMA synchronous = NORMAL')
    conn.execute('PRAGMA foreign_keys = ON')
    return conn


def init_db(conn):
    """Create missing tables and seed the record modes"""
    conn.executescript(SCHEMA)
    seed_record_modes(conn)
    conn.commit()
    logger.info("Database schema ready")


def seed_record_modes(conn):
    created_at = now_iso()
    for tee_type, player_format, putting_mode, is_team, team_size, display_name, short_name, is_active in RECORD_MODES:
        existing = conn.execute(
            "SELECT id FROM record_modes WHERE tee_type = ? AND player_format = ? AND putting_mode = ?",
            (tee_type, player_format, putting_mode),
        ).fetchone()
        if existing:
            continue
        conn.execute(
            """
            INSERT INTO record_modes
                (tee_type, player_format, putting_mode, is_team, team_size,
                 display_name, short_name, is_active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (tee_type, player_format, putting_mode, is_team, team_size,
             display_name, short_name, is_active, created_at),
        )


def row_to_dict(row):
    """Convert a sqlite3.Row to a plain dict, turning flag columns into booleans"""
    if row is None:
        return None
    data = dict(row)
    for key in BOOLEAN_COLUMNS:
        if key in data and data[key] is not None:
            data[key] = bool(data[key])
    return data


def rows_to_dicts(rows):
    return [row_to_dict(row) for row in rows]


def dump_json(value):
    return json.dumps(value) if value is not None else None


def load_json(text):
    return json.loads(text) if text else None


def validate_database(db_path):
    """
    Check the database file is readable and holds every required table
    Returns the list of tables found; raises RuntimeError when any are missing
    """
    if not os.path.exists(db_path):
        raise RuntimeError(f"Database file not found: {db_path}")

    conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)
    try:
        conn.execute("SELECT 1").fetchone()
        table_names = [
            row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        ]
    finally:
        conn.close()

    missing = [table for table in REQUIRED_TABLES if table not in table_names]
    if missing:
        raise RuntimeError(f"Missing required tables: {', '.join(missing)}")

    return table_names


CAMEL_CASE_OVERRIDES = {'total_inner_oob': 'totalInnerOOB'}


def camel_case(name):
    if name in CAMEL_CASE_OVERRIDES:
        return CAMEL_CASE_OVERRIDES[name]
    head, *rest = name.split('_')
    return head + ''.join(part[:1].upper() + part[1:] for part in rest)


def to_camel(data):
    """Rename snake_case keys to the camelCase names the web client reads"""
    return {camel_case(key): value for key, value in data.items()}
