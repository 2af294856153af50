"""
Course records scraper
Scrapes Tips and SGT singles records and keeps a history of every record change

Courses, players and existing records are loaded into memory up front and all
writes for a run happen in a single transaction, with history rows inserted as
one batch at the end.
"""

import json
import logging
import time

from database import now_iso, row_to_dict
from html_parser import parse_singles_response

logger = logging.getLogger(__name__)

SINGLES_MODES = ['tips-single-putting', 'sgt-single-putting']

CHANGE_INITIAL = 'INITIAL'
CHANGE_BROKEN = 'BROKEN'
CHANGE_IMPROVED = 'IMPROVED'

HISTORY_COLUMNS = [
    'course_id', 'record_mode_id', 'scrape_run_id', 'previous_player_id', 'previous_score',
    'previous_score_numeric', 'previous_record_date', 'new_player_id', 'new_score',
    'new_score_numeric', 'new_record_date', 'change_type', 'score_improvement',
    'detected_at', 'created_at',
]


def _elapsed_ms(start):
    return round((time.perf_counter() - start) * 1000)


def new_scrape_result():
    return {
        'success': False,
        'rows_processed': 0,
        'tips_records_found': 0,
        'sgt_records_found': 0,
        'players_created': 0,
        'players_updated': 0,
        'records_created': 0,
        'records_updated': 0,
        'errors': [],
        'timings': {
            'total_ms': 0,
            'fetch_ms': 0,
            'parse_ms': 0,
            'cache_load_ms': 0,
            'transaction_ms': 0,
            'history_batch_insert_ms': 0,
        },
    }


def get_record_mode_id(conn, tee_type, player_format='single', putting_mode='putting'):
    row = conn.execute(
        "SELECT id FROM record_modes WHERE tee_type = ? AND player_format = ? AND putting_mode = ?",
        (tee_type, player_format, putting_mode),
    ).fetchone()
    return row['id'] if row else None


def upsert_player(conn, record, player_cache=None):
    """
    Create the player or refresh their display name, country and avatar
    Returns (player_id, created)
    """
    now = now_iso()
    username = record['player_username']

    if player_cache is not None and username in player_cache:
        player_id = player_cache[username]
    else:
        row = conn.execute("SELECT id FROM players WHERE sgt_username = ?", (username,)).fetchone()
        player_id = row['id'] if row else None

    if player_id is not None:
        conn.execute(
            """
            UPDATE players
            SET display_name = ?, country_code = ?, avatar_url = ?, last_seen_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (record['player_display_name'], record['country_code'], record['avatar_url'], now, now, player_id),
        )
        if player_cache is not None:
            player_cache[username] = player_id
        return player_id, False

    cursor = conn.execute(
        """
        INSERT INTO players
            (sgt_username, display_name, country_code, avatar_url,
             first_seen_at, last_seen_at, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (username, record['player_display_name'], record['country_code'], record['avatar_url'],
         now, now, now, now),
    )
    if player_cache is not None:
        player_cache[username] = cursor.lastrowid
    return cursor.lastrowid, True


def classify_change(existing, player_id, record):
    """
    Compare the stored record with a freshly scraped one
    Returns BROKEN (new holder), IMPROVED (same holder, new score) or None (unchanged)
    """
    if existing['player_id'] != player_id:
        return CHANGE_BROKEN
    if existing['score'] != record['score']:
        return CHANGE_IMPROVED
    return None


def history_entry(course_id, record_mode_id, player_id, record, change_type, now,
                  existing=None, scrape_run_id=None):
    previous = existing or {}
    score_improvement = None
    if existing is not None and existing.get('score_numeric') is not None:
        score_improvement = existing['score_numeric'] - record['score_numeric']

    return {
        'course_id': course_id,
        'record_mode_id': record_mode_id,
        'scrape_run_id': scrape_run_id,
        'previous_player_id': previous.get('player_id'),
        'previous_score': previous.get('score'),
        'previous_score_numeric': previous.get('score_numeric'),
        'previous_record_date': previous.get('record_date'),
        'new_player_id': player_id,
        'new_score': record['score'],
        'new_score_numeric': record['score_numeric'],
        'new_record_date': record['record_date'],
        'change_type': change_type,
        'score_improvement': score_improvement,
        'detected_at': now,
        'created_at': now,
    }


def upsert_course_record(conn, course_id, record_mode_id, player_id, record, record_cache,
                         pending_history, scrape_run_id=None):
    """
    Insert, update or touch the current record for a course and mode
    Returns 'created', 'updated' or None; history rows are queued on pending_history
    """
    now = now_iso()
    cache_key = (course_id, record_mode_id)
    existing = record_cache.get(cache_key)

    if existing is None:
        cursor = conn.execute(
            """
            INSERT INTO course_records
                (course_id, record_mode_id, player_id, team_id, score, score_numeric,
                 record_date, scraped_at, created_at, updated_at)
            VALUES (?, ?, ?, NULL, ?, ?, ?, ?, ?, ?)
            """,
            (course_id, record_mode_id, player_id, record['score'], record['score_numeric'],
             record['record_date'], now, now, now),
        )
        record_cache[cache_key] = row_to_dict(conn.execute(
            "SELECT * FROM course_records WHERE id = ?", (cursor.lastrowid,)
        ).fetchone())
        pending_history.append(history_entry(
            course_id, record_mode_id, player_id, record, CHANGE_INITIAL, now,
            scrape_run_id=scrape_run_id,
        ))
        return 'created'

    change_type = classify_change(existing, player_id, record)
    if change_type is None:
        conn.execute("UPDATE course_records SET scraped_at = ? WHERE id = ?", (now, existing['id']))
        return None

    entry = history_entry(
        course_id, record_mode_id, player_id, record, change_type, now,
        existing=existing, scrape_run_id=scrape_run_id,
    )
    pending_history.append(entry)
    logger.info(
        f"Record {change_type}: Course {course_id}, Mode {record_mode_id}, "
        f"{existing['score']} -> {record['score']} (improvement: {entry['score_improvement']})"
    )

    conn.execute(
        """
        UPDATE course_records
        SET player_id = ?, score = ?, score_numeric = ?, record_date = ?, scraped_at = ?, updated_at = ?
        WHERE id = ?
        """,
        (player_id, record['score'], record['score_numeric'], record['record_date'], now, now, existing['id']),
    )
    existing.update({
        'player_id': player_id,
        'score': record['score'],
        'score_numeric': record['score_numeric'],
        'record_date': record['record_date'],
        'scraped_at': now,
        'updated_at': now,
    })
    return 'updated'


def insert_history(conn, entries):
    placeholders = ', '.join('?' for _ in HISTORY_COLUMNS)
    conn.executemany(
        f"INSERT INTO course_record_history ({', '.join(HISTORY_COLUMNS)}) VALUES ({placeholders})",
        [[entry[column] for column in HISTORY_COLUMNS] for entry in entries],
    )


def _process_record(conn, course_id, record_mode_id, record, result, player_cache, record_cache,
                    pending_history, scrape_run_id):
    player_id, created = upsert_player(conn, record, player_cache)
    if created:
        result['players_created'] += 1
    else:
        result['players_updated'] += 1

    outcome = upsert_course_record(
        conn, course_id, record_mode_id, player_id, record, record_cache, pending_history, scrape_run_id
    )
    if outcome == 'created':
        result['records_created'] += 1
    elif outcome == 'updated':
        result['records_updated'] += 1


def apply_singles_rows(conn, rows, result=None, scrape_run_id=None):
    """
    Write parsed singles rows to the database in one transaction
    Rows for courses we do not track are skipped
    """
    result = result if result is not None else new_scrape_result()
    timings = result['timings']

    tips_mode_id = get_record_mode_id(conn, 'tips')
    sgt_mode_id = get_record_mode_id(conn, 'sgt')
    if not tips_mode_id or not sgt_mode_id:
        raise RuntimeError("Record modes not found in database. Run init-db first.")

    logger.info("Pre-loading caches for batch processing...")
    cache_start = time.perf_counter()
    course_cache = {
        row['sgt_id']: row['id']
        for row in conn.execute("SELECT id, sgt_id FROM courses WHERE sgt_id IS NOT NULL AND sgt_id != ''")
    }
    player_cache = {row['sgt_username']: row['id'] for row in conn.execute("SELECT id, sgt_username FROM players")}
    record_cache = {
        (row['course_id'], row['record_mode_id']): row_to_dict(row)
        for row in conn.execute(
            "SELECT * FROM course_records WHERE record_mode_id IN (?, ?)", (tips_mode_id, sgt_mode_id)
        )
    }
    timings['cache_load_ms'] = _elapsed_ms(cache_start)
    logger.info(
        f"Loaded {len(course_cache)} courses, {len(player_cache)} players and "
        f"{len(record_cache)} records in {timings['cache_load_ms']}ms"
    )

    pending_history = []
    transaction_start = time.perf_counter()
    with conn:
        for row in rows:
            result['rows_processed'] += 1
            course_id = course_cache.get(row['sgt_course_id'])
            if course_id is None:
                continue

            try:
                if row['tips_record']:
                    result['tips_records_found'] += 1
                    _process_record(conn, course_id, tips_mode_id, row['tips_record'], result,
                                    player_cache, record_cache, pending_history, scrape_run_id)
                if row['sgt_record']:
                    result['sgt_records_found'] += 1
                    _process_record(conn, course_id, sgt_mode_id, row['sgt_record'], result,
                                    player_cache, record_cache, pending_history, scrape_run_id)
            except Exception as e:
                message = f"Error processing course {row['sgt_course_id']}: {e}"
                logger.error(message)
                result['errors'].append(message)

        if pending_history:
            history_start = time.perf_counter()
            logger.info(f"Batch inserting {len(pending_history)} history records...")
            insert_history(conn, pending_history)
            timings['history_batch_insert_ms'] = _elapsed_ms(history_start)

    timings['transaction_ms'] = _elapsed_ms(transaction_start)
    logger.info(f"Transaction completed in {timings['transaction_ms']}ms")
    return result


def scrape_singles_records(conn, client, scrape_run_id=None):
    """Fetch, parse and store all singles records (Tips + SGT)"""
    total_start = time.perf_counter()
    result = new_scrape_result()
    timings = result['timings']

    try:
        fetch_start = time.perf_counter()
        html = client.fetch_singles_records()
        timings['fetch_ms'] = _elapsed_ms(fetch_start)
        logger.info(f"Fetch completed in {timings['fetch_ms']}ms")

        parse_start = time.perf_counter()
        rows = parse_singles_response(html, client.base_url)
        timings['parse_ms'] = _elapsed_ms(parse_start)
        logger.info(f"Parsed {len(rows)} course rows in {timings['parse_ms']}ms")

        apply_singles_rows(conn, rows, result, scrape_run_id)
        result['success'] = True
        logger.info(
            f"Scrape complete: {result['records_created']} created, "
            f"{result['records_updated']} updated, {result['players_created']} new players"
        )
    except Exception as e:
        message = f"Scrape failed: {e}"
        logger.error(message)
        result['errors'].append(message)

    timings['total_ms'] = _elapsed_ms(total_start)
    logger.info(f"Total scrape time: {timings['total_ms']}ms")
    return result


def run_records_scrape(conn, client):
    """
    Full records scrape tracked as a scrape_runs row
    Returns {run_id, success, summary, timings}
    """
    now = now_iso()
    with conn:
        cursor = conn.execute(
            "INSERT INTO scrape_runs (started_at, status, record_modes_scraped, created_at) VALUES (?, ?, ?, ?)",
            (now, 'running', json.dumps(SINGLES_MODES), now),
        )
    run_id = cursor.lastrowid
    logger.info(f"Started scrape run #{run_id}")

    try:
        result = scrape_singles_records(conn, client, scrape_run_id=run_id)
    except Exception as e:
        with conn:
            conn.execute(
                "UPDATE scrape_runs SET completed_at = ?, status = 'failed', error_message = ? WHERE id = ?",
                (now_iso(), str(e), run_id),
            )
        logger.error(f"Scrape run #{run_id} failed: {e}")
        return {'run_id': run_id, 'success': False, 'summary': f"Failed: {e}", 'timings': None}

    with conn:
        conn.execute(
            """
            UPDATE scrape_runs
            SET completed_at = ?, status = ?, courses_processed = ?, records_found = ?,
                records_created = ?, records_updated = ?, players_created = ?, error_message = ?
            WHERE id = ?
            """,
            (now_iso(), 'completed' if result['success'] else 'failed', result['rows_processed'],
             result['tips_records_found'] + result['sgt_records_found'], result['records_created'],
             result['records_updated'], result['players_created'],
             '; '.join(result['errors']) if result['errors'] else None, run_id),
        )

    summary = (
        f"Run #{run_id}: {result['records_created']} created, {result['records_updated']} updated, "
        f"{result['players_created']} new players"
    )
    logger.info(summary)
    return {'run_id': run_id, 'success': result['success'], 'summary': summary, 'timings': result['timings']}


def get_recent_scrape_runs(conn, limit=10):
    return [dict(row) for row in conn.execute(
        "SELECT * FROM scrape_runs ORDER BY started_at DESC, id DESC LIMIT ?", (limit,)
    )]


def find_missing_courses(conn, html, username):
    """
    Courses where `username` holds the Tips record on SGT but which are not in our database
    Returns (found, missing) lists of {sgt_id, name}
    """
    rows = parse_singles_response(html)
    found = []
    missing = []
    for row in rows:
        record = row['tips_record']
        if record is None or record['player_username'] != username:
            continue
        course = conn.execute("SELECT id FROM courses WHERE sgt_id = ?", (row['sgt_course_id'],)).fetchone()
        entry = {'sgt_id': row['sgt_course_id'], 'name': row['course_name']}
        (found if course else missing).append(entry)
    return found, missing
