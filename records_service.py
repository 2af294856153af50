"""
Read models for course records, the player leaderboard and player profiles
"""

from database import row_to_dict

EMPTY_FLAGS = {
    'has_tips_record': False,
    'has_sgt_record': False,
    'tips_record_score': None,
    'tips_record_player': None,
    'sgt_record_score': None,
    'sgt_record_player': None,
}

SCORE_AGGREGATES = """
    COUNT(CASE WHEN rm.tee_type = 'tips' THEN 1 END) AS tips_records,
    COUNT(CASE WHEN rm.tee_type = 'sgt' THEN 1 END) AS sgt_records,
    COUNT(*) AS total_records,
    ROUND(AVG(CASE WHEN rm.tee_type = 'tips' THEN cr.score_numeric END), 1) AS tips_avg_score,
    ROUND(AVG(CASE WHEN rm.tee_type = 'sgt' THEN cr.score_numeric END), 1) AS sgt_avg_score,
    ROUND(AVG(cr.score_numeric), 1) AS total_avg_score,
    SUM(CASE WHEN rm.tee_type = 'tips' THEN cr.score_numeric ELSE 0 END) AS tips_total_score,
    SUM(CASE WHEN rm.tee_type = 'sgt' THEN cr.score_numeric ELSE 0 END) AS sgt_total_score,
    SUM(cr.score_numeric) AS total_score
"""


def get_record_mode(conn, tee_type, player_format='single', putting_mode='putting'):
    return row_to_dict(conn.execute(
        "SELECT * FROM record_modes WHERE tee_type = ? AND player_format = ? AND putting_mode = ?",
        (tee_type, player_format, putting_mode),
    ).fetchone())


def format_player(player):
    return {
        'id': player['id'],
        'username': player['sgt_username'],
        'displayName': player['display_name'],
        'countryCode': player['country_code'],
        'avatarUrl': player['avatar_url'],
    }


def get_course_record_flags(conn, course_ids):
    """
    {course_id: flags} telling which singles records a course has, with score and holder
    Every requested course gets an entry
    """
    unique_ids = sorted(set(course_ids))
    flags = {course_id: dict(EMPTY_FLAGS) for course_id in unique_ids}
    if not unique_ids:
        return flags

    modes = {}
    for tee_type in ('tips', 'sgt'):
        mode = get_record_mode(conn, tee_type)
        if mode:
            modes[mode['id']] = tee_type
    if not modes:
        return flags

    id_marks = ', '.join('?' for _ in unique_ids)
    mode_marks = ', '.join('?' for _ in modes)
    rows = conn.execute(
        f"""
        SELECT cr.course_id, cr.record_mode_id, cr.score,
               p.display_name AS player_display_name, p.sgt_username AS player_username
        FROM course_records cr
        LEFT JOIN players p ON p.id = cr.player_id
        WHERE cr.course_id IN ({id_marks}) AND cr.record_mode_id IN ({mode_marks})
        """,
        unique_ids + list(modes),
    ).fetchall()

    for row in rows:
        tee_type = modes[row['record_mode_id']]
        entry = flags.setdefault(row['course_id'], dict(EMPTY_FLAGS))
        entry[f'has_{tee_type}_record'] = True
        entry[f'{tee_type}_record_score'] = row['score']
        entry[f'{tee_type}_record_player'] = row['player_display_name'] or row['player_username'] or None

    return flags


def add_record_flags_to_courses(conn, courses):
    if not courses:
        return courses
    flags = get_course_record_flags(conn, [course['id'] for course in courses])
    return [{**course, **flags.get(course['id'], EMPTY_FLAGS)} for course in courses]


def _record_with_player(conn, course_id, record_mode_id):
    record = conn.execute(
        "SELECT * FROM course_records WHERE course_id = ? AND record_mode_id = ?",
        (course_id, record_mode_id),
    ).fetchone()
    if record is None:
        return None
    player = None
    if record['player_id'] is not None:
        player = conn.execute("SELECT * FROM players WHERE id = ?", (record['player_id'],)).fetchone()
    return {
        'score': record['score'],
        'scoreNumeric': record['score_numeric'],
        'recordDate': record['record_date'],
        'scrapedAt': record['scraped_at'],
        'player': format_player(player) if player else None,
    }


def get_course_records(conn, course_id):
    """Tips and SGT records for one course, or None when the course does not exist"""
    course = conn.execute("SELECT id, name FROM courses WHERE id = ?", (course_id,)).fetchone()
    if course is None:
        return None

    records = {}
    for tee_type in ('tips', 'sgt'):
        mode = get_record_mode(conn, tee_type)
        records[tee_type] = _record_with_player(conn, course['id'], mode['id']) if mode else None

    last_scraped_at = None
    for record in (records['tips'], records['sgt']):
        if record and record['scrapedAt']:
            last_scraped_at = record['scrapedAt']
            break

    for record in records.values():
        if record:
            record.pop('scrapedAt')

    return {
        'courseId': course['id'],
        'courseName': course['name'],
        'tipsRecord': records['tips'],
        'sgtRecord': records['sgt'],
        'lastScrapedAt': last_scraped_at,
    }


def _leaderboard_filters(tee_type, year):
    clauses = ["rm.player_format = 'single'", "rm.putting_mode = 'putting'"]
    params = []
    if tee_type and tee_type != 'all':
        clauses.append("rm.tee_type = ?")
        params.append(tee_type)
    if year and year != 'all':
        clauses.append("substr(cr.record_date, 1, 4) = ?")
        params.append(str(year))
    return ' AND '.join(clauses), params


def _score_summary(row):
    return {
        'tipsRecords': row['tips_records'] or 0,
        'sgtRecords': row['sgt_records'] or 0,
        'totalRecords': row['total_records'] or 0,
        'tipsAvgScore': row['tips_avg_score'],
        'sgtAvgScore': row['sgt_avg_score'],
        'totalAvgScore': row['total_avg_score'],
        'tipsTotalScore': row['tips_total_score'] or 0,
        'sgtTotalScore': row['sgt_total_score'] or 0,
        'totalScore': row['total_score'] or 0,
    }


def get_player_leaderboard(conn, tee_type='all', year='all', limit=50, offset=0):
    """Players ranked by record count; 'all' disables a filter"""
    where, params = _leaderboard_filters(tee_type, year)
    rows = conn.execute(
        f"""
        SELECT p.id, p.sgt_username, p.display_name, p.country_code, p.avatar_url,
               {SCORE_AGGREGATES}
        FROM players p
        JOIN course_records cr ON cr.player_id = p.id
        JOIN record_modes rm ON rm.id = cr.record_mode_id
        WHERE {where}
        GROUP BY p.id
        ORDER BY total_records DESC, tips_records DESC, p.id
        LIMIT ? OFFSET ?
        """,
        params + [limit, offset],
    ).fetchall()

    return [
        {'rank': offset + index + 1, 'player': format_player(row), **_score_summary(row)}
        for index, row in enumerate(rows)
    ]


def get_player_leaderboard_count(conn, tee_type='all', year='all'):
    where, params = _leaderboard_filters(tee_type, year)
    row = conn.execute(
        f"""
        SELECT COUNT(DISTINCT p.id) AS count
        FROM players p
        JOIN course_records cr ON cr.player_id = p.id
        JOIN record_modes rm ON rm.id = cr.record_mode_id
        WHERE {where}
        """,
        params,
    ).fetchone()
    return row['count'] or 0


def get_player(conn, player_id):
    return conn.execute("SELECT * FROM players WHERE id = ?", (player_id,)).fetchone()


def get_player_by_username(conn, username):
    return conn.execute("SELECT * FROM players WHERE sgt_username = ?", (username,)).fetchone()


def get_player_records(conn, player_id):
    rows = conn.execute(
        """
        SELECT c.id AS course_id, c.name, c.location, c.sgt_id, rm.tee_type,
               cr.score, cr.score_numeric, cr.record_date
        FROM course_records cr
        JOIN courses c ON c.id = cr.course_id
        JOIN record_modes rm ON rm.id = cr.record_mode_id
        WHERE cr.player_id = ?
        ORDER BY cr.record_date DESC
        """,
        (player_id,),
    ).fetchall()
    return [
        {
            'course': {'id': row['course_id'], 'name': row['name'], 'location': row['location'], 'sgtId': row['sgt_id']},
            'recordType': row['tee_type'],
            'score': row['score'],
            'scoreNumeric': row['score_numeric'],
            'recordDate': row['record_date'],
        }
        for row in rows
    ]


def get_player_record_summary(conn, player_id):
    row = conn.execute(
        f"""
        SELECT {SCORE_AGGREGATES}
        FROM course_records cr
        JOIN record_modes rm ON rm.id = cr.record_mode_id
        WHERE cr.player_id = ? AND rm.player_format = 'single' AND rm.putting_mode = 'putting'
        """,
        (player_id,),
    ).fetchone()
    return _score_summary(row)


def get_record_years(conn):
    rows = conn.execute(
        """
        SELECT DISTINCT substr(record_date, 1, 4) AS year
        FROM course_records
        WHERE record_date IS NOT NULL
        ORDER BY year DESC
        """
    ).fetchall()
    return [row['year'] for row in rows]


def get_record_modes(conn):
    return [row_to_dict(row) for row in conn.execute("SELECT * FROM record_modes ORDER BY id")]
