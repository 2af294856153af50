"""
Course record history
Activity feed, per-course and per-player change events, movers and rivalries
"""

from datetime import datetime, timedelta, timezone

RECENT_EXCHANGES = 5

EVENT_QUERY = """
    SELECT
        crh.id,
        crh.course_id,
        c.name AS course_name,
        c.location AS course_location,
        rm.tee_type AS record_type,
        crh.change_type,
        crh.previous_player_id AS prev_player_id,
        pp.sgt_username AS prev_player_username,
        pp.display_name AS prev_player_display_name,
        pp.country_code AS prev_player_country,
        pp.avatar_url AS prev_player_avatar,
        crh.previous_score,
        crh.new_player_id,
        np.sgt_username AS new_player_username,
        np.display_name AS new_player_display_name,
        np.country_code AS new_player_country,
        np.avatar_url AS new_player_avatar,
        crh.new_score,
        crh.score_improvement,
        crh.detected_at
    FROM course_record_history crh
    JOIN courses c ON c.id = crh.course_id
    JOIN record_modes rm ON rm.id = crh.record_mode_id
    JOIN players np ON np.id = crh.new_player_id
    LEFT JOIN players pp ON pp.id = crh.previous_player_id
"""


def cutoff_iso(days_back, now=None):
    """Timestamp `days_back` days before now, in the stored detected_at format"""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=days_back)
    return cutoff.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _player(row, prefix):
    return {
        'id': row[f'{prefix}_player_id'],
        'username': row[f'{prefix}_player_username'],
        'displayName': row[f'{prefix}_player_display_name'],
        'countryCode': row[f'{prefix}_player_country'],
    }


def format_record_change_event(row):
    return {
        'id': row['id'],
        'courseId': row['course_id'],
        'courseName': row['course_name'],
        'courseLocation': row['course_location'],
        'recordType': row['record_type'],
        'changeType': row['change_type'],
        'previousPlayer': _player(row, 'prev')
        if row['prev_player_id'] else None,
        'previousScore': row['previous_score'],
        'newPlayer': _player(row, 'new'),
        'newScore': row['new_score'],
        'scoreImprovement': row['score_improvement'],
        'detectedAt': row['detected_at'],
    }


def get_recent_record_changes(conn, limit=50, offset=0):
    """Activity feed, newest first"""
    rows = conn.execute(
        EVENT_QUERY + " ORDER BY crh.detected_at DESC, crh.id DESC LIMIT ? OFFSET ?",
        (limit, offset),
    ).fetchall()
    return [format_record_change_event(row) for row in rows]


def get_course_record_history(conn, course_id, record_type=None):
    query = EVENT_QUERY + " WHERE crh.course_id = ?"
    params = [course_id]
    if record_type:
        query += " AND rm.tee_type = ?"
        params.append(record_type)
    query += " ORDER BY crh.detected_at DESC, crh.id DESC"
    return [format_record_change_event(row) for row in conn.execute(query, params)]


def get_player_record_changes(conn, player_id, limit=50):
    """Records the player set or took"""
    rows = conn.execute(
        EVENT_QUERY + " WHERE crh.new_player_id = ? ORDER BY crh.detected_at DESC, crh.id DESC LIMIT ?",
        (player_id, limit),
    ).fetchall()
    return [format_record_change_event(row) for row in rows]


def get_record_change_stats(conn, days_back=30, now=None):
    row = conn.execute(
        """
        SELECT
            COUNT(*) AS total_changes,
            COUNT(CASE WHEN change_type = 'BROKEN' THEN 1 END) AS broken_records,
            COUNT(CASE WHEN change_type = 'IMPROVED' THEN 1 END) AS improved_records,
            COUNT(CASE WHEN change_type = 'INITIAL' THEN 1 END) AS initial_records
        FROM course_record_history
        WHERE detected_at >= ?
        """,
        (cutoff_iso(days_back, now),),
    ).fetchone()
    return {
        'totalChanges': row['total_changes'] or 0,
        'brokenRecords': row['broken_records'] or 0,
        'improvedRecords': row['improved_records'] or 0,
        'initialRecords': row['initial_records'] or 0,
    }


def _movers(conn, player_column, days_back, limit, now):
    return conn.execute(
        f"""
        SELECT p.id, p.sgt_username AS username, p.display_name, COUNT(*) AS record_count
        FROM course_record_history crh
        JOIN players p ON p.id = crh.{player_column}
        WHERE crh.change_type = 'BROKEN' AND crh.detected_at >= ?
        GROUP BY p.id
        ORDER BY record_count DESC, p.id
        LIMIT ?
        """,
        (cutoff_iso(days_back, now), limit),
    ).fetchall()


def get_players_with_gained_records(conn, days_back=7, limit=20, now=None):
    """Players who broke someone else's record recently"""
    return [
        {
            'player': {'id': row['id'], 'username': row['username'], 'displayName': row['display_name']},
            'recordsGained': row['record_count'],
        }
        for row in _movers(conn, 'new_player_id', days_back, limit, now)
    ]


def get_players_with_lost_records(conn, days_back=7, limit=20, now=None):
    """Players whose records were broken recently"""
    return [
        {
            'player': {'id': row['id'], 'username': row['username'], 'displayName': row['display_name']},
            'recordsLost': row['record_count'],
        }
        for row in _movers(conn, 'previous_player_id', days_back, limit, now)
    ]


def _broken_exchanges(conn, days_back=None, player_id=None, now=None):
    """BROKEN events between two different players, newest first"""
    query = EVENT_QUERY + """
        WHERE crh.change_type = 'BROKEN'
          AND crh.previous_player_id IS NOT NULL
          AND crh.previous_player_id != crh.new_player_id
    """
    params = []
    if player_id is not None:
        query += " AND (crh.previous_player_id = ? OR crh.new_player_id = ?)"
        params.extend([player_id, player_id])
    if days_back is not None:
        query += " AND crh.detected_at >= ?"
        params.append(cutoff_iso(days_back, now))
    query += " ORDER BY crh.detected_at DESC, crh.id DESC"
    return conn.execute(query, params).fetchall()


def _full_player(row, prefix):
    player = _player(row, prefix)
    player['avatarUrl'] = row[f'{prefix}_player_avatar']
    return player


def _exchange_course(row):
    return {
        'courseId': row['course_id'],
        'courseName': row['course_name'],
        'recordType': row['record_type'],
        'detectedAt': row['detected_at'],
    }


def get_players_who_took_records_from(conn, player_id, days_back=None, now=None):
    """
    Rivals of one player: everyone who took a record from them or lost one to them
    Sorted by records taken from the player, then by total exchanges
    """
    rivals = {}
    for row in _broken_exchanges(conn, days_back, player_id, now):
        lost = row['prev_player_id'] == player_id
        rival_prefix = 'new' if lost else 'prev'
        rival_id = row[f'{rival_prefix}_player_id']

        rivalry = rivals.setdefault(rival_id, {
            'player': _full_player(row, rival_prefix),
            'recordsTakenFromMe': 0,
            'recordsTakenByMe': 0,
            'balance': 0,
            'coursesLost': [],
            'coursesWon': [],
        })
        if lost:
            rivalry['recordsTakenFromMe'] += 1
            rivalry['coursesLost'].append(_exchange_course(row))
        else:
            rivalry['recordsTakenByMe'] += 1
            rivalry['coursesWon'].append(_exchange_course(row))

    for rivalry in rivals.values():
        rivalry['balance'] = rivalry['recordsTakenByMe'] - rivalry['recordsTakenFromMe']

    return sorted(
        rivals.values(),
        key=lambda r: (-r['recordsTakenFromMe'], -(r['recordsTakenFromMe'] + r['recordsTakenByMe']), r['player']['id']),
    )


def get_top_rivalries(conn, days_back=None, limit=20, now=None):
    """Player pairs with the most records taken back and forth"""
    pairs = {}
    for row in _broken_exchanges(conn, days_back, now=now):
        winner_id = row['new_player_id']
        loser_id = row['prev_player_id']
        player1_id, player2_id = sorted((winner_id, loser_id))

        rivalry = pairs.get((player1_id, player2_id))
        if rivalry is None:
            first, second = ('new', 'prev') if winner_id == player1_id else ('prev', 'new')
            rivalry = pairs[(player1_id, player2_id)] = {
                'player1': _full_player(row, first),
                'player2': _full_player(row, second),
                'totalExchanges': 0,
                'player1Wins': 0,
                'player2Wins': 0,
                'recentCourses': [],
                'lastExchangeAt': row['detected_at'],
            }

        winner = 1 if winner_id == player1_id else 2
        rivalry['totalExchanges'] += 1
        rivalry[f'player{winner}Wins'] += 1
        if len(rivalry['recentCourses']) < RECENT_EXCHANGES:
            rivalry['recentCourses'].append(_exchange_course(row) | {'winner': winner})

    ranked = sorted(pairs.values(), key=lambda r: r['lastExchangeAt'], reverse=True)
    ranked.sort(key=lambda r: r['totalExchanges'], reverse=True)
    return ranked[:limit]


def get_player_records_gained_lost(conn, player_id, since):
    """Records the player took from others and lost to others since an ISO timestamp"""
    row = conn.execute(
        """
        SELECT
            COUNT(CASE WHEN new_player_id = ? THEN 1 END) AS records_gained,
            COUNT(CASE WHEN previous_player_id = ? THEN 1 END) AS records_lost
        FROM course_record_history
        WHERE change_type = 'BROKEN'
          AND detected_at >= ?
          AND previous_player_id IS NOT NULL
          AND previous_player_id != new_player_id
        """,
        (player_id, player_id, since),
    ).fetchone()
    return {'recordsGained': row['records_gained'] or 0, 'recordsLost': row['records_lost'] or 0}
