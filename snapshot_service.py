"""
Player rank snapshots
Daily snapshot of every record holder's rank, used for rank movement on the leaderboard
"""

import logging
from datetime import date, datetime, timedelta, timezone

from database import now_iso

logger = logging.getLogger(__name__)


def _today():
    return datetime.now(timezone.utc).date()


def get_current_player_rankings(conn):
    """Singles putting record counts per player, best first"""
    rows = conn.execute(
        """
        SELECT
            p.id AS player_id,
            COUNT(*) AS total_records,
            COUNT(CASE WHEN rm.tee_type = 'tips' THEN 1 END) AS tips_records,
            COUNT(CASE WHEN rm.tee_type = 'sgt' THEN 1 END) AS sgt_records
        FROM players p
        JOIN course_records cr ON cr.player_id = p.id
        JOIN record_modes rm ON rm.id = cr.record_mode_id
        WHERE rm.player_format = 'single' AND rm.putting_mode = 'putting'
        GROUP BY p.id
        ORDER BY total_records DESC, tips_records DESC, sgt_records DESC, p.id
        """
    ).fetchall()
    return [dict(row) for row in rows]


def get_previous_snapshot(conn, before_date):
    """Rows of the latest snapshot taken before `before_date`, keyed by player id"""
    rows = conn.execute(
        """
        SELECT player_id, overall_rank, total_records
        FROM player_rank_snapshots
        WHERE snapshot_date = (
            SELECT MAX(snapshot_date) FROM player_rank_snapshots WHERE snapshot_date < ?
        )
        """,
        (before_date,),
    ).fetchall()
    return {row['player_id']: dict(row) for row in rows}


def calculate_tee_type_ranks(rankings, tee_type):
    """Rank among players holding at least one record of this tee type"""
    key = f'{tee_type}_records'
    holders = [r for r in rankings if r[key] > 0]
    holders.sort(key=lambda r: r[key], reverse=True)
    return {r['player_id']: index + 1 for index, r in enumerate(holders)}


def generate_player_rank_snapshot(conn, today=None):
    """
    Snapshot current rankings for today, comparing with the latest earlier snapshot
    Re-running on the same day updates today's rows
    """
    snapshot_date = (today or _today()).isoformat()
    created_at = now_iso()
    result = {
        'success': False,
        'snapshot_date': snapshot_date,
        'players_processed': 0,
        'new_entries': 0,
        'updated_entries': 0,
        'errors': [],
    }

    try:
        logger.info(f"Generating player rank snapshot for {snapshot_date}...")
        rankings = get_current_player_rankings(conn)
        logger.info(f"Found {len(rankings)} players with records")

        previous = get_previous_snapshot(conn, snapshot_date)
        logger.info(f"Found {len(previous)} players in previous snapshot")

        tips_ranks = calculate_tee_type_ranks(rankings, 'tips')
        sgt_ranks = calculate_tee_type_ranks(rankings, 'sgt')

        with conn:
            for index, current in enumerate(rankings):
                player_id = current['player_id']
                overall_rank = index + 1
                prev = previous.get(player_id)
                rank_change = prev['overall_rank'] - overall_rank if prev else 0
                records_change = current['total_records'] - prev['total_records'] if prev else current['total_records']

                values = (
                    overall_rank, tips_ranks.get(player_id), sgt_ranks.get(player_id),
                    current['total_records'], current['tips_records'], current['sgt_records'],
                    rank_change, max(records_change, 0), max(-records_change, 0),
                )

                try:
                    existing = conn.execute(
                        "SELECT id FROM player_rank_snapshots WHERE snapshot_date = ? AND player_id = ?",
                        (snapshot_date, player_id),
                    ).fetchone()

                    if existing:
                        conn.execute(
                            """
                            UPDATE player_rank_snapshots
                            SET overall_rank = ?, tips_rank = ?, sgt_rank = ?, total_records = ?,
                                tips_records = ?, sgt_records = ?, rank_change = ?,
                                records_gained = ?, records_lost = ?
                            WHERE id = ?
                            """,
                            values + (existing['id'],),
                        )
                        result['updated_entries'] += 1
                    else:
                        conn.execute(
                            """
                            INSERT INTO player_rank_snapshots
                                (overall_rank, tips_rank, sgt_rank, total_records, tips_records,
                                 sgt_records, rank_change, records_gained, records_lost,
                                 snapshot_date, player_id, created_at)
                            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                            """,
                            values + (snapshot_date, player_id, created_at),
                        )
                        result['new_entries'] += 1

                    result['players_processed'] += 1
                except Exception as e:
                    message = f"Error processing player {player_id}: {e}"
                    logger.error(message)
                    result['errors'].append(message)

        result['success'] = True
        logger.info(f"Snapshot complete: {result['new_entries']} new, {result['updated_entries']} updated")
    except Exception as e:
        message = f"Snapshot generation failed: {e}"
        logger.error(message)
        result['errors'].append(message)

    return result


def get_player_rank_history(conn, player_id, limit=30):
    rows = conn.execute(
        """
        SELECT snapshot_date, overall_rank, tips_rank, sgt_rank, total_records, tips_records,
               sgt_records, rank_change, records_gained, records_lost
        FROM player_rank_snapshots
        WHERE player_id = ?
        ORDER BY snapshot_date DESC
        LIMIT ?
        """,
        (player_id, limit),
    ).fetchall()
    return [
        {
            'date': row['snapshot_date'],
            'overallRank': row['overall_rank'],
            'tipsRank': row['tips_rank'],
            'sgtRank': row['sgt_rank'],
            'totalRecords': row['total_records'],
            'tipsRecords': row['tips_records'],
            'sgtRecords': row['sgt_records'],
            'rankChange': row['rank_change'],
            'recordsGained': row['records_gained'],
            'recordsLost': row['records_lost'],
        }
        for row in rows
    ]


def get_latest_player_rank_change(conn, player_id):
    row = conn.execute(
        """
        SELECT rank_change, records_gained, records_lost
        FROM player_rank_snapshots
        WHERE player_id = ?
        ORDER BY snapshot_date DESC
        LIMIT 1
        """,
        (player_id,),
    ).fetchone()
    if row is None:
        return None
    return {
        'rankChange': row['rank_change'] or 0,
        'recordsChange': (row['records_gained'] or 0) - (row['records_lost'] or 0),
    }


def get_snapshot_near_date(conn, player_id, target_date):
    """Closest snapshot on or before `target_date` (YYYY-MM-DD)"""
    row = conn.execute(
        """
        SELECT snapshot_date, overall_rank, total_records, tips_records, sgt_records
        FROM player_rank_snapshots
        WHERE player_id = ? AND snapshot_date <= ?
        ORDER BY snapshot_date DESC
        LIMIT 1
        """,
        (player_id, target_date),
    ).fetchone()
    if row is None:
        return None
    return {
        'date': row['snapshot_date'],
        'overallRank': row['overall_rank'],
        'totalRecords': row['total_records'],
        'tipsRecords': row['tips_records'],
        'sgtRecords': row['sgt_records'],
    }


def get_date_days_ago(days, today=None):
    return ((today or _today()) - timedelta(days=days)).isoformat()


def get_last_week_start(today=None):
    """Monday of the previous week"""
    today = today or _today()
    return (today - timedelta(days=today.weekday() + 7)).isoformat()


def get_days_into_current_week(today=None):
    """Days since Monday, 0 on a Monday"""
    today = today or _today()
    return today.weekday()


def get_player_rank_change_over_period(conn, player_id, days_ago, today=None):
    current = conn.execute(
        """
        SELECT overall_rank, total_records
        FROM player_rank_snapshots
        WHERE player_id = ?
        ORDER BY snapshot_date DESC
        LIMIT 1
        """,
        (player_id,),
    ).fetchone()
    if current is None:
        return None

    previous = get_snapshot_near_date(conn, player_id, get_date_days_ago(days_ago, today))
    if previous is None:
        # No snapshot that old, the player counts as new
        return {
            'currentRank': current['overall_rank'],
            'previousRank': None,
            'rankChange': 0,
            'currentRecords': current['total_records'],
            'previousRecords': 0,
            'recordsChange': current['total_records'],
        }

    return {
        'currentRank': current['overall_rank'],
        'previousRank': previous['overallRank'],
        'rankChange': previous['overallRank'] - current['overall_rank'],
        'currentRecords': current['total_records'],
        'previousRecords': previous['totalRecords'],
        'recordsChange': current['total_records'] - previous['totalRecords'],
    }


def parse_date(text):
    return date.fromisoformat(text)
