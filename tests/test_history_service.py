from datetime import datetime, timezone

import pytest

import course_data
import history_service
from conftest import make_record
from records_scraper import (
    CHANGE_BROKEN,
    CHANGE_IMPROVED,
    CHANGE_INITIAL,
    get_record_mode_id,
    history_entry,
    insert_history,
    upsert_player,
)

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def exchanges(conn):
    """
    alice, bob and carol trading tips records on two courses:
    bob takes two from alice, alice takes one back, alice took one from carol long ago
    """
    course1 = course_data.insert_course(conn, {'name': 'Pine Valley', 'location': 'NJ', 'holes': 18})
    course2 = course_data.insert_course(conn, {'name': 'Augusta', 'location': 'GA', 'holes': 18})
    players = {name: upsert_player(conn, make_record(name, 'E', None))[0] for name in ('alice', 'bob', 'carol')}
    tips = get_record_mode_id(conn, 'tips')

    def event(course, new, change_type, days_ago, prev=None):
        existing = {'player_id': players[prev], 'score': '-8', 'score_numeric': -8, 'record_date': None} if prev else None
        return history_entry(
            course['id'], tips, players[new], make_record(new, '-9', None), change_type,
            history_service.cutoff_iso(days_ago, NOW), existing=existing,
        )

    insert_history(conn, [
        event(course1, 'alice', CHANGE_INITIAL, 50),
        event(course1, 'alice', CHANGE_BROKEN, 40, prev='carol'),
        event(course2, 'bob', CHANGE_BROKEN, 3, prev='alice'),
        event(course2, 'alice', CHANGE_BROKEN, 2, prev='bob'),
        event(course1, 'bob', CHANGE_BROKEN, 1, prev='alice'),
        event(course1, 'bob', CHANGE_IMPROVED, 0.5, prev='bob'),
    ])
    conn.commit()
    return {'players': players, 'course1': course1, 'course2': course2}


def test_recent_changes_newest_first(conn, exchanges):
    changes = history_service.get_recent_record_changes(conn, limit=2)

    assert [change['changeType'] for change in changes] == [CHANGE_IMPROVED, CHANGE_BROKEN]
    assert changes[0]['newPlayer']['username'] == 'bob'
    assert changes[0]['previousPlayer']['username'] == 'bob'
    assert changes[1]['previousPlayer']['username'] == 'alice'
    assert changes[0]['recordType'] == 'tips'
    assert changes[0]['scoreImprovement'] == 1


def test_initial_event_has_no_previous_player(conn, exchanges):
    changes = history_service.get_recent_record_changes(conn, limit=10)
    assert changes[-1]['changeType'] == CHANGE_INITIAL
    assert changes[-1]['previousPlayer'] is None


def test_course_record_history(conn, exchanges):
    course_id = exchanges['course1']['id']
    assert len(history_service.get_course_record_history(conn, course_id)) == 4
    assert len(history_service.get_course_record_history(conn, course_id, 'tips')) == 4
    assert history_service.get_course_record_history(conn, course_id, 'sgt') == []


def test_player_record_changes(conn, exchanges):
    changes = history_service.get_player_record_changes(conn, exchanges['players']['alice'])
    assert len(changes) == 3
    assert all(change['newPlayer']['username'] == 'alice' for change in changes)


def test_record_change_stats(conn, exchanges):
    assert history_service.get_record_change_stats(conn, 30, now=NOW) == {
        'totalChanges': 4,
        'brokenRecords': 3,
        'improvedRecords': 1,
        'initialRecords': 0,
    }


def test_movers(conn, exchanges):
    gainers = history_service.get_players_with_gained_records(conn, 7, now=NOW)
    losers = history_service.get_players_with_lost_records(conn, 7, now=NOW)

    assert [(g['player']['username'], g['recordsGained']) for g in gainers] == [('bob', 2), ('alice', 1)]
    assert [(l['player']['username'], l['recordsLost']) for l in losers] == [('alice', 2), ('bob', 1)]


def test_rivals_of_a_player(conn, exchanges):
    rivals = history_service.get_players_who_took_records_from(conn, exchanges['players']['alice'], now=NOW)

    assert [r['player']['username'] for r in rivals] == ['bob', 'carol']
    bob = rivals[0]
    assert bob['recordsTakenFromMe'] == 2
    assert bob['recordsTakenByMe'] == 1
    assert bob['balance'] == -1
    assert [course['courseName'] for course in bob['coursesLost']] == ['Pine Valley', 'Augusta']
    assert [course['courseName'] for course in bob['coursesWon']] == ['Augusta']

    carol = rivals[1]
    assert carol['recordsTakenFromMe'] == 0
    assert carol['recordsTakenByMe'] == 1


def test_rivals_within_window(conn, exchanges):
    rivals = history_service.get_players_who_took_records_from(
        conn, exchanges['players']['alice'], days_back=30, now=NOW
    )
    assert [r['player']['username'] for r in rivals] == ['bob']


def test_top_rivalries(conn, exchanges):
    players = exchanges['players']
    rivalries = history_service.get_top_rivalries(conn, now=NOW)

    assert len(rivalries) == 2
    top = rivalries[0]
    assert (top['player1']['id'], top['player2']['id']) == (players['alice'], players['bob'])
    assert top['totalExchanges'] == 3
    assert top['player1Wins'] == 1
    assert top['player2Wins'] == 2
    assert [course['winner'] for course in top['recentCourses']] == [2, 1, 2]
    assert rivalries[1]['totalExchanges'] == 1


def test_player_records_gained_lost(conn, exchanges):
    since = history_service.cutoff_iso(7, NOW)
    assert history_service.get_player_records_gained_lost(conn, exchanges['players']['alice'], since) == {
        'recordsGained': 1,
        'recordsLost': 2,
    }
