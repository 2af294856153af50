"""
GSPro Course Viewer HTTP API
Flask app serving courses, course records, record history, calculators and the web client
"""

import logging
import math
import os

from flask import Flask, Response, current_app, g, jsonify, request, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import HTTPException, NotFound

import course_data
import history_service
import records_service
import snapshot_service
from config import Config
from database import connect, rows_to_dicts, to_camel
from exporter import export_csv, export_xlsx
from handicap import HandicapCalculator
from html_parser import parse_leaderboard
from lie_penalties import calculate_aim_offset, calculate_plays_as, calculate_wind_effect, get_materials
from putting import DEFAULT_STIMP, get_available_stimps, get_distance_for_speed, get_speed_for_distance
from records_scraper import get_recent_scrape_runs, run_records_scrape
from scheduler import get_scheduler_status
from sgt_client import LEADERBOARD_TEE_TYPES, SGTClient
from units import IMPERIAL, METRIC, meters_to_yards, yards_to_meters

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

PERIOD_DAYS = {'day': 1, 'week': 7, 'month': 30}


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------
def get_db():
    if 'db' not in g:
        g.db = connect(current_app.config['APP_CONFIG'].db_path)
    return g.db


def close_db(exception=None):
    db = g.pop('db', None)
    if db is not None:
        db.close()


def get_client():
    client = current_app.config.get('SGT_CLIENT')
    if client is None:
        client = SGTClient.from_config(current_app.config['APP_CONFIG'])
        current_app.config['SGT_CLIENT'] = client
    return client


def int_arg(name, default):
    """Integer query parameter; missing, zero or unreadable values give the default"""
    value = request.args.get(name, type=int)
    return value or default


def float_arg(name, default=None):
    value = request.args.get(name)
    if value is None or value == '':
        return default
    try:
        number = float(value)
    except ValueError:
        raise ValueError(f"Invalid number for {name}: {value}")
    if not math.isfinite(number):
        raise ValueError(f"Invalid number for {name}: {value}")
    return number


def error(message, status, **extra):
    return jsonify({'error': message, **extra}), status


def sgt_id_number(course):
    try:
        return int(course.get('sgt_id') or '-1')
    except ValueError:
        return -1


# ---------------------------------------------------------------------------
# Course payloads
# ---------------------------------------------------------------------------
def course_payloads(conn, courses, thin=False):
    """Courses with tee boxes, tags, attribute names and record flags, in web client shape"""
    if not courses:
        return []

    course_ids = [course['id'] for course in courses]
    flags = records_service.get_course_record_flags(conn, course_ids)

    tee_boxes = {}
    tag_ids = {}
    tag_names = {}
    if not thin:
        placeholders = ', '.join('?' for _ in course_ids)
        for tee_box in rows_to_dicts(conn.execute(
            f"SELECT * FROM tee_boxes WHERE course_id IN ({placeholders}) ORDER BY id", course_ids
        )):
            tee_boxes.setdefault(tee_box['course_id'], []).append(to_camel(tee_box))
        tag_ids = course_data.get_course_tag_ids(conn, course_ids)
        tag_names = {tag['id']: tag['name'] for tag in course_data.get_tags(conn)}

    payloads = []
    for course in courses:
        payload = to_camel(course)
        ids = tag_ids.get(course['id'], [])
        payload['teeBoxes'] = tee_boxes.get(course['id'], [])
        payload['tags'] = [{'courseId': course['id'], 'tagId': tag_id} for tag_id in ids]
        payload['attributes'] = [{'id': tag_id, 'name': tag_names.get(tag_id)} for tag_id in ids]
        payload.update(to_camel(flags.get(course['id'], records_service.EMPTY_FLAGS)))
        payloads.append(payload)
    return payloads


def leaderboard_filters():
    return (
        request.args.get('teeType') or 'all',
        request.args.get('year') or 'all',
        min(int_arg('limit', 50), 200),
        int_arg('offset', 0),
    )


def create_app(config=None, client=None):
    config = config or Config()

    app = Flask(__name__)
    app.config['APP_CONFIG'] = config
    app.config['SGT_CLIENT'] = client
    app.json.sort_keys = False
    CORS(app)
    app.teardown_appcontext(close_db)

    @app.errorhandler(Exception)
    def handle_exception(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception(f"Unhandled error on {request.path}")
        return error('Internal server error', 500, details=str(e))

    # -----------------------------------------------------------------------
    # Courses
    # -----------------------------------------------------------------------
    @app.route('/gsp-welcome')
    def welcome():
        return jsonify({'message': 'Welcome to the GSPro course viewer!'})

    @app.route('/api/courses')
    def list_courses():
        conn = get_db()
        courses = rows_to_dicts(conn.execute("SELECT * FROM courses WHERE enabled = 1 ORDER BY id"))
        return jsonify(course_payloads(conn, courses))

    @app.route('/api/courses/paginated')
    def paginated_courses():
        conn = get_db()
        page = max(int_arg('page', 1), 1)
        limit = min(max(int_arg('limit', 24), 1), 200)
        offset = (page - 1) * limit
        thin = request.args.get('thin') == 'true'
        enabled_only = request.args.get('enabled') != 'false'
        search = (request.args.get('search') or '').strip().lower()

        clauses = []
        params = []
        if enabled_only:
            clauses.append("enabled = 1")
        if search:
            pattern = f"%{search}%"
            clauses.append(
                "(lower(name) LIKE ? OR lower(location) LIKE ? OR lower(designer) LIKE ? "
                "OR CAST(holes AS TEXT) LIKE ?)"
            )
            params.extend([pattern] * 4)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ''

        total = conn.execute(f"SELECT COUNT(*) FROM courses {where}", params).fetchone()[0]
        courses = rows_to_dicts(conn.execute(
            f"SELECT * FROM courses {where} ORDER BY name LIMIT ? OFFSET ?", params + [limit, offset]
        ))
        payloads = course_payloads(conn, courses, thin=thin)

        return jsonify({
            'courses': payloads,
            'page': page,
            'limit': limit,
            'total': total,
            'hasMore': offset + len(payloads) < total,
            'thin': thin,
        })

    @app.route('/api/courses/<int:course_id>')
    def get_course(course_id):
        conn = get_db()
        course = course_data.get_course(conn, course_id)
        if not course:
            logger.error(f"Course not found {course_id}")
            return error('Course not found', 404)
        logger.info(f"Getting course {course['name']}")
        payload = course_payloads(conn, [course])[0]
        payload['gkData'] = course_data.get_course_data(conn, course_id)
        return jsonify(payload)

    @app.route('/api/course-attributes')
    def course_attributes():
        return jsonify(course_data.get_tags(get_db()))

    @app.route('/api/course-records/<sgt_id>/<tee_type>')
    def live_course_records(sgt_id, tee_type):
        if tee_type not in LEADERBOARD_TEE_TYPES:
            return error("Invalid tee type. Must be 'CR' or 'CRTips'", 400)
        client = get_client()
        try:
            html = client.fetch_leaderboard(sgt_id, tee_type)
        except Exception as e:
            logger.error(f"Error fetching leaderboard for course {sgt_id}: {e}")
            return error('Failed to fetch leaderboard data', 500, details=str(e))
        return jsonify(parse_leaderboard(html, client.base_url))

    @app.route('/api/add-par-to-all-courses', methods=['POST'])
    def add_par_to_all_courses():
        conn = get_db()
        failed, success = course_data.update_par_on_courses(conn, course_data.get_courses(conn))
        return jsonify({'failedCourses': failed, 'successCourses': success})

    @app.route('/api/update-from-filesystem', methods=['POST'])
    def update_from_filesystem():
        body = request.get_json(silent=True) or {}
        conn = get_db()
        try:
            message = course_data.update_from_filesystem(conn, body)
        except Exception as e:
            conn.rollback()
            logger.exception(f"update-from-filesystem: {body.get('courseName')} Error updating course {e}")
            return Response('error', status=500, mimetype='text/plain')
        return Response(message, mimetype='text/plain')

    @app.route('/api/course-sync-list')
    def course_sync_list():
        return jsonify([
            {
                'name': course['name'],
                'opcdName': course['opcd_name'],
                'addedDate': course['added_date'],
                'updatedDate': course['updated_date'],
            }
            for course in course_data.get_courses(get_db())
        ])

    @app.route('/api/courses/<int:course_id>/gkd-info')
    def gkd_info(course_id):
        gk_data = course_data.get_course_data(get_db(), course_id)
        if not gk_data:
            return error('Course gkdata not found', 404)
        tee_boxes = gk_data.get('TeeTypeTotalDistance') or []
        return jsonify({
            'teeBoxes': tee_boxes,
            'teeBoxes2': course_data.tee_boxes_from_course_data(gk_data),
            'teeboxDistances': [
                {
                    'teeBoxName': tee['TeeType'],
                    'teeBoxDistance': course_data.tee_box_total_distance(gk_data, tee['TeeType']),
                }
                for tee in tee_boxes
            ],
        })

    @app.route('/api/courses/update-course-data')
    def update_all_course_data():
        conn = get_db()
        for course in course_data.get_courses(conn):
            gk_data = course_data.get_course_data(conn, course['id'])
            if not gk_data:
                logger.error(f"Course gkdata not found {course['name']}")
                continue
            course_data.update_course_from_course_data(conn, course['id'], gk_data)
            course_data.update_course_tags(conn, course['id'], gk_data)
        conn.commit()
        return jsonify({'success': 'Course data updated'})

    @app.route('/api/courses/<int:course_id>/update-teebox')
    def update_teebox(course_id):
        conn = get_db()
        if not course_data.get_course(conn, course_id):
            return error('Course not found', 404)
        gk_data = course_data.get_course_data(conn, course_id)
        if not gk_data:
            return error('Course gkdata not found', 404)
        course_data.update_tee_boxes(conn, course_id, gk_data)
        conn.commit()
        return jsonify({'success': 'Tee boxes updated'})

    @app.route('/api/courses/sync-with-sgt', methods=['POST'])
    def sync_with_sgt():
        conn = get_db()
        sgt_course_ids = set(get_client().fetch_course_manifest())
        for course in course_data.get_courses(conn):
            enabled = sgt_id_number(course) in sgt_course_ids
            conn.execute("UPDATE courses SET enabled = ? WHERE id = ?", (enabled, course['id']))
        conn.commit()
        return jsonify({'success': 'Courses synced with sgt'})

    @app.route('/api/courses/sync-with-sgt', methods=['GET'])
    def sync_with_sgt_report():
        courses = course_data.get_courses(get_db())
        sgt_course_ids = get_client().fetch_course_manifest()
        sgt_id_set = set(sgt_course_ids)
        db_sgt_ids = {sgt_id_number(course) for course in courses}
        return jsonify({
            'coursesNotInSgt': [course['name'] for course in courses if sgt_id_number(course) not in sgt_id_set],
            'coursesNotInDb': [sgt_id for sgt_id in sgt_course_ids if sgt_id not in db_sgt_ids],
        })

    @app.route('/api/courses/export-csv')
    def courses_csv():
        return Response(
            export_csv(get_db()),
            mimetype='text/csv',
            headers={'Content-Disposition': 'attachment; filename=courses.csv'},
        )

    @app.route('/api/courses/export-xlsx')
    def courses_xlsx():
        return Response(
            export_xlsx(get_db()),
            mimetype=XLSX_MIMETYPE,
            headers={'Content-Disposition': 'attachment; filename=courses.xlsx'},
        )

    # -----------------------------------------------------------------------
    # Course records
    # -----------------------------------------------------------------------
    @app.route('/api/courses/<int:course_id>/records')
    def course_records(course_id):
        records = records_service.get_course_records(get_db(), course_id)
        if records is None:
            return error('Course not found', 404)
        return jsonify(records)

    @app.route('/api/records/years')
    def record_years():
        return jsonify({'years': records_service.get_record_years(get_db())})

    @app.route('/api/records/leaderboard')
    def leaderboard():
        conn = get_db()
        tee_type, year, limit, offset = leaderboard_filters()
        return jsonify({
            'entries': records_service.get_player_leaderboard(conn, tee_type, year, limit, offset),
            'total': records_service.get_player_leaderboard_count(conn, tee_type, year),
            'filters': {'teeType': tee_type, 'year': year},
        })

    @app.route('/api/players/<int:player_id>')
    def player_profile(player_id):
        conn = get_db()
        player = records_service.get_player(conn, player_id)
        if player is None:
            return error('Player not found', 404)
        return jsonify({
            'player': records_service.format_player(player),
            'records': records_service.get_player_records(conn, player_id),
            'summary': records_service.get_player_record_summary(conn, player_id),
        })

    @app.route('/api/players/by-username/<username>')
    def player_by_username(username):
        player = records_service.get_player_by_username(get_db(), username)
        if player is None:
            return error('Player not found', 404)
        return jsonify(records_service.format_player(player))

    @app.route('/api/records/modes')
    def record_modes():
        modes = [to_camel(mode) for mode in records_service.get_record_modes(get_db())]
        return jsonify({'modes': modes, 'activeModes': [mode for mode in modes if mode['isActive']]})

    @app.route('/api/admin/scrape-records', methods=['POST'])
    def scrape_records():
        try:
            result = run_records_scrape(get_db(), get_client())
        except Exception as e:
            logger.exception("Scrape endpoint error")
            return error('Scrape failed', 500, details=str(e))
        return jsonify({
            'runId': result['run_id'],
            'success': result['success'],
            'summary': result['summary'],
            'timings': to_camel(result['timings']) if result['timings'] else None,
        })

    @app.route('/api/admin/scrape-status')
    def scrape_status():
        runs = [to_camel(run) for run in get_recent_scrape_runs(get_db())]
        return jsonify({
            'lastRun': runs[0] if runs else None,
            'recentRuns': runs,
            'scheduler': get_scheduler_status(current_app.config['APP_CONFIG']),
        })

    @app.route('/api/admin/generate-snapshot', methods=['POST'])
    def generate_snapshot():
        try:
            result = snapshot_service.generate_player_rank_snapshot(get_db())
        except Exception as e:
            logger.exception("Snapshot generation error")
            return error('Snapshot generation failed', 500, details=str(e))
        return jsonify(to_camel(result))

    # -----------------------------------------------------------------------
    # Record history and rank tracking
    # -----------------------------------------------------------------------
    @app.route('/api/records/activity')
    def record_activity():
        conn = get_db()
        limit = min(int_arg('limit', 50), 100)
        offset = int_arg('offset', 0)
        days_back = int_arg('daysBack', 30)
        return jsonify({
            'changes': history_service.get_recent_record_changes(conn, limit, offset),
            'stats': history_service.get_record_change_stats(conn, days_back),
            'pagination': {'limit': limit, 'offset': offset},
        })

    @app.route('/api/courses/<int:course_id>/record-history')
    def course_record_history(course_id):
        record_type = request.args.get('recordType')
        return jsonify({
            'courseId': course_id,
            'history': history_service.get_course_record_history(get_db(), course_id, record_type),
        })

    @app.route('/api/players/<int:player_id>/rank-history')
    def player_rank_history(player_id):
        limit = min(int_arg('limit', 30), 90)
        return jsonify({
            'playerId': player_id,
            'history': snapshot_service.get_player_rank_history(get_db(), player_id, limit),
        })

    @app.route('/api/players/<int:player_id>/record-changes')
    def player_record_changes(player_id):
        limit = min(int_arg('limit', 50), 100)
        return jsonify({
            'playerId': player_id,
            'changes': history_service.get_player_record_changes(get_db(), player_id, limit),
        })

    @app.route('/api/players/<int:player_id>/rivalries')
    def player_rivalries(player_id):
        days_back = request.args.get('daysBack', type=int)
        return jsonify({
            'playerId': player_id,
            'rivalries': history_service.get_players_who_took_records_from(get_db(), player_id, days_back),
            'daysBack': days_back,
        })

    @app.route('/api/records/top-rivalries')
    def top_rivalries():
        days_back = request.args.get('daysBack', type=int)
        limit = min(int_arg('limit', 20), 50)
        rivalries = history_service.get_top_rivalries(get_db(), days_back, limit)
        return jsonify({'rivalries': rivalries, 'daysBack': days_back})

    @app.route('/api/records/leaderboard-with-changes')
    def leaderboard_with_changes():
        conn = get_db()
        tee_type, year, limit, offset = leaderboard_filters()
        entries = []
        for entry in records_service.get_player_leaderboard(conn, tee_type, year, limit, offset):
            change = snapshot_service.get_latest_player_rank_change(conn, entry['player']['id']) or {}
            entry['rankChange'] = change.get('rankChange', 0)
            entry['recordsChange'] = change.get('recordsChange', 0)
            entries.append(entry)
        return jsonify({
            'entries': entries,
            'total': records_service.get_player_leaderboard_count(conn, tee_type, year),
            'filters': {'teeType': tee_type, 'year': year},
        })

    @app.route('/api/records/leaderboard-with-period')
    def leaderboard_with_period():
        conn = get_db()
        tee_type, year, limit, offset = leaderboard_filters()
        period = request.args.get('period') or 'week'
        if period == 'thisWeek':
            days_ago = max(snapshot_service.get_days_into_current_week(), 1)
        else:
            days_ago = PERIOD_DAYS.get(period, 7)
        since = history_service.cutoff_iso(days_ago)

        entries = []
        for entry in records_service.get_player_leaderboard(conn, tee_type, year, limit, offset):
            player_id = entry['player']['id']
            change = snapshot_service.get_player_rank_change_over_period(conn, player_id, days_ago) or {}
            gained_lost = history_service.get_player_records_gained_lost(conn, player_id, since)
            entry.update({
                'rankChange': change.get('rankChange', 0),
                'recordsChange': change.get('recordsChange', 0),
                'recordsGained': gained_lost['recordsGained'],
                'recordsLost': gained_lost['recordsLost'],
                'previousRank': change.get('previousRank'),
                'comparisonPeriod': period,
                'comparisonDays': days_ago,
            })
            entries.append(entry)

        return jsonify({
            'entries': entries,
            'total': records_service.get_player_leaderboard_count(conn, tee_type, year),
            'filters': {'teeType': tee_type, 'year': year, 'period': period},
        })

    @app.route('/api/records/movers')
    def record_movers():
        conn = get_db()
        days_back = min(int_arg('daysBack', 7), 30)
        limit = min(int_arg('limit', 10), 50)
        return jsonify({
            'gainers': history_service.get_players_with_gained_records(conn, days_back, limit),
            'losers': history_service.get_players_with_lost_records(conn, days_back, limit),
            'period': {'daysBack': days_back},
        })

    # -----------------------------------------------------------------------
    # Calculators
    # -----------------------------------------------------------------------
    @app.route('/api/calc/putting')
    def calc_putting():
        try:
            stimp = request.args.get('stimp', DEFAULT_STIMP, type=int)
            speed = float_arg('speed')
            distance = float_arg('distance')
            if (speed is None) == (distance is None):
                return error('Provide either speed or distance', 400)
            if speed is not None:
                distance = get_distance_for_speed(speed, stimp)
            else:
                speed = get_speed_for_distance(distance, stimp)
        except ValueError as e:
            return error(str(e), 400)
        return jsonify({
            'stimp': stimp,
            'speed': round(speed, 1),
            'distance': round(distance, 1),
            'distanceYards': round(meters_to_yards(distance), 1),
        })

    @app.route('/api/calc/stimps')
    def calc_stimps():
        return jsonify({'stimps': get_available_stimps(), 'default': DEFAULT_STIMP})

    @app.route('/api/calc/plays-as')
    def calc_plays_as():
        units = request.args.get('units') or METRIC
        material = request.args.get('material') or 'fairway'
        try:
            if units not in (METRIC, IMPERIAL):
                raise ValueError(f"Unknown unit system: {units}")
            carry = float_arg('carry')
            if carry is None:
                return error('carry is required', 400)
            slope = float_arg('slope', 0)
            wind_speed = float_arg('windSpeed', 0)
            wind_direction = float_arg('windDirection', 0)
        except ValueError as e:
            return error(str(e), 400)

        to_meters = yards_to_meters if units == IMPERIAL else float
        from_meters = meters_to_yards if units == IMPERIAL else float
        carry_m = to_meters(carry)

        plays_as = calculate_plays_as(carry_m, material)
        wind = calculate_wind_effect(carry_m, wind_speed, wind_direction, deep_rough=material == 'deep_rough')
        aim_offset = calculate_aim_offset(plays_as, slope)

        return jsonify({
            'units': units,
            'material': material,
            'carry': carry,
            'playsAs': round(from_meters(plays_as), 1),
            'aimOffset': round(from_meters(aim_offset), 1),
            'wind': {
                'carryAdjustment': round(from_meters(wind['carry_adjustment']), 1),
                'offlineAdjustment': round(from_meters(wind['offline_adjustment']), 1),
            },
            'total': round(from_meters(plays_as - wind['carry_adjustment']), 1),
        })

    @app.route('/api/calc/materials')
    def calc_materials():
        return jsonify({'materials': get_materials()})

    @app.route('/api/courses/<int:course_id>/course-handicap')
    def course_handicap(course_id):
        conn = get_db()
        course = course_data.get_course(conn, course_id)
        if not course:
            return error('Course not found', 404)
        try:
            handicap_index = float_arg('index')
            allowance = float_arg('allowance', 1.0)
        except ValueError as e:
            return error(str(e), 400)
        if handicap_index is None:
            return error('index is required', 400)

        tee_boxes = course_data.get_tee_boxes(conn, course_id)
        results = HandicapCalculator().course_handicaps_for_tee_boxes(
            tee_boxes, handicap_index, course['par'], allowance
        )
        return jsonify({
            'courseId': course_id,
            'courseName': course['name'],
            'par': course['par'],
            'handicapIndex': handicap_index,
            'allowance': allowance,
            'teeBoxes': [to_camel(result) for result in results],
        })

    # -----------------------------------------------------------------------
    # Web client
    # -----------------------------------------------------------------------
    @app.route('/assets/<path:path>')
    def assets(path):
        try:
            return send_from_directory(os.path.abspath(os.path.join(config.public_dir, 'assets')), path)
        except NotFound:
            return error('Asset not found', 404)

    @app.route('/', defaults={'path': ''})
    @app.route('/<path:path>')
    def index(path):
        if path == 'api' or path.startswith('api/'):
            return error('Not found', 404)
        index_path = os.path.join(config.public_dir, 'index.html')
        if not os.path.isfile(index_path):
            logger.error(f"Could not load index.html from {config.public_dir}")
            return error('Could not load index.html', 500)
        return send_from_directory(os.path.abspath(config.public_dir), 'index.html')

    return app
