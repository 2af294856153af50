import copy

import pytest

from app import create_app
from config import Config
from database import connect, init_db

SGT_BASE_URL = 'https://sgt.test'

SINGLES_HTML = """
<table class="course-records-table">
  <thead><tr><th>Course</th><th>Tips</th><th>SGT</th></tr></thead>
  <tbody>
    <tr data-course-id="101"
        data-sort-tips-player="alice" data-sort-tips-score="-10" data-sort-tips-date="2025-01-05"
        data-sort-sgt-player="bob" data-sort-sgt-score="E" data-sort-sgt-date="2024-12-01">
      <td class="course-name"> Pine Valley </td>
      <td class="tips-player">
        <img data-lazyloadurl="/avatars/alice.png">
        <span class="player-flag fi fi-us"></span>
        <a href="/profile/alice">Alice A</a>
      </td>
      <td class="sgt-player"><a href="/profile/bob">Bob</a></td>
    </tr>
    <tr data-course-id="202" data-sort-tips-player="" data-sort-sgt-player="">
      <td class="course-name">Empty Course</td>
      <td class="tips-player"><button>ATTEMPT</button></td>
      <td class="sgt-player"><button>ATTEMPT</button></td>
    </tr>
    <tr data-course-id="303"
        data-sort-tips-player="alice" data-sort-tips-score="-3" data-sort-tips-date="2025-02-10">
      <td class="course-name">Missing Course</td>
      <td class="tips-player"><a href="/profile/alice">Alice A</a></td>
      <td class="sgt-player"></td>
    </tr>
    <tr><td class="course-name">No id</td></tr>
  </tbody>
</table>
"""

LEADERBOARD_HTML = """
<h5 class="text-sgt-white"> Pine Valley </h5>
<p class="text-sgt-light">Tips</p>
<table class="course-records-table">
  <tbody>
    <tr>
      <td>
        <img data-lazyloadurl="/avatars/alice.png">
        <span class="player-flag fi-gb"></span>
        <a href="/profile/alice">Alice A</a>
      </td>
      <td>12</td>
      <td class="low-score">-10</td>
    </tr>
    <tr>
      <td><a href="/profile/bob">Bob</a></td>
      <td>-</td>
      <td class="low-score">-4</td>
    </tr>
  </tbody>
</table>
"""

COURSE_LIST_HTML = """
<div class="course-card" data-course-id="101">
  <img class="course-image" data-lazyloadurl="https://cdn.test/pine-valley.jpg">
  <div data-sort-key="NAME"> Pine Valley </div>
  <div data-action-type="flyover" data-flyover-path="https://youtube.test/pv"></div>
</div>
<div class="course-card" data-course-id="102">
  <div data-sort-key="NAME">Augusta</div>
</div>
<div class="course-card">
  <div data-sort-key="NAME">No Id Course</div>
</div>
"""

COURSE_DATA = {
    'CourseName': 'Pine Valley',
    'Location': 'New Jersey',
    'Designer': 'George Crump',
    'altitudeV2': 30,
    'CourseInfo': 'Heathland classic',
    'Holes': [
        {
            'Enabled': True,
            'Par': 4,
            'Tees': [
                {'TeeType': 'Black', 'Enabled': True, 'Distance': 400, 'Position': {'y': 10}},
                {'TeeType': 'White', 'Enabled': True, 'Distance': 350, 'Position': {'y': 8}},
                {'TeeType': 'GreenCenterPoint', 'Enabled': True, 'Distance': 0, 'Position': {'y': 2}},
                {'TeeType': 'AimPoint1', 'Enabled': True, 'Distance': 200, 'Position': {'y': 30}},
            ],
            'Pins': [{'Position': {'y': 2}}],
        },
        {
            'Enabled': True,
            'Par': 3,
            'Tees': [
                {'TeeType': 'Black', 'Enabled': True, 'Distance': 180, 'Position': {'y': 6}},
                {'TeeType': 'White', 'Enabled': True, 'Distance': 150, 'Position': {'y': 4}},
            ],
            'Pins': [{'Position': {'y': 4}}],
        },
        {'Enabled': False, 'Par': 5, 'Tees': [], 'Pins': []},
    ],
    'TeeTypeTotalDistance': [
        {'TeeType': 'Black', 'Distance': 6500},
        {'TeeType': 'White', 'Distance': 6000},
    ],
    'BlackSR': '73.8/138',
    'WhiteSR': '71.2/130',
    'Hazards': [{'innerOOB': True}, {'islandGreen': True}, {'freeDrop': True}, {}],
    'KeywordTourStop': True,
    'KeywordMajorVenue': True,
    'KeywordLinks': False,
    'KeywordsString': 'heathland',
}


def make_course_data(**overrides):
    course_data = copy.deepcopy(COURSE_DATA)
    course_data.update(overrides)
    return course_data


def make_record(username, score, record_date, score_numeric=None):
    if score_numeric is None:
        score_numeric = 0 if score == 'E' else int(score)
    return {
        'player_username': username,
        'player_display_name': username.title(),
        'country_code': 'us',
        'avatar_url': None,
        'score': score,
        'score_numeric': score_numeric,
        'record_date': record_date,
    }


def make_row(sgt_course_id, tips_record=None, sgt_record=None, course_name=''):
    return {
        'sgt_course_id': sgt_course_id,
        'course_name': course_name,
        'tips_record': tips_record,
        'sgt_record': sgt_record,
    }


class FakeSGTClient:
    def __init__(self, singles_html=SINGLES_HTML, manifest=None, fail=False):
        self.base_url = SGT_BASE_URL
        self.singles_html = singles_html
        self.manifest = manifest if manifest is not None else [101]
        self.fail = fail
        self.calls = []

    def fetch_singles_records(self):
        self.calls.append('singles')
        if self.fail:
            raise ConnectionError("SGT unreachable")
        return self.singles_html

    def fetch_leaderboard(self, sgt_id, tee_type):
        self.calls.append(('leaderboard', sgt_id, tee_type))
        return LEADERBOARD_HTML

    def fetch_course_manifest(self):
        self.calls.append('manifest')
        return list(self.manifest)

    def fetch_course_list(self):
        self.calls.append('course_list')
        return COURSE_LIST_HTML


@pytest.fixture
def config(tmp_path):
    return Config({
        'DB_PATH': str(tmp_path / 'data' / 'test.db'),
        'PUBLIC_DIR': str(tmp_path / 'public'),
        'SCHEDULER_ENABLED': 'false',
        'COURSE_DIR': str(tmp_path / 'courses'),
    })


@pytest.fixture
def conn(config):
    connection = connect(config.db_path)
    init_db(connection)
    yield connection
    connection.close()


@pytest.fixture
def sgt_client():
    return FakeSGTClient()


@pytest.fixture
def app(config, conn, sgt_client):
    flask_app = create_app(config, client=sgt_client)
    flask_app.config['TESTING'] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
