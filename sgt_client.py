"""
HTTP client for Simulator Golf Tour (SGT)
"""

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

LEADERBOARD_TEE_TYPES = ('CR', 'CRTips')


class SGTClient:
    def __init__(self, base_url='https://simulatorgolftour.com', user_agent='GSPro-Course-Viewer/1.0',
                 timeout=30, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

        if session is None:
            # Setup session with retry strategy
            session = requests.Session()
            retry_strategy = Retry(
                total=3,
                backoff_factor=1,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=['GET'],
            )
            adapter = HTTPAdapter(max_retries=retry_strategy)
            session.mount('http://', adapter)
            session.mount('https://', adapter)
        session.headers.update({'User-Agent': user_agent})
        self.session = session

    @classmethod
    def from_config(cls, config):
        return cls(config.sgt_base_url, config.sgt_user_agent, config.sgt_timeout)

    def _get(self, path, **kwargs):
        url = f"{self.base_url}{path}"
        response = self.session.get(url, timeout=self.timeout, **kwargs)
        response.raise_for_status()
        return response

    def fetch_singles_records(self):
        """HTML of the combined Tips + SGT singles course records table"""
        logger.info("Fetching singles records from SGT...")
        return self._get('/sgt-api/courses/course-records').text

    def fetch_leaderboard(self, sgt_id, tee_type):
        if tee_type not in LEADERBOARD_TEE_TYPES:
            raise ValueError("Invalid tee type. Must be 'CR' or 'CRTips'")
        return self._get(f"/sgt-api/courses/course-record-leaderboard/{sgt_id}/{tee_type}").text

    def fetch_course_manifest(self):
        """Integer SGT course ids currently published"""
        courses = self._get('/course_manifest.json').json()
        return [int(course['courseId']) for course in courses]

    def fetch_course_list(self):
        return self._get('/sgt-api/courses/list').text
