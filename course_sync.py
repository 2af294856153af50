"""
Course directory sync
Walks a local directory of GSPro course folders and posts every new or changed
course (GKD file plus folder metadata) to the course viewer server.

Usage:
    python course_sync.py                 # all course folders under COURSE_DIR
    python course_sync.py "Some Course"   # a single folder
"""

import argparse
import json
import logging
import os
import time
from datetime import datetime, timezone

import requests

from config import load_config, setup_logging
from course_data import calculate_par
from html_parser import parse_course_list
from sgt_client import SGTClient

logger = logging.getLogger(__name__)

POST_DELAY_SECONDS = 0.1


def iso_from_timestamp(timestamp):
    moment = datetime.fromtimestamp(timestamp, timezone.utc)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def find_file_ignore_case(directory_path, file_name):
    lower_name = file_name.lower()
    for entry in os.listdir(directory_path):
        if entry.lower() == lower_name:
            return entry
    return None


def read_gkd(directory_path, directory_name):
    """Parsed `<folder>.gkd` of a course folder, or None when there is none"""
    gkd_file = find_file_ignore_case(directory_path, f"{directory_name}.gkd")
    if gkd_file is None:
        return None
    with open(os.path.join(directory_path, gkd_file), encoding='utf-8') as f:
        return json.load(f)


def directory_dates(directory_path):
    """
    (added, updated): creation time of the oldest file and modification time of the newest
    Creation time is the inode change time where the platform does not record birth time
    """
    stats = [os.stat(os.path.join(directory_path, entry)) for entry in os.listdir(directory_path)]
    if not stats:
        stats = [os.stat(directory_path)]
    added = min(getattr(stat, 'st_birthtime', stat.st_ctime) for stat in stats)
    updated = max(stat.st_mtime for stat in stats)
    return iso_from_timestamp(added), iso_from_timestamp(updated)


def opcd_version(directory_path):
    files = [entry.lower() for entry in os.listdir(directory_path)]
    if any(name.endswith('.gspcrse') for name in files):
        return 'v4'
    if any(name.endswith('.unity3d') for name in files):
        return 'v3'
    return 'v2'


def build_sync_request(base_directory, directory_name, sgt_courses, sync_item=None):
    """
    Request body for /api/update-from-filesystem
    None when the folder has no GKD file or the server already has these dates
    """
    directory_path = os.path.join(base_directory, directory_name)
    course_data = read_gkd(directory_path, directory_name)
    if not course_data or not course_data.get('CourseName'):
        logger.error(f"No valid .gkd file found for \"{directory_name}\", skipping...")
        return None

    added, updated = directory_dates(directory_path)
    if sync_item and sync_item.get('addedDate') == added and sync_item.get('updatedDate') == updated:
        return None

    course_name = course_data['CourseName']
    sgt_course = sgt_courses.get(course_name.lower())

    return {
        'courseName': course_name,
        'opcdName': directory_name,
        'gkdFileContents': course_data,
        'coursePar': calculate_par(course_data),
        'sgtInfo': {
            'sgtId': sgt_course['course_id'],
            'sgtSplashUrl': sgt_course['splash_url'],
            'sgtYoutubeUrl': sgt_course['flyover_path'],
        } if sgt_course else None,
        'opcdInfo': {
            'addedDate': added,
            'updatedDate': updated,
            'opcdVersion': opcd_version(directory_path),
        },
    }


class CourseSync:
    def __init__(self, base_directory, target_url, sgt_client, session=None):
        self.base_directory = base_directory
        self.target_url = target_url.rstrip('/')
        self.sgt_client = sgt_client
        self.session = session or requests.Session()

    def fetch_sync_list(self):
        response = self.session.get(f"{self.target_url}/api/course-sync-list", timeout=30)
        response.raise_for_status()
        return {item['opcdName'].lower(): item for item in response.json() if item.get('opcdName')}

    def post_course(self, request_body):
        response = self.session.post(
            f"{self.target_url}/api/update-from-filesystem", json=request_body, timeout=120
        )
        response.raise_for_status()
        logger.info(f"Posted \"{request_body['courseName']}\": HTTP {response.status_code} {response.text}")
        return response

    def course_directories(self):
        return sorted(
            entry for entry in os.listdir(self.base_directory)
            if os.path.isdir(os.path.join(self.base_directory, entry))
        )

    def run(self, specific_directory=None):
        """Sync every course folder (or one); returns {processed, skipped, errors}"""
        report = {'processed': [], 'skipped': [], 'errors': []}

        logger.info("Fetching SGT course list...")
        sgt_courses = parse_course_list(self.sgt_client.fetch_course_list())
        logger.info("Fetching sync list...")
        sync_list = self.fetch_sync_list()

        directories = [specific_directory] if specific_directory else self.course_directories()
        total = len(directories)
        logger.info(f"Starting processing. Total directories to process: {total}")

        for index, directory in enumerate(directories, start=1):
            sync_item = sync_list.get(directory.lower())
            try:
                request_body = build_sync_request(self.base_directory, directory, sgt_courses, sync_item)
                if request_body:
                    response = self.post_course(request_body)
                    report['processed'].append({
                        'directory': directory,
                        'status': response.status_code,
                        'course_name': request_body['courseName'],
                    })
                    time.sleep(POST_DELAY_SECONDS)
                elif sync_item:
                    report['skipped'].append(directory)
                else:
                    report['errors'].append({'directory': directory, 'error': 'Invalid or missing GKD file'})
            except (OSError, ValueError, requests.RequestException) as e:
                report['errors'].append({'directory': directory, 'error': str(e)})
            logger.debug(f"Processed {index}/{total}")

        logger.info(f"Total directories: {total}")
        logger.info(f"Successfully processed: {len(report['processed'])}")
        logger.info(f"Skipped (up to date): {len(report['skipped'])}")
        logger.info(f"Errors encountered: {len(report['errors'])}")
        for error in report['errors']:
            logger.error(f"{error['directory']}: {error['error']}")

        return report


def main(argv=None):
    parser = argparse.ArgumentParser(description='Sync local GSPro course folders to the course viewer')
    parser.add_argument('directory', nargs='?', help='Only sync this course folder')
    parser.add_argument('--base-dir', help='Folder holding the course folders (default: COURSE_DIR)')
    parser.add_argument('--target', help='Server base URL (default: SYNC_TARGET_URL)')
    parser.add_argument('--env-file', help='Read settings from this .env file')
    args = parser.parse_args(argv)

    config = load_config(args.env_file)
    setup_logging(config.log_level)

    sync = CourseSync(
        args.base_dir or config.course_dir,
        args.target or config.sync_target_url,
        SGTClient.from_config(config),
    )
    try:
        report = sync.run(args.directory)
    except requests.RequestException as e:
        logger.error(f"An error occurred during execution: {e}")
        return 1
    return 1 if report['errors'] else 0


if __name__ == "__main__":
    raise SystemExit(main())
