"""
HTML parsing for Simulator Golf Tour (SGT) pages
Course records table, per-course leaderboards and the course list
"""

import re

from bs4 import BeautifulSoup

SGT_BASE_URL = 'https://simulatorgolftour.com'

COUNTRY_PATTERN = re.compile(r'fi-([a-z]{2})')
SCORE_PATTERN = re.compile(r'^\s*([+-]?\d+)')


def parse_score(score_text):
    """
    Score string to number relative to par
    'E' -> 0, '-15' -> -15, '+2' -> 2, anything unreadable -> 0
    """
    if not score_text or score_text.strip().upper() == 'E':
        return 0
    match = SCORE_PATTERN.match(score_text)
    return int(match.group(1)) if match else 0


def _country_code(element):
    flag = element.select_one('.player-flag') if element else None
    if not flag:
        return None
    match = COUNTRY_PATTERN.search(' '.join(flag.get('class') or []))
    return match.group(1) if match else None


def _absolute(path, base_url):
    if not path or not path.strip():
        return None
    return f"{base_url}{path.strip()}"


def _parse_record(row, record_type, base_url):
    """
    One record (tips or sgt) from a course row
    Returns None when the row has no record holder for this type
    """
    player_attr = row.get(f"data-sort-{record_type}-player")
    if not player_attr or not player_attr.strip():
        return None

    score_attr = row.get(f"data-sort-{record_type}-score")
    date_attr = row.get(f"data-sort-{record_type}-date")

    cell = row.select_one(f"td.{record_type}-player")
    if cell is None:
        return None

    profile_link = cell.select_one("a[href^='/profile/']")
    if profile_link is None:
        # Only an ATTEMPT button, nobody holds the record yet
        return None

    username = profile_link.get('href', '').replace('/profile/', '', 1).strip()
    if not username:
        return None
    display_name = profile_link.get_text().strip() or username

    avatar = cell.select_one('img[data-lazyloadurl]')
    score = (score_attr or '').strip() or 'E'

    return {
        'player_username': username,
        'player_display_name': display_name,
        'country_code': _country_code(cell),
        'avatar_url': _absolute(avatar.get('data-lazyloadurl') if avatar else None, base_url),
        'score': score,
        'score_numeric': parse_score(score),
        'record_date': (date_attr or '').strip() or None,
    }


def parse_singles_response(html, base_url=SGT_BASE_URL):
    """
    Parse the singles course records page, which carries Tips and SGT records for every course
    Returns list of {sgt_course_id, course_name, tips_record, sgt_record}
    """
    soup = BeautifulSoup(html, 'html.parser')
    rows = []

    for row in soup.select('table.course-records-table tbody tr'):
        sgt_course_id = (row.get('data-course-id') or '').strip()
        if not sgt_course_id:
            continue

        name_cell = row.select_one('td.course-name')
        rows.append({
            'sgt_course_id': sgt_course_id,
            'course_name': name_cell.get_text().strip() if name_cell else '',
            'tips_record': _parse_record(row, 'tips', base_url),
            'sgt_record': _parse_record(row, 'sgt', base_url),
        })

    return rows


def parse_leaderboard(html, base_url=SGT_BASE_URL):
    """Parse a per-course record leaderboard page"""
    soup = BeautifulSoup(html, 'html.parser')

    course_name = soup.select_one('h5.text-sgt-white')
    tee_type = soup.select_one('p.text-sgt-light')

    entries = []
    for row in soup.select('table.course-records-table tbody tr'):
        link = row.find('a')
        cells = row.find_all('td')
        low_score = row.select_one('td.low-score')
        avatar = row.find('img')

        attempts_text = cells[1].get_text().strip() if len(cells) > 1 else ''
        attempts = int(attempts_text) if attempts_text.isdigit() else None

        entries.append({
            'playerName': link.get_text().strip() if link else '',
            'attempts': attempts,
            'lowScore': low_score.get_text().strip() if low_score else '',
            'avatarUrl': _absolute(avatar.get('data-lazyloadurl') if avatar else None, base_url),
            'countryCode': _country_code(row),
            'profileUrl': f"{base_url}{link.get('href', '') if link else ''}",
        })

    return {
        'courseName': course_name.get_text().strip() if course_name else '',
        'teeType': tee_type.get_text().strip() if tee_type else '',
        'entries': entries,
    }


def parse_course_list(html):
    """
    Parse the SGT course list into {lower-case course name: {course_id, splash_url, flyover_path}}
    """
    soup = BeautifulSoup(html, 'html.parser')
    courses = {}

    for card in soup.select('div.course-card'):
        course_id = card.get('data-course-id')
        name_div = card.select_one('div[data-sort-key="NAME"]')
        course_name = name_div.get_text().strip() if name_div else ''
        if not course_name or not course_id:
            continue

        image = card.select_one('.course-image')
        flyover = card.select_one('div[data-action-type="flyover"]')
        courses[course_name.lower()] = {
            'course_id': course_id,
            'splash_url': image.get('data-lazyloadurl') if image else None,
            'flyover_path': flyover.get('data-flyover-path') if flyover else None,
        }

    return courses
