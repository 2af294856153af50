"""
GSPro course (GKD) data handling
Turns GKD course files into course rows, tee boxes and attribute tags
"""

import logging
import re

from database import dump_json, load_json, row_to_dict, rows_to_dicts

logger = logging.getLogger(__name__)

# Order used when a tee's rating string is broken and a neighbour is borrowed
TEE_RATING_ORDER = ['Black', 'Blue', 'White', 'Green', 'Yellow', 'Red', 'Junior', 'Par3']

DEFAULT_RATING = (71.5, 125.0)

LEADING_NUMBER = re.compile(r'\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')

COURSE_COLUMNS = [
    'name', 'alternate_name', 'location', 'country', 'holes', 'altitude', 'grade',
    'designer', 'difficulty', 'graphics', 'golf_quality', 'description', 'opcd_name',
    'opcd_version', 'added_date', 'updated_date', 'sgt_id', 'sgt_splash_url',
    'sgt_youtube_url', 'par', 'is_par_3', 'largest_elevation_drop',
    'average_elevation_difference', 'total_hazards', 'island_greens',
    'total_water_hazards', 'total_inner_oob', 'range_enabled', 'enabled',
]


# ---------------------------------------------------------------------------
# Pure GKD helpers
# ---------------------------------------------------------------------------
def enabled_holes(course_data):
    return [hole for hole in course_data.get('Holes') or [] if hole.get('Enabled')]


def calculate_par(course_data):
    """Sum of par over the enabled holes"""
    return sum(hole.get('Par') or 0 for hole in enabled_holes(course_data))


def tee_boxes_from_course_data(course_data):
    """
    Real tee boxes of the course, read from the first enabled hole
    Aim points and the green centre marker are not tee boxes
    """
    holes = enabled_holes(course_data)
    if not holes:
        return []

    return [
        tee for tee in holes[0].get('Tees') or []
        if tee.get('Enabled')
        and (tee.get('Distance') or 0) > 0
        and tee.get('TeeType') != 'GreenCenterPoint'
        and 'AimPoint' not in (tee.get('TeeType') or '')
    ]


def tee_box_total_distance(course_data, tee_type):
    for tee in course_data.get('TeeTypeTotalDistance') or []:
        if tee.get('TeeType') == tee_type:
            return tee.get('Distance') or 0
    return 0


def _rating_field(tee_type):
    return 'PAR3SR' if tee_type == 'Par3' else f"{tee_type}SR"


def _leading_number(text):
    match = LEADING_NUMBER.match(text)
    if match is None:
        raise ValueError(f"Not a number: {text!r}")
    return float(match.group(0))


def _split_rating(rating_string):
    """'73.8/138' -> (73.8, 138.0); trailing text after each number is ignored ('73.8/138*')"""
    rating_part, slope_part = rating_string.split('/')[:2]
    return _leading_number(rating_part), _leading_number(slope_part)


def tee_box_rating(course_data, tee_type):
    """
    Course rating and slope for a tee type, from the "<Tee>SR" field ("73.8/138")
    A malformed value borrows the closest valid neighbouring tee, then falls back to 71.5/125
    """
    rating_string = course_data.get(_rating_field(tee_type))
    if not isinstance(rating_string, str) or rating_string.find('/') <= 0:
        return 0.0, 0.0

    try:
        return _split_rating(rating_string)
    except ValueError:
        pass

    if tee_type in TEE_RATING_ORDER:
        index = TEE_RATING_ORDER.index(tee_type)
        for offset in range(1, len(TEE_RATING_ORDER)):
            for neighbour in (index + offset, index - offset):
                if not 0 <= neighbour < len(TEE_RATING_ORDER):
                    continue
                candidate = course_data.get(_rating_field(TEE_RATING_ORDER[neighbour]))
                if isinstance(candidate, str) and '/' in candidate:
                    try:
                        return _split_rating(candidate)
                    except ValueError:
                        continue

    logger.warning(f"No usable rating for tee {tee_type}, using default {DEFAULT_RATING}")
    return DEFAULT_RATING


def course_tags(course_data):
    """Tag names for every Keyword* flag set on the course ('KeywordTourStop' -> 'Tour Stop')"""
    tags = []
    for key, value in course_data.items():
        if key.startswith('Keyword') and key != 'KeywordsString' and value is True:
            name = re.sub(r'(?<=[a-z0-9])(?=[A-Z])', ' ', key[len('Keyword'):])
            tags.append(name)
    return sorted(tags)


def hazard_stats(course_data):
    hazards = course_data.get('Hazards') or []
    inner_oob = sum(1 for hazard in hazards if hazard.get('innerOOB'))
    water = sum(1 for hazard in hazards if not hazard.get('innerOOB') and not hazard.get('freeDrop'))
    return {
        'total_hazards': len(hazards),
        'island_greens': sum(1 for hazard in hazards if hazard.get('islandGreen')),
        'total_water_hazards': water,
        'total_inner_oob': inner_oob,
    }


def elevation_stats(course_data):
    """Largest tee-to-pin drop and average absolute tee-to-pin height difference (metres)"""
    differences = []
    for hole in enabled_holes(course_data):
        tee_heights = [
            tee['Position']['y'] for tee in hole.get('Tees') or []
            if tee.get('Enabled') and tee.get('Position') and 'AimPoint' not in (tee.get('TeeType') or '')
            and tee.get('TeeType') != 'GreenCenterPoint'
        ]
        pin_heights = [pin['Position']['y'] for pin in hole.get('Pins') or [] if pin.get('Position')]
        if not tee_heights or not pin_heights:
            continue
        differences.append(max(tee_heights) - sum(pin_heights) / len(pin_heights))

    if not differences:
        return {'largest_elevation_drop': 0, 'average_elevation_difference': 0}

    return {
        'largest_elevation_drop': round(max(0, max(differences))),
        'average_elevation_difference': round(sum(abs(d) for d in differences) / len(differences)),
    }


def course_attributes(course_data, existing=None):
    """Column values derived from a GKD file, falling back to the stored course"""
    existing = existing or {}
    location = course_data.get('Location') or existing.get('location') or '-'
    attributes = {
        'location': location,
        'holes': len(enabled_holes(course_data)),
        'designer': course_data.get('Designer') or existing.get('designer') or '-',
        'country': course_data.get('Location') or existing.get('country') or 'USA',
        'altitude': course_data.get('altitudeV2') or course_data.get('altitude') or 0,
        'par': calculate_par(course_data),
    }
    attributes.update(hazard_stats(course_data))
    attributes.update(elevation_stats(course_data))
    return attributes


# ---------------------------------------------------------------------------
# Course persistence
# ---------------------------------------------------------------------------
def get_courses(conn):
    return rows_to_dicts(conn.execute("SELECT * FROM courses ORDER BY id"))


def get_course(conn, course_id):
    return row_to_dict(conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone())


def get_course_by_name(conn, name):
    return row_to_dict(conn.execute("SELECT * FROM courses WHERE name = ?", (name,)).fetchone())


def get_course_data(conn, course_id):
    row = conn.execute("SELECT data FROM gk_data WHERE course_id = ?", (course_id,)).fetchone()
    return load_json(row['data']) if row else None


def insert_course(conn, course):
    columns = [column for column in COURSE_COLUMNS if column in course]
    placeholders = ', '.join('?' for _ in columns)
    cursor = conn.execute(
        f"INSERT INTO courses ({', '.join(columns)}) VALUES ({placeholders})",
        [course[column] for column in columns],
    )
    return get_course(conn, cursor.lastrowid)


def update_course(conn, course):
    columns = [column for column in COURSE_COLUMNS if column in course]
    assignments = ', '.join(f"{column} = ?" for column in columns)
    conn.execute(
        f"UPDATE courses SET {assignments} WHERE id = ?",
        [course[column] for column in columns] + [course['id']],
    )


def save_course_data(conn, course_id, course_data):
    conn.execute(
        """
        INSERT INTO gk_data (course_id, data) VALUES (?, ?)
        ON CONFLICT(course_id) DO UPDATE SET data = excluded.data
        """,
        (course_id, dump_json(course_data)),
    )


def create_course_from_course_data(conn, course_data, course_name=None):
    """Insert a course with its tee boxes, tags and raw GKD data"""
    course = {
        'name': course_name or course_data.get('CourseName'),
        'alternate_name': '',
        'difficulty': 3,
        'graphics': 3,
        'golf_quality': 3,
        'grade': 3,
        'description': course_data.get('CourseInfo') or '-',
        'added_date': '',
        'updated_date': '',
        'opcd_name': '',
        'opcd_version': '',
        'sgt_id': '',
        'sgt_splash_url': '',
        'sgt_youtube_url': '',
    }
    course.update(course_attributes(course_data))

    created = insert_course(conn, course)
    create_tee_boxes(conn, created['id'], course_data)
    save_course_data(conn, created['id'], course_data)
    update_course_tags(conn, created['id'], course_data)
    logger.info(f"Created course {created['name']} (#{created['id']})")
    return get_course(conn, created['id'])


def update_course_from_course_data(conn, course_id, course_data):
    course = get_course(conn, course_id)
    course.update(course_attributes(course_data, course))
    update_course(conn, course)
    save_course_data(conn, course_id, course_data)
    return course


def update_par_on_courses(conn, courses):
    """Recalculate par from stored GKD data; returns (failed_names, successful_names)"""
    failed_courses = []
    success_courses = []
    for course in courses:
        course_data = get_course_data(conn, course['id'])
        if not course_data:
            logger.warning(f"Course data not found for {course['name']}")
            failed_courses.append(course['name'])
            continue
        par = calculate_par(course_data)
        conn.execute("UPDATE courses SET par = ? WHERE id = ?", (par, course['id']))
        success_courses.append(course['name'])
    conn.commit()
    return failed_courses, success_courses


# ---------------------------------------------------------------------------
# Tee boxes
# ---------------------------------------------------------------------------
def get_tee_boxes(conn, course_id):
    return rows_to_dicts(conn.execute(
        "SELECT * FROM tee_boxes WHERE course_id = ? ORDER BY id", (course_id,)
    ))


def _tee_box_values(course_data, tee_type):
    rating, slope = tee_box_rating(course_data, tee_type)
    return rating, slope, tee_box_total_distance(course_data, tee_type)


def create_tee_boxes(conn, course_id, course_data):
    for tee in tee_boxes_from_course_data(course_data):
        rating, slope, length = _tee_box_values(course_data, tee['TeeType'])
        conn.execute(
            "INSERT INTO tee_boxes (course_id, name, rating, slope, length) VALUES (?, ?, ?, ?, ?)",
            (course_id, tee['TeeType'], rating, slope, length),
        )
    return get_tee_boxes(conn, course_id)


def update_tee_boxes(conn, course_id, course_data):
    """Refresh rating, slope and length of known tee boxes and add new ones"""
    existing = {tee_box['name']: tee_box for tee_box in get_tee_boxes(conn, course_id)}
    for tee in tee_boxes_from_course_data(course_data):
        rating, slope, length = _tee_box_values(course_data, tee['TeeType'])
        match = existing.get(tee['TeeType'])
        if match:
            conn.execute(
                "UPDATE tee_boxes SET rating = ?, slope = ?, length = ? WHERE id = ?",
                (rating, slope, length, match['id']),
            )
        else:
            conn.execute(
                "INSERT INTO tee_boxes (course_id, name, rating, slope, length) VALUES (?, ?, ?, ?, ?)",
                (course_id, tee['TeeType'], rating, slope, length),
            )
    return get_tee_boxes(conn, course_id)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------
def get_tags(conn):
    return rows_to_dicts(conn.execute("SELECT id, name FROM tags ORDER BY id"))


def get_or_create_tag(conn, name):
    row = conn.execute("SELECT id FROM tags WHERE name = ?", (name,)).fetchone()
    if row:
        return row['id']
    return conn.execute("INSERT INTO tags (name) VALUES (?)", (name,)).lastrowid


def update_course_tags(conn, course_id, course_data):
    tag_ids = [get_or_create_tag(conn, name) for name in course_tags(course_data)]
    conn.execute("DELETE FROM course_to_tags WHERE course_id = ?", (course_id,))
    conn.executemany(
        "INSERT INTO course_to_tags (course_id, tag_id) VALUES (?, ?)",
        [(course_id, tag_id) for tag_id in tag_ids],
    )
    return tag_ids


def get_course_tag_ids(conn, course_ids):
    """Map of course id -> list of tag ids"""
    tag_ids = {course_id: [] for course_id in course_ids}
    if not course_ids:
        return tag_ids
    placeholders = ', '.join('?' for _ in course_ids)
    for row in conn.execute(
        f"SELECT course_id, tag_id FROM course_to_tags WHERE course_id IN ({placeholders}) ORDER BY tag_id",
        list(course_ids),
    ):
        tag_ids[row['course_id']].append(row['tag_id'])
    return tag_ids


# ---------------------------------------------------------------------------
# Filesystem sync
# ---------------------------------------------------------------------------
def update_from_filesystem(conn, request):
    """
    Create or refresh a course from a course-directory sync request

    request: {courseName, opcdName, gkdFileContents, coursePar,
              sgtInfo: {sgtId, sgtSplashUrl, sgtYoutubeUrl} | None,
              opcdInfo: {addedDate, updatedDate, opcdVersion}}
    Returns the status message sent back to the sync client
    """
    course_name = request['courseName']
    course_data = request['gkdFileContents']
    sgt_info = request.get('sgtInfo') or {}
    opcd_info = request.get('opcdInfo') or {}

    course = get_course_by_name(conn, course_name)
    if not course:
        logger.info(f"update-from-filesystem: {course_name} not found, creating new course")
        course = create_course_from_course_data(conn, course_data, course_name)

    update_course_from_course_data(conn, course['id'], course_data)
    course = get_course(conn, course['id'])

    par = request.get('coursePar')
    if par is None:
        par = calculate_par(course_data)
    holes = course['holes']

    course.update({
        'opcd_name': request.get('opcdName') or '',
        'opcd_version': opcd_info.get('opcdVersion') or '',
        'added_date': opcd_info.get('addedDate') or '',
        'updated_date': opcd_info.get('updatedDate') or '',
        'sgt_id': str(sgt_info.get('sgtId') or course.get('sgt_id') or ''),
        'sgt_splash_url': sgt_info.get('sgtSplashUrl') or course.get('sgt_splash_url') or '',
        'sgt_youtube_url': sgt_info.get('sgtYoutubeUrl') or course.get('sgt_youtube_url') or '',
        'par': par,
        'is_par_3': False if holes == 0 else par / holes == 3,
    })
    logger.info(f"update-from-filesystem: Updating course {course['name']}")
    update_course(conn, course)
    update_tee_boxes(conn, course['id'], course_data)
    update_course_tags(conn, course['id'], course_data)
    conn.commit()

    missing_sgt_info = ''
    if not request.get('sgtInfo'):
        missing_sgt_info = ' !!! Missing sgt info'
        logger.warning(f"update-from-filesystem: {course_name} Missing sgt info")

    return 'success' + course['name'] + missing_sgt_info
