import pytest

import course_data
from conftest import make_course_data


def test_par_counts_enabled_holes_only():
    assert course_data.calculate_par(make_course_data()) == 7


def test_tee_boxes_skip_markers():
    tee_boxes = course_data.tee_boxes_from_course_data(make_course_data())
    assert [tee['TeeType'] for tee in tee_boxes] == ['Black', 'White']


def test_tee_boxes_without_enabled_holes():
    assert course_data.tee_boxes_from_course_data({'Holes': [{'Enabled': False}]}) == []


def test_tee_box_total_distance():
    data = make_course_data()
    assert course_data.tee_box_total_distance(data, 'White') == 6000
    assert course_data.tee_box_total_distance(data, 'Red') == 0


def test_tee_box_rating():
    data = make_course_data()
    assert course_data.tee_box_rating(data, 'Black') == (73.8, 138.0)
    assert course_data.tee_box_rating(data, 'Red') == (0.0, 0.0)


def test_rating_ignores_trailing_text():
    data = make_course_data(BlackSR='73.8/138*', WhiteSR=' 70.5 / 126 (est)')
    assert course_data.tee_box_rating(data, 'Black') == (73.8, 138.0)
    assert course_data.tee_box_rating(data, 'White') == (70.5, 126.0)


def test_malformed_rating_borrows_neighbour():
    data = make_course_data(BlueSR='abc/def')
    assert course_data.tee_box_rating(data, 'Blue') == (71.2, 130.0)


def test_malformed_rating_without_neighbours_uses_default():
    assert course_data.tee_box_rating({'BlueSR': 'abc/def'}, 'Blue') == course_data.DEFAULT_RATING


def test_course_tags_from_keywords():
    assert course_data.course_tags(make_course_data()) == ['Major Venue', 'Tour Stop']


def test_hazard_stats():
    assert course_data.hazard_stats(make_course_data()) == {
        'total_hazards': 4,
        'island_greens': 1,
        'total_water_hazards': 2,
        'total_inner_oob': 1,
    }


def test_elevation_stats():
    assert course_data.elevation_stats(make_course_data()) == {
        'largest_elevation_drop': 8,
        'average_elevation_difference': 5,
    }


def test_create_course_from_course_data(conn):
    course = course_data.create_course_from_course_data(conn, make_course_data())
    conn.commit()

    assert course['name'] == 'Pine Valley'
    assert course['location'] == 'New Jersey'
    assert course['holes'] == 2
    assert course['par'] == 7
    assert course['altitude'] == 30
    assert course['total_inner_oob'] == 1
    assert course['enabled'] is True

    tee_boxes = course_data.get_tee_boxes(conn, course['id'])
    assert [(t['name'], t['rating'], t['slope'], t['length']) for t in tee_boxes] == [
        ('Black', 73.8, 138.0, 6500),
        ('White', 71.2, 130.0, 6000),
    ]
    assert course_data.get_course_data(conn, course['id'])['CourseName'] == 'Pine Valley'

    tag_names = {tag['id']: tag['name'] for tag in course_data.get_tags(conn)}
    tag_ids = course_data.get_course_tag_ids(conn, [course['id']])[course['id']]
    assert sorted(tag_names[tag_id] for tag_id in tag_ids) == ['Major Venue', 'Tour Stop']


def test_update_tee_boxes_updates_and_adds(conn):
    course = course_data.create_course_from_course_data(conn, make_course_data())
    changed = make_course_data(BlackSR='74.1/140')
    changed['Holes'][0]['Tees'].append({'TeeType': 'Red', 'Enabled': True, 'Distance': 300})
    changed['TeeTypeTotalDistance'].append({'TeeType': 'Red', 'Distance': 5000})

    tee_boxes = course_data.update_tee_boxes(conn, course['id'], changed)

    by_name = {t['name']: t for t in tee_boxes}
    assert set(by_name) == {'Black', 'White', 'Red'}
    assert (by_name['Black']['rating'], by_name['Black']['slope']) == (74.1, 140.0)
    assert by_name['Red']['length'] == 5000


def test_update_par_on_courses(conn):
    course = course_data.create_course_from_course_data(conn, make_course_data())
    course_data.insert_course(conn, {'name': 'No Data', 'location': '-', 'holes': 18})
    conn.execute("UPDATE courses SET par = 72 WHERE id = ?", (course['id'],))

    failed, success = course_data.update_par_on_courses(conn, course_data.get_courses(conn))

    assert failed == ['No Data']
    assert success == ['Pine Valley']
    assert course_data.get_course(conn, course['id'])['par'] == 7


def sync_request(**overrides):
    request = {
        'courseName': 'Pine Valley',
        'opcdName': 'PineValley',
        'gkdFileContents': make_course_data(),
        'coursePar': 7,
        'sgtInfo': {'sgtId': '101', 'sgtSplashUrl': 'https://cdn.test/pv.jpg', 'sgtYoutubeUrl': None},
        'opcdInfo': {
            'addedDate': '2024-01-01T00:00:00.000Z',
            'updatedDate': '2024-06-01T00:00:00.000Z',
            'opcdVersion': 'v4',
        },
    }
    request.update(overrides)
    return request


def test_update_from_filesystem_creates_course(conn):
    message = course_data.update_from_filesystem(conn, sync_request())

    assert message == 'successPine Valley'
    course = course_data.get_course_by_name(conn, 'Pine Valley')
    assert course['sgt_id'] == '101'
    assert course['opcd_name'] == 'PineValley'
    assert course['opcd_version'] == 'v4'
    assert course['added_date'] == '2024-01-01T00:00:00.000Z'
    assert course['sgt_splash_url'] == 'https://cdn.test/pv.jpg'
    assert course['is_par_3'] is False


def test_update_from_filesystem_flags_missing_sgt_info(conn):
    course_data.update_from_filesystem(conn, sync_request())
    message = course_data.update_from_filesystem(conn, sync_request(sgtInfo=None))

    assert message == 'successPine Valley !!! Missing sgt info'
    assert len(course_data.get_courses(conn)) == 1
    assert course_data.get_course_by_name(conn, 'Pine Valley')['sgt_id'] == '101'


def test_update_from_filesystem_detects_par_3_course(conn):
    request = sync_request(coursePar=6)
    course_data.update_from_filesystem(conn, request)
    assert course_data.get_course_by_name(conn, 'Pine Valley')['is_par_3'] is True


def test_update_from_filesystem_requires_course_name(conn):
    with pytest.raises(KeyError):
        course_data.update_from_filesystem(conn, {'gkdFileContents': make_course_data()})
