from io import BytesIO

import pandas as pd
from openpyxl import load_workbook

import course_data
from conftest import make_course_data
from exporter import build_course_frame, export_csv, export_xlsx


def course(name, tee_boxes, is_par_3=False):
    return {
        'name': name,
        'location': 'Somewhere',
        'designer': 'Someone',
        'altitude': 10,
        'holes': 18,
        'is_par_3': is_par_3,
        'tee_boxes': tee_boxes,
    }


def test_frame_has_a_column_triple_per_tee_name():
    df = build_course_frame([
        course('A', [{'name': 'White', 'length': 6000, 'rating': 71.2, 'slope': 130}]),
        course('B', [{'name': 'Black', 'length': 6500, 'rating': 73.8, 'slope': 138}], is_par_3=True),
    ])

    assert list(df.columns) == [
        'Name', 'Location', 'Designer', 'Altitude', 'Holes', 'Par 3 Course',
        'Black Length', 'Black Rating', 'Black Slope',
        'White Length', 'White Rating', 'White Slope',
    ]
    assert pd.isna(df.loc[0, 'Black Length'])
    assert df.loc[0, 'White Slope'] == 130
    assert df.loc[1, 'Par 3 Course'] == 'Yes'


def test_export_csv(conn):
    course_data.create_course_from_course_data(conn, make_course_data())
    conn.commit()

    lines = export_csv(conn).splitlines()

    assert lines[0] == (
        'Name,Location,Designer,Altitude,Holes,Par 3 Course,'
        'Black Length,Black Rating,Black Slope,White Length,White Rating,White Slope'
    )
    assert lines[1] == 'Pine Valley,New Jersey,George Crump,30,2,No,6500,73.8,138,6000,71.2,130'
    assert len(lines) == 2


def test_export_xlsx_styles_header(conn):
    course_data.create_course_from_course_data(conn, make_course_data())
    conn.commit()

    workbook = load_workbook(BytesIO(export_xlsx(conn)))
    sheet = workbook['Courses']

    assert sheet['A1'].value == 'Name'
    assert sheet['A1'].font.bold is True
    assert sheet['A2'].value == 'Pine Valley'
    assert sheet.freeze_panes == 'A2'
