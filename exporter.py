"""
Course export
All courses with length, rating and slope of every tee box, as CSV or styled Excel
"""

from io import BytesIO

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

BASE_HEADERS = ['Name', 'Location', 'Designer', 'Altitude', 'Holes', 'Par 3 Course']
TEE_BOX_FIELDS = ['Length', 'Rating', 'Slope']

SHEET_NAME = 'Courses'


def load_courses_with_tee_boxes(conn):
    courses = [dict(row) for row in conn.execute("SELECT * FROM courses ORDER BY id")]
    tee_boxes = {}
    for row in conn.execute("SELECT * FROM tee_boxes ORDER BY id"):
        tee_boxes.setdefault(row['course_id'], []).append(dict(row))
    for course in courses:
        course['tee_boxes'] = tee_boxes.get(course['id'], [])
    return courses


def build_course_frame(courses):
    """
    One row per course; a Length/Rating/Slope column triple for each tee name
    found on any course, sorted by name and left empty where a course lacks that tee
    """
    tee_names = sorted({tee_box['name'] for course in courses for tee_box in course['tee_boxes']})
    columns = list(BASE_HEADERS)
    for name in tee_names:
        columns.extend(f"{name} {field}" for field in TEE_BOX_FIELDS)

    records = []
    for course in courses:
        record = {
            'Name': course['name'],
            'Location': course['location'],
            'Designer': course['designer'],
            'Altitude': course['altitude'],
            'Holes': course['holes'],
            'Par 3 Course': 'Yes' if course['is_par_3'] else 'No',
        }
        by_name = {tee_box['name']: tee_box for tee_box in course['tee_boxes']}
        for name in tee_names:
            tee_box = by_name.get(name)
            record[f"{name} Length"] = tee_box['length'] if tee_box else None
            record[f"{name} Rating"] = tee_box['rating'] if tee_box else None
            record[f"{name} Slope"] = tee_box['slope'] if tee_box else None
        records.append(record)

    return pd.DataFrame(records, columns=columns, dtype=object)


def _csv_value(value):
    # SQLite REAL columns come back as floats; 6500.0 prints as 6500
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def export_csv(conn):
    df = build_course_frame(load_courses_with_tee_boxes(conn))
    df = df.apply(lambda column: column.map(_csv_value))
    return df.to_csv(index=False)


def style_worksheet(ws, df):
    """Bold white header on blue, column widths from the longest value"""
    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")

    for col in range(1, len(df.columns) + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center', vertical='center')

    for index, column in enumerate(df.columns, start=1):
        values = [str(value) for value in df[column] if value is not None]
        width = max([len(column)] + [len(value) for value in values])
        ws.column_dimensions[get_column_letter(index)].width = min(width + 2, 50)

    ws.freeze_panes = 'A2'


def export_xlsx(conn):
    """Excel workbook bytes with the same table as the CSV export"""
    df = build_course_frame(load_courses_with_tee_boxes(conn))
    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name=SHEET_NAME, index=False)
        style_worksheet(writer.sheets[SHEET_NAME], df)
    return buffer.getvalue()
