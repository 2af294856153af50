"""
Lie penalties from empirical GSPro testing
Plays-as distances out of sand and rough, side slope aim offset and wind effect
All distances are in meters
"""

import math

# (target carry, plays as)
SAND_DATA = [
    (6, 12.0), (9, 16.0), (13, 22.0), (18, 29.0), (24, 36.0), (31, 43.0), (37, 50.0),
    (44, 57.0), (51, 65.0), (61, 73.0), (69, 81.0), (75, 86.0), (82, 92.0), (88, 98.0),
    (101, 109.0), (110, 118.3), (120, 129.0), (130, 139.8), (140, 150.5), (150, 161.3),
    (160, 172.0), (180, 193.5), (200, 215.1), (220, 236.6),
]

DEEP_ROUGH_DATA = [
    (12, 16), (16, 22), (20, 28), (29, 42), (41, 58), (48, 68), (59, 80), (68, 90),
    (76, 101), (85, 110), (92, 120), (101, 130), (108, 140), (115, 150), (122, 160),
    (128, 170), (131, 180), (136, 190), (139, 200), (142, 210), (145, 220), (148, 231),
]

# Rough penalises less than deep rough
ROUGH_DATA = [
    (10.7, 11.8), (15, 16.6), (22.3, 24.7), (25.4, 27.8), (30, 33.2), (37, 41.4),
    (38.1, 42.7), (41, 46), (47.7, 53.1), (50.3, 55.8), (55.1, 60.9), (56.5, 62.3),
    (58.7, 65.1), (60.6, 66.4), (61.4, 67.6), (64.8, 71.4), (72.9, 78.1), (72.9, 78.9),
    (75, 81.2), (78.3, 84.6), (82.8, 88.6), (86.3, 91.3), (87.5, 93.0), (90, 95.4),
    (94.1, 99.5), (95.0, 100.3), (98.7, 104), (100.1, 106.3), (104, 110.1), (113.4, 118.7),
    (114.2, 119.4), (114.6, 120.8), (117.6, 123.7), (121, 126.7), (123.7, 128.8),
    (123.9, 129.8), (129.1, 134.8), (133.7, 140.7), (141.7, 146.9), (145.7, 150.4),
    (145.1, 152.5), (149, 155.3), (152.5, 157.9), (157.4, 163.5), (161.2, 167.8),
    (163.2, 169.5), (168.1, 176.6), (172, 181), (176.2, 185.4), (178.1, 188.6),
    (180.5, 191.6), (185.5, 198.3), (193.1, 205.4), (197.4, 209.8), (206, 224.2),
    (218.5, 227.7), (226.4, 241.1), (241.5, 258),
]

PLAYS_AS_DATA = {
    'sand': SAND_DATA,
    'deep_rough': DEEP_ROUGH_DATA,
    'rough': ROUGH_DATA,
}

MATERIALS = [
    {'name': 'fairway', 'title': 'Fairway'},
    {'name': 'rough', 'title': 'Rough'},
    {'name': 'deep_rough', 'title': 'Deep Rough'},
    {'name': 'sand', 'title': 'Sand'},
]

# Aim offset (m) at each side slope angle, by plays-as distance
SIDE_SLOPE_ANGLES = [1, 3, 5, 7, 10]
SIDE_SLOPE_DATA = [
    (30, [0.3, 0.8, 1.3, 1.8, 2.6]),
    (40, [0.3, 1.0, 1.7, 2.5, 3.5]),
    (50, [0.4, 1.3, 2.2, 3.1, 4.4]),
    (60, [0.6, 1.7, 2.9, 4.1, 5.8]),
    (70, [0.7, 2.0, 3.4, 4.7, 6.8]),
    (80, [0.8, 2.3, 3.8, 5.4, 7.8]),
    (90, [0.9, 2.8, 4.7, 6.6, 9.5]),
    (100, [1.0, 3.1, 5.2, 7.4, 10.6]),
    (110, [1.3, 4.0, 6.7, 9.5, 13.6]),
    (120, [1.5, 4.4, 7.3, 10.3, 14.8]),
    (130, [1.7, 5.1, 8.5, 12.0, 17.2]),
    (140, [1.8, 5.5, 9.2, 12.9, 18.5]),
    (150, [2.1, 6.3, 10.5, 14.7, 21.2]),
    (160, [2.2, 6.7, 11.2, 15.7, 22.6]),
    (170, [2.4, 7.1, 11.9, 16.7, 24.0]),
    (180, [2.6, 7.7, 12.9, 18.1, 26.0]),
    (190, [2.7, 8.2, 13.6, 19.1, 27.5]),
    (200, [3.0, 9.1, 15.2, 21.4, 30.7]),
    (220, [3.3, 10.0, 16.7, 23.5, 33.7]),
]

# Measured at a 4 m/s wind: (target carry, crosswind offset, headwind loss, tailwind gain)
WIND_BASE_SPEED = 4
WIND_4MS_DATA = [
    (40, 1.5, 0.5, 0.3),
    (70, 3.5, 3.5, 2),
    (100, 6, 6.5, 5),
    (150, 8.5, 9, 8),
    (200, 10.5, 11, 9),
    (252, 11, 11, 9.5),
]

DEEP_ROUGH_WIND_FACTOR = 0.75


def lerp(x, x0, x1, y0, y1):
    if x1 == x0:
        return y0
    return y0 + (x - x0) * (y1 - y0) / (x1 - x0)


def bracketing_indices(value, values):
    """
    Indices of the two entries around `value`
    Out of range values get the end pair so callers extrapolate
    """
    if len(values) < 2:
        return 0, 0
    if value <= values[0]:
        return 0, 1
    if value >= values[-1]:
        return len(values) - 2, len(values) - 1
    for i in range(len(values) - 1):
        if values[i] <= value <= values[i + 1]:
            return i, i + 1
    return len(values) - 2, len(values) - 1


def interpolate_plays_as(target_carry, data):
    if not data:
        return target_carry
    if len(data) == 1:
        return data[0][1]

    low, high = bracketing_indices(target_carry, [carry for carry, _ in data])
    (x0, y0), (x1, y1) = data[low], data[high]
    return lerp(target_carry, x0, x1, y0, y1)


def calculate_plays_as(target_carry, material):
    """Distance to swing for so the ball carries `target_carry` from this lie"""
    data = PLAYS_AS_DATA.get(material)
    if data is None:
        # Fairway, tee and anything unknown play true
        return target_carry
    return interpolate_plays_as(target_carry, data)


def calculate_aim_offset(plays_as, slope_angle):
    """Sideways aim correction in meters for a side slope, bilinear over distance and angle"""
    angle = abs(slope_angle)
    if angle == 0:
        return 0

    distances = [distance for distance, _ in SIDE_SLOPE_DATA]
    d_low, d_high = bracketing_indices(plays_as, distances)
    a_low, a_high = bracketing_indices(angle, SIDE_SLOPE_ANGLES)
    a0, a1 = SIDE_SLOPE_ANGLES[a_low], SIDE_SLOPE_ANGLES[a_high]

    offsets_low = SIDE_SLOPE_DATA[d_low][1]
    offsets_high = SIDE_SLOPE_DATA[d_high][1]
    r0 = lerp(angle, a0, a1, offsets_low[a_low], offsets_low[a_high])
    r1 = lerp(angle, a0, a1, offsets_high[a_low], offsets_high[a_high])

    return lerp(plays_as, distances[d_low], distances[d_high], r0, r1)


def _wind_value(target_carry, column):
    distances = [row[0] for row in WIND_4MS_DATA]
    low, high = bracketing_indices(target_carry, distances)
    return lerp(
        target_carry, distances[low], distances[high],
        WIND_4MS_DATA[low][column], WIND_4MS_DATA[high][column],
    )


def calculate_wind_effect(target_carry, wind_speed, wind_direction, deep_rough=False):
    """
    Wind adjustment for a shot
    wind_direction: 0 = headwind, 90 = from the right, 180 = tailwind, 270 = from the left
    Returns carry_adjustment (negative = plays shorter) and offline_adjustment
    (negative = ball moves left)
    """
    if wind_speed == 0:
        return {'carry_adjustment': 0, 'offline_adjustment': 0}

    radians = math.radians(wind_direction)
    headwind_component = math.cos(radians)
    crosswind_component = math.sin(radians)

    base_crosswind = _wind_value(target_carry, 1)
    base_headwind = _wind_value(target_carry, 2)
    base_tailwind = _wind_value(target_carry, 3)
    scale = wind_speed / WIND_BASE_SPEED

    if headwind_component > 0:
        carry_adjustment = -base_headwind * headwind_component * scale
    else:
        carry_adjustment = base_tailwind * -headwind_component * scale
    offline_adjustment = -base_crosswind * crosswind_component * scale

    # Less spin out of deep rough
    factor = DEEP_ROUGH_WIND_FACTOR if deep_rough else 1
    return {
        'carry_adjustment': carry_adjustment * factor,
        'offline_adjustment': offline_adjustment * factor,
    }


def get_materials():
    return [dict(material) for material in MATERIALS]
