"""
Distance and altitude units
Everything is stored in meters; imperial values are converted for display
"""

import math

METRIC = 'metric'
IMPERIAL = 'imperial'
UNIT_SYSTEMS = (METRIC, IMPERIAL)

YARDS_PER_METER = 1.09361
FEET_PER_METER = 3.28084


def round_half_up(value):
    return int(math.floor(value + 0.5))


def meters_to_yards(meters):
    return meters * YARDS_PER_METER


def yards_to_meters(yards):
    return yards / YARDS_PER_METER


def meters_to_feet(meters):
    return meters * FEET_PER_METER


def feet_to_meters(feet):
    return feet / FEET_PER_METER


def _check(unit_system):
    if unit_system not in UNIT_SYSTEMS:
        raise ValueError(f"Unknown unit system: {unit_system}")


def convert_distance(meters, unit_system=METRIC):
    """Meters unchanged for metric, whole yards for imperial"""
    _check(unit_system)
    return meters if unit_system == METRIC else round_half_up(meters_to_yards(meters))


def convert_altitude(meters, unit_system=METRIC):
    _check(unit_system)
    return meters if unit_system == METRIC else round_half_up(meters_to_feet(meters))


def distance_unit(unit_system=METRIC):
    _check(unit_system)
    return 'm' if unit_system == METRIC else 'yd'


def altitude_unit(unit_system=METRIC):
    _check(unit_system)
    return 'm' if unit_system == METRIC else 'ft'
