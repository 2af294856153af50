import pytest

from handicap import HandicapCalculator
from lie_penalties import calculate_aim_offset, calculate_plays_as, calculate_wind_effect, get_materials
from putting import get_available_stimps, get_distance_for_speed, get_speed_for_distance
from units import altitude_unit, convert_altitude, convert_distance, distance_unit, round_half_up


class TestPutting:
    def test_table_point(self):
        assert get_distance_for_speed(5.3, 11) == pytest.approx(5.1)
        assert get_speed_for_distance(5.1, 11) == pytest.approx(5.3)

    def test_interpolates_between_points(self):
        assert get_distance_for_speed(6.05, 11) == pytest.approx(6.25)

    def test_clamps_below_first_point(self):
        assert get_distance_for_speed(1.0, 11) == pytest.approx(1.3)

    def test_extrapolates_past_last_point(self):
        assert get_distance_for_speed(12.6, 11) == pytest.approx(18.1)

    def test_faster_greens_roll_further(self):
        assert get_distance_for_speed(8.0, 13) > get_distance_for_speed(8.0, 10)

    def test_unknown_stimp(self):
        with pytest.raises(ValueError, match='No data available for stimp 9'):
            get_distance_for_speed(5.0, 9)

    def test_available_stimps(self):
        assert get_available_stimps() == [10, 11, 12, 13]


class TestLiePenalties:
    def test_plays_as_table_point(self):
        assert calculate_plays_as(24, 'sand') == pytest.approx(36.0)

    def test_plays_as_interpolates(self):
        assert calculate_plays_as(21, 'sand') == pytest.approx(32.5)

    def test_fairway_and_unknown_play_true(self):
        assert calculate_plays_as(80, 'fairway') == 80
        assert calculate_plays_as(80, 'mud') == 80

    def test_deep_rough_penalises_more_than_rough(self):
        assert calculate_plays_as(100, 'deep_rough') > calculate_plays_as(100, 'rough') > 100

    def test_aim_offset(self):
        assert calculate_aim_offset(100, 5) == pytest.approx(5.2)
        assert calculate_aim_offset(100, -5) == pytest.approx(5.2)
        assert calculate_aim_offset(100, 0) == 0

    def test_headwind(self):
        effect = calculate_wind_effect(100, 4, 0)
        assert effect['carry_adjustment'] == pytest.approx(-6.5)
        assert effect['offline_adjustment'] == pytest.approx(0)

    def test_tailwind(self):
        effect = calculate_wind_effect(100, 4, 180)
        assert effect['carry_adjustment'] == pytest.approx(5)
        assert effect['offline_adjustment'] == pytest.approx(0, abs=1e-9)

    def test_wind_from_the_right_moves_ball_left(self):
        effect = calculate_wind_effect(100, 8, 90)
        assert effect['offline_adjustment'] == pytest.approx(-12)

    def test_deep_rough_reduces_wind(self):
        effect = calculate_wind_effect(100, 4, 0, deep_rough=True)
        assert effect['carry_adjustment'] == pytest.approx(-4.875)

    def test_calm(self):
        assert calculate_wind_effect(150, 0, 45) == {'carry_adjustment': 0, 'offline_adjustment': 0}

    def test_materials(self):
        assert [material['name'] for material in get_materials()] == ['fairway', 'rough', 'deep_rough', 'sand']


class TestUnits:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(-2.5) == -2

    def test_convert_distance(self):
        assert convert_distance(100) == 100
        assert convert_distance(100, 'imperial') == 109

    def test_convert_altitude(self):
        assert convert_altitude(100, 'imperial') == 328

    def test_labels(self):
        assert (distance_unit('metric'), altitude_unit('metric')) == ('m', 'm')
        assert (distance_unit('imperial'), altitude_unit('imperial')) == ('yd', 'ft')

    def test_unknown_unit_system(self):
        with pytest.raises(ValueError):
            convert_distance(100, 'furlongs')


class TestHandicap:
    def setup_method(self):
        self.calculator = HandicapCalculator()

    def test_course_handicap(self):
        # 18.4 * 131 / 113 + (72.1 - 72) = 21.43
        assert self.calculator.calculate_course_handicap(18.4, 131, 72.1, 72) == 21

    def test_playing_handicap_allowance(self):
        assert self.calculator.calculate_playing_handicap(18.4, 131, 72.1, 72, allowance=0.95) == 20

    def test_score_differential(self):
        assert self.calculator.calculate_score_differential(85, 72.1, 131) == 11.1

    def test_score_differential_needs_slope(self):
        with pytest.raises(ValueError):
            self.calculator.calculate_score_differential(85, 72.1, 0)

    def test_tee_boxes(self):
        tee_boxes = [
            {'name': 'Black', 'rating': 73.8, 'slope': 138, 'length': 6500},
            {'name': 'Par3', 'rating': 0, 'slope': 0, 'length': 1200},
        ]
        black, par3 = self.calculator.course_handicaps_for_tee_boxes(tee_boxes, 10, 72)
        assert black['course_handicap'] == 14
        assert black['playing_handicap'] == 14
        assert par3['course_handicap'] is None
