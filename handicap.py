"""
World Handicap System (WHS) Calculator
Course and playing handicaps for every tee box of a course
"""

from units import round_half_up

STANDARD_SLOPE = 113


class HandicapCalculator:
    def calculate_course_handicap(self, handicap_index, slope_rating, course_rating, par):
        """
        Strokes received on a set of tees

        Formula: Handicap Index × (Slope Rating / 113) + (Course Rating - Par)
        """
        course_handicap = handicap_index * (slope_rating / STANDARD_SLOPE) + (course_rating - par)
        return round_half_up(course_handicap)

    def calculate_playing_handicap(self, handicap_index, slope_rating, course_rating, par, allowance=1.0):
        """Course handicap scaled by the format allowance (0.95 for individual stroke play)"""
        course_handicap = handicap_index * (slope_rating / STANDARD_SLOPE) + (course_rating - par)
        return round_half_up(course_handicap * allowance)

    def calculate_score_differential(self, adjusted_gross_score, course_rating, slope_rating):
        """
        Formula: (Adjusted Gross Score - Course Rating) × (113 / Slope Rating)
        """
        if not slope_rating:
            raise ValueError("Slope rating must be greater than zero")
        differential = (adjusted_gross_score - course_rating) * (STANDARD_SLOPE / slope_rating)
        return round(differential, 1)

    def course_handicaps_for_tee_boxes(self, tee_boxes, handicap_index, par, allowance=1.0):
        """
        Course and playing handicap per tee box
        Tee boxes without a slope (no rating published) get None
        """
        results = []
        for tee_box in tee_boxes:
            rated = bool(tee_box['slope'])
            results.append({
                'name': tee_box['name'],
                'rating': tee_box['rating'],
                'slope': tee_box['slope'],
                'length': tee_box['length'],
                'course_handicap': self.calculate_course_handicap(
                    handicap_index, tee_box['slope'], tee_box['rating'], par
                ) if rated else None,
                'playing_handicap': self.calculate_playing_handicap(
                    handicap_index, tee_box['slope'], tee_box['rating'], par, allowance
                ) if rated else None,
            })
        return results
