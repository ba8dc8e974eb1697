"""Tests for sheet_omr.tools.grid_geometry."""

import pytest

from sheet_omr.config_io import load_layout
from sheet_omr.tools.grid_geometry import Area, Corner, GridGeometry

from conftest import SHEET_H, SHEET_W, TEST_LAYOUT


@pytest.fixture
def geometry():
    return GridGeometry(SHEET_W, SHEET_H, load_layout(TEST_LAYOUT))


class TestSearchArea:

    def test_rm_search_area_when_step_zero_then_initial_square_in_corner(self, geometry):
        assert geometry.rm_search_area(Corner.TL, 0) == Area(10, 10, 75, 75)
        assert geometry.rm_search_area(Corner.TR, 0) == Area(915, 10, 75, 75)
        assert geometry.rm_search_area(Corner.BR, 0) == Area(915, 1315, 75, 75)
        assert geometry.rm_search_area(Corner.BL, 0) == Area(10, 1315, 75, 75)

    @pytest.mark.parametrize("corner", list(Corner))
    def test_rm_search_area_when_step_grows_then_side_grows_and_stays_anchored(self, geometry, corner):
        areas = [geometry.rm_search_area(corner, i) for i in range(6)]

        sides = [a.w for a in areas]
        assert sides == sorted(sides) and len(set(sides)) == len(sides)
        # the edge nearest the page corner does not move
        for a in areas:
            if corner in (Corner.TL, Corner.BL):
                assert a.x == 10
            else:
                assert a.x + a.w == pytest.approx(990, abs=1)
            if corner in (Corner.TL, Corner.TR):
                assert a.y == 10
            else:
                assert a.y + a.h == pytest.approx(1390, abs=1)

    def test_rm_search_area_when_corner_given_as_string_then_accepted(self, geometry):
        assert geometry.rm_search_area("tl", 2) == geometry.rm_search_area(Corner.TL, 2)

    def test_limits_when_test_layout_then_scaled_to_pixels(self, geometry):
        assert geometry.rm_edgy_x == pytest.approx(12.5)
        assert geometry.rm_edgy_y == pytest.approx(12.5)
        assert geometry.rm_max_search_area_side == pytest.approx(250)

    def test_max_side_when_not_configured_then_quarter_page(self):
        layout = load_layout({**TEST_LAYOUT, "reg_marks": {"margin": 10, "radius": 2.5, "search": 15, "offset": 2}})
        geometry = GridGeometry(SHEET_W, SHEET_H, layout)

        assert geometry.rm_max_search_area_side == pytest.approx(SHEET_W / 4)


class TestCellAreas:

    def test_choice_cell_area_when_first_cell_then_measured_from_mark_centre(self, geometry):
        a = geometry.choice_cell_area(0, 0)
        # 1000 px across 180 units, 1400 px across 260 units
        assert a.x == round(17 * 1000 / 180)
        assert a.y == round(58 * 1400 / 260)
        assert a.w == round(6 * 1000 / 180)

    def test_choice_cell_area_when_next_choice_then_shifted_right(self, geometry):
        a0 = geometry.choice_cell_area(1, 0)
        a1 = geometry.choice_cell_area(1, 1)
        assert a1.y == a0.y
        assert a1.x - a0.x == pytest.approx(10 * 1000 / 180, abs=1)

    def test_choice_cell_area_when_second_column_then_wraps(self):
        layout = load_layout({**TEST_LAYOUT, "items": {**TEST_LAYOUT["items"], "questions_per_column": 2}})
        geometry = GridGeometry(SHEET_W, SHEET_H, layout)

        assert geometry.choice_cell_area(2, 0).y == geometry.choice_cell_area(0, 0).y
        assert geometry.choice_cell_area(2, 0).x > geometry.choice_cell_area(1, 4).x

    @pytest.mark.parametrize("q,c", [(-1, 0), (4, 0), (0, 5), (0, -1)])
    def test_choice_cell_area_when_out_of_range_then_raises_index_error(self, geometry, q, c):
        with pytest.raises(IndexError):
            geometry.choice_cell_area(q, c)

    def test_barcode_bit_area_when_one_based_then_position_one_is_leftmost(self, geometry):
        areas = geometry.barcode_bit_areas()
        assert len(areas) == 4
        assert areas[0] == geometry.barcode_bit_area(1)
        assert [a.x for a in areas] == sorted(a.x for a in areas)
        with pytest.raises(IndexError):
            geometry.barcode_bit_area(0)
        with pytest.raises(IndexError):
            geometry.barcode_bit_area(5)

    def test_reference_areas_when_test_layout_then_match_rects(self, geometry):
        assert geometry.ink_black_area() == Area(round(120 * 1000 / 180), round(55 * 1400 / 260),
                                                 round(10 * 1000 / 180), round(10 * 1400 / 260))
        assert len(geometry.calibration_cell_areas()) == 1
        assert geometry.max_questions == 4
        assert geometry.max_choices_per_question == 5
        assert geometry.barcode_bits == 4
