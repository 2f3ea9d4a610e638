import pytest

from chartingest.zfinder import ONE_TO_ONE_ZOOM, calculate_z_range, find_zoom


@pytest.mark.parametrize("scale", [-10, 0, 1])
def test_scales_up_to_one_give_full_zoom(scale):
    assert find_zoom(scale) == ONE_TO_ONE_ZOOM


def test_scale_two_is_one_step_below():
    assert find_zoom(2) == 27


def test_just_above_one_drops_a_level():
    assert find_zoom(1.5) == ONE_TO_ONE_ZOOM - 1


@pytest.mark.parametrize("scale", [1, 3, 7, 1000, 22000, 90000, 350000])
def test_doubling_scale_drops_one_level(scale):
    assert find_zoom(scale * 2) == find_zoom(scale) - 1


def test_zoom_is_non_increasing_in_scale():
    scales = [1, 2, 5, 10, 100, 999, 5000, 12000, 50000, 1_000_000, 10_000_000]
    zooms = [find_zoom(s) for s in scales]
    assert zooms == sorted(zooms, reverse=True)


def test_zero_attributes_give_default_range():
    assert calculate_z_range(0, 0) == (0, ONE_TO_ONE_ZOOM)


def test_negative_attributes_are_ignored():
    assert calculate_z_range(-5, -5) == (0, ONE_TO_ONE_ZOOM)


def test_only_scamin_sets_lower_bound():
    assert calculate_z_range(50000, 0) == (find_zoom(50000), ONE_TO_ONE_ZOOM)


def test_only_scamax_leaves_lower_bound_at_zero():
    assert calculate_z_range(0, 8000) == (0, find_zoom(8000))


@pytest.mark.parametrize("a,b", [(1000, 90000), (90000, 1000), (22000, 22000)])
def test_range_is_ordered_and_symmetric(a, b):
    low, high = calculate_z_range(a, b)
    assert low <= high
    assert calculate_z_range(b, a) == (low, high)
    assert {low, high} == {find_zoom(a), find_zoom(b)}