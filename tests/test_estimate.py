import pytest

from orders import estimate_delivery_minutes


@pytest.mark.parametrize("user, restaurant, expected", [
    ((0, 0), (0, 0), 20),
    ((2, 1), (0, 0), 20),
    ((0, 0), (-3, 0), 20),
    ((4, 0), (0, 0), 35),
    ((3, 3), (0, 0), 35),
    ((-2, -4), (0, 0), 35),
    ((7, 0), (0, 0), 50),
    ((4, 3), (0, 0), 50),
    ((10, -10), (-10, 10), 50),
])
def test_estimate_bands(user, restaurant, expected):
    assert estimate_delivery_minutes(user[0], user[1], restaurant[0], restaurant[1]) == expected


def test_estimate_matches_distance_for_a_grid():
    for ux in range(-5, 6):
        for uy in range(-5, 6):
            d = abs(ux - 1) + abs(uy + 2)
            expected = 20 if d <= 3 else 35 if d <= 6 else 50
            assert estimate_delivery_minutes(ux, uy, 1, -2) == expected


def test_estimate_is_symmetric():
    assert estimate_delivery_minutes(5, 1, 0, 0) == estimate_delivery_minutes(0, 0, 5, 1)
