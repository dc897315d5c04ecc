"""环节一：裁剪矩形规范化与坐标换算。"""

from __future__ import annotations

import itertools

import pytest

from batch_cropper.core.models import CropRect, Point
from batch_cropper.processing.geometry import clamp_crop, map_display_point, normalize_selection


def test_normalize_floors_top_left_and_ceils_bottom_right() -> None:
    rect = normalize_selection(Point(10.4, 20.6), Point(50.2, 60.1), 100, 100)

    assert rect == CropRect(x=10, y=20, w=41, h=41)


def test_normalize_is_order_independent() -> None:
    a = Point(70.9, 5.2)
    b = Point(12.3, 44.8)

    assert normalize_selection(a, b, 80, 60) == normalize_selection(b, a, 80, 60)


def test_normalize_clamps_into_image_bounds() -> None:
    coords = [-25.5, -0.2, 0.0, 13.7, 59.5, 80.0, 120.1]
    points = [Point(x, y) for x, y in itertools.product(coords, repeat=2)]
    width, height = 80, 60

    for a, b in itertools.product(points, repeat=2):
        rect = normalize_selection(a, b, width, height)
        assert rect.x >= 0 and rect.y >= 0
        assert rect.w >= 0 and rect.h >= 0
        assert rect.x + rect.w <= width
        assert rect.y + rect.h <= height
        assert rect == normalize_selection(b, a, width, height)


def test_coincident_points_yield_empty_rect() -> None:
    rect = normalize_selection(Point(5, 5), Point(5, 5), 100, 100)

    assert rect.w == 0 and rect.h == 0
    assert rect.is_empty


def test_selection_fully_outside_yields_empty_rect() -> None:
    beyond = normalize_selection(Point(150, 150), Point(200, 220), 100, 100)
    before = normalize_selection(Point(-10, -10), Point(-5, -3), 100, 100)

    assert beyond.is_empty
    assert beyond.x <= 100 and beyond.y <= 100
    assert before == CropRect(x=0, y=0, w=0, h=0)


def test_clamp_crop_shrinks_to_smaller_image() -> None:
    crop = CropRect(x=100, y=50, w=600, h=450)

    assert clamp_crop(crop, 800, 600) == crop
    assert clamp_crop(crop, 640, 480) == CropRect(x=100, y=50, w=540, h=430)


def test_clamp_crop_outside_image_is_empty() -> None:
    clamped = clamp_crop(CropRect(x=700, y=0, w=10, h=10), 640, 480)

    assert clamped.is_empty
    assert clamped.x == 640


def test_map_display_point_undoes_contain_scaling() -> None:
    # 1600x1200 显示在 800x400 容器中：缩放 1/3，水平居中。
    scale = 400 / 1200
    offset_x = (800 - 1600 * scale) / 2

    point = map_display_point(offset_x + 100, 50, container_size=(800, 400), image_size=(1600, 1200))

    assert point is not None
    assert point.x == pytest.approx(300)
    assert point.y == pytest.approx(150)


def test_map_display_point_clamps_to_image_area() -> None:
    top_left = map_display_point(0, 0, container_size=(800, 400), image_size=(1600, 1200))
    bottom_right = map_display_point(799, 399, container_size=(800, 400), image_size=(1600, 1200))

    assert top_left == Point(0, 0)
    assert bottom_right is not None
    assert bottom_right.x == pytest.approx(1600)
    assert bottom_right.y == pytest.approx(1200 * 399 / 400)


def test_map_display_point_without_image_returns_none() -> None:
    assert map_display_point(10, 10, container_size=(800, 400), image_size=(0, 0)) is None
    assert map_display_point(10, 10, container_size=(0, 0), image_size=(100, 100)) is None


def test_non_finite_coordinates_are_clamped() -> None:
    nan = float("nan")
    inf = float("inf")

    assert normalize_selection(Point(nan, nan), Point(40.5, 30.2), 100, 80) == CropRect(x=0, y=0, w=41, h=31)
    assert normalize_selection(Point(10, 10), Point(inf, inf), 100, 80) == CropRect(x=10, y=10, w=90, h=70)
    assert normalize_selection(Point(-inf, -inf), Point(inf, inf), 100, 80) == CropRect(x=0, y=0, w=100, h=80)
