from __future__ import annotations

from diagram_core import Alignment, Axis, Shape, align_shapes, distribute_shapes


def _shapes():
    return [
        Shape(id="a", x=10, y=0, w=50, h=20),
        Shape(id="b", x=100, y=40, w=80, h=40),
        Shape(id="c", x=40, y=100, w=20, h=60),
    ]


def test_align_left():
    assert align_shapes(_shapes(), Alignment.LEFT) == {
        "a": {"x": 10}, "b": {"x": 10}, "c": {"x": 10},
    }


def test_align_right():
    patches = align_shapes(_shapes(), "right")

    assert patches["a"] == {"x": 130}
    assert patches["b"] == {"x": 100}


def test_align_vertical_center():
    patches = align_shapes(_shapes(), Alignment.CENTER_V)

    # Overall span is 0..160, so every center lands on y = 80
    assert patches["a"] == {"y": 70}
    assert patches["c"] == {"y": 50}


def test_align_needs_two_shapes():
    assert align_shapes(_shapes()[:1], Alignment.TOP) == {}


def test_distribute_horizontal_equalizes_gaps():
    shapes = [
        Shape(id="a", x=0, y=0, w=20, h=20),
        Shape(id="b", x=30, y=0, w=40, h=20),
        Shape(id="c", x=180, y=0, w=20, h=20),
    ]

    patches = distribute_shapes(shapes, Axis.HORIZONTAL)

    # Span 200, widths 80, two gaps of 60
    assert patches == {"b": {"x": 80}}


def test_distribute_needs_three_shapes():
    assert distribute_shapes(_shapes()[:2], "vertical") == {}
