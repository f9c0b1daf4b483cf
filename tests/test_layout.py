from firegrid.dashboards.layout import (
    GRID_COLS,
    auto_layout,
    clamp_to_grid,
    find_overlaps,
    migrate_legacy_geometry,
    next_row_y,
    with_min_sizes,
)
from firegrid.widgets.config import (
    ChartWidget,
    DividerWidget,
    HeadingWidget,
    MetricWidget,
    TableWidget,
    TextWidget,
)


def _geometry(widget) -> tuple[int, int, int, int]:
    return widget.x, widget.y, widget.w, widget.h


def test_heading_metrics_and_table() -> None:
    widgets = [
        TableWidget(id="table", table_id="orders"),
        MetricWidget(id="m1"),
        HeadingWidget(id="heading", content="Sales"),
        MetricWidget(id="m2"),
        MetricWidget(id="m3"),
    ]
    placed = {widget.id: widget for widget in auto_layout(widgets)}

    assert _geometry(placed["heading"]) == (0, 0, GRID_COLS, 8)
    metric_rows = {placed[key].y for key in ("m1", "m2", "m3")}
    assert len(metric_rows) == 1
    assert metric_rows.pop() > placed["heading"].y + placed["heading"].h
    assert [placed[key].x for key in ("m1", "m2", "m3")] == [0, 8, 16]
    assert placed["m3"].x + placed["m3"].w == GRID_COLS
    assert placed["table"].x == 0
    assert placed["table"].w == GRID_COLS
    assert placed["table"].y >= placed["m1"].y + placed["m1"].h
    assert find_overlaps(list(placed.values())) == []


def test_layout_never_overlaps_and_stays_in_grid() -> None:
    widgets = [
        DividerWidget(id="d1"),
        ChartWidget(id="c1"),
        TextWidget(id="t1", content="notes"),
        *[MetricWidget(id=f"m{index}") for index in range(7)],
        ChartWidget(id="c2"),
        ChartWidget(id="c3"),
        TableWidget(id="tb1", table_id="a"),
        DividerWidget(id="d2"),
        HeadingWidget(id="h1", content="Top"),
    ]
    placed = auto_layout(widgets)
    assert len(placed) == len(widgets)
    assert find_overlaps(placed) == []
    assert all(widget.x + widget.w <= GRID_COLS for widget in placed)
    order = [widget.id for widget in placed]
    assert order[0] == "h1"
    assert order.index("d1") < order.index("c1") < order.index("tb1") < order.index("d2")


def test_metric_rows_wrap_at_four_per_row() -> None:
    placed = auto_layout([MetricWidget(id=f"m{index}") for index in range(5)])
    assert [widget.w for widget in placed] == [6, 6, 6, 6, 6]
    assert placed[4].y > placed[0].y
    assert placed[4].x == 0


def test_charts_pair_up_unless_alone() -> None:
    single = auto_layout([ChartWidget(id="c1")])
    assert _geometry(single[0]) == (0, 0, GRID_COLS, 48)
    paired = auto_layout([ChartWidget(id="c1"), ChartWidget(id="c2"), ChartWidget(id="c3")])
    assert [(widget.x, widget.w) for widget in paired] == [(0, 12), (12, 12), (0, 12)]
    assert paired[2].y == 50


def test_layout_does_not_touch_its_input() -> None:
    before = [HeadingWidget(id="h", content="x", x=5, y=40, w=3, h=2)]
    auto_layout(before)
    assert _geometry(before[0]) == (5, 40, 3, 2)
    assert auto_layout([]) == []


def test_clamp_keeps_rectangles_inside_the_grid() -> None:
    table = with_min_sizes(TableWidget(id="t", table_id="a", x=22, w=10, h=5))
    clamped = clamp_to_grid(table)
    assert (clamped.x, clamped.w) == (20, 4)
    assert clamped.h == table.min_h


def test_legacy_geometry_is_halved() -> None:
    table = with_min_sizes(TableWidget(id="t", table_id="a", x=24, y=10, w=48, h=56))
    migrated = migrate_legacy_geometry(table)
    assert _geometry(migrated) == (12, 10, 12, 56)

    metric = with_min_sizes(MetricWidget(id="m", x=40, w=5, h=20))
    migrated_metric = migrate_legacy_geometry(metric)
    assert (migrated_metric.x, migrated_metric.w) == (20, 3)

    current = with_min_sizes(MetricWidget(id="m", x=6, w=6, h=20))
    assert migrate_legacy_geometry(current) == current


def test_next_row_y() -> None:
    assert next_row_y([]) == 0
    assert next_row_y([HeadingWidget(id="a", y=4, h=8), TextWidget(id="b", y=0, h=20)]) == 20
