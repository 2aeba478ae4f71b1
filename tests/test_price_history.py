from floorwatch.models.price_models import Trend
from floorwatch.services.market.price_history import PriceHistory, compute_trend
from floorwatch.services.market.sparkline import BLOCKS, normalize, render_sparkline


def test_first_observation_is_flat():
    history = PriceHistory()
    assert history.append(150.0) is Trend.FLAT


def test_trend_follows_previous_value():
    history = PriceHistory()
    prices = [150.0, 160.0, 160.0, 110.0, 110.5]
    trends = [history.append(p) for p in prices]
    assert trends == [Trend.FLAT, Trend.UP, Trend.FLAT, Trend.DOWN, Trend.UP]


def test_compute_trend_without_previous():
    assert compute_trend(None, 0.0) is Trend.FLAT
    assert compute_trend(0.0, 1.0) is Trend.UP


def test_history_keeps_last_24_in_order():
    history = PriceHistory(24)
    for i in range(30):
        history.append(float(i))
        assert len(history) <= 24

    assert history.values() == [float(i) for i in range(6, 30)]
    assert history.latest == 29.0


def test_normalize_spreads_between_zero_and_one():
    assert normalize([100.0, 150.0, 200.0]) == [0.0, 0.5, 1.0]


def test_normalize_without_spread_is_centered():
    assert normalize([]) == []
    assert normalize([42.0]) == [0.5]
    assert normalize([3.0, 3.0, 3.0]) == [0.5, 0.5, 0.5]


def test_render_sparkline():
    line = render_sparkline([100.0, 150.0, 200.0])
    assert len(line) == 3
    assert line[0] == BLOCKS[0]
    assert line[-1] == BLOCKS[-1]
    assert render_sparkline([]) == ""
