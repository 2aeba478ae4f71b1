from datetime import datetime, timezone

from floorwatch.app.main import format_summary
from floorwatch.models.price_models import PollerState, Trend


def test_summary_lists_prices_and_trend():
    state = PollerState(
        project_name="国文通卷",
        floor_price=110.0,
        last_trade_price=112.5,
        last_updated=datetime(2026, 1, 1, tzinfo=timezone.utc),
        trend=Trend.DOWN,
        history=[150.0, 110.0],
    )

    text = format_summary(state)

    assert text.splitlines()[0] == "国文通卷"
    assert "¥ 110.00 (down)" in text
    assert "¥ 112.50" in text
    assert "2026-01-01T00:00:00+00:00" in text
    assert "█▁" in text
    assert "error" not in text


def test_summary_shows_error():
    state = PollerState(project_name="p", showing_error=True, error_message="Project not found in catalog")

    text = format_summary(state)

    assert "Request failed, retry later" in text
    assert "Project not found in catalog" in text
    assert "updated     : -" in text
