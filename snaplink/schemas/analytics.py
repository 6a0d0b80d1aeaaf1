"""Analytics Pydantic schemas."""

from datetime import date

from pydantic import BaseModel, Field


class TimeseriesPoint(BaseModel):
    """Visits on a single calendar day."""

    date: date
    count: int


class CategoryCount(BaseModel):
    """Visits sharing one browser, device or OS label."""

    label: str
    count: int


class AnalyticsReport(BaseModel):
    """Aggregated analytics for one mapping over a window."""

    slug: str
    original_url: str
    total_visits: int = Field(description="Lifetime visit counter, not limited to the window")
    time_filter: str = Field(description="Resolved window name: day, week, month, year or default")
    start_date: date
    end_date: date
    visit_data: list[TimeseriesPoint] = Field(description="Zero-filled daily series, ascending")
    browser_stats: list[CategoryCount]
    device_stats: list[CategoryCount]
    os_stats: list[CategoryCount]
