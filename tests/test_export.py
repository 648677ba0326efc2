from pathlib import Path

from brandmetrics.export import summaries_to_csv, write_csv
from brandmetrics.models import GroupSummary


def test_csv_keeps_field_order_and_row_order(tmp_path: Path) -> None:
    summaries = [
        GroupSummary("Pixel", 812.4, 117.06, 231.5),
        GroupSummary("iPhone", 640.0, 122.3, 240.0),
    ]

    text = summaries_to_csv(summaries)

    assert text.splitlines() == [
        "groupKey,averageSharpness,averageBrightness,averageContrast",
        "Pixel,812.4,117.06,231.5",
        "iPhone,640.0,122.3,240.0",
    ]
    assert write_csv(tmp_path / "report.csv", summaries).read_text(encoding="utf-8") == text


def test_csv_for_no_summaries_is_header_only() -> None:
    assert summaries_to_csv([]) == "groupKey,averageSharpness,averageBrightness,averageContrast\n"
