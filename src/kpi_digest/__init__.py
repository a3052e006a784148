"""kpi-digest — Turn a KPI overview sheet into an LLM-written email digest."""

__version__ = "0.2.0"

VIEWS: dict[str, str] = {
    "variation": (
        "Percentage of (max - min) / average for the observed period => identifies "
        "strong outliers. If combined with wow, it hints at a strong change"
    ),
    "wow": (
        "Percentage of average weekly change for the observed period => identifies "
        "consistent changes that are not outliers"
    ),
}

RECORD_COLUMNS: list[str] = ["Area", "KPI", "Direction", "View", "Value"]
