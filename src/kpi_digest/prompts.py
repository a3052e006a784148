"""Prompt text for the per-area and the executive LLM passes."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

AREA_SEVERITY_RANKING: tuple[str, ...] = (
    "nOrders",
    "ADT Wolt",
    "% Lateness > 25 min Wolt",
    "Avg Delivery Rating Wolt",
)
EXECUTIVE_SEVERITY_RANKING: tuple[str, ...] = AREA_SEVERITY_RANKING + ("Bundle Rate",)

SEVERITY_RULE = (
    "A development is severe if a wow change of +/- 10% happened, or a variation of > 50%"
)

_EXAMPLE_REPORT = """\
1. nOrders (more is better)
General: small decrease of -1% wow
Cities: in Augsburg variation is at 136% and wow is at 225% => consistent extraordinary growth

2. ADT Wolt (less is better)
General: small decrease of -2% wow
Cities: best wow: dortmund (-9%)

5. Bundle Rates: (more is better)
General: strong variation (63%) and consistent decrease by -11% wow
Cities: worst wow: hamburg (-25%), frankfurt (-24%), mannheim (-22%) | best wow: brunswick (+31%), leipzig (+30%), essen (+24%)"""


def _ranking(entries: Sequence[str]) -> str:
    return "\n".join(f"{idx}. {name}" for idx, name in enumerate(entries, start=1))


def build_system_prompt(kpi_labels: Sequence[str], views: Mapping[str, str]) -> str:
    """Describe the analyst role, the KPIs and what each view means."""
    view_lines = "\n".join(f"{name}: {description}" for name, description in views.items())
    kpi_lines = "\n".join(kpi_labels)
    return (
        "You are a data analyst at a food delivery company. Summarize only the most "
        "important information. If there are any abnormalities, make sure to highlight "
        "them. If there's nothing to report, you can say that everything is normal.\n"
        f"I will give you the following KPIs:\n{kpi_lines}.\n"
        "Each KPI has a direction which indicates whether a higher or lower value is better.\n"
        f"For each KPI, I will give you {len(views)} values:\n{view_lines}\n"
    )


def build_area_prompt(csv_text: str) -> str:
    """Instructions for one area's analysis followed by its records as CSV."""
    return (
        "Only report the most important information. Keep the message concise and to "
        "the point. Do not include all KPIs.\n"
        "Answer only with a summary of the most important findings and as one message. "
        "If there's nothing to report, you can say that everything is normal. "
        "Structure your message as follows:\n"
        "1. Name of area\n"
        "2. Most severe problem if any\n"
        "3. Most severe improvement if any\n"
        "4. Severe problems / improvements\n"
        "\n"
        f"{SEVERITY_RULE}\n"
        "Severity ranks as follows:\n"
        f"{_ranking(AREA_SEVERITY_RANKING)}\n"
        "\n"
        "If you include a KPI, include the value and a very short analysis of the value.\n"
        "Do not format the message. Include the name of the city you are analyzing in "
        "the message.\n"
        "Here is the analysis of the KPIs for the past month in a CSV format:\n"
        f"{csv_text}"
    )


def build_executive_prompt(area_analyses: Sequence[str]) -> str:
    """Ask for a prioritized summary across every per-area analysis."""
    joined = "\n\n".join(area_analyses)
    return (
        "I will provide you with a summary of the most important findings in general + "
        "a summary for each city.\n"
        "Write a concise text for the Head of Operations with the most important "
        "findings. Provide advice on the most urgent issues and key points they should "
        "be aware of. Keep in mind that the Head of Operations has a very tight schedule.\n"
        "\n"
        f"{SEVERITY_RULE}\n"
        "Severity ranks as follows:\n"
        f"{_ranking(EXECUTIVE_SEVERITY_RANKING)}\n"
        "Always strictly follow the severity ranking.\n"
        "\n"
        "Structure your message as follows:\n"
        "1. Talk about the general situation. You can include up to three cities with "
        "severe problems in the general analysis.\n"
        "2. Then provide advice on the most urgent issues. Strictly follow the severity "
        "ranking. Regardless of how many cities have severe problems, only mention the "
        "most severe problem.\n"
        "3. Then if necessary, mention specific cities. Strictly sort the cities by the "
        "severity ranking.\n"
        "\n"
        "Do not talk about all KPIs, only the most important ones. Do not talk about all "
        "areas, only the most important ones.\n"
        "Do not format your answer. Only use linebreaks where applicable. Keep it concise "
        "and to the point.\n"
        "\n"
        "Example for a report:\n"
        f"{_EXAMPLE_REPORT}\n"
        "\n"
        "Here are the analyses for the past month:\n"
        f"{joined}\n"
    )
