from __future__ import annotations

from datetime import datetime


def build_summary(findings: dict) -> str:
    scores = findings.get("scores", {})
    validation = findings.get("validation", {})
    recommendations = findings.get("recommendations", [])
    authority = findings.get("authority", {})

    lines = ["# Site Audit Summary", "", f"Target: {findings.get('target', 'n/a')}", f"Generated: {datetime.utcnow().isoformat()}", ""]
    if findings.get("reliable") is False:
        lines.append("> Markup unavailable, possibly bot protection. Markup-based axes are marked no data.")
        lines.append("")

    lines.append("## Scores")
    lines.append(f"- Overall: {scores.get('overall', 'n/a')} ({scores.get('overall_color', 'n/a')})")
    for name, category in scores.get("categories", {}).items():
        value = "no data" if category.get("no_data") else category.get("score")
        lines.append(f"- {category.get('label', name)}: {value}")
    lines.append("")

    lines.append("## Verification")
    lines.append(
        f"- {validation.get('verified', 0)}/{validation.get('total_checks', 0)} checks verified, "
        f"{validation.get('filtered', 0)} corrected, score {validation.get('verification_score', 'n/a')}/100"
    )
    for check in validation.get("checks", []):
        if not check.get("verified"):
            lines.append(f"- {check.get('field')}: {check.get('reason')}")
    lines.append("")

    lines.append("## Authority Reports")
    if not authority:
        lines.append("- No authority reports.")
    for report in authority.values():
        lines.append(f"- {report.get('label')}: {report.get('overall')} ({report.get('verdict')})")
    lines.append("")

    lines.append("## Prioritized Recommendations")
    if not recommendations:
        lines.append("- No recommendations.")
    for item in recommendations:
        lines.append(f"- {item.get('priority')} | {item.get('category')} | {item.get('title')}: {item.get('description')}")

    return "\n".join(lines)
