from __future__ import annotations

from datetime import datetime
from html import escape


def build_html(findings: dict) -> str:
    scores = findings.get("scores", {})
    validation = findings.get("validation", {})
    recommendations = findings.get("recommendations", [])
    authority = findings.get("authority", {})
    plan = findings.get("treatment_plan", {})

    def li(items: list[str]) -> str:
        if not items:
            return "<li>None</li>"
        return "".join(f"<li>{escape(str(x))}</li>" for x in items)

    score_cards = ""
    for name, category in scores.get("categories", {}).items():
        value = "no data" if category.get("no_data") else category.get("score")
        score_cards += (
            f"<div class=\"score {escape(str(category.get('color', '')))}\">"
            f"<strong>{escape(str(category.get('label', name)))}</strong><div>{escape(str(value))}</div></div>"
        )

    failed_checks = [
        f"{c.get('field')}: {c.get('reason')}" for c in validation.get("checks", []) if not c.get("verified")
    ]

    authority_sections = ""
    for report in authority.values():
        rows = "".join(
            "<tr>"
            f"<td>{escape(str(sub.get('label', '')))}</td>"
            f"<td>{'no data' if sub.get('no_data') else ''} {escape(str(sub.get('score', '')))}/{escape(str(sub.get('max', '')))}</td>"
            "</tr>"
            for sub in report.get("categories", {}).values()
        )
        authority_sections += (
            f"<h3>{escape(str(report.get('label', '')))}: {escape(str(report.get('overall', '')))} "
            f"({escape(str(report.get('verdict', '')))})</h3>"
            f"<table><tbody>{rows}</tbody></table>"
            f"<h4>Insights</h4><ul>{li(report.get('insights', []))}</ul>"
            f"<h4>Action plan</h4><ul>{li(report.get('action_plan', []))}</ul>"
        )

    phases = ""
    for phase in plan.get("phases", []):
        phases += (
            f"<h3>{escape(str(phase.get('name', '')))}</h3>"
            f"<p>{escape(str(phase.get('description', '')))}</p>"
            f"<ul>{li([step.get('title') for step in phase.get('steps', [])])}</ul>"
        )

    rec_rows = ""
    for item in recommendations:
        rec_rows += (
            "<tr>"
            f"<td>{escape(str(item.get('priority', '')))}</td>"
            f"<td>{escape(str(item.get('category', '')))}</td>"
            f"<td>{escape(str(item.get('title', '')))}</td>"
            f"<td>{escape(str(item.get('description', '')))}</td>"
            f"<td><pre>{escape(str(item.get('remediation', '')))}</pre></td>"
            f"<td>{escape(str(item.get('effort', '')))}</td>"
            "</tr>"
        )

    generated = datetime.utcnow().isoformat()

    return f"""<!doctype html>
<html lang=\"en\">
<head>
  <meta charset=\"utf-8\" />
  <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
  <title>Site Audit Report</title>
  <style>
    body {{ font-family: Arial, sans-serif; margin: 32px; color: #222; }}
    h1, h2 {{ margin-bottom: 0.25rem; }}
    .meta {{ color: #666; margin-bottom: 1.5rem; }}
    .scores {{ display: flex; flex-wrap: wrap; gap: 16px; margin-bottom: 1rem; }}
    .score {{ padding: 12px 16px; border: 1px solid #ddd; border-radius: 8px; }}
    .green {{ border-color: #2e7d32; }} .lime {{ border-color: #9e9d24; }} .yellow {{ border-color: #f9a825; }}
    .orange {{ border-color: #ef6c00; }} .red {{ border-color: #c62828; }}
    table {{ width: 100%; border-collapse: collapse; margin-top: 0.5rem; }}
    th, td {{ border: 1px solid #ddd; padding: 8px; text-align: left; vertical-align: top; }}
    th {{ background: #f7f7f7; }}
    pre {{ margin: 0; white-space: pre-wrap; font-family: inherit; }}
  </style>
</head>
<body>
  <h1>Site Audit Report</h1>
  <div class=\"meta\">Target: {escape(str(findings.get('target', 'n/a')))} | Generated: {escape(generated)}</div>

  <h2>Scores</h2>
  <div class=\"scores\">
    <div class=\"score {escape(str(scores.get('overall_color', '')))}\"><strong>Overall</strong><div>{escape(str(scores.get('overall', 'n/a')))}</div></div>
    {score_cards}
  </div>

  <h2>Verification</h2>
  <p>{escape(str(validation.get('verified', 0)))}/{escape(str(validation.get('total_checks', 0)))} checks verified,
  score {escape(str(validation.get('verification_score', 'n/a')))}/100</p>
  <ul>{li(failed_checks)}</ul>

  <h2>Authority Reports</h2>
  {authority_sections or '<p>No authority reports.</p>'}

  <h2>Treatment Plan</h2>
  {phases or '<p>Nothing to fix.</p>'}

  <h2>Prioritized Recommendations</h2>
  <table>
    <thead>
      <tr>
        <th>Priority</th>
        <th>Category</th>
        <th>Title</th>
        <th>Description</th>
        <th>Remediation</th>
        <th>Effort</th>
      </tr>
    </thead>
    <tbody>
      {rec_rows or '<tr><td colspan="6">No recommendations.</td></tr>'}
    </tbody>
  </table>
</body>
</html>"""
