from __future__ import annotations

import csv
from io import StringIO

FIELDS = ["key", "group", "category", "priority", "effort", "title", "description", "remediation"]


def build_csv(findings: dict) -> str:
    recommendations = findings.get("recommendations", [])
    buf = StringIO()
    writer = csv.DictWriter(buf, fieldnames=FIELDS)
    writer.writeheader()
    for item in recommendations:
        writer.writerow({name: item.get(name) for name in FIELDS})
    return buf.getvalue()
