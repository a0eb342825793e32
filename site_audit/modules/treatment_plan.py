from __future__ import annotations

from ..models.results import PhaseId, Priority, Recommendation, TreatmentPhase, TreatmentPlan

PHASE_OF = {
    Priority.critical: PhaseId.urgent,
    Priority.high: PhaseId.urgent,
    Priority.medium: PhaseId.foundational,
    Priority.low: PhaseId.advanced,
}

PHASES = [
    (PhaseId.urgent, "Urgent fixes", "Critical and high-priority problems that hurt the site right now."),
    (PhaseId.foundational, "Foundational improvements", "Medium-priority work that strengthens the base."),
    (PhaseId.advanced, "Advanced optimization", "Low-priority polish once the basics are in place."),
]


def build(recommendations: list[Recommendation]) -> TreatmentPlan:
    buckets: dict[PhaseId, list[Recommendation]] = {phase_id: [] for phase_id, _, _ in PHASES}
    for rec in recommendations:
        buckets[PHASE_OF[rec.priority]].append(rec)
    phases = [
        TreatmentPhase(id=phase_id, name=name, description=description, steps=buckets[phase_id])
        for phase_id, name, description in PHASES
        if buckets[phase_id]
    ]
    return TreatmentPlan(phases=phases, total_steps=len(recommendations))
