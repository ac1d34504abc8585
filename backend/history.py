# Visit history - every patient's visits flattened into one feed
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from models import COLLECTIONS, Patient, PatientDatabase, Visit

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class PatientVisit:
    """A visit tagged with its owner's display name"""
    id: str
    registeredAt: str
    patientName: str
    formData: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "registeredAt": self.registeredAt,
            "patientName": self.patientName,
            "formData": dict(self.formData),
        }


def _timestamp(value: str) -> datetime:
    """Parse an ISO timestamp; unparseable values sort as oldest."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return _OLDEST
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def get_all_visits(db: PatientDatabase) -> List[PatientVisit]:
    """All visits of all patients, most recent first."""
    feed: List[PatientVisit] = []
    for name in COLLECTIONS:
        for patient in db.collection(name):
            for visit in patient.visits:
                feed.append(PatientVisit(
                    id=visit.id,
                    registeredAt=visit.registeredAt,
                    patientName=patient.nome,
                    formData=visit.formData,
                ))
    feed.sort(key=lambda v: _timestamp(v.registeredAt), reverse=True)
    return feed


def patient_visits(patient: Patient, newest_first: bool = False) -> List[Visit]:
    """A single patient's visits in stored (creation) order, or reversed for display."""
    if newest_first:
        return list(reversed(patient.visits))
    return list(patient.visits)
