# Patient matching - name search and document lookup across the three collections
from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from models import (
    COLLECTIONS,
    DOCUMENT_FIELDS,
    GENERAL,
    Patient,
    PatientDatabase,
    normalize_document,
    normalize_name,
)


def all_patients(db: PatientDatabase) -> List[Patient]:
    """Concatenate collections in fixed order: general, pregnant, chronic."""
    patients: List[Patient] = []
    for name in COLLECTIONS:
        patients.extend(db.collection(name))
    return patients


def find_patients_by_name(name: str, db: PatientDatabase) -> List[Patient]:
    """
    Patients whose normalized name contains the normalized query.
    The same person can sit in the general base and in a specific one, so results
    are deduplicated by the stored cpf value (first occurrence wins). Patients
    without a cpf are never merged with each other.
    """
    if not name:
        return []
    query = normalize_name(name)

    unique: List[Patient] = []
    seen_cpfs: Dict[str, Patient] = {}
    for patient in all_patients(db):
        key = patient.cpf
        if key:
            if key in seen_cpfs:
                continue
            seen_cpfs[key] = patient
        unique.append(patient)

    return [p for p in unique if query in normalize_name(p.nome)]


def _check_field(field: str) -> None:
    if field not in DOCUMENT_FIELDS:
        raise ValueError(f"Document field must be one of {DOCUMENT_FIELDS}, got {field!r}")


def find_in_collections(
    field: str,
    value: str,
    db: PatientDatabase,
    collections: Iterable[str],
) -> Optional[Patient]:
    """First patient, scanning `collections` in order, whose normalized document matches."""
    _check_field(field)
    search_value = normalize_document(value)
    if not search_value:
        return None
    for name in collections:
        for patient in db.collection(name):
            if normalize_document(getattr(patient, field)) == search_value:
                return patient
    return None


def find_patient_by_document(
    field: str,
    value: str,
    db: PatientDatabase,
    primary_collection: str,
) -> Optional[Patient]:
    """
    Look up a patient by CPF or CNS. The care pathway's own collection is searched
    first so pathway-specific records (e.g. pregnancy data) win over the general
    record of the same person; the general base is the fallback.
    """
    order = [primary_collection]
    if primary_collection != GENERAL:
        order.append(GENERAL)
    return find_in_collections(field, value, db, order)
