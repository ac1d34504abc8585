# Visit upsert - create or edit a visit for the patient identified by CPF
from __future__ import annotations

import logging
from typing import Any, Dict

from errors import NotFoundError, ValidationError
from matching import find_in_collections
from models import (
    CHRONIC,
    GENERAL,
    PREGNANT,
    GeneralPatient,
    PatientDatabase,
    Visit,
    new_id,
    normalize_document,
)
from storage import PatientStore

logger = logging.getLogger(__name__)

VISIT_ID_FIELD = "visitId"
PLACEHOLDER_NAME = "Nome não informado"

# Specific programs are the authoritative source when a person is in several bases
IDENTITY_PRIORITY = (CHRONIC, PREGNANT, GENERAL)


def _split_submission(form_data: Dict[str, Any]):
    visit_form_data = dict(form_data)
    visit_id = visit_form_data.pop(VISIT_ID_FIELD, None)
    return visit_id, visit_form_data


def _new_patient(visit_form_data: Dict[str, Any], registered_at: str) -> GeneralPatient:
    return GeneralPatient(
        id=new_id(),
        nome=visit_form_data.get("nome") or PLACEHOLDER_NAME,
        cpf=visit_form_data["cpf"],
        cns=visit_form_data.get("cns") or "",
        dataNascimento=visit_form_data.get("dataNascimento") or "",
        telefone=visit_form_data.get("telefone") or "",
        visits=[Visit(id=new_id(), registeredAt=registered_at, formData=visit_form_data)],
    )


def save_visit_data(store: PatientStore, form_data: Dict[str, Any]) -> PatientDatabase:
    """
    Save a submitted visit form.

    - The submission must carry a CPF; nothing is read from storage otherwise.
    - The patient is resolved by normalized CPF over chronic, pregnant, then general.
    - With `visitId`, that visit of the resolved patient is overwritten and its
      registeredAt bumped; without it a new visit is appended.
    - Unknown CPF creates a general patient holding this single visit.

    The whole aggregate is written back in one replace and returned.
    """
    visit_id, visit_form_data = _split_submission(form_data)
    cpf = normalize_document(visit_form_data.get("cpf"))
    if not cpf:
        raise ValidationError("CPF é obrigatório para salvar um registro.")

    db = store.load() or PatientDatabase.empty()
    now = store.now_iso()

    patient = find_in_collections("cpf", cpf, db, IDENTITY_PRIORITY)
    if patient is not None:
        if visit_id:
            visit = next((v for v in patient.visits if v.id == visit_id), None)
            if visit is None:
                raise NotFoundError(f"Visita com ID {visit_id} não encontrada para este paciente.")
            visit.formData = visit_form_data
            visit.registeredAt = now
            logger.info("Visit %s updated", visit_id)
        else:
            patient.visits.append(Visit(id=new_id(), registeredAt=now, formData=visit_form_data))
            logger.info("Visit added to existing patient %s", patient.id)
    else:
        patient = _new_patient(visit_form_data, now)
        db.generalPatients.append(patient)
        logger.info("New general patient %s created from visit", patient.id)

    store.save(db)
    return db
