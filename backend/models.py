# Patient data models - local patient database aggregate
from __future__ import annotations

import re
import unicodedata
import uuid
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple, Type, Union

GENERAL = "generalPatients"
PREGNANT = "pregnantPatients"
CHRONIC = "chronicPatients"
COLLECTIONS: Tuple[str, ...] = (GENERAL, PREGNANT, CHRONIC)

DOCUMENT_FIELDS = ("cpf", "cns")

# Care pathway id -> collection searched first for that pathway's patients
CARE_PATHWAY_COLLECTIONS: Dict[str, str] = {
    "diabetes": CHRONIC,
    "hipertensao": CHRONIC,
    "gestantes": PREGNANT,
    "crianca": GENERAL,
    "tuberculose": GENERAL,
    "visit": GENERAL,
}


def new_id() -> str:
    return uuid.uuid4().hex


def normalize_document(value: Any) -> str:
    """Keep only the digits of a CPF/CNS. Empty or missing input yields ''."""
    if value is None:
        return ""
    return re.sub(r"\D", "", str(value))


def normalize_name(name: Any) -> str:
    """Normalize name: lowercase and strip diacritics (NFD + combining marks)."""
    if not name:
        return ""
    decomposed = unicodedata.normalize("NFD", str(name).lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def collection_for_pathway(pathway_id: str) -> str:
    """Primary collection for a care pathway; unknown pathways use the general base."""
    return CARE_PATHWAY_COLLECTIONS.get(pathway_id, GENERAL)


@dataclass
class Visit:
    """One home visit registered for a patient"""
    id: str
    registeredAt: str  # ISO-8601
    formData: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "registeredAt": self.registeredAt, "formData": dict(self.formData)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Visit":
        return cls(
            id=str(data.get("id", "")),
            registeredAt=data.get("registeredAt", ""),
            formData=dict(data.get("formData") or {}),
        )


@dataclass
class GeneralPatient:
    """Patient from the general base (TPC/PBK sheets or created by a visit)"""
    nome: str
    dataNascimento: str = ""
    cpf: str = ""
    cns: str = ""
    telefone: str = ""
    nomeSocial: Optional[str] = None
    id: Optional[str] = None
    visits: List[Visit] = field(default_factory=list)
    extras: Dict[str, Any] = field(default_factory=dict)  # columns outside the variant

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls) if f.name not in ("visits", "extras")]

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.extras)
        for name in self.field_names():
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        data["visits"] = [visit.to_dict() for visit in self.visits]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneralPatient":
        known = cls.field_names()
        values = {name: data[name] for name in known if name in data and data[name] is not None}
        values.setdefault("nome", "")
        extras = {k: v for k, v in data.items() if k not in known and k not in ("visits", "extras")}
        visits = [Visit.from_dict(v) for v in (data.get("visits") or [])]
        return cls(visits=visits, extras=extras, **values)


@dataclass
class PregnantPatient(GeneralPatient):
    """Patient from the pregnancy follow-up base (PBG sheet)"""
    dum: str = ""  # last menstrual period
    dpp: str = ""  # expected delivery date
    semanasGestacao: str = ""
    vacinacao: str = ""
    ultimaConsulta: str = ""
    proximaConsulta: str = ""


@dataclass
class ChronicPatient(GeneralPatient):
    """Patient from the chronic conditions base (PBD/PBH sheets)"""
    condicao: str = ""  # "Diabetes" | "Hipertensão" | "Ambos"
    ultimoResultadoGlicemia: Optional[str] = None
    ultimaAfericaoPA: Optional[str] = None


Patient = Union[GeneralPatient, PregnantPatient, ChronicPatient]

PATIENT_TYPES: Dict[str, Type[GeneralPatient]] = {
    GENERAL: GeneralPatient,
    PREGNANT: PregnantPatient,
    CHRONIC: ChronicPatient,
}


def patient_type_for(collection: str) -> Type[GeneralPatient]:
    try:
        return PATIENT_TYPES[collection]
    except KeyError:
        raise ValueError(f"Unknown patient collection: {collection}") from None


@dataclass
class PatientDatabase:
    """The whole local database: three patient collections persisted as one unit"""
    generalPatients: List[GeneralPatient] = field(default_factory=list)
    pregnantPatients: List[PregnantPatient] = field(default_factory=list)
    chronicPatients: List[ChronicPatient] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "PatientDatabase":
        return cls()

    def collection(self, name: str) -> List[Patient]:
        patient_type_for(name)
        return getattr(self, name)

    def patient_count(self) -> int:
        return sum(len(self.collection(name)) for name in COLLECTIONS)

    def to_dict(self) -> Dict[str, Any]:
        return {name: [p.to_dict() for p in self.collection(name)] for name in COLLECTIONS}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatientDatabase":
        db = cls()
        for name in COLLECTIONS:
            patient_cls = patient_type_for(name)
            db.collection(name).extend(patient_cls.from_dict(p) for p in (data.get(name) or []))
        return db
