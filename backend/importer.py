# Bulk import of the patient bases from an .xlsx workbook
from __future__ import annotations

import logging
import zipfile
from datetime import date, datetime, time
from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple, Union

from openpyxl import load_workbook
from openpyxl.utils.datetime import from_excel
from openpyxl.utils.exceptions import InvalidFileException

from errors import SpreadsheetImportError
from models import CHRONIC, GENERAL, PREGNANT, PatientDatabase, new_id, normalize_document, patient_type_for
from storage import PatientStore

logger = logging.getLogger(__name__)

# Sheet name -> (collection, fixed values applied to every row)
SHEET_COLLECTIONS: Dict[str, Tuple[str, Dict[str, str]]] = {
    "TPC": (GENERAL, {}),
    "PBK": (GENERAL, {}),
    "PBG": (PREGNANT, {}),
    "PBD": (CHRONIC, {"condicao": "Diabetes"}),
    "PBH": (CHRONIC, {"condicao": "Hipertensão"}),
}

DATE_FIELDS = ("dataNascimento", "dum", "dpp", "ultimaConsulta", "proximaConsulta")
TEXT_FIELDS = ("nome", "nomeSocial", "cpf", "cns", "telefone")
# Model attributes a sheet column may not set; such columns are kept as extras under a prefixed name
RESERVED_COLUMNS = ("visits", "extras")
RESERVED_COLUMN_PREFIX = "planilha_"

EXPECTED_SHEETS_MESSAGE = (
    "Nenhuma das abas esperadas (TPC, PBK, PBG, PBD, PBH) foi encontrada no arquivo "
    "ou elas estão vazias."
)


def excel_date_to_iso(value: Any) -> Any:
    """Convert an Excel date serial or date cell to YYYY-MM-DD; other values pass through."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return from_excel(value).date().isoformat()
    return value


def cell_to_text(value: Any) -> Any:
    """Numeric identifier cells (12345678900 or 12345678900.0) become digit strings."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _sheet_records(worksheet) -> List[Dict[str, Any]]:
    rows = worksheet.iter_rows(values_only=True)
    header_row = next(rows, None)
    if not header_row:
        return []
    headers = [str(h).strip() if h is not None else None for h in header_row]
    headers = [f"{RESERVED_COLUMN_PREFIX}{h}" if h in RESERVED_COLUMNS else h for h in headers]

    records = []
    for row in rows:
        if row is None or all(v is None or v == "" for v in row):
            continue
        record = {h: v for h, v in zip(headers, row) if h and v is not None}
        for name in DATE_FIELDS:
            if record.get(name):
                try:
                    record[name] = excel_date_to_iso(record[name])
                except (OverflowError, ValueError) as exc:
                    raise SpreadsheetImportError(
                        f"Data inválida na aba {worksheet.title}, coluna {name}: {record[name]}."
                    ) from exc
        for name in TEXT_FIELDS:
            if name in record:
                record[name] = cell_to_text(record[name])
        for name, value in record.items():
            if isinstance(value, (datetime, date, time)):
                record[name] = value.isoformat()
        records.append(record)
    return records


def import_workbook(source: Union[bytes, str, Any]) -> PatientDatabase:
    """
    Build a fresh PatientDatabase from a workbook (raw bytes, a path or a file object).
    Raises SpreadsheetImportError when the file is unreadable or no recognized sheet has rows.
    """
    if isinstance(source, (bytes, bytearray)):
        source = BytesIO(source)
    try:
        workbook = load_workbook(source, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        raise SpreadsheetImportError(
            f"Falha ao ler o arquivo. Verifique o formato .xlsx. {EXPECTED_SHEETS_MESSAGE}"
        ) from exc

    db = PatientDatabase.empty()
    try:
        for sheet_name, (collection, fixed) in SHEET_COLLECTIONS.items():
            if sheet_name not in workbook.sheetnames:
                continue
            patient_cls = patient_type_for(collection)
            records = _sheet_records(workbook[sheet_name])
            patients = [patient_cls.from_dict({**record, **fixed}) for record in records]
            for patient in patients:
                if not patient.id:
                    patient.id = new_id()
            db.collection(collection).extend(patients)
            logger.info("Sheet %s: %d rows -> %s", sheet_name, len(patients), collection)
    finally:
        workbook.close()

    if db.patient_count() == 0:
        raise SpreadsheetImportError(EXPECTED_SHEETS_MESSAGE)
    return db


def carry_over_visits(new_db: PatientDatabase, previous: Optional[PatientDatabase]) -> None:
    """Keep id and visit history of patients re-imported into the same collection."""
    if previous is None:
        return
    for name in (GENERAL, PREGNANT, CHRONIC):
        by_cpf = {}
        for patient in previous.collection(name):
            key = normalize_document(patient.cpf)
            if key and key not in by_cpf:
                by_cpf[key] = patient
        for patient in new_db.collection(name):
            old = by_cpf.get(normalize_document(patient.cpf))
            if old is not None:
                patient.id = old.id or patient.id
                patient.visits = list(old.visits) + patient.visits


def import_patients(store: PatientStore, source: Union[bytes, str, Any]) -> PatientDatabase:
    """Replace the stored database with the workbook's contents, keeping known visit histories."""
    db = import_workbook(source)
    carry_over_visits(db, store.load())
    store.save(db)
    logger.info("Imported %d patients", db.patient_count())
    return db
