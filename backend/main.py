# Backend main entry point - local patient store API for home visits
import logging
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional

from fastapi import Body, Depends, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ai_text import GeminiGenerator, populate_template, rewrite_text
from config import Settings, get_settings
from errors import (
    AIServiceError,
    ExportError,
    NotFoundError,
    PatientStoreError,
    SpreadsheetImportError,
    StorageError,
    ValidationError,
)
from export import send_to_sheet
from history import get_all_visits, patient_visits
from importer import import_patients
from matching import find_in_collections, find_patient_by_document, find_patients_by_name
from models import PatientDatabase, collection_for_pathway
from seed import seed_data
from storage import PatientStore, create_store
from visits import IDENTITY_PRIORITY, save_visit_data

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Home Visit Patient Store API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Most specific first: StorageUnavailable is a StorageError
ERROR_STATUS = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (SpreadsheetImportError, 422),
    (ExportError, 502),
    (AIServiceError, 502),
    (StorageError, 503),
]


@app.exception_handler(PatientStoreError)
async def patient_store_error_handler(request: Request, exc: PatientStoreError):
    status_code = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@lru_cache(maxsize=None)
def _store_for(database_url: str) -> PatientStore:
    return create_store(database_url)


def get_store() -> PatientStore:
    return _store_for(get_settings().database_url)


def get_text_generator():
    current = get_settings()
    return GeminiGenerator(current.gemini_api_key, current.gemini_model, timeout=current.http_timeout)


def _load_or_404(store: PatientStore) -> PatientDatabase:
    db = store.load()
    if db is None:
        raise NotFoundError("Nenhuma base de dados carregada.")
    return db


# Request/Response models
class DbStatusResponse(BaseModel):
    loaded: bool
    patientCount: int = 0
    loadedAt: Optional[str] = None


class RewriteRequest(BaseModel):
    text: str
    target: Literal["record", "patient"]


class ImageInput(BaseModel):
    mimeType: str
    data: str  # base64


class PopulateRequest(BaseModel):
    sourceText: str = ""
    template: str
    image: Optional[ImageInput] = None


@app.get("/")
def read_root():
    return {"message": "Home Visit Patient Store API"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.get("/db")
def get_database(store: PatientStore = Depends(get_store)):
    """Full stored database (404 when nothing was imported or saved yet)"""
    return _load_or_404(store).to_dict()


@app.get("/db/status", response_model=DbStatusResponse)
def get_database_status(store: PatientStore = Depends(get_store)):
    status = store.status()
    if status is None:
        return DbStatusResponse(loaded=False)
    return DbStatusResponse(loaded=True, patientCount=status.patientCount, loadedAt=status.loadedAt)


@app.delete("/db")
def clear_database(store: PatientStore = Depends(get_store)):
    store.clear()
    return {"status": "cleared"}


@app.post("/db/import", response_model=DbStatusResponse)
def import_database(file: UploadFile = File(...), store: PatientStore = Depends(get_store)):
    """Replace the local database with the patients of an .xlsx workbook"""
    if file.filename and not file.filename.lower().endswith(".xlsx"):
        raise SpreadsheetImportError("Por favor, envie um arquivo .xlsx válido.")
    db = import_patients(store, file.file.read())
    status = store.status()
    return DbStatusResponse(
        loaded=True,
        patientCount=db.patient_count(),
        loadedAt=status.loadedAt if status else None,
    )


@app.get("/patients/search")
def search_patients(name: str = Query(""), store: PatientStore = Depends(get_store)):
    db = store.load()
    if db is None:
        return []
    return [patient.to_dict() for patient in find_patients_by_name(name, db)]


@app.get("/patients/by-document")
def get_patient_by_document(
    value: str,
    field: Literal["cpf", "cns"] = "cpf",
    pathway: str = "visit",
    store: PatientStore = Depends(get_store),
):
    """Patient for a care pathway form: the pathway's own base first, then the general base"""
    db = _load_or_404(store)
    patient = find_patient_by_document(field, value, db, collection_for_pathway(pathway))
    if patient is None:
        raise NotFoundError("Paciente não encontrado.")
    return patient.to_dict()


@app.get("/patients/visits")
def get_patient_visits(
    cpf: str,
    newestFirst: bool = False,
    store: PatientStore = Depends(get_store),
):
    db = _load_or_404(store)
    patient = find_in_collections("cpf", cpf, db, IDENTITY_PRIORITY)
    if patient is None:
        raise NotFoundError("Paciente não encontrado.")
    return {
        "patientName": patient.nome,
        "visits": [visit.to_dict() for visit in patient_visits(patient, newest_first=newestFirst)],
    }


@app.post("/visits")
def save_visit(form_data: Dict[str, Any] = Body(...), store: PatientStore = Depends(get_store)):
    """Create a visit, or edit one when the form carries visitId. Returns the updated database."""
    return save_visit_data(store, form_data).to_dict()


@app.get("/visits")
def list_visits(store: PatientStore = Depends(get_store)) -> List[Dict[str, Any]]:
    db = store.load()
    if db is None:
        return []
    return [visit.to_dict() for visit in get_all_visits(db)]


@app.post("/ai/rewrite")
def rewrite(request: RewriteRequest, generate=Depends(get_text_generator)):
    return {"text": rewrite_text(request.text, request.target, generate)}


@app.post("/ai/populate")
def populate(request: PopulateRequest, generate=Depends(get_text_generator)):
    image = request.image.model_dump() if request.image else None
    return {"text": populate_template(request.sourceText, request.template, image, generate)}


@app.post("/export")
def export_record(record: Dict[str, Any] = Body(...), current: Settings = Depends(get_settings)):
    send_to_sheet(record, current.sheet_script_url, timeout=current.http_timeout)
    return {"status": "success"}


@app.get("/demo/status")
def demo_status():
    """Returns whether demo mode is enabled. Only for frontend visibility gate."""
    return {"demoMode": get_settings().demo_mode}


@app.post("/demo/reset")
def demo_reset(store: PatientStore = Depends(get_store)):
    """
    Reset the local database to the demo patients. Only available when DEMO_MODE=true.
    """
    if not get_settings().demo_mode:
        raise HTTPException(status_code=404, detail="Demo reset not available")
    db = seed_data(store)
    return {"status": "ok", "patientCount": db.patient_count()}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
