# Record store - the whole patient database persisted as one envelope
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy import JSON, Column, Integer, MetaData, String, Table, create_engine, delete, inspect, insert, select
from sqlalchemy.exc import SQLAlchemyError

from errors import StorageError, StorageUnavailable
from models import COLLECTIONS, PatientDatabase

logger = logging.getLogger(__name__)

STORE_NAME = "patients"
RECORD_KEY = "patientData"
SCHEMA_VERSION = 1

metadata = MetaData()

patients_table = Table(
    STORE_NAME,
    metadata,
    Column("id", String(64), primary_key=True),
    Column("payload", JSON, nullable=False),
)

schema_version_table = Table(
    "schema_version",
    metadata,
    Column("version", Integer, nullable=False),
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryBackend:
    """In-process key-value area. Values are kept as JSON text, never shared objects."""

    def __init__(self):
        self._areas: Dict[str, Dict[str, str]] = {}
        self.version = 0

    def open(self, version: int) -> None:
        if version > self.version:
            self._areas.setdefault(STORE_NAME, {})
            self.version = version

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._areas[STORE_NAME].get(key)
        return json.loads(raw) if raw is not None else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageError("Erro ao salvar os dados.") from exc
        self._areas[STORE_NAME][key] = raw

    def clear(self) -> None:
        self._areas[STORE_NAME].clear()


class SqlBackend:
    """Key-value area on a SQLAlchemy database: one `patients` table of JSON payloads."""

    def __init__(self, url: str, **engine_kwargs):
        self.url = url
        self.engine = create_engine(url, **engine_kwargs)

    def _stored_version(self, conn) -> int:
        if not inspect(conn).has_table(schema_version_table.name):
            return 0
        return conn.execute(select(schema_version_table.c.version)).scalar() or 0

    def open(self, version: int) -> None:
        try:
            with self.engine.begin() as conn:
                current = self._stored_version(conn)
                if current < version:
                    logger.info("Upgrading patient store schema %s -> %s", current, version)
                    metadata.create_all(conn)
                    conn.execute(delete(schema_version_table))
                    conn.execute(insert(schema_version_table).values(version=version))
        except SQLAlchemyError as exc:
            raise StorageUnavailable("Erro ao abrir a base de dados local.") from exc

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(patients_table.c.payload).where(patients_table.c.id == key)
                ).first()
        except SQLAlchemyError as exc:
            raise StorageError("Erro ao carregar os dados.") from exc
        return row[0] if row else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(patients_table).where(patients_table.c.id == key))
                conn.execute(insert(patients_table).values(id=key, payload=value))
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            raise StorageError("Erro ao salvar os dados.") from exc

    def clear(self) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(patients_table))
        except SQLAlchemyError as exc:
            raise StorageError("Erro ao limpar a base de dados.") from exc


@dataclass
class DbStatus:
    patientCount: int
    loadedAt: str

    def to_dict(self) -> Dict[str, Any]:
        return {"patientCount": self.patientCount, "loadedAt": self.loadedAt}


class PatientStore:
    """
    Durable storage of the single PatientDatabase envelope:
    {id: RECORD_KEY, database: <aggregate>, loadedAt: <last write>}.
    Every operation opens the backend first and either completes or raises StorageError.
    """

    def __init__(self, backend, clock: Callable[[], datetime] = utc_now):
        self.backend = backend
        self.clock = clock

    def open(self) -> None:
        self.backend.open(SCHEMA_VERSION)

    def now_iso(self) -> str:
        return self.clock().isoformat()

    def _envelope(self) -> Optional[Dict[str, Any]]:
        self.open()
        return self.backend.get(RECORD_KEY)

    def save(self, database: PatientDatabase) -> Dict[str, Any]:
        """Replace the stored envelope with `database`. Returns the written envelope."""
        self.open()
        envelope = {
            "id": RECORD_KEY,
            "database": database.to_dict(),
            "loadedAt": self.now_iso(),
        }
        self.backend.put(RECORD_KEY, envelope)
        logger.info("Patient database saved (%d patients)", database.patient_count())
        return envelope

    def load(self) -> Optional[PatientDatabase]:
        """Stored aggregate, or None when nothing was ever saved."""
        envelope = self._envelope()
        if envelope is None:
            return None
        return PatientDatabase.from_dict(envelope.get("database") or {})

    def clear(self) -> None:
        self.open()
        self.backend.clear()
        logger.info("Patient database cleared")

    def status(self) -> Optional[DbStatus]:
        envelope = self._envelope()
        if envelope is None:
            return None
        database = envelope.get("database") or {}
        count = sum(len(database.get(name) or []) for name in COLLECTIONS)
        return DbStatus(patientCount=count, loadedAt=envelope.get("loadedAt", ""))


def create_store(database_url: str) -> PatientStore:
    """Store for a configured URL; 'memory://' keeps everything in process."""
    if database_url == "memory://":
        return PatientStore(MemoryBackend())
    return PatientStore(SqlBackend(database_url))
