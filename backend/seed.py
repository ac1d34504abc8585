# Seed data - demo patient database for DEMO_MODE and tests
import logging

from models import ChronicPatient, GeneralPatient, PatientDatabase, PregnantPatient
from storage import PatientStore

logger = logging.getLogger(__name__)


def build_demo_database() -> PatientDatabase:
    """Two general, one pregnant and two chronic patients, no visits yet"""
    return PatientDatabase(
        generalPatients=[
            GeneralPatient(
                id="1", nome="Carlos Andrade", dataNascimento="1980-05-15",
                cpf="111.222.333-44", cns="123456789012345", telefone="(11) 91111-1111",
            ),
            GeneralPatient(
                id="2", nome="Fernanda Lima", dataNascimento="1992-11-20",
                cpf="222.333.444-55", cns="234567890123456", telefone="(21) 92222-2222",
            ),
        ],
        pregnantPatients=[
            PregnantPatient(
                id="101", nome="Juliana Paes", dataNascimento="1995-02-10",
                cpf="333.444.555-66", cns="345678901234567", telefone="(31) 93333-3333",
                dum="2024-05-01", dpp="2025-02-05", semanasGestacao="12 semanas",
                vacinacao="Em dia", ultimaConsulta="2024-07-10", proximaConsulta="2024-08-10",
            ),
        ],
        chronicPatients=[
            ChronicPatient(
                id="201", nome="Roberto Carlos da Silva", dataNascimento="1960-03-25",
                cpf="444.555.666-77", cns="456789012345678", telefone="(41) 94444-4444",
                condicao="Hipertensão", ultimaAfericaoPA="140/90 mmHg",
            ),
            ChronicPatient(
                id="202", nome="Maria da Graça Souza", dataNascimento="1955-09-01",
                cpf="555.666.777-88", cns="567890123456789", telefone="(51) 95555-5555",
                condicao="Diabetes", ultimoResultadoGlicemia="150 mg/dL",
            ),
        ],
    )


def seed_data(store: PatientStore) -> PatientDatabase:
    """Replace the stored database with the demo database"""
    db = build_demo_database()
    store.save(db)
    logger.info(
        "Seed data initialized: %d general, %d pregnant, %d chronic patients",
        len(db.generalPatients), len(db.pregnantPatients), len(db.chronicPatients),
    )
    return db


if __name__ == "__main__":
    from config import get_settings
    from storage import create_store

    logging.basicConfig(level=logging.INFO)
    seed_data(create_store(get_settings().database_url))
