import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from fastapi import Body, Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from . import models, database, schemas  # noqa: F401
from .config import APP_VERSION, Settings, settings as default_settings
from .exceptions import NotFoundError, ValidationError
from .logging_config import configure_logging
from .services.clinical_query import ClinicalQueryEngine
from .store import InMemoryRecordStore, RecordStore, SQLRecordStore

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    app_settings = app.state.settings
    if app_settings.store_backend == "sql":
        try:
            await database.wait_for_db(
                max_retries=app_settings.db_connect_retries,
                retry_interval=app_settings.db_retry_interval,
            )
        except SQLAlchemyError:
            logger.exception("Failed to create database tables")
            raise
    logger.info("Clinic API started with %s store", app_settings.store_backend)
    yield
    # Shutdown
    if app_settings.store_backend == "sql":
        await database.engine.dispose()

def get_store(request: Request, db: AsyncSession = Depends(database.get_db)) -> RecordStore:
    store = request.app.state.record_store
    if store is not None:
        return store
    return SQLRecordStore(db)

def get_query_engine(request: Request, store: RecordStore = Depends(get_store)) -> ClinicalQueryEngine:
    return ClinicalQueryEngine(store, request.app.state.settings.critical_markers)

async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})

async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "errors": exc.errors},
    )

async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Database error: {str(exc)}"},
    )

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)

    app = FastAPI(title="Clinic API", version=APP_VERSION, lifespan=lifespan)
    app.state.settings = settings
    # the memory store lives exactly as long as this app instance
    app.state.record_store = InMemoryRecordStore() if settings.store_backend == "memory" else None

    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    @app.post(
        "/api/patients",
        response_model=schemas.PatientOut,
        status_code=status.HTTP_201_CREATED,
        summary="Add a new patient",
        tags=["Patients"],
    )
    async def add_patient(
        payload: Dict[str, Any] = Body(...),
        store: RecordStore = Depends(get_store),
    ):
        return await store.add_patient(payload)

    @app.get(
        "/api/patients",
        response_model=List[schemas.PatientOut],
        summary="Retrieve a list of all patients",
        tags=["Patients"],
    )
    async def get_all_patients(store: RecordStore = Depends(get_store)):
        return await store.get_all_patients()

    # must be registered before /api/patients/{patient_id}
    @app.get(
        "/api/patients/critical",
        response_model=List[schemas.PatientOut],
        summary="Get all patients in critical condition",
        tags=["Patients"],
    )
    async def get_critical_patients(engine: ClinicalQueryEngine = Depends(get_query_engine)):
        return await engine.get_critical_patients()

    @app.get(
        "/api/patients/{patient_id}",
        response_model=schemas.PatientOut,
        summary="Retrieve a patient by ID",
        tags=["Patients"],
        responses={404: {"description": "Patient not found"}},
    )
    async def get_patient(patient_id: str, store: RecordStore = Depends(get_store)):
        return await store.get_patient_by_id(patient_id)

    @app.post(
        "/api/patients/{patient_id}/tests",
        response_model=schemas.TestOut,
        status_code=status.HTTP_201_CREATED,
        summary="Add a new test for a patient",
        tags=["Tests"],
        responses={404: {"description": "Patient not found"}},
    )
    async def add_test_for_patient(
        patient_id: str,
        payload: Dict[str, Any] = Body(...),
        store: RecordStore = Depends(get_store),
    ):
        return await store.add_test_for_patient(patient_id, payload)

    @app.get(
        "/api/patients/{patient_id}/tests",
        response_model=List[schemas.TestOut],
        summary="Retrieve all tests for a patient",
        tags=["Tests"],
        responses={404: {"description": "Patient not found"}},
    )
    async def get_tests_for_patient(patient_id: str, store: RecordStore = Depends(get_store)):
        return await store.get_tests_for_patient(patient_id)

    @app.get(
        "/api/patients/{patient_id}/history",
        response_model=schemas.PatientHistory,
        summary="Get patient's history including all tests",
        tags=["Patients"],
        responses={404: {"description": "Patient not found"}},
    )
    async def get_patient_history(
        patient_id: str, engine: ClinicalQueryEngine = Depends(get_query_engine)
    ):
        return await engine.get_patient_history(patient_id)

    @app.get("/")
    async def health_check():
        return {
            "status": "healthy",
            "version": APP_VERSION,
            "store": settings.store_backend,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    return app


app = create_app()
