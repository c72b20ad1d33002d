import asyncio
import itertools
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from . import models
from .exceptions import NotFoundError
from .schemas import PatientIn, PatientOut, TestIn, TestOut, validate_input

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Storage for patients and their tests.

    Implementations generate identifiers, keep insertion order, and refuse
    tests for patients they do not hold. Validation happens here, so callers
    may pass raw mappings straight from a request body.
    """

    @abstractmethod
    async def add_patient(self, data: Any) -> PatientOut:
        ...

    @abstractmethod
    async def get_all_patients(self) -> List[PatientOut]:
        ...

    @abstractmethod
    async def get_patient_by_id(self, patient_id: str) -> PatientOut:
        ...

    @abstractmethod
    async def add_test_for_patient(self, patient_id: str, data: Any) -> TestOut:
        ...

    @abstractmethod
    async def get_tests_for_patient(self, patient_id: str) -> List[TestOut]:
        ...


class InMemoryRecordStore(RecordStore):
    """Process-local store with sequential ids (P1, P2, ... / T1, T2, ...)."""

    def __init__(self):
        self._patients: Dict[str, PatientOut] = {}
        self._tests: Dict[str, List[TestOut]] = {}
        self._patient_ids = itertools.count(1)
        self._test_ids = itertools.count(1)
        # serializes id assignment and insertion
        self._write_lock = asyncio.Lock()

    async def add_patient(self, data: Any) -> PatientOut:
        payload = validate_input(PatientIn, data)
        async with self._write_lock:
            patient = PatientOut(id=f"P{next(self._patient_ids)}", **payload.model_dump())
            self._patients[patient.id] = patient
            self._tests[patient.id] = []
        logger.info("Added patient %s", patient.id)
        return patient

    async def get_all_patients(self) -> List[PatientOut]:
        return list(self._patients.values())

    async def get_patient_by_id(self, patient_id: str) -> PatientOut:
        patient = self._patients.get(patient_id)
        if patient is None:
            logger.debug("Patient %s not found", patient_id)
            raise NotFoundError("Patient", patient_id)
        return patient

    async def add_test_for_patient(self, patient_id: str, data: Any) -> TestOut:
        await self.get_patient_by_id(patient_id)
        payload = validate_input(TestIn, data)
        async with self._write_lock:
            test = TestOut(
                id=f"T{next(self._test_ids)}",
                patient_id=patient_id,
                **payload.model_dump(),
            )
            self._tests[patient_id].append(test)
        logger.info("Added test %s for patient %s", test.id, patient_id)
        return test

    async def get_tests_for_patient(self, patient_id: str) -> List[TestOut]:
        await self.get_patient_by_id(patient_id)
        return list(self._tests.get(patient_id, ()))


class SQLRecordStore(RecordStore):
    """Store backed by the `patients` and `tests` tables through one AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex

    async def _insert(self, row):
        self.session.add(row)
        try:
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            raise
        await self.session.refresh(row)
        return row

    async def add_patient(self, data: Any) -> PatientOut:
        payload = validate_input(PatientIn, data)
        row = await self._insert(models.Patient(id=self._new_id(), **payload.model_dump()))
        logger.info("Added patient %s", row.id)
        return PatientOut.model_validate(row)

    async def get_all_patients(self) -> List[PatientOut]:
        query = select(models.Patient).order_by(models.Patient.seq)
        result = await self.session.execute(query)
        return [PatientOut.model_validate(row) for row in result.scalars().all()]

    async def get_patient_by_id(self, patient_id: str) -> PatientOut:
        query = select(models.Patient).filter(models.Patient.id == patient_id)
        result = await self.session.execute(query)
        row = result.scalar_one_or_none()
        if row is None:
            logger.debug("Patient %s not found", patient_id)
            raise NotFoundError("Patient", patient_id)
        return PatientOut.model_validate(row)

    async def add_test_for_patient(self, patient_id: str, data: Any) -> TestOut:
        await self.get_patient_by_id(patient_id)
        payload = validate_input(TestIn, data)
        row = await self._insert(
            models.Test(id=self._new_id(), patient_id=patient_id, **payload.model_dump())
        )
        logger.info("Added test %s for patient %s", row.id, patient_id)
        return TestOut.model_validate(row)

    async def get_tests_for_patient(self, patient_id: str) -> List[TestOut]:
        await self.get_patient_by_id(patient_id)
        query = (
            select(models.Test)
            .filter(models.Test.patient_id == patient_id)
            .order_by(models.Test.seq)
        )
        result = await self.session.execute(query)
        return [TestOut.model_validate(row) for row in result.scalars().all()]
