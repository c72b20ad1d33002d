import logging
from typing import Iterable, List, Optional, Tuple

from ..config import DEFAULT_CRITICAL_MARKERS
from ..schemas import PatientHistory, PatientOut
from ..store import RecordStore

logger = logging.getLogger(__name__)


def normalize_markers(markers: Iterable[str]) -> Tuple[str, ...]:
    return tuple(m.strip().lower() for m in markers if m and m.strip())


def is_critical_result(result: Optional[str], markers: Iterable[str]) -> bool:
    """
    True when the result, ignoring case and surrounding whitespace,
    equals or contains any of the markers.
    """
    if not result:
        return False
    value = result.strip().lower()
    return any(marker in value for marker in normalize_markers(markers))


class ClinicalQueryEngine:
    """Read-only views composed from a RecordStore."""

    def __init__(self, store: RecordStore, critical_markers: Iterable[str] = DEFAULT_CRITICAL_MARKERS):
        self.store = store
        self.critical_markers = normalize_markers(critical_markers)

    async def get_patient_history(self, patient_id: str) -> PatientHistory:
        """
        Patient record plus all of its tests, in the order they were recorded
        """
        patient = await self.store.get_patient_by_id(patient_id)
        tests = await self.store.get_tests_for_patient(patient.id)
        return PatientHistory(patient=patient, tests=tests)

    async def get_critical_patients(self) -> List[PatientOut]:
        """
        Patients with at least one test whose result matches a critical marker,
        in the store's patient order
        """
        critical = []
        for patient in await self.store.get_all_patients():
            # one session per request, so tests are fetched one patient at a time
            tests = await self.store.get_tests_for_patient(patient.id)
            if any(is_critical_result(test.result, self.critical_markers) for test in tests):
                critical.append(patient)
        logger.debug("Found %d critical patients", len(critical))
        return critical
