from abc import ABC, abstractmethod
from typing import Callable, List, Optional
from uuid import UUID

from .models import JobRecord

JobMutator = Callable[[JobRecord], JobRecord]


class IJobRepository(ABC):
    """
    Contract for Job Record persistence.
    The store is the source of truth after a process restart.
    """

    @abstractmethod
    def create_job(self, record: JobRecord) -> UUID:
        """Persists a brand new record and returns its id."""
        pass

    @abstractmethod
    def get_job(self, job_id: UUID) -> Optional[JobRecord]:
        """Point-in-time read. Returns None for unknown ids."""
        pass

    @abstractmethod
    def update_job(self, job_id: UUID, mutator: JobMutator) -> JobRecord:
        """
        Atomic read-modify-write.
        Loads the record, applies `mutator` and commits the result in one transaction.
        Errors raised by the mutator abort the write and propagate unchanged.
        """
        pass

    @abstractmethod
    def list_unfinished(self) -> List[JobRecord]:
        """Returns every job whose stage is not terminal (crash recovery)."""
        pass
