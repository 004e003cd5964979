from abc import ABC, abstractmethod
from typing import Optional, Sequence

from sqlstore.backends.probe import BackendCapabilityProbe
from sqlstore.constants import BackendType
from sqlstore.execution.base import SqlExecutor


class BackendPolicy(ABC):
    """Engine-specific SQL idioms used while generating DDL and DML.

    Every supported backend is a concrete subclass that implements each
    method; the base class has no fallbacks. Methods that only build SQL
    return text; methods that act on data run it through the executor.

    Implementations:
        - PostgresPolicy: single-node PostgreSQL
        - GreenplumPolicy: segment-aware id assignment via a plpgsql UDF
        - PostgresXLPolicy: datanode-aware ordered id assignment
    """

    backend_type: BackendType

    def __init__(self, executor: SqlExecutor, probe: Optional[BackendCapabilityProbe] = None):
        self.executor = executor
        self.probe = probe or BackendCapabilityProbe(executor)

    @abstractmethod
    def create_sequence_function(self, name: str) -> str:
        """SQL that drops and recreates sequence ``name``."""

    @abstractmethod
    def cast(self, expr: object, to_type: str) -> str:
        """SQL casting ``expr`` to ``to_type``."""

    @abstractmethod
    def quote_column(self, name: str) -> str:
        """Quoted identifier for a column name."""

    @property
    @abstractmethod
    def random_function(self) -> str:
        """SQL expression for a random real in [0, 1)."""

    @abstractmethod
    def concat(self, items: Sequence[str], delimiter: str) -> str:
        """SQL concatenating ``items`` separated by ``delimiter``."""

    @abstractmethod
    def create_special_udfs(self) -> None:
        """Install backend-specific helper functions."""

    @abstractmethod
    def analyze_table(self, table: str) -> str:
        """SQL refreshing planner statistics for ``table``."""

    @abstractmethod
    def assign_ids(self, table: str, start_id: int, sequence: str) -> int:
        """Assign sequential ids to ``table.id`` starting at ``start_id``.

        Returns:
            Number of rows in the table
        """

    @abstractmethod
    def exists_table(self, table: str) -> bool:
        """Whether ``table`` exists."""

    @abstractmethod
    def assign_ids_ordered(self, table: str, start_id: int, sequence: str, order_by: str = "") -> int:
        """Assign sequential ids following ``order_by``.

        Returns:
            Number of rows in the table
        """
