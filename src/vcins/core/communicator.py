"""Process communicators for collective reductions.

Patches are owned by ranks; reductions such as the mass diagnostic sum local
contributions and combine them with an ``allreduce``. The serial communicator
is the default. :class:`MPICommunicator` wraps an ``mpi4py`` communicator
(install the ``mpi`` extra).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class Communicator(ABC):
    """Minimal collective interface used by the operator."""

    @property
    @abstractmethod
    def rank(self) -> int:
        """Rank of this process."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of processes."""

    @abstractmethod
    def allreduce_sum(self, value: float) -> float:
        """Sum ``value`` over all processes and return the total on every rank."""

    @abstractmethod
    def barrier(self) -> None:
        """Block until every process reaches this point."""


class SerialCommunicator(Communicator):
    """Single-process communicator."""

    @property
    def rank(self) -> int:
        return 0

    @property
    def size(self) -> int:
        return 1

    def allreduce_sum(self, value: float) -> float:
        return float(value)

    def barrier(self) -> None:
        return None


class MPICommunicator(Communicator):
    """Communicator backed by ``mpi4py``.

    Args:
        comm: An ``mpi4py.MPI.Comm``; defaults to ``MPI.COMM_WORLD``.
    """

    def __init__(self, comm: Any = None) -> None:
        from mpi4py import MPI

        self._mpi = MPI
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        logger.debug("MPICommunicator: rank %d of %d", self.comm.Get_rank(), self.comm.Get_size())

    @property
    def rank(self) -> int:
        return self.comm.Get_rank()

    @property
    def size(self) -> int:
        return self.comm.Get_size()

    def allreduce_sum(self, value: float) -> float:
        return float(self.comm.allreduce(float(value), op=self._mpi.SUM))

    def barrier(self) -> None:
        self.comm.Barrier()
