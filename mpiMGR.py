# Author      : Tyson Limato
# Date        : 2025-6-18
# File Name   : mpiMGR.py
import mpi4py

# The process coordinator owns MPI_Init / MPI_Finalize.
mpi4py.rc.initialize = False
mpi4py.rc.finalize = False

from mpi4py import MPI
import numpy as np

from mpiProcess import Transport, TransportError


class MPIManager(Transport):
    """
    A utility class to handle MPI operations for the process coordinator using `mpi4py`.

    Every MPI error is turned into a `TransportError` naming the failed call.

    Parameters:
    -----------
    comm : MPI.Comm
        The communicator the group runs on (default is MPI.COMM_WORLD).

    Methods:
    --------
    init() / finalize()
        Start and stop the MPI runtime.

    bcast(buf, root)
        Broadcasts a numpy buffer, byte for byte, from the root process to all
        other processes.

    reduce_sum(sendbuf, recvbuf, root)
        Sums uint64 buffers from every process into the root's receive buffer.

    barrier()
        Blocks until every process has reached it.
    """

    def __init__(self, comm=None):
        self.comm = comm if comm is not None else MPI.COMM_WORLD

    def init(self):
        try:
            if not MPI.Is_initialized():
                MPI.Init()
        except MPI.Exception as exc:
            raise TransportError("MPI_Init", exc.Get_error_string()) from exc

    def finalize(self):
        try:
            if not MPI.Is_finalized():
                MPI.Finalize()
        except MPI.Exception as exc:
            raise TransportError("MPI_Finalize", exc.Get_error_string()) from exc

    def size(self) -> int:
        try:
            return self.comm.Get_size()
        except MPI.Exception as exc:
            raise TransportError("MPI_Comm_size", exc.Get_error_string()) from exc

    def rank(self) -> int:
        try:
            return self.comm.Get_rank()
        except MPI.Exception as exc:
            raise TransportError("MPI_Comm_rank", exc.Get_error_string()) from exc

    def bcast(self, buf: np.ndarray, root: int):
        """
        Broadcast `buf` in place. The buffer travels as raw bytes, so every
        process must hold an identically laid out array.
        """
        try:
            self.comm.Bcast([buf, buf.nbytes, MPI.BYTE], root=root)
        except MPI.Exception as exc:
            raise TransportError("MPI_Bcast", exc.Get_error_string()) from exc

    def reduce_sum(self, sendbuf: np.ndarray, recvbuf: np.ndarray, root: int):
        try:
            self.comm.Reduce([sendbuf, MPI.UINT64_T],
                             [recvbuf, MPI.UINT64_T],
                             op=MPI.SUM, root=root)
        except MPI.Exception as exc:
            raise TransportError("MPI_Reduce", exc.Get_error_string()) from exc

    def barrier(self):
        try:
            self.comm.Barrier()
        except MPI.Exception as exc:
            raise TransportError("MPI_Barrier", exc.Get_error_string()) from exc

    def comm_name(self) -> str:
        try:
            return self.comm.Get_name()
        except MPI.Exception as exc:
            raise TransportError("MPI_Comm_get_name", exc.Get_error_string()) from exc

    def processor_name(self) -> str:
        try:
            return MPI.Get_processor_name()
        except MPI.Exception as exc:
            raise TransportError("MPI_Get_processor_name", exc.Get_error_string()) from exc

    def library_version(self) -> str:
        try:
            return MPI.Get_library_version()
        except MPI.Exception as exc:
            raise TransportError("MPI_Get_library_version", exc.Get_error_string()) from exc

    def api_version(self) -> tuple:
        try:
            return MPI.Get_version()
        except MPI.Exception as exc:
            raise TransportError("MPI_Get_version", exc.Get_error_string()) from exc
