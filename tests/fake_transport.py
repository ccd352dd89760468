# Author      : Tyson Limato
# Date        : 2025-7-03
# File Name   : fake_transport.py
import threading
import time
from dataclasses import dataclass

import numpy as np

from mpiProcess import MPIProcess, Transport, TransportError


class GroupTimeout(AssertionError):
    """Some ranks never returned: the group is deadlocked."""

    def __init__(self, hung_ranks):
        self.hung_ranks = hung_ranks
        super().__init__(f"ranks {hung_ranks} did not finish (deadlock)")


class FakeGroup:
    """Shared state of an in-process group, one thread per rank."""

    def __init__(self, size: int):
        self.size = size
        # (op, sequence number) each rank brought to the current rendezvous
        self.arrivals = [None] * size
        self.diverged = None
        self.barrier = threading.Barrier(size, action=self._match_arrivals)
        self.bcast_slot = None
        self.reduce_slots = [None] * size

    def _match_arrivals(self):
        # Runs once per rendezvous, after every rank arrived and before any leaves.
        if len(set(self.arrivals)) > 1 and self.diverged is None:
            self.diverged = list(self.arrivals)

    def abort(self):
        self.barrier.abort()


class FakeTransport(Transport):
    """
    Transport over a FakeGroup.

    `fail` maps an operation name to the number of calls that succeed before
    it starts raising TransportError (0 fails the first call). A failing
    collective raises before it reaches the rendezvous, like a rank that drops
    out of the call sequence.
    """

    def __init__(self, group: FakeGroup, rank: int, fail=None,
                 comm_name="MPI_COMM_WORLD", host="node0"):
        self.group = group
        self._rank = rank
        self.fail = dict(fail or {})
        self.host = host
        self._comm_name = comm_name
        self.calls = []
        self._rendezvous = 0

    def _check(self, op):
        self.calls.append(op)
        if op in self.fail:
            if self.fail[op] <= 0:
                raise TransportError(op, "injected failure")
            self.fail[op] -= 1

    def _wait(self, op):
        self.group.arrivals[self._rank] = (op, self._rendezvous)
        self._rendezvous += 1
        try:
            self.group.barrier.wait()
        except threading.BrokenBarrierError as exc:
            raise TransportError(op, "group aborted") from exc
        if self.group.diverged is not None:
            raise TransportError(op, f"ranks diverged: {self.group.diverged}")

    def init(self):
        self._check("init")

    def finalize(self):
        self._check("finalize")

    def size(self):
        self._check("size")
        return self.group.size

    def rank(self):
        self._check("rank")
        return self._rank

    def bcast(self, buf, root):
        self._check("bcast")
        if self._rank == root:
            self.group.bcast_slot = buf.tobytes()
        self._wait("bcast")
        if self._rank != root:
            buf.view(np.uint8)[:] = np.frombuffer(self.group.bcast_slot, dtype=np.uint8)
        self._wait("bcast")

    def reduce_sum(self, sendbuf, recvbuf, root):
        self._check("reduce_sum")
        self.group.reduce_slots[self._rank] = sendbuf.copy()
        self._wait("reduce_sum")
        if self._rank == root:
            recvbuf[:] = np.sum(np.stack(self.group.reduce_slots), axis=0, dtype=np.uint64)
        self._wait("reduce_sum")

    def barrier(self):
        self._check("barrier")
        self._wait("barrier")

    def comm_name(self):
        self._check("comm_name")
        return self._comm_name

    def processor_name(self):
        self._check("processor_name")
        return self.host

    def library_version(self):
        self._check("library_version")
        return "FakeMPI 1.0"

    def api_version(self):
        self._check("api_version")
        return (3, 1)


@dataclass
class GroupRun:
    codes: list
    behaviors: list
    transports: list

    @property
    def manager(self):
        return self.behaviors[0]


def run_group(size, behavior_factory, argv=("main.py",), config=None,
              failures=None, timeout=10.0):
    """
    Run one MPIProcess per rank on threads and collect their exit codes.

    Raises GroupTimeout if any rank is still blocked after `timeout` seconds.
    The barrier is then aborted so blocked ranks unwind.
    """
    group = FakeGroup(size)
    failures = failures or {}
    behaviors = [behavior_factory() for _ in range(size)]
    transports = [FakeTransport(group, r, failures.get(r)) for r in range(size)]
    codes = [None] * size
    errors = []

    def target(rank):
        try:
            proc = MPIProcess(transports[rank], behaviors[rank], config)
            codes[rank] = proc.run(list(argv))
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=target, args=(r,), daemon=True) for r in range(size)]
    for t in threads:
        t.start()

    deadline = time.monotonic() + timeout
    for t in threads:
        t.join(max(0.0, deadline - time.monotonic()))

    hung = [r for r, t in enumerate(threads) if t.is_alive()]
    if hung:
        group.abort()
        for t in threads:
            t.join(timeout)
        raise GroupTimeout(hung)
    if errors:
        raise errors[0]
    return GroupRun(codes, behaviors, transports)
