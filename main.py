# Author      : Tyson Limato
# Date        : 2025-7-02
# File Name   : main.py
# Description : Estimates PI by throwing darts across every rank of an MPI
#               job. Rank 0 reads the command line, broadcasts the run
#               configuration, and reduces the per-rank hit counts.
#
# Usage       : mpiexec -n 4 python main.py [-t|--throws N] [--gpu]
#
# Dependencies:
#       - mpi4py
#       - numpy
#       - cupy (only with --gpu, the Cuda 12x variant)
# ------------------------------------------------------------
import sys

from calcPi import CalcPi
from mpiMGR import MPIManager
from mpiProcess import CoordinatorConfig, MPIProcess


def main(argv=None) -> int:
    argv = sys.argv if argv is None else argv
    proc = MPIProcess(MPIManager(), CalcPi(), CoordinatorConfig())
    return int(proc.run(argv))


if __name__ == "__main__":
    sys.exit(main())
