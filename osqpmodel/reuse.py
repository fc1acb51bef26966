"""
Decide whether a solve can reuse the live engine session
"""
from enum import Enum
from typing import Optional

from .csc import CscMatrix


class ReusePath(Enum):
    """How the next solve reaches the engine"""
    UPDATE = 'update'    # push new values into the live session
    REBUILD = 'rebuild'  # release the session and set up a new one


def choose_path(previous_P: Optional[CscMatrix], previous_A: Optional[CscMatrix],
                P: CscMatrix, A: CscMatrix) -> ReusePath:
    """
    Compare the sparsity of a freshly assembled (P, A) pair with the pair
    the live session was built from.

    Reuse requires an unchanged variable count ``n`` and constraint count
    ``m`` and identical column pointers and row indices for both matrices.
    Only the value arrays may differ.

    Parameters
    ----------
    previous_P, previous_A : CscMatrix or None
        Matrices of the live session, None when there is no session
    P, A : CscMatrix
        Matrices of the upcoming solve

    Returns
    -------
    ReusePath
        ``UPDATE`` when the session can be updated in place, ``REBUILD``
        otherwise
    """
    if previous_P is None or previous_A is None:
        return ReusePath.REBUILD
    if P.cols != previous_P.cols or A.rows != previous_A.rows:
        return ReusePath.REBUILD
    if not A.has_same_sparsity(previous_A):
        return ReusePath.REBUILD
    if not P.has_same_sparsity(previous_P):
        return ReusePath.REBUILD
    return ReusePath.UPDATE
