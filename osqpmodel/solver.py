"""
Low-level solver interface for osqpmodel
"""
import logging
import numpy as np
from scipy import sparse
from typing import Union, Optional

from .csc import CscMatrix, _ensure_contiguous_float64
from .engine import OsqpEngine, SolveInfo
from .errors import DimensionMismatchError, DisposedError, NotSolvedError
from .results import Results, Status
from .settings import Settings, UPDATABLE_FIELDS

logger = logging.getLogger(__name__)

MatrixLike = Union[CscMatrix, np.ndarray, sparse.spmatrix]


def _as_csc(matrix: MatrixLike, upper: bool = False) -> CscMatrix:
    """Convert any accepted matrix input to a CscMatrix"""
    if isinstance(matrix, CscMatrix):
        return matrix
    if upper:
        if not (sparse.issparse(matrix) or isinstance(matrix, np.ndarray)):
            raise TypeError("matrix must be a CscMatrix, numpy array or scipy sparse matrix")
        matrix = sparse.triu(sparse.csc_matrix(matrix), format='csc')
    return CscMatrix.from_scipy(matrix)


class QPSolver:
    """
    Scoped OSQP session for a QP in standard form.

    Solves problems of the form:

        minimize    0.5 x'Px + q'x
        subject to  l <= Ax <= u

    The session is created on construction and released by ``free()`` or
    when leaving a ``with`` block. Between solves, ``q``, ``l``, ``u`` and
    the nonzero values of ``P`` and ``A`` can be replaced without a new
    setup.

    Parameters
    ----------
    P : CscMatrix, np.ndarray or scipy.sparse matrix
        Cost matrix (n x n); only its upper triangle is used
    q : np.ndarray
        Linear cost (length n)
    A : CscMatrix, np.ndarray or scipy.sparse matrix
        Constraint matrix (m x n)
    l : np.ndarray
        Constraint lower bounds (length m), -np.inf for none
    u : np.ndarray
        Constraint upper bounds (length m), np.inf for none
    settings : Settings, optional
        Engine settings. If None, default settings are used.
    engine : OsqpEngine, optional
        Engine adapter. If None, a new OsqpEngine is created.

    Examples
    --------
    >>> import numpy as np
    >>> from osqpmodel import QPSolver
    >>>
    >>> P = np.array([[4.0, 1.0], [1.0, 2.0]])
    >>> q = np.array([1.0, 1.0])
    >>> A = np.array([[1.0, 1.0], [1.0, 0.0], [0.0, 1.0]])
    >>> l = np.array([1.0, 0.0, 0.0])
    >>> u = np.array([1.0, 0.7, 0.7])
    >>>
    >>> with QPSolver(P, q, A, l, u) as solver:
    ...     status = solver.solve()
    ...     x = solver.primal_solution
    ...     solver.update_data(q=np.array([2.0, 3.0]))
    ...     status = solver.solve()
    """

    def __init__(self, P: MatrixLike, q, A: MatrixLike, l, u,
                 settings: Optional[Settings] = None,
                 engine: Optional[OsqpEngine] = None):
        P = _as_csc(P, upper=True)
        A = _as_csc(A)
        q = _ensure_contiguous_float64(q)
        l = _ensure_contiguous_float64(l)
        u = _ensure_contiguous_float64(u)

        n = P.cols
        m = A.rows
        if P.rows != n:
            raise DimensionMismatchError(f"P must be square, got shape {P.shape}")
        if A.cols != n:
            raise DimensionMismatchError(f"A must have {n} columns (number of variables), "
                                         f"got {A.cols}")
        if len(q) != n:
            raise DimensionMismatchError(f"q must have length {n} (number of variables)")
        if len(l) != m or len(u) != m:
            raise DimensionMismatchError(f"l and u must have length {m} (number of constraints)")

        self._engine = engine if engine is not None else OsqpEngine()
        self._settings = settings.copy() if settings is not None else self._engine.default_settings()
        self._m = m
        self._n = n
        self._P_nnz = P.nnz
        self._A_nnz = A.nnz
        self._solved = False
        self._freed = False
        self._session = self._engine.setup(P, q, A, l, u, m, n, self._settings)

    def _check_live(self):
        if self._freed:
            raise DisposedError("QPSolver has been freed")

    @property
    def m(self) -> int:
        """Number of constraints"""
        self._check_live()
        return self._m

    @property
    def n(self) -> int:
        """Number of variables"""
        self._check_live()
        return self._n

    @property
    def settings(self) -> Settings:
        """Settings currently applied to the session (a copy)"""
        self._check_live()
        return self._settings.copy()

    def is_valid(self) -> bool:
        """Check if the solver is valid (not freed)"""
        return not self._freed and not self._session.released

    def solve(self) -> Status:
        """
        Solve the problem with the current data.

        Returns
        -------
        Status
            Terminal status reported by the engine

        Raises
        ------
        SolveError
            If the engine fails to run
        """
        self._check_live()
        self._solved = False
        self._engine.solve(self._session)
        self._solved = True

        status = self._session.status
        if status != Status.SOLVED:
            logger.warning("OSQP finished with status '%s' after %d iterations",
                           status.value, self._session.info.iterations)
        return status

    def _check_solved(self):
        self._check_live()
        if not self._solved:
            raise NotSolvedError("No solution available: call solve() first")

    @property
    def primal_solution(self) -> np.ndarray:
        """Primal solution x of the last solve (length n)"""
        self._check_solved()
        return self._session.x.copy()

    @property
    def dual_solution(self) -> np.ndarray:
        """Dual solution y of the last solve (length m)"""
        self._check_solved()
        return self._session.y.copy()

    @property
    def info(self) -> SolveInfo:
        """Engine statistics of the last solve"""
        self._check_solved()
        return self._session.info

    def update_data(self, q=None, l=None, u=None):
        """
        Replace the linear cost and/or the constraint bounds.

        Parameters
        ----------
        q : np.ndarray, optional
            New linear cost (length n)
        l : np.ndarray, optional
            New constraint lower bounds (length m)
        u : np.ndarray, optional
            New constraint upper bounds (length m)
        """
        self._check_live()
        if q is not None:
            q = _ensure_contiguous_float64(q)
            if len(q) != self._n:
                raise DimensionMismatchError(f"q must have length {self._n}")
        if l is not None:
            l = _ensure_contiguous_float64(l)
            if len(l) != self._m:
                raise DimensionMismatchError(f"l must have length {self._m}")
        if u is not None:
            u = _ensure_contiguous_float64(u)
            if len(u) != self._m:
                raise DimensionMismatchError(f"u must have length {self._m}")
        self._engine.update_data_vectors(self._session, q=q, l=l, u=u)

    def update_matrices(self, P_values=None, P_indices=None, A_values=None, A_indices=None):
        """
        Replace nonzero values of P and/or A, keeping their sparsity.

        Parameters
        ----------
        P_values : np.ndarray, optional
            New values of the upper triangle of P
        P_indices : np.ndarray, optional
            Positions (into the CSC value array) of ``P_values``; all entries if None
        A_values : np.ndarray, optional
            New values of A
        A_indices : np.ndarray, optional
            Positions (into the CSC value array) of ``A_values``; all entries if None
        """
        self._check_live()
        P_values = self._checked_values(P_values, P_indices, self._P_nnz, 'P')
        A_values = self._checked_values(A_values, A_indices, self._A_nnz, 'A')
        self._engine.update_data_matrices(self._session, P_values, P_indices,
                                          A_values, A_indices)

    @staticmethod
    def _checked_values(values, indices, nnz, label):
        if values is None:
            return None
        values = _ensure_contiguous_float64(values)
        expected = nnz if indices is None else len(indices)
        if len(values) != expected:
            raise DimensionMismatchError(f"{label} values must have length {expected}")
        return values

    def warm_start(self, x=None, y=None):
        """
        Set the starting point of the next solve.

        Parameters
        ----------
        x : np.ndarray, optional
            Primal guess (length n)
        y : np.ndarray, optional
            Dual guess (length m)
        """
        self._check_live()
        if x is not None:
            x = _ensure_contiguous_float64(x)
            if len(x) != self._n:
                raise DimensionMismatchError(f"Primal warm start must have length {self._n}")
        if y is not None:
            y = _ensure_contiguous_float64(y)
            if len(y) != self._m:
                raise DimensionMismatchError(f"Dual warm start must have length {self._m}")
        self._engine.warm_start(self._session, x=x, y=y)

    def update_settings(self, settings: Settings):
        """
        Push the live-updatable fields of ``settings`` that differ from the
        session's current settings.

        Fields OSQP fixes at setup (scaling, sigma, adaptive_rho) are left
        untouched; they only apply to a new session.

        Returns
        -------
        dict
            The fields that were pushed to the engine
        """
        self._check_live()
        changed = settings.diff(self._settings)
        fields = {key: value for key, value in changed.items() if key in UPDATABLE_FIELDS}
        ignored = sorted(set(changed) - set(fields))
        if ignored:
            logger.debug("Settings %s only apply when the session is rebuilt", ignored)
        if fields:
            self._engine.update_settings(self._session, **fields)
            for key, value in fields.items():
                setattr(self._settings, key, value)
        return fields

    def free(self):
        """
        Release the engine session.

        After calling this method, the solver cannot be used anymore.
        """
        if not self._freed:
            self._engine.cleanup(self._session)
            self._freed = True
            self._solved = False

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - automatically free the session"""
        self.free()
        return False

    def __repr__(self):
        if self._freed:
            return "<osqpmodel.QPSolver (freed)>"
        return f"<osqpmodel.QPSolver m={self._m} n={self._n}>"


def solve(
    P: MatrixLike,
    q: np.ndarray,
    A: MatrixLike,
    l: np.ndarray,
    u: np.ndarray,
    settings: Optional[Settings] = None,
) -> Results:
    """
    Convenience function to solve a QP without keeping a session.

    Solves:
        minimize    0.5 x'Px + q'x
        subject to  l <= Ax <= u

    Parameters
    ----------
    P : CscMatrix, np.ndarray or scipy.sparse matrix
        Cost matrix (n x n); only its upper triangle is used
    q : np.ndarray
        Linear cost (length n)
    A : CscMatrix, np.ndarray or scipy.sparse matrix
        Constraint matrix (m x n)
    l : np.ndarray
        Constraint lower bounds (length m)
    u : np.ndarray
        Constraint upper bounds (length m)
    settings : Settings, optional
        Engine settings. If None, default settings are used.

    Returns
    -------
    Results
        Solver results including solution and statistics

    Examples
    --------
    >>> import numpy as np
    >>> from scipy import sparse
    >>> from osqpmodel import solve
    >>>
    >>> P = sparse.csc_matrix([[2.0, 0.0], [0.0, 2.0]])
    >>> q = np.array([-2.0, -4.0])
    >>> A = sparse.csc_matrix([[1.0, 1.0]])
    >>> result = solve(P, q, A, np.array([-np.inf]), np.array([1.0]))
    >>> print(result)
    """
    with QPSolver(P, q, A, l, u, settings=settings) as solver:
        solver.solve()
        return Results.from_info(solver.info, solver.primal_solution, solver.dual_solution)
