"""
Adapter over the OSQP engine

``OsqpEngine`` exposes the fixed operation set the modelling layer relies on
(default settings, setup, solve, data updates, warm start, cleanup) on top of
the ``osqp`` Python distribution, and turns engine failures into
``SolverError`` subclasses carrying an ``ErrorCode``.
"""
import logging
from enum import Enum
from typing import Optional

import numpy as np

from .csc import CscMatrix
from .errors import DisposedError, SetupError, SolveError, UpdateError
from .results import Status
from .settings import Settings

logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """Engine error codes (OSQP 1.x numbering)"""
    DATA_VALIDATION = 1
    SETTINGS_VALIDATION = 2
    LINSYS_INIT = 3
    NON_CONVEX = 4
    MEM_ALLOC = 5
    WORKSPACE_NOT_INIT = 6
    ALGEBRA_LOAD = 7
    FOPEN = 8
    CODEGEN_DEFINES = 9
    DATA_NOT_INITIALIZED = 10
    FUNC_NOT_IMPLEMENTED = 11
    UNKNOWN = 99


# Message fragments for engine failures that carry no numeric code.
_ERROR_KEYWORDS = (
    ('non convex', ErrorCode.NON_CONVEX),
    ('nonconvex', ErrorCode.NON_CONVEX),
    ('non-convex', ErrorCode.NON_CONVEX),
    ('setting', ErrorCode.SETTINGS_VALIDATION),
    ('linear system', ErrorCode.LINSYS_INIT),
    ('linsys', ErrorCode.LINSYS_INIT),
    ('memory', ErrorCode.MEM_ALLOC),
    ('workspace', ErrorCode.WORKSPACE_NOT_INIT),
    ('algebra', ErrorCode.ALGEBRA_LOAD),
    ('not implemented', ErrorCode.FUNC_NOT_IMPLEMENTED),
    ('data', ErrorCode.DATA_VALIDATION),
)


def classify_error(exc: BaseException, engine_error=None) -> ErrorCode:
    """
    Map an engine exception onto an ErrorCode.

    ``engine_error`` is the engine's own exception type (``osqp.OSQPException``),
    which carries the integer error code as its first argument. Other
    exceptions are classified by keywords in their message.
    """
    if engine_error is not None and isinstance(exc, engine_error):
        if exc.args and isinstance(exc.args[0], (int, np.integer)):
            try:
                return ErrorCode(int(exc.args[0]))
            except ValueError:
                return ErrorCode.UNKNOWN
    message = str(exc).lower()
    for keyword, code in _ERROR_KEYWORDS:
        if keyword in message:
            return code
    return ErrorCode.UNKNOWN


class SolveInfo:
    """
    Statistics of the last engine solve.

    Attributes
    ----------
    status : Status
    status_val : int
    iterations : int
    obj_val : float
        Objective value without the model's constant term
    prim_res, dual_res : float
        Final primal and dual residuals
    setup_time, solve_time, run_time : float
        Timings in seconds
    """

    def __init__(self, status: Status = Status.UNSOLVED, status_val: int = 11,
                 iterations: int = 0, obj_val: float = float('nan'),
                 prim_res: float = float('inf'), dual_res: float = float('inf'),
                 setup_time: float = 0.0, solve_time: float = 0.0, run_time: float = 0.0):
        self.status = status
        self.status_val = status_val
        self.iterations = iterations
        self.obj_val = obj_val
        self.prim_res = prim_res
        self.dual_res = dual_res
        self.setup_time = setup_time
        self.solve_time = solve_time
        self.run_time = run_time

    @classmethod
    def from_osqp(cls, info) -> 'SolveInfo':
        status_val = int(info.status_val)
        return cls(
            status=Status.from_code(status_val),
            status_val=status_val,
            iterations=int(info.iter),
            obj_val=float(info.obj_val),
            prim_res=float(getattr(info, 'prim_res', float('inf'))),
            dual_res=float(getattr(info, 'dual_res', float('inf'))),
            setup_time=float(getattr(info, 'setup_time', 0.0)),
            solve_time=float(getattr(info, 'solve_time', 0.0)),
            run_time=float(getattr(info, 'run_time', 0.0)),
        )

    def __repr__(self):
        return (f"SolveInfo(status='{self.status.value}', iter={self.iterations}, "
                f"obj_val={self.obj_val:.6e})")


class Session:
    """
    Live engine workspace created by ``OsqpEngine.setup``.

    The session holds the solution of its most recent solve. It is released
    exactly once through ``OsqpEngine.cleanup``; afterwards every access
    raises ``DisposedError``.
    """

    def __init__(self, problem, m: int, n: int):
        self._problem = problem
        self.m = m
        self.n = n
        self.x: Optional[np.ndarray] = None
        self.y: Optional[np.ndarray] = None
        self.info: Optional[SolveInfo] = None

    @property
    def released(self) -> bool:
        return self._problem is None

    @property
    def problem(self):
        """The underlying ``osqp.OSQP`` object"""
        if self._problem is None:
            raise DisposedError("Engine session has been released")
        return self._problem

    @property
    def status(self) -> Status:
        return self.info.status if self.info is not None else Status.UNSOLVED

    def _release(self):
        self._problem = None
        self.x = None
        self.y = None
        self.info = None

    def __repr__(self):
        if self.released:
            return "<osqpmodel.Session (released)>"
        return f"<osqpmodel.Session m={self.m} n={self.n}>"


class OsqpEngine:
    """
    Operation set of the OSQP engine.

    The engine is stateless; all problem state lives in the ``Session``
    objects it creates. Subclass it to observe or alter engine calls.

    Examples
    --------
    >>> engine = OsqpEngine()
    >>> settings = engine.default_settings()
    >>> session = engine.setup(P, q, A, l, u, m, n, settings)
    >>> engine.solve(session)
    >>> session.x
    >>> engine.cleanup(session)
    """

    def __init__(self):
        try:
            import osqp
        except ImportError as e:
            raise ImportError(
                f"Failed to import the OSQP engine: {e}\n\n"
                f"Install it with:\n"
                f"  python -m pip install 'osqp>=1.0'\n"
            ) from e
        self._osqp = osqp

    def _engine_error(self, error_type, exc: Exception):
        """Wrap an exception raised by ``osqp`` into ``error_type``"""
        engine_error = getattr(self._osqp, 'OSQPException', None)
        code = classify_error(exc, engine_error)
        if engine_error is not None and isinstance(exc, engine_error):
            message = f"{type(exc).__name__}{exc.args}"
        else:
            message = str(exc)
        return error_type(code, message)

    def default_settings(self) -> Settings:
        """Create Settings holding the engine defaults"""
        return Settings.defaults()

    def setup(self, P: CscMatrix, q: np.ndarray, A: CscMatrix, l: np.ndarray, u: np.ndarray,
              m: int, n: int, settings: Settings) -> Session:
        """
        Create a session for ``minimize 0.5 x'Px + q'x  s.t.  l <= Ax <= u``.

        ``P`` holds the upper triangle of the symmetric cost matrix.

        Raises
        ------
        SetupError
            If the data is malformed or the engine rejects the problem
        """
        if P.shape != (n, n) or A.shape != (m, n):
            raise SetupError(ErrorCode.DATA_VALIDATION,
                             f"P must be {n}x{n} and A must be {m}x{n}, "
                             f"got {P.shape} and {A.shape}")
        if len(q) != n or len(l) != m or len(u) != m:
            raise SetupError(ErrorCode.DATA_VALIDATION,
                             f"q must have length {n}, l and u length {m}")

        problem = self._osqp.OSQP()
        try:
            problem.setup(P.to_scipy(), np.array(q, dtype=np.float64),
                          A.to_scipy(), np.array(l, dtype=np.float64),
                          np.array(u, dtype=np.float64), **settings.to_dict())
        except Exception as exc:
            raise self._engine_error(SetupError, exc) from exc

        logger.debug("OSQP session set up (n=%d, m=%d, nnz(P)=%d, nnz(A)=%d)",
                     n, m, P.nnz, A.nnz)
        return Session(problem, m, n)

    def solve(self, session: Session):
        """
        Run the engine on a session.

        On return ``session.x``, ``session.y`` and ``session.info`` describe
        the outcome; infeasibility and inaccuracy are reported through
        ``session.info.status``.

        Raises
        ------
        SolveError
            If the engine fails to run
        """
        problem = session.problem
        try:
            # infeasibility and inaccuracy are reported through the status
            result = problem.solve(raise_error=False)
        except Exception as exc:
            raise self._engine_error(SolveError, exc) from exc

        session.info = SolveInfo.from_osqp(result.info)
        session.x = np.array(result.x, dtype=np.float64) if result.x is not None else None
        session.y = np.array(result.y, dtype=np.float64) if result.y is not None else None

    def update_data_vectors(self, session: Session, q=None, l=None, u=None):
        """Replace any of ``q``, ``l``, ``u`` on a live session"""
        problem = session.problem
        vectors = {}
        if q is not None:
            vectors['q'] = np.array(q, dtype=np.float64)
        if l is not None:
            vectors['l'] = np.array(l, dtype=np.float64)
        if u is not None:
            vectors['u'] = np.array(u, dtype=np.float64)
        if not vectors:
            return
        try:
            problem.update(**vectors)
        except Exception as exc:
            raise self._engine_error(UpdateError, exc) from exc

    def update_data_matrices(self, session: Session, P_values=None, P_indices=None,
                             A_values=None, A_indices=None):
        """
        Replace nonzero values of P and/or A on a live session.

        Without an index array the value array must cover every stored
        entry, in CSC order.
        """
        problem = session.problem
        matrices = {}
        if P_values is not None:
            matrices['Px'] = np.array(P_values, dtype=np.float64)
            if P_indices is not None:
                matrices['Px_idx'] = np.array(P_indices, dtype=np.int64)
        if A_values is not None:
            matrices['Ax'] = np.array(A_values, dtype=np.float64)
            if A_indices is not None:
                matrices['Ax_idx'] = np.array(A_indices, dtype=np.int64)
        if not matrices:
            return
        try:
            problem.update(**matrices)
        except Exception as exc:
            raise self._engine_error(UpdateError, exc) from exc

    def warm_start(self, session: Session, x=None, y=None):
        """Set the initial primal and/or dual iterate of the next solve"""
        problem = session.problem
        guesses = {}
        if x is not None:
            guesses['x'] = np.array(x, dtype=np.float64)
        if y is not None:
            guesses['y'] = np.array(y, dtype=np.float64)
        if not guesses:
            return
        try:
            problem.warm_start(**guesses)
        except Exception as exc:
            raise self._engine_error(UpdateError, exc) from exc

    def update_settings(self, session: Session, **fields):
        """Change settings that the engine allows on a live session"""
        problem = session.problem
        if not fields:
            return
        try:
            problem.update_settings(**fields)
        except Exception as exc:
            raise self._engine_error(UpdateError, exc) from exc

    def cleanup(self, session: Session):
        """Release the session's engine workspace; safe to call twice"""
        if not session.released:
            session._release()
            logger.debug("OSQP session released (n=%d, m=%d)", session.n, session.m)
