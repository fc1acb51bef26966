"""
osqpmodel Python Package

Algebraic modelling layer for convex quadratic programs solved with OSQP,
with incremental re-solves that reuse the engine session.
"""

from .solver import QPSolver, solve
from .settings import Settings
from .results import Results, Status
from .model import Model, StandardForm, SessionState
from .modeling import (
    Variable, LinExpr, QuadExpr, Constraint, ConstraintSense, between
)
from .csc import CscMatrix, assemble
from .reuse import ReusePath, choose_path
from .engine import OsqpEngine, ErrorCode
from .errors import (
    OsqpModelError, ModelError, DimensionMismatchError, UnsupportedOperationError,
    DisposedError, NotSolvedError, SolverError, SetupError, SolveError, UpdateError
)

__version__ = "0.1.0"

__all__ = [
    'Model',
    'StandardForm',
    'SessionState',
    'QPSolver',
    'solve',
    'Settings',
    'Results',
    'Status',
    '__version__',
    # Modeling interface
    'Variable',
    'LinExpr',
    'QuadExpr',
    'Constraint',
    'ConstraintSense',
    'between',
    # Sparse assembly and session reuse
    'CscMatrix',
    'assemble',
    'ReusePath',
    'choose_path',
    'OsqpEngine',
    'ErrorCode',
    # Errors
    'OsqpModelError',
    'ModelError',
    'DimensionMismatchError',
    'UnsupportedOperationError',
    'DisposedError',
    'NotSolvedError',
    'SolverError',
    'SetupError',
    'SolveError',
    'UpdateError',
]
