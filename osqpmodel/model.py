"""
Model class for osqpmodel
"""
import logging
from collections import namedtuple
from enum import Enum
from typing import List, Optional, Union

import numpy as np

from .csc import CscMatrix, assemble, _ensure_contiguous_float64
from .engine import OsqpEngine
from .errors import DimensionMismatchError, DisposedError, ModelError, NotSolvedError, SolverError
from .modeling import Constraint, LinExpr, QuadExpr, Variable, between, _SCALAR_TYPES
from .results import Results
from .reuse import ReusePath, choose_path
from .settings import Settings
from .solver import QPSolver

logger = logging.getLogger(__name__)


StandardForm = namedtuple('StandardForm', ['P', 'q', 'A', 'l', 'u', 'constant'])
StandardForm.__doc__ = """\
QP data ``minimize 0.5 x'Px + q'x + constant  s.t.  l <= Ax <= u``.

``P`` is a CscMatrix holding the upper triangle of the cost matrix, ``A`` a
CscMatrix with one row per constraint.
"""


class SessionState(Enum):
    """Lifecycle of the engine session owned by a Model"""
    UNINITIALIZED = 'uninitialized'  # no solve yet
    BUILT = 'built'                  # live session
    RELEASED = 'released'            # freed, or dropped after an engine error


class Model:
    """
    Convex QP model solved with OSQP.

    The model represents a QP of the form:
        minimize    x'Qx + c'x + constant
        subject to  lower <= a_i'x <= upper   for every constraint i

    where the quadratic part comes from the objective's ``x_i * x_j`` terms.
    Variables and constraints are append-only. The model can be solved
    repeatedly: when only coefficient values or bounds changed since the
    last solve, the live OSQP session is updated in place and warm started
    instead of being set up again.

    Parameters
    ----------
    settings : Settings, optional
        Engine settings. If None, default settings are used.
    engine : OsqpEngine, optional
        Engine adapter. If None, an OsqpEngine is created at the first solve.

    Examples
    --------
    >>> from osqpmodel import Model
    >>>
    >>> model = Model()
    >>> x = model.add_variable(name='x', lower_bound=0)
    >>> y = model.add_variable(name='y', lower_bound=0)
    >>> budget = model.add_constraint(x + y == 1, name='budget')
    >>> model.set_objective(2*x*x + y*y + x*y + x + y)
    >>>
    >>> result = model.solve()
    >>> print(result[x], result[y], model.objective_value)
    >>>
    >>> # Only a bound changes: the next solve updates the live session
    >>> budget.lower_bound = budget.upper_bound = 2
    >>> result = model.solve()
    >>> result.reused
    True
    >>> model.free()
    """

    def __init__(self, settings: Optional[Settings] = None,
                 engine: Optional[OsqpEngine] = None):
        self._variables: List[Variable] = []
        self._constraints: List[Constraint] = []
        self._constraint_rows = {}
        self._objective = QuadExpr()
        self._settings = settings.copy() if settings is not None else Settings.defaults()
        self._engine = engine

        self._solver: Optional[QPSolver] = None
        self._P: Optional[CscMatrix] = None
        self._A: Optional[CscMatrix] = None
        self._state = SessionState.UNINITIALIZED
        self._result: Optional[Results] = None
        self._pending_primal = None
        self._pending_dual = None
        self._freed = False

    def _check_live(self):
        if self._freed:
            raise DisposedError("Model has been freed")

    # Building the model

    def add_variable(self, name: Optional[str] = None,
                     lower_bound: Optional[float] = None,
                     upper_bound: Optional[float] = None) -> Variable:
        """
        Add a decision variable.

        Parameters
        ----------
        name : str, optional
            Name of the variable
        lower_bound : float, optional
            Lower bound; None means unbounded
        upper_bound : float, optional
            Upper bound; None means unbounded

        Returns
        -------
        Variable
            The new variable

        Notes
        -----
        OSQP has no variable bounds, so a bounded variable adds one
        constraint row ``lower_bound <= x <= upper_bound`` to the model.
        """
        self._check_live()
        var = Variable(len(self._variables), name)
        self._variables.append(var)

        if lower_bound is not None or upper_bound is not None:
            lower = -np.inf if lower_bound is None else lower_bound
            upper = np.inf if upper_bound is None else upper_bound
            bound_name = f"{name}_bound" if name else None
            self.add_constraint(between(lower, var, upper), name=bound_name)
        return var

    def add_variables(self, count: int, name_prefix: str = 'x',
                      lower_bound: Optional[float] = None,
                      upper_bound: Optional[float] = None) -> List[Variable]:
        """Add ``count`` variables named ``<name_prefix><index>``"""
        self._check_live()
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        return [
            self.add_variable(f"{name_prefix}{len(self._variables)}", lower_bound, upper_bound)
            for _ in range(count)
        ]

    def add_constraint(self, constraint: Constraint, name: Optional[str] = None) -> Constraint:
        """
        Add a linear constraint.

        The constraint is kept by reference: changing its bounds later and
        solving again reuses the live session.

        Parameters
        ----------
        constraint : Constraint
            Constraint built with ``<=``, ``>=``, ``==`` or ``between``
        name : str, optional
            Name of the constraint (overrides an existing name)

        Returns
        -------
        Constraint
            The same constraint object
        """
        self._check_live()
        if not isinstance(constraint, Constraint):
            raise TypeError(f"Expected a Constraint, got {type(constraint).__name__!r}")
        if name is not None:
            constraint.name = name
        self._constraint_rows.setdefault(id(constraint), len(self._constraints))
        self._constraints.append(constraint)
        return constraint

    def set_objective(self, expr: Union[QuadExpr, LinExpr, Variable, float]):
        """
        Set the objective to minimize.

        A QuadExpr is kept by reference, so editing it in place is seen by
        the next solve. Linear expressions, variables and numbers are
        converted to a new QuadExpr.
        """
        self._check_live()
        if isinstance(expr, QuadExpr):
            self._objective = expr
        elif isinstance(expr, (LinExpr, Variable, _SCALAR_TYPES)):
            self._objective = QuadExpr.from_linear(expr)
        else:
            raise TypeError(f"Objective must be an expression or a number, "
                            f"got {type(expr).__name__!r}")

    # Properties

    @property
    def num_variables(self) -> int:
        """Number of variables"""
        return len(self._variables)

    @property
    def num_constraints(self) -> int:
        """Number of constraints"""
        return len(self._constraints)

    @property
    def variables(self) -> List[Variable]:
        return list(self._variables)

    @property
    def constraints(self) -> List[Constraint]:
        return list(self._constraints)

    @property
    def objective(self) -> QuadExpr:
        return self._objective

    @property
    def settings(self) -> Settings:
        """Engine settings, applied at the next solve"""
        return self._settings

    @settings.setter
    def settings(self, settings: Settings):
        if not isinstance(settings, Settings):
            raise TypeError("settings must be a Settings instance")
        self._settings = settings.copy()

    @property
    def session_state(self) -> SessionState:
        return self._state

    def is_valid(self) -> bool:
        """Check if model is valid (not freed)"""
        return not self._freed

    # Standard form

    def _check_index(self, idx: int, n: int, where: str):
        if idx < 0 or idx >= n:
            raise ModelError(f"{where} references variable index {idx}, "
                             f"but the model has {n} variables")

    def standard_form(self) -> StandardForm:
        """
        Assemble the model into OSQP standard form.

        The objective ``sum c_ij x_i x_j`` becomes ``0.5 x'Px`` with
        ``P_ii = 2 c_ii`` on the diagonal and ``P_ij = c_ij`` above it.

        Returns
        -------
        StandardForm
            ``(P, q, A, l, u, constant)``

        Raises
        ------
        ModelError
            If the model has no variables or an expression uses a variable
            that does not belong to this model
        """
        self._check_live()
        n = len(self._variables)
        m = len(self._constraints)
        if n == 0:
            raise ModelError("Model has no variables")

        objective = self._objective
        P_triplets = []
        for (i, j), coef in objective.quad_coefficients.items():
            self._check_index(i, n, "Objective")
            self._check_index(j, n, "Objective")
            if i == j:
                P_triplets.append((i, i, 2.0 * coef))
            else:
                P_triplets.append((i, j, coef))

        q = np.zeros(n, dtype=np.float64)
        for idx, coef in objective.linear.coefficients.items():
            self._check_index(idx, n, "Objective")
            q[idx] += coef

        A_triplets = []
        l = np.empty(m, dtype=np.float64)
        u = np.empty(m, dtype=np.float64)
        for row, constraint in enumerate(self._constraints):
            for idx, coef in constraint.expression.coefficients.items():
                self._check_index(idx, n, f"Constraint {row}")
                A_triplets.append((row, idx, coef))
            l[row] = constraint.lower_bound
            u[row] = constraint.upper_bound

        P = assemble(P_triplets, n, n)
        A = assemble(A_triplets, m, n)
        return StandardForm(P, q, A, l, u, objective.constant)

    # Solving

    def warm_start(self, primal=None, dual=None):
        """
        Queue a starting point for the next solve.

        Parameters
        ----------
        primal : dict or sequence, optional
            Mapping of Variable to value (unlisted variables start at 0), or
            a sequence of length ``num_variables``
        dual : sequence, optional
            Dual guess, length ``num_constraints``

        Raises
        ------
        DimensionMismatchError
            If a sequence does not match the model's dimensions
        """
        self._check_live()
        n = len(self._variables)
        m = len(self._constraints)

        if primal is not None:
            if isinstance(primal, dict):
                x = np.zeros(n, dtype=np.float64)
                for var, value in primal.items():
                    if not isinstance(var, Variable):
                        raise TypeError("Primal warm start keys must be Variables")
                    if var.index >= n:
                        raise DimensionMismatchError(f"{var!r} does not belong to this model")
                    x[var.index] = value
            else:
                x = _ensure_contiguous_float64(primal)
                if x.shape != (n,):
                    raise DimensionMismatchError(
                        f"Primal warm start must have length {n} (number of variables), "
                        f"got {len(x)}")
            self._pending_primal = x

        if dual is not None:
            y = _ensure_contiguous_float64(dual)
            if y.shape != (m,):
                raise DimensionMismatchError(
                    f"Dual warm start must have length {m} (number of constraints), "
                    f"got {len(y)}")
            self._pending_dual = y

    def _take_warm_start(self, n: int, m: int):
        x, y = self._pending_primal, self._pending_dual
        self._pending_primal = None
        self._pending_dual = None
        if x is not None and len(x) != n:
            raise DimensionMismatchError("Primal warm start no longer matches the number "
                                         "of variables")
        if y is not None and len(y) != m:
            raise DimensionMismatchError("Dual warm start no longer matches the number "
                                         "of constraints")
        return x, y

    def _rebuild(self, form: StandardForm):
        self._release_session()
        if self._engine is None:
            self._engine = OsqpEngine()
        self._solver = QPSolver(form.P, form.q, form.A, form.l, form.u,
                                settings=self._settings, engine=self._engine)
        self._state = SessionState.BUILT

    def _update(self, form: StandardForm):
        solver = self._solver
        if form.A.rows:
            solver.update_data(q=form.q, l=form.l, u=form.u)
        else:
            solver.update_data(q=form.q)
        solver.update_matrices(
            P_values=form.P.values if form.P.nnz else None,
            A_values=form.A.values if form.A.nnz else None,
        )
        solver.update_settings(self._settings)

    def _release_session(self):
        if self._solver is not None:
            self._solver.free()
            self._solver = None
            self._state = SessionState.RELEASED
        self._P = None
        self._A = None

    def solve(self) -> Results:
        """
        Solve the model.

        The first solve sets up an OSQP session. Later solves reuse it when
        the sparsity of the cost and constraint matrices is unchanged and
        set up a new one otherwise.

        Returns
        -------
        Results
            Solver results; ``results[var]`` gives the value of a variable

        Raises
        ------
        ModelError
            If the model cannot be put in standard form
        SolverError
            If the engine fails; the session is released and no result is kept
        """
        self._check_live()
        self._result = None
        form = self.standard_form()
        n, m = form.P.cols, form.A.rows
        x0, y0 = self._take_warm_start(n, m)

        path = choose_path(self._P, self._A, form.P, form.A)
        if self._solver is None:
            path = ReusePath.REBUILD
        logger.debug("Solving model with n=%d, m=%d via %s path", n, m, path.value)

        try:
            if path == ReusePath.UPDATE:
                self._update(form)
            else:
                self._rebuild(form)
            self._P, self._A = form.P, form.A

            if x0 is not None or y0 is not None:
                self._solver.warm_start(x=x0, y=y0)
            self._solver.solve()
        except SolverError:
            self._release_session()
            raise

        solver = self._solver
        result = Results.from_info(solver.info, solver.primal_solution, solver.dual_solution,
                                   objective_constant=form.constant)
        result.solution = {var: float(result.x[var.index]) for var in self._variables}
        result.reused = path == ReusePath.UPDATE
        if result.reused:
            result.setup_time = 0.0
        self._result = result
        return result

    # Reading the last solve

    def _check_result(self) -> Results:
        self._check_live()
        if self._result is None:
            raise NotSolvedError("No solution available: call solve() first "
                                 "(or the last solve failed)")
        return self._result

    @property
    def result(self) -> Results:
        """Results of the last successful solve"""
        return self._check_result()

    @property
    def objective_value(self) -> float:
        """Objective value of the last solve, including the constant term"""
        return self._check_result().objective_value

    def value(self, variable: Variable) -> float:
        """Primal value of a variable in the last solve"""
        result = self._check_result()
        if variable not in result.solution:
            raise NotSolvedError(f"{variable!r} has no value in the last solve")
        return result.solution[variable]

    def dual_value(self, constraint: Constraint) -> float:
        """Dual value of a constraint in the last solve"""
        result = self._check_result()
        row = self._constraint_rows.get(id(constraint))
        if row is None:
            raise ModelError(f"{constraint!r} does not belong to this model")
        if result.y is None or row >= len(result.y):
            raise NotSolvedError(f"{constraint!r} has no dual value in the last solve")
        return float(result.y[row])

    # Lifecycle

    def free(self):
        """
        Release the OSQP session.

        After calling this method, the model cannot be used anymore.
        """
        if not self._freed:
            self._release_session()
            self._state = SessionState.RELEASED
            self._result = None
            self._freed = True

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - automatically free the session"""
        self.free()
        return False

    def __repr__(self):
        if self._freed:
            return "<osqpmodel.Model (freed)>"
        return (f"<osqpmodel.Model variables={self.num_variables} "
                f"constraints={self.num_constraints} state={self._state.value}>")
