"""
Results class for osqpmodel solver output
"""
from enum import Enum
import numpy as np
from typing import Optional, Dict, Any


class Status(Enum):
    """Terminal status of an engine solve"""
    SOLVED = 'solved'
    SOLVED_INACCURATE = 'solved inaccurate'
    PRIMAL_INFEASIBLE = 'primal infeasible'
    PRIMAL_INFEASIBLE_INACCURATE = 'primal infeasible inaccurate'
    DUAL_INFEASIBLE = 'dual infeasible'
    DUAL_INFEASIBLE_INACCURATE = 'dual infeasible inaccurate'
    MAX_ITER_REACHED = 'maximum iterations reached'
    TIME_LIMIT_REACHED = 'run time limit reached'
    NON_CONVEX = 'problem non convex'
    INTERRUPTED = 'interrupted'
    UNSOLVED = 'unsolved'

    @classmethod
    def from_code(cls, status_val: int) -> 'Status':
        """Map an OSQP 1.x ``status_val`` onto a Status"""
        return _STATUS_BY_CODE.get(int(status_val), cls.UNSOLVED)


_STATUS_BY_CODE = {
    1: Status.SOLVED,
    2: Status.SOLVED_INACCURATE,
    3: Status.PRIMAL_INFEASIBLE,
    4: Status.PRIMAL_INFEASIBLE_INACCURATE,
    5: Status.DUAL_INFEASIBLE,
    6: Status.DUAL_INFEASIBLE_INACCURATE,
    7: Status.MAX_ITER_REACHED,
    8: Status.TIME_LIMIT_REACHED,
    9: Status.NON_CONVEX,
    10: Status.INTERRUPTED,
    11: Status.UNSOLVED,
}


class Results:
    """
    Results from an OSQP solve.

    Attributes
    ----------
    status : Status
        Terminal status reported by the engine
    x : np.ndarray
        Primal solution vector (all NaN when ``is_feasible()`` is False)
    y : np.ndarray
        Dual solution vector (one entry per constraint row)
    solution : dict
        Primal values keyed by Variable (empty for array-level solves)
    objective_value : float
        Objective value, including the objective's constant term
    iterations : int
        Number of ADMM iterations
    primal_residual : float
        Final primal residual
    dual_residual : float
        Final dual residual
    setup_time : float
        Engine setup time in seconds (0 when the session was reused)
    solve_time : float
        Engine solve time in seconds
    run_time : float
        Total engine time in seconds
    reused : bool
        True when the solve reused the previous session with updated values

    Methods
    -------
    is_solved()
        Check if the engine reports an accurate solution
    to_dict()
        Convert results to dictionary
    """

    def __init__(self):
        self.status: Status = Status.UNSOLVED
        self.x: Optional[np.ndarray] = None
        self.y: Optional[np.ndarray] = None
        self.solution: Dict[Any, float] = {}
        self.objective_value: float = float('nan')
        self.iterations: int = 0
        self.primal_residual: float = float('inf')
        self.dual_residual: float = float('inf')
        self.setup_time: float = 0.0
        self.solve_time: float = 0.0
        self.run_time: float = 0.0
        self.reused: bool = False

    def is_solved(self) -> bool:
        """Check if solution is optimal"""
        return self.status == Status.SOLVED

    def is_feasible(self) -> bool:
        """Check if the primal solution can be used"""
        return self.status in (Status.SOLVED, Status.SOLVED_INACCURATE,
                               Status.MAX_ITER_REACHED, Status.TIME_LIMIT_REACHED)

    def __getitem__(self, variable) -> float:
        return self.solution[variable]

    def __repr__(self):
        if self.x is not None:
            n_vars = len(self.x)
        else:
            n_vars = 0

        return (f"Results(status='{self.status.value}', "
                f"iter={self.iterations}, "
                f"objective={self.objective_value:.6e}, "
                f"reused={self.reused}, "
                f"n_vars={n_vars})")

    def __str__(self):
        lines = [
            "OSQP Solver Results",
            "=" * 50,
            f"Status:          {self.status.value}",
            f"Objective:       {self.objective_value:.6e}",
            f"Primal res:      {self.primal_residual:.6e}",
            f"Dual res:        {self.dual_residual:.6e}",
            f"Iterations:      {self.iterations}",
            f"Setup time:      {self.setup_time:.3e} seconds",
            f"Solve time:      {self.solve_time:.3e} seconds",
            f"Session reused:  {self.reused}",
        ]

        if self.x is not None:
            lines.append(f"Variables:       {len(self.x)}")
            lines.append(f"||x||:           {np.linalg.norm(self.x):.6e}")

        if self.y is not None:
            lines.append(f"Constraints:     {len(self.y)}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert results to dictionary"""
        return {
            'status': self.status.value,
            'x': self.x.tolist() if self.x is not None else None,
            'y': self.y.tolist() if self.y is not None else None,
            'objective_value': self.objective_value,
            'iterations': self.iterations,
            'primal_residual': self.primal_residual,
            'dual_residual': self.dual_residual,
            'setup_time': self.setup_time,
            'solve_time': self.solve_time,
            'run_time': self.run_time,
            'reused': self.reused,
        }

    @classmethod
    def from_info(cls, info, x=None, y=None, objective_constant: float = 0.0):
        """Create Results from an engine ``SolveInfo`` and solution vectors"""
        results = cls()
        results.status = info.status
        results.objective_value = info.obj_val + objective_constant
        results.iterations = info.iterations
        results.primal_residual = info.prim_res
        results.dual_residual = info.dual_res
        results.setup_time = info.setup_time
        results.solve_time = info.solve_time
        results.run_time = info.run_time

        if x is not None:
            results.x = np.array(x, dtype=np.float64)
            # the engine leaves placeholders in x when no feasible point exists
            if not results.is_feasible():
                results.x = np.full(len(results.x), np.nan)
        if y is not None:
            results.y = np.array(y, dtype=np.float64)

        return results
