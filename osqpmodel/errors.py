"""
Exceptions raised by osqpmodel
"""


class OsqpModelError(Exception):
    """Base class for all errors raised by this package"""


class ModelError(OsqpModelError, RuntimeError):
    """Modelling error detected locally, before the engine is reached"""


class DimensionMismatchError(ModelError, ValueError):
    """A supplied vector does not match the variable or constraint count"""


class UnsupportedOperationError(ModelError, TypeError):
    """Comparison that cannot be expressed as a QP constraint (``<``, ``>``, ``!=``)"""


class DisposedError(ModelError):
    """A freed Model, QPSolver or engine session was used"""


class NotSolvedError(ModelError):
    """Solution data was requested but no successful solve backs it"""


class SolverError(OsqpModelError, RuntimeError):
    """
    Failure reported by the external QP engine.

    Attributes
    ----------
    code : ErrorCode
        Engine error code (see ``osqpmodel.engine.ErrorCode``)
    """

    operation = "engine call"

    def __init__(self, code, message: str = ""):
        self.code = code
        self.message = message
        detail = f": {message}" if message else ""
        super().__init__(f"OSQP {self.operation} failed with error {code.name}{detail}")


class SetupError(SolverError):
    operation = "setup"


class SolveError(SolverError):
    operation = "solve"


class UpdateError(SolverError):
    operation = "update"
