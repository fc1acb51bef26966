"""
Modeling interface for osqpmodel

This module provides the expression algebra used to describe a convex QP:
variables, linear and quadratic expressions, and bound constraints.

Expressions store coefficients keyed by variable index. Quadratic terms are
keyed by the index pair ``(i, j)`` with ``i <= j``, so ``x*y`` and ``y*x``
land on the same entry.

Example
-------
>>> from osqpmodel import Model
>>>
>>> model = Model()
>>> x = model.add_variable(name='x')
>>> y = model.add_variable(name='y')
>>>
>>> # 2x^2 + y^2 + xy + x + y
>>> model.set_objective(2*x*x + y*y + x*y + x + y)
>>> model.add_constraint(x + y == 1)
>>> model.add_constraint(x >= 0)
>>> model.add_constraint(y >= 0)
>>>
>>> result = model.solve()
>>> print(result[x], result[y])
"""

import numpy as np
from typing import Union, Optional, Dict, Tuple
from enum import Enum

from .errors import UnsupportedOperationError


_SCALAR_TYPES = (int, float, np.number)


class ConstraintSense(Enum):
    """Constraint sense"""
    LE = '<='  # Less than or equal
    GE = '>='  # Greater than or equal
    EQ = '=='  # Equal


def _unsupported_comparison(self, other):
    raise UnsupportedOperationError(
        "Strict inequalities and '!=' cannot be expressed as QP constraints; "
        "use <=, >= or =="
    )


def _index_of(var: Union['Variable', int]) -> int:
    if isinstance(var, Variable):
        return var.index
    if isinstance(var, (int, np.integer)):
        return int(var)
    raise TypeError(f"Expected Variable or index, got {type(var).__name__!r}")


class Variable:
    """
    Decision variable of a Model.

    Variables are created by ``Model.add_variable`` and carry the index
    assigned by their model. Two variables are equal only if they are the
    same object; ``x == y`` builds an equality constraint.

    Parameters
    ----------
    index : int
        Position of the variable in its model
    name : str, optional
        Name of the variable for display

    Examples
    --------
    >>> x = model.add_variable(name='x')
    >>> expr = 3*x + 5     # LinExpr
    >>> quad = x*x - 2*x   # QuadExpr
    """

    # numpy scalars defer to the reflected operators below
    __array_ufunc__ = None

    def __init__(self, index: int, name: Optional[str] = None):
        self._index = int(index)
        self.name = name

    @property
    def index(self) -> int:
        """Zero-based position of the variable in its model"""
        return self._index

    def __repr__(self):
        if self.name:
            return f"Variable({self.name})"
        return f"Variable(x{self._index})"

    __hash__ = object.__hash__

    # Arithmetic operations
    def __add__(self, other):
        return LinExpr.from_variable(self) + other

    def __radd__(self, other):
        return LinExpr.from_variable(self) + other

    def __sub__(self, other):
        return LinExpr.from_variable(self) - other

    def __rsub__(self, other):
        return LinExpr.from_variable(self, -1.0) + other

    def __mul__(self, other):
        return LinExpr.from_variable(self) * other

    def __rmul__(self, other):
        return LinExpr.from_variable(self) * other

    def __neg__(self):
        return LinExpr.from_variable(self, -1.0)

    def __truediv__(self, other):
        if not isinstance(other, _SCALAR_TYPES):
            raise TypeError("Can only divide variable by scalar")
        return LinExpr.from_variable(self, 1.0 / float(other))

    # Comparison operators for constraints
    def __le__(self, other):
        return LinExpr.from_variable(self) <= other

    def __ge__(self, other):
        return LinExpr.from_variable(self) >= other

    def __eq__(self, other):
        constraint = LinExpr.from_variable(self) == other
        if isinstance(other, Variable) and isinstance(constraint, Constraint):
            constraint._identity = self is other
        return constraint

    __lt__ = _unsupported_comparison
    __gt__ = _unsupported_comparison
    __ne__ = _unsupported_comparison


class LinExpr:
    """
    Linear expression: sum of (coefficient * variable) + constant.

    Coefficients are stored in a dictionary mapping variable indices to
    coefficients. Combining expressions sums coefficients of shared
    variables; zero coefficients are kept.

    ``add``, ``subtract``, ``scale`` and the ``+=``, ``-=``, ``*=`` operators
    modify the expression in place. The binary operators return a new
    expression and leave their operands untouched.

    Parameters
    ----------
    coefficients : dict, optional
        Dictionary mapping variable indices to coefficients
    constant : float, optional
        Constant term

    Examples
    --------
    >>> expr = 3*x + 2*y - 5
    >>> expr.get_coefficient(x)
    3.0
    >>> expr += x          # in place
    >>> expr.get_coefficient(x)
    4.0
    """

    __array_ufunc__ = None

    def __init__(self, coefficients: Optional[Dict[int, float]] = None,
                 constant: float = 0.0):
        self.coefficients: Dict[int, float] = {}
        if coefficients:
            for idx, coef in coefficients.items():
                self.coefficients[int(idx)] = float(coef)
        self.constant = float(constant)

    @staticmethod
    def from_variable(var: Variable, coefficient: float = 1.0) -> 'LinExpr':
        """Create expression from a single variable"""
        return LinExpr({var.index: coefficient}, 0.0)

    @staticmethod
    def from_constant(value: float) -> 'LinExpr':
        """Create expression from a constant"""
        return LinExpr({}, value)

    def copy(self) -> 'LinExpr':
        """Create a copy of this expression"""
        return LinExpr(self.coefficients, self.constant)

    def get_coefficient(self, var: Union[Variable, int]) -> float:
        """Get coefficient for a variable (0.0 when absent)"""
        return self.coefficients.get(_index_of(var), 0.0)

    def __repr__(self):
        if not self.coefficients and self.constant == 0:
            return "0"

        terms = []
        for idx, coef in sorted(self.coefficients.items()):
            if coef == 1.0:
                terms.append(f"x{idx}")
            elif coef == -1.0:
                terms.append(f"-x{idx}")
            else:
                terms.append(f"{coef}*x{idx}")

        if self.constant != 0:
            terms.append(f"{self.constant}")

        result = terms[0]
        for term in terms[1:]:
            if term.startswith('-'):
                result += f" - {term[1:]}"
            else:
                result += f" + {term}"
        return result

    # In-place accumulation
    def _add_term(self, idx: int, coef: float):
        self.coefficients[idx] = self.coefficients.get(idx, 0.0) + coef

    def _accumulate(self, other, sign: float):
        if isinstance(other, _SCALAR_TYPES):
            self.constant += sign * float(other)
        elif isinstance(other, Variable):
            self._add_term(other.index, sign)
        elif isinstance(other, LinExpr):
            for idx, coef in list(other.coefficients.items()):
                self._add_term(idx, sign * coef)
            self.constant += sign * other.constant
        else:
            raise TypeError(f"Cannot combine {type(other).__name__!r} with a linear expression")

    def add(self, other: Union[Variable, 'LinExpr', float]):
        """Add a variable, expression or constant to this expression in place"""
        self._accumulate(other, 1.0)

    def subtract(self, other: Union[Variable, 'LinExpr', float]):
        """Subtract a variable, expression or constant from this expression in place"""
        self._accumulate(other, -1.0)

    def scale(self, factor: float):
        """Multiply every coefficient and the constant by ``factor`` in place"""
        factor = float(factor)
        for idx in self.coefficients:
            self.coefficients[idx] *= factor
        self.constant *= factor

    def multiply(self, other: Union[Variable, 'LinExpr', float]) -> 'QuadExpr':
        """
        Multiply two linear expressions into a quadratic expression.

        Every pair of nonzero terms contributes a quadratic term, each side's
        constant turns the other side's terms into linear terms, and the
        constants multiply into the new constant.

        Examples
        --------
        >>> q = (x + 1).multiply(y + 2)   # x*y + 2x + y + 2
        """
        other = _as_linexpr(other)
        if other is None:
            raise TypeError("Can only multiply a linear expression by a variable, "
                            "linear expression or scalar")

        result = QuadExpr()
        for i, c1 in self.coefficients.items():
            if c1 == 0.0:
                continue
            for j, c2 in other.coefficients.items():
                if c2 == 0.0:
                    continue
                result._add_quad(i, j, c1 * c2)

        if other.constant != 0.0:
            for i, c1 in self.coefficients.items():
                result.linear._add_term(i, c1 * other.constant)
        if self.constant != 0.0:
            for j, c2 in other.coefficients.items():
                result.linear._add_term(j, c2 * self.constant)
        result.linear.constant = self.constant * other.constant
        return result

    # Arithmetic operations
    def __add__(self, other):
        if not _is_linear_operand(other):
            return NotImplemented
        result = self.copy()
        result.add(other)
        return result

    def __radd__(self, other):
        return self.__add__(other)

    def __sub__(self, other):
        if not _is_linear_operand(other):
            return NotImplemented
        result = self.copy()
        result.subtract(other)
        return result

    def __rsub__(self, other):
        if not _is_linear_operand(other):
            return NotImplemented
        result = self * -1.0
        result.add(other)
        return result

    def __iadd__(self, other):
        if not _is_linear_operand(other):
            return NotImplemented
        self.add(other)
        return self

    def __isub__(self, other):
        if not _is_linear_operand(other):
            return NotImplemented
        self.subtract(other)
        return self

    def __imul__(self, other):
        if not isinstance(other, _SCALAR_TYPES):
            return NotImplemented
        self.scale(other)
        return self

    def __mul__(self, other):
        if isinstance(other, _SCALAR_TYPES):
            result = self.copy()
            result.scale(other)
            return result
        if isinstance(other, (Variable, LinExpr)):
            return self.multiply(other)
        return NotImplemented

    def __rmul__(self, other):
        return self.__mul__(other)

    def __neg__(self):
        return self * -1.0

    def __truediv__(self, other):
        if not isinstance(other, _SCALAR_TYPES):
            raise TypeError("Can only divide expression by scalar")
        return self * (1.0 / float(other))

    # Comparison operators for constraints
    def __le__(self, other):
        return _make_constraint(self, other, ConstraintSense.LE)

    def __ge__(self, other):
        return _make_constraint(self, other, ConstraintSense.GE)

    def __eq__(self, other):
        return _make_constraint(self, other, ConstraintSense.EQ)

    __lt__ = _unsupported_comparison
    __gt__ = _unsupported_comparison
    __ne__ = _unsupported_comparison


class QuadExpr:
    """
    Quadratic expression: sum of (coefficient * x_i * x_j) plus a linear part.

    ``quad_coefficients`` maps index pairs ``(i, j)`` with ``i <= j`` to
    coefficients; the pair is reordered on insert so it is never stored
    twice. A term ``c * x_i * x_j`` means exactly that product, without an
    implicit factor of one half.

    Parameters
    ----------
    quad_coefficients : dict, optional
        Dictionary mapping index pairs to coefficients
    linear : LinExpr, optional
        Linear part and constant (copied)

    Examples
    --------
    >>> q = 0.5*x*x + 3*x*y - y + 2
    >>> q.get_quad_coefficient(y, x)
    3.0
    """

    __array_ufunc__ = None

    def __init__(self, quad_coefficients: Optional[Dict[Tuple[int, int], float]] = None,
                 linear: Optional[LinExpr] = None):
        self.quad_coefficients: Dict[Tuple[int, int], float] = {}
        if quad_coefficients:
            for (i, j), coef in quad_coefficients.items():
                self._add_quad(int(i), int(j), float(coef))
        self.linear = linear.copy() if linear is not None else LinExpr()

    @staticmethod
    def from_linear(expr: Union[Variable, LinExpr, float]) -> 'QuadExpr':
        """Create a quadratic expression with only a linear part"""
        linear = _as_linexpr(expr)
        if linear is None:
            raise TypeError("Expected Variable, LinExpr or scalar")
        return QuadExpr(linear=linear)

    @property
    def constant(self) -> float:
        return self.linear.constant

    @constant.setter
    def constant(self, value: float):
        self.linear.constant = float(value)

    def copy(self) -> 'QuadExpr':
        """Create a copy of this expression"""
        return QuadExpr(self.quad_coefficients, self.linear)

    def _add_quad(self, i: int, j: int, coef: float):
        key = (i, j) if i <= j else (j, i)
        self.quad_coefficients[key] = self.quad_coefficients.get(key, 0.0) + coef

    def add_quad_term(self, v1: Union[Variable, int], v2: Union[Variable, int],
                      coefficient: float = 1.0):
        """Accumulate ``coefficient * v1 * v2`` in place"""
        self._add_quad(_index_of(v1), _index_of(v2), float(coefficient))

    def get_quad_coefficient(self, v1: Union[Variable, int], v2: Union[Variable, int]) -> float:
        """Get the coefficient of ``v1 * v2`` in either argument order"""
        i, j = _index_of(v1), _index_of(v2)
        key = (i, j) if i <= j else (j, i)
        return self.quad_coefficients.get(key, 0.0)

    def __repr__(self):
        terms = [f"{coef}*x{i}*x{j}" for (i, j), coef in sorted(self.quad_coefficients.items())]
        linear = repr(self.linear)
        if linear != "0" or not terms:
            terms.append(linear)
        return " + ".join(terms).replace("+ -", "- ")

    # In-place accumulation
    def _accumulate(self, other, sign: float):
        if isinstance(other, QuadExpr):
            for (i, j), coef in list(other.quad_coefficients.items()):
                self._add_quad(i, j, sign * coef)
            self.linear._accumulate(other.linear, sign)
        else:
            self.linear._accumulate(other, sign)

    def add(self, other: Union['QuadExpr', LinExpr, Variable, float]):
        """Add an expression, variable or constant to this expression in place"""
        self._accumulate(other, 1.0)

    def subtract(self, other: Union['QuadExpr', LinExpr, Variable, float]):
        """Subtract an expression, variable or constant from this expression in place"""
        self._accumulate(other, -1.0)

    def scale(self, factor: float):
        """Multiply every coefficient and the constant by ``factor`` in place"""
        factor = float(factor)
        for key in self.quad_coefficients:
            self.quad_coefficients[key] *= factor
        self.linear.scale(factor)

    # Arithmetic operations
    def __add__(self, other):
        if not _is_quad_operand(other):
            return NotImplemented
        result = self.copy()
        result.add(other)
        return result

    def __radd__(self, other):
        return self.__add__(other)

    def __sub__(self, other):
        if not _is_quad_operand(other):
            return NotImplemented
        result = self.copy()
        result.subtract(other)
        return result

    def __rsub__(self, other):
        if not _is_quad_operand(other):
            return NotImplemented
        result = self * -1.0
        result.add(other)
        return result

    def __iadd__(self, other):
        if not _is_quad_operand(other):
            return NotImplemented
        self.add(other)
        return self

    def __isub__(self, other):
        if not _is_quad_operand(other):
            return NotImplemented
        self.subtract(other)
        return self

    def __imul__(self, other):
        if not isinstance(other, _SCALAR_TYPES):
            return NotImplemented
        self.scale(other)
        return self

    def __mul__(self, other):
        if not isinstance(other, _SCALAR_TYPES):
            return NotImplemented
        result = self.copy()
        result.scale(other)
        return result

    def __rmul__(self, other):
        return self.__mul__(other)

    def __neg__(self):
        return self * -1.0

    def __truediv__(self, other):
        if not isinstance(other, _SCALAR_TYPES):
            raise TypeError("Can only divide expression by scalar")
        return self * (1.0 / float(other))

    def _quadratic_constraint(self, other):
        raise UnsupportedOperationError("Quadratic constraints are not supported; "
                                        "constraints must be linear")

    __le__ = _quadratic_constraint
    __ge__ = _quadratic_constraint
    __eq__ = _quadratic_constraint
    __lt__ = _quadratic_constraint
    __gt__ = _quadratic_constraint
    __ne__ = _quadratic_constraint
    __hash__ = None


def _is_linear_operand(value) -> bool:
    return isinstance(value, (_SCALAR_TYPES, Variable, LinExpr))


def _is_quad_operand(value) -> bool:
    return isinstance(value, (_SCALAR_TYPES, Variable, LinExpr, QuadExpr))


def _as_linexpr(value) -> Optional[LinExpr]:
    if isinstance(value, LinExpr):
        return value
    if isinstance(value, Variable):
        return LinExpr.from_variable(value)
    if isinstance(value, _SCALAR_TYPES):
        return LinExpr.from_constant(float(value))
    return None


def _make_constraint(lhs: LinExpr, rhs, sense: ConstraintSense):
    """Normalize ``lhs <sense> rhs`` into bounds on a constant-free expression"""
    rhs = _as_linexpr(rhs)
    if rhs is None:
        return NotImplemented

    difference = lhs - rhs
    bound = -difference.constant
    expression = LinExpr(difference.coefficients, 0.0)

    if sense == ConstraintSense.LE:
        return Constraint(expression, -np.inf, bound)
    if sense == ConstraintSense.GE:
        return Constraint(expression, bound, np.inf)
    return Constraint(expression, bound, bound)


def between(lower: float, expr: Union[LinExpr, Variable], upper: float) -> 'Constraint':
    """
    Create a two-sided constraint: lower <= expr <= upper.

    Python's comparison chaining doesn't work for custom objects, so use this helper.

    Parameters
    ----------
    lower : float
        Lower bound
    expr : LinExpr or Variable
        Expression to bound
    upper : float
        Upper bound

    Returns
    -------
    Constraint
        Constraint with the expression's constant folded into both bounds

    Examples
    --------
    >>> c = between(5, 2*x + 1, 10)  # 4 <= 2*x <= 9
    """
    if isinstance(expr, Variable):
        expr = LinExpr.from_variable(expr)
    elif not isinstance(expr, LinExpr):
        raise TypeError("between() expects a Variable or LinExpr")
    return Constraint(expr, lower, upper)


class Constraint:
    """
    Linear constraint ``lower_bound <= expression <= upper_bound``.

    Constraints are usually built with ``<=``, ``>=`` and ``==`` on
    expressions, which fold any constant of the expression into the bounds.
    Both bounds stay mutable after construction; changing them and solving
    again reuses the model's solver session. An inverted pair of bounds is
    not rejected here, it is reported by the engine at solve time.

    Parameters
    ----------
    expression : LinExpr or Variable
        Constrained expression; its constant is moved into the bounds
    lower_bound : float, optional
        Lower bound (default: -inf)
    upper_bound : float, optional
        Upper bound (default: inf)
    name : str, optional
        Name of the constraint

    Examples
    --------
    >>> c1 = x + y + 5 <= 10   # -inf <= x + y <= 5
    >>> c2 = x == y            # 0 <= x - y <= 0
    >>> c1.upper_bound = 6
    """

    def __init__(self, expression: Union[LinExpr, Variable],
                 lower_bound: float = -np.inf,
                 upper_bound: float = np.inf,
                 name: Optional[str] = None):
        if isinstance(expression, Variable):
            expression = LinExpr.from_variable(expression)
        elif not isinstance(expression, LinExpr):
            raise TypeError("Constraint expression must be a Variable or LinExpr")

        self.expression = LinExpr(expression.coefficients, 0.0)
        self.lower_bound = float(lower_bound) - expression.constant
        self.upper_bound = float(upper_bound) - expression.constant
        self.name = name
        # Truth value of a Variable == Variable comparison
        self._identity: Optional[bool] = None

    def __repr__(self):
        return (f"Constraint({self.lower_bound} <= {self.expression} <= {self.upper_bound}, "
                f"name={self.name})")

    def __bool__(self):
        if self._identity is not None:
            return self._identity
        raise TypeError("A Constraint has no truth value; "
                        "use between(lower, expr, upper) for two-sided constraints")
