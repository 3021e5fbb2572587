"""
Constraints and costs of a `MathematicalProgram`. An evaluator is a function
of a flat vector of values, `Eval(x)`, together with its Jacobian. A `Binding`
attaches an evaluator to the decision variables it is evaluated on.
"""

import numpy as np

from dynopt import symbolic
from dynopt.utilities import approx_derivative


class EvaluatorBase:
    """Base class for vector-valued functions of decision variables."""
    def __init__(self, num_outputs, num_vars, description=''):
        """
        Parameters
        ----------
        num_outputs : int
            Size of the vector returned by `Eval`.
        num_vars : int
            Size of the input vector `x`.
        description : str, default=''
            Optional human readable description.
        """
        self._num_outputs = int(num_outputs)
        self._num_vars = int(num_vars)
        self._description = description

    def num_outputs(self):
        return self._num_outputs

    def num_vars(self):
        return self._num_vars

    def get_description(self):
        return self._description

    def set_description(self, description):
        self._description = description

    def Eval(self, x):
        """
        Evaluate the function.

        Parameters
        ----------
        x : (num_vars,) array
            Values of the bound variables.

        Returns
        -------
        y : (num_outputs,) array
        """
        raise NotImplementedError

    def Jacobian(self, x):
        """
        Evaluate the Jacobian of `Eval`. The default implementation uses
        central finite differences.

        Returns
        -------
        jac : (num_outputs, num_vars) array
        """
        x = np.asarray(x, dtype=float)
        jac = approx_derivative(self.Eval, x, method='3-point')
        return np.reshape(jac, (self.num_outputs(), self.num_vars()))

    def _symbolic(self, variables):
        """Symbolic form of `Eval` applied to `variables`, used for printing.
        Returns `None` if not available."""
        return None

    def to_string(self, variables):
        name = type(self).__name__
        if self._description:
            name = f"{name} ({self._description})"
        return name


class Constraint(EvaluatorBase):
    """Constraint `lb <= Eval(x) <= ub`."""
    def __init__(self, num_constraints, num_vars, lb, ub, description=''):
        super().__init__(num_constraints, num_vars, description=description)
        self._lb = _as_vector(lb, num_constraints, 'lb')
        self._ub = _as_vector(ub, num_constraints, 'ub')
        if np.any(self._lb > self._ub):
            raise ValueError("lb must be less than or equal to ub")

    def num_constraints(self):
        return self.num_outputs()

    def lower_bound(self):
        return self._lb

    def upper_bound(self):
        return self._ub

    def is_equality(self):
        return bool(np.all(self._lb == self._ub))

    def violation(self, x):
        """
        Amount by which the constraint is violated.

        Returns
        -------
        v : (num_constraints,) array
            Zero where the constraint is satisfied, otherwise the distance of
            `Eval(x)` to the feasible interval.
        """
        y = self.Eval(x)
        v = np.maximum(self._lb - y, 0.) + np.maximum(y - self._ub, 0.)
        return np.where(np.isfinite(y), v, np.inf)

    def CheckSatisfied(self, x, tol=1e-06):
        """Returns `True` if `lb - tol <= Eval(x) <= ub + tol`."""
        return bool(np.all(self.violation(x) <= tol))

    def to_string(self, variables):
        lines = [super().to_string(variables)]
        y = self._symbolic(variables)
        if y is None:
            lines.append(f"{self._lb} <= f({_names(variables)}) <= {self._ub}")
            return '\n'.join(lines)

        for yi, lb, ub in zip(y, self._lb, self._ub):
            if lb == ub:
                lines.append(f"{yi} == {_fmt(ub)}")
            elif np.isinf(lb):
                lines.append(f"{yi} <= {_fmt(ub)}")
            elif np.isinf(ub):
                lines.append(f"{yi} >= {_fmt(lb)}")
            else:
                lines.append(f"{_fmt(lb)} <= {yi} <= {_fmt(ub)}")
        return '\n'.join(lines)


class LinearConstraint(Constraint):
    """Linear constraint `lb <= A @ x <= ub`."""
    def __init__(self, A, lb, ub, description=''):
        A = np.atleast_2d(np.asarray(A, dtype=float))
        super().__init__(A.shape[0], A.shape[1], lb, ub,
                         description=description)
        self._A = A

    def GetDenseA(self):
        return self._A

    def Eval(self, x):
        return self._A @ np.asarray(x, dtype=float)

    def Jacobian(self, x):
        return self._A

    def _symbolic(self, variables):
        return _linear_form(self._A, variables)


class LinearEqualityConstraint(LinearConstraint):
    """Linear equality constraint `Aeq @ x == beq`."""
    def __init__(self, Aeq, beq, description=''):
        beq = np.reshape(beq, -1)
        super().__init__(Aeq, beq, beq, description=description)


class BoundingBoxConstraint(LinearConstraint):
    """Simple bounds `lb <= x <= ub` on each bound variable."""
    def __init__(self, lb, ub, description=''):
        lb = np.reshape(np.asarray(lb, dtype=float), -1)
        ub = np.reshape(np.asarray(ub, dtype=float), -1)
        n = max(lb.shape[0], ub.shape[0])
        super().__init__(np.eye(n), _as_vector(lb, n, 'lb'),
                         _as_vector(ub, n, 'ub'), description=description)

    def Eval(self, x):
        return np.array(x, dtype=float).reshape(-1)

    def _symbolic(self, variables):
        return list(np.ravel(variables))


class ExpressionConstraint(Constraint):
    """Nonlinear constraint `lb <= v(x) <= ub` given by symbolic expressions
    `v`."""
    def __init__(self, v, lb, ub, variables, description=''):
        """
        Parameters
        ----------
        v : (num_constraints,) array_like of `Expression`
            Constrained expressions.
        lb, ub : (num_constraints,) array_like
            Lower and upper bounds on `v`.
        variables : (num_vars,) array_like of `Variable`
            Order in which the variables of `v` appear in the input vector.
        """
        self._expressions = np.array(
            [e if isinstance(e, symbolic.Expression) else symbolic.Expression(e)
             for e in np.ravel(np.asarray(v, dtype=object))], dtype=object)
        variables = np.ravel(np.asarray(variables, dtype=object))
        super().__init__(self._expressions.shape[0], variables.shape[0], lb, ub,
                         description=description)
        self._variables = variables
        self._fun = symbolic.lambdify(self._expressions, variables)
        self._jac = symbolic.lambdify(
            symbolic.Jacobian(self._expressions, variables), variables)

    def expressions(self):
        return self._expressions

    def Eval(self, x):
        return self._fun(x)

    def Jacobian(self, x):
        return self._jac(x)

    def _symbolic(self, variables):
        subs = dict(zip(self._variables, np.ravel(variables)))
        return [e.Substitute(subs) for e in self._expressions]


class FunctionConstraint(Constraint):
    """Constraint `lb <= func(x) <= ub` given by a Python callable."""
    def __init__(self, func, lb, ub, num_vars, description=''):
        lb = np.reshape(np.asarray(lb, dtype=float), -1)
        super().__init__(lb.shape[0], num_vars, lb, ub,
                         description=description)
        self._func = func

    def Eval(self, x):
        return np.reshape(np.asarray(self._func(np.asarray(x, dtype=float)),
                                     dtype=float), -1)


class Cost(EvaluatorBase):
    """Scalar cost function. `Eval(x)` returns an array of shape `(1,)`."""
    def __init__(self, num_vars, description=''):
        super().__init__(1, num_vars, description=description)

    def Gradient(self, x):
        """Gradient of the cost, shape `(num_vars,)`."""
        return np.reshape(self.Jacobian(x), -1)

    def is_convex(self):
        return False

    def to_string(self, variables):
        name = super().to_string(variables)
        y = self._symbolic(variables)
        if y is None:
            return f"{name} f({_names(variables)})"
        return f"{name} ({y})"


class LinearCost(Cost):
    """Linear cost `a @ x + b`."""
    def __init__(self, a, b=0., description=''):
        a = np.reshape(np.asarray(a, dtype=float), -1)
        super().__init__(a.shape[0], description=description)
        self._a = a
        self._b = float(b)

    def a(self):
        return self._a

    def b(self):
        return self._b

    def Eval(self, x):
        return np.array([self._a @ np.asarray(x, dtype=float) + self._b])

    def Jacobian(self, x):
        return self._a[None]

    def is_convex(self):
        return True

    def _symbolic(self, variables):
        return _linear_form(self._a[None], variables, self._b)[0]


class QuadraticCost(Cost):
    """Quadratic cost `0.5 * x @ Q @ x + b @ x + c`."""
    def __init__(self, Q, b, c=0., description='', psd_tol=1e-10):
        Q = np.atleast_2d(np.asarray(Q, dtype=float))
        if Q.shape[0] != Q.shape[1]:
            raise ValueError("Q must be a square matrix")
        super().__init__(Q.shape[0], description=description)
        self._Q = 0.5 * (Q + Q.T)
        self._b = _as_vector(b, Q.shape[0], 'b')
        self._c = float(c)
        self._convex = bool(np.linalg.eigvalsh(self._Q).min() >= -psd_tol)

    def Q(self):
        return self._Q

    def b(self):
        return self._b

    def c(self):
        return self._c

    def is_convex(self):
        return self._convex

    def Eval(self, x):
        x = np.asarray(x, dtype=float)
        return np.array([0.5 * x @ self._Q @ x + self._b @ x + self._c])

    def Jacobian(self, x):
        return (self._Q @ np.asarray(x, dtype=float) + self._b)[None]

    def Hessian(self, x=None):
        return self._Q

    def _symbolic(self, variables):
        x = np.ravel(np.asarray(variables, dtype=object))
        Qx = _linear_form(self._Q, x)
        e = symbolic.Expression(self._c)
        for i in range(x.shape[0]):
            if self._Q[i].any():
                e = e + 0.5 * x[i] * Qx[i]
        return e + _linear_form(self._b[None], x)[0]


class ExpressionCost(Cost):
    """Cost given by a symbolic expression."""
    def __init__(self, e, variables, description=''):
        variables = np.ravel(np.asarray(variables, dtype=object))
        super().__init__(variables.shape[0], description=description)
        if not isinstance(e, symbolic.Expression):
            e = symbolic.Expression(e)
        self._expression = e
        self._variables = variables
        self._fun = symbolic.lambdify(e, variables)
        self._grad = symbolic.lambdify(e.Jacobian(variables), variables)

    def expression(self):
        return self._expression

    def Eval(self, x):
        return np.reshape(self._fun(x), (1,))

    def Jacobian(self, x):
        return self._grad(x)[None]

    def _symbolic(self, variables):
        return self._expression.Substitute(
            dict(zip(self._variables, np.ravel(variables))))


class FunctionCost(Cost):
    """Cost given by a Python callable `func(x) -> float`."""
    def __init__(self, func, num_vars, description=''):
        super().__init__(num_vars, description=description)
        self._func = func

    def Eval(self, x):
        return np.reshape(
            np.asarray(self._func(np.asarray(x, dtype=float)), dtype=float),
            (1,))


class VisualizationCallback(EvaluatorBase):
    """Callback invoked with the values of its bound variables at each solver
    iteration."""
    def __init__(self, callback, num_vars, description=''):
        if not callable(callback):
            raise TypeError("callback must be callable")
        super().__init__(0, num_vars, description=description)
        self._callback = callback

    def Eval(self, x):
        self._callback(np.asarray(x, dtype=float))
        return np.zeros(0)


class Binding:
    """An evaluator together with the decision variables it acts on."""
    def __init__(self, evaluator, variables):
        """
        Parameters
        ----------
        evaluator : `EvaluatorBase`
            Constraint, cost, or callback.
        variables : array_like of `Variable`
            Decision variables, of size `evaluator.num_vars()`.
        """
        variables = np.ravel(np.asarray(variables, dtype=object))
        if variables.shape[0] != evaluator.num_vars():
            raise ValueError(f"{type(evaluator).__name__} expects "
                             f"{evaluator.num_vars():d} variables, got "
                             f"{variables.shape[0]:d}")
        self._evaluator = evaluator
        self._variables = variables

    def evaluator(self):
        return self._evaluator

    def variables(self):
        return self._variables

    def __str__(self):
        return self._evaluator.to_string(self._variables)

    def __repr__(self):
        return f"<Binding[{type(self._evaluator).__name__}] " \
               f"{_names(self._variables)}>"


def _as_vector(value, n, argname):
    value = np.reshape(np.asarray(value, dtype=float), -1)
    if value.shape[0] == 1 and n != 1:
        value = np.full(n, value[0])
    if value.shape[0] != n:
        raise ValueError(f"{argname} must have size {n:d}")
    return value


def _fmt(value):
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return str(value)


def _names(variables):
    return ', '.join(str(v) for v in np.ravel(variables))


def _linear_form(A, variables, b=0.):
    """Symbolic expressions `A @ variables + b`, skipping zero coefficients."""
    x = np.ravel(np.asarray(variables, dtype=object))
    rows = []
    for a in np.atleast_2d(A):
        e = symbolic.Expression(b)
        for ai, xi in zip(a, x):
            if ai != 0.:
                e = e + float(ai) * xi
        rows.append(e)
    return rows
