"""
The `symbolic` module implements the symbolic variables, expressions, and
formulas used to state optimization problems and system dynamics. Internally,
all algebra is delegated to `sympy`; the classes here add the behavior needed
to write problems naturally:

* comparison operators (`==`, `<=`, `>=`, `<`, `>`) build a `Formula` instead
  of returning a `bool`, so `prog.AddConstraint(x[0] + x[1] == 1)` works;
* every `Variable` is unique, even if two variables share the same name;
* expressions can live inside `numpy` object arrays, so that vector algebra
  such as `x.dot(x)` or `A @ x` produces arrays of expressions.

---

* [`Variable`](symbolic#Variable): A single symbolic unknown.

* [`Expression`](symbolic#Expression): Arithmetic over variables and
    constants.

* [`Formula`](symbolic#Formula): A (non-)equality relation between two
    expressions.

* [`lambdify`](symbolic#lambdify): Compile expressions into fast `numpy`
    callables.
"""

import numbers

import numpy as np
import sympy
from sympy.printing.str import StrPrinter


__all__ = ['Variable', 'Expression', 'Formula', 'MakeVectorVariable',
           'MakeMatrixVariable', 'Evaluate', 'Jacobian', 'lambdify', 'sin',
           'cos', 'tan', 'exp', 'log', 'sqrt', 'tanh', 'atan2', 'eq', 'le',
           'ge']


class _Printer(StrPrinter):
    """Prints `sympy.Dummy` symbols without the leading underscore."""
    def _print_Dummy(self, expr):
        return expr.name


_printer = _Printer()

_relations = ('==', '<=', '>=', '<', '>')


def _to_sympy(value):
    """Convert an `Expression`, `Variable`, or number to a `sympy` object.
    Returns `None` for unsupported types."""
    if isinstance(value, Expression):
        return value._expr
    if isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, numbers.Integral):
        return sympy.Integer(int(value))
    if isinstance(value, numbers.Real):
        value = float(value)
        if value.is_integer():
            return sympy.Integer(int(value))
        return sympy.Float(value)
    if isinstance(value, sympy.Basic):
        return value
    return None


def _from_sympy(expr):
    """Wrap a `sympy` expression, returning a `Variable` for bare symbols."""
    if isinstance(expr, sympy.Dummy):
        return Variable._from_symbol(expr)
    return Expression(expr)


class Expression:
    """Symbolic expression over `Variable`s and constants."""
    def __init__(self, value=0.):
        """
        Parameters
        ----------
        value : {`Expression`, float, `sympy.Expr`}, default=0.
            Initial value of the expression.
        """
        expr = _to_sympy(value)
        if expr is None:
            raise TypeError(f"Cannot make an Expression from "
                            f"{type(value).__name__}")
        self._expr = expr

    def to_sympy(self):
        """The underlying `sympy` expression."""
        return self._expr

    def __str__(self):
        return _printer.doprint(self._expr)

    def __repr__(self):
        return f"<{type(self).__name__} '{self}'>"

    def __hash__(self):
        return hash(self._expr)

    def EqualTo(self, other):
        """Structural equality test, returning a `bool` (unlike `==`)."""
        other = _to_sympy(other)
        return other is not None and self._expr == other

    # Arithmetic -------------------------------------------------------------

    def _binary(self, other, op, reflected=False):
        other = _to_sympy(other)
        if other is None:
            return NotImplemented
        if reflected:
            return _from_sympy(op(other, self._expr))
        return _from_sympy(op(self._expr, other))

    def __add__(self, other):
        return self._binary(other, lambda a, b: a + b)

    def __radd__(self, other):
        return self._binary(other, lambda a, b: a + b, reflected=True)

    def __sub__(self, other):
        return self._binary(other, lambda a, b: a - b)

    def __rsub__(self, other):
        return self._binary(other, lambda a, b: a - b, reflected=True)

    def __mul__(self, other):
        return self._binary(other, lambda a, b: a * b)

    def __rmul__(self, other):
        return self._binary(other, lambda a, b: a * b, reflected=True)

    def __truediv__(self, other):
        return self._binary(other, lambda a, b: a / b)

    def __rtruediv__(self, other):
        return self._binary(other, lambda a, b: a / b, reflected=True)

    def __pow__(self, other):
        return self._binary(other, lambda a, b: a ** b)

    def __rpow__(self, other):
        return self._binary(other, lambda a, b: a ** b, reflected=True)

    def __neg__(self):
        return _from_sympy(-self._expr)

    def __pos__(self):
        return self

    def __abs__(self):
        return _from_sympy(sympy.Abs(self._expr))

    # Relations --------------------------------------------------------------

    def _relation(self, other, relation):
        if _to_sympy(other) is None:
            return NotImplemented
        return Formula(self, relation, other)

    def __eq__(self, other):
        return self._relation(other, '==')

    def __le__(self, other):
        return self._relation(other, '<=')

    def __ge__(self, other):
        return self._relation(other, '>=')

    def __lt__(self, other):
        return self._relation(other, '<')

    def __gt__(self, other):
        return self._relation(other, '>')

    # Analysis ---------------------------------------------------------------

    def GetVariables(self):
        """
        Get the variables appearing in the expression.

        Returns
        -------
        variables : tuple of `Variable`
            Free variables, sorted by creation order.
        """
        symbols = [s for s in self._expr.free_symbols
                   if isinstance(s, sympy.Dummy)]
        return tuple(Variable._from_symbol(s)
                     for s in sorted(symbols, key=lambda s: s.dummy_index))

    def is_constant(self):
        return not self._expr.free_symbols

    def is_polynomial(self):
        return self._expr.is_polynomial(*self._expr.free_symbols)

    def degree(self):
        """
        Total polynomial degree of the expression in its variables.

        Returns
        -------
        degree : int or None
            The total degree, or `None` if the expression is not a polynomial.
        """
        symbols = self._expr.free_symbols
        if not symbols:
            return 0
        try:
            return sympy.Poly(self._expr, *symbols).total_degree()
        except sympy.PolynomialError:
            return None

    def Differentiate(self, variable):
        """Partial derivative with respect to `variable`."""
        return _from_sympy(sympy.diff(self._expr, _symbol(variable)))

    def Jacobian(self, variables):
        """
        Gradient of the expression with respect to `variables`.

        Returns
        -------
        jac : (n_variables,) object array of `Expression`
        """
        return np.array([self.Differentiate(v) for v in np.ravel(variables)],
                        dtype=object)

    def Substitute(self, env):
        """
        Replace variables with numbers or other expressions.

        Parameters
        ----------
        env : dict
            Maps `Variable`s to floats or `Expression`s.

        Returns
        -------
        expr : `Expression`
        """
        subs = {_symbol(var): _to_sympy(val) for var, val in _items(env)}
        return _from_sympy(self._expr.xreplace(subs))

    def Evaluate(self, env=None):
        """
        Evaluate the expression numerically.

        Parameters
        ----------
        env : dict, optional
            Maps each `Variable` in the expression to a float.

        Returns
        -------
        value : float

        Raises
        ------
        RuntimeError
            If some variable in the expression is not assigned a value.
        """
        subs = {}
        if env is not None:
            subs = {_symbol(var): _to_sympy(float(val))
                    for var, val in _items(env)}

        missing = [s for s in self._expr.free_symbols if s not in subs]
        if missing:
            names = ', '.join(sorted(_printer.doprint(s) for s in missing))
            raise RuntimeError(f"The following variable(s) are not assigned a "
                               f"value: {names}")

        return float(self._expr.xreplace(subs))


class Variable(Expression):
    """A single (real, continuous) symbolic unknown. Each `Variable` is
    distinct from every other variable, even if they share the same name."""
    def __init__(self, name):
        """
        Parameters
        ----------
        name : str
            Name used when printing the variable.
        """
        if not isinstance(name, str):
            raise TypeError("name must be a str")
        symbol = sympy.Dummy(name, real=True)
        super().__init__(symbol)

    @classmethod
    def _from_symbol(cls, symbol):
        var = object.__new__(cls)
        var._expr = symbol
        return var

    def get_name(self):
        return self._expr.name

    def get_id(self):
        """Unique integer id, increasing in creation order."""
        return self._expr.dummy_index

    def __repr__(self):
        return f"<Variable '{self.get_name()}'>"


class Formula:
    """Relation `lhs (==, <=, >=, <, >) rhs` between two expressions. Strict
    inequalities are treated as non-strict by numerical solvers."""
    def __init__(self, lhs, relation, rhs):
        """
        Parameters
        ----------
        lhs : `Expression` or float
            Left hand side.
        relation : {'==', '<=', '>=', '<', '>'}
            Relation between `lhs` and `rhs`.
        rhs : `Expression` or float
            Right hand side.
        """
        if relation not in _relations:
            raise ValueError(f"relation must be one of {_relations}")
        self.lhs = lhs if isinstance(lhs, Expression) else Expression(lhs)
        self.rhs = rhs if isinstance(rhs, Expression) else Expression(rhs)
        self.relation = relation

    def __str__(self):
        return f"({self.lhs} {self.relation} {self.rhs})"

    def __repr__(self):
        return f"<Formula '{self}'>"

    def __hash__(self):
        return hash((self.lhs, self.relation, self.rhs))

    def GetFreeVariables(self):
        """Variables appearing on either side, sorted by creation order."""
        return (self.lhs - self.rhs).GetVariables()

    def to_bounds(self):
        """
        Rewrite the formula as `lb <= e <= ub`.

        Returns
        -------
        e : `Expression`
            `lhs - rhs`.
        lb : float
            Lower bound on `e`, can be `-np.inf`.
        ub : float
            Upper bound on `e`, can be `np.inf`.
        """
        e = self.lhs - self.rhs
        if not isinstance(e, Expression):
            e = Expression(e)
        if self.relation == '==':
            return e, 0., 0.
        if self.relation in ('<=', '<'):
            return e, -np.inf, 0.
        return e, 0., np.inf

    def Evaluate(self, env=None):
        """
        Decide the formula numerically.

        Parameters
        ----------
        env : dict, optional
            Maps each `Variable` in the formula to a float.

        Returns
        -------
        truth : bool
        """
        lhs = self.lhs.Evaluate(env)
        rhs = self.rhs.Evaluate(env)
        if self.relation == '==':
            return lhs == rhs
        if self.relation == '<=':
            return lhs <= rhs
        if self.relation == '>=':
            return lhs >= rhs
        if self.relation == '<':
            return lhs < rhs
        return lhs > rhs

    def __bool__(self):
        if self.relation == '==' and self.lhs.EqualTo(self.rhs):
            return True
        if not self.GetFreeVariables():
            return self.Evaluate()
        raise TypeError(f"The truth value of the formula {self} cannot be "
                        "decided without assigning values to its variables")


def _symbol(variable):
    if not isinstance(variable, Variable):
        raise TypeError(f"Expected a Variable, got {type(variable).__name__}")
    return variable._expr


def _items(env):
    """Iterate over (Variable, value) pairs of a dict or pair of arrays."""
    if isinstance(env, dict):
        return env.items()
    variables, values = env
    return zip(np.ravel(variables), np.ravel(values))


def MakeVectorVariable(rows, name):
    """
    Make a vector of variables named `name(0)`, ..., `name(rows-1)`.

    Returns
    -------
    x : (rows,) object array of `Variable`
    """
    return np.array([Variable(f"{name}({i})") for i in range(rows)],
                    dtype=object)


def MakeMatrixVariable(rows, cols, name):
    """
    Make a matrix of variables named `name(i,j)`, created in row-major order.

    Returns
    -------
    X : (rows, cols) object array of `Variable`
    """
    X = np.empty((rows, cols), dtype=object)
    for i in range(rows):
        for j in range(cols):
            X[i, j] = Variable(f"{name}({i},{j})")
    return X


def Evaluate(expressions, env=None):
    """
    Evaluate an array of expressions (or numbers) numerically.

    Parameters
    ----------
    expressions : array_like of `Expression`
    env : dict, optional
        Maps each `Variable` to a float.

    Returns
    -------
    values : float array with the same shape as `expressions`
    """
    expressions = np.asarray(expressions, dtype=object)
    values = np.empty(expressions.shape)
    for idx, e in np.ndenumerate(expressions):
        if isinstance(e, Expression):
            values[idx] = e.Evaluate(env)
        else:
            values[idx] = float(e)
    return values


def Jacobian(f, variables):
    """
    Symbolic Jacobian of a vector of expressions.

    Returns
    -------
    jac : (n_f, n_variables) object array of `Expression`
    """
    f = np.ravel(np.asarray(f, dtype=object))
    return np.vstack([Expression(fi).Jacobian(variables)
                      if not isinstance(fi, Expression)
                      else fi.Jacobian(variables) for fi in f])


def lambdify(expressions, variables):
    """
    Compile expressions into a `numpy` callable of a flat vector of values.

    Parameters
    ----------
    expressions : `Expression`, float, or array_like of these
        Expressions to compile.
    variables : array_like of `Variable`
        Ordered variables; the compiled function takes a vector `x` with
        `x[i]` the value of `variables[i]`.

    Returns
    -------
    fun : callable
        `fun(x)` returns a float array with the shape of `expressions`.

    Raises
    ------
    ValueError
        If the expressions depend on variables not listed in `variables`.
    """
    shape = np.shape(expressions)
    exprs = [_to_sympy(e) for e in np.ravel(np.asarray(expressions,
                                                       dtype=object))]
    symbols = [_symbol(v) for v in np.ravel(variables)]

    known = set(symbols)
    for e in exprs:
        unknown = e.free_symbols - known
        if unknown:
            names = ', '.join(sorted(_printer.doprint(s) for s in unknown))
            raise ValueError(f"Expression depends on unlisted variables: "
                             f"{names}")

    args = [sympy.Symbol(f"_v{i}") for i in range(len(symbols))]
    exprs = [e.xreplace(dict(zip(symbols, args))) for e in exprs]
    compiled = sympy.lambdify(args, exprs, modules='numpy')

    def fun(x):
        values = compiled(*np.reshape(x, -1))
        return np.reshape(np.asarray(values, dtype=float), shape)

    return fun


def _elementwise(sympy_fun):
    def fun(x):
        if isinstance(x, np.ndarray):
            return np.vectorize(fun, otypes=[object])(x)
        expr = _to_sympy(x)
        if expr is None:
            raise TypeError(f"Unsupported argument type {type(x).__name__}")
        result = sympy_fun(expr)
        if result.is_number:
            return float(result)
        return _from_sympy(result)
    fun.__name__ = sympy_fun.__name__
    fun.__doc__ = (f"Element-wise `{sympy_fun.__name__}` of expressions or "
                   "numbers.")
    return fun


sin = _elementwise(sympy.sin)
cos = _elementwise(sympy.cos)
tan = _elementwise(sympy.tan)
exp = _elementwise(sympy.exp)
log = _elementwise(sympy.log)
sqrt = _elementwise(sympy.sqrt)
tanh = _elementwise(sympy.tanh)


def atan2(y, x):
    """Two-argument arctangent of expressions or numbers."""
    result = sympy.atan2(_to_sympy(y), _to_sympy(x))
    if result.is_number:
        return float(result)
    return _from_sympy(result)


def _compare(lhs, rhs, relation):
    lhs, rhs = np.broadcast_arrays(np.asarray(lhs, dtype=object),
                                   np.asarray(rhs, dtype=object))
    formulas = np.empty(lhs.shape, dtype=object)
    for idx in np.ndindex(lhs.shape):
        formulas[idx] = Formula(lhs[idx], relation, rhs[idx])
    return formulas


def eq(lhs, rhs):
    """
    Element-wise `lhs == rhs` for arrays of expressions. `numpy` comparisons
    of object arrays coerce each result to `bool`, so use this (or `le`, `ge`)
    to build arrays of `Formula`s, e.g. `prog.AddConstraint(le(A @ x, b))`.

    Returns
    -------
    formulas : object array of `Formula`
        Array with the broadcast shape of `lhs` and `rhs`.
    """
    return _compare(lhs, rhs, '==')


def le(lhs, rhs):
    """Element-wise `lhs <= rhs`. See `eq`."""
    return _compare(lhs, rhs, '<=')


def ge(lhs, rhs):
    """Element-wise `lhs >= rhs`. See `eq`."""
    return _compare(lhs, rhs, '>=')
