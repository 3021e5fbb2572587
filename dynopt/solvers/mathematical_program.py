import enum
import warnings

import numpy as np

from dynopt import symbolic
from dynopt.utilities import check_int_input
from .evaluators import (Binding, BoundingBoxConstraint, Constraint,
                         LinearConstraint, LinearEqualityConstraint,
                         ExpressionConstraint, FunctionConstraint, Cost,
                         LinearCost, QuadraticCost, ExpressionCost,
                         FunctionCost, VisualizationCallback)


class ProgramType(enum.Enum):
    """Classification of a `MathematicalProgram` used to choose a solver."""
    kLP = 'linear program'
    kQP = 'convex quadratic program'
    kNLP = 'nonlinear program'


class MathematicalProgram:
    """
    An optimization problem

        min_x   sum of costs f_i(x)
        s.t.    lb_j <= g_j(x) <= ub_j

    over continuous decision variables `x`. Variables are created with
    `NewContinuousVariables` and must be created before they are used in any
    constraint or cost. Constraints and costs can be added incrementally; they
    are conjoined and summed, respectively.
    """
    def __init__(self):
        self._decision_variables = []
        # Map from Variable.get_id() to position in self._decision_variables
        self._variable_index = dict()
        self._initial_guess = np.zeros(0)

        self._bounding_box_constraints = []
        self._linear_equality_constraints = []
        self._linear_constraints = []
        self._generic_constraints = []

        self._linear_costs = []
        self._quadratic_costs = []
        self._generic_costs = []

        self._visualization_callbacks = []

    # Decision variables -----------------------------------------------------

    def NewContinuousVariables(self, rows, cols=None, name='x'):
        """
        Add new continuous decision variables to the program.

        Parameters
        ----------
        rows : int
            Number of rows of variables.
        cols : int or str, optional
            Number of columns. If omitted (or a str, which is then used as
            `name`), a vector of variables is created.
        name : str, default='x'
            Base name. Vector entries are named `name(i)` and matrix entries
            `name(i,j)`.

        Returns
        -------
        x : (rows,) or (rows, cols) object array of `Variable`
            The new variables, appended to the decision variables in creation
            (row-major) order.
        """
        if isinstance(cols, str):
            name, cols = cols, None

        rows = check_int_input(rows, 'rows', low=0)
        if cols is None:
            new_vars = symbolic.MakeVectorVariable(rows, name)
        else:
            cols = check_int_input(cols, 'cols', low=0)
            new_vars = symbolic.MakeMatrixVariable(rows, cols, name)

        for var in new_vars.flat:
            self._variable_index[var.get_id()] = len(self._decision_variables)
            self._decision_variables.append(var)

        self._initial_guess = np.concatenate(
            (self._initial_guess, np.full(new_vars.size, np.nan)))

        return new_vars

    def num_vars(self):
        return len(self._decision_variables)

    def decision_variables(self):
        return np.array(self._decision_variables, dtype=object)

    def decision_variable(self, i):
        return self._decision_variables[i]

    def FindDecisionVariableIndex(self, var):
        """
        Position of `var` in the vector of decision variables.

        Raises
        ------
        ValueError
            If `var` is not a decision variable of this program.
        """
        if not isinstance(var, symbolic.Variable):
            raise TypeError(f"Expected a Variable, got {type(var).__name__}")
        try:
            return self._variable_index[var.get_id()]
        except KeyError:
            raise ValueError(f"{var} is not a decision variable of this "
                             "program")

    def FindDecisionVariableIndices(self, variables):
        return [self.FindDecisionVariableIndex(v) for v in np.ravel(
            np.asarray(variables, dtype=object))]

    def _sorted_variables(self, variables):
        """Check that variables belong to the program and sort them by their
        position in the decision variables."""
        idx = sorted(set(self.FindDecisionVariableIndices(variables)))
        return np.array([self._decision_variables[i] for i in idx],
                        dtype=object)

    # Initial guess ----------------------------------------------------------

    def SetInitialGuess(self, variables, values):
        """
        Set the initial guess of some decision variables. Variables without an
        initial guess start at zero.
        """
        idx = self.FindDecisionVariableIndices(variables)
        values = np.broadcast_to(np.reshape(np.asarray(values, dtype=float),
                                            -1), (len(idx),))
        self._initial_guess[idx] = values

    def SetInitialGuessForAllVariables(self, values):
        values = np.reshape(np.asarray(values, dtype=float), -1)
        if values.shape[0] != self.num_vars():
            raise ValueError(f"Initial guess must have size {self.num_vars()}")
        self._initial_guess = np.copy(values)

    def GetInitialGuess(self, variables=None):
        """
        Get the initial guess. Unset entries are `np.nan`.

        Returns
        -------
        x0 : float or array
        """
        if variables is None:
            return np.copy(self._initial_guess)
        if isinstance(variables, symbolic.Variable):
            return float(
                self._initial_guess[self.FindDecisionVariableIndex(variables)])
        variables = np.asarray(variables, dtype=object)
        idx = self.FindDecisionVariableIndices(variables)
        return np.reshape(self._initial_guess[idx], variables.shape)

    # Constraints ------------------------------------------------------------

    def AddConstraint(self, constraint, lb=None, ub=None, vars=None,
                      description=''):
        """
        Add a constraint to the program.

        Can be called as

            * `AddConstraint(formula)` for a `Formula` such as `x[0] <= x[1]`,
            * `AddConstraint(formulas)` for an array of `Formula`s,
            * `AddConstraint(func, lb, ub, vars)` for a Python callable
                `func(x)` returning an array with the size of `lb` and `ub`,
            * `AddConstraint(evaluator, vars=vars)` for a `Constraint`
                instance.

        Symbolic formulas are parsed into the most specific constraint type:
        bounds on single variables become `BoundingBoxConstraint`s, linear
        equalities become `LinearEqualityConstraint`s, other linear formulas
        become `LinearConstraint`s, and everything else an
        `ExpressionConstraint`.

        Returns
        -------
        binding : `Binding` or None
            The added constraint bound to its variables. Returns `None` if the
            formula is trivially true (and nothing is added).

        Raises
        ------
        ValueError
            If the constraint uses variables which are not decision variables
            of this program, or if the formula is trivially false.
        """
        if isinstance(constraint, Constraint):
            if vars is None:
                raise ValueError("vars must be specified for a Constraint")
            return self._add_constraint_binding(Binding(constraint, vars))

        if callable(constraint) and not isinstance(
                constraint, (symbolic.Formula, np.ndarray)):
            if lb is None or ub is None or vars is None:
                raise ValueError("lb, ub, and vars must be specified for a "
                                 "callable constraint")
            vars = np.ravel(np.asarray(vars, dtype=object))
            self.FindDecisionVariableIndices(vars)
            evaluator = FunctionConstraint(constraint, lb, ub, vars.shape[0],
                                           description=description)
            return self._add_constraint_binding(Binding(evaluator, vars))

        binding = self._parse_formulas(constraint)
        if binding is None:
            return None
        binding.evaluator().set_description(description)
        return self._add_constraint_binding(binding)

    def _parse_formulas(self, formulas):
        if isinstance(formulas, symbolic.Formula):
            formulas = [formulas]
        else:
            formulas = list(np.ravel(np.asarray(formulas, dtype=object)))
            for f in formulas:
                if not isinstance(f, symbolic.Formula):
                    raise TypeError(f"Cannot add a constraint from "
                                    f"{type(f).__name__}")

        rows = []
        for formula in formulas:
            e, lb, ub = formula.to_bounds()
            if e.is_constant():
                value = e.Evaluate()
                if not symbolic.Formula(value, formula.relation, 0.).Evaluate():
                    raise ValueError(f"Formula {formula} is always false")
                warnings.warn(f"Formula {formula} is always true and is "
                              "ignored", RuntimeWarning)
                continue
            rows.append((e, lb, ub))

        if not rows:
            return None

        variables = self._sorted_variables(
            [v for e, _, _ in rows for v in e.GetVariables()])

        degrees = [e.degree() for e, _, _ in rows]
        if any(d is None or d > 1 for d in degrees):
            return Binding(ExpressionConstraint(
                [e for e, _, _ in rows], [lb for _, lb, _ in rows],
                [ub for _, _, ub in rows], variables), variables)

        A = np.zeros((len(rows), variables.shape[0]))
        lb = np.empty(len(rows))
        ub = np.empty(len(rows))
        for i, (e, e_lb, e_ub) in enumerate(rows):
            A[i], c = _linear_coefficients(e, variables)
            lb[i], ub[i] = e_lb - c, e_ub - c

        # Bounds on single variables
        nonzero = A != 0.
        if (nonzero.sum(axis=1) == 1).all() and (
                nonzero.sum(axis=0) <= 1).all() and nonzero.any(axis=0).all():
            a = A.sum(axis=1)
            lb, ub = lb / a, ub / a
            flip = a < 0.
            lb[flip], ub[flip] = ub[flip], lb[flip]
            var_idx = np.argmax(nonzero, axis=1)
            return Binding(BoundingBoxConstraint(lb, ub), variables[var_idx])

        if np.all(lb == ub):
            return Binding(LinearEqualityConstraint(A, ub), variables)

        return Binding(LinearConstraint(A, lb, ub), variables)

    def _add_constraint_binding(self, binding):
        self.FindDecisionVariableIndices(binding.variables())

        evaluator = binding.evaluator()
        if isinstance(evaluator, BoundingBoxConstraint):
            self._bounding_box_constraints.append(binding)
        elif isinstance(evaluator, LinearEqualityConstraint):
            self._linear_equality_constraints.append(binding)
        elif isinstance(evaluator, LinearConstraint):
            self._linear_constraints.append(binding)
        else:
            self._generic_constraints.append(binding)

        return binding

    def AddLinearConstraint(self, A, lb=None, ub=None, vars=None):
        """
        Add a linear constraint, either `lb <= A @ vars <= ub` or from a linear
        `Formula` (or array of formulas) passed as `A`.

        Raises
        ------
        ValueError
            If a formula passed is not linear.
        """
        if _contains_formulas(A):
            binding = self._parse_formulas(A)
            if binding is None:
                return None
            if not isinstance(binding.evaluator(), LinearConstraint):
                raise ValueError("AddLinearConstraint called with a nonlinear "
                                 "formula")
            return self._add_constraint_binding(binding)

        return self._add_constraint_binding(
            Binding(LinearConstraint(A, lb, ub), vars))

    def AddLinearEqualityConstraint(self, Aeq, beq=None, vars=None):
        """Add the constraint `Aeq @ vars == beq`, or from a linear equality
        `Formula` passed as `Aeq`."""
        if isinstance(Aeq, symbolic.Formula):
            if Aeq.relation != '==':
                raise ValueError("Expected an equality formula")
            return self.AddLinearConstraint(Aeq)

        return self._add_constraint_binding(
            Binding(LinearEqualityConstraint(Aeq, beq), vars))

    def AddBoundingBoxConstraint(self, lb, ub, vars):
        """Add the bounds `lb <= vars <= ub`. Scalar bounds are broadcast."""
        vars = np.ravel(np.asarray(vars, dtype=object))
        lb = np.broadcast_to(np.reshape(np.asarray(lb, dtype=float), -1),
                             vars.shape)
        ub = np.broadcast_to(np.reshape(np.asarray(ub, dtype=float), -1),
                             vars.shape)
        return self._add_constraint_binding(
            Binding(BoundingBoxConstraint(lb, ub), vars))

    # Costs ------------------------------------------------------------------

    def AddCost(self, cost, vars=None, description=''):
        """
        Add a cost to the program. Costs are summed.

        Can be called as

            * `AddCost(expression)` for a symbolic `Expression`,
            * `AddCost(func, vars)` for a Python callable `func(x) -> float`,
            * `AddCost(evaluator, vars)` for a `Cost` instance.

        Symbolic costs are parsed into `LinearCost`, `QuadraticCost`, or
        `ExpressionCost`.

        Returns
        -------
        binding : `Binding`
        """
        if isinstance(cost, Cost):
            if vars is None:
                raise ValueError("vars must be specified for a Cost")
            binding = Binding(cost, vars)
        elif callable(cost) and not isinstance(cost, symbolic.Expression):
            if vars is None:
                raise ValueError("vars must be specified for a callable cost")
            vars = np.ravel(np.asarray(vars, dtype=object))
            binding = Binding(FunctionCost(cost, vars.shape[0]), vars)
        else:
            binding = self._parse_cost(cost)

        binding.evaluator().set_description(description)
        return self._add_cost_binding(binding)

    def _parse_cost(self, e):
        if not isinstance(e, symbolic.Expression):
            e = symbolic.Expression(e)

        variables = self._sorted_variables(e.GetVariables())
        degree = e.degree()

        if degree is not None and degree <= 1:
            a, c = _linear_coefficients(e, variables)
            return Binding(LinearCost(a, c), variables)

        if degree == 2:
            env = {v: 0. for v in variables}
            grad = e.Jacobian(variables)
            Q = symbolic.Evaluate(symbolic.Jacobian(grad, variables))
            b = symbolic.Evaluate(grad, env)
            c = e.Evaluate(env)
            return Binding(QuadraticCost(Q, b, c), variables)

        return Binding(ExpressionCost(e, variables), variables)

    def _add_cost_binding(self, binding):
        self.FindDecisionVariableIndices(binding.variables())

        evaluator = binding.evaluator()
        if isinstance(evaluator, LinearCost):
            self._linear_costs.append(binding)
        elif isinstance(evaluator, QuadraticCost):
            self._quadratic_costs.append(binding)
        else:
            self._generic_costs.append(binding)

        return binding

    def AddLinearCost(self, a, b=0., vars=None):
        """Add the cost `a @ vars + b`, or a linear `Expression` passed as
        `a`."""
        if isinstance(a, symbolic.Expression):
            binding = self._parse_cost(a)
            if not isinstance(binding.evaluator(), LinearCost):
                raise ValueError("AddLinearCost called with a nonlinear "
                                 "expression")
            return self._add_cost_binding(binding)
        return self._add_cost_binding(Binding(LinearCost(a, b), vars))

    def AddQuadraticCost(self, Q, b=None, c=0., vars=None):
        """Add the cost `0.5 * vars @ Q @ vars + b @ vars + c`, or a quadratic
        `Expression` passed as `Q`."""
        if isinstance(Q, symbolic.Expression):
            binding = self._parse_cost(Q)
            if isinstance(binding.evaluator(), ExpressionCost):
                raise ValueError("AddQuadraticCost called with a non-quadratic "
                                 "expression")
            return self._add_cost_binding(binding)
        if b is None:
            b = np.zeros(np.shape(Q)[0])
        return self._add_cost_binding(Binding(QuadraticCost(Q, b, c), vars))

    # Callbacks --------------------------------------------------------------

    def AddVisualizationCallback(self, callback, vars):
        """
        Add a function called as `callback(x)` with the current values `x` of
        `vars` at each iteration of solvers which support callbacks.

        Returns
        -------
        binding : `Binding`
        """
        vars = np.ravel(np.asarray(vars, dtype=object))
        self.FindDecisionVariableIndices(vars)
        binding = Binding(VisualizationCallback(callback, vars.shape[0]), vars)
        self._visualization_callbacks.append(binding)
        return binding

    # Accessors --------------------------------------------------------------

    def bounding_box_constraints(self):
        return list(self._bounding_box_constraints)

    def linear_equality_constraints(self):
        return list(self._linear_equality_constraints)

    def linear_constraints(self):
        return list(self._linear_constraints)

    def generic_constraints(self):
        return list(self._generic_constraints)

    def linear_costs(self):
        return list(self._linear_costs)

    def quadratic_costs(self):
        return list(self._quadratic_costs)

    def generic_costs(self):
        return list(self._generic_costs)

    def visualization_callbacks(self):
        return list(self._visualization_callbacks)

    def GetAllConstraints(self):
        return (self._bounding_box_constraints
                + self._linear_equality_constraints
                + self._linear_constraints + self._generic_constraints)

    def GetAllCosts(self):
        return self._linear_costs + self._quadratic_costs + self._generic_costs

    def GetProgramType(self):
        """
        Classify the program.

        Returns
        -------
        program_type : `ProgramType`
            `kLP` if all costs and constraints are linear, `kQP` if all
            constraints are linear and all costs are linear or convex
            quadratic, and `kNLP` otherwise.
        """
        if self._generic_constraints or self._generic_costs:
            return ProgramType.kNLP
        if not self._quadratic_costs:
            return ProgramType.kLP
        if all(b.evaluator().is_convex() for b in self._quadratic_costs):
            return ProgramType.kQP
        return ProgramType.kNLP

    # Evaluation -------------------------------------------------------------

    def _binding_values(self, binding, x):
        idx = self.FindDecisionVariableIndices(binding.variables())
        return np.asarray(x, dtype=float)[idx]

    def EvalBinding(self, binding, x):
        """
        Evaluate a `Binding` at a full vector of decision variable values.

        Parameters
        ----------
        binding : `Binding`
        x : (num_vars,) array
            Values of all decision variables.
        """
        x = np.reshape(np.asarray(x, dtype=float), -1)
        if x.shape[0] != self.num_vars():
            raise ValueError(f"x must have size {self.num_vars()}")
        return binding.evaluator().Eval(self._binding_values(binding, x))

    def EvalCost(self, x):
        """Sum of all costs at the decision variable values `x`."""
        return float(sum(self.EvalBinding(b, x)[0] for b in self.GetAllCosts()))

    def CheckSatisfied(self, x, tol=1e-06):
        """Returns `True` if all constraints are satisfied at `x` to within
        `tol`."""
        return all(b.evaluator().CheckSatisfied(self._binding_values(b, x),
                                                tol=tol)
                   for b in self.GetAllConstraints())

    def max_constraint_violation(self, x):
        """Largest violation of any constraint at `x` (zero if feasible)."""
        violations = [np.max(b.evaluator().violation(
            self._binding_values(b, x)), initial=0.)
                      for b in self.GetAllConstraints()]
        return float(max(violations, default=0.))

    def __str__(self):
        lines = ["Decision variables: "
                 + ' '.join(str(v) for v in self._decision_variables), '']
        for binding in self.GetAllCosts() + self.GetAllConstraints():
            lines.append(str(binding))
        return '\n'.join(lines)


def _linear_coefficients(e, variables):
    """
    Write a linear expression as `a @ variables + c`.

    Returns
    -------
    a : (n_variables,) array
    c : float
    """
    env = {v: 0. for v in variables}
    c = e.Evaluate(env)
    a = symbolic.Evaluate(e.Jacobian(variables), env)
    return a, c


def _contains_formulas(A):
    """`True` if `A` is a `Formula` or an array_like holding any `Formula`s,
    as opposed to a numeric coefficient matrix."""
    if isinstance(A, symbolic.Formula):
        return True
    if not isinstance(A, (list, tuple, np.ndarray)):
        return False
    if isinstance(A, np.ndarray) and A.dtype != object:
        return False
    elements = np.ravel(np.asarray(A, dtype=object))
    return any(isinstance(a, symbolic.Formula) for a in elements)
