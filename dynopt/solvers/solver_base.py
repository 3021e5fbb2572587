import numpy as np

from .evaluators import LinearCost, QuadraticCost
from .result import (MathematicalProgramResult, SolutionResult, SolverDetails,
                     SolverId, SolverOptions)


class SolverInterface:
    """
    Template superclass for solvers of `MathematicalProgram`s. Subclasses
    implement `_solve`, which runs the numerical routine, and
    `AreProgramAttributesSatisfied`. The superclass handles options, the
    initial guess, and verification of the returned point.
    """
    # Name of the solver, to be overwritten by subclass implementations
    _solver_name = None
    # Defaults for common options
    _default_options = {'verbose': 0, 'max_iter': 1000, 'tol': 1e-08,
                        'constraint_tol': 1e-06}

    @classmethod
    def id(cls):
        return SolverId(cls._solver_name)

    def solver_id(self):
        return self.id()

    def available(self):
        return True

    def enabled(self):
        return True

    def AreProgramAttributesSatisfied(self, prog):
        """Returns `True` if the solver can handle all costs and constraints
        in `prog`."""
        raise NotImplementedError

    def Solve(self, prog, initial_guess=None, solver_options=None):
        """
        Solve a `MathematicalProgram`.

        Parameters
        ----------
        prog : `MathematicalProgram`
            Program to solve.
        initial_guess : (prog.num_vars(),) array, optional
            Initial guess for all decision variables. If not provided, uses
            `prog.GetInitialGuess()`. NaN entries are replaced by zero.
        solver_options : `SolverOptions`, optional
            Options for this solver. See `SolverOptions` for common options.

        Returns
        -------
        result : `MathematicalProgramResult`
            The result of the solve. Decision variable values should only be
            trusted if `result.is_success()`.

        Raises
        ------
        ValueError
            If the solver does not support the program, or if `initial_guess`
            has the wrong size.
        """
        if not self.AreProgramAttributesSatisfied(prog):
            raise ValueError(f"{self.solver_id()} is unable to solve a "
                             f"program of type {prog.GetProgramType().name}")

        if solver_options is None:
            solver_options = SolverOptions()
        elif not isinstance(solver_options, SolverOptions):
            raise TypeError("solver_options must be a SolverOptions instance")
        options = {**self._default_options,
                   **solver_options.GetOptions(self.solver_id())}

        if initial_guess is None:
            x0 = prog.GetInitialGuess()
        else:
            x0 = np.reshape(np.asarray(initial_guess, dtype=float), -1)
            if x0.shape[0] != prog.num_vars():
                raise ValueError(f"initial_guess must have size "
                                 f"{prog.num_vars():d}, got {x0.shape[0]:d}")
        x0 = np.where(np.isnan(x0), 0., x0)

        funs = ProgramFunctions(prog)
        if prog.num_vars() == 0:
            x, success, details, hint = x0, True, SolverDetails(0, ''), None
        elif np.any(funs.lb > funs.ub):
            x, success, hint = x0, False, SolutionResult.kInfeasibleConstraints
            details = SolverDetails(None, "Inconsistent variable bounds")
        else:
            x, success, details, hint = self._solve(funs, x0, options)

        result = self._make_result(prog, x, success, details, hint,
                                   options['constraint_tol'])

        if options['verbose']:
            print(f"{self.solver_id()}: {result.get_solution_result()} "
                  f"({details}), cost = {result.get_optimal_cost():1.4e}")

        return result

    def _solve(self, funs, x0, options):
        """
        Run the numerical routine.

        Parameters
        ----------
        funs : `ProgramFunctions`
            Costs and constraints of the program to solve.
        x0 : (prog.num_vars(),) array
            Initial guess.
        options : dict
            Merged default, common, and solver specific options.

        Returns
        -------
        x : (prog.num_vars(),) array
            Final iterate.
        success : bool
            If the routine reports convergence.
        details : `SolverDetails`
            Solver specific status information.
        hint : `SolutionResult` or None
            Reason for failure if the routine can tell, e.g.
            `kIterationLimit` or `kUnbounded`.
        """
        raise NotImplementedError

    def _make_result(self, prog, x, success, details, hint, constraint_tol):
        x = np.reshape(np.asarray(x, dtype=float), -1)
        finite = np.all(np.isfinite(x))

        if finite:
            violation = prog.max_constraint_violation(x)
        else:
            violation = np.inf

        if success and finite and violation <= constraint_tol:
            solution_result = SolutionResult.kSolutionFound
        elif hint is not None:
            solution_result = hint
        elif violation > constraint_tol:
            solution_result = SolutionResult.kInfeasibleConstraints
        else:
            solution_result = SolutionResult.kSolverSpecificError

        if solution_result in (SolutionResult.kInfeasibleConstraints,
                               SolutionResult.kInfeasibleOrUnbounded):
            cost = np.inf
        elif solution_result in (SolutionResult.kUnbounded,
                                 SolutionResult.kDualInfeasible):
            cost = -np.inf
        elif finite:
            cost = prog.EvalCost(x)
        else:
            cost = np.nan

        return MathematicalProgramResult(
            self.solver_id(), solution_result, x, cost,
            dict(prog._variable_index), solver_details=details)


class ProgramFunctions:
    """
    Collects the costs and constraints of a `MathematicalProgram` into
    functions of the full decision variable vector, in the form expected by
    `scipy.optimize`.
    """
    def __init__(self, prog):
        self.n_vars = prog.num_vars()

        self._costs = [(b.evaluator(), prog.FindDecisionVariableIndices(
            b.variables())) for b in prog.GetAllCosts()]
        self._callbacks = [(b.evaluator(), prog.FindDecisionVariableIndices(
            b.variables())) for b in prog.visualization_callbacks()]

        # Intersection of all bounding boxes
        self.lb = np.full(self.n_vars, -np.inf)
        self.ub = np.full(self.n_vars, np.inf)
        for b in prog.bounding_box_constraints():
            idx = prog.FindDecisionVariableIndices(b.variables())
            for i, lb, ub in zip(idx, b.evaluator().lower_bound(),
                                 b.evaluator().upper_bound()):
                self.lb[i] = max(self.lb[i], lb)
                self.ub[i] = min(self.ub[i], ub)

        # Stack linear constraints into one matrix over all variables
        A, lb, ub = [], [], []
        for b in (prog.linear_equality_constraints()
                  + prog.linear_constraints()):
            evaluator = b.evaluator()
            A_full = np.zeros((evaluator.num_constraints(), self.n_vars))
            idx = prog.FindDecisionVariableIndices(b.variables())
            np.add.at(A_full.T, idx, evaluator.GetDenseA().T)
            A.append(A_full)
            lb.append(evaluator.lower_bound())
            ub.append(evaluator.upper_bound())
        if A:
            self.A = np.vstack(A)
            self.A_lb = np.concatenate(lb)
            self.A_ub = np.concatenate(ub)
        else:
            self.A = np.zeros((0, self.n_vars))
            self.A_lb = np.zeros(0)
            self.A_ub = np.zeros(0)

        self._nonlinear = [
            (b.evaluator(), prog.FindDecisionVariableIndices(b.variables()))
            for b in prog.generic_constraints()]
        if self._nonlinear:
            self.nonlinear_lb = np.concatenate(
                [c.lower_bound() for c, _ in self._nonlinear])
            self.nonlinear_ub = np.concatenate(
                [c.upper_bound() for c, _ in self._nonlinear])
        else:
            self.nonlinear_lb = np.zeros(0)
            self.nonlinear_ub = np.zeros(0)

    @property
    def has_bounds(self):
        return bool(np.any(np.isfinite(self.lb)) or np.any(np.isfinite(self.ub)))

    @property
    def n_linear(self):
        return self.A.shape[0]

    @property
    def n_nonlinear(self):
        return self.nonlinear_lb.shape[0]

    @property
    def is_quadratic(self):
        """`True` if all costs are linear or quadratic."""
        return all(isinstance(c, (LinearCost, QuadraticCost))
                   for c, _ in self._costs)

    def cost(self, x):
        return float(sum(c.Eval(x[idx])[0] for c, idx in self._costs))

    def cost_grad(self, x):
        grad = np.zeros(self.n_vars)
        for c, idx in self._costs:
            np.add.at(grad, idx, c.Gradient(x[idx]))
        return grad

    def cost_hess(self, x):
        """Hessian of the cost. Only available if `is_quadratic`."""
        hess = np.zeros((self.n_vars, self.n_vars))
        for c, idx in self._costs:
            if isinstance(c, QuadraticCost):
                hess[np.ix_(idx, idx)] += c.Hessian()
        return hess

    def linear_cost_vector(self):
        """
        Coefficients `c` and offset `d` of a linear total cost `c @ x + d`.
        Only valid if all costs are `LinearCost`s.
        """
        c = np.zeros(self.n_vars)
        d = 0.
        for cost, idx in self._costs:
            np.add.at(c, idx, cost.a())
            d += cost.b()
        return c, d

    def nonlinear_fun(self, x):
        if not self._nonlinear:
            return np.zeros(0)
        return np.concatenate([c.Eval(x[idx]) for c, idx in self._nonlinear])

    def nonlinear_jac(self, x):
        jac = []
        for c, idx in self._nonlinear:
            jac_full = np.zeros((c.num_constraints(), self.n_vars))
            np.add.at(jac_full.T, idx, c.Jacobian(x[idx]).T)
            jac.append(jac_full)
        if not jac:
            return np.zeros((0, self.n_vars))
        return np.vstack(jac)

    def callback(self, x):
        for c, idx in self._callbacks:
            c.Eval(x[idx])

    @property
    def has_callbacks(self):
        return len(self._callbacks) > 0


def is_linear_program(prog):
    """`True` if all costs and constraints of `prog` are linear."""
    return (not prog.generic_constraints() and not prog.generic_costs()
            and not prog.quadratic_costs())