import enum

import numpy as np

from dynopt import symbolic


class SolutionResult(enum.Enum):
    """Outcome of a call to a solver."""
    kSolutionFound = 0
    kInvalidInput = -1
    kInfeasibleConstraints = -2
    kUnbounded = -3
    kSolverSpecificError = -4
    kInfeasibleOrUnbounded = -5
    kIterationLimit = -6
    kDualInfeasible = -7
    kSolutionResultNotSet = -8

    def __str__(self):
        return f"SolutionResult.{self.name}"


class SolverId:
    """Identifies a solver by name."""
    def __init__(self, name):
        self._name = str(name)

    def name(self):
        return self._name

    def __eq__(self, other):
        return isinstance(other, SolverId) and other._name == self._name

    def __hash__(self):
        return hash(self._name)

    def __str__(self):
        return self._name

    def __repr__(self):
        return f"SolverId('{self._name}')"


class SolverOptions:
    """
    Options passed to solvers. Options can be set for a specific solver (by
    `SolverId`) or for all solvers ("common" options). Solver specific options
    take precedence.

    Common options understood by every solver in `dynopt.solvers`:

        * 'verbose' : int, 0 (silent), 1 (report), or 2 (iterations).
        * 'max_iter' : int, maximum number of iterations.
        * 'tol' : float, convergence tolerance.
        * 'constraint_tol' : float, tolerance used to verify feasibility of
            the returned solution.

    Any other key is passed verbatim to the underlying `scipy` routine.
    """
    def __init__(self):
        self._common = dict()
        self._by_solver = dict()

    def SetOption(self, solver_id, key, value):
        self._by_solver.setdefault(solver_id, dict())[key] = value

    def SetCommonOption(self, key, value):
        self._common[key] = value

    def GetOptions(self, solver_id):
        """
        Merge common and solver specific options.

        Returns
        -------
        options : dict
        """
        return {**self._common, **self._by_solver.get(solver_id, dict())}

    def __str__(self):
        return f"SolverOptions(common={self._common}, " \
               f"by_solver={ {str(k): v for k, v in self._by_solver.items()} })"


class SolverDetails:
    """Solver specific information about a solve, as reported by the numerical
    routine."""
    def __init__(self, status=None, message='', n_iterations=0,
                 n_evaluations=0, raw_result=None):
        self.status = status
        """Solver specific status code."""
        self.message = message
        """Solver specific description of `status`."""
        self.n_iterations = n_iterations
        self.n_evaluations = n_evaluations
        self.raw_result = raw_result
        """The unprocessed result object of the underlying routine."""

    def ConvertStatusToString(self):
        return self.message

    def __str__(self):
        return f"status {self.status}: {self.message}"


class MathematicalProgramResult:
    """Result of solving a `MathematicalProgram`. Solution values and costs
    are only meaningful if `is_success()`."""
    def __init__(self, solver_id, solution_result, x_val, optimal_cost,
                 variable_index, solver_details=None):
        """
        Parameters
        ----------
        solver_id : `SolverId`
            Solver which produced the result.
        solution_result : `SolutionResult`
            Outcome of the solve.
        x_val : (n_vars,) array
            Values of all decision variables.
        optimal_cost : float
            Cost at `x_val`, `np.inf` if infeasible, `-np.inf` if unbounded.
        variable_index : dict
            Maps the id of each decision variable to its index in `x_val`.
        solver_details : `SolverDetails`, optional
        """
        self._solver_id = solver_id
        self._solution_result = solution_result
        self._x_val = np.asarray(x_val, dtype=float)
        self._optimal_cost = float(optimal_cost)
        self._variable_index = variable_index
        self._solver_details = solver_details

    def is_success(self):
        return self._solution_result == SolutionResult.kSolutionFound

    def get_solution_result(self):
        return self._solution_result

    def get_solver_id(self):
        return self._solver_id

    def get_solver_details(self):
        return self._solver_details

    def get_optimal_cost(self):
        return self._optimal_cost

    def get_x_val(self):
        return np.copy(self._x_val)

    def GetSolution(self, var=None):
        """
        Get the solution value of decision variables or expressions.

        Parameters
        ----------
        var : {`Variable`, `Expression`, array_like}, optional
            Which variables or expressions to evaluate. If `None`, returns the
            values of all decision variables.

        Returns
        -------
        value : float or array
            A float for a single variable/expression, otherwise an array with
            the same shape as `var`.
        """
        if var is None:
            return self.get_x_val()

        if isinstance(var, np.ndarray) or isinstance(var, (list, tuple)):
            var = np.asarray(var, dtype=object)
            values = np.empty(var.shape)
            for idx, v in np.ndenumerate(var):
                values[idx] = self.GetSolution(v)
            return values

        if isinstance(var, symbolic.Variable):
            return float(self._x_val[self._index(var)])

        if isinstance(var, symbolic.Expression):
            env = {v: self._x_val[self._index(v)] for v in var.GetVariables()}
            return var.Evaluate(env)

        return float(var)

    def EvalBinding(self, binding):
        """Evaluate a `Binding` at the solution."""
        x = [self._x_val[self._index(v)] for v in binding.variables()]
        return binding.evaluator().Eval(np.asarray(x, dtype=float))

    def _index(self, var):
        try:
            return self._variable_index[var.get_id()]
        except KeyError:
            raise ValueError(f"{var} is not a decision variable of the solved "
                             f"program")

    def __str__(self):
        return f"MathematicalProgramResult(solver={self._solver_id}, " \
               f"result={self._solution_result}, cost={self._optimal_cost})"
