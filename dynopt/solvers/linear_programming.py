import warnings

import numpy as np
from scipy.optimize import linprog

from .result import SolutionResult, SolverDetails
from .solver_base import SolverInterface, is_linear_program


class LinearProgrammingSolver(SolverInterface):
    """
    Solves linear programs with the HiGHS dual simplex and interior point
    codes, through `scipy.optimize.linprog(method='highs')`.

    Options besides the common 'verbose' and 'max_iter' are passed to
    `linprog` as `options`, e.g. 'presolve' or 'time_limit'.
    """
    _solver_name = 'HiGHS'

    def AreProgramAttributesSatisfied(self, prog):
        return is_linear_program(prog)

    def _solve(self, funs, x0, options):
        if funs.has_callbacks:
            warnings.warn(f"{self.solver_id()} does not support visualization "
                          "callbacks, which will be ignored", RuntimeWarning)

        c, _ = funs.linear_cost_vector()
        A_ub, b_ub, A_eq, b_eq = _split_linear_constraints(
            funs.A, funs.A_lb, funs.A_ub)
        bounds = [(lb if np.isfinite(lb) else None,
                   ub if np.isfinite(ub) else None)
                  for lb, ub in zip(funs.lb, funs.ub)]

        linprog_opts = {key: val for key, val in options.items()
                        if key not in self._default_options}
        linprog_opts['maxiter'] = options['max_iter']
        linprog_opts['disp'] = options['verbose'] >= 2

        res = linprog(c, A_ub=A_ub, b_ub=b_ub, A_eq=A_eq, b_eq=b_eq,
                      bounds=bounds, method='highs', options=linprog_opts)

        if res.x is None:
            x = np.full(funs.n_vars, np.nan)
        else:
            x = res.x

        if res.status == 1:
            hint = SolutionResult.kIterationLimit
        elif res.status == 2:
            if 'unbounded' in res.message.lower():
                hint = SolutionResult.kInfeasibleOrUnbounded
            else:
                hint = SolutionResult.kInfeasibleConstraints
        elif res.status == 3:
            hint = SolutionResult.kUnbounded
        else:
            hint = None

        details = SolverDetails(status=res.status, message=res.message,
                                n_iterations=getattr(res, 'nit', 0),
                                raw_result=res)

        return x, res.status == 0, details, hint


def _split_linear_constraints(A, lb, ub):
    """
    Rewrite `lb <= A @ x <= ub` as `A_ub @ x <= b_ub` and `A_eq @ x == b_eq`.

    Returns
    -------
    A_ub, b_ub, A_eq, b_eq : arrays or None
        `None` entries are omitted constraint types.
    """
    eq = lb == ub
    upper = np.isfinite(ub) & ~eq
    lower = np.isfinite(lb) & ~eq

    A_ub = np.vstack((A[upper], -A[lower]))
    b_ub = np.concatenate((ub[upper], -lb[lower]))

    if A_ub.shape[0] == 0:
        A_ub, b_ub = None, None

    if np.any(eq):
        A_eq, b_eq = A[eq], ub[eq]
    else:
        A_eq, b_eq = None, None

    return A_ub, b_ub, A_eq, b_eq
