import numpy as np
from scipy.optimize import minimize, Bounds, LinearConstraint, NonlinearConstraint

from .result import SolutionResult, SolverDetails
from .solver_base import SolverInterface


class SlsqpSolver(SolverInterface):
    """
    Solves smooth nonlinear programs with sequential least squares quadratic
    programming (SLSQP), using `scipy.optimize.minimize(method='SLSQP')`.
    Gradients of symbolic costs and constraints are exact; callables are
    differentiated with finite differences.

    SLSQP is a local method. For nonconvex programs the result depends on the
    initial guess, and a poor guess (such as a stationary point of the
    constraints) can make the solve fail.

    Options besides the common ones are passed to `minimize` as `options`.
    """
    _solver_name = 'SLSQP'

    def AreProgramAttributesSatisfied(self, prog):
        return True

    def _solve(self, funs, x0, options):
        constraints = make_scipy_constraints(funs)

        bounds = None
        if funs.has_bounds:
            bounds = Bounds(funs.lb, funs.ub)
            x0 = np.clip(x0, funs.lb, funs.ub)

        callback = None
        if funs.has_callbacks:
            def callback(xk, *args):
                funs.callback(xk)

        slsqp_opts = {key: val for key, val in options.items()
                      if key not in self._default_options}
        slsqp_opts.update({'maxiter': options['max_iter'],
                           'ftol': options['tol'],
                           'disp': options['verbose'] >= 2})

        res = minimize(funs.cost, x0, method='SLSQP', jac=funs.cost_grad,
                       bounds=bounds, constraints=constraints,
                       callback=callback, options=slsqp_opts)

        if res.status == 9:
            hint = SolutionResult.kIterationLimit
        else:
            hint = None

        details = SolverDetails(status=res.status, message=res.message,
                                n_iterations=getattr(res, 'nit', 0),
                                n_evaluations=getattr(res, 'nfev', 0),
                                raw_result=res)

        return res.x, res.success, details, hint


def make_scipy_constraints(funs):
    """
    Convert the linear and generic constraints of a program into
    `scipy.optimize` constraint objects.

    Parameters
    ----------
    funs : `ProgramFunctions`

    Returns
    -------
    constraints : list
        `LinearConstraint` and/or `NonlinearConstraint` instances.
    """
    constraints = []
    if funs.n_linear:
        constraints.append(LinearConstraint(funs.A, funs.A_lb, funs.A_ub))
    if funs.n_nonlinear:
        constraints.append(NonlinearConstraint(
            funs.nonlinear_fun, funs.nonlinear_lb, funs.nonlinear_ub,
            jac=funs.nonlinear_jac))
    return constraints
