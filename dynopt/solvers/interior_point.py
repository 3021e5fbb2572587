import numpy as np
from scipy.optimize import (minimize, Bounds, BFGS, LinearConstraint,
                            NonlinearConstraint)

from .result import SolutionResult, SolverDetails
from .solver_base import SolverInterface


class InteriorPointSolver(SolverInterface):
    """
    Solves nonlinear programs with a trust-region interior point method, using
    `scipy.optimize.minimize(method='trust-constr')`. The cost Hessian is
    exact if all costs are linear or quadratic, otherwise it is approximated
    by BFGS updates, as are constraint Hessians.

    The solver details expose the `trust-constr` termination status:

        * 0 : the maximum number of iterations is exceeded.
        * 1 : the gradient tolerance ('tol') is satisfied.
        * 2 : the step size tolerance ('xtol') is satisfied.
        * 3 : the callback requested termination.

    The barrier parameter starts at, and is driven below, 'tol' unless
    'initial_barrier_parameter', 'initial_barrier_tolerance' or 'barrier_tol'
    are given as solver options.
    """
    _solver_name = 'TrustConstr'

    def AreProgramAttributesSatisfied(self, prog):
        return True

    def _solve(self, funs, x0, options):
        constraints = []
        if funs.n_linear:
            constraints.append(LinearConstraint(funs.A, funs.A_lb, funs.A_ub))
        if funs.n_nonlinear:
            constraints.append(NonlinearConstraint(
                funs.nonlinear_fun, funs.nonlinear_lb, funs.nonlinear_ub,
                jac=funs.nonlinear_jac, hess=BFGS()))

        bounds = None
        if funs.has_bounds:
            bounds = Bounds(funs.lb, funs.ub)

        if funs.is_quadratic:
            hess = funs.cost_hess
        else:
            hess = BFGS()

        callback = None
        if funs.has_callbacks:
            def callback(xk, *args):
                funs.callback(xk)

        trust_opts = {key: val for key, val in options.items()
                      if key not in self._default_options}
        trust_opts.update({'maxiter': options['max_iter'],
                           'gtol': options['tol'],
                           'verbose': 2 if options['verbose'] >= 2 else 0})
        # Iterates stay about one barrier parameter away from active bounds
        for key in ('initial_barrier_parameter', 'initial_barrier_tolerance',
                    'barrier_tol'):
            trust_opts.setdefault(key, options['tol'])

        try:
            res = minimize(funs.cost, x0, method='trust-constr',
                           jac=funs.cost_grad, hess=hess, bounds=bounds,
                           constraints=constraints, callback=callback,
                           options=trust_opts)
        except np.linalg.LinAlgError as err:
            # Degenerate constraint Jacobians make the projections singular
            details = SolverDetails(status=-1, message=str(err))
            return x0, False, details, SolutionResult.kSolverSpecificError

        if res.status == 0:
            hint = SolutionResult.kIterationLimit
        else:
            hint = None

        details = SolverDetails(status=res.status, message=res.message,
                                n_iterations=getattr(res, 'nit', 0),
                                n_evaluations=getattr(res, 'nfev', 0),
                                raw_result=res)

        return res.x, res.status in (1, 2), details, hint
