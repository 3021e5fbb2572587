from dynopt.solvers import SolverOptions


def make_solver_options(solver_kwargs, solver_id=None):
    """
    Build `SolverOptions` from a dict of keyword arguments, as found in the
    example configuration files.

    Parameters
    ----------
    solver_kwargs : dict
        Option names and values.
    solver_id : `SolverId`, optional
        If provided, the options only apply to this solver. Otherwise they are
        common to all solvers.

    Returns
    -------
    options : `SolverOptions`
    """
    options = SolverOptions()
    for key, value in solver_kwargs.items():
        if solver_id is None:
            options.SetCommonOption(key, value)
        else:
            options.SetOption(solver_id, key, value)
    return options
