from .interior_point import InteriorPointSolver
from .linear_programming import LinearProgrammingSolver
from .mathematical_program import ProgramType
from .slsqp import SlsqpSolver


_solvers = {solver.id(): solver for solver in
            (LinearProgrammingSolver, SlsqpSolver, InteriorPointSolver)}


def ChooseBestSolver(prog):
    """
    Choose a solver suited to a `MathematicalProgram`.

    Parameters
    ----------
    prog : `MathematicalProgram`

    Returns
    -------
    solver_id : `SolverId`
        `LinearProgrammingSolver.id()` for linear programs and
        `SlsqpSolver.id()` for quadratic and nonlinear programs.
    """
    if prog.GetProgramType() == ProgramType.kLP:
        return LinearProgrammingSolver.id()
    return SlsqpSolver.id()


def MakeSolver(solver_id):
    """
    Instantiate a solver from its `SolverId`.

    Raises
    ------
    ValueError
        If `solver_id` does not name a known solver.
    """
    try:
        return _solvers[solver_id]()
    except KeyError:
        raise ValueError(f"Unknown solver {solver_id}. Available solvers are "
                         f"{', '.join(str(s) for s in _solvers)}")


def Solve(prog, initial_guess=None, solver_options=None):
    """
    Solve a `MathematicalProgram` with the solver chosen by
    `ChooseBestSolver`.

    Parameters
    ----------
    prog : `MathematicalProgram`
        Program to solve.
    initial_guess : (prog.num_vars(),) array, optional
        Initial guess for all decision variables. Defaults to the guess stored
        in `prog`, with unset entries replaced by zero.
    solver_options : `SolverOptions`, optional
        Solver options.

    Returns
    -------
    result : `MathematicalProgramResult`
        The result of the solve. Check `result.is_success()` before trusting
        the solution.
    """
    solver = MakeSolver(ChooseBestSolver(prog))
    return solver.Solve(prog, initial_guess=initial_guess,
                        solver_options=solver_options)
