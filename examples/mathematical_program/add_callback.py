"""
Watching a solver's progress: a visualization callback is called with the
current decision variable values at every iteration.
"""

from dynopt.solvers import MathematicalProgram, Solve

from examples.common_utilities.options import make_solver_options
from examples.common_utilities.printing import print_section
from examples.mathematical_program import example_config as config


def update(x):
    print_section("x = ", ' '.join(str(xi) for xi in x))


def main():
    prog = MathematicalProgram()
    x = prog.NewContinuousVariables(2)
    prog.AddConstraint(x[0] * x[1] == 9)
    prog.AddCost(x[0] ** 2 + x[1] ** 2)
    prog.AddVisualizationCallback(update, x)

    return Solve(prog, config.callback_initial_guess,
                 make_solver_options(config.solver_kwargs))


if __name__ == '__main__':
    main()
