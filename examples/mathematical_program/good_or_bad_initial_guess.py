"""
The same nonconvex problem

    min_x   x(0)^2 - x(1)^2
    s.t.    x(0)^2 + x(1)^2 = 100

solved twice. From the default initial guess at the origin, where the
constraint gradient vanishes, the solver cannot make progress. From a good
initial guess it converges.
"""

from dynopt.solvers import MathematicalProgram, MakeSolver, SolverId

from examples.common_utilities.options import make_solver_options
from examples.common_utilities.printing import print_section
from examples.mathematical_program import example_config as config


def main():
    prog = MathematicalProgram()
    x = prog.NewContinuousVariables(2)
    prog.AddConstraint(x[0] ** 2 + x[1] ** 2 == 100.)
    prog.AddCost(x[0] ** 2 - x[1] ** 2)

    solver = MakeSolver(SolverId(config.initial_guess_solver))
    options = make_solver_options(config.solver_kwargs)

    # No initial guess
    bad_result = solver.Solve(prog, None, options)
    print_section("Without a good initial guess, success? ",
                  bad_result.is_success())
    print_section("Solution:", bad_result.GetSolution(x))

    good_result = solver.Solve(prog, config.good_initial_guess, options)
    print_section("With a good initial guess, success? ",
                  good_result.is_success())
    print_section("Solution:", good_result.GetSolution(x))

    return bad_result, good_result


if __name__ == '__main__':
    main()
