"""
Solves a simple optimization problem

    min_x   x(0)^2 + x(1)^2
    s.t.    x(0) + x(1) = 1
            x(0) <= x(1)

with an automatically chosen solver.
"""

from dynopt.solvers import MathematicalProgram, Solve

from examples.common_utilities.options import make_solver_options
from examples.common_utilities.printing import print_section
from examples.mathematical_program import example_config as config


def main():
    prog = MathematicalProgram()
    x = prog.NewContinuousVariables(2)
    print_section("x = ", x)

    constraint1 = prog.AddConstraint(x[0] + x[1] == 1)
    print_section("constraint1: ", constraint1)
    constraint2 = prog.AddConstraint(x[0] <= x[1])
    print_section("constraint2: ", constraint2)
    cost1 = prog.AddCost(x[0] ** 2 + x[1] ** 2)
    print_section("cost1: ", cost1)

    result = Solve(prog,
                   solver_options=make_solver_options(config.solver_kwargs))

    print_section("Success: ", result.is_success())
    print_section("x* = ", result.GetSolution(x))
    print_section("optimal cost = ", result.get_optimal_cost())
    print_section("solver is: ", result.get_solver_id().name())

    return result


if __name__ == '__main__':
    main()
