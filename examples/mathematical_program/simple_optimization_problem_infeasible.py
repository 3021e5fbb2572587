"""
An infeasible problem: no point satisfies both `x + y >= 1` and `x + y <= 0`.
The solve does not raise; the failure is reported in the result.
"""

from dynopt.solvers import MathematicalProgram, Solve

from examples.common_utilities.options import make_solver_options
from examples.common_utilities.printing import print_section
from examples.mathematical_program import example_config as config


def main():
    prog = MathematicalProgram()
    x = prog.NewContinuousVariables(1)[0]
    print_section("x = ", x)
    y = prog.NewContinuousVariables(1)[0]
    print_section("y = ", y)

    constraint1 = prog.AddConstraint(x + y >= 1)
    print_section("constraint1: ", constraint1)
    constraint2 = prog.AddConstraint(x + y <= 0)
    print_section("constraint2: ", constraint2)
    cost1 = prog.AddCost(x)
    print_section("cost1: ", cost1)

    result = Solve(prog,
                   solver_options=make_solver_options(config.solver_kwargs))

    print_section("Success: ", result.is_success())
    print_section("Solution result: ", result.get_solution_result())

    return result


if __name__ == '__main__':
    main()
