"""
Solves a simple optimization problem

    min_x   x(0)
    s.t.    x(0) + x(1) = 1
            0 <= x(1) <= 1

with a solver chosen by hand rather than by `Solve`, and prints the solver's
own status report.
"""

from dynopt.solvers import MathematicalProgram, MakeSolver, SolverId

from examples.common_utilities.options import make_solver_options
from examples.common_utilities.printing import print_section
from examples.mathematical_program import example_config as config


def main():
    prog = MathematicalProgram()
    x = prog.NewContinuousVariables(2)
    print_section("x = ", x)

    constraint1 = prog.AddConstraint(x[0] + x[1] == 1)
    print_section("constraint1: ", constraint1)
    constraint2 = prog.AddConstraint(0 <= x[1])
    print_section("constraint2: ", constraint2)
    constraint3 = prog.AddConstraint(x[1] <= 1)
    print_section("constraint3: ", constraint3)
    cost1 = prog.AddCost(x[0])
    print_section("cost1: ", cost1)

    solver = MakeSolver(SolverId(config.manual_solver))
    result = solver.Solve(prog, config.manual_solver_initial_guess,
                          make_solver_options(config.solver_kwargs))

    print_section(result.get_solution_result())
    print_section("x* = ", result.GetSolution(x))
    print_section("Solver is ", result.get_solver_id().name())

    details = result.get_solver_details()
    print_section(solver.solver_id().name(), " solver status: ",
                  details.status, ", meaning ",
                  details.ConvertStatusToString())

    return result


if __name__ == '__main__':
    main()
