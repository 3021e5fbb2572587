"""
Creating decision variables and building expressions from them. Variables
can be created as vectors or matrices, with a default or custom base name.
"""

from dynopt.solvers import MathematicalProgram

from examples.common_utilities.printing import print_section


def main():
    prog = MathematicalProgram()

    # Vector of two variables, named x(0) and x(1) by default
    x = prog.NewContinuousVariables(2)
    print_section(x)
    print_section(1 + 2 * x[0] + 3 * x[1] + 4 * x[1])

    # Custom base name
    y = prog.NewContinuousVariables(2, "dog")
    print_section(y)
    print_section(y[0] + y[0] + y[1] * y[1] * y[1])

    # 3 x 2 matrix of variables
    var_matrix = prog.NewContinuousVariables(3, 2, "A")
    print_section(var_matrix)

    return prog


if __name__ == '__main__':
    main()
