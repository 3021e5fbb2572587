"""
The `solvers` module contains classes for stating and solving constrained
optimization problems

    min_x   f(x)
    s.t.    lb <= g(x) <= ub

in terms of symbolic decision variables, and for inspecting the results.

---

* [`MathematicalProgram`](solvers/mathematical_program#MathematicalProgram):
    Decision variables, costs, and constraints of an optimization problem.

* [`Solve`](solvers/solve#Solve): Solve a program with an automatically
    chosen solver.

* [`LinearProgrammingSolver`](solvers/linear_programming), [`SlsqpSolver`](
    solvers/slsqp), and [`InteriorPointSolver`](solvers/interior_point):
    Solvers which can be chosen manually.

* [`MathematicalProgramResult`](solvers/result#MathematicalProgramResult):
    Solution values, optimal cost, and status of a solve.
"""

from .evaluators import (Binding, Constraint, LinearConstraint,
                         LinearEqualityConstraint, BoundingBoxConstraint,
                         ExpressionConstraint, FunctionConstraint, Cost,
                         LinearCost, QuadraticCost, ExpressionCost,
                         FunctionCost, VisualizationCallback)
from .mathematical_program import MathematicalProgram, ProgramType
from .result import (MathematicalProgramResult, SolutionResult, SolverDetails,
                     SolverId, SolverOptions)
from .solver_base import SolverInterface
from .linear_programming import LinearProgrammingSolver
from .slsqp import SlsqpSolver
from .interior_point import InteriorPointSolver
from .solve import ChooseBestSolver, MakeSolver, Solve
