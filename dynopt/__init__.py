"""
`dynopt` is a small toolkit for stating and solving optimization problems,
modeling and simulating dynamical systems as block diagrams, and inspecting
multibody models. It is the library behind the tutorial programs in
`examples/`.

---

* [`symbolic`](dynopt/symbolic): Symbolic variables, expressions, and
    formulas.

* [`solvers`](dynopt/solvers): Mathematical programs and the solvers for
    them.

* [`systems`](dynopt/systems): Block diagram modeling and simulation.

* [`multibody`](dynopt/multibody): Rigid body trees, model parsing, and an
    interactive kinematics viewer.
"""

__version__ = '0.1.0'
