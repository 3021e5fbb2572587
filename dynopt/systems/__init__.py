"""
The `systems` module contains a block diagram framework for modeling and
simulating dynamical systems, a few standard systems, and a simulator.

---

* [`DiagramBuilder`](systems/framework#DiagramBuilder) and
    [`Diagram`](systems/framework#Diagram): Wire systems together.

* [`LeafSystem`](systems/framework#LeafSystem): Template superclass for
    user-defined systems.

* [`Simulator`](systems/analysis#Simulator): Integrate a system forward in
    time.

* [`SymbolicVectorSystem`](systems/primitives#SymbolicVectorSystem),
    [`PidController`](systems/controllers#PidController), and
    [`PendulumPlant`](systems/pendulum#PendulumPlant): Ready-made systems.

* [`LogVectorOutput`](systems/primitives#LogVectorOutput): Record signals
    during simulation.
"""

from .framework import (Context, ContinuousStateVector, InputPort, OutputPort,
                        System, LeafSystem, Diagram, DiagramBuilder)
from .primitives import (ConstantVectorSource, SymbolicVectorSystem,
                         SymbolicVectorSystemBuilder, VectorLog, VectorLogSink,
                         LogVectorOutput)
from .controllers import PidController
from .pendulum import PendulumParameters, PendulumPlant
from .analysis import Simulator, monte_carlo
from .graphviz import diagram_to_dot, write_graphviz, render_dot_to_png
