import os

import numpy as np


# Directories where figures, diagram drawings, and logs will be saved
main_dir = os.path.join('examples', 'modeling_dynamics_systems')
fig_dir = os.path.join(main_dir, 'figures')
data_dir = os.path.join(main_dir, 'data')

for directory in [fig_dir, data_dir]:
    os.makedirs(directory, exist_ok=True)

# Keyword arguments for the simulator's integrator
sim_kwargs = {'method': 'RK45', 'atol': 1e-06, 'rtol': 1e-03}

# symbolic_vector_system: x' = -x + x^3 from x(0) = x0
symbolic_x0 = 0.9
symbolic_t_final = 10.

# combinations_of_systems: PID regulation of a pendulum to a desired angle
pendulum_params = {}
pid_gains = {'kp': [10.], 'ki': [1.], 'kd': [1.]}
desired_angle = np.pi / 2.
pendulum_x0 = [desired_angle + 0.1, 0.2]
pendulum_t_final = 40.

# Depth of nested diagrams expanded in the Graphviz drawing
graphviz_max_depth = 2
graph_basename = os.path.join(fig_dir, 'graph')
