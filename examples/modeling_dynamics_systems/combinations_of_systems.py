"""
Wiring systems together: a PID controller regulates a pendulum to a desired
angle. The diagram is drawn with Graphviz, the pendulum state is logged and
saved to csv, and the angle is plotted against the desired angle.
"""

import argparse as ap
import os
import warnings

import numpy as np
from matplotlib import pyplot as plt

from dynopt.systems import (DiagramBuilder, PendulumPlant, PidController,
                            LogVectorOutput, Simulator, write_graphviz,
                            render_dot_to_png)
from dynopt.utilities import save_data

from examples.modeling_dynamics_systems import example_config as config


def build_diagram():
    """
    Returns
    -------
    diagram : `Diagram`
        Pendulum in feedback with a PID controller, with the controller's
        desired state exported as diagram input 0.
    pendulum : `PendulumPlant`
    logger : `VectorLogSink`
        Logs the pendulum state.
    """
    builder = DiagramBuilder()
    pendulum = builder.AddNamedSystem(
        "pendulum", PendulumPlant(**config.pendulum_params))
    controller = builder.AddNamedSystem(
        "controller", PidController(**config.pid_gains))

    # Wire up the controller to the pendulum
    builder.Connect(pendulum.get_state_output_port(),
                    controller.get_input_port_estimated_state())
    builder.Connect(controller.get_output_port_control(),
                    pendulum.get_actuation_input_port())

    builder.ExportInput(controller.get_input_port_desired_state())

    logger = LogVectorOutput(pendulum.get_state_output_port(), builder)
    logger.set_name("logger")

    diagram = builder.Build()
    diagram.set_name("diagram")
    return diagram, pendulum, logger


def main(argv=None):
    parser = ap.ArgumentParser()
    parser.add_argument('-s', '--show_plots', action='store_true',
                        help="Show plots at runtime, in addition to saving.")
    args = parser.parse_args(argv)

    diagram, pendulum, logger = build_diagram()

    write_graphviz(diagram, config.graph_basename, config.graphviz_max_depth)
    try:
        render_dot_to_png(config.graph_basename)
    except RuntimeError as e:
        warnings.warn(f"Diagram not rendered: {e}", RuntimeWarning)

    simulator = Simulator(diagram, **config.sim_kwargs)
    context = simulator.get_mutable_context()

    pendulum_context = diagram.GetMutableSubsystemContext(pendulum, context)
    pendulum_context.get_mutable_continuous_state_vector().SetFromVector(
        config.pendulum_x0)

    # The diagram's only input is the controller's desired state
    diagram.get_input_port(0).FixValue(context, [config.desired_angle, 0.])

    simulator.Initialize()
    simulator.AdvanceTo(config.pendulum_t_final)

    log = logger.FindLog(simulator.get_context())
    t = log.sample_times()
    save_data(log, os.path.join(config.data_dir, 'pendulum_log.csv'))

    fig = plt.figure()
    plt.plot(t, log.data()[0], 'tab:blue')
    plt.plot([t[0], t[-1]], np.full(2, config.desired_angle), 'tab:green')
    plt.xlabel('Sample time')
    plt.ylabel('theta (rad)')
    plt.savefig(os.path.join(config.fig_dir, 'combinations_of_systems.pdf'))

    if args.show_plots:
        plt.show()
    plt.close(fig)

    return log


if __name__ == '__main__':
    main()
