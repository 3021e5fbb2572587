"""
A system written as symbolic equations, x' = -x + x^3, y = x, simulated from
x(0) = 0.9 with its output logged and plotted.
"""

import argparse as ap
import os

from matplotlib import pyplot as plt

from dynopt.symbolic import Variable
from dynopt.systems import (DiagramBuilder, SymbolicVectorSystemBuilder,
                            LogVectorOutput, Simulator)

from examples.modeling_dynamics_systems import example_config as config


def main(argv=None):
    parser = ap.ArgumentParser()
    parser.add_argument('-s', '--show_plots', action='store_true',
                        help="Show plots at runtime, in addition to saving.")
    args = parser.parse_args(argv)

    x = Variable("x")

    builder = DiagramBuilder()
    system = builder.AddSystem(SymbolicVectorSystemBuilder()
                               .state(x)
                               .dynamics(-x + x ** 3)
                               .output(x)
                               .Build())
    logger = LogVectorOutput(system.get_output_port(), builder)
    diagram = builder.Build()

    # Set the initial condition x(0)
    context = diagram.CreateDefaultContext()
    context.SetContinuousState([config.symbolic_x0])

    simulator = Simulator(diagram, context, **config.sim_kwargs)
    simulator.Initialize()
    simulator.AdvanceTo(config.symbolic_t_final)

    log = logger.FindLog(simulator.get_context())

    fig = plt.figure()
    plt.plot(log.sample_times(), log.data().T, 'tab:red')
    plt.xlabel('Sample time')
    plt.ylabel('Output')
    plt.savefig(os.path.join(config.fig_dir, 'symbolic_vector_system.pdf'))

    if args.show_plots:
        plt.show()
    plt.close(fig)

    return log


if __name__ == '__main__':
    main()
