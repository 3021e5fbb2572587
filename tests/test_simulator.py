import pytest

import numpy as np

from dynopt.systems import (DiagramBuilder, ConstantVectorSource,
                            LogVectorOutput, PendulumPlant, PidController,
                            Simulator, monte_carlo)

from ._utilities import Decay


def _decay_diagram(a=1., x0=1., publish_period=None):
    builder = DiagramBuilder()
    decay = builder.AddNamedSystem('decay', Decay(a=a, x0=x0))
    logger = LogVectorOutput(decay.get_output_port(), builder,
                             publish_period=publish_period)
    logger.set_name('logger')
    return builder.Build(), decay, logger


def test_simulate_exponential_decay():
    diagram, _, logger = _decay_diagram(a=1., x0=2.)
    simulator = Simulator(diagram, atol=1e-09, rtol=1e-09)
    simulator.Initialize()
    simulator.AdvanceTo(1.)

    context = simulator.get_context()
    assert context.get_time() == 1.
    xf = context.get_continuous_state_vector().CopyToVector()
    np.testing.assert_allclose(xf, [2. * np.exp(-1.)], rtol=1e-06)
    assert simulator.get_num_steps_taken() > 0

    log = logger.FindLog(context)
    t = log.sample_times()
    assert t[0] == 0. and t[-1] == pytest.approx(1.)
    assert np.all(np.diff(t) > 0.)
    assert log.num_samples() == simulator.get_num_steps_taken() + 1
    np.testing.assert_allclose(log.data()[0], 2. * np.exp(-t), rtol=1e-06)


def test_advance_in_stages():
    diagram, _, logger = _decay_diagram()
    simulator = Simulator(diagram)
    # AdvanceTo initializes if needed
    simulator.AdvanceTo(0.5)
    n_samples = logger.FindLog(simulator.get_context()).num_samples()
    simulator.AdvanceTo(1.)

    log = logger.FindLog(simulator.get_context())
    assert log.num_samples() > n_samples
    assert log.sample_times()[-1] == pytest.approx(1.)
    assert simulator.get_context().get_time() == 1.

    # Advancing to the current time does nothing
    simulator.AdvanceTo(1.)
    assert log.num_samples() == logger.FindLog(
        simulator.get_context()).num_samples()

    with pytest.raises(ValueError):
        simulator.AdvanceTo(0.5)


def test_periodic_publishing():
    diagram, _, logger = _decay_diagram(publish_period=0.1)
    simulator = Simulator(diagram, atol=1e-09, rtol=1e-09)
    simulator.AdvanceTo(1.)

    log = logger.FindLog(simulator.get_context())
    np.testing.assert_allclose(log.sample_times(), np.linspace(0., 1., 11))
    np.testing.assert_allclose(log.data()[0], np.exp(-log.sample_times()),
                               rtol=1e-06)


def test_stateless_diagram():
    builder = DiagramBuilder()
    source = builder.AddSystem(ConstantVectorSource([3.]))
    logger = LogVectorOutput(source.get_output_port(), builder, 0.25)
    diagram = builder.Build()

    simulator = Simulator(diagram)
    simulator.AdvanceTo(1.)
    log = logger.FindLog(simulator.get_context())
    np.testing.assert_allclose(log.sample_times(), [0., 0.25, 0.5, 0.75, 1.])
    np.testing.assert_allclose(log.data(), np.full((1, 5), 3.))


def test_simulator_context():
    diagram, decay, _ = _decay_diagram()
    context = diagram.CreateDefaultContext()
    diagram.GetMutableSubsystemContext(decay, context).SetContinuousState(
        [5.])

    simulator = Simulator(diagram, context)
    assert simulator.get_system() is diagram
    assert simulator.get_mutable_context() is context
    simulator.AdvanceTo(0.1)
    assert context.get_time() == 0.1
    assert context.get_continuous_state_vector()[0] < 5.

    new_context = diagram.CreateDefaultContext()
    simulator.reset_context(new_context)
    assert simulator.get_context() is new_context

    with pytest.raises(ValueError):
        Simulator(diagram, decay.CreateDefaultContext())


def test_integrator_options():
    diagram, _, _ = _decay_diagram()
    simulator = Simulator(diagram, method='LSODA')
    options = simulator.get_integrator_options()
    assert options['method'] == 'LSODA'
    assert options['rtol'] == 1e-03

    simulator.set_integrator_options(rtol=1e-06)
    assert simulator.get_integrator_options()['rtol'] == 1e-06

    with pytest.raises(ValueError):
        simulator.set_integrator_options(first_step=0.1)
    with pytest.raises(ValueError):
        Simulator(diagram, dense=True)


def test_pid_regulates_pendulum():
    builder = DiagramBuilder()
    pendulum = builder.AddSystem(PendulumPlant())
    controller = builder.AddSystem(PidController([10.], [1.], [1.]))
    builder.Connect(pendulum.get_state_output_port(),
                    controller.get_input_port_estimated_state())
    builder.Connect(controller.get_output_port_control(),
                    pendulum.get_actuation_input_port())
    builder.ExportInput(controller.get_input_port_desired_state())
    logger = LogVectorOutput(pendulum.get_state_output_port(), builder)
    diagram = builder.Build()

    simulator = Simulator(diagram)
    context = simulator.get_mutable_context()
    diagram.GetMutableSubsystemContext(pendulum, context).SetContinuousState(
        [np.pi / 2. + 0.1, 0.2])
    diagram.get_input_port(0).FixValue(context, [np.pi / 2., 0.])
    simulator.AdvanceTo(40.)

    theta = logger.FindLog(context).data()[0]
    np.testing.assert_allclose(theta[-1], np.pi / 2., atol=5e-02)


def test_monte_carlo(capsys):
    diagram, decay, logger = _decay_diagram(a=1.)
    x0_pool = np.array([[1., 2., -3.]])

    sims, status = monte_carlo(diagram, x0_pool, 1., atol=1e-09, rtol=1e-09)

    assert sims.shape == (3,)
    np.testing.assert_array_equal(status, 0)
    for i, sim in enumerate(sims):
        np.testing.assert_allclose(sim['x0'], x0_pool[:, i])
        np.testing.assert_allclose(sim['xf'], x0_pool[:, i] * np.exp(-1.),
                                   rtol=1e-06)
        log = sim['logs']['logger']
        assert log.sample_times()[0] == 0.
        np.testing.assert_allclose(log.data()[0, 0], x0_pool[0, i])

    # Logs are independent between simulations
    assert sims[0]['logs']['logger'] is not sims[1]['logs']['logger']
    assert 'Simulating' in capsys.readouterr().out


def test_monte_carlo_set_state():
    diagram, decay, _ = _decay_diagram(a=2.)

    def set_state(diagram, context, x0):
        diagram.GetMutableSubsystemContext(
            decay, context).SetContinuousState(2. * x0)

    sims, status = monte_carlo(diagram, [[1., 2.]], 0.5,
                              set_state=set_state)
    assert sims.shape == (2,)
    np.testing.assert_array_equal(status, 0)
    np.testing.assert_allclose(sims[1]['xf'], [4. * np.exp(-1.)], rtol=1e-02)
