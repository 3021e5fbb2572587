import numpy as np
from scipy.integrate import solve_ivp
from tqdm import tqdm

from .primitives import VectorLogSink


class Simulator:
    """
    Simulates a `System` (typically a `Diagram`) forward in time. The stacked
    continuous state of all subsystems is integrated with
    `scipy.integrate.solve_ivp`. `VectorLogSink`s in the system record their
    inputs at initialization and then either at every integrator step or
    every `publish_period` seconds.
    """
    _default_integrator_options = {'method': 'RK45', 'atol': 1e-06,
                                   'rtol': 1e-03, 'max_step': np.inf}

    def __init__(self, system, context=None, **integrator_options):
        """
        Parameters
        ----------
        system : `System`
            The system to simulate.
        context : `Context`, optional
            Initial context, created by `system`. If not provided, uses
            `system.CreateDefaultContext()`.
        **integrator_options : dict
            Options 'method', 'atol', 'rtol', and 'max_step' passed to
            `scipy.integrate.solve_ivp`.
        """
        self._system = system
        if context is None:
            context = system.CreateDefaultContext()
        else:
            system.ValidateContext(context)
        self._context = context

        self._integrator_options = dict()
        self.set_integrator_options(**{**self._default_integrator_options,
                                       **integrator_options})

        self._loggers = [s for s in system._leaf_systems()
                         if isinstance(s, VectorLogSink)]
        self._initialized = False
        self._next_publish = dict()
        self._num_steps = 0

    def get_system(self):
        return self._system

    def get_context(self):
        return self._context

    def get_mutable_context(self):
        return self._context

    def reset_context(self, context):
        """Replace the simulator's context. The simulator must be initialized
        again."""
        self._system.ValidateContext(context)
        self._context = context
        self._initialized = False

    def get_integrator_options(self):
        return dict(self._integrator_options)

    def set_integrator_options(self, **options):
        unknown = set(options) - set(self._default_integrator_options)
        if unknown:
            raise ValueError(f"Unknown integrator options {sorted(unknown)}. "
                             f"Options are "
                             f"{sorted(self._default_integrator_options)}")
        self._integrator_options.update(options)

    def get_num_steps_taken(self):
        return self._num_steps

    def Initialize(self):
        """Prepare for simulation and record all logs at the initial time.
        Called automatically by the first `AdvanceTo` if needed."""
        t0 = self._context.get_time()
        for logger in self._loggers:
            self._publish(logger)
        self._next_publish = {
            logger: _next_multiple(t0, logger.publish_period())
            for logger in self._loggers
            if logger.publish_period() is not None}
        self._initialized = True

    def AdvanceTo(self, boundary_time):
        """
        Simulate from the current time in the context to `boundary_time`. On
        return the context holds the final time and state.

        Parameters
        ----------
        boundary_time : float
            Time to simulate to. Must not be less than the current time.

        Raises
        ------
        ValueError
            If `boundary_time` is less than the current time.
        RuntimeError
            If integration fails.
        """
        if not self._initialized:
            self.Initialize()

        context = self._context
        t0 = context.get_time()
        boundary_time = float(boundary_time)
        if boundary_time < t0:
            raise ValueError(f"boundary_time={boundary_time} is less than the "
                             f"current time {t0}")
        if boundary_time == t0:
            return

        x0 = context.get_continuous_state_vector().CopyToVector()

        if x0.shape[0] == 0:
            t_steps = np.array([boundary_time])
            x_steps = np.zeros((0, 1))
            interp = None
        else:
            def fun(t, x):
                context.SetTimeAndContinuousState(t, x)
                return self._system.EvalTimeDerivatives(context)

            sol = solve_ivp(fun, (t0, boundary_time), x0,
                            dense_output=bool(self._next_publish),
                            **self._integrator_options)

            if sol.status == -1:
                raise RuntimeError(f"Integration failed at "
                                   f"t={sol.t[-1]}: {sol.message}")

            t_steps, x_steps, interp = sol.t[1:], sol.y[:, 1:], sol.sol

        self._num_steps += t_steps.shape[0]

        # Periodic logs, evaluated on the interpolated solution
        for logger, t_next in self._next_publish.items():
            period = logger.publish_period()
            while t_next <= boundary_time:
                if interp is None:
                    context.SetTime(t_next)
                else:
                    context.SetTimeAndContinuousState(t_next, interp(t_next))
                self._publish(logger)
                t_next = _next_multiple(t_next, period)
            self._next_publish[logger] = t_next

        # Per-step logs
        per_step = [logger for logger in self._loggers
                    if logger.publish_period() is None]
        for k in range(t_steps.shape[0]):
            context.SetTimeAndContinuousState(t_steps[k], x_steps[:, k])
            for logger in per_step:
                self._publish(logger)

        context.SetTime(boundary_time)
        if x0.shape[0]:
            context.SetContinuousState(x_steps[:, -1])

    def _publish(self, logger):
        logger.Publish(self._context._find_subcontext(logger))


def _next_multiple(t, period):
    """Smallest multiple of `period` strictly greater than `t`."""
    if period is None:
        return None
    k = np.floor(t / period + 1e-09) + 1.
    return k * period


def monte_carlo(diagram, x0_pool, t_final, set_state=None, context=None,
                **integrator_options):
    """
    Simulate a system from multiple initial conditions.

    Parameters
    ----------
    diagram : `System`
        The system to simulate.
    x0_pool : (n_states, n_sims) array
        Initial conditions. `n_states` need not be the number of continuous
        states of `diagram` if `set_state` is provided.
    t_final : float
        Time to simulate to, starting from the time in `context`.
    set_state : callable, optional
        Function with signature `set_state(diagram, context, x0)` which sets
        the initial condition `x0` in a fresh copy of `context`. By default
        sets the full continuous state of `diagram`.
    context : `Context`, optional
        Template context holding fixed inputs and parameters. If not
        provided, uses `diagram.CreateDefaultContext()`.
    **integrator_options : dict
        Options passed to `Simulator`.

    Returns
    -------
    sims : (n_sims,) object array of dicts
        The results of the simulations for each initial condition,
        `x0_pool[:, i]`. Each element is a dict containing

            * 'x0' : (n_states,) array
                Initial condition.
            * 'xf' : (num_continuous_states,) array
                Final continuous state.
            * 'logs' : dict
                Maps the name of each `VectorLogSink` to its `VectorLog`.
    status : (n_sims,) integer array
        `status[i]` contains the reason for termination of `sims[i]`:

            * -1: Integration failed.
            *  0: The simulation reached `t_final`.
    """
    if context is None:
        context = diagram.CreateDefaultContext()
    if set_state is None:
        def set_state(diagram, context, x0):
            context.SetContinuousState(x0)

    x0_pool = np.asarray(x0_pool, dtype=float)
    if x0_pool.ndim < 2:
        x0_pool = np.reshape(x0_pool, (-1, 1))
    n_sims = x0_pool.shape[1]

    sims = []
    status = np.zeros(n_sims, dtype=int)

    loggers = [s for s in diagram._leaf_systems()
               if isinstance(s, VectorLogSink)]

    print(f"Simulating {diagram.get_name() or type(diagram).__name__} for "
          f"{n_sims:d} initial conditions...")
    for i in tqdm(range(n_sims)):
        sim_context = context.Clone()
        for logger in loggers:
            logger.FindLog(sim_context).Clear()
        set_state(diagram, sim_context, x0_pool[:, i])

        simulator = Simulator(diagram, sim_context, **integrator_options)
        try:
            simulator.AdvanceTo(t_final)
        except RuntimeError:
            status[i] = -1

        sims.append({
            'x0': np.copy(x0_pool[:, i]),
            'xf': sim_context.get_continuous_state_vector().CopyToVector(),
            'logs': {logger.get_name(): logger.FindLog(sim_context)
                     for logger in loggers}})

    return np.asarray(sims, dtype=object), status
