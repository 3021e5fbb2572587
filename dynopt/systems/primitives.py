import numpy as np

from dynopt import symbolic
from dynopt.utilities import pack_dataframe, resize_vector
from .framework import LeafSystem


class ConstantVectorSource(LeafSystem):
    """Source system with a single output port 'y0' holding a constant
    vector."""
    def __init__(self, source_value):
        super().__init__()
        self._value = np.reshape(np.asarray(source_value, dtype=float), -1)
        self.DeclareVectorOutputPort('y0', self._value.shape[0],
                                     lambda context: self._value)

    def get_source_value(self):
        return np.copy(self._value)

    def set_source_value(self, value):
        self._value = resize_vector(value, self._value.shape[0])


class SymbolicVectorSystem(LeafSystem):
    """
    Continuous-time system defined by symbolic expressions,

        dx/dt = f(t, x, u),
        y = g(t, x, u).

    The system has an input port 'u0' if `input` is nonempty and an output
    port 'y0' if `output` is nonempty.
    """
    def __init__(self, time=None, state=(), input=(), dynamics=(), output=()):
        """
        Parameters
        ----------
        time : `Variable`, optional
            Variable representing time in `dynamics` and `output`.
        state : array_like of `Variable`
            State variables `x`.
        input : array_like of `Variable`
            Input variables `u`.
        dynamics : array_like of `Expression`
            Time derivatives `f`, one per state variable.
        output : array_like of `Expression`
            Outputs `g`.

        Raises
        ------
        ValueError
            If `dynamics` and `state` have different sizes, or if the
            expressions depend on variables other than `time`, `state`, and
            `input`.
        """
        super().__init__()

        self._time = time
        self._state = _flatten(state)
        self._input = _flatten(input)
        self._dynamics = _flatten(dynamics)
        self._output = _flatten(output)

        if self._dynamics.shape[0] != self._state.shape[0]:
            raise ValueError(f"dynamics has size {self._dynamics.shape[0]:d} "
                             f"but state has size {self._state.shape[0]:d}")

        variables = [] if time is None else [time]
        variables = np.array(variables + list(self._state) + list(self._input),
                             dtype=object)

        self._f = symbolic.lambdify(self._dynamics, variables)
        self._g = symbolic.lambdify(self._output, variables)

        self.DeclareContinuousState(self._state.shape[0])
        if self._input.shape[0]:
            self.DeclareVectorInputPort('u0', self._input.shape[0])
        if self._output.shape[0]:
            self.DeclareVectorOutputPort('y0', self._output.shape[0],
                                         self._calc_output)

    def dynamics_for_variable(self, var):
        """The symbolic time derivative of state variable `var`."""
        for x, f in zip(self._state, self._dynamics):
            if x.EqualTo(var):
                return f
        raise ValueError(f"{var} is not a state variable")

    def _values(self, context):
        values = [] if self._time is None else [context.get_time()]
        values = np.concatenate((values, context._state))
        if self._input.shape[0]:
            values = np.concatenate((values,
                                     self.get_input_port(0).Eval(context)))
        return values

    def DoCalcTimeDerivatives(self, context):
        return self._f(self._values(context))

    def _calc_output(self, context):
        return self._g(self._values(context))


class SymbolicVectorSystemBuilder:
    """
    Chainable constructor for `SymbolicVectorSystem`, e.g.

        system = SymbolicVectorSystemBuilder().state(x).dynamics(-x + x ** 3)
                 .output(x).Build()
    """
    def __init__(self):
        self._kwargs = {'time': None, 'state': [], 'input': [],
                        'dynamics': [], 'output': []}

    def time(self, t):
        self._kwargs['time'] = t
        return self

    def state(self, x):
        self._kwargs['state'] = x
        return self

    def input(self, u):
        self._kwargs['input'] = u
        return self

    def dynamics(self, f):
        self._kwargs['dynamics'] = f
        return self

    def output(self, y):
        self._kwargs['output'] = y
        return self

    def Build(self):
        return SymbolicVectorSystem(**self._kwargs)


class VectorLog:
    """Time samples of a vector signal recorded by a `VectorLogSink`."""
    def __init__(self, input_size):
        self._input_size = input_size
        self._t = []
        self._data = []

    def get_input_size(self):
        return self._input_size

    def num_samples(self):
        return len(self._t)

    def AddData(self, t, value):
        self._t.append(float(t))
        self._data.append(resize_vector(value, self._input_size))

    def Clear(self):
        self._t = []
        self._data = []

    def sample_times(self):
        """
        Returns
        -------
        t : (num_samples,) array
        """
        return np.array(self._t)

    def data(self):
        """
        Returns
        -------
        data : (input_size, num_samples) array
            Column `k` holds the signal at time `sample_times()[k]`.
        """
        if not self._data:
            return np.zeros((self._input_size, 0))
        return np.stack(self._data, axis=1)

    def to_dataframe(self, prefix='y'):
        """
        The log as a `DataFrame` with columns 't', `prefix + '1'`, ...

        Returns
        -------
        data : DataFrame
        """
        return pack_dataframe(self.sample_times(), self.data(), prefix=prefix)

    def copy(self):
        log = VectorLog(self._input_size)
        log._t = list(self._t)
        log._data = [np.copy(d) for d in self._data]
        return log


class VectorLogSink(LeafSystem):
    """
    Records the vector on its input port 'data' during simulation. The log is
    stored in the sink's context, see `FindLog`.

    If `publish_period` is `None`, the `Simulator` records the input at every
    integrator step, otherwise every `publish_period` seconds.
    """
    def __init__(self, input_size, publish_period=None):
        super().__init__()
        if publish_period is not None and publish_period <= 0.:
            raise ValueError("publish_period must be positive or None")
        self._publish_period = publish_period
        self.DeclareVectorInputPort('data', input_size)

    def publish_period(self):
        return self._publish_period

    def _make_context(self):
        context = super()._make_context()
        context._log = VectorLog(self.get_input_port(0).size())
        return context

    def Publish(self, context):
        """Record the current input in the log of `context`."""
        self.ValidateContext(context)
        context._log.AddData(context.get_time(),
                             self.get_input_port(0).Eval(context))

    def GetLog(self, context):
        """The log stored in this sink's own context."""
        self.ValidateContext(context)
        return context._log

    def FindLog(self, context):
        """
        Find this sink's log from the context of a diagram containing it,
        e.g. the simulator's root context.

        Returns
        -------
        log : `VectorLog`
        """
        sub = context._find_subcontext(self)
        if sub is None:
            raise ValueError(f"{self} is not part of the system of the given "
                             "context")
        return sub._log

    def FindMutableLog(self, context):
        return self.FindLog(context)


def LogVectorOutput(src, builder, publish_period=None):
    """
    Add a `VectorLogSink` to a `DiagramBuilder` and connect it to an output
    port.

    Parameters
    ----------
    src : `OutputPort`
        Port to log.
    builder : `DiagramBuilder`
        Builder containing the system of `src`.
    publish_period : float, optional
        Logging period. If `None`, logs at every integrator step.

    Returns
    -------
    logger : `VectorLogSink`
    """
    logger = builder.AddSystem(VectorLogSink(src.size(),
                                             publish_period=publish_period))
    builder.Connect(src, logger.get_input_port(0))
    return logger


def _flatten(expressions):
    return np.ravel(np.asarray(expressions, dtype=object))
