import numpy as np

from .framework import LeafSystem


class PendulumParameters:
    """Physical parameters of a `PendulumPlant`, accessible as attributes:
    'mass' (kg), 'length' (m), 'damping' (N m s / rad), and 'gravity'
    (m / s^2)."""
    _defaults = {'mass': 1., 'length': 0.5, 'damping': 0.1, 'gravity': 9.81}

    def __init__(self, **params):
        self.__dict__.update(self._defaults)
        self.update(**params)

    def update(self, **params):
        """
        Modify one or more parameters, given as keyword arguments. Parameters
        are left unchanged if any new value is invalid.

        Raises
        ------
        TypeError
            If a parameter name is not recognized.
        ValueError
            If the mass or length would not be positive.
        """
        unknown = set(params).difference(self._defaults)
        if unknown:
            raise TypeError(f"Unknown pendulum parameters {sorted(unknown)}")

        new_params = self.as_dict()
        new_params.update({key: float(val) for key, val in params.items()})
        for key in ('mass', 'length'):
            if new_params[key] <= 0.:
                raise ValueError(f"{key} must be positive")

        self.__dict__.update(new_params)

    def as_dict(self):
        return {key: getattr(self, key) for key in self._defaults}

    def __str__(self):
        params = ', '.join(f"{k}={v}" for k, v in self.as_dict().items())
        return f"{type(self).__name__}({params})"


class PendulumPlant(LeafSystem):
    """
    A damped simple pendulum with a torque at the pivot,

        m l^2 d^2(theta)/dt^2 = tau - m g l sin(theta) - b d(theta)/dt.

    The state is `(theta, thetadot)`, with `theta = 0` hanging straight down.

    Ports:

        * input 0, 'tau' : applied torque, size 1.
        * output 0, 'state' : `(theta, thetadot)`, size 2.
    """
    def __init__(self, **parameters):
        """
        Parameters
        ----------
        **parameters : dict
            Physical parameters 'mass' (kg), 'length' (m), 'damping'
            (N m s / rad), and 'gravity' (m / s^2). Defaults are used for
            parameters not given.
        """
        super().__init__()

        self.parameters = PendulumParameters(**parameters)

        self.DeclareContinuousState(2)
        self._tau = self.DeclareVectorInputPort('tau', 1)
        self._state = self.DeclareVectorOutputPort(
            'state', 2, lambda context: context._state)

    def get_actuation_input_port(self):
        return self._tau

    def get_state_output_port(self):
        return self._state

    def DoCalcTimeDerivatives(self, context):
        theta, thetadot = context._state
        tau = self._tau.Eval(context)[0]

        p = self.parameters
        ml2 = p.mass * p.length ** 2
        thetaddot = (tau - p.mass * p.gravity * p.length * np.sin(theta)
                     - p.damping * thetadot) / ml2

        return np.array([thetadot, thetaddot])

    def CalcTotalEnergy(self, context):
        """Kinetic plus potential energy, with zero potential energy at the
        pivot height."""
        self.ValidateContext(context)
        theta, thetadot = context._state
        p = self.parameters
        kinetic = 0.5 * p.mass * (p.length * thetadot) ** 2
        potential = -p.mass * p.gravity * p.length * np.cos(theta)
        return kinetic + potential
