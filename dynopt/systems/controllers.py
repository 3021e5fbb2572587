import numpy as np

from .framework import LeafSystem


class PidController(LeafSystem):
    """
    Proportional-integral-derivative controller for a system with state
    `(q, v)`, where `v` is the time derivative of `q`. With the error
    `e = q_d - q`, the control is

        u = kp * e + ki * integral(e) + kd * (v_d - v),

    applied element-wise. The integral of the error is the controller's
    continuous state.

    Ports:

        * input 0, 'estimated_state' : `(q, v)`, size `2 * n`.
        * input 1, 'desired_state' : `(q_d, v_d)`, size `2 * n`.
        * output 0, 'control' : `u`, size `n`.
    """
    def __init__(self, kp, ki, kd):
        """
        Parameters
        ----------
        kp, ki, kd : (n,) array_like
            Proportional, integral, and derivative gains.
        """
        super().__init__()

        self._kp = np.reshape(np.asarray(kp, dtype=float), -1)
        self._ki = np.reshape(np.asarray(ki, dtype=float), -1)
        self._kd = np.reshape(np.asarray(kd, dtype=float), -1)

        n = self._kp.shape[0]
        if self._ki.shape[0] != n or self._kd.shape[0] != n:
            raise ValueError("kp, ki, and kd must have the same size")

        self._n = n
        self.DeclareContinuousState(n)
        self._estimated_state = self.DeclareVectorInputPort(
            'estimated_state', 2 * n)
        self._desired_state = self.DeclareVectorInputPort(
            'desired_state', 2 * n)
        self._control = self.DeclareVectorOutputPort('control', n,
                                                     self._calc_control)

    def get_Kp_vector(self):
        return np.copy(self._kp)

    def get_Ki_vector(self):
        return np.copy(self._ki)

    def get_Kd_vector(self):
        return np.copy(self._kd)

    def get_input_port_estimated_state(self):
        return self._estimated_state

    def get_input_port_desired_state(self):
        return self._desired_state

    def get_output_port_control(self):
        return self._control

    def _error(self, context):
        x = self._estimated_state.Eval(context)
        x_d = self._desired_state.Eval(context)
        return x_d - x

    def DoCalcTimeDerivatives(self, context):
        return self._error(context)[:self._n]

    def _calc_control(self, context):
        e = self._error(context)
        integral = context._state
        return (self._kp * e[:self._n] + self._ki * integral
                + self._kd * e[self._n:])
