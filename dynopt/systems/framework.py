"""
Block diagram modeling. A `System` has vector valued input and output ports
and optionally continuous state `x` with dynamics `dx/dt = f(t, x, u)`.
Systems are wired together with a `DiagramBuilder` into a `Diagram`, which is
itself a `System`.

Systems are immutable descriptions of a model. All values that change during a
simulation (time, state, fixed input values) live in a `Context`, created with
`System.CreateDefaultContext`. The context of a `Diagram` holds one subcontext
per subsystem.

Output ports are evaluated lazily: `OutputPort.Eval(context)` computes the
output from the context, evaluating the inputs it depends on by following
connections through the diagram. A cycle of such dependencies (an algebraic
loop) raises a `RuntimeError` when evaluated.
"""

import numpy as np

from dynopt.utilities import check_int_input, resize_vector


class ContinuousStateVector:
    """View of the continuous state stored in a `Context`. For diagram
    contexts, this is the stacked state of all subsystems."""
    def __init__(self, context):
        self._context = context

    def size(self):
        return self._context.num_continuous_states()

    def CopyToVector(self):
        """Copy of the state as a flat array."""
        return self._context._get_state()

    def SetFromVector(self, value):
        """Overwrite the state with a flat array of the same size."""
        self._context._set_state(resize_vector(value, self.size()))

    def GetAtIndex(self, i):
        return float(self.CopyToVector()[i])

    def SetAtIndex(self, i, value):
        x = self.CopyToVector()
        x[i] = value
        self.SetFromVector(x)

    def __getitem__(self, i):
        return self.CopyToVector()[i]

    def __setitem__(self, i, value):
        self.SetAtIndex(i, value)

    def __len__(self):
        return self.size()

    def __str__(self):
        return str(self.CopyToVector())


class Context:
    """
    Time, continuous state, and fixed input values of a `System`. Create
    contexts with `System.CreateDefaultContext` rather than directly.
    """
    def __init__(self, system):
        self._system = system
        self._time = 0.
        self._state = np.zeros(0)
        self._fixed_inputs = dict()
        self._subcontexts = []
        self._parent = None
        self._index_in_parent = None
        # (context id, output port index) pairs being evaluated, for detecting
        # algebraic loops
        self._evaluating = set()
        # Storage for systems which record data, such as `VectorLogSink`
        self._log = None

    def get_system(self):
        return self._system

    def get_time(self):
        return self._time

    def SetTime(self, t):
        self._time = float(t)
        for sub in self._subcontexts:
            sub.SetTime(t)

    def num_continuous_states(self):
        if self._subcontexts:
            return sum(sub.num_continuous_states()
                       for sub in self._subcontexts)
        return self._state.shape[0]

    def num_subcontexts(self):
        return len(self._subcontexts)

    def get_continuous_state_vector(self):
        return ContinuousStateVector(self)

    def get_mutable_continuous_state_vector(self):
        return ContinuousStateVector(self)

    def SetContinuousState(self, x):
        self.get_mutable_continuous_state_vector().SetFromVector(x)

    def SetTimeAndContinuousState(self, t, x):
        self.SetTime(t)
        self.SetContinuousState(x)

    def _get_state(self):
        if self._subcontexts:
            return np.concatenate([np.zeros(0)] + [
                sub._get_state() for sub in self._subcontexts])
        return np.copy(self._state)

    def _set_state(self, x):
        if self._subcontexts:
            i = 0
            for sub in self._subcontexts:
                n = sub.num_continuous_states()
                sub._set_state(x[i:i + n])
                i += n
        else:
            self._state = np.array(x, dtype=float)

    def _root(self):
        context = self
        while context._parent is not None:
            context = context._parent
        return context

    def _find_subcontext(self, system):
        """Depth first search for the context of `system`. Returns `None` if
        not found."""
        if self._system is system:
            return self
        for sub in self._subcontexts:
            found = sub._find_subcontext(system)
            if found is not None:
                return found
        return None

    def Clone(self):
        """Deep copy of the context, detached from any parent context."""
        clone = self._clone()
        clone._parent = None
        clone._index_in_parent = None
        return clone

    def _clone(self):
        clone = Context(self._system)
        clone._time = self._time
        clone._state = np.copy(self._state)
        clone._fixed_inputs = {k: np.copy(v)
                               for k, v in self._fixed_inputs.items()}
        if self._log is not None:
            clone._log = self._log.copy()
        for i, sub in enumerate(self._subcontexts):
            sub_clone = sub._clone()
            sub_clone._parent = clone
            sub_clone._index_in_parent = i
            clone._subcontexts.append(sub_clone)
        return clone

    def __str__(self):
        name = self._system.get_name() or type(self._system).__name__
        return f"Context of {name} at t={self._time}: " \
               f"x={self._get_state()}"


class InputPort:
    """A vector valued input port of a `System`."""
    def __init__(self, system, index, name, size):
        self._system = system
        self._index = index
        self._name = name
        self._size = size

    def get_system(self):
        return self._system

    def get_index(self):
        return self._index

    def get_name(self):
        return self._name

    def size(self):
        return self._size

    def FixValue(self, context, value):
        """
        Fix the value of this input port in `context`. Fixed values take
        precedence over diagram connections.

        Parameters
        ----------
        context : `Context`
            A context created by this port's system.
        value : (size,) array_like

        Returns
        -------
        value : (size,) array
        """
        self._system.ValidateContext(context)
        value = np.copy(resize_vector(value, self._size))
        context._fixed_inputs[self._index] = value
        return np.copy(value)

    def HasValue(self, context):
        """Returns `True` if the port is fixed or connected in `context`."""
        self._system.ValidateContext(context)
        if self._index in context._fixed_inputs:
            return True
        parent = context._parent
        if parent is None:
            return False
        return parent._system._has_subsystem_input(
            parent, context._index_in_parent, self._index)

    def Eval(self, context):
        """
        Evaluate the input in `context`.

        Returns
        -------
        value : (size,) array

        Raises
        ------
        RuntimeError
            If the port is neither fixed nor connected.
        """
        self._system.ValidateContext(context)
        if self._index in context._fixed_inputs:
            return np.copy(context._fixed_inputs[self._index])

        parent = context._parent
        if parent is not None:
            value = parent._system._eval_subsystem_input(
                parent, context._index_in_parent, self._index)
            if value is not None:
                return resize_vector(value, self._size)

        raise RuntimeError(f"Input port '{self._name}' of system "
                           f"'{self._system.get_name()}' is neither connected "
                           "nor fixed")

    def __str__(self):
        return f"InputPort '{self._name}' of '{self._system.get_name()}'"


class OutputPort:
    """A vector valued output port of a `System`, computed from a context by a
    calculation function."""
    def __init__(self, system, index, name, size, calc):
        self._system = system
        self._index = index
        self._name = name
        self._size = size
        self._calc = calc

    def get_system(self):
        return self._system

    def get_index(self):
        return self._index

    def get_name(self):
        return self._name

    def size(self):
        return self._size

    def Eval(self, context):
        """
        Evaluate the output in `context`.

        Returns
        -------
        value : (size,) array

        Raises
        ------
        RuntimeError
            If evaluation requires the value of this same output (an algebraic
            loop).
        """
        self._system.ValidateContext(context)

        key = (id(context), self._index)
        evaluating = context._root()._evaluating
        if key in evaluating:
            raise RuntimeError(f"Algebraic loop detected: evaluating output "
                               f"port '{self._name}' of system "
                               f"'{self._system.get_name()}' requires its own "
                               "value")

        evaluating.add(key)
        try:
            value = self._calc(context)
        finally:
            evaluating.discard(key)

        return np.copy(resize_vector(value, self._size))

    def __str__(self):
        return f"OutputPort '{self._name}' of '{self._system.get_name()}'"


class System:
    """
    Template superclass for systems. Subclasses are `LeafSystem`, which
    implements its own ports and dynamics, and `Diagram`, which is built from
    other systems.
    """
    def __init__(self):
        self._name = ''
        self._input_ports = []
        self._output_ports = []
        self._owner = None

    def get_name(self):
        return self._name

    def set_name(self, name):
        if not isinstance(name, str):
            raise TypeError("name must be a str")
        self._name = name

    def __str__(self):
        return f"{type(self).__name__} '{self._name}'"

    def num_input_ports(self):
        return len(self._input_ports)

    def num_output_ports(self):
        return len(self._output_ports)

    def get_input_port(self, port_index=None):
        """
        Get an input port by index. The index can be omitted if the system has
        exactly one input port.
        """
        return _get_port(self, self._input_ports, port_index, 'input')

    def get_output_port(self, port_index=None):
        """
        Get an output port by index. The index can be omitted if the system has
        exactly one output port.
        """
        return _get_port(self, self._output_ports, port_index, 'output')

    def GetInputPort(self, name):
        for port in self._input_ports:
            if port.get_name() == name:
                return port
        raise ValueError(f"System '{self._name}' has no input port "
                         f"named '{name}'")

    def GetOutputPort(self, name):
        for port in self._output_ports:
            if port.get_name() == name:
                return port
        raise ValueError(f"System '{self._name}' has no output port "
                         f"named '{name}'")

    def num_continuous_states(self):
        raise NotImplementedError

    def CreateDefaultContext(self):
        """
        Create a new context for this system, with time zero, the default
        state, and no fixed inputs.

        Returns
        -------
        context : `Context`
        """
        return self._make_context()

    def ValidateContext(self, context):
        """
        Raises
        ------
        TypeError
            If `context` is not a `Context`.
        ValueError
            If `context` was not created for this system.
        """
        if not isinstance(context, Context):
            raise TypeError(f"Expected a Context, got "
                            f"{type(context).__name__}")
        if context._system is not self:
            raise ValueError(f"The context was created for "
                             f"{context._system}, not for {self}")

    def EvalTimeDerivatives(self, context):
        """
        Evaluate the time derivatives of the continuous state.

        Returns
        -------
        xdot : (num_continuous_states,) array
        """
        raise NotImplementedError

    def _make_context(self):
        raise NotImplementedError

    def _leaf_systems(self):
        """Iterate over all leaf systems contained in this system."""
        raise NotImplementedError

    def _eval_subsystem_input(self, context, subsystem_index, port_index):
        return None

    def _has_subsystem_input(self, context, subsystem_index, port_index):
        return False


class LeafSystem(System):
    """
    Template superclass for systems implementing their own ports and dynamics.
    Subclasses declare ports and state in `__init__` and override
    `DoCalcTimeDerivatives` if they have continuous state.
    """
    def __init__(self):
        super().__init__()
        self._default_state = np.zeros(0)

    def DeclareVectorInputPort(self, name, size):
        """
        Declare a vector valued input port.

        Parameters
        ----------
        name : str
            Port name, unique among the system's input ports.
        size : int
            Size of the input vector.

        Returns
        -------
        port : `InputPort`
        """
        size = check_int_input(size, 'size', low=0)
        if any(p.get_name() == name for p in self._input_ports):
            raise ValueError(f"Input port '{name}' is already declared")
        port = InputPort(self, len(self._input_ports), name, size)
        self._input_ports.append(port)
        return port

    def DeclareVectorOutputPort(self, name, size, calc):
        """
        Declare a vector valued output port.

        Parameters
        ----------
        name : str
            Port name, unique among the system's output ports.
        size : int
            Size of the output vector.
        calc : callable
            Function with signature `calc(context)` returning the output as an
            array of size `size`.

        Returns
        -------
        port : `OutputPort`
        """
        size = check_int_input(size, 'size', low=0)
        if not callable(calc):
            raise TypeError("calc must be callable")
        if any(p.get_name() == name for p in self._output_ports):
            raise ValueError(f"Output port '{name}' is already declared")
        port = OutputPort(self, len(self._output_ports), name, size, calc)
        self._output_ports.append(port)
        return port

    def DeclareContinuousState(self, num_states, default=None):
        """
        Declare continuous state of the system.

        Parameters
        ----------
        num_states : int
            Size of the state vector.
        default : (num_states,) array_like, optional
            Default state used by `CreateDefaultContext`. Zero if omitted.
        """
        num_states = check_int_input(num_states, 'num_states', low=0)
        if default is None:
            self._default_state = np.zeros(num_states)
        else:
            self._default_state = resize_vector(default, num_states)

    def num_continuous_states(self):
        return self._default_state.shape[0]

    def DoCalcTimeDerivatives(self, context):
        """
        Calculate the time derivatives of the continuous state. Must be
        overridden by subclasses with continuous state.

        Returns
        -------
        xdot : (num_continuous_states,) array
        """
        raise NotImplementedError(f"{type(self).__name__} declares continuous "
                                  "state but does not implement "
                                  "DoCalcTimeDerivatives")

    def EvalTimeDerivatives(self, context):
        self.ValidateContext(context)
        n = self.num_continuous_states()
        if n == 0:
            return np.zeros(0)
        return resize_vector(self.DoCalcTimeDerivatives(context), n)

    def _make_context(self):
        context = Context(self)
        context._state = np.copy(self._default_state)
        return context

    def _leaf_systems(self):
        yield self


class Diagram(System):
    """
    A system composed of subsystems wired together. Build diagrams with a
    `DiagramBuilder`.
    """
    def __init__(self, systems, connections, input_port_map,
                 output_port_map):
        super().__init__()
        self._systems = list(systems)
        # (subsystem index, input port index) ->
        #   (subsystem index, output port index)
        self._connections = dict(connections)
        # (subsystem index, input port index) -> diagram input port index
        self._input_port_map = dict()
        # diagram output port index -> (subsystem index, output port index)
        self._output_port_map = []

        for i, (name, targets) in enumerate(input_port_map):
            size = self._systems[targets[0][0]].get_input_port(
                targets[0][1]).size()
            self._input_ports.append(InputPort(self, i, name, size))
            for target in targets:
                self._input_port_map[target] = i

        for i, (name, (sys_idx, port_idx)) in enumerate(output_port_map):
            source = self._systems[sys_idx].get_output_port(port_idx)
            self._output_ports.append(OutputPort(
                self, i, name, source.size(),
                _make_exported_output_calc(sys_idx, source)))
            self._output_port_map.append((sys_idx, port_idx))

        for system in self._systems:
            system._owner = self

    def GetSystems(self):
        return list(self._systems)

    def GetSubsystemByName(self, name):
        for system in self._systems:
            if system.get_name() == name:
                return system
        raise ValueError(f"Diagram '{self._name}' has no subsystem named "
                         f"'{name}'")

    def num_continuous_states(self):
        return sum(s.num_continuous_states() for s in self._systems)

    def connections(self):
        """
        Returns
        -------
        connections : list of (`OutputPort`, `InputPort`) tuples
        """
        return [(self._systems[src[0]].get_output_port(src[1]),
                 self._systems[dst[0]].get_input_port(dst[1]))
                for dst, src in self._connections.items()]

    def GetSubsystemContext(self, subsystem, context):
        """
        Get the subcontext of `subsystem`, which may be nested inside another
        diagram, from the context of this diagram.

        Raises
        ------
        ValueError
            If `subsystem` is not part of this diagram.
        """
        self.ValidateContext(context)
        found = context._find_subcontext(subsystem)
        if found is None or subsystem is self:
            raise ValueError(f"{subsystem} is not a subsystem of {self}")
        return found

    def GetMutableSubsystemContext(self, subsystem, context):
        return self.GetSubsystemContext(subsystem, context)

    def EvalTimeDerivatives(self, context):
        self.ValidateContext(context)
        return np.concatenate([np.zeros(0)] + [
            system.EvalTimeDerivatives(sub)
            for system, sub in zip(self._systems, context._subcontexts)])

    def GetGraphvizString(self, max_depth=None):
        """
        Graphviz DOT representation of the diagram.

        Parameters
        ----------
        max_depth : int, optional
            Maximum depth of nested diagrams to expand. Diagrams deeper than
            this are drawn as a single node.

        Returns
        -------
        dot : str
        """
        from .graphviz import diagram_to_dot
        return diagram_to_dot(self, max_depth=max_depth)

    def _make_context(self):
        context = Context(self)
        for i, system in enumerate(self._systems):
            sub = system._make_context()
            sub._parent = context
            sub._index_in_parent = i
            context._subcontexts.append(sub)
        return context

    def _leaf_systems(self):
        for system in self._systems:
            yield from system._leaf_systems()

    def _eval_subsystem_input(self, context, subsystem_index, port_index):
        key = (subsystem_index, port_index)
        if key in self._connections:
            sys_idx, out_idx = self._connections[key]
            return self._systems[sys_idx].get_output_port(out_idx).Eval(
                context._subcontexts[sys_idx])
        if key in self._input_port_map:
            return self.get_input_port(self._input_port_map[key]).Eval(context)
        return None

    def _has_subsystem_input(self, context, subsystem_index, port_index):
        key = (subsystem_index, port_index)
        if key in self._connections:
            return True
        if key in self._input_port_map:
            return self.get_input_port(
                self._input_port_map[key]).HasValue(context)
        return False


class DiagramBuilder:
    """
    Collects systems and the connections between them, then builds a
    `Diagram`. A builder can only be built once.
    """
    def __init__(self):
        self._systems = []
        self._connections = dict()
        self._input_port_map = []
        self._output_port_map = []
        self._built = False

    def _check_not_built(self):
        if self._built:
            raise RuntimeError("DiagramBuilder has already been built; create "
                               "a new DiagramBuilder")

    def _system_index(self, system):
        for i, s in enumerate(self._systems):
            if s is system:
                return i
        raise ValueError(f"{system} has not been added to this builder")

    def AddSystem(self, system):
        """
        Add a system to the diagram. Systems without a name are given a unique
        name based on their type.

        Returns
        -------
        system : `System`
            The added system.
        """
        self._check_not_built()
        if not isinstance(system, System):
            raise TypeError(f"Expected a System, got {type(system).__name__}")
        if system._owner is not None or any(s is system for s in self._systems):
            raise ValueError(f"{system} already belongs to a diagram")

        if not system.get_name():
            base = type(system).__name__
            name, n = base, 1
            while any(s.get_name() == name for s in self._systems):
                name = f"{base}_{n}"
                n += 1
            system.set_name(name)
        elif any(s.get_name() == system.get_name() for s in self._systems):
            raise ValueError(f"A system named '{system.get_name()}' has "
                             "already been added")

        self._systems.append(system)
        return system

    def AddNamedSystem(self, name, system):
        system.set_name(name)
        return self.AddSystem(system)

    def GetSystems(self):
        return list(self._systems)

    def Connect(self, src, dest):
        """
        Connect an output port to an input port.

        Parameters
        ----------
        src : `OutputPort`
            Output port of a system in the builder.
        dest : `InputPort`
            Input port of a system in the builder.

        Raises
        ------
        ValueError
            If the ports have different sizes or do not belong to systems in
            the builder.
        RuntimeError
            If `dest` is already connected or exported.
        """
        self._check_not_built()
        if not isinstance(src, OutputPort) or not isinstance(dest, InputPort):
            raise TypeError("Connect requires an OutputPort and an InputPort")
        if src.size() != dest.size():
            raise ValueError(f"Cannot connect {src} of size {src.size()} to "
                             f"{dest} of size {dest.size()}")

        key = (self._system_index(dest.get_system()), dest.get_index())
        self._check_input_free(key, dest)
        self._connections[key] = (self._system_index(src.get_system()),
                                  src.get_index())

    def _check_input_free(self, key, port):
        if key in self._connections or any(
                key in targets for _, targets in self._input_port_map):
            raise RuntimeError(f"{port} is already connected")

    def ExportInput(self, input_port, name=None):
        """
        Export an input port of a subsystem as an input port of the diagram.

        Returns
        -------
        index : int
            Index of the new diagram input port.
        """
        self._check_not_built()
        key = (self._system_index(input_port.get_system()),
               input_port.get_index())
        self._check_input_free(key, input_port)

        if name is None:
            name = f"{input_port.get_system().get_name()}_" \
                   f"{input_port.get_name()}"
        if any(n == name for n, _ in self._input_port_map):
            raise ValueError(f"Diagram input port '{name}' already exists")

        self._input_port_map.append((name, [key]))
        return len(self._input_port_map) - 1

    def ExportOutput(self, output_port, name=None):
        """
        Export an output port of a subsystem as an output port of the diagram.

        Returns
        -------
        index : int
            Index of the new diagram output port.
        """
        self._check_not_built()
        key = (self._system_index(output_port.get_system()),
               output_port.get_index())

        if name is None:
            name = f"{output_port.get_system().get_name()}_" \
                   f"{output_port.get_name()}"
        if any(n == name for n, _ in self._output_port_map):
            raise ValueError(f"Diagram output port '{name}' already exists")

        self._output_port_map.append((name, key))
        return len(self._output_port_map) - 1

    def Build(self):
        """
        Build the diagram. The builder cannot be used afterwards.

        Returns
        -------
        diagram : `Diagram`
        """
        self._check_not_built()
        if not self._systems:
            raise RuntimeError("Cannot build a Diagram with no systems")
        self._built = True
        return Diagram(self._systems, self._connections, self._input_port_map,
                       self._output_port_map)


def _get_port(system, ports, port_index, kind):
    if port_index is None:
        if len(ports) != 1:
            raise ValueError(f"{system} has {len(ports)} {kind} ports; the "
                             "port index must be specified")
        return ports[0]
    port_index = check_int_input(port_index, 'port_index', low=0)
    if port_index >= len(ports):
        raise ValueError(f"{system} has no {kind} port {port_index}")
    return ports[port_index]


def _make_exported_output_calc(subsystem_index, source):
    def calc(context):
        return source.Eval(context._subcontexts[subsystem_index])
    return calc
