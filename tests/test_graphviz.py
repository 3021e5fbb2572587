import os
import subprocess
from unittest import mock

import pytest

from dynopt.systems import (DiagramBuilder, PendulumPlant, PidController,
                            diagram_to_dot, write_graphviz, render_dot_to_png)
from dynopt.systems.graphviz import _node_id

from ._utilities import Gain


def _pendulum_diagram():
    builder = DiagramBuilder()
    pendulum = builder.AddNamedSystem('pendulum', PendulumPlant())
    controller = builder.AddNamedSystem('controller',
                                        PidController([1.], [1.], [1.]))
    builder.Connect(pendulum.get_state_output_port(),
                    controller.get_input_port_estimated_state())
    builder.Connect(controller.get_output_port_control(),
                    pendulum.get_actuation_input_port())
    builder.ExportInput(controller.get_input_port_desired_state())
    diagram = builder.Build()
    diagram.set_name('diagram')
    return diagram, pendulum, controller


def test_dot_contents():
    diagram, pendulum, controller = _pendulum_diagram()
    dot = diagram.GetGraphvizString()

    assert dot.startswith('digraph')
    assert dot.endswith('}\n')
    assert dot.count('{') == dot.count('}')
    assert 'label="diagram";' in dot
    assert 'shape=record' in dot
    assert 'controller_desired_state' in dot

    p, c = _node_id(pendulum), _node_id(controller)
    assert f"{p}:y0 -> {c}:u0;" in dot
    assert f"{c}:y0 -> {p}:u0;" in dot
    assert f"{_node_id(diagram)}_u0 -> {c}:u1 [color=blue];" in dot


def test_nested_diagram_depth():
    inner_builder = DiagramBuilder()
    gain = inner_builder.AddNamedSystem('gain', Gain(2.))
    inner_builder.ExportInput(gain.u, 'u')
    inner_builder.ExportOutput(gain.y, 'y')
    inner = inner_builder.Build()
    inner.set_name('inner')

    builder = DiagramBuilder()
    builder.AddSystem(inner)
    source = builder.AddNamedSystem('source', Gain(1.))
    builder.Connect(source.y, inner.get_input_port(0))
    diagram = builder.Build()

    expanded = diagram_to_dot(diagram)
    assert f"subgraph cluster{_node_id(inner)} {{" in expanded
    assert f"{_node_id(source)}:y0 -> {_node_id(inner)}_u0;" in expanded
    assert f"{_node_id(gain)} [shape=record" in expanded

    collapsed = diagram_to_dot(diagram, max_depth=0)
    assert f"subgraph cluster{_node_id(inner)} {{" not in collapsed
    assert f"{_node_id(inner)} [shape=record" in collapsed
    assert f"{_node_id(source)}:y0 -> {_node_id(inner)}:u0;" in collapsed
    assert f"{_node_id(gain)} [" not in collapsed

    with pytest.raises(ValueError):
        diagram_to_dot(diagram, max_depth=-1)
    with pytest.raises(TypeError):
        diagram_to_dot(source)


def test_write_graphviz(tmp_path):
    diagram, _, _ = _pendulum_diagram()
    basename = os.path.join(tmp_path, 'graph')
    filepath = write_graphviz(diagram, basename)
    assert filepath == basename + '.dot'
    with open(filepath) as fh:
        assert fh.read() == diagram.GetGraphvizString()


def test_render_missing_executable(tmp_path):
    with mock.patch('shutil.which', return_value=None):
        with pytest.raises(RuntimeError, match='not found'):
            render_dot_to_png(os.path.join(tmp_path, 'graph'))


def test_render(tmp_path):
    basename = os.path.join(tmp_path, 'graph')
    with mock.patch('shutil.which', return_value='/usr/bin/dot'), \
            mock.patch('subprocess.run') as run:
        filepath = render_dot_to_png(basename)

    assert filepath == basename + '.png'
    run.assert_called_once()
    cmd = run.call_args[0][0]
    assert cmd == ['/usr/bin/dot', '-Tpng', basename + '.dot', '-o',
                   basename + '.png']


def test_render_failure(tmp_path):
    error = subprocess.CalledProcessError(1, 'dot', stderr='syntax error')
    with mock.patch('shutil.which', return_value='/usr/bin/dot'), \
            mock.patch('subprocess.run', side_effect=error):
        with pytest.raises(RuntimeError, match='syntax error'):
            render_dot_to_png(os.path.join(tmp_path, 'graph'))
