"""
Graphviz export of block diagrams. `diagram_to_dot` produces DOT text with a
cluster per diagram, a record node per leaf system listing its input ports on
the left and output ports on the right, and an edge per connection. DOT files
are rendered to images by the external `dot` executable, which must be
installed separately (e.g. `apt install graphviz`).
"""

import shutil
import subprocess

from .framework import Diagram


def _node_id(system):
    return f"s{id(system)}"


def _escape(text):
    for char in '{}|<>"':
        text = text.replace(char, '\\' + char)
    return text


def _record_node(system):
    inputs = '|'.join(f"<u{i}>{_escape(p.get_name())}" for i, p in
                      enumerate(system._input_ports))
    outputs = '|'.join(f"<y{i}>{_escape(p.get_name())}" for i, p in
                       enumerate(system._output_ports))
    label = f"{{{_escape(system.get_name())}|{{{{{inputs}}}|{{{outputs}}}}}}}"
    return f"{_node_id(system)} [shape=record, label=\"{label}\"];"


def _input_target(diagram, key, depth, max_depth):
    """DOT endpoint of the input port `key = (subsystem, port)` of a
    subsystem of `diagram`, following exported inputs into nested diagrams."""
    system = diagram._systems[key[0]]
    if isinstance(system, Diagram) and _expand(depth + 1, max_depth):
        return f"{_node_id(system)}_u{key[1]}"
    return f"{_node_id(system)}:u{key[1]}"


def _output_source(diagram, key, depth, max_depth):
    system = diagram._systems[key[0]]
    if isinstance(system, Diagram) and _expand(depth + 1, max_depth):
        return f"{_node_id(system)}_y{key[1]}"
    return f"{_node_id(system)}:y{key[1]}"


def _expand(depth, max_depth):
    return max_depth is None or depth <= max_depth


def _diagram_lines(diagram, depth, max_depth):
    name = _escape(diagram.get_name() or type(diagram).__name__)
    node = _node_id(diagram)
    lines = [f"subgraph cluster{node} {{", "color=black",
             "concentrate=true", f"label=\"{name}\";"]

    if diagram.num_input_ports():
        lines += [f"subgraph cluster{node}inputs {{", "rank=same",
                  "color=lightgrey", "style=filled", "label=\"input ports\";"]
        for i, port in enumerate(diagram._input_ports):
            lines.append(f"{node}_u{i} [color=blue, "
                         f"label=\"{_escape(port.get_name())}\"];")
        lines.append("}")

    if diagram.num_output_ports():
        lines += [f"subgraph cluster{node}outputs {{", "rank=same",
                  "color=lightgrey", "style=filled", "label=\"output ports\";"]
        for i, port in enumerate(diagram._output_ports):
            lines.append(f"{node}_y{i} [color=green, "
                         f"label=\"{_escape(port.get_name())}\"];")
        lines.append("}")

    for system in diagram._systems:
        if isinstance(system, Diagram) and _expand(depth + 1, max_depth):
            lines += _diagram_lines(system, depth + 1, max_depth)
        else:
            lines.append(_record_node(system))

    for dst, src in diagram._connections.items():
        lines.append(f"{_output_source(diagram, src, depth, max_depth)} -> "
                     f"{_input_target(diagram, dst, depth, max_depth)};")

    for dst, i in diagram._input_port_map.items():
        lines.append(f"{node}_u{i} -> "
                     f"{_input_target(diagram, dst, depth, max_depth)} "
                     f"[color=blue];")

    for i, src in enumerate(diagram._output_port_map):
        lines.append(f"{_output_source(diagram, src, depth, max_depth)} -> "
                     f"{node}_y{i} [color=green];")

    lines.append("}")
    return lines


def diagram_to_dot(diagram, max_depth=None):
    """
    Graphviz DOT representation of a `Diagram`.

    Parameters
    ----------
    diagram : `Diagram`
        Diagram to draw.
    max_depth : int, optional
        Maximum depth of nested diagrams to expand. The top level diagram has
        depth 0. If `None`, expands all nested diagrams.

    Returns
    -------
    dot : str
    """
    if not isinstance(diagram, Diagram):
        raise TypeError(f"Expected a Diagram, got {type(diagram).__name__}")
    if max_depth is not None and max_depth < 0:
        raise ValueError("max_depth must be non-negative")

    lines = [f"digraph _{id(diagram)} {{", "rankdir=LR"]
    lines += _diagram_lines(diagram, 0, max_depth)
    lines.append("}")
    return '\n'.join(lines) + '\n'


def write_graphviz(diagram, basename, max_depth=None):
    """
    Write the DOT representation of a `Diagram` to `basename + '.dot'`.

    Returns
    -------
    filepath : str
        Path of the written file.
    """
    filepath = f"{basename}.dot"
    with open(filepath, 'w') as fh:
        fh.write(diagram.GetGraphvizString(max_depth))
    return filepath


def render_dot_to_png(basename, executable='dot'):
    """
    Render `basename + '.dot'` to `basename + '.png'` with Graphviz.

    Parameters
    ----------
    basename : str
        Path of the DOT file without extension.
    executable : str, default='dot'
        Name or path of the Graphviz executable.

    Returns
    -------
    filepath : str
        Path of the rendered image.

    Raises
    ------
    RuntimeError
        If the executable is not found or fails.
    """
    exe = shutil.which(executable)
    if exe is None:
        raise RuntimeError(f"Graphviz executable '{executable}' not found; "
                           "install Graphviz to render diagrams")

    filepath = f"{basename}.png"
    cmd = [exe, '-Tpng', f"{basename}.dot", '-o', filepath]
    try:
        subprocess.run(cmd, capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"Failed to render {basename}.dot: "
                           f"{e.stderr}") from e
    return filepath
