import numpy as np


def to_string(value):
    """
    Format a value for the tutorial printouts. Vectors print as columns and
    matrices row by row, one space between entries.
    """
    if isinstance(value, np.ndarray):
        if value.ndim == 0:
            return str(value.item())
        if value.ndim == 1:
            return '\n'.join(str(v) for v in value)
        return '\n'.join(' '.join(str(v) for v in row) for row in value)
    return str(value)


def print_section(*values):
    """Print the concatenation of `values` followed by a `---` separator
    line."""
    print(''.join(to_string(v) for v in values) + '\n---')
