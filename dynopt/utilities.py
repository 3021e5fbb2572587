import numpy as np
import pandas as pd
from scipy.optimize import _numdiff


def check_int_input(n, argname, low=None):
    """
    Convert an input to an int, raising errors if this is not possible without
    likely loss of information or if the int is less than a specified minimum.

    Parameters
    ----------
    n : array_like, size 1
        Input to check.
    argname : str
        How to refer to the argument `n` in error messages.
    low : int, optional
        Minimum value which `n` should take.

    Raises
    ------
    TypeError
        If `n` is not an int or array_like of size 1.
    ValueError
        If `n < low`.

    Returns
    -------
    n : int
        Input `n` converted to an int, if possible.
    """
    if not isinstance(argname, str):
        raise TypeError("argname must be a str")
    if low is not None:
        low = check_int_input(low, 'low')

    try:
        n = np.squeeze(n).astype(np.int64, casting='safe')
        n = int(n)
    except TypeError:
        raise TypeError(f"{argname} must be an int")

    if low is not None and n < low:
        raise ValueError(f"{argname} must be greater than or equal to {low:d}")

    return n


def resize_vector(array, n_rows):
    """
    Reshapes or resizes an array_like to a 1d array with a specified number of
    entries.

    Parameters
    ----------
    array : array_like
        Array to reshape or resize into shape `(n_rows,)`. Arrays of size 1 are
        broadcast.
    n_rows : int
        Number of entries desired. Can be any positive int or -1. If
        `n_rows == -1` then uses `n_rows = np.size(array)`.

    Returns
    -------
    reshaped_array : (n_rows,) float array
    """
    n_rows = check_int_input(n_rows, "n_rows")
    if n_rows == -1:
        n_rows = np.size(array)
    elif n_rows < 0:
        raise ValueError("n_rows must be a non-negative int or -1")

    array = np.reshape(np.asarray(array, dtype=float), -1)
    if array.shape[0] == n_rows:
        return array
    elif array.shape[0] == 1:
        return np.full(n_rows, array[0])
    else:
        raise ValueError(f"The size of array ({array.shape[0]:d}) is not "
                         f"compatible with the desired shape ({n_rows:d},)")


def approx_derivative(fun, x0, method="3-point", rel_step=None, abs_step=None,
                      f0=None, args=(), kwargs=None):
    """
    Compute a finite difference approximation of the derivatives of an
    array-valued function. Wraps `scipy.optimize._numdiff.approx_derivative`
    so that vector-valued functions always give a 2d Jacobian, even when they
    have a single output.

    If a function maps from $R^n$ to $R^m$, its derivatives form m-by-n matrix
    called the Jacobian, where an element `[i, j]` is a partial derivative of
    `f[i]` with respect to `x[j]`.

    Parameters
    ----------
    fun : callable
        Function of which to estimate the derivatives. The argument `x` passed
        to this function is an ndarray of shape `(n,)`. It must return a float
        or an array_like of shape `(m,)`.
    x0 : (n,) array
        Point at which to estimate the derivatives.
    method : {"3-point", "2-point", "cs"}, default="3-point"
        Finite difference method to use:

            * "2-point" - use the first order accuracy forward difference.
            * "3-point" - use central difference.
            * "cs" - use a complex-step finite difference scheme.
    rel_step : array_like, optional
        Relative step size to use. If `None` (default), `rel_step` is
        selected automatically by `scipy`.
    abs_step : array_like, optional
        Absolute step size to use. Relative steps are used unless `abs_step`
        is provided.
    f0 : array_like, optional
        If not `None` it is assumed to be equal to `fun(x0)`, in this case
        `fun(x0)` is not called.
    args, kwargs : tuple and dict, optional
        Additional arguments passed to `fun`. Both empty by default.
        The calling signature is `fun(x, *args, **kwargs)`.

    Returns
    -------
    dfdx : (n,) or (m, n) array
        Finite difference approximation of the gradient, if `fun` returns a
        float, or of the Jacobian matrix.
    """
    if method not in ["2-point", "3-point", "cs"]:
        raise ValueError(f"Unknown method '{method}'. ")
    if kwargs is None:
        kwargs = {}

    x0 = np.atleast_1d(np.asarray(x0, dtype=float))

    if f0 is None:
        f0 = np.asarray(fun(x0, *args, **kwargs), dtype=float)
    else:
        f0 = np.asarray(f0, dtype=float)
    scalar_output = f0.ndim < 1

    dfdx = _numdiff.approx_derivative(fun, x0, method=method,
                                      rel_step=rel_step, abs_step=abs_step,
                                      f0=np.atleast_1d(f0), args=args,
                                      kwargs=kwargs)

    if scalar_output:
        return np.reshape(dfdx, x0.shape)
    return np.reshape(dfdx, (f0.shape[0], x0.shape[0]))


def pack_dataframe(t, y, prefix='y'):
    """
    Collect `numpy` arrays of a logged signal into a `DataFrame` which is
    convenient for saving as a .csv file.

    Parameters
    ----------
    t : (n_data,) array
        Time values of each data point.
    y : (n_signals, n_data) array
        Logged values at times `t`.
    prefix : str, default='y'
        Column names are `prefix + '1'`, ..., `prefix + str(n_signals)`.

    Returns
    -------
    data : DataFrame
        `DataFrame` with `n_data` rows and columns 't', 'y1', ..., 'yn'.
    """
    t = np.reshape(t, (1, -1))
    y = np.reshape(y, (-1, t.shape[1]))

    columns = ['t'] + [prefix + str(i + 1) for i in range(y.shape[0])]

    return pd.DataFrame(np.vstack((t, y)).T, columns=columns)


def unpack_dataframe(data, prefix='y'):
    """
    Extract `numpy` arrays from a `DataFrame` formatted by `pack_dataframe`.

    Returns
    -------
    t : (n_data,) array
    y : (n_signals, n_data) array
    """
    if not isinstance(data, pd.DataFrame):
        raise TypeError('data must be a DataFrame')

    t = data['t'].to_numpy()
    y = data[[c for c in data.columns if c.startswith(prefix)]].to_numpy().T
    return t, y


def save_data(data, filepath, overwrite=True):
    """
    Save a logged signal (or a `DataFrame` produced by `pack_dataframe`) to a
    csv file.

    Parameters
    ----------
    data : DataFrame or `VectorLog`
        Data to save. Objects implementing `to_dataframe` are converted first.
    filepath : path-like
        Where the csv file should be saved.
    overwrite : bool, default=True
        If True, overwrite the csv file at `filepath`, if it exists. If False,
        append the data to the end of the existing csv.
    """
    if hasattr(data, 'to_dataframe'):
        data = data.to_dataframe()

    if not overwrite:
        try:
            existing_data = pd.read_csv(filepath)
            data = pd.concat([existing_data, data])
        except FileNotFoundError:
            pass

    data.to_csv(filepath, index=False)


def load_data(filepath, prefix='y'):
    """
    Load a logged signal saved by `save_data`.

    Returns
    -------
    t : (n_data,) array
    y : (n_signals, n_data) array
    """
    return unpack_dataframe(pd.read_csv(filepath), prefix=prefix)
