import pytest

import numpy as np

from dynopt import utilities

from ._utilities import compare_finite_difference


rng = np.random.default_rng()


@pytest.mark.parametrize('n', [0., 1.5, np.array([[5], [6]]), [7, 8], 'n'])
def test_check_int_input_bad_type(n):
    """Make sure `check_int_input` catches a range of bad input types."""
    with pytest.raises(TypeError):
        utilities.check_int_input(n, 'n')


@pytest.mark.parametrize('low', [-7., np.pi, np.array([[1, 2]]), [3, 4], 'm'])
def test_check_int_input_bad_low(low):
    """Make sure `check_int_input` catches a range of bad `low` input types."""
    with pytest.raises(TypeError):
        utilities.check_int_input(rng.choice(100), 'n', low=low)


@pytest.mark.parametrize('shape', [(), (1,), (1, 1)])
def test_check_int_input(shape):
    """Make sure `check_int_input` works with a variety of acceptable inputs."""
    n = rng.choice(100, size=shape) - 50
    _n = int(np.squeeze(n))
    assert utilities.check_int_input(n.tolist(), 'n') == _n
    for dtype in [np.int8, np.int16, np.int32, np.int64]:
        assert utilities.check_int_input(n.astype(dtype), 'n') == _n


@pytest.mark.parametrize('low', [0, 1, -5, 10])
def test_check_int_input_with_low(low):
    assert utilities.check_int_input(low, 'n', low=low) == low
    assert utilities.check_int_input(low + 1, 'n', low=low) == low + 1
    with pytest.raises(ValueError):
        utilities.check_int_input(low - 1, 'n', low=low)


@pytest.mark.parametrize('n_rows', [1, 2, 3, -1])
def test_resize_vector(n_rows):
    if n_rows > 0:
        x = rng.normal(size=n_rows)
    else:
        x = rng.normal(size=17)

    for x_in in (x, x.reshape(-1, 1), x.reshape(1, -1), x.tolist()):
        y = utilities.resize_vector(x_in, n_rows)
        assert y.shape == x.shape
        np.testing.assert_allclose(y, x)

    if n_rows > 2:
        with pytest.raises(ValueError):
            utilities.resize_vector(x[:-1], n_rows)


@pytest.mark.parametrize('n_rows', [2, 3])
def test_resize_vector_broadcast(n_rows):
    x = rng.normal()
    np.testing.assert_allclose(utilities.resize_vector(x, n_rows),
                               np.full(n_rows, x))
    np.testing.assert_allclose(utilities.resize_vector([x], n_rows),
                               np.full(n_rows, x))


def test_resize_vector_bad_n_rows():
    with pytest.raises(ValueError):
        utilities.resize_vector(np.zeros(3), -2)


@pytest.mark.parametrize('method', ['2-point', '3-point'])
def test_approx_derivative(method):
    A = rng.normal(size=(3, 4))

    def fun(x):
        return np.tanh(A @ x)

    def jac(x):
        return np.diag(1. - np.tanh(A @ x) ** 2) @ A

    x = rng.normal(size=4)
    rtol = 1e-04 if method == '2-point' else 1e-06
    compare_finite_difference(x, jac(x), fun, method=method, rtol=rtol,
                              atol=1e-06)


def test_approx_derivative_scalar_fun():
    x = rng.normal(size=3)
    grad = utilities.approx_derivative(lambda x: np.sum(x ** 2), x)
    assert grad.shape == (3,)
    np.testing.assert_allclose(grad, 2. * x, rtol=1e-06, atol=1e-08)


def test_approx_derivative_bad_method():
    with pytest.raises(ValueError):
        utilities.approx_derivative(np.sin, np.zeros(2), method='5-point')


def test_approx_derivative_single_output():
    x = rng.normal(size=3)
    jac = utilities.approx_derivative(lambda x: [np.sum(x ** 2)], x)
    assert jac.shape == (1, 3)
    np.testing.assert_allclose(jac[0], 2. * x, rtol=1e-06, atol=1e-08)


def test_approx_derivative_uses_scipy(monkeypatch):
    calls = []
    scipy_approx = utilities._numdiff.approx_derivative

    def counted(*args, **kwargs):
        calls.append(kwargs['method'])
        return scipy_approx(*args, **kwargs)

    monkeypatch.setattr(utilities._numdiff, 'approx_derivative', counted)
    utilities.approx_derivative(np.sin, np.zeros(2), method='2-point',
                                kwargs=None)
    assert calls == ['2-point']


def test_save_load_data(tmp_path):
    t = np.linspace(0., 1., 11)
    y = rng.normal(size=(2, 11))
    filepath = tmp_path / 'data.csv'

    utilities.save_data(utilities.pack_dataframe(t, y), filepath)
    t_load, y_load = utilities.load_data(filepath)
    np.testing.assert_allclose(t_load, t)
    np.testing.assert_allclose(y_load, y)

    # Appending doubles the number of rows
    utilities.save_data(utilities.pack_dataframe(t, y), filepath,
                        overwrite=False)
    t_load, y_load = utilities.load_data(filepath)
    np.testing.assert_allclose(t_load, np.concatenate((t, t)))
    assert y_load.shape == (2, 22)


def test_unpack_dataframe_bad_type():
    with pytest.raises(TypeError):
        utilities.unpack_dataframe(np.zeros((3, 2)))
