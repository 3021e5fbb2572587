import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest
from matplotlib import pyplot as plt

from dynopt.multibody import MultibodyPlant, Parser, ModelInspector

from ._utilities import two_link_urdf


@pytest.fixture
def plant():
    plant = MultibodyPlant()
    Parser(plant).AddModelFromString(two_link_urdf, 'urdf')
    plant.Finalize()
    return plant


def test_requires_finalized_plant():
    plant = MultibodyPlant()
    Parser(plant).AddModelFromString(two_link_urdf, 'urdf')
    with pytest.raises(RuntimeError, match='finalized'):
        ModelInspector(plant)


def test_sliders(plant):
    inspector = ModelInspector(plant)
    try:
        assert len(inspector.sliders) == plant.num_positions() == 2
        assert [s.label.get_text() for s in inspector.sliders] == [
            'joint1', 'joint2']
        # Slider ranges follow the joint limits
        assert inspector.sliders[0].valmin == -1.5
        assert inspector.sliders[0].valmax == 1.5
        assert inspector.sliders[1].valmin == 0.
        assert inspector.sliders[1].valmax == 0.5
        np.testing.assert_allclose(inspector.positions(), [0., 0.])

        inspector.set_positions([0.3, 0.2])
        np.testing.assert_allclose(inspector.positions(), [0.3, 0.2])
        np.testing.assert_allclose(
            [s.val for s in inspector.sliders], [0.3, 0.2])

        # Moving a slider moves the model
        inspector.sliders[0].set_val(-1.)
        np.testing.assert_allclose(inspector.positions(), [-1., 0.2])

        with pytest.raises(ValueError):
            inspector.set_positions([0.])
    finally:
        plt.close(inspector.fig)


def test_layers(plant):
    inspector = ModelInspector(plant)
    try:
        assert inspector.num_geometries('visual') == 3
        assert inspector.num_geometries('collision') == 2

        assert inspector.layer_visible('visual')
        assert not inspector.layer_visible('collision')

        inspector.set_layer_visible('collision', True)
        assert inspector.layer_visible('collision')
        assert all(artist[-1].get_visible()
                   for artist in inspector._artists['collision'])

        inspector.set_layer_visible('visual', False)
        assert not inspector.layer_visible('visual')
        assert not any(artist[-1].get_visible()
                       for artist in inspector._artists['visual'])

        with pytest.raises(ValueError):
            inspector.set_layer_visible('hidden', True)
    finally:
        plt.close(inspector.fig)


def test_show_collision(plant):
    inspector = ModelInspector(plant, show_collision=True, figsize=(4, 3))
    try:
        assert inspector.layer_visible('collision')
        np.testing.assert_allclose(inspector.fig.get_size_inches(), [4, 3])
    finally:
        plt.close(inspector.fig)
