import numpy as np
from matplotlib import pyplot as plt
from matplotlib.widgets import CheckButtons, Slider
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from .geometry import Role
from .plant import PrismaticJoint


class ModelInspector:
    """
    Interactive kinematics viewer for a finalized `MultibodyPlant`. Geometry is
    drawn in a matplotlib 3D axes, with one slider per joint position and
    check boxes toggling the visual and collision layers.
    """
    _layers = {'visual': Role.kIllustration, 'collision': Role.kProximity}

    def __init__(self, plant, show_collision=False, figsize=(9, 7)):
        """
        Parameters
        ----------
        plant : `MultibodyPlant`
            A finalized plant.
        show_collision : bool, default=False
            Whether the collision layer is initially visible. The visual layer
            is always initially visible.
        figsize : tuple, default=(9, 7)
            Figure size in inches.
        """
        if not plant.is_finalized():
            raise RuntimeError("ModelInspector requires a finalized plant")
        self._plant = plant
        self._q = plant.GetDefaultPositions()

        n_sliders = self._q.shape[0]
        slider_height = 0.035
        bottom = 0.06 + slider_height * n_sliders

        self.fig = plt.figure(figsize=figsize)
        self.ax = self.fig.add_axes([0.02, bottom, 0.72, 0.96 - bottom],
                                    projection='3d')
        self.ax.set_xlabel('x (m)')
        self.ax.set_ylabel('y (m)')
        self.ax.set_zlabel('z (m)')
        names = [plant.GetModelInstanceName(i)
                 for i in range(2, plant.num_model_instances())]
        self.ax.set_title(', '.join(names) or 'MultibodyPlant')

        self._artists = {layer: [] for layer in self._layers}
        for layer, role in self._layers.items():
            for body, geometry in plant.GetGeometries(role):
                vertices, faces = geometry.shape.triangles()
                if faces.shape[0] == 0:
                    continue
                collection = Poly3DCollection(
                    [], facecolor=geometry.color, edgecolor='none')
                self.ax.add_collection3d(collection)
                self._artists[layer].append(
                    (body, geometry, vertices, faces, collection))

        self.sliders = []
        for joint in plant.joints():
            lower = joint.position_lower_limits()
            upper = joint.position_upper_limits()
            default_range = 1. if isinstance(joint, PrismaticJoint) else np.pi
            for k in range(joint.num_positions()):
                idx = joint.position_start() + k
                lo = -default_range if np.isinf(lower[k]) else lower[k]
                hi = default_range if np.isinf(upper[k]) else upper[k]
                hi = max(hi, lo + 1e-09)
                row = len(self.sliders)
                slider_ax = self.fig.add_axes(
                    [0.25, bottom - 0.04 - slider_height * (row + 1), 0.5,
                     0.6 * slider_height])
                slider = Slider(slider_ax, joint.name(), lo, hi,
                                valinit=np.clip(self._q[idx], lo, hi))
                slider.on_changed(self._make_slider_callback(idx))
                self.sliders.append(slider)

        check_ax = self.fig.add_axes([0.78, 0.8, 0.2, 0.12])
        self.checks = CheckButtons(check_ax, list(self._layers),
                                   [True, show_collision])
        self.checks.on_clicked(self._on_check)

        self._update()
        self._apply_visibility()
        self._set_limits()

    def _make_slider_callback(self, idx):
        def callback(value):
            self._q[idx] = value
            self._update()
        return callback

    def _on_check(self, label):
        self._apply_visibility()
        self.fig.canvas.draw_idle()

    def _apply_visibility(self):
        for layer, visible in zip(self._layers, self.checks.get_status()):
            for artist in self._artists[layer]:
                artist[-1].set_visible(visible)

    def _update(self):
        X_WB = self._plant.CalcBodyPosesInWorld(self._q)
        for artists in self._artists.values():
            for body, geometry, vertices, faces, collection in artists:
                X_WG = X_WB[body.index()] @ geometry.X_BG
                collection.set_verts((X_WG @ vertices.T).T[faces])
        self.fig.canvas.draw_idle()

    def _set_limits(self):
        """Equal axis limits enclosing all geometry in the default
        configuration."""
        X_WB = self._plant.CalcBodyPosesInWorld(self._q)
        points = [X.translation()[None] for X in X_WB]
        for artists in self._artists.values():
            for body, geometry, vertices, faces, collection in artists:
                X_WG = X_WB[body.index()] @ geometry.X_BG
                points.append((X_WG @ vertices.T).T)
        points = np.vstack(points)
        center = 0.5 * (points.max(axis=0) + points.min(axis=0))
        half = max(0.5 * np.max(points.max(axis=0) - points.min(axis=0)), 0.1)
        for set_lim, c in zip((self.ax.set_xlim, self.ax.set_ylim,
                               self.ax.set_zlim), center):
            set_lim(c - half, c + half)

    def positions(self):
        return np.copy(self._q)

    def set_positions(self, q):
        """Move the sliders and the model to joint positions `q`."""
        q = np.reshape(np.asarray(q, dtype=float), -1)
        if q.shape[0] != self._q.shape[0]:
            raise ValueError(f"q must have size {self._q.shape[0]}")
        for slider, value in zip(self.sliders, q):
            slider.eventson = False
            slider.set_val(value)
            slider.eventson = True
        self._q = np.array([slider.val for slider in self.sliders])
        self._update()

    def layer_visible(self, layer):
        return self.checks.get_status()[list(self._layers).index(layer)]

    def set_layer_visible(self, layer, visible):
        if layer not in self._layers:
            raise ValueError(f"layer must be one of {list(self._layers)}")
        if self.layer_visible(layer) != bool(visible):
            # Triggers _on_check
            self.checks.set_active(list(self._layers).index(layer))

    def num_geometries(self, layer):
        return len(self._artists[layer])

    def Run(self, block=True):
        """Show the viewer window."""
        plt.show(block=block)
