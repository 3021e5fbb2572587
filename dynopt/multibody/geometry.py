import enum
import warnings

import numpy as np
import trimesh

from .transforms import RigidTransform


class Role(enum.Enum):
    """What a geometry is used for."""
    kUnassigned = 0
    kProximity = 1
    kIllustration = 2
    kPerception = 3


class Shape:
    """Template superclass for geometric shapes, expressed in their own
    frame G. Subclasses implement `mesh`."""
    def mesh(self):
        """
        Surface mesh of the shape, for drawing.

        Returns
        -------
        mesh : `trimesh.Trimesh`
        """
        raise NotImplementedError

    def triangles(self):
        """
        Triangle mesh approximating the shape's surface, for drawing.

        Returns
        -------
        vertices : (n_vertices, 3) array
        faces : (n_faces, 3) int array
            Indices into `vertices`.
        """
        mesh = self.mesh()
        vertices = np.asarray(mesh.vertices, dtype=float).reshape(-1, 3)
        faces = np.asarray(mesh.faces, dtype=int).reshape(-1, 3)
        return vertices, faces


class Box(Shape):
    """Box centered on the origin, with sides aligned with the axes."""
    def __init__(self, width, depth, height):
        self.size = np.array([width, depth, height], dtype=float)
        if np.any(self.size <= 0.):
            raise ValueError("Box dimensions must be positive")

    def width(self):
        return self.size[0]

    def depth(self):
        return self.size[1]

    def height(self):
        return self.size[2]

    def mesh(self):
        return trimesh.creation.box(extents=self.size)

    def __repr__(self):
        return f"Box({self.size[0]}, {self.size[1]}, {self.size[2]})"


class Sphere(Shape):
    """Sphere centered on the origin."""
    def __init__(self, radius, subdivisions=2):
        if radius <= 0.:
            raise ValueError("radius must be positive")
        self.radius = float(radius)
        self.subdivisions = subdivisions

    def mesh(self):
        return trimesh.creation.icosphere(subdivisions=self.subdivisions,
                                          radius=self.radius)

    def __repr__(self):
        return f"Sphere({self.radius})"


class Cylinder(Shape):
    """Cylinder centered on the origin with its axis along z."""
    def __init__(self, radius, length, sections=16):
        if radius <= 0. or length <= 0.:
            raise ValueError("radius and length must be positive")
        self.radius = float(radius)
        self.length = float(length)
        self.sections = sections

    def mesh(self):
        return trimesh.creation.cylinder(radius=self.radius,
                                         height=self.length,
                                         sections=self.sections)

    def __repr__(self):
        return f"Cylinder({self.radius}, {self.length})"


class Mesh(Shape):
    """Triangle mesh loaded from a file in any format `trimesh` reads, such
    as .obj, .stl, .ply, or .dae. Files which cannot be read are drawn as an
    empty mesh, with a warning."""
    def __init__(self, filename, scale=1.):
        self.filename = filename
        self.scale = np.broadcast_to(np.asarray(scale, dtype=float), (3,))
        self._cache = None

    def mesh(self):
        if self._cache is None:
            self._cache = self._load()
        return self._cache

    def _load(self):
        try:
            mesh = trimesh.load_mesh(self.filename)
        except (OSError, ValueError, NotImplementedError) as e:
            warnings.warn(f"Could not read mesh {self.filename}: {e}",
                          RuntimeWarning)
            return trimesh.Trimesh()
        mesh.apply_transform(np.diag(np.append(self.scale, 1.)))
        return mesh

    def __repr__(self):
        return f"Mesh('{self.filename}')"


class GeometryInstance:
    """A shape attached to a body with a pose and a role."""
    def __init__(self, name, shape, X_BG=None, role=Role.kIllustration,
                 color=None):
        """
        Parameters
        ----------
        name : str
            Geometry name.
        shape : `Shape`
            The shape, in its own frame G.
        X_BG : `RigidTransform`, optional
            Pose of G in the body frame B. Identity if omitted.
        role : `Role`, default=`Role.kIllustration`
            Visual (`kIllustration`) or collision (`kProximity`) geometry.
        color : (4,) array_like, optional
            RGBA color for drawing.
        """
        if not isinstance(shape, Shape):
            raise TypeError(f"Expected a Shape, got {type(shape).__name__}")
        if not isinstance(role, Role):
            raise TypeError("role must be a Role")
        self.name = name
        self.shape = shape
        self.X_BG = RigidTransform() if X_BG is None else X_BG
        self.role = role
        if color is None:
            color = [0.9, 0.9, 0.9, 1.] if role == Role.kIllustration \
                else [0.5, 0.5, 1., 0.5]
        self.color = np.asarray(color, dtype=float)

    def __repr__(self):
        return f"GeometryInstance('{self.name}', {self.shape!r}, " \
               f"{self.role.name})"
