"""
The `multibody` module contains rigid body trees, URDF/SDFormat parsing, and a
joint-slider kinematics viewer.

---

* [`MultibodyPlant`](multibody/plant#MultibodyPlant): Bodies, joints and
    geometry, with forward kinematics.

* [`Parser`](multibody/parsing#Parser): Load `.urdf` and `.sdf` models into a
    plant.

* [`ModelInspector`](multibody/inspector#ModelInspector): View a model and
    move its joints with sliders.
"""

from .transforms import RigidTransform
from .geometry import (Role, Shape, Box, Sphere, Cylinder, Mesh,
                       GeometryInstance)
from .plant import (RigidBody, Joint, RevoluteJoint, PrismaticJoint,
                    WeldJoint, MultibodyPlant)
from .parsing import Parser
from .inspector import ModelInspector
