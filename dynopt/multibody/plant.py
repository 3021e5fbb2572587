import numpy as np
from scipy.spatial.transform import Rotation

from .geometry import GeometryInstance, Role
from .transforms import RigidTransform


class RigidBody:
    """A rigid body of a `MultibodyPlant`, with its attached geometry."""
    def __init__(self, name, model_instance, index, mass=0.):
        self._name = name
        self._model_instance = model_instance
        self._index = index
        self.mass = float(mass)
        # Pose in world used if the body is welded to world by `Finalize`
        self._default_pose = RigidTransform()
        self._geometries = []

    def name(self):
        return self._name

    def model_instance(self):
        return self._model_instance

    def index(self):
        return self._index

    def geometries(self, role=None):
        if role is None:
            return list(self._geometries)
        return [g for g in self._geometries if g.role == role]

    def __repr__(self):
        return f"RigidBody('{self._name}')"


class Joint:
    """
    Template superclass for joints connecting a parent body P to a child body
    C. The joint has a frame J fixed on the parent, located at `X_PJ`, and the
    child frame is located at `X_JC` relative to the moving joint frame M, so
    that `X_PC(q) = X_PJ @ X_JM(q) @ X_JC`.

    Subclasses implement `num_positions` and `X_JM`.
    """
    def __init__(self, name, parent, child, X_PJ=None, X_JC=None,
                 axis=(0., 0., 1.), lower_limit=-np.inf, upper_limit=np.inf):
        if parent is child:
            raise ValueError(f"Joint '{name}' connects body "
                             f"'{child.name()}' to itself")
        self._name = name
        self._parent = parent
        self._child = child
        self.X_PJ = RigidTransform() if X_PJ is None else X_PJ
        self.X_JC = RigidTransform() if X_JC is None else X_JC

        axis = np.reshape(np.asarray(axis, dtype=float), -1)
        norm = np.linalg.norm(axis)
        if axis.shape[0] != 3 or norm < 1e-12:
            raise ValueError(f"Joint '{name}' axis must be a nonzero 3-vector")
        self._axis = axis / norm

        lower = np.broadcast_to(np.asarray(lower_limit, dtype=float),
                                (self.num_positions(),))
        upper = np.broadcast_to(np.asarray(upper_limit, dtype=float),
                                (self.num_positions(),))
        if np.any(lower > upper):
            raise ValueError(f"Joint '{name}' has lower_limit > upper_limit")
        self._lower = np.array(lower)
        self._upper = np.array(upper)
        self._position_start = None

    def name(self):
        return self._name

    def parent_body(self):
        return self._parent

    def child_body(self):
        return self._child

    def axis(self):
        return np.copy(self._axis)

    def position_lower_limits(self):
        return np.copy(self._lower)

    def position_upper_limits(self):
        return np.copy(self._upper)

    def position_start(self):
        """Index of this joint's first position in the plant's position
        vector. Assigned by `MultibodyPlant.Finalize`."""
        return self._position_start

    def num_positions(self):
        raise NotImplementedError

    def default_positions(self):
        """Zero, clipped to the joint limits."""
        return np.clip(np.zeros(self.num_positions()), self._lower,
                       self._upper)

    def X_JM(self, q):
        """Pose of the moving frame M in the joint frame J at positions
        `q`."""
        raise NotImplementedError

    def X_PC(self, q):
        return self.X_PJ @ self.X_JM(q) @ self.X_JC

    def __repr__(self):
        return f"{type(self).__name__}('{self._name}', " \
               f"parent='{self._parent.name()}', " \
               f"child='{self._child.name()}')"


class RevoluteJoint(Joint):
    """Rotation by angle `q` about `axis`."""
    def num_positions(self):
        return 1

    def X_JM(self, q):
        q = np.reshape(q, -1)[0]
        return RigidTransform(Rotation.from_rotvec(q * self._axis))


class PrismaticJoint(Joint):
    """Translation by distance `q` along `axis`."""
    def num_positions(self):
        return 1

    def X_JM(self, q):
        q = np.reshape(q, -1)[0]
        return RigidTransform(p=q * self._axis)


class WeldJoint(Joint):
    """Rigid attachment with no degrees of freedom."""
    def num_positions(self):
        return 0

    def X_JM(self, q):
        return RigidTransform()


class MultibodyPlant:
    """
    A tree of rigid bodies connected by joints, rooted at the world body. The
    plant is built by adding bodies, joints and geometry (usually through a
    `Parser`) and must then be finalized, after which its topology is fixed
    and kinematics can be computed.
    """
    world_model_instance = 0
    default_model_instance = 1

    def __init__(self, time_step=0.):
        """
        Parameters
        ----------
        time_step : float, default=0.
            Discrete update period. Zero means a continuous plant.
        """
        if time_step < 0.:
            raise ValueError("time_step must be non-negative")
        self._time_step = float(time_step)
        self._model_instances = ['WorldModelInstance', 'DefaultModelInstance']
        self._bodies = [RigidBody('world', self.world_model_instance, 0)]
        self._joints = []
        self._finalized = False

    def time_step(self):
        return self._time_step

    def is_discrete(self):
        return self._time_step > 0.

    def is_finalized(self):
        return self._finalized

    def _throw_if_finalized(self, method):
        if self._finalized:
            raise RuntimeError(f"{method}() cannot be called after "
                               f"Finalize()")

    def _throw_if_not_finalized(self, method):
        if not self._finalized:
            raise RuntimeError(f"{method}() requires Finalize() to have been "
                               f"called")

    def world_body(self):
        return self._bodies[0]

    def AddModelInstance(self, name):
        self._throw_if_finalized('AddModelInstance')
        if name in self._model_instances:
            raise ValueError(f"Model instance '{name}' already exists")
        self._model_instances.append(name)
        return len(self._model_instances) - 1

    def GetModelInstanceName(self, model_instance):
        return self._model_instances[model_instance]

    def num_model_instances(self):
        return len(self._model_instances)

    def AddRigidBody(self, name, model_instance=None, mass=0.):
        """
        Add a body. Body names must be unique within a model instance.

        Returns
        -------
        body : `RigidBody`
        """
        self._throw_if_finalized('AddRigidBody')
        if model_instance is None:
            model_instance = self.default_model_instance
        if not 0 <= model_instance < len(self._model_instances):
            raise ValueError(f"Invalid model instance {model_instance}")
        if self.HasBodyNamed(name, model_instance):
            raise ValueError(f"Model instance "
                             f"'{self._model_instances[model_instance]}' "
                             f"already has a body named '{name}'")
        body = RigidBody(name, model_instance, len(self._bodies), mass)
        self._bodies.append(body)
        return body

    def AddJoint(self, joint):
        """
        Add a joint. A body can have at most one parent joint, and joint names
        must be unique within the model instance of the child body.

        Returns
        -------
        joint : `Joint`
            The same joint.
        """
        self._throw_if_finalized('AddJoint')
        if not isinstance(joint, Joint):
            raise TypeError(f"Expected a Joint, got {type(joint).__name__}")
        for body in (joint.parent_body(), joint.child_body()):
            if body.index() >= len(self._bodies) \
                    or self._bodies[body.index()] is not body:
                raise ValueError(f"Body '{body.name()}' does not belong to "
                                 f"this plant")
        if joint.child_body() is self.world_body():
            raise ValueError("The world body cannot be a joint's child")
        instance = joint.child_body().model_instance()
        if self._find_by_name(self._joints, joint.name(), instance,
                              lambda j: j.child_body().model_instance()):
            raise ValueError(f"Model instance "
                             f"'{self._model_instances[instance]}' already "
                             f"has a joint named '{joint.name()}'")
        if self._parent_joint(joint.child_body()) is not None:
            raise ValueError(f"Body '{joint.child_body().name()}' already has "
                             f"a parent joint")
        self._joints.append(joint)
        return joint

    def WeldFrames(self, parent, child, X_PC=None):
        return self.AddJoint(WeldJoint(
            f"{parent.name()}_welds_to_{child.name()}", parent, child, X_PC))

    def _register_geometry(self, body, X_BG, shape, name, role, color):
        self._throw_if_finalized('Register geometry')
        geometry = GeometryInstance(name, shape, X_BG, role, color)
        body._geometries.append(geometry)
        return geometry

    def RegisterVisualGeometry(self, body, X_BG, shape, name, color=None):
        return self._register_geometry(body, X_BG, shape, name,
                                       Role.kIllustration, color)

    def RegisterCollisionGeometry(self, body, X_BG, shape, name):
        return self._register_geometry(body, X_BG, shape, name,
                                       Role.kProximity, None)

    def _parent_joint(self, body):
        for joint in self._joints:
            if joint.child_body() is body:
                return joint
        return None

    def Finalize(self):
        """
        Fix the plant's topology. Bodies without a parent joint are welded to
        the world at their default pose, and joints are ordered from the world
        outward so that each position has a fixed index.

        Raises
        ------
        ValueError
            If the joints contain a kinematic loop.
        """
        self._throw_if_finalized('Finalize')

        for body in self._bodies[1:]:
            if self._parent_joint(body) is None:
                self._joints.append(WeldJoint(
                    f"{body.name()}_weld", self.world_body(), body,
                    body._default_pose))

        # Breadth-first from world; unreached bodies lie on a loop
        ordered, frontier = [], [self.world_body()]
        while frontier:
            parent = frontier.pop(0)
            for joint in self._joints:
                if joint.parent_body() is parent:
                    ordered.append(joint)
                    frontier.append(joint.child_body())
        if len(ordered) != len(self._joints):
            loop = [j.name() for j in self._joints if j not in ordered]
            raise ValueError(f"Kinematic loop detected in joints {loop}")

        start = 0
        for joint in self._joints:
            joint._position_start = start
            start += joint.num_positions()

        self._topological_order = ordered
        self._finalized = True

    def num_bodies(self):
        """Number of bodies, including the world body."""
        return len(self._bodies)

    def num_joints(self):
        return len(self._joints)

    def num_positions(self):
        return sum(joint.num_positions() for joint in self._joints)

    def bodies(self):
        return list(self._bodies)

    def joints(self):
        return list(self._joints)

    def HasBodyNamed(self, name, model_instance=None):
        return bool(self._find_by_name(self._bodies, name, model_instance,
                                       lambda b: b.model_instance()))

    def GetBodyByName(self, name, model_instance=None):
        return self._get_unique(
            self._find_by_name(self._bodies, name, model_instance,
                               lambda b: b.model_instance()),
            'body', name)

    def GetJointByName(self, name, model_instance=None):
        return self._get_unique(
            self._find_by_name(self._joints, name, model_instance,
                               lambda j: j.child_body().model_instance()),
            'joint', name)

    @staticmethod
    def _find_by_name(elements, name, model_instance, instance_of):
        return [e for e in elements if e.name() == name
                and (model_instance is None
                     or instance_of(e) == model_instance)]

    @staticmethod
    def _get_unique(matches, kind, name):
        if not matches:
            raise ValueError(f"No {kind} named '{name}'")
        if len(matches) > 1:
            raise ValueError(f"Multiple {kind}s named '{name}'; specify a "
                             f"model instance")
        return matches[0]

    def GetPositionLowerLimits(self):
        self._throw_if_not_finalized('GetPositionLowerLimits')
        return np.concatenate([np.zeros(0)] + [
            j.position_lower_limits() for j in self._joints])

    def GetPositionUpperLimits(self):
        self._throw_if_not_finalized('GetPositionUpperLimits')
        return np.concatenate([np.zeros(0)] + [
            j.position_upper_limits() for j in self._joints])

    def GetDefaultPositions(self):
        self._throw_if_not_finalized('GetDefaultPositions')
        return np.concatenate([np.zeros(0)] + [
            j.default_positions() for j in self._joints])

    def CalcBodyPosesInWorld(self, q=None):
        """
        Forward kinematics.

        Parameters
        ----------
        q : (num_positions,) array, optional
            Joint positions. Defaults to `GetDefaultPositions()`.

        Returns
        -------
        X_WB : list of `RigidTransform`
            Pose of each body in world, indexed by body index.
        """
        self._throw_if_not_finalized('CalcBodyPosesInWorld')
        if q is None:
            q = self.GetDefaultPositions()
        q = np.reshape(np.asarray(q, dtype=float), -1)
        if q.shape[0] != self.num_positions():
            raise ValueError(f"q must have size {self.num_positions()}")

        X_WB = [None] * len(self._bodies)
        X_WB[0] = RigidTransform()
        for joint in self._topological_order:
            start = joint.position_start()
            q_joint = q[start:start + joint.num_positions()]
            X_WP = X_WB[joint.parent_body().index()]
            X_WB[joint.child_body().index()] = X_WP @ joint.X_PC(q_joint)
        return X_WB

    def GetGeometries(self, role=None):
        """All (body, geometry) pairs with the given role, or all roles if
        `role` is None."""
        return [(body, g) for body in self._bodies for g in body.geometries(role)]

    def CalcGeometryPosesInWorld(self, q=None, role=None):
        """
        Returns
        -------
        poses : list of (`GeometryInstance`, `RigidTransform`)
            Each geometry with the given role and its pose `X_WG` in world.
        """
        X_WB = self.CalcBodyPosesInWorld(q)
        return [(g, X_WB[body.index()] @ g.X_BG)
                for body, g in self.GetGeometries(role)]
