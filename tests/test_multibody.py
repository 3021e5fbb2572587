import pytest

import numpy as np
from scipy.spatial.transform import Rotation

from dynopt.multibody import (RigidTransform, Role, Box, Sphere, Cylinder,
                              Mesh, GeometryInstance, RevoluteJoint,
                              PrismaticJoint, WeldJoint, MultibodyPlant)

from ._utilities import write_model


rng = np.random.default_rng()


def _random_transform():
    return RigidTransform(Rotation.from_rotvec(rng.normal(size=3)),
                          rng.normal(size=3))


def test_transform_composition():
    X_AB = _random_transform()
    X_BC = _random_transform()
    X_AC = X_AB @ X_BC

    p_C = rng.normal(size=3)
    np.testing.assert_allclose(X_AC @ p_C, X_AB @ (X_BC @ p_C), atol=1e-12)
    np.testing.assert_allclose(X_AC.GetAsMatrix4(),
                               X_AB.GetAsMatrix4() @ X_BC.GetAsMatrix4(),
                               atol=1e-12)

    assert (X_AB @ X_AB.inverse()).IsNearlyEqualTo(RigidTransform.Identity())
    assert X_AB.multiply(X_AB.inverse()).IsNearlyEqualTo(RigidTransform())

    # Multiple points at once, one per column
    points = rng.normal(size=(3, 5))
    transformed = X_AB @ points
    for k in range(5):
        np.testing.assert_allclose(transformed[:, k], X_AB @ points[:, k],
                                   atol=1e-12)


def test_transform_from_pose():
    X = RigidTransform.from_pose([1., 2., 3.], [0., 0., np.pi / 2.])
    np.testing.assert_allclose(X.translation(), [1., 2., 3.])
    np.testing.assert_allclose(X @ np.array([1., 0., 0.]), [1., 3., 3.],
                               atol=1e-12)
    np.testing.assert_allclose(X.rpy(), [0., 0., np.pi / 2.], atol=1e-12)

    # Roll, then pitch, then yaw about fixed axes
    rpy = [0.1, -0.2, 0.3]
    R = RigidTransform.from_pose(rpy=rpy).rotation()
    Rx = Rotation.from_euler('x', rpy[0]).as_matrix()
    Ry = Rotation.from_euler('y', rpy[1]).as_matrix()
    Rz = Rotation.from_euler('z', rpy[2]).as_matrix()
    np.testing.assert_allclose(R, Rz @ Ry @ Rx, atol=1e-12)

    assert RigidTransform.from_pose().IsNearlyEqualTo(RigidTransform())
    assert 'RigidTransform' in repr(X)


def test_transform_bad_inputs():
    with pytest.raises(ValueError):
        RigidTransform(np.ones((3, 3)))
    with pytest.raises(ValueError):
        RigidTransform(np.eye(2))
    with pytest.raises(ValueError):
        RigidTransform(p=[1., 2.])


@pytest.mark.parametrize('shape', [Box(1., 2., 3.), Sphere(0.5),
                                   Cylinder(0.5, 2.)])
def test_shape_triangles(shape):
    vertices, faces = shape.triangles()
    assert vertices.ndim == 2 and vertices.shape[1] == 3
    assert faces.ndim == 2 and faces.shape[1] == 3
    assert faces.min() >= 0 and faces.max() < vertices.shape[0]


def test_shape_extents():
    vertices, faces = Box(1., 2., 3.).triangles()
    assert vertices.shape == (8, 3) and faces.shape == (12, 3)
    np.testing.assert_allclose(vertices.max(axis=0), [0.5, 1., 1.5])
    np.testing.assert_allclose(vertices.min(axis=0), [-0.5, -1., -1.5])

    vertices, _ = Sphere(0.5).triangles()
    np.testing.assert_allclose(np.linalg.norm(vertices, axis=1), 0.5)

    vertices, _ = Cylinder(0.5, 2.).triangles()
    np.testing.assert_allclose(np.abs(vertices[:, 2]), 1.)
    assert np.linalg.norm(vertices[:, :2], axis=1).max() == pytest.approx(0.5)

    with pytest.raises(ValueError):
        Box(1., 0., 1.)
    with pytest.raises(ValueError):
        Sphere(-1.)
    with pytest.raises(ValueError):
        Cylinder(1., 0.)


def _mesh_area(vertices, faces):
    a, b, c = (vertices[faces[:, i]] for i in range(3))
    return 0.5 * np.linalg.norm(np.cross(b - a, c - a), axis=1).sum()


def test_obj_mesh(tmp_path):
    obj = "\n".join(["# square", "v 0 0 0", "v 1 0 0", "v 1 1 0", "v 0 1 0",
                     "vn 0 0 1", "f 1//1 2//1 3//1 4//1", ""])
    filepath = write_model(tmp_path, 'square.obj', obj)

    vertices, faces = Mesh(filepath, scale=2.).triangles()
    assert faces.shape == (2, 3)
    np.testing.assert_allclose(vertices.max(axis=0), [2., 2., 0.])
    np.testing.assert_allclose(vertices.min(axis=0), [0., 0., 0.])
    assert _mesh_area(vertices, faces) == pytest.approx(4.)


def test_stl_mesh(tmp_path):
    stl = "\n".join(["solid facet", "  facet normal 0 0 1", "    outer loop",
                     "      vertex 0 0 0", "      vertex 1 0 0",
                     "      vertex 0 1 0", "    endloop", "  endfacet",
                     "endsolid facet", ""])
    filepath = write_model(tmp_path, 'facet.stl', stl)

    vertices, faces = Mesh(filepath, scale=[1., 3., 1.]).triangles()
    assert faces.shape == (1, 3)
    np.testing.assert_allclose(vertices.max(axis=0), [1., 3., 0.])
    assert _mesh_area(vertices, faces) == pytest.approx(1.5)


def test_unreadable_meshes(tmp_path):
    with pytest.warns(RuntimeWarning):
        vertices, faces = Mesh(str(tmp_path / 'model.stl')).triangles()
    assert vertices.shape == (0, 3) and faces.shape == (0, 3)

    with pytest.warns(RuntimeWarning):
        vertices, faces = Mesh(str(tmp_path / 'missing.obj')).triangles()
    assert faces.shape == (0, 3)


def test_geometry_instance():
    visual = GeometryInstance('visual', Box(1., 1., 1.))
    assert visual.role == Role.kIllustration
    np.testing.assert_allclose(visual.color, [0.9, 0.9, 0.9, 1.])
    assert visual.X_BG.IsNearlyEqualTo(RigidTransform())

    collision = GeometryInstance('collision', Sphere(1.),
                                 role=Role.kProximity)
    assert collision.color.shape == (4,)

    with pytest.raises(TypeError):
        GeometryInstance('bad', 'box')
    with pytest.raises(TypeError):
        GeometryInstance('bad', Box(1., 1., 1.), role='visual')


def test_joints():
    plant = MultibodyPlant()
    a = plant.AddRigidBody('a')
    b = plant.AddRigidBody('b')

    revolute = RevoluteJoint('revolute', a, b, axis=[0., 0., 2.])
    np.testing.assert_allclose(revolute.axis(), [0., 0., 1.])
    assert revolute.num_positions() == 1
    X = revolute.X_PC([np.pi / 2.])
    np.testing.assert_allclose(X @ np.array([1., 0., 0.]), [0., 1., 0.],
                               atol=1e-12)

    prismatic = PrismaticJoint('prismatic', a, b, axis=[1., 0., 0.],
                               lower_limit=0.5, upper_limit=1.)
    np.testing.assert_allclose(prismatic.X_PC(2.).translation(), [2., 0., 0.])
    # Zero clipped to the limits
    np.testing.assert_allclose(prismatic.default_positions(), [0.5])

    X_PJ = RigidTransform(p=[0., 0., 1.])
    weld = WeldJoint('weld', a, b, X_PJ)
    assert weld.num_positions() == 0
    assert weld.X_PC([]).IsNearlyEqualTo(X_PJ)

    with pytest.raises(ValueError):
        RevoluteJoint('self', a, a)
    with pytest.raises(ValueError):
        RevoluteJoint('no_axis', a, b, axis=[0., 0., 0.])
    with pytest.raises(ValueError):
        PrismaticJoint('limits', a, b, lower_limit=1., upper_limit=-1.)


def _make_arm(plant=None):
    """World -> (revolute about z at height 1) -> upper -> (prismatic along
    x, offset 1) -> lower."""
    if plant is None:
        plant = MultibodyPlant()
    upper = plant.AddRigidBody('upper', mass=1.)
    lower = plant.AddRigidBody('lower', mass=0.5)
    plant.AddJoint(RevoluteJoint(
        'shoulder', plant.world_body(), upper,
        X_PJ=RigidTransform(p=[0., 0., 1.]), lower_limit=-2.,
        upper_limit=2.))
    plant.AddJoint(PrismaticJoint(
        'slider', upper, lower, X_PJ=RigidTransform(p=[1., 0., 0.]),
        axis=[1., 0., 0.], lower_limit=0., upper_limit=0.5))
    return plant, upper, lower


def test_plant_forward_kinematics():
    plant, upper, lower = _make_arm()
    plant.Finalize()

    assert plant.is_finalized()
    assert plant.num_bodies() == 3
    assert plant.num_joints() == 2
    assert plant.num_positions() == 2
    assert plant.GetJointByName('slider').position_start() == 1
    np.testing.assert_allclose(plant.GetPositionLowerLimits(), [-2., 0.])
    np.testing.assert_allclose(plant.GetPositionUpperLimits(), [2., 0.5])
    np.testing.assert_allclose(plant.GetDefaultPositions(), [0., 0.])

    X_WB = plant.CalcBodyPosesInWorld()
    assert len(X_WB) == 3
    assert X_WB[0].IsNearlyEqualTo(RigidTransform())
    np.testing.assert_allclose(X_WB[upper.index()].translation(),
                               [0., 0., 1.])
    np.testing.assert_allclose(X_WB[lower.index()].translation(),
                               [1., 0., 1.])

    X_WB = plant.CalcBodyPosesInWorld([np.pi / 2., 0.5])
    np.testing.assert_allclose(X_WB[lower.index()].translation(),
                               [0., 1.5, 1.], atol=1e-12)
    np.testing.assert_allclose(X_WB[lower.index()].rotation(),
                               X_WB[upper.index()].rotation())

    with pytest.raises(ValueError):
        plant.CalcBodyPosesInWorld([0.])


def test_plant_weld_free_bodies():
    plant = MultibodyPlant(time_step=0.001)
    assert plant.is_discrete() and plant.time_step() == 0.001
    body = plant.AddRigidBody('floating')
    body._default_pose = RigidTransform(p=[0., 2., 0.])
    plant.Finalize()

    assert plant.num_joints() == 1
    weld = plant.GetJointByName('floating_weld')
    assert isinstance(weld, WeldJoint)
    assert weld.parent_body() is plant.world_body()
    assert plant.num_positions() == 0
    np.testing.assert_allclose(
        plant.CalcBodyPosesInWorld()[body.index()].translation(),
        [0., 2., 0.])

    with pytest.raises(ValueError):
        MultibodyPlant(time_step=-1.)


def test_plant_weld_frames():
    plant = MultibodyPlant()
    base = plant.AddRigidBody('base')
    joint = plant.WeldFrames(plant.world_body(), base,
                             RigidTransform(p=[0., 0., 0.5]))
    assert joint.name() == 'world_welds_to_base'
    plant.Finalize()
    np.testing.assert_allclose(
        plant.CalcBodyPosesInWorld()[base.index()].translation(),
        [0., 0., 0.5])


def test_plant_model_instances_and_names():
    plant = MultibodyPlant()
    assert plant.num_model_instances() == 2
    assert plant.GetModelInstanceName(0) == 'WorldModelInstance'
    robot1 = plant.AddModelInstance('robot1')
    robot2 = plant.AddModelInstance('robot2')
    assert (robot1, robot2) == (2, 3)
    assert plant.GetModelInstanceName(robot2) == 'robot2'
    with pytest.raises(ValueError):
        plant.AddModelInstance('robot1')

    link1 = plant.AddRigidBody('link', robot1)
    link2 = plant.AddRigidBody('link', robot2)
    assert link1.model_instance() == robot1
    with pytest.raises(ValueError):
        plant.AddRigidBody('link', robot1)
    with pytest.raises(ValueError):
        plant.AddRigidBody('other', 10)

    assert plant.HasBodyNamed('link')
    assert plant.HasBodyNamed('link', robot2)
    assert not plant.HasBodyNamed('link', plant.default_model_instance)
    assert plant.GetBodyByName('link', robot2) is link2
    assert plant.GetBodyByName('world') is plant.world_body()
    # Ambiguous without a model instance
    with pytest.raises(ValueError):
        plant.GetBodyByName('link')
    with pytest.raises(ValueError):
        plant.GetBodyByName('missing')
    with pytest.raises(ValueError):
        plant.GetJointByName('missing')


def test_plant_joint_errors():
    plant, upper, lower = _make_arm()
    other = MultibodyPlant().AddRigidBody('other')

    with pytest.raises(TypeError):
        plant.AddJoint('shoulder')
    with pytest.raises(ValueError):
        plant.AddJoint(RevoluteJoint('foreign', upper, other))
    with pytest.raises(ValueError):
        plant.AddJoint(RevoluteJoint('to_world', upper, plant.world_body()))
    with pytest.raises(ValueError):
        plant.AddJoint(RevoluteJoint('shoulder', lower, upper))
    # lower already has a parent joint
    with pytest.raises(ValueError):
        plant.AddJoint(RevoluteJoint('second_parent', plant.world_body(),
                                     lower))


def test_plant_kinematic_loop():
    plant = MultibodyPlant()
    a = plant.AddRigidBody('a')
    b = plant.AddRigidBody('b')
    plant.AddJoint(RevoluteJoint('ab', a, b))
    plant.AddJoint(RevoluteJoint('ba', b, a))
    with pytest.raises(ValueError, match='loop'):
        plant.Finalize()


def test_plant_finalize_state():
    plant, upper, _ = _make_arm()
    with pytest.raises(RuntimeError):
        plant.CalcBodyPosesInWorld()
    with pytest.raises(RuntimeError):
        plant.GetDefaultPositions()

    plant.Finalize()
    with pytest.raises(RuntimeError):
        plant.Finalize()
    with pytest.raises(RuntimeError):
        plant.AddRigidBody('late')
    with pytest.raises(RuntimeError):
        plant.RegisterVisualGeometry(upper, None, Box(1., 1., 1.), 'late')


def test_plant_geometry_poses():
    plant, upper, lower = _make_arm()
    plant.RegisterVisualGeometry(upper, RigidTransform(p=[0.5, 0., 0.]),
                                 Box(1., 0.1, 0.1), 'upper_visual',
                                 color=[1., 0., 0., 1.])
    plant.RegisterVisualGeometry(lower, None, Sphere(0.1), 'lower_visual')
    plant.RegisterCollisionGeometry(lower, None, Sphere(0.1),
                                    'lower_collision')
    plant.Finalize()

    assert len(plant.GetGeometries()) == 3
    assert len(plant.GetGeometries(Role.kIllustration)) == 2
    assert len(plant.GetGeometries(Role.kProximity)) == 1
    assert [g.name for g in upper.geometries()] == ['upper_visual']
    np.testing.assert_allclose(upper.geometries()[0].color, [1., 0., 0., 1.])

    poses = plant.CalcGeometryPosesInWorld([np.pi / 2., 0.],
                                           Role.kIllustration)
    assert [g.name for g, _ in poses] == ['upper_visual', 'lower_visual']
    np.testing.assert_allclose(poses[0][1].translation(), [0., 0.5, 1.],
                               atol=1e-12)
    np.testing.assert_allclose(poses[1][1].translation(), [0., 1., 1.],
                               atol=1e-12)
