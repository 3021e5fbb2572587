import os

import pytest

import numpy as np

from dynopt.multibody import (MultibodyPlant, Parser, Role, Box, Sphere,
                              Cylinder, Mesh, RevoluteJoint, PrismaticJoint,
                              WeldJoint)

from ._utilities import write_model, two_link_urdf, two_link_sdf


def _load(tmp_path, filename, text):
    plant = MultibodyPlant()
    filepath = write_model(tmp_path, filename, text)
    instances = Parser(plant).AddModels(filepath)
    return plant, instances


def test_urdf_topology(tmp_path):
    plant, instances = _load(tmp_path, 'two_link.urdf', two_link_urdf)
    assert instances == [2]
    assert plant.GetModelInstanceName(2) == 'two_link'
    assert plant.num_bodies() == 4

    base = plant.GetBodyByName('base')
    assert base.model_instance() == 2
    assert base.mass == 2.
    assert plant.GetBodyByName('link1').mass == 0.

    joint1 = plant.GetJointByName('joint1')
    joint2 = plant.GetJointByName('joint2')
    assert isinstance(joint1, RevoluteJoint)
    assert isinstance(joint2, PrismaticJoint)
    assert joint1.parent_body() is base
    assert joint2.child_body() is plant.GetBodyByName('link2')
    np.testing.assert_allclose(joint1.axis(), [0., 0., 1.])
    np.testing.assert_allclose(joint2.axis(), [1., 0., 0.])

    plant.Finalize()
    # base is welded to world at Finalize
    assert isinstance(plant.GetJointByName('base_weld'), WeldJoint)
    assert plant.num_positions() == 2
    np.testing.assert_allclose(plant.GetPositionLowerLimits(), [-1.5, 0.])
    np.testing.assert_allclose(plant.GetPositionUpperLimits(), [1.5, 0.5])


def test_urdf_kinematics(tmp_path):
    plant, _ = _load(tmp_path, 'two_link.urdf', two_link_urdf)
    plant.Finalize()

    link1 = plant.GetBodyByName('link1')
    link2 = plant.GetBodyByName('link2')

    X_WB = plant.CalcBodyPosesInWorld()
    np.testing.assert_allclose(X_WB[link1.index()].translation(),
                               [0., 0., 0.1])
    np.testing.assert_allclose(X_WB[link2.index()].translation(),
                               [1., 0., 0.1])

    X_WB = plant.CalcBodyPosesInWorld([np.pi / 2., 0.25])
    np.testing.assert_allclose(X_WB[link2.index()].translation(),
                               [0., 1.25, 0.1], atol=1e-12)


def test_urdf_geometry(tmp_path):
    plant, _ = _load(tmp_path, 'two_link.urdf', two_link_urdf)
    plant.Finalize()

    visual = plant.GetGeometries(Role.kIllustration)
    collision = plant.GetGeometries(Role.kProximity)
    assert [body.name() for body, _ in visual] == ['base', 'link1', 'link2']
    assert [body.name() for body, _ in collision] == ['base', 'link2']

    base_visual = visual[0][1]
    assert isinstance(base_visual.shape, Box)
    np.testing.assert_allclose(base_visual.shape.size, [0.2, 0.2, 0.1])
    # Color from the top level material
    np.testing.assert_allclose(base_visual.color, [1., 0., 0., 1.])

    link1_visual = visual[1][1]
    assert isinstance(link1_visual.shape, Cylinder)
    assert link1_visual.shape.length == 1.
    np.testing.assert_allclose(link1_visual.color, [0., 0., 1., 1.])
    # The cylinder is pitched to lie along the link's x axis
    poses = plant.CalcGeometryPosesInWorld(role=Role.kIllustration)
    X_WG = poses[1][1]
    np.testing.assert_allclose(X_WG.translation(), [0.5, 0., 0.1])
    np.testing.assert_allclose(X_WG.rotation() @ [0., 0., 1.], [1., 0., 0.],
                               atol=1e-12)

    assert isinstance(collision[1][1].shape, Sphere)
    assert visual[2][1].name == 'link2_visual0'


def test_urdf_joint_types(tmp_path):
    urdf = """<robot name="joints">
      <link name="a"/>
      <link name="b"/>
      <link name="c"/>
      <joint name="spin" type="continuous">
        <parent link="world"/>
        <child link="a"/>
        <axis xyz="0 1 0"/>
      </joint>
      <joint name="free" type="floating">
        <parent link="a"/>
        <child link="b"/>
      </joint>
      <joint name="fixed" type="fixed">
        <parent link="b"/>
        <child link="c"/>
        <origin xyz="0 0 1"/>
      </joint>
    </robot>"""
    plant = MultibodyPlant()
    with pytest.warns(RuntimeWarning, match='floating'):
        Parser(plant).AddModelFromString(urdf, 'urdf')
    plant.Finalize()

    spin = plant.GetJointByName('spin')
    assert isinstance(spin, RevoluteJoint)
    assert spin.parent_body() is plant.world_body()
    assert np.isinf(spin.position_lower_limits()[0])
    assert isinstance(plant.GetJointByName('free'), WeldJoint)
    assert isinstance(plant.GetJointByName('fixed'), WeldJoint)
    assert plant.num_positions() == 1

    c = plant.GetBodyByName('c')
    np.testing.assert_allclose(
        plant.CalcBodyPosesInWorld()[c.index()].translation(), [0., 0., 1.])


def test_urdf_mesh_uri(tmp_path):
    os.makedirs(tmp_path / 'meshes')
    write_model(tmp_path / 'meshes', 'part.obj',
                "v 0 0 0\nv 1 0 0\nv 0 1 0\nf 1 2 3\n")
    urdf = """<robot name="meshy">
      <link name="part">
        <visual>
          <geometry>
            <mesh filename="package://meshy/meshes/part.obj" scale="2 2 2"/>
          </geometry>
        </visual>
      </link>
    </robot>"""
    plant, _ = _load(tmp_path, 'meshy.urdf', urdf)

    (_, geometry), = plant.GetGeometries()
    assert isinstance(geometry.shape, Mesh)
    assert os.path.samefile(geometry.shape.filename,
                            tmp_path / 'meshes' / 'part.obj')
    vertices, faces = geometry.shape.triangles()
    np.testing.assert_allclose(vertices.max(axis=0), [2., 2., 0.])
    assert faces.shape == (1, 3)


def test_sdf_model(tmp_path):
    plant, instances = _load(tmp_path, 'two_link.sdf', two_link_sdf)
    assert instances == [2]
    plant.Finalize()

    base = plant.GetBodyByName('base')
    arm = plant.GetBodyByName('arm')
    hinge = plant.GetJointByName('hinge')
    assert isinstance(hinge, RevoluteJoint)
    assert hinge.parent_body() is base and hinge.child_body() is arm
    np.testing.assert_allclose(hinge.position_lower_limits(), [-3.])
    np.testing.assert_allclose(hinge.position_upper_limits(), [3.])

    # The model pose places base at z = 1; the hinge is at the base origin
    X_WB = plant.CalcBodyPosesInWorld()
    np.testing.assert_allclose(X_WB[base.index()].translation(), [0., 0., 1.])
    np.testing.assert_allclose(X_WB[arm.index()].translation(), [1., 0., 1.],
                               atol=1e-12)

    X_WB = plant.CalcBodyPosesInWorld([np.pi / 2.])
    np.testing.assert_allclose(X_WB[arm.index()].translation(), [0., 1., 1.],
                               atol=1e-12)

    base_visual = base.geometries(Role.kIllustration)[0]
    assert base_visual.name == 'base_visual'
    np.testing.assert_allclose(base_visual.color, [0.5, 0.5, 0.5, 1.])
    assert [g.name for g in arm.geometries(Role.kProximity)] == [
        'arm_collision']


def test_sdf_relative_poses(tmp_path):
    sdf = """<sdf version="1.9">
      <model name="frames">
        <link name="a">
          <pose>1 0 0 0 0 0</pose>
        </link>
        <link name="b">
          <pose relative_to="a">0 1 0 0 0 1.5707963267948966</pose>
        </link>
        <joint name="slide" type="prismatic">
          <pose relative_to="__model__">0 0 0 0 0 0</pose>
          <parent>world</parent>
          <child>b</child>
          <axis>
            <xyz expressed_in="__model__">1 0 0</xyz>
          </axis>
        </joint>
      </model>
    </sdf>"""
    plant, _ = _load(tmp_path, 'frames.sdf', sdf)
    plant.Finalize()

    a = plant.GetBodyByName('a')
    b = plant.GetBodyByName('b')
    X_WB = plant.CalcBodyPosesInWorld()
    np.testing.assert_allclose(X_WB[a.index()].translation(), [1., 0., 0.])
    np.testing.assert_allclose(X_WB[b.index()].translation(), [1., 1., 0.],
                               atol=1e-12)

    # The axis is along model x, whatever the orientation of b
    slide = plant.GetJointByName('slide')
    X_WB = plant.CalcBodyPosesInWorld([0.5])
    np.testing.assert_allclose(X_WB[b.index()].translation(), [1.5, 1., 0.],
                               atol=1e-12)
    np.testing.assert_allclose(X_WB[b.index()].rpy(),
                               [0., 0., np.pi / 2.], atol=1e-12)
    assert slide.num_positions() == 1


def test_sdf_multiple_models(tmp_path):
    sdf = """<sdf version="1.7">
      <world name="default">
        <model name="first"><link name="body"/></model>
        <model name="second"><link name="body"/></model>
      </world>
    </sdf>"""
    plant, instances = _load(tmp_path, 'world.sdf', sdf)
    assert instances == [2, 3]
    assert plant.GetBodyByName('body', 3).model_instance() == 3

    parser = Parser(MultibodyPlant())
    with pytest.raises(ValueError):
        parser.AddModelFromFile(os.path.join(tmp_path, 'world.sdf'),
                                model_name='renamed')


def test_model_name(tmp_path):
    plant = MultibodyPlant()
    parser = Parser(plant)
    assert parser.plant() is plant

    filepath = write_model(tmp_path, 'two_link.urdf', two_link_urdf)
    first = parser.AddModelFromFile(filepath)
    second = parser.AddModelFromFile(filepath, model_name='copy')
    assert plant.GetModelInstanceName(first) == 'two_link'
    assert plant.GetModelInstanceName(second) == 'copy'
    assert plant.GetBodyByName('link2', second).model_instance() == second

    # The model name must be unique
    with pytest.raises(ValueError):
        parser.AddModelFromFile(filepath)

    plant.Finalize()
    assert plant.num_positions() == 4


def test_include_warning(tmp_path):
    sdf = """<sdf version="1.7">
      <model name="with_include">
        <link name="body"/>
        <include><uri>model://other</uri></include>
      </model>
    </sdf>"""
    plant = MultibodyPlant()
    with pytest.warns(RuntimeWarning, match='include'):
        Parser(plant).AddModelFromString(sdf, 'sdf')
    assert plant.HasBodyNamed('body')


def test_parse_errors(tmp_path):
    parser = Parser(MultibodyPlant())

    with pytest.raises(FileNotFoundError):
        parser.AddModels(os.path.join(tmp_path, 'missing.urdf'))
    with pytest.raises(ValueError):
        parser.AddModels(write_model(tmp_path, 'model.xml', two_link_urdf))
    with pytest.raises(ValueError):
        parser.AddModels(write_model(tmp_path, 'bad.urdf', '<robot name="x">'))
    with pytest.raises(ValueError):
        parser.AddModels(write_model(tmp_path, 'wrong_root.urdf',
                                     two_link_sdf))
    with pytest.raises(ValueError):
        parser.AddModels(write_model(tmp_path, 'empty.sdf',
                                     '<sdf version="1.7"/>'))
    with pytest.raises(ValueError):
        parser.AddModelFromString(two_link_urdf, 'xml')
    with pytest.raises(ValueError):
        parser.AddModelFromString('<robot', 'urdf')


def test_malformed_elements():
    bad_link = """<robot name="bad_link">
      <link name="a"/>
      <joint name="j" type="revolute">
        <parent link="a"/>
        <child link="missing"/>
      </joint>
    </robot>"""
    with pytest.raises(ValueError, match='missing'):
        Parser(MultibodyPlant()).AddModelFromString(bad_link, 'urdf')

    bad_origin = """<robot name="bad_origin">
      <link name="a">
        <visual>
          <origin xyz="0 0"/>
          <geometry><sphere radius="1"/></geometry>
        </visual>
      </link>
    </robot>"""
    with pytest.raises(ValueError):
        Parser(MultibodyPlant()).AddModelFromString(bad_origin, 'urdf')

    cycle = """<sdf version="1.9">
      <model name="cycle">
        <link name="a"><pose relative_to="b">0 0 0 0 0 0</pose></link>
        <link name="b"><pose relative_to="a">0 0 0 0 0 0</pose></link>
      </model>
    </sdf>"""
    with pytest.raises(ValueError, match='Cycle'):
        Parser(MultibodyPlant()).AddModelFromString(cycle, 'sdf')
