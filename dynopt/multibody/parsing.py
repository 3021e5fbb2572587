"""
Loading of `MultibodyPlant` models from URDF and SDFormat files.

Only the kinematic tree and geometry are read: links with their mass, visual
and collision geometry (boxes, spheres, cylinders and meshes) and their
colors; revolute, continuous, prismatic and fixed joints with their axes and
position limits. Other joint types are loaded as fixed joints with a warning.
"""

import os
import warnings
import xml.etree.ElementTree as ET

import numpy as np

from .geometry import Box, Cylinder, Mesh, Sphere
from .plant import PrismaticJoint, RevoluteJoint, WeldJoint
from .transforms import RigidTransform


_uri_schemes = ('package://', 'model://', 'file://')


def _parse_floats(text, size, name='value'):
    try:
        values = np.array([float(v) for v in str(text).split()])
    except ValueError:
        raise ValueError(f"Could not parse {name} '{text}' as numbers")
    if values.shape[0] != size:
        raise ValueError(f"Expected {size} numbers for {name}, got "
                         f"'{text}'")
    return values


def _required(element, attribute):
    value = element.get(attribute)
    if value is None:
        raise ValueError(f"<{element.tag}> is missing the '{attribute}' "
                         f"attribute")
    return value


def _child_text(element, tag, default=None):
    child = element.find(tag)
    if child is None or child.text is None:
        return default
    return child.text.strip()


def _resolve_uri(uri, base_dir):
    """Map a mesh URI to a path. Package and model URIs are looked up
    relative to the model file's directory, with and without the package
    name."""
    path = uri
    for scheme in _uri_schemes:
        if uri.startswith(scheme):
            path = uri[len(scheme):]
            if scheme != 'file://':
                candidates = [path.split('/', 1)[-1], path]
                for candidate in candidates:
                    full = os.path.join(base_dir, candidate)
                    if os.path.exists(full):
                        return full
                return os.path.join(base_dir, candidates[0])
            break
    if os.path.isabs(path):
        return path
    return os.path.join(base_dir, path)


class Parser:
    """
    Adds models from URDF (`.urdf`) and SDFormat (`.sdf`) files to a
    `MultibodyPlant`. Each model is added to a new model instance named after
    the model.
    """
    def __init__(self, plant):
        self._plant = plant

    def plant(self):
        return self._plant

    def AddModels(self, file_name):
        """
        Parse all models in a file.

        Parameters
        ----------
        file_name : str
            Path of a `.urdf` or `.sdf` file.

        Returns
        -------
        model_instances : list of int

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        ValueError
            If the file type is not supported or the file is malformed.
        """
        return self._add_models(file_name, None)

    def AddModelFromFile(self, file_name, model_name=None):
        """
        Parse a file containing a single model.

        Parameters
        ----------
        file_name : str
            Path of a `.urdf` or `.sdf` file.
        model_name : str, optional
            Name for the model instance, replacing the name in the file.

        Returns
        -------
        model_instance : int
        """
        instances = self._add_models(file_name, model_name)
        return instances[0]

    def AddModelFromString(self, file_contents, file_type, model_name=None,
                           base_dir=None):
        """
        Parse a model from a string.

        Parameters
        ----------
        file_contents : str
            URDF or SDFormat document.
        file_type : {'urdf', 'sdf'}
        model_name : str, optional
            Name for the model instance.
        base_dir : str, optional
            Directory against which mesh paths are resolved. Defaults to the
            working directory.

        Returns
        -------
        model_instance : int
        """
        file_type = file_type.lower().lstrip('.')
        if file_type not in ('urdf', 'sdf'):
            raise ValueError(f"Unsupported file type '{file_type}'; expected "
                             f"'urdf' or 'sdf'")
        try:
            root = ET.fromstring(file_contents)
        except ET.ParseError as e:
            raise ValueError(f"Malformed {file_type.upper()}: {e}") from e
        return self._add_from_root(root, file_type, model_name,
                                   base_dir or os.getcwd())[0]

    def _add_models(self, file_name, model_name):
        if not os.path.exists(file_name):
            raise FileNotFoundError(f"Model file not found: {file_name}")

        file_type = os.path.splitext(file_name)[1].lower().lstrip('.')
        if file_type not in ('urdf', 'sdf'):
            raise ValueError(f"Unsupported file extension '.{file_type}' for "
                             f"{file_name}; expected .urdf or .sdf")

        try:
            root = ET.parse(file_name).getroot()
        except ET.ParseError as e:
            raise ValueError(f"Malformed model file {file_name}: {e}") from e

        base_dir = os.path.dirname(os.path.abspath(file_name))
        return self._add_from_root(root, file_type, model_name, base_dir)

    def _add_from_root(self, root, file_type, model_name, base_dir):
        if file_type == 'urdf':
            if root.tag != 'robot':
                raise ValueError(f"Expected a <robot> root element, got "
                                 f"<{root.tag}>")
            return [_UrdfModel(self._plant, root, base_dir).add(model_name)]

        if root.tag != 'sdf':
            raise ValueError(f"Expected an <sdf> root element, got "
                             f"<{root.tag}>")
        models = root.findall('model') + root.findall('world/model')
        if root.findall('.//include'):
            warnings.warn("<include> elements are not supported and were "
                          "skipped", RuntimeWarning)
        if not models:
            raise ValueError("No <model> found in SDFormat file")
        if model_name is not None and len(models) > 1:
            raise ValueError("model_name can only be given for files "
                             "containing a single model")
        return [_SdfModel(self._plant, model, base_dir).add(model_name)
                for model in models]


class _ModelReader:
    """Shared geometry and joint handling for both formats."""
    def __init__(self, plant, element, base_dir):
        self.plant = plant
        self.element = element
        self.base_dir = base_dir
        self.bodies = dict()

    def body(self, name):
        if name == 'world':
            return self.plant.world_body()
        if name not in self.bodies:
            raise ValueError(f"Unknown link '{name}'")
        return self.bodies[name]

    def make_joint(self, name, joint_type, parent, child, X_PJ, X_JC, axis,
                   lower, upper):
        if joint_type == 'continuous':
            joint_type, lower, upper = 'revolute', -np.inf, np.inf
        if joint_type == 'revolute':
            return RevoluteJoint(name, parent, child, X_PJ, X_JC, axis,
                                 lower, upper)
        if joint_type == 'prismatic':
            return PrismaticJoint(name, parent, child, X_PJ, X_JC, axis,
                                  lower, upper)
        if joint_type != 'fixed':
            warnings.warn(f"Joint '{name}' has unsupported type "
                          f"'{joint_type}'; loading it as a fixed joint",
                          RuntimeWarning)
        return WeldJoint(name, parent, child, X_PJ, X_JC)

    def add_geometries(self, body, link, shape_reader, pose_reader,
                       color_reader):
        for tag, register in (('visual', self.plant.RegisterVisualGeometry),
                              ('collision',
                               self.plant.RegisterCollisionGeometry)):
            for k, element in enumerate(link.findall(tag)):
                geometry = element.find('geometry')
                if geometry is None:
                    raise ValueError(f"<{tag}> of link '{body.name()}' has "
                                     f"no <geometry>")
                shape = shape_reader(geometry)
                if shape is None:
                    continue
                name = element.get('name', f"{body.name()}_{tag}{k}")
                X_BG = pose_reader(element)
                if tag == 'visual':
                    register(body, X_BG, shape, name, color_reader(element))
                else:
                    register(body, X_BG, shape, name)


class _UrdfModel(_ModelReader):
    def add(self, model_name):
        plant = self.plant
        name = model_name or _required(self.element, 'name')
        instance = plant.AddModelInstance(name)

        self.materials = {
            m.get('name'): self._rgba(m)
            for m in self.element.findall('material')}

        for link in self.element.findall('link'):
            link_name = _required(link, 'name')
            if link_name == 'world':
                continue
            mass = link.find('inertial/mass')
            mass = 0. if mass is None else float(mass.get('value', 0.))
            body = plant.AddRigidBody(link_name, instance, mass)
            self.bodies[link_name] = body
            self.add_geometries(body, link, self._shape, self._origin,
                                self._color)

        for joint in self.element.findall('joint'):
            joint_name = _required(joint, 'name')
            parent = joint.find('parent')
            child = joint.find('child')
            if parent is None or child is None:
                raise ValueError(f"Joint '{joint_name}' needs <parent> and "
                                 f"<child>")
            axis = joint.find('axis')
            axis = (1., 0., 0.) if axis is None else _parse_floats(
                axis.get('xyz', '1 0 0'), 3, 'axis')
            limit = joint.find('limit')
            lower, upper = -np.inf, np.inf
            if limit is not None:
                lower = float(limit.get('lower', -np.inf))
                upper = float(limit.get('upper', np.inf))
            plant.AddJoint(self.make_joint(
                joint_name, _required(joint, 'type'),
                self.body(_required(parent, 'link')),
                self.body(_required(child, 'link')),
                self._origin(joint), None, axis, lower, upper))

        return instance

    @staticmethod
    def _origin(element):
        origin = element.find('origin')
        if origin is None:
            return RigidTransform()
        return RigidTransform.from_pose(
            _parse_floats(origin.get('xyz', '0 0 0'), 3, 'xyz'),
            _parse_floats(origin.get('rpy', '0 0 0'), 3, 'rpy'))

    @staticmethod
    def _rgba(material):
        color = material.find('color')
        if color is None or color.get('rgba') is None:
            return None
        return _parse_floats(color.get('rgba'), 4, 'rgba')

    def _color(self, visual):
        material = visual.find('material')
        if material is None:
            return None
        rgba = self._rgba(material)
        if rgba is None:
            rgba = self.materials.get(material.get('name'))
        return rgba

    def _shape(self, geometry):
        if geometry.find('box') is not None:
            return Box(*_parse_floats(
                _required(geometry.find('box'), 'size'), 3, 'box size'))
        if geometry.find('sphere') is not None:
            return Sphere(float(_required(geometry.find('sphere'), 'radius')))
        if geometry.find('cylinder') is not None:
            cylinder = geometry.find('cylinder')
            return Cylinder(float(_required(cylinder, 'radius')),
                            float(_required(cylinder, 'length')))
        if geometry.find('mesh') is not None:
            mesh = geometry.find('mesh')
            scale = mesh.get('scale')
            scale = 1. if scale is None else _parse_floats(scale, 3, 'scale')
            return Mesh(_resolve_uri(_required(mesh, 'filename'),
                                     self.base_dir), scale)
        warnings.warn(f"Unsupported geometry "
                      f"{[child.tag for child in geometry]}; skipped",
                      RuntimeWarning)
        return None


class _SdfModel(_ModelReader):
    def add(self, model_name):
        plant = self.plant
        name = model_name or _required(self.element, 'name')
        instance = plant.AddModelInstance(name)

        X_WM = self._pose(self.element)
        links = {_required(link, 'name'): link
                 for link in self.element.findall('link')}
        self.X_ML = dict()
        for link_name in links:
            self.X_ML[link_name] = self._link_pose(link_name, links, [])

        for link_name, link in links.items():
            mass = _child_text(link, 'inertial/mass', 0.)
            body = plant.AddRigidBody(link_name, instance, float(mass))
            body._default_pose = X_WM @ self.X_ML[link_name]
            self.bodies[link_name] = body
            self.add_geometries(body, link, self._shape, self._pose,
                                self._color)

        for joint in self.element.findall('joint'):
            joint_name = _required(joint, 'name')
            parent_name = _child_text(joint, 'parent')
            child_name = _child_text(joint, 'child')
            if parent_name is None or child_name is None:
                raise ValueError(f"Joint '{joint_name}' needs <parent> and "
                                 f"<child>")
            if parent_name == 'world':
                X_MP = X_WM.inverse()
            else:
                X_MP = self.X_ML[self.body(parent_name).name()]
            X_MC = self.X_ML[self.body(child_name).name()]
            # Joint poses are relative to the child link by default
            X_CJ = self._pose(joint)
            relative_to = self._relative_to(joint)
            if relative_to not in (None, child_name):
                X_CJ = X_MC.inverse() @ self._frame(relative_to, X_WM) @ X_CJ

            axis, lower, upper = (1., 0., 0.), -np.inf, np.inf
            axis_element = joint.find('axis')
            if axis_element is not None:
                axis = _parse_floats(_child_text(axis_element, 'xyz', '0 0 1'),
                                     3, 'axis')
                expressed_in = axis_element.find('xyz').get('expressed_in') \
                    if axis_element.find('xyz') is not None else None
                if expressed_in == '__model__':
                    axis = (X_MC @ X_CJ).rotation().T @ axis
                lower = float(_child_text(axis_element, 'limit/lower',
                                          -np.inf))
                upper = float(_child_text(axis_element, 'limit/upper',
                                          np.inf))

            plant.AddJoint(self.make_joint(
                joint_name, _required(joint, 'type'),
                self.body(parent_name), self.body(child_name),
                X_MP.inverse() @ X_MC @ X_CJ, X_CJ.inverse(), axis, lower,
                upper))

        return instance

    @staticmethod
    def _relative_to(element):
        pose = element.find('pose')
        if pose is None:
            return None
        return pose.get('relative_to')

    @staticmethod
    def _pose(element):
        text = _child_text(element, 'pose')
        if not text:
            return RigidTransform()
        values = _parse_floats(text, 6, 'pose')
        return RigidTransform.from_pose(values[:3], values[3:])

    def _frame(self, name, X_WM):
        """Pose in the model frame of a named frame."""
        if name == '__model__':
            return RigidTransform()
        if name == 'world':
            return X_WM.inverse()
        if name in self.X_ML:
            return self.X_ML[name]
        raise ValueError(f"Unknown frame '{name}' in relative_to")

    def _link_pose(self, link_name, links, visiting):
        """Pose of a link in the model frame, following `relative_to`."""
        if link_name in visiting:
            raise ValueError(f"Cycle in relative_to: {visiting + [link_name]}")
        link = links[link_name]
        X = self._pose(link)
        relative_to = self._relative_to(link)
        if relative_to in (None, '__model__'):
            return X
        if relative_to not in links:
            raise ValueError(f"Link '{link_name}' pose is relative_to unknown "
                             f"frame '{relative_to}'")
        return self._link_pose(relative_to, links,
                               visiting + [link_name]) @ X

    @staticmethod
    def _color(visual):
        diffuse = _child_text(visual, 'material/diffuse')
        if diffuse is None:
            return None
        values = _parse_floats(diffuse, len(diffuse.split()), 'diffuse')
        if values.shape[0] == 3:
            values = np.append(values, 1.)
        elif values.shape[0] != 4:
            raise ValueError(f"Expected 3 or 4 numbers for diffuse, got "
                             f"'{diffuse}'")
        return values

    def _shape(self, geometry):
        if geometry.find('box') is not None:
            return Box(*_parse_floats(_child_text(geometry, 'box/size'), 3,
                                      'box size'))
        if geometry.find('sphere') is not None:
            return Sphere(float(_child_text(geometry, 'sphere/radius')))
        if geometry.find('cylinder') is not None:
            return Cylinder(float(_child_text(geometry, 'cylinder/radius')),
                            float(_child_text(geometry, 'cylinder/length')))
        if geometry.find('mesh') is not None:
            uri = _child_text(geometry, 'mesh/uri')
            if uri is None:
                raise ValueError("<mesh> needs a <uri>")
            scale = _child_text(geometry, 'mesh/scale')
            scale = 1. if scale is None else _parse_floats(scale, 3, 'scale')
            return Mesh(_resolve_uri(uri, self.base_dir), scale)
        warnings.warn(f"Unsupported geometry "
                      f"{[child.tag for child in geometry]}; skipped",
                      RuntimeWarning)
        return None
