"""
Loads a URDF or SDFormat model and opens a viewer with one slider per joint
and check boxes toggling the visual and collision geometry.

Usage: python -m examples.multibody_kinematics_and_dynamics.model_inspector
       path-to-sdf-file
"""

import argparse as ap

from dynopt.multibody import MultibodyPlant, Parser, ModelInspector

from examples.multibody_kinematics_and_dynamics import example_config as config


def load_model(filename):
    """Parse a model file into a finalized `MultibodyPlant`."""
    plant = MultibodyPlant(time_step=config.time_step)
    Parser(plant).AddModelFromFile(filename)
    plant.Finalize()
    return plant


def model_inspector(filename, show=True):
    plant = load_model(filename)

    print(f"Loaded {filename}: {plant.num_bodies():d} bodies, "
          f"{plant.num_joints():d} joints, {plant.num_positions():d} "
          f"positions")

    inspector = ModelInspector(plant, show_collision=config.show_collision,
                               **config.inspector_kwargs)
    if show:
        inspector.Run()
    return inspector


def main(argv=None):
    parser = ap.ArgumentParser(
        description="Inspect the kinematics of a multibody model.")
    parser.add_argument('filename', metavar='path-to-sdf-file',
                        help=f"Model file (.sdf or .urdf), e.g. "
                             f"{config.default_model}")
    args = parser.parse_args(argv)

    return model_inspector(args.filename)


if __name__ == '__main__':
    main()
