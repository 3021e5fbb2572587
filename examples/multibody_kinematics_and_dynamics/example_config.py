import os


# Directory holding the bundled example models
model_dir = os.path.join('examples', 'multibody_kinematics_and_dynamics',
                         'models')
default_model = os.path.join(model_dir, 'double_pendulum.sdf')

# Discrete update period of the plant. The viewer only uses kinematics, so the
# value is arbitrary
time_step = 0.001

# The collision layer starts hidden and can be shown with its check box
show_collision = False

inspector_kwargs = {'figsize': (9, 7)}
