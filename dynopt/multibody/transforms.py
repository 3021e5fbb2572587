import numpy as np
from scipy.spatial.transform import Rotation


class RigidTransform:
    """
    A rigid transform `X_AB` (pose of frame B in frame A), made of a rotation
    `R_AB` and a translation `p_AB`. Transforms compose as
    `X_AC = X_AB @ X_BC` and act on points as `p_A = X_AB @ p_B`.
    """
    def __init__(self, R=None, p=None):
        """
        Parameters
        ----------
        R : (3, 3) array or `scipy.spatial.transform.Rotation`, optional
            Rotation. Identity if omitted.
        p : (3,) array_like, optional
            Translation. Zero if omitted.
        """
        if R is None:
            R = np.eye(3)
        elif isinstance(R, Rotation):
            R = R.as_matrix()
        R = np.asarray(R, dtype=float)
        if R.shape != (3, 3):
            raise ValueError("R must be a 3x3 matrix")
        if not np.allclose(R @ R.T, np.eye(3), atol=1e-06):
            raise ValueError("R is not a rotation matrix")

        if p is None:
            p = np.zeros(3)
        p = np.reshape(np.asarray(p, dtype=float), -1)
        if p.shape[0] != 3:
            raise ValueError("p must have size 3")

        self._R = R
        self._p = p

    @classmethod
    def Identity(cls):
        return cls()

    @classmethod
    def from_pose(cls, xyz=None, rpy=None):
        """
        Make a transform from a position and roll-pitch-yaw angles, where the
        rotation is `Rz(yaw) @ Ry(pitch) @ Rx(roll)`.
        """
        if rpy is None:
            R = None
        else:
            R = Rotation.from_euler('xyz', np.reshape(rpy, -1))
        return cls(R, xyz)

    def rotation(self):
        return np.copy(self._R)

    def translation(self):
        return np.copy(self._p)

    def rpy(self):
        """Roll-pitch-yaw angles of the rotation."""
        return Rotation.from_matrix(self._R).as_euler('xyz')

    def GetAsMatrix4(self):
        X = np.eye(4)
        X[:3, :3] = self._R
        X[:3, 3] = self._p
        return X

    def inverse(self):
        return RigidTransform(self._R.T, -self._R.T @ self._p)

    def multiply(self, other):
        """
        Compose with another transform, or transform points.

        Parameters
        ----------
        other : `RigidTransform` or (3,) or (3, n_points) array

        Returns
        -------
        result : `RigidTransform` or array
        """
        if isinstance(other, RigidTransform):
            return RigidTransform(self._R @ other._R,
                                  self._R @ other._p + self._p)
        points = np.asarray(other, dtype=float)
        if points.ndim == 1:
            return self._R @ points + self._p
        return self._R @ points + self._p[:, None]

    def __matmul__(self, other):
        return self.multiply(other)

    def IsNearlyEqualTo(self, other, tol=1e-09):
        return (np.allclose(self._R, other._R, rtol=0., atol=tol)
                and np.allclose(self._p, other._p, rtol=0., atol=tol))

    def __repr__(self):
        return f"RigidTransform(p={self._p.tolist()}, rpy={self.rpy().tolist()})"
