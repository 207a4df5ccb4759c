"""Point cloud containers shared by all pipeline stages."""

from dataclasses import dataclass, field

import numpy as np
import open3d as o3d


@dataclass
class RangeCloud:
    """Raw range scan as delivered by the sensor.

    Attributes:
        points: Point positions, shape (N, 3), float32 or float64.
        frame_id: Coordinate frame the points are expressed in.
        intensity: Optional per-point intensity, shape (N,).
    """

    points: np.ndarray
    frame_id: str
    intensity: np.ndarray | None = None

    def __post_init__(self) -> None:
        self.points = np.asarray(self.points)
        if self.points.ndim != 2 or self.points.shape[1] != 3:
            raise ValueError(
                f"Range cloud points must have shape (N, 3), got {self.points.shape}"
            )
        if self.intensity is not None:
            self.intensity = np.asarray(self.intensity)
            if self.intensity.shape != (self.points.shape[0],):
                raise ValueError(
                    f"Intensity must have shape ({self.points.shape[0]},), "
                    f"got {self.intensity.shape}"
                )

    def __len__(self) -> int:
        return self.points.shape[0]


@dataclass
class ColorCloud:
    """Colored point set tagged with the image each point came from.

    Used for the flat debug cloud and for the spherical reference cloud
    (where every point is a unit direction).

    Attributes:
        points: Point positions, shape (N, 3), float64.
        colors: RGB colors, shape (N, 3), uint8.
        sources: Index of the source image per point, shape (N,), int32.
    """

    points: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    colors: np.ndarray = field(
        default_factory=lambda: np.zeros((0, 3), dtype=np.uint8)
    )
    sources: np.ndarray = field(
        default_factory=lambda: np.zeros(0, dtype=np.int32)
    )

    def __len__(self) -> int:
        return self.points.shape[0]

    @classmethod
    def concatenate(cls, clouds: list["ColorCloud"]) -> "ColorCloud":
        """Union several clouds, preserving their order.

        Args:
            clouds: Clouds to merge.

        Returns:
            New cloud holding all points. Empty if no clouds are given.
        """
        if not clouds:
            return cls()
        return cls(
            points=np.concatenate([c.points for c in clouds], axis=0),
            colors=np.concatenate([c.colors for c in clouds], axis=0),
            sources=np.concatenate([c.sources for c in clouds], axis=0),
        )

    def to_open3d(self) -> o3d.geometry.PointCloud:
        """Convert to an Open3D point cloud with colors in [0, 1]."""
        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(self.points.astype(np.float64))
        pcd.colors = o3d.utility.Vector3dVector(
            self.colors.astype(np.float64) / 255.0
        )
        return pcd


@dataclass
class ColorizedCloud:
    """Range points painted with image colors.

    Attributes:
        points: Range point positions, shape (M, 3), dtype of the range cloud.
        colors: RGB colors, shape (M, 3), uint8.
        indices: Index of each output point in the preprocessed range cloud,
            shape (M,), int64. Increasing.
        frame_id: Coordinate frame of the points.
    """

    points: np.ndarray
    colors: np.ndarray
    indices: np.ndarray
    frame_id: str = ""

    def __len__(self) -> int:
        return self.points.shape[0]

    def to_open3d(self) -> o3d.geometry.PointCloud:
        """Convert to an Open3D point cloud with colors in [0, 1]."""
        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(self.points.astype(np.float64))
        pcd.colors = o3d.utility.Vector3dVector(
            self.colors.astype(np.float64) / 255.0
        )
        return pcd
