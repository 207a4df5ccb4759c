"""Rigid transforms between sensor coordinate frames."""

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

import numpy as np
import yaml
from pydantic import BaseModel, Field, ValidationError
from scipy.spatial.transform import Rotation

from .config import format_validation_errors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RigidTransform:
    """Rotation plus translation mapping source-frame points into a target frame.

    Attributes:
        R: Rotation matrix, shape (3, 3), float64.
        t: Translation vector, shape (3,), float64.
    """

    R: np.ndarray
    t: np.ndarray

    @classmethod
    def identity(cls) -> "RigidTransform":
        return cls(R=np.eye(3), t=np.zeros(3))

    @classmethod
    def from_quaternion(
        cls, translation: list[float], rotation: list[float]
    ) -> "RigidTransform":
        """Build a transform from a translation and an (x, y, z, w) quaternion."""
        R = Rotation.from_quat(np.asarray(rotation, dtype=np.float64)).as_matrix()
        return cls(R=R, t=np.asarray(translation, dtype=np.float64))

    def inverse(self) -> "RigidTransform":
        return RigidTransform(R=self.R.T, t=-self.R.T @ self.t)

    def compose(self, other: "RigidTransform") -> "RigidTransform":
        """Return the transform applying ``other`` first, then ``self``."""
        return RigidTransform(R=self.R @ other.R, t=self.R @ other.t + self.t)

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Transform points, shape (N, 3).

        Returns a new array of the same dtype for floating input; integer
        coordinates come back as float64.
        """
        moved = points.astype(np.float64) @ self.R.T + self.t
        if not np.issubdtype(points.dtype, np.floating):
            return moved
        return moved.astype(points.dtype, copy=False)


@runtime_checkable
class FrameTransformer(Protocol):
    """Protocol for looking up transforms between coordinate frames."""

    def lookup_transform(
        self, target_frame: str, source_frame: str, timeout: float
    ) -> RigidTransform | None:
        """Find the transform mapping source-frame points into the target frame.

        Args:
            target_frame: Frame the points should end up in.
            source_frame: Frame the points are currently expressed in.
            timeout: Maximum seconds to wait for the transform to appear.

        Returns:
            The transform, or None if it is not available within the timeout.
        """
        ...


class TransformBuffer:
    """Thread-safe store of static frame transforms.

    Transforms are stored as parent/child edges; lookups chain edges in
    either direction. A lookup blocks until a connecting chain exists or the
    timeout expires, so a producer thread may publish transforms while a
    request waits for them.
    """

    def __init__(self) -> None:
        self._edges: dict[tuple[str, str], RigidTransform] = {}
        self._condition = threading.Condition()

    def set_transform(
        self, parent_frame: str, child_frame: str, transform: RigidTransform
    ) -> None:
        """Register the transform mapping child-frame points into the parent frame."""
        with self._condition:
            self._edges[(parent_frame, child_frame)] = transform
            self._condition.notify_all()

    @property
    def frames(self) -> set[str]:
        with self._condition:
            return {f for edge in self._edges for f in edge}

    def lookup_transform(
        self, target_frame: str, source_frame: str, timeout: float
    ) -> RigidTransform | None:
        """Find the transform mapping source-frame points into the target frame.

        Args:
            target_frame: Frame the points should end up in.
            source_frame: Frame the points are currently expressed in.
            timeout: Maximum seconds to wait for the transform to appear.

        Returns:
            The composed transform, or None after the timeout.
        """
        if target_frame == source_frame:
            return RigidTransform.identity()

        deadline = time.monotonic() + max(timeout, 0.0)
        with self._condition:
            while True:
                transform = self._find_chain(target_frame, source_frame)
                if transform is not None:
                    return transform
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self._condition.wait(remaining)

    def _find_chain(
        self, target_frame: str, source_frame: str
    ) -> RigidTransform | None:
        """Breadth-first search over the frame graph. Caller holds the lock."""
        neighbors: dict[str, list[tuple[str, RigidTransform]]] = {}
        for (parent, child), transform in self._edges.items():
            # child -> parent maps child points into the parent frame
            neighbors.setdefault(child, []).append((parent, transform))
            neighbors.setdefault(parent, []).append((child, transform.inverse()))

        visited = {source_frame}
        queue = deque([(source_frame, RigidTransform.identity())])
        while queue:
            frame, accumulated = queue.popleft()
            if frame == target_frame:
                return accumulated
            for next_frame, step in neighbors.get(frame, []):
                if next_frame not in visited:
                    visited.add(next_frame)
                    queue.append((next_frame, step.compose(accumulated)))
        return None


def try_transform(
    transformer: FrameTransformer,
    points: np.ndarray,
    source_frame: str,
    target_frame: str,
    timeout: float,
) -> np.ndarray | None:
    """Move points from the source frame into the target frame.

    Args:
        transformer: Transform lookup collaborator.
        points: Points in the source frame, shape (N, 3).
        source_frame: Frame the points are expressed in.
        target_frame: Frame to express the points in.
        timeout: Maximum seconds to wait for the transform.

    Returns:
        Transformed points (a new array), the input array itself when the
        frames are identical, or None if the transform is unavailable. The
        input array is never modified.
    """
    if source_frame == target_frame:
        return points

    transform = transformer.lookup_transform(target_frame, source_frame, timeout)
    if transform is None:
        return None
    return transform.apply(points)


class _TransformEntry(BaseModel):
    parent: str
    child: str
    translation: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    rotation: list[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0, 1.0])


class _TransformFile(BaseModel):
    transforms: list[_TransformEntry] = Field(default_factory=list)


def load_transforms(path: str | Path) -> TransformBuffer:
    """Load static transforms from a YAML file.

    Expected layout::

        transforms:
          - parent: base_link
            child: camera_front
            translation: [0.1, 0.0, 0.3]
            rotation: [0.0, 0.0, 0.0, 1.0]  # x, y, z, w

    Args:
        path: Path to the YAML file.

    Returns:
        TransformBuffer holding every listed transform.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file content is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Transforms file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    try:
        parsed = _TransformFile.model_validate(data)
    except ValidationError as e:
        raise ValueError(
            f"Invalid transforms file {path}:\n{format_validation_errors(e)}"
        ) from None

    buffer = TransformBuffer()
    for entry in parsed.transforms:
        if len(entry.translation) != 3 or len(entry.rotation) != 4:
            raise ValueError(
                f"Transform {entry.parent} -> {entry.child} needs a 3-element "
                "translation and a 4-element (x, y, z, w) rotation"
            )
        buffer.set_transform(
            entry.parent,
            entry.child,
            RigidTransform.from_quaternion(entry.translation, entry.rotation),
        )

    logger.info("Loaded %d transforms from %s", len(parsed.transforms), path)
    return buffer
