"""Dataset contract and the numpy-backed storage used by the learners."""

from __future__ import annotations

from typing import Protocol, Sequence

import numpy as np
import torch


def ensure_numpy(array: np.ndarray | torch.Tensor | Sequence[float]) -> np.ndarray:
    """Convert ``array`` (ndarray, tensor, DataFrame, nested lists) to ``np.ndarray``."""

    if isinstance(array, np.ndarray):
        return np.asarray(array)
    if isinstance(array, torch.Tensor):  # pragma: no cover - convenience path
        return array.detach().cpu().numpy()
    return np.asarray(array)


class AbstractDataStorage(Protocol):
    """Read-only access to labelled examples consumed by the tree learners."""

    @property
    def size(self) -> int: ...

    @property
    def dimensionality(self) -> int: ...

    @property
    def class_count(self) -> int: ...

    def data_point(self, index: int) -> np.ndarray: ...

    def class_label(self, index: int) -> int: ...

    def data_points(self, indices: np.ndarray) -> np.ndarray: ...

    def class_labels(self, indices: np.ndarray) -> np.ndarray: ...

    def bootstrap(
        self, num_samples: int, generator: torch.Generator
    ) -> tuple["AbstractDataStorage", np.ndarray]: ...


class DataStorage:
    """Dense feature matrix plus integer class labels.

    Parameters
    ----------
    X:
        Feature matrix of shape ``[N, D]`` (array-like or ``pandas.DataFrame``).
    y:
        Class labels in ``[0, class_count)``.
    class_count:
        Number of classes. Inferred as ``max(y) + 1`` when omitted.
    """

    def __init__(
        self,
        X: np.ndarray | Sequence[Sequence[float]],
        y: np.ndarray | Sequence[int],
        class_count: int | None = None,
    ) -> None:
        X_np = np.asarray(ensure_numpy(X), dtype=np.float64)
        y_np = np.asarray(ensure_numpy(y))
        if X_np.ndim != 2:
            raise ValueError("X must be 2-D [N, D]")
        if y_np.ndim != 1:
            raise ValueError("y must be 1-D")
        if X_np.shape[0] != y_np.shape[0]:
            raise ValueError("X and y row mismatch")
        if y_np.size and not np.issubdtype(y_np.dtype, np.integer):
            if not np.all(np.equal(np.mod(y_np, 1), 0)):
                raise ValueError("class labels must be integers")
        y_int = y_np.astype(np.int64)
        if y_int.size and int(y_int.min()) < 0:
            raise ValueError("class labels must be non-negative")
        inferred = int(y_int.max()) + 1 if y_int.size else 0
        if class_count is None:
            class_count = inferred
        elif class_count < inferred:
            raise ValueError(f"class_count={class_count} but labels reach {inferred - 1}")

        self._X = np.array(X_np, dtype=np.float64, order="C")
        self._y = y_int
        self._class_count = int(class_count)
        self._X.setflags(write=False)
        self._y.setflags(write=False)

    @property
    def size(self) -> int:
        return int(self._X.shape[0])

    @property
    def dimensionality(self) -> int:
        return int(self._X.shape[1])

    @property
    def class_count(self) -> int:
        return self._class_count

    @property
    def features(self) -> np.ndarray:
        return self._X

    @property
    def labels(self) -> np.ndarray:
        return self._y

    def data_point(self, index: int) -> np.ndarray:
        return self._X[index]

    def class_label(self, index: int) -> int:
        return int(self._y[index])

    def data_points(self, indices: np.ndarray) -> np.ndarray:
        return self._X[indices]

    def class_labels(self, indices: np.ndarray) -> np.ndarray:
        return self._y[indices]

    def subset(self, indices: np.ndarray) -> "DataStorage":
        """Return a storage holding the rows ``indices`` (duplicates allowed)."""
        idx = np.asarray(indices, dtype=np.int64)
        return DataStorage(self._X[idx], self._y[idx], class_count=self._class_count)

    def bootstrap(
        self, num_samples: int, generator: torch.Generator
    ) -> tuple["DataStorage", np.ndarray]:
        """Resample ``num_samples`` rows with replacement.

        Returns the resampled storage and a boolean mask marking which of the
        original rows were drawn at least once.
        """
        if num_samples < 0:
            raise ValueError("num_samples must be non-negative")
        if self.size == 0:
            raise ValueError("cannot bootstrap an empty dataset")
        drawn = torch.randint(0, self.size, (int(num_samples),), generator=generator).numpy()
        sampled = np.zeros(self.size, dtype=bool)
        sampled[drawn] = True
        return self.subset(drawn), sampled

    def rand_permute(self, generator: torch.Generator) -> "DataStorage":
        """Return a copy with the rows shuffled (sorted data hurts online learning)."""
        perm = torch.randperm(self.size, generator=generator).numpy()
        return self.subset(perm)

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return (
            f"DataStorage(size={self.size}, dimensionality={self.dimensionality}, "
            f"class_count={self.class_count})"
        )
