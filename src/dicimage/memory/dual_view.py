"""
Dual host/device view of a 2-D buffer.

A DualView keeps two logically identical copies of one array: the host
copy used by sequential code (file I/O, single-pixel queries) and the
device copy read and written by data-parallel kernels.

Synchronization contract:
    ┌──────────────┐   sync_device() (push)   ┌──────────────┐
    │     HOST     │ ───────────────────────► │    DEVICE    │
    │ (authority)  │ ◄─────────────────────── │   (mirror)   │
    └──────────────┘   sync_host()   (pull)   └──────────────┘

    • A side written to must be marked with modify_host()/modify_device()
    • Host writes must be pushed before a kernel reads the device copy
    • Kernel writes must be pulled before host code reads the host copy
    • A side with unsynced writes on the other side cannot be viewed

With shared=True both sides are the same array and every sync is a no-op.
"""

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from ..errors import PreconditionViolation


@dataclass
class DualView:
    """
    Host array plus an explicitly synchronized device mirror.

    Example:
        >>> view = DualView.allocate((4, 5), np.float32)
        >>> view.host_view()[0, 0] = 1.0
        >>> view.modify_host()
        >>> view.sync_device()
        >>> view.device_view()[0, 0]
        1.0
    """

    host: np.ndarray
    shared: bool = False

    device: np.ndarray = field(init=False)
    host_modified: bool = False
    device_modified: bool = False

    # Statistics
    pushes: int = 0
    pulls: int = 0
    bytes_pushed: int = 0
    bytes_pulled: int = 0

    def __post_init__(self) -> None:
        """Create the device mirror from the initial host contents."""
        if self.host.ndim != 2:
            raise ValueError(f"DualView holds 2-D buffers, got shape {self.host.shape}")
        self.device = self.host if self.shared else self.host.copy()

    @classmethod
    def allocate(cls, shape: tuple[int, int], dtype, shared: bool = False) -> "DualView":
        """Create a zero-filled view."""
        return cls(np.zeros(shape, dtype=dtype), shared=shared)

    @classmethod
    def adopt(cls, array: np.ndarray, shared: bool = False) -> "DualView":
        """
        Wrap a caller-owned array as the host copy without copying it.

        The view holds a reference to the array, which keeps it alive for
        as long as the view exists.
        """
        return cls(array, shared=shared)

    @property
    def shape(self) -> tuple[int, ...]:
        return self.host.shape

    @property
    def dtype(self) -> np.dtype:
        return self.host.dtype

    # =========================================================================
    # Modification Flags
    # =========================================================================

    def modify_host(self) -> None:
        """Mark the host copy as written."""
        if self.shared:
            return
        if self.device_modified:
            raise PreconditionViolation("host written while device holds unpulled writes")
        self.host_modified = True

    def modify_device(self) -> None:
        """Mark the device copy as written."""
        if self.shared:
            return
        if self.host_modified:
            raise PreconditionViolation("device written while host holds unpushed writes")
        self.device_modified = True

    def need_sync_device(self) -> bool:
        return self.host_modified

    def need_sync_host(self) -> bool:
        return self.device_modified

    # =========================================================================
    # Synchronization
    # =========================================================================

    def sync_device(self) -> None:
        """Push pending host writes to the device copy."""
        if not self.host_modified:
            return
        np.copyto(self.device, self.host)
        self.host_modified = False
        self.pushes += 1
        self.bytes_pushed += self.host.nbytes

    def sync_host(self) -> None:
        """Pull pending device writes to the host copy."""
        if not self.device_modified:
            return
        np.copyto(self.host, self.device)
        self.device_modified = False
        self.pulls += 1
        self.bytes_pulled += self.device.nbytes

    # =========================================================================
    # Views
    # =========================================================================

    def host_view(self) -> np.ndarray:
        """
        Return the host copy.

        Raises:
            PreconditionViolation: if the device copy has unpulled writes
        """
        if self.device_modified:
            raise PreconditionViolation("host view is stale: device writes were not pulled")
        return self.host

    def device_view(self) -> np.ndarray:
        """
        Return the device copy.

        Raises:
            PreconditionViolation: if the host copy has unpushed writes
        """
        if self.host_modified:
            raise PreconditionViolation("device view is stale: host writes were not pushed")
        return self.device

    def get_statistics(self) -> dict[str, Any]:
        """Get transfer statistics."""
        return {
            "pushes": self.pushes,
            "pulls": self.pulls,
            "bytes_pushed": self.bytes_pushed,
            "bytes_pulled": self.bytes_pulled,
        }
