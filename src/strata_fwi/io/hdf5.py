"""HDF5 storage for velocity models, shot gathers and inversion results.

File layouts:

Velocity model:
    /velocity           float32 (nz, nx), attributes dz, dx

Shot gathers:
    /shots              float32 (ns, nt, ng)
    root attributes     nt, ng, ns, dt, amp, fm, sxbeg, szbeg, gxbeg, gzbeg,
                        jsx, jsz, jgx, jgz, csdgather, nb, created_at

Inversion results (one file per quantity, one row appended per iteration):
    /gradient           float32 (niter, nz, nx)
    /illumination       float32 (niter, nz, nx)
    /objective          float64 (niter,)

Example:
    >>> write_velocity_model("vel.h5", v, dz=10.0, dx=10.0)
    >>> with ShotGatherReader("shots.h5") as reader:
    ...     shots = reader.load_shot_data()
    >>> with InversionResultWriter("grad.h5", "illum.h5", "obj.h5", v.shape) as writer:
    ...     for result in driver.run():
    ...         writer.write_iteration(result)
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import h5py
import numpy as np
from numpy.typing import NDArray

from strata_fwi.core.acquisition import Acquisition, SamplingPattern
from strata_fwi.core.waveforms import RickerWavelet
from strata_fwi.inversion.driver import IterationResult, ShotData

# Root attributes every shot-gather file must carry
SHOT_ATTRIBUTES = (
    "nt", "ng", "ns", "dt", "amp", "fm",
    "sxbeg", "szbeg", "gxbeg", "gzbeg",
    "jsx", "jsz", "jgx", "jgz",
    "csdgather", "nb",
)


class ShotFileError(KeyError):
    """Raised when a required dataset or attribute is missing from an input file."""

    def __str__(self) -> str:
        # KeyError quotes its message; show it verbatim
        return str(self.args[0]) if self.args else ""


def _require(attrs: h5py.AttributeManager, name: str, filename: Path) -> Any:
    if name not in attrs:
        raise ShotFileError(f"Missing required attribute '{name}' in {filename}")
    return attrs[name]


def _require_dataset(file: h5py.File, name: str, filename: Path) -> h5py.Dataset:
    if name not in file:
        raise ShotFileError(f"Missing required dataset '{name}' in {filename}")
    return file[name]


def write_velocity_model(
    filename: str | Path,
    velocity: NDArray[np.floating],
    dz: float,
    dx: float,
    compression: str | None = "gzip",
    compression_level: int = 4,
) -> None:
    """Write a velocity model and its grid spacing.

    Args:
        filename: Output file path
        velocity: Velocity model (nz, nx) in m/s
        dz: Depth spacing in meters
        dx: Lateral spacing in meters
        compression: Compression algorithm ('gzip', 'lzf', None)
        compression_level: Compression level (0-9 for gzip)
    """
    velocity = np.asarray(velocity, dtype=np.float32)
    if velocity.ndim != 2:
        raise ValueError(f"Velocity model must be 2-D, got shape {velocity.shape}")

    with h5py.File(filename, "w") as f:
        dataset = f.create_dataset(
            "velocity",
            data=velocity,
            compression=compression,
            compression_opts=compression_level if compression == "gzip" else None,
        )
        dataset.attrs["units"] = "m/s"
        f.attrs["dz"] = float(dz)
        f.attrs["dx"] = float(dx)
        f.attrs["created_at"] = datetime.now(timezone.utc).isoformat()


def load_velocity_model(filename: str | Path) -> tuple[NDArray[np.float32], float, float]:
    """Load a velocity model written by ``write_velocity_model``.

    Returns:
        Tuple (velocity, dz, dx)

    Raises:
        ShotFileError: If the dataset or a spacing attribute is missing
    """
    path = Path(filename)
    with h5py.File(path, "r") as f:
        velocity = _require_dataset(f, "velocity", path)[:].astype(np.float32)
        dz = float(_require(f.attrs, "dz", path))
        dx = float(_require(f.attrs, "dx", path))
    return velocity, dz, dx


class ShotGatherWriter:
    """Streaming writer for shot gathers.

    The acquisition and wavelet parameters are written as root attributes
    when the file is created; gathers are written one shot at a time.

    Example:
        >>> with ShotGatherWriter("shots.h5", shots) as writer:
        ...     for i in range(shots.ns):
        ...         writer.write_shot(i, solver.model_shot(geometry(i)))
    """

    def __init__(
        self,
        filename: str | Path,
        shots: ShotData,
        compression: str | None = "gzip",
        compression_level: int = 4,
    ):
        """Initialize writer.

        Args:
            filename: Output file path
            shots: Acquisition, wavelet and time axis description
            compression: Compression algorithm ('gzip', 'lzf', None)
            compression_level: Compression level (0-9 for gzip)
        """
        self.filename = Path(filename)
        self.shots = shots
        self.file = h5py.File(filename, "w")
        self.compression = compression
        self.compression_opts = compression_level if compression == "gzip" else None

        self._write_metadata()
        self.dataset = self.file.create_dataset(
            "shots",
            shape=(shots.ns, shots.nt, shots.ng),
            dtype=np.float32,
            chunks=(1, shots.nt, shots.ng),
            compression=self.compression,
            compression_opts=self.compression_opts,
        )
        self._written = 0

    def _write_metadata(self):
        shots = self.shots
        acq = shots.acquisition
        attrs = self.file.attrs
        attrs["nt"] = shots.nt
        attrs["ng"] = shots.ng
        attrs["ns"] = shots.ns
        attrs["dt"] = shots.dt
        attrs["amp"] = shots.wavelet.amplitude
        attrs["fm"] = shots.wavelet.frequency
        attrs["sxbeg"] = acq.sources.xbeg
        attrs["szbeg"] = acq.sources.zbeg
        attrs["gxbeg"] = acq.receivers.xbeg
        attrs["gzbeg"] = acq.receivers.zbeg
        attrs["jsx"] = acq.sources.jx
        attrs["jsz"] = acq.sources.jz
        attrs["jgx"] = acq.receivers.jx
        attrs["jgz"] = acq.receivers.jz
        attrs["csdgather"] = int(acq.csdgather)
        attrs["nb"] = shots.nb
        attrs["created_at"] = datetime.now(timezone.utc).isoformat()

    def write_shot(self, index: int, data: NDArray[np.floating]) -> None:
        """Write the gather of one shot.

        Args:
            index: Shot number
            data: Traces of shape (nt, ng)
        """
        expected = (self.shots.nt, self.shots.ng)
        if data.shape != expected:
            raise ValueError(f"Shot gather must have shape {expected}, got {data.shape}")
        self.dataset[index] = data
        self._written += 1

    def write_all(self, data: NDArray[np.floating]) -> None:
        """Write every gather at once from an (ns, nt, ng) array."""
        if data.shape != self.dataset.shape:
            raise ValueError(f"Shot data must have shape {self.dataset.shape}, got {data.shape}")
        self.dataset[...] = data
        self._written = self.shots.ns

    def finalize(self, runtime: float | None = None, **extra_metadata):
        """Write final metadata and close file.

        Args:
            runtime: Total modeling runtime in seconds
            **extra_metadata: Additional root attributes to store
        """
        if not self.file:
            return
        if runtime is not None:
            self.file.attrs["total_runtime_seconds"] = runtime
        for key, value in extra_metadata.items():
            self.file.attrs[key] = value
        self.file.attrs["shots_written"] = self._written

        self.file.flush()
        self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finalize()


class ShotGatherReader:
    """Reader for shot-gather files.

    Example:
        >>> with ShotGatherReader("shots.h5") as reader:
        ...     shots = reader.load_shot_data()
        ...     first = reader.load_shot(0)
    """

    def __init__(self, filename: str | Path):
        self.filename = Path(filename)
        self.file = h5py.File(filename, "r")

    def get_metadata(self) -> dict[str, Any]:
        """All root attributes as a dict."""
        return dict(self.file.attrs)

    def load_shot(self, index: int) -> NDArray[np.float32]:
        """Load the (nt, ng) gather of one shot."""
        dataset = _require_dataset(self.file, "shots", self.filename)
        if not 0 <= index < dataset.shape[0]:
            raise IndexError(f"Shot {index} out of range for {dataset.shape[0]} shots")
        return dataset[index].astype(np.float32)

    def load_shot_data(self, observed: bool = True) -> ShotData:
        """Build a ShotData from the file.

        Args:
            observed: Also load the gathers (default: True)

        Raises:
            ShotFileError: If a required attribute or the dataset is missing
            ValueError: If the dataset shape disagrees with the attributes
        """
        attrs = self.file.attrs
        values = {name: _require(attrs, name, self.filename) for name in SHOT_ATTRIBUTES}

        acquisition = Acquisition(
            sources=SamplingPattern(
                zbeg=int(values["szbeg"]),
                xbeg=int(values["sxbeg"]),
                jz=int(values["jsz"]),
                jx=int(values["jsx"]),
                count=int(values["ns"]),
            ),
            receivers=SamplingPattern(
                zbeg=int(values["gzbeg"]),
                xbeg=int(values["gxbeg"]),
                jz=int(values["jgz"]),
                jx=int(values["jgx"]),
                count=int(values["ng"]),
            ),
            csdgather=bool(values["csdgather"]),
        )
        data = None
        if observed:
            data = _require_dataset(self.file, "shots", self.filename)[:].astype(np.float32)

        return ShotData(
            nt=int(values["nt"]),
            dt=float(values["dt"]),
            acquisition=acquisition,
            wavelet=RickerWavelet(frequency=float(values["fm"]), amplitude=float(values["amp"])),
            nb=int(values["nb"]),
            observed=data,
        )

    def close(self):
        """Close the HDF5 file."""
        if self.file:
            self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class InversionResultWriter:
    """Streaming writer for per-iteration gradient, illumination and objective.

    Each output file holds one resizable dataset that grows by one row per
    ``write_iteration`` call.

    Example:
        >>> writer = InversionResultWriter("g.h5", "i.h5", "o.h5", shape=(nz, nx))
        >>> for result in driver.run():
        ...     writer.write_iteration(result)
        >>> writer.finalize(runtime=12.3)
    """

    def __init__(
        self,
        gradient: str | Path,
        illumination: str | Path,
        objective: str | Path,
        shape: tuple[int, int],
        compression: str | None = "gzip",
        compression_level: int = 4,
    ):
        """Initialize writer.

        Args:
            gradient: Gradient output file path
            illumination: Illumination output file path
            objective: Objective output file path
            shape: Physical model shape (nz, nx)
            compression: Compression algorithm ('gzip', 'lzf', None)
            compression_level: Compression level (0-9 for gzip)
        """
        self.shape = tuple(shape)
        self.compression = compression
        self.compression_opts = compression_level if compression == "gzip" else None
        self.iterations = 0

        created_at = datetime.now(timezone.utc).isoformat()
        self.files: dict[str, h5py.File] = {}
        self.datasets: dict[str, h5py.Dataset] = {}
        for name, path in (
            ("gradient", gradient),
            ("illumination", illumination),
            ("objective", objective),
        ):
            f = h5py.File(path, "w")
            f.attrs["created_at"] = created_at
            self.files[name] = f

        for name in ("gradient", "illumination"):
            self.datasets[name] = self.files[name].create_dataset(
                name,
                shape=(0,) + self.shape,
                maxshape=(None,) + self.shape,
                dtype=np.float32,
                chunks=(1,) + self.shape,
                compression=self.compression,
                compression_opts=self.compression_opts,
            )
        self.datasets["objective"] = self.files["objective"].create_dataset(
            "objective",
            shape=(0,),
            maxshape=(None,),
            dtype=np.float64,
            chunks=True,
        )

    def write_iteration(self, result: IterationResult) -> None:
        """Append one iteration's outputs."""
        if result.gradient.shape != self.shape:
            raise ValueError(
                f"Gradient shape {result.gradient.shape} does not match {self.shape}"
            )
        if result.illumination.shape != self.shape:
            raise ValueError(
                f"Illumination shape {result.illumination.shape} does not match {self.shape}"
            )

        idx = self.iterations
        for name, value in (
            ("gradient", result.gradient),
            ("illumination", result.illumination),
            ("objective", result.objective),
        ):
            dataset = self.datasets[name]
            dataset.resize((idx + 1,) + dataset.shape[1:])
            dataset[idx] = value
        self.iterations += 1

    def finalize(self, runtime: float | None = None, **extra_metadata):
        """Write final metadata and close all files.

        Args:
            runtime: Total run time in seconds
            **extra_metadata: Additional attributes stored in every file
        """
        for f in self.files.values():
            if not f:
                continue
            f.attrs["num_iterations"] = self.iterations
            if runtime is not None:
                f.attrs["total_runtime_seconds"] = runtime
            for key, value in extra_metadata.items():
                f.attrs[key] = value
            f.flush()
            f.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finalize()


def load_result(filename: str | Path, name: str) -> NDArray[np.floating]:
    """Load one result dataset ('gradient', 'illumination' or 'objective').

    Raises:
        ShotFileError: If the dataset is missing
    """
    path = Path(filename)
    with h5py.File(path, "r") as f:
        return _require_dataset(f, name, path)[:]
