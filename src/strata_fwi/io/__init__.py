"""HDF5 input and output for models, shot gathers and inversion results."""

from strata_fwi.io.hdf5 import (
    SHOT_ATTRIBUTES,
    InversionResultWriter,
    ShotFileError,
    ShotGatherReader,
    ShotGatherWriter,
    load_result,
    load_velocity_model,
    write_velocity_model,
)

__all__ = [
    "SHOT_ATTRIBUTES",
    "ShotFileError",
    "write_velocity_model",
    "load_velocity_model",
    "ShotGatherWriter",
    "ShotGatherReader",
    "InversionResultWriter",
    "load_result",
]
