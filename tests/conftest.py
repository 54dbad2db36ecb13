"""Pytest conftest: ensure the top-level modules are importable when running tests from repo root."""
import os
import sys

import numpy as np
import pytest

_repo_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _repo_dir not in sys.path:
    sys.path.insert(0, _repo_dir)

import drspec  # noqa: E402
from frame_schema import PolarizationFormat  # noqa: E402

CLOCK = 196_000_000


@pytest.fixture
def make_header():
    """Factory for SpectrumHeader with sensible defaults; keyword overrides."""

    def _make(**overrides):
        fields = dict(
            time_tag=CLOCK * 1_700_000_000,
            time_offset=0,
            decimation_factor=10,
            tuning_words=(1_000_000_000, 2_000_000_000),
            fills=(10, 10, 10, 10),
            errors=(0, 0, 0, 0),
            beam=1,
            stokes_format=PolarizationFormat.LINEAR_FULL,
            version=2,
            flags=0,
            n_freqs=8,
            n_ints=100,
            saturation_count=(0, 0, 0, 0),
        )
        fields.update(overrides)
        return drspec.SpectrumHeader(**fields)

    return _make


@pytest.fixture
def make_frame(make_header):
    """Factory returning (header, encoded bytes) with a ramp payload."""

    def _make(offset=0.0, **overrides):
        header = make_header(**overrides)
        shape = (2, header.n_freqs, header.pol_count)
        raw = np.arange(np.prod(shape), dtype=np.float32).reshape(shape) + offset
        return header, drspec.encode_frame(header, raw)

    return _make
