"""
BSD 3-Clause License

Copyright (c) 2026, Miguel Dovale (University of Arizona)

Redistribution and use in source and binary forms, with or without
modification, are permitted provided that the following conditions are met:

1. Redistributions of source code must retain the above copyright notice, this
   list of conditions and the following disclaimer.

2. Redistributions in binary form must reproduce the above copyright notice,
   this list of conditions and the following disclaimer in the documentation
   and/or other materials provided with the distribution.

3. Neither the name of the copyright holder nor the names of its
   contributors may be used to endorse or promote products derived from
   this software without specific prior written permission.

THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

This software may be subject to U.S. export control laws. By accepting this
software, the user agrees to comply with all applicable U.S. export laws and
regulations. User has the responsibility to obtain export licenses, or other
export authority as may be required before exporting such information to
foreign countries or providing access to foreign persons.
"""

"""Tests for the local file backends."""
import asyncio

import numpy as np

from loaders import DrspecFileLoader, NpyFileLoader, PollMode, SpectrumLoader


def test_drspec_file_loader_reads_first_frame(tmp_path, make_frame):
    _, first = make_frame(time_tag=196_000_000 * 5)
    _, second = make_frame(time_tag=196_000_000 * 6)
    path = tmp_path / "058000_000001"
    path.write_bytes(b"junk" + first + second)

    loader = DrspecFileLoader(path)
    assert isinstance(loader, SpectrumLoader)
    assert loader.poll_mode is PollMode.ONCE
    spectra = asyncio.run(loader.poll())
    assert len(spectra) == 4
    assert spectra.plot_log is False
    assert loader.last_poll_status == "ok"
    assert loader.stats().labels == [
        "T1 XX", "T1 Re(XY)", "T1 Im(XY)", "T1 YY",
        "T2 XX", "T2 Re(XY)", "T2 Im(XY)", "T2 YY",
    ]


def test_drspec_file_loader_failures(tmp_path, make_frame):
    missing = DrspecFileLoader(tmp_path / "missing")
    assert asyncio.run(missing.poll()) is None
    assert missing.last_poll_status == "os_error"

    empty = tmp_path / "empty"
    empty.write_bytes(b"")
    loader = DrspecFileLoader(empty)
    assert asyncio.run(loader.poll()) is None
    assert loader.last_poll_status == "no_data"

    _, frame = make_frame()
    short = tmp_path / "short"
    short.write_bytes(frame[:-10])
    loader = DrspecFileLoader(short)
    assert asyncio.run(loader.poll()) is None
    assert loader.last_poll_status == "decode_error"


def test_drspec_file_loader_zero_decimation(tmp_path, make_frame):
    _, frame = make_frame(decimation_factor=0)
    path = tmp_path / "zero_decimation"
    path.write_bytes(frame)
    loader = DrspecFileLoader(path)
    assert asyncio.run(loader.poll()) is None
    assert loader.last_poll_status == "decode_error"


def _rfi_file(tmp_path):
    data = np.array([
        [np.nan, np.nan, np.nan],
        [1.0, 2.0, 3.0],
        [-1.0, 0.0, -5.0],
        [4.0, 5.0, 6.0],
        [7.0, np.nan, 9.0],
    ])
    path = tmp_path / "rfi.npy"
    np.save(path, data)
    return path


def test_npy_loader_skips_bad_rows(tmp_path):
    loader = NpyFileLoader(_rfi_file(tmp_path), n_spectra=1)
    assert isinstance(loader, SpectrumLoader)
    spectra = asyncio.run(loader.poll())
    assert spectra.ant_names == ("0A", "0B")
    assert spectra.plot_log is True
    assert spectra.spectra[0][:, 1].tolist() == [1.0, 2.0, 3.0]
    assert spectra.spectra[1][:, 1].tolist() == [4.0, 5.0, 6.0]
    assert spectra.freq_max == 98.3


def test_npy_loader_zero_fills_and_filter(tmp_path):
    loader = NpyFileLoader(_rfi_file(tmp_path), n_spectra=1)
    loader.apply_filter(["a", "b", "c"])
    assert loader.n_spectra == 3
    spectra = asyncio.run(loader.poll())
    assert len(spectra) == 6
    assert spectra.ant_names[-1] == "2B"
    assert spectra.spectra[2][0, 1] == 7.0
    assert spectra.spectra[5][:, 1].tolist() == [0.0, 0.0, 0.0]
    assert loader.stats() is None


def test_npy_loader_missing_file(tmp_path):
    loader = NpyFileLoader(tmp_path / "nope.npy", n_spectra=1)
    assert asyncio.run(loader.poll()) is None
    assert loader.last_poll_status == "os_error"
