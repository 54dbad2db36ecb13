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

"""Tests for AutoSpectra, SaturationStats and AntennaFilter (no I/O)."""
import math

import numpy as np
import pytest

from data_models import AntennaFilter, AutoSpectra, SaturationStats


def _spectra(plot_log=False):
    freqs = np.array([1.0, 2.0, 3.0])
    data = np.array([
        [10.0, 100.0, 1000.0],
        [0.0, -1.0, 10.0],
    ])
    return AutoSpectra.from_arrays(["1A", "1B"], freqs, data, plot_log=plot_log)


def test_from_arrays_pairs_frequency_and_power():
    spectra = _spectra()
    assert spectra.ant_names == ("1A", "1B")
    assert len(spectra) == 2
    assert spectra.spectra[0].tolist() == [[1.0, 10.0], [2.0, 100.0], [3.0, 1000.0]]
    assert spectra.freq_min == 1.0
    assert spectra.freq_max == 3.0


def test_log_spectra_drop_non_positive_power():
    spectra = _spectra()
    np.testing.assert_allclose(spectra.log_spectra[0][:, 1], [10.0, 20.0, 30.0])
    assert spectra.log_spectra[1].tolist() == [[3.0, 10.0]]


def test_arrays_are_read_only():
    spectra = _spectra()
    with pytest.raises(ValueError):
        spectra.spectra[0][0, 1] = 5.0


def test_active_and_y_bounds_follow_display_mode():
    spectra = _spectra(plot_log=True)
    assert spectra.active() is spectra.log_spectra
    assert spectra.active(False) is spectra.spectra
    assert spectra.y_bounds() == (10.0, 30.0)
    assert spectra.y_bounds(False) == (-1.0, 1000.0)


def test_y_bounds_empty():
    spectra = AutoSpectra.from_arrays([], np.array([]), np.zeros((0, 0)), plot_log=False)
    assert spectra.y_bounds() == (0.0, 0.0)


def test_saturation_update_without_interval_replaces():
    stats = SaturationStats(["T1 XX", "T2 XX"], [0.1, 0.2])
    stats.update(SaturationStats(["T1 XX", "T2 XX"], [0.5, 0.0]), 0.0)
    assert stats.values.tolist() == [0.5, 0.0]
    assert stats.peaks.tolist() == [0.5, 0.2]
    assert stats.samples == 2


def test_saturation_update_is_exponential_average():
    stats = SaturationStats(["T1 XX"], [0.0], time_constant=30.0)
    stats.update(SaturationStats(["T1 XX"], [1.0]), 30.0)
    assert stats.values[0] == pytest.approx(1.0 - math.exp(-1.0))


def test_saturation_label_change_resets():
    stats = SaturationStats(["T1 XX"], [0.3])
    stats.update(SaturationStats(["T1 I", "T2 I"], [0.1, 0.2]), 30.0)
    assert stats.labels == ["T1 I", "T2 I"]
    assert stats.values.tolist() == [0.1, 0.2]
    assert stats.samples == 1


def test_saturation_requires_value_per_label():
    with pytest.raises(ValueError):
        SaturationStats(["T1 XX", "T2 XX"], [0.1])


def test_saturation_as_percent():
    stats = SaturationStats(["T1 XX"], [0.25])
    assert stats.as_percent() == {"T1 XX": 25.0}


def test_antenna_filter_normalises_and_rejects_duplicates():
    filt = AntennaFilter(["lwa-250"])
    assert filt.add(" lwa-124 ")
    assert not filt.add("LWA-250")
    assert not filt.add("   ")
    assert filt.names() == ["LWA-250", "LWA-124"]
    assert "lwa-124" in filt


def test_antenna_filter_remove():
    filt = AntennaFilter(["A", "B", "C"])
    assert filt.remove("b")
    assert not filt.remove("b")
    assert filt.remove_index(1) == "C"
    assert filt.remove_index(5) is None
    assert filt.names() == ["A"]
    assert len(filt) == 1
