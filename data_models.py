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

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

import global_params as glp


def _freeze(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class AutoSpectra:
    """One polling cycle of autospectra, ready to plot.

    Each entry of `spectra` / `log_spectra` is an (n, 2) array of
    (frequency [MHz], power) pairs for the antenna at the same index in
    `ant_names`. Arrays are read-only; build a new AutoSpectra per poll.
    """
    ant_names: Tuple[str, ...]
    spectra: Tuple[np.ndarray, ...]
    log_spectra: Tuple[np.ndarray, ...]
    freq_min: float
    freq_max: float
    plot_log: bool

    @classmethod
    def from_arrays(cls, ant_names: Sequence[str], freqs: np.ndarray,
                    data: np.ndarray, plot_log: bool) -> "AutoSpectra":
        """
        Pair a shared frequency axis with one power row per antenna.

        Parameters
        ----------
        ant_names : sequence of str
            Trace labels; one per row of `data` (extra rows are ignored).
        freqs : numpy.ndarray
            1-D frequency axis in MHz.
        data : numpy.ndarray
            2-D array (n_antennas, len(freqs)) in linear units.
        plot_log : bool
            Initial display mode for this source.

        Returns
        -------
        AutoSpectra
        """
        freqs = np.asarray(freqs, dtype=float)
        data = np.atleast_2d(np.asarray(data, dtype=float))
        spectra = []
        log_spectra = []
        for name, row in zip(ant_names, data):
            spectra.append(_freeze(np.column_stack((freqs, row))))
            with np.errstate(divide="ignore", invalid="ignore"):
                log_row = 10.0 * np.log10(row)
            finite = np.isfinite(log_row)
            log_spectra.append(_freeze(np.column_stack((freqs[finite], log_row[finite]))))
        if freqs.size:
            freq_min, freq_max = float(np.min(freqs)), float(np.max(freqs))
        else:
            freq_min = freq_max = 0.0
        return cls(
            ant_names=tuple(ant_names[:len(spectra)]),
            spectra=tuple(spectra),
            log_spectra=tuple(log_spectra),
            freq_min=freq_min,
            freq_max=freq_max,
            plot_log=bool(plot_log),
        )

    def active(self, plot_log: Optional[bool] = None) -> Tuple[np.ndarray, ...]:
        """Return the traces for the requested (or default) display mode."""
        if plot_log is None:
            plot_log = self.plot_log
        return self.log_spectra if plot_log else self.spectra

    def y_bounds(self, plot_log: Optional[bool] = None) -> Tuple[float, float]:
        """Min and max finite power over all traces; (0, 0) when empty."""
        lo, hi = math.inf, -math.inf
        for trace in self.active(plot_log):
            if trace.size == 0:
                continue
            values = trace[:, 1]
            values = values[np.isfinite(values)]
            if values.size == 0:
                continue
            lo = min(lo, float(values.min()))
            hi = max(hi, float(values.max()))
        if lo > hi:
            return (0.0, 0.0)
        return (lo, hi)

    def __len__(self) -> int:
        return len(self.ant_names)


@dataclass
class SaturationStats:
    """
    Smoothed percentage of saturated samples per polarization/tuning.

    `update` blends a new sample into the running value with an exponential
    moving average whose weight depends on the time since the last sample:
    alpha = 1 - exp(-interval / time_constant).
    """
    labels: List[str]
    values: np.ndarray
    peaks: np.ndarray = None
    samples: int = 1
    time_constant: float = glp.SATURATION_TIME_CONSTANT_S

    def __post_init__(self) -> None:
        self.values = np.asarray(self.values, dtype=float)
        if self.peaks is None:
            self.peaks = self.values.copy()
        if len(self.labels) != len(self.values):
            raise ValueError("SaturationStats needs one value per label")

    def update(self, new: "SaturationStats", interval_s: float) -> None:
        """
        Fold a newer sample into these statistics in place.

        Parameters
        ----------
        new : SaturationStats
            Statistics computed from the latest frame.
        interval_s : float
            Seconds between the previous sample and `new` (polling interval).
        """
        if list(new.labels) != list(self.labels):
            # format changed under us; start over
            self.labels = list(new.labels)
            self.values = new.values.copy()
            self.peaks = new.values.copy()
            self.samples = 1
            return
        if interval_s <= 0:
            alpha = 1.0
        else:
            alpha = 1.0 - math.exp(-interval_s / self.time_constant)
        self.values = (1.0 - alpha) * self.values + alpha * new.values
        self.peaks = np.maximum(self.peaks, new.values)
        self.samples += 1

    def as_percent(self) -> Dict[str, float]:
        return {label: 100.0 * float(v) for label, v in zip(self.labels, self.values)}


@dataclass
class AntennaFilter:
    """Ordered antenna names to request; pushed to the backend on change."""
    items: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        items, self.items = self.items, []
        for name in items:
            self.add(name)

    def add(self, name: str) -> bool:
        """Add a name (trimmed, upper-cased). Returns False if blank or present."""
        name = name.strip().upper()
        if not name or name in self.items:
            return False
        self.items.append(name)
        return True

    def remove(self, name: str) -> bool:
        name = name.strip().upper()
        if name not in self.items:
            return False
        self.items.remove(name)
        return True

    def remove_index(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.items):
            return self.items.pop(index)
        return None

    def names(self) -> List[str]:
        return list(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, name: str) -> bool:
        return name.strip().upper() in self.items
