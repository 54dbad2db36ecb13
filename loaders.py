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

"""
Spectrum backends and the interface the acquisition scheduler drives.

A backend answers `poll()` with the newest AutoSpectra (or None when there
is nothing new or the poll failed) and accepts antenna filters through
`apply_filter()`. Backends that read a fixed file are polled once and again
after every filter change; live backends are polled periodically.
"""
import asyncio
import enum
import logging
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union, runtime_checkable

import numpy as np

import drspec
import global_params as glp
from data_models import AutoSpectra, SaturationStats
from errors import DecodeError, NoMoreFrames

log = logging.getLogger(__name__)


class PollMode(enum.Enum):
    ONCE = "once"
    PERIODIC = "periodic"


@runtime_checkable
class SpectrumLoader(Protocol):
    poll_mode: PollMode

    async def poll(self) -> Optional[AutoSpectra]:
        """Load the newest autospectra, or None if nothing is available."""
        ...

    def apply_filter(self, names: Sequence[str]) -> None:
        """Restrict the antennas returned by later polls."""
        ...

    def stats(self) -> Optional[SaturationStats]:
        """Saturation statistics of the last poll, if the source has any."""
        ...


class DrspecFileLoader:
    """Reads the first spectrum of a local DR spectrometer file."""

    poll_mode = PollMode.ONCE

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.last_poll_status = "no_data"
        self._stats: Optional[SaturationStats] = None

    def _read(self) -> Optional[AutoSpectra]:
        try:
            with open(self.path, "rb") as fh:
                drspec.find_next_frame(fh)
                frame = drspec.decode_frame(fh)
        except NoMoreFrames:
            self.last_poll_status = "no_data"
            log.warning("No spectra found in %s", self.path)
            return None
        except DecodeError as exc:
            self.last_poll_status = "decode_error"
            log.error("Error reading spectrum file %s: %s", self.path, exc)
            return None
        except OSError as exc:
            self.last_poll_status = "os_error"
            log.error("Unable to open %s: %s", self.path, exc)
            return None
        self.last_poll_status = "ok"
        self._stats = frame.header.saturation_stats()
        return drspec.into_autospectra(frame)

    async def poll(self) -> Optional[AutoSpectra]:
        return await asyncio.to_thread(self._read)

    def apply_filter(self, names: Sequence[str]) -> None:
        # the file always holds the same polarization products
        return None

    def stats(self) -> Optional[SaturationStats]:
        return self._stats


class NpyFileLoader:
    """
    Plots autospectra saved by the RFI monitor as a 2-D numpy array.

    Rows alternate polarization A/B per antenna. Rows that are entirely NaN
    or non-positive are skipped; the first 2 * n_spectra good rows are shown.
    """

    poll_mode = PollMode.ONCE

    def __init__(self, path: Union[str, Path], n_spectra: int = 0) -> None:
        self.path = Path(path)
        self.n_spectra = n_spectra
        self.last_poll_status = "no_data"

    def _read(self) -> Optional[AutoSpectra]:
        try:
            data = np.load(self.path)
        except (OSError, ValueError) as exc:
            self.last_poll_status = "os_error"
            log.error("Unable to read %s: %s", self.path, exc)
            return None
        data = np.atleast_2d(np.asarray(data, dtype=float))
        n_freqs = data.shape[1]
        n_rows = 2 * self.n_spectra

        with np.errstate(invalid="ignore"):
            bad = np.all(np.isnan(data) | (data <= 0.0), axis=1)
        good = data[~bad][:n_rows]
        data_out = np.zeros((n_rows, n_freqs))
        data_out[:len(good)] = good

        freqs = np.linspace(0.0, glp.BANDWIDTH_MHZ, n_freqs)
        names = _ab_names(self.n_spectra)
        self.last_poll_status = "ok"
        return AutoSpectra.from_arrays(names, freqs, data_out, plot_log=True)

    async def poll(self) -> Optional[AutoSpectra]:
        return await asyncio.to_thread(self._read)

    def apply_filter(self, names: Sequence[str]) -> None:
        # file mode only knows how many antennas to show
        self.n_spectra = len(names)

    def stats(self) -> Optional[SaturationStats]:
        return None


def _ab_names(n_antennas: int) -> List[str]:
    names = []
    for ant in range(n_antennas):
        names.extend([f"{ant}A", f"{ant}B"])
    return names
