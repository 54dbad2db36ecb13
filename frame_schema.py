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
Frame layout schema for DR spectrometer (DRSpec) files.

The layout must match the data recorder's spectrometer output, see
lsl/reader/drspec.cpp in the LWA Software Library.

Header format (76 bytes, little-endian):
- [0]: SYNC_WORD (0xC0DEC0DE)
- [1]: TIME_TAG, u64 count of CLOCK_SPEED ticks
- [2]: TIME_OFFSET, u16
- [3]: DECIMATION, u16
- [4:6]: TUNING_WORDS, u32 x 2 (Hz = word * CLOCK_SPEED / 2**32)
- [6:10]: FILLS, u32 x 4 (X0, Y0, X1, Y1)
- [10:14]: ERRORS, u8 x 4 (X0, Y0, X1, Y1)
- [14]: BEAM, u8
- [15]: STOKES_FORMAT, u8 polarization bitmask
- [16]: VERSION, u8
- [17]: FLAGS, u8
- [18]: N_FREQS, u32 transform length
- [19]: N_INTS, u32 integration count
- [20:24]: SATURATION, u32 x 4 (X0, Y0, X1, Y1)
- [24]: SYNC_FOOTER_WORD (0xED0CED0C)

The header is followed by 2 tunings * N_FREQS * pol_count float32 samples,
ordered (tuning, frequency, polarization product).
"""
import struct
from enum import IntEnum
from typing import Callable, List, Optional, Sequence

import numpy as np

SYNC_HEADER = 0xC0DEC0DE
SYNC_FOOTER = 0xED0CED0C
SYNC_HEADER_BYTES = struct.pack("<I", SYNC_HEADER)

HEADER_STRUCT = struct.Struct("<IQHH2I4I4BBBBBII4II")
HEADER_SIZE = HEADER_STRUCT.size  # 76

# Field offsets into the unpacked header tuple
SYNC_WORD = 0
TIME_TAG = 1
TIME_OFFSET = 2
DECIMATION = 3
TUNING_WORDS = slice(4, 6)
FILLS = slice(6, 10)
ERRORS = slice(10, 14)
BEAM = 14
STOKES_FORMAT = 15
VERSION = 16
FLAGS = 17
N_FREQS = 18
N_INTS = 19
SATURATION = slice(20, 24)
SYNC_FOOTER_WORD = 24


class PolarizationFormat(IntEnum):
    LINEAR_XX = 0x01
    LINEAR_XY_RE = 0x02
    LINEAR_XY_IM = 0x04
    LINEAR_YY = 0x08
    LINEAR_REAL_HALF = 0x01 | 0x08
    LINEAR_OTHER_HALF = 0x02 | 0x04
    LINEAR_FULL = 0x0F
    STOKES_I = 0x10
    STOKES_Q = 0x20
    STOKES_U = 0x40
    STOKES_V = 0x80
    STOKES_REAL_HALF = 0x10 | 0x80
    STOKES_OTHER_HALF = 0x20 | 0x40
    STOKES_FULL = 0xF0

    @property
    def pol_count(self) -> int:
        """Number of polarization products in the payload (set bits)."""
        return bin(self.value).count("1")

    @property
    def labels(self) -> List[str]:
        return list(_LABELS[self])

    @property
    def wire_byte(self) -> int:
        """Byte written to the header for this format."""
        return _WIRE_CODES.get(self, self.value)

    @classmethod
    def from_byte(cls, value: int) -> Optional["PolarizationFormat"]:
        """Map a header byte to a format, or None if it is not defined."""
        return _FROM_WIRE.get(value)


# The recorder writes the cross-product half formats as 0x0A and 0xA0, not as
# their bitmasks; 0x06 and 0x60 never appear on disk.
_WIRE_CODES = {
    PolarizationFormat.LINEAR_OTHER_HALF: 0x0A,
    PolarizationFormat.STOKES_OTHER_HALF: 0xA0,
}
_FROM_WIRE = {fmt.wire_byte: fmt for fmt in PolarizationFormat}

_LABELS = {
    PolarizationFormat.LINEAR_XX: ("XX",),
    PolarizationFormat.LINEAR_XY_RE: ("Re(XY)",),
    PolarizationFormat.LINEAR_XY_IM: ("Im(XY)",),
    PolarizationFormat.LINEAR_YY: ("YY",),
    PolarizationFormat.LINEAR_REAL_HALF: ("XX", "YY"),
    PolarizationFormat.LINEAR_OTHER_HALF: ("Re(XY)", "Im(XY)"),
    PolarizationFormat.LINEAR_FULL: ("XX", "Re(XY)", "Im(XY)", "YY"),
    PolarizationFormat.STOKES_I: ("I",),
    PolarizationFormat.STOKES_Q: ("Q",),
    PolarizationFormat.STOKES_U: ("U",),
    PolarizationFormat.STOKES_V: ("V",),
    PolarizationFormat.STOKES_REAL_HALF: ("I", "V"),
    PolarizationFormat.STOKES_OTHER_HALF: ("Q", "U"),
    PolarizationFormat.STOKES_FULL: ("I", "Q", "U", "V"),
}

# Per-product source of the fill (normalisation) and saturation values,
# tuning-major. X0/Y0/X1/Y1 pick one pol/tuning entry; P0/P1 combine the X
# and Y entries of tuning 0/1 (min for fills, max for saturation).
_COMBINATION_RULES = {
    PolarizationFormat.LINEAR_XX: ("X0", "X1"),
    PolarizationFormat.LINEAR_YY: ("Y0", "Y1"),
    PolarizationFormat.LINEAR_XY_RE: ("P0", "P1"),
    PolarizationFormat.LINEAR_XY_IM: ("P0", "P1"),
    PolarizationFormat.LINEAR_REAL_HALF: ("X0", "Y0", "X1", "Y1"),
    PolarizationFormat.LINEAR_OTHER_HALF: ("P0", "P0", "P1", "P1"),
    PolarizationFormat.LINEAR_FULL: ("X0", "P0", "P0", "Y0", "X1", "P1", "P1", "Y1"),
    PolarizationFormat.STOKES_I: ("P0", "P1"),
    PolarizationFormat.STOKES_Q: ("P0", "P1"),
    PolarizationFormat.STOKES_U: ("P0", "P1"),
    PolarizationFormat.STOKES_V: ("P0", "P1"),
    PolarizationFormat.STOKES_REAL_HALF: ("P0", "P0", "P1", "P1"),
    PolarizationFormat.STOKES_OTHER_HALF: ("P0", "P0", "P1", "P1"),
    PolarizationFormat.STOKES_FULL: ("P0", "P0", "P0", "P0", "P1", "P1", "P1", "P1"),
}


def combine_by_format(
    fmt: PolarizationFormat,
    values: Sequence[float],
    pair: Callable[[float, float], float],
) -> np.ndarray:
    """
    Expand four per-pol/tuning values into one value per payload product.

    Parameters
    ----------
    fmt : PolarizationFormat
        Output format of the spectrometer.
    values : sequence of float
        Four values ordered X0, Y0, X1, Y1 (fills or saturation fractions).
    pair : callable
        Combines the X and Y value of a tuning for cross/Stokes products
        (min for normalisation, max for saturation).

    Returns
    -------
    numpy.ndarray
        1-D array of length 2 * fmt.pol_count, tuning-major.
    """
    x0, y0, x1, y1 = (float(v) for v in values)
    sources = {
        "X0": x0,
        "Y0": y0,
        "X1": x1,
        "Y1": y1,
        "P0": pair(x0, y0),
        "P1": pair(x1, y1),
    }
    return np.array([sources[key] for key in _COMBINATION_RULES[fmt]], dtype=float)


def payload_bytes(n_freqs: int, fmt: PolarizationFormat) -> int:
    """Bytes of float32 samples following a header: 2 tunings * n_freqs * pols * 4."""
    return 2 * n_freqs * fmt.pol_count * 4
