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
Decoder for DR spectrometer frames.

A DRSpec file is a concatenation of frames, each a 76-byte header (see
frame_schema) followed by float32 spectra for two tunings. Frame boundaries
are only known from the sync words and the declared transform length, so
readers locate the next header with find_next_frame() and derive the frame
length from the header they decode.
"""
import io
import os
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Tuple, Union

import numpy as np

import frame_schema
import global_params as glp
from data_models import AutoSpectra, SaturationStats
from errors import (
    BadSyncMarker,
    InvalidHeader,
    NoMoreFrames,
    ShapeMismatch,
    TruncatedInput,
    UnknownPolarization,
)
from frame_schema import PolarizationFormat

_SCAN_CHUNK = 64 * 1024

Source = Union[bytes, bytearray, memoryview, BinaryIO]


@dataclass(frozen=True)
class SpectrumHeader:
    """Decoded DRSpec header; field order follows the on-disk layout."""
    time_tag: int
    time_offset: int
    decimation_factor: int
    tuning_words: Tuple[int, int]
    fills: Tuple[int, int, int, int]
    errors: Tuple[int, int, int, int]
    beam: int
    stokes_format: PolarizationFormat
    version: int
    flags: int
    n_freqs: int
    n_ints: int
    saturation_count: Tuple[int, int, int, int]

    @property
    def timestamp(self) -> float:
        """Unix seconds of the first integration: (time_tag - time_offset) / CLOCK_SPEED."""
        ticks = self.time_tag - self.time_offset
        whole, frac = divmod(ticks, glp.CLOCK_SPEED)
        return whole + frac / glp.CLOCK_SPEED

    @property
    def frequencies(self) -> Tuple[float, float]:
        """Tuning centre frequencies in Hz."""
        return tuple(word * glp.CLOCK_SPEED / 2**32 for word in self.tuning_words)

    @property
    def sample_rate(self) -> float:
        return glp.CLOCK_SPEED / self.decimation_factor

    @property
    def pol_count(self) -> int:
        return self.stokes_format.pol_count

    @property
    def payload_bytes(self) -> int:
        return frame_schema.payload_bytes(self.n_freqs, self.stokes_format)

    @property
    def frame_bytes(self) -> int:
        return frame_schema.HEADER_SIZE + self.payload_bytes

    def calc_saturation(self) -> np.ndarray:
        """
        Fraction of saturated samples per product and tuning.

        Returns
        -------
        numpy.ndarray
            2 * pol_count fractions in [0, 1], tuning-major.
        """
        total = float(self.n_ints) * float(self.n_freqs)
        if total > 0:
            fractions = np.clip(np.asarray(self.saturation_count, dtype=float) / total, 0.0, 1.0)
        else:
            fractions = np.zeros(4)
        return frame_schema.combine_by_format(self.stokes_format, fractions, max)

    def saturation_stats(self) -> SaturationStats:
        labels = [
            "T%d %s" % (tuning + 1, label)
            for tuning in range(glp.N_TUNINGS)
            for label in self.stokes_format.labels
        ]
        return SaturationStats(labels=labels, values=self.calc_saturation())

    def get_freqs(self) -> np.ndarray:
        """(2, n_freqs) frequency axes in Hz, each tuning +/- half the sample rate."""
        half = self.sample_rate / 2.0
        return np.stack([
            np.linspace(freq - half, freq + half, self.n_freqs)
            for freq in self.frequencies
        ])


@dataclass(frozen=True, eq=False)
class SpectrumFrame:
    """Header plus normalised samples shaped (tuning, frequency, product)."""
    header: SpectrumHeader
    data: np.ndarray

    def __eq__(self, other) -> bool:
        if not isinstance(other, SpectrumFrame):
            return NotImplemented
        return self.header == other.header and np.array_equal(
            self.data, other.data, equal_nan=True
        )

    __hash__ = None


def _as_stream(source: Source) -> BinaryIO:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(source))
    return source


def _read_exact(stream: BinaryIO, size: int, already: int = 0) -> bytes:
    """Read exactly `size` bytes or raise TruncatedInput."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    data = b"".join(chunks)
    if len(data) < size:
        raise TruncatedInput(already + size, already + len(data))
    return data


def decode_header(source: Source) -> SpectrumHeader:
    """
    Decode one 76-byte header at the current position.

    Parameters
    ----------
    source : bytes or binary stream
        Raw bytes starting at a header, or a stream positioned on one.

    Returns
    -------
    SpectrumHeader

    Raises
    ------
    BadSyncMarker
        Leading or trailing sync word mismatch.
    TruncatedInput
        Fewer than 76 bytes available.
    UnknownPolarization
        Polarization byte is not a defined format.
    InvalidHeader
        Decimation factor is zero.
    """
    stream = _as_stream(source)
    lead = _read_exact(stream, 4)
    sync = int.from_bytes(lead, "little")
    if sync != frame_schema.SYNC_HEADER:
        raise BadSyncMarker(frame_schema.SYNC_HEADER, sync, "leading")
    rest = _read_exact(stream, frame_schema.HEADER_SIZE - 4, already=4)
    fields = frame_schema.HEADER_STRUCT.unpack(lead + rest)

    fmt = PolarizationFormat.from_byte(fields[frame_schema.STOKES_FORMAT])
    if fmt is None:
        raise UnknownPolarization(fields[frame_schema.STOKES_FORMAT])

    footer = fields[frame_schema.SYNC_FOOTER_WORD]
    if footer != frame_schema.SYNC_FOOTER:
        raise BadSyncMarker(frame_schema.SYNC_FOOTER, footer, "trailing")

    if fields[frame_schema.DECIMATION] == 0:
        raise InvalidHeader("DR header decimation factor is zero")

    return SpectrumHeader(
        time_tag=fields[frame_schema.TIME_TAG],
        time_offset=fields[frame_schema.TIME_OFFSET],
        decimation_factor=fields[frame_schema.DECIMATION],
        tuning_words=tuple(fields[frame_schema.TUNING_WORDS]),
        fills=tuple(fields[frame_schema.FILLS]),
        errors=tuple(fields[frame_schema.ERRORS]),
        beam=fields[frame_schema.BEAM],
        stokes_format=fmt,
        version=fields[frame_schema.VERSION],
        flags=fields[frame_schema.FLAGS],
        n_freqs=fields[frame_schema.N_FREQS],
        n_ints=fields[frame_schema.N_INTS],
        saturation_count=tuple(fields[frame_schema.SATURATION]),
    )


def normalization(header: SpectrumHeader) -> np.ndarray:
    """(2, 1, pol_count) divisors built from the fills, broadcast over frequency."""
    fills = [fill * header.n_freqs for fill in header.fills]
    norms = frame_schema.combine_by_format(header.stokes_format, fills, min)
    expected = glp.N_TUNINGS * header.pol_count
    if norms.size != expected:
        raise ShapeMismatch(
            "Cannot convert %d normalisation values into shape (%d, %d)"
            % (norms.size, glp.N_TUNINGS, header.pol_count)
        )
    return norms.reshape(glp.N_TUNINGS, 1, header.pol_count)


def decode_frame(source: Source) -> SpectrumFrame:
    """
    Decode a header and its payload, dividing out the fill normalisation.

    Raises
    ------
    DecodeError
        Any header error, a short payload (TruncatedInput) or a
        normalisation table that does not fit the payload (ShapeMismatch).
    """
    stream = _as_stream(source)
    header = decode_header(stream)
    raw = _read_exact(stream, header.payload_bytes, already=frame_schema.HEADER_SIZE)
    shape = (glp.N_TUNINGS, header.n_freqs, header.pol_count)
    samples = np.frombuffer(raw, dtype="<f4").astype(np.float64)
    if samples.size != int(np.prod(shape)):
        raise ShapeMismatch("Unable to coerce %d samples into shape %s" % (samples.size, shape))
    samples = samples.reshape(shape)
    with np.errstate(divide="ignore", invalid="ignore"):
        data = samples / normalization(header)
    return SpectrumFrame(header=header, data=data)


def find_next_frame(stream: BinaryIO) -> int:
    """
    Advance `stream` to the next leading sync word.

    Returns
    -------
    int
        Stream position of the sync word (the stream is left there).

    Raises
    ------
    NoMoreFrames
        End of stream reached without finding a sync word.
    """
    marker = frame_schema.SYNC_HEADER_BYTES
    chunk_start = stream.tell()
    carry = b""
    while True:
        chunk = stream.read(_SCAN_CHUNK)
        if not chunk:
            raise NoMoreFrames("No additional data in file")
        window = carry + chunk
        index = window.find(marker)
        if index >= 0:
            position = chunk_start - len(carry) + index
            stream.seek(position)
            return position
        # keep a partial marker that may straddle the next chunk
        carry = window[-(len(marker) - 1):]
        chunk_start += len(chunk)


def read_last_frame(stream: BinaryIO) -> SpectrumFrame:
    """
    Decode only the newest frame of an append-only file.

    The first header gives the frame length; the last frame then starts
    exactly one frame length before the end of the stream.

    Raises
    ------
    TruncatedInput
        The stream does not end on a frame boundary, i.e. the newest frame
        is still being written.
    """
    first = find_next_frame(stream)
    header = decode_header(stream)
    stream.seek(0, os.SEEK_END)
    end = stream.tell()
    partial = (end - first) % header.frame_bytes
    if partial:
        raise TruncatedInput(header.frame_bytes, partial)
    stream.seek(end - header.frame_bytes)
    return decode_frame(stream)


def iter_frames(stream: BinaryIO) -> Iterator[SpectrumFrame]:
    """Yield every frame from the current position to the end of the stream."""
    while True:
        try:
            find_next_frame(stream)
        except NoMoreFrames:
            return
        yield decode_frame(stream)


def into_autospectra(frame: SpectrumFrame) -> AutoSpectra:
    """
    Package a frame as one trace per polarization product across both tunings.

    Frequencies are in MHz; labels carry the saturation percentage.
    """
    header = frame.header
    descriptions = [
        f"{desc:<6} {sat * 100.0:.2f}"
        for desc, sat in zip(header.stokes_format.labels, header.calc_saturation())
    ]
    freqs = (header.get_freqs() / 1e6).ravel()
    data_out = np.stack([
        frame.data[:, :, pol].ravel() for pol in range(header.pol_count)
    ])
    return AutoSpectra.from_arrays(descriptions, freqs, data_out, plot_log=False)


def encode_header(header: SpectrumHeader) -> bytes:
    """Pack a header back into its 76-byte on-disk form."""
    return frame_schema.HEADER_STRUCT.pack(
        frame_schema.SYNC_HEADER,
        header.time_tag,
        header.time_offset,
        header.decimation_factor,
        *header.tuning_words,
        *header.fills,
        *header.errors,
        header.beam,
        header.stokes_format.wire_byte,
        header.version,
        header.flags,
        header.n_freqs,
        header.n_ints,
        *header.saturation_count,
        frame_schema.SYNC_FOOTER,
    )


def encode_frame(header: SpectrumHeader, raw: np.ndarray) -> bytes:
    """
    Pack a header and un-normalised samples shaped (2, n_freqs, pol_count).
    """
    raw = np.asarray(raw)
    shape = (glp.N_TUNINGS, header.n_freqs, header.pol_count)
    if raw.shape != shape:
        raise ShapeMismatch("Samples shaped %s, header needs %s" % (raw.shape, shape))
    return encode_header(header) + raw.astype("<f4").tobytes()
