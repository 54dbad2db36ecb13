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
Exception types shared by the decoders and acquisition backends.

DecodeError and its subclasses are fatal to the one frame being decoded.
TransportError covers connect/auth/put/watch/file I/O failures and is fatal
to the current poll. ConfigurationError covers malformed topology documents.
"""
from typing import Optional


class DecodeError(ValueError):
    """A frame or response could not be decoded."""


class BadSyncMarker(DecodeError):
    """
    A frame sync word did not match its fixed constant.

    Parameters
    ----------
    expected : int
        The sync word required at this position.
    actual : int
        The word recovered from the input.
    position : str
        "leading" or "trailing".
    """

    def __init__(self, expected: int, actual: int, position: str) -> None:
        self.expected = expected
        self.actual = actual
        self.position = position
        super().__init__(
            "DR header %s sync word error: expected 0x%08X, recovered 0x%08X"
            % (position, expected, actual)
        )


class TruncatedInput(DecodeError):
    """Fewer bytes were available than the layout requires."""

    def __init__(self, needed: int, available: int) -> None:
        self.needed = needed
        self.available = available
        super().__init__(
            "Truncated input: needed %d bytes, only %d available" % (needed, available)
        )


class UnknownPolarization(DecodeError):
    """The polarization format byte is not a defined bitmask."""

    def __init__(self, value: int) -> None:
        self.value = value
        super().__init__("Unknown polarization type value: 0x%02X" % value)


class InvalidHeader(DecodeError):
    """A header field holds a value no spectrometer frame can have."""


class ShapeMismatch(DecodeError):
    """Decoded samples do not fit the shape the header or protocol implies."""


class NoMoreFrames(EOFError):
    """End of stream reached while searching for a sync word (no data yet)."""


class TransportError(OSError):
    """Connection, authentication or remote I/O failure."""

    def __init__(self, msg: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(msg if cause is None else "%s: %s" % (msg, cause))
        self.cause = cause


class ConfigurationError(ValueError):
    """The antenna topology document is missing or malformed."""


class FilterChannelClosed(RuntimeError):
    """The backend task is gone and can no longer accept antenna filters."""
