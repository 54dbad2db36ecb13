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
etcd request/response protocol for OVRO-LWA SNAP2 spectra.

Requests are JSON documents put on a per-board command key; the board
controller answers under a shared response prefix with the same "id".
Command format must match what the SNAP2 control daemon expects:

    {"cmd": "get_new_spectra",
     "val": {"block": "autocorr", "timestamp": <float s>,
             "kwargs": {"signal_block": <0..3>}},
     "id": "<microsecond timestamp>"}

The response carries "val": {"response": [[...], ...]}, 16 rows of spectra.
"""
import json
import logging
import queue
import time
from typing import Any, Callable, List, Optional, Tuple

import numpy as np

import global_params as glp
from errors import ShapeMismatch, TransportError

log = logging.getLogger(__name__)

SPECTRA_COMMAND = "get_new_spectra"
SPECTRA_BLOCK = "autocorr"


def command_key(node: Optional[int]) -> str:
    """
    Command key for a SNAP2 board.

    Parameters
    ----------
    node : int or None
        Board number, zero-padded to two digits. None addresses the
        default board key ("/cmd/snap/0").
    """
    if node is None:
        return f"{glp.ETCD_CMD_ROOT}0"
    return f"{glp.ETCD_CMD_ROOT}{node:02d}"


def current_timestamp(clock: Callable[[], float] = time.time) -> float:
    """Current time in seconds, rounded to whole microseconds."""
    return round(clock() * 1e6) / 1e6


def request_id(timestamp: float) -> str:
    return str(int(round(timestamp * 1e6)))


def encode_command(signal_block: int, timestamp: float) -> Tuple[str, str]:
    """
    Encode a get_new_spectra request.

    Returns
    -------
    tuple of (str, str)
        (request id, JSON document).
    """
    seq_id = request_id(timestamp)
    command = json.dumps({
        "cmd": SPECTRA_COMMAND,
        "val": {
            "block": SPECTRA_BLOCK,
            "timestamp": timestamp,
            "kwargs": {"signal_block": signal_block},
        },
        "id": seq_id,
    })
    return seq_id, command


def decode_response(value: bytes, seq_id: str,
                    shape: Tuple[int, int] = (glp.SIGNAL_BLOCK_CHANNELS, glp.N_FREQ)
                    ) -> Optional[np.ndarray]:
    """
    Extract the spectra from a response document if it answers `seq_id`.

    Returns
    -------
    numpy.ndarray or None
        `shape` array of spectra; None if the document is not JSON, has no id
        or answers a different request.

    Raises
    ------
    ShapeMismatch
        The matching response does not hold `shape` numbers.
    """
    try:
        doc = json.loads(value)
    except (TypeError, ValueError):
        return None
    if not isinstance(doc, dict) or doc.get("id") != seq_id:
        return None
    try:
        rows = doc["val"]["response"]
        flat = [float(x) for row in rows for x in row]
    except (KeyError, TypeError, ValueError) as exc:
        raise ShapeMismatch("Malformed spectra response %s: %s" % (seq_id, exc)) from exc
    if len(flat) != shape[0] * shape[1]:
        raise ShapeMismatch(
            "Cannot fit %d values into shape (%d, %d)" % (len(flat), shape[0], shape[1])
        )
    return np.array(flat, dtype=float).reshape(shape)


class WatchStream:
    """
    Queue of watch responses delivered by the client's callback thread.

    Items are objects with an `events` list (each event has a bytes `value`)
    or an exception raised inside the watcher.
    """

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._cancel = cancel
        self._cancelled = False

    def push(self, response: Any) -> None:
        self._queue.put(response)

    def next_values(self, timeout: float) -> List[bytes]:
        """Block for the next response and return its event values."""
        try:
            response = self._queue.get(timeout=timeout)
        except queue.Empty:
            raise TransportError("Timed out waiting for etcd response") from None
        if isinstance(response, BaseException):
            raise TransportError("etcd watch failed", response)
        return [event.value for event in response.events if getattr(event, "value", None)]

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._cancel()


class EtcdTransport:
    """Thin wrapper around an etcd3 client exposing get/put/watch_prefix."""

    def __init__(self, client, errors: Tuple[type, ...] = (OSError,)) -> None:
        self._client = client
        self._errors = errors

    @classmethod
    def connect(cls, address: str = glp.ETCD_ADDRESS) -> "EtcdTransport":
        """
        Connect to an etcd v3 server given as "host:port".

        Raises
        ------
        TransportError
            On connection failure.
        """
        import etcd3
        import grpc

        host, _, port = address.rpartition(":")
        if not host:
            host, port = address, "2379"
        errors = (etcd3.exceptions.Etcd3Exception, grpc.RpcError, OSError)
        try:
            client = etcd3.client(host=host, port=int(port))
            client.status()
        except errors as exc:
            raise TransportError("Error connecting to etcd server %s" % address, exc) from exc
        log.info("Connected to etcd at %s", address)
        return cls(client, errors)

    def get(self, key: str) -> Optional[bytes]:
        try:
            value, _meta = self._client.get(key)
        except self._errors as exc:
            raise TransportError("Unable to get %s" % key, exc) from exc
        return value

    def put(self, key: str, value: str) -> None:
        try:
            self._client.put(key, value)
        except self._errors as exc:
            raise TransportError("Unable to put spectrum request", exc) from exc

    def watch_prefix(self, prefix: str) -> WatchStream:
        """Start watching `prefix`; responses arrive on the returned stream."""
        watch_id = None

        def cancel() -> None:
            if watch_id is not None:
                try:
                    self._client.cancel_watch(watch_id)
                except self._errors as exc:
                    log.debug("Cancelling watch %s failed: %s", watch_id, exc)

        stream = WatchStream(cancel)
        try:
            watch_id = self._client.add_watch_prefix_callback(prefix, stream.push)
        except self._errors as exc:
            raise TransportError("Unable to watch etcd response key", exc) from exc
        return stream
