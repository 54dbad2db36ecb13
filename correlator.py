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
Live autocorrelation spectra from the OVRO-LWA correlator via etcd.

Each SNAP2 board serves its 64 inputs in four signal blocks of 16. A poll
asks every board referenced by the antenna filter for all four blocks, then
keeps the two inputs of each requested antenna.
"""
import asyncio
import json
import logging
import time
from typing import Callable, List, Optional, Sequence

import numpy as np

import etcd_protocol
import global_params as glp
from data_models import AutoSpectra, SaturationStats
from errors import ConfigurationError, DecodeError, TransportError
from loaders import PollMode
from topology import AntInfo, load_topology, resolve

log = logging.getLogger(__name__)


class CorrelatorLoader:
    """
    Spectrum backend that queries SNAP2 boards over etcd.

    Parameters
    ----------
    transport : EtcdTransport
        Object providing get/put/watch_prefix.
    topology : list of AntInfo
        Full antenna configuration.
    clock : callable, optional
        Returns the current unix time; request ids derive from it.
    watch_timeout : float, optional
        Seconds to wait for each signal block before the poll fails.
    """

    poll_mode = PollMode.PERIODIC

    def __init__(self, transport, topology: Sequence[AntInfo],
                 clock: Callable[[], float] = time.time,
                 watch_timeout: float = glp.WATCH_TIMEOUT_S,
                 n_freq: int = glp.N_FREQ) -> None:
        self._transport = transport
        self.topology = list(topology)
        self.filter: Optional[List[AntInfo]] = None
        self._clock = clock
        self._watch_timeout = watch_timeout
        self.n_freq = n_freq
        self.last_poll_status = "no_data"

    @classmethod
    def connect(cls, address: str = glp.ETCD_ADDRESS, **kwargs) -> "CorrelatorLoader":
        """
        Connect to etcd and load the antenna configuration.

        Raises
        ------
        TransportError
            The server is unreachable.
        ConfigurationError
            /cfg/system is missing or malformed.
        """
        transport = etcd_protocol.EtcdTransport.connect(address)
        raw = transport.get(glp.ETCD_CONFIG_KEY)
        if raw is None:
            raise ConfigurationError("%s not found in etcd" % glp.ETCD_CONFIG_KEY)
        try:
            document = json.loads(raw)
        except ValueError as exc:
            raise ConfigurationError("Error generating JSON from etcd response: %s" % exc) from exc
        return cls(transport, load_topology(document), **kwargs)

    def nodes(self) -> Optional[List[int]]:
        """Distinct sorted boards referenced by the filter, None if unfiltered."""
        if self.filter is None:
            return None
        return sorted({info.node for info in self.filter})

    def request_block(self, cmd_key: str, signal_block: int) -> np.ndarray:
        """
        Request one 16-input block and wait for the matching response.

        The watch is opened before the command is put so a fast reply cannot
        be missed. Responses to other requests are ignored.

        Returns
        -------
        numpy.ndarray
            (16, n_freq) spectra.
        """
        timestamp = etcd_protocol.current_timestamp(self._clock)
        seq_id, command = etcd_protocol.encode_command(signal_block, timestamp)
        shape = (glp.SIGNAL_BLOCK_CHANNELS, self.n_freq)

        watch = self._transport.watch_prefix(glp.ETCD_RESP_KEY)
        try:
            self._transport.put(cmd_key, command)
            deadline = time.monotonic() + self._watch_timeout
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransportError(
                        "No response to %s (signal block %d) after %.1f s"
                        % (cmd_key, signal_block, self._watch_timeout)
                    )
                for value in watch.next_values(remaining):
                    spectra = etcd_protocol.decode_response(value, seq_id, shape)
                    if spectra is not None:
                        return spectra
        finally:
            watch.cancel()

    def request_node(self, node: Optional[int]) -> np.ndarray:
        """All 64 input spectra of one board, (64, n_freq)."""
        cmd_key = etcd_protocol.command_key(node)
        spectra = np.zeros((glp.SNAP_CHANNELS, self.n_freq))
        for block in range(glp.N_SIGNAL_BLOCKS):
            start = block * glp.SIGNAL_BLOCK_CHANNELS
            spectra[start:start + glp.SIGNAL_BLOCK_CHANNELS] = self.request_block(cmd_key, block)
        return spectra

    def request_autos(self) -> np.ndarray:
        """
        Spectra for the filtered antennas, two rows (pol A, pol B) each.

        Without a filter, the 64 inputs of the default board.
        """
        nodes = self.nodes()
        if nodes is None:
            return self.request_node(None)

        rows = [np.zeros((0, self.n_freq))]
        for node in nodes:
            spectra = self.request_node(node)
            channels = []
            for info in self.filter:
                if info.node == node:
                    channels.extend(info.channels)
            rows.append(spectra[channels])
        return np.concatenate(rows, axis=0)

    def labels(self, n_rows: int) -> List[str]:
        if self.filter is None:
            return [str(row) for row in range(n_rows)]
        names = []
        for info in self.filter:
            names.extend([f"{info.antname}a", f"{info.antname}b"])
        return names

    def fetch(self) -> AutoSpectra:
        data = self.request_autos()
        freqs = np.linspace(0.0, glp.BANDWIDTH_MHZ, self.n_freq)
        return AutoSpectra.from_arrays(self.labels(data.shape[0]), freqs, data, plot_log=True)

    async def poll(self) -> Optional[AutoSpectra]:
        try:
            spectra = await asyncio.to_thread(self.fetch)
        except TransportError as exc:
            self.last_poll_status = "transport_error"
            log.error("Spectrum request failed: %s", exc)
            return None
        except DecodeError as exc:
            self.last_poll_status = "decode_error"
            log.error("Malformed spectrum response: %s", exc)
            return None
        self.last_poll_status = "ok"
        return spectra

    def apply_filter(self, names: Sequence[str]) -> None:
        self.filter = resolve(names, self.topology)
        log.info("Antenna filter: %s", ", ".join(info.antname for info in self.filter) or "none")

    def stats(self) -> Optional[SaturationStats]:
        return None
