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
Antenna to hardware mapping for the OVRO-LWA correlator.

Every antenna is routed through one SNAP2 board (`node`) and occupies two
of its 64 inputs, one per polarization. The mapping is published in etcd
under /cfg/system as JSON.
"""
import functools
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

import global_params as glp
from errors import ConfigurationError

log = logging.getLogger(__name__)

_FIELDS = ("antname", "snap2_location", "pola_fpga_num", "polb_fpga_num")


@functools.total_ordering
@dataclass(eq=False)
class AntInfo:
    """
    One antenna's hardware location.

    Equality, ordering and hashing consider only `node`: two antennas on the
    same SNAP2 board compare equal.
    """
    antname: str
    node: int
    pola_channel: int
    polb_channel: int

    def __eq__(self, other) -> bool:
        if not isinstance(other, AntInfo):
            return NotImplemented
        return self.node == other.node

    def __lt__(self, other) -> bool:
        if not isinstance(other, AntInfo):
            return NotImplemented
        return self.node < other.node

    def __hash__(self) -> int:
        return hash(self.node)

    @property
    def channels(self) -> List[int]:
        return [self.pola_channel, self.polb_channel]

    @property
    def routable(self) -> bool:
        """True when the board and both inputs are real SNAP2 locations."""
        return self.node >= 0 and all(0 <= ch < glp.SNAP_CHANNELS for ch in self.channels)


def resolve(names: Iterable[str], topology: Iterable[AntInfo]) -> List[AntInfo]:
    """
    Look up antenna names and order them by node.

    Parameters
    ----------
    names : iterable of str
        Requested antenna names, matched case-insensitively.
    topology : iterable of AntInfo
        Full antenna configuration.

    Returns
    -------
    list of AntInfo
        Resolved entries sorted by node; entries equal by node are collapsed
        to the first one requested. Unknown names and entries whose board or
        inputs fall outside the SNAP2 range are dropped.
    """
    by_name: Dict[str, AntInfo] = {}
    for info in topology:
        by_name.setdefault(info.antname.lower(), info)

    found = []
    for name in names:
        info = by_name.get(name.strip().lower())
        if info is None:
            log.warning("Antenna %s not found in configuration; ignoring.", name)
            continue
        if not info.routable:
            log.warning(
                "Antenna %s has no valid SNAP2 location (node %d, inputs %d/%d); ignoring.",
                info.antname, info.node, info.pola_channel, info.polb_channel,
            )
            continue
        found.append(info)

    resolved: List[AntInfo] = []
    for info in sorted(found):
        if info not in resolved:
            resolved.append(info)
    return resolved


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return -1
    return value


def _entry(antname: Any, node: Any, pola: Any, polb: Any) -> AntInfo:
    return AntInfo(
        antname=antname if isinstance(antname, str) else "null",
        node=_as_int(node),
        pola_channel=_as_int(pola),
        polb_channel=_as_int(polb),
    )


def load_topology(document: Mapping[str, Any]) -> List[AntInfo]:
    """
    Build the antenna list from the /cfg/system document.

    Two layouts are in use under the "lwacfg" key: column-major
    (field -> antenna -> value, recognised by a "snap2_location" key) and
    row-major (antenna -> {field: value}). Missing names become "null" and
    missing numbers -1.

    Raises
    ------
    ConfigurationError
        The document has no "lwacfg" object or the layout is not recognised.
    """
    if not isinstance(document, Mapping):
        raise ConfigurationError("System configuration is not a JSON object")
    table = document.get("lwacfg")
    if not isinstance(table, Mapping):
        raise ConfigurationError("System configuration has no 'lwacfg' object")

    if "snap2_location" in table:
        columns = {}
        for key in _FIELDS:
            column = table.get(key, {})
            if not isinstance(column, Mapping):
                raise ConfigurationError("lwacfg column %r is not an object" % key)
            columns[key] = column
        antennas = set()
        for column in table.values():
            if isinstance(column, Mapping):
                antennas.update(column.keys())
        entries = [
            _entry(*(columns[key].get(ant) for key in _FIELDS))
            for ant in sorted(antennas)
        ]
    else:
        entries = []
        for ant, row in table.items():
            if not isinstance(row, Mapping):
                raise ConfigurationError("lwacfg entry %r is not an object" % ant)
            entries.append(_entry(*(row.get(key) for key in _FIELDS)))

    log.info("Configuration loaded: %d antennas.", len(entries))
    return entries
