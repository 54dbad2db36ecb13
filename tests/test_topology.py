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

"""Tests for antenna topology loading and name resolution."""
import pytest

from errors import ConfigurationError
from topology import AntInfo, load_topology, resolve


def _topology():
    return [
        AntInfo("LWA-003", 3, 0, 1),
        AntInfo("LWA-001", 1, 4, 5),
        AntInfo("LWA-002", 2, 6, 7),
        AntInfo("LWA-011", 1, 8, 9),
    ]


def test_resolve_sorts_by_node():
    resolved = resolve(["LWA-003", "LWA-001", "LWA-002"], _topology())
    assert [info.node for info in resolved] == [1, 2, 3]
    assert [info.antname for info in resolved] == ["LWA-001", "LWA-002", "LWA-003"]


def test_resolve_ignores_order_and_duplicates():
    first = resolve(["LWA-002", "LWA-003", "LWA-001", "LWA-002"], _topology())
    second = resolve(["LWA-001", "LWA-002", "LWA-003"], _topology())
    assert [i.antname for i in first] == [i.antname for i in second]


def test_resolve_is_case_insensitive_and_drops_unknown():
    resolved = resolve(["lwa-002", "LWA-999"], _topology())
    assert [info.antname for info in resolved] == ["LWA-002"]


def test_resolve_collapses_antennas_sharing_a_node():
    # equality is by node, so the second antenna on board 1 is dropped
    resolved = resolve(["LWA-011", "LWA-001"], _topology())
    assert [info.antname for info in resolved] == ["LWA-011"]


def test_antinfo_equality_by_node():
    assert AntInfo("a", 1, 0, 1) == AntInfo("b", 1, 2, 3)
    assert AntInfo("a", 1, 0, 1) < AntInfo("a", 2, 0, 1)
    assert len({AntInfo("a", 1, 0, 1), AntInfo("b", 1, 2, 3)}) == 1
    assert AntInfo("a", 1, 10, 11).channels == [10, 11]


def test_resolve_drops_entries_outside_snap_range():
    topology = _topology() + [
        AntInfo("LWA-070", 4, 70, 71),
        AntInfo("LWA-064", 5, 63, 64),
        AntInfo("LWA-nochan", 6, -1, 3),
        AntInfo("LWA-nonode", -1, 0, 1),
    ]
    resolved = resolve(
        ["LWA-070", "LWA-064", "LWA-nochan", "LWA-nonode", "LWA-002"], topology
    )
    assert [info.antname for info in resolved] == ["LWA-002"]
    assert AntInfo("edge", 0, 0, 63).routable


def test_load_topology_column_layout():
    document = {"lwacfg": {
        "antname": {"0": "LWA-001", "1": "LWA-002"},
        "snap2_location": {"0": 5, "1": 6},
        "pola_fpga_num": {"0": 10, "1": 12},
        "polb_fpga_num": {"0": 11},
    }}
    entries = load_topology(document)
    assert [e.antname for e in entries] == ["LWA-001", "LWA-002"]
    assert entries[0].channels == [10, 11]
    assert entries[1].node == 6
    assert entries[1].polb_channel == -1


def test_load_topology_row_layout():
    document = {"lwacfg": {
        "LWA-001": {"antname": "LWA-001", "snap2_location": 2,
                    "pola_fpga_num": 0, "polb_fpga_num": 1},
        "LWA-002": {"snap2_location": "bad"},
    }}
    entries = load_topology(document)
    assert entries[0].node == 2
    assert entries[1].antname == "null"
    assert entries[1].node == -1


@pytest.mark.parametrize("document", [
    [],
    {},
    {"lwacfg": 3},
    {"lwacfg": {"LWA-001": 5}},
    {"lwacfg": {"snap2_location": {}, "antname": []}},
])
def test_load_topology_rejects_malformed(document):
    with pytest.raises(ConfigurationError):
        load_topology(document)
