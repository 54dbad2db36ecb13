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

"""Tests for the console front end helpers (no terminal, no backends)."""
import asyncio
import io
import os

import acquire as acq
import main
from data_models import AutoSpectra, SaturationStats
from loaders import PollMode


class OnceLoader:
    poll_mode = PollMode.ONCE

    def __init__(self):
        self.filters = []

    async def poll(self):
        return AutoSpectra.from_arrays(["0A"], [1.0, 2.0], [[10.0, 100.0]], plot_log=False)

    def apply_filter(self, names):
        self.filters.append(list(names))

    def stats(self):
        return SaturationStats(["T1 XX"], [0.5])


def test_parser_modes():
    parser = main._parser()
    args = parser.parse_args(["live", "LWA-124", "LWA-250", "--delay", "5"])
    assert args.mode == "live"
    assert args.antenna == ["LWA-124", "LWA-250"]
    assert args.delay == 5.0
    assert args.etcd == "etcdv3service:2379"

    args = parser.parse_args(["file", "spec.npy", "-n", "4"])
    assert (args.mode, args.nspectra) == ("file", 4)

    args = parser.parse_args(["dr", "dr1", "/home/me/.ssh/id_rsa"])
    assert args.user == "mcsdr"


def test_command_handler():
    loader = OnceLoader()

    async def scenario():
        scheduler = acq.AcquisitionScheduler(loader)
        await scheduler.start()
        on_input = main.make_command_handler(scheduler)
        assert await on_input("add lwa-1") is True
        assert await on_input("add lwa-2") is True
        assert await on_input("rm 0") is True
        names = scheduler.antenna_filter.names()
        assert await on_input("q") is False
        await scheduler.stop()
        return names

    assert asyncio.run(scenario()) == ["LWA-2"]


def test_console_view_prints_once_per_update():
    out = io.StringIO()
    view = main.ConsoleView(out)
    scheduler = acq.AcquisitionScheduler(OnceLoader())
    view(scheduler)
    assert out.getvalue() == ""

    spectra = AutoSpectra.from_arrays(["0A"], [1.0, 2.0], [[10.0, 100.0]], plot_log=False)
    scheduler.handle(acq.DataArrival(spectra, SaturationStats(["T1 XX"], [0.5])))
    view(scheduler)
    view(scheduler)
    lines = out.getvalue().splitlines()
    assert len(lines) == 1
    assert lines[0].startswith("[1] 1 spectra 1.00-2.00 MHz, lin range 10..100")
    assert "T1 XX 50.00%" in lines[0]

    scheduler.toggle_log()
    view(scheduler)
    assert "dB range 10..20" in out.getvalue().splitlines()[-1]


async def _collect(stream):
    return [line async for line in main.stdin_commands(stream)]


def test_stdin_commands_reads_every_line_of_one_write():
    read_fd, write_fd = os.pipe()
    os.write(write_fd, b"add LWA-1\n\nlog\n  q  \n")
    os.close(write_fd)
    with os.fdopen(read_fd, "r") as stream:
        assert asyncio.run(_collect(stream)) == ["add LWA-1", "log", "q"]


def test_stdin_commands_from_regular_file(tmp_path):
    path = tmp_path / "commands.txt"
    path.write_text("add LWA-1\nrm 0\n")
    with open(path) as stream:
        assert asyncio.run(_collect(stream)) == ["add LWA-1", "rm 0"]
