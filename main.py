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
Headless console front end for the spectrum monitor.

Reads commands from stdin (``add NAME``, ``rm NAME|INDEX``, ``log``, ``q``)
and prints a one-line summary each time new spectra arrive.
"""
import asyncio
import logging
import sys
from pathlib import Path
from typing import AsyncIterator, List, Optional

import acquire as acq
import global_params as glp
from correlator import CorrelatorLoader
from errors import ConfigurationError, FilterChannelClosed, TransportError
from loaders import DrspecFileLoader, NpyFileLoader
from remote_poller import RemoteFramePoller

log = logging.getLogger(__name__)

HELP_TEXT = "commands: add NAME | rm NAME|INDEX | log | q"


async def stdin_commands(stream=None) -> AsyncIterator[str]:
    """
    Yield non-empty stripped lines from `stream` (default stdin) until EOF.

    Pipes and terminals are read through an asyncio StreamReader on the
    underlying binary buffer, so several lines arriving in one write are all
    delivered. Regular files (input redirected from disk) cannot be attached
    to the event loop and are read line by line in a worker thread.
    """
    stream = stream if stream is not None else sys.stdin
    binary = getattr(stream, "buffer", stream)
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    try:
        transport, _ = await loop.connect_read_pipe(
            lambda: asyncio.StreamReaderProtocol(reader), binary
        )
    except ValueError:
        # not a pipe, socket or character device
        while True:
            raw = await asyncio.to_thread(binary.readline)
            if not raw:
                return
            line = raw.decode(errors="replace").strip()
            if line:
                yield line

    try:
        while True:
            raw = await reader.readline()
            if not raw:
                return
            line = raw.decode(errors="replace").strip()
            if line:
                yield line
    finally:
        transport.close()


def make_command_handler(scheduler: acq.AcquisitionScheduler):
    """Return the on_input callback driving `scheduler` from console commands."""

    async def on_input(line: str) -> bool:
        cmd, _, arg = line.partition(" ")
        cmd = cmd.lower()
        arg = arg.strip()
        if cmd in ("q", "quit", "exit"):
            return False
        if cmd in ("a", "add", "n"):
            await scheduler.add_antenna(arg)
        elif cmd in ("r", "rm", "remove"):
            await scheduler.remove_antenna(int(arg) if arg.isdigit() else arg)
        elif cmd in ("l", "log"):
            scheduler.toggle_log()
        else:
            print(HELP_TEXT)
        return True

    return on_input


class ConsoleView:
    """Prints a summary whenever the scheduler's data or display mode changes."""

    def __init__(self, out=None) -> None:
        self.out = out if out is not None else sys.stdout
        self._seen = (0, None)

    def __call__(self, scheduler: acq.AcquisitionScheduler) -> None:
        state = (scheduler.data_count, scheduler.plot_log)
        if scheduler.spectra is None or state == self._seen:
            return
        self._seen = state
        self.out.write(self.render(scheduler) + "\n")
        self.out.flush()

    @staticmethod
    def render(scheduler: acq.AcquisitionScheduler) -> str:
        spectra = scheduler.spectra
        y_min, y_max = spectra.y_bounds(scheduler.plot_log)
        scale = "dB" if scheduler.plot_log else "lin"
        text = "[%d] %d spectra %.2f-%.2f MHz, %s range %.3g..%.3g" % (
            scheduler.data_count, len(spectra), spectra.freq_min, spectra.freq_max,
            scale, y_min, y_max,
        )
        if scheduler.saturations is not None:
            text += " | sat " + ", ".join(
                "%s %.2f%%" % item for item in scheduler.saturations.as_percent().items()
            )
        return text


def build_backend(args):
    """Construct the spectrum backend selected on the command line."""
    if args.mode == "file":
        path = Path(args.input_file)
        if path.suffix == ".npy":
            return NpyFileLoader(path, n_spectra=args.nspectra)
        return DrspecFileLoader(path)
    if args.mode == "live":
        return CorrelatorLoader.connect(args.etcd)
    if args.mode == "dr":
        return RemoteFramePoller.connect(
            args.data_recorder, args.identity_file, username=args.user,
        )
    raise ConfigurationError("Unknown mode %r" % args.mode)


def _parser():
    from argparse import ArgumentParser
    parser = ArgumentParser(prog="spectrum-monitor", description="Live autospectra monitor")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--refresh", type=float, default=glp.UI_REFRESH_S,
                        help="UI refresh period in seconds")
    sub = parser.add_subparsers(dest="mode", required=True)

    p_file = sub.add_parser("file", help="Plot spectra from a DRSpec or RFI-monitor npy file")
    p_file.add_argument("input_file")
    p_file.add_argument("-n", dest="nspectra", type=int, default=0,
                        help="Number of antenna spectra to load from an npy file")

    p_live = sub.add_parser("live", help="Watch live autospectra from the correlator")
    p_live.add_argument("antenna", nargs="+", help="Antenna name(s), e.g. LWA-250")
    p_live.add_argument("--delay", "-d", type=float, default=glp.POLL_INTERVAL_S)
    p_live.add_argument("--etcd", default=glp.ETCD_ADDRESS, help="etcd host:port")

    p_dr = sub.add_parser("dr", help="Watch the newest spectrometer file on a data recorder")
    p_dr.add_argument("data_recorder", help="Recorder host, e.g. dr1")
    p_dr.add_argument("identity_file", help="SSH private key")
    p_dr.add_argument("--user", default=glp.DR_USERNAME)
    p_dr.add_argument("--delay", "-d", type=float, default=glp.POLL_INTERVAL_S)
    return parser


async def run_console(args, antennas: List[str]) -> None:
    backend = build_backend(args)
    scheduler = acq.AcquisitionScheduler(
        backend,
        antennas=antennas,
        input_events=stdin_commands(),
        refresh_rate=args.refresh,
        poll_interval=getattr(args, "delay", glp.POLL_INTERVAL_S),
    )
    print(HELP_TEXT)
    try:
        await scheduler.run(make_command_handler(scheduler), ConsoleView())
    finally:
        close = getattr(backend, "close", None)
        if close is not None:
            close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point: parse args, build the backend and run the console loop.

    Returns
    -------
    int
        0 on normal exit, 1 when the backend could not be started or died.
    """
    args = _parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    antennas = list(getattr(args, "antenna", None) or [])
    if args.mode == "file" and args.nspectra:
        antennas = ["%d" % i for i in range(args.nspectra)]
    try:
        asyncio.run(run_console(args, antennas))
    except (TransportError, ConfigurationError, FilterChannelClosed) as exc:
        log.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
