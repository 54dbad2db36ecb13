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
Acquisition scheduling: one backend task plus a merged event stream.

The backend runs as its own asyncio task and talks to the foreground only
through two bounded queues: spectra flow out on the data channel, antenna
filters flow in on the filter channel. The foreground drains a single
stream that merges user input, backend data and a UI refresh tick.
"""
import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, AsyncIterable, Callable, Dict, Optional, Sequence, Union

import global_params as glp
from data_models import AntennaFilter, AutoSpectra, SaturationStats
from errors import FilterChannelClosed
from loaders import PollMode, SpectrumLoader

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class InputEvent:
    """A raw input event from the presentation layer (key press, command)."""
    event: Any


@dataclass(frozen=True)
class InputClosed:
    """The input source ended, or failed with `error`."""
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class DataArrival:
    spectra: AutoSpectra
    stats: Optional[SaturationStats] = None


@dataclass(frozen=True)
class BackendClosed:
    """The backend task exited; `error` is set when it failed."""
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class Tick:
    """UI refresh tick."""


StreamEvent = Union[InputEvent, InputClosed, DataArrival, BackendClosed, Tick]


class Ticker:
    """
    Fixed-period clock for the UI refresh.

    The first tick fires immediately. If the consumer falls behind, the
    missed ticks are skipped rather than delivered in a burst.
    """

    def __init__(self, period: float, clock: Optional[Callable[[], float]] = None) -> None:
        self.period = period
        self._clock = clock
        self._deadline: Optional[float] = None

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock()
        return asyncio.get_running_loop().time()

    async def wait(self) -> float:
        """Sleep until the next tick; returns the tick's scheduled time."""
        now = self._now()
        if self._deadline is None:
            self._deadline = now
        delay = self._deadline - now
        if delay > 0:
            await asyncio.sleep(delay)
        fired = self._deadline
        missed = max(0, math.floor((self._now() - fired) / self.period))
        self._deadline = fired + (missed + 1) * self.period
        return fired


class AcquisitionScheduler:
    """
    Owns the active backend and the state shown by the presentation layer.

    Parameters
    ----------
    backend : SpectrumLoader
        Data source; polled once or periodically depending on its poll_mode.
    antennas : sequence of str, optional
        Initial antenna filter.
    input_events : async iterable, optional
        Raw input events; each becomes an InputEvent.
    refresh_rate : float, optional
        UI tick period in seconds.
    poll_interval : float, optional
        Polling period for periodic backends in seconds.
    """

    def __init__(self, backend: SpectrumLoader, antennas: Sequence[str] = (),
                 input_events: Optional[AsyncIterable[Any]] = None,
                 refresh_rate: float = glp.UI_REFRESH_S,
                 poll_interval: float = glp.POLL_INTERVAL_S,
                 data_channel_size: int = glp.DATA_CHANNEL_SIZE,
                 filter_channel_size: int = glp.FILTER_CHANNEL_SIZE) -> None:
        self.backend = backend
        self.antenna_filter = AntennaFilter(list(antennas))
        self.spectra: Optional[AutoSpectra] = None
        self.saturations: Optional[SaturationStats] = None
        self.plot_log: Optional[bool] = None
        self.data_count = 0
        self.refresh_rate = refresh_rate
        self.poll_interval = poll_interval

        self._input = input_events.__aiter__() if input_events is not None else None
        self._data_channel_size = data_channel_size
        self._filter_channel_size = filter_channel_size
        self._data_channel: Optional[asyncio.Queue] = None
        self._filter_channel: Optional[asyncio.Queue] = None
        self._backend_task: Optional[asyncio.Task] = None
        self._data_closed = False
        self._ticker = Ticker(refresh_rate)
        self._pending: Dict[str, asyncio.Future] = {}
        self._log_callback: Optional[Callable[[str], None]] = None

    def set_log_callback(self, cb: Optional[Callable[[str], None]]) -> None:
        """Set optional callback for warnings (e.g. a UI log pane). Called with message str."""
        self._log_callback = cb

    def log_warning(self, msg: str) -> None:
        log.warning(msg)
        if self._log_callback is not None:
            self._log_callback(msg)

    @property
    def backend_running(self) -> bool:
        return self._backend_task is not None and not self._backend_task.done()

    # --- backend side ------------------------------------------------

    async def start(self) -> None:
        """Create the channels and spawn the backend task (idempotent)."""
        if self._backend_task is not None:
            return
        self._data_channel = asyncio.Queue(self._data_channel_size)
        self._filter_channel = asyncio.Queue(self._filter_channel_size)
        if len(self.antenna_filter):
            self.backend.apply_filter(self.antenna_filter.names())
        self._backend_task = asyncio.create_task(self._run_backend())

    async def _run_backend(self) -> None:
        error = None
        try:
            if self.backend.poll_mode is PollMode.ONCE:
                await self._poll_on_demand()
            else:
                await self._poll_periodically()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            error = exc
            log.exception("Acquisition backend stopped")
        await self._data_channel.put(BackendClosed(error))

    async def _publish(self) -> None:
        spectra = await self.backend.poll()
        if spectra is None:
            return
        await self._data_channel.put(DataArrival(spectra, self.backend.stats()))

    async def _poll_on_demand(self) -> None:
        await self._publish()
        while True:
            names = await self._filter_channel.get()
            self.backend.apply_filter(names)
            await self._publish()

    async def _poll_periodically(self) -> None:
        loop = asyncio.get_running_loop()
        next_poll = loop.time()
        while True:
            while not self._filter_channel.empty():
                self.backend.apply_filter(self._filter_channel.get_nowait())
                next_poll = loop.time()

            timeout = next_poll - loop.time()
            if timeout <= 0:
                scheduled = next_poll
                await self._publish()
                next_poll = max(scheduled + self.poll_interval, loop.time())
                continue
            try:
                names = await asyncio.wait_for(self._filter_channel.get(), timeout)
            except asyncio.TimeoutError:
                continue
            self.backend.apply_filter(names)
            # force a poll now; the period restarts from here
            next_poll = loop.time()

    # --- foreground side ---------------------------------------------

    async def next_event(self) -> StreamEvent:
        """
        Wait for the next event from input, backend data or the UI tick.

        Sources that are ready at the same time are returned on successive
        calls; nothing is dropped except skipped ticks.
        """
        await self.start()
        if "input" not in self._pending and self._input is not None:
            self._pending["input"] = asyncio.ensure_future(self._input.__anext__())
        if "data" not in self._pending and not self._data_closed:
            self._pending["data"] = asyncio.ensure_future(self._data_channel.get())
        if "tick" not in self._pending:
            self._pending["tick"] = asyncio.ensure_future(self._ticker.wait())

        await asyncio.wait(list(self._pending.values()), return_when=asyncio.FIRST_COMPLETED)
        for key in ("input", "data", "tick"):
            future = self._pending.get(key)
            if future is not None and future.done():
                del self._pending[key]
                return self._to_event(key, future)
        raise RuntimeError("asyncio.wait returned without a completed source")

    def _to_event(self, key: str, future: asyncio.Future) -> StreamEvent:
        if key == "input":
            try:
                return InputEvent(future.result())
            except StopAsyncIteration:
                self._input = None
                return InputClosed()
            except Exception as exc:
                self._input = None
                return InputClosed(exc)
        if key == "data":
            item = future.result()
            if isinstance(item, BackendClosed):
                self._data_closed = True
            return item
        future.result()
        return Tick()

    def handle(self, event: StreamEvent) -> bool:
        """
        Update the owned state for one event.

        Returns
        -------
        bool
            True when the presentation should redraw.
        """
        if isinstance(event, DataArrival):
            log.info("Received new autospectra.")
            self.data_count += 1
            if self.plot_log is None:
                self.plot_log = event.spectra.plot_log
            self.spectra = event.spectra
            if event.stats is not None:
                self._update_saturations(event.stats)
            return True
        if isinstance(event, BackendClosed):
            if event.error is not None:
                self.log_warning("Acquisition backend stopped: %s" % event.error)
            else:
                self.log_warning("Acquisition backend stopped.")
            return True
        if isinstance(event, InputClosed):
            return False
        return True

    def _update_saturations(self, new: SaturationStats) -> None:
        if self.saturations is None:
            self.saturations = SaturationStats(labels=list(new.labels), values=new.values.copy())
            return
        if self.backend.poll_mode is PollMode.PERIODIC:
            interval = self.poll_interval
        else:
            interval = 0.0
        self.saturations.update(new, interval)

    async def _send_filter(self) -> None:
        if self._backend_task is None:
            # applied when the backend starts
            return
        if self._backend_task.done():
            raise FilterChannelClosed("Acquisition backend is no longer running")
        await self._filter_channel.put(self.antenna_filter.names())

    async def add_antenna(self, name: str) -> bool:
        """Add an antenna to the filter and push the filter to the backend."""
        if not self.antenna_filter.add(name):
            log.info("Invalid or duplicate antenna name %r...Skipping", name)
            return False
        log.info("Adding Antenna %s", name.strip().upper())
        await self._send_filter()
        return True

    async def remove_antenna(self, name: Union[str, int]) -> bool:
        """Remove an antenna by name or list index and push the filter."""
        if isinstance(name, int):
            removed = self.antenna_filter.remove_index(name)
        else:
            removed = name.strip().upper() if self.antenna_filter.remove(name) else None
        if removed is None:
            return False
        log.info("Removing: %s", removed)
        await self._send_filter()
        return True

    def toggle_log(self) -> Optional[bool]:
        if self.plot_log is not None:
            self.plot_log = not self.plot_log
        return self.plot_log

    async def run(self, on_input: Optional[Callable[[Any], Any]] = None,
                  on_redraw: Optional[Callable[["AcquisitionScheduler"], None]] = None) -> None:
        """
        Drive the event loop until `on_input` returns False or input ends.

        Parameters
        ----------
        on_input : callable, optional
            Called with each raw input event; may be a coroutine function.
            Returning False ends the session.
        on_redraw : callable, optional
            Called with the scheduler whenever state changed.
        """
        await self.start()
        try:
            while True:
                event = await self.next_event()
                if isinstance(event, InputClosed):
                    if event.error is not None:
                        raise event.error
                    break
                if isinstance(event, InputEvent) and on_input is not None:
                    keep_going = on_input(event.event)
                    if asyncio.iscoroutine(keep_going):
                        keep_going = await keep_going
                    if keep_going is False:
                        break
                if self.handle(event) and on_redraw is not None:
                    on_redraw(self)
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Cancel the backend task and any pending sources."""
        tasks = list(self._pending.values())
        self._pending.clear()
        if self._backend_task is not None and not self._backend_task.done():
            tasks.append(self._backend_task)
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as exc:
                log.debug("Source ended with %r during shutdown", exc)
