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
Live spectra from an LWA North Arm data recorder over SFTP.

The recorder appends DRSpec frames to a file under its internal storage;
each poll reads only the last frame of the most recently modified file.
When the newest frame stops changing the recorder has most likely moved on
to a new file, so the file is re-discovered once.
"""
import asyncio
import logging
import posixpath
import stat
import time
from typing import List, Optional, Sequence

import paramiko

import drspec
import global_params as glp
from data_models import AutoSpectra, SaturationStats
from errors import DecodeError, NoMoreFrames, TransportError, TruncatedInput
from loaders import PollMode

log = logging.getLogger(__name__)

STATE_CONNECTING = "connecting"
STATE_READY = "ready"
STATE_POLLING = "polling"
STATE_STALE = "stale"


class RemoteFramePoller:
    """
    Spectrum backend tracking the newest spectrometer file on a data recorder.

    Parameters
    ----------
    data_recorder : str
        Recorder host name, e.g. "dr1"; also names its storage directory.
    sftp : paramiko.SFTPClient
        Open SFTP session (anything with listdir_attr and open).
    retry_delay : float, optional
        Seconds to wait before re-reading a frame that is still being written.
    """

    poll_mode = PollMode.PERIODIC

    def __init__(self, data_recorder: str, sftp,
                 retry_delay: float = glp.PARTIAL_WRITE_RETRY_S,
                 ssh_client: Optional[paramiko.SSHClient] = None) -> None:
        self.state = STATE_CONNECTING
        self.data_recorder = data_recorder
        self.filename: Optional[str] = None
        self.file_tag: Optional[str] = None
        self.last_timestamp: Optional[float] = None
        self.last_poll_status = "no_data"
        self._sftp = sftp
        self._ssh = ssh_client
        self._retry_delay = retry_delay
        self._stats: Optional[SaturationStats] = None

        self.find_latest_file()
        self.state = STATE_READY

    @classmethod
    def connect(cls, data_recorder: str, identity_file: str,
                username: str = glp.DR_USERNAME, port: int = glp.DR_SSH_PORT,
                **kwargs) -> "RemoteFramePoller":
        """
        Open an SSH/SFTP session to the data recorder.

        Raises
        ------
        TransportError
            Connection, handshake or key authentication failed.
        """
        client = paramiko.SSHClient()
        client.load_system_host_keys()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                data_recorder,
                port=port,
                username=username,
                key_filename=str(identity_file),
                look_for_keys=False,
                allow_agent=False,
            )
            sftp = client.open_sftp()
        except paramiko.AuthenticationException as exc:
            client.close()
            raise TransportError("Error authenticating as %s" % username, exc) from exc
        except (paramiko.SSHException, OSError) as exc:
            client.close()
            raise TransportError("Error connecting to data recorder %s" % data_recorder, exc) from exc
        return cls(data_recorder, sftp, ssh_client=client, **kwargs)

    def close(self) -> None:
        self._sftp.close()
        if self._ssh is not None:
            self._ssh.close()

    def candidate_paths(self) -> List[str]:
        return [
            path.format(recorder=self.data_recorder.upper())
            for path in glp.DR_STORAGE_PATHS
        ]

    def _newest_in(self, root: str) -> Optional[str]:
        """Newest spectrometer file below `root`/*/DROS/Spec, or None."""
        newest = None
        newest_mtime = -1
        for entry in self._sftp.listdir_attr(root):
            if not stat.S_ISDIR(entry.st_mode or 0):
                continue
            spec_dir = posixpath.join(root, entry.filename, glp.DR_SPEC_SUBDIR)
            try:
                files = self._sftp.listdir_attr(spec_dir)
            except OSError as exc:
                log.debug("Skipping %s: %s", spec_dir, exc)
                continue
            for item in files:
                if not stat.S_ISREG(item.st_mode or 0):
                    continue
                stem = posixpath.splitext(item.filename)[0]
                if not stem.startswith(glp.DR_FILE_PREFIX):
                    continue
                mtime = item.st_mtime or 0
                if mtime > newest_mtime:
                    newest, newest_mtime = posixpath.join(spec_dir, item.filename), mtime
        return newest

    def find_latest_file(self) -> Optional[str]:
        """
        Point the poller at the most recently modified spectrometer file.

        Candidates that do not exist on this recorder are skipped; any other
        SFTP error is raised as TransportError.
        """
        found = None
        for path in self.candidate_paths():
            try:
                found = self._newest_in(path)
            except FileNotFoundError:
                continue
            except (OSError, paramiko.SSHException) as exc:
                raise TransportError("Error listing %s on %s" % (path, self.data_recorder), exc) from exc
            if found is not None:
                break

        self.filename = found
        if found is not None:
            self.file_tag = posixpath.basename(found)
            log.info("Reading spectra from %s on %s", self.file_tag, self.data_recorder)
        else:
            self.file_tag = None
            log.warning("No spectrometer file found on %s", self.data_recorder)
        return found

    def _read_latest(self) -> Optional[drspec.SpectrumFrame]:
        if self.filename is None:
            self.last_poll_status = "no_file"
            return None
        with self._sftp.open(self.filename, "rb") as fh:
            return drspec.read_last_frame(fh)

    def _read_with_retry(self) -> Optional[drspec.SpectrumFrame]:
        try:
            return self._read_latest()
        except TruncatedInput:
            # frame still being written; give the recorder a moment
            self.last_poll_status = "partial_write"
            time.sleep(self._retry_delay)
            return self._read_latest()

    def _read_or_none(self) -> Optional[drspec.SpectrumFrame]:
        try:
            return self._read_with_retry()
        except NoMoreFrames:
            self.last_poll_status = "no_data"
            return None
        except DecodeError as exc:
            self.last_poll_status = "decode_error"
            log.error("Error reading spectrum file: %s", exc)
            return None
        except OSError as exc:
            self.last_poll_status = "os_error"
            log.error("Error opening remote file %s: %s", self.filename, exc)
            return None
        except paramiko.SSHException as exc:
            # dropped or inactive SFTP session
            self.last_poll_status = "transport_error"
            log.error("SFTP session error reading %s: %s", self.filename, exc)
            return None

    def fetch(self) -> Optional[AutoSpectra]:
        """Read the newest frame, re-discovering the file once if it is stale."""
        self.state = STATE_POLLING
        frame = self._read_or_none()
        if frame is None:
            return None

        if frame.header.timestamp == self.last_timestamp:
            self.state = STATE_STALE
            self.last_poll_status = "stale"
            log.info("Timestamp unchanged, attempting to find new file.")
            try:
                self.find_latest_file()
            except TransportError as exc:
                log.error("%s", exc)
                return None
            frame = self._read_or_none()
            if frame is None:
                return None
            if frame.header.timestamp == self.last_timestamp:
                # nothing newer anywhere; show the same spectrum again
                self._stats = frame.header.saturation_stats()
                return drspec.into_autospectra(frame)

        self.state = STATE_POLLING
        self.last_poll_status = "ok"
        self.last_timestamp = frame.header.timestamp
        self._stats = frame.header.saturation_stats()
        return drspec.into_autospectra(frame)

    async def poll(self) -> Optional[AutoSpectra]:
        return await asyncio.to_thread(self.fetch)

    def apply_filter(self, names: Sequence[str]) -> None:
        # DRSpec files carry beam products, not per-antenna data
        return None

    def stats(self) -> Optional[SaturationStats]:
        return self._stats
