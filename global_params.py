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

# === Instrument =================================
CLOCK_SPEED = 196000000      # DP sample clock [Hz]; time tags and tuning words count this
N_TUNINGS = 2                # independent sub-bands per DR spectrometer frame

# === OVRO-LWA correlator (etcd) =================================
ETCD_ADDRESS = "etcdv3service:2379"
ETCD_CMD_ROOT = "/cmd/snap/"
ETCD_RESP_KEY = "/resp/snap/"
ETCD_CONFIG_KEY = "/cfg/system"
SNAP_CHANNELS = 64           # correlator inputs per SNAP2 board
SIGNAL_BLOCK_CHANNELS = 16   # inputs returned per get_new_spectra request
N_SIGNAL_BLOCKS = SNAP_CHANNELS // SIGNAL_BLOCK_CHANNELS
N_FREQ = 4096                # autocorrelation channels per input
BANDWIDTH_MHZ = 98.3         # upper edge of the receiver band
WATCH_TIMEOUT_S = 10.0       # give up on a signal block after this long

# === LWA North Arm data recorder (SFTP) =================================
DR_USERNAME = "mcsdr"
DR_SSH_PORT = 22
DR_STORAGE_PATHS = (
    "/LWA_STORAGE/Internal/",
    # several recorders may share a host, each with its own DR# directory
    "/LWA_STORAGE/{recorder}/Internal/",
)
DR_SPEC_SUBDIR = "DROS/Spec/"
DR_FILE_PREFIX = "0"
PARTIAL_WRITE_RETRY_S = 0.05  # wait before re-reading a frame still being written

# === Acquisition =================================
POLL_INTERVAL_S = 30.0       # default live polling period
UI_REFRESH_S = 0.1           # redraw tick
DATA_CHANNEL_SIZE = 30
FILTER_CHANNEL_SIZE = 10
SATURATION_TIME_CONSTANT_S = 300.0  # e-folding time of the saturation average
