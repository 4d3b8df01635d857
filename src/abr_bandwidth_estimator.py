# Copyright (c) 2018, Kevin Spiteri
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# 1. Redistributions of source code must retain the above copyright notice, this
#    list of conditions and the following disclaimer.
# 2. Redistributions in binary form must reproduce the above copyright notice,
#    this list of conditions and the following disclaimer in the documentation
#    and/or other materials provided with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND
# ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE IMPLIED
# WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT OWNER OR CONTRIBUTORS BE LIABLE FOR
# ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES
# (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES;
# LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND
# ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT
# (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS
# SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.

"""Throughput history and the conservative bandwidth estimate."""

import logging
import math
import time
from collections import deque, namedtuple

log = logging.getLogger(__name__)

BandwidthSample = namedtuple("BandwidthSample", "time throughput")

# Recorded for downloads that took less than MIN_DOWNLOAD_TIME.
MAX_THROUGHPUT = 2**32 - 1
MIN_DOWNLOAD_TIME = 0.001


def harmonic_mean(throughputs):
    """n / sum(1 / sample), with each sample floored at 1 byte/s."""
    if not throughputs:
        return 0
    sum_reciprocals = sum(1.0 / max(t, 1) for t in throughputs)
    return int(len(throughputs) / sum_reciprocals)


def weighted_average(samples, now, window):
    """Average weighted by exp(-age / window); recent samples dominate."""
    weighted_sum = 0.0
    weight_sum = 0.0
    for sample in samples:
        age = now - sample.time
        weight = math.exp(-age / window)
        weighted_sum += sample.throughput * weight
        weight_sum += weight
    if weight_sum > 0:
        return int(weighted_sum / weight_sum)
    return 0


def percentile(throughputs, p):
    """Sample at index floor(n * p) of the sorted list, clamped to the last one."""
    if not throughputs:
        return 0
    ordered = sorted(throughputs)
    index = int(len(ordered) * p)
    return ordered[min(index, len(ordered) - 1)]


class BandwidthEstimator:
    """Time-windowed throughput samples.

    Samples are appended in clock order, so eviction is always a trim of the
    oldest entries. `clock` returns seconds and defaults to time.monotonic;
    tests and simulations pass their own.
    """

    default_percentile = 0.2

    def __init__(self, bandwidth_window, min_samples, clock=None):
        self.bandwidth_window = bandwidth_window
        self.min_samples = min_samples
        self.clock = clock if clock is not None else time.monotonic
        self.samples = deque()

    def __len__(self):
        return len(self.samples)

    def record(self, byte_size, download_duration):
        """Adds one sample and returns its throughput in bytes/s."""
        if byte_size < 0:
            raise ValueError("byte_size must not be negative")
        if download_duration < 0:
            raise ValueError("download_duration must not be negative")

        now = self.clock()
        if download_duration >= MIN_DOWNLOAD_TIME:
            throughput = min(int(byte_size / download_duration), MAX_THROUGHPUT)
        else:
            throughput = MAX_THROUGHPUT
        self.samples.append(BandwidthSample(now, throughput))
        self.trim(now)

        log.debug("sample: %d bytes in %.3fs -> %d B/s (%d in window)",
                  byte_size, download_duration, throughput, len(self.samples))
        return throughput

    def trim(self, now):
        while self.samples and now - self.samples[0].time > self.bandwidth_window:
            self.samples.popleft()

    def throughputs(self):
        return [s.throughput for s in self.samples]

    def has_enough_samples(self):
        return len(self.samples) >= self.min_samples

    def estimate(self, fallback):
        """Bytes/s the network is expected to sustain.

        With fewer than `min_samples` samples `fallback` is returned as is.
        Otherwise the minimum of the harmonic mean, the time weighted average
        and the low percentile.
        """
        if not self.has_enough_samples():
            return fallback

        throughputs = self.throughputs()
        hm = harmonic_mean(throughputs)
        wa = weighted_average(self.samples, self.clock(), self.bandwidth_window)
        pc = percentile(throughputs, BandwidthEstimator.default_percentile)
        return min(hm, wa, pc)
