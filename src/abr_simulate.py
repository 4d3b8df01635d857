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

import argparse
import logging
import sys
from collections import namedtuple

import pandas as pd

from abr_config import ConfigurationError, StreamerConfig, load_config, load_json
from abr_quality_ladder import describe, ladder_from_list, load_ladder
from abr_streamer import AdaptiveBitrateStreamer

log = logging.getLogger(__name__)

# Trace files keep the network.json units (ms, kbit/s); everything else is
# seconds and bytes.
NetworkPeriod = namedtuple("NetworkPeriod", "time bandwidth latency")

SimulationResult = namedtuple("SimulationResult", "segments summary")


def load_network_trace(path, multiplier=1.0):
    trace = []
    for i, period in enumerate(load_json(path)):
        try:
            trace.append(
                NetworkPeriod(
                    time=max(0, period["duration_ms"]) / 1000,
                    bandwidth=max(0, period["bandwidth_kbps"]) * multiplier * 1000 / 8,
                    latency=max(0, period["latency_ms"]) / 1000,
                )
            )
        except (KeyError, TypeError) as e:
            raise ConfigurationError("%s: bad network period %d: %r" % (path, i, e)) from e
    if not trace:
        raise ConfigurationError("%s: empty network trace" % path)
    if not any(p.time > 0 and p.bandwidth > 0 for p in trace):
        raise ConfigurationError("%s: network trace never delivers any data" % path)
    return trace


class SimulatedClock:
    """Callable clock advanced by hand; handed to the streamer."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now += delta


class NetworkModel:
    """Replays a trace of network periods, wrapping around at the end."""

    def __init__(self, network_trace):
        self.trace = network_trace
        self.index = -1
        self.time_to_next = 0
        self.next_network_period()

    def next_network_period(self):
        self.index += 1
        if self.index == len(self.trace):
            self.index = 0
        self.time_to_next = self.trace[self.index].time
        log.debug("network: bandwidth->%d B/s, latency->%.3fs",
                  self.trace[self.index].bandwidth, self.trace[self.index].latency)

    def delay(self, time):
        while time > self.time_to_next:
            time -= self.time_to_next
            self.next_network_period()
        self.time_to_next -= time

    def do_download(self, size):
        total_download_time = 0
        while size > 0:
            current_bandwidth = self.trace[self.index].bandwidth
            if current_bandwidth > 0 and size <= self.time_to_next * current_bandwidth:
                time = size / current_bandwidth
                total_download_time += time
                self.time_to_next -= time
                size = 0
            else:
                total_download_time += self.time_to_next
                size -= self.time_to_next * current_bandwidth
                self.next_network_period()
        return total_download_time

    def download(self, size):
        """Returns the wall time needed to fetch `size` bytes, latency included."""
        latency = self.trace[self.index].latency
        self.delay(latency)
        return latency + self.do_download(size)


class Simulation:
    """Plays a whole session against a NetworkModel.

    Each step asks the streamer for a quality, downloads one segment of that
    quality while playback drains the buffer, then reports the download.
    """

    def __init__(self, streamer, network, clock, segment_duration, num_segments):
        self.streamer = streamer
        self.network = network
        self.clock = clock
        self.segment_duration = segment_duration
        self.num_segments = num_segments

        self.started = False
        self.playing = False
        self.rebuffer_time = 0.0
        self.rebuffer_events = 0
        self.rows = []

    def wait_for_space(self):
        """Lets playback drain the buffer until one more segment fits."""
        state = self.streamer.get_buffer_state()
        full = state.max_level - self.segment_duration
        if self.playing and state.current_level > full:
            wait = state.current_level - full
            self.clock.advance(wait)
            self.network.delay(wait)
            self.streamer.update_buffer_consumption(wait)

    def play(self, elapsed):
        """Drains the buffer for `elapsed` seconds of wall time.

        Running dry stalls playback; it resumes only once the streamer no
        longer recommends pausing. Time spent stalled counts as rebuffering.
        """
        if not self.playing:
            if self.started:
                self.rebuffer_time += elapsed
            return
        level = self.streamer.get_buffer_state().current_level
        if elapsed > level:
            self.rebuffer_events += 1
            self.rebuffer_time += elapsed - level
            self.playing = False
        self.streamer.update_buffer_consumption(elapsed)

    def step(self, segment):
        self.wait_for_space()
        quality = self.streamer.get_next_quality()
        bitrate = self.streamer.quality_levels[quality].bitrate
        size = int(bitrate * self.segment_duration / 8)

        start = self.clock()
        download_time = self.network.download(size)
        self.clock.advance(download_time)
        self.play(download_time)
        self.streamer.record_segment_download(size, download_time, self.segment_duration)
        if not self.playing and not self.streamer.should_pause_playback():
            self.started = True
            self.playing = True

        state = self.streamer.get_buffer_state()
        log.debug("[%.3f-%.3f] %d: quality=%d size=%d buffer_level=%.3f",
                  start, self.clock(), segment, quality, size, state.current_level)
        self.rows.append({
            "time": self.clock(),
            "segment": segment,
            "quality": quality,
            "bitrate_kbps": bitrate / 1000,
            "download_time": download_time,
            "estimate_kbps": self.streamer.get_estimated_bandwidth() * 8 / 1000,
            "buffer_level": state.current_level,
            "rebuffer_time": self.rebuffer_time,
        })

    def run(self):
        for segment in range(self.num_segments):
            self.step(segment)
        segments = pd.DataFrame(self.rows)
        return SimulationResult(segments, self.summarize(segments))

    def summarize(self, segments):
        if segments.empty:
            return {}
        switches = int((segments["quality"].diff().fillna(0) != 0).sum())
        return {
            "segments": len(segments),
            "total time": float(segments["time"].iloc[-1]),
            "average bitrate kbps": float(segments["bitrate_kbps"].mean()),
            "quality switches": switches,
            "total rebuffer": self.rebuffer_time,
            "total rebuffer events": self.rebuffer_events,
        }


def run_demo(quality_levels, config=None, clock=None):
    """Two reported downloads, one fast and one slow, on 4 second segments."""
    if clock is None:
        clock = SimulatedClock()
    streamer = AdaptiveBitrateStreamer(quality_levels, config, clock)
    print("Adaptive bitrate streaming demo")
    print("Initial quality: %d (%s)" % (streamer.current_quality,
                                        describe(streamer.get_current_quality())))

    steps = [("fast", 1_000_000, 0.8), ("slow", 500_000, 3.0)]
    for name, size, download_time in steps:
        clock.advance(download_time)
        streamer.record_segment_download(size, download_time, 4.0)
        quality = streamer.get_next_quality()
        print("After %s download - next quality: %d (estimated bandwidth: %d kbps)"
              % (name, quality, streamer.get_estimated_bandwidth() * 8 // 1000))

    state = streamer.get_buffer_state()
    print("Buffer state:")
    print("  current level: %.1fs" % state.current_level)
    print("  target level: %.1fs" % state.target_level)
    print("  buffer healthy: %s" % streamer.is_buffer_healthy())
    return streamer


def build_parser():
    parser = argparse.ArgumentParser(
        description="Simulate an adaptive bitrate session over a network trace.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-n",
        "--network",
        metavar="NETWORK",
        default="network.json",
        help="Specify the .json file describing the network trace.",
    )
    parser.add_argument(
        "-nm",
        "--network-multiplier",
        metavar="MULTIPLIER",
        type=float,
        default=1,
        help="Multiply throughput by MULTIPLIER.",
    )
    parser.add_argument(
        "-l",
        "--ladder",
        metavar="LADDER",
        default="ladder.json",
        help="Specify the .json file describing the quality ladder.",
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="CONFIG",
        default=None,
        help="Specify a .json file with engine parameters (may embed the ladder).",
    )
    parser.add_argument(
        "-sd",
        "--segment-duration",
        metavar="SECONDS",
        type=float,
        default=4.0,
        help="Specify the segment duration in seconds.",
    )
    parser.add_argument(
        "-ns",
        "--num-segments",
        metavar="COUNT",
        type=int,
        default=50,
        help="Specify how many segments to download.",
    )
    parser.add_argument(
        "-o",
        "--output",
        metavar="CSV",
        default=None,
        help="Write per segment results to CSV.",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Run the two download demo instead of a trace.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Print debug logs.")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = StreamerConfig()
        quality_levels = None
        if args.config:
            config, quality_levels = load_config(args.config)
        if quality_levels is not None:
            quality_levels = ladder_from_list(quality_levels)
        else:
            quality_levels = load_ladder(args.ladder)

        if args.demo:
            run_demo(quality_levels, config)
            return 0

        clock = SimulatedClock()
        streamer = AdaptiveBitrateStreamer(quality_levels, config, clock)
        network = NetworkModel(load_network_trace(args.network, args.network_multiplier))
    except (OSError, ValueError) as e:
        # ConfigurationError and json.JSONDecodeError are ValueErrors
        print("error: %s" % e, file=sys.stderr)
        return 2

    result = Simulation(streamer, network, clock,
                        args.segment_duration, args.num_segments).run()
    for key, value in result.summary.items():
        print("%s: %s" % (key, value))
    if args.output:
        result.segments.to_csv(args.output, index=False)
    return 0


if __name__ == "__main__":
    sys.exit(main())
