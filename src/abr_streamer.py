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

"""Adaptive bitrate decision engine.

The host reports every finished segment download and the playback it has
consumed, and asks for the quality index to request next:

    streamer = AdaptiveBitrateStreamer(load_ladder("ladder.json"))
    streamer.record_segment_download(size_bytes, download_time, segment_time)
    streamer.update_buffer_consumption(played)
    quality = streamer.get_next_quality()

All calls are synchronous and must be serialised by the caller; use one
streamer per stream.
"""

import logging
from collections import deque, namedtuple

from abr_bandwidth_estimator import BandwidthEstimator
from abr_buffer import BufferTracker
from abr_config import StreamerConfig
from abr_quality_ladder import ladder_from_list
from abr_quality_selector import QualitySelector

log = logging.getLogger(__name__)

SegmentRecord = namedtuple(
    "SegmentRecord", "quality_level size_bytes duration download_time"
)


class AdaptiveBitrateStreamer:

    def __init__(self, quality_levels, config=None, clock=None):
        if config is None:
            config = StreamerConfig()
        elif isinstance(config, dict):
            config = StreamerConfig.from_dict(config)

        self.quality_levels = ladder_from_list(quality_levels)
        self.config = config
        self.current_quality = len(self.quality_levels) // 2

        self.estimator = BandwidthEstimator(
            config.bandwidth_window, config.min_bandwidth_samples, clock
        )
        self.buffer = BufferTracker.from_config(config)
        self.selector = QualitySelector(self.quality_levels, config.safety_factor)
        self.segment_history = deque(maxlen=config.segment_history_size)

        log.debug("streamer started at quality %d of %d",
                  self.current_quality, len(self.quality_levels))

    @property
    def bandwidth_history(self):
        return self.estimator.samples

    def record_segment_download(self, segment_size, download_duration, segment_duration):
        """Reports one completed download, in completion order."""
        if segment_duration < 0:
            raise ValueError("segment_duration must not be negative")
        self.estimator.record(segment_size, download_duration)
        self.segment_history.append(
            SegmentRecord(self.current_quality, segment_size,
                          segment_duration, download_duration)
        )
        self.buffer.on_segment_arrival(segment_duration)

    def update_buffer_consumption(self, consumed_duration):
        self.buffer.on_playback_consumption(consumed_duration)

    def get_next_quality(self):
        quality = self.selector.select(
            self.current_quality, self.estimate_bandwidth(), self.buffer
        )
        if quality != self.current_quality:
            log.info("quality %d -> %d (buffer %.1fs)",
                     self.current_quality, quality, self.buffer.current_level)
        self.current_quality = quality
        return quality

    def estimate_bandwidth(self):
        fallback = self.quality_levels[self.current_quality].bitrate // 8
        return self.estimator.estimate(fallback)

    def get_current_quality(self):
        return self.quality_levels[self.current_quality]

    def get_buffer_state(self):
        return self.buffer.snapshot()

    def get_estimated_bandwidth(self):
        return self.estimate_bandwidth()

    def is_buffer_healthy(self):
        return self.buffer.is_healthy()

    def should_pause_playback(self):
        return self.buffer.should_pause()
