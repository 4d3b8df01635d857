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

from __future__ import annotations
import logging
from collections import namedtuple

log = logging.getLogger(__name__)

BufferState = namedtuple("BufferState", "current_level target_level max_level min_level")

# Below this the player should stop and rebuffer, whatever min_level says.
PAUSE_LEVEL = 1.0


class BufferTracker:
    """Playback buffer occupancy, in seconds of queued media.

    `current_level` always stays within [0, max_level]: arrivals are clamped to
    the top, consumption to the bottom.
    """

    panic_factor = 0.3
    below_target_base = 0.6
    below_target_span = 0.3
    seek_factor = 1.5

    def __init__(self, target_level: float, max_level: float, min_level: float,
                 panic_threshold: float, seek_threshold: float) -> None:
        self.current_level = 0.0
        self.target_level = target_level
        self.max_level = max_level
        self.min_level = min_level
        self.panic_threshold = panic_threshold
        self.seek_threshold = seek_threshold

    @classmethod
    def from_config(cls, config) -> BufferTracker:
        return cls(config.target_level, config.max_level, config.min_level,
                   config.panic_threshold, config.seek_threshold)

    def on_segment_arrival(self, segment_duration: float) -> None:
        if segment_duration < 0:
            raise ValueError("segment_duration must not be negative")
        self.current_level = min(self.current_level + segment_duration, self.max_level)

    def on_playback_consumption(self, consumed_duration: float) -> None:
        if consumed_duration < 0:
            raise ValueError("consumed_duration must not be negative")
        self.current_level = max(0.0, self.current_level - consumed_duration)

    def in_panic(self) -> bool:
        return self.current_level < self.panic_threshold

    def buffer_factor(self) -> float:
        """Multiplier applied to the bandwidth estimate.

        0.3 while in panic, a ramp from 0.6 towards 0.9 while filling up to
        the target, 1.5 above the seek threshold and 1.0 in between.
        """
        level = self.current_level
        if level < self.panic_threshold:
            return BufferTracker.panic_factor
        if level < self.target_level:
            return (BufferTracker.below_target_base
                    + BufferTracker.below_target_span * (level / self.target_level))
        if level > self.seek_threshold:
            return BufferTracker.seek_factor
        return 1.0

    def is_healthy(self) -> bool:
        return self.current_level >= self.min_level

    def should_pause(self) -> bool:
        return self.current_level < PAUSE_LEVEL

    def snapshot(self) -> BufferState:
        return BufferState(self.current_level, self.target_level,
                           self.max_level, self.min_level)
