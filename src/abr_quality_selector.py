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

import logging

from abr_quality_ladder import required_bandwidth

log = logging.getLogger(__name__)


class QualitySelector:
    """Maps a bandwidth budget onto the ladder and rate-limits the switches.

    Outside panic every decision moves at most one level either way. In panic
    any drop is allowed, and otherwise the decision steps one level up, even
    when the target has not moved; the top of the ladder still clamps it.
    """

    max_step = 1

    def __init__(self, quality_levels, safety_factor):
        self.quality_levels = quality_levels
        self.safety_factor = safety_factor

    def quality_from_bandwidth(self, bandwidth):
        """Highest index whose bitrate fits in `bandwidth` after the safety margin."""
        safe_bandwidth = int(bandwidth * self.safety_factor)
        for quality in range(len(self.quality_levels) - 1, -1, -1):
            if required_bandwidth(self.quality_levels[quality]) <= safe_bandwidth:
                return quality
        return 0

    def smooth(self, current, target, panic):
        diff = target - current
        if panic:
            step = diff if diff < 0 else QualitySelector.max_step
        else:
            step = max(-QualitySelector.max_step, min(diff, QualitySelector.max_step))
        return max(0, min(current + step, len(self.quality_levels) - 1))

    def select(self, current, estimate, buffer):
        """Next quality index given the estimate (bytes/s) and a BufferTracker."""
        factor = buffer.buffer_factor()
        effective_bandwidth = int(estimate * factor)
        target = self.quality_from_bandwidth(effective_bandwidth)
        panic = buffer.in_panic()
        quality = self.smooth(current, target, panic)

        log.debug(
            "estimate=%d B/s factor=%.3f effective=%d B/s target=%d current=%d "
            "-> %d%s",
            estimate, factor, effective_bandwidth, target, current, quality,
            " (panic)" if panic else "",
        )
        return quality
