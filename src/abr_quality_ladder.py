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

"""Quality ladder: the static list of encodings a stream is offered in."""

import logging
from collections import namedtuple

from abr_config import ConfigurationError, load_json

log = logging.getLogger(__name__)

QualityLevel = namedtuple("QualityLevel", "bitrate width height codec")


def required_bandwidth(level):
    """Bytes/s needed to sustain `level` (bitrate is in bits/s)."""
    return level.bitrate // 8


def ladder_from_list(items):
    """Builds a ladder from a list of dicts or QualityLevel tuples.

    Raises ConfigurationError for an empty ladder or a malformed level. A
    ladder that is not ascending by bitrate is kept as given, since the index
    is the identifier the downloader uses, but a warning is logged.
    """
    if not items:
        raise ConfigurationError("quality ladder must contain at least one level")

    ladder = []
    for i, item in enumerate(items):
        if isinstance(item, QualityLevel):
            level = item
        elif isinstance(item, dict):
            try:
                level = QualityLevel(
                    bitrate=item["bitrate"],
                    width=item["width"],
                    height=item["height"],
                    codec=item.get("codec", "h264"),
                )
            except KeyError as e:
                raise ConfigurationError(
                    "quality level %d is missing %s" % (i, e)
                ) from e
        else:
            raise ConfigurationError("quality level %d: unsupported entry %r" % (i, item))

        if isinstance(level.bitrate, bool) or not isinstance(level.bitrate, int) \
                or level.bitrate <= 0:
            raise ConfigurationError(
                "quality level %d: bitrate must be a positive integer (bits/s)" % i
            )
        ladder.append(level)

    for lower, upper in zip(ladder, ladder[1:]):
        if upper.bitrate < lower.bitrate:
            log.warning("quality ladder is not ascending by bitrate: %d after %d",
                        upper.bitrate, lower.bitrate)
            break

    return tuple(ladder)


def load_ladder(path):
    """Reads a ladder JSON file: a list of levels or {"quality_levels": [...]}."""
    data = load_json(path)
    if isinstance(data, dict):
        data = data.get("quality_levels")
    if not isinstance(data, list):
        raise ConfigurationError("%s: no quality_levels list found" % path)
    return ladder_from_list(data)


def describe(level):
    return "%dx%d @ %d kbps (%s)" % (level.width, level.height,
                                     level.bitrate // 1000, level.codec)
