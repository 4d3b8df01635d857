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

"""Engine configuration: tunable parameters and the JSON loaders."""

import json
import logging
from collections import namedtuple

log = logging.getLogger(__name__)

# Units used throughout:
#     size     : bytes
#     time     : seconds
#     bitrate  : bits/s
#     bandwidth: bytes/s


class ConfigurationError(ValueError):
    """Raised when the engine is constructed with an unusable configuration."""


def load_json(path):
    with open(path) as file:
        obj = json.load(file)
    return obj


_ConfigBase = namedtuple(
    "_ConfigBase",
    "target_level max_level min_level "
    "panic_threshold seek_threshold "
    "bandwidth_window safety_factor min_bandwidth_samples "
    "segment_history_size",
)


class StreamerConfig(_ConfigBase):
    """Fixed tunables of one streaming session.

    Anything left out falls back to the class level default. Being a tuple,
    the config cannot change once the streamer holds it.
    """

    __slots__ = ()

    default_target_level = 30.0
    default_max_level = 60.0
    default_min_level = 5.0
    default_panic_threshold = 3.0
    default_seek_threshold = 45.0
    default_bandwidth_window = 10.0
    default_safety_factor = 0.8
    default_min_bandwidth_samples = 3
    default_segment_history_size = 50

    def __new__(cls, *args, **kwargs):
        # positional values follow _fields; copy and pickle rebuild this way
        if len(args) > len(cls._fields):
            raise TypeError("StreamerConfig takes at most %d positional values"
                            % len(cls._fields))
        for key, value in zip(cls._fields, args):
            if key in kwargs:
                raise TypeError("StreamerConfig got multiple values for %r" % key)
            kwargs[key] = value

        unknown = set(kwargs) - set(cls._fields)
        if unknown:
            raise ConfigurationError(
                "unknown configuration keys: %s" % ", ".join(sorted(unknown))
            )
        values = {}
        for key in cls._fields:
            value = kwargs.get(key)
            values[key] = getattr(cls, "default_" + key) if value is None else value
        self = super().__new__(cls, **values)
        self.validate()
        return self

    @classmethod
    def _make(cls, iterable):
        # _replace builds through here
        return cls(*iterable)

    def validate(self):
        """Checks numeric ranges and the threshold ordering.

        The buffer factor is only monotonic when
        ``panic_threshold < target_level < seek_threshold <= max_level``.
        ``min_level`` only drives the health predicate, so it is not ordered
        against the panic threshold.
        """
        for key in ("target_level", "max_level", "min_level", "panic_threshold",
                    "seek_threshold", "bandwidth_window", "safety_factor"):
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError("%s must be a number, got %r" % (key, value))
        for key in ("min_bandwidth_samples", "segment_history_size"):
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError("%s must be an integer, got %r" % (key, value))

        if self.panic_threshold < 0:
            raise ConfigurationError("panic_threshold must not be negative")
        if not self.panic_threshold < self.target_level:
            raise ConfigurationError(
                "panic_threshold (%s) must be below target_level (%s)"
                % (self.panic_threshold, self.target_level)
            )
        if not self.target_level < self.seek_threshold:
            raise ConfigurationError(
                "target_level (%s) must be below seek_threshold (%s)"
                % (self.target_level, self.seek_threshold)
            )
        if not self.seek_threshold <= self.max_level:
            raise ConfigurationError(
                "seek_threshold (%s) must not exceed max_level (%s)"
                % (self.seek_threshold, self.max_level)
            )
        if not 0 <= self.min_level <= self.max_level:
            raise ConfigurationError(
                "min_level (%s) must lie within [0, max_level]" % self.min_level
            )
        if self.bandwidth_window <= 0:
            raise ConfigurationError("bandwidth_window must be positive")
        if self.safety_factor <= 0:
            raise ConfigurationError("safety_factor must be positive")
        if self.safety_factor > 1:
            log.warning("safety_factor %s > 1 over-commits the bandwidth estimate",
                        self.safety_factor)
        if self.min_bandwidth_samples < 1:
            raise ConfigurationError("min_bandwidth_samples must be at least 1")
        if self.segment_history_size < 1:
            raise ConfigurationError("segment_history_size must be at least 1")

    @classmethod
    def from_dict(cls, config):
        if config is None:
            return cls()
        return cls(**{k: v for k, v in config.items() if k != "quality_levels"})


def load_config(path):
    """Reads a JSON engine configuration.

    Returns ``(config, quality_levels)``; the second item is the raw ladder
    list when the file embeds one under ``"quality_levels"``, else None.
    """
    data = load_json(path)
    if not isinstance(data, dict):
        raise ConfigurationError("%s: expected a JSON object" % path)
    return StreamerConfig.from_dict(data), data.get("quality_levels")
