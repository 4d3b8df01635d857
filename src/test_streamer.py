import unittest

from abr_config import ConfigurationError, StreamerConfig
from abr_quality_ladder import QualityLevel
from abr_streamer import AdaptiveBitrateStreamer, SegmentRecord


def create_test_quality_levels():
    return [
        QualityLevel(500_000, 640, 360, "h264"),
        QualityLevel(1_000_000, 1280, 720, "h264"),
        QualityLevel(2_500_000, 1920, 1080, "h264"),
        QualityLevel(5_000_000, 3840, 2160, "h264"),
    ]


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class TestAdaptiveBitrateStreamer(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock()
        self.streamer = AdaptiveBitrateStreamer(create_test_quality_levels(),
                                                clock=self.clock)

    def test_initial_quality_selection(self):
        """Starts in the middle of the ladder."""
        self.assertEqual(self.streamer.current_quality, 2)
        for n in range(1, 8):
            ladder = [QualityLevel(100_000 * (i + 1), 640, 360, "h264") for i in range(n)]
            self.assertEqual(AdaptiveBitrateStreamer(ladder).current_quality, n // 2)

    def test_empty_ladder_rejected(self):
        with self.assertRaises(ConfigurationError):
            AdaptiveBitrateStreamer([])

    def test_config_from_dict(self):
        streamer = AdaptiveBitrateStreamer(create_test_quality_levels(),
                                           {"min_bandwidth_samples": 1})
        self.assertEqual(streamer.config.min_bandwidth_samples, 1)
        self.assertEqual(streamer.config.safety_factor, 0.8)

    def test_bandwidth_recording(self):
        self.streamer.record_segment_download(1_000_000, 1.0, 4.0)
        self.assertEqual(len(self.streamer.bandwidth_history), 1)
        self.assertEqual(len(self.streamer.segment_history), 1)
        self.assertEqual(self.streamer.segment_history[0],
                         SegmentRecord(2, 1_000_000, 4.0, 1.0))
        self.assertEqual(self.streamer.get_buffer_state().current_level, 4.0)

    def test_segment_history_is_capped(self):
        for i in range(60):
            self.streamer.record_segment_download(1000 + i, 1.0, 0.0)
        self.assertEqual(len(self.streamer.segment_history), 50)
        self.assertEqual(self.streamer.segment_history[0].size_bytes, 1010)

    def test_estimate_falls_back_to_current_bitrate(self):
        """One fast download is not enough to act on."""
        self.streamer.record_segment_download(1_000_000, 0.8, 4.0)
        self.assertEqual(self.streamer.get_estimated_bandwidth(), 2_500_000 // 8)
        self.streamer.record_segment_download(1_000_000, 0.8, 4.0)
        self.assertEqual(self.streamer.get_estimated_bandwidth(), 312_500)
        self.streamer.record_segment_download(1_000_000, 0.8, 4.0)
        self.assertNotEqual(self.streamer.get_estimated_bandwidth(), 312_500)

    def test_slow_network_steps_down_one_level(self):
        for _ in range(3):
            self.streamer.record_segment_download(500_000, 3.0, 4.0)
        self.assertEqual(self.streamer.get_next_quality(), 1)
        self.assertEqual(self.streamer.get_next_quality(), 0)
        self.assertEqual(self.streamer.get_next_quality(), 0)

    def test_panic_allows_immediate_downgrade(self):
        for _ in range(3):
            self.streamer.record_segment_download(500_000, 3.0, 0.0)
        self.assertEqual(self.streamer.get_buffer_state().current_level, 0.0)
        self.assertEqual(self.streamer.get_next_quality(), 0)

    def test_fast_network_steps_up_one_level(self):
        for _ in range(3):
            self.streamer.record_segment_download(10_000_000, 1.0, 10.0)
        self.assertEqual(self.streamer.get_next_quality(), 3)
        self.assertEqual(self.streamer.get_next_quality(), 3)

    def test_upgrade_in_panic_is_gradual(self):
        for _ in range(3):
            self.streamer.record_segment_download(1000, 1.0, 0.0)
        self.assertEqual(self.streamer.get_next_quality(), 0)
        # let the slow samples age out of the window
        self.clock.now = 11.0
        for _ in range(3):
            self.streamer.record_segment_download(100_000_000, 1.0, 0.0)
        self.assertEqual(self.streamer.get_next_quality(), 1)
        self.assertEqual(self.streamer.get_next_quality(), 2)

    def test_empty_buffer_steps_up_on_steady_target(self):
        """In panic, a decision whose target matches the current level moves up one."""
        streamer = AdaptiveBitrateStreamer(create_test_quality_levels()[:3],
                                           clock=self.clock)
        self.assertEqual(streamer.current_quality, 1)
        for _ in range(3):
            streamer.record_segment_download(2**20, 1.0, 0.0)
        self.assertEqual(streamer.get_buffer_state().current_level, 0.0)
        # 2**20 * 0.3 * 0.8 B/s affords level 1 but not level 2
        self.assertEqual(streamer.selector.quality_from_bandwidth(int(2**20 * 0.3)), 1)
        self.assertEqual(streamer.get_next_quality(), 2)

    def test_quality_change_is_bounded(self):
        downloads = [(500_000, 3.0, 4.0), (4_000_000, 0.5, 4.0), (100, 2.0, 4.0),
                     (2_000_000, 1.0, 0.0), (900_000, 0.1, 4.0)]
        for size, download_time, duration in downloads * 6:
            previous = self.streamer.current_quality
            self.clock.now += download_time
            self.streamer.record_segment_download(size, download_time, duration)
            self.streamer.update_buffer_consumption(download_time * 2)
            panic = self.streamer.get_buffer_state().current_level < 3.0
            quality = self.streamer.get_next_quality()
            self.assertIn(quality, range(4))
            if not (panic and quality < previous):
                self.assertLessEqual(abs(quality - previous), 1)

    def test_current_quality_descriptor(self):
        self.assertEqual(self.streamer.get_current_quality(),
                         QualityLevel(2_500_000, 1920, 1080, "h264"))

    def test_buffer_consumption(self):
        self.streamer.record_segment_download(1000, 1.0, 8.0)
        self.streamer.update_buffer_consumption(3.0)
        self.assertEqual(self.streamer.get_buffer_state().current_level, 5.0)
        self.assertTrue(self.streamer.is_buffer_healthy())
        self.streamer.update_buffer_consumption(4.5)
        self.assertFalse(self.streamer.is_buffer_healthy())
        self.assertTrue(self.streamer.should_pause_playback())
        self.streamer.update_buffer_consumption(4.5)
        self.assertEqual(self.streamer.get_buffer_state().current_level, 0.0)

    def test_buffer_snapshot_is_detached(self):
        state = self.streamer.get_buffer_state()
        self.streamer.record_segment_download(1000, 1.0, 8.0)
        self.assertEqual(state.current_level, 0.0)
        self.assertEqual(self.streamer.get_buffer_state().target_level, 30.0)

    def test_queries_have_no_side_effects(self):
        for _ in range(3):
            self.streamer.record_segment_download(500_000, 3.0, 4.0)
        before = (self.streamer.current_quality, list(self.streamer.bandwidth_history))
        self.streamer.get_estimated_bandwidth()
        self.streamer.get_current_quality()
        self.streamer.is_buffer_healthy()
        self.streamer.should_pause_playback()
        after = (self.streamer.current_quality, list(self.streamer.bandwidth_history))
        self.assertEqual(before, after)

    def test_custom_config(self):
        config = StreamerConfig(panic_threshold=1.0, min_bandwidth_samples=1)
        streamer = AdaptiveBitrateStreamer(create_test_quality_levels(), config,
                                           clock=self.clock)
        streamer.record_segment_download(2**23, 1.0, 2.0)
        self.assertEqual(streamer.get_estimated_bandwidth(), 2**23)
        self.assertEqual(streamer.get_next_quality(), 3)


if __name__ == "__main__":
    unittest.main()
