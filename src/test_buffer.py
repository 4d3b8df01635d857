import unittest

from abr_buffer import BufferState, BufferTracker


class TestBufferTracker(unittest.TestCase):

    def setUp(self):
        self.buffer = BufferTracker(target_level=30.0, max_level=60.0, min_level=5.0,
                                    panic_threshold=3.0, seek_threshold=45.0)

    def test_starts_empty(self):
        self.assertEqual(self.buffer.snapshot(), BufferState(0.0, 30.0, 60.0, 5.0))

    def test_arrival_is_clamped_to_max(self):
        self.buffer.on_segment_arrival(40.0)
        self.buffer.on_segment_arrival(40.0)
        self.assertEqual(self.buffer.current_level, 60.0)

    def test_consumption_never_goes_negative(self):
        self.buffer.on_segment_arrival(4.0)
        self.buffer.on_playback_consumption(2.5)
        self.assertEqual(self.buffer.current_level, 1.5)
        self.buffer.on_playback_consumption(10.0)
        self.assertEqual(self.buffer.current_level, 0.0)

    def test_level_stays_in_bounds(self):
        steps = [4, -3, 25, -1, 40, -100, 8, 8, -2, 70, -59.5]
        for step in steps:
            if step >= 0:
                self.buffer.on_segment_arrival(step)
            else:
                self.buffer.on_playback_consumption(-step)
            self.assertGreaterEqual(self.buffer.current_level, 0.0)
            self.assertLessEqual(self.buffer.current_level, 60.0)

    def test_negative_durations_rejected(self):
        with self.assertRaises(ValueError):
            self.buffer.on_segment_arrival(-1.0)
        with self.assertRaises(ValueError):
            self.buffer.on_playback_consumption(-1.0)

    def test_factor_in_panic(self):
        self.assertEqual(self.buffer.buffer_factor(), 0.3)
        self.buffer.on_segment_arrival(2.9)
        self.assertEqual(self.buffer.buffer_factor(), 0.3)
        self.assertTrue(self.buffer.in_panic())

    def test_factor_ramps_below_target(self):
        self.buffer.on_segment_arrival(3.0)
        self.assertAlmostEqual(self.buffer.buffer_factor(), 0.63)
        self.buffer.on_segment_arrival(12.0)
        self.assertAlmostEqual(self.buffer.buffer_factor(), 0.75)
        self.assertFalse(self.buffer.in_panic())

    def test_factor_neutral_between_target_and_seek(self):
        self.buffer.on_segment_arrival(30.0)
        self.assertEqual(self.buffer.buffer_factor(), 1.0)
        self.buffer.on_segment_arrival(15.0)
        self.assertEqual(self.buffer.buffer_factor(), 1.0)

    def test_factor_above_seek_threshold(self):
        self.buffer.on_segment_arrival(45.5)
        self.assertEqual(self.buffer.buffer_factor(), 1.5)
        self.buffer.on_segment_arrival(100.0)
        self.assertEqual(self.buffer.buffer_factor(), 1.5)

    def test_health_and_pause(self):
        self.assertFalse(self.buffer.is_healthy())
        self.assertTrue(self.buffer.should_pause())
        self.buffer.on_segment_arrival(1.0)
        self.assertFalse(self.buffer.should_pause())
        self.buffer.on_segment_arrival(4.0)
        self.assertTrue(self.buffer.is_healthy())
        self.buffer.on_playback_consumption(0.5)
        self.assertFalse(self.buffer.is_healthy())


if __name__ == "__main__":
    unittest.main()
