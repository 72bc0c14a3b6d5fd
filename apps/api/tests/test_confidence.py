import unittest

from support_agent.rag.confidence import average_distance, is_confident


class ConfidenceTests(unittest.TestCase):
    def test_empty_retrieval_averages_to_one(self):
        self.assertEqual(average_distance([]), 1.0)
        self.assertFalse(is_confident([]))

    def test_close_neighbors_are_confident(self):
        self.assertAlmostEqual(average_distance([0.1, 0.2]), 0.15)
        self.assertTrue(is_confident([0.1, 0.2], confidence_threshold=0.7))

    def test_distant_neighbors_are_not_confident(self):
        self.assertFalse(is_confident([0.5], confidence_threshold=0.7))
        self.assertFalse(is_confident([0.9, 1.2], confidence_threshold=0.5))

    def test_zero_threshold_accepts_anything_below_one(self):
        self.assertTrue(is_confident([0.99], confidence_threshold=0.0))
        self.assertFalse(is_confident([1.0], confidence_threshold=0.0))


if __name__ == "__main__":
    unittest.main()
