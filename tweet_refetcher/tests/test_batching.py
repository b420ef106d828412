"""Tests for the batching module."""

import unittest

from tweet_refetcher.collector.batching import batch_count, partition


class TestPartition(unittest.TestCase):
    """Test cases for partitioning tweet IDs into lookup batches."""

    def test_150_ids_make_two_batches(self):
        tweet_ids = list(range(1, 151))
        batches = list(partition(tweet_ids, 100))
        self.assertEqual([len(b) for b in batches], [100, 50])

    def test_concatenation_reproduces_input(self):
        for total in (0, 1, 99, 100, 101, 250, 1000):
            tweet_ids = [n * 7 for n in range(total)]
            batches = list(partition(tweet_ids, 100))
            self.assertEqual(len(batches), batch_count(total, 100))
            self.assertEqual(len(batches), -(-total // 100))
            self.assertEqual([i for b in batches for i in b], tweet_ids)

    def test_all_but_last_are_full(self):
        batches = list(partition(list(range(23)), 5))
        self.assertTrue(all(len(b) == 5 for b in batches[:-1]))
        self.assertEqual(len(batches[-1]), 3)

    def test_empty_input(self):
        self.assertEqual(list(partition([], 100)), [])

    def test_invalid_size(self):
        with self.assertRaises(ValueError):
            list(partition([1, 2, 3], 0))


if __name__ == "__main__":
    unittest.main()
