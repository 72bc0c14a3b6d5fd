import unittest

from support_agent.ingest.chunker import ChunkConfig, chunk_text, normalize_text_for_chunking


class ChunkerTests(unittest.TestCase):
    def test_normalize_collapses_whitespace_runs(self):
        self.assertEqual(normalize_text_for_chunking("  a \n\n\t b  c\r\n"), "a b c")

    def test_empty_and_whitespace_only_input_yield_no_chunks(self):
        self.assertEqual(chunk_text(""), [])
        self.assertEqual(chunk_text(" \n\t "), [])

    def test_short_text_is_a_single_normalized_chunk(self):
        self.assertEqual(chunk_text("Hello\n\nworld", chunk_size=50, overlap=5), ["Hello world"])

    def test_first_window_cuts_after_sentence_end(self):
        text = "One two three. Four five six seven eight nine."
        chunks = chunk_text(text, chunk_size=20, overlap=5)

        self.assertEqual(chunks[0], "One two three.")
        self.assertTrue(all(len(c) <= 20 for c in chunks))
        self.assertTrue(any(c.endswith("nine.") for c in chunks))

    def test_word_boundary_cut_without_overlap(self):
        text = " ".join(["word"] * 30)
        chunks = chunk_text(text, chunk_size=50, overlap=0)

        self.assertEqual(chunks, [" ".join(["word"] * 10)] * 3)

    def test_raw_cut_when_no_boundary_exists(self):
        chunks = chunk_text("x" * 120, chunk_size=50, overlap=10)
        self.assertEqual([len(c) for c in chunks], [50, 50, 40])

    def test_short_boundary_cut_still_makes_progress(self):
        # A sentence end near the window start would otherwise pull the window back.
        text = "Hi. " + "y" * 200
        chunks = chunk_text(text, chunk_size=40, overlap=30)
        self.assertTrue(chunks)
        self.assertTrue(chunks[-1].endswith("y"))
        self.assertLess(len(chunks), 50)

    def test_text_of_exactly_chunk_size_is_one_chunk(self):
        self.assertEqual(chunk_text("a" * 500), ["a" * 500])

    def test_periods_without_following_space_are_not_sentence_ends(self):
        text = "a." * 300
        chunks = chunk_text(text, chunk_size=500, overlap=50)

        self.assertEqual(chunks, [text[:500], text[450:]])

    def test_chunks_cover_the_whole_normalized_text(self):
        text = "\n".join(
            f"Paragraph {i} covers\tdelivery option {i * 7} and returns window {i}."
            for i in range(25)
        )
        normalized = normalize_text_for_chunking(text)
        chunks = chunk_text(text, chunk_size=120, overlap=20)

        covered_until = 0
        search_from = 0
        for chunk in chunks:
            self.assertLessEqual(len(chunk), 120)
            position = normalized.find(chunk, search_from)
            self.assertNotEqual(position, -1, chunk)
            self.assertEqual(normalized[covered_until:position].strip(), "")
            covered_until = max(covered_until, position + len(chunk))
            search_from = position + 1
        self.assertEqual(covered_until, len(normalized))

    def test_invalid_configuration_is_rejected(self):
        with self.assertRaises(ValueError):
            ChunkConfig(chunk_size=10, overlap=10)
        with self.assertRaises(ValueError):
            ChunkConfig(chunk_size=10, overlap=-1)
        with self.assertRaises(ValueError):
            chunk_text("some text", chunk_size=5, overlap=6)


if __name__ == "__main__":
    unittest.main()
