import io
import unittest

from skillpull.prompt import select_multiple, select_one

CHOICES = [("reviewer", "r"), ("writer", "w"), ("editor", "e")]


class TestSelectMultiple(unittest.TestCase):
    def test_empty_answer_picks_everything(self) -> None:
        out = io.StringIO()
        self.assertEqual(select_multiple(CHOICES, input_fn=lambda _: "", out=out), ["r", "w", "e"])
        self.assertIn("  2) writer", out.getvalue())

    def test_numbers_pick_in_given_order(self) -> None:
        picked = select_multiple(CHOICES, input_fn=lambda _: "3, 1, 3, 9, x", out=io.StringIO())
        self.assertEqual(picked, ["e", "r"])

    def test_nothing_valid_aborts(self) -> None:
        out = io.StringIO()
        self.assertEqual(select_multiple(CHOICES, input_fn=lambda _: "nope", out=out), [])
        self.assertIn("Aborting", out.getvalue())

    def test_eof_counts_as_empty_answer(self) -> None:
        def _eof(_: str) -> str:
            raise EOFError

        self.assertEqual(select_multiple(CHOICES, input_fn=_eof, out=io.StringIO()), ["r", "w", "e"])


class TestSelectOne(unittest.TestCase):
    def test_default_and_explicit_choice(self) -> None:
        self.assertEqual(select_one(CHOICES, input_fn=lambda _: "", out=io.StringIO()), "r")
        self.assertEqual(select_one(CHOICES, input_fn=lambda _: "2", out=io.StringIO()), "w")
        self.assertEqual(select_one(CHOICES, input_fn=lambda _: "42", out=io.StringIO()), "r")
        self.assertIsNone(select_one([], input_fn=lambda _: "", out=io.StringIO()))


if __name__ == "__main__":
    unittest.main()
