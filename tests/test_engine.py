import random
import unittest

from circles_engine import (
    LEFT,
    MOVE_PERMUTATIONS,
    MOVES,
    RIGHT,
    TOKEN_COUNT,
    TOP,
    GameState,
    Move,
    NoSnapshotError,
    PuzzleState,
    format_moves,
    is_redundant,
    new_puzzle,
    parse_moves,
    permute_all,
    pretty_print,
    random_moves,
    reverse,
    simplify,
)
from circles_scoring import (
    ADJACENCY_SEGMENTS,
    MAX_SCORE,
    SOLUTION_TEMPLATES,
    adjacency_score,
    evaluate_hypothetical,
    is_solved,
    score_colors,
    score_state,
    template_score,
)


def token_ids(state):
    return [token.id for token in state.tokens]


def shuffled(seed, steps=30):
    state = new_puzzle()
    state.apply_moves(random_moves(steps, random.Random(seed)))
    return state


class TestRingTables(unittest.TestCase):
    def test_tables_have_eighteen_distinct_slots(self):
        for table in (TOP, LEFT, RIGHT):
            self.assertEqual(len(table), 18)
            self.assertEqual(len(set(table)), 18)

    def test_tables_cover_every_slot(self):
        self.assertEqual(set(TOP) | set(LEFT) | set(RIGHT), set(range(TOKEN_COUNT)))

    def test_exclusive_segments(self):
        self.assertEqual(LEFT[3:14], tuple(range(18, 29)))
        self.assertEqual(RIGHT[9:17], tuple(range(29, 37)))

    def test_move_permutations_are_bijections(self):
        for move, perm in MOVE_PERMUTATIONS.items():
            self.assertEqual(sorted(perm), list(range(TOKEN_COUNT)), move)


class TestMoves(unittest.TestCase):
    def test_initial_state(self):
        state = new_puzzle()
        self.assertEqual(state.game_state, GameState.INITIALIZED)
        self.assertEqual(token_ids(state), list(range(TOKEN_COUNT)))
        self.assertEqual(state.colors(), (1,) * 18 + (2,) * 11 + (3,) * 8)

    def test_fresh_state_is_uninitialized(self):
        self.assertEqual(PuzzleState().game_state, GameState.UNINITIALIZED)

    def test_clockwise_pulls_from_three_ahead(self):
        state = new_puzzle()
        state.apply_move(Move.TOP_CW)
        for i, slot in enumerate(TOP):
            self.assertEqual(state.tokens[slot].id, TOP[(i + 3) % 18])

    def test_counter_clockwise_pulls_from_three_behind(self):
        state = new_puzzle()
        state.apply_move(Move.LEFT_CCW)
        for i, slot in enumerate(LEFT):
            self.assertEqual(state.tokens[slot].id, LEFT[(i - 3) % 18])

    def test_left_move_brings_color_two_into_shared_slot(self):
        state = new_puzzle()
        state.apply_move(Move.LEFT_CW)
        self.assertEqual(state.tokens[5].id, 18)
        self.assertEqual(state.tokens[5].color, 2)

    def test_move_touches_only_its_ring(self):
        state = new_puzzle()
        state.apply_move(Move.RIGHT_CW)
        for slot in range(TOKEN_COUNT):
            if slot not in RIGHT:
                self.assertEqual(state.tokens[slot].id, slot)

    def test_move_then_reverse_is_identity(self):
        for seed in range(5):
            state = shuffled(seed)
            before = token_ids(state)
            for move in MOVES:
                state.apply_move(move)
                state.apply_move(reverse(move))
                self.assertEqual(token_ids(state), before, move)

    def test_six_moves_return_ring(self):
        for seed in range(3):
            state = shuffled(seed)
            before = token_ids(state)
            for move in MOVES:
                for _ in range(6):
                    state.apply_move(move)
                self.assertEqual(token_ids(state), before, move)

    def test_five_moves_do_not_return_ring(self):
        state = new_puzzle()
        for _ in range(5):
            state.apply_move(Move.RIGHT_CW)
        self.assertNotEqual(token_ids(state), list(range(TOKEN_COUNT)))

    def test_top_then_inverse_restores_initial(self):
        state = new_puzzle()
        state.apply_move(Move.TOP_CW)
        state.apply_move(Move.TOP_CCW)
        self.assertEqual(state.tokens, new_puzzle().tokens)

    def test_reverse_inverts_each_move_keeping_order(self):
        self.assertEqual(reverse(Move.LEFT_CW), Move.LEFT_CCW)
        self.assertEqual(
            reverse(parse_moves("TLr")),
            [Move.TOP_CCW, Move.LEFT_CCW, Move.RIGHT_CW],
        )

    def test_full_undo_needs_reversed_order(self):
        state = shuffled(3)
        before = token_ids(state)
        moves = parse_moves("TLRlr")
        state.apply_moves(moves)
        state.apply_moves(reversed(reverse(moves)))
        self.assertEqual(token_ids(state), before)

    def test_parse_and_format(self):
        moves = parse_moves("T t L\nl R r")
        self.assertEqual(moves, list(MOVES))
        self.assertEqual(format_moves(moves), "TtLlRr")
        with self.assertRaises(ValueError):
            parse_moves("TX")

    def test_is_redundant(self):
        self.assertFalse(is_redundant(Move.TOP_CW, []))
        self.assertTrue(is_redundant(Move.TOP_CCW, [Move.TOP_CW]))
        self.assertFalse(is_redundant(Move.TOP_CW, [Move.TOP_CW, Move.TOP_CW]))
        self.assertTrue(is_redundant(Move.TOP_CW, [Move.TOP_CW] * 3))
        self.assertFalse(is_redundant(Move.TOP_CW, [Move.TOP_CW, Move.LEFT_CW, Move.TOP_CW]))
        self.assertFalse(is_redundant(Move.LEFT_CW, [Move.TOP_CCW]))


class TestSimplify(unittest.TestCase):
    def test_removes_adjacent_inverse_pairs(self):
        self.assertEqual(simplify(parse_moves("TtL")), [Move.LEFT_CW])
        self.assertEqual(simplify(parse_moves("LTtl")), [])
        self.assertEqual(simplify(parse_moves("RLTtlR")), parse_moves("RR"))

    def test_keeps_non_adjacent_cancellations(self):
        moves = parse_moves("TLt")
        self.assertEqual(simplify(moves), moves)

    def test_does_not_mutate_input(self):
        moves = parse_moves("Tt")
        simplify(moves)
        self.assertEqual(moves, parse_moves("Tt"))

    def test_properties_on_random_sequences(self):
        rng = random.Random(7)
        base = shuffled(21)
        for _ in range(100):
            moves = random_moves(rng.randint(0, 40), rng)
            once = simplify(moves)
            self.assertEqual(simplify(once), once)
            for a, b in zip(once, once[1:]):
                self.assertNotEqual(a, b.inverse)
            self.assertEqual(permute_all(base.tokens, once), permute_all(base.tokens, moves))


class TestSnapshotAndShuffle(unittest.TestCase):
    def test_restore_without_snapshot_is_noop(self):
        state = new_puzzle()
        state.apply_move(Move.LEFT_CW)
        before = token_ids(state)
        state.restore_snapshot()
        self.assertEqual(token_ids(state), before)
        self.assertFalse(state.has_snapshot)

    def test_save_and_restore(self):
        state = new_puzzle()
        state.apply_move(Move.LEFT_CW)
        state.save_snapshot()
        saved = token_ids(state)
        state.apply_moves(parse_moves("RRt"))
        state.restore_snapshot()
        self.assertEqual(token_ids(state), saved)

    def test_save_overwrites_previous_snapshot(self):
        state = new_puzzle()
        state.save_snapshot()
        state.apply_move(Move.RIGHT_CCW)
        state.save_snapshot()
        state.apply_move(Move.LEFT_CW)
        state.restore_snapshot()
        expected = new_puzzle()
        expected.apply_move(Move.RIGHT_CCW)
        self.assertEqual(token_ids(state), token_ids(expected))

    def test_initialize_clears_snapshot(self):
        state = new_puzzle()
        state.save_snapshot()
        state.initialize()
        with self.assertRaises(NoSnapshotError):
            state.snapshot_colors()

    def test_shuffle_applies_simplified_sequence(self):
        state = new_puzzle()
        applied = state.shuffle(50, random.Random(5))
        self.assertEqual(state.game_state, GameState.SHUFFLED)
        self.assertEqual(simplify(applied), applied)
        self.assertLessEqual(len(applied), 50)
        replay = new_puzzle()
        replay.apply_moves(applied)
        self.assertEqual(token_ids(state), token_ids(replay))

    def test_shuffle_is_deterministic_with_seed(self):
        first = new_puzzle().shuffle(50, random.Random(9))
        second = new_puzzle().shuffle(50, random.Random(9))
        self.assertEqual(first, second)

    def test_negative_shuffle_rejected(self):
        with self.assertRaises(ValueError):
            new_puzzle().shuffle(-1)

    def test_copy_is_independent(self):
        state = new_puzzle()
        clone = state.copy()
        clone.apply_move(Move.LEFT_CW)
        self.assertEqual(token_ids(state), list(range(TOKEN_COUNT)))

    def test_pretty_print_marks_shared_slots(self):
        text = pretty_print(new_puzzle())
        self.assertIn("State: INITIALIZED", text)
        self.assertIn("TOP", text)
        self.assertIn("[1]", text)
        self.assertIn("Colors: " + SOLUTION_TEMPLATES[0], text)


class TestScoring(unittest.TestCase):
    def test_initial_state_is_solved_with_max_score(self):
        state = new_puzzle()
        self.assertTrue(is_solved(state))
        self.assertEqual(score_state(state), MAX_SCORE)
        self.assertEqual(MAX_SCORE, 74)

    def test_every_template_scores_max(self):
        for template in SOLUTION_TEMPLATES:
            colors = [int(ch) for ch in template]
            self.assertEqual(score_colors(colors), MAX_SCORE)

    def test_top_rotation_keeps_solved_coloring(self):
        state = new_puzzle()
        state.apply_move(Move.TOP_CW)
        self.assertTrue(is_solved(state))

    def test_adjacency_counts_equal_neighbours(self):
        colors = [1] * TOKEN_COUNT
        self.assertEqual(adjacency_score(colors, TOP, 0, 17), 18)
        colors = [1, 2] * 18 + [1]
        self.assertEqual(adjacency_score(colors, TOP, 0, 17), 1)

    def test_unsolved_score_is_template_plus_adjacency(self):
        state = new_puzzle()
        state.apply_move(Move.LEFT_CW)
        colors = state.colors()
        self.assertFalse(is_solved(state))
        expected = template_score(colors) + sum(
            adjacency_score(colors, ring, start, end) for ring, start, end in ADJACENCY_SEGMENTS
        )
        self.assertEqual(score_state(state), expected)
        self.assertLess(score_state(state), MAX_SCORE)

    def test_score_bounds_and_solved_equivalence(self):
        rng = random.Random(11)
        state = new_puzzle()
        for _ in range(300):
            state.apply_move(rng.choice(MOVES))
            score = score_state(state)
            self.assertGreaterEqual(score, 3)
            self.assertLessEqual(score, MAX_SCORE)
            self.assertEqual(score == MAX_SCORE, is_solved(state))

    def test_hypothetical_net_zero_matches_direct(self):
        state = new_puzzle()
        state.save_snapshot()
        self.assertEqual(evaluate_hypothetical(state.snapshot_colors(), parse_moves("Tt")), score_state(state))

    def test_hypothetical_does_not_touch_live_state(self):
        state = shuffled(4)
        baseline = state.colors()
        before = token_ids(state)
        moved = state.copy()
        moved.apply_moves(parse_moves("LRt"))
        self.assertEqual(evaluate_hypothetical(baseline, parse_moves("LRt")), score_state(moved))
        self.assertEqual(token_ids(state), before)


if __name__ == "__main__":
    unittest.main()
