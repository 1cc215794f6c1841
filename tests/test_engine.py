"""
Test suite for the Rookery rules engine and search.

Covers:
- Value types (coordinates, castling rights, moves, players)
- Piece move generation
- Board rules (legal moves, make/undo, termination, castling, en passant, promotion)
- Clocks and game-ending actions
- Evaluator terms and the weighted pipeline
- Search tiers (pruning equivalence, mate detection, no-move results, cancellation)
- Move ordering and quiescence
- Configuration loading
"""

import math
import random
import threading

import pytest

from engine.config import CONFIG, Config
from engine.core.board import Board
from engine.core.errors import ConstructionError, IllegalMoveError, IllegalStateError
from engine.core.evaluator import (
    CheckEvaluator,
    EndConditionEvaluator,
    EvaluationPipeline,
    EvaluationStep,
    MaterialEvaluator,
    PieceSquareTableEvaluator,
)
from engine.core.move import Move
from engine.core.pieces import Bishop, King, Knight, Pawn, Queen, Rook, piece_from_symbol
from engine.core.player import Player
from engine.core.search import (
    AIPlayer,
    AlphaBetaSearch,
    DeepeningSearch,
    ExhaustiveSearch,
    MoveOrdering,
    RandomSearch,
    ENGINES,
    create_engine,
)
from engine.core.types import CastlingAvailability, Color, Coordinate, GameState, MoveType
from engine.notation.fen import START_FEN

FOOLS_MATE = ["f2f3", "e7e5", "g2g4", "d8h4"]
BACK_RANK_MATE = "6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1"
STALEMATE = "7k/5Q2/6K1/8/8/8/8/8 b - - 0 1"
KIWIPETE = "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1"


def sq(name):
    return Coordinate.from_algebraic(name)


def play(board, *moves):
    for uci in moves:
        move = board.find_move(uci)
        assert move is not None, f"{uci} should be legal in {board.export_fen()}"
        board.make_move(move)
    return board


def ucis(board):
    return {move.uci() for move in board.find_all_legal_moves()}


# ════════════════════════════════════════════════════════════════════════════
#  VALUE TYPES
# ════════════════════════════════════════════════════════════════════════════

class TestValueTypes:
    def test_coordinate_algebraic(self):
        assert sq("a1") == Coordinate(0, 0)
        assert sq("e4") == Coordinate(4, 3)
        assert str(Coordinate(7, 7)) == "h8"

    def test_coordinate_invalid_text(self):
        for text in ("", "i1", "a9", "e44", "4e"):
            with pytest.raises(ValueError):
                Coordinate.from_algebraic(text)

    def test_off_board_coordinate_has_no_name(self):
        off = Coordinate(0, 0).offset(-1, 0)
        assert not off.is_on_board()
        with pytest.raises(ValueError):
            _ = off.algebraic

    def test_color_helpers(self):
        assert Color.WHITE.opponent is Color.BLACK
        assert Color.BLACK.index == 1
        assert Color.from_index(0) is Color.WHITE

    def test_castling_symbols_and_revoke(self):
        rights = CastlingAvailability()
        assert rights.symbols == "KQkq"
        assert rights.revoke(Color.WHITE).symbols == "kq"
        assert rights.revoke(Color.BLACK, king_side=False).symbols == "KQk"
        assert CastlingAvailability.none().symbols == "-"
        assert not CastlingAvailability.none().is_any_available()
        # revoke returns a new value
        assert rights.symbols == "KQkq"

    def test_game_state_flags(self):
        assert not GameState.PAUSED.is_finished
        assert not GameState.RUNNING.is_finished
        assert GameState.END_CHECKMATE.is_finished
        assert GameState.END_STALEMATE.is_draw
        assert not GameState.END_RESIGN.is_draw


class TestMove:
    def test_uci(self):
        pawn = Pawn(Color.WHITE)
        move = Move(pawn, sq("a7"), sq("a8"), MoveType.PROMOTION, promotion_piece=Queen(Color.WHITE))
        assert move.uci() == "a7a8q"
        assert str(Move(pawn, sq("e2"), sq("e4"), MoveType.DOUBLEPAWN)) == "e2e4"

    def test_capture_requires_involved_piece(self):
        with pytest.raises(ValueError):
            Move(Knight(Color.WHITE), sq("b1"), sq("c3"), MoveType.CAPTURE)

    def test_castling_requires_rook(self):
        with pytest.raises(ValueError):
            Move(King(Color.WHITE), sq("e1"), sq("g1"), MoveType.CASTLING_KINGSIDE)

    def test_promotion_requires_piece(self):
        with pytest.raises(ValueError):
            Move(Pawn(Color.WHITE), sq("a7"), sq("a8"), MoveType.PROMOTION)

    def test_moving_piece_must_not_be_involved_piece(self):
        rook = Rook(Color.WHITE)
        with pytest.raises(ValueError):
            Move(rook, sq("a1"), sq("a8"), MoveType.CAPTURE, rook)

    def test_promotion_piece_differs_from_captured(self):
        with pytest.raises(ValueError):
            Move(Pawn(Color.WHITE), sq("a7"), sq("b8"), MoveType.CAPTURE_PROMOTION,
                 Queen(Color.WHITE), Queen(Color.WHITE))

    def test_equality_by_kind_and_color(self):
        a = Move(Knight(Color.WHITE), sq("g1"), sq("f3"), MoveType.NORMAL)
        b = Move(Knight(Color.WHITE), sq("g1"), sq("f3"), MoveType.NORMAL)
        assert a == b
        assert hash(a) == hash(b)


class TestPlayer:
    def test_valid_player(self):
        player = Player("Alice", Color.WHITE, 1000)
        assert player.is_human
        assert player.reduce_remaining_time(400) == 600

    def test_invalid_construction(self):
        with pytest.raises(ConstructionError):
            Player("", Color.WHITE, 1000)
        with pytest.raises(ConstructionError):
            Player("Bob", None, 1000)
        with pytest.raises(ConstructionError):
            Player("Bob", Color.BLACK, -1)

    def test_time_never_negative(self):
        player = Player("Alice", Color.WHITE, 100)
        with pytest.raises(ValueError):
            player.reduce_remaining_time(101)
        with pytest.raises(ValueError):
            player.remaining_ms = -5
        assert player.remaining_ms == 100


# ════════════════════════════════════════════════════════════════════════════
#  PIECES
# ════════════════════════════════════════════════════════════════════════════

class TestPieces:
    def test_piece_equality_ignores_identity(self):
        assert Rook(Color.WHITE) == Rook(Color.WHITE)
        assert Rook(Color.WHITE) != Rook(Color.BLACK)
        assert Rook(Color.WHITE) != Bishop(Color.WHITE)

    def test_values_and_symbols(self):
        assert [piece_from_symbol(s).value for s in "PNBRQK"] == [1, 3, 3, 5, 9, 0]
        assert piece_from_symbol("n").fen_symbol == "n"
        assert piece_from_symbol("n").color is Color.BLACK
        with pytest.raises(ValueError):
            piece_from_symbol("x")

    def test_knight_from_start(self):
        board = Board()
        moves = board.get_all_legal_moves_for(sq("g1"))
        assert {m.uci() for m in moves} == {"g1f3", "g1h3"}

    def test_rook_order_and_blocking(self):
        board = Board.from_fen("4k3/8/8/8/3p4/8/8/3RK3 w - - 0 1")
        moves = board.get_all_legal_moves_for(sq("d1"))
        # up the file first, stopping at the capture
        assert [m.uci() for m in moves[:3]] == ["d1d2", "d1d3", "d1d4"]
        assert moves[2].type is MoveType.CAPTURE
        assert "d1d5" not in {m.uci() for m in moves}

    def test_pawn_promotions_in_order(self):
        board = Board.from_fen("8/P7/8/8/8/8/8/4K2k w - - 0 1")
        moves = board.get_all_legal_moves_for(sq("a7"))
        assert [m.promotion_piece.symbol for m in moves] == ["R", "N", "B", "Q"]
        assert all(m.type is MoveType.PROMOTION for m in moves)

    def test_pawn_blocked(self):
        board = Board.from_fen("4k3/8/8/8/8/4p3/4P3/4K3 w - - 0 1")
        assert board.get_all_legal_moves_for(sq("e2")) == []


# ════════════════════════════════════════════════════════════════════════════
#  BOARD RULES
# ════════════════════════════════════════════════════════════════════════════

class TestBoardRules:
    def test_start_position(self):
        board = Board()
        assert len(board.find_all_legal_moves()) == 20
        assert board.export_fen() == START_FEN
        assert board.game_state is GameState.PAUSED
        assert board.current_player.color is Color.WHITE

    def test_first_move_starts_the_game(self):
        board = play(Board(), "e2e4")
        assert board.game_state is GameState.RUNNING
        assert board.current_player.color is Color.BLACK
        assert board.half_move_clock == 0
        assert board.full_move_clock == 1

    def test_clocks_advance(self):
        board = play(Board(), "g1f3", "g8f6")
        assert board.half_move_clock == 2
        assert board.full_move_clock == 2

    def test_determinism(self):
        board = Board.from_fen(KIWIPETE)
        first = set(board.find_all_legal_moves())
        second = set(board.find_all_legal_moves())
        assert first == second
        assert set(board.deep_copy().find_all_legal_moves()) == first

    def test_kiwipete_move_count(self):
        assert len(Board.from_fen(KIWIPETE).find_all_legal_moves()) == 48

    def test_illegal_move_rejected_without_mutation(self):
        board = Board()
        pawn = board.get_piece(4, 1)
        bogus = Move(pawn, sq("e2"), sq("e5"), MoveType.NORMAL)
        with pytest.raises(IllegalMoveError):
            board.make_move(bogus)
        assert board.export_fen() == START_FEN
        assert board.history == ()

    def test_pinned_piece_cannot_move(self):
        board = Board.from_fen("4k3/4r3/8/8/8/8/4N3/4K3 w - - 0 1")
        assert board.get_all_legal_moves_for(sq("e2")) == []

    def test_must_answer_check(self):
        board = Board.from_fen("4k3/8/8/8/8/8/8/r3K3 w - - 0 1")
        assert board.color_in_check is Color.WHITE
        assert all(m.piece.kind == "KING" for m in board.find_all_legal_moves())
        assert "e1d1" not in ucis(board)

    def test_get_moves_for_square(self):
        board = Board()
        with pytest.raises(ValueError):
            board.get_all_legal_moves_for(sq("e4"))
        assert board.get_all_legal_moves_for(sq("e7")) == []

    def test_find_move_needs_promotion_letter(self):
        board = Board.from_fen("8/P7/8/8/8/8/8/4K2k w - - 0 1")
        assert board.find_move("a7a8") is None
        assert board.find_move("a7a8n") is not None


class TestMakeUndo:
    @staticmethod
    def _snapshot(board):
        return (
            board.export_fen(),
            board.castling_availability,
            board.color_in_check,
            board.game_state,
            board.winner_index,
            board.find_all_legal_moves(),
            board.state_string,
            len(board.history),
        )

    @pytest.mark.parametrize("fen", [
        START_FEN,
        KIWIPETE,
        "4k3/8/8/3pP3/8/8/8/4K3 w - d6 0 2",
        "r3k2r/1P6/8/8/8/8/6p1/R3K2R b KQkq - 3 20",
    ])
    def test_round_trip_every_move(self, fen):
        board = Board.from_fen(fen)
        before = self._snapshot(board)
        for move in board.find_all_legal_moves():
            board.make_move(move)
            board.undo_last_move()
            assert self._snapshot(board) == before, f"undo of {move} changed the board"

    def test_undo_restores_paused(self):
        board = play(Board(), "e2e4")
        board.undo_last_move()
        assert board.game_state is GameState.PAUSED

    def test_undo_restores_finished_game(self):
        board = play(Board(), *FOOLS_MATE)
        board.undo_last_move()
        assert board.game_state is GameState.RUNNING
        assert board.winner is None
        assert "d8h4" in ucis(board)

    def test_nothing_to_undo(self):
        board = Board()
        assert not board.can_undo()
        with pytest.raises(IllegalStateError):
            board.undo_last_move()

    def test_en_passant_start_cannot_be_undone(self):
        board = Board.from_fen("4k3/8/8/3pP3/8/8/8/4K3 w - d6 0 2")
        assert len(board.history) == 1
        assert not board.can_undo()


class TestTermination:
    def test_fools_mate(self):
        board = play(Board(), *FOOLS_MATE)
        assert board.game_state is GameState.END_CHECKMATE
        assert board.winner.color is Color.BLACK
        assert board.color_in_check is Color.WHITE
        assert board.find_all_legal_moves() == ()
        assert board.is_game_over()

    def test_stalemate_by_move(self):
        board = play(Board.from_fen("7k/8/6K1/8/8/8/5Q2/8 w - - 0 1"), "f2f7")
        assert board.game_state is GameState.END_STALEMATE
        assert board.winner is None
        assert board.color_in_check is None

    def test_stalemate_constructed(self):
        board = Board.from_fen(STALEMATE)
        assert board.game_state is GameState.END_STALEMATE
        assert board.find_all_legal_moves() == ()

    def test_checkmate_constructed(self):
        board = Board.from_fen("rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3")
        assert board.game_state is GameState.END_CHECKMATE
        assert board.winner.color is Color.BLACK

    def test_threefold_repetition(self):
        board = Board()
        shuttle = ["g1f3", "g8f6", "f3g1", "f6g8"]
        play(board, *shuttle)
        play(board, *shuttle[:3])
        assert board.game_state is GameState.RUNNING
        play(board, shuttle[3])
        assert board.position_seen_count() == 3
        assert board.full_move_clock == 5
        assert board.game_state is GameState.END_REPETITION
        assert board.winner is None

    def test_repetition_can_be_undone(self):
        board = Board.from_fen("4k3/8/8/8/8/8/8/R3K3 w - - 0 1")
        play(board, "a1a2", "e8d8", "a2a1", "d8e8", "a1a2", "e8d8", "a2a1", "d8e8")
        assert board.game_state is GameState.END_REPETITION
        board.undo_last_move()
        assert board.game_state is GameState.RUNNING

    def test_fifty_move_rule(self):
        board = play(Board.from_fen("4k3/8/8/8/8/8/8/R3K3 w - - 49 60"), "a1a2")
        assert board.half_move_clock == 50
        assert board.game_state is GameState.END_50MOVE

    def test_insufficient_material_constructed(self):
        board = Board.from_fen("4k3/8/8/8/8/8/8/4K1N1 w - - 0 1")
        assert board.game_state is GameState.END_MATERIAL
        assert board.find_all_legal_moves() == ()

    def test_insufficient_material_reached(self):
        board = play(Board.from_fen("4k3/8/8/8/8/8/3r4/4K1N1 w - - 0 1"), "e1d2")
        assert board.game_state is GameState.END_MATERIAL

    def test_mating_material(self):
        assert Board.from_fen("4k3/8/8/8/8/8/8/3NKN2 w - - 0 1").sides_that_can_mate() == [Color.WHITE]
        # two bishops on the same colour cannot mate
        same = Board.from_fen("4k3/8/8/8/8/B7/8/2B1K3 w - - 0 1")
        assert not same.is_mate_possible()
        opposite = Board.from_fen("4k3/8/8/8/8/8/8/2BBK3 w - - 0 1")
        assert opposite.is_mate_possible()

    def test_move_on_finished_game(self):
        board = play(Board(), *FOOLS_MATE)
        move = Move(board.get_piece(0, 1), sq("a2"), sq("a3"), MoveType.NORMAL)
        with pytest.raises(IllegalStateError):
            board.make_move(move)


class TestSpecialMoves:
    def test_both_castles_available(self):
        board = Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1")
        assert {"e1g1", "e1c1"} <= ucis(board)

    def test_castling_moves_rook(self):
        board = play(Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"), "e1g1")
        assert isinstance(board.get_piece(6, 0), King)
        assert isinstance(board.get_piece(5, 0), Rook)
        assert board.get_piece(7, 0) is None
        assert board.castling_availability.symbols == "kq"
        board.undo_last_move()
        assert isinstance(board.get_piece(7, 0), Rook)
        assert board.castling_availability.symbols == "KQkq"

    def test_queenside_castle(self):
        board = play(Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R b KQkq - 0 1"), "e8c8")
        assert isinstance(board.get_piece(2, 7), King)
        assert isinstance(board.get_piece(3, 7), Rook)
        assert board.castling_availability.symbols == "KQ"

    def test_cannot_castle_through_attack(self):
        board = Board.from_fen("4kr2/8/8/8/8/8/8/R3K2R w KQ - 0 1")
        assert "e1g1" not in ucis(board)
        assert "e1c1" in ucis(board)

    def test_cannot_castle_out_of_check(self):
        board = Board.from_fen("k3r3/8/8/8/8/8/8/R3K2R w KQ - 0 1")
        assert "e1g1" not in ucis(board)
        assert "e1c1" not in ucis(board)

    def test_cannot_castle_past_pawn_attack(self):
        board = Board.from_fen("4k3/8/8/8/8/8/6p1/R3K2R w KQ - 0 1")
        assert "e1g1" not in ucis(board)
        assert "e1c1" in ucis(board)

    def test_cannot_castle_without_right(self):
        board = Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w Qkq - 0 1")
        assert "e1g1" not in ucis(board)

    def test_rook_moves_and_captures_revoke_rights(self):
        board = play(Board.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w KQkq - 0 1"), "a1a8")
        assert board.castling_availability.symbols == "Kk"

    def test_en_passant_from_fen(self):
        board = Board.from_fen("4k3/8/8/3pP3/8/8/8/4K3 w - d6 0 2")
        move = board.find_move("e5d6")
        assert move is not None and move.type is MoveType.EN_PASSANT
        board.make_move(move)
        assert board.get_piece(3, 4) is None
        assert isinstance(board.get_piece(3, 5), Pawn)

    def test_en_passant_only_right_after_double_push(self):
        board = play(Board(), "e2e4", "a7a6", "e4e5", "d7d5")
        assert "e5d6" in ucis(board)
        play(board, "a2a3", "a6a5")
        assert "e5d6" not in ucis(board)

    def test_invalid_en_passant_target(self):
        with pytest.raises(ConstructionError):
            Board.from_fen("4k3/8/8/8/4P3/8/8/4K3 w - d6 0 2")

    def test_promotion(self):
        board = play(Board.from_fen("8/P7/8/8/8/8/8/4K2k w - - 0 1"), "a7a8q")
        piece = board.get_piece(0, 7)
        assert isinstance(piece, Queen) and piece.color is Color.WHITE
        assert board.color_in_check is Color.BLACK

    def test_capture_promotion(self):
        board = Board.from_fen("1r2k3/P7/8/8/8/8/8/4K3 w - - 0 1")
        move = board.find_move("a7b8n")
        assert move.type is MoveType.CAPTURE_PROMOTION
        board.make_move(move)
        assert isinstance(board.get_piece(1, 7), Knight)


# ════════════════════════════════════════════════════════════════════════════
#  CONSTRUCTION, CLOCKS AND GAME-ENDING ACTIONS
# ════════════════════════════════════════════════════════════════════════════

class TestConstruction:
    def test_player_array_validated(self):
        with pytest.raises(ConstructionError):
            Board([Player("A", Color.WHITE, 1)])
        with pytest.raises(ConstructionError):
            Board([Player("A", Color.BLACK, 1), Player("B", Color.WHITE, 1)])

    def test_from_fields_grid_dimensions(self):
        board = Board()
        grid = board.piece_grid[:7]
        with pytest.raises(ConstructionError):
            Board.from_fields(grid, board.players, 0, [], CastlingAvailability(),
                              GameState.PAUSED, 0, 1)

    def test_from_fields_clocks(self):
        board = Board()
        with pytest.raises(ConstructionError):
            Board.from_fields(board.piece_grid, board.players, 0, [], CastlingAvailability(),
                              GameState.PAUSED, -1, 1)

    def test_from_fields_restores_game(self):
        board = play(Board(), "e2e4", "e7e5")
        restored = Board.from_fields(
            board.piece_grid, board.players, board.current_player_index, board.history,
            board.castling_availability, board.game_state,
            board.half_move_clock, board.full_move_clock,
        )
        assert restored.export_fen() == board.export_fen()
        assert ucis(restored) == ucis(board)
        restored.undo_last_move()
        assert restored.current_player.color is Color.BLACK

    def test_non_standard_start(self):
        assert Board().non_standard_start_state is None
        board = Board.from_fen(KIWIPETE)
        assert board.non_standard_start_state is not None

    def test_deep_copy_is_independent(self):
        board = play(Board(), "e2e4")
        clone = board.deep_copy()
        play(clone, "e7e5")
        clone.players[0].remaining_ms = 5
        assert len(board.history) == 1
        assert board.players[0].remaining_ms != 5
        assert board.export_fen() != clone.export_fen()

    def test_piece_grid_is_a_copy(self):
        board = Board()
        grid = board.piece_grid
        assert isinstance(grid[4][0], King)
        grid[4][0] = None
        assert isinstance(board.get_piece(4, 0), King)


class TestClocksAndActions:
    def test_resign(self):
        board = Board()
        board.resign(Color.WHITE)
        assert board.game_state is GameState.END_RESIGN
        assert board.winner.color is Color.BLACK
        with pytest.raises(IllegalStateError):
            board.resign(Color.BLACK)

    def test_agree_to_draw(self):
        board = play(Board(), "e2e4")
        board.agree_to_draw()
        assert board.game_state is GameState.END_AGREEMENT
        assert board.winner is None
        assert board.find_all_legal_moves() == ()

    def test_timeout_while_running(self):
        board = play(Board(), "e2e4")
        remaining = board.decrement_clock(Color.BLACK, 10 ** 9)
        assert remaining == 0
        assert board.game_state is GameState.END_TIMEOUT
        assert board.winner.color is Color.WHITE

    def test_no_timeout_while_paused(self):
        board = Board()
        board.decrement_clock(Color.WHITE, 10 ** 9)
        assert board.game_state is GameState.PAUSED

    def test_forfeit(self):
        board = Board()
        board.forfeit_by_timeout(Color.BLACK)
        assert board.winner.color is Color.WHITE

    def test_negative_decrement(self):
        with pytest.raises(ValueError):
            Board().decrement_clock(Color.WHITE, -1)

    def test_restore_time_for_undo(self):
        board = Board()
        start = board.players[0].remaining_ms
        board.decrement_clock(Color.WHITE, 1000)
        play(board, "e2e4")
        board.decrement_clock(Color.BLACK, 2000)
        play(board, "e7e5")
        board.decrement_clock(Color.WHITE, 3000)
        board.restore_time_for_undo()
        board.undo_last_move()
        assert board.players[0].remaining_ms == start - 1000
        assert board.players[1].remaining_ms == start - 2000

    def test_increment_credited_to_mover(self, monkeypatch):
        monkeypatch.setattr(CONFIG.game, "increment_ms", 2000)
        board = Board()
        start = board.players[0].remaining_ms
        play(board, "e2e4")
        assert board.players[0].remaining_ms == start + 2000
        assert board.players[1].remaining_ms == start
        play(board, "e7e5")
        assert board.players[1].remaining_ms == start + 2000

    def test_undo_takes_back_increment(self, monkeypatch):
        monkeypatch.setattr(CONFIG.game, "increment_ms", 2000)
        board = play(Board(), "e2e4")
        board.restore_time_for_undo()
        board.undo_last_move()
        assert board.players[0].remaining_ms == CONFIG.game.initial_time_ms

    def test_no_increment_by_default(self):
        board = Board()
        start = board.players[0].remaining_ms
        play(board, "e2e4")
        assert board.players[0].remaining_ms == start


# ════════════════════════════════════════════════════════════════════════════
#  EVALUATION
# ════════════════════════════════════════════════════════════════════════════

class _Constant:
    def __init__(self, value):
        self.value = value

    def evaluate(self, board):
        return self.value


class TestEvaluation:
    def setup_method(self):
        self.rook_up = "4k3/8/8/8/8/8/8/R3K3 w - - 0 1"

    def test_material_is_side_relative(self):
        ev = MaterialEvaluator()
        assert ev.evaluate(Board()) == 0
        assert ev.evaluate(Board.from_fen(self.rook_up)) == 5
        assert ev.evaluate(Board.from_fen(self.rook_up.replace(" w ", " b "))) == -5

    def test_end_condition(self):
        ev = EndConditionEvaluator()
        assert ev.evaluate(Board()) == 0
        mated = play(Board(), *FOOLS_MATE)
        assert ev.evaluate(mated) == -10000
        drawn = Board()
        drawn.agree_to_draw()
        assert ev.evaluate(drawn) == -1.0

    def test_check(self):
        ev = CheckEvaluator()
        board = Board.from_fen("4k3/8/8/8/8/8/8/r3K3 w - - 0 1")
        assert ev.evaluate(board) == -0.5
        assert ev.evaluate(Board()) == 0

    def test_piece_square_symmetry(self):
        assert PieceSquareTableEvaluator().evaluate(Board()) == 0

    def test_piece_square_prefers_centre(self):
        ev = PieceSquareTableEvaluator()
        centre = Board.from_fen("4k3/8/8/8/3N4/8/8/4K3 w - - 0 1")
        corner = Board.from_fen("4k3/8/8/8/8/8/8/N3K3 w - - 0 1")
        assert ev.evaluate(centre) > ev.evaluate(corner)

    def test_weighted_sum(self):
        pipeline = EvaluationPipeline([
            EvaluationStep(MaterialEvaluator(), 2.0),
            EvaluationStep(_Constant(1.0), 0.5),
        ])
        assert pipeline.evaluate(Board.from_fen(self.rook_up)) == 10.5

    @pytest.mark.parametrize("decisive", [math.inf, -math.inf])
    def test_infinite_term_overrides(self, decisive):
        pipeline = EvaluationPipeline([
            EvaluationStep(_Constant(3.0), 1.0),
            EvaluationStep(_Constant(decisive), 0.001),
            EvaluationStep(_Constant(100.0), 1.0),
        ])
        assert pipeline.evaluate(Board()) == decisive

    def test_default_pipeline_on_mate(self):
        mated = play(Board(), *FOOLS_MATE)
        assert EvaluationPipeline.default().evaluate(mated) < -9000


# ════════════════════════════════════════════════════════════════════════════
#  SEARCH
# ════════════════════════════════════════════════════════════════════════════

class TestSearch:
    @pytest.mark.parametrize("fen,depth", [
        (START_FEN, 2),
        ("4k3/8/8/3p4/4P3/8/8/4K3 w - - 0 1", 3),
        ("4k3/8/2p5/3p4/8/8/8/3QK3 w - - 0 1", 2),
        ("r3k3/8/8/8/8/8/8/4K2R w Kq - 0 1", 2),
    ])
    def test_pruning_equivalence(self, fen, depth):
        exhaustive = ExhaustiveSearch(depth=depth)
        alphabeta = AlphaBetaSearch(depth=depth)
        ordered = DeepeningSearch(EvaluationPipeline.default(), depth=depth, use_quiescence=False)
        exhaustive.search_best_move(Board.from_fen(fen))
        alphabeta.search_best_move(Board.from_fen(fen))
        ordered.search_best_move(Board.from_fen(fen))
        assert alphabeta.last_score == exhaustive.last_score
        assert ordered.last_score == exhaustive.last_score
        assert alphabeta.nodes <= exhaustive.nodes

    @pytest.mark.parametrize("tier", [ExhaustiveSearch, AlphaBetaSearch, DeepeningSearch])
    def test_mate_in_one(self, tier):
        engine = tier(depth=2)
        move = engine.search_best_move(Board.from_fen(BACK_RANK_MATE))
        assert move.uci() == "a1a8"
        assert engine.last_score > 9000

    @pytest.mark.parametrize("fen", [STALEMATE, "rnb1kbnr/pppp1ppp/8/4p3/6Pq/5P2/PPPPP2P/RNBQKBNR w KQkq - 1 3"])
    def test_no_move_returns_none(self, fen):
        for engine in (ExhaustiveSearch(depth=2), AlphaBetaSearch(depth=2), DeepeningSearch(depth=2), RandomSearch()):
            assert engine.search_best_move(Board.from_fen(fen)) is None

    @pytest.mark.parametrize("depth", [0, -1])
    def test_depth_must_be_positive(self, depth):
        with pytest.raises(ConstructionError):
            AlphaBetaSearch(depth=depth)

    def test_search_leaves_board_untouched(self):
        board = play(Board(), "e2e4")
        fen, plies = board.export_fen(), len(board.history)
        DeepeningSearch(depth=2).search_best_move(board)
        assert board.export_fen() == fen
        assert len(board.history) == plies

    def test_stopped_search_returns_none(self):
        stop = threading.Event()
        stop.set()
        engine = AlphaBetaSearch(depth=2)
        assert engine.search_best_move(Board(), stop_event=stop) is None
        assert engine.last_score is None

    def test_root_tie_keeps_first_move(self):
        # every move scores the same with a constant evaluator
        engine = ExhaustiveSearch(EvaluationPipeline([EvaluationStep(_Constant(0.0))]), depth=1)
        board = Board()
        assert engine.search_best_move(board) == board.find_all_legal_moves()[0]

    def test_random_search_is_legal(self):
        board = Board()
        move = RandomSearch(rng=random.Random(7)).search_best_move(board)
        assert board.is_legal_move(move)

    def test_create_engine(self):
        assert isinstance(create_engine("alphabeta", 2), AlphaBetaSearch)
        assert create_engine("exhaustive", 1).max_depth == 1
        assert isinstance(create_engine("random"), RandomSearch)
        with pytest.raises(ValueError):
            create_engine("minimax")

    def test_ai_player(self):
        player = AIPlayer("Bot", Color.WHITE, 1000, AlphaBetaSearch(depth=1))
        assert not player.is_human
        assert player.config_string == "alphabeta, depth 1"
        board = Board([player, Player("Human", Color.BLACK, 1000)])
        assert board.is_legal_move(player.get_next_move(board))


class TestMoveOrdering:
    def test_scores(self):
        white, black = Color.WHITE, Color.BLACK
        take_queen = Move(Pawn(white), sq("e4"), sq("d5"), MoveType.CAPTURE, Queen(black))
        promote = Move(Pawn(white), sq("a7"), sq("a8"), MoveType.PROMOTION, promotion_piece=Queen(white))
        quiet = Move(Knight(white), sq("g1"), sq("f3"), MoveType.NORMAL)
        assert MoveOrdering.score(take_queen) == 9
        assert MoveOrdering.score(promote) == 8
        assert MoveOrdering.score(quiet) == 0

    def test_order_is_stable(self):
        board = Board.from_fen(KIWIPETE)
        moves = board.find_all_legal_moves()
        ordered = MoveOrdering.order(moves)
        assert sorted(map(MoveOrdering.score, ordered), reverse=True) == list(map(MoveOrdering.score, ordered))
        quiet = [m for m in moves if MoveOrdering.score(m) == 0]
        assert [m for m in ordered if MoveOrdering.score(m) == 0] == quiet


class TestQuiescence:
    FEN = "4k3/8/2p5/3p4/8/8/8/3QK3 w - - 0 1"

    def test_horizon_grab_without_quiescence(self):
        move = AlphaBetaSearch(depth=1).search_best_move(Board.from_fen(self.FEN))
        assert move.uci() == "d1d5"

    def test_quiescence_sees_the_recapture(self):
        engine = DeepeningSearch(EvaluationPipeline.default(), depth=1, use_quiescence=True)
        move = engine.search_best_move(Board.from_fen(self.FEN))
        assert move.uci() != "d1d5"

    def test_quiet_position_stands_pat(self):
        engine = DeepeningSearch(EvaluationPipeline.default(), depth=1, use_quiescence=True)
        board = Board.from_fen("4k3/8/8/8/8/8/8/R3K3 b - - 0 1")
        # no captures available: the search value is the static evaluation of the best reply
        reference = ExhaustiveSearch(depth=1)
        engine.search_best_move(board)
        reference.search_best_move(Board.from_fen("4k3/8/8/8/8/8/8/R3K3 b - - 0 1"))
        assert engine.last_score == reference.last_score


# ════════════════════════════════════════════════════════════════════════════
#  CONFIGURATION
# ════════════════════════════════════════════════════════════════════════════


class TestConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = Config.load_from_toml(str(tmp_path / "absent.toml"))
        assert cfg.game.increment_ms == 0
        assert cfg.search.strategy in ENGINES

    def test_load_sections(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            'log_level = "DEBUG"\n'
            "[search]\ndepth = 2\n"
            "[game]\nincrement_ms = 1500\n"
            '[ui]\nengine_name = "Tester"\napi_port = 9000\n'
        )
        cfg = Config.load_from_toml(str(path))
        assert cfg.log_level == "DEBUG"
        assert cfg.search.depth == 2
        assert cfg.game.increment_ms == 1500
        assert cfg.ui.engine_name == "Tester"
        # keys without a matching setting are ignored
        assert not hasattr(cfg.ui, "api_port")
