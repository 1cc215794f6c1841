"""Play against the engine in a terminal. The human plays white."""

import argparse

from engine.core.types import Color
from engine.core.utils import configure_logging
from engine.main import Engine


def main(argv=None):
    parser = argparse.ArgumentParser(description="Play chess against the engine")
    parser.add_argument("--depth", type=int, default=None)
    parser.add_argument("--strategy", default=None)
    parser.add_argument("--fen", default=None)
    args = parser.parse_args(argv)

    configure_logging()
    engine = Engine(depth=args.depth, strategy=args.strategy, fen=args.fen)

    try:
        while not engine.board.is_game_over():
            board = engine.board
            print(board)
            print("----------------------------")

            if board.current_player.color is Color.WHITE:
                user_move = input("Enter your move (e2e4 or Nf3, 'undo', 'pgn', 'quit'): ").strip()
                if user_move == "quit":
                    break
                if user_move == "undo":
                    # take back the engine reply and the human move
                    if not engine.undo():
                        print("Nothing to undo.")
                    engine.undo()
                    continue
                if user_move == "pgn":
                    print(engine.export_pgn())
                    continue
                if not (engine.make_move(user_move) or engine.make_san_move(user_move)):
                    print("Illegal move, try again.")
                    continue
            else:
                move = engine.play_best_move()
                score = engine.search.last_score
                print(f"Engine plays: {engine.board.last_move_algebraic_notation() or move} | "
                      f"Eval: {score if score is None else f'{score:.2f}'}")

        board = engine.board
        print(board)
        print("Game Over")
        print(f"Result: {board.game_state.name}")
    finally:
        engine.close()


if __name__ == "__main__":
    main()
