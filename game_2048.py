import argparse
import logging
import sys
from typing import Dict, List, Optional, Tuple

import pygame

from move_engine import GRID_SIZE, Board, Direction, MoveEngine, MoveResult, Tile
from score_store import SCORE_STATE_FILE, load_best_score, save_best_score


TILE_COLORS = {
    0: (205, 193, 180),
    2: (238, 228, 218),
    4: (237, 224, 200),
    8: (242, 177, 121),
    16: (245, 149, 99),
    32: (246, 124, 95),
    64: (246, 94, 59),
    128: (237, 207, 114),
    256: (237, 204, 97),
    512: (237, 200, 80),
    1024: (237, 197, 63),
    2048: (237, 194, 46),
}
BIG_TILE_COLOR = (60, 58, 50)
BACKGROUND_COLOR = (250, 248, 239)
BOARD_COLOR = (187, 173, 160)
TEXT_COLOR = (119, 110, 101)
LIGHT_TEXT_COLOR = (249, 246, 242)

WINDOW_WIDTH = 520
WINDOW_HEIGHT = 700
BOARD_MARGIN = 28
BOARD_TOP = 190
TILE_GAP = 12
BOARD_SIZE = WINDOW_WIDTH - 2 * BOARD_MARGIN
TILE_SIZE = (BOARD_SIZE - (GRID_SIZE + 1) * TILE_GAP) // GRID_SIZE
SLIDE_DURATION_MS = 120
POP_DURATION_MS = 150
BUTTON_WIDTH = 140
BUTTON_HEIGHT = 54
BUTTON_GAP = 18
HEADER_BUTTONS = [
    ("New Game", "RESTART"),
    ("Quit", "QUIT"),
]
KEY_DIRECTIONS = {
    pygame.K_UP: Direction.UP,
    pygame.K_w: Direction.UP,
    pygame.K_DOWN: Direction.DOWN,
    pygame.K_s: Direction.DOWN,
    pygame.K_LEFT: Direction.LEFT,
    pygame.K_a: Direction.LEFT,
    pygame.K_RIGHT: Direction.RIGHT,
    pygame.K_d: Direction.RIGHT,
}

logger = logging.getLogger(__name__)


class Game2048:
    """One game: the current board, score and terminal flags.

    A move that changes nothing, or any move after the game is lost, returns
    ``None`` and leaves every field untouched. Winning does not stop play;
    whether to keep accepting moves after a win is left to the caller.
    """

    def __init__(self, engine: Optional[MoveEngine] = None, score_file: str = SCORE_STATE_FILE) -> None:
        self.engine = engine if engine is not None else MoveEngine()
        self.score_file = score_file
        self.best_score = load_best_score(score_file)
        self.score = 0
        self.board: Board = ()
        self.game_over = False
        self.won = False
        self.keep_playing = False
        self.reset()

    def reset(self) -> None:
        self.engine.ids.reset()
        self.board = self.engine.initialize_board()
        self.score = 0
        self.game_over = False
        self.won = False
        self.keep_playing = False

    @property
    def awaiting_choice(self) -> bool:
        return self.game_over or (self.won and not self.keep_playing)

    def continue_playing(self) -> None:
        if self.won and not self.game_over:
            self.keep_playing = True

    def move(self, direction: "str | Direction") -> Optional[MoveResult]:
        if self.game_over:
            return None

        result = self.engine.resolve_move(self.board, direction)
        if not result.moved:
            return None

        self.board = self.engine.spawn_tile(result.board)
        self.score += result.score_gained
        self._update_best_score()

        if not self.won and self.engine.has_won(self.board):
            self.won = True
            logger.info("Reached %d with score %d", self.engine.win_value, self.score)
        if self.engine.is_lost(self.board):
            self.game_over = True
            logger.info("No moves left, final score %d", self.score)

        return result

    def _update_best_score(self) -> None:
        if self.score <= self.best_score:
            return
        self.best_score = self.score
        logger.info("New best score %d", self.best_score)
        save_best_score(self.best_score, self.score_file)


class GameApp:
    def __init__(self, game: Game2048) -> None:
        pygame.init()
        pygame.display.set_caption("2048")
        self.screen = pygame.display.set_mode((WINDOW_WIDTH, WINDOW_HEIGHT))
        self.clock = pygame.time.Clock()
        self.font_large = pygame.font.SysFont("arial", 48, bold=True)
        self.font_medium = pygame.font.SysFont("arial", 26, bold=True)
        self.font_small = pygame.font.SysFont("arial", 18)
        self.tile_fonts = [
            (100, pygame.font.SysFont("arial", 36, bold=True)),
            (1000, pygame.font.SysFont("arial", 30, bold=True)),
            (10000, pygame.font.SysFont("arial", 24, bold=True)),
        ]
        self.font_tile_tiny = pygame.font.SysFont("arial", 20, bold=True)
        self.game = game
        # Tiles sliding from their previous cell: (tile, start cell).
        self.slides: List[Tuple[Tile, Tuple[int, int]]] = []
        self.slide_start = 0
        self.pop_start: Optional[int] = None
        self.overlay_buttons: Dict[str, pygame.Rect] = {}
        self.header_buttons: Dict[str, pygame.Rect] = {}
        self.current_time = 0

    def run(self) -> None:
        while True:
            self.clock.tick(60)
            self.current_time = pygame.time.get_ticks()
            self._handle_events()
            self._update_animations()
            self._draw()
            pygame.display.flip()

    def _quit(self) -> None:
        pygame.quit()
        sys.exit()

    def _handle_events(self) -> None:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self._quit()
            if event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                if self.game.awaiting_choice:
                    self._handle_overlay_click(event.pos)
                else:
                    self._handle_header_click(event.pos)
            if event.type == pygame.KEYDOWN:
                if event.key in (pygame.K_ESCAPE, pygame.K_q):
                    self._quit()
                if event.key == pygame.K_r:
                    self._restart_game()
                    continue
                if event.key == pygame.K_c:
                    self.game.continue_playing()
                    continue
                if self.game.awaiting_choice:
                    continue
                direction = KEY_DIRECTIONS.get(event.key)
                if direction is not None:
                    self._play(direction)

    def _play(self, direction: Direction) -> None:
        previous = {tile.id: tile.position for tile in self.game.board}
        result = self.game.move(direction)
        if result is None:
            return
        self.slides = [
            (tile, previous[tile.id])
            for tile in result.board
            if tile.id in previous and previous[tile.id] != tile.position
        ]
        self.slide_start = self.current_time
        self.pop_start = None if self.slides else self.current_time

    def _restart_game(self) -> None:
        self.game.reset()
        self.slides = []
        self.pop_start = self.current_time
        self.overlay_buttons = {}

    def _handle_overlay_click(self, pos: Tuple[int, int]) -> None:
        for action, rect in self.overlay_buttons.items():
            if not rect.collidepoint(pos):
                continue
            if action == "replay":
                self._restart_game()
            elif action == "continue":
                self.game.continue_playing()
            elif action == "exit":
                self._quit()
            return

    def _handle_header_click(self, pos: Tuple[int, int]) -> None:
        for action, rect in self.header_buttons.items():
            if rect.collidepoint(pos):
                if action == "RESTART":
                    self._restart_game()
                elif action == "QUIT":
                    self._quit()
                return

    def _update_animations(self) -> None:
        if self.slides and self.current_time - self.slide_start >= SLIDE_DURATION_MS:
            self.slides = []
            self.pop_start = self.current_time
        if self.pop_start is not None and self.current_time - self.pop_start >= POP_DURATION_MS:
            self.pop_start = None

    def _draw(self) -> None:
        self.screen.fill(BACKGROUND_COLOR)
        self._draw_header()
        self._draw_board()
        if self.game.awaiting_choice:
            self._draw_overlay()
        else:
            self.overlay_buttons = {}

    def _draw_header(self) -> None:
        title_surface = self.font_large.render("2048", True, TEXT_COLOR)
        self.screen.blit(title_surface, (BOARD_MARGIN, 32))

        box_width = 120
        box_height = 64
        best_rect = pygame.Rect(WINDOW_WIDTH - BOARD_MARGIN - box_width, 32, box_width, box_height)
        score_rect = pygame.Rect(best_rect.x - 12 - box_width, 32, box_width, box_height)
        self._draw_score_box(score_rect, "SCORE", self.game.score)
        self._draw_score_box(best_rect, "BEST", self.game.best_score)
        self._draw_header_buttons(best_rect.bottom + 18)

    def _draw_score_box(self, rect: pygame.Rect, label: str, value: int) -> None:
        pygame.draw.rect(self.screen, BOARD_COLOR, rect, border_radius=8)
        label_surface = self.font_small.render(label, True, LIGHT_TEXT_COLOR)
        value_surface = self.font_medium.render(str(value), True, LIGHT_TEXT_COLOR)
        self.screen.blit(label_surface, label_surface.get_rect(midtop=(rect.centerx, rect.top + 6)))
        self.screen.blit(value_surface, value_surface.get_rect(midbottom=(rect.centerx, rect.bottom - 6)))

    def _draw_header_buttons(self, top_y: int) -> None:
        self.header_buttons = {}
        x = BOARD_MARGIN
        for label, action in HEADER_BUTTONS:
            text_surface = self.font_medium.render(label, True, TEXT_COLOR)
            rect = pygame.Rect(x, top_y, text_surface.get_width() + 40, 44)
            pygame.draw.rect(self.screen, (216, 202, 184), rect, border_radius=10)
            self.screen.blit(text_surface, text_surface.get_rect(center=rect.center))
            self.header_buttons[action] = rect
            x = rect.right + 14

    def _draw_board(self) -> None:
        pygame.draw.rect(
            self.screen,
            BOARD_COLOR,
            (BOARD_MARGIN, BOARD_TOP, BOARD_SIZE, BOARD_SIZE),
            border_radius=8,
        )
        for r in range(GRID_SIZE):
            for c in range(GRID_SIZE):
                x, y = self._cell_position(r, c)
                self._draw_tile(0, x, y, TILE_SIZE)

        if self.slides:
            self._draw_slides()
            return

        for tile in self.game.board:
            x, y = self._cell_position(tile.row, tile.col)
            scale = self._pop_scale(tile)
            size = TILE_SIZE * scale
            offset = (TILE_SIZE - size) / 2
            self._draw_tile(tile.value, x + offset, y + offset, size)

    def _draw_slides(self) -> None:
        progress = min(1.0, (self.current_time - self.slide_start) / SLIDE_DURATION_MS)
        sliding = {tile.id for tile, _ in self.slides}
        for tile in self.game.board:
            # Merge results and spawns appear once the slide is over.
            if tile.id in sliding or tile.is_new or tile.is_merged:
                continue
            x, y = self._cell_position(tile.row, tile.col)
            self._draw_tile(tile.value, x, y, TILE_SIZE)
        for tile, start in self.slides:
            start_x, start_y = self._cell_position(*start)
            end_x, end_y = self._cell_position(tile.row, tile.col)
            x = start_x + (end_x - start_x) * progress
            y = start_y + (end_y - start_y) * progress
            self._draw_tile(tile.value, x, y, TILE_SIZE)

    def _pop_scale(self, tile: Tile) -> float:
        if self.pop_start is None:
            return 1.0
        progress = min(1.0, (self.current_time - self.pop_start) / POP_DURATION_MS)
        if tile.is_new:
            return 0.5 + 0.5 * progress
        if tile.is_merged:
            return 1.0 + 0.15 * (1.0 - abs(2.0 * progress - 1.0))
        return 1.0

    def _draw_tile(self, value: int, x: float, y: float, size: float) -> None:
        color = TILE_COLORS.get(value, BIG_TILE_COLOR)
        rect = pygame.Rect(x, y, size, size)
        pygame.draw.rect(self.screen, color, rect, border_radius=6)
        if value:
            text_color = LIGHT_TEXT_COLOR if value >= 8 else TEXT_COLOR
            text = self._tile_font(value).render(str(value), True, text_color)
            self.screen.blit(text, text.get_rect(center=rect.center))

    def _tile_font(self, value: int) -> pygame.font.Font:
        for limit, font in self.tile_fonts:
            if value < limit:
                return font
        return self.font_tile_tiny

    def _cell_position(self, row: int, col: int) -> Tuple[float, float]:
        x = BOARD_MARGIN + TILE_GAP + col * (TILE_SIZE + TILE_GAP)
        y = BOARD_TOP + TILE_GAP + row * (TILE_SIZE + TILE_GAP)
        return float(x), float(y)

    def _blit_centered(
        self, font: pygame.font.Font, text: str, center: Tuple[float, float], color: Tuple[int, int, int]
    ) -> pygame.Rect:
        surface = font.render(text, True, color)
        rect = surface.get_rect(center=center)
        self.screen.blit(surface, rect)
        return rect

    def _draw_overlay(self) -> None:
        veil = pygame.Surface((WINDOW_WIDTH, WINDOW_HEIGHT), pygame.SRCALPHA)
        veil.fill((250, 248, 239, 190))
        self.screen.blit(veil, (0, 0))

        if self.game.game_over:
            title = "Victory & no moves!" if self.game.won else "Game Over!"
        else:
            title = "You Win!"

        middle = WINDOW_WIDTH / 2
        title_rect = self._blit_centered(self.font_large, title, (middle, WINDOW_HEIGHT / 2 - 80), TEXT_COLOR)
        score_rect = self._blit_centered(
            self.font_medium, f"Final Score: {self.game.score}", (middle, title_rect.bottom + 30), TEXT_COLOR
        )
        self._draw_overlay_buttons(score_rect.bottom + 30)

    def _draw_overlay_buttons(self, top_y: float) -> None:
        choices = [("Replay", "replay")]
        if not self.game.game_over:
            choices.append(("Continue", "continue"))
        choices.append(("Exit", "exit"))

        row_width = BUTTON_WIDTH * len(choices) + BUTTON_GAP * (len(choices) - 1)
        left = (WINDOW_WIDTH - row_width) / 2
        self.overlay_buttons = {}
        for position, (label, action) in enumerate(choices):
            button = pygame.Rect(left + position * (BUTTON_WIDTH + BUTTON_GAP), top_y, BUTTON_WIDTH, BUTTON_HEIGHT)
            primary = action == "replay"
            pygame.draw.rect(self.screen, (146, 123, 99) if primary else BOARD_COLOR, button, border_radius=10)
            self._blit_centered(self.font_medium, label, button.center, LIGHT_TEXT_COLOR if primary else TEXT_COLOR)
            self.overlay_buttons[action] = button


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play 2048 in a pygame window.")
    parser.add_argument("--seed", type=int, default=None, help="seed for tile placement")
    parser.add_argument("--score-file", default=SCORE_STATE_FILE, help="where the best score is kept")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="logging verbosity",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    game = Game2048(MoveEngine(seed=args.seed), score_file=args.score_file)
    app = GameApp(game)
    app.run()


if __name__ == "__main__":
    main()
