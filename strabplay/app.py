"""Pygame UI shell for StrabPlay.

Screens:
- Main menu with the amblyopia levels and the perceptual module
- Level runs (one screen, dispatching on the run's payload type)
- Performance (best stars per level) and Time Report (7-day chart)
- Data sync (simulated delayed upload)

Deterministic timing/scoring/RNG/state lives in strabplay/* (core modules);
this file only draws snapshots and forwards input.
"""

from __future__ import annotations

import math
import random
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Protocol

import pygame
from loguru import logger

from .accounts import DEMO_PATIENT_ID, Role, UserProfile, find_user, seed_default_accounts
from .analytics import AnalyticsReport, last_n_days
from .clock import RealClock
from .config import AppConfig
from .countdown import CountdownPayload, CountdownRun, DiscriminationKind
from .discrete import ChoiceTrialPayload, ChoiceTrialRun, TargetHuntPayload, TargetHuntRun
from .grid_game import Direction, GridGamePayload, GridGameRun
from .level_run import LevelRun
from .levels import LEVELS, LevelInfo, build_level, levels_in
from .logs import configure_logging
from .recorder import Category, CompletionRecorder
from .storage import SqliteStore
from .sync import SyncSimulator
from .therapy_core import RunSnapshot, RunState, SeededRng, clamp01
from .timers import TaskScheduler
from .vigilance import VigilancePayload, VigilanceRun


class Screen(Protocol):
    def handle_event(self, event: pygame.event.Event) -> None: ...
    def render(self, surface: pygame.Surface) -> None: ...


@dataclass(frozen=True, slots=True)
class MenuItem:
    label: str
    action: Callable[[], None]


WINDOW_SIZE = (960, 540)
TARGET_FPS = 60

BG = (3, 9, 78)
PANEL_BG = (8, 18, 104)
HEADER_BG = (18, 30, 118)
BORDER = (226, 236, 255)
TEXT_MAIN = (238, 245, 255)
TEXT_MUTED = (186, 200, 224)
STIMULUS_BG = (128, 128, 128)
ACCENT = (64, 200, 220)


class App:
    def __init__(self, surface: pygame.Surface, font: pygame.font.Font) -> None:
        self._surface = surface
        self._font = font
        self._screens: list[Screen] = []
        self._running = True

    @property
    def running(self) -> bool:
        return self._running

    @property
    def font(self) -> pygame.font.Font:
        return self._font

    @property
    def top(self) -> Screen | None:
        return self._screens[-1] if self._screens else None

    def push(self, screen: Screen) -> None:
        self._screens.append(screen)

    def pop(self) -> None:
        # Never pop the last/root screen; root handles its own quit/back behavior.
        if len(self._screens) > 1:
            self._screens.pop()

    def quit(self) -> None:
        self._running = False

    def shutdown(self) -> None:
        """Give every open screen a chance to cancel its timers."""

        for screen in reversed(self._screens):
            teardown = getattr(screen, "teardown", None)
            if callable(teardown):
                teardown()
        self._screens.clear()

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.QUIT:
            self.quit()
            return
        if not self._screens:
            return
        self._screens[-1].handle_event(event)

    def render(self) -> None:
        if not self._screens:
            return
        self._screens[-1].render(self._surface)


def _fit_label(font: pygame.font.Font, label: str, max_width: int) -> str:
    if max_width <= 0:
        return ""
    if font.size(label)[0] <= max_width:
        return label
    clipped = label
    while clipped and font.size(f"{clipped}...")[0] > max_width:
        clipped = clipped[:-1]
    return f"{clipped}..." if clipped else "..."


def _draw_frame(surface: pygame.Surface, title: str, tag: str, fonts: tuple[pygame.font.Font, pygame.font.Font]) -> pygame.Rect:
    """Paint the shared window chrome and return the content rect."""

    title_font, hint_font = fonts
    w, h = surface.get_size()
    surface.fill(BG)

    margin = max(10, min(26, w // 34))
    frame = pygame.Rect(margin, margin, max(260, w - margin * 2), max(220, h - margin * 2))
    pygame.draw.rect(surface, PANEL_BG, frame)
    pygame.draw.rect(surface, BORDER, frame, 2)

    header_h = max(34, min(52, h // 8))
    header = pygame.Rect(frame.x + 2, frame.y + 2, frame.w - 4, header_h)
    pygame.draw.rect(surface, HEADER_BG, header)
    pygame.draw.line(surface, BORDER, (header.x, header.bottom), (header.right, header.bottom), 1)

    tag_surf = hint_font.render(tag, True, TEXT_MUTED)
    surface.blit(tag_surf, (header.x + 12, header.y + (header.h - tag_surf.get_height()) // 2))
    title_surf = title_font.render(title, True, TEXT_MAIN)
    surface.blit(title_surf, title_surf.get_rect(center=(frame.centerx, header.centery)))

    return pygame.Rect(frame.x + 12, header.bottom + 10, frame.w - 24, frame.bottom - header.bottom - 20)


def _draw_footer(surface: pygame.Surface, content: pygame.Rect, font: pygame.font.Font, text: str) -> None:
    foot = font.render(text, True, TEXT_MUTED)
    surface.blit(foot, foot.get_rect(midbottom=(content.centerx, content.bottom)))


def _draw_patterned_disc(
    surface: pygame.Surface,
    center: tuple[int, int],
    radius: float,
    contrast: float,
    *,
    stripe: int = 6,
) -> None:
    """Vertical grating clipped to a disc; ``contrast`` scales its amplitude."""

    cx, cy = center
    r = max(2, int(radius))
    amp = int(round(127 * clamp01(contrast)))
    light = (128 + amp, 128 + amp, 128 + amp)
    dark = (128 - amp, 128 - amp, 128 - amp)
    for dx in range(-r, r + 1):
        half = int(math.sqrt(max(0, r * r - dx * dx)))
        color = light if ((dx + r) // stripe) % 2 == 0 else dark
        pygame.draw.line(surface, color, (cx + dx, cy - half), (cx + dx, cy + half))


def _contrast_text_color(contrast: float) -> tuple[int, int, int]:
    v = int(round(128 - 127 * clamp01(contrast)))
    return (v, v, v)


def _stars_label(stars: int) -> str:
    return "*" * stars + "-" * (3 - stars)


class MenuScreen:
    def __init__(
        self,
        app: App,
        title: str,
        items: list[MenuItem],
        *,
        is_root: bool = False,
        status: Callable[[], str] | None = None,
    ) -> None:
        self._app = app
        self._title = title
        self._items = items
        self._selected = 0
        self._is_root = is_root
        self._status = status
        self._title_font = pygame.font.Font(None, 42)
        self._item_font = pygame.font.Font(None, 32)
        self._hint_font = pygame.font.Font(None, 22)

    @property
    def selected(self) -> int:
        return self._selected

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN:
            self._handle_key(event.key)

    def _handle_key(self, key: int) -> None:
        if key in (pygame.K_UP, pygame.K_w):
            self._move(-1)
        elif key in (pygame.K_DOWN, pygame.K_s):
            self._move(1)
        elif key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._activate()
        elif key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._back()

    def _move(self, delta: int) -> None:
        if not self._items:
            return
        self._selected = (self._selected + delta) % len(self._items)

    def _activate(self) -> None:
        if not self._items:
            return
        self._items[self._selected].action()

    def _back(self) -> None:
        if self._is_root:
            self._app.quit()
        else:
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, self._title, "MENU", (self._title_font, self._hint_font))
        h = surface.get_height()

        list_rect = pygame.Rect(content.x, content.y + 6, content.w, max(120, content.h - 60))
        pygame.draw.rect(surface, (6, 13, 92), list_rect)
        pygame.draw.rect(surface, (78, 102, 170), list_rect, 1)

        item_count = max(1, len(self._items))
        gap = max(4, min(10, list_rect.h // max(10, item_count * 3)))
        row_h = max(26, min(44, (list_rect.h - gap * (item_count + 1)) // item_count))
        total_h = row_h * item_count + gap * (item_count - 1)
        y = list_rect.y + max(8, (list_rect.h - total_h) // 2)

        for idx, item in enumerate(self._items):
            row = pygame.Rect(list_rect.x + 12, y, list_rect.w - 24, row_h)
            selected = idx == self._selected
            if selected:
                pygame.draw.rect(surface, (244, 248, 255), row)
                pygame.draw.rect(surface, (120, 142, 196), row, 2)
            else:
                pygame.draw.rect(surface, (9, 20, 106), row)
                pygame.draw.rect(surface, (62, 84, 152), row, 1)
            color = (14, 26, 74) if selected else TEXT_MAIN
            label = _fit_label(self._item_font, item.label, row.w - 20)
            text = self._item_font.render(label, True, color)
            surface.blit(text, (row.x + 10, row.y + (row.h - text.get_height()) // 2))
            y += row_h + gap

        if self._status is not None:
            status = self._hint_font.render(self._status(), True, ACCENT)
            surface.blit(status, (content.x, min(h - 60, list_rect.bottom + 8)))

        _draw_footer(surface, content, self._hint_font, "Enter/Space: Select  |  Esc/Backspace: Back")


class LevelRunScreen:
    """Hosts one LevelRun: pumps its timers each frame and forwards input."""

    def __init__(self, app: App, *, run_factory: Callable[[], LevelRun]) -> None:
        self._app = app
        self._run = run_factory()
        self._hitboxes: list[tuple[pygame.Rect, int]] = []
        self._hitbox_tag: int | None = None
        self._quiz_input = ""

        self._title_font = pygame.font.Font(None, 42)
        self._small_font = pygame.font.Font(None, 26)
        self._tiny_font = pygame.font.Font(None, 20)
        self._label_fonts: dict[int, pygame.font.Font] = {}

    @property
    def run(self) -> LevelRun:
        return self._run

    def teardown(self) -> None:
        self._run.stop()

    def _close(self) -> None:
        self.teardown()
        self._app.pop()

    def handle_event(self, event: pygame.event.Event) -> None:
        snap = self._run.snapshot()
        p = snap.payload

        if event.type == pygame.KEYDOWN and event.key == pygame.K_F12:
            self._close()
            return

        if snap.state in (RunState.FINISHED, RunState.ABANDONED):
            if event.type != pygame.KEYDOWN:
                return
            if event.key == pygame.K_r and isinstance(self._run, GridGameRun):
                self._run.restart()
                return
            if event.key in (
                pygame.K_RETURN,
                pygame.K_KP_ENTER,
                pygame.K_SPACE,
                pygame.K_ESCAPE,
                pygame.K_BACKSPACE,
            ):
                self._close()
            return

        if isinstance(self._run, GridGameRun):
            self._handle_grid_game(event, self._run)
            return

        if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
            self._close()
            return

        if isinstance(p, ChoiceTrialPayload) and isinstance(self._run, ChoiceTrialRun):
            choice = self._choice_from_event(event, p.choice_count)
            if choice is not None:
                self._run.respond(choice, trial_index=p.spec.index)
        elif isinstance(p, TargetHuntPayload) and isinstance(self._run, TargetHuntRun):
            cell = self._hit(event)
            if cell is not None:
                self._run.respond(cell, round_index=self._hitbox_tag)
        elif isinstance(p, CountdownPayload) and isinstance(self._run, CountdownRun):
            self._handle_countdown(event, self._run, p)
        elif isinstance(p, VigilancePayload) and isinstance(self._run, VigilanceRun):
            self._handle_vigilance(event, self._run, p)

    def _handle_grid_game(self, event: pygame.event.Event, run: GridGameRun) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if run.state is RunState.PAUSED:
            if event.key == pygame.K_y:
                self._close()
            elif event.key in (pygame.K_n, pygame.K_ESCAPE, pygame.K_p, pygame.K_SPACE):
                run.resume()
            return
        if event.key in (pygame.K_ESCAPE, pygame.K_p, pygame.K_SPACE):
            run.pause()
            return
        direction = {
            pygame.K_UP: Direction.UP,
            pygame.K_w: Direction.UP,
            pygame.K_DOWN: Direction.DOWN,
            pygame.K_s: Direction.DOWN,
            pygame.K_LEFT: Direction.LEFT,
            pygame.K_a: Direction.LEFT,
            pygame.K_RIGHT: Direction.RIGHT,
            pygame.K_d: Direction.RIGHT,
        }.get(event.key)
        if direction is not None:
            run.set_direction(direction)

    def _handle_countdown(self, event: pygame.event.Event, run: CountdownRun, p: CountdownPayload) -> None:
        if event.type == pygame.KEYDOWN and event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            run.submit(item_index=p.item_index)
            return
        option = self._choice_from_event(event, len(p.item.options))
        if option is None:
            return
        if option == p.selected and event.type == pygame.MOUSEBUTTONDOWN:
            run.submit(item_index=p.item_index)
        else:
            run.select(option, item_index=p.item_index)

    def _handle_vigilance(self, event: pygame.event.Event, run: VigilanceRun, p: VigilancePayload) -> None:
        if p.quiz_open:
            if event.type != pygame.KEYDOWN:
                return
            if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
                if self._quiz_input:
                    run.answer_quiz(int(self._quiz_input))
                    self._quiz_input = ""
            elif event.key == pygame.K_BACKSPACE:
                self._quiz_input = self._quiz_input[:-1]
            else:
                typed = getattr(event, "unicode", "")
                if typed.isdigit() and len(self._quiz_input) < 3:
                    self._quiz_input += typed
            return
        patch_id = self._hit(event)
        if patch_id is not None:
            run.click_patch(patch_id)

    def _hit(self, event: pygame.event.Event) -> int | None:
        if event.type != pygame.MOUSEBUTTONDOWN or getattr(event, "button", 0) != 1:
            return None
        pos = getattr(event, "pos", None)
        if pos is None:
            return None
        for rect, value in self._hitboxes:
            if rect.collidepoint(pos):
                return value
        return None

    def _choice_from_event(self, event: pygame.event.Event, count: int) -> int | None:
        if event.type == pygame.KEYDOWN:
            if count == 2 and event.key == pygame.K_LEFT:
                return 0
            if count == 2 and event.key == pygame.K_RIGHT:
                return 1
            mapping = {
                pygame.K_1: 0,
                pygame.K_2: 1,
                pygame.K_3: 2,
                pygame.K_4: 3,
                pygame.K_KP1: 0,
                pygame.K_KP2: 1,
                pygame.K_KP3: 2,
                pygame.K_KP4: 3,
            }
            choice = mapping.get(event.key)
            return choice if choice is not None and choice < count else None
        return self._hit(event)

    def _label_font(self, size: float) -> pygame.font.Font:
        px = max(8, int(round(size)))
        font = self._label_fonts.get(px)
        if font is None:
            font = pygame.font.Font(None, px)
            self._label_fonts[px] = font
        return font

    def render(self, surface: pygame.Surface) -> None:
        self._run.update()
        snap = self._run.snapshot()
        p = snap.payload

        content = _draw_frame(surface, snap.title, "LEVEL", (self._title_font, self._tiny_font))
        self._hitboxes = []
        self._hitbox_tag = None

        stats = f"Correct: {snap.correct_count}   Incorrect: {snap.incorrect_count}"
        if snap.time_remaining_s is not None:
            stats += f"   Time: {int(snap.time_remaining_s):02d}s"
        surface.blit(self._small_font.render(stats, True, TEXT_MUTED), (content.x, content.y))
        stage = pygame.Rect(content.x, content.y + 30, content.w, content.h - 60)

        if isinstance(p, ChoiceTrialPayload):
            self._render_choice(surface, stage, p)
            hint = "Click the patterned stimulus (or keys 1-4)  |  Esc: Quit"
        elif isinstance(p, TargetHuntPayload):
            self._render_hunt(surface, stage, p)
            hint = "Click the patterned symbol  |  Esc: Quit"
        elif isinstance(p, GridGamePayload):
            self._render_grid_game(surface, stage, p, snap)
            hint = "Arrows/WASD: Steer  |  P: Pause  |  Esc: Exit" if snap.state is not RunState.FINISHED else "R: Play again  |  Enter: Back"
        elif isinstance(p, CountdownPayload):
            self._render_countdown(surface, stage, p, snap)
            hint = "1-3 or click: Select  |  Enter: Submit  |  Esc: Quit"
        elif isinstance(p, VigilancePayload):
            self._render_vigilance(surface, stage, p, snap)
            hint = "Type the count, Enter to answer" if p.quiz_open else "Click the large patch  |  Esc: Quit"
        else:
            self._render_prompt(surface, stage, snap)
            hint = "Enter: Back to menu"

        _draw_footer(surface, content, self._tiny_font, hint)

    def _render_prompt(self, surface: pygame.Surface, stage: pygame.Rect, snap: RunSnapshot) -> None:
        y = stage.y + 20
        for line in str(snap.prompt).split("\n")[:10]:
            if line:
                txt = self._small_font.render(line, True, TEXT_MAIN)
                surface.blit(txt, (stage.x + 20, y))
            y += 28
        if snap.saved:
            saved = self._tiny_font.render("Progress saved.", True, ACCENT)
            surface.blit(saved, (stage.x + 20, y + 10))

    def _slot_centers(self, stage: pygame.Rect, count: int, layout: tuple[str, ...]) -> list[tuple[int, int]]:
        if layout:
            qx, qy = stage.w // 4, stage.h // 4
            slots = {
                "top-left": (stage.x + qx, stage.y + qy),
                "top-right": (stage.right - qx, stage.y + qy),
                "bottom-left": (stage.x + qx, stage.bottom - qy),
                "bottom-right": (stage.right - qx, stage.bottom - qy),
            }
            return [slots.get(name, stage.center) for name in layout]
        step = stage.w // (count + 1)
        return [(stage.x + step * (i + 1), stage.centery) for i in range(count)]

    def _render_choice(self, surface: pygame.Surface, stage: pygame.Rect, p: ChoiceTrialPayload) -> None:
        pygame.draw.rect(surface, STIMULUS_BG, stage)
        centers = self._slot_centers(stage, p.choice_count, p.layout)
        radius = max(8.0, min(p.spec.size * 0.6, stage.h / 4))
        font = self._label_font(p.spec.size)
        for idx, center in enumerate(centers):
            if idx == p.correct_choice:
                _draw_patterned_disc(surface, center, radius, p.spec.contrast)
            label = font.render(p.label, True, _contrast_text_color(p.spec.contrast))
            surface.blit(label, label.get_rect(center=center))
            hit = pygame.Rect(0, 0, int(radius * 2), int(radius * 2))
            hit.center = center
            self._hitboxes.append((hit, idx))
        self._hitbox_tag = p.spec.index

        progress = self._tiny_font.render(
            f"Trial {p.spec.index + 1}/{p.total_trials}   Stars so far: {_stars_label(p.provisional_stars)}",
            True,
            TEXT_MAIN,
        )
        surface.blit(progress, (stage.x + 8, stage.y + 6))

    def _render_hunt(self, surface: pygame.Surface, stage: pygame.Rect, p: TargetHuntPayload) -> None:
        pygame.draw.rect(surface, STIMULUS_BG, stage)
        cols = max(1, int(math.ceil(math.sqrt(p.cell_count))))
        rows = max(1, int(math.ceil(p.cell_count / cols)))
        cell = max(6, min(stage.w // cols, stage.h // rows))
        origin_x = stage.centerx - cell * cols // 2
        origin_y = stage.centery - cell * rows // 2
        font = self._label_font(min(p.spec.size, cell))
        color = _contrast_text_color(p.spec.contrast)
        label = font.render(p.symbol, True, color)
        for idx in range(p.cell_count):
            rect = pygame.Rect(origin_x + (idx % cols) * cell, origin_y + (idx // cols) * cell, cell, cell)
            if idx == p.target_cell:
                _draw_patterned_disc(surface, rect.center, min(p.spec.size, cell) / 2 - 1, p.spec.contrast, stripe=3)
            surface.blit(label, label.get_rect(center=rect.center))
            self._hitboxes.append((rect, idx))
        if isinstance(self._run, TargetHuntRun):
            self._hitbox_tag = self._run.round_index

    def _render_grid_game(
        self,
        surface: pygame.Surface,
        stage: pygame.Rect,
        p: GridGamePayload,
        snap: RunSnapshot,
    ) -> None:
        cell = max(4, min(stage.w, stage.h) // p.grid_size)
        board = pygame.Rect(0, 0, cell * p.grid_size, cell * p.grid_size)
        board.center = stage.center
        pygame.draw.rect(surface, STIMULUS_BG, board)
        pygame.draw.rect(surface, BORDER, board, 1)

        for i, (x, y) in enumerate(p.snake):
            rect = pygame.Rect(board.x + x * cell, board.y + y * cell, cell - 1, cell - 1)
            pygame.draw.rect(surface, (20, 90, 40) if i == 0 else (40, 140, 70), rect)
        if p.food is not None:
            fx, fy = p.food
            center = (board.x + fx * cell + cell // 2, board.y + fy * cell + cell // 2)
            _draw_patterned_disc(surface, center, p.food_size * cell / 2, p.food_contrast, stripe=2)

        side = f"Score: {p.score}   Best: {p.best_score}   Tick: {p.period_ms} ms"
        surface.blit(self._tiny_font.render(side, True, TEXT_MAIN), (stage.x, stage.y))
        if snap.prompt:
            y = board.centery - 40
            for line in snap.prompt.split("\n"):
                if line:
                    txt = self._small_font.render(line, True, TEXT_MAIN)
                    surface.blit(txt, txt.get_rect(center=(board.centerx, y)))
                y += 26

    def _render_countdown(
        self,
        surface: pygame.Surface,
        stage: pygame.Rect,
        p: CountdownPayload,
        snap: RunSnapshot,
    ) -> None:
        pygame.draw.rect(surface, STIMULUS_BG, stage)
        head = self._small_font.render(
            f"Item {p.item_index + 1}/{p.item_count}   {snap.prompt}   {p.remaining_s}s",
            True,
            (20, 20, 30),
        )
        surface.blit(head, (stage.x + 8, stage.y + 6))

        centers = self._slot_centers(stage, len(p.item.options), ())
        for idx, (center, value) in enumerate(zip(centers, p.item.options)):
            if p.item.kind is DiscriminationKind.SIZE:
                radius = value / 2
                _draw_patterned_disc(surface, center, radius, 0.8)
            else:
                radius = 40.0
                _draw_patterned_disc(surface, center, radius, value)
            hit = pygame.Rect(0, 0, int(radius * 2) + 8, int(radius * 2) + 8)
            hit.center = center
            if p.selected == idx:
                pygame.draw.rect(surface, ACCENT, hit, 3)
            key = self._tiny_font.render(str(idx + 1), True, (20, 20, 30))
            surface.blit(key, key.get_rect(midtop=(center[0], hit.bottom + 4)))
            self._hitboxes.append((hit, idx))
        self._hitbox_tag = p.item_index

    def _render_vigilance(
        self,
        surface: pygame.Surface,
        stage: pygame.Rect,
        p: VigilancePayload,
        snap: RunSnapshot,
    ) -> None:
        pygame.draw.rect(surface, STIMULUS_BG, stage)
        trace_len = p.trace_length

        def trace_point(anchor: int) -> tuple[int, int]:
            x = stage.x + 20 + int((stage.w - 140) * anchor / max(1, trace_len - 1))
            y = stage.centery + int(math.sin(anchor / 9.0) * stage.h * 0.12)
            return (x, y)

        points = [trace_point(a) for a in range(0, trace_len, 4)]
        if len(points) >= 2:
            pygame.draw.lines(surface, _contrast_text_color(p.contrast), False, points, 2)

        for patch in p.patches:
            center = trace_point(patch.anchor)
            _draw_patterned_disc(surface, center, patch.size / 2, p.contrast, stripe=4)
            hit = pygame.Rect(0, 0, int(patch.size), int(patch.size))
            hit.center = center
            self._hitboxes.append((hit, patch.patch_id))

        if p.side_patch is not None:
            sx = stage.right - 60
            sy = stage.y + 60 if p.side_patch.position == "top" else stage.bottom - 60
            if p.side_patch.is_gabor:
                _draw_patterned_disc(surface, (sx, sy), p.side_patch.size / 2, 0.9, stripe=4)
            else:
                pygame.draw.circle(surface, (150, 150, 150), (sx, sy), int(p.side_patch.size / 2))

        lives = f"Score: {p.score}   Click lives: {p.click_lives}   Quiz lives: {p.quiz_lives}"
        surface.blit(self._tiny_font.render(lives, True, (20, 20, 30)), (stage.x + 8, stage.y + 6))

        if p.quiz_open:
            box = pygame.Rect(0, 0, min(stage.w - 40, 560), 120)
            box.center = stage.center
            pygame.draw.rect(surface, PANEL_BG, box)
            pygame.draw.rect(surface, BORDER, box, 2)
            q = self._small_font.render(snap.prompt, True, TEXT_MAIN)
            surface.blit(q, q.get_rect(midtop=(box.centerx, box.y + 16)))
            caret = "|" if (pygame.time.get_ticks() // 500) % 2 == 0 else ""
            entry = self._title_font.render(self._quiz_input + caret or " ", True, ACCENT)
            surface.blit(entry, entry.get_rect(midtop=(box.centerx, box.y + 56)))


class PerformanceScreen:
    def __init__(self, app: App, *, recorder: CompletionRecorder, user: UserProfile) -> None:
        self._app = app
        self._user = user
        self._best = recorder.best_stars(user.user_id)
        self._title_font = pygame.font.Font(None, 42)
        self._row_font = pygame.font.Font(None, 30)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type == pygame.KEYDOWN and event.key in (
            pygame.K_ESCAPE,
            pygame.K_BACKSPACE,
            pygame.K_RETURN,
        ):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, f"Performance: {self._user.name}", "STATS", (self._title_font, self._hint_font))
        y = content.y + 10
        for info in LEVELS:
            stars = self._best.get(info.level_id, 0)
            label = self._row_font.render(info.title, True, TEXT_MAIN)
            surface.blit(label, (content.x + 10, y))
            mark = "Not completed" if stars <= 0 else _stars_label(stars)
            value = self._row_font.render(mark, True, ACCENT if stars > 0 else TEXT_MUTED)
            surface.blit(value, (content.right - 10 - value.get_width(), y))
            y += 36
        _draw_footer(surface, content, self._hint_font, "Esc: Back")


class TimeReportScreen:
    """Seven-day bar chart of therapy minutes plus per-day detail."""

    def __init__(
        self,
        app: App,
        *,
        recorder: CompletionRecorder,
        user: UserProfile,
        today: date | None = None,
    ) -> None:
        self._app = app
        self._user = user
        self._history = recorder.load(user.user_id).history
        self._end = today or date.today()
        self._report = self._build()
        self._title_font = pygame.font.Font(None, 42)
        self._small_font = pygame.font.Font(None, 24)
        self._tiny_font = pygame.font.Font(None, 18)

    @property
    def report(self) -> AnalyticsReport:
        return self._report

    @property
    def end_date(self) -> date:
        return self._end

    def _build(self) -> AnalyticsReport:
        return last_n_days(self._history, self._end, 7)

    def shift(self, days: int) -> None:
        self._end += timedelta(days=days)
        self._report = self._build()

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key == pygame.K_LEFT:
            self.shift(-7)
        elif event.key == pygame.K_RIGHT:
            self.shift(7)
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE, pygame.K_RETURN):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, f"Time Report: {self._user.name}", "TIME", (self._title_font, self._tiny_font))
        report = self._report

        summary = (
            f"Average: {report.range_average_minutes:.1f} min/day   "
            f"Days tracked: {report.days_tracked}   Total: {report.total_minutes:.1f} min"
        )
        surface.blit(self._small_font.render(summary, True, TEXT_MAIN), (content.x, content.y))

        chart = pygame.Rect(content.x, content.y + 34, content.w // 2 - 10, content.h - 80)
        pygame.draw.rect(surface, (6, 13, 92), chart)
        pygame.draw.rect(surface, (78, 102, 170), chart, 1)
        peak = max([b.total_minutes for b in report.buckets] + [1.0])
        n = max(1, len(report.buckets))
        slot = chart.w // n
        for i, bucket in enumerate(report.buckets):
            bar_h = int((chart.h - 40) * bucket.total_minutes / peak)
            bar = pygame.Rect(chart.x + i * slot + slot // 4, chart.bottom - 24 - bar_h, slot // 2, bar_h)
            pygame.draw.rect(surface, ACCENT, bar)
            label = self._tiny_font.render(bucket.date_label[5:], True, TEXT_MUTED)
            surface.blit(label, label.get_rect(midtop=(chart.x + i * slot + slot // 2, chart.bottom - 20)))

        detail_x = chart.right + 20
        y = chart.y
        if not report.grouped_by_day:
            surface.blit(self._small_font.render("No sessions in this week.", True, TEXT_MUTED), (detail_x, y))
        for day in report.grouped_by_day:
            if y > chart.bottom - 24:
                break
            row = (
                f"{day.date_label}  {day.session_count} session(s)  "
                f"{day.total_minutes:.1f} min  avg score {day.mean_score:.1f}"
            )
            surface.blit(self._tiny_font.render(row, True, TEXT_MAIN), (detail_x, y))
            y += 22

        _draw_footer(surface, content, self._tiny_font, "Left/Right: Previous/next week  |  Esc: Back")


class SyncScreen:
    def __init__(self, app: App, *, sync: SyncSimulator) -> None:
        self._app = app
        self._sync = sync
        self._title_font = pygame.font.Font(None, 42)
        self._row_font = pygame.font.Font(None, 30)
        self._hint_font = pygame.font.Font(None, 22)

    def handle_event(self, event: pygame.event.Event) -> None:
        if event.type != pygame.KEYDOWN:
            return
        if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER, pygame.K_SPACE):
            self._sync.start()
        elif event.key in (pygame.K_ESCAPE, pygame.K_BACKSPACE):
            self._app.pop()

    def render(self, surface: pygame.Surface) -> None:
        content = _draw_frame(surface, "Data Sync", "SYNC", (self._title_font, self._hint_font))
        if self._sync.syncing:
            status = "Syncing..."
        elif self._sync.completed:
            status = f"Up to date ({self._sync.completed} sync(s) this session)."
        else:
            status = "Press Enter to sync all patients."
        text = self._row_font.render(status, True, TEXT_MAIN)
        surface.blit(text, text.get_rect(center=content.center))
        _draw_footer(surface, content, self._hint_font, "Enter: Sync  |  Esc: Back")


@dataclass(slots=True)
class _ActivePatient:
    user: UserProfile


def _new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def run(
    *,
    max_frames: int | None = None,
    event_injector: Callable[[int], None] | None = None,
    config: AppConfig | None = None,
) -> int:
    cfg = config or AppConfig.from_env()
    configure_logging(cfg.log_level)

    store = SqliteStore(cfg.data_path)
    users = seed_default_accounts(store)
    patients = [u for u in users if u.role is Role.PATIENT]
    active = _ActivePatient(find_user(users, DEMO_PATIENT_ID) or patients[0])
    logger.info("Opened {} ({} patients)", cfg.data_path, len(patients))

    real_clock = RealClock()
    recorder = CompletionRecorder(store, real_clock, history_limit=cfg.history_limit)
    background = TaskScheduler(real_clock)
    sync = SyncSimulator(background)

    pygame.init()
    pygame.display.set_caption("StrabPlay")
    surface = pygame.display.set_mode(WINDOW_SIZE, pygame.RESIZABLE)
    font = pygame.font.Font(None, 36)
    clock = pygame.time.Clock()

    app = App(surface=surface, font=font)

    def open_level(info: LevelInfo) -> None:
        seed = _new_seed()
        overrides = {"level6": cfg.grid_game}
        app.push(
            LevelRunScreen(
                app,
                run_factory=lambda: build_level(
                    info.level_id,
                    clock=real_clock,
                    rng=SeededRng(seed),
                    recorder=recorder,
                    user_id=active.user.user_id,
                    config=overrides.get(info.level_id),
                ),
            )
        )

    def level_menu(title: str, category: Category) -> MenuScreen:
        items = [MenuItem(info.title, lambda info=info: open_level(info)) for info in levels_in(category)]
        items.append(MenuItem("Back", app.pop))
        return MenuScreen(app, title, items)

    def choose_patient(user: UserProfile) -> None:
        active.user = user
        logger.info("Active patient: {}", user.user_id)
        app.pop()

    amblyo_menu = level_menu("Amblyopia", Category.AMBLYO)
    percep_menu = level_menu("Perceptual Training", Category.PERCEP)
    patient_menu = MenuScreen(
        app,
        "Patients",
        [MenuItem(u.name, lambda u=u: choose_patient(u)) for u in patients] + [MenuItem("Back", app.pop)],
    )

    main_items = [
        MenuItem("Amblyopia Levels", lambda: app.push(amblyo_menu)),
        MenuItem("Perceptual Training", lambda: app.push(percep_menu)),
        MenuItem("Performance", lambda: app.push(PerformanceScreen(app, recorder=recorder, user=active.user))),
        MenuItem("Time Report", lambda: app.push(TimeReportScreen(app, recorder=recorder, user=active.user))),
        MenuItem("Switch Patient", lambda: app.push(patient_menu)),
        MenuItem("Data Sync", lambda: app.push(SyncScreen(app, sync=sync))),
        MenuItem("Quit", app.quit),
    ]

    app.push(
        MenuScreen(
            app,
            "StrabPlay",
            main_items,
            is_root=True,
            status=lambda: f"Patient: {active.user.name}",
        )
    )

    frame = 0
    try:
        while app.running:
            if event_injector is not None:
                event_injector(frame)

            for event in pygame.event.get():
                app.handle_event(event)

            background.run_due()
            app.render()
            pygame.display.flip()

            frame += 1
            if max_frames is not None and frame >= max_frames:
                break

            clock.tick(TARGET_FPS)
    finally:
        app.shutdown()
        sync.cancel()
        store.close()
        pygame.quit()

    return 0
