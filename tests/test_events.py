import pygame
import pytest
from pygame.locals import (K_ESCAPE, K_LEFT, K_RIGHT, K_SPACE, K_a, K_f, K_p, K_q, K_r,
                           KEYDOWN, MOUSEBUTTONDOWN, MOUSEBUTTONUP, QUIT)

from events import EventManager


def key(k):
    return pygame.event.Event(KEYDOWN, key=k)


def drain():
    out = []
    while (a := EventManager.poll()) is not None:
        out.append(a)
    return out


@pytest.mark.parametrize("k, action", [
    (K_RIGHT,  {"type": "advance", "direction": 1}),
    (K_SPACE,  {"type": "advance", "direction": 1}),
    (K_LEFT,   {"type": "advance", "direction": -1}),
    (K_p,      {"type": "toggle_play"}),
    (K_r,      {"type": "record"}),
    (K_ESCAPE, {"type": "close"}),
    (K_f,      {"type": "toggle_fullscreen"}),
    (K_q,      {"type": "quit"}),
])
def test_keys_while_presenting(k, action):
    EventManager.handle(key(k), presenting=True)
    assert drain() == [action]


def test_navigation_keys_ignored_when_not_presenting():
    for k in (K_RIGHT, K_LEFT, K_p, K_r, K_ESCAPE, K_a):
        EventManager.handle(key(k), presenting=False)
    EventManager.handle(key(K_q), presenting=False)
    assert drain() == [{"type": "quit"}]


def test_window_close_quits():
    EventManager.handle(pygame.event.Event(QUIT), presenting=True)
    assert drain() == [{"type": "quit"}]


def drag(x0, x1):
    EventManager.handle(pygame.event.Event(MOUSEBUTTONDOWN, button=1, pos=(x0, 300)), presenting=True)
    EventManager.handle(pygame.event.Event(MOUSEBUTTONUP, button=1, pos=(x1, 300)), presenting=True)


def test_swipe_left_goes_forward_and_right_goes_back():
    drag(600, 400)
    drag(400, 600)
    assert drain() == [
        {"type": "advance", "direction": 1},
        {"type": "advance", "direction": -1},
    ]


def test_short_drag_is_not_a_swipe():
    drag(500, 560)
    drag(500, 400)          # exactly the threshold
    assert drain() == []


def test_button_up_without_press_is_ignored():
    EventManager.handle(pygame.event.Event(MOUSEBUTTONUP, button=1, pos=(0, 0)), presenting=True)
    assert drain() == []


def test_external_post_is_polled_in_order():
    EventManager.post({"type": "advance", "direction": -1})
    EventManager.post({"type": "toggle_play"})
    assert [a["type"] for a in drain()] == ["advance", "toggle_play"]
    assert EventManager.poll() is None
