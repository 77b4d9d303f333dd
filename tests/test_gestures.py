import pytest

from gestures import GestureState, PressGesture


@pytest.fixture
def events():
    return []


@pytest.fixture
def gesture(scheduler, events):
    return PressGesture(
        scheduler,
        on_click=lambda target: events.append(("click", target)),
        on_long_press=lambda target: events.append(("long", target)),
        delay_ms=500,
    )


def test_short_press_is_a_click(gesture, scheduler, events):
    gesture.press_start("a")
    assert gesture.state is GestureState.PRESSING
    scheduler.advance(200)
    assert gesture.press_end()
    assert events == [("click", "a")]
    assert gesture.state is GestureState.IDLE
    assert scheduler.pending == 0


def test_long_press_suppresses_click(gesture, scheduler, events):
    gesture.press_start("a")
    scheduler.advance(500)
    assert gesture.state is GestureState.LONG_PRESS_FIRED
    assert not gesture.press_end()
    assert events == [("long", "a")]
    assert gesture.state is GestureState.IDLE


def test_cancel_drops_the_press(gesture, scheduler, events):
    gesture.press_start("a")
    gesture.press_cancel()
    scheduler.advance(1000)
    assert not gesture.press_end()
    assert events == []


def test_release_without_press_does_nothing(gesture, events):
    assert not gesture.press_end()
    assert events == []


def test_new_press_restarts_the_timer(gesture, scheduler, events):
    gesture.press_start("a")
    scheduler.advance(400)
    gesture.press_start("b")
    scheduler.advance(400)
    assert events == []
    scheduler.advance(100)
    assert events == [("long", "b")]


def test_long_press_handler_sees_fired_state(scheduler):
    seen = []
    gesture = PressGesture(scheduler, on_click=seen.append,
                           on_long_press=lambda target: seen.append(gesture.state))
    gesture.press_start(1)
    scheduler.advance(gesture.delay_ms)
    assert seen == [GestureState.LONG_PRESS_FIRED]
