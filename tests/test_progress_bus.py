import io

from core.progress import (
    CancelFlagObserver,
    CancelToken,
    ProgressBus,
    ProgressEvent,
    ProgressReporter,
    StageProgressMapper,
    TerminalProgressObserver,
)


def test_reporter_stage_callback_emits_stage_events():
    events = []
    bus = ProgressBus().subscribe(lambda e: events.append(e))
    reporter = ProgressReporter(bus, stages=["component 0", "component 1"])

    reporter.stage_callback("component 1")(0.5, "smoothing")

    assert len(events) == 1
    assert isinstance(events[0], ProgressEvent)
    assert events[0].channel == "stage"
    assert events[0].stage == "component 1"
    assert events[0].fraction == 0.75
    assert events[0].percent == 75


def test_stage_progress_mapper():
    mapper = StageProgressMapper(["a", "b", "c", "d"])
    assert mapper.map("a", 0.5) == 0.125
    assert mapper.map("b", 1.0) == 0.5
    assert mapper.map("d", 1.0) == 1.0
    assert mapper.map(None, 0.3) == 0.3
    assert mapper.map("a", 7.0) == 0.25


def test_reporter_is_monotonic_and_clamped():
    events = []
    reporter = ProgressReporter(ProgressBus().subscribe(events.append))
    for fraction in (0.2, 0.6, 0.4, 1.5, -1.0):
        reporter.report(fraction, "step")
    fractions = [e.fraction for e in events]
    assert fractions == [0.2, 0.6, 0.6, 1.0, 1.0]
    assert reporter.fraction == 1.0


def test_reporter_without_bus_is_silent():
    reporter = ProgressReporter()
    reporter.report(0.4, "quiet")
    assert reporter.fraction == 0.4


def test_unsubscribe():
    events = []
    bus = ProgressBus()
    bus.subscribe(events.append).unsubscribe(events.append).unsubscribe(events.append)
    bus.emit(ProgressEvent(0.5, "x"))
    assert events == []


def test_cancel_flag_observer_raises():
    token = CancelToken()
    bus = ProgressBus().subscribe(CancelFlagObserver(token))
    reporter = ProgressReporter(bus)
    reporter.report(0.1, "running")

    token.cancel()
    assert token.cancelled
    raised = False
    try:
        reporter.report(0.2, "running")
    except InterruptedError:
        raised = True

    assert raised


def test_terminal_observer_renders_bar():
    stream = io.StringIO()
    observer = TerminalProgressObserver(bar_width=10, stream=stream)
    observer.on_progress(ProgressEvent(0.5, "halfway", stage="diffusion"))
    observer.on_progress(ProgressEvent(1.0, "done"))
    text = stream.getvalue()
    assert "#####....." in text
    assert " 50%" in text
    assert "100%" in text
    assert text.endswith("\n")
