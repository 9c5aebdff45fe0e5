from dancefloor.game.timers import BackgroundScheduler, TimerHandle


class FakeSocketIO:
    def __init__(self):
        self.tasks = []
        self.slept = []

    def start_background_task(self, target, *args):
        self.tasks.append((target, args))

    def sleep(self, seconds):
        self.slept.append(seconds)

    def run_all(self):
        for target, args in self.tasks:
            target(*args)


def test_handle_runs_once():
    calls = []
    handle = TimerHandle(1, calls.append, ("x",))
    handle.run()
    handle.run()
    assert calls == ["x"]


def test_cancel_is_idempotent_and_prevents_firing():
    calls = []
    handle = TimerHandle(1, calls.append, ("x",))
    handle.cancel()
    handle.cancel()
    handle.run()
    assert calls == []
    assert handle.cancelled


def test_background_scheduler_sleeps_then_fires():
    sio = FakeSocketIO()
    calls = []
    BackgroundScheduler(sio).call_later(2.5, calls.append, "fired")
    assert calls == []

    sio.run_all()
    assert sio.slept == [2.5]
    assert calls == ["fired"]


def test_background_scheduler_skips_cancelled():
    sio = FakeSocketIO()
    calls = []
    handle = BackgroundScheduler(sio).call_later(1, calls.append, "fired")
    handle.cancel()
    sio.run_all()
    assert calls == []


def test_background_scheduler_survives_failing_callback():
    sio = FakeSocketIO()

    def boom():
        raise RuntimeError("boom")

    scheduler = BackgroundScheduler(sio)
    scheduler.call_later(0, boom)
    calls = []
    scheduler.call_later(0, calls.append, "after")
    sio.run_all()
    assert calls == ["after"]
