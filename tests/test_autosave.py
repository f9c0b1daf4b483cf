import asyncio

from firegrid.dashboards.autosave import AutosaveCoordinator, DebounceTimer
from firegrid.dashboards.store import add_element, load_state, remove_widget, rename_dashboard


class _RecordingWriter:
    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.delay = delay
        self.saves: list[tuple[str, str, list[str], bool]] = []
        self.active = 0
        self.max_active = 0

    async def save(self, dashboard_id, name, widgets, *, is_new):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail:
                raise RuntimeError("disk full")
            self.saves.append((dashboard_id, name, [widget.id for widget in widgets], is_new))
        finally:
            self.active -= 1


def test_rapid_edits_collapse_into_one_save() -> None:
    writer = _RecordingWriter()

    async def scenario():
        autosave = AutosaveCoordinator(writer, debounce_seconds=0.05, saved_reset_seconds=5)
        state = load_state(None, "Sales", [])
        autosave.mark_loaded(state)
        for index in range(3):
            state = add_element(state, "heading", widget_id=f"h{index}")
            autosave.update(state)
            await asyncio.sleep(0.01)
        pending = autosave.timer_state
        await asyncio.sleep(0.2)
        return autosave, pending

    autosave, pending = asyncio.run(scenario())

    assert pending == "pending"
    assert len(writer.saves) == 1
    dashboard_id, name, widget_ids, is_new = writer.saves[0]
    assert (name, widget_ids, is_new) == ("Sales", ["h0", "h1", "h2"], True)
    assert autosave.dashboard_id == dashboard_id
    assert autosave.status == "saved"
    assert autosave.timer_state == "idle"
    assert autosave.save_count == 1


def test_first_save_publishes_the_id_for_later_updates() -> None:
    writer = _RecordingWriter()

    async def scenario():
        autosave = AutosaveCoordinator(writer, debounce_seconds=10)
        state = add_element(load_state(None, "Sales", []), "text", widget_id="t")
        autosave.mark_loaded(state)
        autosave.update(state)
        first = await autosave.save_now()
        autosave.update(rename_dashboard(state, "Revenue"))
        await autosave.flush()
        return autosave, first

    autosave, first = asyncio.run(scenario())

    assert first is True
    assert [(name, is_new) for _, name, _, is_new in writer.saves] == [("Sales", True), ("Revenue", False)]
    assert writer.saves[0][0] == writer.saves[1][0] == autosave.dashboard_id
    assert autosave.timer_state == "idle"


def test_existing_dashboard_saves_in_place() -> None:
    writer = _RecordingWriter()

    async def scenario():
        autosave = AutosaveCoordinator(writer, dashboard_id="d1", debounce_seconds=10)
        state = add_element(load_state("d1", "Sales", []), "divider", widget_id="d")
        autosave.mark_loaded(state)
        return await autosave.save_now()

    assert asyncio.run(scenario()) is True
    assert writer.saves == [("d1", "Sales", ["d"], False)]


def test_failed_save_sets_a_transient_error() -> None:
    writer = _RecordingWriter(fail=True)

    async def scenario():
        autosave = AutosaveCoordinator(writer, debounce_seconds=10, error_reset_seconds=0.02)
        autosave.mark_loaded(add_element(load_state(None, "Sales", []), "divider", widget_id="d"))
        saved = await autosave.save_now()
        status_after_failure = autosave.status
        await asyncio.sleep(0.1)
        return autosave, saved, status_after_failure

    autosave, saved, status_after_failure = asyncio.run(scenario())

    assert saved is False
    assert status_after_failure == "error"
    assert autosave.status == "idle"
    assert autosave.last_error == "disk full"
    assert autosave.dashboard_id is None
    assert autosave.save_count == 0


def test_empty_widget_list_is_never_saved() -> None:
    writer = _RecordingWriter()

    async def scenario():
        autosave = AutosaveCoordinator(writer, debounce_seconds=0.01)
        state = add_element(load_state(None, "Sales", []), "divider", widget_id="d")
        autosave.mark_loaded(state)
        autosave.update(state)
        autosave.update(remove_widget(state, "d"))
        timer = autosave.timer_state
        await asyncio.sleep(0.05)
        return timer, await autosave.save_now()

    timer, saved = asyncio.run(scenario())

    assert timer == "idle"
    assert saved is False
    assert writer.saves == []


def test_edits_before_the_initial_load_are_not_saved() -> None:
    writer = _RecordingWriter()

    async def scenario():
        autosave = AutosaveCoordinator(writer, debounce_seconds=0.01)
        autosave.update(add_element(load_state(None, "Sales", []), "divider"))
        timer = autosave.timer_state
        await asyncio.sleep(0.05)
        return autosave, timer

    autosave, timer = asyncio.run(scenario())

    assert timer == "idle"
    assert autosave.initial_load_done is False
    assert writer.saves == []


def test_saves_never_overlap() -> None:
    writer = _RecordingWriter(delay=0.02)

    async def scenario():
        autosave = AutosaveCoordinator(writer, debounce_seconds=10)
        autosave.mark_loaded(add_element(load_state(None, "Sales", []), "divider", widget_id="d"))
        await asyncio.gather(autosave.save_now(), autosave.save_now(), autosave.save_now())

    asyncio.run(scenario())

    assert writer.max_active == 1
    assert len(writer.saves) == 3
    assert [is_new for *_, is_new in writer.saves] == [True, False, False]


def test_debounce_timer_replaces_the_pending_call() -> None:
    calls: list[int] = []

    async def scenario():
        async def callback() -> None:
            calls.append(1)

        timer = DebounceTimer(0.03, callback)
        timer.schedule()
        await asyncio.sleep(0.01)
        timer.schedule()
        await asyncio.sleep(0.01)
        timer.schedule()
        await asyncio.sleep(0.1)
        timer.schedule()
        timer.cancel()
        await asyncio.sleep(0.05)
        await timer.fire_now()
        return timer.state

    assert asyncio.run(scenario()) == "idle"
    assert calls == [1]
