"""
ReconcilerSession: runs the reconciler against real collaborators.

The session owns the current ReconcilerState and is the only writer of it.
It turns effects into calls on the preset store, the remote client, the
simulator and the scheduler, and feeds their outcomes back as events.
"""

import logging
from collections import deque

import reconciler as rc
from remote_client import RemoteError
from scheduler import ImmediateRunner
from sparkles import SparkleSimulator

logger = logging.getLogger("sparkle_matrix.session")


class ReconcilerSession:
    def __init__(self, store, client, scheduler, runner=None, simulator=None,
                 confirm=None, on_frame=None):
        self.store = store
        self.client = client
        self.scheduler = scheduler
        self.runner = runner if runner is not None else ImmediateRunner()
        # confirm(preset) -> bool; without a dialog nothing gets deleted
        self.confirm = confirm if confirm is not None else (lambda preset: False)
        self.simulator = simulator if simulator is not None else SparkleSimulator(
            scheduler=scheduler, on_frame=on_frame
        )

        self._state = rc.initial_state(store.list(), has_api_key=client.has_api_key)
        self._listeners = []
        self._queue = deque()
        self._dispatching = False
        self._fallback_timer = None
        self._closed = False

        if not client.has_api_key:
            logger.warning("[Session] No API key configured, device sync disabled")

    # ===== Lifecycle =====

    def start(self):
        """Start the preview and ask the device for its current settings."""
        self.simulator.start(self._state.configuration)
        self.dispatch(rc.PollRemote())

    def close(self):
        """Cancel the pending timer and the ticker; late answers are dropped."""
        self._closed = True
        self._cancel_fallback()
        self.simulator.stop()
        self._queue.clear()

    def add_listener(self, listener):
        """listener(state) is called after every handled event."""
        self._listeners.append(listener)

    # ===== State for the view =====

    @property
    def state(self):
        return self._state

    @property
    def status(self):
        return self._state.status

    @property
    def label(self):
        return self._state.label

    @property
    def button_enabled(self):
        return self._state.button_enabled

    @property
    def configuration(self):
        return self._state.configuration

    @property
    def presets(self):
        return self._state.presets

    @property
    def grid(self):
        return self.simulator.grid

    # ===== View events =====

    def toggle_color(self, index):
        self.dispatch(rc.ToggleColor(index))

    def change_value(self, field, value):
        self.dispatch(rc.ChangeValue(field, value))

    def change_tab(self, tab):
        self.dispatch(rc.ChangeTab(tab))

    def select_preset(self, preset_id):
        self.dispatch(rc.SelectPreset(preset_id))

    def press_primary(self):
        self.dispatch(rc.PressPrimaryAction())

    def long_press_preset(self, preset_id):
        self.dispatch(rc.LongPressPreset(preset_id))

    def request_suggestion(self):
        self.dispatch(rc.RequestSuggestion())

    def poll_remote(self):
        self.dispatch(rc.PollRemote())

    # ===== Dispatch =====

    def dispatch(self, event):
        """
        Apply an event and carry out its effects.

        Events raised while effects run (inline runners, store saves) are
        queued and handled in order, so every transition sees the state left
        by the previous one.
        """
        if self._closed:
            return
        self._queue.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue and not self._closed:
                event = self._queue.popleft()
                before = self._state.status
                self._state, effects = rc.transition(self._state, event)
                if self._state.status != before:
                    logger.debug(f"[Session] {before} -> {self._state.status} on {event}")
                for effect in effects:
                    self._run(effect)
        finally:
            self._dispatching = False

        for listener in list(self._listeners):
            listener(self._state)

    def _run(self, effect):
        if isinstance(effect, rc.RestartSimulator):
            self.simulator.start(effect.configuration)

        elif isinstance(effect, rc.FetchRemote):
            request_id = effect.request_id
            self.runner.submit(
                self.client.fetch_current,
                lambda configuration: self.dispatch(rc.RemoteFetched(request_id, configuration)),
                lambda error: self._remote_failed("fetch settings", error,
                                                  rc.RemoteFetchFailed(request_id)),
            )

        elif isinstance(effect, rc.PushConfiguration):
            request_id = effect.request_id
            configuration = effect.configuration
            self.runner.submit(
                lambda: self.client.push(configuration),
                lambda _: self.dispatch(rc.PushSucceeded(request_id)),
                lambda error: self._remote_failed("apply settings", error,
                                                  rc.PushFailed(request_id)),
            )

        elif isinstance(effect, rc.FetchSuggestion):
            request_id = effect.request_id
            self.runner.submit(
                self.client.generate,
                lambda suggestion: self.dispatch(rc.SuggestionReceived(request_id, suggestion)),
                lambda error: self._remote_failed("generate preset", error,
                                                  rc.SuggestionFailed(request_id)),
            )

        elif isinstance(effect, rc.SavePreset):
            preset = self.store.save(effect.name, effect.configuration)
            self.dispatch(rc.PresetSaved(preset, adopt=effect.adopt))

        elif isinstance(effect, rc.DeletePreset):
            self.store.delete(effect.preset_id)

        elif isinstance(effect, rc.ScheduleFallback):
            self._cancel_fallback()
            token = effect.token
            self._fallback_timer = self.scheduler.call_later(
                effect.delay_ms, lambda: self._fallback_elapsed(token)
            )

        elif isinstance(effect, rc.ConfirmDelete):
            preset = rc.preset_by_id(self._state.presets, effect.preset_id)
            if preset is not None and self.confirm(preset):
                self.dispatch(rc.DeleteConfirmed(effect.preset_id))
            else:
                self.dispatch(rc.DeleteCancelled(effect.preset_id))

        else:
            raise TypeError(f"unhandled effect {effect!r}")

    def _remote_failed(self, what, error, event):
        if isinstance(error, RemoteError):
            logger.warning(f"[Session] Could not {what}: {error}")
        else:
            logger.error(f"[Session] Unexpected error trying to {what}", exc_info=error)
        self.dispatch(event)

    def _fallback_elapsed(self, token):
        self._fallback_timer = None
        self.dispatch(rc.FallbackElapsed(token))

    def _cancel_fallback(self):
        if self._fallback_timer is not None:
            self.scheduler.cancel(self._fallback_timer)
        self._fallback_timer = None
