"""
Settings reconciliation.

Keeps three views of the sparkle settings consistent: what the user is
editing locally, the presets saved on this machine and what the device last
reported. The outcome is a single UIStatus that drives the primary button.

Everything here is pure: `transition(state, event)` returns the next state
plus a tuple of effects for the session to carry out. Completions of those
effects come back in as events carrying the request id they answer, so a
late answer to an old request can be recognised and dropped.
"""

import enum
from dataclasses import dataclass, replace
from typing import Optional, Tuple

import config
from models import Configuration, Preset, Suggestion
from preset_store import find_matching

PRESETS_TAB = "presets"
TABS = ("colors", "values", PRESETS_TAB)


# ============================================================================
# STATUS
# ============================================================================


class StatusKind(enum.Enum):
    LOADING = "loading"
    NEEDS_APPLY = "needs_apply"
    APPLYING = "applying"
    APPLIED = "applied"
    NEEDS_SAVE = "needs_save"
    SAVING = "saving"
    SAVED = "saved"
    USING_PRESET = "using_preset"
    CAN_USE_PRESET = "can_use_preset"


IN_FLIGHT_KINDS = (StatusKind.APPLYING, StatusKind.SAVING)


@dataclass(frozen=True)
class UIStatus:
    kind: StatusKind
    preset_name: Optional[str] = None

    def __repr__(self):
        if self.preset_name is None:
            return f"UIStatus({self.kind.name})"
        return f"UIStatus({self.kind.name}, {self.preset_name!r})"


LOADING = UIStatus(StatusKind.LOADING)
NEEDS_APPLY = UIStatus(StatusKind.NEEDS_APPLY)
APPLYING = UIStatus(StatusKind.APPLYING)
APPLIED = UIStatus(StatusKind.APPLIED)
NEEDS_SAVE = UIStatus(StatusKind.NEEDS_SAVE)
SAVING = UIStatus(StatusKind.SAVING)


def saved(name):
    return UIStatus(StatusKind.SAVED, name)


def using_preset(name):
    return UIStatus(StatusKind.USING_PRESET, name)


def can_use_preset(name):
    return UIStatus(StatusKind.CAN_USE_PRESET, name)


class PrimaryAction(enum.Enum):
    PUSH_CONFIGURATION = "push_configuration"
    SAVE_PRESET = "save_preset"
    USE_PRESET = "use_preset"
    GENERATE = "generate"


# ============================================================================
# EVENTS
# ============================================================================


class Event:
    pass


class EditConfiguration(Event):
    """Base for user edits of the local configuration."""

    def apply(self, configuration):
        raise NotImplementedError


@dataclass(frozen=True)
class ToggleColor(EditConfiguration):
    index: int

    def apply(self, configuration):
        return configuration.toggle_color(self.index)


@dataclass(frozen=True)
class ChangeValue(EditConfiguration):
    field: str
    value: int

    def apply(self, configuration):
        return configuration.with_value(self.field, self.value)


@dataclass(frozen=True)
class ChangeTab(Event):
    tab: str


@dataclass(frozen=True)
class SelectPreset(Event):
    preset_id: int


@dataclass(frozen=True)
class PressPrimaryAction(Event):
    pass


@dataclass(frozen=True)
class LongPressPreset(Event):
    preset_id: int


@dataclass(frozen=True)
class DeleteConfirmed(Event):
    preset_id: int


@dataclass(frozen=True)
class DeleteCancelled(Event):
    preset_id: int


@dataclass(frozen=True)
class PollRemote(Event):
    pass


@dataclass(frozen=True)
class RemoteFetched(Event):
    request_id: int
    configuration: Configuration


@dataclass(frozen=True)
class RemoteFetchFailed(Event):
    request_id: int


@dataclass(frozen=True)
class PushSucceeded(Event):
    request_id: int


@dataclass(frozen=True)
class PushFailed(Event):
    request_id: int


@dataclass(frozen=True)
class PresetSaved(Event):
    preset: Preset
    adopt: bool = False


@dataclass(frozen=True)
class FallbackElapsed(Event):
    token: int


@dataclass(frozen=True)
class RequestSuggestion(Event):
    pass


@dataclass(frozen=True)
class SuggestionReceived(Event):
    request_id: int
    suggestion: Suggestion


@dataclass(frozen=True)
class SuggestionFailed(Event):
    request_id: int


# ============================================================================
# EFFECTS
# ============================================================================


class Effect:
    pass


@dataclass(frozen=True)
class FetchRemote(Effect):
    request_id: int


@dataclass(frozen=True)
class PushConfiguration(Effect):
    request_id: int
    configuration: Configuration


@dataclass(frozen=True)
class SavePreset(Effect):
    name: Optional[str]
    configuration: Configuration
    adopt: bool = False


@dataclass(frozen=True)
class DeletePreset(Effect):
    preset_id: int


@dataclass(frozen=True)
class ScheduleFallback(Effect):
    token: int
    delay_ms: int = config.APPLIED_FALLBACK_DELAY_MS


@dataclass(frozen=True)
class ConfirmDelete(Effect):
    preset_id: int


@dataclass(frozen=True)
class FetchSuggestion(Effect):
    request_id: int


@dataclass(frozen=True)
class RestartSimulator(Effect):
    configuration: Configuration


# ============================================================================
# STATE
# ============================================================================


class RequestKind(enum.Enum):
    PUSH = "push"
    SAVE = "save"


@dataclass(frozen=True)
class InFlight:
    request_id: int
    kind: RequestKind
    prior_status: UIStatus
    edit_version: int
    configuration: Optional[Configuration] = None
    preset_id: Optional[int] = None


@dataclass(frozen=True)
class PendingRequest:
    """A poll or suggestion request and the versions it was issued at."""

    request_id: int
    edit_version: int
    remote_version: int = 0


@dataclass(frozen=True)
class ReconcilerState:
    configuration: Configuration
    presets: Tuple[Preset, ...] = ()
    selected_preset_id: Optional[int] = None
    has_pending_edits: bool = False
    remote: Optional[Configuration] = None
    status: UIStatus = LOADING
    in_flight: Optional[InFlight] = None
    poll: Optional[PendingRequest] = None
    suggestion: Optional[PendingRequest] = None
    edit_version: int = 0
    # Bumped whenever a push lands on the device
    remote_version: int = 0
    next_request_id: int = 1
    fallback_token: Optional[int] = None
    has_api_key: bool = True
    active_tab: str = "colors"
    pending_delete_id: Optional[int] = None

    @property
    def selected_preset(self) -> Optional[Preset]:
        return preset_by_id(self.presets, self.selected_preset_id)

    @property
    def generating(self) -> bool:
        return self.suggestion is not None

    @property
    def primary_action(self) -> Optional[PrimaryAction]:
        return primary_action(self)

    @property
    def button_enabled(self) -> bool:
        return primary_action(self) is not None

    @property
    def label(self) -> str:
        return button_label(self)


def initial_state(presets=(), has_api_key=True, configuration=None) -> ReconcilerState:
    return ReconcilerState(
        configuration=configuration or Configuration.default(),
        presets=tuple(presets),
        has_api_key=has_api_key,
    )


def preset_by_id(presets, preset_id) -> Optional[Preset]:
    if preset_id is None:
        return None
    for preset in presets:
        if preset.id == preset_id:
            return preset
    return None


# ============================================================================
# DERIVED VIEW
# ============================================================================


def _offers_generate(state):
    return (
        state.active_tab == PRESETS_TAB
        and state.has_api_key
        and state.status == NEEDS_APPLY
        and not state.has_pending_edits
        and state.selected_preset is None
    )


def primary_action(state) -> Optional[PrimaryAction]:
    """What pressing the primary button would do, or None when it is disabled."""
    kind = state.status.kind
    if kind is StatusKind.NEEDS_APPLY:
        if state.has_pending_edits or state.selected_preset is not None:
            return PrimaryAction.PUSH_CONFIGURATION if state.has_api_key else None
        if _offers_generate(state) and not state.generating:
            return PrimaryAction.GENERATE
        return None
    if kind is StatusKind.NEEDS_SAVE:
        return PrimaryAction.SAVE_PRESET
    if kind is StatusKind.CAN_USE_PRESET:
        if state.has_api_key and state.selected_preset is not None:
            return PrimaryAction.USE_PRESET
        return None
    return None


def button_label(state) -> str:
    status = state.status
    kind = status.kind
    if _offers_generate(state):
        return "Generating..." if state.generating else "Generate AI preset"
    if kind is StatusKind.LOADING:
        return "Loading..."
    if kind is StatusKind.NEEDS_APPLY:
        return "Apply"
    if kind is StatusKind.APPLYING:
        return "Applying..."
    if kind is StatusKind.APPLIED:
        selected = state.selected_preset
        return f"Applied {selected.name}" if selected else "Applied"
    if kind is StatusKind.NEEDS_SAVE:
        return "Save preset"
    if kind is StatusKind.SAVING:
        return "Saving..."
    if kind is StatusKind.SAVED:
        return f"Saved {status.preset_name}"
    if kind is StatusKind.USING_PRESET:
        return f"Applied {status.preset_name}"
    return f"Apply {status.preset_name}"


def settled_status(state) -> UIStatus:
    """Status implied by configuration, selection and remote when nothing is in flight."""
    selected = state.selected_preset
    if not state.has_api_key:
        # Local-only: the device can't be reached, saving is all that's left
        if selected is not None and not state.has_pending_edits:
            return can_use_preset(selected.name)
        return NEEDS_SAVE
    if state.has_pending_edits:
        return NEEDS_APPLY
    if selected is not None:
        if selected.configuration.matches(state.remote):
            return using_preset(selected.name)
        return can_use_preset(selected.name)
    if state.configuration.matches(state.remote):
        return NEEDS_SAVE
    return NEEDS_APPLY


# ============================================================================
# TRANSITIONS
# ============================================================================


def _next_request(state):
    request_id = state.next_request_id
    return replace(state, next_request_id=request_id + 1), request_id


def _restart_if_changed(old, new):
    if old.configuration == new.configuration:
        return ()
    return (RestartSimulator(new.configuration),)


def _on_edit(state, event):
    configuration = event.apply(state.configuration)
    if configuration == state.configuration:
        return state, ()

    new = replace(
        state,
        configuration=configuration,
        has_pending_edits=True,
        selected_preset_id=None,
        edit_version=state.edit_version + 1,
        fallback_token=None,
    )
    if state.in_flight is None:
        new = replace(new, status=NEEDS_APPLY if state.has_api_key else NEEDS_SAVE)
    return new, (RestartSimulator(configuration),)


def _on_change_tab(state, event):
    if event.tab not in TABS:
        raise ValueError(f"unknown tab {event.tab!r}")
    new = replace(state, active_tab=event.tab)
    if event.tab == PRESETS_TAB:
        return _on_poll(new, PollRemote())
    return new, ()


def _on_select(state, event):
    preset = preset_by_id(state.presets, event.preset_id)
    if preset is None:
        return state, ()

    new = replace(
        state,
        configuration=preset.configuration,
        has_pending_edits=False,
        selected_preset_id=preset.id,
        edit_version=state.edit_version + 1,
        fallback_token=None,
    )
    if state.in_flight is None:
        new = replace(new, status=settled_status(new))
    return new, _restart_if_changed(state, new)


def _start_push(state, configuration, preset_id=None):
    new, request_id = _next_request(state)
    new = replace(
        new,
        status=APPLYING,
        fallback_token=None,
        in_flight=InFlight(
            request_id=request_id,
            kind=RequestKind.PUSH,
            prior_status=state.status,
            edit_version=state.edit_version,
            configuration=configuration,
            preset_id=preset_id,
        ),
    )
    return new, (PushConfiguration(request_id, configuration),)


def _on_press(state, event):
    action = primary_action(state)
    if action is None:
        return state, ()

    if action is PrimaryAction.GENERATE:
        return _on_request_suggestion(state, RequestSuggestion())

    if action is PrimaryAction.PUSH_CONFIGURATION:
        return _start_push(state, state.configuration)

    if action is PrimaryAction.USE_PRESET:
        preset = state.selected_preset
        new = replace(state, configuration=preset.configuration)
        new, effects = _start_push(new, preset.configuration, preset.id)
        return new, _restart_if_changed(state, new) + effects

    # SAVE_PRESET
    new, request_id = _next_request(state)
    new = replace(
        new,
        status=SAVING,
        in_flight=InFlight(
            request_id=request_id,
            kind=RequestKind.SAVE,
            prior_status=state.status,
            edit_version=state.edit_version,
            configuration=state.configuration,
        ),
    )
    return new, (SavePreset(None, state.configuration),)


def _current_push(state, request_id):
    in_flight = state.in_flight
    if in_flight is None or in_flight.kind is not RequestKind.PUSH:
        return None
    if in_flight.request_id != request_id:
        return None
    return in_flight


def _on_push_succeeded(state, event):
    in_flight = _current_push(state, event.request_id)
    if in_flight is None:
        return state, ()

    new = replace(
        state,
        in_flight=None,
        remote=in_flight.configuration,
        remote_version=state.remote_version + 1,
    )
    if state.edit_version != in_flight.edit_version:
        # The user moved on while the request was out
        return replace(new, status=settled_status(new)), ()

    if in_flight.preset_id is not None:
        preset = preset_by_id(state.presets, in_flight.preset_id)
        new = replace(new, has_pending_edits=False)
        if preset is None:
            return replace(new, status=settled_status(new)), ()
        return replace(new, status=using_preset(preset.name)), ()

    token = in_flight.request_id
    new = replace(new, status=APPLIED, has_pending_edits=False, fallback_token=token)
    return new, (ScheduleFallback(token),)


def _on_push_failed(state, event):
    in_flight = _current_push(state, event.request_id)
    if in_flight is None:
        return state, ()

    new = replace(state, in_flight=None)
    if state.edit_version != in_flight.edit_version:
        return replace(new, status=settled_status(new)), ()
    return replace(new, status=in_flight.prior_status), ()


def _on_fallback(state, event):
    if state.status.kind is not StatusKind.APPLIED or state.fallback_token != event.token:
        return state, ()
    selected = state.selected_preset
    status = can_use_preset(selected.name) if selected else NEEDS_SAVE
    return replace(state, status=status, fallback_token=None), ()


def _on_preset_saved(state, event):
    preset = event.preset
    new = replace(state, presets=state.presets + (preset,))

    in_flight = state.in_flight
    if in_flight is not None and in_flight.kind is RequestKind.SAVE:
        new = replace(new, in_flight=None)
        if state.edit_version != in_flight.edit_version:
            return replace(new, status=settled_status(new)), ()
        new = replace(
            new,
            selected_preset_id=preset.id,
            has_pending_edits=False,
            status=saved(preset.name),
        )
        return new, ()

    if not event.adopt:
        return new, ()

    # A generated preset: adopt it like a selection
    return _on_select(new, SelectPreset(preset.id))


def _on_long_press(state, event):
    if preset_by_id(state.presets, event.preset_id) is None:
        return state, ()
    return replace(state, pending_delete_id=event.preset_id), (ConfirmDelete(event.preset_id),)


def _on_delete_confirmed(state, event):
    new = replace(state, pending_delete_id=None)
    if preset_by_id(state.presets, event.preset_id) is None:
        return new, ()

    new = replace(new, presets=tuple(p for p in state.presets if p.id != event.preset_id))
    if state.selected_preset_id == event.preset_id:
        new = replace(new, selected_preset_id=None)
        if state.in_flight is None:
            new = replace(new, status=NEEDS_APPLY if state.has_api_key else NEEDS_SAVE)
    return new, (DeletePreset(event.preset_id),)


def _on_delete_cancelled(state, event):
    return replace(state, pending_delete_id=None), ()


def _on_poll(state, event):
    if not state.has_api_key:
        if state.status == LOADING:
            return replace(state, status=settled_status(state)), ()
        return state, ()

    new, request_id = _next_request(state)
    poll = PendingRequest(request_id, state.edit_version, state.remote_version)
    new = replace(new, poll=poll)
    return new, (FetchRemote(request_id),)


def _current_poll(state, request_id):
    if state.poll is None or state.poll.request_id != request_id:
        return None
    return state.poll


def _on_remote_fetched(state, event):
    poll = _current_poll(state, event.request_id)
    if poll is None:
        return state, ()
    if poll.remote_version != state.remote_version:
        # Sent before a push landed; the device has moved on since
        return replace(state, poll=None), ()

    remote = event.configuration
    new = replace(state, poll=None, remote=remote)
    unchanged = state.edit_version == poll.edit_version

    if state.status == LOADING:
        if unchanged:
            match = find_matching(state.presets, remote)
            new = replace(
                new,
                configuration=match.configuration if match else remote,
                selected_preset_id=match.id if match else None,
                has_pending_edits=False,
            )
        new = replace(new, status=settled_status(new))
        return new, _restart_if_changed(state, new)

    idle = (
        state.in_flight is None
        and not state.has_pending_edits
        and state.status.kind not in (StatusKind.SAVED, StatusKind.APPLIED)
    )
    if not idle:
        return new, ()

    if not unchanged:
        # A newer selection was made; only refresh how it relates to the device
        if state.status.kind in (StatusKind.USING_PRESET, StatusKind.CAN_USE_PRESET):
            new = replace(new, status=settled_status(new))
        return new, ()

    match = find_matching(state.presets, remote)
    if match is not None:
        new = replace(new, configuration=match.configuration, selected_preset_id=match.id)
    new = replace(new, status=settled_status(new))
    return new, _restart_if_changed(state, new)


def _on_remote_fetch_failed(state, event):
    if _current_poll(state, event.request_id) is None:
        return state, ()
    new = replace(state, poll=None)
    if state.status == LOADING:
        new = replace(new, status=settled_status(new))
    return new, ()


def _on_request_suggestion(state, event):
    if not state.has_api_key or state.suggestion is not None:
        return state, ()
    new, request_id = _next_request(state)
    new = replace(new, suggestion=PendingRequest(request_id, state.edit_version))
    return new, (FetchSuggestion(request_id),)


def _on_suggestion_received(state, event):
    pending = state.suggestion
    if pending is None or pending.request_id != event.request_id:
        return state, ()
    adopt = pending.edit_version == state.edit_version and state.in_flight is None
    suggestion = event.suggestion
    return (
        replace(state, suggestion=None),
        (SavePreset(suggestion.theme, suggestion.configuration, adopt=adopt),),
    )


def _on_suggestion_failed(state, event):
    pending = state.suggestion
    if pending is None or pending.request_id != event.request_id:
        return state, ()
    return replace(state, suggestion=None), ()


_HANDLERS = {
    ToggleColor: _on_edit,
    ChangeValue: _on_edit,
    ChangeTab: _on_change_tab,
    SelectPreset: _on_select,
    PressPrimaryAction: _on_press,
    PushSucceeded: _on_push_succeeded,
    PushFailed: _on_push_failed,
    FallbackElapsed: _on_fallback,
    PresetSaved: _on_preset_saved,
    LongPressPreset: _on_long_press,
    DeleteConfirmed: _on_delete_confirmed,
    DeleteCancelled: _on_delete_cancelled,
    PollRemote: _on_poll,
    RemoteFetched: _on_remote_fetched,
    RemoteFetchFailed: _on_remote_fetch_failed,
    RequestSuggestion: _on_request_suggestion,
    SuggestionReceived: _on_suggestion_received,
    SuggestionFailed: _on_suggestion_failed,
}


def transition(state: ReconcilerState, event: Event):
    """Apply one event. Returns (new_state, effects)."""
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"unhandled event {event!r}")
    return handler(state, event)
