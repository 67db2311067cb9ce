"""Listing wizard state machine.

The wizard is a pure function ``reduce(state, action) -> state``. Step
validators are pure as well: they read the draft and return a StepResult,
never raising and never mutating.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from colocapp.models.listing import Coordinates, ListingDraft, PhotoRef, PropertyType, SERVICE_KEYS


class WizardStep(IntEnum):
    LOCATION = 1
    HOUSING = 2
    DETAILS = 3
    PHOTOS = 4
    SERVICES = 5
    CONTACT = 6


FIRST_STEP = WizardStep.LOCATION
LAST_STEP = WizardStep.CONTACT


class WizardPhase(str, Enum):
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    SUBMIT_FAILED = "submit_failed"


class WizardState(BaseModel):
    draft: ListingDraft = Field(default_factory=ListingDraft)
    phase: WizardPhase = WizardPhase.EDITING
    submit_error: Optional[str] = None
    submitted_id: Optional[str] = None


@dataclass(frozen=True)
class StepResult:
    ok: bool
    message: Optional[str] = None


REQUIRED_FIELDS: dict[WizardStep, tuple[str, ...]] = {
    WizardStep.LOCATION: ("location.street", "location.postal_code", "location.city", "location.country"),
    WizardStep.HOUSING: ("housing.total_roommates", "housing.bathrooms", "housing.private_area"),
    WizardStep.DETAILS: (
        "details.property_type",
        "details.total_area",
        "details.rooms",
        "details.available_date",
        "details.rent",
        "details.title",
        "details.description",
    ),
    WizardStep.PHOTOS: (),
    WizardStep.SERVICES: (),
    WizardStep.CONTACT: ("contact.contact_name", "contact.contact_phone", "contact.contact_email"),
}

STEP_MESSAGES: dict[WizardStep, str] = {
    WizardStep.LOCATION: "Please fill in every location field.",
    WizardStep.HOUSING: "Please fill in every housing field.",
    WizardStep.DETAILS: "Please fill in every required detail.",
    WizardStep.PHOTOS: "Please add at least one photo.",
    WizardStep.CONTACT: "Please fill in every contact field.",
}

TERMS_MESSAGE = "Please accept the terms of use."
PROPERTY_TYPE_MESSAGE = "Please choose a property type: apartment, house or studio."

SECTION_STEPS = {
    "location": WizardStep.LOCATION,
    "housing": WizardStep.HOUSING,
    "details": WizardStep.DETAILS,
    "contact": WizardStep.CONTACT,
}


def _read(draft: ListingDraft, path: str) -> Any:
    section, name = path.split(".", 1)
    return getattr(getattr(draft, section), name)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def validate_step(draft: ListingDraft, step: int) -> StepResult:
    """Check one step's required fields and extra rules."""
    step = WizardStep(step)
    if any(_is_empty(_read(draft, path)) for path in REQUIRED_FIELDS[step]):
        return StepResult(False, STEP_MESSAGES[step])

    if step == WizardStep.DETAILS:
        allowed = {t.value for t in PropertyType}
        if draft.details.property_type.strip().lower() not in allowed:
            return StepResult(False, PROPERTY_TYPE_MESSAGE)
    elif step == WizardStep.PHOTOS and len(draft.photos) < 1:
        return StepResult(False, STEP_MESSAGES[step])
    elif step == WizardStep.CONTACT and draft.contact.accept_terms is not True:
        return StepResult(False, TERMS_MESSAGE)
    return StepResult(True)


def first_invalid_step(draft: ListingDraft) -> Optional[WizardStep]:
    """Lowest step whose validator fails, or None when the whole draft is valid."""
    for step in WizardStep:
        if not validate_step(draft, step).ok:
            return step
    return None


# Actions

@dataclass(frozen=True)
class EditField:
    """Set ``section.field`` (e.g. ``location.street``) to ``value``."""
    path: str
    value: Any


@dataclass(frozen=True)
class AddPhoto:
    uri: str
    durable: bool = False


@dataclass(frozen=True)
class RemovePhoto:
    index: int


@dataclass(frozen=True)
class SetService:
    key: str
    enabled: bool


@dataclass(frozen=True)
class ApplyAddress:
    """Overwrite every location field at once from a resolved address."""
    street: str
    postal_code: str
    city: str
    country: str
    coordinates: Optional[Coordinates] = None


@dataclass(frozen=True)
class NextStep:
    pass


@dataclass(frozen=True)
class PreviousStep:
    pass


@dataclass(frozen=True)
class SubmitStarted:
    pass


@dataclass(frozen=True)
class SubmitSucceeded:
    listing_id: str


@dataclass(frozen=True)
class SubmitFailed:
    message: str


Action = Union[
    EditField, AddPhoto, RemovePhoto, SetService, ApplyAddress,
    NextStep, PreviousStep, SubmitStarted, SubmitSucceeded, SubmitFailed,
]

EDITABLE_PHASES = (WizardPhase.EDITING, WizardPhase.SUBMIT_FAILED)


def _with_draft(state: WizardState, draft: ListingDraft, **changes: Any) -> WizardState:
    return state.model_copy(update={"draft": draft, **changes})


def _invalidate(draft: ListingDraft, step: WizardStep) -> ListingDraft:
    return draft.model_copy(update={"completed_steps": draft.completed_steps - {int(step)}})


def _edit_field(draft: ListingDraft, path: str, value: Any) -> ListingDraft:
    section_name, _, name = path.partition(".")
    if section_name not in SECTION_STEPS:
        raise ValueError(f"Unknown draft section: {section_name!r}")
    section = getattr(draft, section_name)
    if name not in type(section).model_fields:
        raise ValueError(f"Unknown draft field: {path!r}")
    updated = draft.model_copy(update={section_name: section.model_copy(update={name: value})})
    return _invalidate(updated, SECTION_STEPS[section_name])


def reduce(state: WizardState, action: Action) -> WizardState:
    """Apply one action. Returns the same object when the action is ignored."""
    draft = state.draft

    if isinstance(action, SubmitSucceeded):
        if state.phase != WizardPhase.SUBMITTING:
            return state
        return state.model_copy(update={
            "phase": WizardPhase.SUBMITTED,
            "submit_error": None,
            "submitted_id": action.listing_id,
        })

    if isinstance(action, SubmitFailed):
        if state.phase != WizardPhase.SUBMITTING:
            return state
        return state.model_copy(update={"phase": WizardPhase.SUBMIT_FAILED, "submit_error": action.message})

    # Everything below only applies while the draft is editable
    if state.phase not in EDITABLE_PHASES:
        return state

    if isinstance(action, EditField):
        return _with_draft(state, _edit_field(draft, action.path, action.value))

    if isinstance(action, AddPhoto):
        photos = [*draft.photos, PhotoRef(uri=action.uri, durable=action.durable)]
        return _with_draft(state, _invalidate(draft.model_copy(update={"photos": photos}), WizardStep.PHOTOS))

    if isinstance(action, RemovePhoto):
        if not 0 <= action.index < len(draft.photos):
            return state
        photos = [p for i, p in enumerate(draft.photos) if i != action.index]
        return _with_draft(state, _invalidate(draft.model_copy(update={"photos": photos}), WizardStep.PHOTOS))

    if isinstance(action, SetService):
        if action.key not in SERVICE_KEYS:
            raise ValueError(f"Unknown service key: {action.key!r}")
        services = {**draft.services, action.key: bool(action.enabled)}
        return _with_draft(state, draft.model_copy(update={"services": services}))

    if isinstance(action, ApplyAddress):
        location = draft.location.model_copy(update={
            "street": action.street,
            "postal_code": action.postal_code,
            "city": action.city,
            "country": action.country,
            "coordinates": action.coordinates,
        })
        return _with_draft(state, _invalidate(draft.model_copy(update={"location": location}), WizardStep.LOCATION))

    if isinstance(action, NextStep):
        result = validate_step(draft, draft.current_step)
        if not result.ok:
            return _with_draft(state, draft.model_copy(update={"validation_error": result.message}))
        updated = draft.model_copy(update={
            "current_step": min(draft.current_step + 1, LAST_STEP),
            "validation_error": None,
            "completed_steps": draft.completed_steps | {draft.current_step},
        })
        return _with_draft(state, updated)

    if isinstance(action, PreviousStep):
        updated = draft.model_copy(update={
            "current_step": max(draft.current_step - 1, FIRST_STEP),
            "validation_error": None,
        })
        return _with_draft(state, updated)

    if isinstance(action, SubmitStarted):
        return _start_submission(state)

    raise TypeError(f"Unsupported wizard action: {action!r}")


def _start_submission(state: WizardState) -> WizardState:
    draft = state.draft
    if draft.current_step != LAST_STEP:
        return state

    # Earlier steps are trusted once passed; steps edited since then are checked again
    for step in range(FIRST_STEP, LAST_STEP):
        if step in draft.completed_steps:
            continue
        result = validate_step(draft, step)
        if not result.ok:
            return _with_draft(state, draft.model_copy(update={"validation_error": result.message}))

    result = validate_step(draft, LAST_STEP)
    if not result.ok:
        return _with_draft(state, draft.model_copy(update={"validation_error": result.message}))

    updated = draft.model_copy(update={
        "validation_error": None,
        "completed_steps": draft.completed_steps | {int(LAST_STEP)},
    })
    return state.model_copy(update={
        "draft": updated,
        "phase": WizardPhase.SUBMITTING,
        "submit_error": None,
    })
