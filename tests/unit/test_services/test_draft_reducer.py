"""Tests for the wizard reducer and step validators."""

import pytest

from colocapp.models.listing import Coordinates, ListingDraft
from colocapp.services.draft_reducer import (
    AddPhoto,
    ApplyAddress,
    EditField,
    NextStep,
    PreviousStep,
    RemovePhoto,
    SetService,
    SubmitFailed,
    SubmitStarted,
    SubmitSucceeded,
    TERMS_MESSAGE,
    WizardPhase,
    WizardState,
    WizardStep,
    first_invalid_step,
    reduce,
    validate_step,
)
from tests.utils.factories import create_complete_draft


def _state(draft=None, **kwargs):
    return WizardState(draft=draft or ListingDraft(), **kwargs)


@pytest.mark.unit
def test_empty_draft_fails_location_step():
    result = validate_step(ListingDraft(), WizardStep.LOCATION)

    assert not result.ok
    assert result.message == "Please fill in every location field."


@pytest.mark.unit
def test_validator_is_idempotent_and_pure():
    draft = create_complete_draft()
    draft.contact.contact_phone = ""
    snapshot = draft.model_dump()

    first = validate_step(draft, WizardStep.CONTACT)
    second = validate_step(draft, WizardStep.CONTACT)

    assert first == second
    assert draft.model_dump() == snapshot


@pytest.mark.unit
def test_whitespace_only_field_counts_as_empty():
    draft = create_complete_draft()
    draft.location.city = "   "

    assert not validate_step(draft, WizardStep.LOCATION).ok


@pytest.mark.unit
def test_photos_step_requires_one_photo():
    assert not validate_step(create_complete_draft(photos=[]), WizardStep.PHOTOS).ok
    assert validate_step(create_complete_draft(photos=["file:///a.jpg"]), WizardStep.PHOTOS).ok


@pytest.mark.unit
def test_services_step_always_passes():
    assert validate_step(ListingDraft(), WizardStep.SERVICES).ok


@pytest.mark.unit
def test_details_step_rejects_unknown_property_type():
    draft = create_complete_draft()
    draft.details.property_type = "castle"

    result = validate_step(draft, WizardStep.DETAILS)

    assert not result.ok
    assert "apartment" in result.message


@pytest.mark.unit
def test_contact_step_requires_terms():
    draft = create_complete_draft()
    draft.contact.accept_terms = False

    assert validate_step(draft, WizardStep.CONTACT).message == TERMS_MESSAGE


@pytest.mark.unit
def test_first_invalid_step():
    draft = create_complete_draft()
    assert first_invalid_step(draft) is None

    draft.housing.bathrooms = ""
    assert first_invalid_step(draft) == WizardStep.HOUSING


@pytest.mark.unit
def test_next_blocked_keeps_data_and_sets_error():
    state = reduce(_state(), EditField("location.street", "10 Rue de France"))

    state = reduce(state, NextStep())

    assert state.draft.current_step == 1
    assert state.draft.validation_error == "Please fill in every location field."
    assert state.draft.location.street == "10 Rue de France"


@pytest.mark.unit
def test_next_advances_and_marks_step_complete():
    state = _state()
    for path, value in [
        ("location.street", "10 Rue de France"),
        ("location.postal_code", "06000"),
        ("location.city", "Nice"),
        ("location.country", "France"),
    ]:
        state = reduce(state, EditField(path, value))

    state = reduce(state, NextStep())

    assert state.draft.current_step == 2
    assert state.draft.validation_error is None
    assert 1 in state.draft.completed_steps


@pytest.mark.unit
def test_previous_does_not_validate_and_clamps_at_one():
    state = _state(create_complete_draft(current_step=2))
    state = reduce(state, EditField("housing.bathrooms", ""))

    state = reduce(state, PreviousStep())
    assert state.draft.current_step == 1
    state = reduce(state, PreviousStep())
    assert state.draft.current_step == 1


@pytest.mark.unit
def test_next_on_last_step_stays_on_last_step():
    state = reduce(_state(create_complete_draft(current_step=6)), NextStep())

    assert state.draft.current_step == 6


@pytest.mark.unit
def test_reducer_does_not_mutate_previous_state():
    before = _state(create_complete_draft(current_step=3))

    after = reduce(before, EditField("details.title", "Changed"))

    assert before.draft.details.title == "Sunny room near the sea"
    assert after.draft.details.title == "Changed"


@pytest.mark.unit
def test_editing_a_field_unmarks_its_step():
    state = _state(create_complete_draft(current_step=6))

    state = reduce(state, EditField("location.city", "Antibes"))

    assert 1 not in state.draft.completed_steps
    assert 2 in state.draft.completed_steps


@pytest.mark.unit
def test_unknown_field_path_raises():
    with pytest.raises(ValueError):
        reduce(_state(), EditField("location.planet", "Mars"))
    with pytest.raises(ValueError):
        reduce(_state(), EditField("pricing.rent", "1"))


@pytest.mark.unit
def test_photos_add_and_remove_keep_order():
    state = _state()
    for uri in ("file:///a.jpg", "file:///b.jpg", "file:///c.jpg"):
        state = reduce(state, AddPhoto(uri))

    state = reduce(state, RemovePhoto(1))
    state = reduce(state, RemovePhoto(7))

    assert [p.uri for p in state.draft.photos] == ["file:///a.jpg", "file:///c.jpg"]


@pytest.mark.unit
def test_set_service():
    state = reduce(_state(), SetService("wifi", True))

    assert state.draft.services["wifi"] is True
    assert len(state.draft.services) == 12
    with pytest.raises(ValueError):
        reduce(state, SetService("jacuzzi", True))


@pytest.mark.unit
def test_apply_address_overwrites_location_at_once():
    state = reduce(_state(), EditField("location.street", "10 rue de fr"))

    state = reduce(state, ApplyAddress("10 Rue de France", "06000", "Nice", "France", Coordinates(lat=43.69, lng=7.26)))

    location = state.draft.location
    assert (location.street, location.postal_code, location.city, location.country) == (
        "10 Rue de France", "06000", "Nice", "France"
    )
    assert location.coordinates.lat == 43.69


@pytest.mark.unit
def test_submit_blocked_when_contact_phone_missing_then_allowed():
    draft = create_complete_draft(current_step=6)
    draft.contact.contact_phone = ""
    draft.contact.accept_terms = False
    state = _state(draft)

    state = reduce(state, SubmitStarted())
    assert state.phase == WizardPhase.EDITING
    assert state.draft.validation_error == "Please fill in every contact field."

    state = reduce(state, EditField("contact.contact_phone", "0612345678"))
    state = reduce(state, EditField("contact.accept_terms", True))
    state = reduce(state, SubmitStarted())

    assert state.phase == WizardPhase.SUBMITTING
    assert state.draft.validation_error is None


@pytest.mark.unit
def test_submit_only_from_last_step():
    state = reduce(_state(create_complete_draft(current_step=5)), SubmitStarted())

    assert state.phase == WizardPhase.EDITING


@pytest.mark.unit
def test_submit_rechecks_steps_edited_after_passing():
    state = _state(create_complete_draft(current_step=6))
    state = reduce(state, EditField("location.street", ""))

    state = reduce(state, SubmitStarted())

    assert state.phase == WizardPhase.EDITING
    assert state.draft.validation_error == "Please fill in every location field."


@pytest.mark.unit
def test_actions_ignored_while_submitting():
    submitting = reduce(_state(create_complete_draft()), SubmitStarted())

    assert reduce(submitting, EditField("details.title", "x")) is submitting
    assert reduce(submitting, PreviousStep()) is submitting
    assert reduce(submitting, SubmitStarted()) is submitting


@pytest.mark.unit
def test_submit_outcomes():
    submitting = reduce(_state(create_complete_draft()), SubmitStarted())

    failed = reduce(submitting, SubmitFailed("boom"))
    assert failed.phase == WizardPhase.SUBMIT_FAILED
    assert failed.submit_error == "boom"
    # Draft stays editable after a failure
    assert reduce(failed, EditField("details.title", "Retry")).draft.details.title == "Retry"

    done = reduce(submitting, SubmitSucceeded("L1"))
    assert done.phase == WizardPhase.SUBMITTED
    assert done.submitted_id == "L1"
    assert reduce(done, PreviousStep()) is done


@pytest.mark.unit
def test_outcome_actions_ignored_outside_submission():
    state = _state()

    assert reduce(state, SubmitSucceeded("L1")) is state
    assert reduce(state, SubmitFailed("x")) is state
