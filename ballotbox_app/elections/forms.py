from __future__ import annotations

import datetime

from django import forms
from django.utils import timezone

from elections.exceptions import ValidationError
from elections.models import Election

# The existing client sends camelCase keys.
_FIELD_ALIASES: dict[str, str] = {
    "startDate": "start_datetime",
    "endDate": "end_datetime",
    "votingType": "voting_type",
    "isAnonymous": "is_anonymous",
}


def normalize_keys(data: dict[str, object]) -> dict[str, object]:
    return {_FIELD_ALIASES.get(key, key): value for key, value in data.items()}


class _VotingTypeField(forms.ChoiceField):
    def to_python(self, value):
        return super().to_python(value).strip().lower()


class _ElectionFieldsMixin:
    def _aware(self, name: str) -> None:
        value = self.cleaned_data.get(name)
        if isinstance(value, datetime.datetime) and timezone.is_naive(value):
            self.cleaned_data[name] = timezone.make_aware(value)

    def clean_settings(self) -> dict[str, object] | None:
        value = self.cleaned_data.get("settings")
        if value is None:
            return None
        if not isinstance(value, dict):
            raise forms.ValidationError("Settings must be an object")
        return value

    def clean(self) -> dict[str, object]:
        cleaned = super().clean()
        self._aware("start_datetime")
        self._aware("end_datetime")
        return cleaned


class ElectionCreateForm(_ElectionFieldsMixin, forms.Form):
    title = forms.CharField(min_length=3, max_length=200, strip=True)
    description = forms.CharField(min_length=10, max_length=5000, strip=True)
    start_datetime = forms.DateTimeField()
    end_datetime = forms.DateTimeField()
    voting_type = _VotingTypeField(choices=Election.VotingType.choices)
    is_anonymous = forms.BooleanField(required=False)
    settings = forms.JSONField(required=False)


class ElectionUpdateForm(_ElectionFieldsMixin, forms.Form):
    title = forms.CharField(min_length=3, max_length=200, strip=True, required=False)
    description = forms.CharField(min_length=10, max_length=5000, strip=True, required=False)
    start_datetime = forms.DateTimeField(required=False)
    end_datetime = forms.DateTimeField(required=False)
    voting_type = _VotingTypeField(choices=Election.VotingType.choices, required=False)
    is_anonymous = forms.BooleanField(required=False)
    settings = forms.JSONField(required=False)


class CandidateForm(forms.Form):
    name = forms.CharField(min_length=2, max_length=100, strip=True)
    description = forms.CharField(max_length=1000, strip=True, required=False)
    photo = forms.URLField(max_length=2048, required=False)
    position = forms.IntegerField(min_value=0, required=False)
    metadata = forms.JSONField(required=False)

    def clean_metadata(self) -> dict[str, object]:
        value = self.cleaned_data.get("metadata")
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise forms.ValidationError("Metadata must be an object")
        return value


class VoteForm(forms.Form):
    candidate_id = forms.IntegerField(min_value=1)
    rank = forms.IntegerField(required=False)


def _form_errors(form: forms.Form, *, prefix: str = "") -> list[dict[str, str]]:
    return [
        {"field": f"{prefix}{field}", "message": str(message)}
        for field, messages in form.errors.items()
        for message in messages
    ]


def _raise_for(errors: list[dict[str, str]]) -> None:
    if errors:
        raise ValidationError(errors[0]["message"], errors=errors)


def clean_election_create(data: dict[str, object]) -> dict[str, object]:
    data = normalize_keys(data)
    form = ElectionCreateForm(data)
    errors = [] if form.is_valid() else _form_errors(form)

    raw_candidates = data.get("candidates")
    candidates: list[dict[str, object]] = []
    if not isinstance(raw_candidates, list) or len(raw_candidates) < 2:
        errors.append({"field": "candidates", "message": "At least 2 candidates are required"})
    else:
        for index, raw in enumerate(raw_candidates):
            candidate_form = CandidateForm(raw if isinstance(raw, dict) else {})
            if candidate_form.is_valid():
                candidates.append(candidate_form.cleaned_data)
            else:
                errors.extend(_form_errors(candidate_form, prefix=f"candidates[{index}]."))

    _raise_for(errors)

    cleaned = dict(form.cleaned_data)
    cleaned["candidates"] = candidates
    return cleaned


def clean_election_update(data: dict[str, object]) -> dict[str, object]:
    """Validate a partial update; only keys present in the payload come back."""

    data = normalize_keys(data)
    form = ElectionUpdateForm(data)
    if not form.is_valid():
        _raise_for(_form_errors(form))

    changes: dict[str, object] = {}
    for key, value in data.items():
        if key in form.fields:
            value = form.cleaned_data.get(key)
            if value is None or value == "":
                continue
            changes[key] = value
        else:
            # Left for the lifecycle manager to reject (e.g. "status").
            changes[key] = value
    return changes


def clean_vote(data: dict[str, object]) -> dict[str, object]:
    data = {"candidate_id": data.get("candidateId", data.get("candidate_id")), "rank": data.get("rank")}
    form = VoteForm(data)
    if not form.is_valid():
        _raise_for(_form_errors(form))
    return form.cleaned_data
