"""Field-level validation for domain writes.

A ``Changeset`` holds the proposed changes for one model together with the
errors found while validating them. Errors keep the message template and its
interpolation props apart, e.g. ``("should be at most %{count} character(s)",
{"count": 255, "validation": "length"})``, so callers decide how to render them.
"""

import re
from typing import Any, Iterable


class Changeset:
    def __init__(self, data: Any = None, changes: dict | None = None, permitted: Iterable[str] | None = None):
        self.data = data
        changes = dict(changes or {})
        if permitted is not None:
            allowed = set(permitted)
            changes = {k: v for k, v in changes.items() if k in allowed}
        self.changes = changes
        self.errors: list[tuple[str, tuple[str, dict]]] = []

    @property
    def valid(self) -> bool:
        return not self.errors

    def get_field(self, field: str, default=None):
        if field in self.changes:
            return self.changes[field]
        if self.data is not None:
            return getattr(self.data, field, default)
        return default

    def put_change(self, field: str, value) -> "Changeset":
        self.changes[field] = value
        return self

    def add_error(self, field: str, message: str, **props) -> "Changeset":
        self.errors.append((field, (message, props)))
        return self

    def has_error(self, field: str) -> bool:
        return any(f == field for f, _ in self.errors)

    def validate_required(self, fields: Iterable[str]) -> "Changeset":
        for field in fields:
            value = self.get_field(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                self.add_error(field, "can't be blank", validation="required")
        return self

    def validate_length(self, field: str, *, min: int | None = None, max: int | None = None) -> "Changeset":
        value = self.get_field(field)
        # blank values are validate_required's business
        if not isinstance(value, str) or self.has_error(field):
            return self
        if min is not None and len(value) < min:
            self.add_error(field, "should be at least %{count} character(s)", count=min, validation="length")
        elif max is not None and len(value) > max:
            self.add_error(field, "should be at most %{count} character(s)", count=max, validation="length")
        return self

    def validate_format(self, field: str, pattern: str | re.Pattern) -> "Changeset":
        value = self.get_field(field)
        if not isinstance(value, str) or self.has_error(field):
            return self
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        if not regex.match(value):
            self.add_error(field, "has invalid format", validation="format")
        return self

    def validate_inclusion(self, field: str, values: Iterable) -> "Changeset":
        value = self.get_field(field)
        if value is None or self.has_error(field):
            return self
        if value not in set(values):
            self.add_error(field, "is invalid", validation="inclusion")
        return self

    def apply_to(self, model):
        for field, value in self.changes.items():
            setattr(model, field, value)
        return model

    def __repr__(self) -> str:
        return f"<Changeset valid={self.valid} changes={self.changes!r} errors={self.errors!r}>"
