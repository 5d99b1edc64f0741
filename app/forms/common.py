import re
from datetime import datetime

from flask import request
from werkzeug.datastructures import MultiDict
from wtforms import Field

from app.utils.errors import ValidationError

TAG_RE = re.compile(r"<[^>]*>")
CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_input(text):
    """Strip markup and control characters from plain-text input"""
    if not text:
        return text
    text = TAG_RE.sub("", str(text))
    text = CONTROL_RE.sub("", text)
    return " ".join(text.split())


class ListField(Field):
    """Accepts a JSON array; each element becomes one item of data"""

    def process_formdata(self, valuelist):
        self.data = list(valuelist)


class DictField(Field):
    """Accepts a JSON object"""

    def process_formdata(self, valuelist):
        if valuelist:
            if not isinstance(valuelist[0], dict):
                self.data = None
                raise ValueError(self.gettext("Must be an object."))
            self.data = valuelist[0]


class IsoDateTimeField(Field):
    """ISO-8601 timestamp; values without an offset are left naive"""

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        value = valuelist[0]
        try:
            self.data = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            self.data = None
            raise ValueError(self.gettext("Not a valid ISO-8601 datetime."))


def form_errors(form):
    """Flatten form errors into a field-level list"""
    return [
        {"field": field, "message": message}
        for field, messages in form.errors.items()
        for message in messages
    ]


def get_json_payload():
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError(
            "Request body must be a JSON object",
            [{"field": "body", "message": "Expected a JSON object"}],
        )
    return payload


def load_json_form(form_class, payload=None, **kwargs):
    """
    Bind a JSON body to a form and validate it. CSRF is off because these
    endpoints authenticate with bearer tokens or magic links, not cookies.
    """
    if payload is None:
        payload = get_json_payload()
    # null means "not provided"
    formdata = MultiDict({k: v for k, v in payload.items() if v is not None})
    form = form_class(formdata=formdata, meta={"csrf": False}, **kwargs)
    form.payload = payload
    if not form.validate():
        raise ValidationError("Validation failed", form_errors(form))
    return form


def provided(form, name):
    """True when the request body contained a non-null value for a field"""
    return form.payload.get(name) is not None
