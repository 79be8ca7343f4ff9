"""Content part validation and normalization.

A message is an ordered sequence of content parts. Each part is one variant of
a closed tagged union discriminated by ``type``:

- ``text``:  ``{"type": "text", "text": "..."}``
- ``image``: ``{"type": "image", "source": "url", "url": "..."}`` or
  ``{"type": "image", "source": "base64", "data": "...", "mime_type": "image/png"}``
  with optional ``alt``, ``width`` and ``height``
- ``file``:  ``{"type": "file", "url": "...", "name": "...", "mime_type": "..."}``

Unknown extra fields are dropped. Anything else (unknown type, missing or
forbidden field, wrong value type) is rejected with ``InvalidContentError``.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping, Sequence
from typing import Annotated, Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    Strict,
    StrictStr,
    StringConstraints,
    TypeAdapter,
    conint,
    field_validator,
    model_validator,
)
from pydantic import ValidationError as PydanticValidationError

from chatledger.shared.exceptions import InvalidContentError

NonBlankStr = Annotated[str, Strict(), StringConstraints(strip_whitespace=True, min_length=1)]
MimeType = Annotated[
    str,
    Strict(),
    StringConstraints(
        strip_whitespace=True, to_lower=True, min_length=3, pattern=r"^[\w.+-]+/[\w.+-]+$"
    ),
]
PositiveInt = conint(strict=True, gt=0)


class _Part(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class TextPart(_Part):
    type: Literal["text"] = "text"
    text: StrictStr

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("text must not be empty")
        return value


class ImagePart(_Part):
    type: Literal["image"] = "image"
    source: Literal["url", "base64"]
    url: NonBlankStr | None = None
    data: NonBlankStr | None = None
    mime_type: MimeType | None = Field(
        default=None, validation_alias=AliasChoices("mime_type", "mimeType")
    )
    alt: StrictStr | None = None
    width: PositiveInt | None = None
    height: PositiveInt | None = None

    @model_validator(mode="after")
    def check_source_fields(self) -> "ImagePart":
        if self.source == "url":
            if self.url is None:
                raise ValueError("image with source 'url' requires a url")
            if self.data is not None:
                raise ValueError("image with source 'url' must not carry data")
        else:
            if self.data is None or self.mime_type is None:
                raise ValueError("image with source 'base64' requires data and mime_type")
            if self.url is not None:
                raise ValueError("image with source 'base64' must not carry a url")
            try:
                base64.b64decode(self.data, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError("image data is not valid base64") from exc
        return self


class FilePart(_Part):
    type: Literal["file"] = "file"
    url: NonBlankStr
    name: NonBlankStr
    mime_type: MimeType = Field(validation_alias=AliasChoices("mime_type", "mimeType"))


ContentPart = Annotated[TextPart | ImagePart | FilePart, Field(discriminator="type")]

_part_adapter: TypeAdapter[TextPart | ImagePart | FilePart] = TypeAdapter(ContentPart)


def _errors(exc: PydanticValidationError) -> list[dict[str, Any]]:
    return [
        {"loc": list(err["loc"]), "type": err["type"], "msg": err["msg"]}
        for err in exc.errors(include_url=False, include_input=False, include_context=False)
    ]


def normalize(raw: Any) -> TextPart | ImagePart | FilePart:
    """Validate one content part and return its canonical form.

    Raises:
        InvalidContentError: If the part is malformed.
    """
    if isinstance(raw, TextPart | ImagePart | FilePart):
        raw = dump_part(raw)
    if not isinstance(raw, Mapping):
        raise InvalidContentError(
            "Content part must be an object",
            details={"errors": [{"loc": [], "type": "model_type", "msg": "expected an object"}]},
        )
    try:
        return _part_adapter.validate_python(dict(raw))
    except PydanticValidationError as exc:
        raise InvalidContentError("Invalid content part", details={"errors": _errors(exc)}) from exc


def normalize_message(raw_parts: Any) -> tuple[TextPart | ImagePart | FilePart, ...]:
    """Validate the whole content sequence of one message.

    The message is valid only if the sequence is non-empty and every part
    validates; the first failing part rejects the entire message.
    """
    if isinstance(raw_parts, str | bytes) or not isinstance(raw_parts, Sequence):
        raise InvalidContentError("Message content must be a list of content parts")
    if not raw_parts:
        raise InvalidContentError("Message content must not be empty")

    parts = []
    for index, raw in enumerate(raw_parts):
        try:
            parts.append(normalize(raw))
        except InvalidContentError as exc:
            raise InvalidContentError(
                f"Invalid content part at index {index}",
                details={"index": index, **exc.details},
            ) from exc
    return tuple(parts)


def dump_part(part: TextPart | ImagePart | FilePart) -> dict[str, Any]:
    """Serialize a part to its canonical structured payload."""
    return part.model_dump(exclude_none=True)


def dump_parts(parts: Sequence[TextPart | ImagePart | FilePart]) -> list[dict[str, Any]]:
    return [dump_part(part) for part in parts]


def first_text(parts: Sequence[TextPart | ImagePart | FilePart]) -> str | None:
    """Return the payload of the first text part, if any."""
    for part in parts:
        if isinstance(part, TextPart):
            return part.text
    return None
