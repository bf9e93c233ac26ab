"""Priority metadata embedded in the remote task notes field.

The remote service only stores free-text notes, so the local priority travels
inside them as an HTML-comment tag with a small JSON payload:

    <!--gtm:{"priority":1}-->
    the user's own notes

A task with the default priority carries no tag at all. Nothing outside this
module builds or parses the tag.
"""

import logging
import re
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, ValidationError

from taskmirror.domain.task import DEFAULT_PRIORITY, Priority


logger = logging.getLogger(__name__)

METADATA_PREFIX = "<!--gtm:"
METADATA_SUFFIX = "-->"

# The newline separating the tag from the user's notes belongs to the tag.
_METADATA_PATTERN = re.compile(re.escape(METADATA_PREFIX) + r"(.+?)" + re.escape(METADATA_SUFFIX) + r"\n?")


class TaskMetadata(BaseModel):
    """Payload carried inside the tag. Unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    priority: Priority = DEFAULT_PRIORITY


class DecodedNotes(NamedTuple):
    priority: Priority
    clean_notes: str


def strip_metadata(notes: str) -> str:
    """Remove every metadata tag from ``notes``."""
    return _METADATA_PATTERN.sub("", notes)


def encode_metadata(notes: str, priority: Priority | int) -> str:
    """Fold ``priority`` into ``notes`` for the remote notes field.

    Any existing tag is stripped first, so encoding never stacks tags.
    The default priority is represented by the absence of a tag.
    """
    clean_notes = strip_metadata(notes)
    priority = Priority(priority)

    if priority == DEFAULT_PRIORITY:
        return clean_notes

    tag = f"{METADATA_PREFIX}{TaskMetadata(priority=priority).model_dump_json()}{METADATA_SUFFIX}"
    return f"{tag}\n{clean_notes}" if clean_notes else tag


def decode_metadata(notes: str | None) -> DecodedNotes:
    """Split remote notes into the local priority and the user-visible notes.

    Malformed metadata never raises: it degrades to the default priority with
    the tag removed.
    """
    if not notes:
        return DecodedNotes(DEFAULT_PRIORITY, "")

    match = _METADATA_PATTERN.search(notes)
    if match is None:
        return DecodedNotes(DEFAULT_PRIORITY, notes)

    clean_notes = strip_metadata(notes)
    try:
        metadata = TaskMetadata.model_validate_json(match.group(1))
    except ValidationError as e:
        logger.warning("Ignoring malformed task metadata: %s", e.errors(include_url=False))
        return DecodedNotes(DEFAULT_PRIORITY, clean_notes)

    return DecodedNotes(metadata.priority, clean_notes)
