"""Recover TestRail case ids from a test's annotations or title."""

from __future__ import annotations

import logging
import re
from typing import Iterable

from railsync.models.results import Annotation

logger = logging.getLogger(__name__)

CASE_ANNOTATION_TYPE = "testRailId"
TITLE_SEPARATOR = "=>"

_CASE_ID_RE = re.compile(r"\d+")


def _parse_case_id(token: str | None) -> int | None:
    if token is None:
        return None
    token = token.strip()
    if not _CASE_ID_RE.fullmatch(token):
        return None
    return int(token)


def case_ids_from_annotations(
    annotations: Iterable[Annotation],
    annotation_type: str = CASE_ANNOTATION_TYPE,
) -> list[int]:
    """Integer descriptions of case-reference annotations, in order.

    Annotations with a missing or non-numeric description are skipped.
    """
    case_ids = []
    for annotation in annotations:
        if annotation.type != annotation_type:
            continue
        case_id = _parse_case_id(annotation.description)
        if case_id is None:
            logger.debug("Ignoring non-numeric %s annotation: %r",
                         annotation_type, annotation.description)
            continue
        case_ids.append(case_id)
    return case_ids


def case_ids_from_title(title: str, separator: str = TITLE_SEPARATOR) -> list[int]:
    """Case ids listed after the separator, e.g. ``"Login works => 101 102"``.

    Titles without the separator yield no ids.
    """
    if separator not in title:
        return []
    _, tail = title.split(separator, 1)
    case_ids = []
    for token in tail.split():
        case_id = _parse_case_id(token)
        if case_id is None:
            logger.debug("Ignoring non-numeric case id %r in title %r", token, title)
            continue
        case_ids.append(case_id)
    return case_ids


def extract_case_ids(
    title: str = "",
    annotations: Iterable[Annotation] = (),
    annotation_type: str = CASE_ANNOTATION_TYPE,
    separator: str = TITLE_SEPARATOR,
) -> list[int]:
    """All case ids for one test: annotations first, then the title.

    A case id named twice for the same test is kept once.
    """
    seen: set[int] = set()
    case_ids = []
    for case_id in (
        case_ids_from_annotations(annotations, annotation_type)
        + case_ids_from_title(title, separator)
    ):
        if case_id not in seen:
            seen.add(case_id)
            case_ids.append(case_id)
    return case_ids
