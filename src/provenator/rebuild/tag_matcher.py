# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module finds the source tag a release version was built from."""

import logging
import re
from collections.abc import Iterable

logger: logging.Logger = logging.getLogger(__name__)


def version_tag_pattern(version: str) -> re.Pattern:
    """Return the pattern of the tags that name a version.

    A tag matches when it is made of an optional prefix ending in a non-digit, the version itself, and an
    optional suffix that does not start a pre-release (``a``, ``b``, ``rc``), dev, post or patch version
    (``d``, ``p``, ``-``, ``.``).

    Examples
    --------
    >>> pattern = version_tag_pattern("3.3")
    >>> [bool(pattern.match(tag)) for tag in ["3.3", "v3.3", "idna-3.3", "3.3.1", "3.3a1", "3.3.dev0", "13.3"]]
    [True, True, True, False, False, False, False]
    """
    return re.compile(rf"^(.*[^0-9])?{re.escape(version)}([^abdpr\-.].*)?$")


def find_tag(tags: Iterable[str], version: str) -> str | None:
    """Return the first tag, in listing order, that names the version, or None if there is none."""
    pattern = version_tag_pattern(version)
    for tag in tags:
        if pattern.match(tag):
            logger.debug("Tag %s matches version %s.", tag, version)
            return tag
    return None
