# Copyright (c) 2025 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module copies zip archive metadata from a reference archive onto a rebuilt one.

Archives produced by different build processes differ in entry timestamps, file modes and entry order
even when their contents are identical. Applying the metadata of the published archive to the rebuilt one
leaves only content differences for the comparison.
"""

import io
import logging
import os
import zipfile

logger: logging.Logger = logging.getLogger(__name__)


def normalize_archive_bytes(source: bytes, dest: bytes) -> bytes:
    """Return ``dest`` with the entry metadata and entry order of ``source``.

    For every entry of ``dest`` also present in ``source``, the modification time and external attribute
    bits are copied from ``source``. Entries are ordered as in ``source``; entries only present in
    ``dest`` follow in their original order. Entry contents and compression are kept.

    Raises
    ------
    zipfile.BadZipFile
        If one of the archives is not a zip file.
    """
    with zipfile.ZipFile(io.BytesIO(source)) as source_zip:
        source_infos = {info.filename: info for info in source_zip.infolist()}
        source_order = [info.filename for info in source_zip.infolist()]

    output = io.BytesIO()
    with zipfile.ZipFile(io.BytesIO(dest)) as dest_zip, zipfile.ZipFile(output, "w") as out_zip:
        dest_infos = {info.filename: info for info in dest_zip.infolist()}
        ordered = [name for name in source_order if name in dest_infos]
        ordered.extend(info.filename for info in dest_zip.infolist() if info.filename not in source_infos)

        for name in ordered:
            info = dest_infos[name]
            reference = source_infos.get(name)
            if reference is not None:
                info.date_time = reference.date_time
                info.external_attr = reference.external_attr
            else:
                logger.debug("Entry %s has no counterpart in the reference archive.", name)
            out_zip.writestr(info, dest_zip.read(info), compress_type=info.compress_type)

    return output.getvalue()


def normalize_archive(source_path: str | os.PathLike, dest_path: str | os.PathLike) -> None:
    """Rewrite the archive at ``dest_path`` with the entry metadata and order of the archive at ``source_path``.

    Raises
    ------
    OSError
        If an archive cannot be read or written.
    zipfile.BadZipFile
        If one of the archives is not a zip file.
    """
    with open(source_path, "rb") as source_file:
        source = source_file.read()
    with open(dest_path, "rb") as dest_file:
        dest = dest_file.read()

    normalized = normalize_archive_bytes(source, dest)

    with open(dest_path, "wb") as dest_file:
        dest_file.write(normalized)
    logger.info("Copied archive metadata from %s to %s.", source_path, dest_path)
