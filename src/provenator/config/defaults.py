# Copyright (c) 2022 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""The process-wide ``defaults.ini`` values the service configuration is built from."""

import configparser
import logging
import shutil
from pathlib import Path

logger: logging.Logger = logging.getLogger(__name__)

#: The packaged configuration, always read before the user's file.
PACKAGED_DEFAULTS = Path(__file__).parent.joinpath("defaults.ini")


class ConfigParser(configparser.ConfigParser):
    """A ConfigParser that also reads multi-line list items."""

    def get_list(self, section: str, item: str, fallback: list[str] | None = None) -> list[str]:
        """Return the whitespace-separated values of an item, without repeats and in order of appearance.

        ``fallback`` is returned when the section or the item is missing, or when the item is empty.

        Examples
        --------
        >>> config_parser = ConfigParser()
        >>> config_parser.read_string("[rebuild]\\nmanifest_files =\\n  setup.py\\n  pyproject.toml\\n  setup.py")
        >>> config_parser.get_list("rebuild", "manifest_files")
        ['setup.py', 'pyproject.toml']
        >>> config_parser.get_list("rebuild", "images", fallback=["alpine"])
        ['alpine']
        """
        try:
            values = self.get(section, item).split()
        except (configparser.NoOptionError, configparser.NoSectionError) as error:
            logger.debug(error)
            values = []
        return list(dict.fromkeys(values)) or list(fallback or [])


defaults = ConfigParser()


def load_defaults(user_config_path: str) -> bool:
    """Load the packaged ``defaults.ini`` and, when it exists, the user's file on top of it.

    The defaults object is loaded once at process start and only read afterwards. Components do not read
    it while handling a request; they receive configuration dataclasses built from it.

    Returns
    -------
    bool
        False if one of the files cannot be parsed.
    """
    config_files = [PACKAGED_DEFAULTS]
    if user_config_path and Path(user_config_path).is_file():
        config_files.append(Path(user_config_path))

    try:
        defaults.read(config_files, encoding="utf8")
    except (configparser.Error, ValueError) as error:
        logger.error("Cannot read the configuration files %s: %s", [str(path) for path in config_files], error)
        return False
    return True


def create_defaults(output_dir: str) -> Path | None:
    """Write the packaged ``defaults.ini`` into ``output_dir`` for users to start their own configuration from.

    The file is copied rather than written by the parser, which would drop its comments.

    Returns
    -------
    Path | None
        The written file, or None if it could not be written.
    """
    dest_path = Path(output_dir).joinpath(PACKAGED_DEFAULTS.name)
    try:
        shutil.copyfile(PACKAGED_DEFAULTS, dest_path)
    except OSError as error:
        logger.error("Cannot write %s: %s", dest_path, error)
        return None
    logger.info("Wrote the default configuration to %s.", dest_path)
    return dest_path
