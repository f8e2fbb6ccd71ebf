# Copyright (c) 2022 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module contains the loader for YAML content."""

import logging
import os
from typing import Any

import yamale
from yamale.schema import Schema
from yaml import YAMLError

from provenator.errors import ParseError

logger: logging.Logger = logging.getLogger(__name__)


class YamlLoader:
    """The loader for loading and validating yaml content."""

    @staticmethod
    def _load_yaml_content(content: str, origin: str) -> list:
        """Load yaml content using the yamale library.

        We use the default pyyaml parser for yamale.

        When loading yaml content, this method reports the location where the error exists (if any).

        Parameters
        ----------
        content : str
            The raw yaml content.
        origin : str
            Where the content comes from, for error messages only.

        Returns
        -------
        list:
            The yaml content list as returned by yamale.

        Raises
        ------
        ParseError
            If the content is not valid YAML.
        """
        try:
            logger.debug("Loading yaml from %s", origin)
            return list(yamale.make_data(content=content))
        except YAMLError as error:
            if hasattr(error, "problem_mark"):
                mark = error.problem_mark
                err_pos = f"{mark.line + 1}:{mark.column + 1}"
                raise ParseError(f"Cannot parse yaml content of {origin} at {err_pos}.") from error
            raise ParseError(f"Cannot parse yaml content of {origin}.") from error

    @classmethod
    def validate_yaml_data(cls, schema: Schema, data: list) -> list[str]:
        """Validate the data according to the yaml schema using the yamale library.

        Parameters
        ----------
        schema : Schema
            The yamale schema.
        data : list
            The data loaded by using ``yamale.make_data``.

        Returns
        -------
        list[str]
            The validation errors, empty if the data is valid.
        """
        try:
            logger.debug("Validate data %s with schema %s.", str(data), str(schema.dict))
            yamale.validate(schema, data)
            return []
        except yamale.YamaleError as error:
            return [err_str for result in error.results for err_str in result.errors]

    @classmethod
    def load_schema(cls, path: os.PathLike | str) -> Schema:
        """Load a yamale schema from a file."""
        return yamale.make_schema(path)

    @classmethod
    def load(cls, content: bytes | str, schema: Schema | None = None, origin: str = "<content>") -> Any:
        """Load and return a Python object from yaml content.

        If ``schema`` is provided, this method validates the loaded content against the schema.

        Parameters
        ----------
        content : bytes | str
            The raw yaml content. Bytes are decoded as UTF-8.
        schema : Schema | None
            The schema to validate the yaml content against (default None).
        origin : str
            Where the content comes from, for error messages only.

        Returns
        -------
        Any
            The Python object from the yaml content.

        Raises
        ------
        ParseError
            If the content cannot be decoded or parsed, or does not follow the schema.
        """
        if isinstance(content, bytes):
            try:
                content = content.decode("utf-8")
            except UnicodeDecodeError as error:
                raise ParseError(f"The content of {origin} is not valid UTF-8.") from error

        loaded_data = YamlLoader._load_yaml_content(content, origin)
        if not loaded_data:
            raise ParseError(f"No yaml document found in {origin}.")

        if schema:
            errors = YamlLoader.validate_yaml_data(schema, loaded_data)
            if errors:
                for err_str in errors:
                    logger.error("\t%s", err_str)
                raise ParseError(f"The yaml content in {origin} is invalid: {'; '.join(errors)}")

        # yamale.make_data returns a list of tuples: (loaded_data, path).
        return loaded_data[0][0]
