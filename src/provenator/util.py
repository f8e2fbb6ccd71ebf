# Copyright (c) 2022 - 2025, Oracle and/or its affiliates. All rights reserved.
# Licensed under the Universal Permissive License v 1.0 as shown at https://oss.oracle.com/licenses/upl/.

"""This module includes utilities functions for Provenator."""

import hashlib
import logging
import time
import urllib.parse
from collections.abc import Sequence
from datetime import datetime
from typing import TypeVar

import requests
from requests.models import Response

logger: logging.Logger = logging.getLogger(__name__)

JsonType = int | float | str | None | bool | list["JsonType"] | dict[str, "JsonType"]
T = TypeVar("T", bound=JsonType)


def sha256_hexdigest(content: bytes) -> str:
    """Return the SHA-256 hex digest of exactly the passed bytes.

    Examples
    --------
    >>> sha256_hexdigest(b"")
    'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    """
    return hashlib.sha256(content).hexdigest()


def send_get_http_raw(
    url: str,
    headers: dict | None = None,
    timeout: int = 10,
    error_retries: int = 5,
    allow_redirects: bool = True,
    stream: bool = False,
) -> Response | None:
    """Send the GET HTTP request with the given url and headers.

    This method also handle logging when the API server return error status code.

    Parameters
    ----------
    url : str
        The url of the request.
    headers : dict | None
        The dict that describes the headers of the request.
    timeout: int
        The request timeout.
    error_retries: int
        How many times a rate-limited request is re-sent.
    allow_redirects: bool
        Whether to allow redirects. Default: True.
    stream: bool
        Indicates whether the response should be immediately downloaded (False) or streamed (True). Default: False.

    Returns
    -------
    Response | None
        A Response object with a status code of 200 (OK). Otherwise, the request has failed and ``None``
        will be returned.
    """
    logger.debug("GET - %s", url)
    retry_counter = error_retries
    try:
        response = requests.get(
            url=url, headers=headers, timeout=timeout, allow_redirects=allow_redirects, stream=stream
        )
    except requests.exceptions.RequestException as error:
        logger.debug(error)
        return None
    while response.status_code != 200:
        logger.debug(
            "Receiving error code %s from server.",
            response.status_code,
        )
        if retry_counter <= 0:
            logger.debug("Maximum retries reached: %s", error_retries)
            return None
        if response.status_code == 403:
            check_rate_limit(response)
        else:
            return None
        retry_counter = retry_counter - 1
        try:
            response = requests.get(
                url=url, headers=headers, timeout=timeout, allow_redirects=allow_redirects, stream=stream
            )
        except requests.exceptions.RequestException as error:
            logger.debug(error)
            return None

    return response


def send_get_http(url: str, headers: dict | None = None, timeout: int = 10, error_retries: int = 5) -> JsonType:
    """Send the GET HTTP request with the given url and headers and return the decoded JSON body.

    Parameters
    ----------
    url : str
        The url of the request.
    headers : dict | None
        The dictionary to be included as the header of the request.
    timeout: int
        The request timeout.
    error_retries: int
        How many times a rate-limited request is re-sent.

    Returns
    -------
    JsonType
        The response's JSON data or ``None`` if there is an error.
    """
    response = send_get_http_raw(url, headers=headers, timeout=timeout, error_retries=error_retries)
    if response is None:
        return None
    try:
        data: JsonType = response.json()
    except requests.exceptions.JSONDecodeError as error:
        logger.debug("Failed to decode the response of %s: %s", url, error)
        return None
    return data


def check_rate_limit(response: Response) -> None:
    """Check the remaining calls limit to GitHub API and wait accordingly.

    Parameters
    ----------
    response : Response
        The latest response from GitHub API.
    """
    if "X-RateLimit-Remaining" in response.headers:
        remains = int(response.headers["X-RateLimit-Remaining"])
    else:
        remains = 2

    if remains <= 1:
        rate_limit_reset = response.headers.get("X-RateLimit-Reset", default="")

        if not rate_limit_reset:
            return

        try:
            reset_time = float(rate_limit_reset)
        except ValueError:
            logger.critical("X-RateLimit-Reset=%s in the response's header is not a valid number.", rate_limit_reset)
            return

        time_to_sleep: float = reset_time - datetime.timestamp(datetime.now()) + 1
        if time_to_sleep > 0:
            logger.info("Exceeding rate limit. Sleep for %s seconds", time_to_sleep)
            time.sleep(time_to_sleep)


def construct_query(params: dict) -> str:
    """Construct a URL query from the provided keywords params.

    Examples
    --------
    >>> construct_query({"page":1,"per_page":100})
    'page=1&per_page=100'
    """
    return urllib.parse.urlencode(params)


def json_extract(entry: JsonType, keys: Sequence[str | int], type_: type[T]) -> T | None:
    """Return the value found by following the depth-sequential keys inside a JSON structure.

    Parameters
    ----------
    entry: JsonType
        An entry point into a JSON structure.
    keys: Sequence[str | int]
        The sequence of depth-sequential keys within the JSON. Can be dict keys or list indices.
    type_: type[T]
        The type the found value must have.

    Returns
    -------
    T | None:
        The found value, or ``None`` if a key is missing or the value has another type.

    Examples
    --------
    >>> json_extract({"info": {"version": "3.3"}}, ["info", "version"], str)
    '3.3'
    >>> json_extract({"urls": []}, ["urls", 0], dict) is None
    True
    """
    current = entry
    for key in keys:
        if isinstance(current, dict) and isinstance(key, str) and key in current:
            current = current[key]
        elif isinstance(current, list) and isinstance(key, int) and 0 <= key < len(current):
            current = current[key]
        else:
            logger.debug("Cannot follow key '%s' in entry of type %s.", key, type(current).__name__)
            return None

    if isinstance(current, type_):
        return current

    logger.debug("Found value of incorrect type: %s instead of %s.", type(current), type_)
    return None
