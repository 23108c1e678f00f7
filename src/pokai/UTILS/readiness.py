# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Waiting for asynchronously started processes: fixed settling delays and
bounded polling of a served endpoint.
"""
import logging
import time
from typing import Optional
from http.client import HTTPException
from urllib.error import HTTPError, URLError
from urllib.request import urlopen

import click
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from ..errors import ReadinessTimeoutError, ServerExitedError
from ..RUNNERS.command_runner import BackgroundJob

logger = logging.getLogger(__name__)


class NotServing(Exception):
    """The endpoint refused or dropped the connection."""


def countdown(seconds: int, sleep=time.sleep):
    """
    Waits a fixed number of seconds, printing the remaining time.
    """
    for remaining in range(int(seconds), 0, -1):
        click.echo(f"{remaining}... ", nl=False)
        sleep(1)
    click.echo("Done waiting.")


def answers_http(url: str, timeout: float = 2.0) -> bool:
    """
    Checks whether something answers HTTP at the URL.

    Any HTTP response, including error statuses, means the server is up.
    """
    try:
        with urlopen(url, timeout=timeout):
            return True
    except HTTPError:
        return True
    except (URLError, HTTPException, OSError) as e:
        logger.debug("Readiness check of %s failed: %s", url, e)
        return False


def wait_until_serving(url: str,
                       timeout: float = 60.0,
                       interval: float = 1.0,
                       job: Optional[BackgroundJob] = None,
                       check=answers_http,
                       sleep=time.sleep) -> int:
    """
    Polls an endpoint until it answers.

    :param url: Endpoint to poll.
    :param timeout: Seconds before giving up.
    :param interval: Seconds between attempts.
    :param job: Server job; if it exits the wait ends immediately.
    :param check: Callable taking the URL and returning True once serving.
    :param sleep: Sleep function used between attempts.
    :return: Number of attempts made.
    :raises ServerExitedError: If the job terminates first.
    :raises ReadinessTimeoutError: If the deadline passes.
    """
    retrying = Retrying(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        retry=retry_if_exception_type(NotServing),
        sleep=sleep,
    )
    try:
        for attempt in retrying:
            with attempt:
                if job is not None and not job.is_running():
                    raise ServerExitedError(job.returncode)
                if not check(url):
                    raise NotServing(url)
    except RetryError as e:
        raise ReadinessTimeoutError(url, timeout) from e
    return retrying.statistics.get("attempt_number", 1)
