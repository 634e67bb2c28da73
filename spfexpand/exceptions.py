# -*- coding: utf-8 -*-
"""Exceptions raised while expanding SPF policies"""

from __future__ import annotations

from typing import Optional, Union

import dns.exception

"""Copyright 2019-2025 Sean Whalen

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

   https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License."""


class SPFError(Exception):
    """Raised when a fatal SPF error occurs"""

    def __init__(self, msg: str, data: Optional[dict] = None):
        """
        Args:
            msg (str): The error message
            data (dict): A dictionary of data to include in the output
        """
        self.data = data
        Exception.__init__(self, msg)


class _SPFWarning(Exception):
    """Raised when a non-fatal SPF error occurs"""


class _SPFMissingRecords(_SPFWarning):
    """Raised when a mechanism in a ``SPF`` record is missing the requested A/AAAA or MX records"""


class _SPFMacroDomain(_SPFWarning):
    """Raised when a domain-spec needs macro expansion before it can be resolved"""


class SPFRecordNotFound(SPFError):
    """Raised when an SPF record could not be found for the queried domain"""

    def __init__(self, error: Union[Exception, str], domain: str):
        if isinstance(error, dns.exception.Timeout):
            error.kwargs["timeout"] = round(error.kwargs["timeout"], 1)
        self.error = error
        self.domain = domain
        SPFError.__init__(self, str(error), data={"domain": domain})

    def __str__(self):
        return str(self.error)


class SPFPolicyError(SPFError):
    """Raised when a policy given directly cannot be expanded"""


class SPFSyntaxError(SPFError):
    """Raised when an SPF syntax error is found in a directive"""


class SPFTooManyMXRecords(SPFError):
    """Raised when an ``mx`` mechanism points to more than 10 hosts"""
