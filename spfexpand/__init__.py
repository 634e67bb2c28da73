# -*- coding: utf-8 -*-

"""Recursively expands SPF policies and reports what they authorize"""

from __future__ import annotations

import json

import spfexpand._constants
from spfexpand.exceptions import (
    SPFError,
    SPFPolicyError,
    SPFRecordNotFound,
    SPFSyntaxError,
    SPFTooManyMXRecords,
)
from spfexpand.models import ExpansionResults
from spfexpand.report import results_to_text
from spfexpand.spf import MultipleSPFRTXTRecords, expand_spf, query_spf_record

"""Copyright 2019-2023 Sean Whalen

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

   https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License."""


__version__ = spfexpand._constants.__version__

__all__ = [
    "__version__",
    "ExpansionResults",
    "MultipleSPFRTXTRecords",
    "SPFError",
    "SPFPolicyError",
    "SPFRecordNotFound",
    "SPFSyntaxError",
    "SPFTooManyMXRecords",
    "expand_spf",
    "output_to_file",
    "query_spf_record",
    "results_to_json",
    "results_to_text",
]


def results_to_json(results: ExpansionResults) -> str:
    """
    Converts expansion results to a JSON string

    Args:
        results (dict): The results of :func:`expand_spf`

    Returns:
        str: Results in JSON format
    """
    return json.dumps(results, ensure_ascii=False, indent=2)


def output_to_file(path: str, content: str):
    """
    Write given content to the given path

    Args:
        path (str): A file path
        content (str): JSON or plain text
    """
    with open(
        path, "w", newline="\n", encoding="utf-8", errors="ignore"
    ) as output_file:
        output_file.write(content)
