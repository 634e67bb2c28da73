# -*- coding: utf-8 -*-
"""Accounting of DNS lookups charged against the RFC 7208 limit"""

from __future__ import annotations

import logging

from spfexpand._constants import MAX_LOOKUPS

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


class LookupBudget(object):
    """
    Counts the DNS lookups an SPF evaluation would require

    RFC 7208 § 4.6.4 allows 10 lookups *in addition to* the initial TXT
    query for the record itself, so the counter starts at -1.
    """

    def __init__(self, limit: int = MAX_LOOKUPS):
        self.limit = limit
        self.count = -1
        self.by_type: dict[str, int] = {}

    def increment(self, record_type: str, domain: str, amount: int = 1) -> int:
        """
        Charges one or more lookups

        Args:
            record_type (str): The kind of lookup, for logging
            domain (str): The name being looked up, for logging
            amount (int): The number of lookups to charge

        Returns:
            int: The new lookup count
        """
        logging.debug(f"DNS lookup of type '{record_type}' for {domain}")
        self.count += amount
        self.by_type[record_type] = self.by_type.get(record_type, 0) + amount
        return self.count

    @property
    def exceeded(self) -> bool:
        return self.count > self.limit

    def __repr__(self):
        return f"LookupBudget(count={self.count}, limit={self.limit})"
