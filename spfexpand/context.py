# -*- coding: utf-8 -*-
"""State shared by one expansion run"""

from __future__ import annotations

from typing import Optional
from collections.abc import Sequence

import dns.resolver
from dns.nameserver import Nameserver

from spfexpand.cidr import CanonicalCIDRs
from spfexpand.lookups import LookupBudget
from spfexpand.models import PolicyNode, QualifierTotals

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


class ExpansionContext(object):
    """
    Everything one expansion run reads and mutates

    Args:
        query (str): The queried domain, or the policy pseudo-domain
        policy (str): A policy given directly instead of looked up
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout
    """

    def __init__(
        self,
        query: str,
        *,
        policy: Optional[str] = None,
        nameservers: Optional[Sequence[str | Nameserver]] = None,
        resolver: Optional[dns.resolver.Resolver] = None,
        timeout: float = 2.0,
        timeout_retries: int = 2,
    ):
        self.query = query
        self.policy = policy
        self.nameservers = nameservers
        self.resolver = resolver
        self.timeout = timeout
        self.timeout_retries = timeout_retries

        self.nodes: dict[str, PolicyNode] = {}
        # Data of explicitly "+"-qualified directives, per domain
        self.authorized: dict[str, QualifierTotals] = {}
        self.budget = LookupBudget()
        # Domains currently being expanded, outermost first
        self.path: list[str] = []
        # (domain, qualifier) pairs whose own data is already in their totals
        self.counted: set[tuple[str, str]] = set()
        # (domain, qualifier, scope) -> (number of input CIDRs, result)
        self.cidr_cache: dict[tuple[str, str, str], tuple[int, CanonicalCIDRs]] = {}

    def dns_options(self) -> dict:
        return {
            "nameservers": self.nameservers,
            "resolver": self.resolver,
            "timeout": self.timeout,
            "timeout_retries": self.timeout_retries,
        }

    def authorized_for(self, domain: str) -> QualifierTotals:
        if domain not in self.authorized:
            self.authorized[domain] = QualifierTotals()
        return self.authorized[domain]

    def in_progress(self, domain: str) -> bool:
        return domain in self.path
