# -*- coding: utf-8 -*-
"""Data model for expanded SPF policies"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, TypedDict, Union

from spfexpand._constants import IMPLICIT_ALL, QUALIFIERS

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

DOMAIN_SPEC_FIELDS = ("include", "exists", "exp", "ptr")
CIDR_FIELDS = ("ip4", "ip6")
SET_FIELDS = CIDR_FIELDS + DOMAIN_SPEC_FIELDS
AMX_FIELDS = ("a", "mx")
AMX_SUBFIELDS = ("cidrs", "directives", "ips", "names")


class AMXRecordResults(TypedDict, total=False):
    cidrs: list[str]
    directives: list[str]
    ips: list[str]
    names: list[str]


class QualifierResults(TypedDict, total=False):
    a: AMXRecordResults
    mx: AMXRecordResults
    ip4: list[str]
    ip6: list[str]
    include: list[str]
    exists: list[str]
    exp: list[str]
    ptr: list[str]
    cidrs: list[str]
    count: dict[str, int]
    total: dict[str, Union[int, list[str]]]


class PolicyNodeResults(TypedDict, total=False):
    spf: Union[str, None]
    valid: str
    all: str
    parents: list[str]
    redirect: str
    warnings: list[str]
    errors: list[str]


class ExpansionResults(TypedDict):
    query: str
    lookups: int
    valid: str
    expanded: dict[str, PolicyNodeResults]


@dataclass
class AMXRecord:
    """Names, addresses and ranges reached through ``a`` or ``mx`` directives"""

    names: set[str] = field(default_factory=set)
    ips: set[str] = field(default_factory=set)
    cidrs: set[str] = field(default_factory=set)
    directives: set[str] = field(default_factory=set)

    def merge(self, other: AMXRecord):
        for sub in AMX_SUBFIELDS:
            getattr(self, sub).update(getattr(other, sub))

    def is_empty(self) -> bool:
        return not any(getattr(self, sub) for sub in AMX_SUBFIELDS)

    def to_dict(self) -> AMXRecordResults:
        results: AMXRecordResults = {}
        for sub in AMX_SUBFIELDS:
            values = getattr(self, sub)
            if values:
                results[sub] = sorted(values)
        return results


@dataclass
class _MechanismData:
    ip4: set[str] = field(default_factory=set)
    ip6: set[str] = field(default_factory=set)
    include: set[str] = field(default_factory=set)
    exists: set[str] = field(default_factory=set)
    exp: set[str] = field(default_factory=set)
    ptr: set[str] = field(default_factory=set)
    a: AMXRecord = field(default_factory=AMXRecord)
    mx: AMXRecord = field(default_factory=AMXRecord)
    cidrs: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)

    def merge_data(self, other: _MechanismData):
        """Adds the domains, addresses and ranges of another record to this one"""
        for name in SET_FIELDS:
            getattr(self, name).update(getattr(other, name))
        for name in AMX_FIELDS:
            getattr(self, name).merge(getattr(other, name))

    def add_directive_counts(self, other: _MechanismData):
        for key, value in other.counts.items():
            if key.endswith("-directives"):
                self.counts[key] = self.counts.get(key, 0) + value

    def address_cidrs(self) -> set[str]:
        """Returns every address and range of this record as CIDR strings"""
        cidrs = set(self.ip4) | set(self.ip6)
        for name in AMX_FIELDS:
            record = getattr(self, name)
            for ip in record.ips:
                if ":" in ip:
                    cidrs.add(f"{ip}/128")
                else:
                    cidrs.add(f"{ip}/32")
            cidrs.update(record.cidrs)
        return cidrs

    def size_counts(self) -> dict[str, int]:
        counts = {}
        for name in SET_FIELDS:
            values = getattr(self, name)
            if values:
                counts[name] = len(values)
        for name in AMX_FIELDS:
            record = getattr(self, name)
            for sub in AMX_SUBFIELDS:
                values = getattr(record, sub)
                if values:
                    counts[f"{name}-{sub}"] = len(values)
        return counts

    def _data_to_dict(self) -> QualifierResults:
        results: QualifierResults = {}
        for name in SET_FIELDS:
            values = getattr(self, name)
            if values:
                results[name] = sorted(values)
        for name in AMX_FIELDS:
            record = getattr(self, name)
            if not record.is_empty():
                results[name] = record.to_dict()
        return results


@dataclass
class QualifierTotals(_MechanismData):
    """The union of a domain's own data and the data of its included domains"""

    def to_dict(self) -> dict[str, Union[int, list[str]]]:
        results = dict(self._data_to_dict())
        for name in AMX_FIELDS:
            record = results.pop(name, None)
            if record:
                for sub, values in record.items():
                    results[f"{name}-{sub}"] = values
        if self.cidrs:
            results["cidrs"] = list(self.cidrs)
        for key, value in self.counts.items():
            if key.endswith("-directives") or key.endswith("count"):
                results[key] = value
        return results


@dataclass
class QualifierBucket(_MechanismData):
    """Everything a single domain lists under one qualifier"""

    totals: Optional[QualifierTotals] = None

    def count_directive(self, kind: str):
        key = f"{kind}-directives"
        self.counts[key] = self.counts.get(key, 0) + 1

    def to_dict(self) -> QualifierResults:
        results = self._data_to_dict()
        if self.cidrs:
            results["cidrs"] = list(self.cidrs)
        results["count"] = dict(sorted(self.counts.items()))
        if self.totals is not None:
            results["total"] = self.totals.to_dict()
        return results


@dataclass
class PolicyNode:
    """One domain reached while expanding an SPF policy"""

    domain: str
    spf: Optional[str] = None
    valid: bool = True
    all: str = IMPLICIT_ALL
    redirect: Optional[str] = None
    parents: set[str] = field(default_factory=set)
    warnings: set[str] = field(default_factory=set)
    errors: set[str] = field(default_factory=set)
    buckets: dict[str, QualifierBucket] = field(default_factory=dict)

    @property
    def validity(self) -> str:
        return "valid" if self.valid else "invalid"

    def bucket(self, qualifier: str) -> QualifierBucket:
        """Returns the bucket for a qualifier, creating it if needed"""
        if qualifier not in self.buckets:
            self.buckets[qualifier] = QualifierBucket()
        return self.buckets[qualifier]

    def invalidate(self):
        self.valid = False

    def add_error(self, message: str):
        self.errors.add(message)
        self.invalidate()

    def add_warning(self, message: str):
        self.warnings.add(message)

    def to_dict(self) -> PolicyNodeResults:
        results: PolicyNodeResults = {
            "spf": self.spf,
            "valid": self.validity,
            "all": self.all,
            "parents": sorted(self.parents),
        }
        if self.redirect is not None:
            results["redirect"] = self.redirect
        if self.warnings:
            results["warnings"] = sorted(self.warnings)
        if self.errors:
            results["errors"] = sorted(self.errors)
        for qualifier in QUALIFIERS:
            if qualifier in self.buckets:
                results[qualifier] = self.buckets[qualifier].to_dict()
        return results
