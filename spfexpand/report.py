# -*- coding: utf-8 -*-
"""Human-readable rendering of expansion results"""

from __future__ import annotations

from spfexpand._constants import POLICY_DOMAIN, QUALIFIERS
from spfexpand.cidr import total_cidr_count
from spfexpand.models import ExpansionResults

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

INDENT = "  "
COUNTED_DIRECTIVES = ("a", "exists", "exp", "include", "mx", "ptr", "redirect")


def _plural(word: str, n: int) -> str:
    return word if n == 1 else f"{word}s"


def _list_block(lines: list[str], space: str, heading: str, values: list[str]):
    lines.append(f"{space}{heading}:")
    for value in sorted(values):
        lines.append(f"{space}{INDENT}{value}")
    lines.append("")


def _messages(lines: list[str], node: dict, indent: int):
    space = INDENT * (indent + 1)
    for warning in node.get("warnings", []):
        lines.append(f"{space}Warning: {warning}")
    for error in node.get("errors", []):
        lines.append(f"{space}Error: {error}")
    lines.append("")


def _bucket(lines: list[str], bucket: dict, indent: int):
    space = INDENT * (indent + 1)
    for name in ("exists", "exp", "include", "ptr"):
        values = bucket.get(name)
        if values:
            n = len(values)
            _list_block(lines, space, f"{name} ({n} {_plural('domain', n)})", values)

    for name in ("ip4", "ip6"):
        cidrs = bucket.get(name)
        if not cidrs:
            continue
        n = len(cidrs)
        addresses = total_cidr_count(cidrs)
        heading = (
            f"{name} ({n} {_plural('CIDR', n)} / "
            f"{addresses} {_plural('IP', addresses)})"
        )
        _list_block(lines, space, heading, cidrs)

    for name in ("a", "mx"):
        record = bucket.get(name, {})
        for sub, label in (("names", "name"), ("ips", "IP"), ("cidrs", "CIDR")):
            values = record.get(sub)
            if values:
                n = len(values)
                _list_block(lines, space, f"{name} ({n} {_plural(label, n)})", values)


def _expanded(
    lines: list[str],
    results: ExpansionResults,
    domain: str,
    indent: int,
    seen: set[str],
):
    expanded = results["expanded"]
    node = expanded.get(domain)
    if node is None or domain in seen:
        return
    seen.add(domain)
    # Macro domains have no policy
    if node["spf"] is None:
        return

    space = INDENT * indent
    lines.append(f"{INDENT * (indent - 1)}{domain}:")
    lines.append(f"{space}policy:")
    lines.append(f"{space}{INDENT}{node['spf']}")
    lines.append("")
    lines.append(f"{space}{node['valid']}")
    _messages(lines, node, indent)

    redirect = node.get("redirect")
    if redirect is not None:
        lines.append(f"{space}redirect: {redirect}")
        lines.append("")
        _expanded(lines, results, redirect, indent + 2, seen)
        lines.append("")

    for qualifier in QUALIFIERS:
        bucket = node.get(qualifier)
        if not bucket:
            continue
        lines.append(f"{space}{qualifier}:")
        _bucket(lines, bucket, indent)
        for include in bucket.get("include", []):
            child = expanded.get(include)
            if child is not None and child["valid"] == "valid":
                _expanded(lines, results, include, indent + 2, seen)
                lines.append("")

    lines.append(f"{space}All others: {node['all']}")


def _counts(lines: list[str], totals: dict):
    for name in COUNTED_DIRECTIVES:
        key = f"{name}-directives"
        if key in totals:
            padding = " " * (len("redirect") - len(name))
            lines.append(f"    Total # of '{name}' directives{padding}: {totals[key]}")
    for name in ("ip4", "ip6"):
        if totals.get(f"{name}-directives"):
            lines.append(
                f"    Total # of {name} directives       : {totals[f'{name}-directives']}"
            )
        if totals.get(f"{name}count"):
            lines.append(
                f"    Total # of {name} addresses        : {totals[f'{name}count']}"
            )
    lines.append("")


def results_to_text(results: ExpansionResults) -> str:
    """
    Renders expansion results as an indented tree

    Args:
        results (dict): The results of :func:`spfexpand.expand_spf`

    Returns:
        str: The policy of each domain, its addresses and names per
        qualifier, followed by the totals of the queried domain
    """
    lines: list[str] = []
    domain = results["query"]
    node = results["expanded"].get(domain)
    if node is None:
        return ""

    _expanded(lines, results, domain, 1, set())
    lines.append("")

    if domain == POLICY_DOMAIN:
        heading = "Given SPF record                  : "
    else:
        heading = f"SPF record for domain '{domain}': "
    lines.append(f"{heading}{node['valid']}")
    _messages(lines, node, 0)

    lines.append("Total counts:")
    if results["lookups"] > 0:
        lines.append(
            f"  Total # of DNS lookups            : {results['lookups']}"
        )
        lines.append("")
    for qualifier in QUALIFIERS:
        totals = node.get(qualifier, {}).get("total")
        if not totals:
            continue
        lines.append(f"  {qualifier}:")
        _counts(lines, totals)
    lines.append(f"All others: {node['all']}")

    return "\n".join(lines) + "\n"
