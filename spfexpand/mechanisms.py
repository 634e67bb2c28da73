# -*- coding: utf-8 -*-
"""Resolvers for the mechanisms that do not recurse into other policies"""

from __future__ import annotations

import ipaddress
import logging

from spfexpand._constants import MAX_MX_RECORDS
from spfexpand.context import ExpansionContext
from spfexpand.exceptions import (
    SPFSyntaxError,
    SPFTooManyMXRecords,
    _SPFMacroDomain,
    _SPFMissingRecords,
    _SPFWarning,
)
from spfexpand.models import PolicyNode, QualifierBucket
from spfexpand.parser import (
    Directive,
    DirectiveKind,
    is_macro,
    parse_a_mx_spec,
    validate_macros,
)
from spfexpand.utils import (
    DNSException,
    DNSExceptionNoAnswer,
    DNSExceptionNXDOMAIN,
    get_a_records,
    get_mx_records,
)

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

# Lookups charged by each mechanism beyond the ones resolved here
GENERIC_LOOKUP_COST = {
    DirectiveKind.EXISTS: 1,
    DirectiveKind.PTR: 2,
    DirectiveKind.EXP: 0,
}


def _host_addresses(ctx: ExpansionContext, node: PolicyNode, host: str) -> list[str]:
    """Returns the addresses of a host, recording lookup failures as warnings"""
    try:
        return get_a_records(host, **ctx.dns_options())
    except DNSExceptionNXDOMAIN:
        node.add_warning(f"{host} does not exist.")
    except DNSException as error:
        node.add_warning(f"Unable to look up addresses of '{host}': {error}")
    return []


def _address_cidrs(
    node: PolicyNode, ips: list[str], v4_prefix: int, v6_prefix: int
) -> list[str]:
    cidrs = []
    for ip in ips:
        try:
            address = ipaddress.ip_address(ip)
        except ValueError:
            node.add_error(f"Invalid IP '{ip}' for domain '{node.domain}' found.")
            continue
        if address.version == 4:
            cidrs.append(f"{ip}/{v4_prefix}")
        else:
            cidrs.append(f"{ip}/{v6_prefix}")
    return cidrs


def expand_a_or_mx(
    ctx: ExpansionContext,
    node: PolicyNode,
    bucket: QualifierBucket,
    directive: Directive,
):
    """
    Resolves an ``a`` or ``mx`` mechanism into names, addresses and ranges

    The ``a`` lookup and the ``mx`` lookup are charged one lookup each. The
    address lookups of the MX hosts are not charged. Targets that need
    macro expansion are recorded but not resolved.

    Args:
        ctx (ExpansionContext): The state of the expansion run
        node (PolicyNode): The domain whose record lists the mechanism
        bucket (QualifierBucket): Where the results are stored
        directive (Directive): The parsed mechanism

    Raises:
        :exc:`spfexpand.exceptions.SPFSyntaxError`
        :exc:`spfexpand.exceptions.SPFTooManyMXRecords`
        :exc:`spfexpand.exceptions._SPFWarning`
    """
    which = directive.kind.value
    bucket.count_directive(which)
    record = getattr(bucket, which)
    separator = directive.separator or ""
    record.directives.add(f"{which}{separator}{directive.value}")

    try:
        target, v4_prefix, v6_prefix = parse_a_mx_spec(
            node.domain, directive.separator, directive.value
        )
    except ValueError:
        raise SPFSyntaxError(
            f"Invalid directive '{directive.text}' for '{node.domain}'."
        )

    if is_macro(target):
        validate_macros(target, node.domain)
        raise _SPFMacroDomain(
            f"Not resolving '{target}' - macro expansion required."
        )
    target = target.lower()

    if directive.kind is DirectiveKind.A:
        record.names.add(target)
        ctx.budget.increment("a", target)
        ips = _host_addresses(ctx, node, target)
        if len(ips) == 0:
            raise _SPFMissingRecords(
                f"An a mechanism points to {target}, but that domain/subdomain "
                "does not have any A/AAAA records."
            )
    else:
        ctx.budget.increment("mx", target)
        try:
            hosts = get_mx_records(target, **ctx.dns_options())
        except (DNSExceptionNXDOMAIN, DNSExceptionNoAnswer):
            hosts = []
        except DNSException as error:
            raise _SPFWarning(f"Unable to look up MX records of '{target}': {error}")
        if len(hosts) == 0:
            raise _SPFMissingRecords(f"No MX record for domain '{target}' found.")
        if len(hosts) > MAX_MX_RECORDS:
            raise SPFTooManyMXRecords(
                f"More than {MAX_MX_RECORDS} MX records for domain '{target}' found."
            )
        ips = []
        for host in hosts:
            hostname = host["hostname"]
            logging.debug(f"Resolving MX host {hostname}")
            record.names.add(hostname)
            ips += _host_addresses(ctx, node, hostname)

    if v4_prefix is None and v6_prefix is None:
        record.ips.update(ips)
    else:
        record.cidrs.update(
            _address_cidrs(node, ips, v4_prefix or 32, v6_prefix or 128)
        )


def expand_cidr(
    ctx: ExpansionContext,
    node: PolicyNode,
    bucket: QualifierBucket,
    directive: Directive,
):
    """
    Records an ``ip4`` or ``ip6`` mechanism

    Bare addresses get a ``/32`` or ``/128`` suffix. Values that are not an
    address or network of the mechanism's family are reported and dropped.
    """
    which = directive.kind.value
    bucket.count_directive(which)
    value = directive.value
    if value == "":
        raise SPFSyntaxError(
            f"Invalid definition '{which}:' for domain '{node.domain}'."
        )

    version = 4 if directive.kind is DirectiveKind.IP4 else 6
    try:
        if "/" in value:
            network = ipaddress.ip_network(value, strict=False)
            cidr = value
        else:
            network = ipaddress.ip_address(value)
            cidr = f"{value}/{32 if version == 4 else 128}"
    except ValueError:
        raise SPFSyntaxError(f"Invalid IP '{value}' for domain '{node.domain}' found.")
    if network.version != version:
        raise SPFSyntaxError(f"Invalid IP '{value}' for domain '{node.domain}' found.")

    getattr(bucket, which).add(cidr.lower())


def expand_generic(
    ctx: ExpansionContext,
    node: PolicyNode,
    bucket: QualifierBucket,
    directive: Directive,
):
    """Records an ``exists``, ``ptr`` or ``exp`` directive"""
    which = directive.kind.value
    bucket.count_directive(which)
    value = directive.value
    if value == "":
        if directive.kind is not DirectiveKind.PTR:
            raise SPFSyntaxError(
                f"Invalid definition '{directive.text}' for domain '{node.domain}'."
            )
        value = node.domain
    if is_macro(value):
        validate_macros(value, node.domain)

    cost = GENERIC_LOOKUP_COST[directive.kind]
    if cost:
        ctx.budget.increment(which, value, cost)
    getattr(bucket, which).add(value)

    if directive.kind is DirectiveKind.PTR:
        raise _SPFWarning(
            f"The ptr mechanism in '{node.domain}' should not be used "
            "(RFC 7208 § 5.5)."
        )


RESOLVERS = {
    DirectiveKind.A: expand_a_or_mx,
    DirectiveKind.MX: expand_a_or_mx,
    DirectiveKind.IP4: expand_cidr,
    DirectiveKind.IP6: expand_cidr,
    DirectiveKind.EXISTS: expand_generic,
    DirectiveKind.PTR: expand_generic,
    DirectiveKind.EXP: expand_generic,
}
