# -*- coding: utf-8 -*-
"""Canonicalization and counting of CIDR address sets"""

from __future__ import annotations

import ipaddress
import logging
from typing import TypedDict, Union
from collections.abc import Iterable

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

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


class CanonicalCIDRs(TypedDict):
    ip4: list[str]
    ip6: list[str]
    ip4count: int
    ip6count: int
    invalid: list[str]


def parse_cidr(cidr: str) -> IPNetwork:
    """
    Parses an address or CIDR string into a network

    Host bits are allowed and are masked off, so ``10.0.0.1/24`` becomes
    ``10.0.0.0/24``. A bare address becomes a /32 or /128 network.

    Raises:
        ValueError: If the value is not an IPv4/IPv6 address or CIDR
    """
    return ipaddress.ip_network(cidr.strip().lower(), strict=False)


def cidr_count(network: Union[str, IPNetwork]) -> int:
    """
    Returns the number of addresses in a CIDR block

    IPv4-mapped IPv6 blocks (``::ffff:a.b.c.d/n``) are sized using the
    IPv4 bit width.

    Args:
        network: A CIDR string or network object

    Returns:
        int: The number of addresses in the block
    """
    if isinstance(network, str):
        network = parse_cidr(network)
    if (
        isinstance(network, ipaddress.IPv6Network)
        and network.network_address.ipv4_mapped is not None
        and network.prefixlen >= 96
    ):
        return 2 ** (32 - (network.prefixlen - 96))
    return 2 ** (network.max_prefixlen - network.prefixlen)


def canonicalize_cidrs(cidrs: Iterable[str]) -> CanonicalCIDRs:
    """
    Merges and de-duplicates CIDR blocks into a minimal covering set

    Blocks are partitioned by address family, then overlapping and adjacent
    blocks are aggregated into supernets.

    Args:
        cidrs: Address or CIDR strings of either address family

    Returns:
        dict: A ``dict`` with the following keys:
            - ``ip4`` - The merged IPv4 CIDRs
            - ``ip6`` - The merged IPv6 CIDRs
            - ``ip4count`` - The number of IPv4 addresses covered
            - ``ip6count`` - The number of IPv6 addresses covered
            - ``invalid`` - Values that could not be parsed
    """
    v4 = []
    v6 = []
    invalid = []
    for cidr in set(cidrs):
        try:
            network = parse_cidr(cidr)
        except ValueError:
            logging.debug(f"Skipping invalid CIDR {cidr}")
            invalid.append(cidr)
            continue
        if network.version == 4:
            v4.append(network)
        else:
            v6.append(network)

    merged_v4 = list(ipaddress.collapse_addresses(v4))
    merged_v6 = list(ipaddress.collapse_addresses(v6))

    results: CanonicalCIDRs = {
        "ip4": [str(n) for n in merged_v4],
        "ip6": [str(n) for n in merged_v6],
        "ip4count": sum(cidr_count(n) for n in merged_v4),
        "ip6count": sum(cidr_count(n) for n in merged_v6),
        "invalid": sorted(invalid),
    }
    return results


def total_cidr_count(cidrs: Iterable[str]) -> int:
    """Returns the number of unique addresses covered by the given CIDRs"""
    canonical = canonicalize_cidrs(cidrs)
    return canonical["ip4count"] + canonical["ip6count"]
