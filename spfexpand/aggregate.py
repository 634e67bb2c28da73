# -*- coding: utf-8 -*-
"""Counting and upward aggregation of expanded SPF data"""

from __future__ import annotations

import logging

from spfexpand._constants import QUALIFIERS
from spfexpand.cidr import canonicalize_cidrs
from spfexpand.context import ExpansionContext
from spfexpand.models import PolicyNode, QualifierTotals, _MechanismData

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


def count_ips(
    ctx: ExpansionContext,
    node: PolicyNode,
    qualifier: str,
    data: _MechanismData,
    scope: str,
):
    """
    Canonicalizes the addresses and ranges of a record and counts them

    The result is cached per domain, qualifier and scope; since the inputs
    only ever grow, an input set that has not grown is not recomputed.

    Args:
        ctx (ExpansionContext): The state of the expansion run
        node (PolicyNode): The domain the data belongs to
        qualifier (str): The qualifier the data is listed under
        data: A bucket or totals record
        scope (str): ``own`` for a bucket, ``total`` for its totals
    """
    key = (node.domain, qualifier, scope)
    inputs = data.address_cidrs()
    cached = ctx.cidr_cache.get(key)
    if cached is not None and len(inputs) <= cached[0]:
        canonical = cached[1]
    else:
        logging.debug(f"Counting {scope} {qualifier} addresses of {node.domain}")
        canonical = canonicalize_cidrs(inputs)
        ctx.cidr_cache[key] = (len(inputs), canonical)
        for cidr in canonical["invalid"]:
            node.add_error(f"Invalid CIDR '{cidr}' for domain '{node.domain}' found.")

    data.cidrs = canonical["ip4"] + canonical["ip6"]
    data.counts["ip4count"] = canonical["ip4count"]
    data.counts["ip6count"] = canonical["ip6count"]


def create_count(ctx: ExpansionContext, node: PolicyNode, qualifier: str):
    """Fills in the size counters of a domain's own bucket"""
    bucket = node.buckets.get(qualifier)
    if bucket is None:
        return
    bucket.counts.update(bucket.size_counts())
    count_ips(ctx, node, qualifier, bucket, "own")


def _count_totals(ctx: ExpansionContext, node: PolicyNode, qualifier: str):
    totals = node.buckets[qualifier].totals
    totals.counts.update(totals.size_counts())
    count_ips(ctx, node, qualifier, totals, "total")


def add_totals_from_domain_to_parent(
    ctx: ExpansionContext,
    child: PolicyNode,
    qualifier: str,
    parent: PolicyNode,
):
    """
    Folds an included domain into the domain that included it

    Warnings, errors and invalidity always carry over. The data that carries
    over is what the child explicitly authorizes with ``+``, together with
    everything its own includes authorized; it lands in the totals of the
    parent's bucket for the including directive's qualifier.

    Args:
        ctx (ExpansionContext): The state of the expansion run
        child (PolicyNode): The included domain
        qualifier (str): The qualifier of the including directive
        parent (PolicyNode): The including domain
    """
    logging.debug(
        f"Adding {qualifier} totals of included domain {child.domain} "
        f"to {parent.domain}"
    )
    parent.warnings.update(child.warnings)
    parent.errors.update(child.errors)
    if not child.valid:
        parent.invalidate()

    if child is parent:
        return

    bucket = parent.bucket(qualifier)
    if bucket.totals is None:
        bucket.totals = QualifierTotals()
    authorized = ctx.authorized.get(child.domain)
    if authorized is None:
        return
    bucket.totals.merge_data(authorized)
    bucket.totals.add_directive_counts(authorized)


def roll_up(ctx: ExpansionContext, node: PolicyNode, top: bool = False):
    """
    Adds a domain's own data to the totals of its buckets and counts them

    Only buckets that received data from included domains have totals,
    except for the queried domain, whose every bucket gets them. Each
    bucket's own data is added once.

    Args:
        ctx (ExpansionContext): The state of the expansion run
        node (PolicyNode): The domain to roll up
        top (bool): Set when rolling up the queried domain
    """
    for qualifier in QUALIFIERS:
        bucket = node.buckets.get(qualifier)
        if bucket is None:
            continue
        if bucket.totals is None:
            if not top:
                continue
            bucket.totals = QualifierTotals()
        key = (node.domain, qualifier)
        if key not in ctx.counted:
            ctx.counted.add(key)
            bucket.totals.merge_data(bucket)
            bucket.totals.add_directive_counts(bucket)
        _count_totals(ctx, node, qualifier)
