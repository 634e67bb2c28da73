# -*- coding: utf-8 -*-
"""Recursive expansion of SPF policies"""

from __future__ import annotations

import logging
import re
from typing import Optional, TypedDict
from collections.abc import Sequence

import dns.resolver
from dns.nameserver import Nameserver

from spfexpand._constants import (
    MAX_LOOKUPS,
    MAX_RECORD_LENGTH,
    POLICY_DOMAIN,
    QUALIFIERS,
)
from spfexpand.aggregate import (
    add_totals_from_domain_to_parent,
    create_count,
    roll_up,
)
from spfexpand.context import ExpansionContext
from spfexpand.exceptions import (
    SPFError,
    SPFPolicyError,
    SPFRecordNotFound,
    SPFSyntaxError,
    _SPFWarning,
)
from spfexpand.mechanisms import RESOLVERS
from spfexpand.models import ExpansionResults, PolicyNode, QualifierBucket
from spfexpand.parser import (
    Directive,
    DirectiveKind,
    is_macro,
    match_spf_record,
    parse_directive,
    split_directives,
    validate_macros,
)
from spfexpand.utils import (
    DNSException,
    DNSExceptionNoAnswer,
    DNSExceptionNXDOMAIN,
    get_txt_records,
    normalize_domain,
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

# A literal scan of the whole record, so an "all" anywhere cancels redirect=
ALL_DIRECTIVE_REGEX = re.compile(r"\b[+?~-]?all\b", re.IGNORECASE)


class MultipleSPFRTXTRecords(SPFError):
    """Raised when a domain has multiple SPF TXT records"""

    def __init__(
        self, msg: str, records: list[str], warnings: Optional[list[str]] = None
    ):
        self.records = records
        self.warnings = warnings or []
        SPFError.__init__(self, msg, data={"records": records})


class SPFQueryResults(TypedDict):
    record: str
    warnings: list[str]


def _check_record_length(domain: str, txt: str) -> Optional[str]:
    """Returns a warning if a TXT record is longer than a DNS reply allows"""
    length = len(txt.strip().strip('"'))
    if length > MAX_RECORD_LENGTH:
        return (
            f"SPF record for '{domain}' too long "
            f"({length} > {MAX_RECORD_LENGTH})."
        )
    return None


def query_spf_record(
    domain: str,
    *,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> SPFQueryResults:
    """
    Queries DNS for an SPF record

    Args:
        domain (str): A domain name
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        dict: A ``dict`` with the following keys:
            - ``record`` - The directives of the SPF record
            - ``warnings`` - A ``list`` of warnings

    Raises:
        :exc:`spfexpand.exceptions.SPFRecordNotFound`
        :exc:`spfexpand.spf.MultipleSPFRTXTRecords`
    """
    logging.debug(f"Checking for a SPF record on {domain}")
    warnings = []
    try:
        answers = get_txt_records(
            domain,
            nameservers=nameservers,
            resolver=resolver,
            timeout=timeout,
            timeout_retries=timeout_retries,
        )
    except (DNSExceptionNXDOMAIN, DNSExceptionNoAnswer):
        raise SPFRecordNotFound(f"No TXT record found for '{domain}'.", domain)
    except DNSException as error:
        raise SPFRecordNotFound(
            f"Unable to look up TXT record for '{domain}'; "
            f"nameserver returned: {error}",
            domain,
        )

    spf_records = []
    for answer in answers:
        record = match_spf_record(answer)
        if record is None:
            continue
        warning = _check_record_length(domain, answer)
        if warning is not None:
            warnings.append(warning)
        spf_records.append(record)

    if len(spf_records) == 0:
        raise SPFRecordNotFound(f"No SPF record found for '{domain}'.", domain)
    if len(spf_records) > 1:
        raise MultipleSPFRTXTRecords(
            f"Multiple SPF policies found for '{domain}'.", spf_records, warnings
        )

    results: SPFQueryResults = {"record": spf_records[0], "warnings": warnings}
    return results


def _fetch_policy(ctx: ExpansionContext, node: PolicyNode) -> Optional[str]:
    """
    Returns the directives a domain publishes, or ``None`` if it has none

    A failure on the queried domain is fatal. On any other domain it
    invalidates that domain only.
    """
    if node.domain == POLICY_DOMAIN and ctx.policy is not None:
        record = match_spf_record(ctx.policy)
        if record is None:
            raise SPFPolicyError(f"Invalid policy given: '{ctx.policy}'")
        warning = _check_record_length(node.domain, ctx.policy)
        if warning is not None:
            node.add_warning(warning)
        return record

    top = node.domain == ctx.query
    try:
        results = query_spf_record(node.domain, **ctx.dns_options())
    except MultipleSPFRTXTRecords as error:
        if top:
            raise error
        for warning in error.warnings:
            node.add_warning(warning)
        node.add_error(str(error))
        return error.records[0]
    except SPFRecordNotFound as error:
        if top:
            raise error
        node.add_warning(str(error))
        node.invalidate()
        return None

    for warning in results["warnings"]:
        node.add_warning(warning)
    return results["record"]


def _record_directive(
    ctx: ExpansionContext,
    node: PolicyNode,
    qualifier: str,
    directive: Directive,
    scratch: QualifierBucket,
):
    bucket = node.bucket(qualifier)
    bucket.merge_data(scratch)
    bucket.add_directive_counts(scratch)
    if directive.explicit_qualifier and qualifier == "pass":
        authorized = ctx.authorized_for(node.domain)
        authorized.merge_data(scratch)
        authorized.add_directive_counts(scratch)


def _expand_included(
    ctx: ExpansionContext,
    node: PolicyNode,
    qualifier: str,
    directive: Directive,
):
    """Handles an ``include`` mechanism or a ``redirect`` modifier"""
    which = directive.kind.value
    target = directive.value
    if target == "":
        node.add_error(
            f"Invalid definition '{directive.text}' for domain '{node.domain}'."
        )
        return
    if is_macro(target):
        try:
            validate_macros(target, node.domain)
        except SPFSyntaxError as error:
            node.add_error(str(error))
            return
    else:
        target = normalize_domain(target)

    redirect = directive.kind is DirectiveKind.REDIRECT
    if redirect:
        if ALL_DIRECTIVE_REGEX.search(node.spf):
            node.add_warning(
                f"Ignored 'redirect={target}' in '{node.domain}' policy "
                "with 'all' statement"
            )
            return
        if node.redirect is not None:
            node.add_error(f"Multiple redirect modifiers in '{node.domain}' policy.")
            return
        node.redirect = target

    scratch = QualifierBucket()
    scratch.count_directive(which)
    if not redirect:
        scratch.include.add(target)
    _record_directive(ctx, node, qualifier, directive, scratch)

    ctx.budget.increment(which, target)
    child = expand_domain(ctx, target, node.domain)
    add_totals_from_domain_to_parent(ctx, child, qualifier, node)

    if child is not node and child.domain in ctx.authorized:
        if redirect or (directive.explicit_qualifier and qualifier == "pass"):
            authorized = ctx.authorized_for(node.domain)
            authorized.merge_data(ctx.authorized[child.domain])
            authorized.add_directive_counts(ctx.authorized[child.domain])
    if redirect:
        node.all = child.all


def _expand_directives(ctx: ExpansionContext, node: PolicyNode):
    """Dispatches every directive of a record to its resolver, left to right"""
    tokens = split_directives(node.spf)
    for position, token in enumerate(tokens, 1):
        logging.debug(f"Processing '{token}' for {node.domain}")
        try:
            directive = parse_directive(token)
        except SPFSyntaxError:
            node.add_error(f"Unknown directive '{token}' for '{node.domain}'.")
            continue

        qualifier = directive.qualifier

        if directive.kind is DirectiveKind.ALL:
            node.all = directive.qualifier
            following = tokens[position:]
            if following and not following[0].lower().startswith("exp="):
                node.add_warning(
                    f"'all' directive is not last in '{node.domain}' policy "
                    "- ignoring all subsequent directives."
                )
                break
            continue

        if directive.kind in (DirectiveKind.INCLUDE, DirectiveKind.REDIRECT):
            _expand_included(ctx, node, qualifier, directive)
            continue

        scratch = QualifierBucket()
        try:
            RESOLVERS[directive.kind](ctx, node, scratch, directive)
        except SPFError as error:
            node.add_error(str(error))
        except _SPFWarning as warning:
            node.add_warning(str(warning))
        finally:
            _record_directive(ctx, node, qualifier, directive, scratch)


def expand_domain(
    ctx: ExpansionContext,
    domain: str,
    parent: Optional[str] = None,
) -> PolicyNode:
    """
    Expands the SPF policy of one domain and everything it includes

    Every domain is expanded at most once per run. Reaching a domain that
    is still being expanded further up the include chain is a cycle.

    Args:
        ctx (ExpansionContext): The state of the expansion run
        domain (str): The domain to expand
        parent (str): The domain that included or redirected to this one

    Returns:
        PolicyNode: The expanded domain

    Raises:
        :exc:`spfexpand.exceptions.SPFRecordNotFound`
        :exc:`spfexpand.exceptions.SPFPolicyError`
        :exc:`spfexpand.spf.MultipleSPFRTXTRecords`
    """
    if ctx.in_progress(domain):
        node = ctx.nodes[domain]
        if parent is not None:
            node.parents.add(parent)
        node.add_error(f"Recursive inclusion of '{domain}'.")
        return node

    if domain in ctx.nodes:
        logging.debug(f"{domain} has already been expanded")
        node = ctx.nodes[domain]
        if parent is not None:
            node.parents.add(parent)
        return node

    node = PolicyNode(domain)
    if parent is not None:
        node.parents.add(parent)
    ctx.nodes[domain] = node

    if is_macro(domain):
        node.add_warning(f"Not resolving '{domain}' - macro expansion required.")
        return node

    ctx.path.append(domain)
    try:
        node.spf = _fetch_policy(ctx, node)
        if node.spf is None:
            return node
        _expand_directives(ctx, node)
        for name in QUALIFIERS:
            create_count(ctx, node, name)
        roll_up(ctx, node)
    finally:
        ctx.path.pop()

    return node


def expand_spf(
    domain: Optional[str] = None,
    *,
    policy: Optional[str] = None,
    nameservers: Optional[Sequence[str | Nameserver]] = None,
    resolver: Optional[dns.resolver.Resolver] = None,
    timeout: float = 2.0,
    timeout_retries: int = 2,
) -> ExpansionResults:
    """
    Recursively expands the SPF policy of a domain, or a policy given directly

    Args:
        domain (str): The domain to expand
        policy (str): An SPF policy to expand instead of looking one up
        nameservers (list): A list of nameservers to query
        resolver (dns.resolver.Resolver): A resolver object to use for DNS requests
        timeout (float): number of seconds to wait for an answer from DNS
        timeout_retries (int): The number of times to reattempt a query after a timeout

    Returns:
        dict: A ``dict`` with the following keys:
            - ``query`` - The expanded domain, or ``none`` for a given policy
            - ``lookups`` - The number of DNS lookups an SPF check would need
            - ``valid`` - ``valid`` or ``invalid``
            - ``expanded`` - A ``dict`` of every domain reached, keyed by domain

    Raises:
        :exc:`spfexpand.exceptions.SPFRecordNotFound`
        :exc:`spfexpand.exceptions.SPFPolicyError`
        :exc:`spfexpand.spf.MultipleSPFRTXTRecords`
    """
    if policy is not None:
        query = POLICY_DOMAIN
    elif domain:
        query = normalize_domain(domain)
    else:
        raise ValueError("A domain or a policy is required")

    ctx = ExpansionContext(
        query,
        policy=policy,
        nameservers=nameservers,
        resolver=resolver,
        timeout=timeout,
        timeout_retries=timeout_retries,
    )
    ctx.budget.increment("txt", query)
    node = expand_domain(ctx, query)

    if policy is not None and node.errors:
        raise SPFPolicyError(f"Invalid policy given: '{policy}'")

    roll_up(ctx, node, top=True)

    if ctx.budget.exceeded:
        node.add_warning(
            f"Too many DNS lookups ({ctx.budget.count} > {MAX_LOOKUPS})."
        )

    results: ExpansionResults = {
        "query": query,
        "lookups": ctx.budget.count,
        "valid": node.validity,
        "expanded": {name: ctx.nodes[name].to_dict() for name in ctx.nodes},
    }
    return results
