# -*- coding: utf-8 -*-
"""Parsing of SPF record bodies into directives"""

from __future__ import annotations

import re
from enum import Enum
from typing import NamedTuple, Optional

import pyleri

from spfexpand._constants import SYNTAX_ERROR_MARKER
from spfexpand.exceptions import SPFSyntaxError

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

SPF_RECORD_REGEX = re.compile(r"^v=spf1(?:\s+(.*))?$", re.IGNORECASE | re.DOTALL)

QUALIFIER_REGEX_STRING = r"[+\-~?]"
A_MX_REGEX_STRING = r"(a|mx)(([:/])(\S*))?"
ALL_REGEX_STRING = r"all"
IP_REGEX_STRING = r"(ip[46]):(\S*)"
INCLUDE_REDIRECT_REGEX_STRING = r"(include:|redirect=)(\S*)"
EXISTS_PTR_EXP_REGEX_STRING = (
    r"(exists|exp|ptr)((?<=exists):\S*|(?<=exp)=\S*|(?<=ptr)(?::\S*)?)"
)

A_MX_SPEC_REGEX = re.compile(r"^([^/]+)(/([0-9]+))?(//([0-9]+))?$")
V6_CIDR_REGEX = re.compile(r"^/([0-9]+)$")
V4_V6_CIDR_REGEX = re.compile(r"^([0-9]+)(//([0-9]+))?$")

MACRO_LETTERS = set("slodiphcrtv")
MACRO_DELIMS = set(".-+,/_=")

spf_qualifiers: dict[str, str] = {
    "": "pass",
    "?": "neutral",
    "+": "pass",
    "-": "fail",
    "~": "softfail",
}


class DirectiveKind(Enum):
    A = "a"
    MX = "mx"
    ALL = "all"
    IP4 = "ip4"
    IP6 = "ip6"
    INCLUDE = "include"
    REDIRECT = "redirect"
    EXISTS = "exists"
    PTR = "ptr"
    EXP = "exp"


class Directive(NamedTuple):
    """A single mechanism or modifier of an SPF record"""

    text: str
    kind: DirectiveKind
    qualifier: str
    explicit_qualifier: bool
    value: str
    separator: Optional[str] = None


class _DirectiveGrammar(pyleri.Grammar):
    """Defines Pyleri grammar for a single SPF directive"""

    qualifier = pyleri.Regex(QUALIFIER_REGEX_STRING)
    a_mx = pyleri.Regex(A_MX_REGEX_STRING, re.IGNORECASE)
    all_mechanism = pyleri.Regex(ALL_REGEX_STRING, re.IGNORECASE)
    ip = pyleri.Regex(IP_REGEX_STRING, re.IGNORECASE)
    include_redirect = pyleri.Regex(INCLUDE_REDIRECT_REGEX_STRING, re.IGNORECASE)
    exists_ptr_exp = pyleri.Regex(EXISTS_PTR_EXP_REGEX_STRING, re.IGNORECASE)

    START = pyleri.Sequence(
        pyleri.Optional(qualifier),
        pyleri.Choice(
            a_mx,
            all_mechanism,
            ip,
            include_redirect,
            exists_ptr_exp,
            most_greedy=True,
        ),
    )


_GRAMMAR = _DirectiveGrammar()

# Checked in this order; the first match wins
_CLASSIFIERS = [
    (re.compile(rf"^({QUALIFIER_REGEX_STRING})?{A_MX_REGEX_STRING}$", re.I), "a_mx"),
    (re.compile(rf"^({QUALIFIER_REGEX_STRING})?{ALL_REGEX_STRING}$", re.I), "all"),
    (re.compile(rf"^({QUALIFIER_REGEX_STRING})?{IP_REGEX_STRING}$", re.I), "ip"),
    (
        re.compile(rf"^({QUALIFIER_REGEX_STRING})?{INCLUDE_REDIRECT_REGEX_STRING}$", re.I),
        "include_redirect",
    ),
    (
        re.compile(rf"^({QUALIFIER_REGEX_STRING})?{EXISTS_PTR_EXP_REGEX_STRING}$", re.I),
        "exists_ptr_exp",
    ),
]


def match_spf_record(txt: str) -> Optional[str]:
    """
    Returns the directives of an SPF record, or ``None`` if the text is not
    an SPF record

    The version section must be exactly ``v=spf1``, terminated by whitespace
    or the end of the record (RFC 7208 § 4.5).

    Args:
        txt (str): The text of a TXT record or a policy

    Returns:
        str: The record body with runs of whitespace collapsed to one space
    """
    txt = txt.strip().strip('"')
    match = SPF_RECORD_REGEX.match(txt)
    if match is None:
        return None
    body = match.group(1) or ""
    return re.sub(r"\s+", " ", body).strip()


def split_directives(spf_text: str) -> list[str]:
    """Splits an SPF record body into its directive tokens"""
    return [token for token in spf_text.split(" ") if token]


def parse_directive(token: str) -> Directive:
    """
    Classifies one directive token

    Args:
        token (str): A single whitespace-free directive, e.g. ``-ip4:192.0.2.0/24``

    Returns:
        Directive: The classified directive

    Raises:
        :exc:`spfexpand.exceptions.SPFSyntaxError`
    """
    parsed = _GRAMMAR.parse(token)
    if not parsed.is_valid:
        raise SPFSyntaxError(f"Unknown directive '{token}'")

    for regex, family in _CLASSIFIERS:
        match = regex.match(token)
        if match is None:
            continue
        qualifier_char = match.group(1) or ""
        qualifier = spf_qualifiers[qualifier_char]
        explicit = qualifier_char != ""
        if family == "a_mx":
            kind = DirectiveKind(match.group(2).lower())
            return Directive(
                token, kind, qualifier, explicit, match.group(5) or "", match.group(4)
            )
        if family == "all":
            return Directive(token, DirectiveKind.ALL, qualifier, explicit, "")
        kind = DirectiveKind(match.group(2).lower().rstrip(":="))
        value = match.group(3)
        if family == "exists_ptr_exp":
            # the ':' or '=' separator is part of the argument group
            value = value[1:]
        return Directive(token, kind, qualifier, explicit, value)

    raise SPFSyntaxError(f"Unknown directive '{token}'")


def parse_a_mx_spec(
    domain: str, separator: Optional[str], spec: str
) -> tuple[str, Optional[int], Optional[int]]:
    """
    Parses the argument of an ``a`` or ``mx`` mechanism

    Accepted forms (by example of ``mx``): ``mx``, ``mx:dom``,
    ``mx:dom/4cidr``, ``mx:dom//6cidr``, ``mx:dom/4cidr//6cidr``,
    ``mx/4cidr``, ``mx//6cidr`` and ``mx/4cidr//6cidr``.

    Args:
        domain (str): The domain the record belongs to
        separator (str): The ``:`` or ``/`` following the mechanism name
        spec (str): Everything after the separator

    Returns:
        tuple: The target domain, the IPv4 prefix length and the IPv6 prefix
        length; prefix lengths are ``None`` when not given

    Raises:
        ValueError: If the argument is malformed
    """
    if separator is None:
        return domain, None, None

    if separator == ":":
        match = A_MX_SPEC_REGEX.match(spec)
        if match is None:
            raise ValueError(spec)
        v4 = int(match.group(3)) if match.group(3) else None
        v6 = int(match.group(5)) if match.group(5) else None
        if (v4 is not None and v4 > 32) or (v6 is not None and v6 > 128):
            raise ValueError(spec)
        return match.group(1), v4, v6

    match = V6_CIDR_REGEX.match(spec)
    if match is not None:
        v6 = int(match.group(1))
        if v6 > 128:
            raise ValueError(spec)
        return domain, None, v6
    match = V4_V6_CIDR_REGEX.match(spec)
    if match is not None:
        v4 = int(match.group(1))
        v6 = int(match.group(3)) if match.group(3) else None
        if v4 > 32 or (v6 is not None and v6 > 128):
            raise ValueError(spec)
        return domain, v4, v6

    raise ValueError(spec)


def _raise_macro_syntax_error(
    value: str,
    pos: int,
    domain: str,
    syntax_error_marker: str,
) -> None:
    """Raise SPFSyntaxError with a caret-like marker inside the bad value."""
    marked_value = value[:pos] + syntax_error_marker + value[pos:]
    raise SPFSyntaxError(
        f"{domain}: Invalid SPF macro syntax at position {pos} "
        f"(marked with {syntax_error_marker}) in value: {marked_value}"
    )


def validate_macros(
    value: str,
    domain: str,
    syntax_error_marker: str = SYNTAX_ERROR_MARKER,
) -> None:
    """
    Validate SPF macro syntax in a domain-spec / macro-string per RFC 7208 §7.

    This is purely syntactic; no macro expansion or DNS lookups.
    """
    i = 0
    length = len(value)

    while i < length:
        ch = value[i]
        if ch != "%":
            i += 1
            continue

        # We have a '%'; ensure there is at least one more character
        if i + 1 >= length:
            _raise_macro_syntax_error(value, i, domain, syntax_error_marker)

        next_ch = value[i + 1]

        # Escapes: %%, %_, %-
        if next_ch in ("%", "_", "-"):
            i += 2
            continue

        # Macro-expand: %{...}
        if next_ch != "{":
            _raise_macro_syntax_error(value, i, domain, syntax_error_marker)

        close = value.find("}", i + 2)
        if close == -1:
            _raise_macro_syntax_error(value, i, domain, syntax_error_marker)

        body = value[i + 2 : close]
        if not body:
            _raise_macro_syntax_error(value, i, domain, syntax_error_marker)

        letter = body[0].lower()
        if letter not in MACRO_LETTERS:
            _raise_macro_syntax_error(value, i + 2, domain, syntax_error_marker)

        rest = body[1:]

        # transformers: *DIGIT [ "r" ]
        j = 0
        while j < len(rest) and rest[j].isdigit():
            j += 1

        if j and int(rest[:j]) == 0:
            _raise_macro_syntax_error(value, i + 3, domain, syntax_error_marker)

        if j < len(rest) and rest[j].lower() == "r":
            j += 1

        for k, d in enumerate(rest[j:]):
            if d not in MACRO_DELIMS:
                _raise_macro_syntax_error(
                    value, i + 3 + j + k, domain, syntax_error_marker
                )

        i = close + 1


def is_macro(domain_spec: str) -> bool:
    """Returns ``True`` if a domain-spec needs macro expansion"""
    return "%" in domain_spec
