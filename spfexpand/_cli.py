#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Recursively expands SPF policies and reports what they authorize"""

from __future__ import annotations

import sys
from argparse import ArgumentParser

import logging

from spfexpand import (
    __version__,
    SPFError,
    expand_spf,
    output_to_file,
    results_to_json,
    results_to_text,
)
from spfexpand.utils import DNSException, get_nameserver_addresses

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


def _main():
    """Called when the module in executed"""
    arg_parser = ArgumentParser(description=__doc__)
    arg_parser.add_argument("domain", nargs="?", help="the domain to expand")
    arg_parser.add_argument(
        "-p", "--policy", help="expand the given SPF policy instead of a domain"
    )
    arg_parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        default=False,
        help="print the results as JSON",
    )
    arg_parser.add_argument(
        "-r",
        "--resolver",
        help="the address or hostname of a nameserver to query",
    )
    arg_parser.add_argument(
        "-o",
        "--output",
        help="a file path to write the results to (silences screen output)",
    )
    arg_parser.add_argument(
        "-t",
        "--timeout",
        help="number of seconds to wait for an answer from DNS (default 2.0)",
        type=float,
        default=2.0,
    )
    arg_parser.add_argument(
        "--timeout-retries",
        help="number of times to reattempt a query after a timeout (default 2)",
        type=int,
        default=2,
    )
    arg_parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="be verbose (repeat for debugging output)",
    )
    arg_parser.add_argument(
        "--debug", action="store_true", help="enable debugging output"
    )
    arg_parser.add_argument("-V", "--version", action="version", version=__version__)

    args = arg_parser.parse_args()

    logging_format = "%(asctime)s - %(levelname)s: %(message)s"
    logging.basicConfig(level=logging.WARNING, format=logging_format)

    if args.debug or args.verbose > 1:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.debug("Debug output enabled")
    elif args.verbose == 1:
        logging.getLogger().setLevel(logging.INFO)

    if (args.domain is None) == (args.policy is None):
        arg_parser.print_usage(sys.stderr)
        logging.error("Specify either a domain or a policy")
        sys.exit(1)

    nameservers = None
    if args.resolver is not None:
        try:
            nameservers = get_nameserver_addresses(args.resolver)
        except DNSException as error:
            logging.error(str(error))
            sys.exit(1)
        logging.info(f"Using nameservers {', '.join(nameservers)}")

    try:
        results = expand_spf(
            args.domain,
            policy=args.policy,
            nameservers=nameservers,
            timeout=args.timeout,
            timeout_retries=args.timeout_retries,
        )
    except SPFError as error:
        logging.error(str(error))
        sys.exit(1)

    if args.json:
        output = results_to_json(results)
    else:
        output = results_to_text(results)

    if args.output is None:
        print(output)
    else:
        output_to_file(args.output, output)


if __name__ == "__main__":
    _main()
