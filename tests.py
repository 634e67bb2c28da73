#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""Automated tests"""

import os
import tempfile
import unittest

import dns.exception
import dns.resolver

import spfexpand
import spfexpand.cidr
import spfexpand.parser
import spfexpand.utils
from spfexpand.lookups import LookupBudget
from spfexpand.parser import DirectiveKind


class _FakeRecord(object):
    def __init__(self, text):
        self.text = text
        self.strings = (text.encode(),)

    def to_text(self):
        return self.text


class FakeResolver(object):
    """Answers queries from a dictionary of domain -> record type -> values"""

    def __init__(self, records, failures=None):
        self.records = records
        self.failures = failures or {}
        self.queries = []

    def resolve(self, domain, record_type, lifetime=None):
        self.queries.append((domain, record_type))
        if domain in self.failures:
            raise self.failures[domain]
        answers = self.records.get(domain)
        if answers is None:
            raise dns.resolver.NXDOMAIN()
        values = answers.get(record_type)
        if not values:
            raise dns.resolver.NoAnswer()
        return [_FakeRecord(value) for value in values]


def txt(record):
    return {"TXT": [record]}


class Test(unittest.TestCase):
    def setUp(self):
        spfexpand.utils.DNS_CACHE.clear()

    def expand(self, records, domain):
        resolver = FakeResolver(records)
        results = spfexpand.expand_spf(domain, resolver=resolver)
        return results, resolver

    def testCIDRMerge(self):
        """Overlapping and adjacent CIDRs merge into a minimal set"""
        results = spfexpand.cidr.canonicalize_cidrs(
            ["10.0.0.0/24", "10.0.1.0/24", "10.0.0.0/24"]
        )
        self.assertEqual(results["ip4"], ["10.0.0.0/23"])
        self.assertEqual(results["ip4count"], 512)
        self.assertEqual(results["ip6"], [])

    def testIPv4MappedCount(self):
        """IPv4-mapped IPv6 addresses are sized with the IPv4 bit width"""
        results = spfexpand.cidr.canonicalize_cidrs(["::ffff:10.0.0.1/128"])
        self.assertEqual(results["ip6count"], 1)
        self.assertEqual(spfexpand.cidr.cidr_count("::ffff:10.0.0.0/120"), 256)
        self.assertEqual(spfexpand.cidr.cidr_count("2001:db8::/120"), 256)

    def testInvalidCIDR(self):
        results = spfexpand.cidr.canonicalize_cidrs(["192.0.2.0/24", "bogus"])
        self.assertEqual(results["invalid"], ["bogus"])
        self.assertEqual(results["ip4count"], 256)

    def testLookupBudget(self):
        budget = LookupBudget()
        self.assertEqual(budget.count, -1)
        budget.increment("txt", "example.com")
        for _ in range(10):
            budget.increment("include", "example.com")
        self.assertFalse(budget.exceeded)
        budget.increment("ptr", "example.com", 2)
        self.assertTrue(budget.exceeded)
        self.assertEqual(budget.by_type["ptr"], 2)

    def testMatchSPFRecord(self):
        """Only records with a version section of exactly v=spf1 match"""
        match = spfexpand.parser.match_spf_record
        self.assertEqual(match("v=spf1   a  -all"), "a -all")
        self.assertEqual(match('"V=SPF1 mx"'), "mx")
        self.assertEqual(match("v=spf1"), "")
        self.assertIsNone(match("v=spf10 -all"))
        self.assertIsNone(match("google-site-verification=abc"))

    def testParseDirective(self):
        parse = spfexpand.parser.parse_directive

        directive = parse("-include:_spf.example.com")
        self.assertEqual(directive.kind, DirectiveKind.INCLUDE)
        self.assertEqual(directive.qualifier, "fail")
        self.assertTrue(directive.explicit_qualifier)
        self.assertEqual(directive.value, "_spf.example.com")

        directive = parse("~MX")
        self.assertEqual(directive.kind, DirectiveKind.MX)
        self.assertEqual(directive.qualifier, "softfail")

        directive = parse("a/24")
        self.assertEqual(directive.kind, DirectiveKind.A)
        self.assertEqual(directive.qualifier, "pass")
        self.assertFalse(directive.explicit_qualifier)
        self.assertEqual(directive.separator, "/")
        self.assertEqual(directive.value, "24")

        self.assertEqual(parse("?all").qualifier, "neutral")
        self.assertEqual(parse("ptr").value, "")
        self.assertEqual(parse("ptr:example.com").value, "example.com")
        self.assertEqual(parse("exp=explain.example.com").value, "explain.example.com")
        self.assertEqual(parse("redirect=example.com").kind, DirectiveKind.REDIRECT)
        self.assertEqual(parse("ip6:2001:db8::/32").value, "2001:db8::/32")

        for token in ["ptrfoo", "allx", "foo", "ip5:192.0.2.1", "include"]:
            with self.assertRaises(spfexpand.SPFSyntaxError, msg=token):
                parse(token)

    def testParseAMXSpec(self):
        parse = spfexpand.parser.parse_a_mx_spec
        self.assertEqual(parse("d.example", None, ""), ("d.example", None, None))
        self.assertEqual(parse("d.example", ":", "m.example"), ("m.example", None, None))
        self.assertEqual(parse("d.example", ":", "m.example/24"), ("m.example", 24, None))
        self.assertEqual(parse("d.example", ":", "m.example//64"), ("m.example", None, 64))
        self.assertEqual(parse("d.example", "/", "24//64"), ("d.example", 24, 64))
        self.assertEqual(parse("d.example", "/", "/64"), ("d.example", None, 64))
        for separator, spec in [(":", "m.example/33"), ("/", "abc"), ("/", "/129")]:
            with self.assertRaises(ValueError):
                parse("d.example", separator, spec)

    def testValidateMacros(self):
        validate = spfexpand.parser.validate_macros
        validate("%{i}._spf.example.com", "example.com")
        validate("%{ir}.%{l1r-}.example.com", "example.com")
        validate("100%%.example.com", "example.com")
        for value in ["%{z}.example.com", "%{i0}.example.com", "%{i", "50%"]:
            with self.assertRaises(spfexpand.SPFSyntaxError, msg=value):
                validate(value, "example.com")

    def testEndToEnd(self):
        """Softfail data of an included domain is not added to pass totals"""
        records = {
            "example.org": txt(
                "v=spf1 ip4:203.0.113.0/24 include:_spf.example.net -all"
            ),
            "_spf.example.net": txt("v=spf1 ip4:198.51.100.0/24 ~all"),
        }
        results, _ = self.expand(records, "example.org")
        self.assertEqual(results["query"], "example.org")
        self.assertEqual(results["valid"], "valid")
        self.assertEqual(results["lookups"], 1)

        node = results["expanded"]["example.org"]
        self.assertEqual(node["all"], "fail")
        self.assertEqual(node["pass"]["ip4"], ["203.0.113.0/24"])
        self.assertEqual(node["pass"]["include"], ["_spf.example.net"])
        self.assertEqual(node["pass"]["count"]["include-directives"], 1)
        self.assertEqual(node["pass"]["total"]["ip4"], ["203.0.113.0/24"])
        self.assertEqual(node["pass"]["total"]["ip4count"], 256)

        child = results["expanded"]["_spf.example.net"]
        self.assertEqual(child["parents"], ["example.org"])
        self.assertEqual(child["all"], "softfail")
        self.assertNotIn("total", child["pass"])

    def testExplicitPassPropagates(self):
        """Mechanisms qualified with + in an included domain reach the totals"""
        records = {
            "x.example": txt("v=spf1 include:y.example -all"),
            "y.example": txt("v=spf1 +ip4:1.2.3.0/24 ip4:5.6.7.0/24 ~all"),
        }
        results, _ = self.expand(records, "x.example")
        total = results["expanded"]["x.example"]["pass"]["total"]
        self.assertEqual(total["ip4"], ["1.2.3.0/24"])
        self.assertEqual(total["ip4count"], 256)
        self.assertEqual(total["ip4-directives"], 1)

    def testSharedIncludeIndependentOfOrder(self):
        """A domain included under different qualifiers reports the same
        buckets whichever include is expanded first"""
        nodes = []
        for includes in [
            "~include:y.example include:z.example",
            "include:z.example ~include:y.example",
        ]:
            spfexpand.utils.DNS_CACHE.clear()
            records = {
                "x.example": txt(f"v=spf1 {includes} -all"),
                "z.example": txt("v=spf1 include:y.example -all"),
                "y.example": txt("v=spf1 ip4:1.2.3.0/24 -all"),
            }
            results, _ = self.expand(records, "x.example")
            nodes.append(results["expanded"]["y.example"])
        self.assertEqual(nodes[0], nodes[1])
        self.assertEqual(nodes[0]["pass"]["ip4"], ["1.2.3.0/24"])
        self.assertNotIn("softfail", nodes[0])

    def testIdempotentInclude(self):
        """A domain reached through two include paths is looked up once"""
        records = {
            "top.example": txt(
                "v=spf1 include:a.example include:b.example -all"
            ),
            "a.example": txt("v=spf1 include:c.example -all"),
            "b.example": txt("v=spf1 include:c.example -all"),
            "c.example": txt("v=spf1 +ip4:192.0.2.0/24 -all"),
        }
        results, resolver = self.expand(records, "top.example")
        self.assertEqual(resolver.queries.count(("c.example", "TXT")), 1)
        self.assertEqual(results["lookups"], 4)
        c = results["expanded"]["c.example"]
        self.assertEqual(c["parents"], ["a.example", "b.example"])
        self.assertEqual(c["pass"]["ip4"], ["192.0.2.0/24"])
        for name in ["a.example", "b.example"]:
            total = results["expanded"][name]["pass"]["total"]
            self.assertEqual(total["ip4"], ["192.0.2.0/24"])

    def testIncludeLoop(self):
        """Domains that include each other are invalid"""
        records = {
            "a.example": txt("v=spf1 include:b.example -all"),
            "b.example": txt("v=spf1 include:a.example -all"),
        }
        results, _ = self.expand(records, "a.example")
        self.assertEqual(results["valid"], "invalid")
        self.assertEqual(results["lookups"], 2)
        a = results["expanded"]["a.example"]
        b = results["expanded"]["b.example"]
        self.assertIn("Recursive inclusion of 'a.example'.", a["errors"])
        self.assertIn("Recursive inclusion of 'a.example'.", b["errors"])
        self.assertEqual(b["valid"], "invalid")

    def testSelfInclude(self):
        records = {"a.example": txt("v=spf1 include:a.example -all")}
        results, _ = self.expand(records, "a.example")
        self.assertEqual(results["valid"], "invalid")
        self.assertEqual(
            results["expanded"]["a.example"]["errors"],
            ["Recursive inclusion of 'a.example'."],
        )

    def testLookupAccounting(self):
        records = {
            "host.example": {"A": ["192.0.2.10"], "AAAA": ["2001:db8::10"]},
        }
        resolver = FakeResolver(records)
        results = spfexpand.expand_spf(
            policy="v=spf1 a:host.example -all", resolver=resolver
        )
        self.assertEqual(results["query"], "none")
        self.assertEqual(results["lookups"], 1)
        self.assertEqual(
            results["expanded"]["none"]["pass"]["a"]["ips"],
            ["192.0.2.10", "2001:db8::10"],
        )

        results = spfexpand.expand_spf(
            policy="v=spf1 ptr:example.com -all", resolver=resolver
        )
        self.assertEqual(results["lookups"], 2)

        results = spfexpand.expand_spf(
            policy="v=spf1 -all exp=explain.example.com", resolver=resolver
        )
        self.assertEqual(results["lookups"], 0)
        node = results["expanded"]["none"]
        self.assertEqual(node["pass"]["exp"], ["explain.example.com"])
        self.assertNotIn("warnings", node)

    def testTooManyLookups(self):
        includes = " ".join(f"include:i{n}.example" for n in range(11))
        records = {"many.example": txt(f"v=spf1 {includes} -all")}
        for n in range(11):
            records[f"i{n}.example"] = txt("v=spf1 -all")
        results, _ = self.expand(records, "many.example")
        self.assertEqual(results["lookups"], 11)
        self.assertEqual(results["valid"], "valid")
        self.assertIn(
            "Too many DNS lookups (11 > 10).",
            results["expanded"]["many.example"]["warnings"],
        )

    def testMXMechanism(self):
        """An unqualified mx is recorded under pass"""
        records = {
            "d.example": txt("v=spf1 mx:mail.example -all"),
            "mail.example": {"MX": ["10 mx1.mail.example.", "20 mx2.mail.example."]},
            "mx1.mail.example": {"A": ["192.0.2.25"]},
            "mx2.mail.example": {"A": ["192.0.2.26"], "AAAA": ["2001:db8::26"]},
        }
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["lookups"], 1)
        node = results["expanded"]["d.example"]
        self.assertEqual(node["all"], "fail")
        mx = node["pass"]["mx"]
        self.assertEqual(mx["names"], ["mx1.mail.example", "mx2.mail.example"])
        self.assertEqual(mx["ips"], ["192.0.2.25", "192.0.2.26", "2001:db8::26"])
        self.assertEqual(mx["directives"], ["mx:mail.example"])
        self.assertEqual(node["pass"]["count"]["mx-directives"], 1)
        self.assertEqual(node["pass"]["count"]["ip4count"], 2)
        self.assertEqual(node["pass"]["count"]["ip6count"], 1)

    def testMissingMXRecord(self):
        records = {"d.example": txt("v=spf1 mx -all")}
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["valid"], "valid")
        self.assertIn(
            "No MX record for domain 'd.example' found.",
            results["expanded"]["d.example"]["warnings"],
        )

    def testTooManyMXRecords(self):
        hosts = [f"{n} mx{n}.d.example." for n in range(11)]
        records = {"d.example": {"TXT": ["v=spf1 mx -all"], "MX": hosts}}
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["valid"], "invalid")
        self.assertIn(
            "More than 10 MX records for domain 'd.example' found.",
            results["expanded"]["d.example"]["errors"],
        )

    def testAMechanismPrefix(self):
        records = {
            "d.example": txt("v=spf1 a:host.example/24//64 -all"),
            "host.example": {"A": ["192.0.2.10"], "AAAA": ["2001:db8::10"]},
        }
        results, _ = self.expand(records, "d.example")
        bucket = results["expanded"]["d.example"]["pass"]
        self.assertEqual(bucket["a"]["cidrs"], ["192.0.2.10/24", "2001:db8::10/64"])
        self.assertNotIn("ips", bucket["a"])
        self.assertEqual(bucket["cidrs"], ["192.0.2.0/24", "2001:db8::/64"])
        self.assertEqual(bucket["count"]["ip4count"], 256)
        self.assertEqual(bucket["count"]["ip6count"], 2**64)

    def testMissingARecord(self):
        records = {"d.example": txt("v=spf1 a:nowhere.example -all")}
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["valid"], "valid")
        self.assertEqual(results["lookups"], 1)
        warnings = results["expanded"]["d.example"]["warnings"]
        self.assertTrue(any("nowhere.example" in w for w in warnings))

    def testMalformedAMXSpec(self):
        records = {"d.example": txt("v=spf1 a:host.example/33 -all")}
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["valid"], "invalid")
        self.assertIn(
            "Invalid directive 'a:host.example/33' for 'd.example'.",
            results["expanded"]["d.example"]["errors"],
        )

    def testInvalidIPs(self):
        records = {
            "d.example": txt(
                "v=spf1 ip4:192.0.2.300 ip6:192.0.2.1 ip4: ip4:192.0.2.1 -all"
            )
        }
        results, _ = self.expand(records, "d.example")
        node = results["expanded"]["d.example"]
        self.assertEqual(node["valid"], "invalid")
        self.assertEqual(
            node["errors"],
            [
                "Invalid IP '192.0.2.1' for domain 'd.example' found.",
                "Invalid IP '192.0.2.300' for domain 'd.example' found.",
                "Invalid definition 'ip4:' for domain 'd.example'.",
            ],
        )
        self.assertEqual(node["pass"]["ip4"], ["192.0.2.1/32"])
        self.assertNotIn("ip6", node["pass"])
        self.assertEqual(node["pass"]["count"]["ip4-directives"], 3)
        self.assertEqual(node["pass"]["count"]["ip6-directives"], 1)

    def testUnknownDirective(self):
        records = {"d.example": txt("v=spf1 foo:bar -all")}
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["valid"], "invalid")
        self.assertEqual(
            results["expanded"]["d.example"]["errors"],
            ["Unknown directive 'foo:bar' for 'd.example'."],
        )

    def testAllNotLast(self):
        """Directives after all are ignored"""
        records = {
            "d.example": txt("v=spf1 ip4:192.0.2.1 -all include:example.com"),
            "example.com": txt("v=spf1 -all"),
        }
        results, resolver = self.expand(records, "d.example")
        self.assertNotIn("example.com", results["expanded"])
        self.assertNotIn(("example.com", "TXT"), resolver.queries)
        self.assertEqual(results["lookups"], 0)
        self.assertEqual(
            results["expanded"]["d.example"]["warnings"],
            [
                "'all' directive is not last in 'd.example' policy "
                "- ignoring all subsequent directives."
            ],
        )

    def testQualifiers(self):
        records = {
            "d.example": txt(
                "v=spf1 ip4:192.0.2.1 ?ip4:192.0.2.2 ~ip4:192.0.2.3 "
                "-ip4:192.0.2.4 ~all"
            )
        }
        results, _ = self.expand(records, "d.example")
        node = results["expanded"]["d.example"]
        self.assertEqual(node["all"], "softfail")
        self.assertEqual(node["pass"]["ip4"], ["192.0.2.1/32"])
        self.assertEqual(node["neutral"]["ip4"], ["192.0.2.2/32"])
        self.assertEqual(node["softfail"]["ip4"], ["192.0.2.3/32"])
        self.assertEqual(node["fail"]["ip4"], ["192.0.2.4/32"])
        self.assertEqual(node["fail"]["total"]["ip4count"], 1)

    def testImplicitAll(self):
        records = {"d.example": txt("v=spf1 ip4:192.0.2.1")}
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["expanded"]["d.example"]["all"], "neutral (implicit)")

    def testRedirect(self):
        records = {
            "d.example": txt("v=spf1 ip4:192.0.2.0/24 redirect=other.example"),
            "other.example": txt("v=spf1 +ip4:198.51.100.0/24 -all"),
        }
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["lookups"], 1)
        node = results["expanded"]["d.example"]
        self.assertEqual(node["redirect"], "other.example")
        self.assertEqual(node["all"], "fail")
        self.assertEqual(node["pass"]["count"]["redirect-directives"], 1)
        self.assertEqual(
            node["pass"]["total"]["ip4"], ["192.0.2.0/24", "198.51.100.0/24"]
        )

    def testRedirectIgnoredWithAll(self):
        records = {
            "d.example": txt("v=spf1 redirect=other.example -all"),
            "other.example": txt("v=spf1 -all"),
        }
        results, _ = self.expand(records, "d.example")
        self.assertNotIn("other.example", results["expanded"])
        node = results["expanded"]["d.example"]
        self.assertNotIn("redirect", node)
        self.assertIn(
            "Ignored 'redirect=other.example' in 'd.example' policy with "
            "'all' statement",
            node["warnings"],
        )

    def testRedirectCancelledByAllInArgument(self):
        """The whole record text is scanned for 'all', so a domain name
        such as all.example also cancels redirect="""
        records = {
            "d.example": txt("v=spf1 include:all.example redirect=o.example"),
            "all.example": txt("v=spf1 -all"),
            "o.example": txt("v=spf1 ip4:192.0.2.0/24 -all"),
        }
        results, resolver = self.expand(records, "d.example")
        self.assertNotIn("o.example", results["expanded"])
        self.assertNotIn(("o.example", "TXT"), resolver.queries)
        node = results["expanded"]["d.example"]
        self.assertNotIn("redirect", node)
        self.assertIn(
            "Ignored 'redirect=o.example' in 'd.example' policy with "
            "'all' statement",
            node["warnings"],
        )
        self.assertEqual(results["lookups"], 1)

    def testMacroInclude(self):
        records = {"d.example": txt("v=spf1 include:%{i}._spf.example -all")}
        results, resolver = self.expand(records, "d.example")
        self.assertEqual(results["valid"], "valid")
        self.assertEqual(results["lookups"], 1)
        self.assertEqual(len(resolver.queries), 1)
        self.assertIn(
            "Not resolving '%{i}._spf.example' - macro expansion required.",
            results["expanded"]["d.example"]["warnings"],
        )

    def testMacroAMechanism(self):
        records = {"d.example": txt("v=spf1 a:%{d}.example -all")}
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["lookups"], 0)
        bucket = results["expanded"]["d.example"]["pass"]
        self.assertEqual(bucket["a"]["directives"], ["a:%{d}.example"])

    def testInvalidMacro(self):
        records = {"d.example": txt("v=spf1 exists:%{z}.example -all")}
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["valid"], "invalid")
        errors = results["expanded"]["d.example"]["errors"]
        self.assertTrue(errors[0].startswith("d.example: Invalid SPF macro syntax"))

    def testIncludeMissingSPF(self):
        records = {
            "d.example": txt("v=spf1 include:nospf.example -all"),
            "nospf.example": txt("google-site-verification=abc"),
        }
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["valid"], "invalid")
        self.assertEqual(results["expanded"]["nospf.example"]["valid"], "invalid")
        self.assertIn(
            "No SPF record found for 'nospf.example'.",
            results["expanded"]["d.example"]["warnings"],
        )

    def testIncludeNXDOMAIN(self):
        records = {"d.example": txt("v=spf1 include:gone.example -all")}
        results, _ = self.expand(records, "d.example")
        self.assertEqual(results["valid"], "invalid")
        self.assertIn(
            "No TXT record found for 'gone.example'.",
            results["expanded"]["d.example"]["warnings"],
        )

    def testMissingRecordIsFatal(self):
        with self.assertRaises(spfexpand.SPFRecordNotFound):
            self.expand({}, "missing.example")
        with self.assertRaises(spfexpand.SPFRecordNotFound):
            self.expand({"d.example": txt("hello")}, "d.example")

    def testNameserverFailureIsFatal(self):
        """A query that no nameserver answers fails the queried domain"""
        records = {"d.example": txt("v=spf1 -all")}
        for failure in [dns.resolver.NoNameservers(), dns.exception.Timeout()]:
            spfexpand.utils.DNS_CACHE.clear()
            resolver = FakeResolver(records, failures={"d.example": failure})
            with self.assertRaises(spfexpand.SPFRecordNotFound):
                spfexpand.expand_spf("d.example", resolver=resolver)

    def testIncludeNameserverFailure(self):
        """A query that no nameserver answers invalidates only the
        included domain"""
        records = {
            "d.example": txt(
                "v=spf1 include:gone.example +ip4:192.0.2.0/24 -all"
            ),
            "gone.example": txt("v=spf1 -all"),
        }
        resolver = FakeResolver(
            records, failures={"gone.example": dns.resolver.NoNameservers()}
        )
        results = spfexpand.expand_spf("d.example", resolver=resolver)
        self.assertEqual(results["valid"], "invalid")
        self.assertEqual(results["expanded"]["gone.example"]["valid"], "invalid")
        warnings = results["expanded"]["d.example"]["warnings"]
        self.assertTrue(
            any(
                warning.startswith(
                    "Unable to look up TXT record for 'gone.example'"
                )
                for warning in warnings
            )
        )
        total = results["expanded"]["d.example"]["pass"]["total"]
        self.assertEqual(total["ip4"], ["192.0.2.0/24"])

    def testMultipleRecords(self):
        records = {"d.example": {"TXT": ["v=spf1 -all", "v=spf1 mx -all"]}}
        with self.assertRaises(spfexpand.MultipleSPFRTXTRecords):
            self.expand(records, "d.example")

        records["top.example"] = txt("v=spf1 include:d.example -all")
        results, _ = self.expand(records, "top.example")
        self.assertEqual(results["valid"], "invalid")
        self.assertIn(
            "Multiple SPF policies found for 'd.example'.",
            results["expanded"]["top.example"]["errors"],
        )
        self.assertEqual(results["expanded"]["d.example"]["spf"], "-all")

    def testMultipleRecordsKeepLengthWarning(self):
        """An included domain with several SPF records still reports the
        records that are too long"""
        ips = " ".join(f"ip4:192.0.2.{n}" for n in range(1, 40))
        long_record = f"v=spf1 {ips} -all"
        records = {
            "top.example": txt("v=spf1 include:d.example -all"),
            "d.example": {"TXT": ["v=spf1 -all", long_record]},
        }
        results, _ = self.expand(records, "top.example")
        node = results["expanded"]["d.example"]
        self.assertIn("Multiple SPF policies found for 'd.example'.", node["errors"])
        self.assertIn(
            f"SPF record for 'd.example' too long ({len(long_record)} > 450).",
            node["warnings"],
        )

    def testRecordTooLong(self):
        ips = " ".join(f"ip4:192.0.2.{n}" for n in range(1, 40))
        record = f"v=spf1 {ips} -all"
        self.assertGreater(len(record), 450)
        results, _ = self.expand({"d.example": txt(record)}, "d.example")
        self.assertEqual(results["valid"], "valid")
        self.assertIn(
            f"SPF record for 'd.example' too long ({len(record)} > 450).",
            results["expanded"]["d.example"]["warnings"],
        )

    def testPolicyTooLong(self):
        ips = " ".join(f"ip4:192.0.2.{n}" for n in range(1, 40))
        record = f"v=spf1 {ips} -all"
        results = spfexpand.expand_spf(policy=record, resolver=FakeResolver({}))
        self.assertEqual(results["valid"], "valid")
        self.assertIn(
            f"SPF record for 'none' too long ({len(record)} > 450).",
            results["expanded"]["none"]["warnings"],
        )

    def testInvalidPolicy(self):
        resolver = FakeResolver({})
        with self.assertRaises(spfexpand.SPFPolicyError):
            spfexpand.expand_spf(policy="hello", resolver=resolver)
        with self.assertRaises(spfexpand.SPFPolicyError):
            spfexpand.expand_spf(policy="v=spf1 foo -all", resolver=resolver)

    def testPtrWarning(self):
        records = {"d.example": txt("v=spf1 ptr -all")}
        results, _ = self.expand(records, "d.example")
        node = results["expanded"]["d.example"]
        self.assertEqual(results["lookups"], 2)
        self.assertEqual(node["pass"]["ptr"], ["d.example"])
        self.assertEqual(len(node["warnings"]), 1)

    def testReports(self):
        records = {
            "example.org": txt(
                "v=spf1 ip4:203.0.113.0/24 +include:_spf.example.net -all"
            ),
            "_spf.example.net": txt("v=spf1 +ip4:198.51.100.0/24 ~all"),
        }
        results, _ = self.expand(records, "example.org")
        text = spfexpand.results_to_text(results)
        self.assertIn("example.org:", text)
        self.assertIn("_spf.example.net:", text)
        self.assertIn("ip4 (1 CIDR / 256 IPs):", text)
        self.assertIn("SPF record for domain 'example.org': valid", text)
        self.assertIn("Total # of ip4 addresses        : 512", text)
        self.assertTrue(text.rstrip().endswith("All others: fail"))

        json_results = spfexpand.results_to_json(results)
        self.assertIn('"query": "example.org"', json_results)

        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "results.json")
            spfexpand.output_to_file(path, json_results)
            with open(path, encoding="utf-8") as output_file:
                self.assertEqual(output_file.read(), json_results)


if __name__ == "__main__":
    unittest.main(verbosity=2)
