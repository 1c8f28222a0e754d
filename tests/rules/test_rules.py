# tests/rules/test_rules.py
"""
Each rule is run alone through the Validator against a fixture document;
the keys it reports are compared as multisets.
"""
import asyncio
from pathlib import Path

import pytest

from extractor.model import DocumentSource
from linkcheck.services.host_policy_service import HostPolicy
from linkcheck.services.link_resolver_service import LinkResolver
from pubrules.controllers.validation_controller import Validator
from pubrules.model import Profile, RunConfig
from pubrules.profiles import get_profile

DOCS_DIR = Path(__file__).parent.parent / "fixtures" / "docs"

WD = get_profile("WD").config
CR = get_profile("CR").config

ERRATA_HTTP = """<div class="head"><h1 id="title">X</h1>
<p id="w3c-state">W3C Recommendation, 3 June 2021</p>
<dl><dt>Errata:</dt><dd><a href="http://www.w3.org/2021/foo-errata.html">errata</a></dd></dl></div>"""
ERRATA_HTTPS = ERRATA_HTTP.replace("http://", "https://")

SECTIONS = """<body><section id="a"><h2>A</h2></section>
<section><h2 id="b">B</h2></section>
<section><h2>Unlinkable</h2></section>
<section><p>No heading either</p></section></body>"""


def as_config(config) -> RunConfig:
    if isinstance(config, RunConfig):
        return config
    return RunConfig.model_validate(config or {})


def validate(rules, source, config=None, validator=None):
    profile = Profile(name="test", rules=rules, config=as_config(config))
    return asyncio.run((validator or Validator()).validate(source, profile))


def doc(name: str) -> DocumentSource:
    return DocumentSource(file=DOCS_DIR / name)


def inline(html: str) -> DocumentSource:
    return DocumentSource(content=html)


# (rule id, document, config, expected error keys, expected warning keys)
RULE_CASES = [
    ("dummy/dahut", inline("<p><dahut>hi</dahut></p>"), None, [], []),
    ("dummy/dahut", inline("<p>no dahut</p>"), None, ["not-found"], []),
    ("dummy/h1", doc("headers/fails.html"), None, [], []),
    ("dummy/h1", inline("<h2>Foo</h2>"), None, ["not-found"], []),
    ("dummy/h2-foo", inline("<h2> FOO </h2>"), None, [], []),
    ("dummy/h2-foo", inline("<h2>Bar</h2>"), None, ["not-found"], []),

    ("echidna/todays-date", doc("headers/simple.html"), {"today": "2021-06-03"}, [], []),
    ("echidna/todays-date", doc("headers/simple.html"), {"today": "2021-06-04"}, ["wrong-date"], []),

    ("headers/div-head", doc("headers/simple.html"), WD, [], []),
    ("headers/div-head", doc("headers/fails.html"), WD, ["not-found"], []),
    ("headers/title", doc("headers/simple.html"), WD, [], []),
    ("headers/title", doc("headers/fails.html"), WD, ["not-found"], []),
    ("headers/hr", doc("headers/simple.html"), WD, [], []),
    ("headers/hr", doc("headers/fails.html"), WD, ["not-found"], []),
    ("headers/logo", doc("headers/simple.html"), WD, [], []),
    ("headers/logo", doc("headers/fails.html"), WD, ["not-found"], []),
    ("headers/h1-title", doc("headers/simple.html"), WD, [], []),
    ("headers/h1-title", doc("headers/fails.html"), WD, ["not-found"], []),
    ("headers/h1-title", inline("<title>A</title><h1 id='title'>B</h1>"), WD, ["not-match"], []),
    ("headers/copyright", doc("headers/simple.html"), WD, [], []),
    ("headers/copyright", doc("headers/fails.html"), WD, ["not-found"], []),
    ("headers/errata", inline(ERRATA_HTTPS), None, [], []),
    ("headers/errata", inline(ERRATA_HTTP), None, ["link-should-be-https"], []),

    ("headers/dl", doc("headers/simple.html"), WD, [], []),
    ("headers/dl", doc("headers/fails.html"), WD,
     ["not-found", "this-version", "latest-version", "previous-version", "editor-not-found"], []),
    ("headers/dl", doc("headers/dl-order.html"), None,
     ["this-latest-order", "latest-previous-order", "editors-draft-should-be-https", "implelink-should-be-https"],
     ["previous-not-needed"]),
    ("headers/dl", doc("headers/dl-mismatch.html"), {"status": "REC"},
     ["link-diff", "link-diff", "link-diff", "this-syntax", "latest-syntax", "previous-syntax",
      "not-found", "editor-not-found"],
     ["previous-not-needed"]),
    ("headers/dl", doc("headers/shortname-change.html"), {"status": "WD", "previousVersion": True},
     [], ["this-previous-shortname"]),
    ("headers/dl", doc("headers/untrimmed.html"), {"previousVersion": True},
     ["not-found", "editor-missing-id"], []),

    ("style/sheet", doc("headers/simple.html"), WD, [], []),
    ("style/sheet", doc("headers/fails.html"), WD, ["not-found"], []),
    ("style/sheet", doc("headers/fails.html"), None, [], []),
    ("style/sheet", doc("headers/simple.html"), {"styleSheet": "W3C-REC"}, ["not-found"], []),
    ("style/back-to-top", doc("headers/simple.html"), WD, [], []),
    ("style/back-to-top", doc("headers/fails.html"), WD, [], ["not-found"]),
    ("style/body-toc-sidebar", doc("headers/simple.html"), WD, [], []),
    ("style/body-toc-sidebar", inline("<body class='toc-sidebar'><p>x</p></body>"), WD, ["class-found"], []),

    ("structure/h2", doc("headers/simple.html"), WD, [], []),
    ("structure/h2", doc("headers/fails.html"), WD, ["abstract", "sotd", "toc"], []),
    ("structure/section-ids", doc("headers/simple.html"), WD, [], []),
    ("structure/section-ids", inline(SECTIONS), WD, ["no-id", "no-id"], []),
    ("structure/canonical", doc("headers/simple.html"), WD, [], []),
    ("structure/canonical", doc("headers/fails.html"), WD, ["not-found"], []),

    ("links/internal", doc("headers/simple.html"), WD, [], []),
    ("links/internal", doc("links/internal-fails.html"), WD, ["anchor", "anchor"], []),
    ("links/reliability", doc("headers/simple.html"), WD, [], []),
    ("links/reliability", doc("links/internal-fails.html"), WD, [], ["unreliable-link"] * 6),
    ("links/linkchecker", doc("links/external-resources.html"), WD, [], []),

    ("sotd/supersedable", doc("headers/simple.html"), WD, [], []),
    ("sotd/supersedable", doc("headers/fails.html"), WD, ["no-sotd-intro", "no-sotd-tr"], []),
    ("sotd/pp", doc("headers/simple.html"), WD, [], []),
    ("sotd/pp", doc("headers/fails.html"), WD, ["no-pp"], []),
    ("sotd/pp", doc("headers/fails.html"), None, [], []),
    ("sotd/pp", doc("headers/fails.html"), {"recTrackStatus": True, "patentPolicy": "pp1999"}, ["undefined"], []),
    ("sotd/pp", doc("metadata/cr.html"), CR, [], ["joint-publication"]),
    ("sotd/pp", doc("metadata/cr.html"), CR.merged({"noRecTrack": True}), [], []),
    ("sotd/stability", doc("headers/simple.html"), WD, [], []),
    ("sotd/stability", doc("headers/fails.html"), WD, ["no-stability"], []),
    ("sotd/stability", doc("headers/fails.html"), {"stabilityWarning": "maybe"}, [], []),

    ("heuristic/date-format", doc("headers/simple.html"), WD, [], []),
    ("heuristic/date-format", doc("heuristic/bad-dates.html"), WD, ["wrong", "wrong"], []),
]


def case_id(case):
    rule_id, source, config, errors, warnings = case
    where = source.file.name if source.file is not None else "inline"
    return f"{rule_id}@{where}-{len(errors)}e{len(warnings)}w"


@pytest.mark.parametrize("case", RULE_CASES, ids=[case_id(c) for c in RULE_CASES])
def test_rule(case):
    rule_id, source, config, errors, warnings = case
    result = validate((rule_id,), source, config)

    assert result.exceptions == []
    assert result.complete
    assert sorted(f.key for f in result.errors) == sorted(errors)
    assert sorted(f.key for f in result.warnings) == sorted(warnings)
    assert {f.rule_id for f in result.findings} <= {rule_id}


def test_findings_carry_detail():
    result = validate(("heuristic/date-format",), doc("heuristic/bad-dates.html"))
    assert sorted(f.detail["found"] for f in result.errors) == ["03 July 2021", "June 3, 2021"]
    assert {f.identity for f in result.errors} == {"heuristic.date-format.wrong"}


def test_clean_working_draft_passes_its_profile():
    result = asyncio.run(Validator().validate(doc("headers/simple.html"), "WD"))
    assert result.profile == "WD"
    assert result.findings == []
    assert result.exceptions == []
    assert sorted(result.dispatched) == sorted(get_profile("WD").rules)


def test_bare_document_fails_its_profile():
    result = asyncio.run(Validator().validate(doc("headers/fails.html"), "WD"))
    identities = {f.identity for f in result.errors}
    assert {
        "headers.div-head.not-found",
        "headers.logo.not-found",
        "structure.h2.abstract",
        "sotd.pp.no-pp",
        "sotd.stability.no-stability",
    } <= identities
    assert result.exceptions == []


# --- Rules that touch the network, against the local fixture origin ---

LINKCHECK_CASES = [
    ("links/external-resources.html", ["not-same-folder", "not-same-folder"], ["display"]),
    ("links/broken-resources.html", ["response-error"], ["display"]),
    ("links/redirect-resources.html", ["response-error-with-redirect"], ["display"]),
    ("links/redirect-twice-resources.html", ["response-error-with-redirect"], ["display"]),
    ("links/unreliable-hosts.html", [], []),
]


@pytest.mark.parametrize("path, errors, warnings", LINKCHECK_CASES)
def test_linkchecker(fixture_server, path, errors, warnings):
    async def scenario():
        async with fixture_server() as (server, _hits):
            source = DocumentSource(url=str(server.make_url(f"/docs/{path}")))
            profile = Profile(name="test", rules=("links/linkchecker",), config=WD)
            return await Validator().validate(source, profile)

    result = asyncio.run(scenario())
    assert result.exceptions == []
    assert sorted(f.key for f in result.errors) == sorted(errors)
    assert sorted(f.key for f in result.warnings) == sorted(warnings)


def test_linkchecker_reports_the_failing_resource(fixture_server):
    async def scenario():
        async with fixture_server() as (server, _hits):
            url = str(server.make_url("/docs/links/redirect-resources.html"))
            profile = Profile(name="test", rules=("links/linkchecker",), config=WD)
            return await Validator().validate(DocumentSource(url=url), profile)

    result = asyncio.run(scenario())
    (error,) = result.errors
    assert error.detail["link"].endswith("/docs/links/image/logo-fail")
    assert error.detail["final"].endswith("/docs/links/image/logo-fail.png")
    (display,) = result.warnings
    assert len(display.detail["links"]) == 3


def test_linkchecker_follows_two_redirects_before_the_failure(fixture_server):
    async def scenario():
        async with fixture_server() as (server, hits):
            url = str(server.make_url("/docs/links/redirect-twice-resources.html"))
            profile = Profile(name="test", rules=("links/linkchecker",), config=WD)
            return await Validator().validate(DocumentSource(url=url), profile), hits

    result, hits = asyncio.run(scenario())
    (error,) = result.errors
    assert error.key == "response-error-with-redirect"
    assert error.detail["link"].endswith("/docs/links/image/logo-moved")
    assert [link.rsplit("/", 1)[1] for link in error.detail["chain"]] == ["logo-moved-again", "logo-gone.png"]
    assert error.detail["status"] == 404
    assert [f.key for f in result.warnings] == ["display"]
    assert hits["/docs/links/image/logo-gone.png"] == 1


def test_unreliable_but_reachable_links(fixture_server):
    policy = HostPolicy(unreliable=["127.0.0.1"])
    validator = Validator(resolver_factory=lambda http: LinkResolver(http_service=http, policy=policy))

    async def scenario():
        async with fixture_server() as (server, _hits):
            source = DocumentSource(url=str(server.make_url("/docs/links/unreliable-hosts.html")))
            profile = Profile(
                name="test", rules=("links/internal", "links/reliability", "links/linkchecker"), config=WD
            )
            return await validator.validate(source, profile)

    result = asyncio.run(scenario())
    assert result.errors == []
    assert [f.key for f in result.warnings] == ["unreliable-link", "unreliable-link"]
