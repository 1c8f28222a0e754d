# tests/linkcheck/test_link_resolver.py
import asyncio

import pytest
from yarl import URL

from linkcheck.model import HostReliability, LinkStatus
from linkcheck.services.host_policy_service import HostPolicy
from linkcheck.services.http_request_service import HttpRequestService
from linkcheck.services.link_resolver_service import LinkResolver
from pubrules.core.errors import ResolverConfigError

SESSION = {"session": {"concurrency": 5, "time_out": 5, "max_redirects": 10, "max_timeout_redirects": 5}}


def run_with_resolver(fixture_server, scenario, **resolver_kwargs):
    """Starts the fixture origin, builds a resolver and hands both to the scenario coroutine."""

    async def runner():
        async with fixture_server() as (server, hits):
            async with HttpRequestService(SESSION) as http:
                resolver = LinkResolver(http_service=http, policy=resolver_kwargs.pop("policy", HostPolicy()),
                                        **resolver_kwargs)
                root = server.make_url("/")
                return await scenario(resolver, lambda path: str(root.join(URL(path))), hits)

    return asyncio.run(runner())


def test_reachable_target(fixture_server):
    async def scenario(resolver, url, _hits):
        return await resolver.resolve(url("/docs/links/image/logo.png"))

    res = run_with_resolver(fixture_server, scenario)
    assert res.status is LinkStatus.REACHABLE
    assert res.status_code == 200
    assert res.redirect_chain == ()
    assert not res.is_broken


def test_redirect_chain_is_followed_to_the_end(fixture_server):
    async def scenario(resolver, url, _hits):
        return await resolver.resolve(url("/docs/links/image/logo-redirection-1")), url

    res, url = run_with_resolver(fixture_server, scenario)
    assert res.status is LinkStatus.REACHABLE
    assert res.redirect_chain == (
        url("/docs/links/image/logo-redirection-2"),
        url("/docs/links/image/logo-redirection-3"),
        url("/docs/links/image/logo.png"),
    )
    assert res.final_url == url("/docs/links/image/logo.png")
    assert res.redirected


def test_broken_and_redirected_then_broken(fixture_server):
    async def scenario(resolver, url, _hits):
        return (
            await resolver.resolve(url("/docs/links/image/missing.png")),
            await resolver.resolve(url("/docs/links/image/logo-fail")),
        )

    broken, redirected = run_with_resolver(fixture_server, scenario)
    assert broken.status is LinkStatus.BROKEN
    assert broken.status_code == 404
    assert broken.error == "HTTP 404"
    assert redirected.status is LinkStatus.REDIRECTED_THEN_BROKEN
    assert redirected.final_url.endswith("/docs/links/image/logo-fail.png")
    assert redirected.status_code == 404


def test_redirect_loop_terminates(fixture_server):
    async def scenario(resolver, url, _hits):
        return await resolver.resolve(url("/loop/a"))

    res = run_with_resolver(fixture_server, scenario)
    assert res.status is LinkStatus.REDIRECTED_THEN_BROKEN
    assert res.error == "Redirect loop"
    assert len(res.redirect_chain) == 2


def test_redirect_limit(fixture_server):
    async def scenario(resolver, url, _hits):
        return await resolver.resolve(url("/docs/links/image/logo-redirection-1"))

    res = run_with_resolver(fixture_server, scenario, max_redirects=1)
    assert res.status is LinkStatus.REDIRECTED_THEN_BROKEN
    assert res.error == "More than 1 redirects"


def test_head_refused_falls_back_to_get(fixture_server):
    async def scenario(resolver, url, hits):
        res = await resolver.resolve(url("/no-head"))
        return res, hits[("HEAD", "/no-head")], hits[("GET", "/no-head")]

    res, heads, gets = run_with_resolver(fixture_server, scenario)
    assert res.status is LinkStatus.REACHABLE
    assert (heads, gets) == (1, 1)


def test_concurrent_lookups_share_one_fetch(fixture_server):
    async def scenario(resolver, url, hits):
        target = url("/docs/links/image/logo.png")
        results = await asyncio.gather(*(resolver.resolve(target) for _ in range(5)))
        again = await resolver.resolve(target + "#fragment")
        return results, again, hits[("HEAD", "/docs/links/image/logo.png")]

    results, again, head_hits = run_with_resolver(fixture_server, scenario)
    assert head_hits == 1
    assert {r.status for r in results} == {LinkStatus.REACHABLE}
    assert again.status is LinkStatus.REACHABLE


def test_unreliable_host_is_independent_of_reachability(fixture_server):
    async def scenario(resolver, url, _hits):
        return await resolver.resolve(url("/docs/links/image/logo.png"))

    res = run_with_resolver(fixture_server, scenario, policy=HostPolicy(unreliable=["127.0.0.1"]))
    assert res.status is LinkStatus.REACHABLE
    assert res.host_reliability is HostReliability.UNRELIABLE
    assert res.unreliable_hosts == ("127.0.0.1",)


def test_same_origin_flag(fixture_server):
    async def scenario(resolver, url, _hits):
        base = url("/docs/links/external-resources.html")
        inside = await resolver.resolve(url("/docs/links/image/logo"), same_origin_base=base)
        outside = await resolver.resolve(url("/no-head"), same_origin_base=base)
        unasked = await resolver.resolve(url("/no-head"))
        return inside, outside, unasked

    inside, outside, unasked = run_with_resolver(fixture_server, scenario)
    assert inside.same_origin is True
    assert outside.same_origin is False
    assert unasked.same_origin is None


def test_malformed_base_is_a_configuration_error(fixture_server):
    async def scenario(resolver, url, hits):
        with pytest.raises(ResolverConfigError):
            await resolver.resolve(url("/no-head"), same_origin_base="not a url")
        return sum(hits.values())

    assert run_with_resolver(fixture_server, scenario) == 0


def test_non_http_urls_are_broken_without_network():
    async def scenario():
        resolver = LinkResolver(http_service=HttpRequestService(SESSION), policy=HostPolicy())
        try:
            return await resolver.resolve("mailto:someone@example.org")
        finally:
            await resolver.http.close()

    res = asyncio.run(scenario())
    assert res.status is LinkStatus.BROKEN
    assert res.error == "Unsupported URL scheme"
    assert res.status_code is None
