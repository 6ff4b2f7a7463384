"""
Tests for the rate-limited bridge UUID cache.
"""
import asyncio

import requests

from hue_ssdp_responder import IdentityCache, Target

from conftest import description_xml, make_session

TARGET = Target("example.local", 80)


async def test_initial_uuid_is_empty():
    cache = IdentityCache(TARGET, session=make_session(200, description_xml("uuid:1234")))
    assert cache.uuid == ""
    assert cache.identity.last_fetch_time is None
    assert not cache.identity.cooling_down


async def test_fetch_stores_uuid():
    cache = IdentityCache(TARGET, session=make_session(200, description_xml("uuid:ABCD-1234")))
    await cache.ensure_fresh()
    assert cache.uuid == "ABCD-1234"
    assert cache.identity.cooling_down
    assert cache.identity.last_fetch_time is not None
    cache.close()


async def test_two_calls_within_refresh_interval_fetch_once():
    session = make_session(200, description_xml("uuid:1234"))
    cache = IdentityCache(TARGET, refresh_interval=300, session=session)
    await cache.ensure_fresh()
    await cache.ensure_fresh()
    assert session.get.call_count == 1
    assert cache.fetch_count == 1
    cache.close()


async def test_concurrent_calls_share_one_fetch():
    session = make_session(200, description_xml("uuid:1234"))
    cache = IdentityCache(TARGET, session=session)
    await asyncio.gather(cache.ensure_fresh(), cache.ensure_fresh(), cache.ensure_fresh())
    assert session.get.call_count == 1
    assert cache.uuid == "1234"
    cache.close()


async def test_refresh_returns_in_flight_fetch():
    cache = IdentityCache(TARGET, session=make_session(200, description_xml("uuid:1234")))
    first = cache.refresh()
    second = cache.refresh()
    assert first is not None
    assert second is first
    await first
    assert cache.refresh() is None
    cache.close()


async def test_fetch_allowed_again_after_refresh_interval():
    session = make_session(200, description_xml("uuid:1234"))
    cache = IdentityCache(TARGET, refresh_interval=0.05, session=session)
    await cache.ensure_fresh()
    await asyncio.sleep(0.15)
    assert not cache.identity.cooling_down
    await cache.ensure_fresh()
    assert session.get.call_count == 2
    cache.close()


async def test_http_404_leaves_identity_unchanged():
    session = make_session(200, description_xml("uuid:1234"))
    cache = IdentityCache(TARGET, refresh_interval=0.05, session=session)
    await cache.ensure_fresh()
    assert cache.uuid == "1234"

    session.get.return_value.status_code = 404
    await asyncio.sleep(0.15)
    await cache.ensure_fresh()
    assert session.get.call_count == 2
    assert cache.uuid == "1234"
    cache.close()


async def test_http_404_on_first_fetch_keeps_empty_uuid_and_cools_down():
    session = make_session(404, b'not found')
    cache = IdentityCache(TARGET, session=session)
    await cache.ensure_fresh()
    assert cache.uuid == ""
    assert cache.identity.cooling_down
    await cache.ensure_fresh()
    assert session.get.call_count == 1
    cache.close()


async def test_non_xml_body_leaves_identity_unchanged():
    cache = IdentityCache(TARGET, session=make_session(200, b'<html>this is not a description'))
    await cache.ensure_fresh()
    assert cache.uuid == ""
    cache.close()


async def test_connection_failure_leaves_identity_unchanged():
    cache = IdentityCache(TARGET, session=make_session(exc=requests.ConnectionError("refused")))
    await cache.ensure_fresh()
    assert cache.uuid == ""
    cache.close()


async def test_unexpected_error_is_contained():
    cache = IdentityCache(TARGET, session=make_session(exc=RuntimeError("boom")))
    await cache.ensure_fresh()
    assert cache.uuid == ""
    cache.close()


async def test_cancelling_waiter_does_not_cancel_fetch():
    session = make_session(200, description_xml("uuid:1234"))
    cache = IdentityCache(TARGET, session=session)
    waiter = asyncio.create_task(cache.ensure_fresh())
    await asyncio.sleep(0)
    fetch_task = cache.refresh()
    waiter.cancel()
    assert fetch_task is not None
    await fetch_task
    assert cache.uuid == "1234"
    cache.close()
