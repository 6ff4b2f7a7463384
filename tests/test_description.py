"""
Tests for fetching and parsing description.xml.
"""
import pytest
import requests

from hue_ssdp_responder import Target, DescriptionFetchError, DescriptionParseError, HueSsdpError
from hue_ssdp_responder.description import fetch_description, fetch_bridge_uuid, parse_bridge_uuid

from conftest import description_xml, make_session

TARGET = Target("example.local", 80)


def test_uuid_prefix_is_stripped():
    assert parse_bridge_uuid(description_xml("uuid:ABCD-1234")) == "ABCD-1234"


def test_udn_without_prefix_is_kept():
    assert parse_bridge_uuid(description_xml("not-a-uuid")) == "not-a-uuid"


def test_whitespace_around_udn_is_ignored():
    assert parse_bridge_uuid(description_xml("\n   uuid:2f402f80-da50-11e1-9b23-001788255acc\n  ")) == "2f402f80-da50-11e1-9b23-001788255acc"


def test_document_without_namespace():
    data = b'<root><device><UDN>uuid:1234</UDN></device></root>'
    assert parse_bridge_uuid(data) == "1234"


@pytest.mark.parametrize("data", [
    b'this is not xml',
    b'',
    b'<root><device><UDN>uuid:1234</UDN></device>',
])
def test_malformed_xml(data):
    with pytest.raises(DescriptionParseError):
        parse_bridge_uuid(data)


@pytest.mark.parametrize("data", [
    b'<root><device><friendlyName>hue</friendlyName></device></root>',
    b'<root><UDN>uuid:1234</UDN></root>',
    b'<html><device><UDN>uuid:1234</UDN></device></html>',
    b'<root><device><UDN>uuid:</UDN></device></root>',
    b'<root><device><UDN/></device></root>',
])
def test_missing_or_empty_udn(data):
    with pytest.raises(DescriptionParseError):
        parse_bridge_uuid(data)


def test_fetch_sends_expected_request():
    session = make_session(200, description_xml("uuid:ABCD-1234"))
    assert fetch_bridge_uuid(TARGET, timeout=3.0, session=session) == "ABCD-1234"
    session.get.assert_called_once()
    args, kwargs = session.get.call_args
    assert args[0] == "http://example.local:80/description.xml"
    assert kwargs["headers"]["Accept"] == "*/*"
    assert kwargs["headers"]["Connection"] == "close"
    assert kwargs["timeout"] == 3.0


def test_fetch_non_200_status():
    session = make_session(404, b'not found')
    with pytest.raises(DescriptionFetchError) as exc_info:
        fetch_description(TARGET, session=session)
    assert "404" in str(exc_info.value)


@pytest.mark.parametrize("exc", [
    requests.ConnectionError("connection refused"),
    requests.Timeout("timed out"),
])
def test_fetch_transport_failure(exc):
    session = make_session(exc=exc)
    with pytest.raises(DescriptionFetchError):
        fetch_bridge_uuid(TARGET, session=session)


def test_fetch_errors_share_base_class():
    assert issubclass(DescriptionFetchError, HueSsdpError)
    assert issubclass(DescriptionParseError, HueSsdpError)
