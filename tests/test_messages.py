import pytest

from obscura.messages import RequestInfo, ResourceType, Response


def make_response(**kwargs):
    defaults = {"url": "https://example.com/", "status": 200}
    defaults.update(kwargs)
    return Response(**defaults)


def test_header_lookup_ignores_case():
    resp = make_response(headers={"x-thing": "value"})
    assert resp.header("X-Thing") == "value"
    assert resp.header("x-missing") is None


def test_is_html_from_content_type():
    resp = make_response(headers={"content-type": "text/html; charset=utf-8"})
    assert resp.content_type() == "text/html; charset=utf-8"
    assert resp.is_html() is True


def test_not_html_without_content_type():
    resp = make_response()
    assert resp.content_type() is None
    assert resp.is_html() is False


def test_text_round_trip():
    resp = make_response(body="héllo".encode("utf-8"))
    assert resp.text() == "héllo"


def test_text_rejects_invalid_utf8():
    resp = make_response(body=b"\xff\xfe\xfa")
    with pytest.raises(UnicodeDecodeError):
        resp.text()


def test_request_info_defaults():
    info = RequestInfo(url="https://example.com/", method="GET")
    assert info.resource_type is ResourceType.DOCUMENT
    assert info.headers == {}
    assert make_response().redirected_from == []