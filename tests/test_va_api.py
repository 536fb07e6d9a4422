import httpx

from varating.integrations.va_api import normalize_path, va_facilities_proxy, va_forms_proxy


def recording_client(response: httpx.Response, seen: list) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return response

    return httpx.Client(transport=httpx.MockTransport(handler))


def test_normalize_path():
    assert normalize_path("/prod/forms/21-526EZ", "/forms", "prod") == "/forms/21-526EZ"
    assert normalize_path("/prod", "/forms", "prod") == "/forms"
    assert normalize_path("", "/facilities") == "/facilities"
    assert normalize_path("forms", "/x") == "/forms"
    assert normalize_path("/production/forms", "/forms", "prod") == "/production/forms"


def test_forms_proxy_relays_text_and_sends_key():
    seen = []
    client = recording_client(httpx.Response(200, text='{"data": []}'), seen)
    result = va_forms_proxy("/forms", {"query": "526"}, client=client)
    assert result == {"status_code": 200, "body": '{"data": []}'}
    assert seen[0].url.params["query"] == "526"
    assert "apikey" in seen[0].headers


def test_forms_proxy_transport_failure():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    result = va_forms_proxy("/forms", client=client)
    assert result["status_code"] == 500
    assert "error" in result["body"]


def test_facilities_proxy_relays_json():
    seen = []
    client = recording_client(httpx.Response(200, json={"data": [{"id": "vha_1"}]}), seen)
    result = va_facilities_proxy("GET", "/prod/facilities", {"state": "TX"}, client=client)
    assert result == {"status_code": 200, "body": {"data": [{"id": "vha_1"}]}}
    assert seen[0].url.path.endswith("/facilities")


def test_facilities_proxy_upstream_error():
    client = recording_client(httpx.Response(404, json={"errors": ["nope"]}), [])
    result = va_facilities_proxy("GET", "/facilities/unknown", client=client)
    assert result["status_code"] == 404
    assert result["body"] == {"message": "Request failed with status code 404", "data": {"errors": ["nope"]}}
