"""HTTP transport to the automation-platform webhooks and the payment gateway."""

from contextlib import nullcontext

import httpx

import settings


class UpstreamError(Exception):
    """A webhook or gateway call failed."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


def new_client():
    return httpx.Client(timeout=settings.HTTP_TIMEOUT)


def _client_scope(client):
    return nullcontext(client) if client is not None else new_client()


def read_body(response):
    """Webhooks answer with JSON or with plain text such as "Accepted"."""
    try:
        return response.json()
    except ValueError:
        return response.text


def send(method, url, client=None, **kwargs):
    if not url:
        raise UpstreamError("Webhook URL is not configured")

    with _client_scope(client) as http:
        try:
            response = http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Request to {url} failed: {exc}") from exc

    if not response.is_success:
        raise UpstreamError(
            f"Webhook request failed: {response.status_code} - {response.text}",
            status_code=response.status_code,
        )
    return response


def post_json(url, payload, client=None):
    return send("POST", url, client=client, json=payload)
