"""Bridge live request/response objects and descriptors."""

from typing import Any

from rewind.fingerprint import build_request, build_response, flatten_headers
from rewind.models import HttpRequest, HttpResponse, RequestDescriptor, ResponseDescriptor


class Adapter:
    """How a backend reads and builds the objects its transport speaks.

    ``read_response`` / ``aread_response`` materialize a real response body
    before capture; they are only called when the response is recorded.
    """

    def describe_request(self, request: Any) -> RequestDescriptor:
        raise NotImplementedError

    def describe_response(self, response: Any) -> ResponseDescriptor:
        raise NotImplementedError

    def build_response(self, request: Any, descriptor: ResponseDescriptor) -> Any:
        raise NotImplementedError

    def read_response(self, response: Any):
        pass

    async def aread_response(self, response: Any):
        pass


class PlainAdapter(Adapter):
    """Adapter for HttpRequest / HttpResponse."""

    def describe_request(self, request: HttpRequest) -> RequestDescriptor:
        return build_request(request.method, request.uri, request.body, request.headers)

    def describe_response(self, response: HttpResponse) -> ResponseDescriptor:
        return build_response(
            response.status_code, response.status_text, response.body, response.headers
        )

    def build_response(self, request: HttpRequest, descriptor: ResponseDescriptor) -> HttpResponse:
        return HttpResponse(
            status_code=descriptor.status_code,
            status_text=descriptor.status_text,
            headers=flatten_headers(descriptor.headers),
            body=descriptor.body,
        )
