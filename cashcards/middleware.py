import logging
import time

logger = logging.getLogger(__name__)

MAX_LOGGED_BODY = 2048


class RequestResponseLoggingMiddleware:
    """
    Logs each request (method, path, caller, JSON body) and its response
    (status, duration, JSON content).

    Headers are never logged, so Basic credentials from the Authorization
    header do not reach the logs. Card bodies only carry amounts.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        request_body = self._request_body(request)

        logger.info(
            "API Request: %s %s Body: %s",
            request.method,
            request.get_full_path(),
            request_body,
        )

        response = self.get_response(request)

        # DRF copies the authenticated principal back onto the Django request.
        caller = getattr(request, "user", None) or "anonymous"
        logger.info(
            "API Response: %s %s User: %s Status: %s Duration: %.1fms Content: %s",
            request.method,
            request.get_full_path(),
            caller,
            response.status_code,
            (time.monotonic() - started) * 1000,
            self._response_content(response),
        )
        return response

    @staticmethod
    def _request_body(request) -> str:
        if request.method not in ("POST", "PUT", "PATCH"):
            return ""
        if not request.META.get("CONTENT_TYPE", "").startswith("application/json"):
            return "<non-JSON body not logged>"
        try:
            return request.body[:MAX_LOGGED_BODY].decode("utf-8")
        except UnicodeDecodeError:
            return "<Could not decode body>"

    @staticmethod
    def _response_content(response) -> str:
        if getattr(response, "streaming", False):
            return "<Streaming content>"
        if not response.get("Content-Type", "").startswith("application/json"):
            return ""
        try:
            return response.content[:MAX_LOGGED_BODY].decode("utf-8")
        except UnicodeDecodeError:
            return "<Could not decode content>"
