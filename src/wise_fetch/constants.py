"""
Option grammar and message constants for wise_fetch.
"""
import os
import tempfile

CACHE_DIR = os.path.join(tempfile.gettempdir(), "wise-fetch")
MINIMUM_REQUIRED_HTTPX_VERSION = "0.26.0"

NOT_MODIFIED = 304
MAX_INTEGER_OPTION = 2147483646
DEFAULT_FOLLOW = 20

# Options only accepted by create(), never per call
CREATE_METHOD_SPECIFIC_OPTIONS = (
    "additional_option_validators",
    "frozen_options",
    "url_modifier",
)

CACHE_OPTIONS = ("default", "force-cache", "no-cache", "no-store", "only-if-cached")
REDIRECT_OPTIONS = ("error", "follow", "manual")

# Request methods accepted by common HTTP servers and proxies
HTTP_METHODS = frozenset({
    "ACL", "BIND", "CHECKOUT", "CONNECT", "COPY", "DELETE", "GET", "HEAD",
    "LINK", "LOCK", "M-SEARCH", "MERGE", "MKACTIVITY", "MKCALENDAR", "MKCOL",
    "MOVE", "NOTIFY", "OPTIONS", "PATCH", "POST", "PROPFIND", "PROPPATCH",
    "PURGE", "PUT", "QUERY", "REBIND", "REPORT", "SEARCH", "SOURCE",
    "SUBSCRIBE", "TRACE", "UNBIND", "UNLINK", "UNLOCK", "UNSUBSCRIBE",
})

# Lower-cased misspelling -> correct option name
POSSIBLE_TYPOS = {
    "baseuri": "base_url",
    "base_uri": "base_url",
    "baseurl": "base_url",
    "header": "headers",
    "redirects": "redirect",
    "caches": "cache",
    "follows": "follow",
    "maxsocket": "max_sockets",
    "max_socket": "max_sockets",
    "maxsockets": "max_sockets",
    "proxies": "proxy",
    "noproxy": "no_proxy",
    "compression": "compress",
    "useragent": "user_agent",
    "urlmodifier": "url_modifier",
    "frozenoptions": "frozen_options",
    "additionaloptionvalidators": "additional_option_validators",
    "resolveunsuccessfulresponse": "resolve_unsuccessful_response",
    "resolve_unsuccessful_promise": "resolve_unsuccessful_response",
    "resolve_unsuccessful_responses": "resolve_unsuccessful_response",
    "resolve_unsuccesful_response": "resolve_unsuccessful_response",
    "resolve_unsucessful_response": "resolve_unsuccessful_response",
}

URL_ERROR = "Expected an HTTP or HTTPS request URL (<str|httpx.URL>)"
FROZEN_OPTION_ERROR = "Expected every value of `frozen_options` option to be an option name (<str>)"
BASE_URL_ERROR = (
    "Expected `base_url` option to be an HTTP or HTTPS URL to rebase all requests from it "
    "(<str|httpx.URL>)"
)
HEADERS_ERROR = (
    "Expected `headers` option to be a header mapping or an iterable of name/value pairs "
    "(<Mapping|Iterable>)"
)
USER_AGENT_ERROR = "Expected `user_agent` option to be a User-Agent <str>"
METHOD_ERROR = "Expected `method` option to be a request method (<str>), for example 'post' and 'HEAD'"
REDIRECT_ERROR = "Expected `redirect` option to be a <str> one of 'error', 'follow' and 'manual'"
CACHE_ERROR = (
    "Expected `cache` option to be a <str> one of 'default', 'force-cache', 'no-cache', "
    "'no-store' and 'only-if-cached'"
)
SIGNAL_ERROR = "Expected `signal` option to be an AbortSignal"
FOLLOW_ERROR = "Expected `follow` option to be a positive integer or 0 (20 by default)"
TIMEOUT_ERROR = "Expected `timeout` option to be a positive integer of milliseconds or 0"
SIZE_ERROR = "Expected `size` option to be a positive integer of bytes or 0"
MAX_SOCKETS_ERROR = "Expected `max_sockets` option to be a positive integer or math.inf (unlimited by default)"
