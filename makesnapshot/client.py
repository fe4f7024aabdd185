import logging
import re
import time

import requests
from pydantic import ValidationError

from makesnapshot import __version__
from makesnapshot.exceptions import (
    ExtractionError,
    SnapshotRequestFailed,
    TaskTimeoutError,
    VRAAPIError,
    VRAAuthError,
)
from makesnapshot.models import (
    SNAPSHOT_ACTION_NAME,
    SNAPSHOT_ACTION_TYPE,
    STATE_FAILED,
    STATE_SUCCESSFUL,
    ActionList,
    ErrorResponse,
    RequestStatus,
    ResourceList,
    SnapshotRequest,
    TokenRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)

USER_AGENT = f'makeSnapShot {__version__}'
CATALOG_PATH = '/catalog-service/api/consumer'
RESOURCE_PAGE_LIMIT = 5000
POLL_INTERVAL = 10

# Title of the HTML error page returned by the catalog service
H1_REGEX = re.compile(r'<h1>(.*?)</h1>', re.IGNORECASE | re.DOTALL)

JSON_UTF8 = 'application/json;charset=UTF-8'


def _error_title(resp):
    match = H1_REGEX.search(resp.text or '')
    if match:
        return match.group(1).strip()
    return f'HTTP {resp.status_code} {resp.reason or ""}'.strip()


def _system_message(resp):
    try:
        body = ErrorResponse.model_validate(resp.json())
    except (ValueError, ValidationError):
        return resp.text or resp.reason
    for error in body.errors:
        if error.system_message:
            return error.system_message
        if error.message:
            return error.message
    return resp.text or resp.reason


def _parse(model, resp, what):
    try:
        return model.model_validate(resp.json())
    except (ValueError, ValidationError) as e:
        raise ExtractionError(f"Unable to parse {what} response: {e}")


def _require(name, value):
    if value is None or not value.strip():
        raise ExtractionError(f"zero-length string `{name}`")
    return value


class VRAClient:
    def __init__(self, base_url, verify_ssl=True, timeout=30, poll_interval=POLL_INTERVAL):
        """
        Initialize the vRA catalog service client.

        :param base_url: Platform base URL (e.g., 'https://vra.example.com')
        :param verify_ssl: Whether to verify SSL certificates
        :param timeout: Request timeout in seconds
        :param poll_interval: Seconds to wait before each request status poll
        """
        self.base_url = base_url.rstrip('/')
        self.verify_ssl = verify_ssl
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.session = requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'User-Agent': USER_AGENT,
        })

    def _send(self, method, url, **kwargs):
        try:
            return getattr(self.session, method)(url, verify=self.verify_ssl, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            raise VRAAPIError("Request timed out")
        except requests.exceptions.SSLError:
            raise VRAAPIError("SSL verification failed")
        except requests.exceptions.ConnectionError as e:
            raise VRAAPIError(f"Connection failed: {e}")
        except requests.exceptions.RequestException as e:
            raise VRAAPIError(f"Request failed: {e}")

    def _get(self, url, token=None, params=None):
        """
        Perform a GET request.

        :param url: Absolute URL
        :param token: Optional bearer token for the Authorization header
        :param params: Optional query parameters
        :return: requests.Response
        """
        headers = {'Authorization': token} if token else {}
        return self._send('get', url, params=params, headers=headers)

    def _post(self, url, data, token=None, headers=None):
        """
        Perform a POST request with a JSON body.

        :param url: Absolute URL
        :param data: JSON data to send
        :param token: Optional bearer token for the Authorization header
        :param headers: Extra headers for this request only
        :return: requests.Response
        """
        request_headers = dict(headers or {})
        if token:
            request_headers['Authorization'] = token
        return self._send('post', url, json=data, headers=request_headers)

    def _check_status(self, resp, expected=200):
        if resp.status_code != expected:
            raise VRAAPIError(
                f"Unexpected HTTP response status code {resp.status_code}, {_error_title(resp)}",
                status_code=resp.status_code,
            )

    def authenticate(self, username, password, tenant, domain):
        """
        Exchange credentials for a bearer token.

        :param username: User name without domain
        :param password: Password
        :param tenant: Tenant name
        :param domain: Login domain, appended to the user name as 'user@domain'
        :return: Authorization header value 'Bearer <token>'
        """
        url = f'{self.base_url}/identity/api/tokens'
        payload = TokenRequest(username=f'{username}@{domain}', password=password, tenant=tenant)
        resp = self._post(url, payload.model_dump())
        if resp.status_code != 200:
            raise VRAAuthError(
                f"Unexpected HTTP response status code {resp.status_code}, {_system_message(resp)}",
                status_code=resp.status_code,
            )
        token = _parse(TokenResponse, resp, 'bearer token')
        _require('bearerToken', token.id)
        logger.debug(f"Bearer token issued for {username}@{domain}, expires {token.expires}")
        return f'Bearer {token.id}'

    def find_virtual_machine(self, token, machine, ignore_case=False):
        """
        Look up the catalog resource id of a virtual machine by name.

        The listing is requested as a single page of up to 5000 items. The
        machine name must equal the resource name after its tenant prefix.

        :param token: Bearer token
        :param machine: Virtual machine name
        :param ignore_case: Compare names case-insensitively
        :return: 36-character resource id
        """
        url = f'{self.base_url}{CATALOG_PATH}/resources'
        resp = self._get(url, token, params={'page': 1, 'limit': RESOURCE_PAGE_LIMIT})
        self._check_status(resp)
        listing = _parse(ResourceList, resp, 'catalog resources')
        matches = [r.id for r in listing.content
                   if r.is_virtual_machine() and r.matches_name(machine, ignore_case)]
        if not matches:
            raise ExtractionError(f'Unable to find Catalog Resource id for virtual machine "{machine}"')
        if len(set(matches)) > 1:
            raise ExtractionError(
                f'Virtual machine name "{machine}" matches {len(set(matches))} catalog resources'
            )
        logger.debug(f"Virtual machine {machine} has resource id {matches[0]}")
        return matches[0]

    def find_snapshot_action(self, token, resource_id):
        """
        Look up the 'Create VM Snapshot' action id of a resource.

        :param token: Bearer token
        :param resource_id: Catalog resource id
        :return: Action id
        """
        url = f'{self.base_url}{CATALOG_PATH}/resources/{resource_id}/actions/'
        resp = self._get(url, token)
        self._check_status(resp)
        actions = _parse(ActionList, resp, 'resource actions')
        for action in actions.content:
            if action.name == SNAPSHOT_ACTION_NAME and action.type == SNAPSHOT_ACTION_TYPE:
                return _require('Create Snapshot Action ID', action.id)
        raise ExtractionError("Unable to find Create Snapshot Action id")

    def get_action_template(self, token, resource_id, action_id):
        """
        Placeholder for fetching the request template of a resource action
        (GET .../resources/{resource_id}/actions/{action_id}/requests/template).

        No request is sent; the snapshot request body is built locally.
        """
        return None

    def submit_snapshot_request(self, token, resource_id, action_id, tenant, keep_existing=False):
        """
        Submit the snapshot request.

        :param token: Bearer token
        :param resource_id: Catalog resource id
        :param action_id: 'Create VM Snapshot' action id
        :param tenant: Tenant reference for the request body
        :param keep_existing: Keep an existing snapshot instead of replacing it
        :return: Request status URL from the Location header
        """
        url = f'{self.base_url}{CATALOG_PATH}/resources/{resource_id}/actions/{action_id}/requests/'
        payload = SnapshotRequest.for_tenant(tenant, keep_existing)
        resp = self._post(url, payload.model_dump(by_alias=True), token,
                          headers={'Content-Type': JSON_UTF8, 'Accept': JSON_UTF8})
        self._check_status(resp, 201)
        location = _require('Resource Action Request URL', resp.headers.get('Location'))
        logger.debug(f"Snapshot request accepted, status URL: {location}")
        return location

    def get_request_state(self, token, status_url):
        """
        Fetch the current state name of a submitted request.

        :param token: Bearer token
        :param status_url: Request status URL
        :return: stateName value, e.g. 'In Progress'
        """
        resp = self._get(status_url, token)
        self._check_status(resp)
        status = _parse(RequestStatus, resp, 'request status')
        if status.state_name is None:
            raise ExtractionError("Unable to find stateName in request status")
        return status.state_name

    def poll_request_status(self, token, status_url, max_wait=None):
        """
        Poll a submitted request until it reaches a terminal state.

        Every poll is preceded by a sleep of poll_interval seconds. Without
        max_wait the loop has no upper bound.

        :param token: Bearer token
        :param status_url: Request status URL
        :param max_wait: Optional limit in seconds
        :return: Terminal state name ('Successful')
        """
        deadline = time.time() + max_wait if max_wait is not None else None
        while True:
            time.sleep(self.poll_interval)
            state = self.get_request_state(token, status_url)
            logger.info(f"Step 6 - Snapshot request status: {state}")
            if state == STATE_FAILED:
                raise SnapshotRequestFailed("Snapshot request failed, check the vRA portal for more info")
            if state == STATE_SUCCESSFUL:
                return state
            if deadline is not None and time.time() >= deadline:
                raise TaskTimeoutError(f"Snapshot request still '{state}' after {max_wait} seconds")
