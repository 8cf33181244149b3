import datetime
import uuid
from collections.abc import Iterator
from typing import Any

import requests
from azure.core.credentials import AccessToken, TokenCredential
from azure.core.exceptions import AzureError
from azure.identity import ClientSecretCredential, DefaultAzureCredential
from base_connector.errors import AuthenticationError, ConnectorClientError
from base_connector.logger import ConnectorLogger
from pim_activator.config import AzureConfig
from requests.adapters import HTTPAdapter
from requests.exceptions import RequestException
from urllib3.util.retry import Retry

GRAPH_TOKEN_SCOPE = "https://graph.microsoft.com/.default"
MANAGEMENT_TOKEN_SCOPE = "https://management.azure.com/.default"

# Tokens are refreshed this long before they expire
TOKEN_REFRESH_MARGIN = datetime.timedelta(minutes=5)


def format_duration(duration_hours: int) -> str:
    """ISO-8601 duration, e.g. 8 -> PT8H"""
    return f"PT{duration_hours}H"


def format_datetime(value: datetime.datetime) -> str:
    return value.astimezone(datetime.UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_credential(config: AzureConfig) -> TokenCredential:
    """
    Client secret credential when an app registration is configured,
    the default credential chain (CLI, environment, managed identity...) otherwise.
    """
    if config.client_id and config.client_secret:
        if not config.tenant_id:
            raise AuthenticationError(
                "[AUTH] A tenant id is required with a client secret",
                {"client_id": config.client_id},
            )
        return ClientSecretCredential(
            tenant_id=config.tenant_id,
            client_id=config.client_id,
            client_secret=config.client_secret.get_secret_value(),
        )
    return DefaultAzureCredential()


class BaseApiClient:
    def __init__(
        self,
        credential: TokenCredential,
        token_scope: str,
        base_url: str,
        logger: ConnectorLogger,
        timeout: float = 30,
    ) -> None:
        """
        Init an Azure REST API client.
        :param credential: azure-identity credential used to get tokens
        :param token_scope: OAuth scope of the API
        :param base_url: API base URL
        :param logger: Connector logger
        :param timeout: Requests timeout in seconds
        """
        self.credential = credential
        self.token_scope = token_scope
        self.base_url = base_url.rstrip("/")
        self.logger = logger
        self.timeout = timeout

        self.session = requests.Session()
        self.retries_builder()
        self._expiration_token_date: datetime.datetime | None = None

    def retries_builder(self) -> None:
        """
        Configures the session's retry strategy for API requests.

        Retries up to 5 times with exponential backoff on throttling (429) and
        transient server errors. Non idempotent requests (POST) are not retried.
        """
        retry_strategy = Retry(
            total=5, backoff_factor=2, status_forcelist=[429, 500, 502, 503, 504]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("https://", adapter)

    def _get_authorization_token(self) -> AccessToken:
        """
        Get an OAuth token using azure-identity SDK.
        """
        try:
            return self.credential.get_token(self.token_scope)
        except (ValueError, AzureError) as e:
            raise AuthenticationError(
                message="[AUTH] Failed to get authorization token",
                metadata={"scope": self.token_scope, "error": str(e)},
            ) from e

    def _update_authorization_header(self) -> None:
        token = self._get_authorization_token()
        self.session.headers.update({"Authorization": f"Bearer {token.token}"})
        self._expiration_token_date = (
            datetime.datetime.fromtimestamp(token.expires_on, tz=datetime.UTC)
            - TOKEN_REFRESH_MARGIN
        )

    @staticmethod
    def _build_error(
        method: str, url: str, response: requests.Response
    ) -> ConnectorClientError:
        error_code = error_message = None
        try:
            error = response.json().get("error") or {}
            if isinstance(error, dict):
                error_code = error.get("code")
                error_message = error.get("message")
        except ValueError:
            error_message = response.text or None

        return ConnectorClientError(
            message="[API] Request rejected",
            metadata={
                "url_path": f"{method.upper()} {url} {response.status_code}",
                "error_code": error_code,
                "error_message": error_message,
            },
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )

    def _send_request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        """
        Send a request to the API. Refresh auth token if it is expired
        :param method: Request HTTP method
        :param url: Request URL
        :param kwargs: Any arguments valid for session.requests() method
        :return: Any data returned by the API
        """
        try:
            if (
                self._expiration_token_date is None
                or datetime.datetime.now(tz=datetime.UTC) > self._expiration_token_date
            ):
                self._update_authorization_header()

            response = self.session.request(method, url, timeout=self.timeout, **kwargs)

            self.logger.debug(
                "[API] HTTP Request to endpoint",
                {"url_path": f"{method.upper()} {url} {response.status_code}"},
            )

            if not response.ok:
                raise self._build_error(method, url, response)
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as e:
                raise ConnectorClientError(
                    message="[API] Invalid JSON response",
                    metadata={
                        "url_path": f"{method.upper()} {url} {response.status_code}",
                        "error": str(e),
                    },
                    status_code=response.status_code,
                    error_message=response.text or None,
                ) from e

        except RequestException as err:
            raise ConnectorClientError(
                message="[API] An error occurred during request",
                metadata={"url_path": f"{method.upper()} {url}", "error": str(err)},
            ) from err

    def _paginate(
        self, url: str, params: dict[str, str] | None = None
    ) -> Iterator[dict[str, Any]]:
        """Yield every item of a collection, following the next links."""
        next_url: str | None = url
        while next_url:
            page = self._send_request("get", next_url, params=params)
            yield from page.get("value", [])
            # next links already carry the query parameters
            next_url = page.get("@odata.nextLink") or page.get("nextLink")
            params = None


class GraphClient(BaseApiClient):
    """Microsoft Graph client for Entra ID directory roles."""

    def __init__(
        self,
        credential: TokenCredential,
        logger: ConnectorLogger,
        base_url: str = "https://graph.microsoft.com/v1.0",
        timeout: float = 30,
    ) -> None:
        super().__init__(
            credential=credential,
            token_scope=GRAPH_TOKEN_SCOPE,
            base_url=base_url,
            logger=logger,
            timeout=timeout,
        )

    def get_current_user(self) -> dict[str, Any]:
        return self._send_request(
            "get",
            f"{self.base_url}/me",
            params={"$select": "id,userPrincipalName"},
        )

    def list_directory_eligibilities(self, principal_id: str) -> list[dict[str, Any]]:
        """
        List the directory role eligibilities of a principal, role definitions expanded.
        :param principal_id: Object id of the principal
        :return: Eligibility schedule instances
        """
        return list(
            self._paginate(
                f"{self.base_url}/roleManagement/directory/roleEligibilityScheduleInstances",
                params={
                    "$filter": f"principalId eq '{principal_id}'",
                    "$expand": "roleDefinition",
                },
            )
        )

    def request_directory_activation(
        self,
        principal_id: str,
        role_definition_id: str,
        directory_scope_id: str,
        justification: str,
        duration_hours: int,
        start: datetime.datetime,
    ) -> dict[str, Any]:
        """
        Submit a self-activation request for a directory role.
        :return: The created role assignment schedule request
        """
        return self._send_request(
            "post",
            f"{self.base_url}/roleManagement/directory/roleAssignmentScheduleRequests",
            json={
                "action": "selfActivate",
                "principalId": principal_id,
                "roleDefinitionId": role_definition_id,
                "directoryScopeId": directory_scope_id,
                "justification": justification,
                "scheduleInfo": {
                    "startDateTime": format_datetime(start),
                    "expiration": {
                        "type": "afterDuration",
                        "duration": format_duration(duration_hours),
                    },
                },
            },
        )


class ResourceManagerClient(BaseApiClient):
    """Azure Resource Manager client for Azure resource roles."""

    def __init__(
        self,
        credential: TokenCredential,
        logger: ConnectorLogger,
        base_url: str = "https://management.azure.com",
        api_version: str = "2020-10-01",
        timeout: float = 30,
    ) -> None:
        super().__init__(
            credential=credential,
            token_scope=MANAGEMENT_TOKEN_SCOPE,
            base_url=base_url,
            logger=logger,
            timeout=timeout,
        )
        self.api_version = api_version

    def _authorization_url(self, scope: str, resource: str) -> str:
        return (
            f"{self.base_url}/{scope.strip('/')}/providers/Microsoft.Authorization/{resource}"
            if scope.strip("/")
            else f"{self.base_url}/providers/Microsoft.Authorization/{resource}"
        )

    def list_resource_eligibilities(self, scope: str = "") -> list[dict[str, Any]]:
        """
        List the resource role eligibilities of the signed-in principal.
        :param scope: Scope to query, the whole tenant when empty
        :return: Eligibility schedule instances
        """
        return list(
            self._paginate(
                self._authorization_url(scope, "roleEligibilityScheduleInstances"),
                params={"api-version": self.api_version, "$filter": "asTarget()"},
            )
        )

    def request_resource_activation(
        self,
        scope: str,
        principal_id: str,
        role_definition_id: str,
        eligibility_schedule_id: str | None,
        justification: str,
        duration_hours: int,
        start: datetime.datetime,
    ) -> dict[str, Any]:
        """
        Submit a self-activation request for a resource role at the given scope.
        :return: The created role assignment schedule request
        """
        properties: dict[str, Any] = {
            "principalId": principal_id,
            "roleDefinitionId": role_definition_id,
            "requestType": "SelfActivate",
            "justification": justification,
            "scheduleInfo": {
                "startDateTime": format_datetime(start),
                "expiration": {
                    "type": "AfterDuration",
                    "duration": format_duration(duration_hours),
                },
            },
        }
        if eligibility_schedule_id:
            properties["linkedRoleEligibilityScheduleId"] = eligibility_schedule_id

        request_name = str(uuid.uuid4())
        return self._send_request(
            "put",
            self._authorization_url(
                scope, f"roleAssignmentScheduleRequests/{request_name}"
            ),
            params={"api-version": self.api_version},
            json={"properties": properties},
        )


class AzureSession:
    """
    Authenticated session: the current principal and the API clients sharing its credential.
    """

    def __init__(
        self,
        graph: GraphClient,
        management: ResourceManagerClient,
        logger: ConnectorLogger,
        principal_id: str | None = None,
    ) -> None:
        self.graph = graph
        self.management = management
        self.logger = logger
        self._principal_id = principal_id

    @classmethod
    def from_config(cls, config: AzureConfig, logger: ConnectorLogger) -> "AzureSession":
        credential = build_credential(config)
        return cls(
            graph=GraphClient(
                credential=credential,
                logger=logger,
                base_url=config.graph_url,
                timeout=config.request_timeout,
            ),
            management=ResourceManagerClient(
                credential=credential,
                logger=logger,
                base_url=config.management_url,
                api_version=config.management_api_version,
                timeout=config.request_timeout,
            ),
            logger=logger,
            principal_id=config.principal_id,
        )

    def principal_id(self) -> str:
        """
        Object id of the signed-in principal, resolved once through Graph
        unless configured explicitly.
        """
        if self._principal_id is None:
            try:
                user = self.graph.get_current_user()
            except AuthenticationError:
                raise
            except ConnectorClientError as e:
                raise AuthenticationError(
                    "[AUTH] Unable to resolve the signed-in principal",
                    {**e.metadata, "error": e.message},
                ) from e

            if not user.get("id"):
                raise AuthenticationError(
                    "[AUTH] Unable to resolve the signed-in principal",
                    {"response": user},
                )
            self._principal_id = user["id"]
            self.logger.info(
                "[AUTH] Signed in",
                {
                    "principal_id": self._principal_id,
                    "user_principal_name": user.get("userPrincipalName"),
                },
            )
        return self._principal_id
