from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for models whose serialized form uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


BODY_METHODS = {HttpMethod.POST, HttpMethod.PUT, HttpMethod.PATCH}


class AuthType(str, Enum):
    NONE = "none"
    API_KEY = "api-key"
    BEARER = "bearer"
    BASIC = "basic"


class WorkflowAuth(CamelModel):
    type: AuthType = AuthType.NONE
    token: str | None = None  # bearer
    api_key: str | None = None  # api-key
    username: str | None = None  # basic
    password: str | None = None  # basic


class VariableExtraction(CamelModel):
    id: str
    name: str
    json_path: str
    description: str | None = None


class SpecEndpoint(CamelModel):
    spec_id: str = ""
    path: str = ""
    method: str = ""
    operation_id: str | None = None


class WorkflowRequest(CamelModel):
    method: HttpMethod = HttpMethod.GET
    path: str = "/"
    headers: dict[str, str] = {}
    query_params: dict[str, str] = {}
    body: str | None = None
    auth: WorkflowAuth | None = None


class WorkflowStep(CamelModel):
    id: str
    order: int
    name: str = ""
    request: WorkflowRequest
    extractions: list[VariableExtraction] = []
    spec_endpoint: SpecEndpoint | None = None


class WorkflowDefinition(CamelModel):
    """The portable part of a workflow, as exported and imported."""

    name: str
    description: str | None = None
    server_url: str
    shared_auth: WorkflowAuth | None = None
    steps: list[WorkflowStep] = []

    def sorted_steps(self) -> list[WorkflowStep]:
        """Steps in execution order; ties keep their stored position."""
        return sorted(self.steps, key=lambda s: s.order)


class WorkflowDocument(WorkflowDefinition):
    id: str
    created_at: datetime
    updated_at: datetime
