"""Authentication variants resolved into request headers.

The synthesizer itself only decides that a scenario needs credentials; the
header set is handed to whatever issues the requests.
"""

import base64
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class NoAuth(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["none"] = "none"

    def headers(self) -> dict[str, str]:
        return {}


class BasicAuth(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["basic"] = "basic"
    username: str
    password: str

    def headers(self) -> dict[str, str]:
        token = base64.b64encode(f"{self.username}:{self.password}".encode()).decode()
        return {"Authorization": f"Basic {token}"}


class BearerAuth(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["bearer"] = "bearer"
    token: str

    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


class JwtAuth(BaseModel):
    """JWT plus the identity headers the gateway expects alongside it."""

    model_config = ConfigDict(frozen=True)

    type: Literal["jwt"] = "jwt"
    token: str
    user_id: str = ""
    app_id: str = ""
    team: str = ""

    def headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token}"}
        for name, value in (("X-User-Id", self.user_id), ("X-App-Id", self.app_id), ("X-Team", self.team)):
            if value:
                headers[name] = value
        return headers


AuthConfig = Annotated[
    Union[NoAuth, BasicAuth, BearerAuth, JwtAuth],
    Field(discriminator="type"),
]
