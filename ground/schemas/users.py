from pydantic import BaseModel, ConfigDict


class Requestor(BaseModel):
    """Identity of the authenticated user behind a request."""

    model_config = ConfigDict(frozen=True)

    username: str
    uid: int
    gid: int
    is_admin: bool = False


class UserListItem(BaseModel):
    username: str
    disk_usage: str
    is_admin: bool
