from pydantic import BaseModel


class SignupRecord(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str
    role: str | None = None
    state: str | None = None
    organization: str | None = None
    message: str | None = None
    updates_opt_in: bool = False
    ip: str | None = None
    ua: str | None = None
