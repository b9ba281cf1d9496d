from pydantic import BaseModel, EmailStr, Field


class BootstrapRequest(BaseModel):
    tenant_name: str = Field(default="Platform", min_length=2, max_length=255)
    admin_username: str = Field(min_length=3, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    admin_email: EmailStr
    admin_name: str = Field(default="Platform Administrator", min_length=1, max_length=255)
    admin_password: str = Field(min_length=8, max_length=72)
