from pydantic import BaseModel, Field


class UserResponse(BaseModel):
    id: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None
    status: str
    family_id: str | None = None
    created_at: str
    updated_at: str


class UserProfileUpdateRequest(BaseModel):
    display_name: str | None = Field(default=None, max_length=120)
    photo_url: str | None = Field(default=None, max_length=1024)


class UserProfileEnsureResponse(BaseModel):
    created: bool
    user: UserResponse
