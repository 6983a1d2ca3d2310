from pydantic import BaseModel, ConfigDict, Field


class JoinFamilyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Left optional so a missing code reaches the service and is reported
    # with the same error kind as a malformed one.
    invite_code: str | None = Field(default=None, alias="inviteCode")


class JoinFamilyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    family_id: str = Field(alias="familyId")


class FamilyCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    family_name: str = Field(min_length=1, max_length=120, alias="familyName")


class FamilyResponse(BaseModel):
    id: str
    family_name: str
    created_by: str
    invite_code: str | None = None
    members: list[str]
    member_roles: dict[str, str]
    created_at: str


class FamilyMemberRemoveResponse(BaseModel):
    family_id: str
    member_id: str
    message: str
