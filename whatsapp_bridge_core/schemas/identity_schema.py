"""
Schemas describing who is calling the WhatsApp API.

CallerIdentity is the input to credential issuance; CredentialClaims is the
decoded payload of a signed credential.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class VendorAffiliation(BaseModel):
    """Marketplace vendor a user belongs to."""

    model_config = ConfigDict(str_strip_whitespace=True)

    vendor_id: int = Field(..., description="Marketplace vendor id")
    store_name: Optional[str] = Field(None, description="Public store name")


class CallerIdentity(BaseModel):
    """The authenticated marketplace user on whose behalf a call is made."""

    model_config = ConfigDict(str_strip_whitespace=True)

    user_id: int = Field(..., description="Marketplace user id")
    username: str = Field(..., description="Login name")
    email: str = Field(default="", description="User email")
    roles: List[str] = Field(default_factory=list, description="Role names held by the user")
    vendor: Optional[VendorAffiliation] = Field(None, description="Vendor affiliation, if any")

    @property
    def is_vendor(self) -> bool:
        return self.vendor is not None


class CredentialClaims(BaseModel):
    """Claims carried by an issued credential."""

    model_config = ConfigDict(extra="ignore")

    user_id: int
    username: str
    email: str = ""
    roles: List[str] = Field(default_factory=list)
    is_vendor: bool = False
    vendor_id: Optional[int] = None
    store_name: Optional[str] = None
    iat: int
    exp: int
    iss: str

    @classmethod
    def for_identity(
        cls, identity: CallerIdentity, issued_at: int, lifetime: int, issuer: str
    ) -> "CredentialClaims":
        """Build the claim set for an identity issued at the given epoch second."""
        return cls(
            user_id=identity.user_id,
            username=identity.username,
            email=identity.email,
            roles=list(identity.roles),
            is_vendor=identity.is_vendor,
            vendor_id=identity.vendor.vendor_id if identity.vendor else None,
            store_name=identity.vendor.store_name if identity.vendor else None,
            iat=issued_at,
            exp=issued_at + lifetime,
            iss=issuer,
        )
