"""
Authentication Models

This module defines the strongly-typed owner context used throughout the
service after bearer-token verification.
"""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class OwnerContext(BaseModel):
    """
    Authenticated owner derived from a verified JWT.

    Every read and write in the retrieval core is scoped by ``owner_id``.
    """

    owner_id: str = Field(
        ...,
        min_length=1,
        description="Account identifier (the token's 'sub' claim).",
    )

    email: Optional[str] = Field(
        default=None,
        description="Account e-mail, if present in the token.",
    )

    role: str = Field(
        default="authenticated",
        description="Role claim of the token.",
    )

    model_config = ConfigDict(
        frozen=True,                # Makes OwnerContext immutable after creation
        arbitrary_types_allowed=False,
        extra="forbid",             # Prevents claim injection via unexpected fields
    )
