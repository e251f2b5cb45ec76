"""Credential construction for the Hacienda identity provider.

The IDP username has the form ``{prefix}-{id_type}-{id_number}``, where the
prefix is ``cpj`` for juridical persons and ``cpf`` for everybody else.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr
from pydantic import ValidationError as PydanticValidationError

from hacienda.core.exceptions import AuthenticationError, ErrorCode


class IdType(Enum):
    """Identification type codes used by Hacienda."""

    PERSONA_FISICA = "01"
    PERSONA_JURIDICA = "02"
    DIMEX = "03"
    NITE = "04"


ID_TYPE_PREFIX: dict[IdType, str] = {
    IdType.PERSONA_FISICA: "cpf",
    IdType.PERSONA_JURIDICA: "cpj",
    IdType.DIMEX: "cpf",
    IdType.NITE: "cpf",
}


class CredentialInput(BaseModel):
    """Raw credential input as supplied by the profile/config collaborator."""

    id_type: IdType
    id_number: str = Field(min_length=9, max_length=12, pattern=r"^\d+$")
    password: SecretStr = Field(min_length=1)
    p12_path: Path | None = None


class Credentials(BaseModel):
    """Resolved, immutable credentials ready for the password grant."""

    model_config = ConfigDict(frozen=True)

    username: str
    password: SecretStr


def build_username(id_type: IdType | str, id_number: str) -> str:
    """Build the Hacienda-formatted username.

    Args:
        id_type: Identification type (member or code such as "02").
        id_number: Identification number (cedula).

    Returns:
        str: Username such as ``cpj-02-3101234567``.
    """
    id_type = IdType(id_type)
    return f"{ID_TYPE_PREFIX[id_type]}-{id_type.value}-{id_number}"


def load_credentials(
    id_type: IdType | str,
    id_number: str,
    password: str,
    p12_path: str | Path | None = None,
) -> Credentials:
    """Validate credential input and resolve it into ``Credentials``.

    Args:
        id_type: Identification type code.
        id_number: Identification number (9 to 12 digits).
        password: IDP password.
        p12_path: Optional signing certificate path; must exist when given.

    Returns:
        Credentials: Username and password for ``TokenManager.authenticate``.

    Raises:
        AuthenticationError: With INVALID_CREDENTIALS when validation fails.
    """
    try:
        validated = CredentialInput.model_validate(
            {
                "id_type": id_type,
                "id_number": id_number,
                "password": password,
                "p12_path": p12_path,
            }
        )
    except PydanticValidationError as e:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise AuthenticationError(
            f"Invalid credentials: {messages}",
            ErrorCode.INVALID_CREDENTIALS,
            cause=e,
        ) from e

    if validated.p12_path is not None and not validated.p12_path.exists():
        raise AuthenticationError(
            f"The .p12 file was not found at path: {validated.p12_path}",
            ErrorCode.INVALID_CREDENTIALS,
        )

    return Credentials(
        username=build_username(validated.id_type, validated.id_number),
        password=validated.password,
    )
