# cod_intake/schemas/address.py
from sqlmodel import SQLModel

from cod_intake.core.config import Settings


class RegionDefaults(SQLModel):
    """
    Fallbacks for whatever a free-text address does not reveal.
    """

    city: str
    province: str
    postal_code: str
    postal_code_length: int = 6
    country_code: str = "IN"

    @classmethod
    def from_settings(cls, settings: Settings) -> "RegionDefaults":
        return cls(
            city=settings.DEFAULT_CITY,
            province=settings.DEFAULT_PROVINCE,
            postal_code=settings.DEFAULT_POSTAL_CODE,
            postal_code_length=settings.POSTAL_CODE_LENGTH,
            country_code=settings.DEFAULT_COUNTRY_CODE,
        )


class AddressParseResult(SQLModel):
    address1: str
    city: str
    province: str
    postal_code: str
