# cod_intake/schemas/customer.py
from sqlmodel import SQLModel


class CustomerMatch(SQLModel):
    """
    Autofill fields resolved for a returning customer.

    Every field is a string; sources that lack a value yield "".
    """

    name: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zipcode: str = ""
    email: str = ""


class CustomerLookupResult(SQLModel):
    """
    Response of the customer-by-phone endpoint.
    """

    found: bool
    name: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zipcode: str | None = None
    email: str | None = None
    error: str | None = None

    @classmethod
    def from_match(cls, match: CustomerMatch | None) -> "CustomerLookupResult":
        if match is None:
            return cls(found=False)
        return cls(found=True, **match.model_dump())
