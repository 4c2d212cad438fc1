from datetime import date
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field


class ExchangeRate(BaseModel):
    """
    A document-level exchange rate row (an "override").

    currency_id is the ERP numeric currency id (dovizTipi).  is_official is
    True only while the row still carries the unmodified published value;
    None means the flag was never set and is submitted as official.
    """
    currency_id: int
    rate: float
    rate_date: Optional[date] = None
    is_official: Optional[bool] = None
    currency: Optional[str] = None          # Textual name, e.g. "USD", when known


class OfficialRate(BaseModel):
    """An externally published rate from the ERP feed (KurDto)."""
    currency_id: int                        # dovizTipi
    rate: Optional[float] = None            # kurDegeri; None when the ERP has no value
    name: Optional[str] = None              # dovizIsmi, e.g. "USD"


class CurrencyOption(BaseModel):
    """A currency catalog entry used to map textual codes to numeric ids."""
    currency_id: int
    code: str
    name: Optional[str] = None
    rate: Optional[float] = None


class CurrencyId(BaseModel):
    kind: Literal["id"] = "id"
    value: int


class CurrencyCode(BaseModel):
    kind: Literal["code"] = "code"
    value: str


# A source currency as it arrives from a price quote: either already numeric,
# or a code that must be looked up in the currency catalog.
CurrencyRef = Annotated[Union[CurrencyId, CurrencyCode], Field(discriminator="kind")]
