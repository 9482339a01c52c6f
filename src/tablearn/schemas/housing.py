"""
Pandera schema for the housing price dataset.

One row per sold house: price, living area, room counts and
yes/no amenity flags.
"""

import pandera.pandas as pa
from pandera.typing import Series

YES_NO = ["yes", "no"]
FURNISHING_LEVELS = ["unfurnished", "semi-furnished", "furnished"]
AMENITY_COLUMNS = [
    "mainroad",
    "guestroom",
    "basement",
    "hotwaterheating",
    "airconditioning",
    "prefarea",
]


class HousingSchema(pa.DataFrameModel):
    """Schema for the housing price regression data."""

    price: Series[float] = pa.Field(gt=0, description="Sale price")
    area: Series[float] = pa.Field(gt=0, description="Lot area in square feet")
    bedrooms: Series[int] = pa.Field(ge=0)
    bathrooms: Series[int] = pa.Field(ge=0)
    stories: Series[int] = pa.Field(ge=0)
    parking: Series[int] = pa.Field(ge=0, description="Parking spaces")

    mainroad: Series[str] = pa.Field(isin=YES_NO)
    guestroom: Series[str] = pa.Field(isin=YES_NO)
    basement: Series[str] = pa.Field(isin=YES_NO)
    hotwaterheating: Series[str] = pa.Field(isin=YES_NO)
    airconditioning: Series[str] = pa.Field(isin=YES_NO)
    prefarea: Series[str] = pa.Field(isin=YES_NO, description="Preferred area")
    furnishingstatus: Series[str] = pa.Field(isin=FURNISHING_LEVELS)

    class Config:
        """Schema configuration."""

        name = "HousingSchema"
        strict = False
        coerce = True
