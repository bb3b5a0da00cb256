"""Widget settings configured by the merchant."""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from fitsearch._constants import DEFAULT_VEHICLE_TTL_DAYS
from fitsearch.models._base import FitSearchModel


class WidgetSettings(FitSearchModel):
    """Reply of ``/api/settings``.

    A shop that never saved its settings gets ``null`` values, which fall
    back to the defaults below.
    """

    widget_title: str = "Find parts for your vehicle"
    widget_placement: str = "both"
    widget_theme: str = "light"
    widget_button_text: str = "Find Parts"
    remember_vehicle_enabled: bool = True
    remember_days: int = Field(default=DEFAULT_VEHICLE_TTL_DAYS, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data
