"""Shared pydantic configuration for payloads coming from the HubSpot API."""

from pydantic import BaseModel, ConfigDict


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class HubSpotModel(BaseModel):
    """Base model that reads the API's camelCase keys and keeps unknown ones.

    Unknown keys are kept so a payload can be handed back to the caller
    unmodified via ``to_api()``.
    """

    model_config = ConfigDict(
        alias_generator=_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    def to_api(self) -> dict:
        """Dump back to the API's shape (camelCase, only keys that were set)."""
        return self.model_dump(by_alias=True, exclude_unset=True)
