"""Common base for declarative resource models."""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, computed_field

from vsphere_provisioner.resources.markers import collect_force_new_fields


class Resource(BaseModel):
    """Desired state only; handlers do the remote work.

    Subclasses set ``resource_type``, which prefixes the address.
    """

    model_config = ConfigDict(extra="forbid")

    resource_type: ClassVar[str]

    name: str = Field(pattern=r"^[a-zA-Z0-9_]+$")

    @computed_field
    @property
    def address(self) -> str:
        return f"{self.resource_type}.{self.name}"

    def force_new_fields(self) -> frozenset[str]:
        return collect_force_new_fields(self)
