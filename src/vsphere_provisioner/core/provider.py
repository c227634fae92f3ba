"""vSphere Provider - Connection configuration for a vCenter endpoint."""

from functools import cached_property
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, SecretStr

from vsphere_provisioner.vsphere.client import connect


class PasswordAuth(BaseModel):
    """User/password authentication for vCenter."""

    user: str
    password: SecretStr


class VSphereProvider(BaseModel):
    """Connection configuration for a vCenter server.

    Provide server and auth to open a new session, or use `from_client` to
    inject an existing ``vim.ServiceInstance``.

    Examples:
        provider = VSphereProvider(
            server="vcenter.company.com",
            auth=PasswordAuth(user="administrator@vsphere.local", password="..."),
        )

        # Reuse an existing session
        provider = VSphereProvider.from_client(si)
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    server: str | None = None
    port: int = 443
    auth: PasswordAuth | None = None
    allow_unverified_ssl: bool = False

    # Injected service instance (for embedding / testing)
    _injected_client: Any = None

    @classmethod
    def from_client(cls, client: Any) -> Self:
        """Create a provider with an injected service instance.

        Args:
            client: A connected ``vim.ServiceInstance``
        """
        provider = cls.model_construct()
        provider._injected_client = client
        return provider

    @cached_property
    def client(self) -> Any:
        """Get the vSphere service instance."""
        if self._injected_client is not None:
            return self._injected_client

        if self.server is None or self.auth is None:
            raise ValueError(
                "Either provide server+auth, or use VSphereProvider.from_client() "
                "to inject a service instance"
            )

        return connect(
            self.server,
            self.auth.user,
            self.auth.password.get_secret_value(),
            port=self.port,
            allow_unverified_ssl=self.allow_unverified_ssl,
        )
