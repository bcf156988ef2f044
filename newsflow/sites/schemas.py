"""Destination site model.

A Site is a WordPress installation the user has connected. Payloads from
the dashboard API use both camelCase and snake_case field names, so the
credential fields accept either.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, SecretStr

from newsflow.ids import RecordId


class Site(BaseModel):
    """A connected publishing destination."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: RecordId
    name: str = Field(default="", validation_alias=AliasChoices("name", "nome"))
    wordpress_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("wordpress_url", "wordpressUrl", "url"),
    )
    wordpress_username: str | None = Field(
        default=None,
        validation_alias=AliasChoices("wordpress_username", "wordpressUsername", "username"),
    )
    wordpress_password: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "wordpress_password", "wordpressPassword", "application_password"
        ),
    )

    def missing_credentials(self) -> list[str]:
        """Names of the destination credentials that are absent or blank."""
        missing = []
        if not (self.wordpress_url or "").strip():
            missing.append("wordpress_url")
        if not (self.wordpress_username or "").strip():
            missing.append("wordpress_username")
        secret = self.wordpress_password.get_secret_value() if self.wordpress_password else ""
        if not secret.strip():
            missing.append("wordpress_password")
        return missing

    @property
    def has_complete_credentials(self) -> bool:
        return not self.missing_credentials()

    @property
    def label(self) -> str:
        return self.name or f"site {self.id}"
