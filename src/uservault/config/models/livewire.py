from pydantic import BaseModel, Field, field_validator


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Linux; Android 10) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/143.0.0.0 Mobile Safari/537.36"
)


class FormFlowConfig(BaseModel):
    """One server-rendered form that is driven through the component protocol."""
    page_path: str
    success_segment: str
    field: str = "emailAddress"
    method: str = "submitForm"
    failure_message: str = "Failed to submit form"
    sent_message: str = "Email sent. Please check your inbox and click the link."

    @field_validator("page_path")
    @classmethod
    def validate_page_path(cls, v: str) -> str:
        if not v.startswith("/"):
            return f"/{v}"
        return v


class LivewireConfig(BaseModel):
    """Form-automation endpoints on the human-facing site"""
    site_url: str = Field(default="https://uservault.net", description="Origin of the HTML pages")
    update_path: str = Field(default="/livewire/update")
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    min_token_length: int = Field(default=20, description="CSRF candidates must be longer than this")
    signup: FormFlowConfig = Field(default_factory=lambda: FormFlowConfig(
        page_path="/auth/signup",
        success_segment="signup-success",
        failure_message="Failed to send verification email",
        sent_message="Verification email sent. Please check your inbox and click the link.",
    ))
    forgot_password: FormFlowConfig = Field(default_factory=lambda: FormFlowConfig(
        page_path="/auth/forgot-password",
        success_segment="forgot-success",
        failure_message="Failed to send reset email",
        sent_message="Password reset email sent. Please check your inbox and click the link.",
    ))

    @field_validator("site_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def page_url(self, flow: FormFlowConfig) -> str:
        return f"{self.site_url}{flow.page_path}"

    @property
    def update_url(self) -> str:
        return f"{self.site_url}{self.update_path}"
