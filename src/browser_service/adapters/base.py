"""Browser adapter interface used by the autofill pipeline."""

from abc import ABC, abstractmethod

from src.browser_service.models import (
    DOMResponse,
    EvaluateRequest,
    EvaluateResponse,
    LaunchOptions,
    NavigateRequest,
    NavigateResponse,
)


class BrowserAdapter(ABC):
    """Handle to the one page an autofill session works on.

    The controller reads the URL, HTML and DOM fields through it and the
    executor writes values back with evaluate(). Page actions report
    failures in their response instead of raising.
    """

    @property
    @abstractmethod
    def adapter_name(self) -> str:
        ...

    @abstractmethod
    async def initialize(self, options: LaunchOptions) -> None:
        """Launch the browser and open a blank page."""
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    async def navigate(self, request: NavigateRequest) -> NavigateResponse:
        ...

    @abstractmethod
    async def evaluate(self, request: EvaluateRequest) -> EvaluateResponse:
        """Run a script in the page context and return its result."""
        ...

    @abstractmethod
    async def get_dom(
        self, selector: str | None = None, form_fields_only: bool = False
    ) -> DOMResponse:
        """List the visible form fields on the page.

        Args:
            selector: Optional root element to search under
            form_fields_only: Leave out submit buttons
        """
        ...

    @abstractmethod
    async def get_current_url(self) -> str:
        ...

    @abstractmethod
    async def get_page_title(self) -> str:
        ...

    @abstractmethod
    async def get_page_content(self) -> str:
        """Full HTML of the current page."""
        ...
